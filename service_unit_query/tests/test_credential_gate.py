"""
Unit tests for the inbound credential gate.
"""

import pytest

from shared.config import PLACEHOLDER_API_KEY
from shared.errors import AuthenticationError, AuthorizationError, ConfigurationError
from service_unit_query.app.auth.credential_gate import CredentialGate, GateOutcome

from conftest import API_KEY


class TestCredentialGate:
    """Test cases for CredentialGate."""

    @pytest.fixture
    def gate(self):
        return CredentialGate(API_KEY)

    @pytest.mark.parametrize("expected", [None, "", PLACEHOLDER_API_KEY])
    def test_missing_or_placeholder_key_fails_closed(self, expected):
        gate = CredentialGate(expected)
        headers = {"Authorization": f"Bearer {API_KEY}"}

        assert gate.evaluate(headers) is GateOutcome.MISSING_CONFIG
        with pytest.raises(ConfigurationError) as exc_info:
            gate.check(headers)
        assert exc_info.value.status_code == 500
        assert exc_info.value.code == "misconfigured_api_key"

    def test_missing_header(self, gate):
        assert gate.evaluate({}) is GateOutcome.MISSING_HEADER
        with pytest.raises(AuthenticationError) as exc_info:
            gate.check({})
        assert exc_info.value.status_code == 401
        assert exc_info.value.code == "missing_authorization"

    @pytest.mark.parametrize("value", ["Basic abc", "Bearer", "Bearer    ", "Token " + API_KEY, API_KEY])
    def test_malformed_header(self, gate, value):
        assert gate.evaluate({"Authorization": value}) is GateOutcome.MALFORMED_HEADER
        with pytest.raises(AuthenticationError) as exc_info:
            gate.check({"Authorization": value})
        assert exc_info.value.code == "invalid_authorization"

    @pytest.mark.parametrize("token", ["wrong-token", "x", API_KEY + "x", API_KEY[:-1], "a" * len(API_KEY)])
    def test_wrong_token_is_forbidden(self, gate, token):
        assert gate.evaluate({"Authorization": f"Bearer {token}"}) is GateOutcome.FORBIDDEN
        with pytest.raises(AuthorizationError) as exc_info:
            gate.check({"Authorization": f"Bearer {token}"})
        assert exc_info.value.status_code == 403

    def test_valid_token(self, gate):
        assert gate.evaluate({"Authorization": f"Bearer {API_KEY}"}) is GateOutcome.OK
        gate.check({"Authorization": f"Bearer {API_KEY}"})

    def test_scheme_is_case_insensitive_and_token_trimmed(self, gate):
        assert gate.evaluate({"Authorization": f"  bearer   {API_KEY}  "}) is GateOutcome.OK
        assert gate.evaluate({"Authorization": f"BEARER {API_KEY}"}) is GateOutcome.OK

    def test_header_name_lookup_is_case_insensitive(self, gate):
        assert gate.evaluate({"AUTHORIZATION": f"Bearer {API_KEY}"}) is GateOutcome.OK

    def test_renamed_header_is_accepted(self, gate):
        assert gate.evaluate({"X-Authorization": f"Bearer {API_KEY}"}) is GateOutcome.OK
        assert gate.evaluate({"Redirect-Authorization": f"Bearer {API_KEY}"}) is GateOutcome.OK

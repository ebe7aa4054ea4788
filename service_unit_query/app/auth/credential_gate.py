"""
Bearer API key gate for the Unit Query endpoint.
"""

from __future__ import annotations

import hashlib
import hmac
import re
from enum import Enum
from typing import Mapping, Optional, Tuple

from shared.config import PLACEHOLDER_API_KEY
from shared.errors import AuthenticationError, AuthorizationError, ConfigurationError
from shared.logging import get_logger


_BEARER_PATTERN = re.compile(r"^Bearer\s+(\S.*)$", re.IGNORECASE)

# Proxies and rewrite rules sometimes move the header under another name.
AUTHORIZATION_HEADER_NAMES: Tuple[str, ...] = (
    "authorization",
    "x-authorization",
    "redirect-authorization",
)


class GateOutcome(str, Enum):
    """Result of checking an inbound request's credential."""

    OK = "ok"
    MISSING_CONFIG = "missing_config"
    MISSING_HEADER = "missing_header"
    MALFORMED_HEADER = "malformed_header"
    FORBIDDEN = "forbidden"


class CredentialGate:
    """Validates the caller's bearer token against the configured API key."""

    def __init__(self, expected_key: Optional[str]):
        self._expected_key = expected_key
        self.logger = get_logger("unit_query.auth")

    @property
    def configured(self) -> bool:
        return bool(self._expected_key) and self._expected_key != PLACEHOLDER_API_KEY

    def evaluate(self, headers: Mapping[str, str]) -> GateOutcome:
        """Classify the request without raising."""
        if not self.configured:
            return GateOutcome.MISSING_CONFIG

        authorization = self._find_authorization(headers)
        if not authorization:
            return GateOutcome.MISSING_HEADER

        match = _BEARER_PATTERN.match(authorization.strip())
        if not match:
            return GateOutcome.MALFORMED_HEADER

        token = match.group(1).strip()
        if not self._matches(token):
            return GateOutcome.FORBIDDEN

        return GateOutcome.OK

    def check(self, headers: Mapping[str, str]) -> None:
        """Raise the typed error matching the gate outcome, if any."""
        outcome = self.evaluate(headers)
        if outcome is GateOutcome.OK:
            return

        self.logger.warning("Inbound credential rejected", outcome=outcome.value)

        if outcome is GateOutcome.MISSING_CONFIG:
            raise ConfigurationError(
                "misconfigured_api_key",
                "UNIT_QUERY_API_KEY is missing or invalid.",
            )
        if outcome is GateOutcome.MISSING_HEADER:
            raise AuthenticationError("missing_authorization", "Missing Authorization header.")
        if outcome is GateOutcome.MALFORMED_HEADER:
            raise AuthenticationError(
                "invalid_authorization",
                "Authorization header must use the format 'Bearer <token>'.",
            )
        raise AuthorizationError("forbidden", "Forbidden.")

    def _matches(self, token: str) -> bool:
        # Digests have a fixed size, so the comparison time does not depend on
        # the length of the guess.
        expected = hashlib.sha256(self._expected_key.encode("utf-8")).digest()
        supplied = hashlib.sha256(token.encode("utf-8")).digest()
        return hmac.compare_digest(expected, supplied)

    @staticmethod
    def _find_authorization(headers: Mapping[str, str]) -> str:
        for name in AUTHORIZATION_HEADER_NAMES:
            value = headers.get(name)
            if value:
                return value

        # Plain dicts are case-sensitive; Starlette headers already are not.
        lowered = {str(key).lower(): value for key, value in headers.items()}
        for name in AUTHORIZATION_HEADER_NAMES:
            value = lowered.get(name)
            if value:
                return value
        return ""

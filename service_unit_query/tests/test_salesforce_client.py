"""
Unit tests for the Salesforce client and bearer token access.
"""

import httpx
import pytest

from shared.errors import UpstreamCredentialError
from service_unit_query.app.adapters.salesforce_client import SalesforceClient, UpstreamTransportError
from service_unit_query.app.adapters.token_file import read_bearer_token

from conftest import SF_TOKEN


class TestSalesforceClient:
    """Test cases for SalesforceClient."""

    @pytest.fixture
    def client(self, http_client):
        return SalesforceClient(timeout=30.0, client=http_client)

    @pytest.mark.asyncio
    async def test_sends_bearer_and_accept_headers(self, client, upstream):
        upstream.respond_json({"totalSize": 0, "records": []})

        response = await client.fetch("https://example.my.salesforce.com/services/data/v61.0/query?q=SELECT%20Id", SF_TOKEN)

        assert response.ok
        assert response.status_code == 200
        request = upstream.requests[0]
        assert request.method == "GET"
        assert request.headers["Authorization"] == f"Bearer {SF_TOKEN}"
        assert request.headers["Accept"] == "application/json"
        assert request.url.raw_path.endswith(b"q=SELECT%20Id")

    @pytest.mark.asyncio
    async def test_non_success_status_is_returned_not_raised(self, client, upstream):
        upstream.respond_text("Session expired", 401)

        response = await client.fetch("https://example.my.salesforce.com/x", SF_TOKEN)

        assert not response.ok
        assert response.status_code == 401
        assert response.body == b"Session expired"

    @pytest.mark.asyncio
    async def test_transport_error_is_wrapped_without_retry(self, client, upstream):
        upstream.fail_transport("connection refused")

        with pytest.raises(UpstreamTransportError, match="connection refused"):
            await client.fetch("https://example.my.salesforce.com/x", SF_TOKEN)
        assert len(upstream.requests) == 1

    @pytest.mark.asyncio
    async def test_timeout_is_a_transport_error(self, client, upstream):
        def _timeout(request):
            raise httpx.ReadTimeout("timed out", request=request)

        upstream.responder = _timeout
        with pytest.raises(UpstreamTransportError):
            await client.fetch("https://example.my.salesforce.com/x", SF_TOKEN)

    def test_injected_client_is_used(self, http_client):
        client = SalesforceClient(client=http_client)
        assert client._client is http_client

    @pytest.mark.asyncio
    async def test_invalid_url_is_a_transport_error(self, client, upstream):
        with pytest.raises(UpstreamTransportError):
            await client.fetch("https://example.my.salesforce.com/services/data/v61.0/query/01g\x01-200", SF_TOKEN)
        assert upstream.requests == []


class TestReadBearerToken:
    """Test cases for read_bearer_token."""

    def test_reads_and_trims(self, token_file):
        assert read_bearer_token(token_file) == SF_TOKEN

    def test_reads_fresh_each_time(self, token_file):
        read_bearer_token(token_file)
        token_file.write_text("rotated-token", encoding="utf-8")
        assert read_bearer_token(token_file) == "rotated-token"

    def test_missing_file(self, tmp_path):
        with pytest.raises(UpstreamCredentialError) as exc_info:
            read_bearer_token(tmp_path / "nope")
        assert exc_info.value.code == "missing_token"
        assert exc_info.value.status_code == 400

    def test_blank_file(self, tmp_path):
        path = tmp_path / "token"
        path.write_text("  \n", encoding="utf-8")
        with pytest.raises(UpstreamCredentialError):
            read_bearer_token(path)

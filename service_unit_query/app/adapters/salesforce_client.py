"""
Salesforce REST client for the Unit Query gateway.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import httpx

from shared.logging import get_logger


DEFAULT_TIMEOUT_SECONDS = 30.0


class UpstreamTransportError(Exception):
    """The upstream could not be reached or did not answer in time."""


@dataclass(frozen=True)
class UpstreamResponse:
    status_code: int
    body: bytes

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class SalesforceClient:
    """Issues single authenticated GETs against the Salesforce REST API."""

    def __init__(
        self,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.timeout = timeout
        self.logger = get_logger("unit_query.salesforce_client")
        self._client = client if client is not None else httpx.AsyncClient(timeout=timeout)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def fetch(self, url: str, token: str) -> UpstreamResponse:
        """GET ``url`` with the bearer token; no retries."""
        headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
        }
        try:
            response = await self._client.get(url, headers=headers, timeout=self.timeout)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            self.logger.error(
                "Salesforce request failed",
                error=str(exc) or exc.__class__.__name__,
                error_type=exc.__class__.__name__,
            )
            raise UpstreamTransportError(str(exc) or exc.__class__.__name__) from exc

        if not 200 <= response.status_code < 300:
            self.logger.warning(
                "Salesforce returned non-success status",
                status_code=response.status_code,
            )
        return UpstreamResponse(status_code=response.status_code, body=response.content)

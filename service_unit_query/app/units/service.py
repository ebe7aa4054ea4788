"""
Request pipeline for the Unit endpoint: gate, validate, build, cache, fetch.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple, Union, TYPE_CHECKING

from shared.errors import AccessLayerException, ExternalServiceError
from shared.logging import get_logger

from service_unit_query.app.adapters.salesforce_client import SalesforceClient, UpstreamTransportError
from service_unit_query.app.adapters.token_file import read_bearer_token
from service_unit_query.app.auth.credential_gate import CredentialGate
from service_unit_query.app.caching.response_cache import ResponseCache
from service_unit_query.app.domain.filters import FilterParser, FilterSet
from service_unit_query.app.domain.pagination import annotate_pagination, count_records, mark_cached
from service_unit_query.app.domain.query_builder import QueryBuilder, UpstreamQuery

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


@dataclass(frozen=True)
class UnitQueryResult:
    """A JSON body ready to send, plus where it came from."""

    status_code: int
    body: bytes
    source: str
    record_count: int = 0

    @property
    def cached(self) -> bool:
        return self.source in ("cache", "stale_cache")


class UnitQueryService:
    """Coordinates the credential gate, filters, cache and Salesforce client."""

    def __init__(
        self,
        *,
        gate: CredentialGate,
        parser: FilterParser,
        builder: QueryBuilder,
        cache: ResponseCache,
        client: SalesforceClient,
        token_file: Union[str, Path],
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.gate = gate
        self.parser = parser
        self.builder = builder
        self.cache = cache
        self.client = client
        self.token_file = token_file
        self.metrics = metrics
        self.logger = get_logger("unit_query.pipeline")

    async def handle(self, headers: Mapping[str, str], params: Mapping[str, str]) -> UnitQueryResult:
        """Serve one request.

        Raises AccessLayerException subclasses for every rejected or failed
        request; returns a result for every 200 response.
        """
        filters, query, token = self._prepare(headers, params)

        cached = await self.cache.get(query.cache_key)
        if cached is not None and self.cache.is_fresh(cached[1]):
            payload = cached[0]
            result = UnitQueryResult(200, payload, "cache", self._count_cached(payload))
            self._log_access(filters, result.status_code, result.source, result.record_count)
            return result

        try:
            upstream = await self._fetch(query, token)
        except UpstreamTransportError as exc:
            fallback = self._fallback(cached)
            if fallback is not None:
                self._log_access(filters, fallback.status_code, fallback.source, fallback.record_count)
                return fallback
            self._log_access(filters, 502, "error", 0, error="network_error")
            raise ExternalServiceError(
                "network_error",
                "Failed to reach Salesforce.",
                {"details": str(exc)},
            ) from exc

        if not upstream.ok:
            fallback = self._fallback(cached)
            if fallback is not None:
                self._log_access(filters, fallback.status_code, fallback.source, fallback.record_count)
                return fallback

            status_code = upstream.status_code or 502
            decoded = self._decode(upstream.body)
            self._log_access(filters, status_code, "error", 0, error="salesforce_request_failed")
            raise ExternalServiceError(
                "salesforce_request_failed",
                "Salesforce request failed.",
                {
                    "status": upstream.status_code,
                    "sf": decoded if decoded else None,
                    "details": None if decoded else upstream.body.decode("utf-8", errors="replace"),
                },
                status_code=status_code,
            )

        payload = self._decode(upstream.body)
        if payload is None:
            # Not JSON: pass the upstream bytes through untouched.
            body = upstream.body
            record_count = 0
        else:
            augmented = annotate_pagination(payload, filters, max_offset=self.parser.max_offset)
            body = json.dumps(augmented, ensure_ascii=False).encode("utf-8")
            record_count = count_records(payload)

        await self.cache.put(query.cache_key, body)
        result = UnitQueryResult(200, body, "upstream", record_count)
        self._log_access(filters, result.status_code, result.source, result.record_count)
        return result

    def _prepare(
        self,
        headers: Mapping[str, str],
        params: Mapping[str, str],
    ) -> Tuple[FilterSet, UpstreamQuery, str]:
        filters: Optional[FilterSet] = None
        try:
            # The gate runs before anything touches parameters or the token file.
            self.gate.check(headers)
            filters = self.parser.parse(params)
            query = self.builder.build(filters)
            token = read_bearer_token(self.token_file)
        except AccessLayerException as exc:
            if self.metrics:
                self.metrics.increment_counter("unit_query_rejections_total", error=exc.code)
            self._log_access(
                filters,
                exc.status_code,
                "rejected",
                0,
                error=exc.code,
                parameters=sorted(params.keys()),
            )
            raise
        return filters, query, token

    async def _fetch(self, query: UpstreamQuery, token: str):
        if not self.metrics:
            return await self.client.fetch(query.target_url, token)

        with self.metrics.time_operation("unit_query_upstream_duration_seconds"):
            try:
                upstream = await self.client.fetch(query.target_url, token)
            except UpstreamTransportError:
                self.metrics.increment_counter("unit_query_upstream_requests_total", outcome="transport_error")
                raise
        outcome = "success" if upstream.ok else "http_error"
        self.metrics.increment_counter("unit_query_upstream_requests_total", outcome=outcome)
        return upstream

    def _fallback(self, cached: Optional[Tuple[bytes, float]]) -> Optional[UnitQueryResult]:
        if cached is None:
            return None

        self.cache.record_fallback()
        payload = mark_cached(cached[0])
        body = json.dumps(payload, ensure_ascii=False).encode("utf-8")
        self.logger.warning("Serving cached response after upstream failure", age_seconds=round(cached[1], 1))
        return UnitQueryResult(200, body, "stale_cache", count_records(payload))

    @staticmethod
    def _decode(body: bytes) -> Any:
        try:
            return json.loads(body)
        except ValueError:
            return None

    def _count_cached(self, payload: bytes) -> int:
        decoded = self._decode(payload)
        if isinstance(decoded, dict) and isinstance(decoded.get("pagination"), dict):
            returned = decoded["pagination"].get("returned")
            if isinstance(returned, int):
                return returned
        return count_records(decoded)

    def _log_access(
        self,
        filters: Optional[FilterSet],
        status_code: int,
        source: str,
        record_count: int,
        **extra: Any,
    ) -> None:
        entry: Dict[str, Any] = {
            "filters": filters.describe() if filters is not None else None,
            "record_count": record_count,
            "cache_hit": source in ("cache", "stale_cache"),
            "source": source,
            "status_code": status_code,
            "accessed_at": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        }
        entry.update(extra)
        self.logger.info("unit_query.access", **entry)

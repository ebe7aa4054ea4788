"""
Unit Query gateway service.
"""

import os
from typing import Dict, Optional

import httpx
from fastapi import Request, Response

from shared.base_service import BaseService, JSON_MEDIA_TYPE
from shared.config import UnitQuerySettings, get_config

from service_unit_query.app.adapters.salesforce_client import SalesforceClient
from service_unit_query.app.auth.credential_gate import CredentialGate
from service_unit_query.app.caching.response_cache import ResponseCache
from service_unit_query.app.caching.stores import CacheStore, create_cache_store
from service_unit_query.app.domain.filters import FilterParser
from service_unit_query.app.domain.query_builder import QueryBuilder
from service_unit_query.app.units.service import UnitQueryService


UNITS_PATH = "/api/v1/units"


class UnitGatewayService(BaseService):
    """Unit Query gateway service implementation."""

    def __init__(
        self,
        config: Optional[UnitQuerySettings] = None,
        *,
        cache_store: Optional[CacheStore] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__("unit_query", 8000, config=config or get_config())

        self.gate = CredentialGate(self.config.api_key)
        self.filter_parser = FilterParser(
            instance_url=self.config.instance_url,
            max_limit=self.config.max_limit,
            max_offset=self.config.max_offset,
            default_status=self.config.default_status_values,
            allowlists=self.config.allowlists,
        )
        self.query_builder = QueryBuilder(
            self.config.instance_url,
            api_version=self.config.api_version,
            sobject=self.config.sobject,
        )
        self.cache_store = cache_store if cache_store is not None else create_cache_store(
            self.config.cache_backend,
            cache_dir=self.config.cache_dir,
            redis_url=self.config.redis_url,
        )
        self.response_cache = ResponseCache(
            self.cache_store,
            ttl_seconds=self.config.cache_ttl_seconds,
            metrics=self.metrics,
        )
        self.salesforce_client = SalesforceClient(
            timeout=self.config.upstream_timeout,
            client=http_client,
        )
        self.unit_query = UnitQueryService(
            gate=self.gate,
            parser=self.filter_parser,
            builder=self.query_builder,
            cache=self.response_cache,
            client=self.salesforce_client,
            token_file=self.config.token_file,
            metrics=self.metrics,
        )

        if not self.gate.configured:
            self.logger.error("UNIT_QUERY_API_KEY is missing or left at the placeholder; requests will be refused")

        @self.app.on_event("shutdown")
        async def _shutdown():
            await self.salesforce_client.close()
            await self.cache_store.close()

        self._setup_unit_routes()

        # Expose service instance via app state for introspection/testing
        self.app.state.unit_gateway_service = self

    def _setup_unit_routes(self):
        """Set up the Unit query route."""

        @self.app.get(UNITS_PATH)
        async def query_units(request: Request):
            """Query Salesforce Unit records with validated filters.

            Query parameters: unit_id, status, sub_status, model, offline,
            modified_since, from, to, fields, limit, offset, next_cursor.
            """
            result = await self.unit_query.handle(request.headers, request.query_params)
            return Response(
                content=result.body,
                status_code=result.status_code,
                media_type=JSON_MEDIA_TYPE,
                headers={"X-Cache": "HIT" if result.cached else "MISS"},
            )

    async def _check_dependencies(self) -> Dict[str, str]:
        """Report configuration and cache backend state."""
        return {
            "api_key": "ok" if self.gate.configured else "misconfigured",
            "token_file": "ok" if os.path.isfile(self.config.token_file) else "missing",
            "cache": await self.cache_store.check_health(),
        }


def create_app(config: Optional[UnitQuerySettings] = None, **kwargs):
    """Create FastAPI application."""
    service = UnitGatewayService(config, **kwargs)
    return service.app


if __name__ == "__main__":
    service = UnitGatewayService()
    service.run()

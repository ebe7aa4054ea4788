"""
Base service class for Unit Query gateway services.

Owns the FastAPI application and everything a service gets for free:
request correlation, access metrics, ``/health``, ``/metrics`` and the
rendering of ``AccessLayerException`` as typed JSON errors.
"""

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST
from typing import Dict, Optional
import time
import os

from shared.config import UnitQuerySettings, get_config
from shared.logging import bind_request_context, clear_context, configure_logging, get_logger
from shared.metrics import get_metrics_collector
from shared.errors import AccessLayerException

JSON_MEDIA_TYPE = "application/json; charset=utf-8"
REQUEST_ID_HEADER = "X-Request-ID"
SERVICE_VERSION = "1.0.0"


class BaseService:
    """Base service class with common functionality."""

    def __init__(self, service_name: str, port: int, config: Optional[UnitQuerySettings] = None):
        self.service_name = service_name
        self.port = port
        self.config = config or get_config(service_name, port)

        configure_logging(service_name, self.config.log_level)
        self.logger = get_logger(f"{service_name}.service")
        self.metrics = get_metrics_collector(service_name)
        self._start_time = time.monotonic()

        self.app = self._create_app()
        self._setup_middleware()
        self._setup_routes()
        self._setup_error_handlers()

    def _create_app(self) -> FastAPI:
        title = self.service_name.replace("_", " ").title()
        interactive_docs = self.config.env == "local"
        return FastAPI(
            title=f"{title} Service",
            description=f"{title} gateway",
            version=SERVICE_VERSION,
            docs_url="/docs" if interactive_docs else None,
            redoc_url="/redoc" if interactive_docs else None,
        )

    def _setup_middleware(self):
        """Set up CORS and per-request correlation."""

        # GET only; origins are open in the local environment only.
        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"] if self.config.env == "local" else [],
            allow_credentials=False,
            allow_methods=["GET"],
            allow_headers=["*"],
        )

        @self.app.middleware("http")
        async def correlate_request(request: Request, call_next):
            request_id = bind_request_context(
                request.headers.get(REQUEST_ID_HEADER),
                request.client.host if request.client else None,
            )
            started = time.perf_counter()
            try:
                response = await call_next(request)
                elapsed = time.perf_counter() - started

                self.metrics.record_http_request(
                    method=request.method,
                    endpoint=request.url.path,
                    status_code=response.status_code,
                    duration=elapsed,
                )
                self.logger.info(
                    "HTTP request",
                    method=request.method,
                    path=request.url.path,
                    status_code=response.status_code,
                    duration_ms=round(elapsed * 1000, 2),
                )

                response.headers[REQUEST_ID_HEADER] = request_id
                return response
            finally:
                clear_context()

    def _setup_routes(self):
        """Set up /health and /metrics."""

        @self.app.get("/health")
        async def health_check():
            """Report liveness plus the state of each dependency."""
            dependencies = await self._check_dependencies()
            healthy = all(state == "ok" for state in dependencies.values())
            status = "ok" if healthy else "degraded"
            self.metrics.record_health_check(status)

            return {
                "service": self.service_name,
                "status": status,
                "uptime_seconds": round(self._get_uptime(), 3),
                "dependencies": dependencies,
                "version": SERVICE_VERSION,
                "commit": os.getenv("GIT_COMMIT", "unknown"),
            }

        @self.app.get("/metrics")
        async def metrics_endpoint():
            """Prometheus scrape endpoint."""
            return Response(content=self.metrics.export(), media_type=CONTENT_TYPE_LATEST)

    def _setup_error_handlers(self):
        @self.app.exception_handler(AccessLayerException)
        async def access_layer_exception_handler(request: Request, exc: AccessLayerException):
            log = self.logger.error if exc.status_code >= 500 else self.logger.warning
            log("Request failed", code=exc.code, status_code=exc.status_code, path=request.url.path)
            return JSONResponse(
                status_code=exc.status_code,
                content=exc.to_response().model_dump(),
                media_type=JSON_MEDIA_TYPE,
            )

        @self.app.exception_handler(Exception)
        async def general_exception_handler(request: Request, exc: Exception):
            self.logger.error("Unhandled exception", error=str(exc), path=request.url.path, exc_info=True)
            return JSONResponse(
                status_code=500,
                content={"error": "internal_error", "message": "Internal server error"},
                media_type=JSON_MEDIA_TYPE,
            )

    async def _check_dependencies(self) -> Dict[str, str]:
        """Check service dependencies. Override in subclasses."""
        return {}

    def _get_uptime(self) -> float:
        return time.monotonic() - self._start_time

    def run(self):
        """Serve the application with uvicorn."""
        import uvicorn
        uvicorn.run(
            self.app,
            host=self.config.host,
            port=self.config.port,
            log_level=self.config.log_level.lower(),
        )

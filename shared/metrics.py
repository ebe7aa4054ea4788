"""
Prometheus metrics for the Unit Query gateway.
"""

from prometheus_client import Counter, Histogram, Info, CollectorRegistry, generate_latest
from typing import Dict, Any, Optional, Sequence, Tuple
import time
from contextlib import contextmanager

# name -> (type, help text, label names)
MetricSpec = Tuple[type, str, Sequence[str]]

HTTP_METRICS: Dict[str, MetricSpec] = {
    "http_requests_total": (Counter, "Total HTTP requests", ("method", "endpoint", "status_code")),
    "http_request_duration_seconds": (Histogram, "HTTP request duration in seconds", ("method", "endpoint")),
    "health_check_total": (Counter, "Total health check requests", ("status",)),
}

UNIT_QUERY_METRICS: Dict[str, MetricSpec] = {
    "unit_query_cache_events_total": (
        Counter,
        "Response cache events (hit, miss, stale, fallback, read_error, write_error)",
        ("event",),
    ),
    "unit_query_upstream_requests_total": (
        Counter,
        "Salesforce requests by outcome (success, http_error, transport_error)",
        ("outcome",),
    ),
    "unit_query_upstream_duration_seconds": (Histogram, "Salesforce request duration in seconds", ()),
    "unit_query_rejections_total": (Counter, "Requests rejected before reaching Salesforce", ("error",)),
}


class MetricsCollector:
    """Centralized metrics collector for services.

    Each collector owns its registry so several service instances (one per
    test, typically) can coexist in a single process.
    """

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry if registry is not None else CollectorRegistry()
        self._metrics: Dict[str, Any] = {}

        info = Info("service_info", "Service information", registry=self.registry)
        info.info({"service": service_name, "version": "1.0.0"})

        self._register(HTTP_METRICS)
        if service_name == "unit_query":
            self._register(UNIT_QUERY_METRICS)

    def _register(self, specs: Dict[str, MetricSpec]) -> None:
        for name, (metric_type, documentation, labels) in specs.items():
            self._metrics[name] = metric_type(name, documentation, list(labels), registry=self.registry)

    def export(self) -> bytes:
        """Render the registry in the Prometheus text format."""
        return generate_latest(self.registry)

    def record_http_request(self, method: str, endpoint: str, status_code: int, duration: float):
        self.increment_counter("http_requests_total", method=method, endpoint=endpoint, status_code=str(status_code))
        self.observe_histogram("http_request_duration_seconds", duration, method=method, endpoint=endpoint)

    def record_health_check(self, status: str):
        self.increment_counter("health_check_total", status=status)

    @contextmanager
    def time_operation(self, operation_name: str, **labels):
        """Observe the wall time of the ``with`` block into a histogram."""
        start_time = time.perf_counter()
        try:
            yield
        finally:
            self.observe_histogram(operation_name, time.perf_counter() - start_time, **labels)

    def increment_counter(self, metric_name: str, **labels):
        """Increment a counter metric; unknown names are ignored."""
        metric = self._metrics.get(metric_name)
        if metric is not None:
            (metric.labels(**labels) if labels else metric).inc()

    def observe_histogram(self, metric_name: str, value: float, **labels):
        metric = self._metrics.get(metric_name)
        if metric is not None:
            (metric.labels(**labels) if labels else metric).observe(value)


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)

"""
TTL response cache with stale entries kept around for fallback.
"""

from __future__ import annotations

import time
from typing import Callable, Optional, Tuple, TYPE_CHECKING

from shared.logging import get_logger
from .stores import CacheStore

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


DEFAULT_TTL_SECONDS = 300


class ResponseCache:
    """Looks up and stores upstream payloads by query cache key.

    Freshness is decided on read: an entry is fresh while its age is below the
    TTL. Stale entries are still returned so callers can fall back to them
    when the upstream is unavailable.
    """

    def __init__(
        self,
        store: CacheStore,
        *,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.store = store
        self.ttl_seconds = ttl_seconds
        self.metrics = metrics
        self._clock = clock
        self.logger = get_logger("unit_query.cache")

    def is_fresh(self, age: float) -> bool:
        return age < self.ttl_seconds

    async def get(self, key: str) -> Optional[Tuple[bytes, float]]:
        """Return ``(payload, age_seconds)`` or None on miss or store failure."""
        try:
            entry = await self.store.get(key)
        except Exception as exc:
            self.logger.error("Cache fetch error", key=key, error=str(exc))
            self._record("read_error")
            return None

        if entry is None:
            self._record("miss")
            return None

        age = max(0.0, self._clock() - entry.written_at)
        self._record("hit" if self.is_fresh(age) else "stale")
        return entry.payload, age

    async def put(self, key: str, payload: bytes) -> bool:
        """Store a payload; failures are logged, never raised."""
        try:
            await self.store.put(key, payload)
            return True
        except Exception as exc:
            self.logger.error("Cache write error", key=key, error=str(exc))
            self._record("write_error")
            return False

    def record_fallback(self) -> None:
        self._record("fallback")

    def _record(self, event: str) -> None:
        if self.metrics:
            self.metrics.increment_counter("unit_query_cache_events_total", event=event)

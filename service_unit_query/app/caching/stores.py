"""
Cache stores for upstream response payloads.
"""

from __future__ import annotations

import asyncio
import os
import re
import tempfile
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Optional, Union

import redis.asyncio as redis

from shared.logging import get_logger

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


@dataclass(frozen=True)
class CacheEntry:
    """A cached payload and the epoch time it was written."""

    payload: bytes
    written_at: float


class CacheStore(ABC):
    """Flat keyed store with last-writer-wins semantics."""

    @abstractmethod
    async def get(self, key: str) -> Optional[CacheEntry]:
        """Return the entry for ``key`` or None."""

    @abstractmethod
    async def put(self, key: str, payload: bytes) -> None:
        """Store ``payload`` under ``key``, replacing any previous value."""

    async def check_health(self) -> str:
        return "ok"

    async def close(self) -> None:
        return None


class FileCacheStore(CacheStore):
    """One JSON file per key; writes are atomic via write-then-rename."""

    def __init__(self, cache_dir: Union[str, Path]):
        self.cache_dir = Path(cache_dir)
        self.logger = get_logger("unit_query.cache.file")

    def path_for(self, key: str) -> Path:
        if not _KEY_PATTERN.match(key):
            raise ValueError(f"Invalid cache key: {key!r}")
        return self.cache_dir / f"{key}.json"

    async def get(self, key: str) -> Optional[CacheEntry]:
        return await asyncio.to_thread(self._read, self.path_for(key))

    async def put(self, key: str, payload: bytes) -> None:
        await asyncio.to_thread(self._write, self.path_for(key), payload)

    async def check_health(self) -> str:
        if self.cache_dir.exists() and not os.access(self.cache_dir, os.W_OK):
            return "error"
        return "ok"

    @staticmethod
    def _read(path: Path) -> Optional[CacheEntry]:
        try:
            with path.open("rb") as handle:
                written_at = os.fstat(handle.fileno()).st_mtime
                return CacheEntry(payload=handle.read(), written_at=written_at)
        except FileNotFoundError:
            return None

    def _write(self, path: Path, payload: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.stem}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise
        self.logger.debug("Cache entry written", path=str(path), size=len(payload))


class MemoryCacheStore(CacheStore):
    """In-process store, for tests and single-worker deployments."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._entries: Dict[str, CacheEntry] = {}
        self._clock = clock

    async def get(self, key: str) -> Optional[CacheEntry]:
        return self._entries.get(key)

    async def put(self, key: str, payload: bytes) -> None:
        self._entries[key] = CacheEntry(payload=bytes(payload), written_at=self._clock())

    def __len__(self) -> int:
        return len(self._entries)


class RedisCacheStore(CacheStore):
    """Redis hash per key holding ``payload`` and ``written_at``."""

    def __init__(
        self,
        redis_url: str,
        *,
        namespace: str = "unit_query",
        client: Optional[redis.Redis] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.redis_url = redis_url
        self.namespace = namespace
        self.logger = get_logger("unit_query.cache.redis")
        self._redis = client
        self._clock = clock

    async def _get_redis(self) -> redis.Redis:
        if self._redis is None:
            self._redis = redis.from_url(self.redis_url)
        return self._redis

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    async def get(self, key: str) -> Optional[CacheEntry]:
        client = await self._get_redis()
        data = await client.hgetall(self._key(key))
        if not data:
            return None

        payload = data.get(b"payload", data.get("payload"))
        written_at = data.get(b"written_at", data.get("written_at"))
        if payload is None or written_at is None:
            self.logger.warning("Incomplete cache entry ignored", key=key)
            return None
        if isinstance(payload, str):
            payload = payload.encode("utf-8")
        return CacheEntry(payload=payload, written_at=float(written_at))

    async def put(self, key: str, payload: bytes) -> None:
        client = await self._get_redis()
        # HSET with a mapping is a single command, so readers see both fields or neither.
        await client.hset(
            self._key(key),
            mapping={"payload": payload, "written_at": repr(self._clock())},
        )

    async def check_health(self) -> str:
        try:
            client = await self._get_redis()
            await client.ping()
            return "ok"
        except Exception as exc:
            self.logger.error("Redis health check failed", error=str(exc))
            return "error"

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None


def create_cache_store(backend: str, *, cache_dir: str, redis_url: str) -> CacheStore:
    """Instantiate the configured cache backend."""
    backend = backend.lower()
    if backend == "file":
        return FileCacheStore(cache_dir)
    if backend == "memory":
        return MemoryCacheStore()
    if backend == "redis":
        return RedisCacheStore(redis_url)
    raise ValueError(f"Unknown cache backend: {backend}")

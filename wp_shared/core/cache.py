"""In-memory TTL cache for REST API responses.

One instance is built at startup and handed to every consumer (the REST
client, the tool server). Reads record hit/miss counters; writes to a
resource drop every cached read for the same resource family.
"""
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable

from wp_shared.core.config import settings

logger = logging.getLogger(__name__)


@dataclass
class CacheStats:
    hits: int
    misses: int
    keys: int
    enabled: bool
    ttl_seconds: int


def make_cache_key(method: str, endpoint: str, params: dict | None = None) -> str:
    """Build `METHOD:endpoint:params` so each query combination gets its own entry."""
    serialized = json.dumps(params or {}, separators=(",", ":"), sort_keys=True, default=str)
    return f"{method.upper()}:{endpoint}:{serialized}"


def resource_family(endpoint: str) -> str:
    """Return the invalidation pattern for a write to `endpoint`.

    Namespaced routes keep their namespace: `/wp/v2/posts/42` -> `/wp/v2/posts`.
    Plain routes keep the first segment: `/posts/42` -> `/posts`.
    """
    segments = [s for s in endpoint.split("?", 1)[0].split("/") if s]
    if not segments:
        return endpoint
    # "<namespace>/v<N>/<resource>"
    if len(segments) >= 2 and segments[1][:1] == "v" and segments[1][1:].isdigit():
        return "/" + "/".join(segments[:3])
    return "/" + segments[0]


class ResponseCache:
    """Key/value store with per-entry expiry and substring invalidation.

    A disabled cache is a pass-through: every read misses, every write is a
    no-op, so callers never branch on whether caching is on.
    """

    def __init__(
        self,
        enabled: bool = True,
        ttl_seconds: int = 300,
        check_period: int = 120,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.enabled = enabled
        self.ttl_seconds = ttl_seconds
        self.check_period = check_period
        self._clock = clock
        self._store: dict[str, tuple[Any, float | None]] = {}
        self._hits = 0
        self._misses = 0
        self._last_sweep = clock()

        if enabled:
            logger.info("Cache enabled with TTL: %ss", ttl_seconds)
        else:
            logger.info("Cache disabled")

    @classmethod
    def from_settings(cls) -> "ResponseCache":
        return cls(
            enabled=settings.CACHE_ENABLED,
            ttl_seconds=settings.CACHE_TTL,
            check_period=settings.CACHE_CHECK_PERIOD,
        )

    def _expired(self, expires_at: float | None, now: float) -> bool:
        return expires_at is not None and now >= expires_at

    def _maybe_sweep(self, now: float) -> None:
        if self.check_period <= 0 or now - self._last_sweep < self.check_period:
            return
        self._last_sweep = now
        stale = [k for k, (_, exp) in self._store.items() if self._expired(exp, now)]
        for key in stale:
            del self._store[key]
        if stale:
            logger.debug("Cache swept %d expired keys", len(stale))

    def get(self, key: str, default: Any = None) -> Any:
        """Return the cached value, or `default` when absent or expired."""
        if not self.enabled:
            self._misses += 1
            return default

        now = self._clock()
        self._maybe_sweep(now)
        entry = self._store.get(key)
        if entry is not None and self._expired(entry[1], now):
            del self._store[key]
            entry = None

        if entry is None:
            self._misses += 1
            logger.debug("Cache MISS: %s", key)
            return default

        self._hits += 1
        logger.debug("Cache HIT: %s", key)
        return entry[0]

    def set(self, key: str, value: Any, ttl: int | None = None) -> bool:
        """Store `value` for `ttl` seconds (default TTL if None, forever if 0)."""
        if not self.enabled:
            return False

        ttl = self.ttl_seconds if ttl is None else ttl
        now = self._clock()
        self._maybe_sweep(now)
        self._store[key] = (value, None if ttl == 0 else now + ttl)
        logger.debug("Cache SET: %s (TTL: %ss)", key, ttl)
        return True

    def delete(self, key: str) -> int:
        if not self.enabled:
            return 0
        entry = self._store.pop(key, None)
        if entry is None or self._expired(entry[1], self._clock()):
            return 0
        logger.debug("Cache DELETE: %s", key)
        return 1

    def flush(self) -> None:
        if not self.enabled:
            return
        self._store.clear()
        logger.info("Cache flushed")

    def keys(self) -> list[str]:
        """Live keys; expired entries are evicted on the way."""
        if not self.enabled:
            return []
        now = self._clock()
        for key in [k for k, (_, exp) in self._store.items() if self._expired(exp, now)]:
            del self._store[key]
        return list(self._store)

    def invalidate_by_pattern(self, pattern: str) -> int:
        """Drop every entry whose key contains `pattern` (plain substring match)."""
        if not self.enabled:
            return 0
        matching = [k for k in self.keys() if pattern in k]
        for key in matching:
            del self._store[key]
        if matching:
            logger.debug("Cache invalidated %d keys matching: %s", len(matching), pattern)
        return len(matching)

    def stats(self) -> CacheStats:
        return CacheStats(
            hits=self._hits,
            misses=self._misses,
            keys=len(self.keys()),
            enabled=self.enabled,
            ttl_seconds=self.ttl_seconds,
        )

"""
Rate Limit Service - Fixed-window request counting per client IP
"""
import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

import redis

from scavenger_hunt.config import settings

logger = logging.getLogger(__name__)


@dataclass
class RateLimitResult:
    allowed: bool
    remaining: int
    retry_after: int


class MemoryStore:
    """Process-local counters; windows reset on restart"""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        # key -> (window start, hits, window length)
        self._windows: Dict[str, Tuple[float, int, int]] = {}
        self._next_sweep = 0.0
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._windows)

    def _sweep(self, now: float) -> None:
        """Forget windows that have run out"""
        expired = [
            key for key, (started, _, window) in self._windows.items()
            if now - started >= window
        ]
        for key in expired:
            del self._windows[key]

    def incr(self, key: str, window_sec: int) -> Tuple[int, float]:
        """Count a hit. Returns (hits in the window, seconds until it resets)."""
        now = self._clock()
        with self._lock:
            if now >= self._next_sweep:
                self._sweep(now)
                self._next_sweep = now + window_sec
            started, count, _ = self._windows.get(key, (now, 0, window_sec))
            if now - started >= window_sec:
                started, count = now, 0
            count += 1
            self._windows[key] = (started, count, window_sec)
        return count, window_sec - (now - started)

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()


class RedisStore:
    """Counters shared between workers through Redis INCR/EXPIRE"""

    def __init__(self, client: redis.Redis):
        self._client = client

    def incr(self, key: str, window_sec: int) -> Tuple[int, float]:
        pipe = self._client.pipeline()
        pipe.incr(key)
        pipe.ttl(key)
        count, ttl = pipe.execute()
        if ttl is None or ttl < 0:
            self._client.expire(key, window_sec)
            ttl = window_sec
        return int(count), float(ttl)

    def reset(self) -> None:
        for key in self._client.scan_iter("ratelimit:*"):
            self._client.delete(key)


class FixedWindowRateLimiter:
    """Counts hits per (scope, client key) inside fixed windows"""

    def __init__(self, store=None, enabled: bool = True):
        self.store = store if store is not None else MemoryStore()
        self.enabled = enabled

    def hit(self, scope: str, key: str, max_requests: int, window_sec: int) -> RateLimitResult:
        if not self.enabled:
            return RateLimitResult(allowed=True, remaining=max_requests, retry_after=0)

        count, reset_in = self.store.incr(f"ratelimit:{scope}:{key}", window_sec)
        allowed = count <= max_requests
        if not allowed:
            logger.warning(f"Rate limit '{scope}' exceeded for {key}")
        return RateLimitResult(
            allowed=allowed,
            remaining=max(0, max_requests - count),
            retry_after=max(1, math.ceil(reset_in)) if not allowed else 0,
        )

    def reset(self) -> None:
        self.store.reset()


def build_rate_limiter(redis_url: Optional[str] = None) -> FixedWindowRateLimiter:
    """Redis-backed limiter when a URL is configured and reachable, memory otherwise"""
    redis_url = redis_url if redis_url is not None else settings.RATE_LIMIT_REDIS_URL
    store = None
    if redis_url:
        try:
            client = redis.from_url(redis_url, decode_responses=True)
            client.ping()
            store = RedisStore(client)
            logger.info("Rate limiting backed by Redis")
        except Exception as e:
            logger.warning(f"Redis unavailable for rate limiting, using memory store: {e}")
    return FixedWindowRateLimiter(store=store, enabled=settings.RATE_LIMIT_ENABLED)

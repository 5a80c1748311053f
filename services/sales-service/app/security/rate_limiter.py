"""Login attempt throttling with a sliding time window."""

from __future__ import annotations

import logging
import time
from collections import defaultdict, deque
from threading import Lock
from typing import Callable, Protocol

from ..config import Settings, get_settings

logger = logging.getLogger(__name__)


class RateLimiter(Protocol):
    def allow(self, key: str) -> bool: ...

    def reset(self, key: str) -> None: ...


class SlidingWindowRateLimiter:
    """Process-local limiter; each key keeps the timestamps of its recent hits."""

    def __init__(
        self,
        max_requests: int,
        window_seconds: int,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._max_requests = max_requests
        self._window = window_seconds
        self._clock = clock
        self._hits: defaultdict[str, deque[float]] = defaultdict(deque)
        self._lock = Lock()

    def allow(self, key: str) -> bool:
        now = self._clock()
        with self._lock:
            hits = self._hits[key]
            cutoff = now - self._window
            while hits and hits[0] <= cutoff:
                hits.popleft()
            if len(hits) >= self._max_requests:
                return False
            hits.append(now)
            return True

    def reset(self, key: str) -> None:
        with self._lock:
            self._hits.pop(key, None)


def build_rate_limiter(settings: Settings | None = None) -> RateLimiter:
    """Return the configured backend, using memory when Redis cannot be reached."""
    settings = settings or get_settings()
    if settings.rate_limit_backend == "redis" and settings.redis_url:
        import redis
        from redis.exceptions import RedisError

        from .redis_rate_limiter import RedisSlidingWindowRateLimiter

        client = redis.Redis.from_url(settings.redis_url)
        try:
            client.ping()
        except RedisError as exc:
            logger.warning("redis unavailable at %s, limiting logins in memory: %s", settings.redis_url, exc)
        else:
            logger.info("login rate limiting backed by redis")
            return RedisSlidingWindowRateLimiter(
                client,
                max_requests=settings.rate_limit_requests,
                window_seconds=settings.rate_limit_window_seconds,
            )

    return SlidingWindowRateLimiter(
        max_requests=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )

"""Sliding window limiter shared across workers through Redis sorted sets."""

from __future__ import annotations

import time
from typing import Final

from redis import Redis
from redis.exceptions import ResponseError


class RedisSlidingWindowRateLimiter:
    # KEYS[1] = hit set, ARGV = window_ms, limit, now_ms
    _SCRIPT: Final[str] = """
    local hits = KEYS[1]
    local window_ms = tonumber(ARGV[1])
    local limit = tonumber(ARGV[2])
    local now_ms = tonumber(ARGV[3])

    redis.call('ZREMRANGEBYSCORE', hits, '-inf', now_ms - window_ms)
    if redis.call('ZCARD', hits) >= limit then
        return 0
    end
    local seq = redis.call('INCR', hits .. ':n')
    redis.call('PEXPIRE', hits .. ':n', window_ms)
    redis.call('ZADD', hits, now_ms, now_ms .. '-' .. seq)
    redis.call('PEXPIRE', hits, window_ms)
    return 1
    """

    def __init__(
        self,
        client: Redis,
        *,
        max_requests: int,
        window_seconds: int,
        namespace: str = "login-attempts",
    ) -> None:
        self._client = client
        self._limit = max_requests
        self._window_ms = window_seconds * 1000
        self._namespace = namespace
        self._script = client.register_script(self._SCRIPT)

    def _key(self, key: str) -> str:
        return f"{self._namespace}:{key}"

    def allow(self, key: str) -> bool:
        hits = self._key(key)
        now_ms = int(time.time() * 1000)
        try:
            return int(self._script(keys=[hits], args=[self._window_ms, self._limit, now_ms])) == 1
        except ResponseError as exc:
            # Servers without scripting (and fakeredis without lupa) reject EVALSHA.
            if "unknown command" not in str(exc).lower():
                raise
            return self._allow_without_script(hits, now_ms)

    def reset(self, key: str) -> None:
        hits = self._key(key)
        self._client.delete(hits, f"{hits}:n")

    def _allow_without_script(self, hits: str, now_ms: int) -> bool:
        self._client.zremrangebyscore(hits, "-inf", now_ms - self._window_ms)
        if self._client.zcard(hits) >= self._limit:
            return False
        seq = self._client.incr(f"{hits}:n")
        self._client.pexpire(f"{hits}:n", self._window_ms)
        self._client.zadd(hits, {f"{now_ms}-{seq}": now_ms})
        self._client.pexpire(hits, self._window_ms)
        return True

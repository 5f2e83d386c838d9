"""
Login rate limiting.

`LoginRateLimiter.attempt(key)` counts attempts per key in a fixed
window that starts at the first attempt.  The counter itself lives in
an attempt store so the policy does not care where state is kept:

- `InMemoryAttemptStore`: per-process dict, fine for one instance.
- `RedisAttemptStore`: shared counter for multi-instance deploys
  (selected when REDIS_URL is configured).

Stores expose awaitable `incr(key, ttl_seconds) -> (count, seconds_left)`
and `delete(key)`; the Redis store talks to the asyncio client so a
login never blocks the event loop on a network round-trip.
"""

import logging
import math
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

import redis.asyncio as aioredis
from fastapi import HTTPException, Request, status

from onay_auth.core.config import settings

logger = logging.getLogger(__name__)

TOO_MANY_ATTEMPTS_MESSAGE = "Слишком много попыток входа. Попробуйте позже."


class InMemoryAttemptStore:
    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._lock = threading.Lock()
        self._data: dict[str, tuple[int, float]] = {}

    async def incr(self, key: str, ttl_seconds: int) -> tuple[int, float]:
        now = self._clock()
        with self._lock:
            existing = self._data.get(key)
            if existing is None or existing[1] <= now:
                count, reset_at = 1, now + ttl_seconds
            else:
                count, reset_at = existing[0] + 1, existing[1]
            self._data[key] = (count, reset_at)
            self._cleanup(now)
            return count, reset_at - now

    async def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def _cleanup(self, now: float) -> None:
        expired = [k for k, (_, reset_at) in self._data.items() if reset_at <= now]
        for k in expired:
            self._data.pop(k, None)


class RedisAttemptStore:
    def __init__(self, client: aioredis.Redis, prefix: str = "login-attempts:"):
        self._redis = client
        self._prefix = prefix

    async def incr(self, key: str, ttl_seconds: int) -> tuple[int, float]:
        name = self._prefix + key
        pipe = self._redis.pipeline()
        pipe.set(name, 0, ex=ttl_seconds, nx=True)
        pipe.incr(name, 1)
        pipe.ttl(name)
        _, count, ttl = await pipe.execute()
        return int(count), float(max(ttl, 0))

    async def delete(self, key: str) -> None:
        await self._redis.delete(self._prefix + key)


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    retry_after_seconds: int = 0


class LoginRateLimiter:
    def __init__(self, store, max_attempts: int, window_seconds: int):
        self.store = store
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds

    async def attempt(self, key: str) -> RateLimitDecision:
        count, seconds_left = await self.store.incr(key, self.window_seconds)
        if count <= self.max_attempts:
            return RateLimitDecision(allowed=True)
        return RateLimitDecision(
            allowed=False,
            retry_after_seconds=max(1, math.ceil(seconds_left)),
        )

    async def reset(self, key: str) -> None:
        await self.store.delete(key)


def build_login_rate_limiter() -> LoginRateLimiter:
    if settings.REDIS_URL:
        store = RedisAttemptStore(aioredis.Redis.from_url(settings.REDIS_URL))
    else:
        store = InMemoryAttemptStore()
    return LoginRateLimiter(
        store,
        max_attempts=settings.LOGIN_RATE_LIMIT_MAX,
        window_seconds=settings.LOGIN_RATE_LIMIT_WINDOW_SECONDS,
    )


login_rate_limiter = build_login_rate_limiter()


def get_login_rate_limiter() -> LoginRateLimiter:
    return login_rate_limiter


def client_key(request: Request) -> str:
    return request.client.host if request.client else "unknown"


async def enforce_login_rate_limit(request: Request, limiter: LoginRateLimiter) -> None:
    """Raise 429 with a Retry-After hint once the caller exceeds the window."""
    key = client_key(request)
    decision = await limiter.attempt(key)
    if decision.allowed:
        return
    logger.warning("Login rate limit hit for %s (retry in %ss)", key, decision.retry_after_seconds)
    raise HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail=TOO_MANY_ATTEMPTS_MESSAGE,
        headers={"Retry-After": str(decision.retry_after_seconds)},
    )

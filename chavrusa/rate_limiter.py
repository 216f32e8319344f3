"""
Fixed-window per-IP rate limiting for the public write endpoints

The limiting policy lives in RateLimiter and talks to a pluggable store:
- InMemoryRateLimitStore: process-local, reset on restart (single instance)
- RedisRateLimitStore: sorted-set window shared by every instance

Usage:
    rate_limit_create_post = create_rate_limiter(
        action="create-post", limit=8, window_seconds=600, message="Too many posts."
    )

    @router.post("/api/posts")
    async def create_post(_: None = Depends(rate_limit_create_post)):
        ...
"""

import logging
import os
import time
from dataclasses import dataclass
from threading import Lock
from typing import Optional

import redis
from fastapi import HTTPException, Request, status

from .config import get_rate_limit_backend, is_rate_limit_enabled

logger = logging.getLogger(__name__)


@dataclass
class RateLimitDecision:
    allowed: bool
    count: int
    retry_after: int = 0

    def __bool__(self) -> bool:
        return self.allowed


class RateLimitStore:
    """Records hits for a key and reports whether the ceiling was reached"""

    def hit(self, key: str, limit: int, window_seconds: int) -> RateLimitDecision:
        raise NotImplementedError


class InMemoryRateLimitStore(RateLimitStore):
    """Timestamp lists per key, pruned lazily on each check"""

    def __init__(self, clock=time.time):
        self._clock = clock
        self._buckets: dict[str, list[float]] = {}
        self._lock = Lock()

    def hit(self, key: str, limit: int, window_seconds: int) -> RateLimitDecision:
        now = self._clock()
        with self._lock:
            kept = [ts for ts in self._buckets.get(key, []) if now - ts < window_seconds]
            if len(kept) >= limit:
                self._buckets[key] = kept
                retry_after = max(1, int(kept[0] + window_seconds - now))
                return RateLimitDecision(False, len(kept), retry_after)
            kept.append(now)
            self._buckets[key] = kept
            return RateLimitDecision(True, len(kept))


class RedisRateLimitStore(RateLimitStore):
    """Sorted-set window so several service instances share one budget"""

    def __init__(self, client: redis.Redis, prefix: str = "ratelimit"):
        self.client = client
        self.prefix = prefix

    def hit(self, key: str, limit: int, window_seconds: int) -> RateLimitDecision:
        redis_key = f"{self.prefix}:{key}"
        now = time.time()

        pipe = self.client.pipeline()
        pipe.zremrangebyscore(redis_key, 0, now - window_seconds)
        pipe.zcard(redis_key)
        pipe.zrange(redis_key, 0, 0, withscores=True)
        _, current_count, oldest = pipe.execute()

        if current_count >= limit:
            oldest_ts = oldest[0][1] if oldest else now
            retry_after = max(1, int(oldest_ts + window_seconds - now))
            return RateLimitDecision(False, int(current_count), retry_after)

        pipe = self.client.pipeline()
        pipe.zadd(redis_key, {f"{now}:{time.time_ns()}": now})
        pipe.expire(redis_key, window_seconds * 2)
        pipe.execute()
        return RateLimitDecision(True, int(current_count) + 1)


class RateLimiter:
    """Rate limiting policy: check-and-record a key against a ceiling"""

    def __init__(self, store: Optional[RateLimitStore] = None):
        self.store = store or InMemoryRateLimitStore()

    def check_and_record(self, key: str, limit: int, window_seconds: int) -> RateLimitDecision:
        return self.store.hit(key, limit, window_seconds)


def get_redis_client() -> redis.Redis:
    redis_url = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    client = redis.from_url(
        redis_url,
        decode_responses=True,
        socket_connect_timeout=5,
        socket_timeout=5,
    )
    client.ping()
    logger.info("Redis connected for rate limiting")
    return client


def build_rate_limiter() -> RateLimiter:
    """Pick the store from RATE_LIMIT_BACKEND (memory or redis)"""
    if get_rate_limit_backend() == "redis":
        try:
            return RateLimiter(RedisRateLimitStore(get_redis_client()))
        except redis.RedisError as e:
            logger.error(f"❌ Failed to connect to Redis for rate limiting: {e}")
            logger.warning("⚠️ Falling back to in-memory rate limiting")
    return RateLimiter(InMemoryRateLimitStore())


_rate_limiter: Optional[RateLimiter] = None


def get_rate_limiter() -> RateLimiter:
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = build_rate_limiter()
    return _rate_limiter


def set_rate_limiter(limiter: Optional[RateLimiter]) -> None:
    """Swap the process-wide limiter (None rebuilds it on next use)"""
    global _rate_limiter
    _rate_limiter = limiter


def get_client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def create_rate_limiter(action: str, limit: int, window_seconds: int, message: str):
    """
    Create a rate limiter dependency keyed by (action, client IP)

    A rejected request raises 429 before the handler runs, so nothing is
    written on behalf of a throttled client.
    """

    async def rate_limiter(request: Request):
        if not is_rate_limit_enabled():
            return

        key = f"{action}:{get_client_ip(request)}"
        decision = get_rate_limiter().check_and_record(key, limit, window_seconds)

        if not decision:
            logger.warning(f"🚫 Rate limit EXCEEDED for {key} - {decision.count}/{limit} requests used")
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail=message,
                headers={"Retry-After": str(decision.retry_after)},
            )

    return rate_limiter

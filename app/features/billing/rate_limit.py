"""Request rate limiting for the webhook endpoint"""
import asyncio
import logging
import time
from collections import deque
from typing import Callable, Deque, Dict, Optional, Protocol

from redis import asyncio as redis_asyncio
from redis.exceptions import RedisError

from app.config import REDIS_URL

logger = logging.getLogger(__name__)


class RateLimitStore(Protocol):
    async def check_and_increment(self, key: str, limit: int, window_seconds: int) -> bool:
        """Count one request for key; False when the key is over its limit"""
        ...

    async def close(self) -> None: ...


class InMemoryRateLimitStore:
    """Sliding window per key; suitable for a single process"""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._requests: Dict[str, Deque[float]] = {}
        self._last_sweep = self._clock()
        self._lock = asyncio.Lock()

    async def check_and_increment(self, key: str, limit: int, window_seconds: int) -> bool:
        async with self._lock:
            now = self._clock()
            window_start = now - window_seconds
            if now - self._last_sweep >= window_seconds:
                self._sweep(window_start)
                self._last_sweep = now

            timestamps = self._requests.get(key)
            if timestamps is None:
                timestamps = self._requests[key] = deque()
            while timestamps and timestamps[0] <= window_start:
                timestamps.popleft()
            if len(timestamps) >= limit:
                if not timestamps:
                    del self._requests[key]
                return False
            timestamps.append(now)
            return True

    def _sweep(self, window_start: float) -> None:
        """Drop keys with no request inside the window"""
        idle = [key for key, timestamps in self._requests.items() if not timestamps or timestamps[-1] <= window_start]
        for key in idle:
            del self._requests[key]

    def tracked_keys(self) -> int:
        return len(self._requests)

    async def close(self) -> None:
        return None


class RedisRateLimitStore:
    """
    Fixed window shared across processes: INCR a per-window counter and set
    its TTL on first use.

    Redis errors fail open so a cache outage does not drop Stripe deliveries.
    """

    def __init__(self, client: redis_asyncio.Redis, prefix: str = "ratelimit"):
        self._client = client
        self._prefix = prefix

    @classmethod
    def from_url(cls, url: str, prefix: str = "ratelimit") -> "RedisRateLimitStore":
        return cls(redis_asyncio.from_url(url, encoding="utf-8", decode_responses=True), prefix=prefix)

    async def check_and_increment(self, key: str, limit: int, window_seconds: int) -> bool:
        window = int(time.time() // window_seconds)
        redis_key = f"{self._prefix}:{key}:{window}"
        try:
            count = await self._client.incr(redis_key)
            if count == 1:
                await self._client.expire(redis_key, window_seconds)
        except RedisError as e:
            logger.warning(f"RedisRateLimitStore: Redis unavailable, allowing request: {e}")
            return True
        return count <= limit

    async def close(self) -> None:
        await self._client.aclose()


def create_rate_limit_store(redis_url: Optional[str] = REDIS_URL) -> RateLimitStore:
    """Redis when configured, otherwise in-process"""
    if redis_url:
        logger.info("Rate limiting webhook requests with Redis")
        return RedisRateLimitStore.from_url(redis_url)
    logger.info("Rate limiting webhook requests in memory")
    return InMemoryRateLimitStore()

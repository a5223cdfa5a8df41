"""Redis-backed state for deployments running more than one instance."""

import logging
from typing import Generic, TypeVar

from pydantic import BaseModel
from redis.asyncio import Redis

from opportunity_board.core.config import settings
from opportunity_board.services.rate_limiter import Bucket

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

# Async Redis client
_redis_client: Redis | None = None


async def get_redis() -> Redis:
    """Get or create async Redis client."""
    global _redis_client
    if _redis_client is None:
        _redis_client = Redis.from_url(
            settings.redis_url,
            decode_responses=True,
        )
    return _redis_client


async def close_redis() -> None:
    """Close Redis connection."""
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None


# Returns {count, pttl, allowed}. A missing key or one without expiry opens
# a new window with count 1.
_FIXED_WINDOW_SCRIPT = """
local current = tonumber(redis.call('GET', KEYS[1]) or '0')
local ttl = redis.call('PTTL', KEYS[1])
if current == 0 or ttl < 0 then
  redis.call('SET', KEYS[1], 1, 'PX', ARGV[2])
  return {1, tonumber(ARGV[2]), 1}
end
if current >= tonumber(ARGV[1]) then
  return {current, ttl, 0}
end
current = redis.call('INCR', KEYS[1])
return {current, ttl, 1}
"""


class RedisBucketStore:
    """Fixed-window counters kept in Redis with PX expiry."""

    PREFIX = "ratelimit:"

    def __init__(self, redis: Redis):
        self.redis = redis

    async def hit(
        self, key: str, limit: int, window_ms: int, now_ms: int
    ) -> Bucket:
        count, ttl_ms, allowed = await self.redis.eval(
            _FIXED_WINDOW_SCRIPT, 1, f"{self.PREFIX}{key}", limit, window_ms
        )
        return Bucket(
            count=int(count),
            reset_at_ms=now_ms + max(int(ttl_ms), 0),
            allowed=bool(int(allowed)),
        )


class RedisResultStore(Generic[ModelT]):
    """Idempotency results serialized as JSON with a TTL."""

    PREFIX = "idempotency:"

    def __init__(self, redis: Redis, model: type[ModelT], ttl_seconds: int = 600):
        self.redis = redis
        self.model = model
        self.ttl_seconds = ttl_seconds

    async def get(self, key: str) -> ModelT | None:
        raw = await self.redis.get(f"{self.PREFIX}{key}")
        if raw is None:
            return None
        return self.model.model_validate_json(raw)

    async def set(self, key: str, value: ModelT) -> None:
        await self.redis.setex(
            f"{self.PREFIX}{key}", self.ttl_seconds, value.model_dump_json()
        )
        logger.debug(f"Stored idempotency result: {key} (TTL: {self.ttl_seconds}s)")

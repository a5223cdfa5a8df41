"""Tests for the Redis-backed shared state stores."""

from unittest.mock import AsyncMock

import pytest

from opportunity_board.core.redis_client import RedisBucketStore, RedisResultStore
from opportunity_board.schemas.application import SubmissionResult
from opportunity_board.services.idempotency import IdempotencyCoordinator
from opportunity_board.services.rate_limiter import RateLimiter


@pytest.fixture
def mock_redis():
    return AsyncMock()


class TestRedisBucketStore:
    """Tests for RedisBucketStore."""

    @pytest.mark.asyncio
    async def test_allowed_hit(self, mock_redis):
        """Script results map onto a bucket."""
        mock_redis.eval.return_value = [3, 45_000, 1]
        store = RedisBucketStore(mock_redis)

        bucket = await store.hit("api:upload:ip", 5, 60_000, 1000)

        assert bucket.count == 3
        assert bucket.reset_at_ms == 46_000
        assert bucket.allowed is True
        args = mock_redis.eval.call_args.args
        assert args[1:] == (1, "ratelimit:api:upload:ip", 5, 60_000)

    @pytest.mark.asyncio
    async def test_rejected_hit(self, mock_redis):
        """A zero allowed flag rejects the request."""
        mock_redis.eval.return_value = [5, 20_000, 0]

        bucket = await RedisBucketStore(mock_redis).hit("k", 5, 60_000, 0)

        assert bucket.allowed is False

    @pytest.mark.asyncio
    async def test_limiter_over_redis(self, mock_redis):
        """RateLimiter works unchanged over the Redis store."""
        mock_redis.eval.return_value = [8, 30_000, 0]
        limiter = RateLimiter(
            "api:applications", 8, 60_000, RedisBucketStore(mock_redis), lambda: 100.0
        )

        decision = await limiter.check("ip")

        assert decision.allowed is False
        assert decision.retry_after == 30


class TestRedisResultStore:
    """Tests for RedisResultStore."""

    @pytest.fixture
    def result(self):
        return SubmissionResult(
            person_record_id="recPerson1",
            application_record={"id": "recApp1", "fields": {"Status": "New"}},
        )

    @pytest.mark.asyncio
    async def test_set_uses_ttl(self, mock_redis, result):
        """Results are stored as JSON with the configured TTL."""
        store = RedisResultStore(mock_redis, SubmissionResult, ttl_seconds=600)

        await store.set("key-1", result)

        key, ttl, payload = mock_redis.setex.call_args.args
        assert key == "idempotency:key-1"
        assert ttl == 600
        assert SubmissionResult.model_validate_json(payload) == result

    @pytest.mark.asyncio
    async def test_get_round_trips(self, mock_redis, result):
        """Stored JSON is parsed back into the model."""
        mock_redis.get.return_value = result.model_dump_json()
        store = RedisResultStore(mock_redis, SubmissionResult)

        assert await store.get("key-1") == result
        mock_redis.get.assert_awaited_once_with("idempotency:key-1")

    @pytest.mark.asyncio
    async def test_get_missing(self, mock_redis):
        """Absent keys give None."""
        mock_redis.get.return_value = None

        assert await RedisResultStore(mock_redis, SubmissionResult).get("k") is None

    @pytest.mark.asyncio
    async def test_coordinator_serves_stored_result(self, mock_redis, result):
        """A result stored by another instance is served without running work."""
        mock_redis.get.return_value = result.model_dump_json()
        coordinator = IdempotencyCoordinator(
            RedisResultStore(mock_redis, SubmissionResult)
        )
        work = AsyncMock()

        assert await coordinator.run("key-1", work) == result
        work.assert_not_awaited()

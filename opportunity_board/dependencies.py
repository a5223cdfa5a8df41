"""FastAPI dependencies and process-wide shared state."""

import logging

from fastapi import Depends

from opportunity_board.core.config import Settings, settings
from opportunity_board.core.redis_client import (
    RedisBucketStore,
    RedisResultStore,
    close_redis,
    get_redis,
)
from opportunity_board.schemas.application import SubmissionResult
from opportunity_board.services.airtable_client import AirtableClient
from opportunity_board.services.idempotency import (
    IdempotencyCoordinator,
    InMemoryResultStore,
)
from opportunity_board.services.local_storage import LocalUploadStorage
from opportunity_board.services.rate_limiter import InMemoryBucketStore, RateLimiter

logger = logging.getLogger(__name__)

APPLICATIONS_SCOPE = "api:applications"
UPLOAD_SCOPE = "api:upload"

_airtable_client: AirtableClient | None = None
_coordinator: IdempotencyCoordinator[SubmissionResult] | None = None
_rate_limiters: dict[str, RateLimiter] = {}
_bucket_store = None


def get_settings() -> Settings:
    return settings


def get_airtable_client() -> AirtableClient:
    """Shared Airtable client, closed on shutdown."""
    global _airtable_client
    if _airtable_client is None:
        _airtable_client = AirtableClient.from_settings(settings)
    return _airtable_client


async def close_airtable_client() -> None:
    global _airtable_client
    if _airtable_client is not None:
        await _airtable_client.close()
        _airtable_client = None


async def _get_bucket_store():
    global _bucket_store
    if _bucket_store is None:
        if settings.state_backend == "redis":
            _bucket_store = RedisBucketStore(await get_redis())
        else:
            _bucket_store = InMemoryBucketStore(settings.rate_limit_max_buckets)
    return _bucket_store


async def _get_rate_limiter(scope: str, limit: int, window_ms: int) -> RateLimiter:
    limiter = _rate_limiters.get(scope)
    if limiter is None:
        limiter = RateLimiter(scope, limit, window_ms, store=await _get_bucket_store())
        _rate_limiters[scope] = limiter
    return limiter


async def get_applications_rate_limiter() -> RateLimiter:
    return await _get_rate_limiter(
        APPLICATIONS_SCOPE,
        settings.applications_rate_limit,
        settings.applications_rate_window_ms,
    )


async def get_upload_rate_limiter() -> RateLimiter:
    return await _get_rate_limiter(
        UPLOAD_SCOPE, settings.upload_rate_limit, settings.upload_rate_window_ms
    )


async def get_idempotency_coordinator() -> IdempotencyCoordinator[SubmissionResult]:
    global _coordinator
    if _coordinator is None:
        if settings.state_backend == "redis":
            store = RedisResultStore(
                await get_redis(),
                SubmissionResult,
                ttl_seconds=settings.idempotency_ttl_seconds,
            )
        else:
            store = InMemoryResultStore(
                ttl_seconds=settings.idempotency_ttl_seconds,
                max_entries=settings.idempotency_max_entries,
            )
        logger.info(f"Idempotency results kept in {settings.state_backend} store")
        _coordinator = IdempotencyCoordinator(store)
    return _coordinator


def get_upload_storage(
    app_settings: Settings = Depends(get_settings),
) -> LocalUploadStorage:
    return LocalUploadStorage(app_settings.upload_dir)


async def close_shared_state() -> None:
    """Release clients and drop process-local stores."""
    global _coordinator, _bucket_store
    await close_airtable_client()
    await close_redis()
    _coordinator = None
    _bucket_store = None
    _rate_limiters.clear()

"""Fixed-window rate limiting keyed by scope and client address."""

import logging
import math
import time
from dataclasses import dataclass
from typing import Protocol

from fastapi import Request

logger = logging.getLogger(__name__)

UNKNOWN_CLIENT = "unknown"


@dataclass
class Bucket:
    """Counter state for one (scope, client) pair after a hit."""

    count: int
    reset_at_ms: int
    allowed: bool = True


class BucketStore(Protocol):
    async def hit(
        self, key: str, limit: int, window_ms: int, now_ms: int
    ) -> Bucket: ...


@dataclass
class RateLimitDecision:
    """Outcome of a rate-limit check."""

    allowed: bool
    limit: int
    remaining: int
    reset_at: int
    retry_after: int | None = None

    def headers(self) -> dict[str, str]:
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_at),
        }
        if self.retry_after is not None:
            headers["Retry-After"] = str(self.retry_after)
        return headers


class InMemoryBucketStore:
    """Process-local buckets.

    Expired buckets are reset lazily on the next hit. Once the table grows
    past ``max_buckets`` every expired entry is dropped in one sweep.
    """

    def __init__(self, max_buckets: int = 10_000):
        self.max_buckets = max_buckets
        self._buckets: dict[str, Bucket] = {}

    def __len__(self) -> int:
        return len(self._buckets)

    def _prune_expired(self, now_ms: int) -> None:
        if len(self._buckets) <= self.max_buckets:
            return
        expired = [k for k, b in self._buckets.items() if b.reset_at_ms <= now_ms]
        for key in expired:
            del self._buckets[key]
        logger.debug(f"Pruned {len(expired)} expired rate-limit buckets")

    async def hit(self, key: str, limit: int, window_ms: int, now_ms: int) -> Bucket:
        self._prune_expired(now_ms)
        existing = self._buckets.get(key)

        if existing is None or existing.reset_at_ms <= now_ms:
            bucket = Bucket(count=1, reset_at_ms=now_ms + window_ms)
            self._buckets[key] = bucket
            return bucket

        if existing.count >= limit:
            return Bucket(
                count=existing.count, reset_at_ms=existing.reset_at_ms, allowed=False
            )

        existing.count += 1
        return Bucket(count=existing.count, reset_at_ms=existing.reset_at_ms)


class RateLimiter:
    """Fixed-window limiter for a single scope."""

    def __init__(
        self,
        scope: str,
        limit: int,
        window_ms: int,
        store: BucketStore | None = None,
        clock=None,
    ):
        self.scope = scope
        self.limit = limit
        self.window_ms = window_ms
        self.store = store if store is not None else InMemoryBucketStore()
        self._clock = clock or time.time

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    async def check(self, client_id: str) -> RateLimitDecision:
        """Count a request from ``client_id`` and decide whether it may proceed."""
        now_ms = self._now_ms()
        bucket = await self.store.hit(
            f"{self.scope}:{client_id}", self.limit, self.window_ms, now_ms
        )
        reset_at = math.ceil(bucket.reset_at_ms / 1000)

        if not bucket.allowed:
            retry_after = max(math.ceil((bucket.reset_at_ms - now_ms) / 1000), 1)
            logger.warning(
                f"Rate limit hit for {self.scope} by {client_id}, "
                f"retry after {retry_after}s"
            )
            return RateLimitDecision(
                allowed=False,
                limit=self.limit,
                remaining=0,
                reset_at=reset_at,
                retry_after=retry_after,
            )

        return RateLimitDecision(
            allowed=True,
            limit=self.limit,
            remaining=max(self.limit - bucket.count, 0),
            reset_at=reset_at,
        )


def client_identifier(request: Request) -> str:
    """Best-effort client address from proxy headers.

    Clients that cannot be identified share the ``"unknown"`` bucket.
    """
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("x-real-ip")
    if real_ip and real_ip.strip():
        return real_ip.strip()
    cf_ip = request.headers.get("cf-connecting-ip")
    if cf_ip and cf_ip.strip():
        return cf_ip.strip()
    return UNKNOWN_CLIENT

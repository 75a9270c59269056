from __future__ import annotations

import asyncio

from backpack.services.rate_limiter import InMemoryRateLimiter, RateLimitConfig

CONFIG = RateLimitConfig(capacity=3, refill_rate=0.01)


def _drain(limiter: InMemoryRateLimiter, key: str, n: int):
    async def run():
        return [await limiter.check(key, CONFIG) for _ in range(n)]

    return asyncio.run(run())


def test_bucket_allows_up_to_capacity() -> None:
    results = _drain(InMemoryRateLimiter(), "ip:1.2.3.4", 4)
    assert [r.allowed for r in results] == [True, True, True, False]
    assert results[0].remaining == 2
    assert results[0].limit == 3


def test_rejection_reports_retry_after() -> None:
    rejected = _drain(InMemoryRateLimiter(), "ip:1.2.3.4", 4)[-1]
    assert rejected.remaining == 0
    # ~1 token at 0.01 tokens/s
    assert 90 < rejected.retry_after <= 100


def test_buckets_are_per_key() -> None:
    limiter = InMemoryRateLimiter()
    _drain(limiter, "user:alice@example.com", 3)
    assert _drain(limiter, "user:bob@example.com", 1)[0].allowed

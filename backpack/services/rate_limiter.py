"""Token-bucket rate limiting for upload and sign-in.

Every upload makes an outbound request to whatever host the uploaded
image names, and every sign-in makes one to the identity verifier.  A
bucket per caller caps how hard one client can make us hammer either.

A bucket holds up to ``capacity`` tokens and refills at ``refill_rate``
tokens per second; each request spends one.  Short bursts pass, the
long-run rate is bounded.  Two numbers per caller are all the state.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True, slots=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    limit: int
    retry_after: float  # seconds until the next token; 0 when allowed


@dataclass(frozen=True, slots=True)
class RateLimitConfig:
    capacity: int = 20
    refill_rate: float = 0.5


@runtime_checkable
class RateLimiter(Protocol):
    async def check(self, key: str, config: RateLimitConfig) -> RateLimitResult: ...


def _spend(tokens: float, config: RateLimitConfig) -> tuple[float, RateLimitResult]:
    if tokens >= 1:
        tokens -= 1
        return tokens, RateLimitResult(
            allowed=True, remaining=int(tokens), limit=config.capacity, retry_after=0
        )
    return tokens, RateLimitResult(
        allowed=False,
        remaining=0,
        limit=config.capacity,
        retry_after=(1 - tokens) / config.refill_rate,
    )


class InMemoryRateLimiter:
    """Per-process buckets.  Several API replicas each keep their own,
    so the effective limit multiplies; use Redis there."""

    def __init__(self) -> None:
        # key -> (tokens, last_refill)
        self._buckets: dict[str, tuple[float, float]] = {}

    async def check(self, key: str, config: RateLimitConfig) -> RateLimitResult:
        now = time.monotonic()
        tokens, last_refill = self._buckets.get(key, (float(config.capacity), now))
        tokens = min(config.capacity, tokens + (now - last_refill) * config.refill_rate)
        tokens, result = _spend(tokens, config)
        self._buckets[key] = (tokens, now)
        return result


class RedisRateLimiter:
    """Shared buckets in Redis.

    Refill-and-spend is a read-modify-write, so it runs as one Lua script;
    Redis executes scripts atomically, which keeps concurrent requests
    from spending the same token twice.
    """

    # KEYS[1] bucket key; ARGV capacity, refill_rate, now
    # returns {allowed, remaining, retry_after_ms}
    _LUA_SCRIPT = """
    local capacity = tonumber(ARGV[1])
    local rate = tonumber(ARGV[2])
    local now = tonumber(ARGV[3])
    local state = redis.call('HMGET', KEYS[1], 'tokens', 'ts')
    local tokens = tonumber(state[1]) or capacity
    local ts = tonumber(state[2]) or now
    tokens = math.min(capacity, tokens + (now - ts) * rate)
    local allowed = 0
    local retry_ms = 0
    if tokens >= 1 then
        tokens = tokens - 1
        allowed = 1
    else
        retry_ms = math.ceil((1 - tokens) / rate * 1000)
    end
    redis.call('HSET', KEYS[1], 'tokens', tokens, 'ts', now)
    redis.call('EXPIRE', KEYS[1], math.ceil(capacity / rate) + 60)
    return {allowed, math.floor(tokens), retry_ms}
    """

    _PREFIX = "ratelimit:"

    def __init__(self, redis_client) -> None:
        self._redis = redis_client
        self._script = None

    async def check(self, key: str, config: RateLimitConfig) -> RateLimitResult:
        if self._script is None:
            self._script = self._redis.register_script(self._LUA_SCRIPT)
        allowed, remaining, retry_ms = await self._script(
            keys=[f"{self._PREFIX}{key}"],
            args=[config.capacity, config.refill_rate, time.time()],
        )
        return RateLimitResult(
            allowed=bool(allowed),
            remaining=int(remaining) if allowed else 0,
            limit=config.capacity,
            retry_after=retry_ms / 1000,
        )

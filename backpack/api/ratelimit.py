"""Rate limiting dependency for the routes that call out to other hosts.

Keyed by the signed-in primary email when there is a valid session
cookie, otherwise by client IP.
"""

from __future__ import annotations

import logging

from fastapi import HTTPException, Request, status

from backpack.api.dependencies import current_principal
from backpack.core.metrics import RATE_LIMIT_HITS
from backpack.db.redis import redis_pool
from backpack.services.rate_limiter import (
    InMemoryRateLimiter,
    RateLimitConfig,
    RedisRateLimiter,
)

logger = logging.getLogger(__name__)

if redis_pool is not None:
    _rate_limiter = RedisRateLimiter(redis_pool)
else:
    _rate_limiter = InMemoryRateLimiter()


def require_rate_limit(config: RateLimitConfig = RateLimitConfig()):
    """Dependency factory: enforce a token bucket on a route."""

    async def _check(request: Request) -> None:
        key = _build_key(request)
        try:
            result = await _rate_limiter.check(key, config)
        except Exception:
            # A broken limiter backend must not take uploads down with it.
            logger.exception("Rate limiter unavailable; allowing key=%s", key)
            return

        if not result.allowed:
            RATE_LIMIT_HITS.labels(
                key_type="user" if key.startswith("user:") else "ip"
            ).inc()
            logger.warning("Rate limit exceeded key=%s", key)
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Rate limit exceeded",
                headers={
                    "Retry-After": str(int(result.retry_after) + 1),
                    "X-RateLimit-Limit": str(result.limit),
                    "X-RateLimit-Remaining": "0",
                },
            )

    return _check


def _build_key(request: Request) -> str:
    principal = current_principal(request)
    if principal is not None:
        return f"user:{principal.primary_email}"
    client_ip = request.client.host if request.client else "unknown"
    return f"ip:{client_ip}"

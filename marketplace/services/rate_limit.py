from __future__ import annotations

import time
from dataclasses import dataclass

import redis.asyncio as redis
from fastapi import Depends, HTTPException, Request, Response

from marketplace.core.config import settings


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_seconds: int


class TokenRateLimiter:
    """Fixed-window counter in Redis: one key per (client, window)."""

    def __init__(self, redis_url: str | None = None, *, client=None):
        self.r = client if client is not None else redis.from_url(redis_url, decode_responses=True)

    async def allow(self, *, key: str, limit: int, window_seconds: int, now: int | None = None) -> RateLimitResult:
        now = int(time.time()) if now is None else now
        window = now // window_seconds
        rkey = f"rl:{key}:{window}"

        val = await self.r.incr(rkey)
        if val == 1:
            await self.r.expire(rkey, window_seconds)

        remaining = max(0, limit - val)
        reset = window_seconds - (now % window_seconds)
        return RateLimitResult(allowed=val <= limit, remaining=remaining, reset_seconds=reset)


# Created once; the connection pool is opened lazily on first use.
_limiter: TokenRateLimiter | None = None


def get_rate_limiter() -> TokenRateLimiter | None:
    global _limiter
    if not settings.rate_limit_enabled:
        return None
    if _limiter is None:
        _limiter = TokenRateLimiter(settings.redis_url)
    return _limiter


def _client_key(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


async def enforce_rate_limit(
    request: Request,
    response: Response,
    limiter: TokenRateLimiter | None = Depends(get_rate_limiter),
) -> None:
    if limiter is None:
        return

    limit = settings.rate_limit_requests
    rl = await limiter.allow(
        key=f"api:{_client_key(request)}",
        limit=limit,
        window_seconds=settings.rate_limit_window_seconds,
    )
    if not rl.allowed:
        raise HTTPException(
            status_code=429,
            detail="Too many requests from this IP, please try again later",
            headers={"Retry-After": str(rl.reset_seconds)},
        )

    response.headers["X-RateLimit-Limit"] = str(limit)
    response.headers["X-RateLimit-Remaining"] = str(rl.remaining)
    response.headers["X-RateLimit-Reset"] = str(rl.reset_seconds)

"""Fixed-window rate limiting for donation attempts, backed by Redis."""

from __future__ import annotations

import logging
import time
from typing import Optional

from fastapi import HTTPException, status
from redis import RedisError
from redis.asyncio import Redis

from fundraiser.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

_client: Optional[Redis] = None


def _get_client() -> Redis:
    global _client
    if _client is None:
        _client = Redis.from_url(settings.REDIS_URL, decode_responses=True, socket_timeout=1)
    return _client


async def close_rate_limit_client() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None


async def enforce_rate_limit(key: str, limit: int, window_seconds: int) -> None:
    """Raise 429 once ``key`` is seen more than ``limit`` times in the current window."""
    if limit <= 0:
        return

    window_key = f"rl:{key}:{int(time.time()) // window_seconds}"

    try:
        client = _get_client()
        count = await client.incr(window_key)
        if count == 1:
            await client.expire(window_key, window_seconds)
    except RedisError as exc:
        # fail open when redis is unavailable
        logger.warning("Rate limiter unavailable for %s: %s", key, exc)
        return

    if count > limit:
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail="Rate limit exceeded")

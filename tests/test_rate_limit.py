import asyncio

import pytest
import redis
from fastapi import HTTPException

from fundraiser.core import rate_limit


class CountingRedis:
    def __init__(self):
        self.counts = {}
        self.expiry = {}

    async def incr(self, key):
        self.counts[key] = self.counts.get(key, 0) + 1
        return self.counts[key]

    async def expire(self, key, seconds):
        self.expiry[key] = seconds


class BrokenRedis:
    async def incr(self, key):
        raise redis.ConnectionError("redis is down")


def _hit(key, limit):
    asyncio.run(rate_limit.enforce_rate_limit(key, limit, 60))


def test_rate_limit_blocks_after_limit(monkeypatch):
    client = CountingRedis()
    monkeypatch.setattr(rate_limit, "_get_client", lambda: client)
    monkeypatch.setattr(rate_limit.time, "time", lambda: 1_700_000_000)

    _hit("initiate:252612345678", 2)
    _hit("initiate:252612345678", 2)
    with pytest.raises(HTTPException) as exc_info:
        _hit("initiate:252612345678", 2)

    assert exc_info.value.status_code == 429
    assert list(client.expiry.values()) == [60]
    _hit("initiate:252699999999", 2)


def test_rate_limit_fails_open_and_zero_disables(monkeypatch):
    monkeypatch.setattr(rate_limit, "_get_client", lambda: BrokenRedis())
    _hit("initiate:252612345678", 1)

    monkeypatch.setattr(rate_limit, "_get_client", lambda: pytest.fail("client should not be used"))
    _hit("initiate:252612345678", 0)


def test_rate_limit_reuses_one_client(monkeypatch):
    monkeypatch.setattr(rate_limit, "_client", None)

    first = rate_limit._get_client()
    assert rate_limit._get_client() is first

    asyncio.run(rate_limit.close_rate_limit_client())
    assert rate_limit._client is None

"""Pytest configuration and fixtures"""
from unittest.mock import MagicMock

import fakeredis
import pytest
import redis

from cartstore.data.keys import CartKeys
from cartstore.repos.cart_repo import CartRepo
from cartstore.services.cart_service import CartService

TTL_MS = 1_800_000
START_MS = 1_700_000_000_000


class FakeClock:
    """Zegar w ms, przesuwany recznie w testach."""

    def __init__(self, now: int = START_MS):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def redis_client():
    client = fakeredis.FakeRedis(decode_responses=True)
    yield client
    client.flushall()


@pytest.fixture
def keys():
    return CartKeys("cart")


@pytest.fixture
def repo(redis_client, keys, clock):
    return CartRepo(client=redis_client, keys=keys, ttl_ms=TTL_MS, clock=clock)


@pytest.fixture
def service(repo):
    return CartService(repo=repo, max_size=3, max_sku_count=10)


@pytest.fixture
def broken_redis():
    """Klient redisa, ktory na kazdej komendzie zglasza brak polaczenia."""
    client = MagicMock()
    error = redis.exceptions.ConnectionError("Connection refused")
    for name in (
        "hexists", "zcard", "zadd", "hset", "hincrby", "hmget", "zrange",
        "zrevrange", "zscore", "zrangebyscore", "eval", "delete", "zrem", "hdel",
    ):
        getattr(client, name).side_effect = error
    client.pipeline.return_value.__enter__.return_value.execute.side_effect = error
    return client


@pytest.fixture
def broken_repo(broken_redis, keys, clock):
    return CartRepo(client=broken_redis, keys=keys, ttl_ms=TTL_MS, clock=clock)

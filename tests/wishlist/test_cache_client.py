"""Unit tests for the Redis cache client and its connection handling."""

from __future__ import annotations

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from redis.asyncio import Redis

import wishlist.cache as cache


class InMemoryRedis:
    """Lightweight async Redis double used for cache client tests."""

    def __init__(self) -> None:
        self._store: dict[str, str] = {}
        self._ttl: dict[str, int | None] = {}
        self.published: list[tuple[str, str]] = []

    async def get(self, key: str) -> str | None:
        return self._store.get(key)

    async def set(self, key: str, value: str, ex: int | None = None) -> None:
        self._store[key] = value
        self._ttl[key] = ex

    async def delete(self, *keys: str) -> None:
        for key in keys:
            self._store.pop(key, None)
            self._ttl.pop(key, None)

    async def publish(self, channel: str, message: str) -> int:
        self.published.append((channel, message))
        return 1


@pytest.fixture
def fresh_redis_state(monkeypatch: pytest.MonkeyPatch):
    """Give each test an uninitialised module-level client."""

    monkeypatch.setattr(cache, "_redis_client", None)
    monkeypatch.setattr(cache, "_redis_disabled", False)
    monkeypatch.setattr(cache, "_client_lock", asyncio.Lock())
    monkeypatch.setattr(cache, "_redis_url", lambda: "redis://localhost:6379/0")


@pytest.mark.asyncio
async def test_cache_client_round_trip():
    """CacheClient should round-trip JSON payloads and honour TTL settings."""

    fake_redis = InMemoryRedis()
    client = cache.CacheClient(fake_redis)

    assert await client.set_json("demo", {"value": 42}, ttl=120)
    assert json.loads(fake_redis._store["demo"]) == {"value": 42}
    assert fake_redis._ttl["demo"] == 120

    assert await client.set_json("forever", ["a"])
    assert fake_redis._ttl["forever"] is None

    assert await client.get_json("demo") == {"value": 42}
    await client.delete("demo")
    assert await client.get_json("demo") is None


@pytest.mark.asyncio
async def test_publish_encodes_json():
    fake_redis = InMemoryRedis()
    client = cache.CacheClient(fake_redis)

    assert await client.publish("favorites:changes", {"key": "favs"})

    assert fake_redis.published == [("favorites:changes", '{"key": "favs"}')]


@pytest.mark.asyncio
async def test_client_without_redis_is_a_no_op():
    client = cache.CacheClient(None)

    assert client.available is False
    assert await client.get_json("k") is None
    assert await client.set_json("k", 1) is False
    assert await client.publish("chan", {}) is False
    await client.delete("k")


@pytest.mark.asyncio
async def test_corrupt_payload_reads_as_missing():
    fake_redis = InMemoryRedis()
    fake_redis._store["bad"] = "{oops"

    assert await cache.CacheClient(fake_redis).get_json("bad") is None


def test_favorites_key_prefix():
    assert cache.favorites_key("wishlist_favs_v1") == "favorites:list:wishlist_favs_v1"


@pytest.mark.asyncio
async def test_cache_only_catches_redis_errors():
    """Non-Redis exceptions are not suppressed."""

    mock_redis = MagicMock()
    mock_redis.get = AsyncMock(side_effect=ValueError("Not a Redis error"))
    client = cache.CacheClient(mock_redis)

    with pytest.raises(ValueError):
        await client.get_json("test_key")


@pytest.mark.asyncio
async def test_cache_handles_redis_connection_error():
    """Redis connection errors degrade to empty results."""

    mock_redis = MagicMock()
    mock_redis.get = AsyncMock(side_effect=cache.RedisConnectionError("Connection failed"))
    mock_redis.set = AsyncMock(side_effect=cache.RedisConnectionError("Connection failed"))
    mock_redis.publish = AsyncMock(
        side_effect=cache.RedisConnectionError("Connection failed")
    )
    client = cache.CacheClient(mock_redis)

    assert cache._is_redis_connection_error(cache.RedisConnectionError("probe"))
    assert await client.get_json("test_key") is None
    assert await client.set_json("test_key", [1]) is False
    assert await client.publish("chan", {}) is False


@pytest.mark.asyncio
async def test_concurrent_initialization_creates_one_client(fresh_redis_state):
    """Concurrent callers share a single client."""

    init_count = 0
    mock_client = MagicMock()
    mock_client.ping = AsyncMock(return_value=True)

    def tracked_from_url(*args, **kwargs):
        nonlocal init_count
        init_count += 1
        return mock_client

    with patch.object(Redis, "from_url", side_effect=tracked_from_url):
        results = await asyncio.gather(*[cache.get_redis() for _ in range(10)])

    assert all(result is mock_client for result in results)
    assert init_count == 1


@pytest.mark.asyncio
async def test_connection_failure_disables_redis(fresh_redis_state):
    """A failed ping disables further attempts and yields an unavailable client."""

    mock_client = MagicMock()
    mock_client.ping = AsyncMock(side_effect=cache.RedisConnectionError("refused"))

    with patch.object(Redis, "from_url", return_value=mock_client) as from_url:
        assert await cache.get_redis() is None
        client = await cache.get_cache_client()

    assert client.available is False
    assert from_url.call_count == 1

    await cache.close_redis()
    assert cache._redis_disabled is False

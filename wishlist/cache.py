"""Redis access shared by the Redis-backed favorites context.

A single client is created lazily per process. When the first connection
attempt fails with a Redis connection error the backend is disabled for the
rest of the process and every :class:`CacheClient` call degrades to "no value"
or "not written", so favorites keep working from memory.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from redis.asyncio import Redis as RedisClient
from redis.exceptions import ConnectionError as RedisConnectionError

from wishlist.settings import get_settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

_FAVORITES_PREFIX = "favorites:list"

_redis_client: RedisClient | None = None
_client_lock = asyncio.Lock()
_redis_disabled = False


def _redis_url() -> str:
    return get_settings().redis_url


def favorites_key(storage_key: str) -> str:
    """Namespaced Redis key holding the favorites list stored under ``storage_key``."""

    return f"{_FAVORITES_PREFIX}:{storage_key}"


def _is_redis_connection_error(exc: BaseException) -> bool:
    """Return ``True`` when ``exc`` represents a Redis connection failure."""

    if isinstance(exc, RedisConnectionError):
        return True
    error_type = type(exc)
    return error_type.__name__ == "ConnectionError" and error_type.__module__.startswith(
        "redis"
    )


async def get_redis() -> RedisClient | None:
    """Return the process-wide client, or ``None`` once Redis proved unreachable."""

    global _redis_client, _redis_disabled

    if _redis_disabled:
        logger.debug("Redis disabled after an earlier connection failure")
        return None

    # Checked again under the lock so concurrent callers share one client.
    async with _client_lock:
        if _redis_client is not None or _redis_disabled:
            return _redis_client

        candidate = RedisClient.from_url(_redis_url(), decode_responses=True, encoding="utf-8")
        try:
            await candidate.ping()
        except Exception as exc:  # type: ignore[broad-except]
            if not _is_redis_connection_error(exc):
                raise
            logger.warning(f"Redis unreachable ({exc}); favorites stay in memory")
            _redis_disabled = True
            return None

        _redis_client = candidate
        logger.info("Connected to Redis for favorites storage")
        return _redis_client


class CacheClient:
    """JSON-oriented wrapper around an optional Redis client."""

    def __init__(self, redis: RedisClient | None) -> None:
        self._redis = redis

    @property
    def available(self) -> bool:
        return self._redis is not None

    @property
    def redis(self) -> RedisClient | None:
        return self._redis

    async def _guarded(
        self, operation: str, call: Callable[[RedisClient], Awaitable[T]], fallback: T
    ) -> T:
        """Run ``call`` against Redis, mapping connection errors to ``fallback``.

        Any other exception propagates to the caller.
        """

        if self._redis is None:
            return fallback
        try:
            return await call(self._redis)
        except Exception as exc:  # type: ignore[broad-except]
            if _is_redis_connection_error(exc):
                logger.debug(f"Redis {operation} failed: {exc}")
                return fallback
            raise

    async def get_json(self, key: str) -> Any:
        payload = await self._guarded(f"GET {key}", lambda redis: redis.get(key), None)
        if payload is None:
            return None
        try:
            return json.loads(payload)
        except json.JSONDecodeError:
            logger.debug(f"Discarding non-JSON payload stored under {key}")
            return None

    async def set_json(self, key: str, value: Any, ttl: int | None = None) -> bool:
        """Store ``value`` as JSON; ``ttl=None`` keeps the key without expiry."""

        encoded = json.dumps(value, default=str)

        async def _set(redis: RedisClient) -> bool:
            if ttl is None:
                await redis.set(key, encoded)
            else:
                await redis.set(key, encoded, ex=ttl)
            return True

        return await self._guarded(f"SET {key}", _set, False)

    async def delete(self, *keys: str) -> None:
        if not keys:
            return

        async def _delete(redis: RedisClient) -> None:
            await redis.delete(*keys)

        await self._guarded("DEL", _delete, None)

    async def publish(self, channel: str, message: Any) -> bool:
        encoded = json.dumps(message, default=str)

        async def _publish(redis: RedisClient) -> bool:
            await redis.publish(channel, encoded)
            return True

        return await self._guarded(f"PUBLISH {channel}", _publish, False)


async def get_cache_client() -> CacheClient:
    return CacheClient(await get_redis())


async def close_redis() -> None:
    """Close the shared client and allow a fresh connection attempt."""

    global _redis_client, _redis_disabled
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None
    _redis_disabled = False


__all__ = [
    "CacheClient",
    "RedisConnectionError",
    "close_redis",
    "favorites_key",
    "get_cache_client",
    "get_redis",
]

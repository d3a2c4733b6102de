"""Redis-backed document store shared by the registries."""

from __future__ import annotations

import json
from typing import Any, Awaitable, Callable, TypeVar

import redis.asyncio as redis
from redis.asyncio.client import Pipeline

from courier.config import get_settings
from courier.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def dumps(value: Any) -> str:
    """Serialize a document for storage."""
    return json.dumps(value, separators=(",", ":"))


def loads(raw: str | None) -> Any:
    """Deserialize a stored document, ``None`` when the key is missing."""
    if raw is None:
        return None
    return json.loads(raw)


class StateManager:
    """Centralized state management using Redis.

    Documents are JSON strings under their own key. Conditional updates go
    through :meth:`atomic`, an optimistic ``WATCH``/``MULTI``/``EXEC``
    transaction that re-runs when a watched key changes underneath it.
    """

    def __init__(self, redis_client: redis.Redis | None = None) -> None:
        settings = get_settings()
        self.redis_client: redis.Redis | None = redis_client
        self.redis_url = settings.redis_url

    async def connect(self) -> None:
        """Establish Redis connection."""
        if self.redis_client is None:
            self.redis_client = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
            logger.info("redis_connected", url=self.redis_url)

    async def disconnect(self) -> None:
        """Close Redis connection."""
        if self.redis_client:
            await self.redis_client.aclose()
            self.redis_client = None
            logger.info("redis_disconnected")

    async def _client(self) -> redis.Redis:
        if not self.redis_client:
            await self.connect()
        return self.redis_client

    async def ping(self) -> bool:
        client = await self._client()
        return bool(await client.ping())

    async def get(self, key: str) -> Any:
        """Get a JSON document."""
        client = await self._client()
        return loads(await client.get(key))

    async def get_many(self, keys: list[str]) -> list[Any]:
        """Get several JSON documents, skipping missing keys."""
        if not keys:
            return []
        client = await self._client()
        values = await client.mget(keys)
        return [loads(value) for value in values if value is not None]

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Store a JSON document with optional TTL."""
        client = await self._client()
        await client.set(key, dumps(value), ex=ttl)
        logger.debug("state_set", key=key, ttl=ttl)

    async def set_if_absent(self, key: str, value: Any, ttl: int | None = None) -> bool:
        """Store ``value`` only when ``key`` does not exist yet."""
        client = await self._client()
        return bool(await client.set(key, dumps(value), ex=ttl, nx=True))

    async def pop(self, key: str) -> Any:
        """Atomically read and delete a document."""
        client = await self._client()
        return loads(await client.getdel(key))

    async def delete(self, *keys: str) -> None:
        """Delete keys from Redis."""
        client = await self._client()
        await client.delete(*keys)
        logger.debug("state_deleted", keys=list(keys))

    async def exists(self, key: str) -> bool:
        """Check if a key exists."""
        client = await self._client()
        return bool(await client.exists(key))

    async def members(self, key: str) -> set[str]:
        """Get members of an index set."""
        client = await self._client()
        return set(await client.smembers(key))

    async def atomic(
        self,
        func: Callable[[Pipeline], Awaitable[T]],
        *watches: str,
    ) -> T:
        """Run ``func`` as an optimistic transaction over ``watches``.

        ``func`` reads through the pipeline (immediate mode while watching),
        calls ``pipe.multi()`` and queues its writes. If another client writes
        a watched key before ``EXEC``, ``func`` runs again against fresh data.
        Exceptions raised by ``func`` abort the transaction and propagate.
        """
        client = await self._client()
        return await client.transaction(func, *watches, value_from_callable=True)

    async def delete_matching(self, *patterns: str) -> int:
        """Delete every key matching ``patterns``. Returns the number deleted.

        Uses ``SCAN`` so other data in the same database is left alone.
        """
        client = await self._client()
        deleted = 0
        for pattern in patterns:
            batch: list[str] = []
            async for key in client.scan_iter(match=pattern, count=500):
                batch.append(key)
                if len(batch) >= 500:
                    deleted += await client.delete(*batch)
                    batch = []
            if batch:
                deleted += await client.delete(*batch)
        logger.info("state_keys_deleted", patterns=list(patterns), deleted=deleted)
        return deleted


# Global state manager instance
_state_manager: StateManager | None = None


async def get_state_manager() -> StateManager:
    """Get the global state manager instance."""
    global _state_manager
    if _state_manager is None:
        _state_manager = StateManager()
        await _state_manager.connect()
    return _state_manager


async def close_state_manager() -> None:
    """Disconnect and forget the global state manager."""
    global _state_manager
    if _state_manager is not None:
        await _state_manager.disconnect()
        _state_manager = None

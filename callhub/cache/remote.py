"""Remote key-value store (cache tier 2)."""

from abc import ABC, abstractmethod

import redis.asyncio as redis

from callhub.utils.logging import get_logger

logger = get_logger(__name__)


class RemoteStore(ABC):
    """Abstract key-value store with ttl. Values are serialized strings."""

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Get a value, or None when absent or expired."""

    @abstractmethod
    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store a value that expires after ttl_seconds."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove a value."""

    @abstractmethod
    async def close(self) -> None:
        """Release connections."""


class RedisRemoteStore(RemoteStore):
    """Redis-backed remote tier.

    Key format: {prefix}:{key}
    """

    def __init__(self, client: redis.Redis, key_prefix: str = "callhub"):
        self._client = client
        self._prefix = key_prefix

    @classmethod
    def from_url(cls, url: str, key_prefix: str = "callhub") -> "RedisRemoteStore":
        client = redis.from_url(url, decode_responses=True)
        logger.info("redis_remote_store_created", key_prefix=key_prefix)
        return cls(client, key_prefix=key_prefix)

    def _key(self, key: str) -> str:
        return f"{self._prefix}:{key}"

    async def get(self, key: str) -> str | None:
        value = await self._client.get(self._key(key))
        if isinstance(value, bytes):
            return value.decode()
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await self._client.setex(self._key(key), ttl_seconds, value)

    async def delete(self, key: str) -> None:
        await self._client.delete(self._key(key))

    async def close(self) -> None:
        await self._client.aclose()

"""
Key-value store collaborator.

Every record in the service lives under a string key as a JSON document.
Two backends implement :class:`KVStore`: an in-process dictionary for
development and tests, and Redis for deployments.
"""

import asyncio
import json
import logging
import re
from typing import Any, Dict, List, Mapping, Optional, Protocol, runtime_checkable

import redis.asyncio as redis
from redis.exceptions import RedisError

from presence_monitor.core.exceptions import StoreError

logger = logging.getLogger(__name__)

_GLOB_SPECIAL = re.compile(r"([*?\[\]\\])")


@runtime_checkable
class KVStore(Protocol):
    """Async get/set/prefix-scan store."""

    backend: str

    async def get(self, key: str) -> Optional[Any]: ...

    async def set(self, key: str, value: Any) -> None: ...

    async def set_many(self, items: Mapping[str, Any]) -> None: ...

    async def delete(self, key: str) -> None: ...

    async def get_by_prefix(self, prefix: str) -> List[Any]: ...

    async def ping(self) -> bool: ...

    async def close(self) -> None: ...


def _encode(key: str, value: Any) -> str:
    try:
        return json.dumps(value)
    except (TypeError, ValueError) as e:
        raise StoreError(f"Value for key {key} is not JSON serializable", {"key": key}) from e


class InMemoryKVStore:
    """Dictionary-backed store; values are stored as JSON text like Redis would."""

    backend = "memory"

    def __init__(self):
        self._data: Dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Optional[Any]:
        raw = self._data.get(key)
        return json.loads(raw) if raw is not None else None

    async def set(self, key: str, value: Any) -> None:
        encoded = _encode(key, value)
        async with self._lock:
            self._data[key] = encoded

    async def set_many(self, items: Mapping[str, Any]) -> None:
        # Encode everything first so a bad value leaves the store untouched
        encoded = {key: _encode(key, value) for key, value in items.items()}
        async with self._lock:
            self._data.update(encoded)

    async def delete(self, key: str) -> None:
        async with self._lock:
            self._data.pop(key, None)

    async def get_by_prefix(self, prefix: str) -> List[Any]:
        snapshot = list(self._data.items())
        return [json.loads(raw) for key, raw in snapshot if key.startswith(prefix)]

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        logger.debug("In-memory store closed")

    def __len__(self) -> int:
        return len(self._data)


class RedisKVStore:
    """Redis-backed store. Keys are namespaced with ``key_prefix``."""

    backend = "redis"

    def __init__(self, client: redis.Redis, key_prefix: str = ""):
        self._client = client
        self._key_prefix = key_prefix

    @classmethod
    def from_settings(cls, settings) -> "RedisKVStore":
        client = redis.from_url(
            settings.get_redis_url(),
            password=settings.redis_password,
            db=settings.redis_db,
            max_connections=settings.redis_max_connections,
            socket_timeout=settings.redis_socket_timeout,
            socket_connect_timeout=settings.redis_connect_timeout,
            decode_responses=True,
        )
        return cls(client, key_prefix=settings.redis_key_prefix)

    def _key(self, key: str) -> str:
        return f"{self._key_prefix}{key}"

    async def get(self, key: str) -> Optional[Any]:
        try:
            raw = await self._client.get(self._key(key))
        except RedisError as e:
            raise StoreError(f"Failed to read key {key}: {e}", {"key": key}) from e
        return json.loads(raw) if raw is not None else None

    async def set(self, key: str, value: Any) -> None:
        encoded = _encode(key, value)
        try:
            await self._client.set(self._key(key), encoded)
        except RedisError as e:
            raise StoreError(f"Failed to write key {key}: {e}", {"key": key}) from e

    async def set_many(self, items: Mapping[str, Any]) -> None:
        """Write all items in a single MULTI/EXEC transaction."""
        encoded = {self._key(key): _encode(key, value) for key, value in items.items()}
        if not encoded:
            return
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                for key, value in encoded.items():
                    pipe.set(key, value)
                await pipe.execute()
        except RedisError as e:
            raise StoreError(f"Failed to write {len(encoded)} keys atomically: {e}") from e

    async def delete(self, key: str) -> None:
        try:
            await self._client.delete(self._key(key))
        except RedisError as e:
            raise StoreError(f"Failed to delete key {key}: {e}", {"key": key}) from e

    async def get_by_prefix(self, prefix: str) -> List[Any]:
        pattern = _GLOB_SPECIAL.sub(r"\\\1", self._key(prefix)) + "*"
        try:
            keys = [key async for key in self._client.scan_iter(match=pattern, count=500)]
            if not keys:
                return []
            values = await self._client.mget(keys)
        except RedisError as e:
            raise StoreError(f"Failed to scan prefix {prefix}: {e}", {"prefix": prefix}) from e
        # Keys may vanish between SCAN and MGET
        return [json.loads(raw) for raw in values if raw is not None]

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except RedisError as e:
            raise StoreError(f"Redis ping failed: {e}") from e

    async def info(self) -> Dict[str, Any]:
        return await self._client.info()

    async def close(self) -> None:
        await self._client.aclose()
        logger.debug("Redis connection closed")

"""
Key-value store connection management for the Presence Monitor API
"""

import logging
from datetime import datetime
from typing import Optional, Dict, Any

from presence_monitor.config.settings import Settings
from presence_monitor.core.exceptions import StoreError
from presence_monitor.database.kv_store import InMemoryKVStore, KVStore, RedisKVStore

logger = logging.getLogger(__name__)


class StoreConnectionError(StoreError):
    """Store could not be initialized."""

    error_code = "STORE_UNAVAILABLE"


class StoreManager:
    """Builds the configured key-value backend and reports its health."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self._store: Optional[KVStore] = None
        self._initialized = False
        self._using_fallback = False

    async def initialize(self):
        """Initialize the store connection."""
        if self._initialized:
            return

        logger.info(f"Initializing key-value store (backend: {self.settings.store_backend})")

        if self.settings.store_backend == "redis":
            await self._initialize_redis()
        else:
            self._store = InMemoryKVStore()

        self._initialized = True
        logger.info(f"Key-value store initialized ({self._store.backend})")

    async def _initialize_redis(self):
        """Connect to Redis, falling back to memory when allowed."""
        store = RedisKVStore.from_settings(self.settings)
        try:
            await store.ping()
            self._store = store
            logger.info("Redis connection initialized")
        except StoreError as e:
            logger.error(f"Failed to initialize Redis: {e}")
            await store.close()

            if self.settings.redis_required:
                raise StoreConnectionError(f"Redis connection failed and is required: {e}") from e
            if not self.settings.enable_redis_failsafe:
                raise StoreConnectionError(f"Redis connection failed and failsafe is disabled: {e}") from e

            logger.warning("Redis unavailable, using in-memory store (failsafe enabled)")
            self._store = InMemoryKVStore()
            self._using_fallback = True

    @property
    def store(self) -> KVStore:
        """Get the active store."""
        if self._store is None:
            raise StoreConnectionError("Key-value store is not initialized")
        return self._store

    def is_using_fallback(self) -> bool:
        """Check whether the in-memory failsafe replaced Redis."""
        return self._using_fallback

    async def health_check(self) -> Dict[str, Any]:
        """Perform store health check."""
        if self._store is None:
            return {"status": "unhealthy", "details": {"error": "not initialized"}}

        try:
            start_time = datetime.now()
            await self._store.ping()
            response_time = (datetime.now() - start_time).total_seconds()
        except StoreError as e:
            return {"status": "unhealthy", "details": {"backend": self._store.backend, "error": str(e)}}

        details = {
            "backend": self._store.backend,
            "response_time_ms": round(response_time * 1000, 2),
        }
        if isinstance(self._store, RedisKVStore):
            try:
                info = await self._store.info()
                details.update({
                    "connected_clients": info.get("connected_clients", 0),
                    "used_memory": info.get("used_memory_human", "unknown"),
                    "uptime": info.get("uptime_in_seconds", 0),
                })
            except Exception as e:
                details["info_error"] = str(e)

        if self._using_fallback:
            details["failsafe_active"] = True
            return {"status": "degraded", "details": details}

        return {"status": "healthy", "details": details}

    async def close(self):
        """Close the store connection."""
        if self._store is not None:
            await self._store.close()
        self._store = None
        self._initialized = False
        logger.info("Key-value store closed")

import re
from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from presence_monitor.config.settings import get_test_settings
from presence_monitor.core.exceptions import StoreError
from presence_monitor.database.connection import StoreConnectionError, StoreManager
from presence_monitor.database.kv_store import InMemoryKVStore, KVStore, RedisKVStore


class FakePipeline:
    def __init__(self, client):
        self.client = client
        self.queued = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    def set(self, key, value):
        self.queued.append((key, value))

    async def execute(self):
        for key, value in self.queued:
            self.client.data[key] = value


class FakeRedis:
    """Just enough of redis.asyncio.Redis for the store adapter."""

    def __init__(self):
        self.data = {}
        self.patterns = []
        self.closed = False

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value):
        self.data[key] = value

    async def delete(self, key):
        self.data.pop(key, None)

    async def mget(self, keys):
        return [self.data.get(key) for key in keys]

    async def scan_iter(self, match=None, count=None):
        self.patterns.append(match)
        prefix = re.sub(r"\\(.)", r"\1", match[:-1])
        for key in list(self.data):
            if key.startswith(prefix):
                yield key

    def pipeline(self, transaction=True):
        return FakePipeline(self)

    async def ping(self):
        return True

    async def aclose(self):
        self.closed = True


class TestInMemoryKVStore:
    """Dictionary backed store."""

    @pytest.mark.asyncio
    async def test_get_set_delete(self):
        store = InMemoryKVStore()
        await store.set("a", {"x": 1})

        assert await store.get("a") == {"x": 1}
        await store.delete("a")
        assert await store.get("a") is None

    @pytest.mark.asyncio
    async def test_values_are_copies(self):
        store = InMemoryKVStore()
        value = {"items": [1]}
        await store.set("a", value)
        value["items"].append(2)

        fetched = await store.get("a")
        fetched["items"].append(3)

        assert await store.get("a") == {"items": [1]}

    @pytest.mark.asyncio
    async def test_prefix_scan(self):
        store = InMemoryKVStore()
        await store.set_many({"metric:D1:1": 1, "metric:D1:2": 2, "metric:D10:1": 10, "latest:D1": 0})

        assert sorted(await store.get_by_prefix("metric:D1:")) == [1, 2]

    @pytest.mark.asyncio
    async def test_set_many_is_all_or_nothing(self):
        store = InMemoryKVStore()

        with pytest.raises(StoreError):
            await store.set_many({"good": 1, "bad": object()})

        assert await store.get("good") is None
        assert len(store) == 0

    def test_satisfies_protocol(self):
        assert isinstance(InMemoryKVStore(), KVStore)


class TestRedisKVStore:
    """Redis adapter against an in-process fake client."""

    @pytest.mark.asyncio
    async def test_keys_are_namespaced_and_json_encoded(self):
        client = FakeRedis()
        store = RedisKVStore(client, key_prefix="presence:")
        await store.set("user:1", {"id": "1"})

        assert client.data == {"presence:user:1": '{"id": "1"}'}
        assert await store.get("user:1") == {"id": "1"}

    @pytest.mark.asyncio
    async def test_set_many_uses_pipeline(self):
        client = FakeRedis()
        store = RedisKVStore(client, key_prefix="p:")
        await store.set_many({"a": 1, "b": [2]})

        assert client.data == {"p:a": "1", "p:b": "[2]"}

    @pytest.mark.asyncio
    async def test_prefix_scan_escapes_glob_characters(self):
        client = FakeRedis()
        store = RedisKVStore(client, key_prefix="p:")
        await store.set("metric:dev[1]:1", 1)
        await store.set("metric:dev1:1", 2)

        assert await store.get_by_prefix("metric:dev[1]:") == [1]
        assert client.patterns == [r"p:metric:dev\[1\]:*"]

    @pytest.mark.asyncio
    async def test_redis_errors_become_store_errors(self):
        client = FakeRedis()
        client.get = AsyncMock(side_effect=RedisConnectionError("down"))
        store = RedisKVStore(client)

        with pytest.raises(StoreError):
            await store.get("a")

    @pytest.mark.asyncio
    async def test_close(self):
        client = FakeRedis()
        await RedisKVStore(client).close()
        assert client.closed


class TestStoreManager:

    @pytest.mark.asyncio
    async def test_memory_backend(self):
        manager = StoreManager(get_test_settings())
        await manager.initialize()

        assert manager.store.backend == "memory"
        assert (await manager.health_check())["status"] == "healthy"
        await manager.close()

    @pytest.mark.asyncio
    async def test_redis_failure_falls_back_to_memory(self, monkeypatch):
        monkeypatch.setattr(RedisKVStore, "ping", AsyncMock(side_effect=StoreError("refused")))
        manager = StoreManager(get_test_settings(store_backend="redis"))
        await manager.initialize()

        assert manager.is_using_fallback()
        assert manager.store.backend == "memory"
        assert (await manager.health_check())["status"] == "degraded"

    @pytest.mark.asyncio
    async def test_required_redis_failure_raises(self, monkeypatch):
        monkeypatch.setattr(RedisKVStore, "ping", AsyncMock(side_effect=StoreError("refused")))
        manager = StoreManager(get_test_settings(store_backend="redis", redis_required=True))

        with pytest.raises(StoreConnectionError):
            await manager.initialize()

    def test_store_before_initialize(self):
        with pytest.raises(StoreConnectionError):
            StoreManager(get_test_settings()).store

"""
Key-value persistence package
"""

from .connection import StoreManager
from .kv_store import InMemoryKVStore, KVStore, RedisKVStore

__all__ = ["StoreManager", "InMemoryKVStore", "KVStore", "RedisKVStore"]

"""Persistence for workspace data: Redis with an in-memory fallback."""

from .kv_store import InMemoryBackend, KeyValueStore
from .redis_client import RedisClient, get_redis_client

__all__ = [
    "InMemoryBackend",
    "KeyValueStore",
    "RedisClient",
    "get_redis_client",
]

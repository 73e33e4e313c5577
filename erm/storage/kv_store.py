"""
Persistent key-value store with Redis backend and in-memory fallback.

Every value is stored as a JSON string under ``<prefix><key>``. The store
is the only owner of persisted workspace data; components never keep a
second copy in memory.

Read semantics:
- ``get`` fails open: missing, unreadable or malformed values return the
  caller's default and are logged.
- ``load`` is strict: missing returns None, a backend failure or a
  malformed value raises StorageError. Gates that must fail closed use it.

``update`` is the single read-modify-write primitive. On Redis it uses
WATCH/MULTI/EXEC and retries when another writer touched the key; in
memory it runs under an asyncio.Lock shared by every namespaced view.
"""

import asyncio
import copy
import json
import logging
import re
from typing import Any, Callable, Dict, List, Optional

from redis.exceptions import WatchError

from erm.exceptions import ErrorCode, StorageError
from erm.storage.redis_client import RedisClient

logger = logging.getLogger(__name__)

_GLOB_SPECIAL = re.compile(r"([*?\[\]\\])")


class InMemoryBackend:
    """Process-local storage shared by a store and its namespaced children."""

    def __init__(self) -> None:
        self.data: Dict[str, str] = {}
        self.lock = asyncio.Lock()


class KeyValueStore:
    """
    JSON key-value store scoped to a key prefix.

    Args:
        prefix: Prepended to every key (e.g. ``erm_`` or ``erm_<workspace>:``).
        redis_client: Optional Redis client; None keeps everything in memory.
        backend: In-memory backend to share with a parent store.
        max_update_retries: Optimistic-lock attempts before ``update`` gives up.
    """

    def __init__(
        self,
        prefix: str = "erm_",
        redis_client: Optional[RedisClient] = None,
        backend: Optional[InMemoryBackend] = None,
        max_update_retries: int = 10,
    ) -> None:
        self.prefix = prefix
        self._redis_client = redis_client
        self._backend = backend or InMemoryBackend()
        self._max_update_retries = max_update_retries
        self._using_fallback = redis_client is None

    def namespaced(self, suffix: str) -> "KeyValueStore":
        """Return a child store with prefix ``<prefix><suffix>:`` on the same backend."""
        return KeyValueStore(
            prefix=f"{self.prefix}{suffix}:",
            redis_client=self._redis_client,
            backend=self._backend,
            max_update_retries=self._max_update_retries,
        )

    @property
    def using_fallback(self) -> bool:
        """Check if the last operation ran against the in-memory backend."""
        return self._using_fallback

    def _full_key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    async def _get_redis(self):
        if self._redis_client is None:
            self._using_fallback = True
            return None
        client = await self._redis_client.get_client()
        self._using_fallback = client is None
        return client

    @staticmethod
    def _encode(value: Any) -> str:
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False)

    # =========================================================================
    # Reads
    # =========================================================================

    async def _read_raw(self, full_key: str) -> Optional[str]:
        """Read the raw JSON string, raising on backend failure."""
        redis = await self._get_redis()
        if redis:
            return await redis.get(full_key)
        return self._backend.data.get(full_key)

    async def get(self, key: str, default: Any = None) -> Any:
        """
        Read and decode a value, returning ``default`` on any failure.

        Args:
            key: Key relative to the store prefix
            default: Value returned when the key is missing or unreadable

        Returns:
            Decoded JSON value or ``default``
        """
        full_key = self._full_key(key)
        try:
            raw = await self._read_raw(full_key)
        except Exception as e:
            logger.warning(f"Storage read error for {full_key}: {str(e)}")
            return default

        if raw is None:
            return default

        try:
            return json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.warning(f"Malformed value at {full_key}, ignoring: {str(e)}")
            return default

    async def load(self, key: str) -> Any:
        """
        Strict read.

        Returns:
            Decoded value, or None when the key does not exist

        Raises:
            StorageError: If the backend fails or the value is not valid JSON
        """
        full_key = self._full_key(key)
        try:
            raw = await self._read_raw(full_key)
        except Exception as e:
            logger.error(f"Storage read failed for {full_key}: {str(e)}")
            raise StorageError(
                key=key,
                error_code=ErrorCode.STORAGE_UNAVAILABLE,
                internal_message=str(e),
            ) from e

        if raw is None:
            return None

        try:
            return json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.error(f"Corrupt value at {full_key}: {str(e)}")
            raise StorageError(
                message="Stored value is corrupt",
                key=key,
                error_code=ErrorCode.CORRUPT_RECORD,
                internal_message=str(e),
            ) from e

    # =========================================================================
    # Writes
    # =========================================================================

    async def set(self, key: str, value: Any) -> bool:
        """
        Encode and persist a value.

        Returns:
            True if the value was written, False if it could not be encoded
            or written
        """
        full_key = self._full_key(key)
        try:
            encoded = self._encode(value)
        except (TypeError, ValueError) as e:
            logger.error(f"Cannot encode value for {full_key}: {str(e)}")
            return False

        redis = await self._get_redis()
        if redis:
            try:
                await redis.set(full_key, encoded)
                return True
            except Exception as e:
                logger.warning(f"Redis set error for {full_key}: {str(e)}, falling back to memory")
                self._using_fallback = True

        self._backend.data[full_key] = encoded
        return True

    async def remove(self, key: str) -> None:
        full_key = self._full_key(key)
        redis = await self._get_redis()
        if redis:
            try:
                await redis.delete(full_key)
            except Exception as e:
                logger.warning(f"Redis delete error for {full_key}: {str(e)}")
        self._backend.data.pop(full_key, None)

    async def clear_all(self) -> None:
        """Remove every key under this store's prefix."""
        full_keys = [self._full_key(k) for k in await self.keys()]
        redis = await self._get_redis()
        if redis and full_keys:
            try:
                await redis.delete(*full_keys)
            except Exception as e:
                logger.warning(f"Redis clear error for {self.prefix}*: {str(e)}")
        for full_key in [k for k in self._backend.data if k.startswith(self.prefix)]:
            del self._backend.data[full_key]
        logger.info(f"Cleared storage under prefix {self.prefix}")

    async def update(
        self,
        key: str,
        mutator: Callable[[Any], Any],
        default: Any = None,
    ) -> Any:
        """
        Atomically read, transform and write a value.

        ``mutator`` receives the current decoded value (a deep copy of
        ``default`` when missing or malformed) and returns the new value.
        It may run more than once on Redis, so it must be safe to
        repeat.

        Returns:
            The value that was written

        Raises:
            StorageError: If the Redis transaction keeps conflicting
        """
        full_key = self._full_key(key)
        redis = await self._get_redis()
        if redis:
            try:
                return await self._update_redis(redis, full_key, mutator, default)
            except StorageError:
                raise
            except Exception as e:
                logger.warning(f"Redis update error for {full_key}: {str(e)}, falling back to memory")
                self._using_fallback = True

        async with self._backend.lock:
            current = self._decode_or_default(self._backend.data.get(full_key), default, full_key)
            new_value = mutator(current)
            self._backend.data[full_key] = self._encode(new_value)
            return new_value

    async def _update_redis(self, redis, full_key: str, mutator, default) -> Any:
        async with redis.pipeline(transaction=True) as pipe:
            for attempt in range(self._max_update_retries):
                try:
                    await pipe.watch(full_key)
                    raw = await pipe.get(full_key)
                    new_value = mutator(self._decode_or_default(raw, default, full_key))
                    pipe.multi()
                    pipe.set(full_key, self._encode(new_value))
                    await pipe.execute()
                    return new_value
                except WatchError:
                    logger.debug(f"Concurrent write on {full_key}, retrying (attempt {attempt + 1})")
                    continue

        raise StorageError(
            message="Concurrent updates could not be applied",
            key=full_key[len(self.prefix):],
            internal_message=f"WATCH retries exhausted for {full_key}",
        )

    @staticmethod
    def _decode_or_default(raw: Optional[str], default: Any, full_key: str) -> Any:
        if raw is None:
            return copy.deepcopy(default)
        try:
            return json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.warning(f"Malformed value at {full_key}, replacing: {str(e)}")
            return copy.deepcopy(default)

    # =========================================================================
    # Introspection
    # =========================================================================

    async def keys(self) -> List[str]:
        """List keys under this prefix, relative to the prefix."""
        redis = await self._get_redis()
        if redis:
            try:
                pattern = _GLOB_SPECIAL.sub(r"\\\1", self.prefix) + "*"
                return sorted(
                    [k[len(self.prefix):] async for k in redis.scan_iter(match=pattern)]
                )
            except Exception as e:
                logger.warning(f"Redis scan error for {self.prefix}*: {str(e)}")
                return []
        return sorted(
            k[len(self.prefix):] for k in self._backend.data if k.startswith(self.prefix)
        )

    async def size_bytes(self) -> int:
        """
        Sum of full key length plus value length for every key under the prefix.
        """
        total = 0
        relative_keys = await self.keys()
        if not relative_keys:
            return 0

        full_keys = [self._full_key(k) for k in relative_keys]
        redis = await self._get_redis()
        if redis:
            try:
                values = await redis.mget(full_keys)
            except Exception as e:
                logger.warning(f"Redis size scan error for {self.prefix}*: {str(e)}")
                return 0
        else:
            values = [self._backend.data.get(k) for k in full_keys]

        for full_key, value in zip(full_keys, values):
            if value is not None:
                total += len(full_key) + len(value)
        return total

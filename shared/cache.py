"""
Cache-aside layer over Redis.

Redis is advisory only: every read that fails is a miss and every write that
fails is dropped, so a Redis outage makes requests slower (they fall through
to PostgreSQL) but never makes them fail. The only exceptions are the counter
helpers, whose callers need a real number and get CacheUnavailableError
instead.

Usage:
    cache = CacheAside(redis_client)

    spots = await cache.get_or_set(
        parking_spots_key(lot_id),
        lambda: load_spots(lot_id),
        ttl=TTL_SHORT,
    )

    # after a transaction commits
    await cache.invalidate(lot_availability_keys(lot_id))
"""

import asyncio
import json
import logging
import re
from collections.abc import Awaitable, Callable, Iterable
from typing import Any, TypeVar

import redis.asyncio as redis
from redis.exceptions import RedisError

from shared.cache_keys import TTL_MEDIUM

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Errors that mean "Redis is unreachable or misbehaving", never a caller bug
CACHE_BACKEND_ERRORS = (RedisError, OSError, asyncio.TimeoutError)

SCAN_BATCH_SIZE = 500


class CacheUnavailableError(Exception):
    """Raised by counter operations when the cache backend cannot be reached."""

    pass


def _serialize(value: Any) -> str:
    return json.dumps(value, default=str)


class CacheAside:
    """
    Cache-aside helper bound to one Redis client.

    Holds the set of in-flight background writes started by get_or_set() so
    they can be cancelled on shutdown.
    """

    def __init__(self, client: "redis.Redis[str]", default_ttl: int = TTL_MEDIUM):
        self._client = client
        self._default_ttl = default_ttl
        self._pending: set[asyncio.Task] = set()

    @property
    def pending_writes(self) -> frozenset[asyncio.Task]:
        """Background cache writes that have not finished yet."""
        return frozenset(self._pending)

    async def get(self, key: str) -> Any | None:
        """Return the decoded value for key, or None on miss or backend error."""
        try:
            raw = await self._client.get(key)
        except CACHE_BACKEND_ERRORS as e:
            logger.warning(f"Cache GET failed, treating as miss: {e}", extra={"cache_key": key})
            return None

        if raw is None:
            logger.debug("Cache MISS", extra={"cache_key": key})
            return None

        try:
            value = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Invalid JSON in cache, treating as miss", extra={"cache_key": key})
            return None

        logger.debug("Cache HIT", extra={"cache_key": key})
        return value

    async def set(self, key: str, value: Any, ttl: int | None = None) -> bool:
        """Store value with a TTL. Returns False if the write was dropped."""
        ttl = ttl or self._default_ttl
        try:
            await self._client.set(key, _serialize(value), ex=ttl)
        except CACHE_BACKEND_ERRORS as e:
            logger.warning(f"Cache SET failed: {e}", extra={"cache_key": key})
            return False

        logger.debug(f"Cache SET (ttl={ttl}s)", extra={"cache_key": key})
        return True

    async def delete(self, key: str) -> bool:
        """Delete one key. Returns True if something was deleted."""
        try:
            deleted = await self._client.delete(key)
        except CACHE_BACKEND_ERRORS as e:
            logger.warning(f"Cache DEL failed: {e}", extra={"cache_key": key})
            return False

        return deleted > 0

    async def exists(self, key: str) -> bool:
        try:
            return await self._client.exists(key) == 1
        except CACHE_BACKEND_ERRORS as e:
            logger.warning(f"Cache EXISTS failed: {e}", extra={"cache_key": key})
            return False

    async def delete_pattern(self, pattern: str) -> int:
        """
        Delete every key matching a glob pattern.

        Uses SCAN rather than KEYS so a large keyspace never blocks Redis.

        Returns:
            Number of keys deleted (0 if Redis is unreachable)
        """
        deleted = 0
        batch: list[str] = []
        try:
            async for key in self._client.scan_iter(match=pattern, count=SCAN_BATCH_SIZE):
                batch.append(key)
                if len(batch) >= SCAN_BATCH_SIZE:
                    deleted += await self._client.delete(*batch)
                    batch.clear()
            if batch:
                deleted += await self._client.delete(*batch)
        except CACHE_BACKEND_ERRORS as e:
            logger.warning(f"Cache DEL pattern '{pattern}' failed after {deleted} keys: {e}")
            return deleted

        logger.debug(f"Cache DEL pattern '{pattern}': {deleted} keys")
        return deleted

    async def get_or_set(
        self,
        key: str,
        compute_fn: Callable[[], Awaitable[T]],
        ttl: int | None = None,
    ) -> T | Any:
        """
        Cache-aside read.

        Returns the cached value if present. On a miss, awaits compute_fn(),
        schedules the cache write in the background and returns the freshly
        computed value without waiting for the write.

        compute_fn must return JSON-serializable data: a hit returns the
        JSON-decoded form, so UUIDs and datetimes come back as strings.
        """
        cached = await self.get(key)
        if cached is not None:
            return cached

        value = await compute_fn()
        self._spawn_write(key, value, ttl)
        return value

    def _spawn_write(self, key: str, value: Any, ttl: int | None) -> None:
        task = asyncio.create_task(self.set(key, value, ttl))
        self._pending.add(task)
        task.add_done_callback(self._write_done)

    def _write_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Background cache write failed: {exc}", exc_info=exc)

    async def invalidate(self, keys: str | Iterable[str]) -> int:
        """Delete one or more explicit keys. Returns how many existed."""
        key_list = [keys] if isinstance(keys, str) else list(keys)
        if not key_list:
            return 0

        try:
            deleted = await self._client.delete(*key_list)
        except CACHE_BACKEND_ERRORS as e:
            logger.warning(f"Cache invalidation failed for {key_list}: {e}")
            return 0

        logger.info(f"Cache invalidated: {key_list}")
        return deleted

    async def set_many(self, entries: Iterable[tuple[str, Any, int | None]]) -> bool:
        """Pipelined SET of (key, value, ttl) entries. False if dropped."""
        entries = list(entries)
        if not entries:
            return True

        try:
            async with self._client.pipeline(transaction=False) as pipe:
                for key, value, ttl in entries:
                    pipe.set(key, _serialize(value), ex=ttl or self._default_ttl)
                await pipe.execute()
        except CACHE_BACKEND_ERRORS as e:
            logger.warning(f"Cache SET multi failed ({len(entries)} keys): {e}")
            return False

        logger.debug(f"Cache SET multi: {len(entries)} keys")
        return True

    async def get_many(self, keys: Iterable[str]) -> dict[str, Any]:
        """Pipelined GET. Missing, undecodable or unreachable keys are omitted."""
        keys = list(keys)
        found: dict[str, Any] = {}
        if not keys:
            return found

        try:
            async with self._client.pipeline(transaction=False) as pipe:
                for key in keys:
                    pipe.get(key)
                values = await pipe.execute()
        except CACHE_BACKEND_ERRORS as e:
            logger.warning(f"Cache GET multi failed ({len(keys)} keys): {e}")
            return found

        for key, raw in zip(keys, values):
            if raw is None:
                continue
            try:
                found[key] = json.loads(raw)
            except json.JSONDecodeError:
                logger.warning("Invalid JSON in cache", extra={"cache_key": key})

        logger.debug(f"Cache GET multi: requested={len(keys)} found={len(found)}")
        return found

    async def increment(self, key: str, amount: int = 1, ttl: int | None = None) -> int:
        """
        Increment a counter, setting its TTL on first creation.

        Raises:
            CacheUnavailableError: If Redis cannot be reached
        """
        try:
            result = await self._client.incrby(key, amount)
            if ttl and result == amount:
                await self._client.expire(key, ttl)
            return result
        except CACHE_BACKEND_ERRORS as e:
            logger.error(f"Cache INCREMENT failed: {e}", extra={"cache_key": key})
            raise CacheUnavailableError(str(e)) from e

    async def decrement(self, key: str, amount: int = 1) -> int:
        """
        Raises:
            CacheUnavailableError: If Redis cannot be reached
        """
        try:
            return await self._client.decrby(key, amount)
        except CACHE_BACKEND_ERRORS as e:
            logger.error(f"Cache DECREMENT failed: {e}", extra={"cache_key": key})
            raise CacheUnavailableError(str(e)) from e

    async def is_connected(self) -> bool:
        """Liveness check (PING)."""
        try:
            return bool(await self._client.ping())
        except CACHE_BACKEND_ERRORS:
            return False

    async def stats(self) -> dict[str, Any]:
        """Connection state, key count and memory usage for monitoring."""
        try:
            info = await self._client.info("memory")
            key_count = await self._client.dbsize()
        except CACHE_BACKEND_ERRORS as e:
            logger.warning(f"Failed to get cache stats: {e}")
            return {"connected": False, "keys_count": 0}

        memory_used = None
        if isinstance(info, dict):
            memory_used = info.get("used_memory_human")
        else:
            match = re.search(r"used_memory_human:(.+)", str(info))
            if match:
                memory_used = match.group(1).strip()

        return {"connected": True, "keys_count": key_count, "memory_used": memory_used}

    async def close(self) -> None:
        """Cancel background writes still in flight. Call at process shutdown."""
        pending = list(self._pending)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            logger.info(f"Cancelled {len(pending)} pending cache writes")

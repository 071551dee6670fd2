"""
Redis Store Adapter

Thin async wrapper around the hosted Redis instance:
- Lazy connection, reused across calls, dropped on connection errors
- Compact JSON payloads with optional LZ4 compression
- Guarded pattern deletion (allow-listed patterns only)
- Graceful degradation: every operation returns None/False instead of raising
"""

import asyncio
import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

from redis.asyncio import Redis
from redis.exceptions import (
    ConnectionError as RedisConnectionError,
    RedisError,
    TimeoutError as RedisTimeoutError,
)

from alignzo.cache.config import CacheConfig, get_cache_config
from alignzo.cache.serialization import (
    CacheCompressor,
    SerializationError,
    deserialize_value,
    serialize_value,
)


logger = logging.getLogger(__name__)

ClientFactory = Callable[[CacheConfig], Awaitable[Redis]]

# Only these key families may be bulk-deleted, optionally under a priority prefix
SAFE_PATTERN_FAMILIES = (
    "kanban:board:",
    "kanban:categories:",
    "kanban:teams:",
    "kanban:column:",
)
_SAFE_PATTERN_RE = re.compile(
    r"^(?:(?:high|medium|low):)?(?:"
    + "|".join(re.escape(f) for f in SAFE_PATTERN_FAMILIES)
    + r").*$"
)

_CONNECTION_ERRORS = (RedisConnectionError, RedisTimeoutError, OSError)


@dataclass
class StoreStats:
    """Store operation statistics."""
    hits: int = 0
    misses: int = 0
    errors: int = 0
    bytes_written: int = 0
    bytes_read: int = 0
    bytes_saved_compression: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0


def is_safe_pattern(pattern: str) -> bool:
    """Check a glob pattern against the bulk-delete allow-list."""
    return bool(_SAFE_PATTERN_RE.match(pattern))


async def _default_client_factory(config: CacheConfig) -> Redis:
    client = Redis.from_url(
        config.redis_url,
        socket_connect_timeout=config.redis_connect_timeout,
        socket_timeout=config.redis_socket_timeout,
        decode_responses=False,  # We handle bytes directly
    )
    await client.ping()
    return client


class RedisStore:
    """
    Expiring key-value store backed by Redis.

    Every operation is advisory: callers treat False/None as a miss or
    no-op and always keep a path to the source of truth.
    """

    def __init__(
        self,
        config: Optional[CacheConfig] = None,
        client_factory: Optional[ClientFactory] = None,
    ):
        self.config = config or get_cache_config()
        self._client_factory = client_factory or _default_client_factory
        self._redis: Optional[Redis] = None
        self._compressor = CacheCompressor(
            enabled=self.config.compression_enabled,
            threshold=self.config.compression_threshold,
        )
        self._stats = StoreStats()
        self._lock = asyncio.Lock()

    @property
    def connected(self) -> bool:
        return self._redis is not None

    async def _get_client(self) -> Optional[Redis]:
        """Return the live client, connecting on first use. None if unreachable."""
        if not self.config.enabled:
            return None
        if self._redis is not None:
            return self._redis

        async with self._lock:
            if self._redis is not None:
                return self._redis
            try:
                self._redis = await self._client_factory(self.config)
                logger.info("Redis store connected")
            except Exception as e:
                self._stats.errors += 1
                logger.error(f"Failed to connect to Redis: {e}")
                self._redis = None
        return self._redis

    def _handle_error(self, operation: str, key: str, error: Exception):
        self._stats.errors += 1
        if isinstance(error, _CONNECTION_ERRORS):
            # Next call re-initializes the connection
            self._redis = None
            logger.warning(f"Redis unavailable during {operation} for {key}: {error}")
        else:
            logger.error(f"Redis {operation} error for {key}: {error}")

    # =========================================================================
    # Core Operations
    # =========================================================================

    async def get(self, key: str) -> Optional[Any]:
        """
        Get a value.

        Returns None on miss, store unavailability or an undecodable payload.
        """
        client = await self._get_client()
        if client is None:
            return None

        try:
            data = await client.get(key)
        except (RedisError, OSError) as e:
            self._handle_error("get", key, e)
            return None

        if data is None:
            self._stats.misses += 1
            return None

        try:
            value = deserialize_value(self._compressor.decompress(data))
        except SerializationError as e:
            self._stats.errors += 1
            logger.error(f"Discarding undecodable cache entry {key}: {e}")
            return None

        self._stats.hits += 1
        self._stats.bytes_read += len(data)
        return value

    async def set(self, key: str, value: Any, ttl_seconds: int) -> bool:
        """Write a value with expiry. Returns False on failure."""
        client = await self._get_client()
        if client is None:
            return False

        try:
            serialized = serialize_value(value)
        except (TypeError, ValueError) as e:
            self._stats.errors += 1
            logger.error(f"Cannot serialize cache value for {key}: {e}")
            return False

        payload, stats = self._compressor.compress(serialized)
        if stats:
            self._stats.bytes_saved_compression += (
                stats.original_size - stats.compressed_size
            )

        try:
            await client.set(key, payload, ex=ttl_seconds)
        except (RedisError, OSError) as e:
            self._handle_error("set", key, e)
            return False

        self._stats.bytes_written += len(payload)
        return True

    async def delete(self, key: str) -> bool:
        """Delete a key. Deleting a missing key succeeds."""
        client = await self._get_client()
        if client is None:
            return False

        try:
            await client.delete(key)
            return True
        except (RedisError, OSError) as e:
            self._handle_error("delete", key, e)
            return False

    async def delete_pattern(self, pattern: str) -> bool:
        """
        Delete all keys matching an allow-listed glob pattern.

        Keys are listed completely before anything is deleted, so a failed
        listing has no side effects. Deletion runs in batches.
        """
        if not is_safe_pattern(pattern):
            logger.error(f"Refusing to invalidate unsafe pattern: {pattern}")
            return False

        client = await self._get_client()
        if client is None:
            return False

        try:
            keys: List[bytes] = []
            async for key in client.scan_iter(match=pattern, count=100):
                keys.append(key)
        except (RedisError, OSError) as e:
            self._handle_error("scan", pattern, e)
            return False

        batch_size = self.config.pattern_delete_batch_size
        deleted = 0
        for i in range(0, len(keys), batch_size):
            batch = keys[i:i + batch_size]
            try:
                deleted += await client.delete(*batch)
            except (RedisError, OSError) as e:
                self._handle_error("delete_pattern", pattern, e)
                logger.error(
                    f"Pattern invalidation for {pattern} stopped after "
                    f"{deleted}/{len(keys)} keys"
                )
                return False

        if keys:
            logger.info(f"Invalidated {deleted} cache keys for pattern: {pattern}")
        return True

    async def exists(self, key: str) -> bool:
        client = await self._get_client()
        if client is None:
            return False
        try:
            return await client.exists(key) > 0
        except (RedisError, OSError) as e:
            self._handle_error("exists", key, e)
            return False

    async def ttl(self, key: str) -> int:
        """Remaining TTL in seconds. -1 if no TTL, -2 if missing or unreachable."""
        client = await self._get_client()
        if client is None:
            return -2
        try:
            return await client.ttl(key)
        except (RedisError, OSError) as e:
            self._handle_error("ttl", key, e)
            return -2

    async def flush(self) -> bool:
        """Remove every key in the database. Use with caution."""
        client = await self._get_client()
        if client is None:
            return False
        try:
            await client.flushdb()
            logger.warning("Redis database flushed")
            return True
        except (RedisError, OSError) as e:
            self._handle_error("flush", "*", e)
            return False

    # =========================================================================
    # Statistics and Health
    # =========================================================================

    async def memory_info(self) -> Dict[str, Any]:
        """Memory and keyspace figures from INFO."""
        client = await self._get_client()
        if client is None:
            return {"error": "Redis unavailable"}

        try:
            memory = await client.info("memory")
            keyspace = await client.info("keyspace")
        except (RedisError, OSError) as e:
            self._handle_error("info", "memory", e)
            return {"error": "Failed to get memory info"}

        db0 = keyspace.get("db0") or {}
        return {
            "used_memory": int(memory.get("used_memory", 0)),
            "used_memory_peak": int(memory.get("used_memory_peak", 0)),
            "maxmemory": int(memory.get("maxmemory", 0)),
            "keys": int(db0.get("keys", 0)) if isinstance(db0, dict) else 0,
        }

    def get_stats(self) -> Dict[str, Any]:
        """Get store statistics."""
        return {
            "enabled": self.config.enabled,
            "connected": self.connected,
            "hits": self._stats.hits,
            "misses": self._stats.misses,
            "errors": self._stats.errors,
            "hit_rate_percent": round(self._stats.hit_rate * 100, 2),
            "bytes_written": self._stats.bytes_written,
            "bytes_read": self._stats.bytes_read,
            "bytes_saved_compression": self._stats.bytes_saved_compression,
        }

    async def health_check(self) -> Dict[str, Any]:
        """Liveness probe. Never mutates data."""
        if not self.config.enabled:
            return {"status": "disabled", "message": "Cache disabled"}

        client = await self._get_client()
        if client is None:
            return {"status": "error", "message": "Redis unavailable"}

        start = time.time()
        try:
            await client.ping()
        except (RedisError, OSError) as e:
            self._handle_error("ping", "-", e)
            return {"status": "error", "message": f"Redis health check failed: {e}"}

        return {
            "status": "healthy",
            "message": "Redis is working properly",
            "latency_ms": round((time.time() - start) * 1000, 2),
        }

    async def close(self):
        """Close the Redis connection."""
        client, self._redis = self._redis, None
        if client is None:
            return
        try:
            await client.aclose()
        except (RedisError, OSError) as e:
            logger.warning(f"Error closing Redis connection: {e}")
        logger.info("Redis store closed")

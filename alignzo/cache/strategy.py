"""
Cache Strategy

Maps logical categories ("kanban", "user", ...) to TTL and priority, and
stores every entry under a "{priority}:{key}" physical key.
"""

import asyncio
import logging
from typing import Any, Dict, Iterable, Mapping, Optional, Union

from alignzo.cache.config import (
    DEFAULT_CATEGORIES,
    DEFAULT_POLICY,
    CachePriority,
    CategoryPolicy,
    ConfigurationError,
)
from alignzo.cache.redis_store import RedisStore


logger = logging.getLogger(__name__)


class CacheStrategy:
    """
    Category-aware front for the key-value store.

    The priority prefix is kept for forward compatibility only. An
    eviction-by-priority policy would live in its own component consulted
    by the store under memory pressure.
    """

    def __init__(
        self,
        store: RedisStore,
        categories: Optional[Mapping[str, CategoryPolicy]] = None,
    ):
        self._store = store
        self._categories: Dict[str, CategoryPolicy] = dict(
            DEFAULT_CATEGORIES if categories is None else categories
        )

    @property
    def store(self) -> RedisStore:
        return self._store

    @property
    def categories(self) -> Dict[str, CategoryPolicy]:
        return dict(self._categories)

    def policy_for(self, category: str) -> CategoryPolicy:
        return self._categories.get(category, DEFAULT_POLICY)

    def configure_category(
        self,
        category: str,
        ttl_seconds: int,
        priority: Union[CachePriority, str],
    ) -> CategoryPolicy:
        """Add or replace a category policy."""
        try:
            priority = CachePriority(priority)
        except ValueError as e:
            raise ConfigurationError(f"Unknown priority: {priority}") from e
        policy = CategoryPolicy(ttl_seconds=ttl_seconds, priority=priority)
        self._categories[category] = policy
        logger.info(
            f"Cache category {category} set to ttl={ttl_seconds}s "
            f"priority={priority.value}"
        )
        return policy

    @staticmethod
    def physical_key(key: str, priority: CachePriority) -> str:
        return f"{priority.value}:{key}"

    async def get(self, key: str, category: Optional[str] = None) -> Optional[Any]:
        """
        Read a logical key.

        With a category the entry is read from that category's tier. Without
        one, tiers are probed from high to low and the first hit wins.
        """
        if category is not None:
            tiers = [self.policy_for(category).priority]
        else:
            tiers = list(CachePriority)

        for priority in tiers:
            try:
                value = await self._store.get(self.physical_key(key, priority))
            except Exception as e:
                logger.warning(f"Cache get failed for {key}: {e}")
                return None
            if value is not None:
                return value
        return None

    async def set(self, key: str, value: Any, category: str = "default") -> bool:
        """Write under the category's TTL and priority prefix."""
        policy = self.policy_for(category)
        try:
            return await self._store.set(
                self.physical_key(key, policy.priority),
                value,
                policy.ttl_seconds,
            )
        except Exception as e:
            logger.warning(f"Cache set failed for {key}: {e}")
            return False

    async def delete(self, key: str) -> bool:
        """
        Delete a logical key under every priority prefix.

        The writer's category is unknown here, so all tiers are cleared.
        Every tier is attempted even if one fails.
        """
        ok = True
        for priority in CachePriority:
            try:
                if not await self._store.delete(self.physical_key(key, priority)):
                    ok = False
            except Exception as e:
                logger.warning(f"Cache delete failed for {priority.value}:{key}: {e}")
                ok = False
        return ok

    async def delete_many(self, keys: Iterable[str]) -> bool:
        """
        Delete several logical keys independently.

        A failure on one key never stops the others from being attempted.
        """
        keys = list(keys)
        results = await asyncio.gather(
            *(self.delete(key) for key in keys),
            return_exceptions=True,
        )
        failed = [
            key for key, result in zip(keys, results)
            if result is not True
        ]
        if failed:
            logger.warning(f"Cache invalidation failed for {len(failed)} keys: {failed}")
        return not failed

    async def invalidate_pattern(self, pattern: str) -> bool:
        """Bulk-delete a logical glob pattern under every priority prefix."""
        ok = True
        for priority in CachePriority:
            if not await self._store.delete_pattern(self.physical_key(pattern, priority)):
                ok = False
        if not ok:
            logger.warning(f"Cache invalidation incomplete for pattern {pattern}")
        return ok

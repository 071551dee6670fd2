"""
Alignzo Caching Layer

Cache-aside caching in front of the hosted database:
- RedisStore: expiring key-value adapter that degrades to miss/no-op
- CacheStrategy: category -> (TTL, priority) policy and priority-prefixed keys
- KanbanCache / UserCache: deterministic key naming per entity
- CacheInvalidator: event-driven invalidation
- CacheMonitor: health, memory and statistics report
- DetachedTasks: fire-and-forget write-through

Usage:
    store = RedisStore()
    strategy = CacheStrategy(store)
    kanban = KanbanCache(strategy)

    await kanban.set_board(project_id, team_id, tasks)
    tasks = await kanban.get_board(project_id, team_id)

    invalidator = CacheInvalidator(kanban, UserCache(strategy))
    await invalidator.handle_event(CacheEvent.TASK_MOVED, project_id=..., team_id=...)
"""

from alignzo.cache.background import DetachedTasks
from alignzo.cache.config import (
    CacheConfig,
    CachePriority,
    CategoryPolicy,
    ConfigurationError,
    DEFAULT_CATEGORIES,
    get_cache_config,
)
from alignzo.cache.health import CacheMonitor, CacheReport, HealthStatus
from alignzo.cache.invalidation import CacheEvent, CacheInvalidator, InvalidationResult
from alignzo.cache.kanban import KanbanCache
from alignzo.cache.redis_store import RedisStore, is_safe_pattern
from alignzo.cache.strategy import CacheStrategy
from alignzo.cache.user import UserCache

__all__ = [
    # Config
    "CacheConfig",
    "CachePriority",
    "CategoryPolicy",
    "ConfigurationError",
    "DEFAULT_CATEGORIES",
    "get_cache_config",
    # Store
    "RedisStore",
    "is_safe_pattern",
    # Strategy and domain caches
    "CacheStrategy",
    "KanbanCache",
    "UserCache",
    # Invalidation
    "CacheEvent",
    "CacheInvalidator",
    "InvalidationResult",
    # Monitoring
    "CacheMonitor",
    "CacheReport",
    "HealthStatus",
    # Background writes
    "DetachedTasks",
]

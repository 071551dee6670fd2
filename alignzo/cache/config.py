"""
Cache Configuration

Centralized configuration for the caching layer.
Category policies define TTL and priority tier per logical data type.
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache
from typing import Dict


class ConfigurationError(ValueError):
    """Raised when a cache policy is invalid."""


class CachePriority(str, Enum):
    """
    Priority tier of a cache entry.

    Only used as a key prefix today. No eviction logic reads it.
    """
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class CategoryPolicy:
    """TTL and priority for a cache category."""
    ttl_seconds: int
    priority: CachePriority

    def __post_init__(self):
        if self.ttl_seconds <= 0:
            raise ConfigurationError(f"TTL must be positive, got {self.ttl_seconds}")


DEFAULT_POLICY = CategoryPolicy(ttl_seconds=300, priority=CachePriority.MEDIUM)

DEFAULT_CATEGORIES: Dict[str, CategoryPolicy] = {
    # Board data changes with every task move
    "kanban": CategoryPolicy(ttl_seconds=300, priority=CachePriority.HIGH),
    "user": CategoryPolicy(ttl_seconds=1800, priority=CachePriority.HIGH),
    "project": CategoryPolicy(ttl_seconds=600, priority=CachePriority.MEDIUM),
    "analytics": CategoryPolicy(ttl_seconds=60, priority=CachePriority.LOW),
}


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass
class CacheConfig:
    """
    Main cache configuration.

    Settings can be overridden via environment variables:
    - CACHE_ENABLED: Enable/disable caching globally
    - STORAGE_REDIS_URL / STORAGE_URL: Redis connection string
    - CACHE_COMPRESSION_ENABLED: LZ4-compress large payloads
    """

    enabled: bool = field(default_factory=lambda: _env_flag("CACHE_ENABLED", "true"))

    redis_url: str = field(default_factory=lambda: (
        os.getenv("STORAGE_REDIS_URL")
        or os.getenv("STORAGE_URL")
        or "redis://localhost:6379/0"
    ))
    redis_connect_timeout: float = field(default_factory=lambda: float(
        os.getenv("REDIS_CONNECT_TIMEOUT", "10")
    ))
    redis_socket_timeout: float = field(default_factory=lambda: float(
        os.getenv("REDIS_SOCKET_TIMEOUT", "5")
    ))

    compression_enabled: bool = field(
        default_factory=lambda: _env_flag("CACHE_COMPRESSION_ENABLED", "true")
    )
    compression_threshold: int = 1024  # bytes

    # Keys deleted per DEL command during pattern invalidation
    pattern_delete_batch_size: int = 50

    # Memory reporting (hosted plan is 20MB)
    memory_warning_mb: float = 18.0
    memory_limit_mb: float = 20.0


@lru_cache(maxsize=1)
def get_cache_config() -> CacheConfig:
    """Get singleton cache configuration."""
    return CacheConfig()

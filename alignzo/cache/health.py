"""
Cache Health

Health checks and memory reporting for the hosted Redis instance.
The hosted plan is small, so memory pressure is the main thing to watch.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from alignzo.cache.config import CacheConfig, get_cache_config
from alignzo.cache.redis_store import RedisStore


logger = logging.getLogger(__name__)

BYTES_PER_MB = 1024 * 1024


class HealthStatus(Enum):
    """Health check status."""
    HEALTHY = "healthy"
    WARNING = "warning"
    ERROR = "error"


@dataclass
class MemoryUsage:
    used_mb: float
    max_mb: float

    @property
    def percentage(self) -> float:
        if not self.max_mb:
            return 0.0
        return self.used_mb / self.max_mb * 100


@dataclass
class CacheReport:
    """Snapshot of cache health, memory and statistics."""
    status: HealthStatus
    message: str
    memory: Optional[MemoryUsage]
    keys: int
    stats: Dict[str, Any]
    recommendations: List[str] = field(default_factory=list)
    timestamp: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        memory = None
        if self.memory is not None:
            memory = {
                "used": f"{self.memory.used_mb:.2f}MB",
                "max": f"{self.memory.max_mb:.2f}MB",
                "percentage": f"{self.memory.percentage:.1f}%",
            }
        return {
            "timestamp": self.timestamp.isoformat(),
            "status": self.status.value,
            "message": self.message,
            "memory": memory,
            "cache": {
                "keys": self.keys,
                "hit_rate_percent": self.stats.get("hit_rate_percent", 0.0),
            },
            "stats": self.stats,
            "recommendations": self.recommendations,
        }


def recommendations_for(memory: MemoryUsage, warning_mb: float) -> List[str]:
    """Operator advice for the current memory usage."""
    recommendations = []

    if memory.percentage > 90:
        recommendations.append("Memory usage critical - consider upgrading Redis plan")
    elif memory.percentage > 80:
        recommendations.append("Memory usage high - review cache TTLs and eviction policies")

    if memory.used_mb > warning_mb:
        recommendations.append("Memory threshold exceeded - aggressive eviction active")

    return recommendations


class CacheMonitor:
    """Builds health reports for the cache store."""

    def __init__(self, store: RedisStore, config: Optional[CacheConfig] = None):
        self._store = store
        self._config = config or get_cache_config()

    async def report(self) -> CacheReport:
        health = await self._store.health_check()
        stats = self._store.get_stats()

        if health["status"] != "healthy":
            return CacheReport(
                status=HealthStatus.ERROR,
                message=health["message"],
                memory=None,
                keys=0,
                stats=stats,
            )

        info = await self._store.memory_info()
        if "error" in info:
            logger.warning(f"Cache memory info unavailable: {info['error']}")
            return CacheReport(
                status=HealthStatus.WARNING,
                message=info["error"],
                memory=None,
                keys=0,
                stats=stats,
            )

        memory = MemoryUsage(
            used_mb=info["used_memory"] / BYTES_PER_MB,
            max_mb=(info["maxmemory"] / BYTES_PER_MB) or self._config.memory_limit_mb,
        )
        status = (
            HealthStatus.WARNING
            if memory.used_mb > self._config.memory_warning_mb
            else HealthStatus.HEALTHY
        )

        return CacheReport(
            status=status,
            message=health["message"],
            memory=memory,
            keys=info["keys"],
            stats=stats,
            recommendations=recommendations_for(memory, self._config.memory_warning_mb),
        )

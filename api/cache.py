"""
Cache Management API

Endpoints:
- Health check for monitoring/alerting
- Memory and hit-rate report for the admin dashboard
- Event-driven and manual invalidation
- Category policy inspection and runtime changes
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from alignzo.cache import CacheEvent, CachePriority, ConfigurationError
from alignzo.context import AppContext

from .dependencies import get_context


logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/cache", tags=["Cache Management"])


# =============================================================================
# REQUEST/RESPONSE MODELS
# =============================================================================

class CacheHealthResponse(BaseModel):
    """Cache health check response."""
    status: str = Field(..., description="healthy, error or disabled")
    message: str
    latency_ms: Optional[float] = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class InvalidationRequest(BaseModel):
    event: CacheEvent
    project_id: Optional[str] = None
    team_id: Optional[str] = None
    user_email: Optional[str] = None
    team_ids: List[str] = []
    project_ids: List[str] = []


class InvalidationResponse(BaseModel):
    """Cache invalidation response."""
    success: bool
    event: str
    operations: int
    duration_ms: float
    errors: List[str] = []


class CategoryPolicyModel(BaseModel):
    ttl_seconds: int = Field(..., gt=0)
    priority: CachePriority


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.get("/health", response_model=CacheHealthResponse)
async def cache_health_check(context: AppContext = Depends(get_context)):
    """Liveness of the Redis store. Never mutates data."""
    health = await context.store.health_check()
    return CacheHealthResponse(**health)


@router.get("/stats")
async def get_cache_stats(context: AppContext = Depends(get_context)) -> Dict[str, Any]:
    """
    Memory usage, key count, hit rate and recommendations.

    Stats are reset on application restart.
    """
    report = await context.cache_monitor.report()
    result = report.to_dict()
    result["background_writes"] = {
        "pending": context.tasks.pending,
        "completed": context.tasks.completed,
        "failed": context.tasks.failed,
    }
    return result


@router.post("/invalidate", response_model=InvalidationResponse)
async def invalidate(
    body: InvalidationRequest,
    context: AppContext = Depends(get_context),
):
    """Run the invalidations mapped to a cache event."""
    result = await context.invalidator.handle_event(
        body.event,
        project_id=body.project_id,
        team_id=body.team_id,
        user_email=body.user_email,
        team_ids=body.team_ids,
        project_ids=body.project_ids,
    )
    return InvalidationResponse(
        success=result.success,
        event=result.event.value,
        operations=result.operations,
        duration_ms=round(result.duration_ms, 2),
        errors=result.errors,
    )


@router.get("/categories", response_model=Dict[str, CategoryPolicyModel])
async def list_categories(context: AppContext = Depends(get_context)):
    return {
        name: CategoryPolicyModel(ttl_seconds=policy.ttl_seconds, priority=policy.priority)
        for name, policy in context.strategy.categories.items()
    }


@router.put("/categories/{category}", response_model=CategoryPolicyModel)
async def configure_category(
    category: str,
    body: CategoryPolicyModel,
    context: AppContext = Depends(get_context),
):
    """Change a category's TTL and priority for entries written from now on."""
    try:
        policy = context.strategy.configure_category(category, body.ttl_seconds, body.priority)
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return CategoryPolicyModel(ttl_seconds=policy.ttl_seconds, priority=policy.priority)

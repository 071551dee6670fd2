"""
User and Team Read API

Cached reads for a user's teams, shifts, projects and dashboard, and for
team rosters and schedules.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from alignzo.context import AppContext
from alignzo.monitoring.middleware import monitored
from alignzo.monitoring.models import SecurityEventType

from .dependencies import get_context
from .kanban import CachedResponse, cached_response


logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/users", tags=["Users"])
teams_router = APIRouter(prefix="/api/teams", tags=["Teams"])

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"


@router.get("/{user_email}/teams", response_model=CachedResponse)
async def get_user_teams(user_email: str, context: AppContext = Depends(get_context)):
    return cached_response(await context.users.get_user_teams(user_email))


@router.get("/{user_email}/shifts", response_model=CachedResponse)
async def get_user_shifts(
    user_email: str,
    date: Optional[str] = Query(None, pattern=DATE_PATTERN),
    context: AppContext = Depends(get_context),
):
    return cached_response(await context.users.get_user_shifts(user_email, date))


@router.get("/{user_email}/projects", response_model=CachedResponse)
async def get_user_projects(user_email: str, context: AppContext = Depends(get_context)):
    return cached_response(await context.users.get_user_projects(user_email))


@router.get("/{user_email}/dashboard", response_model=CachedResponse)
@monitored(SecurityEventType.DATA_ACCESS)
async def get_dashboard(
    user_email: str,
    request: Request,
    context: AppContext = Depends(get_context),
):
    """The full dashboard aggregate. Counted as data access for monitoring."""
    result = await context.users.get_dashboard(user_email)
    if result.value is None:
        raise HTTPException(status_code=503, detail="Dashboard data unavailable")
    return cached_response(result)


@teams_router.get("/{team_id}/members", response_model=CachedResponse)
async def get_team_members(team_id: str, context: AppContext = Depends(get_context)):
    return cached_response(await context.users.get_team_members(team_id))


@teams_router.get("/{team_id}/shifts", response_model=CachedResponse)
async def get_team_shifts(
    team_id: str,
    date: Optional[str] = Query(None, pattern=DATE_PATTERN),
    context: AppContext = Depends(get_context),
):
    return cached_response(await context.users.get_team_shifts(team_id, date))

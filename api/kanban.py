"""
Kanban Read API

Cached board, column, category and user-project reads. Every response
reports whether it was served from cache or the database.
"""

import logging
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from alignzo.context import AppContext
from alignzo.services import ReadResult

from .dependencies import get_context


logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/kanban", tags=["Kanban"])


class CachedResponse(BaseModel):
    success: bool = True
    data: Any
    source: str
    outcome: str


def cached_response(result: ReadResult) -> CachedResponse:
    return CachedResponse(
        data=result.value,
        source=result.source,
        outcome=result.outcome.value,
    )


class InvalidateResponse(BaseModel):
    success: bool


@router.get("/board/{project_id}", response_model=CachedResponse)
async def get_board(
    project_id: str,
    team_id: Optional[str] = Query(None),
    context: AppContext = Depends(get_context),
):
    return cached_response(await context.kanban.get_board(project_id, team_id))


@router.get("/columns/{project_id}", response_model=CachedResponse)
async def get_columns(project_id: str, context: AppContext = Depends(get_context)):
    return cached_response(await context.kanban.get_columns(project_id))


@router.get("/projects/{project_id}/categories", response_model=CachedResponse)
async def get_project_categories(project_id: str, context: AppContext = Depends(get_context)):
    return cached_response(await context.kanban.get_project_categories(project_id))


@router.get("/user-projects", response_model=CachedResponse)
async def get_user_projects(
    user_email: str = Query(..., min_length=3),
    context: AppContext = Depends(get_context),
):
    """Projects with categories and options for the project picker."""
    return cached_response(await context.kanban.get_user_projects(user_email))


@router.post("/board/{project_id}/invalidate", response_model=InvalidateResponse)
async def invalidate_board(
    project_id: str,
    team_id: Optional[str] = Query(None),
    context: AppContext = Depends(get_context),
):
    """Called after board writes. Without a team, all project-level data is dropped."""
    return InvalidateResponse(success=await context.kanban.invalidate(project_id, team_id))

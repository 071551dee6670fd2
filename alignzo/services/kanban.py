"""
Kanban Service

Cached read paths for boards, columns, project categories and the
projects a user can work on.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from alignzo.cache.background import DetachedTasks
from alignzo.cache.kanban import KanbanCache
from alignzo.data.base import FetchResult, KanbanSource, Row
from alignzo.services.cache_aside import ReadResult, read_through

logger = logging.getLogger(__name__)

NO_TEAM = "no-team"


def has_category_options(projects: List[Row]) -> bool:
    """True if any project carries a category with at least one option."""
    return any(
        category.get("options")
        for project in projects
        for category in (project.get("categories") or [])
    )


class KanbanService:
    """
    Cache-aside reads for kanban data.

    Usage:
        service = KanbanService(kanban_cache, source, tasks)
        board = await service.get_board(project_id, team_id)
        board.value, board.outcome
    """

    def __init__(self, cache: KanbanCache, source: KanbanSource, tasks: DetachedTasks):
        self._cache = cache
        self._source = source
        self._tasks = tasks

    async def get_board(self, project_id: str, team_id: Optional[str] = None) -> ReadResult[List[Row]]:
        team_key = team_id or NO_TEAM
        return await read_through(
            f"board {project_id}:{team_key}",
            cache_get=lambda: self._cache.get_board(project_id, team_key),
            fetch=lambda: self._source.get_board(project_id, team_id),
            cache_set=lambda data: self._cache.set_board(project_id, team_key, data),
            tasks=self._tasks,
        )

    async def get_columns(self, project_id: str) -> ReadResult[List[Row]]:
        return await read_through(
            f"columns {project_id}",
            cache_get=lambda: self._cache.get_columns(project_id),
            fetch=lambda: self._source.get_columns(project_id),
            cache_set=lambda data: self._cache.set_columns(project_id, data),
            tasks=self._tasks,
        )

    async def get_project_categories(self, project_id: str) -> ReadResult[List[Row]]:
        return await read_through(
            f"project categories {project_id}",
            cache_get=lambda: self._cache.get_project_categories(project_id),
            fetch=lambda: self._source.get_project_categories(project_id),
            cache_set=lambda data: self._cache.set_project_categories(project_id, data),
            tasks=self._tasks,
        )

    async def get_user_projects(self, user_email: str) -> ReadResult[List[Row]]:
        """
        Projects for a user, each with categories and their options.

        Cached lists written before options were embedded are rejected,
        dropped and rebuilt.
        """
        return await read_through(
            f"user projects {user_email}",
            cache_get=lambda: self._cache.get_user_projects(user_email),
            fetch=lambda: self._fetch_enriched_projects(user_email),
            cache_set=lambda data: self._cache.set_user_projects(user_email, data),
            tasks=self._tasks,
            is_hit=lambda cached: bool(cached) and has_category_options(cached),
            on_stale=lambda: self._cache.invalidate_user(user_email),
            fallback=lambda: self._source.get_user_projects(user_email),
        )

    async def _attach_categories(self, project: Row) -> Row:
        project = dict(project)
        try:
            categories = await self._source.get_project_categories(project["id"])
            if not categories.success:
                project["categories"] = []
                return project

            options = await self._source.get_category_options(
                [c["id"] for c in categories.data or []]
            )
            by_category: Dict[Any, List[Row]] = {}
            for option in (options.data or []) if options.success else []:
                by_category.setdefault(option.get("category_id"), []).append(option)

            project["categories"] = [
                {**category, "options": by_category.get(category["id"], [])}
                for category in categories.data or []
            ]
        except Exception as e:
            logger.warning(f"Error loading categories for project {project.get('id')}: {e}")
            project["categories"] = []
        return project

    async def _fetch_enriched_projects(self, user_email: str) -> FetchResult[List[Row]]:
        result = await self._source.get_user_projects(user_email)
        if not result.success or result.data is None:
            return result
        projects = await asyncio.gather(
            *(self._attach_categories(project) for project in result.data)
        )
        return FetchResult.ok(list(projects))

    # =========================================================================
    # Invalidation after writes
    # =========================================================================

    async def invalidate(self, project_id: str, team_id: Optional[str] = None) -> bool:
        """Drop one team's board, or all project-level kanban data."""
        if team_id:
            return await self._cache.invalidate_board(project_id, team_id)
        return await self._cache.invalidate_project(project_id)

    async def invalidate_user_projects(self, user_email: str) -> bool:
        return await self._cache.invalidate_user(user_email)

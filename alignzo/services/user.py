"""
User Service

Cached read paths for a user's teams, shifts and projects, team rosters
and shifts, and the dashboard aggregate. List reads only count a cached
value as a hit when it is non-empty.
"""

import asyncio
import logging
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional

from alignzo.cache.background import DetachedTasks
from alignzo.cache.user import UserCache
from alignzo.data.base import FetchResult, Row, UserSource
from alignzo.services.cache_aside import ReadResult, is_non_empty, read_through
from alignzo.services.dashboard import (
    empty_work_summary,
    summarize_shifts,
    summarize_work_logs,
)

logger = logging.getLogger(__name__)


class UserService:
    """Cache-aside reads for user and team data."""

    def __init__(
        self,
        cache: UserCache,
        source: UserSource,
        tasks: DetachedTasks,
        today: Callable[[], date] = date.today,
        now: Callable[[], datetime] = datetime.utcnow,
    ):
        self._cache = cache
        self._source = source
        self._tasks = tasks
        self._today = today
        self._now = now

    async def get_user_teams(self, user_email: str) -> ReadResult[List[Row]]:
        return await read_through(
            f"user teams {user_email}",
            cache_get=lambda: self._cache.get_user_teams(user_email),
            fetch=lambda: self._source.get_user_teams(user_email),
            cache_set=lambda data: self._cache.set_user_teams(user_email, data),
            tasks=self._tasks,
            is_hit=is_non_empty,
        )

    async def get_user_shifts(
        self, user_email: str, shift_date: Optional[str] = None
    ) -> ReadResult[List[Row]]:
        return await read_through(
            f"user shifts {user_email}:{shift_date or 'all'}",
            cache_get=lambda: self._cache.get_user_shifts(user_email, shift_date),
            fetch=lambda: self._source.get_user_shifts(user_email, shift_date),
            cache_set=lambda data: self._cache.set_user_shifts(user_email, data, shift_date),
            tasks=self._tasks,
            is_hit=is_non_empty,
        )

    async def get_user_projects(self, user_email: str) -> ReadResult[List[Row]]:
        return await read_through(
            f"user projects {user_email}",
            cache_get=lambda: self._cache.get_user_projects(user_email),
            fetch=lambda: self._source.get_user_projects(user_email),
            cache_set=lambda data: self._cache.set_user_projects(user_email, data),
            tasks=self._tasks,
            is_hit=is_non_empty,
        )

    async def get_team_members(self, team_id: str) -> ReadResult[List[Row]]:
        return await read_through(
            f"team members {team_id}",
            cache_get=lambda: self._cache.get_team_members(team_id),
            fetch=lambda: self._source.get_team_members(team_id),
            cache_set=lambda data: self._cache.set_team_members(team_id, data),
            tasks=self._tasks,
            is_hit=is_non_empty,
        )

    async def get_team_shifts(
        self, team_id: str, shift_date: Optional[str] = None
    ) -> ReadResult[List[Row]]:
        return await read_through(
            f"team shifts {team_id}:{shift_date or 'all'}",
            cache_get=lambda: self._cache.get_team_shifts(team_id, shift_date),
            fetch=lambda: self._source.get_team_shifts(team_id, shift_date),
            cache_set=lambda data: self._cache.set_team_shifts(team_id, data, shift_date),
            tasks=self._tasks,
            is_hit=is_non_empty,
        )

    # =========================================================================
    # Dashboard
    # =========================================================================

    async def get_dashboard(self, user_email: str) -> ReadResult[Optional[Dict[str, Any]]]:
        """The whole dashboard in one cached document. None if it cannot be built."""
        return await read_through(
            f"dashboard {user_email}",
            cache_get=lambda: self._cache.get_dashboard(user_email),
            fetch=lambda: self._build_dashboard(user_email),
            cache_set=lambda data: self._cache.set_dashboard(user_email, data),
            tasks=self._tasks,
            default=lambda: None,
        )

    async def _work_summary(self, user_email: str) -> Dict[str, Any]:
        logs = await self._source.get_work_logs(user_email)
        if not logs.success:
            logger.error(f"Error loading work logs for {user_email}: {logs.error}")
            return empty_work_summary()
        return summarize_work_logs(logs.data or [], self._now())

    async def _build_dashboard(self, user_email: str) -> FetchResult[Dict[str, Any]]:
        user, teams, shifts, projects, work = await asyncio.gather(
            self._source.get_user(user_email),
            self.get_user_teams(user_email),
            self.get_user_shifts(user_email),
            self.get_user_projects(user_email),
            self._work_summary(user_email),
        )

        availability = await self._source.get_team_availability(self._today().isoformat())
        if not availability.success:
            logger.error(f"Error loading team availability: {availability.error}")

        return FetchResult.ok({
            "user": user.data if user.success else None,
            "teams": teams.value,
            "shifts": shifts.value,
            "projects": projects.value,
            "user_shift": summarize_shifts(shifts.value, self._today()),
            "stats": work["stats"],
            "project_hours": work["project_hours"],
            "recent_work_logs": work["recent_work_logs"],
            "team_availability": availability.data if availability.success else [],
        })

    # =========================================================================
    # Invalidation after writes
    # =========================================================================

    async def invalidate_user(self, user_email: str) -> bool:
        return await self._cache.invalidate_user(user_email)

    async def invalidate_user_shifts(self, user_email: str) -> bool:
        return await self._cache.invalidate_user_shifts(user_email)

    async def invalidate_team(self, team_id: str) -> bool:
        return await self._cache.invalidate_team(team_id)

    async def invalidate_project(self, project_id: str) -> bool:
        return await self._cache.invalidate_project(project_id)

"""
User Cache

Key naming and get/set/invalidate for per-user and per-team data:
teams, shifts, projects, the dashboard aggregate, team members and
team shifts.
"""

import logging
from datetime import date
from typing import Any, Callable, Dict, Iterable, List, Optional

from alignzo.cache.strategy import CacheStrategy


logger = logging.getLogger(__name__)


class UserCache:
    """User and team cache keys routed through the cache strategy."""

    def __init__(
        self,
        strategy: CacheStrategy,
        today: Callable[[], date] = date.today,
    ):
        self._strategy = strategy
        self._today = today

    # =========================================================================
    # Key builders
    # =========================================================================

    @staticmethod
    def user_key(user_email: str) -> str:
        return f"user:{user_email}"

    @staticmethod
    def user_teams_key(user_email: str) -> str:
        return f"user:teams:{user_email}"

    @staticmethod
    def user_shifts_key(user_email: str, shift_date: Optional[str] = None) -> str:
        return f"user:shifts:{user_email}:{shift_date or 'all'}"

    @staticmethod
    def user_projects_key(user_email: str) -> str:
        return f"user:projects:{user_email}"

    @staticmethod
    def user_dashboard_key(user_email: str) -> str:
        return f"user:dashboard:{user_email}"

    @staticmethod
    def team_members_key(team_id: str) -> str:
        return f"team:members:{team_id}"

    @staticmethod
    def team_shifts_key(team_id: str, shift_date: Optional[str] = None) -> str:
        return f"team:shifts:{team_id}:{shift_date or 'all'}"

    @staticmethod
    def project_teams_key(project_id: str) -> str:
        return f"project:teams:{project_id}"

    # =========================================================================
    # Get / set
    # =========================================================================

    async def get_user_teams(self, user_email: str) -> Optional[List[Dict[str, Any]]]:
        return await self._strategy.get(self.user_teams_key(user_email), "user")

    async def set_user_teams(self, user_email: str, teams: List[Dict[str, Any]]) -> bool:
        return await self._strategy.set(self.user_teams_key(user_email), teams, "user")

    async def get_user_shifts(
        self, user_email: str, shift_date: Optional[str] = None
    ) -> Optional[List[Dict[str, Any]]]:
        return await self._strategy.get(self.user_shifts_key(user_email, shift_date), "user")

    async def set_user_shifts(
        self, user_email: str, shifts: List[Dict[str, Any]], shift_date: Optional[str] = None
    ) -> bool:
        return await self._strategy.set(
            self.user_shifts_key(user_email, shift_date), shifts, "user"
        )

    async def get_user_projects(self, user_email: str) -> Optional[List[Dict[str, Any]]]:
        return await self._strategy.get(self.user_projects_key(user_email), "project")

    async def set_user_projects(self, user_email: str, projects: List[Dict[str, Any]]) -> bool:
        return await self._strategy.set(self.user_projects_key(user_email), projects, "project")

    async def get_dashboard(self, user_email: str) -> Optional[Dict[str, Any]]:
        return await self._strategy.get(self.user_dashboard_key(user_email), "user")

    async def set_dashboard(self, user_email: str, data: Dict[str, Any]) -> bool:
        return await self._strategy.set(self.user_dashboard_key(user_email), data, "user")

    async def get_team_members(self, team_id: str) -> Optional[List[Dict[str, Any]]]:
        return await self._strategy.get(self.team_members_key(team_id), "user")

    async def set_team_members(self, team_id: str, members: List[Dict[str, Any]]) -> bool:
        return await self._strategy.set(self.team_members_key(team_id), members, "user")

    async def get_team_shifts(
        self, team_id: str, shift_date: Optional[str] = None
    ) -> Optional[List[Dict[str, Any]]]:
        return await self._strategy.get(self.team_shifts_key(team_id, shift_date), "user")

    async def set_team_shifts(
        self, team_id: str, shifts: List[Dict[str, Any]], shift_date: Optional[str] = None
    ) -> bool:
        return await self._strategy.set(self.team_shifts_key(team_id, shift_date), shifts, "user")

    async def get_project_teams(self, project_id: str) -> Optional[List[Dict[str, Any]]]:
        return await self._strategy.get(self.project_teams_key(project_id), "project")

    async def set_project_teams(self, project_id: str, teams: List[Dict[str, Any]]) -> bool:
        return await self._strategy.set(self.project_teams_key(project_id), teams, "project")

    # =========================================================================
    # Invalidation
    # =========================================================================

    async def invalidate_user(self, user_email: str) -> bool:
        ok = await self._strategy.delete_many([
            self.user_key(user_email),
            self.user_teams_key(user_email),
            self.user_projects_key(user_email),
            self.user_dashboard_key(user_email),
        ])
        logger.info(f"Invalidated user cache for {user_email}")
        return ok

    async def invalidate_user_shifts(self, user_email: str) -> bool:
        """Clear the all-dates and today's shift entries for a user."""
        ok = await self._strategy.delete_many([
            self.user_shifts_key(user_email),
            self.user_shifts_key(user_email, self._today().isoformat()),
        ])
        logger.info(f"Invalidated user shifts for {user_email}")
        return ok

    async def invalidate_team(self, team_id: str) -> bool:
        ok = await self._strategy.delete_many([
            self.team_members_key(team_id),
            self.team_shifts_key(team_id),
            self.team_shifts_key(team_id, self._today().isoformat()),
        ])
        logger.info(f"Invalidated team cache for {team_id}")
        return ok

    async def invalidate_project(self, project_id: str) -> bool:
        ok = await self._strategy.delete(self.project_teams_key(project_id))
        logger.info(f"Invalidated project cache for {project_id}")
        return ok

    async def invalidate_related_caches(
        self,
        user_email: str,
        team_ids: Iterable[str] = (),
        project_ids: Iterable[str] = (),
    ) -> bool:
        """
        Clear a user's caches plus those of the given teams and projects.

        Every key is attempted; the result is False if any delete failed.
        """
        results = [await self.invalidate_user(user_email)]
        for team_id in team_ids:
            results.append(await self.invalidate_team(team_id))
        for project_id in project_ids:
            results.append(await self.invalidate_project(project_id))
        logger.info(f"Invalidated related caches for {user_email}")
        return all(results)

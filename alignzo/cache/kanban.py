"""
Kanban Cache

Key naming and get/set/invalidate for board, column, project and
user-project data. Every key family has its own literal prefix.
"""

import glob
import logging
from typing import Any, Dict, List, Optional

from alignzo.cache.strategy import CacheStrategy


logger = logging.getLogger(__name__)


class KanbanCache:
    """Kanban cache keys routed through the cache strategy."""

    BOARD_CATEGORY = "kanban"
    PROJECT_CATEGORY = "project"
    USER_CATEGORY = "user"

    def __init__(self, strategy: CacheStrategy):
        self._strategy = strategy

    @property
    def strategy(self) -> CacheStrategy:
        return self._strategy

    # =========================================================================
    # Key builders
    # =========================================================================

    @staticmethod
    def board_key(project_id: str, team_id: str) -> str:
        return f"kanban:board:{project_id}:{team_id}"

    @staticmethod
    def columns_key(project_id: str) -> str:
        return f"kanban:columns:{project_id}"

    @staticmethod
    def project_key(project_id: str) -> str:
        return f"kanban:project:{project_id}"

    @staticmethod
    def project_categories_key(project_id: str) -> str:
        return f"kanban:project-categories:{project_id}"

    @staticmethod
    def user_projects_key(user_email: str) -> str:
        # v2: entries carry categories with their options
        return f"kanban:user-projects-v2:{user_email}"

    # =========================================================================
    # Board
    # =========================================================================

    async def get_board(self, project_id: str, team_id: str) -> Optional[List[Dict[str, Any]]]:
        return await self._strategy.get(
            self.board_key(project_id, team_id), self.BOARD_CATEGORY
        )

    async def set_board(self, project_id: str, team_id: str, data: List[Dict[str, Any]]) -> bool:
        return await self._strategy.set(
            self.board_key(project_id, team_id), data, self.BOARD_CATEGORY
        )

    async def invalidate_board(self, project_id: str, team_id: str) -> bool:
        return await self._strategy.delete(self.board_key(project_id, team_id))

    @staticmethod
    def project_boards_pattern(project_id: str) -> str:
        # Glob characters in the id match literally
        return f"kanban:board:{glob.escape(project_id)}:*"

    async def invalidate_project_boards(self, project_id: str) -> bool:
        """Drop the board of every team working on a project."""
        return await self._strategy.invalidate_pattern(self.project_boards_pattern(project_id))

    # =========================================================================
    # Columns
    # =========================================================================

    async def get_columns(self, project_id: str) -> Optional[List[Dict[str, Any]]]:
        return await self._strategy.get(self.columns_key(project_id), self.BOARD_CATEGORY)

    async def set_columns(self, project_id: str, data: List[Dict[str, Any]]) -> bool:
        return await self._strategy.set(self.columns_key(project_id), data, self.BOARD_CATEGORY)

    # =========================================================================
    # Project metadata and categories
    # =========================================================================

    async def get_project(self, project_id: str) -> Optional[Dict[str, Any]]:
        return await self._strategy.get(self.project_key(project_id), self.PROJECT_CATEGORY)

    async def set_project(self, project_id: str, data: Dict[str, Any]) -> bool:
        return await self._strategy.set(self.project_key(project_id), data, self.PROJECT_CATEGORY)

    async def get_project_categories(self, project_id: str) -> Optional[List[Dict[str, Any]]]:
        return await self._strategy.get(
            self.project_categories_key(project_id), self.PROJECT_CATEGORY
        )

    async def set_project_categories(self, project_id: str, data: List[Dict[str, Any]]) -> bool:
        return await self._strategy.set(
            self.project_categories_key(project_id), data, self.PROJECT_CATEGORY
        )

    # =========================================================================
    # User projects
    # =========================================================================

    async def get_user_projects(self, user_email: str) -> Optional[List[Dict[str, Any]]]:
        return await self._strategy.get(self.user_projects_key(user_email), self.USER_CATEGORY)

    async def set_user_projects(self, user_email: str, data: List[Dict[str, Any]]) -> bool:
        return await self._strategy.set(
            self.user_projects_key(user_email), data, self.USER_CATEGORY
        )

    # =========================================================================
    # Bulk invalidation
    # =========================================================================

    async def invalidate_project(self, project_id: str) -> bool:
        """Clear project metadata, columns, categories and every team board for a project."""
        keys_ok = await self._strategy.delete_many([
            self.project_key(project_id),
            self.columns_key(project_id),
            self.project_categories_key(project_id),
        ])
        boards_ok = await self.invalidate_project_boards(project_id)
        ok = keys_ok and boards_ok
        logger.info(f"Invalidated kanban project cache for {project_id}")
        return ok

    async def invalidate_user(self, user_email: str) -> bool:
        return await self._strategy.delete(self.user_projects_key(user_email))

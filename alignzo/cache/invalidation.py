"""
Cache Invalidation Service

Event-driven cache invalidation with minimal scope.
Principle: Invalidate as narrowly as possible, but never leave a key
derived from the changed entity behind.

Events trigger targeted cache invalidation:
- TASK_*: the affected board (or every team's board for the project)
- PROJECT_UPDATED / CATEGORIES_UPDATED: project metadata, columns, categories
  and every team board
- MEMBERSHIP_CHANGED: the user's caches plus related team and project caches
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, List, Optional, Sequence, Tuple

from alignzo.cache.kanban import KanbanCache
from alignzo.cache.user import UserCache


logger = logging.getLogger(__name__)


class CacheEvent(Enum):
    """Events that trigger cache invalidation."""

    # Board changes
    TASK_CREATED = "task_created"
    TASK_UPDATED = "task_updated"
    TASK_MOVED = "task_moved"
    TASK_DELETED = "task_deleted"
    COLUMNS_UPDATED = "columns_updated"

    # Project changes
    PROJECT_UPDATED = "project_updated"
    CATEGORIES_UPDATED = "categories_updated"

    # User and team changes
    USER_UPDATED = "user_updated"
    USER_PROJECTS_CHANGED = "user_projects_changed"
    SHIFTS_UPDATED = "shifts_updated"
    TEAM_UPDATED = "team_updated"
    MEMBERSHIP_CHANGED = "membership_changed"

    # Manual invalidation
    MANUAL_INVALIDATE_PROJECT = "manual_invalidate_project"
    MANUAL_FLUSH = "manual_flush"


BOARD_EVENTS = (
    CacheEvent.TASK_CREATED,
    CacheEvent.TASK_UPDATED,
    CacheEvent.TASK_MOVED,
    CacheEvent.TASK_DELETED,
)


@dataclass
class InvalidationResult:
    """Result of a cache invalidation operation."""
    event: CacheEvent
    success: bool
    operations: int
    duration_ms: float
    errors: List[str] = field(default_factory=list)


class CacheInvalidator:
    """
    Handles cache invalidation based on events.

    Each event maps to a set of domain-cache invalidations. All of them
    are attempted even when an earlier one fails.
    """

    def __init__(self, kanban_cache: KanbanCache, user_cache: UserCache):
        self._kanban = kanban_cache
        self._user = user_cache

    def _plan(
        self,
        event: CacheEvent,
        project_id: Optional[str],
        team_id: Optional[str],
        user_email: Optional[str],
        team_ids: Sequence[str],
        project_ids: Sequence[str],
    ) -> List[Tuple[str, Awaitable[bool]]]:
        kanban, user = self._kanban, self._user
        ops: List[Tuple[str, Awaitable[bool]]] = []

        if event in BOARD_EVENTS:
            if project_id and team_id:
                ops.append(("board", kanban.invalidate_board(project_id, team_id)))
            elif project_id:
                ops.append(("project_boards", kanban.invalidate_project_boards(project_id)))

        elif event == CacheEvent.COLUMNS_UPDATED:
            if project_id:
                ops.append(("project", kanban.invalidate_project(project_id)))

        elif event in (CacheEvent.PROJECT_UPDATED, CacheEvent.CATEGORIES_UPDATED):
            if project_id:
                ops.append(("project", kanban.invalidate_project(project_id)))
            # Cached user-project lists embed categories
            if user_email:
                ops.append(("user_projects", kanban.invalidate_user(user_email)))

        elif event == CacheEvent.USER_UPDATED:
            if user_email:
                ops.append(("user", user.invalidate_user(user_email)))

        elif event == CacheEvent.USER_PROJECTS_CHANGED:
            if user_email:
                ops.append(("kanban_user", kanban.invalidate_user(user_email)))
                ops.append(("user", user.invalidate_user(user_email)))

        elif event == CacheEvent.SHIFTS_UPDATED:
            if user_email:
                ops.append(("user_shifts", user.invalidate_user_shifts(user_email)))
                ops.append(("user", user.invalidate_user(user_email)))
            if team_id:
                ops.append(("team", user.invalidate_team(team_id)))

        elif event == CacheEvent.TEAM_UPDATED:
            if team_id:
                ops.append(("team", user.invalidate_team(team_id)))

        elif event == CacheEvent.MEMBERSHIP_CHANGED:
            if user_email:
                ops.append(("related", user.invalidate_related_caches(
                    user_email, team_ids, project_ids,
                )))
                ops.append(("kanban_user", kanban.invalidate_user(user_email)))

        elif event == CacheEvent.MANUAL_INVALIDATE_PROJECT:
            if project_id:
                ops.append(("project", kanban.invalidate_project(project_id)))
                ops.append(("project_teams", user.invalidate_project(project_id)))

        return ops

    async def handle_event(
        self,
        event: CacheEvent,
        project_id: Optional[str] = None,
        team_id: Optional[str] = None,
        user_email: Optional[str] = None,
        team_ids: Sequence[str] = (),
        project_ids: Sequence[str] = (),
    ) -> InvalidationResult:
        """Handle cache invalidation for an event."""
        start_time = time.perf_counter()
        errors: List[str] = []

        logger.info(
            f"Cache invalidation event: {event.value}, project={project_id}, "
            f"team={team_id}, user={user_email}"
        )

        if event == CacheEvent.MANUAL_FLUSH:
            ops = [("flush", self._kanban.strategy.store.flush())]
        else:
            ops = self._plan(event, project_id, team_id, user_email, team_ids, project_ids)

        for name, operation in ops:
            try:
                if not await operation:
                    errors.append(f"{name}: invalidation incomplete")
            except Exception as e:
                errors.append(f"{name}: {e}")
                logger.error(f"Cache invalidation error in {name}: {e}")

        duration = (time.perf_counter() - start_time) * 1000

        result = InvalidationResult(
            event=event,
            success=not errors,
            operations=len(ops),
            duration_ms=duration,
            errors=errors,
        )

        logger.info(
            f"Invalidation complete: {len(ops)} operations, "
            f"{len(errors)} errors, duration: {duration:.2f}ms"
        )

        return result

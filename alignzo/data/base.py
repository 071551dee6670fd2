"""
Data-fetch contracts.

The caching layer never talks to the database directly. Every read path
goes through a source that answers with a FetchResult; ``success=False``
and a raised exception are handled the same way by the callers.
"""

from dataclasses import dataclass
from typing import Any, Dict, Generic, List, Optional, Protocol, Sequence, TypeVar

T = TypeVar("T")

Row = Dict[str, Any]


@dataclass
class FetchResult(Generic[T]):
    """Outcome of a source-of-truth read."""
    success: bool
    data: Optional[T] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, data: T) -> "FetchResult[T]":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str) -> "FetchResult[T]":
        return cls(success=False, error=error)


class KanbanSource(Protocol):
    """Source of truth for board and project data."""

    async def get_board(self, project_id: str, team_id: Optional[str]) -> FetchResult[List[Row]]:
        """Active columns with their active tasks nested under ``tasks``."""
        ...

    async def get_columns(self, project_id: str) -> FetchResult[List[Row]]:
        ...

    async def get_user_projects(self, user_email: str) -> FetchResult[List[Row]]:
        ...

    async def get_project_categories(self, project_id: str) -> FetchResult[List[Row]]:
        ...

    async def get_category_options(self, category_ids: Sequence[str]) -> FetchResult[List[Row]]:
        ...


class UserSource(Protocol):
    """Source of truth for users, teams, shifts and work logs."""

    async def get_user(self, user_email: str) -> FetchResult[Row]:
        ...

    async def get_user_teams(self, user_email: str) -> FetchResult[List[Row]]:
        ...

    async def get_user_shifts(
        self, user_email: str, shift_date: Optional[str] = None
    ) -> FetchResult[List[Row]]:
        ...

    async def get_user_projects(self, user_email: str) -> FetchResult[List[Row]]:
        ...

    async def get_team_members(self, team_id: str) -> FetchResult[List[Row]]:
        ...

    async def get_team_shifts(
        self, team_id: str, shift_date: Optional[str] = None
    ) -> FetchResult[List[Row]]:
        ...

    async def get_work_logs(self, user_email: str) -> FetchResult[List[Row]]:
        """Work logs, newest first."""
        ...

    async def get_team_availability(self, shift_date: str) -> FetchResult[List[Row]]:
        ...

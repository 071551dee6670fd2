"""
Supabase Data Sources

Source-of-truth reads against the hosted Postgres through its PostgREST API.

Required environment variables:
- SUPABASE_URL: Project URL (https://<ref>.supabase.co)
- SUPABASE_SERVICE_KEY: Service role key

Optional:
- SUPABASE_TIMEOUT: Request timeout in seconds (default: 10)
"""

import asyncio
import logging
from functools import lru_cache
from typing import Any, Awaitable, Dict, List, Mapping, Optional, Sequence

import httpx
from pydantic_settings import BaseSettings

from alignzo.data.base import FetchResult, Row
from alignzo.services.dashboard import build_team_availability

logger = logging.getLogger(__name__)


class SupabaseConfig(BaseSettings):
    """Supabase connection settings loaded from environment."""

    supabase_url: str = ""
    supabase_service_key: str = ""
    supabase_timeout: float = 10.0

    class Config:
        env_prefix = ""
        extra = "ignore"

    @property
    def rest_url(self) -> str:
        return f"{self.supabase_url.rstrip('/')}/rest/v1"


@lru_cache(maxsize=1)
def get_supabase_config() -> SupabaseConfig:
    config = SupabaseConfig()
    if not config.supabase_url:
        logger.warning("SUPABASE_URL not set - data sources will fail")
    return config


class SupabaseError(Exception):
    """Raised when PostgREST answers with an error status."""

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def build_params(
    select: str = "*",
    filters: Optional[Mapping[str, Any]] = None,
    order: Optional[str] = None,
    ascending: bool = True,
    limit: Optional[int] = None,
) -> Dict[str, str]:
    """
    Translate a simple filter dict into PostgREST query parameters.

    Sequence values become ``in.(...)`` filters, everything else ``eq.``.
    """
    params = {"select": select}
    for column, value in (filters or {}).items():
        if isinstance(value, (list, tuple, set)):
            params[column] = "in.(" + ",".join(_format_value(v) for v in value) + ")"
        else:
            params[column] = f"eq.{_format_value(value)}"
    if order:
        params["order"] = f"{order}.{'asc' if ascending else 'desc'}"
    if limit is not None:
        params["limit"] = str(limit)
    return params


class SupabaseClient:
    """
    Minimal async PostgREST client.

    Usage:
        client = SupabaseClient()
        rows = await client.select("projects", filters={"is_active": True}, order="name")
        await client.close()
    """

    def __init__(
        self,
        config: Optional[SupabaseConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config or get_supabase_config()
        key = self.config.supabase_service_key
        self._client = httpx.AsyncClient(
            base_url=self.config.rest_url,
            headers={
                "apikey": key,
                "Authorization": f"Bearer {key}",
                "Accept": "application/json",
            },
            timeout=httpx.Timeout(self.config.supabase_timeout),
            transport=transport,
        )

    async def select(
        self,
        table: str,
        select: str = "*",
        filters: Optional[Mapping[str, Any]] = None,
        order: Optional[str] = None,
        ascending: bool = True,
        limit: Optional[int] = None,
    ) -> List[Row]:
        """Read rows from a table. Raises SupabaseError or httpx.HTTPError."""
        response = await self._client.get(
            f"/{table}",
            params=build_params(select, filters, order, ascending, limit),
        )
        if response.status_code >= 400:
            raise SupabaseError(
                f"Query on {table} failed: {response.status_code} {response.text}",
                status_code=response.status_code,
            )
        return response.json()

    async def close(self):
        await self._client.aclose()


async def _guard(description: str, work: Awaitable[Any]) -> FetchResult:
    try:
        return FetchResult.ok(await work)
    except (SupabaseError, httpx.HTTPError) as e:
        logger.error(f"Failed to load {description}: {e}")
        return FetchResult.fail(str(e))


class SupabaseKanbanSource:
    """Board, column, project and category reads."""

    def __init__(self, client: SupabaseClient):
        self._client = client

    async def _board(self, project_id: str, team_id: Optional[str]) -> List[Row]:
        column_filters: Dict[str, Any] = {"project_id": project_id, "is_active": True}
        if team_id:
            column_filters["team_id"] = team_id

        columns, tasks = await asyncio.gather(
            self._client.select("kanban_columns", filters=column_filters, order="sort_order"),
            self._client.select(
                "kanban_tasks",
                filters={"project_id": project_id, "status": "active"},
                order="sort_order",
            ),
        )
        return [
            {**column, "tasks": [t for t in tasks if t.get("column_id") == column.get("id")]}
            for column in columns
        ]

    async def get_board(self, project_id: str, team_id: Optional[str]) -> FetchResult[List[Row]]:
        return await _guard(f"board {project_id}", self._board(project_id, team_id))

    async def get_columns(self, project_id: str) -> FetchResult[List[Row]]:
        return await _guard(
            f"columns for {project_id}",
            self._client.select(
                "kanban_columns",
                filters={"project_id": project_id, "is_active": True},
                order="sort_order",
            ),
        )

    async def _user_projects(self, user_email: str) -> List[Row]:
        team_ids = await _user_team_ids(self._client, user_email)
        if not team_ids:
            return []
        assignments = await self._client.select(
            "team_project_assignments",
            select="project_id,projects(id,name,product,country,is_active)",
            filters={"team_id": team_ids},
        )
        projects: Dict[str, Row] = {}
        for assignment in assignments:
            project = assignment.get("projects") or {"id": assignment["project_id"]}
            projects.setdefault(project["id"], dict(project))
        return sorted(projects.values(), key=lambda p: p.get("name") or "")

    async def get_user_projects(self, user_email: str) -> FetchResult[List[Row]]:
        return await _guard(f"projects for {user_email}", self._user_projects(user_email))

    async def get_project_categories(self, project_id: str) -> FetchResult[List[Row]]:
        return await _guard(
            f"categories for {project_id}",
            self._client.select(
                "project_categories",
                filters={"project_id": project_id, "is_active": True},
                order="sort_order",
            ),
        )

    async def get_category_options(self, category_ids: Sequence[str]) -> FetchResult[List[Row]]:
        if not category_ids:
            return FetchResult.ok([])
        return await _guard(
            f"options for {len(category_ids)} categories",
            self._client.select(
                "category_options",
                filters={"category_id": list(category_ids), "is_active": True},
                order="sort_order",
            ),
        )


async def _user_team_ids(client: SupabaseClient, user_email: str) -> List[str]:
    memberships = await client.select(
        "team_members",
        select="team_id,users!inner(email)",
        filters={"users.email": user_email},
    )
    return [m["team_id"] for m in memberships]


class SupabaseUserSource:
    """User, team, shift and work-log reads."""

    def __init__(self, client: SupabaseClient):
        self._client = client

    async def _user(self, user_email: str) -> Row:
        rows = await self._client.select("users", filters={"email": user_email}, limit=1)
        if not rows:
            raise SupabaseError(f"User not found: {user_email}", status_code=404)
        return rows[0]

    async def get_user(self, user_email: str) -> FetchResult[Row]:
        return await _guard(f"user {user_email}", self._user(user_email))

    async def _user_teams(self, user_email: str) -> List[Row]:
        memberships = await self._client.select(
            "team_members",
            select="team_id,teams(name,is_active),users!inner(email)",
            filters={"users.email": user_email},
        )
        teams = []
        for membership in memberships:
            team = membership.get("teams") or {}
            teams.append({
                "team_id": membership["team_id"],
                "team_name": team.get("name") or "Unknown Team",
                "is_active": team.get("is_active") is not False,
            })
        return teams

    async def get_user_teams(self, user_email: str) -> FetchResult[List[Row]]:
        return await _guard(f"teams for {user_email}", self._user_teams(user_email))

    async def _shifts(self, filters: Dict[str, Any]) -> List[Row]:
        rows = await self._client.select("shift_schedules", filters=filters, order="shift_date")
        return [
            {
                "shift_date": row.get("shift_date"),
                "shift_type": row.get("shift_type"),
                "start_time": row.get("start_time"),
                "end_time": row.get("end_time"),
                "project_id": row.get("project_id"),
                "team_id": row.get("team_id"),
                "user_email": row.get("user_email"),
            }
            for row in rows
        ]

    async def get_user_shifts(
        self, user_email: str, shift_date: Optional[str] = None
    ) -> FetchResult[List[Row]]:
        filters: Dict[str, Any] = {"user_email": user_email}
        if shift_date:
            filters["shift_date"] = shift_date
        return await _guard(f"shifts for {user_email}", self._shifts(filters))

    async def _user_projects(self, user_email: str) -> List[Row]:
        team_ids = await _user_team_ids(self._client, user_email)
        if not team_ids:
            return []
        assignments = await self._client.select(
            "team_project_assignments",
            select="project_id,projects(id,name,product,country,is_active)",
            filters={"team_id": team_ids},
        )
        projects = []
        for assignment in assignments:
            project = assignment.get("projects") or {}
            projects.append({
                "project_id": assignment["project_id"],
                "project_name": project.get("name") or "Unknown Project",
                "product": project.get("product") or "",
                "country": project.get("country") or "",
                "is_active": project.get("is_active") is not False,
            })
        return projects

    async def get_user_projects(self, user_email: str) -> FetchResult[List[Row]]:
        return await _guard(f"projects for {user_email}", self._user_projects(user_email))

    async def get_team_members(self, team_id: str) -> FetchResult[List[Row]]:
        return await _guard(
            f"members of team {team_id}",
            self._client.select(
                "team_members",
                select="user_id,users(email,full_name)",
                filters={"team_id": team_id},
            ),
        )

    async def get_team_shifts(
        self, team_id: str, shift_date: Optional[str] = None
    ) -> FetchResult[List[Row]]:
        filters: Dict[str, Any] = {"team_id": team_id}
        if shift_date:
            filters["shift_date"] = shift_date
        return await _guard(f"shifts for team {team_id}", self._shifts(filters))

    async def get_work_logs(self, user_email: str) -> FetchResult[List[Row]]:
        return await _guard(
            f"work logs for {user_email}",
            self._client.select(
                "work_logs",
                select="*,project:projects(name)",
                filters={"user_email": user_email},
                order="created_at",
                ascending=False,
            ),
        )

    async def _team_availability(self, shift_date: str) -> List[Row]:
        teams, members, shifts, assignments = await asyncio.gather(
            self._client.select("teams", filters={"is_active": True}, order="name"),
            self._client.select("team_members", select="team_id,user_id,users(email,full_name)"),
            self._client.select("shift_schedules", filters={"shift_date": shift_date}),
            self._client.select(
                "team_project_assignments", select="team_id,project_id,projects(name)"
            ),
        )
        enums: List[Row] = []
        if teams:
            enums = await self._client.select(
                "custom_shift_enums",
                select="team_id,shift_identifier,shift_name,start_time,end_time,is_default,color",
                filters={"team_id": [team["id"] for team in teams]},
            )
        return build_team_availability(teams, members, shifts, assignments, enums)

    async def get_team_availability(self, shift_date: str) -> FetchResult[List[Row]]:
        return await _guard(f"team availability for {shift_date}", self._team_availability(shift_date))

"""
Dashboard aggregation helpers.

Pure functions that turn shifts, work logs and team data into the
dashboard aggregate. Nothing here does I/O.
"""

from collections import OrderedDict
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence

Row = Dict[str, Any]

DEFAULT_SHIFT = "G"

SHIFT_MAPPINGS: Dict[str, Dict[str, str]] = {
    "G": {"name": "General", "color": "text-green-600", "icon": "Sun"},
    "N": {"name": "Night", "color": "text-blue-600", "icon": "Moon"},
    "E": {"name": "Evening", "color": "text-orange-600", "icon": "Sun"},
    "H": {"name": "Holiday", "color": "text-red-600", "icon": "Sun"},
    "M": {"name": "Morning", "color": "text-yellow-600", "icon": "Sun"},
}

PROJECT_COLORS = (
    "#3B82F6", "#EF4444", "#10B981", "#F59E0B",
    "#8B5CF6", "#EC4899", "#06B6D4", "#84CC16",
)

MAX_PROJECT_HOURS = 8
RECENT_WORK_LOGS = 5


def shift_display(shift_type: str) -> Dict[str, str]:
    return SHIFT_MAPPINGS.get(shift_type, SHIFT_MAPPINGS[DEFAULT_SHIFT])


def summarize_shifts(shifts: Sequence[Row], today: date) -> Dict[str, Any]:
    """Today's and tomorrow's shift for the dashboard header."""
    today_str = today.isoformat()
    tomorrow_str = (today + timedelta(days=1)).isoformat()

    today_shift = next((s for s in shifts if s.get("shift_date") == today_str), None)
    tomorrow_shift = next((s for s in shifts if s.get("shift_date") == tomorrow_str), None)

    today_type = (today_shift or {}).get("shift_type") or DEFAULT_SHIFT
    tomorrow_type = (tomorrow_shift or {}).get("shift_type") or DEFAULT_SHIFT
    today_info = shift_display(today_type)
    tomorrow_info = shift_display(tomorrow_type)

    return {
        "today_shift": today_type,
        "tomorrow_shift": tomorrow_type,
        "today_shift_name": today_info["name"],
        "tomorrow_shift_name": tomorrow_info["name"],
        "today_shift_color": today_info["color"],
        "tomorrow_shift_color": tomorrow_info["color"],
        "today_shift_icon": today_info["icon"],
        "tomorrow_shift_icon": tomorrow_info["icon"],
        "project_id": (today_shift or {}).get("project_id"),
        "team_id": (today_shift or {}).get("team_id"),
    }


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _hours(logs: Sequence[Row]) -> float:
    return sum(log.get("logged_duration_seconds") or 0 for log in logs) / 3600


def _hours_between(logs: Sequence[Row], start: datetime, end: datetime) -> float:
    in_range = []
    for log in logs:
        started = _parse_timestamp(log.get("start_time"))
        if started is not None and start <= started <= end:
            in_range.append(log)
    return _hours(in_range)


def work_log_stats(logs: Sequence[Row], now: datetime) -> Dict[str, float]:
    """
    Logged hours for today, this week (Sunday start), this month,
    this year and all time.
    """
    day_start = datetime.combine(now.date(), time.min)
    week_start = day_start - timedelta(days=(now.weekday() + 1) % 7)
    month_start = day_start.replace(day=1)
    if month_start.month == 12:
        next_month = month_start.replace(year=month_start.year + 1, month=1)
    else:
        next_month = month_start.replace(month=month_start.month + 1)
    year_start = day_start.replace(month=1, day=1)
    tick = timedelta(microseconds=1)

    return {
        "today_hours": _hours_between(logs, day_start, day_start + timedelta(days=1) - tick),
        "week_hours": _hours_between(logs, week_start, week_start + timedelta(days=7) - tick),
        "month_hours": _hours_between(logs, month_start, next_month - tick),
        "year_hours": _hours_between(logs, year_start, now),
        "total_hours": _hours(logs),
    }


def project_hours(logs: Sequence[Row]) -> List[Row]:
    """Hours per project, largest first, capped at the palette size."""
    totals: "OrderedDict[str, float]" = OrderedDict()
    for log in logs:
        name = (log.get("project") or {}).get("name") or "Unknown Project"
        totals[name] = totals.get(name, 0.0) + (log.get("logged_duration_seconds") or 0) / 3600

    # Colour follows first appearance, not rank
    breakdown = [
        {
            "project_name": name,
            "hours": round(hours, 2),
            "color": PROJECT_COLORS[index % len(PROJECT_COLORS)],
        }
        for index, (name, hours) in enumerate(totals.items())
    ]
    breakdown.sort(key=lambda item: item["hours"], reverse=True)
    return breakdown[:MAX_PROJECT_HOURS]


def empty_work_summary() -> Dict[str, Any]:
    return {
        "stats": {
            "today_hours": 0.0,
            "week_hours": 0.0,
            "month_hours": 0.0,
            "year_hours": 0.0,
            "total_hours": 0.0,
        },
        "project_hours": [],
        "recent_work_logs": [],
    }


def summarize_work_logs(logs: Sequence[Row], now: datetime) -> Dict[str, Any]:
    return {
        "stats": work_log_stats(logs, now),
        "project_hours": project_hours(logs),
        "recent_work_logs": list(logs[:RECENT_WORK_LOGS]),
    }


def build_team_availability(
    teams: Sequence[Row],
    members: Sequence[Row],
    shifts: Sequence[Row],
    assignments: Sequence[Row],
    shift_enums: Sequence[Row] = (),
) -> List[Row]:
    """
    Group each team's members by their shift type for one day.

    Members without a scheduled shift count as the default shift.
    """
    team_projects: Dict[str, Row] = {}
    for assignment in assignments:
        team_projects[assignment.get("team_id")] = {
            "project_id": assignment.get("project_id"),
            "project_name": (assignment.get("projects") or {}).get("name") or "Unknown Project",
        }

    availability = []
    for team in teams:
        team_id = team.get("id")
        team_shifts = {
            s.get("user_email"): s.get("shift_type")
            for s in shifts
            if s.get("team_id") == team_id
        }

        groups: Dict[str, Dict[str, Any]] = {}
        for member in members:
            if member.get("team_id") != team_id:
                continue
            email = (member.get("users") or {}).get("email")
            if not email:
                continue
            shift_type = team_shifts.get(email) or DEFAULT_SHIFT
            group = groups.setdefault(shift_type, {"users": [], "count": 0})
            group["users"].append(email)
            group["count"] += 1

        project = team_projects.get(team_id, {"project_id": "", "project_name": "Unknown Project"})
        availability.append({
            "team_id": team_id,
            "team_name": team.get("name"),
            "project_id": project["project_id"],
            "project_name": project["project_name"],
            "shifts": groups,
            "custom_enums": [
                {k: v for k, v in enum.items() if k != "team_id"}
                for enum in shift_enums
                if enum.get("team_id") == team_id
            ],
        })

    return availability

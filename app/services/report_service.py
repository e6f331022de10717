"""History and report aggregation over already-fetched break sessions.

Everything here is a pure function of its inputs: no database access, no
clock reads (callers pass ``now``), and no exceptions for missing optional
fields. Sessions are duck-typed, so ORM rows and plain objects with the same
attributes both work.
"""
import enum
import uuid
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from app.models.break_session import BreakStatus
from app.services.break_service import as_utc, elapsed_seconds

UNKNOWN = "Unknown"


class DateRange(str, enum.Enum):
    ALL = "all"
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"
    CUSTOM = "custom"


class SortKey(str, enum.Enum):
    RECENT = "recent"
    OLDEST = "oldest"
    LONGEST = "longest"
    VIOLATIONS = "violations"
    AGENT = "agent"


@dataclass(frozen=True)
class FilterCriteria:
    agent_id: uuid.UUID | None = None
    break_type_id: uuid.UUID | None = None
    status: BreakStatus | None = None
    agent_search: str | None = None
    date_range: DateRange = DateRange.ALL
    start: datetime | None = None
    end: datetime | None = None


@dataclass(frozen=True)
class Summary:
    total_sessions: int = 0
    ended_sessions: int = 0
    ongoing_sessions: int = 0
    total_duration_minutes: int = 0
    violation_count: int = 0
    total_violation_minutes: int = 0
    average_duration_minutes: int = 0


@dataclass
class AgentGroup:
    name: str
    count: int = 0
    violation_count: int = 0
    total_violation_seconds: int = 0


@dataclass
class BreakTypeGroup:
    name: str
    count: int = 0
    total_duration_minutes: float = 0.0


@dataclass
class Report:
    sessions: list
    summary: Summary
    by_agent: dict
    by_break_type: dict


def session_duration(session) -> int:
    """Elapsed whole seconds for an ended session; ongoing sessions count as zero."""
    end_time = getattr(session, "end_time", None)
    start_time = getattr(session, "start_time", None)
    if end_time is None or start_time is None:
        return 0
    return max(0, elapsed_seconds(start_time, end_time))


def _violation(session) -> int:
    return getattr(session, "violation_duration", None) or 0


def _agent_name(session) -> str:
    user = getattr(session, "user", None)
    return getattr(user, "name", None) or ""


def _break_type_name(session) -> str:
    break_type = getattr(session, "break_type", None)
    return getattr(break_type, "name", None) or ""


def resolve_window(
    criteria: FilterCriteria, now: datetime, tz: ZoneInfo | timezone = timezone.utc
) -> tuple[datetime, datetime] | None:
    """Turn a date range selection into a half-open ``[start, end)`` window.

    Weeks start on Sunday. A custom range missing either bound is unrestricted.
    """
    local_now = as_utc(now).astimezone(tz)
    today = local_now.replace(hour=0, minute=0, second=0, microsecond=0)

    if criteria.date_range == DateRange.TODAY:
        return today, today + timedelta(days=1)
    if criteria.date_range == DateRange.WEEK:
        # Python weekday(): Monday=0 .. Sunday=6
        week_start = today - timedelta(days=(today.weekday() + 1) % 7)
        return week_start, week_start + timedelta(days=7)
    if criteria.date_range == DateRange.MONTH:
        month_start = today.replace(day=1)
        if month_start.month == 12:
            next_month = month_start.replace(year=month_start.year + 1, month=1)
        else:
            next_month = month_start.replace(month=month_start.month + 1)
        return month_start, next_month
    if criteria.date_range == DateRange.CUSTOM:
        if criteria.start is None or criteria.end is None:
            return None
        return as_utc(criteria.start), as_utc(criteria.end)
    return None


def filter_sessions(
    sessions: Iterable,
    criteria: FilterCriteria,
    now: datetime,
    tz: ZoneInfo | timezone = timezone.utc,
) -> list:
    window = resolve_window(criteria, now, tz)
    search = criteria.agent_search.strip().lower() if criteria.agent_search else ""
    status = criteria.status.value if criteria.status is not None else None

    matched = []
    for s in sessions:
        if criteria.agent_id is not None and getattr(s, "user_id", None) != criteria.agent_id:
            continue
        if search and search not in _agent_name(s).lower():
            continue
        if criteria.break_type_id is not None and getattr(s, "break_type_id", None) != criteria.break_type_id:
            continue
        if status is not None and getattr(s, "status", None) != status:
            continue
        if window is not None:
            start_time = getattr(s, "start_time", None)
            if start_time is None:
                continue
            start_time = as_utc(start_time)
            if not (window[0] <= start_time < window[1]):
                continue
        matched.append(s)
    return matched


_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _start_key(session) -> datetime:
    start_time = getattr(session, "start_time", None)
    return as_utc(start_time) if start_time is not None else _EPOCH


def sort_sessions(sessions: Iterable, key: SortKey) -> list:
    """Return a new list ordered by ``key``; ties keep their input order."""
    items = list(sessions)
    if key == SortKey.RECENT:
        return sorted(items, key=_start_key, reverse=True)
    if key == SortKey.OLDEST:
        return sorted(items, key=_start_key)
    if key == SortKey.LONGEST:
        return sorted(items, key=lambda s: -session_duration(s))
    if key == SortKey.VIOLATIONS:
        return sorted(items, key=lambda s: -_violation(s))
    if key == SortKey.AGENT:
        return sorted(items, key=lambda s: _agent_name(s).casefold())
    return items


def summarize(sessions: Sequence) -> Summary:
    ended = [s for s in sessions if getattr(s, "status", None) == BreakStatus.ENDED.value]
    ongoing = [s for s in sessions if getattr(s, "status", None) == BreakStatus.ONGOING.value]
    total_seconds = sum(session_duration(s) for s in ended)
    violations = [s for s in sessions if _violation(s)]

    return Summary(
        total_sessions=len(sessions),
        ended_sessions=len(ended),
        ongoing_sessions=len(ongoing),
        total_duration_minutes=total_seconds // 60,
        violation_count=len(violations),
        total_violation_minutes=sum(_violation(s) for s in violations) // 60,
        average_duration_minutes=(total_seconds // len(ended)) // 60 if ended else 0,
    )


def group_by_agent(sessions: Iterable) -> dict[uuid.UUID | None, AgentGroup]:
    groups: dict[uuid.UUID | None, AgentGroup] = {}
    for s in sessions:
        agent_id = getattr(s, "user_id", None)
        group = groups.get(agent_id)
        if group is None:
            group = groups[agent_id] = AgentGroup(name=_agent_name(s) or UNKNOWN)
        group.count += 1
        violation = _violation(s)
        if violation:
            group.violation_count += 1
            group.total_violation_seconds += violation
    return groups


def group_by_break_type(sessions: Iterable) -> dict[uuid.UUID | None, BreakTypeGroup]:
    groups: dict[uuid.UUID | None, BreakTypeGroup] = {}
    seconds: dict[uuid.UUID | None, int] = {}
    for s in sessions:
        type_id = getattr(s, "break_type_id", None)
        if type_id not in groups:
            groups[type_id] = BreakTypeGroup(name=_break_type_name(s) or UNKNOWN)
            seconds[type_id] = 0
        groups[type_id].count += 1
        seconds[type_id] += session_duration(s)

    for type_id, group in groups.items():
        group.total_duration_minutes = round(seconds[type_id] / 60.0, 1)
    return groups


def build_report(
    sessions: Iterable,
    criteria: FilterCriteria,
    sort_key: SortKey,
    now: datetime,
    tz: ZoneInfo | timezone = timezone.utc,
) -> Report:
    """Manager history view: filter, sort, then aggregate the filtered set."""
    filtered = filter_sessions(sessions, criteria, now, tz)
    return Report(
        sessions=sort_sessions(filtered, sort_key),
        summary=summarize(filtered),
        by_agent=group_by_agent(filtered),
        by_break_type=group_by_break_type(filtered),
    )

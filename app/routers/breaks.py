import uuid
from dataclasses import asdict
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.dependencies import get_current_user, require_manager
from app.models.break_session import BreakStatus
from app.models.user import User
from app.schemas.break_session import (
    BreakSessionResponse,
    BreakStartRequest,
    BreakTypeCreate,
    BreakTypeResponse,
    BreakTypeUpdate,
)
from app.schemas.report import (
    AgentStats,
    BreakTypeStats,
    HistoryReportResponse,
    SummaryResponse,
)
from app.services import break_service, report_service
from app.services.report_service import DateRange, FilterCriteria, SortKey

router = APIRouter(prefix="/breaks", tags=["breaks"])


# --- Break types ---


@router.get("/types", response_model=list[BreakTypeResponse])
async def list_break_types(
    include_inactive: bool = Query(default=False),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await break_service.list_break_types(
        db, include_inactive=include_inactive and user.is_manager
    )


@router.post("/types", response_model=BreakTypeResponse, status_code=201)
async def create_break_type(
    data: BreakTypeCreate,
    manager: User = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    return await break_service.create_break_type(db, data.model_dump())


@router.patch("/types/{break_type_id}", response_model=BreakTypeResponse)
async def update_break_type(
    break_type_id: uuid.UUID,
    data: BreakTypeUpdate,
    manager: User = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    return await break_service.update_break_type(
        db, break_type_id, data.model_dump(exclude_unset=True)
    )


# --- Agent lifecycle ---


@router.post("/start", response_model=BreakSessionResponse, status_code=201)
async def start_break(
    data: BreakStartRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await break_service.start_break(db, user.id, data.break_type_id)


@router.post("/end", response_model=BreakSessionResponse)
async def end_break(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await break_service.end_break(db, user.id)


@router.get("/current", response_model=BreakSessionResponse | None)
async def current_break(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await break_service.get_ongoing_session(db, user.id)


@router.get("/history", response_model=list[BreakSessionResponse])
async def my_history(
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await break_service.list_history(db, user.id, limit=limit, offset=offset)


# --- Manager views ---


def _local_midnight(day: date, tz: ZoneInfo) -> datetime:
    return datetime.combine(day, time.min, tzinfo=tz)


@router.get("/history/all", response_model=HistoryReportResponse)
async def all_history(
    user_id: uuid.UUID | None = Query(default=None),
    break_type_id: uuid.UUID | None = Query(default=None),
    status: BreakStatus | None = Query(default=None),
    search: str | None = Query(default=None, max_length=255),
    date_range: DateRange = Query(default=DateRange.ALL),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    sort: SortKey = Query(default=SortKey.RECENT),
    manager: User = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    """Every agent's breaks with the filters, ordering and totals of the manager history view.

    ``start_date``/``end_date`` apply with ``date_range=custom`` and are inclusive days.
    ``truncated`` is set when more than ``HISTORY_MAX_LIMIT`` sessions matched.
    """
    tz = ZoneInfo(settings.TIMEZONE)
    now = datetime.now(timezone.utc)
    criteria = FilterCriteria(
        agent_id=user_id,
        break_type_id=break_type_id,
        status=status,
        agent_search=search,
        date_range=date_range,
        start=_local_midnight(start_date, tz) if start_date else None,
        end=_local_midnight(end_date + timedelta(days=1), tz) if end_date else None,
    )
    window = report_service.resolve_window(criteria, now, tz)

    # Filters run in SQL so the cap only ever drops rows that match them
    cap = settings.HISTORY_MAX_LIMIT
    sessions = await break_service.list_history(
        db,
        user_id=user_id,
        break_type_id=break_type_id,
        status=status.value if status else None,
        agent_search=search,
        since=window[0] if window else None,
        until=window[1] if window else None,
        limit=cap + 1,
    )
    truncated = len(sessions) > cap
    report = report_service.build_report(sessions[:cap], criteria, sort, now=now, tz=tz)

    return HistoryReportResponse(
        sessions=[BreakSessionResponse.model_validate(s) for s in report.sessions],
        summary=SummaryResponse(**asdict(report.summary)),
        by_agent=[
            AgentStats(user_id=agent_id, **asdict(group))
            for agent_id, group in report.by_agent.items()
        ],
        by_break_type=[
            BreakTypeStats(break_type_id=type_id, **asdict(group))
            for type_id, group in report.by_break_type.items()
        ],
        truncated=truncated,
    )


@router.get("/reports", response_model=list[BreakSessionResponse])
async def reports(
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    user_id: uuid.UUID | None = Query(default=None),
    manager: User = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    return await break_service.list_history(
        db, user_id=user_id, start_date=start_date, end_date=end_date,
        limit=settings.HISTORY_MAX_LIMIT,
    )

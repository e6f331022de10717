import logging
import uuid
from datetime import date, datetime, time, timedelta, timezone

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.exceptions import ConflictError, NotFoundError, ValidationError
from app.models.break_session import BreakSession, BreakStatus
from app.models.break_type import BreakType
from app.models.user import User

logger = logging.getLogger(__name__)


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def elapsed_seconds(start_time: datetime, end_time: datetime) -> int:
    """Whole seconds between two instants, truncated toward zero."""
    return int((as_utc(end_time) - as_utc(start_time)).total_seconds())


def compute_violation(elapsed: int, allotted: int) -> int:
    """Seconds over allotment. Returning early earns no credit."""
    return max(0, elapsed - allotted)


def _with_refs(query):
    return query.options(
        selectinload(BreakSession.user),
        selectinload(BreakSession.break_type),
    ).execution_options(populate_existing=True)


async def get_ongoing_session(
    db: AsyncSession, agent_id: uuid.UUID, for_update: bool = False
) -> BreakSession | None:
    query = select(BreakSession).where(
        BreakSession.user_id == agent_id,
        BreakSession.status == BreakStatus.ONGOING.value,
    )
    if for_update:
        query = query.with_for_update()
    result = await db.execute(_with_refs(query))
    return result.scalar_one_or_none()


async def _has_ongoing_session(db: AsyncSession, agent_id: uuid.UUID) -> bool:
    result = await db.execute(
        select(func.count(BreakSession.id)).where(
            BreakSession.user_id == agent_id,
            BreakSession.status == BreakStatus.ONGOING.value,
        )
    )
    return result.scalar_one() > 0


async def start_break(
    db: AsyncSession,
    agent_id: uuid.UUID,
    break_type_id: uuid.UUID,
    now: datetime | None = None,
) -> BreakSession:
    agent = await db.get(User, agent_id)
    if agent is None or not agent.is_active:
        raise ValidationError("Unknown agent")

    break_type = await db.get(BreakType, break_type_id)
    if break_type is None or not break_type.is_active:
        raise ValidationError("Unknown break type")

    if await get_ongoing_session(db, agent_id) is not None:
        raise ConflictError("You are already on a break")

    start_time = now or datetime.now(timezone.utc)
    session = BreakSession(
        id=uuid.uuid4(),
        user=agent,
        break_type=break_type,
        start_time=start_time,
        expected_end_time=start_time + timedelta(seconds=break_type.duration),
        status=BreakStatus.ONGOING.value,
        updated_at=start_time,
    )
    db.add(session)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        # Only the one-ongoing-break index means another request won the race
        if not await _has_ongoing_session(db, agent_id):
            raise
        logger.warning("Concurrent break start rejected for agent %s", agent_id)
        raise ConflictError("You are already on a break")

    logger.info("Agent %s started %s break %s", agent_id, break_type.name, session.id)
    return session


async def end_break(
    db: AsyncSession,
    agent_id: uuid.UUID,
    now: datetime | None = None,
) -> BreakSession:
    session = await get_ongoing_session(db, agent_id, for_update=True)
    if session is None:
        raise NotFoundError("No ongoing break found")

    end_time = now or datetime.now(timezone.utc)
    elapsed = elapsed_seconds(session.start_time, end_time)
    violation = compute_violation(elapsed, session.break_type.duration)

    # Conditional on status so a concurrent end cannot overwrite a closed break
    result = await db.execute(
        update(BreakSession)
        .where(
            BreakSession.id == session.id,
            BreakSession.status == BreakStatus.ONGOING.value,
        )
        .values(
            end_time=end_time,
            violation_duration=violation,
            status=BreakStatus.ENDED.value,
            updated_at=end_time,
        )
    )
    if result.rowcount == 0:
        raise NotFoundError("No ongoing break found")

    if violation:
        logger.info(
            "Agent %s ended break %s with %d s violation",
            agent_id, session.id, violation,
        )
    else:
        logger.info("Agent %s ended break %s on time", agent_id, session.id)
    return session


async def list_history(
    db: AsyncSession,
    user_id: uuid.UUID | None = None,
    break_type_id: uuid.UUID | None = None,
    status: str | None = None,
    agent_search: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    since: datetime | None = None,
    until: datetime | None = None,
    limit: int | None = None,
    offset: int = 0,
) -> list[BreakSession]:
    """Sessions newest first.

    ``start_date``/``end_date`` are inclusive calendar days in UTC;
    ``since``/``until`` bound ``start_time`` as a half-open window.
    """
    query = select(BreakSession)
    if user_id is not None:
        query = query.where(BreakSession.user_id == user_id)
    if break_type_id is not None:
        query = query.where(BreakSession.break_type_id == break_type_id)
    if status is not None:
        query = query.where(BreakSession.status == status)
    if agent_search and agent_search.strip():
        query = query.join(User, User.id == BreakSession.user_id).where(
            func.lower(User.name).contains(agent_search.strip().lower(), autoescape=True)
        )
    if start_date:
        since = max(
            filter(None, [since, datetime.combine(start_date, time.min, tzinfo=timezone.utc)])
        )
    if end_date:
        day_after = datetime.combine(end_date + timedelta(days=1), time.min, tzinfo=timezone.utc)
        until = min(filter(None, [until, day_after]))
    if since is not None:
        query = query.where(BreakSession.start_time >= as_utc(since).astimezone(timezone.utc))
    if until is not None:
        query = query.where(BreakSession.start_time < as_utc(until).astimezone(timezone.utc))
    query = query.order_by(BreakSession.start_time.desc(), BreakSession.id)
    if limit is not None:
        query = query.limit(limit)
    query = query.offset(offset)
    result = await db.execute(_with_refs(query))
    return list(result.scalars().all())


async def list_break_types(db: AsyncSession, include_inactive: bool = False) -> list[BreakType]:
    query = select(BreakType)
    if not include_inactive:
        query = query.where(BreakType.is_active == True)  # noqa: E712
    result = await db.execute(query.order_by(BreakType.duration.asc(), BreakType.name.asc()))
    return list(result.scalars().all())


async def _break_type_name_taken(
    db: AsyncSession, name: str, exclude_id: uuid.UUID | None = None
) -> bool:
    query = select(BreakType.id).where(BreakType.name == name)
    if exclude_id is not None:
        query = query.where(BreakType.id != exclude_id)
    result = await db.execute(query)
    return result.first() is not None


async def create_break_type(db: AsyncSession, data: dict) -> BreakType:
    if await _break_type_name_taken(db, data["name"]):
        raise ConflictError(f"Break type '{data['name']}' already exists")

    break_type = BreakType(**data)
    db.add(break_type)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        if not await _break_type_name_taken(db, data["name"]):
            raise
        raise ConflictError(f"Break type '{data['name']}' already exists")
    await db.refresh(break_type)
    logger.info("Created break type %s (%d s)", break_type.name, break_type.duration)
    return break_type


async def update_break_type(
    db: AsyncSession, break_type_id: uuid.UUID, data: dict
) -> BreakType:
    break_type = await db.get(BreakType, break_type_id)
    if break_type is None:
        raise NotFoundError("Break type not found")

    new_name = data.get("name")
    if new_name is not None and new_name != break_type.name:
        if await _break_type_name_taken(db, new_name, exclude_id=break_type_id):
            raise ConflictError(f"Break type '{new_name}' already exists")

    for key, value in data.items():
        if value is not None:
            setattr(break_type, key, value)

    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        if new_name is None or not await _break_type_name_taken(
            db, new_name, exclude_id=break_type_id
        ):
            raise
        raise ConflictError(f"Break type '{new_name}' already exists")
    await db.refresh(break_type)
    return break_type

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.break_session import BreakSession, BreakStatus
from app.models.break_type import BreakType
from app.models.user import User
from app.services.break_service import compute_violation


async def _add_session(
    db: AsyncSession,
    user: User,
    break_type: BreakType,
    started_ago: timedelta,
    seconds: int | None = None,
) -> BreakSession:
    """Insert a session directly, bypassing the clock in the lifecycle service."""
    start = datetime.now(timezone.utc) - started_ago
    session = BreakSession(
        id=uuid.uuid4(),
        user_id=user.id,
        break_type_id=break_type.id,
        start_time=start,
        expected_end_time=start + timedelta(seconds=break_type.duration),
        status=BreakStatus.ONGOING.value,
    )
    if seconds is not None:
        session.end_time = start + timedelta(seconds=seconds)
        session.status = BreakStatus.ENDED.value
        session.violation_duration = compute_violation(seconds, break_type.duration)
    db.add(session)
    await db.commit()
    return session


# --- break types ---


@pytest.mark.asyncio
async def test_list_break_types(client, short_break, lunch_break):
    response = await client.get("/breaks/types")
    assert response.status_code == 200
    data = response.json()
    assert [t["name"] for t in data] == ["Short Break", "Lunch"]
    assert data[0]["duration"] == 900


@pytest.mark.asyncio
async def test_agent_cannot_create_break_type(client):
    response = await client.post("/breaks/types", json={"name": "Smoke", "duration": 300})
    assert response.status_code == 403
    assert response.json()["kind"] == "forbidden"


@pytest.mark.asyncio
async def test_manager_manages_break_types(client, act_as, manager_user):
    act_as(manager_user)

    response = await client.post("/breaks/types", json={"name": "Smoke", "duration": 300})
    assert response.status_code == 201
    type_id = response.json()["id"]

    duplicate = await client.post("/breaks/types", json={"name": "Smoke", "duration": 600})
    assert duplicate.status_code == 409

    response = await client.patch(f"/breaks/types/{type_id}", json={"is_active": False})
    assert response.status_code == 200
    assert response.json()["is_active"] is False

    active = await client.get("/breaks/types")
    assert active.json() == []
    everything = await client.get("/breaks/types?include_inactive=true")
    assert len(everything.json()) == 1


@pytest.mark.asyncio
async def test_break_type_duration_must_be_positive(client, act_as, manager_user):
    act_as(manager_user)
    response = await client.post("/breaks/types", json={"name": "Zero", "duration": 0})
    assert response.status_code == 422


# --- lifecycle ---


@pytest.mark.asyncio
async def test_start_and_end_break(client, short_break):
    response = await client.post("/breaks/start", json={"break_type_id": str(short_break.id)})
    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "ONGOING"
    assert data["end_time"] is None
    assert data["violation_duration"] is None
    assert data["break_type"]["name"] == "Short Break"
    assert data["user"]["name"] == "Alice Agent"

    current = await client.get("/breaks/current")
    assert current.status_code == 200
    assert current.json()["id"] == data["id"]

    response = await client.post("/breaks/end")
    assert response.status_code == 200
    ended = response.json()
    assert ended["id"] == data["id"]
    assert ended["status"] == "ENDED"
    assert ended["end_time"] is not None
    assert ended["violation_duration"] == 0

    current = await client.get("/breaks/current")
    assert current.json() is None


@pytest.mark.asyncio
async def test_start_while_on_break_conflicts(client, short_break, lunch_break):
    await client.post("/breaks/start", json={"break_type_id": str(short_break.id)})

    response = await client.post("/breaks/start", json={"break_type_id": str(lunch_break.id)})
    assert response.status_code == 409
    assert response.json()["kind"] == "conflict"


@pytest.mark.asyncio
async def test_end_without_break_is_not_found(client):
    response = await client.post("/breaks/end")
    assert response.status_code == 404
    assert response.json()["kind"] == "not_found"


@pytest.mark.asyncio
async def test_start_unknown_break_type(client):
    response = await client.post("/breaks/start", json={"break_type_id": str(uuid.uuid4())})
    assert response.status_code == 422
    assert response.json()["kind"] == "validation"


@pytest.mark.asyncio
async def test_overdue_break_records_violation(client, db_session, test_user, short_break):
    await _add_session(db_session, test_user, short_break, started_ago=timedelta(seconds=1000))

    response = await client.post("/breaks/end")
    assert response.status_code == 200
    violation = response.json()["violation_duration"]
    assert 100 <= violation < 130


@pytest.mark.asyncio
async def test_my_history_only_shows_own_breaks(
    client, db_session, test_user, second_user, short_break
):
    await _add_session(db_session, test_user, short_break, timedelta(hours=2), seconds=600)
    await _add_session(db_session, test_user, short_break, timedelta(hours=1), seconds=1200)
    await _add_session(db_session, second_user, short_break, timedelta(hours=1), seconds=300)

    response = await client.get("/breaks/history")
    assert response.status_code == 200
    data = response.json()
    assert len(data) == 2
    assert all(s["user_id"] == str(test_user.id) for s in data)
    # newest first
    assert data[0]["violation_duration"] == 300


@pytest.mark.asyncio
async def test_my_history_pagination(client, db_session, test_user, short_break):
    for hours in range(1, 6):
        await _add_session(db_session, test_user, short_break, timedelta(hours=hours), seconds=60)

    response = await client.get("/breaks/history?limit=2&offset=0")
    assert response.status_code == 200
    assert len(response.json()) == 2


# --- manager views ---


@pytest.mark.asyncio
async def test_agent_cannot_view_all_history(client):
    response = await client.get("/breaks/history/all")
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_all_history_empty(client, act_as, manager_user):
    act_as(manager_user)
    response = await client.get("/breaks/history/all")
    assert response.status_code == 200
    data = response.json()
    assert data["sessions"] == []
    assert data["summary"]["total_sessions"] == 0
    assert data["summary"]["average_duration_minutes"] == 0
    assert data["by_agent"] == []
    assert data["by_break_type"] == []


@pytest.mark.asyncio
async def test_all_history_summary_and_groups(
    client, act_as, db_session, test_user, second_user, manager_user, short_break, lunch_break
):
    await _add_session(db_session, test_user, short_break, timedelta(hours=3), seconds=1200)
    await _add_session(db_session, second_user, short_break, timedelta(hours=2), seconds=600)
    await _add_session(db_session, test_user, lunch_break, timedelta(hours=1), seconds=3000)
    await _add_session(db_session, second_user, lunch_break, timedelta(minutes=5))

    act_as(manager_user)
    response = await client.get("/breaks/history/all?sort=violations")
    assert response.status_code == 200
    data = response.json()

    assert data["sessions"][0]["violation_duration"] == 300
    assert data["sessions"][0]["user"]["name"] == "Alice Agent"

    summary = data["summary"]
    assert summary["total_sessions"] == 4
    assert summary["ended_sessions"] == 3
    assert summary["ongoing_sessions"] == 1
    assert summary["total_duration_minutes"] == 80
    assert summary["violation_count"] == 1
    assert summary["total_violation_minutes"] == 5
    assert summary["average_duration_minutes"] == 26

    by_agent = {a["name"]: a for a in data["by_agent"]}
    assert by_agent["Alice Agent"]["count"] == 2
    assert by_agent["Alice Agent"]["total_violation_seconds"] == 300
    assert by_agent["bob Builder"]["violation_count"] == 0

    by_type = {t["name"]: t for t in data["by_break_type"]}
    assert by_type["Short Break"]["total_duration_minutes"] == 30.0
    assert by_type["Lunch"]["count"] == 2


@pytest.mark.asyncio
async def test_all_history_filters(
    client, act_as, db_session, test_user, second_user, manager_user, short_break, lunch_break
):
    await _add_session(db_session, test_user, short_break, timedelta(hours=3), seconds=1200)
    await _add_session(db_session, second_user, lunch_break, timedelta(minutes=5))
    await _add_session(db_session, second_user, short_break, timedelta(days=400), seconds=60)

    act_as(manager_user)

    ongoing = await client.get("/breaks/history/all?status=ONGOING")
    assert [s["end_time"] for s in ongoing.json()["sessions"]] == [None]

    by_agent = await client.get(f"/breaks/history/all?user_id={second_user.id}")
    assert len(by_agent.json()["sessions"]) == 2

    by_type = await client.get(f"/breaks/history/all?break_type_id={short_break.id}")
    assert len(by_type.json()["sessions"]) == 2

    search = await client.get("/breaks/history/all?search=BOB")
    assert {s["user"]["name"] for s in search.json()["sessions"]} == {"bob Builder"}

    this_month = await client.get("/breaks/history/all?date_range=month&sort=oldest")
    assert this_month.status_code == 200
    assert this_month.json()["summary"]["total_sessions"] < 3


@pytest.mark.asyncio
async def test_all_history_rejects_unknown_sort(client, act_as, manager_user):
    act_as(manager_user)
    response = await client.get("/breaks/history/all?sort=shortest")
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_reports_filter_by_user_and_dates(
    client, act_as, db_session, test_user, second_user, manager_user, short_break
):
    await _add_session(db_session, test_user, short_break, timedelta(hours=1), seconds=600)
    await _add_session(db_session, second_user, short_break, timedelta(hours=1), seconds=600)
    await _add_session(db_session, test_user, short_break, timedelta(days=30), seconds=600)

    act_as(manager_user)
    response = await client.get(f"/breaks/reports?user_id={test_user.id}")
    assert response.status_code == 200
    assert len(response.json()) == 2

    since = (datetime.now(timezone.utc) - timedelta(days=2)).date().isoformat()
    response = await client.get(f"/breaks/reports?start_date={since}")
    assert response.status_code == 200
    assert len(response.json()) == 2


@pytest.mark.asyncio
async def test_manager_rename_to_existing_name_conflicts(
    client, act_as, manager_user, short_break, lunch_break
):
    act_as(manager_user)
    response = await client.patch(f"/breaks/types/{lunch_break.id}", json={"name": "Short Break"})
    assert response.status_code == 409
    assert response.json()["kind"] == "conflict"

    unchanged = await client.get("/breaks/types")
    assert [t["name"] for t in unchanged.json()] == ["Short Break", "Lunch"]

    same_name = await client.patch(f"/breaks/types/{lunch_break.id}", json={"name": "Lunch"})
    assert same_name.status_code == 200


@pytest.mark.asyncio
async def test_all_history_cap_applies_after_filters(
    client, act_as, db_session, test_user, second_user, manager_user, short_break, monkeypatch
):
    monkeypatch.setattr(settings, "HISTORY_MAX_LIMIT", 3)
    old_day = datetime(2026, 1, 5, 10, 0, tzinfo=timezone.utc)
    await _add_session(
        db_session, second_user, short_break, datetime.now(timezone.utc) - old_day, seconds=600
    )
    for hours in (1, 2, 3):
        await _add_session(db_session, test_user, short_break, timedelta(hours=hours), seconds=60)

    act_as(manager_user)

    old = await client.get(
        "/breaks/history/all?date_range=custom&start_date=2026-01-05&end_date=2026-01-05"
    )
    assert old.status_code == 200
    assert old.json()["summary"]["total_sessions"] == 1
    assert old.json()["truncated"] is False

    by_agent = await client.get(f"/breaks/history/all?user_id={second_user.id}")
    assert len(by_agent.json()["sessions"]) == 1

    everything = await client.get("/breaks/history/all")
    assert len(everything.json()["sessions"]) == 3
    assert everything.json()["truncated"] is True

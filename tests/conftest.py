import uuid
from collections.abc import AsyncGenerator
from datetime import datetime, timezone

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import StaticPool
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.database import get_db
from app.dependencies import get_current_user
from app.main import app
from app.models import Base
from app.models.break_type import BreakType
from app.models.user import User, UserRole
from app.services.auth_service import hash_password

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
TEST_PASSWORD = "correct-horse-battery"
TEST_PASSWORD_HASH = hash_password(TEST_PASSWORD)

# Who the overridden get_current_user returns; tests switch it via act_as
_acting: dict[str, User] = {}


def _make_user(email: str, name: str, role: UserRole) -> User:
    return User(
        id=uuid.uuid4(),
        email=email,
        name=name,
        role=role.value,
        password_hash=TEST_PASSWORD_HASH,
        must_change_password=False,
        is_active=True,
        created_at=datetime.now(timezone.utc),
        updated_at=datetime.now(timezone.utc),
    )


@pytest.fixture
async def db_engine():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    session_factory = async_sessionmaker(
        db_engine, class_=AsyncSession, expire_on_commit=False
    )
    async with session_factory() as session:
        yield session


@pytest.fixture
async def test_user(db_session: AsyncSession) -> User:
    user = _make_user("agent@example.com", "Alice Agent", UserRole.AGENT)
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture
async def second_user(db_session: AsyncSession) -> User:
    user = _make_user("bob@example.com", "bob Builder", UserRole.AGENT)
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture
async def manager_user(db_session: AsyncSession) -> User:
    user = _make_user("manager@example.com", "Maya Manager", UserRole.MANAGER)
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture
async def short_break(db_session: AsyncSession) -> BreakType:
    break_type = BreakType(id=uuid.uuid4(), name="Short Break", duration=900, is_active=True)
    db_session.add(break_type)
    await db_session.commit()
    await db_session.refresh(break_type)
    return break_type


@pytest.fixture
async def lunch_break(db_session: AsyncSession) -> BreakType:
    break_type = BreakType(id=uuid.uuid4(), name="Lunch", duration=3600, is_active=True)
    db_session.add(break_type)
    await db_session.commit()
    await db_session.refresh(break_type)
    return break_type


@pytest.fixture
def test_password() -> str:
    return TEST_PASSWORD


@pytest.fixture
def act_as():
    """Switch the authenticated user for subsequent client requests."""

    def _act_as(user: User) -> None:
        _acting["user"] = user

    return _act_as


@pytest.fixture
async def client(db_engine, test_user: User) -> AsyncGenerator[AsyncClient, None]:
    session_factory = async_sessionmaker(
        db_engine, class_=AsyncSession, expire_on_commit=False
    )

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def override_get_current_user():
        return _acting["user"]

    _acting["user"] = test_user
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_get_current_user

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    _acting.clear()

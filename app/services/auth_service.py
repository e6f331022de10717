import logging
import uuid
from datetime import datetime, timedelta, timezone

import bcrypt
from jose import JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.exceptions import ConflictError, ValidationError
from app.models.user import User

logger = logging.getLogger(__name__)


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    """Verify a password against a bcrypt hash."""
    return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))


def issue_access_token(user_id: str | uuid.UUID) -> dict:
    """Issue a JWT access token for the user."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "type": "access",
        "iat": now,
        "exp": now + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    }
    access_token = jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
    return {
        "access_token": access_token,
        "token_type": "bearer",
        "expires_in": settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    }


def decode_access_token(token: str) -> uuid.UUID:
    """Validate an access token and return the user id it was issued for."""
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise ValueError("Invalid or expired token")

    if payload.get("type") != "access":
        raise ValueError("Invalid token type")

    try:
        return uuid.UUID(payload["sub"])
    except (KeyError, ValueError):
        raise ValueError("Invalid token subject")


async def login_with_email(db: AsyncSession, email: str, password: str) -> User:
    """Authenticate user with email/password."""
    result = await db.execute(select(User).where(User.email == email.lower()))
    user = result.scalar_one_or_none()

    if user is None or not user.is_active or not verify_password(password, user.password_hash):
        logger.warning("Failed login for %s", email)
        raise ValueError("Invalid email or password")

    return user


async def change_password(
    db: AsyncSession, user: User, current_password: str, new_password: str
) -> User:
    db_user = await db.get(User, user.id)
    if db_user is None or not verify_password(current_password, db_user.password_hash):
        raise ValidationError("Current password is incorrect")

    db_user.password_hash = hash_password(new_password)
    db_user.must_change_password = False
    db_user.updated_at = datetime.now(timezone.utc)
    await db.flush()
    return db_user


async def list_users(db: AsyncSession, role: str | None = None) -> list[User]:
    query = select(User)
    if role is not None:
        query = query.where(User.role == role)
    result = await db.execute(query.order_by(User.name.asc()))
    return list(result.scalars().all())


async def create_user(
    db: AsyncSession, email: str, name: str, password: str, role: str
) -> User:
    """Create an account on behalf of a manager; the user must pick a new password on first login."""
    email = email.lower()
    result = await db.execute(select(User).where(User.email == email))
    if result.scalar_one_or_none() is not None:
        raise ConflictError("An account with this email already exists")

    user = User(
        id=uuid.uuid4(),
        email=email,
        name=name,
        role=role,
        password_hash=hash_password(password),
        must_change_password=True,
    )
    db.add(user)
    await db.flush()
    await db.refresh(user)
    logger.info("Created %s account %s", role, email)
    return user

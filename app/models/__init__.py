from app.models.base import Base
from app.models.break_session import BreakSession, BreakStatus
from app.models.break_type import BreakType
from app.models.user import User, UserRole

__all__ = [
    "Base",
    "BreakSession",
    "BreakStatus",
    "BreakType",
    "User",
    "UserRole",
]

import enum
import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, String, func, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base


class BreakStatus(str, enum.Enum):
    ONGOING = "ONGOING"
    ENDED = "ENDED"


class BreakSession(Base):
    __tablename__ = "break_sessions"

    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    break_type_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("break_types.id"), index=True)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    expected_end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=BreakStatus.ONGOING.value
    )  # ONGOING, ENDED
    violation_duration: Mapped[int | None] = mapped_column(Integer)  # seconds over allotment
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    user: Mapped["User"] = relationship(back_populates="break_sessions")  # noqa: F821
    break_type: Mapped["BreakType"] = relationship(back_populates="sessions")  # noqa: F821

    __table_args__ = (
        CheckConstraint(
            "violation_duration IS NULL OR violation_duration >= 0",
            name="violation_non_negative",
        ),
        Index("ix_break_sessions_start_time", "start_time"),
        # At most one ongoing break per agent
        Index(
            "uq_break_sessions_one_ongoing",
            "user_id",
            unique=True,
            sqlite_where=text("status = 'ONGOING'"),
            postgresql_where=text("status = 'ONGOING'"),
        ),
    )

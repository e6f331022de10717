from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base


class BreakType(Base):
    __tablename__ = "break_types"

    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    duration: Mapped[int] = mapped_column(Integer, nullable=False)  # allotted seconds
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, server_default="true")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    # Relationships
    sessions: Mapped[list["BreakSession"]] = relationship(back_populates="break_type")  # noqa: F821

    __table_args__ = (CheckConstraint("duration > 0", name="duration_positive"),)

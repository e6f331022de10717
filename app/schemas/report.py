import uuid

from pydantic import BaseModel

from app.schemas.break_session import BreakSessionResponse


class SummaryResponse(BaseModel):
    total_sessions: int
    ended_sessions: int
    ongoing_sessions: int
    total_duration_minutes: int
    violation_count: int
    total_violation_minutes: int
    average_duration_minutes: int


class AgentStats(BaseModel):
    user_id: uuid.UUID | None
    name: str
    count: int
    violation_count: int
    total_violation_seconds: int


class BreakTypeStats(BaseModel):
    break_type_id: uuid.UUID | None
    name: str
    count: int
    total_duration_minutes: float


class HistoryReportResponse(BaseModel):
    sessions: list[BreakSessionResponse]
    summary: SummaryResponse
    by_agent: list[AgentStats]
    by_break_type: list[BreakTypeStats]
    truncated: bool = False

import uuid
from datetime import datetime

from pydantic import BaseModel, Field


class BreakTypeCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    duration: int = Field(gt=0, description="Allotted seconds")


class BreakTypeUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    duration: int | None = Field(default=None, gt=0)
    is_active: bool | None = None


class BreakTypeResponse(BaseModel):
    id: uuid.UUID
    name: str
    duration: int
    is_active: bool

    model_config = {"from_attributes": True}


class AgentSummary(BaseModel):
    id: uuid.UUID
    name: str

    model_config = {"from_attributes": True}


class BreakStartRequest(BaseModel):
    break_type_id: uuid.UUID


class BreakSessionResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    break_type_id: uuid.UUID
    start_time: datetime
    end_time: datetime | None
    expected_end_time: datetime
    status: str
    violation_duration: int | None
    break_type: BreakTypeResponse | None = None
    user: AgentSummary | None = None

    model_config = {"from_attributes": True}

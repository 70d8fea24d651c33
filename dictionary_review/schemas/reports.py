from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

ReportStatusValue = Literal["open", "resolved"]


class ReportCreateRequest(BaseModel):
    reason: str = Field(min_length=1)
    details: str | None = None


class ReportOut(BaseModel):
    id: str
    word_id: str
    user_id: str
    reason: str
    details: str | None = None
    status: ReportStatusValue
    resolution: str | None = None
    action_taken: str | None = None
    resolved_by: str | None = None
    resolved_at: datetime | None = None
    created_at: datetime

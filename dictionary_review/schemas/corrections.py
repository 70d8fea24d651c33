from datetime import datetime

from pydantic import BaseModel, Field


class CorrectionProposal(BaseModel):
    correction_type: str = Field(min_length=1)
    current_value: str = ""
    proposed_change: str = Field(min_length=1)
    explanation: str = ""
    meaning_index: int | None = Field(default=None, ge=0)


class ApplyOutcome(BaseModel):
    success: bool
    correction_id: str
    word_id: str
    field: str
    meaning_index: int | None = None
    applied_at: datetime

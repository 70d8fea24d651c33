from typing import Literal

from pydantic import BaseModel, Field

AdminDecisionValue = Literal["approve", "reject"]


class AdminDecisionRequest(BaseModel):
    decision: AdminDecisionValue
    reason: str | None = None
    override: bool = False


class DecisionOutcome(BaseModel):
    status: str
    previous_status: str


class ReportResolveRequest(BaseModel):
    resolution: str = Field(min_length=1)
    action_taken: str | None = None

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from dictionary_review.services.entities import VoteRecord

EntityKindName = Literal["word", "correction"]
VoteValue = Literal["approve", "reject"]


class MeaningIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    language: str = Field(default="en", min_length=1)
    definition: str = Field(min_length=1)
    example: str | None = None
    example_translation: str | None = None


class WordSubmission(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    kurukh_word: str = Field(min_length=1)
    meanings: list[MeaningIn] = Field(min_length=1)
    part_of_speech: str = Field(min_length=1)
    pronunciation: str | None = None


class VoteRequest(BaseModel):
    decision: VoteValue
    comment: str | None = None


class VoteOutcome(BaseModel):
    status: str
    previous_status: str
    votes_for: int
    votes_against: int


class StatusView(BaseModel):
    kind: EntityKindName
    id: str
    status: str
    votes_for: int
    votes_against: int
    reviewed_by: list[VoteRecord] = Field(default_factory=list)
    updated_at: datetime


class EntityCreatedOut(BaseModel):
    id: str

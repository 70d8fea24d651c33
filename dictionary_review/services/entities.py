from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar, Union
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator, model_validator

from dictionary_review.services.lifecycle import (
    AdminDecision,
    CorrectionStatus,
    EntityKind,
    ReportStatus,
    VoteDecision,
    VoteTally,
    WordStatus,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_entity_id() -> str:
    return str(uuid4())


class CorrectionType(str, Enum):
    SPELLING = "spelling"
    DEFINITION = "definition"
    PART_OF_SPEECH = "part_of_speech"
    EXAMPLE = "example"
    EXAMPLE_TRANSLATION = "example_translation"
    PRONUNCIATION = "pronunciation"
    OTHER = "other"

    @classmethod
    def parse(cls, value: object) -> CorrectionType:
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            normalized = value.strip()
            normalized = _CORRECTION_TYPE_ALIASES.get(normalized, normalized.lower())
            try:
                return cls(normalized)
            except ValueError:
                pass
        raise ValueError(f"unknown correction type: {value!r}")


_CORRECTION_TYPE_ALIASES = {
    "word_spelling": "spelling",
    "partOfSpeech": "part_of_speech",
    "example_sentence": "example",
    "exampleTranslation": "example_translation",
}


class VoteRecord(BaseModel):
    user_id: str
    vote: VoteDecision
    comment: str = ""
    timestamp: datetime = Field(default_factory=utcnow)


class Meaning(BaseModel):
    language: str = "en"
    definition: str
    example: str | None = None
    example_translation: str | None = None


class AdminDecisionRecord(BaseModel):
    admin_id: str
    decision: AdminDecision
    reason: str | None = None
    decided_at: datetime = Field(default_factory=utcnow)


class ReviewableEntity(BaseModel):
    """Entity carrying an append-only vote ledger.

    The ledger invariants are checked on load and after every appended vote:
    ``votes_for + votes_against == len(reviewed_by)``, no duplicate reviewer and
    no reviewer equal to the owner.
    """

    kind: ClassVar[EntityKind]

    id: str = Field(default_factory=new_entity_id)
    votes_for: int = Field(default=0, ge=0)
    votes_against: int = Field(default=0, ge=0)
    reviewed_by: list[VoteRecord] = Field(default_factory=list)
    admin_decision: AdminDecisionRecord | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def owner_id(self) -> str:
        raise NotImplementedError

    @property
    def tally(self) -> VoteTally:
        return VoteTally(votes_for=self.votes_for, votes_against=self.votes_against)

    def has_voted(self, user_id: str) -> bool:
        return any(record.user_id == user_id for record in self.reviewed_by)

    def record_vote(self, record: VoteRecord) -> None:
        self.reviewed_by.append(record)
        if record.vote == VoteDecision.APPROVE:
            self.votes_for += 1
        else:
            self.votes_against += 1
        self.check_ledger()

    def check_ledger(self) -> None:
        if self.votes_for + self.votes_against != len(self.reviewed_by):
            raise ValueError(
                f"vote counts ({self.votes_for} for, {self.votes_against} against) "
                f"do not match {len(self.reviewed_by)} ledger entries"
            )
        seen: set[str] = set()
        for record in self.reviewed_by:
            if record.user_id == self.owner_id:
                raise ValueError(f"owner {record.user_id} appears in the vote ledger")
            if record.user_id in seen:
                raise ValueError(f"duplicate reviewer {record.user_id} in the vote ledger")
            seen.add(record.user_id)

    @model_validator(mode="after")
    def _validate_ledger(self) -> ReviewableEntity:
        self.check_ledger()
        return self


class WordEntity(ReviewableEntity):
    kind: ClassVar[EntityKind] = EntityKind.WORD

    kurukh_word: str
    meanings: list[Meaning] = Field(default_factory=list)
    part_of_speech: str
    pronunciation: str | None = None
    contributor_id: str
    status: WordStatus = WordStatus.COMMUNITY_REVIEW

    @field_validator("status", mode="before")
    @classmethod
    def _parse_status(cls, value: Any) -> WordStatus:
        return WordStatus.parse(value)

    @property
    def owner_id(self) -> str:
        return self.contributor_id


class CorrectionEntity(ReviewableEntity):
    kind: ClassVar[EntityKind] = EntityKind.CORRECTION

    word_id: str
    user_id: str
    correction_type: CorrectionType
    meaning_index: int | None = Field(default=None, ge=0)
    current_value: str = ""
    proposed_change: str
    explanation: str = ""
    status: CorrectionStatus = CorrectionStatus.SHALLOW_REVIEW
    applied_at: datetime | None = None

    @field_validator("status", mode="before")
    @classmethod
    def _parse_status(cls, value: Any) -> CorrectionStatus:
        return CorrectionStatus.parse(value)

    @field_validator("correction_type", mode="before")
    @classmethod
    def _parse_correction_type(cls, value: Any) -> CorrectionType:
        return CorrectionType.parse(value)

    @property
    def owner_id(self) -> str:
        return self.user_id


class ReportEntity(BaseModel):
    kind: ClassVar[EntityKind] = EntityKind.REPORT

    id: str = Field(default_factory=new_entity_id)
    word_id: str
    user_id: str
    reason: str
    details: str | None = None
    status: ReportStatus = ReportStatus.OPEN
    resolution: str | None = None
    action_taken: str | None = None
    resolved_by: str | None = None
    resolved_at: datetime | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


Entity = Union[WordEntity, CorrectionEntity, ReportEntity]

ENTITY_MODELS: dict[EntityKind, type[BaseModel]] = {
    EntityKind.WORD: WordEntity,
    EntityKind.CORRECTION: CorrectionEntity,
    EntityKind.REPORT: ReportEntity,
}


def load_entity(kind: EntityKind, data: dict[str, Any]) -> Any:
    return ENTITY_MODELS[EntityKind(kind)].model_validate(data)


def dump_entity(entity: BaseModel) -> dict[str, Any]:
    return entity.model_dump(mode="json")

"""Word and correction review lifecycles.

Word:        community_review -> pending_review -> approved | rejected
             community_review -> community_rejected
Correction:  shallow_review -> approved | rejected | admin_approved | admin_rejected
             approved | admin_approved -> applied

Status enums carry the persisted strings; ``parse`` is the only place legacy
spellings are accepted.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Union

from dictionary_review.services.errors import InvalidStateError

if TYPE_CHECKING:
    from dictionary_review.services.thresholds import ThresholdPolicy


class EntityKind(str, Enum):
    WORD = "word"
    CORRECTION = "correction"
    REPORT = "report"


class VoteDecision(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


class AdminDecision(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


class WordStatus(str, Enum):
    COMMUNITY_REVIEW = "community_review"
    PENDING_REVIEW = "pending_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMMUNITY_REJECTED = "community_rejected"

    @classmethod
    def parse(cls, value: object) -> WordStatus:
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            normalized = value.strip().lower()
            normalized = _LEGACY_WORD_STATUSES.get(normalized, normalized)
            try:
                return cls(normalized)
            except ValueError:
                pass
        raise ValueError(f"unknown word status: {value!r}")


class CorrectionStatus(str, Enum):
    SHALLOW_REVIEW = "shallow_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    ADMIN_APPROVED = "admin_approved"
    ADMIN_REJECTED = "admin_rejected"
    APPLIED = "applied"

    @classmethod
    def parse(cls, value: object) -> CorrectionStatus:
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            normalized = value.strip().lower()
            normalized = _LEGACY_CORRECTION_STATUSES.get(normalized, normalized)
            try:
                return cls(normalized)
            except ValueError:
                pass
        raise ValueError(f"unknown correction status: {value!r}")


class ReportStatus(str, Enum):
    OPEN = "open"
    RESOLVED = "resolved"


_LEGACY_WORD_STATUSES = {
    "submitted": "community_review",
    "pending_community_review": "community_review",
    "in_community_review": "community_review",
    "community_approved": "pending_review",
    "admin_review": "pending_review",
    "in_admin_review": "pending_review",
}

_LEGACY_CORRECTION_STATUSES = {
    "pending": "shallow_review",
    "in_review": "shallow_review",
}

EntityStatus = Union[WordStatus, CorrectionStatus]


@dataclass(slots=True, frozen=True)
class VoteCast:
    decision: VoteDecision


@dataclass(slots=True, frozen=True)
class AdminDecided:
    decision: AdminDecision
    override: bool = False


@dataclass(slots=True, frozen=True)
class CorrectionApplied:
    pass


LifecycleEvent = Union[VoteCast, AdminDecided, CorrectionApplied]


@dataclass(slots=True, frozen=True)
class VoteTally:
    votes_for: int
    votes_against: int


WORD_TRANSITIONS: dict[WordStatus, set[WordStatus]] = {
    WordStatus.COMMUNITY_REVIEW: {
        WordStatus.PENDING_REVIEW,
        WordStatus.COMMUNITY_REJECTED,
        WordStatus.APPROVED,
        WordStatus.REJECTED,
    },
    WordStatus.PENDING_REVIEW: {WordStatus.APPROVED, WordStatus.REJECTED},
    WordStatus.APPROVED: set(),
    WordStatus.REJECTED: set(),
    WordStatus.COMMUNITY_REJECTED: set(),
}

CORRECTION_TRANSITIONS: dict[CorrectionStatus, set[CorrectionStatus]] = {
    CorrectionStatus.SHALLOW_REVIEW: {
        CorrectionStatus.APPROVED,
        CorrectionStatus.REJECTED,
        CorrectionStatus.ADMIN_APPROVED,
        CorrectionStatus.ADMIN_REJECTED,
    },
    CorrectionStatus.APPROVED: {CorrectionStatus.APPLIED},
    CorrectionStatus.ADMIN_APPROVED: {CorrectionStatus.APPLIED},
    CorrectionStatus.REJECTED: set(),
    CorrectionStatus.ADMIN_REJECTED: set(),
    CorrectionStatus.APPLIED: set(),
}

# Late votes are still recorded while the entity waits for its next non-community step.
WORD_VOTABLE = {WordStatus.COMMUNITY_REVIEW, WordStatus.PENDING_REVIEW}
CORRECTION_VOTABLE = {CorrectionStatus.SHALLOW_REVIEW, CorrectionStatus.APPROVED}
CORRECTION_APPLICABLE = {CorrectionStatus.APPROVED, CorrectionStatus.ADMIN_APPROVED}


def parse_status(kind: EntityKind, value: object) -> EntityStatus:
    if EntityKind(kind) is EntityKind.WORD:
        return WordStatus.parse(value)
    if EntityKind(kind) is EntityKind.CORRECTION:
        return CorrectionStatus.parse(value)
    raise ValueError(f"entity kind has no review lifecycle: {kind}")


def is_terminal(kind: EntityKind, status: EntityStatus) -> bool:
    if EntityKind(kind) is EntityKind.WORD:
        return not WORD_TRANSITIONS[WordStatus.parse(status)]
    return not CORRECTION_TRANSITIONS[CorrectionStatus.parse(status)]


def can_vote(kind: EntityKind, status: EntityStatus) -> bool:
    if EntityKind(kind) is EntityKind.WORD:
        return WordStatus.parse(status) in WORD_VOTABLE
    return CorrectionStatus.parse(status) in CORRECTION_VOTABLE


class TransitionEngine:
    """Pure ``(status, event, tally) -> status`` function for both lifecycles."""

    def __init__(self, thresholds: ThresholdPolicy) -> None:
        self.thresholds = thresholds

    def next_status(
        self,
        kind: EntityKind,
        current: EntityStatus,
        event: LifecycleEvent,
        tally: VoteTally,
    ) -> EntityStatus:
        kind = EntityKind(kind)
        if kind is EntityKind.WORD:
            current_word = WordStatus.parse(current)
            target: EntityStatus = self._next_word_status(current_word, event, tally)
            self._validate(WORD_TRANSITIONS, current_word, target)
            return target
        if kind is EntityKind.CORRECTION:
            current_correction = CorrectionStatus.parse(current)
            target = self._next_correction_status(current_correction, event, tally)
            self._validate(CORRECTION_TRANSITIONS, current_correction, target)
            return target
        raise InvalidStateError(f"{kind.value} has no review lifecycle")

    def _next_word_status(self, current: WordStatus, event: LifecycleEvent, tally: VoteTally) -> WordStatus:
        if isinstance(event, VoteCast):
            if current not in WORD_VOTABLE:
                raise InvalidStateError(f"cannot vote on word in status {current.value}")
            if current is not WordStatus.COMMUNITY_REVIEW:
                return current
            return self._threshold_target(
                EntityKind.WORD,
                event.decision,
                tally,
                current=current,
                approved=WordStatus.PENDING_REVIEW,
                rejected=WordStatus.COMMUNITY_REJECTED,
            )

        if isinstance(event, AdminDecided):
            allowed = {WordStatus.PENDING_REVIEW}
            if event.override:
                allowed.add(WordStatus.COMMUNITY_REVIEW)
            if current not in allowed:
                raise InvalidStateError(f"cannot decide word in status {current.value}")
            return WordStatus.APPROVED if event.decision == AdminDecision.APPROVE else WordStatus.REJECTED

        raise InvalidStateError(f"event {type(event).__name__} does not apply to words")

    def _next_correction_status(
        self,
        current: CorrectionStatus,
        event: LifecycleEvent,
        tally: VoteTally,
    ) -> CorrectionStatus:
        if isinstance(event, VoteCast):
            if current not in CORRECTION_VOTABLE:
                raise InvalidStateError(f"cannot vote on correction in status {current.value}")
            if current is not CorrectionStatus.SHALLOW_REVIEW:
                return current
            return self._threshold_target(
                EntityKind.CORRECTION,
                event.decision,
                tally,
                current=current,
                approved=CorrectionStatus.APPROVED,
                rejected=CorrectionStatus.REJECTED,
            )

        if isinstance(event, AdminDecided):
            if current is not CorrectionStatus.SHALLOW_REVIEW:
                raise InvalidStateError(f"cannot decide correction in status {current.value}")
            if event.decision == AdminDecision.APPROVE:
                return CorrectionStatus.ADMIN_APPROVED
            return CorrectionStatus.ADMIN_REJECTED

        if isinstance(event, CorrectionApplied):
            if current not in CORRECTION_APPLICABLE:
                raise InvalidStateError(f"cannot apply correction in status {current.value}")
            return CorrectionStatus.APPLIED

        raise InvalidStateError(f"event {type(event).__name__} does not apply to corrections")

    def _threshold_target(self, kind, decision, tally, *, current, approved, rejected):
        if decision == VoteDecision.APPROVE:
            if tally.votes_for >= self.thresholds.threshold(kind, VoteDecision.APPROVE):
                return approved
            return current
        if tally.votes_against >= self.thresholds.threshold(kind, VoteDecision.REJECT):
            return rejected
        return current

    @staticmethod
    def _validate(graph, current, target) -> None:
        if target == current:
            return
        if target not in graph.get(current, set()):
            raise InvalidStateError(f"invalid status transition: {current.value} -> {target.value}")

from __future__ import annotations

from dataclasses import dataclass

from dictionary_review.core.config import Settings
from dictionary_review.services.lifecycle import EntityKind, VoteDecision


@dataclass(slots=True, frozen=True)
class ThresholdPolicy:
    """Same-direction vote counts that trigger an automatic transition."""

    word_approve: int = 5
    word_reject: int = 5
    correction_approve: int = 3
    correction_reject: int = 3

    def __post_init__(self) -> None:
        for name in ("word_approve", "word_reject", "correction_approve", "correction_reject"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} threshold must be at least 1")

    @classmethod
    def from_settings(cls, settings: Settings) -> ThresholdPolicy:
        return cls(
            word_approve=settings.word_approve_threshold,
            word_reject=settings.word_reject_threshold,
            correction_approve=settings.correction_approve_threshold,
            correction_reject=settings.correction_reject_threshold,
        )

    def threshold(self, kind: EntityKind, direction: VoteDecision) -> int:
        kind = EntityKind(kind)
        direction = VoteDecision(direction)
        if kind is EntityKind.WORD:
            return self.word_approve if direction is VoteDecision.APPROVE else self.word_reject
        if kind is EntityKind.CORRECTION:
            return self.correction_approve if direction is VoteDecision.APPROVE else self.correction_reject
        raise ValueError(f"no vote thresholds for entity kind: {kind.value}")

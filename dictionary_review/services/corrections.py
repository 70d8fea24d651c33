from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from opentelemetry import trace

from dictionary_review.core.auth import IdentityContext
from dictionary_review.schemas.corrections import ApplyOutcome
from dictionary_review.services.entities import CorrectionEntity, CorrectionType, WordEntity, utcnow
from dictionary_review.services.errors import (
    AlreadyAppliedError,
    ApplyConflictError,
    InvalidStateError,
    ValidationError,
)
from dictionary_review.services.lifecycle import (
    CORRECTION_APPLICABLE,
    CorrectionApplied,
    CorrectionStatus,
    EntityKind,
    TransitionEngine,
)
from dictionary_review.services.notifier import ChangeNotifier, StateChange
from dictionary_review.services.results import as_result
from dictionary_review.services.store import AuditEntry, EntityStore

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

WORD_FIELDS: dict[CorrectionType, str] = {
    CorrectionType.SPELLING: "kurukh_word",
    CorrectionType.PART_OF_SPEECH: "part_of_speech",
    CorrectionType.PRONUNCIATION: "pronunciation",
}

MEANING_FIELDS: dict[CorrectionType, str] = {
    CorrectionType.DEFINITION: "definition",
    CorrectionType.EXAMPLE: "example",
    CorrectionType.EXAMPLE_TRANSLATION: "example_translation",
}


@dataclass(slots=True, frozen=True)
class FieldLocation:
    field: str
    meaning_index: int | None = None

    def write(self, word: WordEntity, value: str) -> None:
        if self.meaning_index is None:
            setattr(word, self.field, value)
        else:
            setattr(word.meanings[self.meaning_index], self.field, value)


def locate_field(
    word: WordEntity,
    correction_type: CorrectionType,
    current_value: str,
    meaning_index: int | None = None,
) -> FieldLocation:
    """Find the live field a correction targets, using ``current_value`` as the match key.

    Raises ``ApplyConflictError`` when the live value no longer equals the snapshot
    or when the snapshot matches more than one meaning.
    """
    if correction_type is CorrectionType.OTHER:
        raise ValidationError("corrections of type 'other' cannot be applied automatically")

    if correction_type in WORD_FIELDS:
        field_name = WORD_FIELDS[correction_type]
        live_value = _live_text(getattr(word, field_name))
        if live_value != current_value:
            raise ApplyConflictError(f"{field_name} is {live_value!r}, expected {current_value!r}")
        return FieldLocation(field=field_name)

    field_name = MEANING_FIELDS[correction_type]
    if meaning_index is not None:
        if meaning_index >= len(word.meanings):
            raise ApplyConflictError(f"meaning {meaning_index} no longer exists")
        candidates = [meaning_index]
    else:
        candidates = list(range(len(word.meanings)))

    matches = [
        index for index in candidates if _live_text(getattr(word.meanings[index], field_name)) == current_value
    ]
    if not matches:
        raise ApplyConflictError(f"no meaning has {field_name} {current_value!r}")
    if len(matches) > 1:
        raise ApplyConflictError(
            f"{field_name} {current_value!r} matches meanings {matches}; set meaning_index to disambiguate"
        )
    return FieldLocation(field=field_name, meaning_index=matches[0])


def _live_text(value: str | None) -> str:
    # Legacy rows may carry surrounding whitespace; snapshots never do.
    return (value or "").strip()


class CorrectionApplier:
    """Patches the live word with an approved correction, exactly once."""

    def __init__(self, store: EntityStore, engine: TransitionEngine, notifier: ChangeNotifier) -> None:
        self.store = store
        self.engine = engine
        self.notifier = notifier

    @as_result
    async def apply(self, correction_id: str, identity: IdentityContext | None = None) -> ApplyOutcome:
        correction: CorrectionEntity = await self.store.get(EntityKind.CORRECTION, correction_id)
        observed: dict[str, Any] = {}

        def apply_correction(word: WordEntity, fresh: CorrectionEntity) -> tuple[WordEntity, CorrectionEntity]:
            if fresh.applied_at is not None or fresh.status is CorrectionStatus.APPLIED:
                raise AlreadyAppliedError(f"correction {correction_id} was already applied")
            if fresh.status not in CORRECTION_APPLICABLE:
                raise InvalidStateError(f"cannot apply correction in status {fresh.status.value}")

            location = locate_field(word, fresh.correction_type, fresh.current_value, fresh.meaning_index)
            location.write(word, fresh.proposed_change)

            observed["previous_status"] = fresh.status
            observed["location"] = location
            fresh.status = self.engine.next_status(EntityKind.CORRECTION, fresh.status, CorrectionApplied(), fresh.tally)
            fresh.applied_at = utcnow()
            return word, fresh

        actor_id = identity.user_id if identity is not None else None
        with tracer.start_as_current_span("corrections.apply") as span:
            span.set_attribute("correction.id", correction_id)
            span.set_attribute("word.id", correction.word_id)
            word, applied = await self.store.transact_pair(
                correction.word_id,
                correction_id,
                apply_correction,
                audit=AuditEntry(
                    event_type="correction_applied",
                    actor_id=actor_id,
                    payload={"correction_id": correction_id, "word_id": correction.word_id},
                ),
            )

        location: FieldLocation = observed["location"]
        logger.info(
            "correction applied id=%s word=%s field=%s meaning_index=%s",
            correction_id,
            word.id,
            location.field,
            location.meaning_index,
        )
        await self.notifier.publish(
            EntityKind.CORRECTION,
            correction_id,
            StateChange(
                kind=EntityKind.CORRECTION,
                entity_id=correction_id,
                event_type="correction_applied",
                status=applied.status.value,
                previous_status=observed["previous_status"].value,
                votes_for=applied.votes_for,
                votes_against=applied.votes_against,
                actor_id=actor_id,
            ),
        )
        await self.notifier.publish(
            EntityKind.WORD,
            word.id,
            StateChange(
                kind=EntityKind.WORD,
                entity_id=word.id,
                event_type="correction_applied",
                status=word.status.value,
                previous_status=word.status.value,
                votes_for=word.votes_for,
                votes_against=word.votes_against,
                actor_id=actor_id,
            ),
        )
        return ApplyOutcome(
            success=True,
            correction_id=correction_id,
            word_id=word.id,
            field=location.field,
            meaning_index=location.meaning_index,
            applied_at=applied.applied_at,
        )

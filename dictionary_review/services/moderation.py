from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any

from opentelemetry import trace
from pydantic import ValidationError as PydanticValidationError

from dictionary_review.core.auth import IdentityContext
from dictionary_review.schemas.events import AuditEventOut
from dictionary_review.schemas.words import StatusView, VoteOutcome, WordSubmission
from dictionary_review.services.corrections import locate_field
from dictionary_review.services.entities import (
    CorrectionEntity,
    CorrectionType,
    Meaning,
    ReportEntity,
    VoteRecord,
    WordEntity,
)
from dictionary_review.services.errors import (
    AlreadyVotedError,
    ApplyConflictError,
    InvalidStateError,
    SelfVoteError,
    ValidationError,
)
from dictionary_review.services.lifecycle import (
    EntityKind,
    TransitionEngine,
    VoteCast,
    VoteDecision,
    WordStatus,
    can_vote,
)
from dictionary_review.services.notifier import ChangeNotifier, StateChange, Subscriber
from dictionary_review.services.results import as_result
from dictionary_review.services.store import AuditEntry, EntityStore

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

REVIEWABLE_KINDS = {EntityKind.WORD, EntityKind.CORRECTION}


def coerce_reviewable_kind(kind: Any) -> EntityKind:
    try:
        parsed = EntityKind(kind)
    except ValueError as exc:
        raise ValidationError(f"unknown entity kind: {kind!r}") from exc
    if parsed not in REVIEWABLE_KINDS:
        raise ValidationError(f"{parsed.value} entities are not reviewed by vote")
    return parsed


def clean_text(value: Any, name: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError(f"{name} must be a string, got {type(value).__name__}")
    return value.strip()


class ModerationService:
    """Community-facing operations: submissions, votes, corrections, reports."""

    def __init__(
        self,
        store: EntityStore,
        engine: TransitionEngine,
        notifier: ChangeNotifier,
        *,
        require_comment_on_reject: bool = True,
    ) -> None:
        self.store = store
        self.engine = engine
        self.notifier = notifier
        self.require_comment_on_reject = require_comment_on_reject

    @as_result
    async def submit_word(self, data: WordSubmission | Mapping[str, Any], identity: IdentityContext) -> str:
        try:
            submission = WordSubmission.model_validate(data)
        except PydanticValidationError as exc:
            raise ValidationError(_summarize_validation_error(exc)) from exc

        word = WordEntity(
            kurukh_word=submission.kurukh_word,
            meanings=[Meaning(**meaning.model_dump()) for meaning in submission.meanings],
            part_of_speech=submission.part_of_speech,
            pronunciation=submission.pronunciation or None,
            contributor_id=identity.user_id,
        )
        word_id = await self.store.create(
            EntityKind.WORD,
            word,
            audit=AuditEntry(event_type="submitted", actor_id=identity.user_id),
        )
        logger.info("word submitted id=%s contributor=%s", word_id, identity.user_id)
        await self.notifier.publish(
            EntityKind.WORD,
            word_id,
            StateChange(
                kind=EntityKind.WORD,
                entity_id=word_id,
                event_type="submitted",
                status=word.status.value,
                votes_for=0,
                votes_against=0,
                actor_id=identity.user_id,
            ),
        )
        return word_id

    @as_result
    async def vote(
        self,
        kind: EntityKind | str,
        entity_id: str,
        identity: IdentityContext,
        decision: VoteDecision | str,
        comment: str | None = None,
    ) -> VoteOutcome:
        kind = coerce_reviewable_kind(kind)
        try:
            decision = VoteDecision(decision)
        except ValueError as exc:
            raise ValidationError(f"vote must be approve or reject, got {decision!r}") from exc
        comment = clean_text(comment, "comment")
        if decision == VoteDecision.REJECT and self.require_comment_on_reject and not comment:
            raise ValidationError("a comment is required when rejecting")

        observed: dict[str, Any] = {}

        def apply_vote(entity: Any) -> Any:
            # Guards run against the freshly read entity on every attempt.
            if not can_vote(kind, entity.status):
                raise InvalidStateError(f"cannot vote on {kind.value} in status {entity.status.value}")
            if entity.owner_id == identity.user_id:
                raise SelfVoteError(f"user {identity.user_id} cannot vote on their own {kind.value}")
            if entity.has_voted(identity.user_id):
                raise AlreadyVotedError(f"user {identity.user_id} has already voted on this {kind.value}")

            observed["previous_status"] = entity.status
            entity.record_vote(VoteRecord(user_id=identity.user_id, vote=decision, comment=comment))
            entity.status = self.engine.next_status(kind, entity.status, VoteCast(decision), entity.tally)
            return entity

        with tracer.start_as_current_span("moderation.vote") as span:
            span.set_attribute("entity.kind", kind.value)
            span.set_attribute("entity.id", entity_id)
            updated = await self.store.transact(
                kind,
                entity_id,
                apply_vote,
                audit=AuditEntry(
                    event_type="vote_cast",
                    actor_id=identity.user_id,
                    payload={"vote": decision.value, "comment": comment},
                ),
            )
            span.set_attribute("entity.status", updated.status.value)

        previous_status = observed["previous_status"]
        if previous_status != updated.status:
            logger.info(
                "threshold transition kind=%s id=%s from=%s to=%s votes_for=%s votes_against=%s",
                kind.value,
                entity_id,
                previous_status.value,
                updated.status.value,
                updated.votes_for,
                updated.votes_against,
            )
        await self.notifier.publish(
            kind,
            entity_id,
            StateChange(
                kind=kind,
                entity_id=entity_id,
                event_type="vote_cast",
                status=updated.status.value,
                previous_status=previous_status.value,
                votes_for=updated.votes_for,
                votes_against=updated.votes_against,
                actor_id=identity.user_id,
            ),
        )
        return VoteOutcome(
            status=updated.status.value,
            previous_status=previous_status.value,
            votes_for=updated.votes_for,
            votes_against=updated.votes_against,
        )

    @as_result
    async def propose_correction(
        self,
        word_id: str,
        identity: IdentityContext,
        correction_type: CorrectionType | str,
        current_value: str | None,
        proposed_change: str,
        explanation: str = "",
        meaning_index: int | None = None,
    ) -> str:
        try:
            parsed_type = CorrectionType.parse(correction_type)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc
        current_value = clean_text(current_value, "current_value")
        proposed_change = clean_text(proposed_change, "proposed_change")
        explanation = clean_text(explanation, "explanation")
        if not proposed_change:
            raise ValidationError("proposed_change is required")
        if proposed_change == current_value:
            raise ValidationError("proposed_change must differ from current_value")
        if meaning_index is not None and (
            isinstance(meaning_index, bool) or not isinstance(meaning_index, int) or meaning_index < 0
        ):
            raise ValidationError(f"meaning_index must be a non-negative integer, got {meaning_index!r}")

        word: WordEntity = await self.store.get(EntityKind.WORD, word_id)
        if word.status is not WordStatus.APPROVED:
            raise InvalidStateError(f"corrections can only be proposed for approved words, not {word.status.value}")
        if parsed_type is not CorrectionType.OTHER:
            try:
                locate_field(word, parsed_type, current_value, meaning_index)
            except ApplyConflictError as exc:
                raise ValidationError(f"current_value does not match the word: {exc}") from exc

        correction = CorrectionEntity(
            word_id=word_id,
            user_id=identity.user_id,
            correction_type=parsed_type,
            meaning_index=meaning_index,
            current_value=current_value,
            proposed_change=proposed_change,
            explanation=explanation,
        )
        correction_id = await self.store.create(
            EntityKind.CORRECTION,
            correction,
            audit=AuditEntry(
                event_type="correction_proposed",
                actor_id=identity.user_id,
                payload={"word_id": word_id, "correction_type": parsed_type.value},
            ),
        )
        logger.info(
            "correction proposed id=%s word=%s type=%s proposer=%s",
            correction_id,
            word_id,
            parsed_type.value,
            identity.user_id,
        )
        await self.notifier.publish(
            EntityKind.CORRECTION,
            correction_id,
            StateChange(
                kind=EntityKind.CORRECTION,
                entity_id=correction_id,
                event_type="correction_proposed",
                status=correction.status.value,
                votes_for=0,
                votes_against=0,
                actor_id=identity.user_id,
            ),
        )
        return correction_id

    @as_result
    async def load_status(self, kind: EntityKind | str, entity_id: str) -> StatusView:
        kind = coerce_reviewable_kind(kind)
        entity = await self.store.get(kind, entity_id)
        return StatusView(
            kind=kind.value,
            id=entity.id,
            status=entity.status.value,
            votes_for=entity.votes_for,
            votes_against=entity.votes_against,
            reviewed_by=entity.reviewed_by,
            updated_at=entity.updated_at,
        )

    def subscribe(self, kind: EntityKind | str, entity_id: str, callback: Subscriber) -> Callable[[], None]:
        return self.notifier.subscribe(EntityKind(kind), entity_id, callback)

    @as_result
    async def report_word(
        self,
        word_id: str,
        identity: IdentityContext,
        reason: str,
        details: str | None = None,
    ) -> str:
        reason = clean_text(reason, "reason")
        details = clean_text(details, "details") or None
        if not reason:
            raise ValidationError("a report reason is required")
        await self.store.get(EntityKind.WORD, word_id)

        report = ReportEntity(word_id=word_id, user_id=identity.user_id, reason=reason, details=details)
        report_id = await self.store.create(
            EntityKind.REPORT,
            report,
            audit=AuditEntry(event_type="report_created", actor_id=identity.user_id, payload={"word_id": word_id}),
        )
        logger.info("word reported id=%s word=%s reporter=%s", report_id, word_id, identity.user_id)
        return report_id

    @as_result
    async def list_events(
        self,
        kind: EntityKind | str,
        entity_id: str,
        *,
        limit: int = 50,
        offset: int = 0,
    ) -> list[AuditEventOut]:
        try:
            kind = EntityKind(kind)
        except ValueError as exc:
            raise ValidationError(f"unknown entity kind: {kind!r}") from exc
        await self.store.get(kind, entity_id)
        events = await self.store.list_events(kind, entity_id, limit=limit, offset=offset)
        return [
            AuditEventOut(
                id=event.id,
                entity_type=event.entity_type,
                entity_id=event.entity_id,
                event_type=event.event_type,
                actor_id=event.actor_id,
                payload=event.payload,
                created_at=event.created_at,
            )
            for event in events
        ]


def _summarize_validation_error(exc: PydanticValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ()))
        parts.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return "; ".join(parts) or "invalid payload"


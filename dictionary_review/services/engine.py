from __future__ import annotations

from collections.abc import Callable, Mapping
from functools import lru_cache
from typing import Any

from dictionary_review.core.auth import IdentityContext
from dictionary_review.core.config import Settings, get_settings
from dictionary_review.schemas.words import WordSubmission
from dictionary_review.services.admin import AdminGateway
from dictionary_review.services.corrections import CorrectionApplier
from dictionary_review.services.entities import CorrectionType
from dictionary_review.services.lifecycle import AdminDecision, EntityKind, TransitionEngine, VoteDecision
from dictionary_review.services.moderation import ModerationService
from dictionary_review.services.notifier import ChangeNotifier, Subscriber, audit_log_subscriber
from dictionary_review.services.repository import get_entity_store
from dictionary_review.services.results import OperationResult
from dictionary_review.services.store import EntityStore
from dictionary_review.services.thresholds import ThresholdPolicy


class ReviewEngine:
    """Library surface of the review engine.

    Wires one store, one transition engine and one notifier into the moderation,
    correction and admin components. Every call returns an ``OperationResult``;
    only ``subscribe`` and ``close`` are plain.
    """

    def __init__(
        self,
        store: EntityStore,
        *,
        thresholds: ThresholdPolicy | None = None,
        notifier: ChangeNotifier | None = None,
        require_comment_on_reject: bool = True,
    ) -> None:
        self.store = store
        self.thresholds = thresholds or ThresholdPolicy()
        self.transitions = TransitionEngine(self.thresholds)
        self.notifier = notifier or ChangeNotifier()
        self.notifier.subscribe_all(audit_log_subscriber)

        self.moderation = ModerationService(
            store,
            self.transitions,
            self.notifier,
            require_comment_on_reject=require_comment_on_reject,
        )
        self.corrections = CorrectionApplier(store, self.transitions, self.notifier)
        self.admin = AdminGateway(store, self.transitions, self.notifier)

    @classmethod
    def from_settings(cls, store: EntityStore, settings: Settings) -> ReviewEngine:
        return cls(
            store,
            thresholds=ThresholdPolicy.from_settings(settings),
            require_comment_on_reject=settings.require_comment_on_reject,
        )

    async def submit_word(
        self,
        data: WordSubmission | Mapping[str, Any],
        identity: IdentityContext,
    ) -> OperationResult[str]:
        return await self.moderation.submit_word(data, identity)

    async def vote(
        self,
        kind: EntityKind | str,
        entity_id: str,
        identity: IdentityContext,
        decision: VoteDecision | str,
        comment: str | None = None,
    ) -> OperationResult[Any]:
        return await self.moderation.vote(kind, entity_id, identity, decision, comment)

    async def admin_decide(
        self,
        kind: EntityKind | str,
        entity_id: str,
        decision: AdminDecision | str,
        identity: IdentityContext,
        *,
        reason: str | None = None,
        override: bool = False,
    ) -> OperationResult[Any]:
        return await self.admin.admin_decide(kind, entity_id, decision, identity, reason=reason, override=override)

    async def propose_correction(
        self,
        word_id: str,
        identity: IdentityContext,
        correction_type: CorrectionType | str,
        current_value: str | None,
        proposed_change: str,
        explanation: str = "",
        meaning_index: int | None = None,
    ) -> OperationResult[str]:
        return await self.moderation.propose_correction(
            word_id,
            identity,
            correction_type,
            current_value,
            proposed_change,
            explanation,
            meaning_index,
        )

    async def apply_correction(
        self,
        correction_id: str,
        identity: IdentityContext | None = None,
    ) -> OperationResult[Any]:
        return await self.corrections.apply(correction_id, identity)

    async def load_status(self, kind: EntityKind | str, entity_id: str) -> OperationResult[Any]:
        return await self.moderation.load_status(kind, entity_id)

    def subscribe(self, kind: EntityKind | str, entity_id: str, callback: Subscriber) -> Callable[[], None]:
        return self.moderation.subscribe(kind, entity_id, callback)

    async def report_word(
        self,
        word_id: str,
        identity: IdentityContext,
        reason: str,
        details: str | None = None,
    ) -> OperationResult[str]:
        return await self.moderation.report_word(word_id, identity, reason, details)

    async def resolve_report(
        self,
        report_id: str,
        resolution: str,
        identity: IdentityContext,
        *,
        action_taken: str | None = None,
    ) -> OperationResult[Any]:
        return await self.admin.resolve_report(report_id, resolution, identity, action_taken=action_taken)

    async def list_events(
        self,
        kind: EntityKind | str,
        entity_id: str,
        *,
        limit: int = 50,
        offset: int = 0,
    ) -> OperationResult[Any]:
        return await self.moderation.list_events(kind, entity_id, limit=limit, offset=offset)

    async def close(self) -> None:
        await self.store.close()


@lru_cache
def get_engine() -> ReviewEngine:
    return ReviewEngine.from_settings(get_entity_store(), get_settings())

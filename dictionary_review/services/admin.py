from __future__ import annotations

import logging
from typing import Any

from opentelemetry import trace

from dictionary_review.core.auth import IdentityContext
from dictionary_review.schemas.admin import DecisionOutcome
from dictionary_review.schemas.reports import ReportOut
from dictionary_review.services.entities import AdminDecisionRecord, ReportEntity, utcnow
from dictionary_review.services.errors import InvalidStateError, PermissionDeniedError, ValidationError
from dictionary_review.services.lifecycle import (
    AdminDecided,
    AdminDecision,
    EntityKind,
    ReportStatus,
    TransitionEngine,
)
from dictionary_review.services.moderation import clean_text, coerce_reviewable_kind
from dictionary_review.services.notifier import ChangeNotifier, StateChange
from dictionary_review.services.results import as_result
from dictionary_review.services.store import AuditEntry, EntityStore

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


def require_admin(identity: IdentityContext | None) -> IdentityContext:
    if identity is None or not identity.is_admin:
        user_id = identity.user_id if identity is not None else "anonymous"
        raise PermissionDeniedError(f"user {user_id} does not have the admin role")
    return identity


class AdminGateway:
    """Privileged decisions that skip vote thresholds but not lifecycle rules."""

    def __init__(self, store: EntityStore, engine: TransitionEngine, notifier: ChangeNotifier) -> None:
        self.store = store
        self.engine = engine
        self.notifier = notifier

    @as_result
    async def admin_decide(
        self,
        kind: EntityKind | str,
        entity_id: str,
        decision: AdminDecision | str,
        identity: IdentityContext,
        *,
        reason: str | None = None,
        override: bool = False,
    ) -> DecisionOutcome:
        admin = require_admin(identity)
        kind = coerce_reviewable_kind(kind)
        try:
            decision = AdminDecision(decision)
        except ValueError as exc:
            raise ValidationError(f"decision must be approve or reject, got {decision!r}") from exc
        reason = clean_text(reason, "reason") or None

        observed: dict[str, Any] = {}

        def decide(entity: Any) -> Any:
            observed["previous_status"] = entity.status
            entity.status = self.engine.next_status(
                kind,
                entity.status,
                AdminDecided(decision=decision, override=override),
                entity.tally,
            )
            entity.admin_decision = AdminDecisionRecord(admin_id=admin.user_id, decision=decision, reason=reason)
            return entity

        with tracer.start_as_current_span("admin.decide") as span:
            span.set_attribute("entity.kind", kind.value)
            span.set_attribute("entity.id", entity_id)
            updated = await self.store.transact(
                kind,
                entity_id,
                decide,
                audit=AuditEntry(
                    event_type="admin_decided",
                    actor_id=admin.user_id,
                    payload={"decision": decision.value, "reason": reason, "override": override},
                ),
            )

        previous_status = observed["previous_status"]
        logger.info(
            "admin decision kind=%s id=%s decision=%s from=%s to=%s admin=%s override=%s",
            kind.value,
            entity_id,
            decision.value,
            previous_status.value,
            updated.status.value,
            admin.user_id,
            override,
        )
        await self.notifier.publish(
            kind,
            entity_id,
            StateChange(
                kind=kind,
                entity_id=entity_id,
                event_type="admin_decided",
                status=updated.status.value,
                previous_status=previous_status.value,
                votes_for=updated.votes_for,
                votes_against=updated.votes_against,
                actor_id=admin.user_id,
            ),
        )
        return DecisionOutcome(status=updated.status.value, previous_status=previous_status.value)

    @as_result
    async def resolve_report(
        self,
        report_id: str,
        resolution: str,
        identity: IdentityContext,
        *,
        action_taken: str | None = None,
    ) -> ReportOut:
        admin = require_admin(identity)
        resolution = clean_text(resolution, "resolution")
        action_taken = clean_text(action_taken, "action_taken") or None
        if not resolution:
            raise ValidationError("a resolution is required")

        def resolve(report: ReportEntity) -> ReportEntity:
            if report.status is not ReportStatus.OPEN:
                raise InvalidStateError(f"report {report_id} is already {report.status.value}")
            report.status = ReportStatus.RESOLVED
            report.resolution = resolution
            report.action_taken = action_taken
            report.resolved_by = admin.user_id
            report.resolved_at = utcnow()
            return report

        report = await self.store.transact(
            EntityKind.REPORT,
            report_id,
            resolve,
            audit=AuditEntry(
                event_type="report_resolved",
                actor_id=admin.user_id,
                payload={"resolution": resolution, "action_taken": action_taken},
            ),
        )
        logger.info("report resolved id=%s word=%s admin=%s", report_id, report.word_id, admin.user_id)
        await self.notifier.publish(
            EntityKind.REPORT,
            report_id,
            StateChange(
                kind=EntityKind.REPORT,
                entity_id=report_id,
                event_type="report_resolved",
                status=report.status.value,
                previous_status=ReportStatus.OPEN.value,
                actor_id=admin.user_id,
            ),
        )
        return ReportOut.model_validate(report.model_dump(mode="json"))

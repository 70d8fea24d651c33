from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol, TypeVar

from dictionary_review.services.entities import (
    CorrectionEntity,
    WordEntity,
    dump_entity,
    load_entity,
    utcnow,
)
from dictionary_review.services.errors import ConflictError, NotFoundError
from dictionary_review.services.lifecycle import EntityKind

logger = logging.getLogger(__name__)

E = TypeVar("E")
PairMutation = Callable[[WordEntity, CorrectionEntity], tuple[WordEntity, CorrectionEntity]]


@dataclass(slots=True)
class AuditEntry:
    """Provenance record written in the same transaction as the mutation."""

    event_type: str
    actor_id: str | None = None
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class AuditEvent:
    id: int
    entity_type: str
    entity_id: str
    event_type: str
    actor_id: str | None
    payload: dict[str, Any]
    created_at: datetime


class EntityStore(Protocol):
    async def get(self, kind: EntityKind, entity_id: str) -> Any: ...

    async def create(self, kind: EntityKind, entity: Any, *, audit: AuditEntry | None = None) -> str: ...

    async def transact(
        self,
        kind: EntityKind,
        entity_id: str,
        mutate: Callable[[E], E],
        *,
        audit: AuditEntry | None = None,
    ) -> E: ...

    async def transact_pair(
        self,
        word_id: str,
        correction_id: str,
        mutate: PairMutation,
        *,
        audit: AuditEntry | None = None,
    ) -> tuple[WordEntity, CorrectionEntity]: ...

    async def list_events(
        self,
        kind: EntityKind,
        entity_id: str,
        *,
        limit: int = 50,
        offset: int = 0,
    ) -> list[AuditEvent]: ...

    async def close(self) -> None: ...


def audit_payload(audit: AuditEntry, *, before: Any, after: Any) -> dict[str, Any]:
    payload = dict(audit.payload)
    payload["from_status"] = _status_value(before)
    payload["to_status"] = _status_value(after)
    for name in ("votes_for", "votes_against"):
        if hasattr(after, name):
            payload[name] = getattr(after, name)
    return payload


def _status_value(entity: Any) -> str | None:
    status = getattr(entity, "status", None)
    if status is None:
        return None
    return getattr(status, "value", str(status))


@dataclass(slots=True)
class _VersionedRecord:
    version: int
    data: dict[str, Any]


class InMemoryEntityStore:
    """Process-local store with the same optimistic semantics as the database store.

    Records are kept as JSON snapshots with a version number. ``transact`` reads a
    snapshot, yields to the event loop, runs the mutation and commits only when the
    version is unchanged; otherwise it re-reads and retries.
    """

    def __init__(self, *, max_retries: int = 5) -> None:
        self.max_retries = max(0, max_retries)
        self._records: dict[tuple[EntityKind, str], _VersionedRecord] = {}
        self._events: list[AuditEvent] = []
        self._event_ids = itertools.count(1)

    async def get(self, kind: EntityKind, entity_id: str) -> Any:
        kind = EntityKind(kind)
        return load_entity(kind, self._read(kind, entity_id).data)

    async def create(self, kind: EntityKind, entity: Any, *, audit: AuditEntry | None = None) -> str:
        kind = EntityKind(kind)
        key = (kind, entity.id)
        if key in self._records:
            raise ConflictError(f"{kind.value} {entity.id} already exists")
        self._records[key] = _VersionedRecord(version=1, data=dump_entity(entity))
        if audit is not None:
            self._append_event(kind, entity.id, audit, audit_payload(audit, before=None, after=entity))
        return entity.id

    async def transact(
        self,
        kind: EntityKind,
        entity_id: str,
        mutate: Callable[[Any], Any],
        *,
        audit: AuditEntry | None = None,
    ) -> Any:
        kind = EntityKind(kind)
        for attempt in range(self.max_retries + 1):
            record = self._read(kind, entity_id)
            before = load_entity(kind, record.data)
            updated = mutate(load_entity(kind, record.data))
            updated.updated_at = utcnow()
            await asyncio.sleep(0)
            if self._compare_and_swap(kind, entity_id, record.version, updated):
                if audit is not None:
                    self._append_event(kind, entity_id, audit, audit_payload(audit, before=before, after=updated))
                return updated
            logger.debug("stale write retried kind=%s id=%s attempt=%s", kind.value, entity_id, attempt + 1)
        raise ConflictError(f"{kind.value} {entity_id} changed concurrently; retries exhausted")

    async def transact_pair(
        self,
        word_id: str,
        correction_id: str,
        mutate: PairMutation,
        *,
        audit: AuditEntry | None = None,
    ) -> tuple[WordEntity, CorrectionEntity]:
        for attempt in range(self.max_retries + 1):
            word_record = self._read(EntityKind.WORD, word_id)
            correction_record = self._read(EntityKind.CORRECTION, correction_id)
            word_before = load_entity(EntityKind.WORD, word_record.data)
            correction_before = load_entity(EntityKind.CORRECTION, correction_record.data)
            word, correction = mutate(
                load_entity(EntityKind.WORD, word_record.data),
                load_entity(EntityKind.CORRECTION, correction_record.data),
            )
            word.updated_at = correction.updated_at = utcnow()
            await asyncio.sleep(0)

            current_word = self._records.get((EntityKind.WORD, word_id))
            current_correction = self._records.get((EntityKind.CORRECTION, correction_id))
            if (
                current_word is not None
                and current_correction is not None
                and current_word.version == word_record.version
                and current_correction.version == correction_record.version
            ):
                self._records[(EntityKind.WORD, word_id)] = _VersionedRecord(
                    version=word_record.version + 1,
                    data=dump_entity(word),
                )
                self._records[(EntityKind.CORRECTION, correction_id)] = _VersionedRecord(
                    version=correction_record.version + 1,
                    data=dump_entity(correction),
                )
                if audit is not None:
                    self._append_event(
                        EntityKind.CORRECTION,
                        correction_id,
                        audit,
                        audit_payload(audit, before=correction_before, after=correction),
                    )
                    self._append_event(
                        EntityKind.WORD,
                        word_id,
                        audit,
                        audit_payload(audit, before=word_before, after=word),
                    )
                return word, correction
            logger.debug(
                "stale pair write retried word=%s correction=%s attempt=%s",
                word_id,
                correction_id,
                attempt + 1,
            )
        raise ConflictError(f"word {word_id} or correction {correction_id} changed concurrently; retries exhausted")

    async def list_events(
        self,
        kind: EntityKind,
        entity_id: str,
        *,
        limit: int = 50,
        offset: int = 0,
    ) -> list[AuditEvent]:
        kind = EntityKind(kind)
        rows = [event for event in self._events if event.entity_type == kind.value and event.entity_id == entity_id]
        return rows[offset : offset + limit]

    async def close(self) -> None:
        return None

    def _read(self, kind: EntityKind, entity_id: str) -> _VersionedRecord:
        record = self._records.get((kind, entity_id))
        if record is None:
            raise NotFoundError(f"{kind.value} not found")
        return record

    def _compare_and_swap(self, kind: EntityKind, entity_id: str, expected_version: int, entity: Any) -> bool:
        current = self._records.get((kind, entity_id))
        if current is None or current.version != expected_version:
            return False
        self._records[(kind, entity_id)] = _VersionedRecord(version=expected_version + 1, data=dump_entity(entity))
        return True

    def _append_event(self, kind: EntityKind, entity_id: str, audit: AuditEntry, payload: dict[str, Any]) -> None:
        self._events.append(
            AuditEvent(
                id=next(self._event_ids),
                entity_type=kind.value,
                entity_id=entity_id,
                event_type=audit.event_type,
                actor_id=audit.actor_id,
                payload=payload,
                created_at=utcnow(),
            )
        )

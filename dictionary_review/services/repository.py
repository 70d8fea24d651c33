from __future__ import annotations

import json
import logging
from collections.abc import Callable
from datetime import datetime
from functools import lru_cache
from typing import Any

import asyncpg  # type: ignore[import-untyped]
from asyncpg import exceptions as pg_exc

from dictionary_review.core.config import get_settings
from dictionary_review.services.entities import (
    CorrectionEntity,
    WordEntity,
    dump_entity,
    load_entity,
    utcnow,
)
from dictionary_review.services.errors import (
    ConflictError,
    NotFoundError,
    RepositoryUnavailableError,
)
from dictionary_review.services.lifecycle import EntityKind
from dictionary_review.services.store import (
    AuditEntry,
    AuditEvent,
    EntityStore,
    InMemoryEntityStore,
    PairMutation,
    audit_payload,
)

logger = logging.getLogger(__name__)

TABLE_BY_KIND: dict[EntityKind, str] = {
    EntityKind.WORD: "words",
    EntityKind.CORRECTION: "corrections",
    EntityKind.REPORT: "reports",
}

_RETRYABLE_ERRORS = (pg_exc.SerializationError, pg_exc.DeadlockDetectedError)


class _StaleVersion(Exception):
    """Raised inside a transaction to roll it back when a version check fails."""


class PostgresEntityStore:
    """JSONB document store with per-row version compare-and-swap.

    Each mutation runs in a short repeatable-read transaction: read the document
    and its version, apply the mutation in Python, then
    ``update ... where id = $1 and version = $2``. A stale version or a
    serialization failure rolls back and the whole read-modify-write is retried.
    No row locks are held across the mutation.
    """

    def __init__(
        self,
        database_url: str | None,
        min_pool_size: int,
        max_pool_size: int,
        max_retries: int,
        command_timeout_seconds: float = 15.0,
    ) -> None:
        self.database_url = database_url
        self.min_pool_size = min_pool_size
        self.max_pool_size = max_pool_size
        self.max_retries = max(0, max_retries)
        self.command_timeout_seconds = command_timeout_seconds
        self._pool: asyncpg.Pool | None = None

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    async def get(self, kind: EntityKind, entity_id: str) -> Any:
        kind = EntityKind(kind)
        pool = await self._get_pool()
        try:
            row = await pool.fetchrow(
                f"""
                select data
                from {TABLE_BY_KIND[kind]}
                where id = $1::uuid
                """,
                entity_id,
            )
        except (pg_exc.InvalidTextRepresentationError, asyncpg.DataError) as exc:
            raise NotFoundError(f"{kind.value} not found") from exc
        if not row:
            raise NotFoundError(f"{kind.value} not found")
        return load_entity(kind, self._coerce_json_dict(row["data"]))

    async def create(self, kind: EntityKind, entity: Any, *, audit: AuditEntry | None = None) -> str:
        kind = EntityKind(kind)
        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                async with conn.transaction():
                    await conn.execute(
                        f"""
                        insert into {TABLE_BY_KIND[kind]} (id, data, version, created_at, updated_at)
                        values ($1::uuid, $2::jsonb, 1, $3, $3)
                        """,
                        entity.id,
                        json.dumps(dump_entity(entity)),
                        entity.created_at,
                    )
                    if audit is not None:
                        await self._insert_event(
                            conn,
                            kind=kind,
                            entity_id=entity.id,
                            audit=audit,
                            payload=audit_payload(audit, before=None, after=entity),
                        )
        except pg_exc.UniqueViolationError as exc:
            raise ConflictError(f"{kind.value} {entity.id} already exists") from exc
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
        table = TABLE_BY_KIND[kind]
        pool = await self._get_pool()

        for attempt in range(self.max_retries + 1):
            try:
                async with pool.acquire() as conn:
                    async with conn.transaction(isolation="repeatable_read"):
                        row = await conn.fetchrow(
                            f"""
                            select data, version
                            from {table}
                            where id = $1::uuid
                            """,
                            entity_id,
                        )
                        if not row:
                            raise NotFoundError(f"{kind.value} not found")

                        data = self._coerce_json_dict(row["data"])
                        before = load_entity(kind, data)
                        updated = mutate(load_entity(kind, data))
                        updated.updated_at = utcnow()

                        await self._compare_and_swap(
                            conn,
                            table=table,
                            entity_id=entity_id,
                            expected_version=int(row["version"]),
                            entity=updated,
                        )
                        if audit is not None:
                            await self._insert_event(
                                conn,
                                kind=kind,
                                entity_id=entity_id,
                                audit=audit,
                                payload=audit_payload(audit, before=before, after=updated),
                            )
                        return updated
            except (_StaleVersion, *_RETRYABLE_ERRORS):
                logger.debug("stale write retried kind=%s id=%s attempt=%s", kind.value, entity_id, attempt + 1)
            except (pg_exc.InvalidTextRepresentationError, asyncpg.DataError) as exc:
                raise NotFoundError(f"{kind.value} not found") from exc

        raise ConflictError(f"{kind.value} {entity_id} changed concurrently; retries exhausted")

    async def transact_pair(
        self,
        word_id: str,
        correction_id: str,
        mutate: PairMutation,
        *,
        audit: AuditEntry | None = None,
    ) -> tuple[WordEntity, CorrectionEntity]:
        pool = await self._get_pool()

        for attempt in range(self.max_retries + 1):
            try:
                async with pool.acquire() as conn:
                    async with conn.transaction(isolation="repeatable_read"):
                        word_row = await conn.fetchrow(
                            """
                            select data, version
                            from words
                            where id = $1::uuid
                            """,
                            word_id,
                        )
                        if not word_row:
                            raise NotFoundError("word not found")
                        correction_row = await conn.fetchrow(
                            """
                            select data, version
                            from corrections
                            where id = $1::uuid
                            """,
                            correction_id,
                        )
                        if not correction_row:
                            raise NotFoundError("correction not found")

                        word_data = self._coerce_json_dict(word_row["data"])
                        correction_data = self._coerce_json_dict(correction_row["data"])
                        word_before = load_entity(EntityKind.WORD, word_data)
                        correction_before = load_entity(EntityKind.CORRECTION, correction_data)
                        word, correction = mutate(
                            load_entity(EntityKind.WORD, word_data),
                            load_entity(EntityKind.CORRECTION, correction_data),
                        )
                        word.updated_at = correction.updated_at = utcnow()

                        await self._compare_and_swap(
                            conn,
                            table="words",
                            entity_id=word_id,
                            expected_version=int(word_row["version"]),
                            entity=word,
                        )
                        await self._compare_and_swap(
                            conn,
                            table="corrections",
                            entity_id=correction_id,
                            expected_version=int(correction_row["version"]),
                            entity=correction,
                        )
                        if audit is not None:
                            await self._insert_event(
                                conn,
                                kind=EntityKind.CORRECTION,
                                entity_id=correction_id,
                                audit=audit,
                                payload=audit_payload(audit, before=correction_before, after=correction),
                            )
                            await self._insert_event(
                                conn,
                                kind=EntityKind.WORD,
                                entity_id=word_id,
                                audit=audit,
                                payload=audit_payload(audit, before=word_before, after=word),
                            )
                        return word, correction
            except (_StaleVersion, *_RETRYABLE_ERRORS):
                logger.debug(
                    "stale pair write retried word=%s correction=%s attempt=%s",
                    word_id,
                    correction_id,
                    attempt + 1,
                )
            except (pg_exc.InvalidTextRepresentationError, asyncpg.DataError) as exc:
                raise NotFoundError("word or correction not found") from exc

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
        pool = await self._get_pool()
        try:
            rows = await pool.fetch(
                """
                select
                  id,
                  entity_type,
                  entity_id::text as entity_id,
                  event_type,
                  actor_id,
                  payload,
                  created_at
                from moderation_events
                where entity_type = $1
                  and entity_id = $2::uuid
                order by id asc
                limit $3
                offset $4
                """,
                kind.value,
                entity_id,
                limit,
                offset,
            )
        except (pg_exc.InvalidTextRepresentationError, asyncpg.DataError) as exc:
            raise NotFoundError(f"{kind.value} not found") from exc
        return [self._event_row_to_record(row) for row in rows]

    async def _compare_and_swap(
        self,
        conn: asyncpg.Connection,
        *,
        table: str,
        entity_id: str,
        expected_version: int,
        entity: Any,
    ) -> None:
        status = await conn.execute(
            f"""
            update {table}
            set
              data = $2::jsonb,
              version = version + 1,
              updated_at = $4
            where id = $1::uuid
              and version = $3
            """,
            entity_id,
            json.dumps(dump_entity(entity)),
            expected_version,
            entity.updated_at,
        )
        if status != "UPDATE 1":
            raise _StaleVersion(f"{table} {entity_id} version {expected_version} is stale")

    @staticmethod
    async def _insert_event(
        conn: asyncpg.Connection,
        *,
        kind: EntityKind,
        entity_id: str,
        audit: AuditEntry,
        payload: dict[str, Any],
    ) -> None:
        await conn.execute(
            """
            insert into moderation_events (
              entity_type,
              entity_id,
              event_type,
              actor_id,
              payload
            )
            values ($1, $2::uuid, $3, $4, $5::jsonb)
            """,
            kind.value,
            entity_id,
            audit.event_type,
            audit.actor_id,
            json.dumps(payload),
        )

    async def _get_pool(self) -> asyncpg.Pool:
        if not self.database_url:
            raise RepositoryUnavailableError("DR_DATABASE_URL is required")

        if self._pool is not None:
            return self._pool

        try:
            self._pool = await asyncpg.create_pool(
                dsn=self.database_url,
                min_size=self.min_pool_size,
                max_size=self.max_pool_size,
                command_timeout=self.command_timeout_seconds,
            )
            return self._pool
        except Exception as exc:  # pragma: no cover - depends on environment
            raise RepositoryUnavailableError("database unavailable") from exc

    @classmethod
    def _event_row_to_record(cls, row: asyncpg.Record) -> AuditEvent:
        return AuditEvent(
            id=int(row["id"]),
            entity_type=row["entity_type"],
            entity_id=row["entity_id"],
            event_type=row["event_type"],
            actor_id=row["actor_id"],
            payload=cls._coerce_json_dict(row["payload"]),
            created_at=cls._coerce_datetime(row["created_at"]),
        )

    @staticmethod
    def _coerce_json_dict(value: Any) -> dict[str, Any]:
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except json.JSONDecodeError:
                return {}
        if not isinstance(value, dict):
            return {}
        return value

    @staticmethod
    def _coerce_datetime(value: Any) -> datetime:
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            return datetime.fromisoformat(value)
        return utcnow()


@lru_cache
def get_entity_store() -> EntityStore:
    settings = get_settings()
    if settings.store_backend == "memory":
        logger.info("using in-memory entity store; data is not persisted")
        return InMemoryEntityStore(max_retries=settings.transaction_max_retries)
    return PostgresEntityStore(
        database_url=settings.database_url,
        min_pool_size=settings.database_pool_min_size,
        max_pool_size=settings.database_pool_max_size,
        max_retries=settings.transaction_max_retries,
        command_timeout_seconds=settings.database_command_timeout_seconds,
    )

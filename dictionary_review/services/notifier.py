from __future__ import annotations

import inspect
import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime

from dictionary_review.services.entities import utcnow
from dictionary_review.services.lifecycle import EntityKind

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class StateChange:
    kind: EntityKind
    entity_id: str
    event_type: str
    status: str
    previous_status: str | None = None
    votes_for: int | None = None
    votes_against: int | None = None
    actor_id: str | None = None
    occurred_at: datetime = field(default_factory=utcnow)

    @property
    def transitioned(self) -> bool:
        return self.previous_status is not None and self.previous_status != self.status


Subscriber = Callable[[StateChange], Awaitable[None] | None]


class ChangeNotifier:
    """Fans committed entity changes out to observers.

    Subscribers are keyed by ``(kind, entity_id)``; ``subscribe_all`` observes every
    entity. A failing subscriber is logged and skipped; it never undoes the change.
    """

    def __init__(self) -> None:
        self._subscribers: dict[tuple[EntityKind, str], list[Subscriber]] = defaultdict(list)
        self._global_subscribers: list[Subscriber] = []

    def subscribe(self, kind: EntityKind, entity_id: str, callback: Subscriber) -> Callable[[], None]:
        key = (EntityKind(kind), entity_id)
        self._subscribers[key].append(callback)

        def unsubscribe() -> None:
            callbacks = self._subscribers.get(key)
            if callbacks and callback in callbacks:
                callbacks.remove(callback)
                if not callbacks:
                    del self._subscribers[key]

        return unsubscribe

    def subscribe_all(self, callback: Subscriber) -> Callable[[], None]:
        self._global_subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._global_subscribers:
                self._global_subscribers.remove(callback)

        return unsubscribe

    def subscriber_count(self, kind: EntityKind, entity_id: str) -> int:
        return len(self._subscribers.get((EntityKind(kind), entity_id), ()))

    async def publish(self, kind: EntityKind, entity_id: str, change: StateChange) -> None:
        key = (EntityKind(kind), entity_id)
        callbacks = [*self._global_subscribers, *self._subscribers.get(key, ())]
        for callback in callbacks:
            try:
                result = callback(change)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(
                    "change subscriber failed kind=%s id=%s event=%s",
                    key[0].value,
                    entity_id,
                    change.event_type,
                )


def audit_log_subscriber(change: StateChange) -> None:
    logger.info(
        "entity changed kind=%s id=%s event=%s from=%s to=%s votes_for=%s votes_against=%s actor=%s",
        change.kind.value,
        change.entity_id,
        change.event_type,
        change.previous_status,
        change.status,
        change.votes_for,
        change.votes_against,
        change.actor_id,
    )

from __future__ import annotations

import asyncio
import logging

import pytest

from dictionary_review.core.auth import IdentityContext
from dictionary_review.services.engine import ReviewEngine
from dictionary_review.services.lifecycle import EntityKind
from dictionary_review.services.notifier import ChangeNotifier, StateChange
from dictionary_review.services.store import InMemoryEntityStore

WORD_DATA = {"kurukh_word": "pello", "meanings": [{"definition": "girl"}], "part_of_speech": "noun"}
CONTRIBUTOR = IdentityContext(user_id="u1", roles=frozenset({"user"}))


def _change(entity_id: str = "w1") -> StateChange:
    return StateChange(kind=EntityKind.WORD, entity_id=entity_id, event_type="vote_cast", status="community_review")


def test_publish_reaches_sync_and_async_subscribers() -> None:
    async def scenario() -> None:
        notifier = ChangeNotifier()
        seen: list[str] = []

        async def async_callback(change: StateChange) -> None:
            await asyncio.sleep(0)
            seen.append(f"async:{change.entity_id}")

        notifier.subscribe(EntityKind.WORD, "w1", lambda change: seen.append(f"sync:{change.entity_id}"))
        notifier.subscribe(EntityKind.WORD, "w1", async_callback)
        notifier.subscribe(EntityKind.WORD, "w2", lambda change: seen.append("other"))

        await notifier.publish(EntityKind.WORD, "w1", _change())
        assert seen == ["sync:w1", "async:w1"]

    asyncio.run(scenario())


def test_unsubscribe_stops_delivery() -> None:
    async def scenario() -> None:
        notifier = ChangeNotifier()
        seen: list[StateChange] = []
        unsubscribe = notifier.subscribe(EntityKind.WORD, "w1", seen.append)
        assert notifier.subscriber_count(EntityKind.WORD, "w1") == 1

        unsubscribe()
        unsubscribe()
        assert notifier.subscriber_count(EntityKind.WORD, "w1") == 0
        await notifier.publish(EntityKind.WORD, "w1", _change())
        assert seen == []

    asyncio.run(scenario())


def test_failing_subscriber_does_not_affect_the_vote(caplog: pytest.LogCaptureFixture) -> None:
    async def scenario() -> list[StateChange]:
        engine = ReviewEngine(InMemoryEntityStore())
        word_id = (await engine.submit_word(WORD_DATA, CONTRIBUTOR)).unwrap()
        delivered: list[StateChange] = []

        def broken(_: StateChange) -> None:
            raise RuntimeError("subscriber exploded")

        engine.subscribe("word", word_id, broken)
        engine.subscribe("word", word_id, delivered.append)

        voter = IdentityContext(user_id="u2", roles=frozenset({"user"}))
        result = await engine.vote("word", word_id, voter, "approve")
        assert result.success
        assert (await engine.load_status("word", word_id)).unwrap().votes_for == 1
        return delivered

    with caplog.at_level(logging.ERROR, logger="dictionary_review.services.notifier"):
        delivered = asyncio.run(scenario())

    assert len(delivered) == 1
    assert delivered[0].votes_for == 1
    assert delivered[0].actor_id == "u2"
    assert "change subscriber failed" in caplog.text


def test_transitioned_flag() -> None:
    assert not _change().transitioned
    moved = StateChange(
        kind=EntityKind.WORD,
        entity_id="w1",
        event_type="vote_cast",
        status="pending_review",
        previous_status="community_review",
    )
    assert moved.transitioned

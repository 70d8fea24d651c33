from __future__ import annotations

import asyncio
import random
from typing import Any

from dictionary_review.core.auth import IdentityContext
from dictionary_review.services.engine import ReviewEngine
from dictionary_review.services.lifecycle import EntityKind
from dictionary_review.services.notifier import StateChange
from dictionary_review.services.store import InMemoryEntityStore

WORD_DATA: dict[str, Any] = {
    "kurukh_word": "khad",
    "meanings": [{"language": "en", "definition": "child", "example": "khad ekkan", "example_translation": "a child"}],
    "part_of_speech": "noun",
}

CONTRIBUTOR = IdentityContext(user_id="u1", roles=frozenset({"user"}))
ADMIN = IdentityContext(user_id="admin-1", roles=frozenset({"user", "admin"}))


def _user(user_id: str) -> IdentityContext:
    return IdentityContext(user_id=user_id, roles=frozenset({"user"}))


def _engine() -> ReviewEngine:
    return ReviewEngine(InMemoryEntityStore())


async def _submit(engine: ReviewEngine) -> str:
    return (await engine.submit_word(WORD_DATA, CONTRIBUTOR)).unwrap()


def test_submit_word_starts_community_review() -> None:
    async def scenario() -> None:
        engine = _engine()
        word_id = await _submit(engine)
        status = (await engine.load_status("word", word_id)).unwrap()
        assert status.status == "community_review"
        assert status.votes_for == status.votes_against == 0
        assert status.reviewed_by == []

    asyncio.run(scenario())


def test_submit_word_requires_a_meaning() -> None:
    async def scenario() -> None:
        result = await _engine().submit_word({"kurukh_word": "khad", "part_of_speech": "noun", "meanings": []}, CONTRIBUTOR)
        assert not result.success
        assert result.error_kind == "validation_error"
        assert "meanings" in (result.message or "")

    asyncio.run(scenario())


def test_review_scenarios_a_through_e() -> None:
    async def scenario() -> None:
        engine = _engine()
        word_id = await _submit(engine)

        # A: first approval leaves the word in community review.
        first = await engine.vote("word", word_id, _user("u2"), "approve")
        assert first.success
        assert first.value.votes_for == 1
        assert first.value.status == "community_review"

        # B: four more approvals cross the threshold.
        for user_id in ("u3", "u4", "u5"):
            outcome = (await engine.vote("word", word_id, _user(user_id), "approve")).unwrap()
            assert outcome.status == "community_review"
        fifth = (await engine.vote("word", word_id, _user("u6"), "approve")).unwrap()
        assert fifth.votes_for == 5
        assert fifth.previous_status == "community_review"
        assert fifth.status == "pending_review"

        # C: the contributor cannot vote on their own word.
        self_vote = await engine.vote("word", word_id, CONTRIBUTOR, "approve")
        assert self_vote.error_kind == "self_vote"

        # D: a second vote from the same user is refused.
        again = await engine.vote("word", word_id, _user("u2"), "approve")
        assert again.error_kind == "already_voted"

        status = (await engine.load_status("word", word_id)).unwrap()
        assert status.votes_for == 5
        assert len(status.reviewed_by) == 5

        # E: an admin approves; afterwards every vote is out of stage.
        decided = (await engine.admin_decide("word", word_id, "approve", ADMIN)).unwrap()
        assert decided.status == "approved"
        assert decided.previous_status == "pending_review"

        late = await engine.vote("word", word_id, _user("u7"), "approve")
        assert late.error_kind == "invalid_state_for_operation"
        repeat = await engine.vote("word", word_id, _user("u2"), "approve")
        assert repeat.error_kind == "invalid_state_for_operation"

        final = (await engine.load_status("word", word_id)).unwrap()
        assert final.status == "approved"
        assert final.votes_for == 5

    asyncio.run(scenario())


def test_reject_vote_requires_comment() -> None:
    async def scenario() -> None:
        engine = _engine()
        word_id = await _submit(engine)

        missing = await engine.vote("word", word_id, _user("u2"), "reject")
        assert missing.error_kind == "validation_error"
        blank = await engine.vote("word", word_id, _user("u2"), "reject", "   ")
        assert blank.error_kind == "validation_error"

        ok = (await engine.vote("word", word_id, _user("u2"), "reject", "not a Kurukh word")).unwrap()
        assert ok.votes_against == 1
        status = (await engine.load_status("word", word_id)).unwrap()
        assert status.reviewed_by[0].comment == "not a Kurukh word"

    asyncio.run(scenario())


def test_reject_comment_can_be_optional() -> None:
    async def scenario() -> None:
        engine = ReviewEngine(InMemoryEntityStore(), require_comment_on_reject=False)
        word_id = await _submit(engine)
        outcome = await engine.vote("word", word_id, _user("u2"), "reject")
        assert outcome.success

    asyncio.run(scenario())


def test_five_rejections_end_in_community_rejected() -> None:
    async def scenario() -> None:
        engine = _engine()
        word_id = await _submit(engine)
        for index in range(2, 7):
            outcome = (await engine.vote("word", word_id, _user(f"u{index}"), "reject", "spelling is off")).unwrap()
        assert outcome.status == "community_rejected"
        assert outcome.votes_against == 5

        decided = await engine.admin_decide("word", word_id, "approve", ADMIN, override=True)
        assert decided.error_kind == "invalid_state_for_operation"

    asyncio.run(scenario())


def test_threshold_transition_happens_once_regardless_of_order() -> None:
    async def scenario(seed: int) -> None:
        engine = _engine()
        word_id = await _submit(engine)
        changes: list[StateChange] = []
        engine.subscribe("word", word_id, changes.append)

        ballots = [("approve", None)] * 6 + [("reject", "unsure about this")] * 3
        random.Random(seed).shuffle(ballots)
        for index, (decision, comment) in enumerate(ballots):
            (await engine.vote("word", word_id, _user(f"voter-{index}"), decision, comment)).unwrap()

        status = (await engine.load_status("word", word_id)).unwrap()
        assert status.status == "pending_review"
        assert (status.votes_for, status.votes_against) == (6, 3)
        assert [change.status for change in changes if change.transitioned] == ["pending_review"]

        events = (await engine.list_events("word", word_id)).unwrap()
        transitions = [
            event
            for event in events
            if event.event_type == "vote_cast" and event.payload["from_status"] != event.payload["to_status"]
        ]
        assert len(transitions) == 1
        assert transitions[0].payload["votes_for"] == 5

    for seed in range(5):
        asyncio.run(scenario(seed))


def test_vote_errors_for_unknown_entities_and_kinds() -> None:
    async def scenario() -> None:
        engine = _engine()
        missing = await engine.vote("word", "11111111-1111-1111-1111-111111111111", _user("u2"), "approve")
        assert missing.error_kind == "not_found"
        malformed = await engine.load_status("word", "not-a-uuid")
        assert malformed.error_kind == "not_found"
        report_kind = await engine.vote("report", "anything", _user("u2"), "approve")
        assert report_kind.error_kind == "validation_error"
        bad_decision = await engine.vote("word", "anything", _user("u2"), "abstain")
        assert bad_decision.error_kind == "validation_error"

    asyncio.run(scenario())


def test_failed_vote_leaves_entity_untouched() -> None:
    async def scenario() -> None:
        engine = _engine()
        word_id = await _submit(engine)
        before = (await engine.load_status("word", word_id)).unwrap()
        await engine.vote("word", word_id, CONTRIBUTOR, "approve")
        after = (await engine.load_status("word", word_id)).unwrap()
        assert after == before
        events = (await engine.list_events("word", word_id)).unwrap()
        assert [event.event_type for event in events] == ["submitted"]

    asyncio.run(scenario())


def test_report_word_records_an_open_report() -> None:
    async def scenario() -> None:
        engine = _engine()
        word_id = await _submit(engine)
        report_id = (await engine.report_word(word_id, _user("u2"), "offensive", "example is rude")).unwrap()
        events = (await engine.list_events("report", report_id)).unwrap()
        assert [event.event_type for event in events] == ["report_created"]
        assert events[0].payload["word_id"] == word_id

        blank = await engine.report_word(word_id, _user("u2"), " ")
        assert blank.error_kind == "validation_error"
        missing = await engine.report_word("11111111-1111-1111-1111-111111111111", _user("u2"), "spam")
        assert missing.error_kind == "not_found"

    asyncio.run(scenario())


def test_submit_word_rejects_whitespace_only_fields() -> None:
    async def scenario() -> None:
        engine = _engine()
        blank = await engine.submit_word(
            {"kurukh_word": "   ", "meanings": [{"definition": "  "}], "part_of_speech": " "},
            CONTRIBUTOR,
        )
        assert not blank.success
        assert blank.error_kind == "validation_error"
        for field in ("kurukh_word", "meanings.0.definition", "part_of_speech"):
            assert field in (blank.message or "")

    asyncio.run(scenario())


def test_submit_word_stores_trimmed_values() -> None:
    async def scenario() -> None:
        engine = _engine()
        word_id = (
            await engine.submit_word(
                {
                    "kurukh_word": " khad ",
                    "meanings": [{"definition": "child ", "example": " khad ekkan"}],
                    "part_of_speech": "noun\n",
                    "pronunciation": "   ",
                },
                CONTRIBUTOR,
            )
        ).unwrap()
        word = await engine.store.get(EntityKind.WORD, word_id)
        assert word.kurukh_word == "khad"
        assert word.part_of_speech == "noun"
        assert word.meanings[0].definition == "child"
        assert word.meanings[0].example == "khad ekkan"
        assert word.pronunciation is None

    asyncio.run(scenario())


def test_non_text_arguments_return_validation_errors() -> None:
    async def scenario() -> None:
        engine = _engine()
        word_id = await _submit(engine)

        vote = await engine.vote("word", word_id, _user("u2"), "reject", comment=5)  # type: ignore[arg-type]
        assert vote.error_kind == "validation_error"
        assert "comment" in (vote.message or "")

        report = await engine.report_word(word_id, _user("u2"), ["spam"])  # type: ignore[arg-type]
        assert report.error_kind == "validation_error"

        (await engine.admin_decide("word", word_id, "approve", ADMIN, override=True)).unwrap()
        proposal = await engine.propose_correction(word_id, _user("u2"), "spelling", 7, "khaddi")  # type: ignore[arg-type]
        assert proposal.error_kind == "validation_error"
        bad_index = await engine.propose_correction(
            word_id, _user("u2"), "definition", "child", "a child", meaning_index="0"  # type: ignore[arg-type]
        )
        assert bad_index.error_kind == "validation_error"

        status = (await engine.load_status("word", word_id)).unwrap()
        assert status.reviewed_by == []

    asyncio.run(scenario())

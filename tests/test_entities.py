import pytest
from pydantic import ValidationError

from dictionary_review.services.entities import (
    CorrectionEntity,
    CorrectionType,
    VoteRecord,
    WordEntity,
    dump_entity,
    load_entity,
)
from dictionary_review.services.lifecycle import CorrectionStatus, EntityKind, VoteDecision, WordStatus


def _word(**overrides) -> WordEntity:
    data = {
        "kurukh_word": "alla",
        "meanings": [{"definition": "dog"}],
        "part_of_speech": "noun",
        "contributor_id": "u1",
    }
    data.update(overrides)
    return WordEntity.model_validate(data)


def test_new_word_starts_in_community_review_with_empty_ledger() -> None:
    word = _word()
    assert word.status is WordStatus.COMMUNITY_REVIEW
    assert word.votes_for == word.votes_against == 0
    assert word.reviewed_by == []
    assert word.owner_id == "u1"


def test_record_vote_keeps_counts_in_step_with_ledger() -> None:
    word = _word()
    word.record_vote(VoteRecord(user_id="u2", vote=VoteDecision.APPROVE))
    word.record_vote(VoteRecord(user_id="u3", vote=VoteDecision.REJECT, comment="wrong gloss"))
    assert (word.votes_for, word.votes_against) == (1, 1)
    assert [record.user_id for record in word.reviewed_by] == ["u2", "u3"]


def test_counts_that_disagree_with_ledger_are_rejected_on_load() -> None:
    with pytest.raises(ValidationError):
        _word(votes_for=1)


def test_contributor_in_ledger_is_rejected_on_load() -> None:
    with pytest.raises(ValidationError):
        _word(votes_for=1, reviewed_by=[{"user_id": "u1", "vote": "approve"}])


def test_duplicate_reviewer_is_rejected() -> None:
    word = _word()
    word.record_vote(VoteRecord(user_id="u2", vote=VoteDecision.APPROVE))
    with pytest.raises(ValueError):
        word.record_vote(VoteRecord(user_id="u2", vote=VoteDecision.REJECT, comment="changed my mind"))


def test_negative_counts_are_rejected() -> None:
    with pytest.raises(ValidationError):
        _word(votes_against=-1)


def test_legacy_status_is_normalized_at_load() -> None:
    word = _word(status="submitted")
    assert word.status is WordStatus.COMMUNITY_REVIEW
    assert dump_entity(word)["status"] == "community_review"


def test_correction_type_aliases_and_owner() -> None:
    correction = CorrectionEntity.model_validate(
        {
            "word_id": "w1",
            "user_id": "u5",
            "correction_type": "example_sentence",
            "current_value": "old",
            "proposed_change": "new",
            "status": "pending",
        }
    )
    assert correction.correction_type is CorrectionType.EXAMPLE
    assert correction.status is CorrectionStatus.SHALLOW_REVIEW
    assert correction.owner_id == "u5"
    assert CorrectionType.parse("partOfSpeech") is CorrectionType.PART_OF_SPEECH
    with pytest.raises(ValueError):
        CorrectionType.parse("etymology")


def test_load_entity_restores_the_ledger() -> None:
    word = _word()
    word.record_vote(VoteRecord(user_id="u2", vote=VoteDecision.APPROVE, comment="looks right"))
    restored = load_entity(EntityKind.WORD, dump_entity(word))
    assert restored.reviewed_by[0].comment == "looks right"
    assert restored.tally.votes_for == 1

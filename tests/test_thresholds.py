import pytest

from dictionary_review.core.config import Settings
from dictionary_review.services.lifecycle import EntityKind, VoteDecision
from dictionary_review.services.thresholds import ThresholdPolicy


def test_default_thresholds() -> None:
    policy = ThresholdPolicy()
    assert policy.threshold(EntityKind.WORD, VoteDecision.APPROVE) == 5
    assert policy.threshold(EntityKind.WORD, VoteDecision.REJECT) == 5
    assert policy.threshold(EntityKind.CORRECTION, VoteDecision.APPROVE) == 3
    assert policy.threshold("correction", "reject") == 3


def test_thresholds_from_settings() -> None:
    settings = Settings(word_approve_threshold=7, correction_reject_threshold=2)
    policy = ThresholdPolicy.from_settings(settings)
    assert policy.threshold(EntityKind.WORD, VoteDecision.APPROVE) == 7
    assert policy.threshold(EntityKind.WORD, VoteDecision.REJECT) == 5
    assert policy.threshold(EntityKind.CORRECTION, VoteDecision.REJECT) == 2


def test_thresholds_must_be_positive() -> None:
    with pytest.raises(ValueError):
        ThresholdPolicy(word_reject=0)


def test_reports_have_no_thresholds() -> None:
    with pytest.raises(ValueError):
        ThresholdPolicy().threshold(EntityKind.REPORT, VoteDecision.APPROVE)

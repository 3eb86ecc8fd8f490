"""Tests for the embedding lifecycle rules (transitions, eligibility, backoff)."""
from datetime import datetime, timedelta, timezone

import pytest
from sqlmodel import Session, select

from imgsearch.domain.exceptions import InvalidTransitionError
from imgsearch.embedding.state import (
    RetryPolicy,
    can_transition,
    check_transition,
    eligible_clause,
    is_eligible,
    is_terminal_failure,
)
from imgsearch.models.core import EmbeddingStatus, ImageRecord

NOW = datetime(2026, 1, 10, 12, 0, 0, tzinfo=timezone.utc)
POLICY = RetryPolicy(max_attempts=3, retry_delay=timedelta(seconds=60), stale_after=timedelta(minutes=15))


def _record(status, attempts=0, last=None) -> ImageRecord:
    return ImageRecord(
        owner_id="alice",
        filename="f.png",
        original_name="f.png",
        file_path="f.png",
        file_size=1,
        mime_type="image/png",
        embedding_status=status,
        embedding_attempts=attempts,
        last_embedding_attempt=last,
    )


@pytest.mark.parametrize(
    "current,target,allowed",
    [
        (EmbeddingStatus.PENDING, EmbeddingStatus.PROCESSING, True),
        (EmbeddingStatus.FAILED, EmbeddingStatus.PROCESSING, True),
        (EmbeddingStatus.PROCESSING, EmbeddingStatus.COMPLETED, True),
        (EmbeddingStatus.PROCESSING, EmbeddingStatus.FAILED, True),
        (EmbeddingStatus.PENDING, EmbeddingStatus.COMPLETED, False),
        (EmbeddingStatus.COMPLETED, EmbeddingStatus.PROCESSING, False),
        (EmbeddingStatus.COMPLETED, EmbeddingStatus.PENDING, False),
    ],
)
def test_transition_table(current, target, allowed):
    assert can_transition(current, target) is allowed


def test_check_transition_raises_for_completed_records():
    with pytest.raises(InvalidTransitionError):
        check_transition(EmbeddingStatus.COMPLETED, EmbeddingStatus.PROCESSING)


def test_pending_is_always_eligible_even_with_attempts():
    assert is_eligible(_record(EmbeddingStatus.PENDING, attempts=7), NOW, POLICY)


def test_failed_backoff_boundary():
    just_before = _record(EmbeddingStatus.FAILED, 1, NOW - timedelta(seconds=59))
    exactly = _record(EmbeddingStatus.FAILED, 1, NOW - timedelta(seconds=60))
    assert not is_eligible(just_before, NOW, POLICY)
    assert is_eligible(exactly, NOW, POLICY)


def test_failed_at_attempt_cap_is_terminal():
    record = _record(EmbeddingStatus.FAILED, 3, NOW - timedelta(hours=1))
    assert not is_eligible(record, NOW, POLICY)
    assert is_terminal_failure(record, POLICY)
    assert not is_terminal_failure(_record(EmbeddingStatus.FAILED, 2), POLICY)


def test_stale_processing_is_reclaimed_only_after_threshold():
    fresh = _record(EmbeddingStatus.PROCESSING, 1, NOW - timedelta(minutes=14))
    stale = _record(EmbeddingStatus.PROCESSING, 1, NOW - timedelta(minutes=15))
    assert not is_eligible(fresh, NOW, POLICY)
    assert is_eligible(stale, NOW, POLICY)


def test_reclaim_disabled_when_stale_after_is_none():
    policy = RetryPolicy(max_attempts=3, stale_after=None)
    stale = _record(EmbeddingStatus.PROCESSING, 1, NOW - timedelta(days=2))
    assert not is_eligible(stale, NOW, policy)


def test_from_settings_reads_configuration(monkeypatch):
    from imgsearch.config import settings

    monkeypatch.setattr(settings, "MAX_EMBEDDING_ATTEMPTS", 7)
    monkeypatch.setattr(settings, "EMBEDDING_RETRY_DELAY_SECONDS", 5.0)
    monkeypatch.setattr(settings, "EMBEDDING_STALE_AFTER_SECONDS", None)
    policy = RetryPolicy.from_settings()
    assert policy.max_attempts == 7
    assert policy.retry_delay == timedelta(seconds=5)
    assert policy.stale_after is None


@pytest.mark.parametrize("policy", [POLICY, RetryPolicy(max_attempts=3, stale_after=None)])
def test_sql_clause_agrees_with_predicate(use_test_engine, policy):
    cases = [
        _record(EmbeddingStatus.PENDING),
        _record(EmbeddingStatus.PENDING, 5),
        _record(EmbeddingStatus.COMPLETED, 1, NOW - timedelta(days=1)),
        _record(EmbeddingStatus.FAILED, 1, None),
        _record(EmbeddingStatus.FAILED, 1, NOW - timedelta(seconds=10)),
        _record(EmbeddingStatus.FAILED, 2, NOW - timedelta(seconds=60)),
        _record(EmbeddingStatus.FAILED, 3, NOW - timedelta(days=1)),
        _record(EmbeddingStatus.PROCESSING, 1, NOW - timedelta(minutes=1)),
        _record(EmbeddingStatus.PROCESSING, 1, NOW - timedelta(hours=1)),
        _record(EmbeddingStatus.PROCESSING, 3, NOW - timedelta(hours=1)),
        _record(EmbeddingStatus.PROCESSING, 0, None),
    ]
    with Session(use_test_engine) as s:
        for r in cases:
            s.add(r)
        s.commit()
        expected = {r.id for r in cases if is_eligible(r, NOW, policy)}
        selected = set(s.exec(select(ImageRecord.id).where(eligible_clause(NOW, policy))).all())

    assert selected == expected

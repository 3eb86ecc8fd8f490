"""Per-record embedding lifecycle.

States::

    pending ──► processing ──► completed
       ▲            │
       │            ▼
       └──────── failed   (re-enters processing while attempts remain)

``is_eligible`` is the in-memory predicate and ``eligible_clause`` the same
rule expressed as a SQL WHERE clause for the record store. Both must agree;
``tests/test_embedding_state.py`` checks them against each other.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import and_, or_
from sqlalchemy.sql.elements import ColumnElement

from imgsearch.config import settings
from imgsearch.domain.exceptions import InvalidTransitionError
from imgsearch.models.core import EmbeddingStatus, ImageRecord


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    max_attempts: int = 5
    retry_delay: timedelta = timedelta(seconds=60)
    # None disables reclaiming records left in ``processing`` by a crash.
    stale_after: timedelta | None = timedelta(minutes=15)

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        stale = settings.EMBEDDING_STALE_AFTER_SECONDS
        return cls(
            max_attempts=settings.MAX_EMBEDDING_ATTEMPTS,
            retry_delay=timedelta(seconds=settings.EMBEDDING_RETRY_DELAY_SECONDS),
            stale_after=timedelta(seconds=stale) if stale else None,
        )


_ALLOWED: dict[EmbeddingStatus, frozenset[EmbeddingStatus]] = {
    EmbeddingStatus.PENDING: frozenset({EmbeddingStatus.PROCESSING}),
    EmbeddingStatus.FAILED: frozenset({EmbeddingStatus.PROCESSING}),
    EmbeddingStatus.PROCESSING: frozenset(
        {EmbeddingStatus.COMPLETED, EmbeddingStatus.FAILED, EmbeddingStatus.PROCESSING}
    ),
    EmbeddingStatus.COMPLETED: frozenset(),
}


def can_transition(current: EmbeddingStatus, target: EmbeddingStatus) -> bool:
    return target in _ALLOWED[current]


def check_transition(current: EmbeddingStatus, target: EmbeddingStatus) -> None:
    if not can_transition(current, target):
        raise InvalidTransitionError(
            f"Cannot move embedding status from {current.value} to {target.value}"
        )


def is_terminal_failure(record: ImageRecord, policy: RetryPolicy) -> bool:
    return (
        record.embedding_status == EmbeddingStatus.FAILED
        and record.embedding_attempts >= policy.max_attempts
    )


def is_eligible(record: ImageRecord, now: datetime, policy: RetryPolicy) -> bool:
    """Whether the pipeline may pick *record* at *now*."""
    status = record.embedding_status
    if status == EmbeddingStatus.PENDING:
        return True
    if record.embedding_attempts >= policy.max_attempts:
        return False
    last = record.last_embedding_attempt
    if status == EmbeddingStatus.FAILED:
        return last is None or now - last >= policy.retry_delay
    if status == EmbeddingStatus.PROCESSING and policy.stale_after is not None:
        return last is not None and now - last >= policy.stale_after
    return False


def eligible_clause(now: datetime, policy: RetryPolicy) -> ColumnElement[bool]:
    """SQL equivalent of :func:`is_eligible`."""
    under_cap = ImageRecord.embedding_attempts < policy.max_attempts
    branches = [
        ImageRecord.embedding_status == EmbeddingStatus.PENDING,
        and_(
            ImageRecord.embedding_status == EmbeddingStatus.FAILED,
            under_cap,
            or_(
                ImageRecord.last_embedding_attempt.is_(None),
                ImageRecord.last_embedding_attempt <= now - policy.retry_delay,
            ),
        ),
    ]
    if policy.stale_after is not None:
        branches.append(
            and_(
                ImageRecord.embedding_status == EmbeddingStatus.PROCESSING,
                under_cap,
                ImageRecord.last_embedding_attempt.is_not(None),
                ImageRecord.last_embedding_attempt <= now - policy.stale_after,
            )
        )
    return or_(*branches)


def retryable_clause(policy: RetryPolicy) -> ColumnElement[bool]:
    """Records still owed an automatic attempt, ignoring backoff timing."""
    return or_(
        ImageRecord.embedding_status == EmbeddingStatus.PENDING,
        and_(
            ImageRecord.embedding_status == EmbeddingStatus.FAILED,
            ImageRecord.embedding_attempts < policy.max_attempts,
        ),
    )

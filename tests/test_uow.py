"""Unit tests for the UnitOfWork context manager."""
from datetime import datetime, timedelta, timezone

import pytest
from sqlmodel import Session, select
from imgsearch.models.core import Collection
from imgsearch.infra.db.uow import UnitOfWork


def test_commit_persists_record(use_test_engine):
    with UnitOfWork() as uow:
        collection = Collection(owner_id="alice", name="Committed")
        uow.session.add(collection)
        uow.commit()
        collection_id = collection.id

    # Verify in a separate session
    with Session(use_test_engine) as s:
        fetched = s.get(Collection, collection_id)
        assert fetched is not None
        assert fetched.name == "Committed"


def test_rollback_on_exception_reverts_record(use_test_engine):
    with Session(use_test_engine) as s:
        count_before = len(s.exec(select(Collection)).all())

    with pytest.raises(ValueError):
        with UnitOfWork() as uow:
            uow.session.add(Collection(owner_id="alice", name="Will Be Rolled Back"))
            uow.session.flush()  # write to DB within transaction
            raise ValueError("forced error")

    with Session(use_test_engine) as s:
        count_after = len(s.exec(select(Collection)).all())

    assert count_after == count_before


def test_session_outside_context_raises():
    with pytest.raises(RuntimeError, match="not active"):
        UnitOfWork().session


def test_timestamps_round_trip_as_aware_utc(use_test_engine):
    naive = datetime(2026, 4, 1, 8, 30)
    lisbon_summer = timezone(timedelta(hours=1))
    with UnitOfWork() as uow:
        collection = Collection(
            owner_id="alice",
            name="Timestamps",
            created_at=naive,
            updated_at=datetime(2026, 4, 1, 9, 30, tzinfo=lisbon_summer),
        )
        uow.session.add(collection)
        uow.commit()
        collection_id = collection.id

    with Session(use_test_engine) as s:
        fetched = s.get(Collection, collection_id)
        assert fetched.created_at == datetime(2026, 4, 1, 8, 30, tzinfo=timezone.utc)
        assert fetched.updated_at == datetime(2026, 4, 1, 8, 30, tzinfo=timezone.utc)
        assert fetched.updated_at.tzinfo is timezone.utc

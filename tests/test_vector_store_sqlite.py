"""Tests for SqliteVecStore (sqlite-vec backed VectorStore)."""
from __future__ import annotations

import random
from pathlib import Path

import pytest

from imgsearch.domain.exceptions import ConfigurationError
from imgsearch.infra.search.vector_sqlite import SqliteVecStore
from imgsearch.infra.search.vector_store import EmbeddingDimensionError


@pytest.fixture
def store() -> SqliteVecStore:
    """In-memory 2-dim SqliteVecStore for tests."""
    s = SqliteVecStore(":memory:", dimension=2)
    yield s
    s.close()


# ---------------------------------------------------------------
# Contract tests
# ---------------------------------------------------------------


def test_upsert_and_search_returns_ranked_hits(store: SqliteVecStore):
    store.upsert("a", [1.0, 0.0], {"image_id": 1})
    store.upsert("b", [0.9, 0.1], {"image_id": 2})
    store.upsert("c", [-1.0, 0.0], {"image_id": 3})

    hits = store.search([1.0, 0.0], k=2)

    assert [h.external_id for h in hits] == ["a", "b"]
    assert hits[0].score >= hits[1].score
    assert hits[0].score == pytest.approx(1.0, abs=1e-5)
    assert hits[0].payload == {"image_id": 1}


def test_upsert_same_id_overwrites_vector(store: SqliteVecStore):
    store.upsert("a", [1.0, 0.0], {"owner_id": "alice"})
    store.upsert("a", [0.0, 1.0], {"owner_id": "alice"})

    hits = store.search([0.0, 1.0], k=5)

    assert store.point_count() == 1
    assert len(hits) == 1
    assert hits[0].score > 0.99


def test_set_payload_merges_keys(store: SqliteVecStore):
    store.upsert("a", [1.0, 0.0], {"owner_id": "alice", "filename": "x.png"})
    store.set_payload("a", {"image_id": 42})
    store.set_payload("missing", {"image_id": 1})

    hit = store.search([1.0, 0.0], k=1)[0]
    assert hit.payload == {"owner_id": "alice", "filename": "x.png", "image_id": 42}


def test_delete_removes_vector_and_reports_existence(store: SqliteVecStore):
    store.upsert("a", [1.0, 0.0], {})
    store.upsert("b", [0.0, 1.0], {})

    assert store.delete("a") is True
    assert store.delete("a") is False
    assert [h.external_id for h in store.search([1.0, 0.0], k=5)] == ["b"]
    assert store.point_count() == 1


@pytest.mark.parametrize("invalid_k", [0, -1])
def test_search_rejects_non_positive_k(store: SqliteVecStore, invalid_k: int):
    store.upsert("a", [1.0, 0.0], {})
    with pytest.raises(ValueError, match="k must be >= 1"):
        store.search([1.0, 0.0], k=invalid_k)


def test_wrong_dimension_is_a_configuration_error(store: SqliteVecStore):
    with pytest.raises(EmbeddingDimensionError):
        store.upsert("a", [1.0, 0.0, 0.0], {})
    with pytest.raises(ConfigurationError):
        store.search([1.0], k=1)


def test_empty_index_search_returns_empty(store: SqliteVecStore):
    assert store.search([1.0, 0.0], k=3) == []
    assert store.point_count() == 0


def test_health_reflects_connection_state():
    s = SqliteVecStore(":memory:", dimension=2)
    assert s.health() is True
    s.close()
    assert s.health() is False


# ---------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------


def test_persistence_across_close_reopen(tmp_path: Path):
    db_file = tmp_path / "vec.db"
    s1 = SqliteVecStore(db_file, dimension=2)
    s1.upsert("keep", [1.0, 0.0], {"image_id": 7})
    s1.close()

    s2 = SqliteVecStore(db_file, dimension=2)
    hits = s2.search([1.0, 0.0], k=5)
    s2.close()

    assert [h.external_id for h in hits] == ["keep"]


def test_reopen_with_different_dimension_is_rejected(tmp_path: Path):
    db_file = tmp_path / "vec.db"
    SqliteVecStore(db_file, dimension=2).close()

    with pytest.raises(EmbeddingDimensionError):
        SqliteVecStore(db_file, dimension=4)


def test_many_vectors_top_k(tmp_path: Path):
    rng = random.Random(42)
    s = SqliteVecStore(tmp_path / "many.db", dimension=16)
    for i in range(500):
        s.upsert(f"id-{i}", [rng.gauss(0, 1) for _ in range(16)], {})
    target = [rng.gauss(0, 1) for _ in range(16)]
    s.upsert("target", target, {})

    hits = s.search(target, k=10)
    s.close()

    assert len(hits) == 10
    assert hits[0].external_id == "target"

from __future__ import annotations

from pathlib import Path

from sqlalchemy import create_engine, text

from imgsearch.infra.db.schema_compat import ensure_schema_compat


def _column_names(db_path: Path, table_name: str) -> set[str]:
    engine = create_engine(f"sqlite:///{db_path}")
    with engine.connect() as conn:
        rows = conn.execute(text(f"PRAGMA table_info({table_name})")).fetchall()
    return {row[1] for row in rows}


def _index_names(db_path: Path, table_name: str) -> set[str]:
    engine = create_engine(f"sqlite:///{db_path}")
    with engine.connect() as conn:
        rows = conn.execute(text(f"PRAGMA index_list({table_name})")).fetchall()
    return {row[1] for row in rows}


def test_ensure_schema_compat_adds_embedding_columns_for_legacy_db(tmp_path):
    db_path = tmp_path / "legacy.db"
    engine = create_engine(f"sqlite:///{db_path}")
    with engine.begin() as conn:
        conn.execute(
            text(
                """
                CREATE TABLE imagerecord (
                    id INTEGER PRIMARY KEY,
                    owner_id VARCHAR NOT NULL,
                    vector_index_id VARCHAR NOT NULL,
                    filename VARCHAR NOT NULL,
                    original_name VARCHAR NOT NULL,
                    file_path VARCHAR NOT NULL,
                    file_size INTEGER NOT NULL,
                    mime_type VARCHAR NOT NULL,
                    created_at DATETIME,
                    updated_at DATETIME
                )
                """
            )
        )
        conn.execute(
            text(
                "INSERT INTO imagerecord (owner_id, vector_index_id, filename, original_name, "
                "file_path, file_size, mime_type) VALUES ('alice', 'v1', 'a.png', 'a.png', 'a.png', 1, 'image/png')"
            )
        )

    ensure_schema_compat(engine)

    columns = _column_names(db_path, "imagerecord")
    assert {
        "embedding_status", "embedding_attempts", "last_embedding_attempt",
        "is_embedded", "embedding_error",
    } <= columns
    assert "ix_imagerecord_embedding_status" in _index_names(db_path, "imagerecord")

    with engine.connect() as conn:
        status, attempts = conn.execute(
            text("SELECT embedding_status, embedding_attempts FROM imagerecord")
        ).one()
    assert status == "PENDING"
    assert attempts == 0

    # idempotent: running again should not fail and should keep schema intact
    ensure_schema_compat(engine)
    assert "embedding_status" in _column_names(db_path, "imagerecord")


def test_ensure_schema_compat_is_noop_without_table(tmp_path):
    db_path = tmp_path / "empty.db"
    engine = create_engine(f"sqlite:///{db_path}")

    ensure_schema_compat(engine)

    assert _column_names(db_path, "imagerecord") == set()

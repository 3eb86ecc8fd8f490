"""Runtime DB compatibility helpers for legacy SQLite schemas.

Image libraries created before the background embedding pipeline existed have
an ``imagerecord`` table without the embedding tracking columns. These helpers
backfill them so ``SQLModel.metadata.create_all()`` deployments keep working
without migrations.
"""

from __future__ import annotations

import logging

from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine

logger = logging.getLogger(__name__)

# column name -> DDL fragment; existing rows of a legacy table count as
# unprocessed, hence the 'PENDING' default.
_EMBEDDING_COLUMNS: dict[str, str] = {
    "embedding_status": "VARCHAR(10) NOT NULL DEFAULT 'PENDING'",
    "embedding_attempts": "INTEGER NOT NULL DEFAULT 0",
    "last_embedding_attempt": "DATETIME",
    "is_embedded": "BOOLEAN NOT NULL DEFAULT 0",
    "embedding_error": "VARCHAR",
}


def ensure_schema_compat(engine: Engine) -> None:
    """Apply additive compatibility upgrades for existing SQLite databases."""
    if engine.dialect.name != "sqlite":
        return

    with engine.begin() as conn:
        _ensure_imagerecord_embedding_columns(conn)


def _ensure_imagerecord_embedding_columns(conn: Connection) -> None:
    if not _table_exists(conn, "imagerecord"):
        return

    for column_name, ddl in _EMBEDDING_COLUMNS.items():
        if not _column_exists(conn, "imagerecord", column_name):
            conn.execute(text(f"ALTER TABLE imagerecord ADD COLUMN {column_name} {ddl}"))
            logger.info("Applied compatibility upgrade: added imagerecord.%s", column_name)

    _ensure_index(conn, "ix_imagerecord_embedding_status", "imagerecord", "embedding_status")
    _ensure_index(conn, "ix_imagerecord_is_embedded", "imagerecord", "is_embedded")


def _table_exists(conn: Connection, table_name: str) -> bool:
    return (
        conn.execute(
            text(
                "SELECT 1 FROM sqlite_master "
                "WHERE type = 'table' AND name = :name LIMIT 1"
            ),
            {"name": table_name},
        ).first()
        is not None
    )


def _column_exists(conn: Connection, table_name: str, column_name: str) -> bool:
    rows = conn.execute(text(f"PRAGMA table_info({table_name})")).fetchall()
    return any(row[1] == column_name for row in rows)


def _ensure_index(
    conn: Connection, index_name: str, table_name: str, column_name: str
) -> None:
    exists = conn.execute(
        text(
            "SELECT 1 FROM sqlite_master "
            "WHERE type = 'index' AND name = :name LIMIT 1"
        ),
        {"name": index_name},
    ).first()
    if exists is None:
        conn.execute(text(f"CREATE INDEX {index_name} ON {table_name} ({column_name})"))

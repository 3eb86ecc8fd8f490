"""sqlite-vec backed VectorStore implementation."""
from __future__ import annotations

import json
import sqlite3
import struct
import threading
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

import sqlite_vec

from imgsearch.domain.exceptions import IndexUnavailableError
from imgsearch.infra.search.vector_store import EmbeddingDimensionError, VectorHit, VectorStore


def _serialize_f32(vector: Sequence[float]) -> bytes:
    """Pack a float vector into little-endian binary (sqlite-vec format)."""
    return struct.pack(f"<{len(vector)}f", *vector)


class SqliteVecStore(VectorStore):
    """VectorStore backed by the sqlite-vec extension (vec0 virtual table).

    Uses a **dedicated** raw sqlite3 connection (not the SQLModel engine)
    because vec0 requires ``enable_load_extension(True)``.

    Two-table pattern:
    * ``vec_meta`` — regular table: external_id, payload JSON
    * ``vec_idx`` — vec0 virtual table, ``float[dimension]``, cosine distance

    Rows are aligned by rowid between the two tables. The connection is
    shared by request threads and the pipeline thread, so every call holds
    ``self._lock``.
    """

    def __init__(self, db_path: str | Path = ":memory:", dimension: int = 512) -> None:
        self.dimension = dimension
        self._db_path = str(db_path)
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()
        self._conn = sqlite3.connect(self._db_path, check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.enable_load_extension(True)
        sqlite_vec.load(self._conn)
        self._conn.enable_load_extension(False)

        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS vec_meta (
                id          INTEGER PRIMARY KEY,
                external_id TEXT NOT NULL UNIQUE,
                payload     TEXT NOT NULL DEFAULT '{}'
            )
            """
        )
        self._conn.execute(
            "CREATE TABLE IF NOT EXISTS vec_config (key TEXT PRIMARY KEY, value TEXT NOT NULL)"
        )
        self._check_stored_dimension()
        self._conn.execute(
            f"CREATE VIRTUAL TABLE IF NOT EXISTS vec_idx "
            f"USING vec0(embedding float[{dimension}] distance_metric=cosine)"
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _check_stored_dimension(self) -> None:
        row = self._conn.execute("SELECT value FROM vec_config WHERE key = 'dimension'").fetchone()
        if row is None:
            self._conn.execute(
                "INSERT INTO vec_config(key, value) VALUES ('dimension', ?)", (str(self.dimension),)
            )
        elif int(row[0]) != self.dimension:
            raise EmbeddingDimensionError(
                f"Index at {self._db_path} was created with dimension {row[0]}, "
                f"configured dimension is {self.dimension}"
            )

    def _run(self, fn, *args):
        with self._lock:
            try:
                return fn(*args)
            except sqlite3.Error as exc:
                self._conn.rollback()
                raise IndexUnavailableError(f"Vector index error: {exc}") from exc

    # ------------------------------------------------------------------
    # VectorStore interface
    # ------------------------------------------------------------------

    def upsert(self, external_id: str, vector: Sequence[float], payload: Mapping[str, Any]) -> None:
        self.check_dimension(vector)
        self._run(self._upsert, external_id, vector, payload)

    def _upsert(self, external_id: str, vector: Sequence[float], payload: Mapping[str, Any]) -> None:
        payload_json = json.dumps(dict(payload)) if payload else "{}"
        existing = self._conn.execute(
            "SELECT id FROM vec_meta WHERE external_id = ?", (external_id,)
        ).fetchone()

        if existing is not None:
            rowid = existing[0]
            self._conn.execute("DELETE FROM vec_idx WHERE rowid = ?", (rowid,))
            self._conn.execute(
                "UPDATE vec_meta SET payload = ? WHERE id = ?", (payload_json, rowid)
            )
        else:
            cur = self._conn.execute(
                "INSERT INTO vec_meta(external_id, payload) VALUES (?, ?)",
                (external_id, payload_json),
            )
            rowid = cur.lastrowid
        self._conn.execute(
            "INSERT INTO vec_idx(rowid, embedding) VALUES (?, ?)",
            (rowid, _serialize_f32(vector)),
        )
        self._conn.commit()

    def set_payload(self, external_id: str, payload: Mapping[str, Any]) -> None:
        self._run(self._set_payload, external_id, payload)

    def _set_payload(self, external_id: str, payload: Mapping[str, Any]) -> None:
        row = self._conn.execute(
            "SELECT id, payload FROM vec_meta WHERE external_id = ?", (external_id,)
        ).fetchone()
        if row is None:
            return
        merged = json.loads(row[1]) if row[1] else {}
        merged.update(payload)
        self._conn.execute(
            "UPDATE vec_meta SET payload = ? WHERE id = ?", (json.dumps(merged), row[0])
        )
        self._conn.commit()

    def delete(self, external_id: str) -> bool:
        return self._run(self._delete, external_id)

    def _delete(self, external_id: str) -> bool:
        row = self._conn.execute(
            "SELECT id FROM vec_meta WHERE external_id = ?", (external_id,)
        ).fetchone()
        if row is None:
            return False
        self._conn.execute("DELETE FROM vec_idx WHERE rowid = ?", (row[0],))
        self._conn.execute("DELETE FROM vec_meta WHERE id = ?", (row[0],))
        self._conn.commit()
        return True

    def search(self, vector: Sequence[float], k: int) -> list[VectorHit]:
        if k <= 0:
            raise ValueError("k must be >= 1.")
        self.check_dimension(vector)
        return self._run(self._search, vector, k)

    def _search(self, vector: Sequence[float], k: int) -> list[VectorHit]:
        knn_rows = self._conn.execute(
            "SELECT rowid, distance FROM vec_idx "
            "WHERE embedding MATCH ? AND k = ? ORDER BY distance",
            (_serialize_f32(vector), k),
        ).fetchall()
        if not knn_rows:
            return []

        rowid_list = [r[0] for r in knn_rows]
        placeholders = ",".join("?" * len(rowid_list))
        meta = {
            mid: (ext_id, payload_json)
            for mid, ext_id, payload_json in self._conn.execute(
                f"SELECT id, external_id, payload FROM vec_meta WHERE id IN ({placeholders})",
                rowid_list,
            ).fetchall()
        }

        hits: list[VectorHit] = []
        for rowid, distance in knn_rows:
            if rowid not in meta:
                continue
            ext_id, payload_json = meta[rowid]
            hits.append(
                VectorHit(
                    external_id=ext_id,
                    score=1.0 - distance,
                    payload=json.loads(payload_json) if payload_json else {},
                )
            )
        return hits

    def health(self) -> bool:
        try:
            with self._lock:
                self._conn.execute("SELECT 1").fetchone()
            return True
        except sqlite3.Error:
            return False

    def point_count(self) -> int:
        return self._run(
            lambda: self._conn.execute("SELECT COUNT(*) FROM vec_meta").fetchone()[0]
        )

    def close(self) -> None:
        """Close the underlying sqlite3 connection."""
        with self._lock:
            self._conn.close()

"""Search infrastructure contracts and adapters."""

from imgsearch.infra.search.vector_sqlite import SqliteVecStore
from imgsearch.infra.search.vector_store import EmbeddingDimensionError, VectorHit, VectorStore

__all__ = [
    "EmbeddingDimensionError",
    "SqliteVecStore",
    "VectorHit",
    "VectorStore",
]

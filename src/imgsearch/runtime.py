"""Process-wide wiring of the gateways, pipeline and search orchestrator.

The API, the CLI and the tests all go through :func:`get_runtime`; tests
install fakes with :func:`set_runtime`.
"""
from __future__ import annotations

import threading
from dataclasses import dataclass

from imgsearch.config import settings
from imgsearch.embedding.pipeline import EmbeddingPipeline
from imgsearch.embedding.scheduler import Scheduler
from imgsearch.infra.model.base import EmbeddingModel
from imgsearch.infra.search.vector_store import VectorStore
from imgsearch.search.hybrid_search import HybridSearch
from imgsearch.storage.blobs import LocalBlobStore


@dataclass
class Runtime:
    model: EmbeddingModel
    vector_store: VectorStore
    blobs: LocalBlobStore
    pipeline: EmbeddingPipeline
    search: HybridSearch

    def close(self) -> None:
        self.pipeline.stop()
        self.search.close()
        self.vector_store.close()


def build_runtime(
    *,
    model: EmbeddingModel | None = None,
    vector_store: VectorStore | None = None,
    blobs: LocalBlobStore | None = None,
    scheduler: Scheduler | None = None,
) -> Runtime:
    if model is None:
        from imgsearch.infra.model.clip import ClipEmbeddingModel
        model = ClipEmbeddingModel()
    if vector_store is None:
        from imgsearch.infra.search.vector_sqlite import SqliteVecStore
        vector_store = SqliteVecStore(settings.vec_db, dimension=settings.EMBEDDING_DIM)
    blobs = blobs or LocalBlobStore()
    return Runtime(
        model=model,
        vector_store=vector_store,
        blobs=blobs,
        pipeline=EmbeddingPipeline(model, vector_store, blobs, scheduler=scheduler),
        search=HybridSearch(model, vector_store),
    )


_runtime: Runtime | None = None
_lock = threading.Lock()


def get_runtime() -> Runtime:
    global _runtime
    with _lock:
        if _runtime is None:
            _runtime = build_runtime()
        return _runtime


def set_runtime(runtime: Runtime | None) -> None:
    global _runtime
    with _lock:
        _runtime = runtime

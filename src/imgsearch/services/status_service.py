"""System status for ops tooling: what works right now and what does not."""
from __future__ import annotations

import logging

from sqlalchemy import text

from imgsearch.api.schemas.images import EmbeddingStatsRead
from imgsearch.api.schemas.status import ComponentStatus, SystemStatus
from imgsearch.infra.db.uow import UnitOfWork
from imgsearch.runtime import Runtime, get_runtime

logger = logging.getLogger(__name__)


class StatusService:
    def __init__(self, uow: UnitOfWork, runtime: Runtime | None = None) -> None:
        self._uow = uow
        self._rt = runtime or get_runtime()

    def _database(self) -> ComponentStatus:
        try:
            self._uow.session.execute(text("SELECT 1"))
        except Exception as exc:
            logger.error("Database check failed: %s", exc)
            return ComponentStatus(ok=False, detail=str(exc))
        return ComponentStatus(ok=True)

    def _vector_index(self) -> ComponentStatus:
        store = self._rt.vector_store
        if not store.health():
            return ComponentStatus(ok=False, detail="vector index unreachable")
        try:
            points = store.point_count()
        except Exception as exc:
            return ComponentStatus(ok=False, detail=str(exc))
        return ComponentStatus(ok=True, detail=f"{points} vectors, dimension {store.dimension}")

    def get_status(self) -> SystemStatus:
        database = self._database()
        model_ready = self._rt.model.ready()
        model = ComponentStatus(
            ok=model_ready,
            detail=getattr(self._rt.model, "name", None) if model_ready else "not loaded",
        )
        vector_index = self._vector_index()

        embedding = None
        if database.ok:
            embedding = EmbeddingStatsRead(**self._rt.pipeline.stats().as_dict())

        ai_ready = model.ok and vector_index.ok
        return SystemStatus(
            database=database,
            model=model,
            vector_index=vector_index,
            embedding=embedding,
            pipeline_running=self._rt.pipeline.running,
            can_upload=database.ok,
            can_search=database.ok,
            ai_search_available=database.ok and ai_ready,
        )

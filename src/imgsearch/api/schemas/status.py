"""Status DTOs."""
from __future__ import annotations
from pydantic import BaseModel
from imgsearch.api.schemas.images import EmbeddingStatsRead


class ComponentStatus(BaseModel):
    ok: bool
    detail: str | None = None


class SystemStatus(BaseModel):
    database: ComponentStatus
    model: ComponentStatus
    vector_index: ComponentStatus
    embedding: EmbeddingStatsRead | None = None
    pipeline_running: bool = False
    can_upload: bool
    can_search: bool
    ai_search_available: bool

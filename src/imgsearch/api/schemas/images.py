"""Image DTOs — pure Pydantic, zero ORM imports."""
from __future__ import annotations
from datetime import date, datetime
from enum import Enum
from pydantic import BaseModel, Field, field_validator


class EmbeddingStatusDTO(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class ImageRead(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    owner_id: str
    filename: str
    original_name: str
    file_size: int
    mime_type: str
    width: int | None = None
    height: int | None = None
    title: str
    description: str
    tags: list[str] = []
    location: str | None = None
    is_public: bool
    upload_date: datetime
    embedding_status: EmbeddingStatusDTO
    embedding_attempts: int
    is_embedded: bool
    embedding_error: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ScoredImageRead(ImageRead):
    score: float | None = None


class ImageList(BaseModel):
    items: list[ImageRead]
    total: int
    page: int
    pages: int


class ImageUpdate(BaseModel):
    title: str | None = None
    description: str | None = None
    tags: list[str] | None = None
    location: str | None = None
    is_public: bool | None = None

    # Omit a field to leave it unchanged; only location may be cleared with null.
    @field_validator("title", "description", "tags", "is_public")
    @classmethod
    def normalize(cls, v):
        if v is None:
            raise ValueError("may be omitted but not null")
        if isinstance(v, list):
            return [t.strip() for t in v if t.strip()]
        return v


class UploadError(BaseModel):
    filename: str
    error: str


class UploadResponse(BaseModel):
    images: list[ImageRead]
    errors: list[UploadError] = []
    embedded_now: int = 0
    queued: int = 0


class SearchRequest(BaseModel):
    query: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    name: str | None = None
    location: str | None = None
    tags: list[str] = []
    limit: int = Field(default=20, ge=1, le=200)


class SearchResultsRead(BaseModel):
    results: list[ScoredImageRead]
    search_type: str
    warnings: list[str] = []
    unembedded_count: int = 0
    error_kind: str | None = None
    message: str | None = None


class EmbeddingStatsRead(BaseModel):
    total: int
    embedded: int
    pending: int
    processing: int
    failed: int
    exhausted: int
    percentage: int

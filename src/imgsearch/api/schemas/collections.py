"""Collection DTOs — pure Pydantic, zero ORM imports."""
from __future__ import annotations
from datetime import datetime
from pydantic import BaseModel, field_validator
from imgsearch.api.schemas.images import ImageRead


class CollectionCreate(BaseModel):
    name: str
    description: str = ""
    is_public: bool = False

    @field_validator("name")
    @classmethod
    def name_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("name must not be empty")
        return v.strip()


class CollectionUpdate(BaseModel):
    name: str | None = None
    description: str | None = None
    is_public: bool | None = None

    @field_validator("name")
    @classmethod
    def name_not_empty(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            raise ValueError("name must not be empty")
        return v.strip() if v is not None else v


class CollectionRead(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    owner_id: str
    name: str
    description: str
    is_public: bool
    image_count: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None


class CollectionDetail(CollectionRead):
    images: list[ImageRead] = []


class CollectionList(BaseModel):
    items: list[CollectionRead]
    total: int

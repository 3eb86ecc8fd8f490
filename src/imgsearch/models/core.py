import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import JSON, Column, DateTime
from sqlalchemy.types import TypeDecorator
from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """Timezone-aware UTC datetimes over SQLite, which keeps no offset.

    Naive values are taken as UTC on the way in; values read back always
    carry ``timezone.utc``.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


def new_vector_index_id() -> str:
    return str(uuid.uuid4())


class EmbeddingStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class TimestampMixin(SQLModel):
    created_at: datetime = Field(default_factory=utcnow, index=True, sa_type=UTCDateTime)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)


class CollectionImageLink(SQLModel, table=True):
    collection_id: int = Field(foreign_key="collection.id", primary_key=True)
    image_id: int = Field(foreign_key="imagerecord.id", primary_key=True)
    added_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)


class ImageRecord(TimestampMixin, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    owner_id: str = Field(index=True)
    vector_index_id: str = Field(default_factory=new_vector_index_id, unique=True, index=True)

    filename: str
    original_name: str
    file_path: str
    file_size: int
    mime_type: str
    width: Optional[int] = None
    height: Optional[int] = None

    title: str = ""
    description: str = ""
    tags: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    location: Optional[str] = Field(default=None, index=True)
    is_public: bool = False
    upload_date: datetime = Field(default_factory=utcnow, index=True, sa_type=UTCDateTime)

    embedding_status: EmbeddingStatus = Field(default=EmbeddingStatus.PENDING, index=True)
    embedding_attempts: int = 0
    last_embedding_attempt: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    is_embedded: bool = Field(default=False, index=True)
    embedding_error: Optional[str] = None


class Collection(TimestampMixin, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    owner_id: str = Field(index=True)
    name: str
    description: str = ""
    is_public: bool = False

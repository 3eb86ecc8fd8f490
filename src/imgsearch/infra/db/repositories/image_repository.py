"""Repository for ImageRecord rows. No business logic; caller owns the transaction."""
from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Any

from sqlalchemy import delete, func, or_, update
from sqlmodel import Session, col, desc, select

from imgsearch.models.core import (
    CollectionImageLink,
    EmbeddingStatus,
    ImageRecord,
    utcnow,
)


@dataclass
class ImageFilters:
    """Metadata constraints shared by listing and both search paths."""

    start_date: date | None = None
    end_date: date | None = None
    name: str | None = None
    location: str | None = None
    tags: list[str] = field(default_factory=list)

    def conditions(self) -> list[Any]:
        conds: list[Any] = []
        if self.start_date is not None:
            conds.append(ImageRecord.upload_date >= datetime.combine(self.start_date, time.min))
        if self.end_date is not None:
            # End date is inclusive through the last instant of that day.
            conds.append(ImageRecord.upload_date <= datetime.combine(self.end_date, time.max))
        if self.name:
            pattern = f"%{self.name.lower()}%"
            conds.append(
                or_(
                    func.lower(ImageRecord.title).like(pattern),
                    func.lower(ImageRecord.original_name).like(pattern),
                )
            )
        if self.location:
            conds.append(func.lower(ImageRecord.location).like(f"%{self.location.lower()}%"))
        return conds

    def matches_tags(self, record: ImageRecord) -> bool:
        if not self.tags:
            return True
        wanted = {t.lower() for t in self.tags}
        return any(t.lower() in wanted for t in record.tags or [])


class ImageRepository:
    def __init__(self, session: Session) -> None:
        self._s = session

    def get_by_id(self, image_id: int) -> ImageRecord | None:
        return self._s.get(ImageRecord, image_id)

    def get_many(self, image_ids: Iterable[int]) -> list[ImageRecord]:
        ids = list(image_ids)
        if not ids:
            return []
        return list(self._s.exec(select(ImageRecord).where(col(ImageRecord.id).in_(ids))).all())

    def get_by_vector_index_ids(
        self,
        owner_id: str,
        vector_index_ids: Sequence[str],
        filters: ImageFilters | None = None,
    ) -> list[ImageRecord]:
        if not vector_index_ids:
            return []
        stmt = select(ImageRecord).where(
            ImageRecord.owner_id == owner_id,
            col(ImageRecord.vector_index_id).in_(list(vector_index_ids)),
        )
        if filters is not None:
            stmt = stmt.where(*filters.conditions())
        rows = list(self._s.exec(stmt).all())
        if filters is not None and filters.tags:
            rows = [r for r in rows if filters.matches_tags(r)]
        return rows

    def list_filtered(
        self,
        owner_id: str,
        filters: ImageFilters | None = None,
        *,
        order_by: str = "upload_date",
        offset: int = 0,
        limit: int = 50,
    ) -> list[ImageRecord]:
        stmt = select(ImageRecord).where(ImageRecord.owner_id == owner_id)
        if filters is not None:
            stmt = stmt.where(*filters.conditions())
        order_col = ImageRecord.created_at if order_by == "created_at" else ImageRecord.upload_date
        stmt = stmt.order_by(desc(order_col), desc(ImageRecord.id))
        if filters is not None and filters.tags:
            # Tags live in a JSON column; narrow in Python, then page.
            rows = [r for r in self._s.exec(stmt).all() if filters.matches_tags(r)]
            return rows[offset:offset + limit]
        return list(self._s.exec(stmt.offset(offset).limit(limit)).all())

    def count_filtered(self, owner_id: str, filters: ImageFilters | None = None) -> int:
        if filters is not None and filters.tags:
            stmt = select(ImageRecord).where(ImageRecord.owner_id == owner_id, *filters.conditions())
            return sum(1 for r in self._s.exec(stmt).all() if filters.matches_tags(r))
        stmt = select(func.count()).select_from(ImageRecord).where(ImageRecord.owner_id == owner_id)
        if filters is not None:
            stmt = stmt.where(*filters.conditions())
        return self._s.exec(stmt).one()

    def count(self, *conditions: Any, owner_id: str | None = None) -> int:
        stmt = select(func.count()).select_from(ImageRecord)
        if owner_id is not None:
            stmt = stmt.where(ImageRecord.owner_id == owner_id)
        if conditions:
            stmt = stmt.where(*conditions)
        return self._s.exec(stmt).one()

    def count_unembedded(self, owner_id: str) -> int:
        return self.count(ImageRecord.embedding_status != EmbeddingStatus.COMPLETED, owner_id=owner_id)

    def find_where(self, condition: Any, *, limit: int) -> list[ImageRecord]:
        return list(self._s.exec(
            select(ImageRecord).where(condition).order_by(ImageRecord.id).limit(limit)
        ).all())

    def create(self, **fields: Any) -> ImageRecord:
        record = ImageRecord(**fields)
        self._s.add(record)
        self._s.flush()  # get generated PK without committing
        return record

    def update_fields(self, image_id: int, *conditions: Any, **values: Any) -> int:
        """Atomic partial UPDATE by id; returns matched row count.

        Extra *conditions* turn the write into a compare-and-set.
        """
        values.setdefault("updated_at", utcnow())
        stmt = (
            update(ImageRecord)
            .where(ImageRecord.id == image_id, *conditions)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return self._s.execute(stmt).rowcount

    def increment_attempts(self, image_id: int, *conditions: Any, **values: Any) -> int:
        return self.update_fields(
            image_id,
            *conditions,
            embedding_attempts=ImageRecord.embedding_attempts + 1,
            **values,
        )

    def reset_processing(self, owner_id: str | None = None) -> int:
        stmt = (
            update(ImageRecord)
            .where(ImageRecord.embedding_status == EmbeddingStatus.PROCESSING)
            .values(embedding_status=EmbeddingStatus.PENDING, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if owner_id is not None:
            stmt = stmt.where(ImageRecord.owner_id == owner_id)
        return self._s.execute(stmt).rowcount

    def pull_from_collections(self, image_id: int) -> int:
        stmt = delete(CollectionImageLink).where(CollectionImageLink.image_id == image_id)
        return self._s.execute(stmt).rowcount

    def delete(self, record: ImageRecord) -> None:
        self._s.delete(record)
        self._s.flush()

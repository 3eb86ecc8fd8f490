"""Images use-case service. Owns ORM→DTO mapping; routers never see ORM objects."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from pathlib import Path

from imgsearch.api.schemas.images import (
    EmbeddingStatsRead,
    ImageList,
    ImageRead,
    ImageUpdate,
    ScoredImageRead,
    SearchRequest,
    SearchResultsRead,
    UploadError,
    UploadResponse,
)
from imgsearch.config import settings
from imgsearch.domain.exceptions import ForbiddenError, InvalidInputError, NotFoundError
from imgsearch.infra.db.repositories.image_repository import ImageFilters, ImageRepository
from imgsearch.infra.db.uow import UnitOfWork
from imgsearch.models.core import EmbeddingStatus, ImageRecord, new_vector_index_id, utcnow
from imgsearch.runtime import Runtime, get_runtime
from imgsearch.storage.blobs import read_image_size, stored_name_for

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IncomingFile:
    filename: str
    content_type: str
    data: bytes


def _to_filters(payload: SearchRequest) -> ImageFilters:
    return ImageFilters(
        start_date=payload.start_date,
        end_date=payload.end_date,
        name=payload.name,
        location=payload.location,
        tags=list(payload.tags),
    )


class ImagesService:
    def __init__(self, uow: UnitOfWork, runtime: Runtime | None = None) -> None:
        self._uow = uow
        self._rt = runtime or get_runtime()

    # ------------------------------------------------------------------
    # Upload
    # ------------------------------------------------------------------

    def upload(self, owner_id: str, files: list[IncomingFile]) -> UploadResponse:
        """Store every file; embed on the spot when AI search is ready.

        One bad file is reported in ``errors`` and does not stop the rest.
        Records that could not be embedded now are left ``pending`` for the
        background pipeline, which is nudged once at the end.
        """
        if not files:
            raise InvalidInputError("No files uploaded")
        if len(files) > settings.MAX_FILES_PER_UPLOAD:
            raise InvalidInputError(
                f"Too many files: {len(files)} (max {settings.MAX_FILES_PER_UPLOAD})"
            )

        fast_path = self._rt.search.ai_available()
        images: list[ImageRead] = []
        errors: list[UploadError] = []
        embedded_now = 0

        for incoming in files:
            try:
                record = self._upload_one(owner_id, incoming, fast_path)
            except InvalidInputError as exc:
                errors.append(UploadError(filename=incoming.filename, error=exc.message))
                continue
            except Exception as exc:
                logger.exception("Upload failed for %s", incoming.filename)
                errors.append(UploadError(filename=incoming.filename, error=str(exc)))
                continue
            if record.is_embedded:
                embedded_now += 1
            images.append(ImageRead.model_validate(record))

        queued = len(images) - embedded_now
        if queued:
            self._rt.pipeline.trigger()
        logger.info(
            "Upload by %s: %d stored (%d embedded now, %d queued), %d rejected",
            owner_id, len(images), embedded_now, queued, len(errors),
        )
        return UploadResponse(images=images, errors=errors, embedded_now=embedded_now, queued=queued)

    def _validate(self, incoming: IncomingFile) -> None:
        if incoming.content_type not in settings.ALLOWED_FILE_TYPES:
            raise InvalidInputError(
                f"Invalid file type {incoming.content_type!r}; "
                f"allowed: {', '.join(settings.ALLOWED_FILE_TYPES)}"
            )
        if not incoming.data:
            raise InvalidInputError("File is empty")
        if len(incoming.data) > settings.MAX_FILE_SIZE:
            raise InvalidInputError(
                f"File too large: {len(incoming.data)} bytes (max {settings.MAX_FILE_SIZE})"
            )

    def _upload_one(self, owner_id: str, incoming: IncomingFile, fast_path: bool) -> ImageRecord:
        self._validate(incoming)
        stored_name = stored_name_for(incoming.filename)
        rel_path = self._rt.blobs.save(incoming.data, stored_name)
        width, height = read_image_size(incoming.data)
        vector_index_id = new_vector_index_id()

        embedded = fast_path and self._embed_now(owner_id, vector_index_id, stored_name, incoming.data)
        now = utcnow()
        fields = dict(
            owner_id=owner_id,
            vector_index_id=vector_index_id,
            filename=stored_name,
            original_name=incoming.filename,
            file_path=rel_path,
            file_size=len(incoming.data),
            mime_type=incoming.content_type,
            width=width,
            height=height,
            title=Path(incoming.filename).stem,
            upload_date=now,
        )
        if embedded:
            fields.update(
                embedding_status=EmbeddingStatus.COMPLETED,
                embedding_attempts=1,
                last_embedding_attempt=now,
                is_embedded=True,
            )

        try:
            record = ImageRepository(self._uow.session).create(**fields)
            self._uow.commit()
        except Exception:
            self._uow.rollback()
            self._discard_blob(rel_path)
            if embedded:
                self._rt.pipeline.delete_vector(ImageRecord(**fields))
            raise

        if embedded:
            try:
                self._rt.vector_store.set_payload(vector_index_id, {"image_id": record.id})
            except Exception as exc:
                logger.warning("Could not attach image id to vector %s: %s", vector_index_id, exc)
        return record

    def _embed_now(self, owner_id: str, vector_index_id: str, filename: str, data: bytes) -> bool:
        try:
            vector = self._rt.model.embed_image(data)
            self._rt.vector_store.upsert(
                vector_index_id, vector, {"owner_id": owner_id, "filename": filename},
            )
        except Exception as exc:
            logger.warning("Fast-path embedding failed for %s, queued instead: %s", filename, exc)
            return False
        return True

    def _discard_blob(self, rel_path: str) -> None:
        try:
            self._rt.blobs.delete(rel_path)
        except Exception as exc:
            logger.warning("Could not remove blob %s: %s", rel_path, exc)

    # ------------------------------------------------------------------
    # Read / update / delete
    # ------------------------------------------------------------------

    def list_images(
        self,
        owner_id: str,
        filters: ImageFilters | None = None,
        *,
        page: int = 1,
        limit: int = 50,
    ) -> ImageList:
        page = max(page, 1)
        repo = ImageRepository(self._uow.session)
        total = repo.count_filtered(owner_id, filters)
        records = repo.list_filtered(owner_id, filters, offset=(page - 1) * limit, limit=limit)
        return ImageList(
            items=[ImageRead.model_validate(r) for r in records],
            total=total,
            page=page,
            pages=math.ceil(total / limit) if limit else 0,
        )

    def _load(self, image_id: int) -> ImageRecord:
        record = ImageRepository(self._uow.session).get_by_id(image_id)
        if record is None:
            raise NotFoundError(f"Image {image_id} not found")
        return record

    def _load_owned(self, owner_id: str, image_id: int) -> ImageRecord:
        record = self._load(image_id)
        if record.owner_id != owner_id:
            raise ForbiddenError(f"Image {image_id} belongs to another user")
        return record

    def get_image(self, owner_id: str, image_id: int) -> ImageRead:
        record = self._load(image_id)
        if record.owner_id != owner_id and not record.is_public:
            raise ForbiddenError(f"Image {image_id} is private")
        return ImageRead.model_validate(record)

    def update_image(self, owner_id: str, image_id: int, patch: ImageUpdate) -> ImageRead:
        record = self._load_owned(owner_id, image_id)
        values = patch.model_dump(exclude_unset=True)
        if values:
            # Metadata columns only; embedding fields are owned by the pipeline.
            ImageRepository(self._uow.session).update_fields(image_id, **values)
            self._uow.commit()
            self._uow.session.refresh(record)
        return ImageRead.model_validate(record)

    def delete_image(self, owner_id: str, image_id: int) -> None:
        record = self._load_owned(owner_id, image_id)
        repo = ImageRepository(self._uow.session)
        repo.pull_from_collections(image_id)
        repo.delete(record)
        self._uow.commit()
        # The vector and the file go only once the metadata delete is durable.
        self._rt.pipeline.delete_vector(record)
        self._discard_blob(record.file_path)
        logger.info("Deleted image %s for %s", image_id, owner_id)

    # ------------------------------------------------------------------
    # Search and stats
    # ------------------------------------------------------------------

    def search(self, owner_id: str, payload: SearchRequest) -> SearchResultsRead:
        response = self._rt.search.search(
            self._uow.session, owner_id, payload.query, _to_filters(payload), payload.limit,
        )
        return SearchResultsRead(
            results=[
                ScoredImageRead.model_validate(s.record).model_copy(update={"score": s.score})
                for s in response.results
            ],
            search_type=response.search_type.value,
            warnings=response.warnings,
            unembedded_count=response.unembedded_count,
            error_kind=response.error_kind.value if response.error_kind else None,
            message=response.message,
        )

    def embedding_stats(self, owner_id: str | None = None) -> EmbeddingStatsRead:
        return EmbeddingStatsRead(**self._rt.pipeline.stats(owner_id).as_dict())

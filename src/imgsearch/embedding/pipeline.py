"""Background embedding pipeline.

Drains eligible records in small, strictly sequential batches: one embed call
and one index write at a time, so the shared model and index never see more
than one request from here. Periodic ticks and request-triggered one-shots go
through the same single-flight guard, so overlapping triggers collapse into
one pass.

Failures never escape a pass. They land on the record
(``embedding_status = failed`` + ``embedding_error``) and are retried per the
:class:`~imgsearch.embedding.state.RetryPolicy`.

Known gap: a crash between a successful index upsert and the ``completed``
update leaves a vector in the index for a record that is still
``processing``. Reprocessing upserts the same ``vector_index_id`` again, so
the stale vector is overwritten rather than duplicated.
"""
from __future__ import annotations

import logging
import math
import threading
from collections.abc import Callable
from dataclasses import asdict, dataclass
from datetime import datetime

from imgsearch.config import settings
from imgsearch.domain.exceptions import ImgSearchError, ModelUnavailableError
from imgsearch.embedding.scheduler import ScheduledTask, Scheduler, ThreadScheduler
from imgsearch.embedding.state import (
    RetryPolicy,
    check_transition,
    eligible_clause,
    retryable_clause,
)
from imgsearch.infra.db.repositories.image_repository import ImageRepository
from imgsearch.infra.db.uow import UnitOfWork
from imgsearch.infra.model.base import EmbeddingModel
from imgsearch.infra.search.vector_store import VectorStore
from imgsearch.models.core import EmbeddingStatus, ImageRecord, utcnow
from imgsearch.storage.blobs import LocalBlobStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class BatchResult:
    selected: int
    succeeded: int
    failed: int
    remaining: int


@dataclass(frozen=True, slots=True)
class EmbeddingStats:
    total: int
    embedded: int
    pending: int
    processing: int
    failed: int
    exhausted: int
    percentage: int

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


def _error_message(exc: Exception) -> str:
    if isinstance(exc, ImgSearchError):
        return exc.message
    return str(exc) or exc.__class__.__name__


def _percent(part: int, total: int) -> int:
    # Half-up rounding (2.5 -> 3), not Python's banker's rounding.
    return math.floor(part / total * 100 + 0.5) if total > 0 else 0


class EmbeddingPipeline:
    def __init__(
        self,
        model: EmbeddingModel,
        vector_store: VectorStore,
        blobs: LocalBlobStore,
        *,
        policy: RetryPolicy | None = None,
        batch_size: int | None = None,
        interval_seconds: float | None = None,
        scheduler: Scheduler | None = None,
        uow_factory: Callable[[], UnitOfWork] = UnitOfWork,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._model = model
        self._vector_store = vector_store
        self._blobs = blobs
        self.policy = policy or RetryPolicy.from_settings()
        self.batch_size = batch_size or settings.EMBEDDING_BATCH_SIZE
        self.interval_seconds = interval_seconds or settings.EMBEDDING_INTERVAL_SECONDS
        self._scheduler = scheduler or ThreadScheduler(name="imgsearch-embedding")
        self._uow_factory = uow_factory
        self._clock = clock

        # Single-flight guard: held for the whole duration of one pass.
        self._pass_lock = threading.Lock()
        self._lifecycle_lock = threading.Lock()
        self._task: ScheduledTask | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._pass_lock.locked()

    @property
    def started(self) -> bool:
        return self._task is not None

    def start(self, interval_seconds: float | None = None, *, blocking: bool = False) -> None:
        """Run one pass now, then every interval until :meth:`stop`.

        A second call while started is a no-op. With ``blocking=False`` the
        immediate pass runs on a background thread.
        """
        with self._lifecycle_lock:
            if self._task is not None:
                logger.info("Embedding pipeline already started")
                return
            interval = interval_seconds or self.interval_seconds
            self._task = self._scheduler.schedule(interval, self.run_once)
            logger.info("Embedding pipeline started (every %ss)", interval)
        if blocking:
            self.run_once()
        else:
            self.trigger()

    def stop(self) -> None:
        """Cancel the periodic loop. An in-flight pass finishes on its own."""
        with self._lifecycle_lock:
            task, self._task = self._task, None
        if task is not None:
            task.cancel()
            logger.info("Embedding pipeline stopped")

    def trigger(self) -> threading.Thread | None:
        """Fire-and-forget pass for request paths (e.g. right after upload)."""
        if self.running:
            logger.debug("Embedding pass already running; trigger collapsed")
            return None
        thread = threading.Thread(target=self.run_once, name="imgsearch-embedding-oneshot", daemon=True)
        thread.start()
        return thread

    # ------------------------------------------------------------------
    # One pass
    # ------------------------------------------------------------------

    def run_once(self) -> BatchResult | None:
        """Process one batch; ``None`` when skipped (busy or model not ready)."""
        if not self._pass_lock.acquire(blocking=False):
            logger.info("Embedding pass already running, skipping")
            return None
        try:
            if not self._model.ready():
                logger.info("Embedding model not ready, skipping embedding pass")
                return None
            try:
                batch = self._select_batch()
            except Exception:
                logger.exception("Embedding pass could not select records")
                return None

            if not batch:
                logger.debug("No pending embeddings to process")
                return BatchResult(
                    selected=0, succeeded=0, failed=0, remaining=self._count_remaining(),
                )

            logger.info("Processing %d pending embedding(s)", len(batch))
            succeeded = failed = 0
            for record in batch:
                try:
                    outcome = self._process(record)
                except ModelUnavailableError as exc:
                    logger.warning("Embedding model became unavailable mid-pass: %s", exc.message)
                    break
                except Exception:
                    logger.exception("Unexpected error while processing image %s", record.id)
                    failed += 1
                    continue
                if outcome is True:
                    succeeded += 1
                elif outcome is False:
                    failed += 1

            remaining = self._count_remaining()
            logger.info(
                "Embedding batch complete: %d succeeded, %d failed, %d remaining",
                succeeded, failed, remaining,
            )
            return BatchResult(
                selected=len(batch), succeeded=succeeded, failed=failed, remaining=remaining,
            )
        finally:
            self._pass_lock.release()

    def _select_batch(self) -> list[ImageRecord]:
        with self._uow_factory() as uow:
            return ImageRepository(uow.session).find_where(
                eligible_clause(self._clock(), self.policy), limit=self.batch_size,
            )

    def _count_remaining(self) -> int:
        try:
            with self._uow_factory() as uow:
                return ImageRepository(uow.session).count(retryable_clause(self.policy))
        except Exception:
            logger.exception("Could not count remaining embeddings")
            return 0

    def _process(self, record: ImageRecord) -> bool | None:
        """Embed one record. True on success, False on failure, None if skipped.

        Raises ModelUnavailableError only. A record that was already claimed
        goes back to its previous status; its attempt counter keeps the
        increment.
        """
        previous = record.embedding_status
        check_transition(previous, EmbeddingStatus.PROCESSING)
        if not self._model.ready():
            raise ModelUnavailableError("Embedding model is not loaded")
        with self._uow_factory() as uow:
            claimed = ImageRepository(uow.session).increment_attempts(
                record.id,
                ImageRecord.embedding_status == previous,
                embedding_status=EmbeddingStatus.PROCESSING,
                last_embedding_attempt=self._clock(),
            )
        if not claimed:
            logger.info("Image %s changed or was deleted before processing; skipped", record.id)
            return None

        try:
            data = self._blobs.read(record.file_path)
            vector = self._model.embed_image(data)
            self._vector_store.upsert(
                record.vector_index_id,
                vector,
                {"image_id": record.id, "owner_id": record.owner_id, "filename": record.filename},
            )
        except ModelUnavailableError:
            # Attempts never decrease; only the status is put back.
            self._set_status(record, previous)
            raise
        except Exception as exc:
            message = _error_message(exc)
            logger.error("Embedding failed for image %s: %s", record.id, message)
            self._set_status(record, EmbeddingStatus.FAILED, embedding_error=message, is_embedded=False)
            return False

        if not self._set_status(
            record, EmbeddingStatus.COMPLETED, is_embedded=True, embedding_error=None,
        ):
            # Record vanished mid-flight; do not leave its vector behind.
            self.delete_vector(record)
            return None
        logger.info("Embedding completed for image %s", record.id)
        return True

    def _set_status(self, record: ImageRecord, status: EmbeddingStatus, **values) -> bool:
        """Leave ``processing``; compare-and-set so a concurrent reset wins."""
        with self._uow_factory() as uow:
            return bool(ImageRepository(uow.session).update_fields(
                record.id,
                ImageRecord.embedding_status == EmbeddingStatus.PROCESSING,
                embedding_status=status,
                **values,
            ))

    # ------------------------------------------------------------------
    # Deletion, stats and operator helpers
    # ------------------------------------------------------------------

    def delete_vector(self, record: ImageRecord) -> bool:
        """Best-effort removal of *record*'s vector; never raises."""
        try:
            self._vector_store.delete(record.vector_index_id)
        except Exception as exc:
            logger.warning(
                "Failed to delete vector %s for image %s: %s",
                record.vector_index_id, record.id, _error_message(exc),
            )
            return False
        return True

    def stats(self, owner_id: str | None = None) -> EmbeddingStats:
        cap = self.policy.max_attempts
        with self._uow_factory() as uow:
            repo = ImageRepository(uow.session)
            total = repo.count(owner_id=owner_id)
            embedded = repo.count(ImageRecord.is_embedded == True, owner_id=owner_id)  # noqa: E712
            pending = repo.count(
                ImageRecord.embedding_status == EmbeddingStatus.PENDING, owner_id=owner_id,
            )
            processing = repo.count(
                ImageRecord.embedding_status == EmbeddingStatus.PROCESSING, owner_id=owner_id,
            )
            failed = repo.count(
                ImageRecord.embedding_status == EmbeddingStatus.FAILED,
                ImageRecord.embedding_attempts < cap,
                owner_id=owner_id,
            )
            exhausted = repo.count(
                ImageRecord.embedding_status == EmbeddingStatus.FAILED,
                ImageRecord.embedding_attempts >= cap,
                owner_id=owner_id,
            )
        return EmbeddingStats(
            total=total,
            embedded=embedded,
            pending=pending,
            processing=processing,
            failed=failed,
            exhausted=exhausted,
            percentage=_percent(embedded, total),
        )

    def reset_stuck(self, owner_id: str | None = None) -> int:
        """Put every ``processing`` record back to ``pending``; returns the count."""
        with self._uow_factory() as uow:
            count = ImageRepository(uow.session).reset_processing(owner_id=owner_id)
        if count:
            logger.info("Reset %d stuck record(s) from processing to pending", count)
        return count

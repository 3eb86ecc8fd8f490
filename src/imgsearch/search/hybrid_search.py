"""Hybrid search: metadata-only browsing or vector similarity + metadata filters.

Decision table (one row wins, top to bottom):

=====================================  ==============  ===============
condition                              search_type     error_kind
=====================================  ==============  ===============
empty query                            ``all``         -
index unhealthy or model not ready     ``unavailable`` -
bad query vector / config error        ``ai-error``    ``bad_request``
empty index, timeout, backend failure  ``ai-error``    ``transient``
otherwise                              ``ai``          -
=====================================  ==============  ===============

AI failures are never papered over with metadata results: the caller decides
whether to retry, wait, or fall back to filters.
"""
from __future__ import annotations

import logging
import math
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, TypeVar

from sqlmodel import Session

from imgsearch.config import settings
from imgsearch.domain.exceptions import ConfigurationError, ImgSearchError, InvalidInputError
from imgsearch.infra.db.repositories.image_repository import ImageFilters, ImageRepository
from imgsearch.infra.model.base import EmbeddingModel
from imgsearch.infra.search.vector_store import VectorHit, VectorStore
from imgsearch.models.core import ImageRecord

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SearchType(str, Enum):
    ALL = "all"
    AI = "ai"
    UNAVAILABLE = "unavailable"
    AI_ERROR = "ai-error"


class SearchErrorKind(str, Enum):
    BAD_REQUEST = "bad_request"
    TRANSIENT = "transient"


@dataclass
class ScoredImage:
    record: ImageRecord
    score: float | None = None  # None on the metadata-only path


@dataclass
class SearchResponse:
    results: list[ScoredImage]
    search_type: SearchType
    warnings: list[str] = field(default_factory=list)
    unembedded_count: int = 0
    error_kind: SearchErrorKind | None = None
    message: str | None = None


class AISearchError(Exception):
    def __init__(self, kind: SearchErrorKind, message: str) -> None:
        self.kind = kind
        self.message = message
        super().__init__(message)


def rank_by_score(hits: list[VectorHit], records: list[ImageRecord], limit: int) -> list[ScoredImage]:
    """Order *records* by their hit score, descending.

    Records without a hit are dropped, not given a default score. Equal scores
    keep the index's own order (the sort is stable); no secondary key.
    """
    scores: dict[str, float] = {}
    order: dict[str, int] = {}
    for i, hit in enumerate(hits):
        if hit.external_id not in scores:
            scores[hit.external_id] = hit.score
            order[hit.external_id] = i

    ranked = [
        ScoredImage(record=r, score=scores[r.vector_index_id])
        for r in sorted(
            (r for r in records if r.vector_index_id in scores),
            key=lambda r: order[r.vector_index_id],
        )
    ]
    ranked.sort(key=lambda s: s.score, reverse=True)
    return ranked[:limit]


class HybridSearch:
    """Runs searches; model and index calls go through a private thread pool.

    The timeout bounds how long a request waits, not the call itself: a timed
    out embed or index query keeps running on its pool thread until it
    returns. :meth:`close` shuts the pool down without waiting for such calls.
    """

    def __init__(
        self,
        model: EmbeddingModel,
        vector_store: VectorStore,
        *,
        oversample: int | None = None,
        timeout_seconds: float | None = None,
        max_workers: int = 8,
    ) -> None:
        self._model = model
        self._vector_store = vector_store
        self.oversample = oversample or settings.SEARCH_OVERSAMPLE
        self.timeout_seconds = timeout_seconds or settings.SEARCH_TIMEOUT_SECONDS
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="imgsearch-search")

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)

    def ai_available(self) -> bool:
        return self._vector_store.health() and self._model.ready()

    def search(
        self,
        session: Session,
        owner_id: str,
        query: str | None,
        filters: ImageFilters | None = None,
        limit: int = 20,
    ) -> SearchResponse:
        repo = ImageRepository(session)
        filters = filters or ImageFilters()

        if not query or not query.strip():
            records = repo.list_filtered(owner_id, filters, order_by="created_at", limit=limit)
            return SearchResponse(
                results=[ScoredImage(record=r) for r in records],
                search_type=SearchType.ALL,
                message="Showing all images",
            )

        unembedded = repo.count_unembedded(owner_id)

        if not self.ai_available():
            return SearchResponse(
                results=[],
                search_type=SearchType.UNAVAILABLE,
                unembedded_count=unembedded,
                message=(
                    "AI search is currently unavailable: the embedding model or vector index "
                    "is not ready. Use filters to browse images."
                ),
            )

        try:
            hits = self._vector_search(query, limit * self.oversample)
        except AISearchError as err:
            logger.error("AI search failed (%s): %s", err.kind.value, err.message)
            return SearchResponse(
                results=[],
                search_type=SearchType.AI_ERROR,
                unembedded_count=unembedded,
                error_kind=err.kind,
                message=err.message,
            )

        records = repo.get_by_vector_index_ids(owner_id, [h.external_id for h in hits], filters)
        results = rank_by_score(hits, records, limit)

        warnings: list[str] = []
        if unembedded > 0:
            warnings.append(
                f"{unembedded} image(s) not yet indexed for AI search and excluded from these results"
            )
        return SearchResponse(
            results=results,
            search_type=SearchType.AI,
            warnings=warnings,
            unembedded_count=unembedded,
        )

    # ------------------------------------------------------------------
    # Vector leg
    # ------------------------------------------------------------------

    def _call(self, fn: Callable[..., T], *args: Any) -> T:
        future = self._executor.submit(fn, *args)
        try:
            return future.result(timeout=self.timeout_seconds)
        except FutureTimeout as exc:
            future.cancel()
            raise AISearchError(
                SearchErrorKind.TRANSIENT,
                f"{getattr(fn, '__name__', 'call')} timed out after {self.timeout_seconds}s",
            ) from exc

    def _vector_search(self, query: str, k: int) -> list[VectorHit]:
        try:
            vector = self._call(self._model.embed_text, query)
        except AISearchError:
            raise
        except (ConfigurationError, InvalidInputError) as exc:
            raise AISearchError(SearchErrorKind.BAD_REQUEST, exc.message) from exc
        except ImgSearchError as exc:
            raise AISearchError(SearchErrorKind.TRANSIENT, exc.message) from exc
        except Exception as exc:
            logger.exception("Query embedding raised unexpectedly")
            raise AISearchError(SearchErrorKind.TRANSIENT, str(exc)) from exc

        self._validate_vector(vector)

        try:
            if self._call(self._vector_store.point_count) == 0:
                raise AISearchError(
                    SearchErrorKind.TRANSIENT, "No embedded images available for AI search",
                )
            return self._call(self._vector_store.search, vector, k)
        except AISearchError:
            raise
        except ConfigurationError as exc:
            raise AISearchError(SearchErrorKind.BAD_REQUEST, exc.message) from exc
        except ImgSearchError as exc:
            raise AISearchError(SearchErrorKind.TRANSIENT, exc.message) from exc
        except Exception as exc:
            logger.exception("Vector index search raised unexpectedly")
            raise AISearchError(SearchErrorKind.TRANSIENT, str(exc)) from exc

    def _validate_vector(self, vector: Any) -> None:
        if vector is None or len(vector) == 0:
            raise AISearchError(SearchErrorKind.BAD_REQUEST, "Invalid embedding generated (empty vector)")
        expected = self._vector_store.dimension
        if len(vector) != expected:
            raise AISearchError(
                SearchErrorKind.BAD_REQUEST,
                f"Vector dimension mismatch: query has {len(vector)}, index expects {expected}",
            )
        if any(not math.isfinite(float(v)) for v in vector):
            raise AISearchError(SearchErrorKind.BAD_REQUEST, "Embedding contains NaN or infinite values")

"""VectorStore contract used by the embedding pipeline and AI search."""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

from imgsearch.domain.exceptions import ConfigurationError


class EmbeddingDimensionError(ConfigurationError):
    """Vector length does not match the index's configured dimension."""


@dataclass(frozen=True, slots=True)
class VectorHit:
    """One scored neighbour returned by a similarity search."""

    external_id: str
    score: float
    payload: Mapping[str, Any] = field(default_factory=dict)


class VectorStore(ABC):
    """Abstract interface for vector indexing and retrieval.

    Implementations raise :class:`EmbeddingDimensionError` for vectors of the
    wrong length and ``IndexUnavailableError`` for any backend failure.
    ``search`` returns hits by descending score; equal scores come back in no
    guaranteed order.
    """

    dimension: int

    @abstractmethod
    def upsert(self, external_id: str, vector: Sequence[float], payload: Mapping[str, Any]) -> None:
        """Insert or overwrite the vector stored under *external_id*."""

    @abstractmethod
    def set_payload(self, external_id: str, payload: Mapping[str, Any]) -> None:
        """Merge *payload* keys into the stored payload of *external_id*."""

    @abstractmethod
    def delete(self, external_id: str) -> bool:
        """Remove one vector; return whether it existed."""

    @abstractmethod
    def search(self, vector: Sequence[float], k: int) -> list[VectorHit]:
        """Return at most *k* nearest neighbours of *vector*."""

    @abstractmethod
    def health(self) -> bool:
        """Cheap liveness probe; never raises."""

    @abstractmethod
    def point_count(self) -> int:
        """Number of stored vectors."""

    def check_dimension(self, vector: Sequence[float]) -> None:
        if len(vector) != self.dimension:
            raise EmbeddingDimensionError(
                f"Vector dimension mismatch: got {len(vector)}, index expects {self.dimension}"
            )

    def close(self) -> None:
        pass

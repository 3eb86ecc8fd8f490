"""EmbeddingModel contract shared by the pipeline and the search path."""
from __future__ import annotations

from abc import ABC, abstractmethod

import numpy as np


class EmbeddingModel(ABC):
    """Maps image bytes and text queries into one shared vector space.

    ``ready()`` must be cheap: callers use it to gate work, not to probe the
    model. ``embed_*`` raise ``ModelUnavailableError`` when not ready and
    ``InvalidInputError`` for input that cannot be embedded.
    """

    name: str
    dimension: int

    @abstractmethod
    def ready(self) -> bool:
        """Whether embed calls can be served right now."""

    @abstractmethod
    def embed_image(self, data: bytes) -> list[float]:
        """Return an embedding for raw image bytes."""

    @abstractmethod
    def embed_text(self, text: str) -> list[float]:
        """Return an embedding for a text query."""

    @staticmethod
    def _normalize(vector: np.ndarray) -> list[float]:
        """Unit-length float32 list, so cosine and dot products agree."""
        vector = np.asarray(vector, dtype=np.float32).reshape(-1)
        norm = np.linalg.norm(vector)
        if norm == 0:
            return vector.tolist()
        return (vector / norm).astype(np.float32).tolist()

"""Embedding model gateway."""

from imgsearch.infra.model.base import EmbeddingModel
from imgsearch.infra.model.clip import ClipEmbeddingModel

__all__ = ["ClipEmbeddingModel", "EmbeddingModel"]

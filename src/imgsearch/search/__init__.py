"""Hybrid metadata/vector search."""

from imgsearch.search.hybrid_search import (
    HybridSearch,
    ScoredImage,
    SearchErrorKind,
    SearchResponse,
    SearchType,
)

__all__ = [
    "HybridSearch",
    "ScoredImage",
    "SearchErrorKind",
    "SearchResponse",
    "SearchType",
]

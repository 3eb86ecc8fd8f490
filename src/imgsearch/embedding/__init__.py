"""Embedding lifecycle, scheduling and the background pipeline."""

from imgsearch.embedding.pipeline import BatchResult, EmbeddingPipeline, EmbeddingStats
from imgsearch.embedding.scheduler import ScheduledTask, Scheduler, ThreadScheduler
from imgsearch.embedding.state import RetryPolicy, eligible_clause, is_eligible

__all__ = [
    "BatchResult",
    "EmbeddingPipeline",
    "EmbeddingStats",
    "RetryPolicy",
    "ScheduledTask",
    "Scheduler",
    "ThreadScheduler",
    "eligible_clause",
    "is_eligible",
]

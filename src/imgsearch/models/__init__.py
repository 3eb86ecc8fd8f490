"""ORM table models. Importing this package registers every mapper."""
from imgsearch.models.core import (
    Collection,
    CollectionImageLink,
    EmbeddingStatus,
    ImageRecord,
    new_vector_index_id,
    utcnow,
)

__all__ = [
    "Collection",
    "CollectionImageLink",
    "EmbeddingStatus",
    "ImageRecord",
    "new_vector_index_id",
    "utcnow",
]

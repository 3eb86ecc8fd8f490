"""CLIP image/text embedder (Hugging Face ``transformers``).

``torch`` and ``transformers`` ship in the ``clip`` extra and are imported on
first load, so the API and the pipeline start without them; the gateway
simply stays not-ready until a load succeeds.
"""
from __future__ import annotations

import io
import logging
import threading
import time

from PIL import Image, UnidentifiedImageError

from imgsearch.config import settings
from imgsearch.domain.exceptions import (
    ConfigurationError,
    EmbeddingFailedError,
    InvalidInputError,
    ModelUnavailableError,
)
from imgsearch.infra.model.base import EmbeddingModel

logger = logging.getLogger(__name__)


class ClipEmbeddingModel(EmbeddingModel):
    def __init__(
        self,
        model_name: str | None = None,
        device: str | None = None,
        dimension: int | None = None,
    ) -> None:
        self.model_name = model_name or settings.EMBEDDING_MODEL
        self.device = device or settings.EMBEDDING_DEVICE
        self.dimension = dimension or settings.EMBEDDING_DIM
        self.name = "clip"
        self._model = None
        self._processor = None
        self._torch = None
        self._lock = threading.Lock()
        self._load_attempts = 0

    def ready(self) -> bool:
        return self._model is not None and self._processor is not None

    def load(
        self,
        max_attempts: int | None = None,
        retry_seconds: float | None = None,
    ) -> bool:
        """Load weights, retrying a few times; return readiness.

        A final failure is logged, not raised: uploads keep working and AI
        search reports itself unavailable.
        """
        max_attempts = max_attempts or settings.MODEL_LOAD_ATTEMPTS
        retry_seconds = settings.MODEL_LOAD_RETRY_SECONDS if retry_seconds is None else retry_seconds
        with self._lock:
            while not self.ready() and self._load_attempts < max_attempts:
                self._load_attempts += 1
                logger.info(
                    "Loading embedding model %s (attempt %d/%d)",
                    self.model_name, self._load_attempts, max_attempts,
                )
                try:
                    self._load()
                except ConfigurationError as exc:
                    logger.error("Embedding model misconfigured: %s", exc.message)
                    break
                except Exception as exc:
                    logger.error("Embedding model load failed: %s", exc)
                    if self._load_attempts < max_attempts:
                        time.sleep(retry_seconds)
                    continue
                logger.info("Embedding model loaded; AI search enabled")
            if not self.ready():
                logger.error(
                    "Embedding model unavailable after %d attempts; "
                    "images will queue as pending and AI search is disabled",
                    self._load_attempts,
                )
            return self.ready()

    def _load(self) -> None:
        import torch
        from transformers import CLIPModel, CLIPProcessor

        model = CLIPModel.from_pretrained(self.model_name).to(self.device)
        model.eval()
        projection_dim = int(model.config.projection_dim)
        if projection_dim != self.dimension:
            raise ConfigurationError(
                f"{self.model_name} produces {projection_dim}-d vectors, "
                f"EMBEDDING_DIM is {self.dimension}"
            )
        self._processor = CLIPProcessor.from_pretrained(self.model_name)
        self._torch = torch
        self._model = model

    def _require_ready(self) -> None:
        if not self.ready():
            raise ModelUnavailableError("Embedding model is not initialized")

    def embed_image(self, data: bytes) -> list[float]:
        self._require_ready()
        try:
            image = Image.open(io.BytesIO(data)).convert("RGB")
        except (UnidentifiedImageError, OSError) as exc:
            raise InvalidInputError(f"Cannot decode image: {exc}") from exc
        try:
            inputs = self._processor(images=image, return_tensors="pt").to(self.device)
            with self._torch.no_grad():
                feats = self._model.get_image_features(**inputs)
        except Exception as exc:
            raise EmbeddingFailedError(f"Image embedding failed: {exc}") from exc
        return self._normalize(feats[0].cpu().numpy())

    def embed_text(self, text: str) -> list[float]:
        self._require_ready()
        if not text or not text.strip():
            raise InvalidInputError("Cannot embed empty text")
        try:
            inputs = self._processor(
                text=[text], return_tensors="pt", padding=True, truncation=True
            ).to(self.device)
            with self._torch.no_grad():
                feats = self._model.get_text_features(**inputs)
        except Exception as exc:
            raise EmbeddingFailedError(f"Text embedding failed: {exc}") from exc
        return self._normalize(feats[0].cpu().numpy())

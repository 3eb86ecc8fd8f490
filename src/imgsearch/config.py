"""Application settings loaded from the environment (and ``.env``)."""
from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Storage
    DATA_DIR: Path = Path("data")
    DATABASE_URL: str | None = None
    VEC_DB: Path | None = None

    # Embedding model
    EMBEDDING_MODEL: str = "openai/clip-vit-base-patch32"
    EMBEDDING_DIM: int = 512
    EMBEDDING_DEVICE: str = "cpu"
    MODEL_LOAD_ATTEMPTS: int = 3
    MODEL_LOAD_RETRY_SECONDS: float = 10.0
    LOAD_MODEL_ON_STARTUP: bool = True

    # Embedding pipeline
    MAX_EMBEDDING_ATTEMPTS: int = Field(default=5, ge=1)
    EMBEDDING_RETRY_DELAY_SECONDS: float = 60.0
    EMBEDDING_STALE_AFTER_SECONDS: float | None = 900.0
    EMBEDDING_BATCH_SIZE: int = Field(default=10, ge=1)
    EMBEDDING_INTERVAL_SECONDS: float = 120.0
    EMBEDDINGS_ON_STARTUP: bool = True

    # Search
    SEARCH_OVERSAMPLE: int = Field(default=3, ge=1)
    SEARCH_TIMEOUT_SECONDS: float = 30.0
    SEARCH_DEFAULT_LIMIT: int = 20

    # Uploads
    ALLOWED_FILE_TYPES: list[str] = ["image/jpeg", "image/png", "image/jpg", "image/webp"]
    MAX_FILE_SIZE: int = 10 * 1024 * 1024
    MAX_FILES_PER_UPLOAD: int = 300

    LOG_LEVEL: str = "INFO"

    @property
    def data_dir(self) -> Path:
        return self.DATA_DIR

    @property
    def database_url(self) -> str:
        return self.DATABASE_URL or f"sqlite:///{self.DATA_DIR / 'imgsearch.db'}"

    @property
    def vec_db(self) -> Path:
        return self.VEC_DB or self.DATA_DIR / "vectors.db"

    @property
    def uploads_dir(self) -> Path:
        return self.DATA_DIR / "uploads"


settings = Settings()

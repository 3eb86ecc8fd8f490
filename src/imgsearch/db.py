"""Engine singleton and database bootstrap."""
from __future__ import annotations

from sqlmodel import SQLModel, create_engine

from imgsearch.config import settings

DATA_DIR = settings.data_dir


def _make_engine(url: str):
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, echo=False, connect_args=connect_args)


engine = _make_engine(settings.database_url)


def init_db() -> None:
    """Create the data directory and every registered table."""
    import imgsearch.models  # noqa: F401 — registers all ORM table mappers
    from imgsearch.infra.db.schema_compat import ensure_schema_compat

    DATA_DIR.mkdir(parents=True, exist_ok=True)
    SQLModel.metadata.create_all(engine)
    ensure_schema_compat(engine)

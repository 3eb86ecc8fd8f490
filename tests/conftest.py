"""Shared test fixtures.

  use_test_engine  — redirects UoW + infra layer to a temp-file SQLite DB.
  runtime          — fake model, in-memory index and manual scheduler,
                     installed as the process runtime.
  client           — FastAPI TestClient wired to both of the above.
"""
import io
import pytest
from PIL import Image
from sqlmodel import SQLModel, create_engine

from fakes import FakeModel, InMemoryVectorStore, ManualScheduler


@pytest.fixture
def use_test_engine(tmp_path, monkeypatch):
    """Monkeypatch infra/db engine references to an isolated temp-file SQLite DB.

    Uses a file (not :memory:) so pipeline threads see the same database.
    """
    db_path = tmp_path / "test_imgsearch.db"
    test_engine = create_engine(
        f"sqlite:///{db_path}", echo=False, connect_args={"check_same_thread": False},
    )

    import imgsearch.models  # noqa: F401 — register all ORM mappers
    SQLModel.metadata.create_all(test_engine)

    # Redirect all infra/db references to the test engine
    monkeypatch.setattr("imgsearch.db.engine", test_engine)
    monkeypatch.setattr("imgsearch.db.DATA_DIR", tmp_path)
    monkeypatch.setattr("imgsearch.infra.db.engine.engine", test_engine)
    monkeypatch.setattr("imgsearch.infra.db.uow.engine", test_engine)

    yield test_engine

    SQLModel.metadata.drop_all(test_engine)
    test_engine.dispose()


@pytest.fixture
def fake_model():
    return FakeModel()


@pytest.fixture
def vector_store():
    return InMemoryVectorStore()


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def blobs(tmp_path):
    from imgsearch.storage.blobs import LocalBlobStore
    return LocalBlobStore(tmp_path / "uploads")


@pytest.fixture
def runtime(use_test_engine, fake_model, vector_store, blobs, scheduler):
    from imgsearch.runtime import build_runtime, set_runtime

    rt = build_runtime(model=fake_model, vector_store=vector_store, blobs=blobs, scheduler=scheduler)
    set_runtime(rt)
    yield rt
    rt.pipeline.stop()
    set_runtime(None)


@pytest.fixture
def client(runtime, monkeypatch):
    """FastAPI TestClient backed by the isolated test engine and fake runtime."""
    from fastapi.testclient import TestClient
    from imgsearch.api.app import create_app
    from imgsearch.config import settings

    monkeypatch.setattr(settings, "LOAD_MODEL_ON_STARTUP", False)
    monkeypatch.setattr(settings, "EMBEDDINGS_ON_STARTUP", False)

    app = create_app()
    with TestClient(app) as c:
        yield c


def png_bytes(width: int = 3, height: int = 2, color: tuple[int, int, int] = (255, 0, 0)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def png():
    return png_bytes

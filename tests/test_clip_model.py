"""Tests for the CLIP gateway's readiness and load-retry behaviour (no weights needed)."""
import pytest

from imgsearch.domain.exceptions import ConfigurationError, ModelUnavailableError
from imgsearch.infra.model.clip import ClipEmbeddingModel


def _mark_loaded(model: ClipEmbeddingModel) -> None:
    model._model = object()
    model._processor = object()


def test_not_ready_until_loaded():
    model = ClipEmbeddingModel(dimension=4)
    assert model.ready() is False
    with pytest.raises(ModelUnavailableError):
        model.embed_text("cat")
    with pytest.raises(ModelUnavailableError):
        model.embed_image(b"\x89PNG")


def test_load_retries_until_success(monkeypatch):
    model = ClipEmbeddingModel(dimension=4)
    calls: list[int] = []

    def flaky_load():
        calls.append(1)
        if len(calls) < 3:
            raise OSError("hub unreachable")
        _mark_loaded(model)

    monkeypatch.setattr(model, "_load", flaky_load)

    assert model.load(max_attempts=5, retry_seconds=0) is True
    assert len(calls) == 3


def test_load_gives_up_after_max_attempts(monkeypatch):
    model = ClipEmbeddingModel(dimension=4)
    calls: list[int] = []

    def broken_load():
        calls.append(1)
        raise OSError("hub unreachable")

    monkeypatch.setattr(model, "_load", broken_load)

    assert model.load(max_attempts=2, retry_seconds=0) is False
    assert len(calls) == 2
    assert model.ready() is False


def test_configuration_error_is_not_retried(monkeypatch):
    model = ClipEmbeddingModel(dimension=4)
    calls: list[int] = []

    def misconfigured():
        calls.append(1)
        raise ConfigurationError("512-d model, EMBEDDING_DIM is 4")

    monkeypatch.setattr(model, "_load", misconfigured)

    assert model.load(max_attempts=3, retry_seconds=0) is False
    assert len(calls) == 1

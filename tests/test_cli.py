"""Tests for the operator CLI."""
from sqlmodel import Session
from typer.testing import CliRunner

from imgsearch.cli import app
from imgsearch.models.core import EmbeddingStatus, ImageRecord

from fakes import seed_image

runner = CliRunner()


def test_embeddings_run_processes_pending(runtime, blobs, use_test_engine):
    rec = seed_image(blobs)

    result = runner.invoke(app, ["embeddings", "run"])

    assert result.exit_code == 0, result.output
    assert "1 succeeded" in result.output
    with Session(use_test_engine) as s:
        assert s.get(ImageRecord, rec.id).embedding_status == EmbeddingStatus.COMPLETED


def test_embeddings_run_fails_when_model_not_ready(runtime, fake_model):
    fake_model.is_ready = False

    result = runner.invoke(app, ["embeddings", "run"])

    assert result.exit_code == 1


def test_embeddings_stats_scoped_by_owner(runtime, blobs):
    seed_image(blobs, "alice")
    seed_image(blobs, "bob")

    result = runner.invoke(app, ["embeddings", "stats", "--owner", "alice"])

    assert result.exit_code == 0
    assert "for alice" in result.output
    assert any(line.split() == ["total", "1"] for line in result.output.splitlines())


def test_reset_stuck(runtime, blobs, use_test_engine):
    rec = seed_image(blobs, embedding_status=EmbeddingStatus.PROCESSING)

    result = runner.invoke(app, ["embeddings", "reset-stuck"])

    assert result.exit_code == 0
    assert "Reset 1 record(s)" in result.output
    with Session(use_test_engine) as s:
        assert s.get(ImageRecord, rec.id).embedding_status == EmbeddingStatus.PENDING


def test_db_init(use_test_engine):
    result = runner.invoke(app, ["db", "init"])
    assert result.exit_code == 0
    assert "Database initialized" in result.output

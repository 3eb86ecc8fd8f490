"""Tests for the ops endpoints."""
from imgsearch.models.core import EmbeddingStatus

from fakes import seed_image


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_status_reports_ready_stack(client, blobs, vector_store):
    seed_image(blobs, is_embedded=True, embedding_status=EmbeddingStatus.COMPLETED)
    seed_image(blobs)
    vector_store.upsert("v", [1.0, 0.0, 0.0, 0.0], {})

    body = client.get("/status").json()

    assert body["database"]["ok"] is True
    assert body["model"]["ok"] is True
    assert body["vector_index"]["ok"] is True
    assert body["vector_index"]["detail"] == "1 vectors, dimension 4"
    assert body["embedding"]["total"] == 2
    assert body["embedding"]["percentage"] == 50
    assert body["ai_search_available"] is True
    assert body["can_upload"] is True


def test_status_without_model_still_allows_upload(client, fake_model, vector_store):
    fake_model.is_ready = False
    vector_store.healthy = False

    body = client.get("/status").json()

    assert body["model"] == {"ok": False, "detail": "not loaded"}
    assert body["vector_index"]["ok"] is False
    assert body["ai_search_available"] is False
    assert body["can_upload"] is True
    assert body["can_search"] is True

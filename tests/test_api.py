"""Tests for API endpoints (no external API keys required).

Every endpoint dependency is overridden with in-memory doubles.
"""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from conftest import Harness
from fastapi.testclient import TestClient

from voxindex.api.deps import (
    get_metadata_store,
    get_pipeline,
    get_planner,
    get_segment_store,
)
from voxindex.api.main import app
from voxindex.errors import AcquisitionFailure, StoreUnavailable
from voxindex.retrieval.search import HybridQueryPlanner


@pytest.fixture
def api(tmp_path: Path) -> Iterator[tuple[TestClient, Harness]]:
    harness = Harness(tmp_path)
    planner = HybridQueryPlanner(harness.metadata_store, harness.vector_index, harness.embedder)
    app.dependency_overrides[get_pipeline] = lambda: harness.pipeline
    app.dependency_overrides[get_planner] = lambda: planner
    app.dependency_overrides[get_metadata_store] = lambda: harness.metadata_store
    app.dependency_overrides[get_segment_store] = lambda: harness.segment_store
    try:
        yield TestClient(app), harness
    finally:
        app.dependency_overrides.clear()


def test_health() -> None:
    response = TestClient(app).get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


@pytest.mark.parametrize(
    ("origin", "allowed"),
    [("http://localhost:3000", True), ("http://localhost:8501", False), ("http://localhost:5173", False)],
)
def test_cors_allows_only_the_web_client(origin: str, allowed: bool) -> None:
    response = TestClient(app).options(
        "/health", headers={"Origin": origin, "Access-Control-Request-Method": "GET"}
    )
    assert (response.status_code == 200) is allowed
    assert (response.headers.get("access-control-allow-origin") == origin) is allowed


class TestIngestEndpoint:
    def test_ingest_requires_item_id(self, api: tuple[TestClient, Harness]) -> None:
        client, _ = api
        assert client.post("/api/ingest", json={}).status_code == 422
        assert client.post("/api/ingest", json={"item_id": ""}).status_code == 422

    def test_ingest_returns_stored_item(self, api: tuple[TestClient, Harness]) -> None:
        client, harness = api
        response = client.post("/api/ingest", json={"item_id": "v1", "keywords": ["Mastra"]})

        assert response.status_code == 200
        data = response.json()
        assert data["reused"] is False
        assert data["segments_created"] == len(data["segments"]) > 0
        assert data["item"]["id"] == "v1"
        assert data["insights"]["tags"] == ["ai", "typescript"]
        assert data["segments"][0]["id"] == "v1_chunk_0"
        assert "embedding" not in data["segments"][0]
        assert harness.transcriber.calls[0][1] == ["Mastra"]

    def test_second_ingest_is_reused(self, api: tuple[TestClient, Harness]) -> None:
        client, harness = api
        client.post("/api/ingest", json={"item_id": "v1"})
        response = client.post("/api/ingest", json={"item_id": "v1"})

        assert response.json()["reused"] is True
        assert len(harness.acquirer.calls) == 1

    def test_force_reprocesses(self, api: tuple[TestClient, Harness]) -> None:
        client, harness = api
        client.post("/api/ingest", json={"item_id": "v1"})
        response = client.post("/api/ingest", json={"item_id": "v1", "force": True})

        assert response.json()["reused"] is False
        assert len(harness.acquirer.calls) == 2

    def test_stage_failure_is_502(self, api: tuple[TestClient, Harness]) -> None:
        client, harness = api
        harness.acquirer.error = AcquisitionFailure("No audio-only formats available")

        response = client.post("/api/ingest", json={"item_id": "v1"})

        assert response.status_code == 502
        assert response.json()["detail"] == {
            "stage": "acquire_content",
            "detail": "No audio-only formats available",
        }


class TestSearchEndpoint:
    def test_browse_by_tag(self, api: tuple[TestClient, Harness]) -> None:
        client, _ = api
        client.post("/api/ingest", json={"item_id": "v1"})

        response = client.post("/api/search", json={"filter": {"tags": ["AI"]}})

        assert response.status_code == 200
        data = response.json()
        assert data["mode"] == "browse"
        assert [i["id"] for i in data["items"]] == ["v1"]
        assert data["segments"] == []

    def test_search_returns_enriched_segments(self, api: tuple[TestClient, Harness]) -> None:
        client, _ = api
        client.post("/api/ingest", json={"item_id": "v1"})

        response = client.post("/api/search", json={"query": "agents", "top_k": 2})

        data = response.json()
        assert data["mode"] == "search"
        assert 0 < len(data["segments"]) <= 2
        info = data["segments"][0]["item_info"]
        assert info["id"] == "v1"
        assert info["key_topics"] == ["RAG", "Vector databases", "Agents"]
        assert info["processed_at"] is not None

    def test_unmatched_filter_is_empty_200(self, api: tuple[TestClient, Harness]) -> None:
        client, harness = api
        client.post("/api/ingest", json={"item_id": "v1"})

        response = client.post(
            "/api/search", json={"query": "agents", "filter": {"tags": ["nonexistent-tag"]}}
        )

        assert response.status_code == 200
        assert response.json()["segments"] == []
        assert harness.vector_index.query_calls == []

    def test_top_k_must_be_positive(self, api: tuple[TestClient, Harness]) -> None:
        client, _ = api
        assert client.post("/api/search", json={"query": "x", "top_k": 0}).status_code == 422

    def test_store_outage_is_503(self, api: tuple[TestClient, Harness]) -> None:
        client, _ = api
        planner = MagicMock()
        planner.search.side_effect = StoreUnavailable("database down")
        app.dependency_overrides[get_planner] = lambda: planner

        response = client.post("/api/search", json={"query": "agents"})

        assert response.status_code == 503


class TestItemEndpoints:
    def test_list_items(self, api: tuple[TestClient, Harness]) -> None:
        client, _ = api
        client.post("/api/ingest", json={"item_id": "v1"})
        client.post("/api/ingest", json={"item_id": "v2"})

        response = client.get("/api/items")

        assert response.status_code == 200
        assert [i["id"] for i in response.json()] == ["v1", "v2"]

    def test_item_detail(self, api: tuple[TestClient, Harness]) -> None:
        client, harness = api
        client.post("/api/ingest", json={"item_id": "v1"})

        response = client.get("/api/items/v1")

        assert response.status_code == 200
        data = response.json()
        assert data["transcript"] == harness.transcriber.transcript
        assert [s["sequence_index"] for s in data["segments"]] == list(
            range(harness.segment_store.count("v1"))
        )

    def test_item_not_found(self, api: tuple[TestClient, Harness]) -> None:
        client, _ = api
        assert client.get("/api/items/missing").status_code == 404

    def test_item_lookup_outage_is_503(self, api: tuple[TestClient, Harness]) -> None:
        client, harness = api
        harness.metadata_store.fail_lookup = True
        assert client.get("/api/items/v1").status_code == 503

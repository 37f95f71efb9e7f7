"""
Tests for the FastAPI surface, with a scripted completion client and an
in-memory store injected through the registry dependency.
"""

import pytest
from fastapi.testclient import TestClient
from pydantic import SecretStr
from unittest.mock import AsyncMock, patch

from contextfox.api import ProcessorRegistry, app, get_registry
from contextfox.config import AppConfig, OpenRouterConfig
from contextfox.core.errors import TransportError
from contextfox.services import InMemoryStateStore, ModelCatalog

from conftest import FakeCompletionClient, make_settings


@pytest.fixture
def registry():
    return ProcessorRegistry(
        AppConfig(openrouter=OpenRouterConfig(api_key=SecretStr("sk-test"))),
        InMemoryStateStore(),
        FakeCompletionClient(),
        settings=make_settings(),
    )


@pytest.fixture
def client(registry):
    app.dependency_overrides[get_registry] = lambda: registry
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


class TestHealth:
    """Tests for the health check."""

    def test_healthz(self, client):
        response = client.get("/healthz")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


class TestStoryEndpoints:
    """Tests for content upload, processing and state reads."""

    def test_process_single_file(self, client):
        response = client.post("/api/stories/s1/content", json={"text": "A\nB\nC"})
        assert response.status_code == 200
        assert response.json() == {"total_parts": 1, "split_message": None}

        response = client.post("/api/stories/s1/process")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "done"
        assert body["message"] == "Processing complete!"
        assert body["state"]["character"] == "Alice"

        state = client.get("/api/stories/s1/state").json()
        assert state["last_line"] == "C"
        assert [card["title"] for card in state["accumulated_cards"]] == ["Alice", "Wonderland"]

    def test_upload_with_split(self, client):
        response = client.post(
            "/api/stories/s1/content",
            json={"text": "1\n2\n3\n4", "context_lengths": {"test/summary": 16000}},
        )
        assert response.json() == {
            "total_parts": 2,
            "split_message": "Low context detected (16k). Split 1 file into 2 parts.",
        }

    def test_upload_requires_exactly_one_kind(self, client):
        assert client.post("/api/stories/s1/content", json={}).status_code == 422
        both = {"text": "a", "parts": {"1": "b"}}
        assert client.post("/api/stories/s1/content", json=both).status_code == 422

    def test_upload_rejects_gapped_parts(self, client):
        response = client.post("/api/stories/s1/content", json={"parts": {"1": "a", "3": "c"}})
        assert response.status_code == 422

    def test_process_with_initial_cards(self, client):
        client.post("/api/stories/s1/content", json={"text": "A"})
        response = client.post(
            "/api/stories/s1/process",
            json={"initial_cards": [{"title": "Alice Brain", "value": "brain", "useForCharacterCreation": False}]},
        )
        titles = [card["title"] for card in response.json()["state"]["accumulated_cards"]]
        assert "Alice Brain" in titles

    def test_missing_state(self, client):
        assert client.get("/api/stories/unknown/state").status_code == 404

    def test_process_without_content_fails(self, client):
        body = client.post("/api/stories/s1/process").json()
        assert body["status"] == "failed"
        assert body["message"] == "Error: No story content loaded"


class TestPermissionGate:
    """Tests for resume over HTTP."""

    def test_resume_flow(self, client, registry):
        registry.settings.require_permission_between_parts = True
        client.post("/api/stories/s1/content", json={"parts": {"1": "one", "2": "two"}})

        first = client.post("/api/stories/s1/process").json()
        assert first["status"] == "awaiting_permission"

        second = client.post("/api/stories/s1/resume").json()
        assert second["status"] == "done"
        assert second["parts_processed"] == [2]

    def test_resume_when_not_waiting(self, client):
        client.post("/api/stories/s1/content", json={"text": "A"})
        client.post("/api/stories/s1/process")
        assert client.post("/api/stories/s1/resume").status_code == 409

    def test_resume_unknown_story(self, client):
        assert client.post("/api/stories/nobody/resume").status_code == 404


class TestCardsAndTasks:
    """Tests for exclusion toggles, task listing and retries."""

    def _run(self, client):
        client.post("/api/stories/s1/content", json={"text": "A"})
        client.post("/api/stories/s1/process")

    def test_toggle_exclusion(self, client):
        self._run(client)
        response = client.patch("/api/stories/s1/exclusions", json={"title": "Wonderland"})
        assert response.status_code == 200
        assert response.json() == {"excluded_card_titles": ["Wonderland"], "included_card_titles": []}

    def test_toggle_unknown_card(self, client):
        self._run(client)
        assert client.patch("/api/stories/s1/exclusions", json={"title": "Nobody"}).status_code == 404

    def test_list_tasks(self, client):
        self._run(client)
        tasks = client.get("/api/stories/s1/tasks").json()
        assert {task["id"] for task in tasks} >= {"perspective", "title", "characters", "summary"}
        assert all(task["status"] == "completed" for task in tasks)

    def test_retry_task(self, client, registry):
        self._run(client)
        registry.client.responses["test/summary"] = '{"summary": "Better summary."}'

        response = client.post("/api/stories/s1/tasks/summary/retry", json={"system_prompt": "Edited"})

        assert response.status_code == 200
        assert response.json()["retried"] is True
        assert client.get("/api/stories/s1/state").json()["accumulated_summary"] == "Better summary."

    def test_retry_unknown_task(self, client):
        self._run(client)
        assert client.post("/api/stories/s1/tasks/nope/retry").status_code == 404


class TestModels:
    """Tests for the model list endpoint."""

    def test_list_models(self, client):
        catalog = ModelCatalog(models=["a/text"], context_lengths={"a/text": 128000})
        with patch("contextfox.api.fetch_model_catalog", AsyncMock(return_value=catalog)):
            response = client.get("/api/models")
        assert response.json() == {"models": ["a/text"], "context_lengths": {"a/text": 128000}}

    def test_catalog_failure(self, client):
        with patch("contextfox.api.fetch_model_catalog", AsyncMock(side_effect=TransportError("down"))):
            assert client.get("/api/models").status_code == 502

    def test_no_api_key(self, client, registry):
        registry.config.openrouter = None
        assert client.get("/api/models").status_code == 503

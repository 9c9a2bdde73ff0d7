"""Tests for the FastAPI endpoints."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from therapy_assistant.models import (
    AgentResponse,
    ConversationMemory,
    VisualizationHint,
)
from therapy_assistant.server import app
from therapy_assistant.services.sessions import SessionStore


@pytest.fixture
def mock_processor():
    """Mock processor and a real session store on app state (mirrors the lifespan)."""
    processor = MagicMock()
    processor.process_query = AsyncMock(
        return_value=AgentResponse(
            content="The client has $600.00 remaining out of a total budget of $1000.00.",
            confidence=0.95,
            visualization_hint=VisualizationHint.BUBBLE_CHART,
            suggested_follow_ups=["When will the budget run out at the current rate?"],
            detected_entities=[],
            memory_updates=ConversationMemory(
                last_query="How much budget is remaining?", last_topic="budget_analysis"
            ),
        )
    )

    app.state.processor = processor
    app.state.sessions = SessionStore()
    yield processor
    app.state.processor = None
    app.state.sessions = None


@pytest.fixture
def client(mock_processor):
    return TestClient(app)


class TestHealthEndpoint:
    def test_health_returns_ok(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["service"] == "therapy-assistant"


class TestChatEndpoint:
    def test_chat_returns_response(self, client):
        response = client.post(
            "/api/chat",
            json={"message": "How much budget is remaining?", "session_id": "s-1", "active_client_id": 5},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["session_id"] == "s-1"
        assert "$600.00" in data["reply"]
        assert data["confidence"] == 0.95
        assert data["visualization_hint"] == "BUBBLE_CHART"
        assert data["suggested_follow_ups"] == ["When will the budget run out at the current rate?"]

    def test_chat_builds_context_from_request(self, client, mock_processor):
        client.post(
            "/api/chat",
            json={"message": "How is attendance?", "session_id": "s-2", "active_client_id": 7},
        )
        query, context = mock_processor.process_query.call_args.args
        assert query == "How is attendance?"
        assert context.active_client_id == 7
        assert context.conversation_history == []

    def test_second_turn_sees_history_and_memory(self, client, mock_processor):
        payload = {"message": "How much budget is remaining?", "session_id": "s-3", "active_client_id": 5}
        client.post("/api/chat", json=payload)
        client.post("/api/chat", json={**payload, "message": "and what about progress?"})

        _, context = mock_processor.process_query.call_args.args
        assert [m.role for m in context.conversation_history] == ["user", "assistant"]
        assert context.conversation_memory.last_topic == "budget_analysis"

    def test_chat_validates_empty_message(self, client):
        response = client.post("/api/chat", json={"message": "", "session_id": "s"})
        assert response.status_code == 422

    def test_chat_validates_missing_session(self, client):
        response = client.post("/api/chat", json={"message": "Hello!"})
        assert response.status_code == 422

    def test_chat_handles_processor_error(self, client, mock_processor):
        mock_processor.process_query.side_effect = RuntimeError("database password is hunter2")
        response = client.post("/api/chat", json={"message": "Hi", "session_id": "s-err"})

        assert response.status_code == 500
        detail = response.json()["detail"]
        assert detail == "An internal error occurred. Please try again."
        assert "hunter2" not in detail

    def test_chat_unavailable_before_startup(self, client):
        app.state.processor = None
        response = client.post("/api/chat", json={"message": "Hi", "session_id": "s"})
        assert response.status_code == 503


class TestResetEndpoint:
    def test_reset_forgets_history(self, client, mock_processor):
        payload = {"message": "How much budget is remaining?", "session_id": "s-4"}
        client.post("/api/chat", json=payload)

        assert client.delete("/api/chat/s-4").status_code == 204

        client.post("/api/chat", json=payload)
        _, context = mock_processor.process_query.call_args.args
        assert context.conversation_history == []


class TestRootEndpoint:
    def test_root_lists_service(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["service"] == "Therapy Practice Assistant"

    def test_request_id_is_echoed(self, client):
        response = client.get("/api/health", headers={"X-Request-ID": "abc-123"})
        assert response.headers["X-Request-ID"] == "abc-123"

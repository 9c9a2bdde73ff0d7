"""Pydantic schemas for the FastAPI endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field

from therapy_assistant.models import ExtractedEntity, VisualizationHint


class ChatRequest(BaseModel):
    """Incoming question from the dashboard frontend."""

    message: str = Field(..., min_length=1, max_length=2000, description="The user's question")
    session_id: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Unique session identifier for conversation continuity",
    )
    active_client_id: int | None = Field(None, description="Client currently selected in the dashboard")
    active_goal_id: int | None = None
    active_budget_id: int | None = None


class ChatResponse(BaseModel):
    """Answer from the query engine."""

    reply: str = Field(..., description="The assistant's answer")
    session_id: str = Field(..., description="The session ID for this conversation")
    confidence: float
    suggested_follow_ups: list[str] = Field(default_factory=list)
    visualization_hint: VisualizationHint | None = None
    detected_entities: list[ExtractedEntity] = Field(default_factory=list)


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    service: str = "therapy-assistant"

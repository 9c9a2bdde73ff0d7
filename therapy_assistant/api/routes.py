"""FastAPI route definitions for the therapy assistant API."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Request

from therapy_assistant.agent import QueryProcessor
from therapy_assistant.api.schemas import ChatRequest, ChatResponse, HealthResponse
from therapy_assistant.services.sessions import SessionStore

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_engine(request: Request) -> tuple[QueryProcessor, SessionStore]:
    """Retrieve the processor and session store from app state.

    Both are built once during the FastAPI lifespan (see ``server.py``).
    """
    processor = getattr(request.app.state, "processor", None)
    sessions = getattr(request.app.state, "sessions", None)
    if processor is None or sessions is None:
        raise HTTPException(
            status_code=503,
            detail="The assistant is still starting up. Please try again in a moment.",
        )
    return processor, sessions


# ── Endpoints ────────────────────────────────────────────────────────


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse()


@router.post("/chat", response_model=ChatResponse)
async def chat(request: ChatRequest, http_request: Request):
    """Answer one question in the context of a session.

    The session_id keys the conversation history and memory, so
    follow-up questions ("and what about progress?") resolve against
    earlier turns.
    """
    processor, sessions = _get_engine(http_request)
    request_id = getattr(http_request.state, "request_id", "?")

    try:
        context = sessions.build_context(
            request.session_id,
            active_client_id=request.active_client_id,
            active_goal_id=request.active_goal_id,
            active_budget_id=request.active_budget_id,
        )
        response = await processor.process_query(request.message, context)
        sessions.record_turn(request.session_id, request.message, response)
    except Exception as e:
        # Full traceback stays in the server log; the client gets a generic message.
        logger.exception("[%s] Error processing chat request", request_id)
        raise HTTPException(
            status_code=500,
            detail="An internal error occurred. Please try again.",
        ) from e

    return ChatResponse(
        reply=response.content,
        session_id=request.session_id,
        confidence=response.confidence,
        suggested_follow_ups=response.suggested_follow_ups or [],
        visualization_hint=response.visualization_hint,
        detected_entities=response.detected_entities or [],
    )


@router.delete("/chat/{session_id}", status_code=204)
async def reset_session(session_id: str, http_request: Request):
    """Forget a session's history and memory."""
    _, sessions = _get_engine(http_request)
    sessions.reset(session_id)

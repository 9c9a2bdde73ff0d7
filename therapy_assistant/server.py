"""FastAPI server for the therapy practice assistant.

Run with:
    uvicorn therapy_assistant.server:app --reload --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from therapy_assistant.agent import QueryProcessor
from therapy_assistant.api.routes import router
from therapy_assistant.config import CORS_ORIGINS, SERVER_HOST, SERVER_PORT
from therapy_assistant.services.dashboard_client import get_dashboard_client
from therapy_assistant.services.data_services import build_http_services
from therapy_assistant.services.metrics import metrics
from therapy_assistant.services.sessions import SessionStore

# ── Logging ──────────────────────────────────────────────────────────
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
)
logger = logging.getLogger(__name__)


# ── Lifespan: initialise / tear-down shared resources ────────────────
@asynccontextmanager
async def lifespan(application: FastAPI):
    """Build the query processor and session store once per process."""
    logger.info("Compiling query graph…")
    client = get_dashboard_client()
    application.state.processor = QueryProcessor(build_http_services(client))
    application.state.sessions = SessionStore()
    logger.info("Assistant ready.")
    yield
    await client.aclose()
    metrics.flush()


# ── FastAPI application ──────────────────────────────────────────────
app = FastAPI(
    title="Therapy Practice Assistant",
    description=(
        "Conversational queries over a therapy practice dashboard: budgets, "
        "progress, strategy recommendations and practice statistics."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

# ── CORS (needed for the dashboard frontend) ─────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Request-ID middleware ────────────────────────────────────────────
@app.middleware("http")
async def add_request_id(request: Request, call_next) -> Response:
    """Attach a request ID (``X-Request-ID``) for log correlation."""
    request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
    request.state.request_id = request_id
    logger.info(
        "[%s] %s %s", request_id, request.method, request.url.path,
    )
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


# ── Register routes ──────────────────────────────────────────────────
app.include_router(router, prefix="/api")


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "service": "Therapy Practice Assistant",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/api/health",
    }


# ── CLI entry point ──────────────────────────────────────────────────

if __name__ == "__main__":
    logger.info("Starting therapy assistant API on %s:%d", SERVER_HOST, SERVER_PORT)
    uvicorn.run(
        "therapy_assistant.server:app",
        host=SERVER_HOST,
        port=SERVER_PORT,
        reload=True,
    )

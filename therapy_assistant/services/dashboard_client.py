"""Async HTTP client for the therapy dashboard REST API.

Every request carries the dashboard token as a Bearer header and goes
through ``_request``, which retries timeouts, connection failures and 5xx
responses with exponential backoff.  4xx responses are raised at once.

Failures surface as ``DashboardAPIError`` whose message names the status
code or the underlying exception type (``ReadTimeout``, ``ConnectError``
…).  The query engine classifies degraded answers from that text.

The strategy catalog and per-goal subgoals are cached in an ``LRUCache``;
everything client-specific (budgets, sessions, assessments) is read fresh.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from typing import Any

import httpx

from therapy_assistant.config import (
    DASHBOARD_API_BASE_URL,
    DASHBOARD_API_TOKEN,
    DASHBOARD_TIMEOUT_SECONDS,
    STRATEGY_CACHE_MAX_BYTES,
)
from therapy_assistant.services.cache import LRUCache
from therapy_assistant.services.metrics import metrics

logger = logging.getLogger(__name__)

# ── Retry configuration ─────────────────────────────────────────────
MAX_RETRIES = 3
INITIAL_BACKOFF_SECONDS = 1.0
REQUEST_TIMEOUT_SECONDS = DASHBOARD_TIMEOUT_SECONDS

METRICS_SERVICE = "dashboard"

# ── Cache key prefixes ──────────────────────────────────────────────
_CK_STRATEGIES = "strategies:all"
_CK_SUBGOALS = "subgoals:"


class DashboardAPIError(Exception):
    """Raised when a dashboard API call fails (after retries, where retried)."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


def _describe_status(status_code: int) -> str:
    if status_code in (401, 403):
        return "unauthorized"
    if status_code == 404:
        return "not found"
    if status_code >= 500:
        return "server error"
    return "client error"


class DashboardClient:
    """Thin async wrapper around the dashboard REST API."""

    def __init__(
        self,
        token: str | None = None,
        base_url: str | None = None,
        *,
        cache: LRUCache | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        backoff_seconds: float = INITIAL_BACKOFF_SECONDS,
    ):
        self._base_url = base_url or DASHBOARD_API_BASE_URL
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={
                "Authorization": f"Bearer {token or DASHBOARD_API_TOKEN}",
                "Accept": "application/json",
            },
            timeout=REQUEST_TIMEOUT_SECONDS,
            transport=transport,
        )
        self._cache = cache or LRUCache(STRATEGY_CACHE_MAX_BYTES, name="strategy-cache")
        self._backoff_seconds = backoff_seconds

    async def aclose(self) -> None:
        await self._client.aclose()

    # ── Internal helpers ─────────────────────────────────────────────

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Execute an HTTP request with exponential-backoff retries."""
        operation = f"{method} {path}"
        last_error: str = "no attempt made"

        for attempt in range(1, MAX_RETRIES + 1):
            started = time.perf_counter()
            try:
                response = await self._client.request(method, path, params=params)
            except (httpx.TimeoutException, httpx.ConnectError) as exc:
                elapsed = (time.perf_counter() - started) * 1000
                last_error = f"{type(exc).__name__}: {exc}"
                metrics.record_failure(METRICS_SERVICE, operation, type(exc).__name__, elapsed)
                logger.warning(
                    "Dashboard API %s attempt %d/%d failed (%s)",
                    operation, attempt, MAX_RETRIES, type(exc).__name__,
                )
            else:
                elapsed = (time.perf_counter() - started) * 1000
                status = response.status_code
                if status < 400:
                    metrics.record_success(METRICS_SERVICE, operation, elapsed)
                    return response.json()

                metrics.record_failure(METRICS_SERVICE, operation, f"http_{status}", elapsed)
                message = f"Dashboard API {_describe_status(status)} {status} on {operation}"
                if status < 500:
                    raise DashboardAPIError(message, status_code=status)
                last_error = message
                logger.warning(
                    "Dashboard API server error %d on %s, attempt %d/%d",
                    status, operation, attempt, MAX_RETRIES,
                )

            if attempt < MAX_RETRIES:
                await asyncio.sleep(self._backoff_seconds * (2 ** (attempt - 1)))

        raise DashboardAPIError(
            f"Dashboard API request {operation} failed after {MAX_RETRIES} attempts: {last_error}"
        )

    async def get(self, path: str, **params: Any) -> Any:
        """GET *path*, dropping query parameters that are ``None``."""
        query = {k: v for k, v in params.items() if v is not None}
        return await self._request("GET", path, params=query or None)

    # ── Cached reads ─────────────────────────────────────────────────

    async def get_strategies(self) -> list[dict[str, Any]]:
        cached = self._cache.get(_CK_STRATEGIES)
        if cached is not None:
            return cached
        result = await self.get("/api/strategies") or []
        self._cache.put(_CK_STRATEGIES, result)
        return result

    async def get_subgoals(self, goal_id: int) -> list[dict[str, Any]]:
        key = f"{_CK_SUBGOALS}{goal_id}"
        cached = self._cache.get(key)
        if cached is not None:
            return cached
        result = await self.get(f"/api/goals/{goal_id}/subgoals") or []
        self._cache.put(key, result)
        return result

    def invalidate_catalog(self) -> int:
        """Drop cached strategies and subgoals so the next read is fresh."""
        removed = self._cache.invalidate_prefix("strategies:")
        removed += self._cache.invalidate_prefix(_CK_SUBGOALS)
        logger.info("Cache: invalidated %d catalog entries", removed)
        return removed


# ── Module-level singleton (thread-safe) ────────────────────────────
_client: DashboardClient | None = None
_client_lock = threading.Lock()


def get_dashboard_client() -> DashboardClient:
    """Return the process-wide ``DashboardClient``.

    Double-checked locking keeps the lock off the hot path once the client
    exists.
    """
    global _client
    if _client is None:
        with _client_lock:
            if _client is None:
                _client = DashboardClient()
    return _client

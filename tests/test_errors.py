"""Tests for the error taxonomy and degraded answers."""

from __future__ import annotations

import httpx
import pytest

from therapy_assistant.responses.errors import (
    ERROR_RECOVERY_TOPIC,
    ErrorKind,
    classify_error,
    error_response,
)
from therapy_assistant.services.dashboard_client import DashboardAPIError


class TestClassifyError:
    @pytest.mark.parametrize(
        ("error", "expected"),
        [
            (RuntimeError("Network unreachable"), ErrorKind.NETWORK),
            (RuntimeError("Failed to fetch"), ErrorKind.NETWORK),
            (DashboardAPIError("Dashboard API unauthorized 401 on GET /api/clients/5", 401), ErrorKind.PERMISSION),
            (DashboardAPIError("Dashboard API not found 404 on GET /api/goals/9", 404), ErrorKind.NOT_FOUND),
            (RuntimeError("Request timeout after 30s"), ErrorKind.TIMEOUT),
            (ValueError("something odd"), ErrorKind.UNKNOWN),
            ("operation timed out", ErrorKind.TIMEOUT),
        ],
    )
    def test_markers(self, error, expected):
        assert classify_error(error) is expected

    def test_class_name_is_considered(self):
        assert classify_error(httpx.ReadTimeout("")) is ErrorKind.TIMEOUT

    def test_network_checked_before_timeout(self):
        assert classify_error(RuntimeError("connection timeout")) is ErrorKind.NETWORK


class TestErrorResponse:
    def test_timeout_response(self):
        response = error_response(RuntimeError("Request timeout"))
        assert "took too long" in response.content
        assert response.confidence == 0.5
        assert len(response.suggested_follow_ups) <= 3

    def test_unknown_has_lower_confidence(self):
        assert error_response(ValueError("boom")).confidence == 0.4

    def test_memory_reset(self):
        updates = error_response(RuntimeError("Network down")).memory_updates
        assert updates.last_topic == ERROR_RECOVERY_TOPIC
        assert updates.last_query is None
        assert updates.model_fields_set == {"last_topic", "last_query"}

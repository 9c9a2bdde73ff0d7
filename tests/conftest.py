"""Shared test fixtures for the therapy assistant test suite."""

from __future__ import annotations

import os
from datetime import date
from unittest.mock import AsyncMock

import pytest


def pytest_configure(config):
    """Set test environment variables BEFORE collection starts.

    This runs before any imports, so config.py won't fail on module load.
    """
    os.environ.setdefault("DASHBOARD_API_TOKEN", "test-dashboard-token-123")
    os.environ.setdefault("METRICS_ENABLED", "false")


@pytest.fixture
def budget_analysis():
    """Factory fixture for ``BudgetAnalysis`` objects with sensible defaults."""
    from therapy_assistant.models import BudgetAnalysis

    def _make(**overrides):
        fields = {
            "total_budget": 1000.0,
            "total_spent": 400.0,
            "remaining": 600.0,
            "utilization_rate": 40.0,
            "forecasted_depletion": date(2025, 9, 30),
        }
        fields.update(overrides)
        return BudgetAnalysis(**fields)

    return _make


@pytest.fixture
def progress_analysis():
    """Factory fixture for ``ProgressAnalysis`` with two goals."""
    from therapy_assistant.models import GoalProgress, Milestone, ProgressAnalysis

    def _make(**overrides):
        fields = {
            "overall_progress": 62.5,
            "attendance_rate": 85.0,
            "sessions_completed": 17,
            "sessions_cancelled": 3,
            "goal_progress": [
                GoalProgress(
                    goal_id=1,
                    goal_title="Improve speech clarity",
                    progress=80.0,
                    milestones=[
                        Milestone(milestone_id=11, title="Produce /s/ sound", completed=True),
                        Milestone(milestone_id=12, title="Use /s/ in sentences", completed=False),
                    ],
                ),
                GoalProgress(goal_id=2, goal_title="Fine motor skills", progress=45.0),
            ],
        }
        fields.update(overrides)
        return ProgressAnalysis(**fields)

    return _make


@pytest.fixture
def services():
    """``DataServices`` built from ``AsyncMock`` doubles."""
    from therapy_assistant.services.data_services import DataServices

    return DataServices(
        budget=AsyncMock(),
        progress=AsyncMock(),
        strategy=AsyncMock(),
        knowledge=AsyncMock(),
    )

"""Data-service boundary of the query engine.

The engine depends only on the four ``Protocol`` interfaces below.  The
``Http*`` implementations read the dashboard REST API through one shared
``DashboardClient``; tests substitute ``AsyncMock`` objects.

Error policy: a failure fetching the data a question is *about* propagates
(the engine turns it into a classified degraded answer).  Failures in
optional enrichment (client profile, progress used for re-ranking, notes
of a single session) are logged and skipped.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Protocol

from therapy_assistant.models import (
    BudgetAnalysis,
    BudgetItem,
    BudgetKnowledge,
    BudgetSettings,
    Client,
    ClientStatistics,
    Goal,
    MilestoneAssessment,
    ProgressAnalysis,
    ProgressKnowledge,
    Session,
    Strategy,
    StrategyKnowledge,
    Subgoal,
)
from therapy_assistant.services.analysis import analyze_budget, analyze_progress
from therapy_assistant.services.dashboard_client import DashboardAPIError, DashboardClient
from therapy_assistant.services.strategy_scoring import (
    extract_key_terms,
    general_recommendations,
    personalize_strategies_for_client,
    prioritize_for_progress,
    score_strategies_by_relevance,
)

logger = logging.getLogger(__name__)

GOAL_RECOMMENDATION_LIMIT = 5
GENERAL_RECOMMENDATION_LIMIT = 3
GENERAL_APPROACHES_KEY = "General Approaches"


# ── Interfaces ───────────────────────────────────────────────────────


class BudgetDataService(Protocol):
    async def get_budget_analysis(self, client_id: int) -> BudgetAnalysis: ...


class ProgressDataService(Protocol):
    async def get_progress_analysis(self, client_id: int) -> ProgressAnalysis: ...


class StrategyDataService(Protocol):
    async def get_all_strategies(self) -> list[Strategy]: ...

    async def get_recommended_strategies_for_goal(self, goal_id: int) -> list[Strategy]: ...

    async def get_recommended_strategies_for_client(self, client_id: int) -> dict[str, list[Strategy]]: ...


class KnowledgeService(Protocol):
    async def get_client_statistics(self) -> ClientStatistics: ...

    async def get_general_budget_info(self, subtopic: str | None = None) -> BudgetKnowledge: ...

    async def get_general_progress_info(self, subtopic: str | None = None) -> ProgressKnowledge: ...

    async def get_general_strategy_info(self, subtopic: str | None = None) -> StrategyKnowledge: ...


@dataclass(frozen=True)
class DataServices:
    budget: BudgetDataService
    progress: ProgressDataService
    strategy: StrategyDataService
    knowledge: KnowledgeService


# ── HTTP implementations ─────────────────────────────────────────────


class HttpBudgetDataService:
    def __init__(self, client: DashboardClient) -> None:
        self._client = client

    async def get_budget_analysis(self, client_id: int) -> BudgetAnalysis:
        settings, items, sessions = await asyncio.gather(
            self._client.get(f"/api/clients/{client_id}/budget-settings"),
            self._client.get(f"/api/clients/{client_id}/budget-items"),
            self._client.get(f"/api/clients/{client_id}/sessions"),
        )
        return analyze_budget(
            BudgetSettings.model_validate(settings) if settings else None,
            [BudgetItem.model_validate(i) for i in items or []],
            [Session.model_validate(s) for s in sessions or []],
        )


class HttpProgressDataService:
    def __init__(self, client: DashboardClient) -> None:
        self._client = client

    async def _assessments_for_session(self, session_id: int) -> list[MilestoneAssessment]:
        try:
            note = await self._client.get(f"/api/sessions/{session_id}/notes")
            if not note:
                return []
            performance = await self._client.get(
                f"/api/session-notes/{note['id']}/performance-assessments"
            )
            batches = await asyncio.gather(
                *(
                    self._client.get(f"/api/performance-assessments/{p['id']}/milestone-assessments")
                    for p in performance or []
                )
            )
        except DashboardAPIError as exc:
            logger.warning("Skipping notes for session %s: %s", session_id, exc)
            return []
        return [MilestoneAssessment.model_validate(m) for batch in batches for m in batch or []]

    async def get_progress_analysis(self, client_id: int) -> ProgressAnalysis:
        raw_sessions, raw_goals = await asyncio.gather(
            self._client.get(f"/api/clients/{client_id}/sessions"),
            self._client.get(f"/api/clients/{client_id}/goals"),
        )
        sessions = [Session.model_validate(s) for s in raw_sessions or []]
        goals = [Goal.model_validate(g) for g in raw_goals or []]

        subgoal_lists = await asyncio.gather(*(self._client.get_subgoals(g.id) for g in goals))
        subgoals_by_goal = {
            goal.id: [Subgoal.model_validate(s) for s in raw]
            for goal, raw in zip(goals, subgoal_lists)
        }

        per_session = await asyncio.gather(*(self._assessments_for_session(s.id) for s in sessions))
        assessments = [a for batch in per_session for a in batch]

        return analyze_progress(sessions, goals, subgoals_by_goal, assessments)


class HttpStrategyDataService:
    """Strategy catalog reads plus relevance-ranked recommendations."""

    def __init__(
        self,
        client: DashboardClient,
        progress: ProgressDataService | None = None,
    ) -> None:
        self._client = client
        self._progress = progress

    async def get_all_strategies(self) -> list[Strategy]:
        return [Strategy.model_validate(s) for s in await self._client.get_strategies()]

    async def get_recommended_strategies_for_goal(self, goal_id: int) -> list[Strategy]:
        raw_goal, raw_subgoals, strategies = await asyncio.gather(
            self._client.get(f"/api/goals/{goal_id}"),
            self._client.get_subgoals(goal_id),
            self.get_all_strategies(),
        )
        goal = Goal.model_validate(raw_goal)
        subgoals = [Subgoal.model_validate(s) for s in raw_subgoals]
        return score_strategies_by_relevance(strategies, extract_key_terms(goal, subgoals))

    async def _optional_client(self, client_id: int) -> Client | None:
        try:
            return Client.model_validate(await self._client.get(f"/api/clients/{client_id}"))
        except DashboardAPIError as exc:
            logger.warning("Client %s profile unavailable, skipping personalization: %s", client_id, exc)
            return None

    async def _optional_progress(self, client_id: int) -> ProgressAnalysis | None:
        if self._progress is None:
            return None
        try:
            return await self._progress.get_progress_analysis(client_id)
        except DashboardAPIError as exc:
            logger.warning("Progress for client %s unavailable, skipping lifecycle ranking: %s", client_id, exc)
            return None

    async def get_recommended_strategies_for_client(self, client_id: int) -> dict[str, list[Strategy]]:
        """Top strategies per goal title, plus a ``General Approaches`` entry."""
        raw_goals = await self._client.get(f"/api/clients/{client_id}/goals")
        goals = [Goal.model_validate(g) for g in raw_goals or []]
        if not goals:
            return {}

        client, progress = await asyncio.gather(
            self._optional_client(client_id),
            self._optional_progress(client_id),
        )
        progress_by_goal = {g.goal_id: g.progress for g in progress.goal_progress} if progress else {}

        recommendations: dict[str, list[Strategy]] = {}
        for goal in goals:
            strategies = await self.get_recommended_strategies_for_goal(goal.id)
            strategies = prioritize_for_progress(strategies, progress_by_goal.get(goal.id))
            strategies = personalize_strategies_for_client(strategies, client)
            recommendations[goal.title] = strategies[:GOAL_RECOMMENDATION_LIMIT]

        general = general_recommendations(await self.get_all_strategies())
        if general:
            recommendations[GENERAL_APPROACHES_KEY] = general[:GENERAL_RECOMMENDATION_LIMIT]
        return recommendations


class HttpKnowledgeService:
    """Practice-wide aggregates from the dashboard's knowledge endpoints."""

    def __init__(self, client: DashboardClient) -> None:
        self._client = client

    async def get_client_statistics(self) -> ClientStatistics:
        return ClientStatistics.model_validate(await self._client.get("/api/knowledge/clients/stats") or {})

    async def get_general_budget_info(self, subtopic: str | None = None) -> BudgetKnowledge:
        data = await self._client.get("/api/knowledge/budgets", subtopic=subtopic)
        return BudgetKnowledge.model_validate(data or {})

    async def get_general_progress_info(self, subtopic: str | None = None) -> ProgressKnowledge:
        data = await self._client.get("/api/knowledge/progress", subtopic=subtopic)
        return ProgressKnowledge.model_validate(data or {})

    async def get_general_strategy_info(self, subtopic: str | None = None) -> StrategyKnowledge:
        data = await self._client.get("/api/knowledge/strategies", subtopic=subtopic)
        return StrategyKnowledge.model_validate(data or {})


def build_http_services(client: DashboardClient) -> DataServices:
    """Wire the HTTP implementations around one shared client."""
    progress = HttpProgressDataService(client)
    return DataServices(
        budget=HttpBudgetDataService(client),
        progress=progress,
        strategy=HttpStrategyDataService(client, progress=progress),
        knowledge=HttpKnowledgeService(client),
    )

"""Query intents as a closed sum type.

Each variant is a frozen dataclass carrying only the fields that make sense
for it, and each ``specific_query`` enum is scoped to its owning variant
(``BudgetQuery.FORECAST`` cannot be attached to a progress intent).

Dispatch sites narrow ``QueryIntent`` with ``isinstance`` and finish with
``typing_extensions.assert_never`` so adding a variant is flagged by the
type checker everywhere it is not yet handled.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Union


class IntentType(StrEnum):
    BUDGET_ANALYSIS = "BUDGET_ANALYSIS"
    PROGRESS_TRACKING = "PROGRESS_TRACKING"
    STRATEGY_RECOMMENDATION = "STRATEGY_RECOMMENDATION"
    COMBINED_INSIGHTS = "COMBINED_INSIGHTS"
    DATABASE_STATISTICS = "DATABASE_STATISTICS"
    GENERAL_QUESTION = "GENERAL_QUESTION"


class BudgetQuery(StrEnum):
    REMAINING = "REMAINING"
    FORECAST = "FORECAST"
    UTILIZATION = "UTILIZATION"


class ProgressQuery(StrEnum):
    OVERALL = "OVERALL"
    GOAL_SPECIFIC = "GOAL_SPECIFIC"
    ATTENDANCE = "ATTENDANCE"


class StrategyQuery(StrEnum):
    GENERAL = "GENERAL"
    GOAL_SPECIFIC = "GOAL_SPECIFIC"


class InsightQuery(StrEnum):
    OVERALL = "OVERALL"
    BUDGET_FOCUS = "BUDGET_FOCUS"
    PROGRESS_FOCUS = "PROGRESS_FOCUS"


class StatisticsQuery(StrEnum):
    CLIENT_COUNT = "CLIENT_COUNT"
    DEMOGRAPHICS = "DEMOGRAPHICS"
    CATEGORY_AVERAGES = "CATEGORY_AVERAGES"


@dataclass(frozen=True)
class BudgetAnalysisIntent:
    client_id: int | None = None
    specific_query: BudgetQuery | None = None

    type = IntentType.BUDGET_ANALYSIS


@dataclass(frozen=True)
class ProgressTrackingIntent:
    client_id: int | None = None
    goal_id: int | None = None
    specific_query: ProgressQuery | None = None

    type = IntentType.PROGRESS_TRACKING


@dataclass(frozen=True)
class StrategyRecommendationIntent:
    client_id: int | None = None
    goal_id: int | None = None
    specific_query: StrategyQuery | None = None

    type = IntentType.STRATEGY_RECOMMENDATION


@dataclass(frozen=True)
class CombinedInsightsIntent:
    client_id: int | None = None
    specific_query: InsightQuery | None = None

    type = IntentType.COMBINED_INSIGHTS


@dataclass(frozen=True)
class DatabaseStatisticsIntent:
    specific_query: StatisticsQuery | None = None

    type = IntentType.DATABASE_STATISTICS


@dataclass(frozen=True)
class GeneralQuestionIntent:
    topic: str | None = None

    type = IntentType.GENERAL_QUESTION


QueryIntent = Union[
    BudgetAnalysisIntent,
    ProgressTrackingIntent,
    StrategyRecommendationIntent,
    CombinedInsightsIntent,
    DatabaseStatisticsIntent,
    GeneralQuestionIntent,
]


def needs_client_context(intent: QueryIntent) -> bool:
    """Return ``True`` when answering *intent* requires an active client."""
    if isinstance(intent, (BudgetAnalysisIntent, ProgressTrackingIntent, CombinedInsightsIntent)):
        return True
    if isinstance(intent, StrategyRecommendationIntent):
        return intent.specific_query is not StrategyQuery.GENERAL
    return False


def describe_intent(intent: QueryIntent) -> str:
    """Human-readable label for logs and clarification messages."""
    if isinstance(intent, BudgetAnalysisIntent):
        return "budget analysis"
    if isinstance(intent, ProgressTrackingIntent):
        return "progress tracking"
    if isinstance(intent, StrategyRecommendationIntent):
        return "therapy strategy recommendations"
    if isinstance(intent, CombinedInsightsIntent):
        return "combined budget and progress insights"
    if isinstance(intent, DatabaseStatisticsIntent):
        return "practice statistics"
    return f"information about {intent.topic}" if intent.topic else "general information"

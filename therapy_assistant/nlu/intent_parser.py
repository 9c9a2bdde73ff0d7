"""Rule-based intent classification.

The parser is an ordered table of ``IntentRule`` entries.  Each rule has a
trigger vocabulary (``query contains any of these``, case-insensitive
substring) and a builder that refines the match into a concrete intent.
The first rule whose trigger matches *and* whose builder returns an intent
wins; a builder may return ``None`` to let the cascade fall through (the
visualization rule does this when it cannot tell budget from progress, and
the progress rule does it for strategy requests about a goal).

Priority order:

    combined insights → database statistics → budget → progress
    → strategy → visualization → general question (topic fallback)

Client and goal ids are taken from the ``QueryContext`` only.  Mapping a
mentioned name to an id is the conversation layer's job, not the parser's.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import TypeVar

from therapy_assistant.intents import (
    BudgetAnalysisIntent,
    BudgetQuery,
    CombinedInsightsIntent,
    DatabaseStatisticsIntent,
    GeneralQuestionIntent,
    InsightQuery,
    ProgressQuery,
    ProgressTrackingIntent,
    QueryIntent,
    StatisticsQuery,
    StrategyQuery,
    StrategyRecommendationIntent,
)
from therapy_assistant.models import QueryContext
from therapy_assistant.nlu.topics import detect_topic_or_none
from therapy_assistant.vocabulary import (
    BUDGET_FORECAST_TERMS,
    BUDGET_REMAINING_TERMS,
    BUDGET_TERMS,
    BUDGET_UTILIZATION_TERMS,
    COMBINED_BUDGET_FOCUS_TERMS,
    COMBINED_INSIGHT_TERMS,
    COMBINED_PROGRESS_FOCUS_TERMS,
    DATABASE_STATISTICS_TERMS,
    GOAL_REFERENCE_TERMS,
    PROGRESS_ATTENDANCE_TERMS,
    PROGRESS_GOAL_SPECIFIC_TERMS,
    PROGRESS_OVERALL_TERMS,
    PROGRESS_TERMS,
    STATISTICS_CATEGORY_AVERAGE_TERMS,
    STATISTICS_CLIENT_COUNT_TERMS,
    STATISTICS_DEMOGRAPHICS_TERMS,
    STRATEGY_GENERAL_TERMS,
    STRATEGY_GOAL_SPECIFIC_TERMS,
    STRATEGY_REQUEST_TERMS,
    STRATEGY_TERMS,
    VISUALIZATION_BUDGET_TERMS,
    VISUALIZATION_PROGRESS_TERMS,
    VISUALIZATION_TERMS,
)

logger = logging.getLogger(__name__)

E = TypeVar("E")


def contains_any(text: str, terms: Sequence[str]) -> bool:
    """``True`` if any of *terms* occurs in *text* (plain substring test)."""
    return any(term in text for term in terms)


def first_match(text: str, cascade: Sequence[tuple[Sequence[str], E]]) -> E | None:
    """Return the value of the first ``(terms, value)`` pair matching *text*."""
    for terms, value in cascade:
        if contains_any(text, terms):
            return value
    return None


@dataclass(frozen=True)
class IntentRule:
    name: str
    triggers: Sequence[str]
    build: Callable[[str, QueryContext], QueryIntent | None]


# ── Builders ─────────────────────────────────────────────────────────

_BUDGET_CASCADE = (
    (BUDGET_REMAINING_TERMS, BudgetQuery.REMAINING),
    (BUDGET_FORECAST_TERMS, BudgetQuery.FORECAST),
    (BUDGET_UTILIZATION_TERMS, BudgetQuery.UTILIZATION),
)

_PROGRESS_CASCADE = (
    (PROGRESS_ATTENDANCE_TERMS, ProgressQuery.ATTENDANCE),
    (PROGRESS_GOAL_SPECIFIC_TERMS, ProgressQuery.GOAL_SPECIFIC),
    (PROGRESS_OVERALL_TERMS, ProgressQuery.OVERALL),
)

_STRATEGY_CASCADE = (
    (STRATEGY_GOAL_SPECIFIC_TERMS, StrategyQuery.GOAL_SPECIFIC),
    (STRATEGY_GENERAL_TERMS, StrategyQuery.GENERAL),
)

_INSIGHT_CASCADE = (
    (COMBINED_BUDGET_FOCUS_TERMS, InsightQuery.BUDGET_FOCUS),
    (COMBINED_PROGRESS_FOCUS_TERMS, InsightQuery.PROGRESS_FOCUS),
)

_STATISTICS_CASCADE = (
    (STATISTICS_DEMOGRAPHICS_TERMS, StatisticsQuery.DEMOGRAPHICS),
    (STATISTICS_CATEGORY_AVERAGE_TERMS, StatisticsQuery.CATEGORY_AVERAGES),
    (STATISTICS_CLIENT_COUNT_TERMS, StatisticsQuery.CLIENT_COUNT),
)


def _build_combined(text: str, context: QueryContext) -> QueryIntent:
    return CombinedInsightsIntent(
        client_id=context.active_client_id,
        specific_query=first_match(text, _INSIGHT_CASCADE),
    )


def _build_statistics(text: str, context: QueryContext) -> QueryIntent:
    return DatabaseStatisticsIntent(specific_query=first_match(text, _STATISTICS_CASCADE))


def _build_budget(text: str, context: QueryContext) -> QueryIntent:
    return BudgetAnalysisIntent(
        client_id=context.active_client_id,
        specific_query=first_match(text, _BUDGET_CASCADE),
    )


def _build_progress(text: str, context: QueryContext) -> QueryIntent | None:
    if contains_any(text, STRATEGY_REQUEST_TERMS) and contains_any(text, GOAL_REFERENCE_TERMS):
        return None
    return ProgressTrackingIntent(
        client_id=context.active_client_id,
        goal_id=context.active_goal_id,
        specific_query=first_match(text, _PROGRESS_CASCADE),
    )


def _build_strategy(text: str, context: QueryContext) -> QueryIntent:
    return StrategyRecommendationIntent(
        client_id=context.active_client_id,
        goal_id=context.active_goal_id,
        specific_query=first_match(text, _STRATEGY_CASCADE),
    )


def _build_visualization(text: str, context: QueryContext) -> QueryIntent | None:
    if contains_any(text, VISUALIZATION_BUDGET_TERMS):
        return BudgetAnalysisIntent(
            client_id=context.active_client_id,
            specific_query=BudgetQuery.UTILIZATION,
        )
    if contains_any(text, VISUALIZATION_PROGRESS_TERMS):
        return ProgressTrackingIntent(
            client_id=context.active_client_id,
            goal_id=context.active_goal_id,
            specific_query=ProgressQuery.OVERALL,
        )
    return None


INTENT_RULES: tuple[IntentRule, ...] = (
    IntentRule("combined_insights", COMBINED_INSIGHT_TERMS, _build_combined),
    IntentRule("database_statistics", DATABASE_STATISTICS_TERMS, _build_statistics),
    IntentRule("budget", BUDGET_TERMS, _build_budget),
    IntentRule("progress", PROGRESS_TERMS, _build_progress),
    IntentRule("strategy", STRATEGY_TERMS, _build_strategy),
    IntentRule("visualization", VISUALIZATION_TERMS, _build_visualization),
)


def parse_intent(query: str, context: QueryContext) -> QueryIntent:
    """Classify *query* into exactly one ``QueryIntent`` variant."""
    text = query.lower()
    for rule in INTENT_RULES:
        if not contains_any(text, rule.triggers):
            continue
        intent = rule.build(text, context)
        if intent is not None:
            logger.debug("Intent rule %r matched: %s", rule.name, intent)
            return intent
        logger.debug("Intent rule %r matched but deferred", rule.name)

    return GeneralQuestionIntent(topic=detect_topic_or_none(query))

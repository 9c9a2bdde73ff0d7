"""Intent handlers: fetch data, narrate it, suggest follow-ups.

Every handler has the signature ``async (intent, context, services) ->
AgentResponse`` and owns its data-service errors: a failed fetch is
logged and turned into a classified degraded answer, never re-raised.

Content is either built sentence by sentence from the narration tables
(client-specific answers) or rendered from the template tables
(practice-wide and general answers).  Follow-up suggestions depend on the
data actually returned and are capped at three.
"""

from __future__ import annotations

import asyncio
import logging

from therapy_assistant.intents import (
    BudgetAnalysisIntent,
    BudgetQuery,
    CombinedInsightsIntent,
    DatabaseStatisticsIntent,
    GeneralQuestionIntent,
    InsightQuery,
    IntentType,
    ProgressQuery,
    ProgressTrackingIntent,
    StatisticsQuery,
    StrategyQuery,
    StrategyRecommendationIntent,
)
from therapy_assistant.models import (
    AgentResponse,
    BudgetAnalysis,
    ConversationMemory,
    EntityType,
    ProgressAnalysis,
    QueryContext,
    VisualizationHint,
)
from therapy_assistant.responses import narration
from therapy_assistant.responses.errors import error_response
from therapy_assistant.responses.templates import GENERAL_TEMPLATES, generate_response
from therapy_assistant.services.data_services import DataServices

logger = logging.getLogger(__name__)

MAX_FOLLOW_UPS = 3
DESCRIPTION_PREVIEW_CHARS = 100

CLARIFICATION_MESSAGE = (
    "I'd need to know which client you're asking about. Please select a client "
    "first, or ask a general question."
)
CLARIFICATION_FOLLOW_UPS = (
    "What can you help me with?",
    "How many clients does the practice have?",
    "What therapy strategies are available in general?",
)

DEFAULT_MESSAGE = (
    "I can help you manage client information, track therapy goals, analyze budgets, "
    "and suggest therapy strategies. How can I assist you today?"
)

_WHY_ACCELERATING = "Why is spending accelerating?"
_WHEN_DEPLETED = "When will the budget run out at the current rate?"
_HOW_MUCH_LEFT = "How much budget is remaining?"


def follow_ups(*candidates: str | None) -> list[str]:
    """Deduplicated, non-empty candidates in order, at most three."""
    return list(dict.fromkeys(c for c in candidates if c))[:MAX_FOLLOW_UPS]


def _filters(**values: object) -> ConversationMemory:
    return ConversationMemory(active_filters={k: v for k, v in values.items() if v is not None})


def _client_label(context: QueryContext) -> str:
    memory = context.conversation_memory
    for entity in reversed((memory.recent_entities or []) if memory else []):
        if entity.type is EntityType.CLIENT_NAME:
            return entity.text
    return "the client"


def clarification_response() -> AgentResponse:
    return AgentResponse(
        content=CLARIFICATION_MESSAGE,
        confidence=0.8,
        suggested_follow_ups=list(CLARIFICATION_FOLLOW_UPS),
    )


def default_response() -> AgentResponse:
    return AgentResponse(
        content=DEFAULT_MESSAGE,
        confidence=0.5,
        suggested_follow_ups=follow_ups(*GENERAL_TEMPLATES[0].follow_ups),
    )


# ── Budget ───────────────────────────────────────────────────────────


def _budget_content(query: BudgetQuery | None, analysis: BudgetAnalysis) -> tuple[str, list[str]]:
    patterns = analysis.spending_patterns
    trend = patterns.trend if patterns else "stable"
    overages = patterns.projected_overages if patterns else []
    accelerating = trend == "increasing"
    insights = narration.pattern_insights(analysis)
    money = narration.format_money

    if query is BudgetQuery.REMAINING:
        parts = [
            f"The client has {money(analysis.remaining)} remaining out of a total budget "
            f"of {money(analysis.total_budget)}."
        ]
        if analysis.utilization_rate > 0:
            parts.append(f"That's about {100 - analysis.utilization_rate:.1f}% of the budget remaining.")
        parts.append(insights)
        return " ".join(p for p in parts if p), follow_ups(
            _WHEN_DEPLETED,
            _WHY_ACCELERATING if accelerating else None,
            "Which categories are projected to exceed their allocation?" if overages else None,
            "Which budget categories have the highest utilization?",
        )

    if query is BudgetQuery.FORECAST:
        parts = [
            f"Based on {narration.trend_word(trend)} spending patterns, the budget will be "
            f"depleted by {narration.format_long_date(analysis.forecasted_depletion)}.",
            f"The client has spent {money(analysis.total_spent)} so far out of a total "
            f"budget of {money(analysis.total_budget)}.",
            narration.velocity_note(analysis.spending_velocity),
        ]
        velocity_up = (analysis.spending_velocity or 0) > narration.VELOCITY_THRESHOLD
        return " ".join(p for p in parts if p), follow_ups(
            _WHY_ACCELERATING if accelerating or velocity_up else None,
            _HOW_MUCH_LEFT,
            "What would extend this budget's lifespan?",
        )

    if query is BudgetQuery.UTILIZATION:
        parts = [f"The client has utilized {analysis.utilization_rate:.1f}% of their budget."]
        high_usage = patterns.high_usage_categories if patterns else []
        if high_usage:
            noun = "categories are" if len(high_usage) > 1 else "category is"
            parts.append(f'The highest usage {noun} "{", ".join(high_usage)}".')
        elif analysis.spending_by_category:
            top = narration.most_utilized_category(analysis.spending_by_category)
            parts.append(f"The highest spending is in the {top} category.")
        if overages:
            parts.append(narration.overage_warning(overages, "their budget allocations"))
        return " ".join(parts), follow_ups(
            _HOW_MUCH_LEFT,
            "How can we rebalance the over-allocated categories?" if overages else None,
            _WHEN_DEPLETED,
        )

    parts = [
        f"The client has a total budget of {money(analysis.total_budget)}, with "
        f"{money(analysis.total_spent)} spent so far.",
        f"That leaves {money(analysis.remaining)} remaining "
        f"({100 - analysis.utilization_rate:.1f}%).",
    ]
    if trend != "stable":
        parts.append(f"Spending is currently {narration.trend_word(trend)}.")
    parts.append(
        "At the current rate, the budget will be depleted by "
        f"{narration.format_long_date(analysis.forecasted_depletion)}."
    )
    parts.append(insights)
    return " ".join(p for p in parts if p), follow_ups(
        "Which budget categories have the highest utilization?",
        _WHY_ACCELERATING if accelerating else None,
        _WHEN_DEPLETED,
    )


async def handle_budget(
    intent: BudgetAnalysisIntent,
    context: QueryContext,
    services: DataServices,
) -> AgentResponse:
    try:
        analysis = await services.budget.get_budget_analysis(intent.client_id)
    except Exception as exc:
        logger.exception("Budget analysis failed for client %s", intent.client_id)
        return error_response(exc)

    content, suggestions = _budget_content(intent.specific_query, analysis)
    return AgentResponse(
        content=content,
        confidence=0.95,
        data=analysis,
        visualization_hint=VisualizationHint.BUBBLE_CHART,
        suggested_follow_ups=suggestions,
        memory_updates=_filters(client_id=intent.client_id, budget_query=intent.specific_query),
    )


# ── Progress ─────────────────────────────────────────────────────────


def _progress_content(
    intent: ProgressTrackingIntent,
    analysis: ProgressAnalysis,
) -> tuple[str, float, list[str]]:
    query = intent.specific_query
    ranked = sorted(analysis.goal_progress, key=lambda g: g.progress, reverse=True)
    lagging = ranked[-1] if len(ranked) > 1 and ranked[-1].progress < narration.ATTENTION_THRESHOLD else None
    lagging_follow_up = f'What strategies would help with "{lagging.goal_title}"?' if lagging else None
    low_attendance = analysis.attendance_rate < 70

    if query is ProgressQuery.OVERALL:
        content = (
            f"The client has achieved {analysis.overall_progress:.1f}% overall progress toward "
            f"their goals. "
            f"{narration.overall_progress_assessment(analysis.overall_progress, analysis.attendance_rate)}"
        )
        return content, 0.9, follow_ups(
            lagging_follow_up,
            "How is attendance affecting progress?" if low_attendance else None,
            "Which goals are showing the most progress?",
        )

    if query is ProgressQuery.ATTENDANCE:
        content = (
            f"The client has an attendance rate of {analysis.attendance_rate:.1f}%. "
            f"They have completed {analysis.sessions_completed} sessions"
        )
        if analysis.sessions_cancelled > 0:
            content += f" and cancelled {analysis.sessions_cancelled} sessions"
        content += "."
        return content, 0.9, follow_ups(
            "Are there patterns in the cancellations?" if analysis.sessions_cancelled else None,
            "How does attendance affect overall progress?",
        )

    if query is ProgressQuery.GOAL_SPECIFIC:
        if intent.goal_id is None:
            return "I need to know which specific goal you're asking about.", 0.8, []
        goal = next((g for g in analysis.goal_progress if g.goal_id == intent.goal_id), None)
        if goal is None:
            return "I couldn't find progress information for that specific goal.", 0.7, []
        done = sum(1 for m in goal.milestones if m.completed)
        content = (
            f'Progress on the goal "{goal.goal_title}" is at {goal.progress:.1f}%. '
            f"{narration.goal_progress_assessment(goal.progress)} "
            f"{done} out of {len(goal.milestones)} milestones have been achieved."
        )
        return content, 0.9, follow_ups(
            "What strategies are working well for this goal?",
            "What's the next milestone for this goal?" if done < len(goal.milestones) else None,
        )

    content = (
        f"The client has achieved {analysis.overall_progress:.1f}% overall progress toward "
        f"their goals. They have an attendance rate of {analysis.attendance_rate:.1f}%."
    )
    if ranked:
        best = ranked[0]
        content += f' The most progress has been made on "{best.goal_title}" ({best.progress:.1f}%).'
    if lagging:
        content += (
            f' The goal "{lagging.goal_title}" might need additional attention '
            f"({lagging.progress:.1f}%)."
        )
    return content, 0.9, follow_ups(
        lagging_follow_up,
        "How is attendance affecting progress?" if low_attendance else None,
        "Which goals are showing the most progress?",
    )


async def handle_progress(
    intent: ProgressTrackingIntent,
    context: QueryContext,
    services: DataServices,
) -> AgentResponse:
    try:
        analysis = await services.progress.get_progress_analysis(intent.client_id)
    except Exception as exc:
        logger.exception("Progress analysis failed for client %s", intent.client_id)
        return error_response(exc)

    content, confidence, suggestions = _progress_content(intent, analysis)
    return AgentResponse(
        content=content,
        confidence=confidence,
        data=analysis,
        visualization_hint=VisualizationHint.PROGRESS_CHART,
        suggested_follow_ups=suggestions,
        memory_updates=_filters(
            client_id=intent.client_id,
            goal_id=intent.goal_id,
            progress_query=intent.specific_query,
        ),
    )


# ── Strategy ─────────────────────────────────────────────────────────


def _preview(description: str | None) -> str:
    text = description or ""
    if len(text) > DESCRIPTION_PREVIEW_CHARS:
        return text[:DESCRIPTION_PREVIEW_CHARS] + "..."
    return text


async def _goal_strategies(goal_id: int, services: DataServices) -> AgentResponse:
    strategies = await services.strategy.get_recommended_strategies_for_goal(goal_id)
    if not strategies:
        return AgentResponse(
            content="I don't have any specific strategies to recommend for this goal at the moment.",
            confidence=0.7,
            suggested_follow_ups=follow_ups("What therapy strategies are available in general?"),
        )

    lines = ["Here are some recommended strategies that may be helpful:"]
    for index, strategy in enumerate(strategies[:3], start=1):
        lines.append(f"{index}. **{strategy.name}**: {strategy.description or ''}")
    if len(strategies) > 3:
        lines.append(f"There are {len(strategies) - 3} additional strategies available.")
    return AgentResponse(
        content="\n\n".join(lines),
        confidence=0.85,
        data={"strategies": strategies},
        suggested_follow_ups=follow_ups(
            "How should these strategies be implemented?",
            "Show me more strategies for this goal" if len(strategies) > 3 else None,
            "How is progress on this goal?",
        ),
    )


async def _client_strategies(client_id: int, services: DataServices) -> AgentResponse:
    by_goal = await services.strategy.get_recommended_strategies_for_client(client_id)
    if not by_goal:
        return AgentResponse(
            content=(
                "I don't have enough information to recommend specific strategies for this "
                "client. Please ensure they have defined goals."
            ),
            confidence=0.7,
        )

    content = "Here are some therapy strategies recommended based on the client's goals:"
    for index, (goal_title, strategies) in enumerate(by_goal.items()):
        if index >= 2 or not strategies:
            continue
        content += f'\n\nFor goal "{goal_title}":'
        for strategy in strategies[:2]:
            content += f"\n- **{strategy.name}**: {_preview(strategy.description)}"

    return AgentResponse(
        content=content,
        confidence=0.85,
        data={"recommendations_by_goal": by_goal},
        suggested_follow_ups=follow_ups(
            "Which of these strategies have been tried before?",
            "How is the client progressing on these goals?",
            "What strategies complement these recommendations?",
        ),
    )


NO_STRATEGY_KNOWLEDGE_MESSAGE = (
    "I can provide therapy strategy recommendations once you select a client "
    "and review their goals."
)


def _name_list(names: list[str]) -> str:
    if len(names) <= 1:
        return "".join(names)
    return ", ".join(names[:-1]) + f" and {names[-1]}"


def _carried_category(context: QueryContext) -> str | None:
    memory = context.conversation_memory
    carryover = memory.context_carryover if memory else None
    return carryover.category.lower() if carryover and carryover.category else None


async def _strategy_overview(services: DataServices) -> AgentResponse:
    knowledge = await services.knowledge.get_general_strategy_info("overview")
    if not knowledge.total_strategies:
        return AgentResponse(content=NO_STRATEGY_KNOWLEDGE_MESSAGE, confidence=0.7)

    top = knowledge.most_used_strategies or knowledge.effective_strategies
    content, suggestions = generate_response(
        IntentType.STRATEGY_RECOMMENDATION,
        {
            "is_general": True,
            "subtopic": "overview",
            "total_strategies": knowledge.total_strategies,
            "category_count": len(knowledge.strategy_categories),
            "top_strategies": _name_list([s.name for s in top[:3]]) or "approaches from every category",
        },
    )
    return AgentResponse(
        content=content,
        confidence=0.85,
        data=knowledge,
        suggested_follow_ups=follow_ups(*suggestions),
    )


async def _category_strategies(category: str, services: DataServices) -> AgentResponse:
    knowledge, catalog = await asyncio.gather(
        services.knowledge.get_general_strategy_info("category"),
        services.strategy.get_all_strategies(),
    )
    in_category = [s for s in catalog if s.category and category in s.category.lower()]
    if not in_category:
        return AgentResponse(
            content=f"I don't have any strategies filed under {category} yet.",
            confidence=0.7,
            suggested_follow_ups=follow_ups("What therapy strategies are available in general?"),
        )

    # Known effectiveness first; sorted() keeps catalog order among equals.
    effectiveness = {u.name: u.effectiveness or 0.0 for u in knowledge.effective_strategies}
    ranked = sorted(in_category, key=lambda s: effectiveness.get(s.name, 0.0), reverse=True)
    content, suggestions = generate_response(
        IntentType.STRATEGY_RECOMMENDATION,
        {
            "is_general": True,
            "subtopic": "category",
            "category": category,
            "category_strategies": _name_list([s.name for s in ranked[:3]]),
            "effective_for": f"clients working on {category} skills",
        },
    )
    return AgentResponse(
        content=content,
        confidence=0.85,
        data={"strategies": ranked, "knowledge": knowledge},
        suggested_follow_ups=follow_ups(*suggestions),
    )


async def handle_strategy(
    intent: StrategyRecommendationIntent,
    context: QueryContext,
    services: DataServices,
) -> AgentResponse:
    try:
        if intent.specific_query is StrategyQuery.GOAL_SPECIFIC and intent.goal_id is not None:
            response = await _goal_strategies(intent.goal_id, services)
        elif intent.client_id is not None:
            response = await _client_strategies(intent.client_id, services)
        else:
            category = _carried_category(context)
            if category:
                response = await _category_strategies(category, services)
            else:
                response = await _strategy_overview(services)
    except Exception as exc:
        logger.exception("Strategy recommendation failed for %s", intent)
        return error_response(exc)

    return response.model_copy(
        update={
            "memory_updates": _filters(
                client_id=intent.client_id,
                goal_id=intent.goal_id,
                strategy_query=intent.specific_query,
            )
        }
    )


# ── Combined insights ────────────────────────────────────────────────


async def handle_combined_insights(
    intent: CombinedInsightsIntent,
    context: QueryContext,
    services: DataServices,
) -> AgentResponse:
    try:
        budget, progress = await asyncio.gather(
            services.budget.get_budget_analysis(intent.client_id),
            services.progress.get_progress_analysis(intent.client_id),
        )
    except Exception as exc:
        logger.exception("Combined insights failed for client %s", intent.client_id)
        return error_response(exc)

    client_name = _client_label(context)
    content, suggestions = generate_response(
        IntentType.COMBINED_INSIGHTS,
        {
            "is_general": False,
            "specific_query": intent.specific_query or InsightQuery.OVERALL,
            "client_name": client_name,
            "utilization_rate": f"{budget.utilization_rate:.1f}",
            "remaining": narration.format_money(budget.remaining),
            "overall_progress": f"{progress.overall_progress:.1f}",
            "combined_assessment": narration.combined_assessment(budget, progress, client_name),
            "budget_insight": narration.budget_utilization_insight(budget),
            "progress_relation": narration.progress_relation(budget, progress),
            "progress_insight": narration.progress_insight(progress, client_name),
            "budget_implication": narration.budget_implication(budget, progress),
        },
    )
    return AgentResponse(
        content=content,
        confidence=0.85,
        data={"budget": budget, "progress": progress},
        visualization_hint=VisualizationHint.COMBINED_INSIGHTS,
        suggested_follow_ups=follow_ups(*suggestions),
        memory_updates=_filters(client_id=intent.client_id, insight_query=intent.specific_query),
    )


# ── Practice statistics ──────────────────────────────────────────────


async def _statistics_content(
    query: StatisticsQuery | None,
    services: DataServices,
) -> tuple[str, list[str], object]:
    knowledge = services.knowledge

    if query is StatisticsQuery.CLIENT_COUNT:
        stats = await knowledge.get_client_statistics()
        content = (
            f"The practice currently has {stats.total_clients} clients, {stats.active_clients} "
            f"of them active. {stats.new_clients_last_month} new clients joined in the last month."
        )
        if stats.average_progress is not None:
            content += f" Average goal progress across clients is {stats.average_progress:.1f}%."
        return content, follow_ups(
            "Show me client demographics",
            "What are the average budget statistics per category?",
        ), stats

    if query is StatisticsQuery.DEMOGRAPHICS:
        stats = await knowledge.get_client_statistics()
        if not stats.age_groups:
            return "No age group data is available for the practice yet.", follow_ups(
                "How many clients does the practice have?",
            ), stats
        groups = ", ".join(f"{group}: {count}" for group, count in stats.age_groups.items())
        content = f"Across {stats.total_clients} clients, the age groups are {groups}."
        return content, follow_ups(
            "How many clients does the practice have?",
            "What are the average budget statistics per category?",
        ), stats

    if query is StatisticsQuery.CATEGORY_AVERAGES:
        budget_info = await knowledge.get_general_budget_info("statistics")
        averages = budget_info.avg_allocation_by_category
        if averages:
            top_category = max(averages, key=averages.__getitem__)
        else:
            top_category = budget_info.categories[0] if budget_info.categories else "general"
        content, suggestions = generate_response(
            IntentType.BUDGET_ANALYSIS,
            {
                "is_general": True,
                "subtopic": "statistics",
                "avg_budget_size": narration.format_money(budget_info.avg_budget_size),
                "top_category": top_category,
            },
        )
        return content, follow_ups(*suggestions), budget_info

    progress_info = await knowledge.get_general_progress_info("overview")
    content, suggestions = generate_response(
        IntentType.PROGRESS_TRACKING,
        {
            "is_general": True,
            "subtopic": "overview",
            "avg_progress": f"{progress_info.avg_overall_progress:.1f}",
            "avg_attendance": f"{progress_info.avg_attendance_rate:.1f}",
        },
    )
    return content, follow_ups(*suggestions), progress_info


async def handle_statistics(
    intent: DatabaseStatisticsIntent,
    context: QueryContext,
    services: DataServices,
) -> AgentResponse:
    try:
        content, suggestions, data = await _statistics_content(intent.specific_query, services)
    except Exception as exc:
        logger.exception("Practice statistics failed (%s)", intent.specific_query)
        return error_response(exc)

    return AgentResponse(
        content=content,
        confidence=0.85,
        data=data,
        visualization_hint=VisualizationHint.NONE,
        suggested_follow_ups=suggestions,
        memory_updates=_filters(statistics_query=intent.specific_query),
    )


# ── General questions ────────────────────────────────────────────────


async def handle_general(
    intent: GeneralQuestionIntent,
    context: QueryContext,
    services: DataServices,
) -> AgentResponse:
    if not intent.topic:
        return default_response()

    content, suggestions = generate_response(IntentType.GENERAL_QUESTION, {"topic": intent.topic})
    return AgentResponse(
        content=content,
        confidence=0.7 if suggestions else 0.6,
        suggested_follow_ups=follow_ups(*suggestions) or None,
        memory_updates=_filters(topic=intent.topic),
    )

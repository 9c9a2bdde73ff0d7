"""Tests for the intent handlers."""

from __future__ import annotations

import asyncio
from datetime import date

from therapy_assistant.intents import (
    BudgetAnalysisIntent,
    BudgetQuery,
    CombinedInsightsIntent,
    DatabaseStatisticsIntent,
    GeneralQuestionIntent,
    InsightQuery,
    ProgressQuery,
    ProgressTrackingIntent,
    StatisticsQuery,
    StrategyQuery,
    StrategyRecommendationIntent,
)
from therapy_assistant.models import (
    BudgetKnowledge,
    ClientStatistics,
    ContextCarryover,
    ConversationMemory,
    EntityPosition,
    EntityType,
    ExtractedEntity,
    ProgressKnowledge,
    QueryContext,
    SpendingPatterns,
    Strategy,
    StrategyKnowledge,
    StrategyUsage,
    VisualizationHint,
)
from therapy_assistant.responses import handlers
from therapy_assistant.responses.errors import ERROR_RECOVERY_TOPIC

CONTEXT = QueryContext(active_client_id=5)


def _run(handler, intent, services, context=CONTEXT):
    return asyncio.run(handler(intent, context, services))


# ── Budget ───────────────────────────────────────────────────────────


class TestBudgetHandler:
    def test_remaining(self, services, budget_analysis):
        services.budget.get_budget_analysis.return_value = budget_analysis()
        response = _run(handlers.handle_budget, BudgetAnalysisIntent(5, BudgetQuery.REMAINING), services)

        assert response.content.startswith("The client has $600.00 remaining out of a total budget of $1000.00.")
        assert "depleted" not in response.content
        assert response.confidence == 0.95
        assert response.visualization_hint is VisualizationHint.BUBBLE_CHART
        services.budget.get_budget_analysis.assert_awaited_once_with(5)

    def test_forecast_mentions_date_and_velocity(self, services, budget_analysis):
        services.budget.get_budget_analysis.return_value = budget_analysis(
            forecasted_depletion=date(2025, 3, 5),
            spending_velocity=0.5,
            spending_patterns=SpendingPatterns(trend="increasing"),
        )
        response = _run(handlers.handle_budget, BudgetAnalysisIntent(5, BudgetQuery.FORECAST), services)

        assert response.content.startswith(
            "Based on accelerating spending patterns, the budget will be depleted by March 5, 2025."
        )
        assert "shorten the budget lifespan" in response.content
        assert response.suggested_follow_ups[0] == "Why is spending accelerating?"

    def test_utilization_names_high_usage_and_overages(self, services, budget_analysis):
        services.budget.get_budget_analysis.return_value = budget_analysis(
            spending_patterns=SpendingPatterns(high_usage_categories=["Speech"], projected_overages=["Speech"]),
        )
        response = _run(handlers.handle_budget, BudgetAnalysisIntent(5, BudgetQuery.UTILIZATION), services)

        assert "40.0% of their budget" in response.content
        assert 'The highest usage category is "Speech".' in response.content
        assert "projected to exceed their budget allocations" in response.content

    def test_default_overview(self, services, budget_analysis):
        services.budget.get_budget_analysis.return_value = budget_analysis()
        response = _run(handlers.handle_budget, BudgetAnalysisIntent(5), services)

        assert "total budget of $1000.00, with $400.00 spent" in response.content
        assert "September 30, 2025" in response.content
        assert len(response.suggested_follow_ups) <= 3

    def test_records_active_filters(self, services, budget_analysis):
        services.budget.get_budget_analysis.return_value = budget_analysis()
        response = _run(handlers.handle_budget, BudgetAnalysisIntent(5, BudgetQuery.REMAINING), services)
        assert response.memory_updates.active_filters == {"client_id": 5, "budget_query": BudgetQuery.REMAINING}

    def test_service_failure_degrades(self, services):
        services.budget.get_budget_analysis.side_effect = RuntimeError("Request timeout")
        response = _run(handlers.handle_budget, BudgetAnalysisIntent(5), services)

        assert "took too long" in response.content
        assert response.confidence <= 0.5
        assert response.memory_updates.last_topic == ERROR_RECOVERY_TOPIC


# ── Progress ─────────────────────────────────────────────────────────


class TestProgressHandler:
    def test_overall(self, services, progress_analysis):
        services.progress.get_progress_analysis.return_value = progress_analysis()
        response = _run(
            handlers.handle_progress, ProgressTrackingIntent(5, specific_query=ProgressQuery.OVERALL), services
        )
        assert response.content.startswith("The client has achieved 62.5% overall progress")
        assert "Good progress is being made" in response.content
        assert response.visualization_hint is VisualizationHint.PROGRESS_CHART
        assert response.suggested_follow_ups[0] == 'What strategies would help with "Fine motor skills"?'

    def test_attendance(self, services, progress_analysis):
        services.progress.get_progress_analysis.return_value = progress_analysis()
        response = _run(
            handlers.handle_progress, ProgressTrackingIntent(5, specific_query=ProgressQuery.ATTENDANCE), services
        )
        assert response.content == (
            "The client has an attendance rate of 85.0%. They have completed 17 sessions "
            "and cancelled 3 sessions."
        )

    def test_goal_specific(self, services, progress_analysis):
        services.progress.get_progress_analysis.return_value = progress_analysis()
        response = _run(
            handlers.handle_progress,
            ProgressTrackingIntent(5, goal_id=1, specific_query=ProgressQuery.GOAL_SPECIFIC),
            services,
        )
        assert 'Progress on the goal "Improve speech clarity" is at 80.0%.' in response.content
        assert "Very good progress" in response.content
        assert "1 out of 2 milestones" in response.content

    def test_goal_specific_without_goal(self, services, progress_analysis):
        services.progress.get_progress_analysis.return_value = progress_analysis()
        response = _run(
            handlers.handle_progress, ProgressTrackingIntent(5, specific_query=ProgressQuery.GOAL_SPECIFIC), services
        )
        assert response.content == "I need to know which specific goal you're asking about."
        assert response.confidence == 0.8

    def test_unknown_goal(self, services, progress_analysis):
        services.progress.get_progress_analysis.return_value = progress_analysis()
        response = _run(
            handlers.handle_progress,
            ProgressTrackingIntent(5, goal_id=99, specific_query=ProgressQuery.GOAL_SPECIFIC),
            services,
        )
        assert response.confidence == 0.7

    def test_default_flags_lagging_goal(self, services, progress_analysis):
        services.progress.get_progress_analysis.return_value = progress_analysis()
        response = _run(handlers.handle_progress, ProgressTrackingIntent(5), services)
        assert 'most progress has been made on "Improve speech clarity" (80.0%)' in response.content
        assert 'The goal "Fine motor skills" might need additional attention (45.0%).' in response.content


# ── Strategy ─────────────────────────────────────────────────────────


class TestStrategyHandler:
    def test_goal_specific_lists_top_three(self, services):
        services.strategy.get_recommended_strategies_for_goal.return_value = [
            Strategy(id=i, name=f"Strategy {i}", description=f"Description {i}") for i in range(1, 6)
        ]
        response = _run(
            handlers.handle_strategy,
            StrategyRecommendationIntent(5, goal_id=2, specific_query=StrategyQuery.GOAL_SPECIFIC),
            services,
        )
        assert "1. **Strategy 1**: Description 1" in response.content
        assert "3. **Strategy 3**" in response.content
        assert "Strategy 4" not in response.content
        assert "There are 2 additional strategies available." in response.content
        assert response.confidence == 0.85

    def test_goal_without_strategies(self, services):
        services.strategy.get_recommended_strategies_for_goal.return_value = []
        response = _run(
            handlers.handle_strategy,
            StrategyRecommendationIntent(5, goal_id=2, specific_query=StrategyQuery.GOAL_SPECIFIC),
            services,
        )
        assert response.confidence == 0.7

    def test_client_view_truncates_descriptions(self, services):
        long_text = "x" * 150
        services.strategy.get_recommended_strategies_for_client.return_value = {
            "Speech clarity": [Strategy(id=1, name="Modeling", description=long_text), Strategy(id=2, name="Recast")],
            "Fine motor": [Strategy(id=3, name="Putty play")],
            "General Approaches": [Strategy(id=4, name="Visual schedule")],
        }
        response = _run(handlers.handle_strategy, StrategyRecommendationIntent(5), services)

        assert 'For goal "Speech clarity":' in response.content
        assert f"**Modeling**: {'x' * 100}..." in response.content
        assert "General Approaches" not in response.content

    def test_overview_without_client_uses_strategy_knowledge(self, services):
        services.knowledge.get_general_strategy_info.return_value = StrategyKnowledge(
            strategy_categories=["Speech", "Motor"],
            total_strategies=12,
            most_used_strategies=[
                StrategyUsage(name="Modeling", usage_count=30),
                StrategyUsage(name="Recast", usage_count=22),
            ],
        )
        response = _run(
            handlers.handle_strategy,
            StrategyRecommendationIntent(specific_query=StrategyQuery.GENERAL),
            services,
            context=QueryContext(),
        )

        assert response.content == (
            "Our practice uses 12 therapeutic strategies across 2 categories. "
            "The most widely used include Modeling and Recast."
        )
        assert response.suggested_follow_ups == [
            "What makes these strategies effective?",
            "How are strategies evaluated?",
            "Which strategies work well together?",
        ]
        services.knowledge.get_general_strategy_info.assert_awaited_once_with("overview")
        services.strategy.get_all_strategies.assert_not_awaited()

    def test_overview_without_strategy_knowledge(self, services):
        services.knowledge.get_general_strategy_info.return_value = StrategyKnowledge()
        response = _run(
            handlers.handle_strategy,
            StrategyRecommendationIntent(specific_query=StrategyQuery.GENERAL),
            services,
            context=QueryContext(),
        )
        assert response.content == handlers.NO_STRATEGY_KNOWLEDGE_MESSAGE
        assert response.confidence == 0.7

    def test_carried_category_ranks_catalog_by_effectiveness(self, services):
        services.knowledge.get_general_strategy_info.return_value = StrategyKnowledge(
            effective_strategies=[StrategyUsage(name="C", effectiveness=0.9)],
        )
        services.strategy.get_all_strategies.return_value = [
            Strategy(id=1, name="A", category="Speech"),
            Strategy(id=2, name="B", category="Motor"),
            Strategy(id=3, name="C", category="Speech Therapy"),
        ]
        context = QueryContext(
            conversation_memory=ConversationMemory(context_carryover=ContextCarryover(category="Speech")),
        )
        response = _run(
            handlers.handle_strategy,
            StrategyRecommendationIntent(specific_query=StrategyQuery.GENERAL),
            services,
            context=context,
        )

        assert response.content.startswith("For speech goals, our most effective strategies are C and A.")
        services.knowledge.get_general_strategy_info.assert_awaited_once_with("category")

    def test_carried_category_without_strategies(self, services):
        services.knowledge.get_general_strategy_info.return_value = StrategyKnowledge()
        services.strategy.get_all_strategies.return_value = [Strategy(id=1, name="A", category="Speech")]
        context = QueryContext(
            conversation_memory=ConversationMemory(context_carryover=ContextCarryover(category="sensory")),
        )
        response = _run(
            handlers.handle_strategy,
            StrategyRecommendationIntent(specific_query=StrategyQuery.GENERAL),
            services,
            context=context,
        )
        assert response.content == "I don't have any strategies filed under sensory yet."


# ── Combined insights ────────────────────────────────────────────────


class TestCombinedInsightsHandler:
    def test_overall_uses_client_name_from_memory(self, services, budget_analysis, progress_analysis):
        services.budget.get_budget_analysis.return_value = budget_analysis()
        services.progress.get_progress_analysis.return_value = progress_analysis()
        context = QueryContext(
            active_client_id=5,
            conversation_memory=ConversationMemory(
                recent_entities=[
                    ExtractedEntity(
                        text="Jane Doe",
                        type=EntityType.CLIENT_NAME,
                        position=EntityPosition(start=0, end=8),
                    )
                ]
            ),
        )
        response = _run(handlers.handle_combined_insights, CombinedInsightsIntent(5), services, context)

        assert response.content.startswith(
            "Overall insights for Jane Doe: Budget utilization is at 40.0% with $600.00 remaining."
        )
        assert "on track" in response.content
        assert response.visualization_hint is VisualizationHint.COMBINED_INSIGHTS

    def test_budget_focus(self, services, budget_analysis, progress_analysis):
        services.budget.get_budget_analysis.return_value = budget_analysis()
        services.progress.get_progress_analysis.return_value = progress_analysis()
        response = _run(
            handlers.handle_combined_insights, CombinedInsightsIntent(5, InsightQuery.BUDGET_FOCUS), services
        )
        assert response.content.startswith("Budget-focused insights for the client:")
        assert "{{" not in response.content

    def test_either_failure_degrades(self, services, budget_analysis):
        services.budget.get_budget_analysis.return_value = budget_analysis()
        services.progress.get_progress_analysis.side_effect = RuntimeError("404 not found")
        response = _run(handlers.handle_combined_insights, CombinedInsightsIntent(5), services)
        assert "couldn't find" in response.content


# ── Statistics and general ───────────────────────────────────────────


class TestStatisticsHandler:
    def test_client_count(self, services):
        services.knowledge.get_client_statistics.return_value = ClientStatistics(
            total_clients=40, active_clients=32, new_clients_last_month=3, average_progress=58.0
        )
        response = _run(
            handlers.handle_statistics, DatabaseStatisticsIntent(StatisticsQuery.CLIENT_COUNT), services
        )
        assert response.content.startswith("The practice currently has 40 clients, 32 of them active.")
        assert "58.0%" in response.content

    def test_demographics(self, services):
        services.knowledge.get_client_statistics.return_value = ClientStatistics(
            total_clients=10, age_groups={"0-5": 4, "6-12": 6}
        )
        response = _run(
            handlers.handle_statistics, DatabaseStatisticsIntent(StatisticsQuery.DEMOGRAPHICS), services
        )
        assert response.content == "Across 10 clients, the age groups are 0-5: 4, 6-12: 6."

    def test_category_averages_use_template(self, services):
        services.knowledge.get_general_budget_info.return_value = BudgetKnowledge(
            avg_budget_size=5000.0, avg_allocation_by_category={"Speech": 1200.0, "Motor": 1500.0}
        )
        response = _run(
            handlers.handle_statistics, DatabaseStatisticsIntent(StatisticsQuery.CATEGORY_AVERAGES), services
        )
        assert "average budget size across our clients is $5000.00" in response.content
        assert "Motor services" in response.content
        services.knowledge.get_general_budget_info.assert_awaited_once_with("statistics")

    def test_unrefined_uses_progress_overview(self, services):
        services.knowledge.get_general_progress_info.return_value = ProgressKnowledge(
            avg_overall_progress=61.5, avg_attendance_rate=88.0
        )
        response = _run(handlers.handle_statistics, DatabaseStatisticsIntent(), services)
        assert "average progress rate of 61.5%" in response.content
        assert "88.0%" in response.content


class TestGeneralHandler:
    def test_known_topic(self, services):
        response = _run(handlers.handle_general, GeneralQuestionIntent(topic="billing"), services)
        assert response.content.startswith("For billing inquiries")
        assert response.confidence == 0.7

    def test_no_topic_lists_capabilities(self, services):
        response = _run(handlers.handle_general, GeneralQuestionIntent(), services)
        assert response.content == handlers.DEFAULT_MESSAGE
        assert response.confidence == 0.5


class TestFollowUps:
    def test_dedup_and_cap(self):
        assert handlers.follow_ups("a", None, "b", "a", "", "c", "d") == ["a", "b", "c"]

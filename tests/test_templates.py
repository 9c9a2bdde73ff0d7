"""Tests for template selection and rendering."""

from __future__ import annotations

from types import SimpleNamespace

from therapy_assistant.intents import IntentType
from therapy_assistant.responses.errors import ErrorKind
from therapy_assistant.responses.templates import (
    BUDGET_TEMPLATES,
    ERROR_CATEGORY,
    ERROR_TEMPLATES,
    GENERAL_TEMPLATES,
    PROGRESS_TEMPLATES,
    STRATEGY_TEMPLATES,
    ResponseTemplate,
    generate_response,
    render_template,
    select_template,
)


class TestSelectTemplate:
    def test_highest_priority_wins(self):
        selected = select_template(GENERAL_TEMPLATES, {"topic": "billing"})
        assert selected.template.startswith("For billing inquiries")

    def test_equal_priorities_keep_table_order(self):
        first = ResponseTemplate("first", lambda data: True, priority=1)
        second = ResponseTemplate("second", lambda data: True, priority=1)
        assert select_template((first, second), {}) is first

    def test_no_match_falls_back_to_general(self):
        assert select_template(BUDGET_TEMPLATES, {}) is GENERAL_TEMPLATES[0]

    def test_selection_is_deterministic(self):
        data = {"is_general": True, "subtopic": "statistics"}
        picks = {id(select_template(BUDGET_TEMPLATES, data)) for _ in range(5)}
        assert len(picks) == 1


class TestRenderTemplate:
    def test_substitutes_variables(self):
        assert render_template("{{a}} of {{b}}", {"a": 3, "b": "five"}) == "3 of five"

    def test_nested_mapping_and_attribute_lookup(self):
        data = {"milestone": {"completed": 2}, "goal": SimpleNamespace(title="Speech")}
        assert render_template("{{milestone.completed}} in {{goal.title}}", data) == "2 in Speech"

    def test_unresolved_placeholders_stay_verbatim(self):
        rendered = render_template("{{known}} and {{unknown}} and {{known.missing}}", {"known": {"x": 1}})
        assert rendered == "{'x': 1} and {{unknown}} and {{known.missing}}"

    def test_none_value_stays_verbatim(self):
        assert render_template("left: {{remaining}}", {"remaining": None}) == "left: {{remaining}}"


class TestGenerateResponse:
    def test_budget_statistics(self):
        content, follow_ups = generate_response(
            IntentType.BUDGET_ANALYSIS,
            {"is_general": True, "subtopic": "statistics", "avg_budget_size": "$5000.00", "top_category": "speech"},
        )
        assert content == (
            "The average budget size across our clients is $5000.00. "
            "Budget allocations tend to focus most heavily on speech services."
        )
        assert len(follow_ups) == 3

    def test_error_template(self):
        content, follow_ups = generate_response(ERROR_CATEGORY, {"error_type": "timeout"})
        assert "took too long" in content
        assert "Try asking your question again" in follow_ups

    def test_unknown_category_uses_general_table(self):
        content, _ = generate_response("NOPE", {"topic": "autism"})
        assert "autism needs" in content


class TestTemplateTables:
    def test_each_error_kind_has_its_own_template(self):
        selected = [select_template(ERROR_TEMPLATES, {"error_type": kind.value}) for kind in ErrorKind]
        assert GENERAL_TEMPLATES[0] not in selected
        assert set(map(id, selected)) == set(map(id, ERROR_TEMPLATES))

    def test_general_subtopics_cover_the_practice_wide_tables(self):
        reachable = {
            id(select_template(BUDGET_TEMPLATES, {"is_general": True, "subtopic": "statistics"})),
            id(select_template(PROGRESS_TEMPLATES, {"is_general": True, "subtopic": "overview"})),
            id(select_template(STRATEGY_TEMPLATES, {"is_general": True, "subtopic": "overview"})),
            id(select_template(STRATEGY_TEMPLATES, {"is_general": True, "subtopic": "category"})),
        }
        tables = BUDGET_TEMPLATES + PROGRESS_TEMPLATES + STRATEGY_TEMPLATES
        assert reachable == set(map(id, tables))

    def test_strategy_category(self):
        content, _ = generate_response(
            IntentType.STRATEGY_RECOMMENDATION,
            {
                "is_general": True,
                "subtopic": "category",
                "category": "motor",
                "category_strategies": "Putty play and Obstacle course",
                "effective_for": "clients working on motor skills",
            },
        )
        assert content == (
            "For motor goals, our most effective strategies are Putty play and Obstacle course. "
            "These are particularly effective for clients working on motor skills."
        )

"""Tests for pattern-based entity extraction."""

from __future__ import annotations

from datetime import date

import pytest

from therapy_assistant.models import EntityType
from therapy_assistant.nlu.entities import extract_entities


def _of_type(query: str, entity_type: EntityType):
    return [e for e in extract_entities(query) if e.type is entity_type]


class TestClientNames:
    def test_capitalized_run_is_a_client_name(self):
        names = _of_type("How's the budget for client Jane Doe?", EntityType.CLIENT_NAME)
        assert [e.text for e in names] == ["Jane Doe"]

    def test_sentence_leading_stopword_is_trimmed(self):
        names = _of_type("Show Sam Lee progress", EntityType.CLIENT_NAME)
        assert [e.text for e in names] == ["Sam Lee"]

    def test_lowercase_query_has_no_names(self):
        assert _of_type("how much budget is left", EntityType.CLIENT_NAME) == []


class TestGoalNames:
    def test_quoted_text_is_a_goal_name(self):
        goals = _of_type('strategies for "improve articulation" please', EntityType.GOAL_NAME)
        assert len(goals) == 1
        assert goals[0].text == "improve articulation"
        assert goals[0].value == "improve articulation"


class TestDates:
    def test_month_name_date(self):
        dates = _of_type("sessions since March 5, 2025", EntityType.DATE)
        assert [d.value for d in dates] == [date(2025, 3, 5)]

    def test_numeric_date_is_day_first(self):
        dates = _of_type("spending after 5/3/2025", EntityType.DATE)
        assert [d.value for d in dates] == [date(2025, 3, 5)]

    def test_impossible_date_keeps_span_without_value(self):
        dates = _of_type("what happened on 31/2/2025", EntityType.DATE)
        assert len(dates) == 1
        assert dates[0].text == "31/2/2025"
        assert dates[0].value is None


class TestAmountsCategoriesIds:
    def test_dollar_amounts(self):
        amounts = _of_type("is $1,250.50 or 300 dollars enough", EntityType.AMOUNT)
        assert [a.value for a in amounts] == [1250.5, 300.0]

    def test_trailing_comma_is_not_part_of_amount(self):
        amounts = _of_type("spend $500, then $1250 and $2,000,000.", EntityType.AMOUNT)
        assert [a.text for a in amounts] == ["$500", "$1250", "$2,000,000"]
        assert [a.value for a in amounts] == [500.0, 1250.0, 2000000.0]

    def test_categories_are_lowercased(self):
        categories = _of_type("Speech and motor goals", EntityType.CATEGORY)
        assert [c.value for c in categories] == ["speech", "motor"]

    def test_client_and_goal_ids(self):
        query = "budget for client #42 and goal id: 7"
        assert [e.value for e in _of_type(query, EntityType.CLIENT_ID)] == [42]
        assert [e.value for e in _of_type(query, EntityType.GOAL_ID)] == [7]


class TestPositions:
    @pytest.mark.parametrize(
        "query",
        [
            "How's the budget for client Jane Doe?",
            'Show "fine motor control" progress for Sam Lee since March 5, 2025',
            "Did client #12 spend $400 on speech in 1/2/2024?",
        ],
    )
    def test_offsets_round_trip(self, query):
        entities = extract_entities(query)
        assert entities
        for entity in entities:
            assert query[entity.position.start:entity.position.end] == entity.text

    def test_empty_query(self):
        assert extract_entities("") == []

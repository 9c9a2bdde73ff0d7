"""Relevance ranking of therapy strategies.

Ranking a strategy catalog for a goal happens in up to three passes:

1. **Relevance**: ``score_strategies_by_relevance`` scores every strategy
   against the goal's key terms and drops the ones scoring zero.
2. **Lifecycle**: goals below 30% progress bring foundational strategies
   forward, goals above 70% bring advanced ones forward.  This is a stable
   partition, not a score.
3. **Personalization**: for client-level recommendations, strategies that
   suit the client's age bracket (+3) or mention their preferred language
   (+2) move up; ties keep the previous order.

All functions are pure and return new lists.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from datetime import date

from therapy_assistant.models import Client, Goal, Strategy, Subgoal
from therapy_assistant.vocabulary import (
    ADVANCED_CATEGORIES,
    ADVANCED_TERMS,
    AGE_BRACKET_TERMS,
    EVIDENCE_TERMS,
    FOUNDATIONAL_CATEGORIES,
    FOUNDATIONAL_TERMS,
    GENERAL_STRATEGY_CATEGORIES,
    GENERAL_STRATEGY_TERMS,
    KEY_TERM_STOPWORDS,
    TERM_IMPORTANCE,
    THERAPY_PHRASES,
    THERAPY_TERMS,
)

logger = logging.getLogger(__name__)

_TOKEN_SPLIT_RE = re.compile(r"\W+")

EVIDENCE_BONUS = 5
AGE_MATCH_BONUS = 3
LANGUAGE_MATCH_BONUS = 2


# ── Key terms ────────────────────────────────────────────────────────


def extract_key_terms(goal: Goal, subgoals: Iterable[Subgoal] = ()) -> list[str]:
    """Distinctive words and therapy phrases from a goal and its subgoals.

    Order is first appearance; duplicates are removed.
    """
    texts = [goal.title, goal.description]
    for subgoal in subgoals:
        texts.extend((subgoal.title, subgoal.description))
    texts = [text.lower() for text in texts if text]

    terms: dict[str, None] = {}
    for text in texts:
        for token in _TOKEN_SPLIT_RE.split(text):
            if len(token) > 3 or token in THERAPY_TERMS:
                terms[token] = None

    combined = " ".join(texts)
    for phrase in THERAPY_PHRASES:
        if phrase in combined:
            terms[phrase] = None

    return [term for term in terms if term and term not in KEY_TERM_STOPWORDS]


# ── Relevance ────────────────────────────────────────────────────────


def _has_evidence(strategy: Strategy) -> bool:
    description = (strategy.description or "").lower()
    return any(term in description for term in EVIDENCE_TERMS)


def strategy_relevance_score(strategy: Strategy, key_terms: Iterable[str]) -> float:
    name = (strategy.name or "").lower()
    category = (strategy.category or "").lower()
    text = f"{name} {(strategy.description or '').lower()} {category}"

    score = 0.0
    for term in key_terms:
        weight = TERM_IMPORTANCE.get(term, 1)
        pattern = re.compile(rf"\b{re.escape(term)}\b")
        matches = len(pattern.findall(text))
        if not matches:
            continue
        score += matches * 2 * weight
        if pattern.search(name):
            score += 3 * weight
        if pattern.search(category):
            score += 4 * weight

    if _has_evidence(strategy):
        score += EVIDENCE_BONUS
    return score


def score_strategies_by_relevance(
    strategies: list[Strategy],
    key_terms: list[str],
) -> list[Strategy]:
    """Strategies relevant to *key_terms*, best first.

    Zero-scoring strategies are dropped.  Equal scores keep catalog order.
    Without key terms or strategies there is nothing to rank and the input
    is returned as-is.
    """
    if not key_terms or not strategies:
        return list(strategies)

    scored = [(strategy_relevance_score(s, key_terms), s) for s in strategies]
    ranked = sorted(
        ((score, s) for score, s in scored if score > 0),
        key=lambda item: item[0],
        reverse=True,
    )
    logger.debug(
        "Scored %d strategies against %d key terms, %d relevant",
        len(strategies), len(key_terms), len(ranked),
    )
    return [s for _, s in ranked]


# ── Lifecycle ────────────────────────────────────────────────────────


def _matches_stage(strategy: Strategy, categories: frozenset[str], terms: tuple[str, ...]) -> bool:
    if strategy.category in categories:
        return True
    description = (strategy.description or "").lower()
    return any(term in description for term in terms)


def _partition(strategies: list[Strategy], predicate) -> list[Strategy]:
    first = [s for s in strategies if predicate(s)]
    rest = [s for s in strategies if not predicate(s)]
    return first + rest


def prioritize_foundational_strategies(strategies: list[Strategy]) -> list[Strategy]:
    return _partition(
        strategies,
        lambda s: _matches_stage(s, FOUNDATIONAL_CATEGORIES, FOUNDATIONAL_TERMS),
    )


def prioritize_advanced_strategies(strategies: list[Strategy]) -> list[Strategy]:
    return _partition(
        strategies,
        lambda s: _matches_stage(s, ADVANCED_CATEGORIES, ADVANCED_TERMS),
    )


def prioritize_for_progress(strategies: list[Strategy], progress: float | None) -> list[Strategy]:
    """Apply the lifecycle partition for a goal at *progress* percent."""
    if progress is None:
        return list(strategies)
    if progress < 30:
        return prioritize_foundational_strategies(strategies)
    if progress > 70:
        return prioritize_advanced_strategies(strategies)
    return list(strategies)


# ── Personalization ──────────────────────────────────────────────────


def calculate_age(date_of_birth: date | None, today: date | None = None) -> int | None:
    if date_of_birth is None:
        return None
    today = today or date.today()
    age = today.year - date_of_birth.year
    if (today.month, today.day) < (date_of_birth.month, date_of_birth.day):
        age -= 1
    return age


def age_bracket(age: int) -> str:
    if age < 5:
        return "early_childhood"
    if age < 12:
        return "child"
    if age < 18:
        return "adolescent"
    return "adult"


def _suits_bracket(strategy: Strategy, bracket: str) -> bool:
    description = (strategy.description or "").lower()
    category = (strategy.category or "").lower()
    return any(
        term in description or term in category
        for term in AGE_BRACKET_TERMS[bracket]
    )


def personalize_strategies_for_client(
    strategies: list[Strategy],
    client: Client | None,
    today: date | None = None,
) -> list[Strategy]:
    if client is None:
        return list(strategies)

    age = calculate_age(client.date_of_birth, today)
    bracket = age_bracket(age) if age is not None else None
    language = (client.preferred_language or "").lower()

    def _score(strategy: Strategy) -> int:
        score = 0
        if bracket and _suits_bracket(strategy, bracket):
            score += AGE_MATCH_BONUS
        if language and language in (strategy.description or "").lower():
            score += LANGUAGE_MATCH_BONUS
        return score

    return sorted(strategies, key=_score, reverse=True)


# ── General ──────────────────────────────────────────────────────────


def general_recommendations(strategies: list[Strategy]) -> list[Strategy]:
    """Strategies applicable regardless of goal."""
    return [
        s for s in strategies
        if s.category in GENERAL_STRATEGY_CATEGORIES
        or any(term in (s.description or "").lower() for term in GENERAL_STRATEGY_TERMS)
    ]

"""Keyword-based topic classification.

Each topic in ``TOPIC_TERMS`` owns a list of single words and multi-word
phrases.  A query's score for a topic is::

    (whole-word occurrences of single-word terms)
    + 2 × (word count of every phrase found verbatim)

so a matched phrase outweighs the same words scattered through the query.
The highest score wins; ties go to the topic listed first.

Two public entry points share the scoring but differ in fallback:
``detect_topic`` always returns a topic (``"general assistance"`` when
nothing matches) while ``detect_topic_or_none`` returns ``None``.  The
intent parser uses the latter.
"""

from __future__ import annotations

import re

from therapy_assistant.vocabulary import GENERAL_ASSISTANCE_TOPIC, TOPIC_TERMS


def _term_score(term: str, text: str) -> int:
    if " " in term:
        return 2 * len(term.split()) if term in text else 0
    return len(re.findall(rf"\b{re.escape(term)}\b", text))


def score_topics(query: str) -> dict[str, int]:
    """Return the score of every topic for *query* (insertion-ordered)."""
    text = query.lower()
    return {
        topic: sum(_term_score(term, text) for term in terms)
        for topic, terms in TOPIC_TERMS.items()
    }


def detect_topic_or_none(query: str) -> str | None:
    """Best-scoring topic for *query*, or ``None`` if nothing scores."""
    best_topic: str | None = None
    best_score = 0
    for topic, score in score_topics(query).items():
        if score > best_score:
            best_topic, best_score = topic, score
    return best_topic


def detect_topic(query: str) -> str:
    """Best-scoring topic for *query*, defaulting to general assistance."""
    return detect_topic_or_none(query) or GENERAL_ASSISTANCE_TOPIC

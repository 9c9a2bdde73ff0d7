"""Pattern-based entity extraction.

Rules run in a fixed order (client names, goal names, dates, amounts,
categories, client/goal ids).  Within a rule, matches are collected
left-to-right and never overlap; entities from different rules may
overlap since they are independent annotations, not a segmentation.

Every entity carries its character offsets so that
``query[entity.position.start:entity.position.end] == entity.text``.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterator
from datetime import date

from therapy_assistant.models import EntityPosition, EntityType, ExtractedEntity
from therapy_assistant.vocabulary import CAPITALIZED_STOPWORDS, CATEGORY_TERMS

logger = logging.getLogger(__name__)

_CAPITALIZED_RUN_RE = re.compile(r"\b[A-Z][a-z]+(?:[ \t]+[A-Z][a-z]+)*\b")
_CAPITALIZED_WORD_RE = re.compile(r"[A-Z][a-z]+")

_QUOTED_RE = re.compile(r'"([^"]+)"')

_MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}
_TEXT_DATE_RE = re.compile(
    r"\b(Jan(?:uary)?|Feb(?:ruary)?|Mar(?:ch)?|Apr(?:il)?|May|June?|July?"
    r"|Aug(?:ust)?|Sep(?:t(?:ember)?)?|Oct(?:ober)?|Nov(?:ember)?|Dec(?:ember)?)"
    r"\.?\s+(\d{1,2})(?:st|nd|rd|th)?,?\s+(\d{4})\b",
    re.IGNORECASE,
)
_NUMERIC_DATE_RE = re.compile(r"\b(\d{1,2})/(\d{1,2})/(\d{4})\b")

_AMOUNT_RE = re.compile(
    r"\$((?:\d{1,3}(?:,\d{3})+|\d+)(?:\.\d+)?)|\b(\d+(?:\.\d+)?)\s+dollars\b",
    re.IGNORECASE,
)

_CATEGORY_RE = re.compile(
    r"\b(" + "|".join(CATEGORY_TERMS) + r")\b",
    re.IGNORECASE,
)

_CLIENT_ID_RE = re.compile(r"\bclient\s*(?:#|id\s*:?\s*|number\s+)(\d+)\b", re.IGNORECASE)
_GOAL_ID_RE = re.compile(r"\bgoal\s*(?:#|id\s*:?\s*|number\s+)(\d+)\b", re.IGNORECASE)


def _entity(
    query: str,
    start: int,
    end: int,
    entity_type: EntityType,
    value: str | int | float | date | None = None,
) -> ExtractedEntity:
    return ExtractedEntity(
        text=query[start:end],
        type=entity_type,
        value=value,
        position=EntityPosition(start=start, end=end),
    )


def _safe_date(year: int, month: int, day: int) -> date | None:
    try:
        return date(year, month, day)
    except ValueError:
        logger.debug("Ignoring invalid date %04d-%02d-%02d", year, month, day)
        return None


# ── Rules ────────────────────────────────────────────────────────────


def _client_names(query: str) -> Iterator[ExtractedEntity]:
    for match in _CAPITALIZED_RUN_RE.finditer(query):
        words = list(_CAPITALIZED_WORD_RE.finditer(match.group()))
        # Trim sentence-leading words such as "How" or "Show".
        first = next(
            (w for w in words if w.group() not in CAPITALIZED_STOPWORDS),
            None,
        )
        if first is None:
            continue
        start = match.start() + first.start()
        yield _entity(query, start, match.end(), EntityType.CLIENT_NAME, query[start:match.end()])


def _goal_names(query: str) -> Iterator[ExtractedEntity]:
    for match in _QUOTED_RE.finditer(query):
        yield _entity(query, match.start(1), match.end(1), EntityType.GOAL_NAME, match.group(1))


def _dates(query: str) -> Iterator[ExtractedEntity]:
    for match in _TEXT_DATE_RE.finditer(query):
        month = _MONTHS[match.group(1)[:3].lower()]
        value = _safe_date(int(match.group(3)), month, int(match.group(2)))
        yield _entity(query, match.start(), match.end(), EntityType.DATE, value)
    for match in _NUMERIC_DATE_RE.finditer(query):
        day, month, year = (int(g) for g in match.groups())
        value = _safe_date(year, month, day)
        yield _entity(query, match.start(), match.end(), EntityType.DATE, value)


def _amounts(query: str) -> Iterator[ExtractedEntity]:
    for match in _AMOUNT_RE.finditer(query):
        raw = match.group(1) or match.group(2)
        yield _entity(
            query, match.start(), match.end(), EntityType.AMOUNT,
            float(raw.replace(",", "")),
        )


def _categories(query: str) -> Iterator[ExtractedEntity]:
    for match in _CATEGORY_RE.finditer(query):
        yield _entity(query, match.start(), match.end(), EntityType.CATEGORY, match.group(1).lower())


def _ids(query: str) -> Iterator[ExtractedEntity]:
    for pattern, entity_type in (
        (_CLIENT_ID_RE, EntityType.CLIENT_ID),
        (_GOAL_ID_RE, EntityType.GOAL_ID),
    ):
        for match in pattern.finditer(query):
            yield _entity(query, match.start(), match.end(), entity_type, int(match.group(1)))


_RULES: tuple[Callable[[str], Iterator[ExtractedEntity]], ...] = (
    _client_names,
    _goal_names,
    _dates,
    _amounts,
    _categories,
    _ids,
)


def extract_entities(query: str) -> list[ExtractedEntity]:
    """Return every entity found in *query*, grouped by rule in source order."""
    entities: list[ExtractedEntity] = []
    for rule in _RULES:
        entities.extend(rule(query))
    if entities:
        logger.debug(
            "Extracted %d entities: %s",
            len(entities), [(e.type.value, e.text) for e in entities],
        )
    return entities

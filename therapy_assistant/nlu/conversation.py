"""Multi-turn conversation handling.

Follow-up questions rarely repeat their subject ("and what about
progress?", "how is she doing?").  This module rewrites such queries using
the caller-owned ``ConversationMemory`` and the last user/assistant turns:

1. **Pronoun substitution**: gendered pronouns become the most recent
   client mentioned, object pronouns become the carried-over subject (or
   the last topic), plural pronouns become the carried-over category.
   A pronoun with no referent is left untouched.
2. **Ellipsis expansion**: a query opening with a connective ("and",
   "what about", "can you", "is" …) gets the previous subject glued on,
   unless it already mentions that subject.

Memory is never mutated.  ``update_conversation_memory`` returns a new
``ConversationMemory`` and ``apply_memory_updates`` merges a diff the way
the caller is expected to.
"""

from __future__ import annotations

import logging
import re

from therapy_assistant.models import (
    CLIENT_ENTITY_TYPES,
    ContextCarryover,
    ConversationMemory,
    EntityType,
    ExtractedEntity,
    Message,
    QueryContext,
)
from therapy_assistant.vocabulary import (
    GENDERED_PRONOUNS,
    OBJECT_PRONOUNS,
    PLURAL_PRONOUNS,
    PRONOUN_TERMS,
    SUBJECT_MAP,
)

logger = logging.getLogger(__name__)

ENTITY_WINDOW = 5

_PRONOUN_TRIGGER_RE = re.compile(
    r"\b(?:" + "|".join(PRONOUN_TERMS) + r")\b", re.IGNORECASE
)
_REPLACEABLE_PRONOUN_RE = re.compile(
    r"\b(?:"
    + "|".join(sorted(GENDERED_PRONOUNS | OBJECT_PRONOUNS | PLURAL_PRONOUNS))
    + r")\b",
    re.IGNORECASE,
)

# (prefix, glue) pairs; "{q}" is the query and "{s}" the subject.
_ELLIPSIS_RULES: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"^(and|what about|how about)\b", re.IGNORECASE), "{q} for {s}"),
    (re.compile(r"^(can you|could you|would you)\b", re.IGNORECASE), "{q} regarding {s}"),
    (re.compile(r"^(is|are|was|were|do|does|did)\b", re.IGNORECASE), "{q} {s}"),
)
_DEFAULT_GLUE = "{s} {q}"


def _last_message(history: list[Message], role: str) -> Message | None:
    for message in reversed(history):
        if message.role == role:
            return message
    return None


def _mentions_word(text: str, term: str) -> bool:
    return re.search(rf"\b{re.escape(term)}\b", text, re.IGNORECASE) is not None


# ── Subjects ─────────────────────────────────────────────────────────


def detect_subject(query: str) -> str | None:
    """First SUBJECT_MAP group with a term occurring in *query*."""
    text = query.lower()
    for subject, terms in SUBJECT_MAP.items():
        if any(term in text for term in terms):
            return subject
    return None


def _terms_for_subject(subject: str) -> tuple[str, ...]:
    return SUBJECT_MAP.get(subject, (subject,))


def _main_subject(previous_query: str, memory: ConversationMemory | None) -> str | None:
    if memory and memory.context_carryover and memory.context_carryover.subject:
        return memory.context_carryover.subject
    subject = detect_subject(previous_query)
    if subject:
        return subject
    if memory and memory.last_topic:
        return memory.last_topic
    return None


# ── Reference resolution ─────────────────────────────────────────────


def _replace_pronouns(query: str, memory: ConversationMemory | None) -> str:
    client: str | None = None
    subject: str | None = None
    category: str | None = None
    topic: str | None = None

    if memory is not None:
        for entity in reversed(memory.recent_entities or []):
            if entity.type in CLIENT_ENTITY_TYPES and entity.text:
                client = entity.text
                break
        if memory.context_carryover is not None:
            subject = memory.context_carryover.subject
            category = memory.context_carryover.category
        topic = memory.last_topic

    def _substitute(match: re.Match[str]) -> str:
        pronoun = match.group().lower()
        if pronoun in GENDERED_PRONOUNS and client:
            return client
        if pronoun in OBJECT_PRONOUNS and (subject or topic):
            return subject or topic
        if pronoun in PLURAL_PRONOUNS and category:
            return category
        return match.group()

    return _REPLACEABLE_PRONOUN_RE.sub(_substitute, query)


def _expand_ellipsis(query: str, previous_query: str, memory: ConversationMemory | None) -> str:
    subject = _main_subject(previous_query, memory)
    if not subject:
        return query
    if any(_mentions_word(query, term) for term in _terms_for_subject(subject)):
        return query

    for pattern, glue in _ELLIPSIS_RULES:
        if pattern.search(query):
            return glue.format(q=query, s=subject)
    return _DEFAULT_GLUE.format(q=query, s=subject)


def resolve_references(query: str, context: QueryContext) -> str:
    """Rewrite *query* so it stands on its own, using prior turns.

    Returns *query* unchanged when the history lacks either a user or an
    assistant message, or when no pronoun or connective triggers a rewrite.
    """
    history = context.conversation_history
    if not history:
        return query

    last_user = _last_message(history, "user")
    last_assistant = _last_message(history, "assistant")
    if last_user is None or last_assistant is None:
        return query

    memory = context.conversation_memory
    resolved = query

    if _PRONOUN_TRIGGER_RE.search(resolved):
        resolved = _replace_pronouns(resolved, memory)

    if any(pattern.search(resolved) for pattern, _ in _ELLIPSIS_RULES):
        resolved = _expand_ellipsis(resolved, last_user.content, memory)

    if resolved != query:
        logger.debug("Resolved %r -> %r", query, resolved)
    return resolved


# ── Memory ───────────────────────────────────────────────────────────


def merge_entity_window(
    existing: list[ExtractedEntity] | None,
    new: list[ExtractedEntity],
) -> list[ExtractedEntity]:
    """Keep the last five *existing* entities, then append unseen *new* ones.

    The result is oldest-first and free of ``(text, type)`` duplicates.
    """
    window = list(existing or [])[-ENTITY_WINDOW:]
    seen = {entity.key for entity in window}
    for entity in new:
        if entity.key not in seen:
            window.append(entity)
            seen.add(entity.key)
    return window


def update_conversation_memory(
    query: str,
    entities: list[ExtractedEntity],
    topic: str | None,
    memory: ConversationMemory | None = None,
) -> ConversationMemory:
    memory = memory or ConversationMemory()
    updates: dict = {"last_query": query}
    if topic:
        updates["last_topic"] = topic

    if entities:
        updates["recent_entities"] = merge_entity_window(memory.recent_entities, entities)

        carryover = (memory.context_carryover or ContextCarryover()).model_copy()
        client = next((e for e in entities if e.type in CLIENT_ENTITY_TYPES), None)
        if client is not None:
            carryover.subject = client.text
        category = next((e for e in entities if e.type is EntityType.CATEGORY), None)
        if category is not None:
            carryover.category = category.text
        updates["context_carryover"] = carryover

    return memory.model_copy(update=updates)


def apply_memory_updates(
    memory: ConversationMemory | None,
    updates: ConversationMemory | None,
) -> ConversationMemory:
    """Merge a memory diff into *memory*.

    Only fields explicitly set on *updates* overwrite, so an explicit
    ``None`` clears a field while an omitted one is kept.
    """
    memory = memory or ConversationMemory()
    if updates is None:
        return memory
    changes = {name: getattr(updates, name) for name in updates.model_fields_set}
    return memory.model_copy(update=changes)

"""Per-session conversation state for the HTTP and CLI hosts.

The query processor is stateless: it reads a ``QueryContext`` and returns
a memory diff.  ``SessionStore`` is the caller side of that contract.  It
keeps each session's message history and ``ConversationMemory`` as a
JSON-ready dict in a bounded ``LRUCache`` and applies the diffs.
"""

from __future__ import annotations

import logging

from therapy_assistant.config import SESSION_CACHE_MAX_BYTES
from therapy_assistant.models import (
    AgentResponse,
    ConversationMemory,
    Message,
    QueryContext,
)
from therapy_assistant.nlu.conversation import apply_memory_updates
from therapy_assistant.services.cache import LRUCache

logger = logging.getLogger(__name__)

# Older turns are dropped; reference resolution only looks at the last pair.
MAX_HISTORY_MESSAGES = 20


class SessionStore:
    def __init__(self, cache: LRUCache | None = None) -> None:
        self._cache = cache or LRUCache(SESSION_CACHE_MAX_BYTES, name="session-cache")

    def _load(self, session_id: str) -> tuple[list[Message], ConversationMemory]:
        raw = self._cache.get(session_id) or {}
        history = [Message.model_validate(m) for m in raw.get("history", [])]
        memory = ConversationMemory.model_validate(raw.get("memory", {}))
        return history, memory

    def _save(self, session_id: str, history: list[Message], memory: ConversationMemory) -> None:
        stored = self._cache.put(
            session_id,
            {
                "history": [m.model_dump(mode="json") for m in history[-MAX_HISTORY_MESSAGES:]],
                "memory": memory.model_dump(mode="json", exclude_none=True),
            },
        )
        if not stored:
            logger.warning("Session %s too large to keep, history reset", session_id)

    def build_context(
        self,
        session_id: str,
        *,
        active_client_id: int | None = None,
        active_goal_id: int | None = None,
        active_budget_id: int | None = None,
    ) -> QueryContext:
        """Snapshot of the session as the processor expects it."""
        history, memory = self._load(session_id)
        return QueryContext(
            active_client_id=active_client_id,
            active_goal_id=active_goal_id,
            active_budget_id=active_budget_id,
            conversation_history=history,
            conversation_memory=memory,
        )

    def record_turn(self, session_id: str, query: str, response: AgentResponse) -> ConversationMemory:
        """Append the user/assistant pair and merge the response's memory diff."""
        history, memory = self._load(session_id)
        history.append(Message(role="user", content=query, entities=response.detected_entities))
        history.append(
            Message(
                role="assistant",
                content=response.content,
                confidence=response.confidence,
                suggested_follow_ups=response.suggested_follow_ups,
            )
        )
        memory = apply_memory_updates(memory, response.memory_updates)
        self._save(session_id, history, memory)
        return memory

    def reset(self, session_id: str) -> bool:
        return self._cache.invalidate(session_id)

    @property
    def session_count(self) -> int:
        return self._cache.entry_count

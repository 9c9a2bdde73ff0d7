"""Error taxonomy for degraded answers.

Data-service failures are classified by their message text, not their
exception class: the same root cause can surface as an ``httpx`` error,
a ``DashboardAPIError`` or a plain ``RuntimeError`` from a test double.
"""

from __future__ import annotations

import logging
from enum import StrEnum

from therapy_assistant.models import AgentResponse, ConversationMemory
from therapy_assistant.responses.templates import ERROR_CATEGORY, generate_response

logger = logging.getLogger(__name__)

ERROR_RECOVERY_TOPIC = "error_recovery"


class ErrorKind(StrEnum):
    NETWORK = "network"
    PERMISSION = "permission"
    NOT_FOUND = "not_found"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"


# Checked in order; the first kind with a matching marker wins.
_MARKERS: tuple[tuple[ErrorKind, tuple[str, ...]], ...] = (
    (ErrorKind.NETWORK, ("network", "connection", "connect", "fetch")),
    (ErrorKind.PERMISSION, ("permission", "unauthorized", "auth", "401", "403")),
    (ErrorKind.NOT_FOUND, ("not found", "404")),
    (ErrorKind.TIMEOUT, ("timeout", "timed out")),
)


def classify_error(error: BaseException | str) -> ErrorKind:
    text = str(error).lower()
    if not isinstance(error, str):
        # "ReadTimeout()" stringifies to "", so the class name is checked too.
        text = f"{type(error).__name__.lower()} {text}"
    for kind, markers in _MARKERS:
        if any(marker in text for marker in markers):
            return kind
    return ErrorKind.UNKNOWN


def error_response(error: BaseException | str) -> AgentResponse:
    """User-facing degraded answer for *error*.

    The memory diff moves the conversation to ``error_recovery`` and clears
    ``last_query`` so the failed turn does not steer the next one.
    """
    kind = classify_error(error)
    content, follow_ups = generate_response(ERROR_CATEGORY, {"error_type": kind.value})
    return AgentResponse(
        content=content,
        confidence=0.4 if kind is ErrorKind.UNKNOWN else 0.5,
        suggested_follow_ups=follow_ups[:3],
        memory_updates=ConversationMemory(last_topic=ERROR_RECOVERY_TOPIC, last_query=None),
    )

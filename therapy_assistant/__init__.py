"""Therapy practice assistant: conversational queries over a practice dashboard.

Architecture Overview
=====================

A question ("How much budget is remaining?", "and what about progress?")
flows through a **LangGraph** state machine:

1. **extract**: typed entities (client names, goals, dates, amounts,
   budget categories) are pulled from the raw text, a memory diff is
   drafted and follow-up questions are rewritten to stand on their own.

2. **router**: keyword cascades classify the query into one intent
   (budget analysis, progress tracking, strategy recommendation, combined
   insights, practice statistics, general question).  Client-specific
   intents without an active client get a clarification instead.

3. **handler**: fetches data from the dashboard API, narrates it with
   threshold tables or response templates and proposes follow-ups.

Key Design Decisions
--------------------
- **No LLM**: intent parsing and answers are deterministic, driven by the
  shared keyword tables in ``vocabulary.py``.
- **Caller-owned memory**: the processor returns a ``ConversationMemory``
  diff; ``SessionStore`` applies it.
- **Resilience**: the ``DashboardClient`` retries timeouts, connection
  errors and 5xx with exponential backoff.  Failures reach the user as
  classified degraded answers, never tracebacks.
- **Dual Interface**: FastAPI server (production) + CLI chat loop
  (development/testing).

Package Structure
-----------------
- ``therapy_assistant/agent.py``: LangGraph pipeline and ``QueryProcessor``
- ``therapy_assistant/intents.py``: intent sum type
- ``therapy_assistant/models.py``: Pydantic models
- ``therapy_assistant/vocabulary.py``: keyword tables
- ``therapy_assistant/nlu/``: entities, intent parsing, topics, multi-turn resolution
- ``therapy_assistant/responses/``: handlers, templates, narration, error taxonomy
- ``therapy_assistant/services/``: dashboard client, data services, caches, metrics, sessions
- ``therapy_assistant/api/``: FastAPI routes and Pydantic schemas
"""

"""LangGraph-based query processor for the therapy practice dashboard.

Architecture:
  One natural-language question flows through a LangGraph StateGraph:

    1. **extract**  pulls typed entities out of the raw query, drafts the
                    memory diff and rewrites follow-ups ("and what about
                    progress?") into standalone questions
    2. **router**   classifies the rewritten query into a ``QueryIntent``
                    and checks whether it needs an active client
    3. one handler  (clarify, budget, progress, strategy,
                    combined_insights, statistics, general) answers it

  Routing:
    extract → router → (needs client, none selected?) → clarify → END
                     → (otherwise) → handler for the intent → END

  Memory:
    Conversation memory is owned by the caller.  The processor never
    mutates it and returns a diff in ``AgentResponse.memory_updates``.
    The handler's diff wins over the draft built by ``extract``.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

from langgraph.graph import END, StateGraph
from typing_extensions import TypedDict, assert_never

from therapy_assistant.intents import (
    BudgetAnalysisIntent,
    CombinedInsightsIntent,
    DatabaseStatisticsIntent,
    GeneralQuestionIntent,
    ProgressTrackingIntent,
    QueryIntent,
    StrategyRecommendationIntent,
    needs_client_context,
)
from therapy_assistant.models import (
    AgentResponse,
    ConversationMemory,
    ExtractedEntity,
    QueryContext,
)
from therapy_assistant.nlu.conversation import (
    apply_memory_updates,
    resolve_references,
    update_conversation_memory,
)
from therapy_assistant.nlu.entities import extract_entities
from therapy_assistant.nlu.intent_parser import parse_intent
from therapy_assistant.responses import handlers
from therapy_assistant.responses.errors import ERROR_RECOVERY_TOPIC, error_response
from therapy_assistant.services.data_services import DataServices
from therapy_assistant.services.metrics import metrics

logger = logging.getLogger(__name__)

Handler = Callable[[Any, QueryContext, DataServices], Awaitable[AgentResponse]]


# ── State schema ─────────────────────────────────────────────────────


class QueryState(TypedDict, total=False):
    """The state that flows through the graph.

    ``query`` and ``context`` are the inputs.  ``extract`` fills
    ``resolved_query``, ``entities`` and ``draft_memory``; ``router`` fills
    ``intent`` and ``needs_clarification`` and, for answered queries, swaps
    ``context`` for one whose memory already holds the draft diff; the
    handler node writes ``response``.
    """

    query: str
    context: QueryContext
    resolved_query: str
    entities: list[ExtractedEntity]
    draft_memory: ConversationMemory
    intent: QueryIntent
    needs_clarification: bool
    response: AgentResponse


def merge_memory_diffs(*diffs: ConversationMemory | None) -> ConversationMemory:
    """Combine diffs left to right; explicitly-set fields of later diffs win."""
    fields: dict[str, Any] = {}
    for diff in diffs:
        if diff is not None:
            fields.update({name: getattr(diff, name) for name in diff.model_fields_set})
    return ConversationMemory(**fields)


# ── Node: extract ────────────────────────────────────────────────────


def extract_node(state: QueryState) -> dict:
    """Entities from the raw query, the draft memory diff, the rewritten query."""
    query = state["query"]
    context = state["context"]
    entities = extract_entities(query)

    merged = update_conversation_memory(query, entities, None, context.conversation_memory)
    draft: dict[str, Any] = {"last_query": merged.last_query}
    if entities:
        draft["recent_entities"] = merged.recent_entities
        draft["context_carryover"] = merged.context_carryover

    return {
        "entities": entities,
        "draft_memory": ConversationMemory(**draft),
        "resolved_query": resolve_references(query, context),
    }


# ── Node: router ─────────────────────────────────────────────────────


def router_node(state: QueryState) -> dict:
    """Classify the rewritten query and decide whether to ask for a client."""
    context = state["context"]
    augmented = context.model_copy(
        update={
            "conversation_memory": apply_memory_updates(
                context.conversation_memory, state["draft_memory"]
            )
        }
    )
    intent = parse_intent(state["resolved_query"], augmented)

    if needs_client_context(intent) and context.active_client_id is None:
        logger.debug("Intent %s needs an active client, asking for one", intent.type)
        return {"intent": intent, "needs_clarification": True}

    return {
        "context": augmented,
        "intent": intent,
        "needs_clarification": False,
        "draft_memory": merge_memory_diffs(
            state["draft_memory"], ConversationMemory(last_topic=intent.type.value.lower())
        ),
    }


def clarify_node(state: QueryState) -> dict:
    return {"response": handlers.clarification_response()}


def _make_handler_node(handler: Handler, services: DataServices):
    """Bind *handler* to the data services for use as a graph node."""

    async def handler_node(state: QueryState) -> dict:
        response = await handler(state["intent"], state["context"], services)
        return {"response": response}

    return handler_node


# ── Conditional edge ─────────────────────────────────────────────────


def route_by_intent(state: QueryState) -> str:
    """Name of the node that answers the routed intent."""
    if state.get("needs_clarification"):
        return "clarify"

    intent = state["intent"]
    if isinstance(intent, BudgetAnalysisIntent):
        return "budget"
    if isinstance(intent, ProgressTrackingIntent):
        return "progress"
    if isinstance(intent, StrategyRecommendationIntent):
        return "strategy"
    if isinstance(intent, CombinedInsightsIntent):
        return "combined_insights"
    if isinstance(intent, DatabaseStatisticsIntent):
        return "statistics"
    if isinstance(intent, GeneralQuestionIntent):
        return "general"
    assert_never(intent)


HANDLER_NODES: dict[str, Handler] = {
    "budget": handlers.handle_budget,
    "progress": handlers.handle_progress,
    "strategy": handlers.handle_strategy,
    "combined_insights": handlers.handle_combined_insights,
    "statistics": handlers.handle_statistics,
    "general": handlers.handle_general,
}


# ── Graph assembly ───────────────────────────────────────────────────


def create_query_graph(services: DataServices):
    """Build and compile the query pipeline graph.

    Returns a compiled graph that can be invoked with:
        await graph.ainvoke({"query": "...", "context": QueryContext(...)})
    """
    graph = StateGraph(QueryState)

    graph.add_node("extract", extract_node)
    graph.add_node("router", router_node)
    graph.add_node("clarify", clarify_node)
    for name, handler in HANDLER_NODES.items():
        graph.add_node(name, _make_handler_node(handler, services))

    graph.set_entry_point("extract")
    graph.add_edge("extract", "router")

    destinations = ["clarify", *HANDLER_NODES]
    graph.add_conditional_edges("router", route_by_intent, {name: name for name in destinations})
    for name in destinations:
        graph.add_edge(name, END)

    compiled = graph.compile()
    logger.debug("Query graph compiled with %d answer nodes", len(destinations))
    return compiled


class QueryProcessor:
    """Single entry point for answering dashboard questions."""

    def __init__(self, services: DataServices) -> None:
        self._services = services
        self._graph = create_query_graph(services)

    async def process_query(self, query: str, context: QueryContext) -> AgentResponse:
        """Answer *query* in the light of *context*.

        Never raises: anything a handler did not already turn into a
        degraded answer is classified here.
        """
        started = time.perf_counter()
        intent_label = "UNPARSED"
        try:
            state = await self._graph.ainvoke({"query": query, "context": context})
            intent_label = state["intent"].type.value
            response = state["response"]
            response = response.model_copy(
                update={
                    "memory_updates": merge_memory_diffs(state["draft_memory"], response.memory_updates),
                    "detected_entities": state["entities"],
                }
            )
            if state.get("needs_clarification"):
                outcome = "clarification"
            elif response.memory_updates.last_topic == ERROR_RECOVERY_TOPIC:
                outcome = "degraded"
            else:
                outcome = "answered"
        except Exception as exc:
            logger.exception("Query processing failed for %r", query)
            response = error_response(exc)
            outcome = "failed"

        elapsed = (time.perf_counter() - started) * 1000
        metrics.record_query(intent_label, outcome, elapsed)
        logger.debug("Query %r -> %s/%s in %.0fms", query, intent_label, outcome, elapsed)
        return response

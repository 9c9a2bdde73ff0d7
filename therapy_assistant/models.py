"""Pydantic data model shared by the query engine and its callers.

Two families of models live here:

* **Conversation types**: ``Message``, ``ExtractedEntity``,
  ``ConversationMemory``, ``QueryContext`` and ``AgentResponse``.  These
  are the only objects that cross the ``process_query`` boundary.
* **Analysis types** returned by the external data services
  (``BudgetAnalysis``, ``ProgressAnalysis``, ``Strategy`` …).  The
  dashboard API speaks camelCase JSON, so every model accepts camelCase
  aliases as well as snake_case field names.

``ConversationMemory`` doubles as the *diff* type: a memory update is a
``ConversationMemory`` whose explicitly-set fields (``model_fields_set``)
are the ones to overwrite.
"""

from __future__ import annotations

import uuid
from datetime import UTC, date, datetime
from enum import StrEnum
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ── Conversation types ───────────────────────────────────────────────


class EntityType(StrEnum):
    CLIENT_NAME = "ClientName"
    CLIENT_ID = "ClientID"
    GOAL_NAME = "GoalName"
    GOAL_ID = "GoalID"
    DATE = "Date"
    CATEGORY = "Category"
    AMOUNT = "Amount"
    CONCEPT = "Concept"


CLIENT_ENTITY_TYPES = frozenset({EntityType.CLIENT_NAME, EntityType.CLIENT_ID})


class EntityPosition(_CamelModel):
    model_config = ConfigDict(frozen=True)

    start: int
    end: int


class ExtractedEntity(_CamelModel):
    """A typed span of query text.  ``query[start:end] == text`` always holds."""

    model_config = ConfigDict(frozen=True)

    text: str
    type: EntityType
    value: str | int | float | date | None = None
    position: EntityPosition

    @property
    def key(self) -> tuple[str, EntityType]:
        """Deduplication key used by the memory window."""
        return (self.text, self.type)


class Message(_CamelModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    role: Literal["user", "assistant"]
    content: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    confidence: float | None = None
    data: Any = None
    suggested_follow_ups: list[str] | None = None
    entities: list[ExtractedEntity] | None = None


class ContextCarryover(_CamelModel):
    subject: str | None = None
    timeframe: str | None = None
    category: str | None = None


class ConversationMemory(_CamelModel):
    last_query: str | None = None
    last_topic: str | None = None
    recent_entities: list[ExtractedEntity] | None = None
    active_filters: dict[str, Any] | None = None
    context_carryover: ContextCarryover | None = None


class QueryContext(_CamelModel):
    active_client_id: int | None = None
    active_budget_id: int | None = None
    active_goal_id: int | None = None
    conversation_history: list[Message] = Field(default_factory=list)
    conversation_memory: ConversationMemory | None = None


class VisualizationHint(StrEnum):
    BUBBLE_CHART = "BUBBLE_CHART"
    PROGRESS_CHART = "PROGRESS_CHART"
    COMBINED_INSIGHTS = "COMBINED_INSIGHTS"
    NONE = "NONE"


class AgentResponse(_CamelModel):
    content: str
    confidence: float = Field(ge=0.0, le=1.0)
    data: Any = None
    visualization_hint: VisualizationHint | None = None
    suggested_follow_ups: list[str] | None = None
    detected_entities: list[ExtractedEntity] | None = None
    memory_updates: ConversationMemory | None = None


# ── Analysis types (external data services) ──────────────────────────


class SpendingPatterns(_CamelModel):
    trend: Literal["increasing", "decreasing", "stable", "fluctuating"] = "stable"
    high_usage_categories: list[str] = Field(default_factory=list)
    projected_overages: list[str] = Field(default_factory=list)


class BudgetAnalysis(_CamelModel):
    total_budget: float
    total_allocated: float = 0.0
    total_spent: float
    remaining: float
    utilization_rate: float
    forecasted_depletion: date | datetime
    spending_by_category: dict[str, float] | None = None
    spending_patterns: SpendingPatterns | None = None
    spending_velocity: float | None = None


class Milestone(_CamelModel):
    milestone_id: int
    title: str = Field(validation_alias=AliasChoices("title", "milestoneTitle"))
    completed: bool = False
    last_rating: float | None = None


class GoalProgress(_CamelModel):
    goal_id: int
    goal_title: str
    progress: float
    milestones: list[Milestone] = Field(default_factory=list)


class ProgressAnalysis(_CamelModel):
    overall_progress: float
    attendance_rate: float
    sessions_completed: int = 0
    sessions_cancelled: int = 0
    goal_progress: list[GoalProgress] = Field(default_factory=list)


class Strategy(_CamelModel):
    id: int
    name: str
    description: str | None = None
    category: str | None = None


class Goal(_CamelModel):
    id: int
    client_id: int | None = None
    title: str = ""
    description: str | None = None
    category: str | None = None


class Subgoal(_CamelModel):
    id: int
    goal_id: int | None = None
    title: str = ""
    description: str | None = None
    status: str | None = None


class Client(_CamelModel):
    id: int
    name: str = ""
    date_of_birth: date | None = None
    preferred_language: str | None = None


class ClientStatistics(_CamelModel):
    total_clients: int = 0
    active_clients: int = 0
    new_clients_last_month: int = 0
    age_groups: dict[str, int] = Field(default_factory=dict)
    average_progress: float | None = None


class BudgetKnowledge(_CamelModel):
    categories: list[str] = Field(default_factory=list)
    avg_allocation_by_category: dict[str, float] = Field(default_factory=dict)
    top_funding_source: str | None = None
    avg_budget_size: float = 0.0
    budget_count: int = 0
    budgeting_approach: str | None = None
    budgeting_description: str | None = None
    avg_utilization_rate: float | None = None
    high_usage_categories: list[str] = Field(default_factory=list)


class ProgressKnowledge(_CamelModel):
    avg_overall_progress: float = 0.0
    avg_attendance_rate: float = 0.0
    avg_goals_per_client: float = 0.0
    avg_subgoals_per_goal: float = 0.0
    top_goal_categories: list[str] = Field(default_factory=list)
    total_goals: int = 0


class StrategyUsage(_CamelModel):
    name: str
    effectiveness: float | None = None
    usage_count: int | None = None


class StrategyKnowledge(_CamelModel):
    strategy_categories: list[str] = Field(default_factory=list)
    strategy_count: dict[str, int] = Field(default_factory=dict)
    effective_strategies: list[StrategyUsage] = Field(default_factory=list)
    most_used_strategies: list[StrategyUsage] = Field(default_factory=list)
    total_strategies: int = 0


# ── Dashboard records (raw rows the analyses are derived from) ───────


class BudgetSettings(_CamelModel):
    id: int | None = None
    client_id: int | None = None
    ndis_funds: float = 0.0
    end_date: date | None = None


class BudgetItem(_CamelModel):
    id: int
    category: str | None = None
    unit_price: float = 0.0
    quantity: float = 0.0


class Session(_CamelModel):
    id: int
    status: str = "scheduled"
    session_date: datetime | None = Field(
        default=None, validation_alias=AliasChoices("sessionDate", "session_date", "date")
    )


class MilestoneAssessment(_CamelModel):
    subgoal_id: int
    rating: float | None = None
    created_at: datetime | None = None

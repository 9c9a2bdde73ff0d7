"""Condition-driven response templates.

A ``ResponseTemplate`` is a text with ``{{var}}`` / ``{{var.sub}}``
placeholders, a condition over the template data, a priority and an
optional list of follow-up questions.  Tables are static, one per answer
category.

Selection keeps every template whose condition holds and takes the one
with the highest priority; equal priorities keep table order.  When no
template matches, the general fallback (``GENERAL_TEMPLATES[0]``) is used.

Rendering never fails: a placeholder with no matching data stays in the
output verbatim, which makes gaps visible instead of silently blank.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from therapy_assistant.intents import IntentType

TemplateData = Mapping[str, Any]

_PLACEHOLDER_RE = re.compile(r"\{\{(\w+)(\.(\w+))?\}\}")

ERROR_CATEGORY = "ERROR"


@dataclass(frozen=True)
class ResponseTemplate:
    template: str
    conditions: Callable[[TemplateData], bool]
    priority: int
    follow_ups: tuple[str, ...] = field(default_factory=tuple)


def _general(subtopic: str) -> Callable[[TemplateData], bool]:
    return lambda data: bool(data.get("is_general")) and data.get("subtopic") == subtopic


def _specific(query: str) -> Callable[[TemplateData], bool]:
    return lambda data: not data.get("is_general") and data.get("specific_query") == query


def _topic_in(*topics: str) -> Callable[[TemplateData], bool]:
    return lambda data: data.get("topic") in topics


def _error(error_type: str) -> Callable[[TemplateData], bool]:
    return lambda data: data.get("error_type") == error_type


# ── General (also the global fallback) ───────────────────────────────

GENERAL_TEMPLATES: tuple[ResponseTemplate, ...] = (
    ResponseTemplate(
        template=(
            "I'm an assistant for your therapy practice management system. I can help "
            "with budget analysis, progress tracking, strategy recommendations, and "
            "generating insights from combined data. What would you like to know?"
        ),
        conditions=lambda data: True,
        priority=0,
        follow_ups=(
            "Show me budget analysis for a client",
            "What's the overall progress for my clients?",
            "Recommend strategies for speech development goals",
            "Give me insights on budget utilization patterns",
        ),
    ),
    ResponseTemplate(
        template=(
            "Session planning is a critical part of effective therapy. Consider using "
            "the calendar to schedule upcoming sessions and reviewing past session "
            "notes for continuity."
        ),
        conditions=_topic_in("session planning"),
        priority=2,
        follow_ups=(
            "How many sessions has this client attended?",
            "What strategies work well for session activities?",
        ),
    ),
    ResponseTemplate(
        template=(
            "Efficient report writing is important for documentation. You can create "
            "comprehensive reports using the session notes feature, which lets you "
            "track performance assessments and milestone achievements."
        ),
        conditions=_topic_in("report writing"),
        priority=2,
        follow_ups=(
            "What's the overall progress for this client?",
            "Which milestones have been completed?",
        ),
    ),
    ResponseTemplate(
        template=(
            "For billing inquiries, you can review budget utilization in client "
            "profiles. Each therapy session can be linked to specific budget items "
            "for accurate tracking."
        ),
        conditions=_topic_in("billing"),
        priority=2,
        follow_ups=(
            "How much budget is remaining?",
            "Which budget categories have the highest utilization?",
        ),
    ),
    ResponseTemplate(
        template=(
            "Our system supports managing therapy for clients with {{topic}} needs. "
            "You can track goals, monitor progress, and get strategy recommendations "
            "specific to this area."
        ),
        conditions=_topic_in("autism", "child development", "speech therapy", "occupational therapy"),
        priority=2,
        follow_ups=(
            "What strategies do you recommend for this area?",
            "How is this client progressing on their goals?",
        ),
    ),
    ResponseTemplate(
        template=(
            "I can help you manage client information, track goals and progress, "
            "analyze budgets, and provide therapy strategy recommendations. What "
            "specific information about {{topic}} do you need?"
        ),
        conditions=lambda data: bool(data.get("topic")),
        priority=1,
    ),
)

# ── Budget ───────────────────────────────────────────────────────────

BUDGET_TEMPLATES: tuple[ResponseTemplate, ...] = (
    ResponseTemplate(
        template=(
            "The average budget size across our clients is {{avg_budget_size}}. "
            "Budget allocations tend to focus most heavily on {{top_category}} services."
        ),
        conditions=_general("statistics"),
        priority=1,
        follow_ups=(
            "How do budgets compare across different conditions?",
            "What affects budget allocation decisions?",
            "Are there seasonal patterns in budget usage?",
        ),
    ),
)

# ── Progress ─────────────────────────────────────────────────────────

PROGRESS_TEMPLATES: tuple[ResponseTemplate, ...] = (
    ResponseTemplate(
        template=(
            "Our clients typically achieve an average progress rate of {{avg_progress}}% "
            "across their therapy goals. The average attendance rate is {{avg_attendance}}%."
        ),
        conditions=_general("overview"),
        priority=1,
        follow_ups=(
            "What factors contribute to better progress rates?",
            "How does attendance affect overall progress?",
            "What are typical therapy milestones?",
        ),
    ),
)

# ── Strategy ─────────────────────────────────────────────────────────

STRATEGY_TEMPLATES: tuple[ResponseTemplate, ...] = (
    ResponseTemplate(
        template=(
            "Our practice uses {{total_strategies}} therapeutic strategies across "
            "{{category_count}} categories. The most widely used include {{top_strategies}}."
        ),
        conditions=_general("overview"),
        priority=1,
        follow_ups=(
            "What makes these strategies effective?",
            "How are strategies evaluated?",
            "Which strategies work well together?",
        ),
    ),
    ResponseTemplate(
        template=(
            "For {{category}} goals, our most effective strategies are "
            "{{category_strategies}}. These are particularly effective for {{effective_for}}."
        ),
        conditions=_general("category"),
        priority=1,
        follow_ups=(
            "What other categories of strategies exist?",
            "How are these strategies implemented?",
            "How do you measure strategy effectiveness?",
        ),
    ),
)

# ── Combined insights ────────────────────────────────────────────────

INSIGHT_TEMPLATES: tuple[ResponseTemplate, ...] = (
    ResponseTemplate(
        template=(
            "Overall insights for {{client_name}}: Budget utilization is at "
            "{{utilization_rate}}% with {{remaining}} remaining. Progress across goals "
            "is at {{overall_progress}}%. {{combined_assessment}}"
        ),
        conditions=_specific("OVERALL"),
        priority=1,
        follow_ups=(
            "How do budget usage and progress correlate?",
            "What areas need the most attention?",
            "What's working particularly well?",
        ),
    ),
    ResponseTemplate(
        template=(
            "Budget-focused insights for {{client_name}}: {{budget_insight}} This relates "
            "to their progress in the following way: {{progress_relation}}"
        ),
        conditions=_specific("BUDGET_FOCUS"),
        priority=1,
        follow_ups=(
            "How might budget adjustments improve outcomes?",
            "Are there better ways to allocate the remaining budget?",
            "What's the cost-effectiveness of current services?",
        ),
    ),
    ResponseTemplate(
        template=(
            "Progress-focused insights for {{client_name}}: {{progress_insight}} This has "
            "the following budget implications: {{budget_implication}}"
        ),
        conditions=_specific("PROGRESS_FOCUS"),
        priority=1,
        follow_ups=(
            "What strategies would accelerate progress?",
            "How do these insights compare to similar clients?",
            "What measurable goals should we set next?",
        ),
    ),
)

# ── Errors ───────────────────────────────────────────────────────────

_RECOVERY_FOLLOW_UPS = (
    "Try asking your question again",
    "Show me the dashboard overview",
    "What information can you provide?",
)

ERROR_TEMPLATES: tuple[ResponseTemplate, ...] = (
    ResponseTemplate(
        template=(
            "I'm having trouble connecting to the server. Please check your internet "
            "connection and try again in a moment."
        ),
        conditions=_error("network"),
        priority=1,
        follow_ups=_RECOVERY_FOLLOW_UPS,
    ),
    ResponseTemplate(
        template=(
            "I don't have permission to access that information. Please check your "
            "user permissions or log in again."
        ),
        conditions=_error("permission"),
        priority=1,
        follow_ups=_RECOVERY_FOLLOW_UPS,
    ),
    ResponseTemplate(
        template=(
            "I couldn't find the information you're looking for. It may have been "
            "moved or deleted."
        ),
        conditions=_error("not_found"),
        priority=1,
        follow_ups=_RECOVERY_FOLLOW_UPS,
    ),
    ResponseTemplate(
        template=(
            "The server took too long to respond. Please try again when the system "
            "is less busy."
        ),
        conditions=_error("timeout"),
        priority=1,
        follow_ups=_RECOVERY_FOLLOW_UPS,
    ),
    ResponseTemplate(
        template=(
            "I encountered an unexpected error while processing your question. Please "
            "try again with a simpler query or contact support if the issue persists."
        ),
        conditions=_error("unknown"),
        priority=1,
        follow_ups=_RECOVERY_FOLLOW_UPS,
    ),
)

TEMPLATE_TABLES: dict[str, tuple[ResponseTemplate, ...]] = {
    IntentType.BUDGET_ANALYSIS: BUDGET_TEMPLATES,
    IntentType.PROGRESS_TRACKING: PROGRESS_TEMPLATES,
    IntentType.STRATEGY_RECOMMENDATION: STRATEGY_TEMPLATES,
    IntentType.COMBINED_INSIGHTS: INSIGHT_TEMPLATES,
    IntentType.GENERAL_QUESTION: GENERAL_TEMPLATES,
    ERROR_CATEGORY: ERROR_TEMPLATES,
}


def select_template(
    templates: tuple[ResponseTemplate, ...],
    data: TemplateData,
) -> ResponseTemplate:
    """Highest-priority template whose condition holds, or the general fallback."""
    matching = [t for t in templates if t.conditions(data)]
    if not matching:
        return GENERAL_TEMPLATES[0]
    # sorted() is stable, so equal priorities keep table order.
    return sorted(matching, key=lambda t: t.priority, reverse=True)[0]


def _lookup(data: TemplateData, name: str, sub: str | None) -> Any:
    value = data.get(name)
    if value is None or sub is None:
        return value
    if isinstance(value, Mapping):
        return value.get(sub)
    return getattr(value, sub, None)


def render_template(template: str, data: TemplateData) -> str:
    def _replace(match: re.Match[str]) -> str:
        value = _lookup(data, match.group(1), match.group(3))
        return match.group() if value is None else str(value)

    return _PLACEHOLDER_RE.sub(_replace, template)


def generate_response(category: str, data: TemplateData) -> tuple[str, list[str]]:
    """Render the best template of *category* and return ``(content, follow_ups)``.

    Unknown categories use the general table.
    """
    templates = TEMPLATE_TABLES.get(category, GENERAL_TEMPLATES)
    selected = select_template(templates, data)
    return render_template(selected.template, data), list(selected.follow_ups)

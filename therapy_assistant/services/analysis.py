"""Budget and progress analyses derived from raw dashboard records.

The dashboard API exposes rows (budget settings, budget items, sessions,
goals, subgoals, milestone assessments); the query engine wants the
aggregated ``BudgetAnalysis`` / ``ProgressAnalysis`` shapes.  These pure
functions bridge the two so the HTTP data services stay thin.

Spending model: each completed session costs ``SESSION_COST``; category
spend is that total split in proportion to each category's allocation.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import UTC, datetime, timedelta

from therapy_assistant.models import (
    BudgetAnalysis,
    BudgetItem,
    BudgetSettings,
    Goal,
    GoalProgress,
    Milestone,
    MilestoneAssessment,
    ProgressAnalysis,
    Session,
    Subgoal,
)

SESSION_COST = 150.0
COMPLETED_STATUSES = frozenset({"completed", "billed"})
CANCELLED_STATUS = "cancelled"
MILESTONE_COMPLETE_RATING = 4
SUBGOAL_COMPLETE_STATUS = "complete"
DEFAULT_FORECAST_HORIZON = timedelta(days=365)


# ── Budget ───────────────────────────────────────────────────────────


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=UTC)


def _completed(sessions: Iterable[Session]) -> list[Session]:
    return [s for s in sessions if s.status == "completed"]


def spent_amount(sessions: Iterable[Session]) -> float:
    return SESSION_COST * len(_completed(sessions))


def spending_by_category(items: Iterable[BudgetItem], total_spent: float) -> dict[str, float]:
    allocated: dict[str, float] = {}
    for item in items:
        category = item.category or "Other"
        allocated[category] = allocated.get(category, 0.0) + item.unit_price * item.quantity

    total = sum(allocated.values())
    if total <= 0:
        return allocated
    return {category: total_spent * amount / total for category, amount in allocated.items()}


def forecast_depletion(
    total_budget: float,
    total_spent: float,
    sessions: Iterable[Session],
    now: datetime | None = None,
) -> datetime:
    """Date the remaining funds run out at the observed daily spend rate.

    Already-depleted budgets forecast *now*; with no dated completed
    sessions to derive a rate from, the forecast is one year out.
    """
    now = now or datetime.now(UTC)
    remaining = total_budget - total_spent
    if remaining <= 0:
        return now

    dates = [_aware(s.session_date) for s in _completed(sessions) if s.session_date is not None]
    if not dates:
        return now + DEFAULT_FORECAST_HORIZON

    days_elapsed = max(1, round((max(dates) - min(dates)).total_seconds() / 86400))
    daily_rate = total_spent / days_elapsed
    if daily_rate <= 0:
        return now + DEFAULT_FORECAST_HORIZON
    return now + timedelta(days=round(remaining / daily_rate))


def analyze_budget(
    settings: BudgetSettings | None,
    items: list[BudgetItem],
    sessions: list[Session],
    now: datetime | None = None,
) -> BudgetAnalysis:
    total_budget = settings.ndis_funds if settings else 0.0
    total_spent = spent_amount(sessions)
    return BudgetAnalysis(
        total_budget=total_budget,
        total_allocated=sum(item.unit_price * item.quantity for item in items),
        total_spent=total_spent,
        remaining=total_budget - total_spent,
        utilization_rate=(total_spent / total_budget) * 100 if total_budget > 0 else 0.0,
        forecasted_depletion=forecast_depletion(total_budget, total_spent, sessions, now),
        spending_by_category=spending_by_category(items, total_spent),
    )


# ── Progress ─────────────────────────────────────────────────────────


def attendance_rate(sessions: Iterable[Session]) -> float:
    """Completed sessions as a percentage of completed plus cancelled."""
    sessions = list(sessions)
    completed = sum(1 for s in sessions if s.status in COMPLETED_STATUSES)
    cancelled = sum(1 for s in sessions if s.status == CANCELLED_STATUS)
    scheduled = completed + cancelled
    return (completed / scheduled) * 100 if scheduled else 0.0


def _latest(assessments: list[MilestoneAssessment]) -> MilestoneAssessment | None:
    if not assessments:
        return None
    epoch = datetime.min.replace(tzinfo=UTC)
    return max(assessments, key=lambda a: _aware(a.created_at) if a.created_at else epoch)


def goal_progress(
    goal: Goal,
    subgoals: list[Subgoal],
    assessments: list[MilestoneAssessment],
) -> GoalProgress:
    milestones: list[Milestone] = []
    for subgoal in subgoals:
        last = _latest([a for a in assessments if a.subgoal_id == subgoal.id])
        rating = last.rating if last else None
        completed = (rating is not None and rating >= MILESTONE_COMPLETE_RATING) or (
            subgoal.status == SUBGOAL_COMPLETE_STATUS
        )
        milestones.append(
            Milestone(milestone_id=subgoal.id, title=subgoal.title, completed=completed, last_rating=rating)
        )

    done = sum(1 for m in milestones if m.completed)
    return GoalProgress(
        goal_id=goal.id,
        goal_title=goal.title,
        progress=(done / len(milestones)) * 100 if milestones else 0.0,
        milestones=milestones,
    )


def analyze_progress(
    sessions: list[Session],
    goals: list[Goal],
    subgoals_by_goal: Mapping[int, list[Subgoal]],
    assessments: list[MilestoneAssessment],
) -> ProgressAnalysis:
    goals_progress = [
        goal_progress(goal, subgoals_by_goal.get(goal.id, []), assessments) for goal in goals
    ]
    overall = (
        sum(g.progress for g in goals_progress) / len(goals_progress) if goals_progress else 0.0
    )
    return ProgressAnalysis(
        overall_progress=overall,
        attendance_rate=attendance_rate(sessions),
        sessions_completed=sum(1 for s in sessions if s.status in COMPLETED_STATUSES),
        sessions_cancelled=sum(1 for s in sessions if s.status == CANCELLED_STATUS),
        goal_progress=goals_progress,
    )

"""Narration lookup tables.

Each function maps numeric analysis fields to a fixed sentence.  The cut
points are exact and part of the observable behavior.
"""

from __future__ import annotations

from datetime import date, datetime

from therapy_assistant.models import BudgetAnalysis, ProgressAnalysis

# (minimum progress, sentence), checked top-down.
GOAL_PROGRESS_NARRATION: tuple[tuple[float, str], ...] = (
    (90, "Excellent progress has been made!"),
    (75, "Very good progress has been made."),
    (50, "Good progress is being made."),
    (25, "Some progress has been made, but there's room for improvement."),
)
LIMITED_PROGRESS = "Progress has been limited. Additional interventions may be needed."

TREND_WORDS: dict[str, str] = {
    "increasing": "accelerating",
    "decreasing": "decelerating",
    "fluctuating": "fluctuating",
}

TREND_INSIGHTS: dict[str, str] = {
    "increasing": "Spending is accelerating compared to previous periods.",
    "decreasing": (
        "Spending is decelerating compared to previous periods, which is positive "
        "for budget longevity."
    ),
    "fluctuating": "Spending patterns are fluctuating, which may make forecasting less predictable.",
}

VELOCITY_THRESHOLD = 0.3
ACCELERATING_NOTE = "Note that spending is accelerating, which may shorten the budget lifespan."
DECELERATING_NOTE = "Positively, spending is decelerating, which may extend the budget lifespan."

ATTENTION_THRESHOLD = 50


def goal_progress_assessment(progress: float) -> str:
    for minimum, sentence in GOAL_PROGRESS_NARRATION:
        if progress >= minimum:
            return sentence
    return LIMITED_PROGRESS


def overall_progress_assessment(progress: float, attendance: float) -> str:
    """Combine overall progress and attendance rate into one sentence."""
    if progress < 30 and attendance < 70:
        return (
            "Low attendance may be impacting progress. Consider discussing attendance "
            "challenges with the client."
        )
    if progress < 30:
        return (
            "Despite good attendance, progress has been limited. Consider reviewing "
            "the therapy approach."
        )
    if progress >= 70 and attendance >= 80:
        return "Excellent progress and attendance! The current therapy approach is working well."
    if progress >= 50:
        return "Good progress is being made on the established goals."
    return "Progress is ongoing. Regular reassessment of goals and strategies may be beneficial."


def progress_word(progress: float) -> str:
    """Single adjective used inside the progress templates."""
    if progress >= 90:
        return "excellent"
    if progress >= 75:
        return "very good"
    if progress >= 50:
        return "good"
    if progress >= 25:
        return "some"
    return "limited"


def trend_word(trend: str | None) -> str:
    return TREND_WORDS.get(trend or "stable", "stable")


def velocity_note(velocity: float | None) -> str | None:
    if velocity is None:
        return None
    if velocity > VELOCITY_THRESHOLD:
        return ACCELERATING_NOTE
    if velocity < -VELOCITY_THRESHOLD:
        return DECELERATING_NOTE
    return None


def _are_or_is(items: list[str]) -> str:
    return "are" if len(items) > 1 else "is"


def overage_warning(overages: list[str], suffix: str = "budget allocation") -> str:
    return f"Warning: {', '.join(overages)} {_are_or_is(overages)} projected to exceed {suffix}."


def pattern_insights(analysis: BudgetAnalysis) -> str:
    """Trend and overage sentences for *analysis*, or ``""`` without pattern data."""
    patterns = analysis.spending_patterns
    if patterns is None:
        return ""
    insights: list[str] = []
    trend = TREND_INSIGHTS.get(patterns.trend)
    if trend:
        insights.append(trend)
    if patterns.projected_overages:
        insights.append(overage_warning(patterns.projected_overages))
    return " ".join(insights)


def most_utilized_category(spending_by_category: dict[str, float] | None) -> str:
    best_category, best_amount = "unknown", 0.0
    for category, amount in (spending_by_category or {}).items():
        if amount > best_amount:
            best_category, best_amount = category, amount
    return best_category


def format_money(amount: float) -> str:
    return f"${amount:.2f}"


_MONTH_NAMES = (
    "January", "February", "March", "April", "May", "June", "July",
    "August", "September", "October", "November", "December",
)


def format_long_date(value: date | datetime) -> str:
    """``March 5, 2025`` style, independent of the process locale."""
    return f"{_MONTH_NAMES[value.month - 1]} {value.day}, {value.year}"


# ── Combined budget and progress ─────────────────────────────────────


def budget_utilization_insight(budget: BudgetAnalysis) -> str:
    rate, remaining = budget.utilization_rate, format_money(budget.remaining)
    if rate > 80:
        return (
            f"Budget utilization is high at {rate:.1f}%, with {remaining} remaining. "
            "Review budget allocation and consider additional funding sources."
        )
    if rate < 20:
        return (
            f"Budget utilization is low at {rate:.1f}%, with {remaining} remaining. "
            "Consider allocating resources to additional therapy interventions."
        )
    return f"Budget utilization is {rate:.1f}%, with {remaining} remaining."


def progress_insight(progress: ProgressAnalysis, client_name: str) -> str:
    overall = progress.overall_progress
    if overall > 75:
        return (
            f"{client_name} is making excellent progress ({overall:.1f}%) toward therapy goals. "
            "Consider setting more advanced goals based on current progress."
        )
    if overall < 30:
        return (
            f"{client_name} is making limited progress ({overall:.1f}%) toward therapy goals. "
            "Review therapy approach and goals for appropriate level of challenge."
        )
    return f"{client_name} is making steady progress ({overall:.1f}%) toward therapy goals."


def progress_relation(budget: BudgetAnalysis, progress: ProgressAnalysis) -> str:
    """How spending relates to outcomes, from the efficiency cut points."""
    sentences: list[str] = []
    if progress.overall_progress > 60 and budget.utilization_rate < 50:
        sentences.append("Strong progress is being achieved with efficient budget utilization.")
    elif progress.overall_progress < 30 and budget.utilization_rate > 60:
        sentences.append(
            "High budget utilization with limited progress suggests intervention "
            "adjustments may be needed."
        )
    if progress.attendance_rate < 70 and budget.utilization_rate > 50:
        sentences.append("Low attendance is affecting therapy outcomes while still consuming budget.")
    return " ".join(sentences) or "Spending and progress are moving in step."


def budget_implication(budget: BudgetAnalysis, progress: ProgressAnalysis) -> str:
    per_point = budget.total_spent / max(progress.overall_progress, 1)
    per_session = budget.total_spent / max(progress.sessions_completed, 1)
    return (
        f"Each percentage point of progress has cost about {format_money(per_point)}, "
        f"or {format_money(per_session)} per completed session."
    )


def combined_assessment(budget: BudgetAnalysis, progress: ProgressAnalysis, client_name: str) -> str:
    overages = budget.spending_patterns.projected_overages if budget.spending_patterns else []
    budget_concern = budget.utilization_rate > 80 or bool(overages)
    progress_concern = progress.overall_progress < 30 or progress.attendance_rate < 70

    if budget_concern and progress_concern:
        return (
            "Critical intervention needed: budget concerns combined with progress challenges. "
            "A comprehensive review of the therapy plan and budget allocation is required."
        )
    if budget_concern:
        return "Budget management should be prioritized based on current utilization."
    if progress_concern:
        return "Progress improvement should be the focus of intervention."
    return f"{client_name}'s therapy plan is on track with good progress and budget management."

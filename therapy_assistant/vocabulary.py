"""Shared therapy-practice vocabulary.

Every keyword and phrase table used by the query engine lives here: the
intent parser cascades, the conversation manager's subject map, the topic
classifier and the strategy relevance scorer.  Editing a domain term
means editing this module only.

Bump ``VOCABULARY_VERSION`` whenever a table changes in a way that alters
classification results, so logs from different releases can be compared.
"""

from __future__ import annotations

VOCABULARY_VERSION = "2.2"

# ── Intent parser: first-level category terms ───────────────────────

BUDGET_TERMS: tuple[str, ...] = (
    "budget", "funds", "funding", "money", "spending", "cost", "expense",
    "financial", "allocation", "remaining", "balance", "afford",
)

PROGRESS_TERMS: tuple[str, ...] = (
    "progress", "improvement", "growth", "development", "advancement",
    "achievement", "goal", "milestone", "performance", "assessment",
    "attendance",
)

STRATEGY_TERMS: tuple[str, ...] = (
    "strategy", "strategies", "approach", "technique", "method",
    "recommendation", "recommend", "suggest", "idea", "advice", "therapy",
    "intervention", "activity", "exercise",
)

VISUALIZATION_TERMS: tuple[str, ...] = (
    "visualize", "visualise", "visualization", "chart", "graph", "plot",
    "diagram",
)

COMBINED_INSIGHT_TERMS: tuple[str, ...] = (
    "insight", "combined", "big picture", "overall picture", "holistic",
    "correlat", "relationship between", "budget and progress",
    "progress and budget", "budget vs progress",
)

DATABASE_STATISTICS_TERMS: tuple[str, ...] = (
    "how many clients", "number of clients", "total clients", "client count",
    "statistics", "stats", "demographic", "all clients", "across clients",
    "practice-wide", "across the practice", "database",
)

# ── Intent parser: second-level refinements ─────────────────────────

BUDGET_REMAINING_TERMS: tuple[str, ...] = (
    "remaining", "left", "available", "balance", "how much", "current",
)

BUDGET_FORECAST_TERMS: tuple[str, ...] = (
    "forecast", "prediction", "estimate", "projected", "when", "depletion",
    "run out", "exhaust", "future",
)

BUDGET_UTILIZATION_TERMS: tuple[str, ...] = (
    "utilization", "utilisation", "usage", "spent", "spending", "used",
    "allocation", "category",
)

PROGRESS_ATTENDANCE_TERMS: tuple[str, ...] = (
    "attendance", "attend", "session", "cancel", "missed", "show up",
)

PROGRESS_GOAL_SPECIFIC_TERMS: tuple[str, ...] = (
    "this goal", "that goal", "specific goal", "particular goal", "milestone",
)

PROGRESS_OVERALL_TERMS: tuple[str, ...] = (
    "overall", "in general", "total", "how is", "how's", "doing",
)

STRATEGY_GOAL_SPECIFIC_TERMS: tuple[str, ...] = (
    "this goal", "that goal", "for the goal", "for goal", "specific goal",
    "particular goal",
)

STRATEGY_GENERAL_TERMS: tuple[str, ...] = (
    "in general", "general", "common", "all strategies", "available strategies",
    "catalog", "catalogue", "what strategies do",
)

# A progress match that is really a request for strategies about a goal is
# handed to the strategy rule.
STRATEGY_REQUEST_TERMS: tuple[str, ...] = (
    "strategy", "strategies", "technique", "recommend", "suggest",
    "intervention", "approach",
)

GOAL_REFERENCE_TERMS: tuple[str, ...] = ("goal",)

COMBINED_BUDGET_FOCUS_TERMS: tuple[str, ...] = (
    "spending", "spend", "funds", "cost", "financial", "money",
)

COMBINED_PROGRESS_FOCUS_TERMS: tuple[str, ...] = (
    "goal", "milestone", "outcome", "improvement", "attendance",
)

STATISTICS_DEMOGRAPHICS_TERMS: tuple[str, ...] = (
    "demographic", "age group", "ages", "how old", "gender", "language",
)

STATISTICS_CATEGORY_AVERAGE_TERMS: tuple[str, ...] = (
    "average", "mean", "category", "categories", "per client",
)

STATISTICS_CLIENT_COUNT_TERMS: tuple[str, ...] = (
    "how many", "number of", "count", "total",
)

VISUALIZATION_BUDGET_TERMS: tuple[str, ...] = (
    "spend", "expense", "dollar", "usage", "utilization", "utilisation",
    "category", "categories", "item",
)

VISUALIZATION_PROGRESS_TERMS: tuple[str, ...] = (
    "attendance", "session", "outcome", "trend", "rating", "score",
)

# ── Conversation manager ────────────────────────────────────────────

PRONOUN_TERMS: tuple[str, ...] = (
    "it", "its", "this", "that", "they", "them", "these", "those", "their",
    "he", "him", "his", "she", "her", "hers",
)

GENDERED_PRONOUNS: frozenset[str] = frozenset(
    {"he", "him", "his", "she", "her", "hers"}
)
OBJECT_PRONOUNS: frozenset[str] = frozenset({"it", "this", "that"})
PLURAL_PRONOUNS: frozenset[str] = frozenset(
    {"they", "them", "these", "those", "their"}
)

# Insertion order is the lookup priority.
SUBJECT_MAP: dict[str, tuple[str, ...]] = {
    "budget": ("budget", "funds", "money", "allocation", "spending", "cost"),
    "progress": ("progress", "goal", "milestone", "advancement", "improvement"),
    "strategy": ("strategy", "approach", "technique", "method", "tactic"),
    "client": ("client", "patient", "person", "individual", "child", "adult"),
    "session": ("session", "appointment", "meeting", "visit", "attendance"),
}

# ── Entity extractor ────────────────────────────────────────────────

CATEGORY_TERMS: tuple[str, ...] = (
    "speech", "language", "motor", "cognitive", "sensory", "behavioral",
    "social",
)

# Capitalised words that usually start a sentence rather than a name.
CAPITALIZED_STOPWORDS: frozenset[str] = frozenset({
    "A", "An", "And", "Any", "Are", "Can", "Could", "Did", "Do", "Does",
    "For", "Give", "Has", "Have", "How", "I", "If", "In", "Is", "It", "List",
    "My", "On", "Please", "Show", "Tell", "The", "Their", "These", "This",
    "Those", "Was", "We", "Were", "What", "When", "Where", "Which", "Who",
    "Why", "Will", "With", "Would", "Yes", "No", "Ok", "Okay", "Thanks",
    "Hi", "Hello",
    "January", "February", "March", "April", "May", "June", "July",
    "August", "September", "October", "November", "December",
    "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday",
    "Sunday",
})

# ── Topic classifier ────────────────────────────────────────────────

# Enumeration order breaks ties.
TOPIC_TERMS: dict[str, tuple[str, ...]] = {
    "session planning": (
        "schedule", "calendar", "planning", "session plan", "next session",
        "upcoming sessions", "session notes",
    ),
    "report writing": (
        "report", "reports", "documentation", "notes", "write up",
        "progress report", "session report",
    ),
    "billing": (
        "billing", "invoice", "invoices", "payment", "claim", "claims",
        "ndis", "funding",
    ),
    "autism": (
        "autism", "autistic", "asd", "spectrum", "autism spectrum",
    ),
    "child development": (
        "toddler", "preschool", "milestones", "developmental",
        "child development", "early intervention",
    ),
    "speech therapy": (
        "speech", "articulation", "stutter", "fluency", "speech therapy",
        "speech pathology",
    ),
    "occupational therapy": (
        "occupational", "handwriting", "fine motor", "gross motor",
        "occupational therapy", "sensory processing",
    ),
}

GENERAL_ASSISTANCE_TOPIC = "general assistance"

# ── Strategy relevance scorer ───────────────────────────────────────

THERAPY_TERMS: frozenset[str] = frozenset({
    "speech", "language", "communication", "articulation", "fluency",
    "stutter", "phonology", "vocabulary", "syntax", "pragmatic",
    "motor", "sensory", "cognitive", "social", "behavioral",
    "receptive", "expressive", "comprehension", "production",
    "voice", "swallow", "memory", "attention", "executive",
    "literacy", "reading", "writing", "academic",
    "autism", "developmental", "delay", "disorder", "impairment",
})

THERAPY_PHRASES: tuple[str, ...] = (
    "speech therapy", "language delay", "developmental delay",
    "fine motor", "gross motor", "sensory processing",
    "executive function", "social skills", "expressive language",
    "receptive language", "augmentative communication",
    "alternative communication", "phonological awareness",
    "articulation disorder", "fluency disorder",
)

KEY_TERM_STOPWORDS: frozenset[str] = frozenset({
    "the", "and", "for", "with", "this", "that", "will", "able", "have",
    "from", "then", "than", "when",
})

TERM_IMPORTANCE: dict[str, float] = {
    "speech": 2,
    "language": 2,
    "motor": 2,
    "sensory": 2,
    "autism": 3,
    "phonological": 2,
    "articulation": 2,
    "fluency": 2,
    "cognitive": 2,
    "developmental": 2,
    "communication": 2,
    "social": 1.5,
    "behavioral": 1.5,
    "speech therapy": 3,
    "language delay": 3,
    "developmental delay": 3,
    "fine motor": 3,
    "gross motor": 3,
    "sensory processing": 3,
    "executive function": 3,
    "social skills": 3,
    "expressive language": 3,
    "receptive language": 3,
}

EVIDENCE_TERMS: tuple[str, ...] = ("evidence-based", "research", "study", "effective")

FOUNDATIONAL_CATEGORIES: frozenset[str] = frozenset({"Foundational", "Basic"})
FOUNDATIONAL_TERMS: tuple[str, ...] = (
    "basic", "foundational", "beginner", "initial", "first step",
)

ADVANCED_CATEGORIES: frozenset[str] = frozenset({"Advanced", "Expert"})
ADVANCED_TERMS: tuple[str, ...] = (
    "advanced", "expert", "sophisticated", "complex", "next step",
)

GENERAL_STRATEGY_CATEGORIES: frozenset[str] = frozenset({"General", "Foundational"})
GENERAL_STRATEGY_TERMS: tuple[str, ...] = ("general approach", "widely applicable")

# Age brackets, checked youngest first.
AGE_BRACKET_TERMS: dict[str, tuple[str, ...]] = {
    "early_childhood": ("toddler", "preschool", "early childhood", "young child", "pediatric"),
    "child": ("child", "elementary", "school-age", "pediatric"),
    "adolescent": ("adolescent", "teen", "teenage", "youth", "high school"),
    "adult": ("adult", "mature", "elder", "professional", "workplace"),
}

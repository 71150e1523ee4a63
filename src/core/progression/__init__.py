"""
Student progression: belts, session scoring, stripes and promotions.
"""

from .models import (
    Belt,
    FeedbackRecord,
    FeedbackSource,
    Gender,
    PerformanceRecord,
    Score,
    Skill,
    Student,
)
from .belts import BeltLedger, PointsPolicy, STANDARD_LEDGERS, WT_BELTS, standard_ledger
from .scoring import SessionDraft, session_total
from .messages import MessageWriter, TextGenerator, TextKind
from .engine import (
    ProgressionEngine,
    PromotionBlocked,
    PromotionOutcome,
    ReadinessLockedError,
    SessionCommitResult,
    StudentProgress,
    generate_parent_feedback,
)

__all__ = [
    "Belt",
    "FeedbackRecord",
    "FeedbackSource",
    "Gender",
    "PerformanceRecord",
    "Score",
    "Skill",
    "Student",
    "BeltLedger",
    "PointsPolicy",
    "STANDARD_LEDGERS",
    "WT_BELTS",
    "standard_ledger",
    "SessionDraft",
    "session_total",
    "MessageWriter",
    "TextGenerator",
    "TextKind",
    "ProgressionEngine",
    "PromotionBlocked",
    "PromotionOutcome",
    "ReadinessLockedError",
    "SessionCommitResult",
    "StudentProgress",
    "generate_parent_feedback",
]

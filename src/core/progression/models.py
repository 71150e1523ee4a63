"""
Domain models for student progression.

These models represent the core business concepts of a martial-arts club:
belts, skills, students and the history attached to them. They have no
dependencies on external frameworks, databases, or APIs.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Score(int, Enum):
    """
    Traffic-light score a coach gives for one skill in one session.

    The integer value is the number of points the score is worth.
    """
    RED = 0
    YELLOW = 1
    GREEN = 2


class Gender(Enum):
    MALE = "Male"
    FEMALE = "Female"
    OTHER = "Other"
    UNSPECIFIED = "Prefer not to say"

    @classmethod
    def parse(cls, raw: Optional[str]) -> "Gender":
        """Map a free-form cell to a gender; anything unknown is UNSPECIFIED."""
        for member in (cls.MALE, cls.FEMALE, cls.OTHER):
            if raw == member.value:
                return member
        return cls.UNSPECIFIED


class FeedbackSource(Enum):
    COACH = "coach"
    SYSTEM = "system"


@dataclass(frozen=True)
class Belt:
    """
    A rank in the club's belt ledger.

    Frozen because belts are values: the ledger defines them once and
    students only ever refer to them by id.
    """
    id: str
    name: str
    order: int
    color1: str = "#FFFFFF"
    color2: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.id.strip():
            raise ValueError("Belt id cannot be empty")
        if not self.name.strip():
            raise ValueError("Belt name cannot be empty")


@dataclass(frozen=True)
class Skill:
    """A skill graded in every class (Technique, Effort, ...)."""
    id: str
    name: str
    is_active: bool = True


@dataclass(frozen=True)
class PerformanceRecord:
    """
    One committed session for one student.

    Immutable once appended to a student's history.
    """
    date: datetime
    scores: dict[str, Optional[int]]
    bonus_points: int = 0
    note: Optional[str] = None
    coach_name: Optional[str] = None


@dataclass(frozen=True)
class FeedbackRecord:
    """A message sent to the parents, written by a coach or by the system."""
    date: datetime
    text: str
    coach_name: str
    source: FeedbackSource = FeedbackSource.COACH
    is_ai_generated: bool = False


@dataclass
class Student:
    """
    A club member and their progress on the current belt.

    `stripes` is always derived from `total_points` by the progression
    engine; nothing else should assign it.
    """
    name: str
    belt_id: str
    id: UUID = field(default_factory=uuid4)
    stripes: int = 0
    total_points: int = 0
    attendance_count: int = 0
    is_ready_for_grading: bool = False
    last_promotion_date: datetime = field(default_factory=utcnow)
    performance_history: list[PerformanceRecord] = field(default_factory=list)
    feedback_history: list[FeedbackRecord] = field(default_factory=list)
    location: str = ""
    assigned_class: str = ""
    age: Optional[int] = None
    birthday: str = ""
    gender: Gender = Gender.UNSPECIFIED
    parent_name: str = ""
    parent_email: str = ""
    parent_phone: str = ""
    join_date: date = field(default_factory=lambda: utcnow().date())
    lifetime_xp: int = 0

    def __post_init__(self) -> None:
        if self.total_points < 0:
            raise ValueError("total_points cannot be negative")
        if self.stripes < 0:
            raise ValueError("stripes cannot be negative")

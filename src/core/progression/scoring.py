"""
Session scoring.

During a class the coach fills in a traffic-light score per skill for every
attending student, plus optional bonus and homework points. All of that
lives in a SessionDraft until the session is committed; nothing here
touches a Student.

Two numbers come out of a session:
- PTS: the raw point total that counts toward stripes. Resets on promotion.
- XP: a normalized 0-100 score per class that accumulates forever.
"""

import math
from dataclasses import dataclass, field, replace
from typing import Iterable, Mapping, Optional
from uuid import UUID

from .models import Score


MAX_CLASS_XP = 100

# World rankings cap the extras so clubs can't inflate them
GLOBAL_MAX_COACH_BONUS = 2
GLOBAL_MAX_HOMEWORK_BONUS = 2


def _percent(earned: int, possible: int) -> int:
    # Half-up rounding: 87.5 -> 88, 62.5 -> 63
    return math.floor(earned / possible * MAX_CLASS_XP + 0.5)


def clamp_score(score: Optional[int]) -> Optional[int]:
    """Coerce an entered score into 0..GREEN. None means not graded."""
    if score is None:
        return None
    return max(int(Score.RED), min(int(score), int(Score.GREEN)))


def clamp_points(points: int) -> int:
    return max(0, int(points))


def class_points(scores: Iterable[Optional[int]]) -> int:
    """Raw sum of the entered scores."""
    return sum(s for s in scores if s is not None)


def session_total(
    scores: Iterable[Optional[int]],
    bonus: int = 0,
    homework: int = 0,
) -> int:
    """PTS earned in one session: entered scores plus bonus plus homework."""
    return class_points(scores) + clamp_points(bonus) + clamp_points(homework)


def class_xp(scores: Iterable[Optional[int]]) -> int:
    """
    Normalized class XP: a perfect class is always 100, however many
    skills were graded.
    """
    graded = [s for s in scores if s is not None]
    if not graded:
        return 0
    possible = len(graded) * int(Score.GREEN)
    return _percent(sum(graded), possible)


def grading_xp(
    scores: Iterable[Optional[int]],
    bonus: int = 0,
    homework: int = 0,
    bonus_enabled: bool = False,
    homework_enabled: bool = False,
) -> int:
    """
    Club-local XP for a session.

    Bonus and homework count uncapped, on both sides of the fraction, when
    the club has switched them on.
    """
    graded = [s for s in scores if s is not None]
    if not graded:
        return 0

    extra = (clamp_points(bonus) if bonus_enabled else 0) + (
        clamp_points(homework) if homework_enabled else 0
    )
    earned = sum(graded) + extra
    possible = len(graded) * int(Score.GREEN) + extra
    if possible == 0:
        return 0
    return _percent(earned, possible)


def global_grading_xp(
    scores: Iterable[Optional[int]],
    bonus: int = 0,
    homework: int = 0,
    bonus_enabled: bool = False,
    homework_enabled: bool = False,
) -> int:
    """XP for world rankings: bonus and homework capped at 2 each."""
    graded = [s for s in scores if s is not None]
    if not graded:
        return 0

    earned = sum(graded)
    possible = len(graded) * int(Score.GREEN)
    if bonus_enabled:
        earned += min(clamp_points(bonus), GLOBAL_MAX_COACH_BONUS)
        possible += GLOBAL_MAX_COACH_BONUS
    if homework_enabled:
        earned += min(clamp_points(homework), GLOBAL_MAX_HOMEWORK_BONUS)
        possible += GLOBAL_MAX_HOMEWORK_BONUS
    if possible == 0:
        return 0
    return _percent(earned, possible)


# ---------------------------------------------------------------------------
# Session draft
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SessionDraft:
    """
    Everything a coach has entered for one class, before commit.

    The draft is immutable: every edit returns a new draft. This keeps the
    scoring screen testable without a UI, and a draft can be serialized and
    sent back and forth as-is.
    """
    skill_ids: tuple[str, ...]
    attendance: Mapping[UUID, bool] = field(default_factory=dict)
    scores: Mapping[UUID, Mapping[str, Optional[int]]] = field(default_factory=dict)
    bonus: Mapping[UUID, int] = field(default_factory=dict)
    homework: Mapping[UUID, int] = field(default_factory=dict)
    notes: Mapping[UUID, str] = field(default_factory=dict)
    coach_name: str = ""

    def is_attending(self, student_id: UUID) -> bool:
        return bool(self.attendance.get(student_id))

    def scores_for(self, student_id: UUID) -> dict[str, Optional[int]]:
        """Per-skill scores for a student, None for every skill not yet graded."""
        entered = self.scores.get(student_id, {})
        return {skill_id: entered.get(skill_id) for skill_id in self.skill_ids}

    def bonus_for(self, student_id: UUID) -> int:
        return self.bonus.get(student_id, 0)

    def homework_for(self, student_id: UUID) -> int:
        return self.homework.get(student_id, 0)

    def total_for(self, student_id: UUID) -> int:
        return session_total(
            self.scores_for(student_id).values(),
            self.bonus_for(student_id),
            self.homework_for(student_id),
        )

    def is_empty_for(self, student_id: UUID) -> bool:
        """True when nothing at all was entered: no score, no bonus, no homework."""
        no_scores = all(s is None for s in self.scores_for(student_id).values())
        return no_scores and self.bonus_for(student_id) + self.homework_for(student_id) == 0

    # -- edits --------------------------------------------------------------

    def mark_attendance(self, student_id: UUID, present: bool = True) -> "SessionDraft":
        return replace(self, attendance={**self.attendance, student_id: present})

    def set_score(self, student_id: UUID, skill_id: str, score: Optional[int]) -> "SessionDraft":
        if skill_id not in self.skill_ids:
            raise ValueError(f"Skill {skill_id} is not graded in this session")
        student_scores = {**self.scores.get(student_id, {}), skill_id: clamp_score(score)}
        return replace(self, scores={**self.scores, student_id: student_scores})

    def set_bonus(self, student_id: UUID, points: int) -> "SessionDraft":
        return replace(self, bonus={**self.bonus, student_id: clamp_points(points)})

    def set_homework(self, student_id: UUID, points: int) -> "SessionDraft":
        return replace(self, homework={**self.homework, student_id: clamp_points(points)})

    def set_note(self, student_id: UUID, note: str) -> "SessionDraft":
        return replace(self, notes={**self.notes, student_id: note})

    def bulk_apply(self, score: Optional[int], student_ids: Iterable[UUID]) -> "SessionDraft":
        """
        Set every skill of every attending student in `student_ids` to one
        score, or clear them all with None. Absent students keep whatever
        they had.
        """
        value = clamp_score(score)
        scores = dict(self.scores)
        for student_id in student_ids:
            if not self.is_attending(student_id):
                continue
            scores[student_id] = {skill_id: value for skill_id in self.skill_ids}
        return replace(self, scores=scores)

    def reset(self) -> "SessionDraft":
        """Clear all entries but keep the skills and attendance."""
        return SessionDraft(
            skill_ids=self.skill_ids,
            attendance=dict(self.attendance),
            coach_name=self.coach_name,
        )

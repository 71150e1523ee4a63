"""
The stripe and promotion engine.

A student on a belt moves through three states:

    Training -> ReadyForGrading -> Promoted (Training on the next belt)

Points come in through session commits and turn into stripes. Once a
student holds a full set of stripes the coach may mark them ready for
grading; that step is always a deliberate human action, never automatic,
so earning points and passing a grading stay separate. Only a ready
student can be promoted, and promotion starts the next belt from zero.

Every method returns new Student objects instead of mutating the ones it
was given. Callers decide when to hand the result to persistence.
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Iterable, Mapping, Optional
from uuid import UUID

from .belts import BeltLedger, PointsPolicy
from .messages import TextGenerator, TextKind, fallback_text, try_generate
from .models import (
    FeedbackRecord,
    FeedbackSource,
    PerformanceRecord,
    Student,
    utcnow,
)
from .scoring import SessionDraft, global_grading_xp, grading_xp


logger = logging.getLogger(__name__)

SYSTEM_COACH_NAME = "System"


class ProgressionError(Exception):
    """Base class for progression rule violations."""
    pass


class ReadinessLockedError(ProgressionError):
    """Raised when a student is marked ready before earning all stripes."""
    pass


class PromotionBlocked(Enum):
    NOT_READY = "not_ready"
    LAST_BELT = "last_belt"


@dataclass(frozen=True)
class StudentProgress:
    """What one session commit did for one student."""
    student_id: UUID
    session_total: int
    points_before: int
    points_after: int
    stripes_before: int
    stripes_after: int
    can_mark_ready: bool
    xp_earned: int = 0
    global_xp_earned: int = 0

    @property
    def new_stripes(self) -> int:
        """Stripes earned in this session. Only used for celebrating."""
        return self.stripes_after - self.stripes_before


@dataclass
class SessionCommitResult:
    students: list[Student]
    progress: list[StudentProgress] = field(default_factory=list)

    @property
    def updated_count(self) -> int:
        return len(self.progress)

    @property
    def earned_stripes(self) -> int:
        return sum(p.new_stripes for p in self.progress)

    @property
    def summary(self) -> str:
        return f"{self.updated_count} students updated. {self.earned_stripes} new stripes earned!"


@dataclass
class PromotionOutcome:
    student: Student
    promoted: bool
    from_belt_id: str
    to_belt_id: Optional[str] = None
    blocked_by: Optional[PromotionBlocked] = None


class ProgressionEngine:
    """
    Applies sessions, readiness and promotions to students.

    Stateless apart from the club's ledger and points policy.
    """

    def __init__(
        self,
        ledger: BeltLedger,
        policy: PointsPolicy,
        bonus_enabled: bool = False,
        homework_enabled: bool = False,
    ) -> None:
        self._ledger = ledger
        self._policy = policy
        self._bonus_enabled = bonus_enabled
        self._homework_enabled = homework_enabled

    @property
    def ledger(self) -> BeltLedger:
        return self._ledger

    @property
    def policy(self) -> PointsPolicy:
        return self._policy

    # -- derived values ----------------------------------------------------

    def stripes_for(self, student: Student) -> int:
        return self._policy.stripes_for(student.total_points, student.belt_id)

    def can_mark_ready(self, student: Student) -> bool:
        """The readiness switch is unlocked once the belt's stripes are all earned."""
        return self.stripes_for(student) >= self._policy.stripes_per_belt

    # -- session commit ----------------------------------------------------

    def commit_session(
        self,
        students: Iterable[Student],
        draft: SessionDraft,
        parent_messages: Optional[Mapping[UUID, str]] = None,
        now: Optional[datetime] = None,
    ) -> SessionCommitResult:
        """
        Fold a session draft into the roster.

        Absent students and students with nothing entered come back
        unchanged. Everyone else gets the session total added to their
        points, one more attendance and a new performance record, even
        when they scored zero.
        """
        now = now or utcnow()
        parent_messages = parent_messages or {}
        result = SessionCommitResult(students=[])

        for student in students:
            if not draft.is_attending(student.id) or draft.is_empty_for(student.id):
                result.students.append(student)
                continue

            updated, progress = self._apply_session(
                student, draft, parent_messages.get(student.id), now
            )
            result.students.append(updated)
            result.progress.append(progress)

        logger.info(
            "Session committed",
            extra={
                "updated_count": result.updated_count,
                "earned_stripes": result.earned_stripes,
                "coach": draft.coach_name,
            }
        )
        return result

    def _apply_session(
        self,
        student: Student,
        draft: SessionDraft,
        parent_message: Optional[str],
        now: datetime,
    ) -> tuple[Student, StudentProgress]:
        scores = draft.scores_for(student.id)
        bonus = draft.bonus_for(student.id)
        homework = draft.homework_for(student.id)
        total = draft.total_for(student.id)

        points_before = student.total_points
        points_after = points_before + total
        stripes_before = self._policy.stripes_for(points_before, student.belt_id)
        stripes_after = self._policy.stripes_for(points_after, student.belt_id)

        xp = grading_xp(
            scores.values(), bonus, homework, self._bonus_enabled, self._homework_enabled
        )
        global_xp = global_grading_xp(
            scores.values(), bonus, homework, self._bonus_enabled, self._homework_enabled
        )

        record = PerformanceRecord(
            date=now,
            scores=dict(scores),
            bonus_points=bonus + homework,
            note=draft.notes.get(student.id) or None,
            coach_name=draft.coach_name or None,
        )
        feedback_history = list(student.feedback_history)
        if parent_message:
            feedback_history.append(
                FeedbackRecord(
                    date=now,
                    text=parent_message,
                    coach_name=draft.coach_name,
                    source=FeedbackSource.COACH,
                    is_ai_generated=True,
                )
            )

        updated = replace(
            student,
            total_points=points_after,
            stripes=stripes_after,
            attendance_count=student.attendance_count + 1,
            lifetime_xp=student.lifetime_xp + xp,
            performance_history=[*student.performance_history, record],
            feedback_history=feedback_history,
        )
        progress = StudentProgress(
            student_id=student.id,
            session_total=total,
            points_before=points_before,
            points_after=points_after,
            stripes_before=stripes_before,
            stripes_after=stripes_after,
            can_mark_ready=stripes_after >= self._policy.stripes_per_belt,
            xp_earned=xp,
            global_xp_earned=global_xp,
        )
        return updated, progress

    # -- readiness -----------------------------------------------------------

    def set_ready(self, student: Student, ready: bool) -> Student:
        """
        Mark or unmark a student as ready for grading.

        Marking requires a full set of stripes. Unmarking is always allowed.
        Points are never touched. Stripes are re-derived from the points under
        the current stripe cost.
        """
        if ready and not self.can_mark_ready(student):
            raise ReadinessLockedError(
                f"{student.name} has {self.stripes_for(student)} of "
                f"{self._policy.stripes_per_belt} stripes and cannot be marked ready yet"
            )
        return replace(student, is_ready_for_grading=ready, stripes=self.stripes_for(student))

    # -- promotion -----------------------------------------------------------

    def promote(self, student: Student, now: Optional[datetime] = None) -> PromotionOutcome:
        """
        Move a ready student to the next belt.

        Does nothing when the student is not ready or already wears the
        last belt of the ledger. There is no way back: undoing a promotion
        is not something the engine does.
        """
        if not student.is_ready_for_grading:
            return PromotionOutcome(
                student=student,
                promoted=False,
                from_belt_id=student.belt_id,
                blocked_by=PromotionBlocked.NOT_READY,
            )

        next_belt = self._ledger.next_belt(student.belt_id)
        if next_belt is None:
            return PromotionOutcome(
                student=student,
                promoted=False,
                from_belt_id=student.belt_id,
                blocked_by=PromotionBlocked.LAST_BELT,
            )

        promoted = replace(
            student,
            belt_id=next_belt.id,
            stripes=0,
            total_points=0,
            is_ready_for_grading=False,
            last_promotion_date=now or utcnow(),
        )
        logger.info(
            "Student promoted",
            extra={
                "student_id": str(student.id),
                "from_belt": student.belt_id,
                "to_belt": next_belt.id,
            }
        )
        return PromotionOutcome(
            student=promoted,
            promoted=True,
            from_belt_id=student.belt_id,
            to_belt_id=next_belt.id,
        )

    async def promote_and_announce(
        self,
        student: Student,
        text_generator: Optional[TextGenerator],
        club_name: str,
        language: str = "English",
        now: Optional[datetime] = None,
    ) -> PromotionOutcome:
        """
        Promote, then attach a congratulation message from the system.

        The belt change is decided before the message is requested. A
        failed request falls back to a fixed message; it never undoes the
        promotion.
        """
        outcome = self.promote(student, now)
        if not outcome.promoted:
            return outcome

        record = await self.announce_promotion(outcome, text_generator, club_name, language)
        outcome.student = self.add_feedback(outcome.student, record)
        return outcome

    async def announce_promotion(
        self,
        outcome: PromotionOutcome,
        text_generator: Optional[TextGenerator],
        club_name: str,
        language: str = "English",
    ) -> FeedbackRecord:
        """
        The system's congratulation record for a promotion that already
        happened. Falls back to a fixed message when generation fails.
        """
        belt = self._ledger.get(outcome.to_belt_id)
        context = {
            "student_name": outcome.student.name,
            "belt_name": belt.name if belt else outcome.to_belt_id,
            "club_name": club_name,
            "language": language,
        }
        text = await try_generate(text_generator, TextKind.PROMOTION, context)
        return FeedbackRecord(
            date=outcome.student.last_promotion_date,
            text=text or fallback_text(TextKind.PROMOTION, context),
            coach_name=SYSTEM_COACH_NAME,
            source=FeedbackSource.SYSTEM,
            is_ai_generated=text is not None,
        )

    @staticmethod
    def add_feedback(student: Student, record: FeedbackRecord) -> Student:
        return replace(student, feedback_history=[*student.feedback_history, record])


async def generate_parent_feedback(
    students: Iterable[Student],
    draft: SessionDraft,
    skill_names: Mapping[str, str],
    text_generator: Optional[TextGenerator],
    language: str = "English",
    grading_requirement_name: str = "",
) -> dict[UUID, str]:
    """
    Draft a parent message for every attending student.

    Students whose message could not be generated are simply left out of
    the returned map.
    """
    messages: dict[UUID, str] = {}
    for student in students:
        if not draft.is_attending(student.id):
            continue

        scores = draft.scores_for(student.id)
        context = {
            "student_name": student.name,
            "scores": [(skill_names.get(skill_id, skill_id), score) for skill_id, score in scores.items()],
            "note": draft.notes.get(student.id, ""),
            "bonus": draft.bonus_for(student.id),
            "homework": draft.homework_for(student.id),
            "is_ready_for_grading": student.is_ready_for_grading,
            "grading_requirement_name": grading_requirement_name,
            "language": language,
        }
        text = await try_generate(text_generator, TextKind.PARENT_FEEDBACK, context)
        if text:
            messages[student.id] = text
    return messages

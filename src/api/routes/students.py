"""
Student API endpoints.

Manual enrollment, roster listing, the ready-for-grading switch and belt
promotion. Every mutation loads the student, hands it to the core, and saves
what comes back; the core itself never touches storage.
"""

import logging
from datetime import date, datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, Field

from ...core.club import ClubConfig
from ...core.progression import Student
from ...core.progression.engine import PromotionOutcome, ReadinessLockedError
from ...core.progression.messages import TextKind, fallback_text, try_generate
from ...core.roster import UnknownBeltError, enroll_student
from ...infrastructure.storage import (
    StudentNotFoundError,
    StudentStore,
    find_student,
)
from ..dependencies import (
    AuthenticatedUser,
    ClubConfigDep,
    ProgressionEngineDep,
    StudentStoreDep,
    TextGeneratorDep,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class PerformanceItem(BaseModel):
    date: datetime
    scores: dict[str, Optional[int]]
    bonus_points: int
    note: Optional[str] = None
    coach_name: Optional[str] = None


class FeedbackItem(BaseModel):
    date: datetime
    text: str
    coach_name: str
    source: str = Field(description="coach or system")
    is_ai_generated: bool


class StudentResponse(BaseModel):
    """A student as the dashboard shows them."""
    id: UUID
    name: str
    belt_id: str
    belt_name: str
    stripes: int
    total_points: int
    points_per_stripe: int = Field(description="Points one stripe costs on the current belt")
    can_mark_ready: bool = Field(description="Whether the ready-for-grading switch is unlocked")
    is_ready_for_grading: bool
    attendance_count: int
    last_promotion_date: datetime
    location: str
    assigned_class: str
    age: Optional[int] = None
    birthday: str = ""
    gender: str
    parent_name: str = ""
    parent_email: str = ""
    parent_phone: str = ""
    join_date: date
    lifetime_xp: int
    performance_history: list[PerformanceItem] = []
    feedback_history: list[FeedbackItem] = []


class CreateStudentRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    belt: str = Field(
        description="Belt id, belt name, or 1-based position in the belt system",
        min_length=1,
    )
    stripes: int = Field(default=0, ge=0)
    location: Optional[str] = None
    assigned_class: Optional[str] = None
    age: Optional[int] = Field(default=None, ge=0, le=120)
    birthday: str = Field(default="", description="YYYY-MM-DD")
    gender: Optional[str] = None
    parent_name: str = ""
    parent_email: str = ""
    parent_phone: str = ""
    send_welcome: bool = Field(
        default=True,
        description="Draft a welcome message for the parent when an email is given",
    )


class CreateStudentResponse(BaseModel):
    student: StudentResponse
    welcome_message: Optional[str] = None


class ReadinessRequest(BaseModel):
    ready: bool


class PromotionResponse(BaseModel):
    promoted: bool
    from_belt_id: str
    to_belt_id: Optional[str] = None
    reason: Optional[str] = Field(None, description="Why nothing happened (not_ready, last_belt)")
    student: StudentResponse


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def to_student_response(student: Student, config: ClubConfig) -> StudentResponse:
    """Stripes are derived from the points under the club's current stripe cost."""
    belt = config.ledger.get(student.belt_id)
    stripes = config.policy.stripes_for(student.total_points, student.belt_id)
    return StudentResponse(
        id=student.id,
        name=student.name,
        belt_id=student.belt_id,
        belt_name=belt.name if belt else student.belt_id,
        stripes=stripes,
        total_points=student.total_points,
        points_per_stripe=config.policy.points_required(student.belt_id),
        can_mark_ready=stripes >= config.policy.stripes_per_belt,
        is_ready_for_grading=student.is_ready_for_grading,
        attendance_count=student.attendance_count,
        last_promotion_date=student.last_promotion_date,
        location=student.location,
        assigned_class=student.assigned_class,
        age=student.age,
        birthday=student.birthday,
        gender=student.gender.value,
        parent_name=student.parent_name,
        parent_email=student.parent_email,
        parent_phone=student.parent_phone,
        join_date=student.join_date,
        lifetime_xp=student.lifetime_xp,
        performance_history=[
            PerformanceItem(
                date=r.date,
                scores=r.scores,
                bonus_points=r.bonus_points,
                note=r.note,
                coach_name=r.coach_name,
            )
            for r in student.performance_history
        ],
        feedback_history=[
            FeedbackItem(
                date=r.date,
                text=r.text,
                coach_name=r.coach_name,
                source=r.source.value,
                is_ai_generated=r.is_ai_generated,
            )
            for r in student.feedback_history
        ],
    )


def load_student(store: StudentStore, student_id: UUID) -> Student:
    """Load the one student a request is about (404 if missing)."""
    try:
        return find_student(store.load_students(), student_id)
    except StudentNotFoundError:
        logger.warning("Student not found", extra={"student_id": str(student_id)})
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Student not found",
        )


def to_promotion_response(outcome: PromotionOutcome, student: Student, config: ClubConfig) -> PromotionResponse:
    return PromotionResponse(
        promoted=outcome.promoted,
        from_belt_id=outcome.from_belt_id,
        to_belt_id=outcome.to_belt_id,
        reason=outcome.blocked_by.value if outcome.blocked_by else None,
        student=to_student_response(student, config),
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get(
    "",
    response_model=list[StudentResponse],
    summary="List students",
    description="The roster, optionally filtered by location and class",
)
async def list_students(
    api_key: AuthenticatedUser,
    config: ClubConfigDep,
    store: StudentStoreDep,
    location: Optional[str] = Query(None),
    assigned_class: Optional[str] = Query(None),
) -> list[StudentResponse]:
    students = store.load_students()
    if location:
        students = [s for s in students if s.location == location]
    if assigned_class:
        students = [s for s in students if s.assigned_class == assigned_class]
    return [to_student_response(s, config) for s in students]


@router.post(
    "",
    response_model=CreateStudentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Enroll a student",
)
async def create_student(
    request: CreateStudentRequest,
    api_key: AuthenticatedUser,
    config: ClubConfigDep,
    store: StudentStoreDep,
    text_generator: TextGeneratorDep,
) -> CreateStudentResponse:
    """
    Add one student by hand.

    Belt, points, location and class follow the same rules as the bulk
    import. When a parent email is given, a welcome message is drafted
    (falling back to a fixed text if generation fails).
    """
    try:
        student = enroll_student(
            config,
            name=request.name,
            belt=request.belt,
            stripes=request.stripes,
            location=request.location,
            assigned_class=request.assigned_class,
            age=request.age,
            birthday=request.birthday,
            gender=request.gender,
            parent_name=request.parent_name,
            parent_email=request.parent_email,
            parent_phone=request.parent_phone,
        )
    except UnknownBeltError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    store.save_students([student])

    logger.info(
        "Student enrolled",
        extra={"student_id": str(student.id), "belt_id": student.belt_id}
    )

    welcome = None
    if request.send_welcome and student.parent_email:
        context = {
            "student_name": student.name,
            "club_name": config.club_name,
            "language": config.language,
        }
        welcome = await try_generate(text_generator, TextKind.PARENT_WELCOME, context)
        welcome = welcome or fallback_text(TextKind.PARENT_WELCOME, context)

    return CreateStudentResponse(
        student=to_student_response(student, config),
        welcome_message=welcome,
    )


@router.get(
    "/{student_id}",
    response_model=StudentResponse,
    summary="Get a student",
)
async def get_student(
    student_id: UUID,
    api_key: AuthenticatedUser,
    config: ClubConfigDep,
    store: StudentStoreDep,
) -> StudentResponse:
    student = load_student(store, student_id)
    return to_student_response(student, config)


@router.post(
    "/{student_id}/readiness",
    response_model=StudentResponse,
    summary="Mark or unmark ready for grading",
    responses={409: {"description": "Student has not earned all stripes yet"}},
)
async def set_readiness(
    student_id: UUID,
    request: ReadinessRequest,
    api_key: AuthenticatedUser,
    config: ClubConfigDep,
    engine: ProgressionEngineDep,
    store: StudentStoreDep,
) -> StudentResponse:
    student = load_student(store, student_id)

    try:
        updated = engine.set_ready(student, request.ready)
    except ReadinessLockedError as e:
        logger.info(
            "Readiness locked",
            extra={"student_id": str(student_id), "stripes": engine.stripes_for(student)}
        )
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    store.save_students([updated])
    return to_student_response(updated, config)


@router.post(
    "/{student_id}/promote",
    response_model=PromotionResponse,
    summary="Promote to the next belt",
    description="Only a student marked ready for grading is promoted. Otherwise nothing changes.",
)
async def promote_student(
    student_id: UUID,
    api_key: AuthenticatedUser,
    config: ClubConfigDep,
    engine: ProgressionEngineDep,
    store: StudentStoreDep,
    text_generator: TextGeneratorDep,
) -> PromotionResponse:
    """
    The new belt is saved before the congratulation message is requested,
    so a slow model never holds the promotion back. The message is then
    attached to a fresh copy of the student; anything saved for them in
    the meantime is kept.
    """
    outcome = engine.promote(load_student(store, student_id))
    if not outcome.promoted:
        return to_promotion_response(outcome, outcome.student, config)

    store.save_students([outcome.student])

    record = await engine.announce_promotion(
        outcome,
        text_generator,
        club_name=config.club_name,
        language=config.language,
    )
    announced = engine.add_feedback(load_student(store, student_id), record)
    store.save_students([announced])

    return to_promotion_response(outcome, announced, config)

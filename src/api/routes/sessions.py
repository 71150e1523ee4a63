"""
Class session API endpoints.

The scoring screen sends the whole session draft (attendance, scores,
bonus, homework, notes) in one request. Two steps are offered:

- /feedback drafts the parent messages so the coach can read them first
- /commit folds the draft into the roster and saves it

Nothing is stored between the two calls; the draft lives on the client.
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field

from ...core.club import ClubConfig
from ...core.progression import SessionDraft, Student
from ...core.progression.engine import generate_parent_feedback
from ...infrastructure.storage import StudentNotFoundError, find_student
from ..dependencies import (
    AuthenticatedUser,
    ClubConfigDep,
    ProgressionEngineDep,
    StudentStoreDep,
    TextGeneratorDep,
)
from .students import StudentResponse, to_student_response

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class SessionEntry(BaseModel):
    """What the coach entered for one student."""
    student_id: UUID
    present: bool = True
    scores: dict[str, Optional[int]] = Field(
        default_factory=dict,
        description="Skill id to score: 0 red, 1 yellow, 2 green, null not graded",
    )
    bonus: int = Field(default=0, ge=0)
    homework: int = Field(default=0, ge=0)
    note: str = Field(default="", max_length=2000)


class BulkScore(BaseModel):
    """Set every skill of every attending student to one score ('All Greens')."""
    score: Optional[int] = Field(None, description="null clears all scores")
    student_ids: Optional[list[UUID]] = Field(
        None,
        description="Students in the current filter. Defaults to everyone in the session.",
    )


class SessionRequest(BaseModel):
    coach_name: str = Field(default="", max_length=200)
    skill_ids: Optional[list[str]] = Field(
        None,
        description="Skills graded in this session. Defaults to the club's active skills.",
    )
    bulk: Optional[BulkScore] = Field(
        None,
        description="Applied before the per-student scores, which override it",
    )
    entries: list[SessionEntry] = Field(min_length=1)


class FeedbackResponse(BaseModel):
    messages: dict[UUID, str] = Field(
        description="Parent message per student. Students whose message failed are left out."
    )


class CommitRequest(SessionRequest):
    parent_messages: dict[UUID, str] = Field(
        default_factory=dict,
        description="Approved parent messages, attached to the students' feedback history",
    )


class ProgressItem(BaseModel):
    student_id: UUID
    session_total: int
    points_before: int
    points_after: int
    stripes_before: int
    stripes_after: int
    new_stripes: int
    can_mark_ready: bool
    xp_earned: int
    global_xp_earned: int


class CommitResponse(BaseModel):
    summary: str
    updated_count: int
    earned_stripes: int
    progress: list[ProgressItem]
    students: list[StudentResponse] = Field(description="The students this session changed")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def build_draft(request: SessionRequest, config: ClubConfig) -> SessionDraft:
    """Replay the request onto an empty draft using the draft's own edits."""
    skill_ids = request.skill_ids or [s.id for s in config.active_skills]
    draft = SessionDraft(skill_ids=tuple(skill_ids), coach_name=request.coach_name)

    for entry in request.entries:
        draft = draft.mark_attendance(entry.student_id, entry.present)

    if request.bulk is not None:
        targets = request.bulk.student_ids or [e.student_id for e in request.entries]
        draft = draft.bulk_apply(request.bulk.score, targets)

    for entry in request.entries:
        for skill_id, score in entry.scores.items():
            draft = draft.set_score(entry.student_id, skill_id, score)
        if entry.bonus:
            draft = draft.set_bonus(entry.student_id, entry.bonus)
        if entry.homework:
            draft = draft.set_homework(entry.student_id, entry.homework)
        if entry.note:
            draft = draft.set_note(entry.student_id, entry.note)

    return draft


def session_students(roster: list[Student], request: SessionRequest) -> list[Student]:
    try:
        return [find_student(roster, e.student_id) for e in request.entries]
    except StudentNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


def _draft_or_400(request: SessionRequest, config: ClubConfig) -> SessionDraft:
    try:
        return build_draft(request, config)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "/feedback",
    response_model=FeedbackResponse,
    summary="Draft parent messages",
    description="Write a short message to the parents of every attending student. Nothing is saved.",
)
async def preview_feedback(
    request: SessionRequest,
    api_key: AuthenticatedUser,
    config: ClubConfigDep,
    store: StudentStoreDep,
    text_generator: TextGeneratorDep,
) -> FeedbackResponse:
    draft = _draft_or_400(request, config)
    students = session_students(store.load_students(), request)

    messages = await generate_parent_feedback(
        students,
        draft,
        skill_names={s.id: s.name for s in config.skills},
        text_generator=text_generator,
        language=config.language,
        grading_requirement_name=config.grading_requirement_name,
    )

    logger.info(
        "Parent feedback drafted",
        extra={"requested": len(students), "generated": len(messages)}
    )
    return FeedbackResponse(messages=messages)


@router.post(
    "/commit",
    response_model=CommitResponse,
    summary="Save a class session",
    description="Add session points, update stripes and attendance, and record the session",
)
async def commit_session(
    request: CommitRequest,
    api_key: AuthenticatedUser,
    config: ClubConfigDep,
    engine: ProgressionEngineDep,
    store: StudentStoreDep,
) -> CommitResponse:
    draft = _draft_or_400(request, config)
    roster = store.load_students()
    session_students(roster, request)

    result = engine.commit_session(roster, draft, parent_messages=request.parent_messages)
    changed = {p.student_id for p in result.progress}
    if changed:
        store.save_students([s for s in result.students if s.id in changed])

    return CommitResponse(
        summary=result.summary,
        updated_count=result.updated_count,
        earned_stripes=result.earned_stripes,
        progress=[
            ProgressItem(
                student_id=p.student_id,
                session_total=p.session_total,
                points_before=p.points_before,
                points_after=p.points_after,
                stripes_before=p.stripes_before,
                stripes_after=p.stripes_after,
                new_stripes=p.new_stripes,
                can_mark_ready=p.can_mark_ready,
                xp_earned=p.xp_earned,
                global_xp_earned=p.global_xp_earned,
            )
            for p in result.progress
        ],
        students=[to_student_response(s, config) for s in result.students if s.id in changed],
    )

"""
Club API endpoints.

Read-only view of the club setup (belts, skills, locations, classes) for
clients that render the scoring screen and import preview, plus the coach
welcome message.
"""

import logging
from typing import Optional

from fastapi import APIRouter
from pydantic import BaseModel, Field

from ...core.progression.messages import TextKind, fallback_text, try_generate
from ..dependencies import AuthenticatedUser, ClubConfigDep, TextGeneratorDep

logger = logging.getLogger(__name__)

router = APIRouter()


class BeltItem(BaseModel):
    id: str
    name: str
    order: int
    color1: str
    color2: Optional[str] = None
    points_per_stripe: int


class SkillItem(BaseModel):
    id: str
    name: str
    is_active: bool


class ClubResponse(BaseModel):
    club_name: str
    language: str
    stripes_per_belt: int
    belts: list[BeltItem]
    skills: list[SkillItem]
    locations: list[str]
    classes: dict[str, list[str]] = Field(description="Classes taught at each location")
    grading_requirement_name: str
    coach_bonus_enabled: bool
    homework_bonus_enabled: bool


class CoachWelcomeRequest(BaseModel):
    coach_name: str = Field(min_length=1, max_length=200)


class CoachWelcomeResponse(BaseModel):
    message: str
    is_ai_generated: bool


@router.get("", response_model=ClubResponse, summary="Club setup")
async def get_club(api_key: AuthenticatedUser, config: ClubConfigDep) -> ClubResponse:
    return ClubResponse(
        club_name=config.club_name,
        language=config.language,
        stripes_per_belt=config.policy.stripes_per_belt,
        belts=[
            BeltItem(
                id=b.id,
                name=b.name,
                order=b.order,
                color1=b.color1,
                color2=b.color2,
                points_per_stripe=config.policy.points_required(b.id),
            )
            for b in config.ledger
        ],
        skills=[SkillItem(id=s.id, name=s.name, is_active=s.is_active) for s in config.skills],
        locations=list(config.locations),
        classes={loc: config.classes_for(loc) for loc in config.locations},
        grading_requirement_name=config.grading_requirement_name,
        coach_bonus_enabled=config.coach_bonus_enabled,
        homework_bonus_enabled=config.homework_bonus_enabled,
    )


@router.post(
    "/coaches/welcome",
    response_model=CoachWelcomeResponse,
    summary="Draft a welcome message for a new coach",
)
async def welcome_coach(
    request: CoachWelcomeRequest,
    api_key: AuthenticatedUser,
    config: ClubConfigDep,
    text_generator: TextGeneratorDep,
) -> CoachWelcomeResponse:
    context = {
        "coach_name": request.coach_name,
        "club_name": config.club_name,
        "language": config.language,
    }
    text = await try_generate(text_generator, TextKind.COACH_WELCOME, context)
    return CoachWelcomeResponse(
        message=text or fallback_text(TextKind.COACH_WELCOME, context),
        is_ai_generated=text is not None,
    )

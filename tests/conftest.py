"""
Shared fixtures.

Everything here is built from real domain objects; nothing talks to
Anthropic or the file system.
"""

import pytest

from src.core.club import ClubConfig
from src.core.progression import BeltLedger, PointsPolicy, ProgressionEngine, SessionDraft

from tests.factories import SKILL_IDS


@pytest.fixture
def four_belts() -> BeltLedger:
    """White -> Yellow -> Green -> Black, ids b-1 .. b-4."""
    return BeltLedger.from_names(["White", "Yellow", "Green", "Black"], prefix="b")


@pytest.fixture
def policy() -> PointsPolicy:
    return PointsPolicy(points_per_stripe=100, stripes_per_belt=4)


@pytest.fixture
def engine(four_belts, policy) -> ProgressionEngine:
    return ProgressionEngine(four_belts, policy)


@pytest.fixture
def club() -> ClubConfig:
    """Default club: WT belts, 64 points per stripe, one location."""
    return ClubConfig(club_name="Tiger Dojo")


@pytest.fixture
def two_location_club() -> ClubConfig:
    return ClubConfig(
        club_name="Tiger Dojo",
        locations=["Main Location", "Downtown"],
        location_classes={
            "Main Location": ["General Class", "Adult Class"],
            "Downtown": ["Kids Class", "Sparring Team"],
        },
    )


@pytest.fixture
def draft() -> SessionDraft:
    return SessionDraft(skill_ids=SKILL_IDS, coach_name="Sensei Kim")

"""
Build the club configuration from application settings.
"""

from src.core.club import ClubConfig
from src.core.progression.belts import BeltLedger, PointsPolicy, standard_ledger

from .settings import Settings


def build_club_config(settings: Settings) -> ClubConfig:
    """
    Raises ValueError for an unknown belt system or an empty custom ledger.
    """
    if settings.belt_system.lower() == "custom":
        names = settings.custom_belt_names_list
        if not names:
            raise ValueError("belt_system is 'custom' but CUSTOM_BELT_NAMES is empty")
        ledger = BeltLedger.from_names(names, prefix="belt")
    else:
        ledger = standard_ledger(settings.belt_system)

    policy = PointsPolicy(
        points_per_stripe=settings.points_per_stripe,
        stripes_per_belt=settings.stripes_per_belt,
        per_belt=settings.belt_points_per_stripe_map,
    )

    return ClubConfig(
        club_name=settings.club_name,
        owner_name=settings.club_owner_name,
        language=settings.club_language,
        ledger=ledger,
        policy=policy,
        locations=settings.club_locations_list,
        location_classes=settings.location_classes_map,
        classes=settings.club_classes_list,
        grading_requirement_name=settings.grading_requirement_name,
        coach_bonus_enabled=settings.coach_bonus_enabled,
        homework_bonus_enabled=settings.homework_bonus_enabled,
    )

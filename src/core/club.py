"""
Club-level configuration shared by the progression engine and the roster
importer.

A ClubConfig is everything the setup wizard of a club decides once: which
belt system it uses, what a stripe costs, which skills are graded and where
classes take place.
"""

from dataclasses import dataclass, field
from typing import Optional

from .progression.belts import BeltLedger, PointsPolicy, WT_BELTS
from .progression.models import Skill


FALLBACK_CLASS = "General Class"
DEFAULT_LOCATION = "Main Location"

DEFAULT_SKILLS: tuple[Skill, ...] = (
    Skill(id="skill-1", name="Technique"),
    Skill(id="skill-2", name="Effort"),
    Skill(id="skill-3", name="Focus"),
    Skill(id="skill-4", name="Discipline"),
)

DEFAULT_CLASSES: tuple[str, ...] = ("General Class", "Kids Class", "Adult Class", "Sparring Team")


@dataclass
class ClubConfig:
    club_name: str = "My Dojo"
    owner_name: str = "Head Coach"
    language: str = "English"
    ledger: BeltLedger = field(default_factory=lambda: WT_BELTS)
    policy: PointsPolicy = field(default_factory=PointsPolicy)
    skills: tuple[Skill, ...] = DEFAULT_SKILLS
    locations: list[str] = field(default_factory=lambda: [DEFAULT_LOCATION])
    location_classes: dict[str, list[str]] = field(
        default_factory=lambda: {DEFAULT_LOCATION: list(DEFAULT_CLASSES)}
    )
    classes: list[str] = field(default_factory=lambda: list(DEFAULT_CLASSES))
    grading_requirement_name: str = ""
    coach_bonus_enabled: bool = False
    homework_bonus_enabled: bool = False

    def __post_init__(self) -> None:
        if not self.locations:
            self.locations = [DEFAULT_LOCATION]

    @property
    def active_skills(self) -> list[Skill]:
        return [s for s in self.skills if s.is_active]

    @property
    def default_location(self) -> str:
        return self.locations[0]

    def classes_for(self, location: str) -> list[str]:
        """Classes taught at a location; the flat class list when the location has none."""
        return self.location_classes.get(location) or self.classes

    def resolve_location(self, requested: Optional[str], batch_default: Optional[str] = None) -> str:
        """A requested location is used only if the club has it."""
        if requested and requested in self.locations:
            return requested
        return batch_default or self.default_location

    def resolve_class(
        self,
        location: str,
        requested: Optional[str],
        batch_default: Optional[str] = None,
    ) -> str:
        """
        Pick the class a student is placed in.

        A requested class must belong to the location. Otherwise the batch
        default wins, then the location's first class, then the generic
        fallback class.
        """
        valid = self.classes_for(location)
        if requested and requested in valid:
            return requested
        if batch_default:
            return batch_default
        if valid:
            return valid[0]
        return FALLBACK_CLASS

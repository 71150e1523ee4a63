"""
Test data builders shared by unit and API tests.
"""

from datetime import datetime, timezone

from src.core.progression import Student


SKILL_IDS = ("skill-1", "skill-2", "skill-3", "skill-4")

FIXED_NOW = datetime(2024, 3, 1, 18, 30, tzinfo=timezone.utc)


def make_student(name: str = "Mia", belt_id: str = "b-1", points: int = 0, pps: int = 100, **kwargs) -> Student:
    """A student whose stripes agree with their points."""
    return Student(
        name=name,
        belt_id=belt_id,
        total_points=points,
        stripes=points // pps,
        **kwargs,
    )

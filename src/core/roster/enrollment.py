"""
Single-student enrollment from the manual entry form.

Uses the same belt, points, location and class rules as the bulk import,
but a belt that can't be resolved is an error here: there is no preview to
fix it in.
"""

from typing import Optional

from ..club import ClubConfig
from ..progression.models import Gender, Student
from .importer import ResolvedBelt, resolve_belt, row_points


class UnknownBeltError(ValueError):
    """Raised when a manually entered belt matches nothing in the ledger."""
    pass


def enroll_student(
    config: ClubConfig,
    name: str,
    belt: str,
    stripes: int = 0,
    location: Optional[str] = None,
    assigned_class: Optional[str] = None,
    age: Optional[int] = None,
    birthday: str = "",
    gender: Optional[str] = None,
    parent_name: str = "",
    parent_email: str = "",
    parent_phone: str = "",
) -> Student:
    """
    Create a new Student.

    `belt` may be a belt id, a belt name or a 1-based ledger position.
    """
    if not name.strip():
        raise ValueError("Student name is required")

    resolution = ResolvedBelt(belt) if belt in config.ledger else resolve_belt(belt, config.ledger)
    if not isinstance(resolution, ResolvedBelt):
        raise UnknownBeltError(f"Belt '{belt}' is not part of the club's belt system")

    stripes = max(0, stripes)
    final_location = config.resolve_location(location)
    return Student(
        name=name.strip(),
        belt_id=resolution.belt_id,
        stripes=stripes,
        total_points=row_points(stripes, resolution, config.policy),
        location=final_location,
        assigned_class=config.resolve_class(final_location, assigned_class),
        age=age,
        birthday=birthday,
        gender=Gender.parse(gender),
        parent_name=parent_name,
        parent_email=parent_email,
        parent_phone=parent_phone,
    )

"""
Student roster persistence.

SqlStudentStore keeps one row per student in a SQLAlchemy database;
InMemoryStudentStore is the mock-mode equivalent for local development and
tests.

Saving is an upsert of the students handed in. Everyone else on the roster
is left alone, so two requests that change different students never undo
each other's work.

Serialization lives here, not on the domain models: the core never knows
how students are stored.
"""

import logging
from datetime import date, datetime
from typing import Any, Optional, Protocol
from uuid import UUID

from sqlalchemy import JSON, Boolean, Column, Date, Integer, String, Uuid, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from src.core.progression.models import (
    FeedbackRecord,
    FeedbackSource,
    Gender,
    PerformanceRecord,
    Student,
)

from .database import Base, UTCDateTime, create_db_engine


logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when the roster can't be read or written."""
    pass


class StudentNotFoundError(Exception):
    """Raised when a requested student doesn't exist."""
    pass


class StudentStore(Protocol):
    """
    Protocol for roster persistence.

    Using a protocol means tests can provide an in-memory store and we can
    swap backends without changing the routes.
    """

    def load_students(self) -> list[Student]:
        """The whole roster, in enrollment order."""
        ...

    def save_students(self, students: list[Student]) -> None:
        """Insert or update the given students. Nobody else is touched."""
        ...


def find_student(students: list[Student], student_id: UUID) -> Student:
    for student in students:
        if student.id == student_id:
            return student
    raise StudentNotFoundError(f"Student {student_id} not found")


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------

def performance_to_dict(record: PerformanceRecord) -> dict[str, Any]:
    return {
        "date": record.date.isoformat(),
        "scores": record.scores,
        "bonus_points": record.bonus_points,
        "note": record.note,
        "coach_name": record.coach_name,
    }


def performance_from_dict(data: dict[str, Any]) -> PerformanceRecord:
    return PerformanceRecord(
        date=datetime.fromisoformat(data["date"]),
        scores=data.get("scores", {}),
        bonus_points=data.get("bonus_points", 0),
        note=data.get("note"),
        coach_name=data.get("coach_name"),
    )


def feedback_to_dict(record: FeedbackRecord) -> dict[str, Any]:
    return {
        "date": record.date.isoformat(),
        "text": record.text,
        "coach_name": record.coach_name,
        "source": record.source.value,
        "is_ai_generated": record.is_ai_generated,
    }


def feedback_from_dict(data: dict[str, Any]) -> FeedbackRecord:
    return FeedbackRecord(
        date=datetime.fromisoformat(data["date"]),
        text=data["text"],
        coach_name=data.get("coach_name", ""),
        source=FeedbackSource(data.get("source", FeedbackSource.COACH.value)),
        is_ai_generated=data.get("is_ai_generated", False),
    )


def student_to_dict(student: Student) -> dict[str, Any]:
    return {
        "id": str(student.id),
        "name": student.name,
        "belt_id": student.belt_id,
        "stripes": student.stripes,
        "total_points": student.total_points,
        "attendance_count": student.attendance_count,
        "is_ready_for_grading": student.is_ready_for_grading,
        "last_promotion_date": student.last_promotion_date.isoformat(),
        "performance_history": [performance_to_dict(r) for r in student.performance_history],
        "feedback_history": [feedback_to_dict(r) for r in student.feedback_history],
        "location": student.location,
        "assigned_class": student.assigned_class,
        "age": student.age,
        "birthday": student.birthday,
        "gender": student.gender.value,
        "parent_name": student.parent_name,
        "parent_email": student.parent_email,
        "parent_phone": student.parent_phone,
        "join_date": student.join_date.isoformat(),
        "lifetime_xp": student.lifetime_xp,
    }


def student_from_dict(data: dict[str, Any]) -> Student:
    return Student(
        id=UUID(data["id"]),
        name=data["name"],
        belt_id=data["belt_id"],
        stripes=data.get("stripes", 0),
        total_points=data.get("total_points", 0),
        attendance_count=data.get("attendance_count", 0),
        is_ready_for_grading=data.get("is_ready_for_grading", False),
        last_promotion_date=datetime.fromisoformat(data["last_promotion_date"]),
        performance_history=[performance_from_dict(r) for r in data.get("performance_history", [])],
        feedback_history=[feedback_from_dict(r) for r in data.get("feedback_history", [])],
        location=data.get("location", ""),
        assigned_class=data.get("assigned_class", ""),
        age=data.get("age"),
        birthday=data.get("birthday", ""),
        gender=Gender.parse(data.get("gender")),
        parent_name=data.get("parent_name", ""),
        parent_email=data.get("parent_email", ""),
        parent_phone=data.get("parent_phone", ""),
        join_date=date.fromisoformat(data["join_date"]),
        lifetime_xp=data.get("lifetime_xp", 0),
    )


# ---------------------------------------------------------------------------
# SQL store
# ---------------------------------------------------------------------------

class StudentRow(Base):
    """One student. Session and feedback histories are JSON lists."""

    __tablename__ = "students"

    # Insertion order is roster order
    row_id = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(Uuid, unique=True, nullable=False, index=True)
    name = Column(String(200), nullable=False)
    belt_id = Column(String(50), nullable=False)
    stripes = Column(Integer, nullable=False, default=0)
    total_points = Column(Integer, nullable=False, default=0)
    attendance_count = Column(Integer, nullable=False, default=0)
    is_ready_for_grading = Column(Boolean, nullable=False, default=False)
    last_promotion_date = Column(UTCDateTime, nullable=False)
    location = Column(String(200), nullable=False, default="")
    assigned_class = Column(String(200), nullable=False, default="")
    age = Column(Integer, nullable=True)
    # YYYY-MM-DD as entered; may be empty
    birthday = Column(String(10), nullable=False, default="")
    gender = Column(String(30), nullable=False)
    parent_name = Column(String(200), nullable=False, default="")
    parent_email = Column(String(255), nullable=False, default="")
    parent_phone = Column(String(50), nullable=False, default="")
    join_date = Column(Date, nullable=False)
    lifetime_xp = Column(Integer, nullable=False, default=0)
    performance_history = Column(JSON, nullable=False, default=list)
    feedback_history = Column(JSON, nullable=False, default=list)


def _copy_to_row(student: Student, row: StudentRow) -> None:
    row.name = student.name
    row.belt_id = student.belt_id
    row.stripes = student.stripes
    row.total_points = student.total_points
    row.attendance_count = student.attendance_count
    row.is_ready_for_grading = student.is_ready_for_grading
    row.last_promotion_date = student.last_promotion_date
    row.location = student.location
    row.assigned_class = student.assigned_class
    row.age = student.age
    row.birthday = student.birthday
    row.gender = student.gender.value
    row.parent_name = student.parent_name
    row.parent_email = student.parent_email
    row.parent_phone = student.parent_phone
    row.join_date = student.join_date
    row.lifetime_xp = student.lifetime_xp
    row.performance_history = [performance_to_dict(r) for r in student.performance_history]
    row.feedback_history = [feedback_to_dict(r) for r in student.feedback_history]


def _row_to_student(row: StudentRow) -> Student:
    return Student(
        id=row.id,
        name=row.name,
        belt_id=row.belt_id,
        stripes=row.stripes,
        total_points=row.total_points,
        attendance_count=row.attendance_count,
        is_ready_for_grading=row.is_ready_for_grading,
        last_promotion_date=row.last_promotion_date,
        performance_history=[performance_from_dict(r) for r in row.performance_history or []],
        feedback_history=[feedback_from_dict(r) for r in row.feedback_history or []],
        location=row.location,
        assigned_class=row.assigned_class,
        age=row.age,
        birthday=row.birthday,
        gender=Gender.parse(row.gender),
        parent_name=row.parent_name,
        parent_email=row.parent_email,
        parent_phone=row.parent_phone,
        join_date=row.join_date,
        lifetime_xp=row.lifetime_xp,
    )


class SqlStudentStore:
    """
    Roster kept in a SQL database, one row per student.

    Each save runs in one transaction: either every student in the call is
    written or none is.
    """

    def __init__(self, engine: Engine) -> None:
        try:
            Base.metadata.create_all(engine)
        except SQLAlchemyError as e:
            logger.error("Failed to prepare roster tables", extra={"error": str(e)})
            raise StorageError(f"Could not prepare roster database: {e}") from e
        self._sessions = sessionmaker(bind=engine, expire_on_commit=False)

    def load_students(self) -> list[Student]:
        try:
            with self._sessions() as session:
                rows = session.scalars(select(StudentRow).order_by(StudentRow.row_id)).all()
                return [_row_to_student(row) for row in rows]
        except SQLAlchemyError as e:
            logger.error("Failed to load roster", extra={"error": str(e)})
            raise StorageError(f"Could not load roster: {e}") from e

    def save_students(self, students: list[Student]) -> None:
        if not students:
            return

        try:
            with self._sessions.begin() as session:
                ids = [s.id for s in students]
                existing = {
                    row.id: row
                    for row in session.scalars(select(StudentRow).where(StudentRow.id.in_(ids)))
                }
                for student in students:
                    row = existing.get(student.id)
                    if row is None:
                        row = StudentRow(id=student.id)
                        session.add(row)
                        existing[student.id] = row
                    _copy_to_row(student, row)
        except SQLAlchemyError as e:
            logger.error(
                "Failed to save roster",
                extra={"students": len(students), "error": str(e)}
            )
            raise StorageError(f"Could not write roster: {e}") from e

        logger.info("Roster saved", extra={"students": len(students)})


# ---------------------------------------------------------------------------
# Mock Store for Local Development
# ---------------------------------------------------------------------------

class InMemoryStudentStore:
    """
    In-memory roster for local development and tests.

    Stores serialized copies so callers can't mutate the stored roster
    without saving it.
    """

    def __init__(self, students: Optional[list[Student]] = None) -> None:
        self._rows: dict[UUID, dict[str, Any]] = {}
        for student in students or []:
            self._rows[student.id] = student_to_dict(student)
        logger.info("Initialized mock student store (in-memory)")

    def load_students(self) -> list[Student]:
        return [student_from_dict(row) for row in self._rows.values()]

    def save_students(self, students: list[Student]) -> None:
        for student in students:
            self._rows[student.id] = student_to_dict(student)
        logger.debug("Stored students in mock store", extra={"students": len(students)})


def create_student_store(mock_mode: bool, database_url: Optional[str] = None) -> StudentStore:
    """Factory matching the roster_mock_mode / database_url settings."""
    if mock_mode:
        return InMemoryStudentStore()
    if not database_url:
        raise ValueError("database_url is required when roster_mock_mode is off")
    logger.info("Using SQL roster store")
    return SqlStudentStore(create_db_engine(database_url))

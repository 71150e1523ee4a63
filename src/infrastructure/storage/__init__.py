"""
Roster persistence and pending import batches.

Includes an in-memory mock store for local development without a database.
"""

from .database import Base, create_db_engine
from .imports import ImportBatchNotFoundError, ImportBatchRegistry
from .students import (
    InMemoryStudentStore,
    SqlStudentStore,
    StorageError,
    StudentNotFoundError,
    StudentStore,
    create_student_store,
    find_student,
    student_from_dict,
    student_to_dict,
)

__all__ = [
    "Base",
    "create_db_engine",
    "ImportBatchNotFoundError",
    "ImportBatchRegistry",
    "InMemoryStudentStore",
    "SqlStudentStore",
    "StorageError",
    "StudentNotFoundError",
    "StudentStore",
    "create_student_store",
    "find_student",
    "student_from_dict",
    "student_to_dict",
]

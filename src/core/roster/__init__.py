"""
Roster management: bulk import, validation preview and manual enrollment.
"""

from .importer import (
    IMPORT_SCHEMA_VERSION,
    INVALID_BELT,
    TEMPLATE_HEADER,
    ImportBatch,
    ImportRow,
    ResolvedBelt,
    RowIssue,
    UnresolvedBelt,
    build_template_csv,
    parse_roster,
    resolve_belt,
    tokenize,
)
from .report import (
    ValidationSummary,
    committable_students,
    edit_row,
    remove_row,
    skipped_count,
    summarize,
)
from .enrollment import UnknownBeltError, enroll_student

__all__ = [
    "IMPORT_SCHEMA_VERSION",
    "INVALID_BELT",
    "TEMPLATE_HEADER",
    "ImportBatch",
    "ImportRow",
    "ResolvedBelt",
    "RowIssue",
    "UnresolvedBelt",
    "build_template_csv",
    "parse_roster",
    "resolve_belt",
    "tokenize",
    "ValidationSummary",
    "committable_students",
    "edit_row",
    "remove_row",
    "skipped_count",
    "summarize",
    "UnknownBeltError",
    "enroll_student",
]

"""
Validation report for an import batch.

The admin reviews the parsed rows before anything touches the roster. This
module summarizes a batch, applies single-row fixes (for example picking
the right belt for a flagged row) and decides what a commit will add.

Edits never re-parse the batch: only the edited row is rebuilt and only
its points are recomputed.
"""

from dataclasses import dataclass, replace
from typing import Optional

from ..club import ClubConfig
from ..progression.models import Student
from .importer import (
    BeltResolution,
    ImportBatch,
    ImportRow,
    ResolvedBelt,
    RowIssue,
    UnresolvedBelt,
    row_points,
)


@dataclass(frozen=True)
class RowStatus:
    index: int
    line_number: int
    is_valid: bool
    issues: tuple[RowIssue, ...]


@dataclass(frozen=True)
class ValidationSummary:
    valid_count: int
    error_count: int
    rows: tuple[RowStatus, ...]

    @property
    def total(self) -> int:
        return self.valid_count + self.error_count

    @property
    def message(self) -> str:
        if self.total == 0:
            return "No data found. Paste rows from your spreadsheet or upload a file."
        if self.error_count:
            return (
                f"Found {self.error_count} rows with errors. They will be skipped unless fixed; "
                f"{self.valid_count} students are ready to import."
            )
        return f"All {self.valid_count} students are ready to import."


def summarize(batch: ImportBatch) -> ValidationSummary:
    statuses = tuple(
        RowStatus(
            index=i,
            line_number=row.line_number,
            is_valid=row.is_valid,
            issues=tuple(row.issues),
        )
        for i, row in enumerate(batch.rows)
    )
    valid = sum(1 for s in statuses if s.is_valid)
    return ValidationSummary(
        valid_count=valid,
        error_count=len(statuses) - valid,
        rows=statuses,
    )


def _belt_choice(belt_id: str, config: ClubConfig) -> BeltResolution:
    if belt_id in config.ledger:
        return ResolvedBelt(belt_id)
    return UnresolvedBelt(belt_id)


def edit_row(
    batch: ImportBatch,
    index: int,
    config: ClubConfig,
    name: Optional[str] = None,
    belt_id: Optional[str] = None,
    stripes: Optional[int] = None,
    location: Optional[str] = None,
    assigned_class: Optional[str] = None,
) -> ImportBatch:
    """
    Fix one row of the preview.

    Returns a new batch in which only row `index` differs. The row's points
    are recomputed from its (possibly new) belt and stripes, and its status
    follows from the new values. Raises IndexError for a row that doesn't
    exist.
    """
    if not 0 <= index < len(batch.rows):
        raise IndexError(f"Row {index} is not in batch {batch.id}")

    row = batch.rows[index]
    changes: dict = {}
    if name is not None:
        changes["name"] = name.strip()
    if belt_id is not None:
        changes["belt"] = _belt_choice(belt_id, config)
    if stripes is not None:
        changes["stripes"] = max(0, stripes)
    if location is not None or assigned_class is not None:
        new_location = config.resolve_location(location or row.location, batch.batch_location)
        changes["location"] = new_location
        changes["assigned_class"] = config.resolve_class(
            new_location, assigned_class or row.assigned_class, batch.batch_class or None
        )

    edited = replace(row, **changes)
    edited = replace(edited, total_points=row_points(edited.stripes, edited.belt, config.policy))
    return _with_rows(batch, batch.rows[:index] + (edited,) + batch.rows[index + 1:])


def remove_row(batch: ImportBatch, index: int) -> ImportBatch:
    if not 0 <= index < len(batch.rows):
        raise IndexError(f"Row {index} is not in batch {batch.id}")
    return _with_rows(batch, batch.rows[:index] + batch.rows[index + 1:])


def _with_rows(batch: ImportBatch, rows: tuple[ImportRow, ...]) -> ImportBatch:
    return replace(batch, rows=rows)


def committable_rows(batch: ImportBatch) -> list[ImportRow]:
    return [row for row in batch.rows if row.is_valid]


def skipped_count(batch: ImportBatch) -> int:
    """How many rows a commit would leave out. Shown before the admin confirms."""
    return len(batch.rows) - len(committable_rows(batch))


def committable_students(batch: ImportBatch) -> list[Student]:
    return [row.to_student() for row in committable_rows(batch)]
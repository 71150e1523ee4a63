"""
Roster bulk import.

Clubs arrive with their members in a spreadsheet. This module turns pasted
spreadsheet text (or an uploaded file, once converted to text) into
candidate students, without ever silently dropping a row that looks like
data.

The pipeline is a chain of pure functions:

    tokenize -> detect header -> map columns -> resolve belt / location /
    class -> compute points -> ImportBatch

Columns are positional. The canonical layout is schema version 2:

    Name | Age | Birthday | Gender | Belt | Stripes | Points | LocalXP |
    ParentName | ParentEmail | ParentPhone | [Location] | [Class]

A header row is recognised when the first row mentions both "name" and
"belt". A student literally called "Name Belt" in the first row would be
taken for a header; that risk is accepted.
"""

import csv
import io
import logging
import re
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Optional, Union
from uuid import UUID, uuid4

from ..club import ClubConfig
from ..progression.belts import BeltLedger, PointsPolicy
from ..progression.models import Gender, Student


logger = logging.getLogger(__name__)

IMPORT_SCHEMA_VERSION = 2

INVALID_BELT = "INVALID_BELT"

TEMPLATE_HEADER = [
    "Name", "Age", "Birthday", "Gender", "Belt", "Stripes", "Points", "LocalXP",
    "Parent Name", "Email", "Phone", "Location", "Class",
]

QUOTE_CHARS = "\"'"

# A row without a name but with more filled cells than this is malformed data
MALFORMED_MIN_CELLS = 2


class Column(IntEnum):
    NAME = 0
    AGE = 1
    BIRTHDAY = 2
    GENDER = 3
    BELT = 4
    STRIPES = 5
    POINTS = 6
    LOCAL_XP = 7
    PARENT_NAME = 8
    PARENT_EMAIL = 9
    PARENT_PHONE = 10
    LOCATION = 11
    CLASS = 12


class RowIssue(Enum):
    MISSING_NAME = "missing_name"
    UNRESOLVED_BELT = "unresolved_belt"


# ---------------------------------------------------------------------------
# Belt resolution
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ResolvedBelt:
    belt_id: str


@dataclass(frozen=True)
class UnresolvedBelt:
    raw: str


BeltResolution = Union[ResolvedBelt, UnresolvedBelt]


def resolve_belt(cell: Optional[str], ledger: BeltLedger) -> BeltResolution:
    """
    Work out which belt a cell means.

    Tried in order: the belt name (case-insensitive, exact), then a 1-based
    position in the ledger ("1" is the first belt). Anything else is
    unresolved. Never raises.
    """
    raw = (cell or "").strip()
    if raw:
        belt = ledger.find_by_name(raw)
        if belt is not None:
            return ResolvedBelt(belt.id)

        position = parse_int_prefix(raw)
        if position is not None and 1 <= position <= len(ledger):
            return ResolvedBelt(ledger[position - 1].id)

    return UnresolvedBelt(raw)


def belt_id_of(resolution: BeltResolution) -> str:
    """Flatten a resolution to an id, using the INVALID_BELT marker when unresolved."""
    if isinstance(resolution, ResolvedBelt):
        return resolution.belt_id
    return INVALID_BELT


# ---------------------------------------------------------------------------
# Tokenizing
# ---------------------------------------------------------------------------

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def parse_int_prefix(value: Optional[str]) -> Optional[int]:
    """Read the integer a cell starts with ("3 stripes" -> 3). None if there is none."""
    if value is None:
        return None
    match = _LEADING_INT.match(str(value))
    return int(match.group(1)) if match else None


def clean_cell(cell: str) -> str:
    return cell.strip().strip(QUOTE_CHARS).strip()


def split_row(line: str) -> list[str]:
    """
    Split one line into cells.

    Tabs win (that's what a copy from Excel or Google Sheets gives us). A
    line with fewer than two tab-separated cells is read as CSV instead.
    """
    cells = line.split("\t")
    if len(cells) < 2 and "," in line:
        cells = next(csv.reader(io.StringIO(line), skipinitialspace=True), [])
    return [clean_cell(c) for c in cells]


def tokenize(text: str) -> list[tuple[int, list[str]]]:
    """
    Split raw text into (line number, cells) rows.

    Line numbers are 1-based positions in the original text, so they still
    point at the right line after blank lines are dropped.
    """
    return [
        (line_number, split_row(line))
        for line_number, line in enumerate(re.split(r"\r?\n", text), start=1)
        if line.strip()
    ]


def looks_like_header(cells: list[str]) -> bool:
    row_text = " ".join(cells).lower()
    return "name" in row_text and "belt" in row_text


# ---------------------------------------------------------------------------
# Rows and batches
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ImportRow:
    """
    One candidate student from the import, as shown in the preview.

    Invalid rows are kept so the admin can fix them; they are never
    committed as they are.
    """
    line_number: int
    name: str
    belt: BeltResolution
    stripes: int = 0
    total_points: int = 0
    age: Optional[int] = None
    birthday: str = ""
    gender: Gender = Gender.UNSPECIFIED
    legacy_points: int = 0
    local_xp: int = 0
    parent_name: str = ""
    parent_email: str = ""
    parent_phone: str = ""
    location: str = ""
    assigned_class: str = ""

    @property
    def belt_id(self) -> str:
        return belt_id_of(self.belt)

    @property
    def issues(self) -> list[RowIssue]:
        issues = []
        if not self.name.strip():
            issues.append(RowIssue.MISSING_NAME)
        if isinstance(self.belt, UnresolvedBelt):
            issues.append(RowIssue.UNRESOLVED_BELT)
        return issues

    @property
    def is_valid(self) -> bool:
        return not self.issues

    def to_student(self) -> Student:
        """Build the Student this row stands for. Only valid rows can be converted."""
        if not isinstance(self.belt, ResolvedBelt) or not self.name.strip():
            raise ValueError(f"Row {self.line_number} is not valid and cannot become a student")
        return Student(
            id=uuid4(),
            name=self.name.strip(),
            belt_id=self.belt.belt_id,
            stripes=self.stripes,
            total_points=self.total_points,
            age=self.age,
            birthday=self.birthday,
            gender=self.gender,
            parent_name=self.parent_name,
            parent_email=self.parent_email,
            parent_phone=self.parent_phone,
            location=self.location,
            assigned_class=self.assigned_class,
            lifetime_xp=self.local_xp,
        )


@dataclass(frozen=True)
class ImportBatch:
    """
    The result of parsing one paste or upload.

    Serializable and immutable; the validation reporter produces edited
    copies of it.
    """
    rows: tuple[ImportRow, ...]
    id: UUID = field(default_factory=uuid4)
    header_detected: bool = False
    blank_rows_skipped: int = 0
    batch_location: str = ""
    batch_class: str = ""
    schema_version: int = IMPORT_SCHEMA_VERSION


def row_points(stripes: int, belt: BeltResolution, policy: PointsPolicy) -> int:
    """
    Points a student starts with: enough for the stripes they already hold.

    An unresolved belt uses the global points-per-stripe so the preview has
    something to show; such a row is never committed anyway.
    """
    belt_id = belt.belt_id if isinstance(belt, ResolvedBelt) else None
    return policy.points_for(stripes, belt_id)


def _cell(cells: list[str], column: Column) -> str:
    return cells[column] if len(cells) > column else ""


def _non_negative(value: Optional[int]) -> int:
    return max(0, value or 0)


def build_row(
    cells: list[str],
    line_number: int,
    config: ClubConfig,
    batch_location: Optional[str] = None,
    batch_class: Optional[str] = None,
) -> ImportRow:
    belt = resolve_belt(_cell(cells, Column.BELT), config.ledger)
    stripes = _non_negative(parse_int_prefix(_cell(cells, Column.STRIPES)))
    location = config.resolve_location(_cell(cells, Column.LOCATION), batch_location)
    assigned_class = config.resolve_class(location, _cell(cells, Column.CLASS), batch_class)

    return ImportRow(
        line_number=line_number,
        name=_cell(cells, Column.NAME),
        belt=belt,
        stripes=stripes,
        total_points=row_points(stripes, belt, config.policy),
        age=parse_int_prefix(_cell(cells, Column.AGE)) or None,
        birthday=_cell(cells, Column.BIRTHDAY),
        gender=Gender.parse(_cell(cells, Column.GENDER)),
        legacy_points=_non_negative(parse_int_prefix(_cell(cells, Column.POINTS))),
        local_xp=_non_negative(parse_int_prefix(_cell(cells, Column.LOCAL_XP))),
        parent_name=_cell(cells, Column.PARENT_NAME),
        parent_email=_cell(cells, Column.PARENT_EMAIL),
        parent_phone=_cell(cells, Column.PARENT_PHONE),
        location=location,
        assigned_class=assigned_class,
    )


def parse_roster(
    text: str,
    config: ClubConfig,
    batch_location: Optional[str] = None,
    batch_class: Optional[str] = None,
) -> ImportBatch:
    """
    Parse pasted or uploaded roster text into an ImportBatch.

    Rows without a name are dropped when they are essentially empty, and
    kept as MISSING_NAME rows when they carry more than a couple of filled
    cells. Nothing here raises for bad data.
    """
    rows = tokenize(text)
    header_detected = bool(rows) and looks_like_header(rows[0][1])
    start = 1 if header_detected else 0
    location = config.resolve_location(batch_location)

    candidates: list[ImportRow] = []
    blank = 0
    for line_number, cells in rows[start:]:
        if not _cell(cells, Column.NAME):
            filled = sum(1 for c in cells if c)
            if filled <= MALFORMED_MIN_CELLS:
                blank += 1
                continue
        candidates.append(build_row(cells, line_number, config, location, batch_class))

    batch = ImportBatch(
        rows=tuple(candidates),
        header_detected=header_detected,
        blank_rows_skipped=blank,
        batch_location=location,
        batch_class=batch_class or "",
    )
    logger.info(
        "Roster parsed",
        extra={
            "batch_id": str(batch.id),
            "rows": len(batch.rows),
            "invalid_rows": sum(1 for r in batch.rows if not r.is_valid),
            "header_detected": header_detected,
        }
    )
    return batch


def build_template_csv(config: ClubConfig) -> str:
    """The downloadable CSV template with one sample row."""
    sample = [
        "John Doe", "8", "2016-05-15", "Male", config.ledger.first.name, "0", "0", "0",
        "Jane Doe", "jane@example.com", "555-0123", config.default_location, "",
    ]
    out = io.StringIO()
    writer = csv.writer(out, lineterminator="\n")
    writer.writerow(TEMPLATE_HEADER)
    writer.writerow(sample)
    return out.getvalue()

"""
Roster import API endpoints.

Bulk import runs in three steps:

1. Parse: pasted text or an uploaded file becomes a pending batch
2. Review: the admin sees every row with its status and fixes or removes
   flagged rows
3. Commit: valid rows are added to the roster; invalid rows are skipped

Pending batches are kept in memory until committed.
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, File, Form, HTTPException, UploadFile, status
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field

from ...core.club import ClubConfig
from ...core.roster import (
    ImportBatch,
    ImportRow,
    UnresolvedBelt,
    build_template_csv,
    committable_students,
    edit_row,
    parse_roster,
    remove_row,
    skipped_count,
    summarize,
)
from ...infrastructure.spreadsheet import ImportFileError, read_roster_upload
from ...infrastructure.storage import ImportBatchNotFoundError, ImportBatchRegistry
from ..dependencies import (
    AuthenticatedUser,
    ClubConfigDep,
    ImportRegistryDep,
    StudentStoreDep,
)
from .students import StudentResponse, to_student_response

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class PasteImportRequest(BaseModel):
    text: str = Field(description="Rows copied from a spreadsheet, tab or comma separated")
    location: Optional[str] = Field(None, description="Location for rows that don't name one")
    assigned_class: Optional[str] = Field(None, description="Class for rows that don't name one")


class RowEditRequest(BaseModel):
    name: Optional[str] = None
    belt_id: Optional[str] = None
    stripes: Optional[int] = Field(None, ge=0)
    location: Optional[str] = None
    assigned_class: Optional[str] = None


class ImportRowItem(BaseModel):
    index: int
    line_number: int
    name: str
    belt_id: str = Field(description="Resolved belt id, or INVALID_BELT")
    belt_name: Optional[str] = None
    belt_raw: Optional[str] = Field(None, description="The cell text when the belt was not recognized")
    stripes: int
    total_points: int
    legacy_points: int
    local_xp: int
    age: Optional[int] = None
    birthday: str
    gender: str
    parent_name: str
    parent_email: str
    parent_phone: str
    location: str
    assigned_class: str
    is_valid: bool
    issues: list[str]


class ImportBatchResponse(BaseModel):
    batch_id: UUID
    schema_version: int
    header_detected: bool
    blank_rows_skipped: int
    batch_location: str
    batch_class: str
    valid_count: int
    error_count: int
    skipped_on_commit: int
    message: str
    rows: list[ImportRowItem]


class ImportCommitResponse(BaseModel):
    added_count: int
    skipped_count: int
    students: list[StudentResponse]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _row_item(index: int, row: ImportRow, config: ClubConfig) -> ImportRowItem:
    belt = config.ledger.get(row.belt_id)
    return ImportRowItem(
        index=index,
        line_number=row.line_number,
        name=row.name,
        belt_id=row.belt_id,
        belt_name=belt.name if belt else None,
        belt_raw=row.belt.raw if isinstance(row.belt, UnresolvedBelt) else None,
        stripes=row.stripes,
        total_points=row.total_points,
        legacy_points=row.legacy_points,
        local_xp=row.local_xp,
        age=row.age,
        birthday=row.birthday,
        gender=row.gender.value,
        parent_name=row.parent_name,
        parent_email=row.parent_email,
        parent_phone=row.parent_phone,
        location=row.location,
        assigned_class=row.assigned_class,
        is_valid=row.is_valid,
        issues=[issue.value for issue in row.issues],
    )


def to_batch_response(batch: ImportBatch, config: ClubConfig) -> ImportBatchResponse:
    summary = summarize(batch)
    return ImportBatchResponse(
        batch_id=batch.id,
        schema_version=batch.schema_version,
        header_detected=batch.header_detected,
        blank_rows_skipped=batch.blank_rows_skipped,
        batch_location=batch.batch_location,
        batch_class=batch.batch_class,
        valid_count=summary.valid_count,
        error_count=summary.error_count,
        skipped_on_commit=skipped_count(batch),
        message=summary.message,
        rows=[_row_item(i, row, config) for i, row in enumerate(batch.rows)],
    )


def _get_batch(registry: ImportBatchRegistry, batch_id: UUID) -> ImportBatch:
    try:
        return registry.get(batch_id)
    except ImportBatchNotFoundError as e:
        logger.warning("Import batch not found", extra={"batch_id": str(batch_id)})
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get(
    "/template",
    response_class=PlainTextResponse,
    summary="Download the import template",
)
async def download_template(
    api_key: AuthenticatedUser,
    config: ClubConfigDep,
) -> PlainTextResponse:
    return PlainTextResponse(
        content=build_template_csv(config),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="student_import_template.csv"'},
    )


@router.post(
    "/imports",
    response_model=ImportBatchResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Parse pasted roster rows",
)
async def import_pasted(
    request: PasteImportRequest,
    api_key: AuthenticatedUser,
    config: ClubConfigDep,
    registry: ImportRegistryDep,
) -> ImportBatchResponse:
    batch = parse_roster(request.text, config, request.location, request.assigned_class)
    registry.add(batch)
    return to_batch_response(batch, config)


@router.post(
    "/imports/upload",
    response_model=ImportBatchResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Parse an uploaded roster file",
    description="Accepts .csv, .txt and .xlsx files",
)
async def import_upload(
    api_key: AuthenticatedUser,
    config: ClubConfigDep,
    registry: ImportRegistryDep,
    file: UploadFile = File(..., description="Roster file"),
    location: Optional[str] = Form(None),
    assigned_class: Optional[str] = Form(None),
) -> ImportBatchResponse:
    content = await file.read()

    try:
        text = read_roster_upload(file.filename or "", content)
    except ImportFileError as e:
        logger.warning(
            "Roster upload rejected",
            extra={"upload_filename": file.filename, "error": str(e)}
        )
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    batch = parse_roster(text, config, location, assigned_class)
    registry.add(batch)

    logger.info(
        "Roster upload parsed",
        extra={"upload_filename": file.filename, "batch_id": str(batch.id), "rows": len(batch.rows)}
    )
    return to_batch_response(batch, config)


@router.get(
    "/imports/{batch_id}",
    response_model=ImportBatchResponse,
    summary="Get a pending import",
)
async def get_import(
    batch_id: UUID,
    api_key: AuthenticatedUser,
    config: ClubConfigDep,
    registry: ImportRegistryDep,
) -> ImportBatchResponse:
    return to_batch_response(_get_batch(registry, batch_id), config)


@router.patch(
    "/imports/{batch_id}/rows/{index}",
    response_model=ImportBatchResponse,
    summary="Fix one row of a pending import",
)
async def update_import_row(
    batch_id: UUID,
    index: int,
    request: RowEditRequest,
    api_key: AuthenticatedUser,
    config: ClubConfigDep,
    registry: ImportRegistryDep,
) -> ImportBatchResponse:
    batch = _get_batch(registry, batch_id)
    try:
        batch = edit_row(
            batch,
            index,
            config,
            name=request.name,
            belt_id=request.belt_id,
            stripes=request.stripes,
            location=request.location,
            assigned_class=request.assigned_class,
        )
    except IndexError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    registry.replace(batch)
    return to_batch_response(batch, config)


@router.delete(
    "/imports/{batch_id}/rows/{index}",
    response_model=ImportBatchResponse,
    summary="Remove one row from a pending import",
)
async def delete_import_row(
    batch_id: UUID,
    index: int,
    api_key: AuthenticatedUser,
    config: ClubConfigDep,
    registry: ImportRegistryDep,
) -> ImportBatchResponse:
    batch = _get_batch(registry, batch_id)
    try:
        batch = remove_row(batch, index)
    except IndexError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    registry.replace(batch)
    return to_batch_response(batch, config)


@router.post(
    "/imports/{batch_id}/commit",
    response_model=ImportCommitResponse,
    summary="Add the valid rows to the roster",
    description="Rows with a missing name or an unrecognized belt are skipped",
)
async def commit_import(
    batch_id: UUID,
    api_key: AuthenticatedUser,
    config: ClubConfigDep,
    registry: ImportRegistryDep,
    store: StudentStoreDep,
) -> ImportCommitResponse:
    batch = _get_batch(registry, batch_id)

    added = committable_students(batch)
    store.save_students(added)
    registry.pop(batch_id)

    skipped = skipped_count(batch)
    logger.info(
        "Import committed",
        extra={"batch_id": str(batch_id), "added": len(added), "skipped": skipped}
    )
    return ImportCommitResponse(
        added_count=len(added),
        skipped_count=skipped,
        students=[to_student_response(s, config) for s in added],
    )

"""User-facing commands: each runs one engine operation against a sheet.

Every command returns a ``CommandResult`` instead of raising so the host can
tell success, validation failure, partial failure and fatal errors apart.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict

from pydantic import BaseModel, Field

from .engine import SyncEngine
from .errors import NoIdentifierError, SyncError, ValidationError
from .metrics import DOCS_LOADED, ROW_WRITES
from .sheets import SheetSurface

logger = logging.getLogger(__name__)


class Status(str, Enum):
    SUCCESS = "success"
    VALIDATION_FAILED = "validation_failed"
    PARTIAL_FAILURE = "partial_failure"
    FATAL_ERROR = "fatal_error"


class CommandResult(BaseModel):
    status: Status
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


def fatal(exc: SyncError) -> CommandResult:
    logger.error("%s: %s", type(exc).__name__, exc)
    return CommandResult(
        status=Status.FATAL_ERROR,
        message=str(exc),
        details={"error": type(exc).__name__},
    )


def _validation_failed(exc: ValidationError) -> CommandResult:
    return CommandResult(
        status=Status.VALIDATION_FAILED,
        message=f"Missing required columns: {', '.join(exc.result.missing)}",
        details={"missing": exc.result.missing},
    )


def load_data(engine: SyncEngine, sheet: SheetSurface) -> CommandResult:
    try:
        result = engine.load_collection()
        sheet.write_grid(result.grid())
    except SyncError as exc:
        return fatal(exc)
    DOCS_LOADED.inc(len(result.rows))
    return CommandResult(
        status=Status.SUCCESS,
        message=f"Loaded {len(result.rows)} documents",
        details={"documents": len(result.rows), "columns": result.columns},
    )


def write_selected_row(engine: SyncEngine, sheet: SheetSurface, row_number: int) -> CommandResult:
    """Write one sheet row, ``row_number`` counted from 1 like the sheet does."""

    try:
        snapshot = sheet.read_grid()
        outcome = engine.write_selected_row(snapshot, row_number - 1)
    except ValidationError as exc:
        return _validation_failed(exc)
    except NoIdentifierError as exc:
        return CommandResult(status=Status.VALIDATION_FAILED, message=str(exc))
    except SyncError as exc:
        return fatal(exc)

    details = outcome.model_dump()
    if not outcome.success:
        ROW_WRITES.labels("error").inc()
        return CommandResult(
            status=Status.FATAL_ERROR,
            message=f"Failed to write {outcome.document_id}: {outcome.error}",
            details=details,
        )
    if not outcome.written:
        return CommandResult(
            status=Status.SUCCESS,
            message=f"Nothing to write for {outcome.document_id}",
            details=details,
        )
    ROW_WRITES.labels("success").inc()
    return CommandResult(
        status=Status.SUCCESS,
        message=f"Wrote {outcome.document_id}",
        details=details,
    )


def write_all_rows(engine: SyncEngine, sheet: SheetSurface) -> CommandResult:
    try:
        snapshot = sheet.read_grid()
        batch = engine.write_all_rows(snapshot)
    except ValidationError as exc:
        return _validation_failed(exc)
    except SyncError as exc:
        return fatal(exc)

    ROW_WRITES.labels("success").inc(batch.success_count)
    ROW_WRITES.labels("error").inc(batch.error_count)
    details = {
        "success_count": batch.success_count,
        "error_count": batch.error_count,
        "skipped_count": batch.skipped_count,
        "errors": [
            {"document_id": outcome.document_id, "error": outcome.error}
            for outcome in batch.outcomes
            if not outcome.success
        ],
    }
    message = f"{batch.success_count} written, {batch.error_count} failed"
    status = Status.PARTIAL_FAILURE if batch.error_count else Status.SUCCESS
    return CommandResult(status=status, message=message, details=details)


def validate_columns(engine: SyncEngine, sheet: SheetSurface) -> CommandResult:
    try:
        snapshot = sheet.read_grid()
    except SyncError as exc:
        return fatal(exc)
    header = snapshot[0] if snapshot else []
    result = engine.validate_columns(header)
    if not result.valid:
        return CommandResult(
            status=Status.VALIDATION_FAILED,
            message=f"Missing required columns: {', '.join(result.missing)}",
            details={"missing": result.missing},
        )
    return CommandResult(
        status=Status.SUCCESS,
        message="All required columns are present",
        details={"missing": []},
    )

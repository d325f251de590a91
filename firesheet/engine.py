from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence

import httpx
from pydantic import BaseModel, Field

from .codec import CellValue, FieldCodec
from .config import SyncConfig
from .errors import (
    ConfigMissingError,
    EmptyCollectionError,
    FetchError,
    NoIdentifierError,
    SelectionError,
    ValidationError,
)
from .firestore import FirestoreClient
from .rows import is_empty, is_writable_row, last_data_row_index
from .schema import ValidationResult, resolve_read_columns, validate_writable

logger = logging.getLogger(__name__)

AUDIT_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


class LoadResult(BaseModel):
    columns: List[str]
    rows: List[List[Any]]
    audit_row: List[Any]

    def grid(self) -> List[List[Any]]:
        return [list(self.columns), *[list(row) for row in self.rows], list(self.audit_row)]


class WriteOutcome(BaseModel):
    success: bool
    document_id: str
    error: Optional[str] = None
    written: bool = False
    fields: Dict[str, Any] = Field(default_factory=dict)


class BatchOutcome(BaseModel):
    success_count: int = 0
    error_count: int = 0
    skipped_count: int = 0
    outcomes: List[WriteOutcome] = Field(default_factory=list)


def document_id_from_name(name: str) -> str:
    return name.rstrip("/").rsplit("/", 1)[-1]


class SyncEngine:
    """Loads a collection into rows and writes edited rows back as patches."""

    def __init__(
        self,
        config: SyncConfig,
        client: Optional[FirestoreClient] = None,
        codec: Optional[FieldCodec] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        missing = config.missing_credentials()
        if missing:
            raise ConfigMissingError(missing)
        self.config = config
        self.client = client or FirestoreClient(config)
        self.codec = codec or FieldCodec()
        self.clock = clock or datetime.now

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "SyncEngine":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # -- read ------------------------------------------------------------

    def fetch_documents(self) -> List[dict]:
        try:
            response = self.client.list_documents()
        except httpx.HTTPError as exc:
            raise FetchError(None, str(exc)) from exc
        if not response.is_success:
            raise FetchError(response.status_code, response.text[:500])
        try:
            payload = response.json() or {}
        except ValueError as exc:
            raise FetchError(response.status_code, "response is not JSON") from exc
        if payload.get("nextPageToken"):
            logger.warning(
                "collection %s has more documents than one page of %d; only the first page is loaded",
                self.config.collection,
                self.config.page_size,
            )
        documents = payload.get("documents") or []
        if not documents:
            raise EmptyCollectionError(self.config.collection)
        return documents

    def load_collection(self) -> LoadResult:
        documents = self.fetch_documents()
        identifier = self.config.identifier

        discovered: List[str] = []
        for document in documents:
            for name in (document.get("fields") or {}):
                if name not in discovered:
                    discovered.append(name)
        columns = resolve_read_columns([identifier, *self.config.declared_columns], discovered)

        rows: List[List[Any]] = []
        for document in documents:
            fields = document.get("fields") or {}
            doc_id = document_id_from_name(document.get("name", ""))
            row: List[Any] = []
            for column in columns:
                if column == identifier:
                    row.append(doc_id)
                else:
                    row.append(self.codec.decode(fields.get(column)))
            rows.append(row)

        audit_row = [self.config.audit_label, self.clock().strftime(AUDIT_TIME_FORMAT)]
        logger.info(
            "loaded %d documents with %d columns from %s",
            len(rows),
            len(columns),
            self.config.collection,
        )
        return LoadResult(columns=columns, rows=rows, audit_row=audit_row)

    # -- write -----------------------------------------------------------

    def validate_columns(self, header: Sequence[Any], writable: Optional[Sequence[str]] = None) -> ValidationResult:
        required = self.config.writable_fields if writable is None else writable
        return validate_writable(header, list(required), self.config.identifier)

    def encode_row(self, header: Sequence[Any], row: Sequence[CellValue], writable: Sequence[str]) -> Dict[str, Any]:
        allowed = set(writable)
        allowed.discard(self.config.identifier)
        fields: Dict[str, Any] = {}
        for position, name in enumerate(header):
            column = str(name).strip() if name is not None else ""
            if column not in allowed or position >= len(row):
                continue
            encoded = self.codec.encode(row[position], column)
            if encoded is not None:
                fields[column] = encoded
        return fields

    def write_row(
        self, header: Sequence[Any], row: Sequence[CellValue], writable: Optional[Sequence[str]] = None
    ) -> WriteOutcome:
        writable = self.config.writable_fields if writable is None else writable
        id_index = self._identifier_index(header)
        if id_index is None or id_index >= len(row) or is_empty(row[id_index]):
            raise NoIdentifierError(self.config.identifier)
        document_id = str(row[id_index]).strip()

        fields = self.encode_row(header, row, writable)
        if not fields:
            logger.info("document %s: nothing to write", document_id)
            return WriteOutcome(success=True, document_id=document_id)

        try:
            response = self.client.patch_document(document_id, fields)
        except httpx.HTTPError as exc:
            logger.warning("document %s: transport error: %s", document_id, exc)
            return WriteOutcome(success=False, document_id=document_id, error=str(exc), fields=fields)
        if not response.is_success:
            error = f"HTTP {response.status_code}: {response.text[:500]}"
            logger.warning("document %s: %s", document_id, error)
            return WriteOutcome(success=False, document_id=document_id, error=error, fields=fields)
        return WriteOutcome(success=True, document_id=document_id, written=True, fields=fields)

    def write_all_rows(
        self, snapshot: Sequence[Sequence[CellValue]], writable: Optional[Sequence[str]] = None
    ) -> BatchOutcome:
        writable = self.config.writable_fields if writable is None else writable
        header = self._checked_header(snapshot, writable)
        id_index = self._identifier_index(header)
        assert id_index is not None

        batch = BatchOutcome()
        last = last_data_row_index(snapshot)
        for index in range(1, last + 1):
            row = snapshot[index]
            if not is_writable_row(row, id_index, index):
                batch.skipped_count += 1
                continue
            outcome = self.write_row(header, row, writable)
            batch.outcomes.append(outcome)
            if not outcome.success:
                batch.error_count += 1
            elif outcome.written:
                batch.success_count += 1
            else:
                batch.skipped_count += 1

        logger.info(
            "write batch complete: %d succeeded, %d failed, %d skipped",
            batch.success_count,
            batch.error_count,
            batch.skipped_count,
        )
        return batch

    def write_selected_row(
        self,
        snapshot: Sequence[Sequence[CellValue]],
        row_index: int,
        writable: Optional[Sequence[str]] = None,
    ) -> WriteOutcome:
        writable = self.config.writable_fields if writable is None else writable
        header = self._checked_header(snapshot, writable)
        last = last_data_row_index(snapshot)
        if row_index < 1 or row_index > last:
            raise SelectionError(f"row {row_index + 1} is not a data row")
        return self.write_row(header, snapshot[row_index], writable)

    def _checked_header(self, snapshot: Sequence[Sequence[CellValue]], writable: Sequence[str]) -> Sequence[Any]:
        header = snapshot[0] if snapshot else []
        result = self.validate_columns(header, writable)
        if not result.valid:
            raise ValidationError(result)
        return header

    def _identifier_index(self, header: Sequence[Any]) -> Optional[int]:
        for position, name in enumerate(header):
            if name is not None and str(name).strip() == self.config.identifier:
                return position
        return None

"""Error types raised by the sync layer."""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:  # pragma: no cover
    from .schema import ValidationResult


class SyncError(Exception):
    """Base class for every failure the sync layer reports."""


class ConfigMissingError(SyncError):
    def __init__(self, missing: Sequence[str]):
        self.missing = list(missing)
        super().__init__(f"missing configuration: {', '.join(self.missing)}")


class FetchError(SyncError):
    def __init__(self, status: int | None, detail: str = ""):
        self.status = status
        self.detail = detail
        if status is None:
            message = f"collection fetch failed: {detail}"
        else:
            message = f"collection fetch failed with HTTP {status}"
            if detail:
                message = f"{message}: {detail}"
        super().__init__(message)


class EmptyCollectionError(SyncError):
    def __init__(self, collection: str):
        self.collection = collection
        super().__init__(f"no documents found in collection {collection!r}")


class NoIdentifierError(SyncError):
    def __init__(self, column: str):
        self.column = column
        super().__init__(f"row has no value in identifier column {column!r}")


class ValidationError(SyncError):
    def __init__(self, result: "ValidationResult"):
        self.result = result
        super().__init__(f"missing columns: {', '.join(result.missing)}")


class SelectionError(SyncError):
    pass


class SheetUnavailableError(SyncError):
    pass


class SheetAccessError(SyncError):
    pass


class UnsupportedValueError(SyncError, ValueError):
    pass

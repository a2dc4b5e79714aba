"""
Exception taxonomy for the CSV reconciliation engine.

Fatal errors abort an import before any row is touched. Row-level errors are
raised inside the per-row pipeline and converted into row outcomes by the
reconciler, so they never cross a batch boundary.
"""

from __future__ import annotations

from typing import Sequence


class ImporterError(Exception):
    """Base exception for importer failures."""


class FatalInputError(ImporterError):
    """Raised when the file as a whole cannot be imported."""


class MalformedInput(FatalInputError):
    """Raised when CSV text is empty or has no header row."""


class MissingColumnsError(FatalInputError):
    """Raised when required-for-import columns are absent from the header."""

    def __init__(self, missing: Sequence[str]) -> None:
        self.missing = tuple(missing)
        super().__init__(f"Missing required column(s): {', '.join(self.missing)}")


class RowValidationError(ImporterError):
    """Raised when a single row fails required-field validation."""

    def __init__(self, message: str, *, field: str | None = None, row_number: int | None = None) -> None:
        super().__init__(message)
        self.field = field
        self.row_number = row_number


class StoreError(ImporterError):
    """Raised by a record store when a read or write fails."""


class PermissionDenied(StoreError):
    """Raised by a record store when the acting principal may not write a record."""

    def __init__(self, message: str, *, resource_type: str | None = None, resource_id: str | None = None) -> None:
        super().__init__(message)
        self.resource_type = resource_type
        self.resource_id = resource_id


class ChildRecordWarning(ImporterError):
    """Raised when a child record cannot be written; reported as a warning on the parent row."""

    def __init__(self, message: str, *, parent_id: str | None = None) -> None:
        super().__init__(message)
        self.parent_id = parent_id


class UnknownEntityError(ImporterError, LookupError):
    """Raised when no schema is registered for an entity name."""

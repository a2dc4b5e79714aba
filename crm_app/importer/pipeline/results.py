"""Per-row outcomes and the aggregated import result."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Iterable


class OutcomeKind(str, enum.Enum):
    INSERTED = "inserted"
    UPDATED = "updated"
    DUPLICATE = "duplicate"
    ERROR = "error"


class ErrorKind(str, enum.Enum):
    VALIDATION = "validation"
    STORE = "store"
    PERMISSION_DENIED = "permission_denied"


@dataclass(frozen=True)
class RowError:
    row: int
    message: str
    kind: ErrorKind = ErrorKind.VALIDATION

    def __str__(self) -> str:
        return f"Row {self.row}: {self.message}"

    def as_dict(self) -> dict[str, Any]:
        return {"row": self.row, "message": self.message, "kind": self.kind.value}


@dataclass(frozen=True)
class RowOutcome:
    """Result of reconciling one CSV row."""

    row_number: int
    kind: OutcomeKind
    record_id: str | None = None
    message: str | None = None
    error_kind: ErrorKind | None = None
    warnings: tuple[str, ...] = ()

    @classmethod
    def inserted(cls, row_number: int, record_id: str, warnings: Iterable[str] = ()) -> "RowOutcome":
        return cls(row_number, OutcomeKind.INSERTED, record_id=record_id, warnings=tuple(warnings))

    @classmethod
    def updated(cls, row_number: int, record_id: str, warnings: Iterable[str] = ()) -> "RowOutcome":
        return cls(row_number, OutcomeKind.UPDATED, record_id=record_id, warnings=tuple(warnings))

    @classmethod
    def duplicate(cls, row_number: int, record_id: str | None, warnings: Iterable[str] = ()) -> "RowOutcome":
        return cls(row_number, OutcomeKind.DUPLICATE, record_id=record_id, warnings=tuple(warnings))

    @classmethod
    def failed(
        cls,
        row_number: int,
        message: str,
        *,
        error_kind: ErrorKind = ErrorKind.VALIDATION,
        record_id: str | None = None,
        warnings: Iterable[str] = (),
    ) -> "RowOutcome":
        return cls(
            row_number,
            OutcomeKind.ERROR,
            record_id=record_id,
            message=message,
            error_kind=error_kind,
            warnings=tuple(warnings),
        )


@dataclass
class ImportResult:
    entity: str
    success_count: int = 0
    update_count: int = 0
    duplicate_count: int = 0
    error_count: int = 0
    errors: list[RowError] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    processed_rows: int = 0
    total_rows: int = 0
    permission_denied_count: int = 0
    cancelled: bool = False
    fatal_error: str | None = None
    duration_seconds: float = 0.0

    @classmethod
    def fatal(cls, entity: str, message: str, *, warnings: Iterable[str] = ()) -> "ImportResult":
        return cls(entity=entity, fatal_error=message, warnings=list(warnings))

    @property
    def status(self) -> str:
        if self.fatal_error:
            return "failed"
        if self.cancelled:
            return "cancelled"
        if self.error_count:
            return "partially_failed"
        return "succeeded"

    @property
    def error_messages(self) -> list[str]:
        if self.fatal_error:
            return [self.fatal_error]
        return [str(error) for error in self.errors]

    def as_dict(self) -> dict[str, Any]:
        return {
            "entity": self.entity,
            "status": self.status,
            "success_count": self.success_count,
            "update_count": self.update_count,
            "duplicate_count": self.duplicate_count,
            "error_count": self.error_count,
            "permission_denied_count": self.permission_denied_count,
            "processed_rows": self.processed_rows,
            "total_rows": self.total_rows,
            "cancelled": self.cancelled,
            "fatal_error": self.fatal_error,
            "errors": [error.as_dict() for error in self.errors],
            "warnings": list(self.warnings),
            "duration_seconds": round(self.duration_seconds, 3),
        }


class ResultAggregator:
    """Accumulates row outcomes into an ``ImportResult``."""

    def __init__(self, entity: str, *, total_rows: int = 0) -> None:
        self._result = ImportResult(entity=entity, total_rows=total_rows)

    @property
    def processed_rows(self) -> int:
        return self._result.processed_rows

    def add(self, outcome: RowOutcome) -> None:
        result = self._result
        result.processed_rows += 1
        if outcome.kind is OutcomeKind.INSERTED:
            result.success_count += 1
        elif outcome.kind is OutcomeKind.UPDATED:
            result.update_count += 1
        elif outcome.kind is OutcomeKind.DUPLICATE:
            result.duplicate_count += 1
        else:
            result.error_count += 1
            error_kind = outcome.error_kind or ErrorKind.VALIDATION
            if error_kind is ErrorKind.PERMISSION_DENIED:
                result.permission_denied_count += 1
            result.errors.append(RowError(outcome.row_number, outcome.message or "Unknown error", error_kind))
        for warning in outcome.warnings:
            result.warnings.append(f"Row {outcome.row_number}: {warning}")

    def add_warning(self, message: str) -> None:
        self._result.warnings.append(message)

    def extend_warnings(self, messages: Iterable[str]) -> None:
        self._result.warnings.extend(messages)

    def mark_cancelled(self) -> None:
        self._result.cancelled = True

    def build(self, *, duration_seconds: float = 0.0) -> ImportResult:
        result = self._result
        result.errors.sort(key=lambda error: error.row)
        result.duration_seconds = duration_seconds
        return result

"""Batch reconciliation of CSV rows against a record store.

Rows are processed in fixed-size batches. Within a batch, id lookups may run
on a small thread pool because they are read-only; natural-key lookups and
all writes run in row order under a per-key lock so two rows sharing a key
can never both insert. Batch size only affects progress reporting and lookup
parallelism, never the aggregate result.

Every row ends as exactly one ``RowOutcome``; exceptions raised while
handling a row are converted here and never cross a batch boundary.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, Iterator, Mapping, Sequence

from flask import current_app, has_app_context

from crm_app.importer.codec import parse_csv_document
from crm_app.importer.contracts import FieldSchema
from crm_app.importer.errors import (
    ChildRecordWarning,
    FatalInputError,
    PermissionDenied,
    RowValidationError,
    StoreError,
)
from crm_app.importer.mapping import HeaderMapping, map_headers, require_columns
from crm_app.importer.metrics import (
    record_batch,
    record_permission_denied,
    record_row_outcome,
    record_run,
    record_unmapped_columns,
)
from crm_app.importer.store import PrincipalDirectory, RecordStore

from .dedupe import DedupMatcher
from .normalize import FieldNormalizer, NormalizedRow, is_uuid
from .results import ErrorKind, ImportResult, ResultAggregator, RowOutcome

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 20

ProgressCallback = Callable[[int, int], None]


@dataclass(frozen=True)
class PermissionDeniedEvent:
    entity: str
    row_number: int
    record_id: str | None
    principal_id: str | None
    message: str


PermissionDeniedCallback = Callable[[PermissionDeniedEvent], None]


class KeyedLocks:
    """Hand out one lock per key so writes for the same key are serialized."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[Hashable, threading.Lock] = {}

    @contextmanager
    def hold(self, key: Hashable | None) -> Iterator[None]:
        if key is None:
            yield
            return
        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())
        with lock:
            yield


@dataclass
class _PreparedRow:
    row_number: int
    row: NormalizedRow | None = None
    failure: RowOutcome | None = None


def _log(level: int, message: str, *args: Any, **extra: Any) -> None:
    target = current_app.logger if has_app_context() else logger
    target.log(level, message, *args, extra=extra)


def _log_unexpected(entity: str, row_number: int | None, exc: Exception) -> None:
    target = current_app.logger if has_app_context() else logger
    target.error(
        "Unexpected error importing %s row %s: %s",
        entity,
        row_number,
        exc,
        exc_info=exc,
        extra={"importer_entity": entity, "importer_row": row_number},
    )


class BatchReconciler:
    """Drive one import: parse, map, normalize, dedupe, write and aggregate."""

    def __init__(
        self,
        store: RecordStore,
        schema: FieldSchema,
        *,
        directory: PrincipalDirectory | None = None,
        default_principal: str | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        lookup_workers: int = 1,
        on_progress: ProgressCallback | None = None,
        on_permission_denied: PermissionDeniedCallback | None = None,
        cancel_event: threading.Event | None = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.store = store
        self.schema = schema
        self.default_principal = default_principal
        self.batch_size = batch_size
        self.lookup_workers = max(1, lookup_workers)
        self.on_progress = on_progress
        self.on_permission_denied = on_permission_denied
        self.cancel_event = cancel_event
        self.normalizer = FieldNormalizer(schema, directory=directory, default_principal=default_principal)
        self.matcher = DedupMatcher(store, schema)
        self._locks = KeyedLocks()
        self._claimed: Dict[tuple, str] = {}
        self._inserted_ids: Dict[str, str] = {}

    @property
    def entity(self) -> str:
        return self.schema.entity_name

    def run(self, text: str) -> ImportResult:
        """
        Import CSV ``text`` and return the aggregated result.

        Fatal input problems (empty file, missing header, missing required
        column, zero data rows) are reported as ``ImportResult.fatal_error``
        before any row is touched.
        """

        started = time.perf_counter()
        self._claimed = {}
        self._inserted_ids = {}
        header_mapping: HeaderMapping | None = None
        try:
            document = parse_csv_document(text)
            header_mapping = map_headers(document.headers, self.schema)
            require_columns(header_mapping, self.schema)
            if not document.rows:
                raise FatalInputError("CSV file has no data rows.")
        except FatalInputError as exc:
            warnings = header_mapping.warnings if header_mapping is not None else []
            _log(
                logging.WARNING,
                "Import of %s aborted: %s",
                self.entity,
                exc,
                importer_entity=self.entity,
                importer_fatal_error=str(exc),
            )
            record_run(self.entity, "failed")
            return ImportResult.fatal(self.entity, str(exc), warnings=warnings)

        record_unmapped_columns(self.entity, len(header_mapping.unmapped))
        total = len(document)
        aggregator = ResultAggregator(self.entity, total_rows=total)
        aggregator.extend_warnings(header_mapping.warnings)
        _log(
            logging.INFO,
            "Importing %s rows into %s",
            total,
            self.entity,
            importer_entity=self.entity,
            importer_total_rows=total,
            importer_batch_size=self.batch_size,
        )

        for start in range(0, total, self.batch_size):
            if self.cancel_event is not None and self.cancel_event.is_set():
                aggregator.mark_cancelled()
                _log(
                    logging.WARNING,
                    "Import of %s cancelled after %s of %s rows",
                    self.entity,
                    aggregator.processed_rows,
                    total,
                    importer_entity=self.entity,
                    importer_processed_rows=aggregator.processed_rows,
                )
                break
            batch_started = time.perf_counter()
            stop = min(start + self.batch_size, total)
            prepared = [
                self._prepare(header_mapping.row_to_fields(document.rows[index]), document.line_numbers[index])
                for index in range(start, stop)
            ]
            id_matches = self._lookup_ids(prepared)
            for item in prepared:
                outcome = item.failure if item.failure is not None else self._reconcile(item.row, id_matches)
                aggregator.add(outcome)
                record_row_outcome(self.entity, outcome.kind.value)
            record_batch(self.entity, duration_seconds=time.perf_counter() - batch_started)
            if self.on_progress is not None:
                self.on_progress(aggregator.processed_rows, total)

        result = aggregator.build(duration_seconds=time.perf_counter() - started)
        record_run(self.entity, result.status)
        _log(
            logging.INFO,
            "Import of %s finished with status %s",
            self.entity,
            result.status,
            importer_entity=self.entity,
            importer_status=result.status,
            importer_success_count=result.success_count,
            importer_update_count=result.update_count,
            importer_duplicate_count=result.duplicate_count,
            importer_error_count=result.error_count,
        )
        return result

    def _prepare(self, values: Mapping[str, str], row_number: int) -> _PreparedRow:
        try:
            return _PreparedRow(row_number, row=self.normalizer.normalize_row(values, row_number=row_number))
        except RowValidationError as exc:
            return _PreparedRow(row_number, failure=RowOutcome.failed(row_number, str(exc)))
        except StoreError as exc:
            return _PreparedRow(
                row_number,
                failure=RowOutcome.failed(row_number, str(exc), error_kind=ErrorKind.STORE),
            )
        except Exception as exc:
            return _PreparedRow(row_number, failure=self._unexpected_failure(row_number, exc))

    def _safe_match_by_id(self, record_id: str) -> str | StoreError | None:
        try:
            return self.matcher.match_by_id(record_id)
        except StoreError as exc:
            return exc
        except Exception as exc:
            _log_unexpected(self.entity, None, exc)
            return StoreError(f"Processing error: {exc}")

    def _lookup_ids(self, prepared: Sequence[_PreparedRow]) -> Dict[str, str | StoreError | None]:
        record_ids = list(dict.fromkeys(item.row.record_id for item in prepared if item.row and item.row.record_id))
        if not record_ids:
            return {}
        if self.lookup_workers == 1 or len(record_ids) == 1:
            return {record_id: self._safe_match_by_id(record_id) for record_id in record_ids}

        app = current_app._get_current_object() if has_app_context() else None

        def _lookup(record_id: str) -> str | StoreError | None:
            if app is None:
                return self._safe_match_by_id(record_id)
            with app.app_context():
                return self._safe_match_by_id(record_id)

        with ThreadPoolExecutor(max_workers=min(self.lookup_workers, len(record_ids))) as executor:
            return dict(zip(record_ids, executor.map(_lookup, record_ids)))

    def _reconcile(self, row: NormalizedRow, id_matches: Mapping[str, str | StoreError | None]) -> RowOutcome:
        record_id: str | None = None
        try:
            match = id_matches.get(row.record_id) if row.record_id else None
            if isinstance(match, StoreError):
                raise match
            if match is None and row.record_id:
                match = self._inserted_ids.get(row.record_id)
            if match is not None:
                record_id = match
                with self._locks.hold(("id", match)):
                    return self._update(row, match)

            key = row.natural_key(self.schema)
            if key is not None:
                lock_key = ("key", key)
            else:
                lock_key = ("id", row.record_id) if self._keeps_supplied_id(row) else None
            with self._locks.hold(lock_key):
                existing = self._claimed.get(key) if key is not None else None
                if existing is None:
                    existing = self.matcher.match_by_natural_key(row)
                if existing is not None:
                    if self.schema.update_on_natural_key:
                        record_id = existing
                        return self._update(row, existing)
                    return RowOutcome.duplicate(row.row_number, existing, row.warnings)
                return self._insert(row, key)
        except PermissionDenied as exc:
            self._notify_permission_denied(row, exc, record_id)
            return RowOutcome.failed(
                row.row_number,
                str(exc),
                error_kind=ErrorKind.PERMISSION_DENIED,
                record_id=record_id,
                warnings=row.warnings,
            )
        except StoreError as exc:
            return RowOutcome.failed(
                row.row_number,
                str(exc),
                error_kind=ErrorKind.STORE,
                record_id=record_id,
                warnings=row.warnings,
            )
        except Exception as exc:
            return self._unexpected_failure(row.row_number, exc, record_id=record_id, warnings=row.warnings)

    def _update(self, row: NormalizedRow, record_id: str) -> RowOutcome:
        self.store.update(self.entity, record_id, dict(row.record))
        key = row.natural_key(self.schema)
        if key is not None and all(value is not None for value in key):
            self._claimed.setdefault(key, record_id)
        warnings = [*row.warnings, *self._sync_children(record_id, row.children, replace=True)]
        return RowOutcome.updated(row.row_number, record_id, warnings)

    def _keeps_supplied_id(self, row: NormalizedRow) -> bool:
        """Records without a natural key keep a well-formed supplied id so re-imports update them."""

        return not self.schema.natural_key_fields and is_uuid(row.record_id)

    def _insert(self, row: NormalizedRow, key: tuple | None) -> RowOutcome:
        payload = self.normalizer.insert_defaults()
        payload.update(row.record)
        supplied_id = row.record_id if self._keeps_supplied_id(row) else None
        if supplied_id is not None:
            payload[self.schema.id_field] = supplied_id
        new_id = self.store.insert(self.entity, payload)
        if key is not None:
            self._claimed[key] = new_id
        if supplied_id is not None:
            self._inserted_ids[supplied_id] = new_id
        warnings = [*row.warnings, *self._sync_children(new_id, row.children, replace=False)]
        return RowOutcome.inserted(row.row_number, new_id, warnings)

    def _sync_children(
        self,
        parent_id: str,
        children: list[Dict[str, Any]] | None,
        *,
        replace: bool,
    ) -> list[str]:
        """
        Write child records for ``parent_id``.

        ``None`` leaves existing children untouched. On update the existing
        children are replaced wholesale, so an empty list clears them.
        Failures become warnings; the parent outcome stands.
        """

        child_spec = self.schema.child_spec
        if child_spec is None or children is None:
            return []
        if not replace and not children:
            return []
        label = self.schema.get_field(child_spec.column).label
        try:
            if replace:
                self.store.delete_children(self.entity, parent_id)
            if children:
                self.store.insert_children(self.entity, parent_id, children)
        except Exception as exc:
            if not isinstance(exc, StoreError):
                _log_unexpected(self.entity, None, exc)
            warning = ChildRecordWarning(f"{label} were not saved: {exc}", parent_id=parent_id)
            _log(
                logging.WARNING,
                "%s",
                warning,
                importer_entity=self.entity,
                importer_record_id=parent_id,
            )
            return [str(warning)]
        return []

    def _unexpected_failure(
        self,
        row_number: int,
        exc: Exception,
        *,
        record_id: str | None = None,
        warnings: Sequence[str] = (),
    ) -> RowOutcome:
        _log_unexpected(self.entity, row_number, exc)
        return RowOutcome.failed(
            row_number,
            f"Processing error: {exc}",
            error_kind=ErrorKind.STORE,
            record_id=record_id,
            warnings=warnings,
        )

    def _notify_permission_denied(self, row: NormalizedRow, exc: PermissionDenied, record_id: str | None) -> None:
        record_permission_denied(self.entity)
        event = PermissionDeniedEvent(
            entity=self.entity,
            row_number=row.row_number,
            record_id=exc.resource_id or record_id,
            principal_id=self.default_principal,
            message=str(exc),
        )
        _log(
            logging.WARNING,
            "Import write refused for %s row %s",
            self.entity,
            row.row_number,
            importer_entity=self.entity,
            importer_row=row.row_number,
            importer_record_id=event.record_id,
        )
        if self.on_permission_denied is None:
            return
        try:
            self.on_permission_denied(event)
        except Exception:  # pragma: no cover - hook failures are logged, the row outcome stands
            target = current_app.logger if has_app_context() else logger
            target.exception("Permission-denied hook failed for %s row %s", self.entity, row.row_number)

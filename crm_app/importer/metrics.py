"""Prometheus metrics helpers for the importer."""

from __future__ import annotations

from typing import Literal

from flask import current_app, has_app_context
from prometheus_client import Counter, Histogram

_rows_counter = Counter(
    "importer_rows_total",
    "CSV rows reconciled by entity and outcome.",
    ["entity", "outcome"],
)
_runs_counter = Counter(
    "importer_runs_total",
    "Import runs by entity and final status.",
    ["entity", "status"],
)
_batch_duration = Histogram(
    "importer_batch_duration_seconds",
    "Duration of a reconciliation batch in seconds.",
    ["entity"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10, 30),
)
_unmapped_counter = Counter(
    "importer_unmapped_columns_total",
    "CSV columns that did not match any canonical field.",
    ["entity"],
)
_permission_denied_counter = Counter(
    "importer_permission_denied_total",
    "Row writes refused by the record store.",
    ["entity"],
)
_exports_counter = Counter(
    "importer_exports_total",
    "CSV exports generated by entity.",
    ["entity"],
)


def _metrics_enabled() -> bool:
    if not has_app_context():
        return True
    return bool(current_app.config.get("IMPORTER_METRICS_ENABLED", True))


def record_row_outcome(entity: str, outcome: Literal["inserted", "updated", "duplicate", "error"]) -> None:
    """Increment the per-row outcome counter."""

    if not _metrics_enabled():
        return
    _rows_counter.labels(entity=entity, outcome=outcome).inc()


def record_run(entity: str, status: str) -> None:
    if not _metrics_enabled():
        return
    _runs_counter.labels(entity=entity, status=status).inc()


def record_batch(entity: str, *, duration_seconds: float) -> None:
    """Capture the duration of one reconciliation batch."""

    if not _metrics_enabled():
        return
    _batch_duration.labels(entity=entity).observe(duration_seconds)


def record_unmapped_columns(entity: str, count: int) -> None:
    if not count or not _metrics_enabled():
        return
    _unmapped_counter.labels(entity=entity).inc(count)


def record_permission_denied(entity: str) -> None:
    if not _metrics_enabled():
        return
    _permission_denied_counter.labels(entity=entity).inc()


def record_export(entity: str) -> None:
    if not _metrics_enabled():
        return
    _exports_counter.labels(entity=entity).inc()

"""Reconciliation pipeline: normalize, dedupe, write, aggregate and export."""

from .dedupe import DedupMatch, DedupMatcher, MatchKind
from .export import ExportAssembler, export_filename
from .normalize import FieldNormalizer, NormalizedRow, export_value, parse_date_value, parse_datetime_value
from .reconcile import DEFAULT_BATCH_SIZE, BatchReconciler, KeyedLocks, PermissionDeniedEvent
from .results import ErrorKind, ImportResult, OutcomeKind, ResultAggregator, RowError, RowOutcome

__all__ = [
    "BatchReconciler",
    "DEFAULT_BATCH_SIZE",
    "DedupMatch",
    "DedupMatcher",
    "ErrorKind",
    "ExportAssembler",
    "FieldNormalizer",
    "ImportResult",
    "KeyedLocks",
    "MatchKind",
    "NormalizedRow",
    "OutcomeKind",
    "PermissionDeniedEvent",
    "ResultAggregator",
    "RowError",
    "RowOutcome",
    "export_filename",
    "export_value",
    "parse_date_value",
    "parse_datetime_value",
]

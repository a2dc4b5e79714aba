"""
Application-facing entry points for CSV import and export.

Wires the reconciliation engine to the SQLAlchemy record store, the principal
directory, importer configuration and the security audit trail. The CLI and
the blueprint both go through these helpers.
"""

from __future__ import annotations

import threading
from datetime import date

from flask import current_app

from crm_app.importer.mapping import get_active_schema
from crm_app.importer.pipeline import (
    BatchReconciler,
    ExportAssembler,
    ImportResult,
    PermissionDeniedEvent,
    export_filename,
)
from crm_app.importer.pipeline.reconcile import ProgressCallback
from crm_app.importer.store import (
    PrincipalDirectory,
    RecordStore,
    SQLAlchemyPrincipalDirectory,
    SQLAlchemyRecordStore,
)
from crm_app.models import Principal, SecurityAuditEvent, db
from crm_app.utils.importer import get_batch_size, get_importer_entities, get_lookup_workers


def ensure_entity_enabled(entity: str) -> str:
    """Return the normalized entity name, raising ``LookupError`` when it is not enabled."""

    schema = get_active_schema(entity)
    if schema.entity_name not in get_importer_entities():
        raise LookupError(f"Importer entity '{schema.entity_name}' is not enabled.")
    return schema.entity_name


def resolve_principal_id(principal_id: str | None = None) -> str | None:
    return principal_id or current_app.config.get("IMPORTER_DEFAULT_PRINCIPAL_ID") or None


def build_record_store(principal_id: str | None) -> SQLAlchemyRecordStore:
    is_admin = False
    if principal_id:
        principal = db.session.get(Principal, principal_id)
        is_admin = bool(principal is not None and principal.is_admin)
    return SQLAlchemyRecordStore(actor_id=principal_id, is_admin=is_admin)


def audit_permission_denied(event: PermissionDeniedEvent) -> None:
    """Persist a security audit event for a refused import write."""

    db.session.add(
        SecurityAuditEvent(
            action="import_write_denied",
            resource_type=event.entity,
            resource_id=event.record_id,
            principal_id=event.principal_id,
            details={"row": event.row_number, "message": event.message},
        )
    )
    db.session.commit()


def build_reconciler(
    entity: str,
    *,
    principal_id: str | None = None,
    batch_size: int | None = None,
    store: RecordStore | None = None,
    directory: PrincipalDirectory | None = None,
    on_progress: ProgressCallback | None = None,
    cancel_event: threading.Event | None = None,
) -> BatchReconciler:
    schema = get_active_schema(entity)
    principal_id = resolve_principal_id(principal_id)
    return BatchReconciler(
        store if store is not None else build_record_store(principal_id),
        schema,
        directory=directory if directory is not None else SQLAlchemyPrincipalDirectory(),
        default_principal=principal_id,
        batch_size=batch_size or get_batch_size(),
        lookup_workers=get_lookup_workers(),
        on_progress=on_progress,
        on_permission_denied=audit_permission_denied,
        cancel_event=cancel_event,
    )


def import_csv(entity: str, text: str, **options) -> ImportResult:
    """Import CSV ``text`` for ``entity``; see ``build_reconciler`` for options."""

    return build_reconciler(entity, **options).run(text)


def export_csv(entity: str, *, store: RecordStore | None = None, on: date | None = None) -> tuple[str, str]:
    """Return ``(filename, csv_text)`` for every stored ``entity`` record."""

    schema = get_active_schema(entity)
    assembler = ExportAssembler(store if store is not None else SQLAlchemyRecordStore(), schema)
    return export_filename(schema.entity_name, on=on), assembler.export()

"""
Importer blueprint endpoints for health, schema discovery, CSV import and export.
"""

from __future__ import annotations

from http import HTTPStatus

from flask import Blueprint, Response, current_app, jsonify, request

from crm_app.importer.errors import MalformedInput
from crm_app.importer.mapping import MappingLoadError, get_active_schema
from crm_app.importer.service import ensure_entity_enabled, export_csv, import_csv
from crm_app.importer.utils import decode_csv_bytes, read_upload

importer_blueprint = Blueprint("importer", __name__, url_prefix="/importer")


def _serialize_schema(entity: str) -> dict:
    schema = get_active_schema(entity)
    return {
        "entity": schema.entity_name,
        "natural_key": list(schema.natural_key_fields),
        "update_on_natural_key": schema.update_on_natural_key,
        "child_column": schema.child_spec.column if schema.child_spec else None,
        "fields": [
            {
                "name": spec.name,
                "label": spec.label,
                "type": spec.type.value,
                "required": spec.required,
                "read_only": spec.read_only,
                "enum_values": list(spec.enum_values),
                "synonyms": list(spec.synonyms),
                "default": spec.default,
            }
            for spec in schema.fields
        ],
    }


def _resolve_entity_or_404(entity: str):
    try:
        return ensure_entity_enabled(entity), None
    except LookupError as exc:
        return None, (jsonify({"error": str(exc)}), HTTPStatus.NOT_FOUND)
    except MappingLoadError as exc:
        return None, (jsonify({"error": str(exc)}), HTTPStatus.INTERNAL_SERVER_ERROR)


@importer_blueprint.get("/health")
def importer_healthcheck():
    """
    Lightweight health endpoint proving the importer blueprint mounted correctly.
    """
    importer_state = current_app.extensions.get("importer", {})
    return (
        jsonify(
            {
                "status": "ok",
                "enabled": importer_state.get("enabled", False),
                "entities": list(importer_state.get("entities", ())),
            }
        ),
        HTTPStatus.OK,
    )


@importer_blueprint.get("/schemas/<entity>")
def importer_schema(entity: str):
    entity_name, error = _resolve_entity_or_404(entity)
    if error is not None:
        return error
    return jsonify(_serialize_schema(entity_name)), HTTPStatus.OK


@importer_blueprint.post("/<entity>/import")
def importer_import(entity: str):
    """
    Import CSV supplied as a multipart ``file`` field or as the raw request body.
    """
    entity_name, error = _resolve_entity_or_404(entity)
    if error is not None:
        return error

    max_mb = current_app.config.get("IMPORTER_MAX_UPLOAD_MB")
    try:
        upload = request.files.get("file")
        if upload is not None:
            text = read_upload(upload, max_mb=max_mb)
        else:
            text = decode_csv_bytes(request.get_data(cache=False), max_mb=max_mb)
    except MalformedInput as exc:
        return jsonify({"error": str(exc)}), HTTPStatus.BAD_REQUEST

    batch_size = request.args.get("batch_size", type=int)
    if batch_size is not None and batch_size < 1:
        return jsonify({"error": "batch_size must be at least 1"}), HTTPStatus.BAD_REQUEST

    result = import_csv(
        entity_name,
        text,
        principal_id=request.args.get("principal_id") or None,
        batch_size=batch_size,
    )
    payload = result.as_dict()
    if result.fatal_error:
        payload["error"] = result.fatal_error
        return jsonify(payload), HTTPStatus.BAD_REQUEST
    return jsonify(payload), HTTPStatus.OK


@importer_blueprint.get("/<entity>/export")
def importer_export(entity: str):
    entity_name, error = _resolve_entity_or_404(entity)
    if error is not None:
        return error
    filename, text = export_csv(entity_name)
    return Response(
        text,
        mimetype="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )

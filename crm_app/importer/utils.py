"""
Importer-specific utilities for uploads and import summary artifacts.
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Iterable
from uuid import uuid4

from flask import current_app
from werkzeug.datastructures import FileStorage

from crm_app.importer.errors import MalformedInput
from crm_app.importer.pipeline.results import ImportResult

DEFAULT_ARTIFACT_SUBDIR = "import_artifacts"
CSV_EXTENSIONS: tuple[str, ...] = ("csv",)


def _normalize_dir(configured_path: str | None, instance_path: str, *, default_subdir: str) -> Path:
    if not configured_path:
        return Path(instance_path) / default_subdir

    candidate = Path(configured_path)
    if candidate.is_absolute():
        return candidate

    return Path(instance_path) / candidate


def resolve_artifact_directory(app) -> Path:
    """
    Determine and create (if necessary) the importer artifact directory.
    """

    artifact_dir = _normalize_dir(
        app.config.get("IMPORTER_ARTIFACT_DIR"),
        app.instance_path,
        default_subdir=DEFAULT_ARTIFACT_SUBDIR,
    )
    artifact_dir.mkdir(parents=True, exist_ok=True)
    return artifact_dir


def allowed_file(filename: str, allowed_extensions: Iterable[str] = CSV_EXTENSIONS) -> bool:
    """
    Validate the uploaded filename extension against the allowed set.
    """

    if not filename or "." not in filename:
        return False
    extension = filename.rsplit(".", 1)[1].lower()
    return extension in {ext.lower() for ext in allowed_extensions}


def decode_csv_bytes(payload: bytes, *, max_mb: int | None = None) -> str:
    """
    Decode uploaded CSV bytes as UTF-8, enforcing the configured size limit.
    """

    if max_mb is not None and len(payload) > max_mb * 1024 * 1024:
        raise MalformedInput(f"CSV file exceeds the {max_mb} MB upload limit.")
    try:
        return payload.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise MalformedInput(f"CSV file is not valid UTF-8: {exc}") from exc


def read_upload(file_storage: FileStorage, *, max_mb: int | None = None) -> str:
    if file_storage.filename and not allowed_file(file_storage.filename):
        raise MalformedInput(f"Unsupported file type: {file_storage.filename}")
    return decode_csv_bytes(file_storage.read(), max_mb=max_mb)


def ensure_json_serializable(value: Any) -> Any:
    """
    Best-effort conversion of values to JSON-serializable representations.
    """

    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Mapping):
        return {str(key): ensure_json_serializable(inner) for key, inner in value.items()}
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        return [ensure_json_serializable(item) for item in value]
    return str(value)


def build_summary_payload(result: ImportResult, *, source: str | None = None) -> dict[str, Any]:
    payload = result.as_dict()
    payload["source"] = source
    payload["generated_at"] = datetime.now(timezone.utc).isoformat()
    return ensure_json_serializable(payload)


def persist_import_summary(
    result: ImportResult,
    app=None,
    *,
    source: str | None = None,
    path: str | Path | None = None,
) -> Path:
    """
    Write the JSON summary for ``result`` and return its path.

    Without an explicit ``path`` the file lands in the artifact directory
    under a unique name.
    """

    app = app or current_app
    if path is None:
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
        target = resolve_artifact_directory(app) / f"{result.entity}_import_{stamp}_{uuid4().hex[:8]}.json"
    else:
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
    payload = build_summary_payload(result, source=source)
    target.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
    app.logger.info(
        "Import summary written to %s",
        target,
        extra={"importer_entity": result.entity, "importer_summary_path": str(target)},
    )
    return target

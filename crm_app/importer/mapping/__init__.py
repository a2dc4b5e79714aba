"""Header mapping and synonym overrides for CSV imports.

CSV headers are matched against the entity schema one tier at a time, every
header being tried against a tier before any header falls through to the next:

1. exact canonical field name;
2. case-insensitive field name or label (also after folding spaces, dashes
   and dots into underscores);
3. exact normalized synonym;
4. the longest synonym contained in the header, among fields no other
   header has claimed.

Unknown headers are reported as warnings and never abort an import. Extra
synonyms can be supplied through a YAML file (``IMPORTER_SYNONYMS_PATH``).
"""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Sequence

import yaml
from flask import current_app, has_app_context
from rapidfuzz import fuzz, process

from crm_app.importer.contracts import FieldSchema, FieldSpec, get_schema, normalize_header
from crm_app.importer.errors import MissingColumnsError

logger = logging.getLogger(__name__)

MIN_SUBSTRING_SYNONYM_LENGTH = 3
SUGGESTION_SCORE_CUTOFF = 80.0


class MappingLoadError(RuntimeError):
    """Raised when a synonym override file cannot be loaded or validated."""


@dataclass(frozen=True)
class HeaderMatch:
    position: int
    header: str
    field: str
    tier: str


@dataclass
class HeaderMapping:
    """Positional header mapping plus the diagnostics produced while building it."""

    mapping: Dict[int, str] = field(default_factory=dict)
    matches: list[HeaderMatch] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    unmapped: list[str] = field(default_factory=list)
    suggestions: Dict[str, str] = field(default_factory=dict)

    @property
    def mapped_fields(self) -> set[str]:
        return set(self.mapping.values())

    def row_to_fields(self, row: Sequence[str]) -> Dict[str, str]:
        """Project a raw CSV row onto canonical field names."""

        values: Dict[str, str] = {}
        for position, field_name in self.mapping.items():
            values[field_name] = row[position] if position < len(row) else ""
        return values


def _exact_name(header: str, schema: FieldSchema) -> FieldSpec | None:
    return schema.get_field(header)


def _case_insensitive(header: str, schema: FieldSchema) -> FieldSpec | None:
    lowered = header.lower()
    normalized = normalize_header(header)
    for spec in schema.fields:
        if lowered in (spec.name.lower(), spec.label.lower()):
            return spec
    for spec in schema.fields:
        if normalized in (normalize_header(spec.name), normalize_header(spec.label)):
            return spec
    return None


def _exact_synonym(header: str, schema: FieldSchema) -> FieldSpec | None:
    normalized = normalize_header(header)
    if not normalized:
        return None
    for spec in schema.fields:
        if any(normalize_header(synonym) == normalized for synonym in spec.synonyms):
            return spec
    return None


def _substring_synonym(header: str, schema: FieldSchema, claimed: Mapping[str, str]) -> FieldSpec | None:
    normalized = normalize_header(header)
    if not normalized:
        return None
    best: FieldSpec | None = None
    best_length = 0
    for spec in schema.fields:
        if spec.name in claimed:
            continue
        for synonym in spec.synonyms:
            token = normalize_header(synonym)
            if len(token) < MIN_SUBSTRING_SYNONYM_LENGTH or token not in normalized:
                continue
            if len(token) > best_length:
                best, best_length = spec, len(token)
    return best


def _suggest(header: str, schema: FieldSchema) -> str | None:
    normalized = normalize_header(header)
    if not normalized:
        return None
    choices: Dict[str, str] = {}
    for spec in schema.fields:
        for candidate in spec.headers():
            choices.setdefault(normalize_header(candidate), spec.name)
    result = process.extractOne(
        normalized,
        list(choices),
        scorer=fuzz.token_sort_ratio,
        score_cutoff=SUGGESTION_SCORE_CUTOFF,
    )
    if result is None:
        return None
    return choices[result[0]]


def map_headers(csv_headers: Sequence[str], schema: FieldSchema) -> HeaderMapping:
    """
    Map CSV headers to canonical fields for ``schema``.

    Tiers are resolved in passes over every header, so a column matching a
    field exactly always claims it ahead of a synonym match elsewhere in the
    row. Within a pass the leftmost column wins; later columns resolving to a
    claimed field are ignored with a warning.

    Returns a ``HeaderMapping`` whose ``mapping`` is keyed by column position.
    """

    headers = [(raw_header or "").strip() for raw_header in csv_headers]
    claimed: Dict[str, str] = {}
    resolved: Dict[int, HeaderMatch] = {}
    notes: Dict[int, str] = {}

    passes = (
        ("exact", lambda header: _exact_name(header, schema)),
        ("case_insensitive", lambda header: _case_insensitive(header, schema)),
        ("synonym", lambda header: _exact_synonym(header, schema)),
        ("synonym", lambda header: _substring_synonym(header, schema, claimed)),
    )
    for tier, matcher in passes:
        for position, header in enumerate(headers):
            if position in resolved or position in notes:
                continue
            spec = matcher(header)
            if spec is None:
                continue
            if spec.name in claimed:
                notes[position] = f'Column "{header}" duplicates "{claimed[spec.name]}" and will be ignored'
                continue
            claimed[spec.name] = header
            resolved[position] = HeaderMatch(position=position, header=header, field=spec.name, tier=tier)

    result = HeaderMapping()
    for position, header in enumerate(headers):
        if position in resolved:
            match = resolved[position]
            result.mapping[position] = match.field
            result.matches.append(match)
        elif position in notes:
            result.warnings.append(notes[position])
        else:
            result.unmapped.append(header)
            result.warnings.append(f'Unknown column "{header}" will be ignored')
            suggestion = _suggest(header, schema)
            if suggestion is not None:
                result.suggestions[header] = suggestion

    if result.unmapped:
        logger.info(
            "Unmapped CSV columns for %s: %s",
            schema.entity_name,
            ", ".join(result.unmapped),
            extra={
                "importer_entity": schema.entity_name,
                "importer_unmapped_columns": list(result.unmapped),
                "importer_suggestions": dict(result.suggestions),
            },
        )
    return result


def require_columns(header_mapping: HeaderMapping, schema: FieldSchema) -> None:
    """Raise ``MissingColumnsError`` naming every required column absent from the mapping."""

    mapped = header_mapping.mapped_fields
    missing = [spec.label for spec in schema.required_import_fields if spec.name not in mapped]
    if missing:
        raise MissingColumnsError(missing)


def _compute_checksum(payload: Mapping[str, Any]) -> str:
    serialized = json.dumps(payload, sort_keys=True, default=str)
    return hashlib.sha256(serialized.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class SynonymOverrides:
    version: int
    entities: Mapping[str, Mapping[str, tuple[str, ...]]]
    checksum: str
    path: Path


def load_synonyms(path: str | Path) -> SynonymOverrides:
    """
    Load and validate a YAML synonym override file.

    Expected shape::

        version: 1
        entities:
          leads:
            lead_name: [prospect, "prospect name"]
    """

    path = Path(path)
    if not path.exists():
        raise MappingLoadError(f"Synonym file not found at {path}")

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:  # pragma: no cover - YAML parser errors
        raise MappingLoadError(f"Failed to parse synonym YAML at {path}: {exc}") from exc

    if not isinstance(raw, Mapping):
        raise MappingLoadError(f"Synonym file at {path} must contain a mapping.")
    try:
        version = int(raw.get("version", 1))
    except (TypeError, ValueError) as exc:
        raise MappingLoadError(f"Invalid synonym file version: {exc}") from exc

    entities_payload = raw.get("entities") or {}
    if not isinstance(entities_payload, Mapping):
        raise MappingLoadError("'entities' must be a mapping of entity name to field synonyms.")

    entities: dict[str, dict[str, tuple[str, ...]]] = {}
    for entity_name, fields_payload in entities_payload.items():
        try:
            schema = get_schema(str(entity_name))
        except LookupError as exc:
            raise MappingLoadError(str(exc)) from exc
        if not isinstance(fields_payload, Mapping):
            raise MappingLoadError(f"Synonyms for '{entity_name}' must be a mapping of field to list.")
        field_synonyms: dict[str, tuple[str, ...]] = {}
        for field_name, synonyms in fields_payload.items():
            if schema.get_field(str(field_name)) is None:
                raise MappingLoadError(f"Unknown field '{field_name}' for entity '{entity_name}'.")
            if isinstance(synonyms, str):
                synonyms = [synonyms]
            if not isinstance(synonyms, (list, tuple)):
                raise MappingLoadError(f"Synonyms for '{entity_name}.{field_name}' must be a list.")
            field_synonyms[str(field_name)] = tuple(str(item).strip() for item in synonyms if str(item).strip())
        entities[schema.entity_name] = field_synonyms

    return SynonymOverrides(version=version, entities=entities, checksum=_compute_checksum(raw), path=path)


def _load_cached_overrides(config_path: Path) -> SynonymOverrides:
    cache: dict[str, tuple[SynonymOverrides, float]] = current_app.extensions.setdefault(
        "_importer_synonym_cache", {}
    )
    cache_key = str(config_path)
    current_mtime = config_path.stat().st_mtime if config_path.exists() else 0.0
    cached_entry = cache.get(cache_key)
    if cached_entry and cached_entry[1] == current_mtime:
        return cached_entry[0]

    overrides = load_synonyms(config_path)
    cache[cache_key] = (overrides, current_mtime)
    current_app.logger.info(
        "Loaded importer synonym overrides from %s",
        config_path,
        extra={"importer_synonyms_path": str(config_path), "importer_synonyms_checksum": overrides.checksum},
    )
    return overrides


def get_active_schema(entity: str) -> FieldSchema:
    """
    Return the schema for ``entity`` with configured synonym overrides applied.

    Overrides are cached per app and reloaded when the file modification time
    changes. Outside an app context the built-in schema is returned.
    """

    schema = get_schema(entity)
    if not has_app_context():
        return schema
    config_path = current_app.config.get("IMPORTER_SYNONYMS_PATH")
    if not config_path:
        return schema
    overrides = _load_cached_overrides(Path(config_path))
    entity_overrides = overrides.entities.get(schema.entity_name)
    if not entity_overrides:
        return schema
    return schema.with_synonyms(entity_overrides)

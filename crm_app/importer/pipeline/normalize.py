"""Type-driven value normalization for import and export.

Import direction turns raw CSV strings into store-ready values. Bad optional
values never fail a row; they are dropped with a warning. Only ``required``
fields raise ``RowValidationError`` when blank or unparseable.

Export direction renders stored values to fixed, re-importable strings:
dates as ``YYYY-MM-DD`` and datetimes as ``YYYY-MM-DD HH:MM:SS`` in UTC.
"""

from __future__ import annotations

import json
import logging
import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Mapping

from crm_app.importer.contracts import FieldSchema, FieldSpec, FieldType
from crm_app.importer.errors import RowValidationError
from crm_app.importer.mapping import map_headers
from crm_app.importer.store import PrincipalDirectory

logger = logging.getLogger(__name__)

DATE_FORMATS: tuple[str, ...] = (
    "%Y-%m-%d",
    "%d-%m-%Y",
    "%m/%d/%Y",
    "%Y/%m/%d",
    "%d.%m.%Y",
    "%d-%m-%Y %H:%M:%S",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
)

EXPORT_DATE_FORMAT = "%Y-%m-%d"
EXPORT_DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"

_UUID_PATTERN = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)


def is_uuid(value: str | None) -> bool:
    return bool(value) and bool(_UUID_PATTERN.match(value.strip()))


def parse_datetime_value(raw: str | None) -> datetime | None:
    """
    Parse ``raw`` with the supported formats, falling back to ISO-8601.

    The first format producing a valid calendar date wins. Returns ``None``
    when nothing matches.
    """

    text = (raw or "").strip()
    if not text:
        return None
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    iso_text = text[:-1] + "+00:00" if text.endswith(("Z", "z")) else text
    try:
        return datetime.fromisoformat(iso_text)
    except ValueError:
        return None


def parse_date_value(raw: str | None) -> date | None:
    parsed = parse_datetime_value(raw)
    return parsed.date() if parsed is not None else None


def to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def normalize_enum(raw: str | None, allowed: tuple[str, ...]) -> str | None:
    text = (raw or "").strip()
    if not text:
        return None
    folded = " ".join(text.split()).casefold()
    for value in allowed:
        if value.casefold() == folded:
            return value
    return None


def coerce_number(raw: str | None) -> int | float | None:
    text = (raw or "").strip().replace(",", "").replace("_", "").replace(" ", "")
    if not text:
        return None
    try:
        number = float(text)
    except ValueError:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    if number.is_integer() and "." not in text and "e" not in text.lower():
        return int(number)
    return number


@dataclass
class NormalizedRow:
    """Canonical values for one CSV row, kept only until its store call completes."""

    row_number: int
    record: Dict[str, Any] = field(default_factory=dict)
    record_id: str | None = None
    children: list[Dict[str, Any]] | None = None
    warnings: list[str] = field(default_factory=list)

    def natural_key(self, schema: FieldSchema) -> tuple[Any, ...] | None:
        if not schema.natural_key_fields:
            return None
        return tuple(self.record.get(name) for name in schema.natural_key_fields)


class FieldNormalizer:
    """Normalize rows for one schema, resolving references through ``directory``."""

    def __init__(
        self,
        schema: FieldSchema,
        *,
        directory: PrincipalDirectory | None = None,
        default_principal: str | None = None,
    ) -> None:
        self.schema = schema
        self.directory = directory
        self.default_principal = default_principal
        self._child_normalizer: FieldNormalizer | None = None
        if schema.child_spec is not None:
            self._child_normalizer = FieldNormalizer(
                schema.child_spec.schema,
                directory=directory,
                default_principal=default_principal,
            )

    # Import direction -------------------------------------------------

    def normalize_row(self, values: Mapping[str, str], *, row_number: int) -> NormalizedRow:
        """
        Normalize a mapped row. Raises ``RowValidationError`` for required fields.
        """

        result = NormalizedRow(row_number=row_number)
        schema = self.schema
        child_column = schema.child_spec.column if schema.child_spec else None

        raw_id = (values.get(schema.id_field) or "").strip()
        result.record_id = raw_id or None

        for spec in schema.fields:
            if spec.name not in values or spec.read_only or spec.name == schema.id_field:
                continue
            raw = values[spec.name]
            if spec.name == child_column:
                result.children = self._normalize_children(raw, result.warnings)
                continue
            value = self.normalize_value(spec, raw, result.warnings)
            if value is None:
                if spec.required:
                    self._raise_required(spec, raw, row_number)
                continue
            result.record[spec.name] = value
        return result

    def normalize_value(self, spec: FieldSpec, raw: str | None, warnings: list[str] | None = None) -> Any:
        """Return the canonical value for ``raw`` or ``None`` when absent or invalid."""

        text = "" if raw is None else str(raw).strip()
        if not text:
            return None

        if spec.type in (FieldType.DATE, FieldType.DATETIME):
            parsed = parse_datetime_value(text)
            if parsed is None:
                self._warn(warnings, f'{spec.label}: unrecognized date "{text}" ignored', spec)
                return None
            if spec.type is FieldType.DATE:
                return parsed.date().isoformat()
            return to_utc(parsed).isoformat()

        if spec.type is FieldType.ENUM:
            value = normalize_enum(text, spec.enum_values)
            if value is None:
                self._warn(warnings, f'{spec.label}: "{text}" is not an allowed value and was ignored', spec)
            return value

        if spec.type is FieldType.NUMBER:
            number = coerce_number(text)
            if number is None:
                self._warn(warnings, f'{spec.label}: "{text}" is not a number and was ignored', spec)
            return number

        if spec.type is FieldType.ID_REFERENCE:
            return self.resolve_reference(spec, text, warnings)

        return text

    def resolve_reference(self, spec: FieldSpec, text: str, warnings: list[str] | None = None) -> str | None:
        if is_uuid(text):
            return text.lower()
        resolved = self.directory.resolve(text) if self.directory is not None else None
        if resolved:
            return resolved
        if self.default_principal:
            self._warn(warnings, f'{spec.label}: "{text}" did not match a known user; using the importing user', spec)
        return self.default_principal

    def insert_defaults(self) -> Dict[str, Any]:
        """Values applied to new records for fields the row left blank."""

        defaults: Dict[str, Any] = {}
        for spec in self.schema.writable_fields:
            if spec.default is not None:
                defaults[spec.name] = spec.default
            elif spec.type is FieldType.ID_REFERENCE and self.default_principal:
                defaults[spec.name] = self.default_principal
        return defaults

    def _normalize_children(self, raw: str | None, warnings: list[str]) -> list[Dict[str, Any]] | None:
        text = (raw or "").strip()
        if not text or self._child_normalizer is None:
            return None
        label = self.schema.get_field(self.schema.child_spec.column).label
        try:
            payload = json.loads(text)
        except ValueError:
            self._warn(warnings, f"{label}: invalid JSON, child records left unchanged", None)
            return None
        if not isinstance(payload, list):
            self._warn(warnings, f"{label}: expected a JSON array, child records left unchanged", None)
            return None

        children: list[Dict[str, Any]] = []
        child_normalizer = self._child_normalizer
        for position, item in enumerate(payload, start=1):
            if not isinstance(item, Mapping):
                self._warn(warnings, f"{label}: item {position} is not an object and was skipped", None)
                continue
            child_values = _child_values(item, child_normalizer.schema)
            try:
                child = child_normalizer.normalize_row(child_values, row_number=position)
            except RowValidationError as exc:
                self._warn(warnings, f"{label}: item {position} skipped ({exc})", None)
                continue
            warnings.extend(f"{label}: item {position} {message}" for message in child.warnings)
            record = child_normalizer.insert_defaults()
            record.update(child.record)
            children.append(record)
        return children

    def _raise_required(self, spec: FieldSpec, raw: str | None, row_number: int) -> None:
        text = (raw or "").strip()
        if not text:
            message = f"{spec.label} is required"
        else:
            message = f'{spec.label} has an invalid value "{text}"'
        raise RowValidationError(message, field=spec.name, row_number=row_number)

    def _warn(self, warnings: list[str] | None, message: str, spec: FieldSpec | None) -> None:
        if warnings is not None:
            warnings.append(message)
        logger.warning(
            message,
            extra={
                "importer_entity": self.schema.entity_name,
                "importer_field": spec.name if spec is not None else None,
            },
        )

    # Export direction -------------------------------------------------

    def export_value(self, spec: FieldSpec, value: Any) -> str:
        return export_value(spec, value)


def _child_values(item: Mapping[str, Any], schema: FieldSchema) -> Dict[str, str]:
    keys = [str(key) for key in item.keys()]
    header_mapping = map_headers(keys, schema)
    raw_values = list(item.values())
    values: Dict[str, str] = {}
    for position, field_name in header_mapping.mapping.items():
        value = raw_values[position]
        values[field_name] = "" if value is None else str(value)
    for spec in schema.required_import_fields:
        values.setdefault(spec.name, "")
    return values


def export_value(spec: FieldSpec, value: Any) -> str:
    """Render a stored value as a fixed-format CSV string."""

    if value is None:
        return ""
    if spec.type is FieldType.DATE:
        if isinstance(value, datetime):
            return value.strftime(EXPORT_DATE_FORMAT)
        if isinstance(value, date):
            return value.strftime(EXPORT_DATE_FORMAT)
        parsed = parse_datetime_value(str(value))
        return parsed.strftime(EXPORT_DATE_FORMAT) if parsed is not None else str(value)
    if spec.type is FieldType.DATETIME:
        if isinstance(value, datetime):
            return to_utc(value).strftime(EXPORT_DATETIME_FORMAT)
        if isinstance(value, date):
            return datetime(value.year, value.month, value.day).strftime(EXPORT_DATETIME_FORMAT)
        parsed = parse_datetime_value(str(value))
        return to_utc(parsed).strftime(EXPORT_DATETIME_FORMAT) if parsed is not None else str(value)
    if spec.type is FieldType.NUMBER:
        if isinstance(value, bool):
            return str(int(value))
        if isinstance(value, (float, Decimal)) and float(value).is_integer():
            return str(int(value))
        return str(value)
    if spec.type is FieldType.JSON_BLOB and not isinstance(value, str):
        return json.dumps(value)
    return str(value)


def export_child(schema: FieldSchema, child: Mapping[str, Any]) -> Dict[str, Any]:
    """Render a child record as a JSON-ready dict keyed by canonical field names."""

    payload: Dict[str, Any] = {}
    for spec in schema.fields:
        value = child.get(spec.name)
        payload[spec.name] = export_value(spec, value) if value is not None else None
    return payload

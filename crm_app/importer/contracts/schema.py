"""Field schema primitives shared by import and export.

A ``FieldSchema`` is the single source of truth for an entity's CSV shape:
column order on export, header matching on import, and how each raw value is
normalized before it reaches the record store.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from typing import Any, Iterable, Mapping, Sequence, Tuple


class FieldType(str, enum.Enum):
    TEXT = "text"
    ENUM = "enum"
    DATE = "date"
    DATETIME = "datetime"
    NUMBER = "number"
    ID_REFERENCE = "id-reference"
    JSON_BLOB = "json-blob"


def normalize_header(header: str | None) -> str:
    """Lower-case a header and fold spaces, dashes and dots into underscores."""

    token = (header or "").strip().lstrip("\ufeff").strip().lower()
    for separator in (" ", "-", "."):
        token = token.replace(separator, "_")
    while "__" in token:
        token = token.replace("__", "_")
    return token.strip("_")


@dataclass(frozen=True)
class FieldSpec:
    """Metadata describing a canonical CSV field."""

    name: str
    label: str
    type: FieldType = FieldType.TEXT
    required: bool = False
    enum_values: Tuple[str, ...] = ()
    synonyms: Tuple[str, ...] = ()
    default: Any | None = None
    read_only: bool = False
    description: str = ""

    def headers(self) -> Tuple[str, ...]:
        """Return the canonical header, the label and every synonym."""

        return (self.name, self.label, *self.synonyms)


@dataclass(frozen=True)
class ChildRecordSpec:
    """Describes dependent records carried in a JSON column on the parent row."""

    entity_name: str
    foreign_key: str
    column: str
    schema: "FieldSchema"


@dataclass(frozen=True)
class FieldSchema:
    entity_name: str
    fields: Tuple[FieldSpec, ...]
    natural_key_fields: Tuple[str, ...] = ()
    update_on_natural_key: bool = False
    id_field: str = "id"
    child_spec: ChildRecordSpec | None = None
    _index: Mapping[str, FieldSpec] = field(default=None, init=False, repr=False, compare=False)  # type: ignore[assignment]

    def __post_init__(self) -> None:
        index = {spec.name: spec for spec in self.fields}
        if len(index) != len(self.fields):
            raise ValueError(f"Duplicate field names in schema '{self.entity_name}'.")
        for key_field in self.natural_key_fields:
            if key_field not in index:
                raise ValueError(f"Natural key field '{key_field}' is not defined on '{self.entity_name}'.")
        if self.child_spec is not None and self.child_spec.column not in index:
            raise ValueError(f"Child column '{self.child_spec.column}' is not defined on '{self.entity_name}'.")
        object.__setattr__(self, "_index", index)

    @property
    def field_names(self) -> Tuple[str, ...]:
        return tuple(spec.name for spec in self.fields)

    def get_field(self, name: str) -> FieldSpec | None:
        return self._index.get(name)

    @property
    def required_import_fields(self) -> Tuple[FieldSpec, ...]:
        """Fields whose columns must be present before any row is processed."""

        return tuple(spec for spec in self.fields if spec.required)

    @property
    def writable_fields(self) -> Tuple[FieldSpec, ...]:
        """Fields written to the store, excluding the id, child column and audit columns."""

        child_column = self.child_spec.column if self.child_spec else None
        return tuple(
            spec
            for spec in self.fields
            if not spec.read_only and spec.name not in (self.id_field, child_column)
        )

    def with_synonyms(self, overrides: Mapping[str, Sequence[str]]) -> "FieldSchema":
        """
        Return a copy whose fields carry additional synonyms.

        Unknown field names raise ``ValueError`` so a typo in an override file
        is never silently ignored.
        """

        unknown = sorted(name for name in overrides if name not in self._index)
        if unknown:
            raise ValueError(f"Unknown fields for '{self.entity_name}': {', '.join(unknown)}")
        fields = []
        for spec in self.fields:
            extra = tuple(str(item) for item in overrides.get(spec.name, ()) if str(item).strip())
            if extra:
                merged = tuple(dict.fromkeys((*spec.synonyms, *extra)))
                spec = replace(spec, synonyms=merged)
            fields.append(spec)
        return replace(self, fields=tuple(fields))


def build_schema(
    entity_name: str,
    fields: Iterable[FieldSpec],
    *,
    natural_key_fields: Sequence[str] = (),
    update_on_natural_key: bool = False,
    child_spec: ChildRecordSpec | None = None,
) -> FieldSchema:
    return FieldSchema(
        entity_name=entity_name,
        fields=tuple(fields),
        natural_key_fields=tuple(natural_key_fields),
        update_on_natural_key=update_on_natural_key,
        child_spec=child_spec,
    )


ACTION_ITEM_STATUSES: Tuple[str, ...] = ("Open", "In Progress", "Completed", "Cancelled")

ACTION_ITEM_FIELDS: Tuple[FieldSpec, ...] = (
    FieldSpec(
        name="next_action",
        label="Next Action",
        required=True,
        synonyms=("action", "task", "title"),
    ),
    FieldSpec(
        name="status",
        label="Status",
        type=FieldType.ENUM,
        enum_values=ACTION_ITEM_STATUSES,
        default="Open",
    ),
    FieldSpec(
        name="due_date",
        label="Due Date",
        type=FieldType.DATE,
        synonyms=("due",),
    ),
    FieldSpec(
        name="assigned_to",
        label="Assigned To",
        type=FieldType.ID_REFERENCE,
        synonyms=("assignee", "owner"),
    ),
)


def action_item_schema(entity_name: str) -> FieldSchema:
    return build_schema(entity_name, ACTION_ITEM_FIELDS)

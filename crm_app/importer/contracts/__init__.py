"""Canonical CSV contracts for importable CRM entities."""

from __future__ import annotations

from collections import OrderedDict
from typing import Iterable, Mapping, Sequence

from crm_app.importer.errors import UnknownEntityError

from .contacts import CONTACT_SCHEMA
from .deals import DEAL_SCHEMA, DEAL_STAGES
from .leads import LEAD_INDUSTRIES, LEAD_REGIONS, LEAD_SCHEMA, LEAD_SOURCES, LEAD_STATUSES
from .meetings import MEETING_SCHEMA, MEETING_STATUSES
from .schema import (
    ACTION_ITEM_STATUSES,
    ChildRecordSpec,
    FieldSchema,
    FieldSpec,
    FieldType,
    build_schema,
    normalize_header,
)

__all__ = [
    "ACTION_ITEM_STATUSES",
    "CONTACT_SCHEMA",
    "DEAL_SCHEMA",
    "DEAL_STAGES",
    "ChildRecordSpec",
    "FieldSchema",
    "FieldSpec",
    "FieldType",
    "LEAD_INDUSTRIES",
    "LEAD_REGIONS",
    "LEAD_SCHEMA",
    "LEAD_SOURCES",
    "LEAD_STATUSES",
    "MEETING_SCHEMA",
    "MEETING_STATUSES",
    "build_schema",
    "get_schema",
    "get_schema_registry",
    "normalize_header",
    "resolve_entities",
]


def get_schema_registry() -> Mapping[str, FieldSchema]:
    """Return the built-in schemas keyed by entity name."""

    return OrderedDict(
        (
            ("leads", LEAD_SCHEMA),
            ("contacts", CONTACT_SCHEMA),
            ("meetings", MEETING_SCHEMA),
            ("deals", DEAL_SCHEMA),
        )
    )


def get_schema(entity: str) -> FieldSchema:
    registry = get_schema_registry()
    key = (entity or "").strip().lower()
    try:
        return registry[key]
    except KeyError:
        raise UnknownEntityError(
            f"Unknown importer entity '{entity}'. Known entities: {', '.join(registry)}."
        ) from None


def resolve_entities(
    configured: Sequence[str],
    registry: Mapping[str, FieldSchema] | None = None,
) -> Iterable[FieldSchema]:
    """
    Map configured entity names to schemas, raising on unknowns.
    """
    registry = registry or get_schema_registry()
    unknown = sorted({entity for entity in configured if entity not in registry})
    if unknown:
        raise ValueError(
            "Unknown importer entities configured: "
            + ", ".join(unknown)
            + ". Update IMPORTER_ENTITIES or register these entities first."
        )
    return tuple(registry[entity] for entity in configured)

"""Existing-record matching for imported rows.

A supplied id that exists in the store always wins. Otherwise the schema's
natural key is compared with case-sensitive exact equality; there is no fuzzy
matching at this stage.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Mapping

from crm_app.importer.contracts import FieldSchema
from crm_app.importer.store import RecordStore

from .normalize import NormalizedRow


class MatchKind(str, enum.Enum):
    ID = "id"
    NATURAL_KEY = "natural_key"
    NONE = "none"


@dataclass(frozen=True)
class DedupMatch:
    kind: MatchKind
    record_id: str | None = None


NO_MATCH = DedupMatch(MatchKind.NONE)


class DedupMatcher:
    def __init__(self, store: RecordStore, schema: FieldSchema) -> None:
        self.store = store
        self.schema = schema

    def natural_key_values(self, row: NormalizedRow) -> Mapping[str, Any] | None:
        if not self.schema.natural_key_fields:
            return None
        return {name: row.record.get(name) for name in self.schema.natural_key_fields}

    def match_by_id(self, record_id: str | None) -> str | None:
        if not record_id:
            return None
        existing = self.store.find_by_id(self.schema.entity_name, record_id)
        if existing is None:
            return None
        return str(existing.get(self.schema.id_field) or record_id)

    def match_by_natural_key(self, row: NormalizedRow) -> str | None:
        key_values = self.natural_key_values(row)
        if not key_values:
            return None
        existing = self.store.find_by_natural_key(self.schema.entity_name, key_values)
        if existing is None:
            return None
        return str(existing.get(self.schema.id_field))

    def find(self, row: NormalizedRow) -> DedupMatch:
        """Return the id match, else the natural-key match, else ``NO_MATCH``."""

        existing_id = self.match_by_id(row.record_id)
        if existing_id is not None:
            return DedupMatch(MatchKind.ID, existing_id)
        existing_id = self.match_by_natural_key(row)
        if existing_id is not None:
            return DedupMatch(MatchKind.NATURAL_KEY, existing_id)
        return NO_MATCH

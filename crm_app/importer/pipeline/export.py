"""CSV export of stored records.

One bulk read of parent records, then child records read in chunks of parent
ids and embedded as a JSON array in the schema's child column. The header is
always the full canonical field list so an export re-imports without header
warnings.
"""

from __future__ import annotations

import json
from collections import defaultdict
from datetime import date
from typing import Any, Dict, Mapping, Sequence

from crm_app.importer.codec import serialize_csv
from crm_app.importer.contracts import FieldSchema
from crm_app.importer.metrics import record_export
from crm_app.importer.store import RecordStore

from .normalize import export_child, export_value

DEFAULT_CHILD_CHUNK_SIZE = 500


def export_filename(entity: str, on: date | None = None) -> str:
    """Return ``<entity>_export_<YYYY-MM-DD>.csv`` for ``on`` (default today)."""

    stamp = (on or date.today()).strftime("%Y-%m-%d")
    return f"{entity}_export_{stamp}.csv"


class ExportAssembler:
    def __init__(
        self,
        store: RecordStore,
        schema: FieldSchema,
        *,
        child_chunk_size: int = DEFAULT_CHILD_CHUNK_SIZE,
    ) -> None:
        self.store = store
        self.schema = schema
        self.child_chunk_size = max(1, child_chunk_size)

    def _children_by_parent(self, parent_ids: Sequence[str]) -> Dict[str, list[Mapping[str, Any]]]:
        child_spec = self.schema.child_spec
        grouped: Dict[str, list[Mapping[str, Any]]] = defaultdict(list)
        if child_spec is None or not parent_ids:
            return grouped
        for offset in range(0, len(parent_ids), self.child_chunk_size):
            chunk = parent_ids[offset : offset + self.child_chunk_size]
            for child in self.store.list_children(self.schema.entity_name, chunk):
                grouped[str(child.get(child_spec.foreign_key))].append(child)
        return grouped

    def export_records(self) -> tuple[list[str], list[list[str]]]:
        """Return the header and rendered rows for every stored record."""

        schema = self.schema
        records = self.store.list_records(schema.entity_name)
        parent_ids = [str(record.get(schema.id_field)) for record in records]
        children = self._children_by_parent(parent_ids)
        child_spec = schema.child_spec

        rows: list[list[str]] = []
        for record, parent_id in zip(records, parent_ids):
            row: list[str] = []
            for spec in schema.fields:
                if child_spec is not None and spec.name == child_spec.column:
                    payload = [export_child(child_spec.schema, child) for child in children.get(parent_id, ())]
                    row.append(json.dumps(payload, ensure_ascii=False))
                else:
                    row.append(export_value(spec, record.get(spec.name)))
            rows.append(row)
        return list(schema.field_names), rows

    def export(self) -> str:
        headers, rows = self.export_records()
        record_export(self.schema.entity_name)
        return serialize_csv(headers, rows)

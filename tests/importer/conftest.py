from __future__ import annotations

import uuid
from typing import Any, Mapping, Sequence

import pytest

from crm_app.importer.errors import PermissionDenied, StoreError


class FakeStore:
    """In-memory record store with hooks for injecting failures."""

    def __init__(self) -> None:
        self.records: dict[str, dict[str, dict[str, Any]]] = {}
        self.children: dict[str, dict[str, list[dict[str, Any]]]] = {}
        self.calls: list[tuple[str, str]] = []
        self.fail_insert_when: Any = None
        self.crash_insert_when: Any = None
        self.fail_children = False
        self.denied_ids: set[str] = set()

    def seed(self, entity: str, record: Mapping[str, Any]) -> str:
        record_id = record.get("id") or str(uuid.uuid4())
        self.records.setdefault(entity, {})[record_id] = {**record, "id": record_id}
        return record_id

    def find_by_id(self, entity: str, record_id: str):
        self.calls.append(("find_by_id", entity))
        return self.records.get(entity, {}).get(record_id)

    def find_by_natural_key(self, entity: str, key: Mapping[str, Any]):
        self.calls.append(("find_by_natural_key", entity))
        for record in self.records.get(entity, {}).values():
            if all(record.get(name) == value for name, value in key.items()):
                return record
        return None

    def insert(self, entity: str, record: Mapping[str, Any]) -> str:
        self.calls.append(("insert", entity))
        if self.fail_insert_when is not None and self.fail_insert_when(record):
            raise StoreError("database is locked")
        if self.crash_insert_when is not None and self.crash_insert_when(record):
            raise RuntimeError("driver blew up")
        return self.seed(entity, record)

    def update(self, entity: str, record_id: str, record: Mapping[str, Any]) -> None:
        self.calls.append(("update", entity))
        if record_id in self.denied_ids:
            raise PermissionDenied(
                f"Permission denied: you cannot modify {entity} record {record_id}",
                resource_type=entity,
                resource_id=record_id,
            )
        existing = self.records.get(entity, {}).get(record_id)
        if existing is None:
            raise StoreError(f"{entity} record {record_id} no longer exists")
        existing.update(record)

    def delete_children(self, entity: str, parent_id: str) -> None:
        self.calls.append(("delete_children", entity))
        if self.fail_children:
            raise StoreError("child table unavailable")
        self.children.setdefault(entity, {}).pop(parent_id, None)

    def insert_children(self, entity: str, parent_id: str, records: Sequence[Mapping[str, Any]]) -> None:
        self.calls.append(("insert_children", entity))
        if self.fail_children:
            raise StoreError("child table unavailable")
        bucket = self.children.setdefault(entity, {}).setdefault(parent_id, [])
        for record in records:
            bucket.append({**record, "parent_id": parent_id, "id": str(uuid.uuid4())})

    def list_records(self, entity: str):
        return list(self.records.get(entity, {}).values())

    def list_children(self, entity: str, parent_ids: Sequence[str]):
        foreign_key = {"leads": "lead_id", "meetings": "meeting_id", "deals": "deal_id"}[entity]
        rows = []
        for parent_id in parent_ids:
            for child in self.children.get(entity, {}).get(parent_id, []):
                rows.append({**child, foreign_key: parent_id})
        return rows


class FakeDirectory:
    def __init__(self, principals: Mapping[str, str] | None = None) -> None:
        self.principals = {key.lower(): value for key, value in (principals or {}).items()}

    def resolve(self, text: str):
        return self.principals.get((text or "").strip().lower())


@pytest.fixture
def fake_store():
    return FakeStore()


@pytest.fixture
def fake_directory():
    return FakeDirectory({"jdoe": "11111111-1111-4111-8111-111111111111"})

"""
Record store and principal directory used by the reconciliation engine.

The engine only depends on the ``RecordStore`` and ``PrincipalDirectory``
protocols. ``SQLAlchemyRecordStore`` is the default implementation over the
CRM models; every call runs in its own transaction and any database failure
surfaces as ``StoreError``.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, Mapping, Protocol, Sequence

from sqlalchemy import Date, DateTime, func, select
from sqlalchemy.exc import SQLAlchemyError

from crm_app.importer.errors import PermissionDenied, StoreError, UnknownEntityError
from crm_app.models import (
    Contact,
    Deal,
    DealActionItem,
    Lead,
    LeadActionItem,
    Meeting,
    MeetingActionItem,
    Principal,
    db,
)


class RecordStore(Protocol):
    def find_by_id(self, entity: str, record_id: str) -> Mapping[str, Any] | None:
        ...

    def find_by_natural_key(self, entity: str, key: Mapping[str, Any]) -> Mapping[str, Any] | None:
        ...

    def insert(self, entity: str, record: Mapping[str, Any]) -> str:
        ...

    def update(self, entity: str, record_id: str, record: Mapping[str, Any]) -> None:
        ...

    def delete_children(self, entity: str, parent_id: str) -> None:
        ...

    def insert_children(self, entity: str, parent_id: str, records: Sequence[Mapping[str, Any]]) -> None:
        ...

    def list_records(self, entity: str) -> list[Mapping[str, Any]]:
        ...

    def list_children(self, entity: str, parent_ids: Sequence[str]) -> list[Mapping[str, Any]]:
        ...


class PrincipalDirectory(Protocol):
    def resolve(self, text: str) -> str | None:
        ...


# entity -> (parent model, child model, child foreign key, created-at column)
_ENTITY_MODELS: Dict[str, tuple[Any, Any, str | None, str]] = {
    "leads": (Lead, LeadActionItem, "lead_id", "created_time"),
    "contacts": (Contact, None, None, "created_time"),
    "meetings": (Meeting, MeetingActionItem, "meeting_id", "created_at"),
    "deals": (Deal, DealActionItem, "deal_id", "created_at"),
}


def _coerce_column_value(column, value: Any) -> Any:
    if not isinstance(value, str):
        return value
    if isinstance(column.type, DateTime):
        return datetime.fromisoformat(value)
    if isinstance(column.type, Date):
        return date.fromisoformat(value[:10])
    return value


class SQLAlchemyRecordStore:
    """
    ``RecordStore`` over the Flask-SQLAlchemy session.

    When ``actor_id`` is set and the actor is not an admin, updates and child
    replacement on records created by someone else raise ``PermissionDenied``.
    """

    def __init__(self, *, actor_id: str | None = None, is_admin: bool = False, session=None) -> None:
        self.actor_id = actor_id
        self.is_admin = is_admin
        self._session = session

    @property
    def session(self):
        return self._session if self._session is not None else db.session

    def _models(self, entity: str) -> tuple[Any, Any, str | None, str]:
        try:
            return _ENTITY_MODELS[entity]
        except KeyError:
            raise UnknownEntityError(f"No store mapping for entity '{entity}'.") from None

    def _coerce(self, model, values: Mapping[str, Any]) -> Dict[str, Any]:
        columns = model.__table__.columns
        coerced: Dict[str, Any] = {}
        for key, value in values.items():
            column = columns.get(key)
            if column is None or column.primary_key:
                continue
            try:
                coerced[key] = _coerce_column_value(column, value)
            except ValueError as exc:
                raise StoreError(f"Invalid value for {key}: {value!r}") from exc
        return coerced

    def _fail(self, exc: SQLAlchemyError, action: str) -> StoreError:
        self.session.rollback()
        detail = getattr(exc, "orig", None) or exc
        return StoreError(f"Failed to {action}: {detail}")

    def _ensure_can_write(self, entity: str, instance) -> None:
        if self.actor_id is None or self.is_admin:
            return
        owner = getattr(instance, "created_by", None)
        if owner and owner != self.actor_id:
            raise PermissionDenied(
                f"Permission denied: you cannot modify {entity} record {instance.id}",
                resource_type=entity,
                resource_id=instance.id,
            )

    def find_by_id(self, entity: str, record_id: str) -> Mapping[str, Any] | None:
        model = self._models(entity)[0]
        try:
            instance = self.session.get(model, record_id)
        except SQLAlchemyError as exc:
            raise self._fail(exc, f"load {entity} {record_id}") from exc
        return instance.to_dict() if instance is not None else None

    def find_by_natural_key(self, entity: str, key: Mapping[str, Any]) -> Mapping[str, Any] | None:
        model, _, _, created_column = self._models(entity)
        conditions = []
        for name, value in key.items():
            column = getattr(model, name)
            conditions.append(column.is_(None) if value is None else column == value)
        statement = select(model).where(*conditions).order_by(getattr(model, created_column)).limit(1)
        try:
            instance = self.session.execute(statement).scalars().first()
        except SQLAlchemyError as exc:
            raise self._fail(exc, f"query {entity} by natural key") from exc
        return instance.to_dict() if instance is not None else None

    def insert(self, entity: str, record: Mapping[str, Any]) -> str:
        model = self._models(entity)[0]
        values = self._coerce(model, record)
        if record.get("id"):
            values["id"] = record["id"]
        if self.actor_id is not None:
            values.setdefault("created_by", self.actor_id)
            values.setdefault("modified_by", self.actor_id)
        instance = model(**values)
        try:
            self.session.add(instance)
            self.session.commit()
        except SQLAlchemyError as exc:
            raise self._fail(exc, f"insert {entity}") from exc
        return instance.id

    def update(self, entity: str, record_id: str, record: Mapping[str, Any]) -> None:
        model = self._models(entity)[0]
        try:
            instance = self.session.get(model, record_id)
        except SQLAlchemyError as exc:
            raise self._fail(exc, f"load {entity} {record_id}") from exc
        if instance is None:
            raise StoreError(f"{entity} record {record_id} no longer exists")
        self._ensure_can_write(entity, instance)
        for key, value in self._coerce(model, record).items():
            setattr(instance, key, value)
        if self.actor_id is not None:
            instance.modified_by = self.actor_id
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            raise self._fail(exc, f"update {entity} {record_id}") from exc

    def _child_model(self, entity: str) -> tuple[Any, Any, str]:
        model, child_model, foreign_key, _ = self._models(entity)
        if child_model is None or foreign_key is None:
            raise StoreError(f"{entity} records have no child records")
        return model, child_model, foreign_key

    def delete_children(self, entity: str, parent_id: str) -> None:
        model, child_model, foreign_key = self._child_model(entity)
        try:
            parent = self.session.get(model, parent_id)
            if parent is not None:
                self._ensure_can_write(entity, parent)
            self.session.query(child_model).filter(getattr(child_model, foreign_key) == parent_id).delete(
                synchronize_session=False
            )
            self.session.commit()
        except SQLAlchemyError as exc:
            raise self._fail(exc, f"delete child records of {entity} {parent_id}") from exc

    def insert_children(self, entity: str, parent_id: str, records: Sequence[Mapping[str, Any]]) -> None:
        _, child_model, foreign_key = self._child_model(entity)
        instances = []
        for record in records:
            values = self._coerce(child_model, record)
            values[foreign_key] = parent_id
            if self.actor_id is not None:
                values.setdefault("created_by", self.actor_id)
            instances.append(child_model(**values))
        try:
            self.session.add_all(instances)
            self.session.commit()
        except SQLAlchemyError as exc:
            raise self._fail(exc, f"insert child records of {entity} {parent_id}") from exc

    def list_records(self, entity: str) -> list[Mapping[str, Any]]:
        model, _, _, created_column = self._models(entity)
        statement = select(model).order_by(getattr(model, created_column), model.id)
        try:
            return [instance.to_dict() for instance in self.session.execute(statement).scalars()]
        except SQLAlchemyError as exc:
            raise self._fail(exc, f"list {entity}") from exc

    def list_children(self, entity: str, parent_ids: Sequence[str]) -> list[Mapping[str, Any]]:
        _, child_model, foreign_key = self._child_model(entity)
        if not parent_ids:
            return []
        statement = (
            select(child_model)
            .where(getattr(child_model, foreign_key).in_(list(parent_ids)))
            .order_by(child_model.created_at, child_model.id)
        )
        try:
            return [instance.to_dict() for instance in self.session.execute(statement).scalars()]
        except SQLAlchemyError as exc:
            raise self._fail(exc, f"list child records of {entity}") from exc


class SQLAlchemyPrincipalDirectory:
    """Resolve free-text owner values by display name, then full name, then email."""

    def __init__(self, session=None) -> None:
        self._session = session
        self._cache: Dict[str, str | None] = {}

    @property
    def session(self):
        return self._session if self._session is not None else db.session

    def resolve(self, text: str) -> str | None:
        needle = (text or "").strip().lower()
        if not needle:
            return None
        if needle in self._cache:
            return self._cache[needle]
        resolved = None
        try:
            for column in (Principal.display_name, Principal.full_name, Principal.email):
                statement = select(Principal.id).where(func.lower(column) == needle).limit(1)
                resolved = self.session.execute(statement).scalar()
                if resolved is not None:
                    break
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StoreError(f"Failed to resolve principal {text!r}: {exc}") from exc
        self._cache[needle] = resolved
        return resolved

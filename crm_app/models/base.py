# crm_app/models/base.py
"""
Shared SQLAlchemy handle and declarative base for CRM models.
"""

from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


def generate_uuid() -> str:
    return str(uuid4())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class BaseModel(db.Model):
    """Abstract base that gives every model a ``to_dict`` over its mapped columns."""

    __abstract__ = True

    def to_dict(self) -> dict:
        return {column.key: getattr(self, column.key) for column in self.__table__.columns}

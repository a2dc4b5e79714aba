"""Security audit trail for denied or sensitive importer writes."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy.orm import Mapped, mapped_column

from .base import BaseModel, db, utc_now


class SecurityAuditEvent(BaseModel):
    __tablename__ = "security_audit_events"

    id: Mapped[int] = mapped_column(primary_key=True)
    action: Mapped[str] = mapped_column(db.String(100), nullable=False, index=True)
    resource_type: Mapped[str] = mapped_column(db.String(100), nullable=False)
    resource_id: Mapped[str | None] = mapped_column(db.String(36), nullable=True)
    principal_id: Mapped[str | None] = mapped_column(db.String(36), nullable=True, index=True)
    details: Mapped[dict | None] = mapped_column(db.JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(db.DateTime(timezone=True), nullable=False, default=utc_now)

    def __repr__(self) -> str:
        return f"<SecurityAuditEvent {self.action} {self.resource_type}:{self.resource_id}>"

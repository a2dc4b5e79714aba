# crm_app/models/__init__.py
"""
Database models package
"""

from .audit import SecurityAuditEvent
from .base import BaseModel, db
from .crm import Contact, Deal, DealActionItem, Lead, LeadActionItem, Meeting, MeetingActionItem, Principal

__all__ = [
    "db",
    "BaseModel",
    "Principal",
    "Lead",
    "LeadActionItem",
    "Contact",
    "Meeting",
    "MeetingActionItem",
    "Deal",
    "DealActionItem",
    "SecurityAuditEvent",
]

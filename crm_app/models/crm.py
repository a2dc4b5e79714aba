"""
CRM records reachable by the CSV importer.

Leads, contacts, meetings and deals keep string UUID primary keys so
identifiers round-trip through exported spreadsheets unchanged. Action items
hang off a lead, meeting or deal and are replaced wholesale when the parent is
re-imported.
"""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import BaseModel, db, generate_uuid, utc_now


class Principal(BaseModel):
    """A user that can own records or perform imports."""

    __tablename__ = "principals"

    id: Mapped[str] = mapped_column(db.String(36), primary_key=True, default=generate_uuid)
    display_name: Mapped[str | None] = mapped_column(db.String(200), nullable=True)
    full_name: Mapped[str | None] = mapped_column(db.String(200), nullable=True)
    email: Mapped[str | None] = mapped_column(db.String(255), nullable=True, unique=True)
    is_admin: Mapped[bool] = mapped_column(db.Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(db.DateTime(timezone=True), nullable=False, default=utc_now)

    def __repr__(self) -> str:
        return f"<Principal {self.display_name or self.email or self.id}>"


class Lead(BaseModel):
    __tablename__ = "leads"
    __table_args__ = (Index("ix_leads_natural_key", "lead_name", "company_name"),)

    id: Mapped[str] = mapped_column(db.String(36), primary_key=True, default=generate_uuid)
    lead_name: Mapped[str] = mapped_column(db.String(255), nullable=False)
    company_name: Mapped[str] = mapped_column(db.String(255), nullable=False)
    position: Mapped[str | None] = mapped_column(db.String(255))
    email: Mapped[str | None] = mapped_column(db.String(255))
    phone_no: Mapped[str | None] = mapped_column(db.String(64))
    linkedin: Mapped[str | None] = mapped_column(db.String(500))
    website: Mapped[str | None] = mapped_column(db.String(500))
    contact_source: Mapped[str | None] = mapped_column(db.String(64))
    lead_status: Mapped[str | None] = mapped_column(db.String(32))
    industry: Mapped[str | None] = mapped_column(db.String(64))
    country: Mapped[str | None] = mapped_column(db.String(64))
    description: Mapped[str | None] = mapped_column(db.Text)
    contact_owner: Mapped[str | None] = mapped_column(ForeignKey("principals.id"), nullable=True)
    created_by: Mapped[str | None] = mapped_column(ForeignKey("principals.id"), nullable=True)
    modified_by: Mapped[str | None] = mapped_column(ForeignKey("principals.id"), nullable=True)
    created_time: Mapped[datetime] = mapped_column(db.DateTime(timezone=True), nullable=False, default=utc_now)
    modified_time: Mapped[datetime] = mapped_column(
        db.DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )

    action_items = relationship(
        "LeadActionItem",
        back_populates="lead",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Lead {self.lead_name} @ {self.company_name}>"


class LeadActionItem(BaseModel):
    __tablename__ = "lead_action_items"

    id: Mapped[str] = mapped_column(db.String(36), primary_key=True, default=generate_uuid)
    lead_id: Mapped[str] = mapped_column(ForeignKey("leads.id", ondelete="CASCADE"), nullable=False, index=True)
    next_action: Mapped[str] = mapped_column(db.Text, nullable=False)
    status: Mapped[str] = mapped_column(db.String(32), nullable=False, default="Open")
    due_date: Mapped[date | None] = mapped_column(db.Date)
    assigned_to: Mapped[str | None] = mapped_column(ForeignKey("principals.id"), nullable=True)
    created_by: Mapped[str | None] = mapped_column(ForeignKey("principals.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(db.DateTime(timezone=True), nullable=False, default=utc_now)

    lead = relationship("Lead", back_populates="action_items")


class Contact(BaseModel):
    __tablename__ = "contacts"
    __table_args__ = (Index("ix_contacts_natural_key", "contact_name", "company_name"),)

    id: Mapped[str] = mapped_column(db.String(36), primary_key=True, default=generate_uuid)
    contact_name: Mapped[str] = mapped_column(db.String(255), nullable=False)
    company_name: Mapped[str | None] = mapped_column(db.String(255))
    position: Mapped[str | None] = mapped_column(db.String(255))
    email: Mapped[str | None] = mapped_column(db.String(255))
    phone_no: Mapped[str | None] = mapped_column(db.String(64))
    mobile_no: Mapped[str | None] = mapped_column(db.String(64))
    linkedin: Mapped[str | None] = mapped_column(db.String(500))
    website: Mapped[str | None] = mapped_column(db.String(500))
    contact_source: Mapped[str | None] = mapped_column(db.String(64))
    industry: Mapped[str | None] = mapped_column(db.String(64))
    country: Mapped[str | None] = mapped_column(db.String(64))
    city: Mapped[str | None] = mapped_column(db.String(128))
    state: Mapped[str | None] = mapped_column(db.String(128))
    description: Mapped[str | None] = mapped_column(db.Text)
    annual_revenue: Mapped[float | None] = mapped_column(db.Float)
    no_of_employees: Mapped[int | None] = mapped_column(db.Integer)
    contact_owner: Mapped[str | None] = mapped_column(ForeignKey("principals.id"), nullable=True)
    created_by: Mapped[str | None] = mapped_column(ForeignKey("principals.id"), nullable=True)
    modified_by: Mapped[str | None] = mapped_column(ForeignKey("principals.id"), nullable=True)
    created_time: Mapped[datetime] = mapped_column(db.DateTime(timezone=True), nullable=False, default=utc_now)
    modified_time: Mapped[datetime] = mapped_column(
        db.DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )

    def __repr__(self) -> str:
        return f"<Contact {self.contact_name}>"


class Meeting(BaseModel):
    __tablename__ = "meetings"

    id: Mapped[str] = mapped_column(db.String(36), primary_key=True, default=generate_uuid)
    title: Mapped[str] = mapped_column(db.String(255), nullable=False)
    participants: Mapped[str | None] = mapped_column(db.Text)
    organizer: Mapped[str | None] = mapped_column(ForeignKey("principals.id"), nullable=True)
    status: Mapped[str] = mapped_column(db.String(32), nullable=False, default="Scheduled")
    teams_meeting_link: Mapped[str | None] = mapped_column(db.String(1000))
    teams_meeting_id: Mapped[str | None] = mapped_column(db.String(255))
    description: Mapped[str | None] = mapped_column(db.Text)
    created_at: Mapped[datetime] = mapped_column(db.DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        db.DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )
    created_by: Mapped[str | None] = mapped_column(ForeignKey("principals.id"), nullable=True)
    modified_by: Mapped[str | None] = mapped_column(ForeignKey("principals.id"), nullable=True)
    duration: Mapped[int | None] = mapped_column(db.Integer)
    start_time_utc: Mapped[datetime] = mapped_column(db.DateTime(timezone=True), nullable=False)
    end_time_utc: Mapped[datetime] = mapped_column(db.DateTime(timezone=True), nullable=False)
    time_zone: Mapped[str] = mapped_column(db.String(64), nullable=False, default="UTC")
    microsoft_event_id: Mapped[str | None] = mapped_column(db.String(255))
    time_zone_display: Mapped[str | None] = mapped_column(db.String(128))

    action_items = relationship(
        "MeetingActionItem",
        back_populates="meeting",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Meeting {self.title}>"


class MeetingActionItem(BaseModel):
    __tablename__ = "meeting_action_items"

    id: Mapped[str] = mapped_column(db.String(36), primary_key=True, default=generate_uuid)
    meeting_id: Mapped[str] = mapped_column(
        ForeignKey("meetings.id", ondelete="CASCADE"), nullable=False, index=True
    )
    next_action: Mapped[str] = mapped_column(db.Text, nullable=False)
    status: Mapped[str] = mapped_column(db.String(32), nullable=False, default="Open")
    due_date: Mapped[date | None] = mapped_column(db.Date)
    assigned_to: Mapped[str | None] = mapped_column(ForeignKey("principals.id"), nullable=True)
    created_by: Mapped[str | None] = mapped_column(ForeignKey("principals.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(db.DateTime(timezone=True), nullable=False, default=utc_now)

    meeting = relationship("Meeting", back_populates="action_items")


class Deal(BaseModel):
    __tablename__ = "deals"
    __table_args__ = (Index("ix_deals_deal_name", "deal_name"),)

    id: Mapped[str] = mapped_column(db.String(36), primary_key=True, default=generate_uuid)
    deal_name: Mapped[str] = mapped_column(db.String(255), nullable=False)
    stage: Mapped[str] = mapped_column(db.String(32), nullable=False, default="Lead")
    project_name: Mapped[str | None] = mapped_column(db.String(255))
    customer_name: Mapped[str | None] = mapped_column(db.String(255))
    lead_name: Mapped[str | None] = mapped_column(db.String(255))
    lead_owner: Mapped[str | None] = mapped_column(db.String(255))
    region: Mapped[str | None] = mapped_column(db.String(64))
    priority: Mapped[int | None] = mapped_column(db.Integer)
    probability: Mapped[int | None] = mapped_column(db.Integer)
    total_contract_value: Mapped[float | None] = mapped_column(db.Float)
    expected_closing_date: Mapped[date | None] = mapped_column(db.Date)
    internal_comment: Mapped[str | None] = mapped_column(db.Text)
    customer_need: Mapped[str | None] = mapped_column(db.Text)
    customer_challenges: Mapped[str | None] = mapped_column(db.String(32))
    relationship_strength: Mapped[str | None] = mapped_column(db.String(32))
    budget: Mapped[str | None] = mapped_column(db.String(255))
    business_value: Mapped[str | None] = mapped_column(db.String(32))
    decision_maker_level: Mapped[str | None] = mapped_column(db.String(32))
    is_recurring: Mapped[str | None] = mapped_column(db.String(16))
    project_duration: Mapped[float | None] = mapped_column(db.Float)
    start_date: Mapped[date | None] = mapped_column(db.Date)
    end_date: Mapped[date | None] = mapped_column(db.Date)
    currency_type: Mapped[str | None] = mapped_column(db.String(8))
    current_status: Mapped[str | None] = mapped_column(db.Text)
    closing: Mapped[str | None] = mapped_column(db.Text)
    won_reason: Mapped[str | None] = mapped_column(db.Text)
    lost_reason: Mapped[str | None] = mapped_column(db.Text)
    need_improvement: Mapped[str | None] = mapped_column(db.Text)
    drop_reason: Mapped[str | None] = mapped_column(db.Text)
    quarterly_revenue_q1: Mapped[float | None] = mapped_column(db.Float)
    quarterly_revenue_q2: Mapped[float | None] = mapped_column(db.Float)
    quarterly_revenue_q3: Mapped[float | None] = mapped_column(db.Float)
    quarterly_revenue_q4: Mapped[float | None] = mapped_column(db.Float)
    total_revenue: Mapped[float | None] = mapped_column(db.Float)
    signed_contract_date: Mapped[date | None] = mapped_column(db.Date)
    implementation_start_date: Mapped[date | None] = mapped_column(db.Date)
    handoff_status: Mapped[str | None] = mapped_column(db.String(32))
    rfq_received_date: Mapped[date | None] = mapped_column(db.Date)
    proposal_due_date: Mapped[date | None] = mapped_column(db.Date)
    rfq_status: Mapped[str | None] = mapped_column(db.String(32))
    created_by: Mapped[str | None] = mapped_column(ForeignKey("principals.id"), nullable=True)
    modified_by: Mapped[str | None] = mapped_column(ForeignKey("principals.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(db.DateTime(timezone=True), nullable=False, default=utc_now)
    modified_at: Mapped[datetime] = mapped_column(
        db.DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )

    action_items = relationship(
        "DealActionItem",
        back_populates="deal",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Deal {self.deal_name} ({self.stage})>"


class DealActionItem(BaseModel):
    __tablename__ = "deal_action_items"

    id: Mapped[str] = mapped_column(db.String(36), primary_key=True, default=generate_uuid)
    deal_id: Mapped[str] = mapped_column(ForeignKey("deals.id", ondelete="CASCADE"), nullable=False, index=True)
    next_action: Mapped[str] = mapped_column(db.Text, nullable=False)
    status: Mapped[str] = mapped_column(db.String(32), nullable=False, default="Open")
    due_date: Mapped[date | None] = mapped_column(db.Date)
    assigned_to: Mapped[str | None] = mapped_column(ForeignKey("principals.id"), nullable=True)
    created_by: Mapped[str | None] = mapped_column(ForeignKey("principals.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(db.DateTime(timezone=True), nullable=False, default=utc_now)

    deal = relationship("Deal", back_populates="action_items")

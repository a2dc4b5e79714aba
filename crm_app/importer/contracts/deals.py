"""Canonical deal contract.

Deals are keyed on ``deal_name`` alone. Unlike leads and contacts, a row whose
name matches an existing deal updates that deal instead of being skipped, so a
pipeline spreadsheet can be re-imported to move deals between stages.
"""

from __future__ import annotations

from typing import Tuple

from .leads import LEAD_REGIONS
from .schema import ChildRecordSpec, FieldSchema, FieldSpec, FieldType, action_item_schema, build_schema

DEAL_STAGES: Tuple[str, ...] = ("Lead", "Discussions", "Qualified", "RFQ", "Offered", "Won", "Lost", "Dropped")
RELATIONSHIP_STRENGTHS: Tuple[str, ...] = ("Low", "Medium", "High")
DEAL_ASSESSMENTS: Tuple[str, ...] = ("Open", "Ongoing", "Done")
RECURRENCE_ANSWERS: Tuple[str, ...] = ("Yes", "No", "Unclear")
CURRENCIES: Tuple[str, ...] = ("EUR", "USD", "INR")
RFQ_STATUSES: Tuple[str, ...] = ("Drafted", "Submitted", "Rejected", "Accepted")
HANDOFF_STATUSES: Tuple[str, ...] = ("Not Started", "In Progress", "Complete")


def _money(name: str, label: str, *synonyms: str) -> FieldSpec:
    return FieldSpec(name=name, label=label, type=FieldType.NUMBER, synonyms=synonyms)


def _day(name: str, label: str, *synonyms: str) -> FieldSpec:
    return FieldSpec(name=name, label=label, type=FieldType.DATE, synonyms=synonyms)


DEAL_FIELDS: Tuple[FieldSpec, ...] = (
    FieldSpec(name="id", label="ID", synonyms=("deal_id", "record_id")),
    FieldSpec(
        name="deal_name",
        label="Deal Name",
        required=True,
        synonyms=("deal", "opportunity", "opportunity_name", "deal_title"),
    ),
    FieldSpec(
        name="stage",
        label="Stage",
        type=FieldType.ENUM,
        enum_values=DEAL_STAGES,
        default="Lead",
        synonyms=("deal_stage", "pipeline_stage"),
    ),
    FieldSpec(name="project_name", label="Project Name", synonyms=("project",)),
    FieldSpec(name="customer_name", label="Customer Name", synonyms=("customer", "client", "account")),
    FieldSpec(name="lead_name", label="Lead Name", synonyms=("lead",)),
    FieldSpec(name="lead_owner", label="Lead Owner", synonyms=("deal_owner", "owner")),
    FieldSpec(
        name="region",
        label="Region",
        type=FieldType.ENUM,
        enum_values=LEAD_REGIONS,
        synonyms=("country", "territory"),
    ),
    FieldSpec(name="priority", label="Priority", type=FieldType.NUMBER),
    FieldSpec(name="probability", label="Probability", type=FieldType.NUMBER, synonyms=("win_probability",)),
    _money("total_contract_value", "Total Contract Value", "contract_value", "tcv"),
    _day("expected_closing_date", "Expected Closing Date", "expected_close_date", "close_date"),
    FieldSpec(name="internal_comment", label="Internal Comment", synonyms=("comment", "comments", "notes")),
    FieldSpec(name="customer_need", label="Customer Need"),
    FieldSpec(
        name="customer_challenges",
        label="Customer Challenges",
        type=FieldType.ENUM,
        enum_values=DEAL_ASSESSMENTS,
    ),
    FieldSpec(
        name="relationship_strength",
        label="Relationship Strength",
        type=FieldType.ENUM,
        enum_values=RELATIONSHIP_STRENGTHS,
    ),
    FieldSpec(name="budget", label="Budget"),
    FieldSpec(name="business_value", label="Business Value", type=FieldType.ENUM, enum_values=DEAL_ASSESSMENTS),
    FieldSpec(
        name="decision_maker_level",
        label="Decision Maker Level",
        type=FieldType.ENUM,
        enum_values=DEAL_ASSESSMENTS,
    ),
    FieldSpec(
        name="is_recurring",
        label="Is Recurring",
        type=FieldType.ENUM,
        enum_values=RECURRENCE_ANSWERS,
        synonyms=("recurring",),
    ),
    _money("project_duration", "Project Duration", "duration"),
    _day("start_date", "Start Date"),
    _day("end_date", "End Date"),
    FieldSpec(
        name="currency_type",
        label="Currency Type",
        type=FieldType.ENUM,
        enum_values=CURRENCIES,
        synonyms=("currency",),
    ),
    FieldSpec(name="current_status", label="Current Status"),
    FieldSpec(name="closing", label="Closing"),
    FieldSpec(name="won_reason", label="Won Reason"),
    FieldSpec(name="lost_reason", label="Lost Reason"),
    FieldSpec(name="need_improvement", label="Need Improvement"),
    FieldSpec(name="drop_reason", label="Drop Reason"),
    _money("quarterly_revenue_q1", "Quarterly Revenue Q1", "q1_revenue"),
    _money("quarterly_revenue_q2", "Quarterly Revenue Q2", "q2_revenue"),
    _money("quarterly_revenue_q3", "Quarterly Revenue Q3", "q3_revenue"),
    _money("quarterly_revenue_q4", "Quarterly Revenue Q4", "q4_revenue"),
    _money("total_revenue", "Total Revenue", "revenue"),
    _day("signed_contract_date", "Signed Contract Date"),
    _day("implementation_start_date", "Implementation Start Date"),
    FieldSpec(
        name="handoff_status",
        label="Handoff Status",
        type=FieldType.ENUM,
        enum_values=HANDOFF_STATUSES,
    ),
    _day("rfq_received_date", "RFQ Received Date"),
    _day("proposal_due_date", "Proposal Due Date"),
    FieldSpec(
        name="rfq_status",
        label="RFQ Status",
        type=FieldType.ENUM,
        enum_values=RFQ_STATUSES,
    ),
    FieldSpec(name="created_by", label="Created By", type=FieldType.ID_REFERENCE, read_only=True),
    FieldSpec(name="modified_by", label="Modified By", type=FieldType.ID_REFERENCE, read_only=True),
    FieldSpec(name="created_at", label="Created At", type=FieldType.DATETIME, read_only=True),
    FieldSpec(name="modified_at", label="Modified At", type=FieldType.DATETIME, read_only=True),
    FieldSpec(
        name="action_items_json",
        label="Action Items",
        type=FieldType.JSON_BLOB,
        synonyms=("action_items", "tasks", "next_actions"),
    ),
)

DEAL_SCHEMA: FieldSchema = build_schema(
    "deals",
    DEAL_FIELDS,
    natural_key_fields=("deal_name",),
    update_on_natural_key=True,
    child_spec=ChildRecordSpec(
        entity_name="deal_action_items",
        foreign_key="deal_id",
        column="action_items_json",
        schema=action_item_schema("deal_action_items"),
    ),
)

"""Canonical lead contract.

Column order matches the lead export so an exported file re-imports with every
header matched exactly. Leads are deduplicated on ``(lead_name, company_name)``
when the row carries no known id.
"""

from __future__ import annotations

from typing import Tuple

from .schema import ChildRecordSpec, FieldSchema, FieldSpec, FieldType, action_item_schema, build_schema

LEAD_SOURCES: Tuple[str, ...] = (
    "Website",
    "LinkedIn",
    "Referral",
    "Cold Call",
    "Email",
    "Social Media",
    "Event",
    "Partner",
    "Advertisement",
    "Other",
)

LEAD_INDUSTRIES: Tuple[str, ...] = (
    "Automotive",
    "Technology",
    "Healthcare",
    "Finance",
    "Manufacturing",
    "Retail",
    "Education",
    "Real Estate",
    "Other",
)

LEAD_REGIONS: Tuple[str, ...] = (
    "North America",
    "South America",
    "Europe",
    "Asia",
    "Africa",
    "Australia",
    "Other",
)

LEAD_STATUSES: Tuple[str, ...] = ("New", "Contacted", "Qualified")

LEAD_FIELDS: Tuple[FieldSpec, ...] = (
    FieldSpec(name="id", label="ID", synonyms=("lead_id", "record_id")),
    FieldSpec(
        name="lead_name",
        label="Lead Name",
        required=True,
        synonyms=("name", "full_name", "contact_name", "person"),
    ),
    FieldSpec(
        name="company_name",
        label="Company Name",
        required=True,
        synonyms=("company", "organization", "organisation", "account", "business"),
    ),
    FieldSpec(name="position", label="Position", synonyms=("job_title", "title", "role", "designation")),
    FieldSpec(name="email", label="Email", synonyms=("email_address", "e_mail", "mail")),
    FieldSpec(
        name="phone_no",
        label="Phone No",
        synonyms=("phone", "telephone", "phone_number", "mobile", "cell"),
    ),
    FieldSpec(name="linkedin", label="LinkedIn", synonyms=("linkedin_url", "linked_in")),
    FieldSpec(name="website", label="Website", synonyms=("web", "url", "site")),
    FieldSpec(
        name="contact_source",
        label="Contact Source",
        type=FieldType.ENUM,
        enum_values=LEAD_SOURCES,
        synonyms=("source", "lead_source", "channel"),
    ),
    FieldSpec(
        name="lead_status",
        label="Lead Status",
        type=FieldType.ENUM,
        enum_values=LEAD_STATUSES,
        default="New",
        synonyms=("status", "stage"),
    ),
    FieldSpec(
        name="industry",
        label="Industry",
        type=FieldType.ENUM,
        enum_values=LEAD_INDUSTRIES,
        synonyms=("sector", "vertical"),
    ),
    FieldSpec(
        name="country",
        label="Country",
        type=FieldType.ENUM,
        enum_values=LEAD_REGIONS,
        synonyms=("region", "location"),
    ),
    FieldSpec(name="description", label="Description", synonyms=("notes", "note", "comments", "details")),
    FieldSpec(
        name="contact_owner",
        label="Contact Owner",
        type=FieldType.ID_REFERENCE,
        synonyms=("owner", "lead_owner", "account_owner"),
    ),
    FieldSpec(name="created_by", label="Created By", type=FieldType.ID_REFERENCE, read_only=True),
    FieldSpec(name="modified_by", label="Modified By", type=FieldType.ID_REFERENCE, read_only=True),
    FieldSpec(name="created_time", label="Created Time", type=FieldType.DATETIME, read_only=True),
    FieldSpec(name="modified_time", label="Modified Time", type=FieldType.DATETIME, read_only=True),
    FieldSpec(
        name="action_items_json",
        label="Action Items",
        type=FieldType.JSON_BLOB,
        synonyms=("action_items", "tasks", "next_actions"),
    ),
)

LEAD_SCHEMA: FieldSchema = build_schema(
    "leads",
    LEAD_FIELDS,
    natural_key_fields=("lead_name", "company_name"),
    child_spec=ChildRecordSpec(
        entity_name="lead_action_items",
        foreign_key="lead_id",
        column="action_items_json",
        schema=action_item_schema("lead_action_items"),
    ),
)

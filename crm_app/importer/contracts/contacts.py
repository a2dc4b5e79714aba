"""Canonical contact contract.

Contacts share the lead vocabulary for sources and industries but keep a
free-text country and carry numeric firmographics.
"""

from __future__ import annotations

from typing import Tuple

from .leads import LEAD_INDUSTRIES, LEAD_SOURCES
from .schema import FieldSchema, FieldSpec, FieldType, build_schema

CONTACT_FIELDS: Tuple[FieldSpec, ...] = (
    FieldSpec(name="id", label="ID", synonyms=("contact_id", "record_id")),
    FieldSpec(
        name="contact_name",
        label="Contact Name",
        required=True,
        synonyms=("name", "full_name", "person"),
    ),
    FieldSpec(
        name="company_name",
        label="Company Name",
        synonyms=("company", "organization", "organisation", "account", "business"),
    ),
    FieldSpec(name="position", label="Position", synonyms=("job_title", "title", "role", "designation")),
    FieldSpec(name="email", label="Email", synonyms=("email_address", "e_mail", "mail")),
    FieldSpec(name="phone_no", label="Phone No", synonyms=("phone", "telephone", "phone_number", "work_phone")),
    FieldSpec(name="mobile_no", label="Mobile No", synonyms=("mobile", "cell", "cell_phone", "mobile_number")),
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
        name="industry",
        label="Industry",
        type=FieldType.ENUM,
        enum_values=LEAD_INDUSTRIES,
        synonyms=("sector", "vertical"),
    ),
    FieldSpec(name="country", label="Country", synonyms=("nation",)),
    FieldSpec(name="city", label="City", synonyms=("town",)),
    FieldSpec(name="state", label="State", synonyms=("province", "county")),
    FieldSpec(name="description", label="Description", synonyms=("notes", "note", "comments", "details")),
    FieldSpec(
        name="annual_revenue",
        label="Annual Revenue",
        type=FieldType.NUMBER,
        synonyms=("revenue", "turnover"),
    ),
    FieldSpec(
        name="no_of_employees",
        label="No Of Employees",
        type=FieldType.NUMBER,
        synonyms=("employees", "employee_count", "headcount", "number_of_employees"),
    ),
    FieldSpec(
        name="contact_owner",
        label="Contact Owner",
        type=FieldType.ID_REFERENCE,
        synonyms=("owner", "account_owner"),
    ),
    FieldSpec(name="created_by", label="Created By", type=FieldType.ID_REFERENCE, read_only=True),
    FieldSpec(name="modified_by", label="Modified By", type=FieldType.ID_REFERENCE, read_only=True),
    FieldSpec(name="created_time", label="Created Time", type=FieldType.DATETIME, read_only=True),
    FieldSpec(name="modified_time", label="Modified Time", type=FieldType.DATETIME, read_only=True),
)

CONTACT_SCHEMA: FieldSchema = build_schema(
    "contacts",
    CONTACT_FIELDS,
    natural_key_fields=("contact_name", "company_name"),
)

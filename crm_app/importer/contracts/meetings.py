"""Canonical meeting contract.

Meetings have no natural key: only a known id turns a row into an update, so
two meetings with the same title and time are both kept.
"""

from __future__ import annotations

from typing import Tuple

from .schema import ChildRecordSpec, FieldSchema, FieldSpec, FieldType, action_item_schema, build_schema

MEETING_STATUSES: Tuple[str, ...] = ("Scheduled", "In Progress", "Completed", "Cancelled")

MEETING_FIELDS: Tuple[FieldSpec, ...] = (
    FieldSpec(name="id", label="ID", synonyms=("meeting_record_id", "record_id")),
    FieldSpec(
        name="title",
        label="Title",
        required=True,
        synonyms=("subject", "meeting_title", "topic", "meeting_name"),
    ),
    FieldSpec(
        name="participants",
        label="Participants",
        synonyms=("attendees", "invitees", "guests"),
        description="Comma-separated participant names or addresses.",
    ),
    FieldSpec(
        name="organizer",
        label="Organizer",
        type=FieldType.ID_REFERENCE,
        synonyms=("organiser", "host", "owner"),
    ),
    FieldSpec(
        name="status",
        label="Status",
        type=FieldType.ENUM,
        enum_values=MEETING_STATUSES,
        default="Scheduled",
        synonyms=("meeting_status", "state"),
    ),
    FieldSpec(
        name="teams_meeting_link",
        label="Teams Meeting Link",
        synonyms=("meeting_link", "join_url", "join_link"),
    ),
    FieldSpec(name="teams_meeting_id", label="Teams Meeting ID", synonyms=("meeting_id", "teams_id")),
    FieldSpec(name="description", label="Description", synonyms=("agenda", "notes", "details")),
    FieldSpec(name="created_at", label="Created At", type=FieldType.DATETIME, read_only=True),
    FieldSpec(name="updated_at", label="Updated At", type=FieldType.DATETIME, read_only=True),
    FieldSpec(name="created_by", label="Created By", type=FieldType.ID_REFERENCE, read_only=True),
    FieldSpec(name="modified_by", label="Modified By", type=FieldType.ID_REFERENCE, read_only=True),
    FieldSpec(
        name="duration",
        label="Duration",
        type=FieldType.NUMBER,
        synonyms=("duration_minutes", "minutes", "length"),
    ),
    FieldSpec(
        name="start_time_utc",
        label="Start Time",
        type=FieldType.DATETIME,
        required=True,
        synonyms=("start_time", "start", "starts_at", "start_date"),
    ),
    FieldSpec(
        name="end_time_utc",
        label="End Time",
        type=FieldType.DATETIME,
        required=True,
        synonyms=("end_time", "end", "ends_at", "end_date"),
    ),
    FieldSpec(name="time_zone", label="Time Zone", default="UTC", synonyms=("timezone", "tz")),
    FieldSpec(
        name="microsoft_event_id",
        label="Microsoft Event ID",
        synonyms=("outlook_event_id", "event_id"),
    ),
    FieldSpec(name="time_zone_display", label="Time Zone Display", synonyms=("timezone_display",)),
    FieldSpec(
        name="meeting_action_items",
        label="Action Items",
        type=FieldType.JSON_BLOB,
        synonyms=("action_items", "tasks", "next_actions"),
    ),
)

MEETING_SCHEMA: FieldSchema = build_schema(
    "meetings",
    MEETING_FIELDS,
    child_spec=ChildRecordSpec(
        entity_name="meeting_action_items",
        foreign_key="meeting_id",
        column="meeting_action_items",
        schema=action_item_schema("meeting_action_items"),
    ),
)

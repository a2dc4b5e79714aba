import json

from crm_app.importer.contracts import LEAD_SCHEMA, MEETING_SCHEMA
from crm_app.importer.pipeline import DedupMatcher, ImportResult, MatchKind, NormalizedRow
from crm_app.importer.utils import allowed_file, decode_csv_bytes, persist_import_summary


def _row(record_id=None, **record):
    return NormalizedRow(row_number=2, record=record, record_id=record_id)


def test_id_match_wins_over_natural_key(fake_store):
    by_id = fake_store.seed("leads", {"lead_name": "Ada", "company_name": "Analytical"})
    fake_store.seed("leads", {"lead_name": "Grace", "company_name": "Navy"})
    matcher = DedupMatcher(fake_store, LEAD_SCHEMA)

    match = matcher.find(_row(by_id, lead_name="Grace", company_name="Navy"))

    assert match.kind is MatchKind.ID
    assert match.record_id == by_id


def test_natural_key_match_when_id_unknown(fake_store):
    existing = fake_store.seed("leads", {"lead_name": "Ada", "company_name": "Analytical"})
    matcher = DedupMatcher(fake_store, LEAD_SCHEMA)

    match = matcher.find(_row("66666666-6666-4666-8666-666666666666", lead_name="Ada", company_name="Analytical"))

    assert match.kind is MatchKind.NATURAL_KEY
    assert match.record_id == existing


def test_schema_without_natural_key_never_matches_by_content(fake_store):
    fake_store.seed("meetings", {"title": "Standup"})
    matcher = DedupMatcher(fake_store, MEETING_SCHEMA)

    match = matcher.find(_row(title="Standup"))

    assert match.kind is MatchKind.NONE
    assert match.record_id is None
    assert ("find_by_natural_key", "meetings") not in fake_store.calls


def test_upload_helpers():
    assert allowed_file("leads.CSV") is True
    assert allowed_file("leads.xlsx") is False
    assert allowed_file("noextension") is False
    assert decode_csv_bytes("Lead Name\nJosé\n".encode("utf-8")) == "Lead Name\nJosé\n"


def test_persist_import_summary_defaults_to_artifact_dir(app, tmp_path):
    app.config["IMPORTER_ARTIFACT_DIR"] = str(tmp_path / "artifacts")
    result = ImportResult(entity="leads", success_count=2, total_rows=2, processed_rows=2)

    path = persist_import_summary(result, source="upload.csv")

    assert path.parent == tmp_path / "artifacts"
    assert path.name.startswith("leads_import_")
    payload = json.loads(path.read_text(encoding="utf-8"))
    assert payload["source"] == "upload.csv"
    assert payload["status"] == "succeeded"
    assert payload["success_count"] == 2

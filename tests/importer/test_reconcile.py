import json
import threading

import pytest

from crm_app.importer.contracts import CONTACT_SCHEMA, DEAL_SCHEMA, LEAD_SCHEMA, MEETING_SCHEMA
from crm_app.importer.pipeline import BatchReconciler, ErrorKind, KeyedLocks

IMPORTER_ID = "22222222-2222-4222-8222-222222222222"

LEAD_HEADER = "Lead Name,Company Name,Email,Lead Status\n"


def _make_csv(rows, header=LEAD_HEADER):
    return header + "".join(f"{row}\n" for row in rows)


def _reconciler(store, schema=LEAD_SCHEMA, **kwargs):
    kwargs.setdefault("default_principal", IMPORTER_ID)
    return BatchReconciler(store, schema, **kwargs)


def test_new_rows_are_inserted_with_defaults(fake_store):
    text = _make_csv(["Ada,Analytical,ada@example.com,", "Grace,Navy,grace@example.com,Qualified"])

    result = _reconciler(fake_store).run(text)

    assert result.status == "succeeded"
    assert (result.success_count, result.update_count, result.duplicate_count, result.error_count) == (2, 0, 0, 0)
    stored = sorted(fake_store.list_records("leads"), key=lambda record: record["lead_name"])
    assert stored[0]["lead_status"] == "New"
    assert stored[0]["contact_owner"] == IMPORTER_ID
    assert stored[1]["lead_status"] == "Qualified"


def test_counts_always_add_up_to_processed_rows(fake_store):
    fake_store.seed("leads", {"lead_name": "Ada", "company_name": "Analytical"})
    text = _make_csv(["Ada,Analytical,,", ",Blank,,", "Grace,Navy,,", "Grace,Navy,,"])

    result = _reconciler(fake_store).run(text)

    total = result.success_count + result.update_count + result.duplicate_count + result.error_count
    assert total == result.processed_rows == result.total_rows == 4
    assert result.duplicate_count == 2
    assert result.success_count == 1
    assert result.error_count == 1


def test_blank_required_field_reports_physical_row_number(fake_store):
    text = _make_csv([",Acme,,", "Ada,Analytical,,"])

    result = _reconciler(fake_store).run(text)

    assert result.status == "partially_failed"
    assert result.error_messages == ["Row 2: Lead Name is required"]
    assert result.errors[0].kind is ErrorKind.VALIDATION
    assert result.success_count == 1


def test_reimport_is_idempotent(fake_store):
    text = _make_csv(["Ada,Analytical,,", "Grace,Navy,,"])
    _reconciler(fake_store).run(text)

    second = _reconciler(fake_store).run(text)

    assert second.success_count == 0
    assert second.duplicate_count == 2
    assert len(fake_store.list_records("leads")) == 2


def test_natural_key_match_is_case_sensitive(fake_store):
    fake_store.seed("leads", {"lead_name": "Ada", "company_name": "Analytical"})

    result = _reconciler(fake_store).run(_make_csv(["ada,analytical,,"]))

    assert result.success_count == 1
    assert result.duplicate_count == 0


def test_known_id_updates_existing_record(fake_store):
    record_id = fake_store.seed(
        "leads",
        {"lead_name": "Ada", "company_name": "Analytical", "email": "old@example.com", "lead_status": "New"},
    )
    text = _make_csv([f"{record_id},Ada L,Analytical,new@example.com,"], header="ID," + LEAD_HEADER)

    result = _reconciler(fake_store).run(text)

    assert result.update_count == 1
    stored = fake_store.records["leads"][record_id]
    assert stored["lead_name"] == "Ada L"
    assert stored["email"] == "new@example.com"
    assert stored["lead_status"] == "New"


def test_unknown_id_falls_back_to_natural_key(fake_store):
    text = _make_csv(
        ["44444444-4444-4444-8444-444444444444,Ada,Analytical,,"],
        header="ID," + LEAD_HEADER,
    )

    result = _reconciler(fake_store).run(text)

    assert result.success_count == 1
    new_id = next(iter(fake_store.records["leads"]))
    assert new_id != "44444444-4444-4444-8444-444444444444"


@pytest.mark.parametrize("batch_size", [1, 3, 1000])
def test_batch_size_does_not_change_the_result(batch_size, fake_store):
    # 25 rows over 21 distinct (lead, company) pairs
    rows = [f"Lead {index % 7},Company {index % 3},," for index in range(25)] + [",Missing,,"]
    text = _make_csv(rows)

    result = _reconciler(fake_store, batch_size=batch_size).run(text)

    assert result.success_count == 21
    assert result.duplicate_count == 4
    assert result.error_count == 1
    assert [error.row for error in result.errors] == [27]


def test_progress_reported_after_each_batch(fake_store):
    progress = []
    text = _make_csv([f"Lead {index},Acme,," for index in range(5)])

    _reconciler(fake_store, batch_size=2, on_progress=lambda done, total: progress.append((done, total))).run(text)

    assert progress == [(2, 5), (4, 5), (5, 5)]


def test_cancellation_stops_before_next_batch(fake_store):
    cancel = threading.Event()
    text = _make_csv([f"Lead {index},Acme,," for index in range(6)])

    def _cancel_after_first_batch(done, total):
        cancel.set()

    result = _reconciler(
        fake_store,
        batch_size=2,
        on_progress=_cancel_after_first_batch,
        cancel_event=cancel,
    ).run(text)

    assert result.cancelled is True
    assert result.status == "cancelled"
    assert result.processed_rows == 2
    assert result.total_rows == 6
    assert len(fake_store.list_records("leads")) == 2


def test_store_failure_fails_only_that_row(fake_store):
    fake_store.fail_insert_when = lambda record: record["lead_name"] == "Grace"
    text = _make_csv(["Ada,Analytical,,", "Grace,Navy,,", "Linus,Kernel,,"])

    result = _reconciler(fake_store).run(text)

    assert result.success_count == 2
    assert result.error_count == 1
    assert result.errors[0].row == 3
    assert result.errors[0].kind is ErrorKind.STORE
    assert "database is locked" in result.errors[0].message


def test_permission_denied_is_audited_and_counted(fake_store):
    record_id = fake_store.seed("leads", {"lead_name": "Ada", "company_name": "Analytical"})
    fake_store.denied_ids.add(record_id)
    events = []
    text = _make_csv([f"{record_id},Ada,Analytical,,"], header="ID," + LEAD_HEADER)

    result = _reconciler(fake_store, on_permission_denied=events.append).run(text)

    assert result.error_count == 1
    assert result.permission_denied_count == 1
    assert result.errors[0].kind is ErrorKind.PERMISSION_DENIED
    assert len(events) == 1
    assert events[0].record_id == record_id
    assert events[0].row_number == 2
    assert events[0].principal_id == IMPORTER_ID


def test_missing_required_column_is_fatal(fake_store):
    result = _reconciler(fake_store).run("Lead Name,Email\nAda,ada@example.com\n")

    assert result.status == "failed"
    assert result.fatal_error == "Missing required column(s): Company Name"
    assert result.processed_rows == 0
    assert fake_store.calls == []


@pytest.mark.parametrize(
    "text, message",
    [
        ("", "CSV file is empty."),
        (LEAD_HEADER, "CSV file has no data rows."),
    ],
)
def test_fatal_input_errors(text, message, fake_store):
    result = _reconciler(fake_store).run(text)

    assert result.fatal_error == message
    assert result.error_messages == [message]


def test_unknown_columns_warn_but_import_proceeds(fake_store):
    text = "Lead Name,Company Name,Shoe Size\nAda,Analytical,38\n"

    result = _reconciler(fake_store).run(text)

    assert result.success_count == 1
    assert 'Unknown column "Shoe Size" will be ignored' in result.warnings


def test_action_items_inserted_with_new_lead(fake_store):
    items = json.dumps([{"next_action": "Call back", "due_date": "2024-02-01"}]).replace('"', '""')
    text = f'Lead Name,Company Name,Action Items\nAda,Analytical,"{items}"\n'

    result = _reconciler(fake_store).run(text)

    lead_id = next(iter(fake_store.records["leads"]))
    children = fake_store.children["leads"][lead_id]
    assert result.success_count == 1
    assert [child["next_action"] for child in children] == ["Call back"]
    assert children[0]["status"] == "Open"


def test_update_replaces_action_items(fake_store):
    record_id = fake_store.seed("leads", {"lead_name": "Ada", "company_name": "Analytical"})
    fake_store.insert_children("leads", record_id, [{"next_action": "Old"}])
    items = json.dumps([{"next_action": "New"}]).replace('"', '""')
    text = f'ID,Lead Name,Company Name,Action Items\n{record_id},Ada,Analytical,"{items}"\n'

    _reconciler(fake_store).run(text)

    assert [child["next_action"] for child in fake_store.children["leads"][record_id]] == ["New"]


def test_blank_action_items_column_leaves_children_alone(fake_store):
    record_id = fake_store.seed("leads", {"lead_name": "Ada", "company_name": "Analytical"})
    fake_store.insert_children("leads", record_id, [{"next_action": "Keep"}])
    text = f"ID,Lead Name,Company Name,Action Items\n{record_id},Ada,Analytical,\n"

    result = _reconciler(fake_store).run(text)

    assert result.update_count == 1
    assert [child["next_action"] for child in fake_store.children["leads"][record_id]] == ["Keep"]


def test_child_failure_becomes_parent_warning(fake_store):
    fake_store.fail_children = True
    items = json.dumps([{"next_action": "Call"}]).replace('"', '""')
    text = f'Lead Name,Company Name,Action Items\nAda,Analytical,"{items}"\n'

    result = _reconciler(fake_store).run(text)

    assert result.success_count == 1
    assert result.error_count == 0
    assert any("Action Items were not saved" in warning for warning in result.warnings)
    assert all(warning.startswith("Row 2: ") for warning in result.warnings)


def test_meetings_without_id_always_insert(fake_store):
    header = "Title,Start Time,End Time\n"
    rows = ["Standup,2024-01-01 09:00,2024-01-01 09:15"] * 2

    result = _reconciler(fake_store, schema=MEETING_SCHEMA).run(_make_csv(rows, header=header))

    assert result.success_count == 2
    assert result.duplicate_count == 0
    stored = fake_store.list_records("meetings")
    assert {record["status"] for record in stored} == {"Scheduled"}
    assert {record["time_zone"] for record in stored} == {"UTC"}


def test_contacts_natural_key_with_missing_company(fake_store):
    text = "Contact Name,Email\nAda,ada@example.com\nAda,other@example.com\n"

    result = _reconciler(fake_store, schema=CONTACT_SCHEMA).run(text)

    assert result.success_count == 1
    assert result.duplicate_count == 1


def test_parallel_id_lookups_match_sequential(app, fake_store):
    ids = [fake_store.seed("leads", {"lead_name": f"Lead {index}", "company_name": "Acme"}) for index in range(6)]
    text = "ID,Lead Name,Company Name\n" + "".join(f"{record_id},Renamed {i},Acme\n" for i, record_id in enumerate(ids))

    result = _reconciler(fake_store, batch_size=3, lookup_workers=4).run(text)

    assert result.update_count == 6
    assert fake_store.records["leads"][ids[5]]["lead_name"] == "Renamed 5"


def test_keyed_locks_reuse_lock_per_key():
    locks = KeyedLocks()

    with locks.hold(("key", "a")):
        with locks.hold(("key", "b")):
            pass
    with locks.hold(None):
        pass

    assert set(locks._locks) == {("key", "a"), ("key", "b")}


def test_batch_size_must_be_positive(fake_store):
    with pytest.raises(ValueError):
        BatchReconciler(fake_store, LEAD_SCHEMA, batch_size=0)


def test_label_column_keeps_natural_key_over_earlier_synonym_column(fake_store):
    text = "Company Phone,Lead Name,Company Name\n555-0100,Ada,Acme\n"

    result = _reconciler(fake_store).run(text)

    assert result.success_count == 1
    stored = fake_store.list_records("leads")[0]
    assert stored["company_name"] == "Acme"
    assert stored["phone_no"] == "555-0100"


def test_unexpected_store_exception_fails_only_that_row(fake_store, caplog):
    fake_store.crash_insert_when = lambda record: record["lead_name"] == "Bad"
    text = _make_csv(["Bad,X,,", "Good,Y,,"])

    with caplog.at_level("ERROR"):
        result = _reconciler(fake_store).run(text)

    assert result.processed_rows == 2
    assert result.success_count == 1
    assert result.error_count == 1
    assert result.errors[0].row == 2
    assert result.errors[0].kind is ErrorKind.STORE
    assert result.errors[0].message == "Processing error: driver blew up"
    assert [record["lead_name"] for record in fake_store.list_records("leads")] == ["Good"]
    assert any(record.exc_info for record in caplog.records)


def test_unexpected_directory_exception_fails_only_that_row(fake_store):
    class ExplodingDirectory:
        def resolve(self, text):
            if text == "boom":
                raise RuntimeError("directory offline")
            return None

    text = "Lead Name,Company Name,Contact Owner\nAda,Analytical,boom\nGrace,Navy,\n"

    result = _reconciler(fake_store, directory=ExplodingDirectory()).run(text)

    assert result.success_count == 1
    assert result.error_messages == ["Row 2: Processing error: directory offline"]


def test_meeting_keeps_supplied_id_on_insert(fake_store):
    meeting_id = "77777777-7777-4777-8777-777777777777"
    text = f"ID,Title,Start Time,End Time\n{meeting_id},Standup,2024-01-01 09:00,2024-01-01 09:15\n"

    first = _reconciler(fake_store, schema=MEETING_SCHEMA).run(text)
    second = _reconciler(fake_store, schema=MEETING_SCHEMA).run(text)

    assert (first.success_count, first.update_count) == (1, 0)
    assert (second.success_count, second.update_count) == (0, 1)
    assert list(fake_store.records["meetings"]) == [meeting_id]


def test_repeated_meeting_id_in_one_file_updates_the_first_insert(fake_store):
    meeting_id = "77777777-7777-4777-8777-777777777777"
    text = (
        "ID,Title,Start Time,End Time\n"
        f"{meeting_id},Standup,2024-01-01 09:00,2024-01-01 09:15\n"
        f"{meeting_id},Standup (moved),2024-01-01 10:00,2024-01-01 10:15\n"
    )

    result = _reconciler(fake_store, schema=MEETING_SCHEMA, batch_size=10).run(text)

    assert (result.success_count, result.update_count) == (1, 1)
    assert fake_store.records["meetings"][meeting_id]["title"] == "Standup (moved)"


def test_malformed_meeting_id_is_not_kept(fake_store):
    text = "ID,Title,Start Time,End Time\nmtg-1,Standup,2024-01-01 09:00,2024-01-01 09:15\n"

    result = _reconciler(fake_store, schema=MEETING_SCHEMA).run(text)

    assert result.success_count == 1
    assert "mtg-1" not in fake_store.records["meetings"]


DEAL_HEADER = "Deal Name,Stage,Probability,Expected Closing Date,Currency\n"


def test_new_deals_default_to_lead_stage(fake_store):
    text = _make_csv(["Fleet renewal,,40,2024-06-30,usd"], header=DEAL_HEADER)

    result = _reconciler(fake_store, schema=DEAL_SCHEMA).run(text)

    assert result.success_count == 1
    deal = fake_store.list_records("deals")[0]
    assert deal["stage"] == "Lead"
    assert deal["probability"] == 40
    assert deal["expected_closing_date"] == "2024-06-30"
    assert deal["currency_type"] == "USD"


def test_deal_name_match_updates_existing_deal(fake_store):
    deal_id = fake_store.seed("deals", {"deal_name": "Fleet renewal", "stage": "Lead"})
    text = _make_csv(["Fleet renewal,Qualified,70,,"], header=DEAL_HEADER)

    result = _reconciler(fake_store, schema=DEAL_SCHEMA).run(text)

    assert (result.success_count, result.update_count, result.duplicate_count) == (0, 1, 0)
    assert fake_store.records["deals"][deal_id]["stage"] == "Qualified"
    assert fake_store.records["deals"][deal_id]["probability"] == 70


def test_repeated_deal_name_in_one_file_updates_the_first_insert(fake_store):
    text = _make_csv(["Fleet renewal,Lead,10,,", "Fleet renewal,Won,100,,"], header=DEAL_HEADER)

    result = _reconciler(fake_store, schema=DEAL_SCHEMA, batch_size=1).run(text)

    assert (result.success_count, result.update_count) == (1, 1)
    [deal] = fake_store.list_records("deals")
    assert deal["stage"] == "Won"


def test_deal_without_name_is_a_row_error(fake_store):
    text = _make_csv([",Won,,,"], header=DEAL_HEADER)

    result = _reconciler(fake_store, schema=DEAL_SCHEMA).run(text)

    assert result.error_messages == ["Row 2: Deal Name is required"]

import pytest

from crm_app.importer.codec import parse_csv, parse_csv_document, serialize_csv
from crm_app.importer.errors import MalformedInput


def test_parse_csv_handles_quotes_and_embedded_newlines():
    text = 'Lead Name,Description\n"Doe, Jane","line one\nline two"\nBob,"say ""hi"""\n'

    headers, rows = parse_csv(text)

    assert headers == ["Lead Name", "Description"]
    assert rows == [["Doe, Jane", "line one\nline two"], ["Bob", 'say "hi"']]


def test_line_numbers_track_physical_lines():
    text = 'Lead Name,Description\nAda,"multi\nline"\nGrace,short\n'

    document = parse_csv_document(text)

    assert document.line_numbers == (2, 4)
    assert len(document) == 2


def test_blank_lines_are_skipped_and_short_rows_padded():
    text = "Lead Name,Company Name,Email\n\nAda,Analytical\n\n"

    document = parse_csv_document(text)

    assert document.rows == (("Ada", "Analytical", ""),)
    assert document.line_numbers == (3,)


def test_byte_order_mark_is_stripped_from_first_header():
    headers, _ = parse_csv("\ufeffLead Name,Company Name\nAda,Analytical\n")

    assert headers[0] == "Lead Name"


def test_header_only_file_parses_with_zero_rows():
    document = parse_csv_document("Lead Name,Company Name\n")

    assert document.headers == ("Lead Name", "Company Name")
    assert document.rows == ()


@pytest.mark.parametrize("text", ["", "   \n\n"])
def test_empty_text_is_malformed(text):
    with pytest.raises(MalformedInput):
        parse_csv_document(text)


def test_serialize_quotes_only_when_needed():
    text = serialize_csv(["name", "notes"], [["Ada", "plain"], ["Doe, Jane", 'said "hi"\nbye'], ["Bob", None]])

    assert text == 'name,notes\nAda,plain\n"Doe, Jane","said ""hi""\nbye"\nBob,\n'


def test_serialized_text_parses_back_to_same_cells():
    rows = [["a,b", 'q"uote'], ["multi\nline", ""]]

    headers, parsed = parse_csv(serialize_csv(["x", "y"], rows))

    assert headers == ["x", "y"]
    assert parsed == rows

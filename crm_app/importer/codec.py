"""CSV text codec for import and export.

Parsing is built on :mod:`csv` with RFC 4180 quoting. Each data row keeps the
physical line on which it starts (header is line 1) so diagnostics point at
the line a spreadsheet user sees, even when quoted cells span several lines.
"""

from __future__ import annotations

import csv
import io
from dataclasses import dataclass
from typing import Iterable, Sequence

from crm_app.importer.errors import MalformedInput


@dataclass(frozen=True)
class CsvDocument:
    headers: tuple[str, ...]
    rows: tuple[tuple[str, ...], ...]
    line_numbers: tuple[int, ...]

    def __len__(self) -> int:
        return len(self.rows)


def _sanitize_header(header: str | None) -> str:
    token = (header or "").strip()
    return token.lstrip("\ufeff").strip()


def _is_blank(record: Sequence[str]) -> bool:
    return not record or (len(record) == 1 and not record[0].strip())


def parse_csv_document(text: str) -> CsvDocument:
    """
    Parse CSV text into headers, data rows and their starting line numbers.

    Raises ``MalformedInput`` when the text is empty or has no header row.
    Zero data rows is not an error here.
    """

    if text is None or not text.strip():
        raise MalformedInput("CSV file is empty.")

    reader = csv.reader(io.StringIO(text, newline=""), strict=False)
    headers: tuple[str, ...] | None = None
    rows: list[tuple[str, ...]] = []
    line_numbers: list[int] = []
    previous_line = 0
    try:
        for record in reader:
            start_line = previous_line + 1
            previous_line = reader.line_num
            if _is_blank(record):
                continue
            if headers is None:
                headers = tuple(_sanitize_header(cell) for cell in record)
                continue
            if len(record) < len(headers):
                record = [*record, *([""] * (len(headers) - len(record)))]
            rows.append(tuple(record))
            line_numbers.append(start_line)
    except csv.Error as exc:
        raise MalformedInput(f"CSV parse error near line {reader.line_num}: {exc}") from exc

    if headers is None or not any(headers):
        raise MalformedInput("CSV file has no header row.")
    return CsvDocument(headers=headers, rows=tuple(rows), line_numbers=tuple(line_numbers))


def parse_csv(text: str) -> tuple[list[str], list[list[str]]]:
    """Return ``(headers, rows)`` for CSV text."""

    document = parse_csv_document(text)
    return list(document.headers), [list(row) for row in document.rows]


def serialize_csv(headers: Sequence[str], rows: Iterable[Sequence[object | None]]) -> str:
    """
    Render headers and rows as CSV text.

    Values containing a comma, quote or newline are quoted with inner quotes
    doubled; ``None`` is written as an empty cell.
    """

    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(list(headers))
    for row in rows:
        writer.writerow(["" if value is None else value for value in row])
    return buffer.getvalue()

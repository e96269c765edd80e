"""
app/services/csv_table_parser.py

Tokenizes an uploaded CSV file into header-keyed rows.
"""

from __future__ import annotations

import csv
import io
from types import MappingProxyType

from app.domain.business_import import ParsedTable, RawRow
from app.domain.import_errors import TableParseError


def parse_csv_table(content: bytes | str) -> ParsedTable:
    """
    Parse raw CSV content using the first line as the header.

    Blank lines are skipped. Cells missing from short lines read as empty
    strings and cells beyond the header width are ignored.

    Raises:
        TableParseError: If the content is not UTF-8 or not valid CSV.
    """

    if isinstance(content, bytes):
        try:
            text = content.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise TableParseError("CSV must be UTF-8 encoded.") from exc
    else:
        text = content.lstrip("\ufeff")

    reader = csv.reader(io.StringIO(text, newline=""), strict=True)
    try:
        records = [record for record in reader if record]
    except csv.Error as exc:
        raise TableParseError(f"Invalid CSV format: {exc}") from exc

    if not records:
        return ParsedTable(headers=(), rows=())

    headers = tuple(header.strip() for header in records[0])
    rows = tuple(_to_raw_row(headers, record) for record in records[1:])
    return ParsedTable(headers=headers, rows=rows)


def _to_raw_row(headers: tuple[str, ...], record: list[str]) -> RawRow:
    values: dict[str, str] = {}
    for position, header in enumerate(headers):
        if not header:
            continue
        values[header] = record[position] if position < len(record) else ""
    return MappingProxyType(values)

from __future__ import annotations

"""Statement file reading for xlsx and csv exports."""

import asyncio
import io
from datetime import datetime
from typing import Any

import pytest
from openpyxl import Workbook

from wifo_import.errors import FileFormatError, FileParseError
from wifo_import.integrations.statement_parser import WifoStatementParser, expected_columns, rows_from_table
from wifo_import.models.entries import StatementFile
from wifo_import.models.record import ImportRecord

HEADER = ["Datum", "Vertrag", "Sparte", "AP-VM", "Art", "Netto"]


def _xlsx(rows: list[list[Any]]) -> bytes:
    wb = Workbook()
    ws = wb.active
    for row in rows:
        ws.append(row)
    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def _parse(name: str, content: bytes, on_progress=None):
    return asyncio.run(WifoStatementParser().parse(StatementFile(name=name, content=content), on_progress))


def test_parse_xlsx_rows_keyed_by_header() -> None:
    """Cells are keyed by header text and keep their sheet line number."""

    content = _xlsx(
        [
            HEADER,
            [datetime(2024, 3, 15), "V-1", "PKV", "Schmidt, Anna", "AP", 90.5],
            [None, None, None, None, None, None],
            [datetime(2024, 3, 16), "V-2", "BU", "Meyer, Peter", "BP", -12],
        ]
    )
    progress: list[int] = []
    rows = _parse("statement.xlsx", content, progress.append)

    assert [row.row_number for row in rows] == [2, 4]
    assert rows[0].values["Vertrag"] == "V-1"
    assert rows[0].values["Netto"] == 90.5
    assert progress[0] == 10
    assert progress[-1] == 100

    record = ImportRecord.from_row(rows[0].row_number, rows[0].values)
    assert record.entry_date == datetime(2024, 3, 15).date()
    assert record.raw_value("Datum") == "2024-03-15T00:00:00"


def test_parse_csv_with_semicolons() -> None:
    """German CSV exports with semicolons and decimal commas are read."""

    content = (
        "Datum;Vertrag;Sparte;AP-VM;Art;Netto\n"
        "01.03.2024;V-1;PKV;Schmidt, Anna;AP;90,00\n"
        "02.03.2024;V-2;BU;Meyer, Peter;BP;12,50\n"
    ).encode("utf-8")
    rows = _parse("statement.csv", content)

    assert len(rows) == 2
    assert rows[0].values["AP-VM"] == "Schmidt, Anna"
    assert ImportRecord.from_row(rows[1].row_number, rows[1].values).net == pytest.approx(12.5)


def test_parse_csv_latin1_fallback() -> None:
    """Files that are not UTF-8 are decoded as latin-1."""

    content = "Datum;Sparte;AP-VM;Netto\n01.03.2024;BU;Müller, Jörg;10\n".encode("latin-1")
    rows = _parse("statement.csv", content)
    assert rows[0].values["AP-VM"] == "Müller, Jörg"


def test_missing_required_columns_rejected() -> None:
    """A header without every required column is a format error."""

    content = _xlsx([["Datum", "Sparte", "AP-VM"], ["01.03.2024", "PKV", "X"]])
    with pytest.raises(FileFormatError) as excinfo:
        _parse("statement.xlsx", content)
    assert excinfo.value.details["missing"] == ["Netto"]


def test_header_only_file_rejected() -> None:
    """A sheet with no data lines cannot be imported."""

    with pytest.raises(FileFormatError):
        _parse("statement.xlsx", _xlsx([HEADER]))


def test_unsupported_extensions_rejected() -> None:
    """Only xlsx, xlsm and csv are accepted; legacy xls gets a hint."""

    with pytest.raises(FileFormatError) as excinfo:
        _parse("statement.xls", b"")
    assert "xlsx" in excinfo.value.message
    assert excinfo.value.expected_format == ".xlsx, .xlsm, .csv"

    with pytest.raises(FileFormatError):
        _parse("statement.pdf", b"%PDF")


def test_corrupt_workbook_is_parse_error() -> None:
    """Bytes that are not a workbook raise a parse error."""

    with pytest.raises(FileParseError) as excinfo:
        _parse("statement.xlsx", b"definitely not a zip file")
    assert excinfo.type is FileParseError


def test_rows_from_table_pads_short_lines() -> None:
    """Lines shorter than the header are padded with None."""

    rows = rows_from_table([["Netto", "AP-VM", "Sparte", "Datum", "Tarif"], [1, "A", "PKV", "01.01.2024"]])
    assert rows[0].values["Tarif"] is None


def test_expected_columns_lists_statement_layout() -> None:
    """The expected layout starts with Datum and contains every required column."""

    columns = expected_columns()
    assert columns[0] == "Datum"
    assert {"Netto", "AP-VM", "Sparte", "Datum"} <= set(columns)

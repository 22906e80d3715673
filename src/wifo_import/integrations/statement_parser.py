from __future__ import annotations

import asyncio
import csv
import io
import zipfile
from typing import Any, Iterable

from openpyxl import load_workbook

from wifo_import.errors import FileFormatError, FileParseError
from wifo_import.models.entries import RawRow, StatementFile
from wifo_import.models.record import REQUIRED_COLUMNS, WIFO_COLUMNS
from wifo_import.services.ports import ParseProgress

EXCEL_EXTENSIONS = {"xlsx", "xlsm"}
ALLOWED_EXTENSIONS = EXCEL_EXTENSIONS | {"csv"}


def expected_columns() -> list[str]:
    return list(WIFO_COLUMNS)


def _is_empty_row(values: Iterable[Any]) -> bool:
    return all(cell is None or str(cell).strip() == "" for cell in values)


def _header_map(header: Iterable[Any]) -> dict[int, str]:
    """Map column index to trimmed header text, ignoring blank header cells."""

    mapping: dict[int, str] = {}
    for index, cell in enumerate(header):
        text = str(cell).strip() if cell is not None else ""
        if text:
            mapping[index] = text
    missing = [column for column in REQUIRED_COLUMNS if column not in mapping.values()]
    if missing:
        raise FileFormatError(
            f"required columns missing: {', '.join(missing)}",
            expected_format=", ".join(REQUIRED_COLUMNS),
            details={"missing": missing},
        )
    return mapping


def rows_from_table(table: list[list[Any]], on_progress: ParseProgress | None = None) -> list[RawRow]:
    """Turn a header-first table into RawRows; row numbers are 1-based sheet lines."""

    if len(table) < 2:
        raise FileFormatError("file contains no data (header only or empty)")
    columns = _header_map(table[0])
    rows: list[RawRow] = []
    body = table[1:]
    for offset, line in enumerate(body, start=2):
        if _is_empty_row(line):
            continue
        values = {name: line[index] if index < len(line) else None for index, name in columns.items()}
        rows.append(RawRow(row_number=offset, values=values))
        if on_progress is not None and (offset - 1) % 50 == 0:
            on_progress(60 + int((offset - 1) / len(body) * 40))
    return rows


def _read_excel(content: bytes) -> list[list[Any]]:
    try:
        workbook = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except (zipfile.BadZipFile, OSError, KeyError, ValueError) as exc:
        raise FileParseError(f"could not read workbook: {exc}") from exc
    try:
        if not workbook.worksheets:
            raise FileFormatError("workbook contains no worksheets")
        sheet = workbook.worksheets[0]
        return [list(row) for row in sheet.iter_rows(values_only=True)]
    finally:
        workbook.close()


def _read_csv(content: bytes) -> list[list[Any]]:
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError:
        text = content.decode("latin-1")
    sample = text[:4096]
    try:
        delimiter = csv.Sniffer().sniff(sample, delimiters=";,\t").delimiter
    except csv.Error:
        delimiter = ";" if sample.count(";") > sample.count(",") else ","
    return [list(row) for row in csv.reader(io.StringIO(text), delimiter=delimiter)]


class WifoStatementParser:
    """Reads WIFO statement exports (xlsx/xlsm/csv) into header-keyed rows."""

    async def parse(self, file: StatementFile, on_progress: ParseProgress | None = None) -> list[RawRow]:
        extension = file.extension
        if extension == "xls":
            raise FileFormatError(
                "legacy .xls workbooks are not supported, save the statement as .xlsx",
                expected_format=".xlsx, .xlsm, .csv",
            )
        if extension not in ALLOWED_EXTENSIONS:
            raise FileFormatError(
                f"unsupported file type: .{extension}",
                expected_format=".xlsx, .xlsm, .csv",
            )
        if on_progress is not None:
            on_progress(10)
        reader = _read_excel if extension in EXCEL_EXTENSIONS else _read_csv
        table = await asyncio.to_thread(reader, file.content)
        if on_progress is not None:
            on_progress(50)
        rows = rows_from_table(table, on_progress)
        if on_progress is not None:
            on_progress(100)
        return rows

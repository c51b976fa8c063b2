"""Spreadsheet readers: XLSX and CSV payroll exports as one dict per row.

The first row is the header. Blank header cells become ``Column_N`` and
duplicates get a numeric suffix, so every source column stays addressable
by the mapping rules. Fully empty rows are skipped.
"""

from __future__ import annotations

import csv
import re
from collections.abc import Iterable, Iterator, Sequence
from pathlib import Path
from typing import Any, TextIO

import openpyxl

XLSX_SUFFIXES = frozenset({".xlsx", ".xlsm"})
CSV_SUFFIXES = frozenset({".csv", ".txt"})
CSV_DELIMITERS = ";,\t"


def _normalize_header(value: Any) -> str:
    if value is None:
        return ""
    return re.sub(r"\s+", " ", str(value)).strip()


def _cell_value(value: Any) -> Any:
    """Strip text cells; numbers and dates are kept as read."""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def _is_empty(value: Any) -> bool:
    return value is None or value == ""


def _unique_headers(raw: list[Any]) -> list[str]:
    headers: list[str] = []
    for index, value in enumerate(raw, start=1):
        key = _normalize_header(value) or f"Column_{index}"
        base = key
        n = 0
        while key in headers:
            n += 1
            key = f"{base}_{n}"
        headers.append(key)
    return headers


def _trim_trailing_empty(values: list[Any]) -> list[Any]:
    end = len(values)
    while end and _is_empty(values[end - 1]):
        end -= 1
    return values[:end]


def _select_sheet(workbook: Any, sheet: int | str | None) -> Any:
    if sheet is None:
        return workbook.active
    if isinstance(sheet, int):
        return workbook.worksheets[sheet]
    return workbook[sheet]


def _records(headers: list[str], rows: Iterable[Sequence[Any]]) -> list[dict[str, Any]]:
    records = []
    for values in rows:
        cells = [_cell_value(v) for v in values[: len(headers)]]
        if all(_is_empty(v) for v in cells):
            continue
        cells += [None] * (len(headers) - len(cells))
        records.append(dict(zip(headers, cells)))
    return records


def read_xlsx(path: str | Path, sheet: int | str | None = None) -> list[dict[str, Any]]:
    """Read a worksheet (active sheet by default) into row dicts."""
    workbook = openpyxl.load_workbook(path, read_only=True, data_only=True)
    try:
        rows = _select_sheet(workbook, sheet).iter_rows(values_only=True)
        header_row = next(rows, None)
        if header_row is None:
            return []
        headers = _unique_headers(_trim_trailing_empty(list(header_row)))
        return _records(headers, rows)
    finally:
        workbook.close()


def detect_delimiter(sample: str) -> str:
    """Guess the CSV delimiter; Spanish-locale exports usually use ``;``."""
    try:
        return csv.Sniffer().sniff(sample, delimiters=CSV_DELIMITERS).delimiter
    except csv.Error:
        return ";" if sample.count(";") > sample.count(",") else ","


def _csv_reader(f: TextIO, delimiter: str | None) -> Iterator[list[str]]:
    if delimiter is None:
        delimiter = detect_delimiter(f.read(4096))
        f.seek(0)
    return csv.reader(f, delimiter=delimiter)


def _csv_encoding(encoding: str) -> str:
    # Strip a BOM if present
    return "utf-8-sig" if encoding.lower() == "utf-8" else encoding


def read_csv(
    path: str | Path,
    delimiter: str | None = None,
    encoding: str = "utf-8",
) -> list[dict[str, Any]]:
    """Read a CSV export into row dicts. The delimiter is sniffed when omitted."""
    with Path(path).open("r", encoding=_csv_encoding(encoding), newline="") as f:
        reader = _csv_reader(f, delimiter)
        header_row = next(reader, None)
        if header_row is None:
            return []
        headers = _unique_headers(_trim_trailing_empty(header_row))
        return _records(headers, reader)


def _is_xlsx(path: Path) -> bool:
    return path.suffix.lower() in XLSX_SUFFIXES


def read_rows(path: str | Path, sheet: int | str | None = None) -> list[dict[str, Any]]:
    """Read a payroll export, picking the reader from the file extension."""
    path = Path(path)
    if _is_xlsx(path):
        return read_xlsx(path, sheet=sheet)
    if path.suffix.lower() in CSV_SUFFIXES:
        return read_csv(path)
    raise ValueError(f"Unsupported spreadsheet format: {path.suffix or path.name}")


def read_headers(path: str | Path, sheet: int | str | None = None) -> list[str]:
    """Column names offered to the user when configuring a mapping."""
    path = Path(path)
    if _is_xlsx(path):
        workbook = openpyxl.load_workbook(path, read_only=True, data_only=True)
        try:
            first = next(_select_sheet(workbook, sheet).iter_rows(values_only=True), None)
        finally:
            workbook.close()
    elif path.suffix.lower() in CSV_SUFFIXES:
        with path.open("r", encoding="utf-8-sig", newline="") as f:
            first = next(_csv_reader(f, None), None)
    else:
        raise ValueError(f"Unsupported spreadsheet format: {path.suffix or path.name}")

    if first is None:
        return []
    return _unique_headers(_trim_trailing_empty(list(first)))

"""Spreadsheet readers for reference datasets.

Provides parsing capabilities for:
- XLSX workbooks (openpyxl, read-only, cached values)
- CSV files (single sheet)

A workbook is read once into a grid of strings per sheet. Selecting the
sheet and locating the header row is a separate step driven by a
per-checker ``SheetPolicy``, so one uploaded workbook can serve several
checkers that read it differently.
"""

from __future__ import annotations

import csv
import io
import logging
import zipfile
from dataclasses import dataclass, field
from datetime import date, datetime, time

import openpyxl
from openpyxl.utils.exceptions import InvalidFileException

from ..errors import MalformedDocument, MissingReferenceDataset

logger = logging.getLogger(__name__)

# How many leading rows are scanned when auto-detecting the header row
HEADER_SCAN_ROWS = 10


@dataclass(frozen=True)
class SheetPolicy:
    """How to find the table inside an uploaded workbook.

    Attributes:
        sheet_names: Preferred sheet names, matched case-insensitively in order
        sheet_index: Fallback sheet position when no name matches
        strict: Fail instead of falling back to the first sheet
        header_row: 0-based row holding the column headers
        header_column: When set, the header row is the first of the leading
            rows containing this column name; ``header_row`` is the fallback
    """

    sheet_names: tuple[str, ...] = ()
    sheet_index: int | None = None
    strict: bool = False
    header_row: int = 0
    header_column: str | None = None


@dataclass(frozen=True)
class Table:
    """Rows of one sheet keyed by header text, blanks defaulted to ""."""

    sheet_name: str
    headers: tuple[str, ...]
    rows: tuple[dict[str, str], ...]


@dataclass(frozen=True)
class Workbook:
    sheet_names: tuple[str, ...]
    grids: dict[str, tuple[tuple[str, ...], ...]] = field(default_factory=dict)


def cell_to_text(value: object) -> str:
    """Render a cell value the way it reads in the sheet."""
    if value is None:
        return ""
    if isinstance(value, datetime):
        if value.time() == time(0, 0):
            return value.strftime("%Y-%m-%d")
        return value.strftime("%Y-%m-%d %H:%M:%S")
    if isinstance(value, date):
        return value.strftime("%Y-%m-%d")
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _read_xlsx(data: bytes) -> Workbook:
    try:
        wb = openpyxl.load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError, ValueError) as e:
        raise MalformedDocument(f"Could not read spreadsheet: {e}") from e

    grids: dict[str, tuple[tuple[str, ...], ...]] = {}
    try:
        for ws in wb.worksheets:
            grid = [
                tuple(cell_to_text(value) for value in row)
                for row in ws.iter_rows(values_only=True)
            ]
            grids[ws.title] = tuple(grid)
    finally:
        wb.close()

    return Workbook(sheet_names=tuple(grids), grids=grids)


def _read_csv(data: bytes, sheet_name: str) -> Workbook:
    try:
        text = data.decode("utf-8-sig")
    except UnicodeDecodeError:
        text = data.decode("cp1252", errors="replace")

    reader = csv.reader(io.StringIO(text))
    grid = tuple(tuple(cell for cell in row) for row in reader)
    return Workbook(sheet_names=(sheet_name,), grids={sheet_name: grid})


def read_workbook(data: bytes, filename: str | None = None) -> Workbook:
    """Read an uploaded spreadsheet into string grids.

    Args:
        data: Raw file bytes
        filename: Original filename, used only to recognise CSV uploads

    Returns:
        Workbook with every sheet's cells rendered as strings

    Raises:
        MalformedDocument: If the bytes are not a readable workbook.
    """
    if not data:
        raise MalformedDocument("Spreadsheet is empty")

    is_csv = bool(filename) and filename.lower().endswith(".csv")
    if is_csv or not data.startswith(b"PK"):
        if not is_csv:
            logger.info("Upload is not a zip container; reading it as CSV")
        return _read_csv(data, sheet_name="Sheet1")
    return _read_xlsx(data)


def _choose_sheet(workbook: Workbook, policy: SheetPolicy, checker: str, dataset: str) -> str:
    by_lower = {name.strip().lower(): name for name in workbook.sheet_names}
    for wanted in policy.sheet_names:
        found = by_lower.get(wanted.strip().lower())
        if found is not None:
            return found

    if policy.strict:
        wanted = policy.sheet_names[0] if policy.sheet_names else dataset
        raise MissingReferenceDataset(checker, dataset, f"No '{wanted}' sheet found")

    if policy.sheet_index is not None and policy.sheet_index < len(workbook.sheet_names):
        return workbook.sheet_names[policy.sheet_index]

    if not workbook.sheet_names:
        raise MissingReferenceDataset(checker, dataset, "Workbook contains no sheets")

    if policy.sheet_names:
        logger.warning(
            f"None of {list(policy.sheet_names)} found in workbook; using first sheet "
            f"'{workbook.sheet_names[0]}'"
        )
    return workbook.sheet_names[0]


def _find_header_row(grid: tuple[tuple[str, ...], ...], policy: SheetPolicy) -> int:
    if policy.header_column:
        wanted = policy.header_column.strip().lower()
        for index, row in enumerate(grid[:HEADER_SCAN_ROWS]):
            if any(cell.strip().lower() == wanted for cell in row):
                return index
        logger.warning(
            f"Header column '{policy.header_column}' not found in first "
            f"{HEADER_SCAN_ROWS} rows; using row {policy.header_row}"
        )
    return policy.header_row


def select_table(
    workbook: Workbook, policy: SheetPolicy, checker: str = "", dataset: str = "reference"
) -> Table:
    """Pick the sheet and header row described by ``policy``.

    Rows that are entirely blank are skipped. Cells under an empty header
    are dropped; when a header repeats, the first column wins.
    """
    sheet_name = _choose_sheet(workbook, policy, checker, dataset)
    grid = workbook.grids.get(sheet_name, ())
    header_index = _find_header_row(grid, policy)

    if header_index >= len(grid):
        return Table(sheet_name=sheet_name, headers=(), rows=())

    columns: list[tuple[int, str]] = []
    seen: set[str] = set()
    for position, cell in enumerate(grid[header_index]):
        header = cell.strip()
        if not header or header in seen:
            continue
        seen.add(header)
        columns.append((position, header))

    rows: list[dict[str, str]] = []
    for raw in grid[header_index + 1 :]:
        if not any(cell.strip() for cell in raw):
            continue
        rows.append(
            {header: (raw[position] if position < len(raw) else "") for position, header in columns}
        )

    logger.debug(f"Read {len(rows)} row(s) from sheet '{sheet_name}' (header row {header_index})")
    return Table(
        sheet_name=sheet_name,
        headers=tuple(header for _, header in columns),
        rows=tuple(rows),
    )

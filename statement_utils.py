"""
statement_utils.py

This module turns a broker-exported holdings statement (CSV, XLS, XLSX) into
a list of ``FundRecord`` objects that can seed a portfolio.  Real exports are
messy: they start with account-holder metadata, contain blank lines, put the
holdings table at an arbitrary row, end with a "Total" summary line, format
numbers with currency symbols, percent signs and thousands separators, and
list the same scheme several times when it was bought in separate lots.

Processing happens in two clearly separated stages:

* **Row readers** (``read_csv_rows``, ``read_excel_rows`` and the dispatcher
  ``read_statement_rows``) turn a file into rows of scalar cells without
  interpreting them.  Unknown extensions are rejected with
  ``UnsupportedFormat`` before anything is parsed.
* **The normaliser** (``normalise_statement_rows``) is a pure function over
  those rows.  It locates the header row, resolves the columns it needs,
  cleans and filters data rows, and merges duplicate schemes into a single
  record whose return is the value-weighted average of its lots.

Only two structural problems are fatal: no header row (``HeaderNotFound``)
and a header missing a required label (``MissingColumns``).  Every other
anomaly skips the row or zeroes the field and is logged at DEBUG level.
"""

###############################################################################
# Metadata
#
# @file        statement_utils.py
# @brief       Broker statement reading and normalisation
#
# Parsers are registered per broker in ``BROKER_PARSERS``; the Groww
# "Holdings" export is the only layout currently understood.
###############################################################################

from __future__ import annotations

import csv
import io
import logging
import os
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

import pandas as pd

from fund_models import (
    FundRecord,
    HeaderNotFound,
    MissingColumns,
    UnsupportedBroker,
    UnsupportedFormat,
)
from utils.log_utils import audit, get_logger
from utils.number_utils import clean_number, round_half_up

logger = get_logger(__name__)

RawRow = Sequence[Any]

SCHEME_NAME_COLUMN = "Scheme Name"
CURRENT_VALUE_COLUMN = "Current Value"
XIRR_COLUMN = "XIRR"
REQUIRED_COLUMNS = [SCHEME_NAME_COLUMN, CURRENT_VALUE_COLUMN]

# Data rows whose name contains this marker are summary lines.
SUMMARY_ROW_MARKER = "Total"

SUPPORTED_EXTENSIONS = {".csv", ".xls", ".xlsx"}

# Legacy BIFF workbooks need xlrd; openpyxl only opens zip-based .xlsx files.
EXCEL_ENGINES = {".xls": "xlrd", ".xlsx": "openpyxl"}

__all__ = [
    "SCHEME_NAME_COLUMN",
    "CURRENT_VALUE_COLUMN",
    "XIRR_COLUMN",
    "SUPPORTED_EXTENSIONS",
    "BROKER_PARSERS",
    "read_csv_rows",
    "read_excel_rows",
    "read_statement_rows",
    "find_header_row",
    "resolve_statement_columns",
    "normalise_statement_rows",
    "detect_broker",
    "parse_broker_statement",
]


def _cell_text(cell: Any) -> str:
    """Stringify and trim a cell; ``None`` and NaN become ``""``."""
    if cell is None:
        return ""
    if isinstance(cell, float) and pd.isna(cell):
        return ""
    return str(cell).strip()


def _cell_at(row: RawRow, index: Optional[int]) -> Any:
    if index is None or index >= len(row):
        return None
    return row[index]


# -------------------------------------------------------------------------
# Row readers
#
def read_csv_rows(path: str) -> List[List[str]]:
    """Read a CSV statement into raw rows.

    Completely empty lines are dropped; every other line is returned as-is,
    including metadata and summary lines.  A UTF-8 byte order mark at the
    start of the file is removed so the first header cell compares cleanly.
    Bytes that are not valid UTF-8 (e.g. a cp1252 export) are dropped and
    the loss is logged at DEBUG level.

    Args:
        path: Path to the CSV file.

    Returns:
        A list of rows, each a list of cell strings.
    """
    logger.debug(f"Reading CSV file from {path}")
    rows: List[List[str]] = []
    try:
        with open(path, "rb") as fh:
            raw = fh.read()
    except PermissionError:
        logger.error(f"Permission denied when reading CSV file: {path}")
        raise
    try:
        text = raw.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        logger.debug(f"CSV file {path} is not valid UTF-8 ({exc}); undecodable bytes dropped")
        text = raw.decode("utf-8-sig", errors="ignore")
    for row in csv.reader(io.StringIO(text, newline="")):
        if all(cell.strip() == "" for cell in row):
            continue
        rows.append(row)
    audit(f"CSV file {path} read into {len(rows)} row(s)")
    return rows


def read_excel_rows(path: str) -> List[List[Any]]:
    """Read the first sheet of an Excel workbook into raw rows.

    The sheet is parsed without a header so metadata rows above the holdings
    table are preserved.  Empty cells become ``""`` and completely empty rows
    are dropped.  ``.xlsx`` workbooks are opened with openpyxl and legacy
    ``.xls`` workbooks with xlrd.  If the workbook cannot be opened (for
    example a CSV saved with an ``.xls`` extension) the file is read as CSV
    instead.

    Args:
        path: Path to the ``.xlsx`` or ``.xls`` file.

    Returns:
        A list of rows, each a list of cell values (text or numbers).
    """
    ext = os.path.splitext(path)[1].lower()
    engine = EXCEL_ENGINES.get(ext, "openpyxl")
    logger.debug(f"Reading Excel file from {path} with {engine}")
    try:
        with pd.ExcelFile(path, engine=engine) as xls:
            sheet_name = xls.sheet_names[0]
            frame = xls.parse(sheet_name=sheet_name, header=None)
    except PermissionError:
        logger.error(f"Permission denied when reading Excel file: {path}")
        raise
    except Exception as exc:
        # Mislabelled files are common in broker downloads; fall back to CSV
        logger.error(f"Error reading Excel file {path}: {exc}")
        rows = read_csv_rows(path)
        logger.debug(f"Excel read failed, fallback to CSV returned {len(rows)} row(s)")
        return rows

    rows: List[List[Any]] = []
    for values in frame.itertuples(index=False, name=None):
        row = ["" if pd.isna(cell) else cell for cell in values]
        if all(_cell_text(cell) == "" for cell in row):
            continue
        rows.append(row)
    audit(f"Excel file {path} sheet '{sheet_name}' read into {len(rows)} row(s)")
    return rows


def read_statement_rows(path: str) -> List[List[Any]]:
    """Read a statement file into raw rows, choosing the reader by extension.

    Raises:
        FileNotFoundError: If ``path`` does not exist.
        UnsupportedFormat: If the extension is not ``.csv``, ``.xlsx`` or
            ``.xls``.
    """
    ext = os.path.splitext(path)[1].lower()
    if ext not in SUPPORTED_EXTENSIONS:
        logger.error(f"Unsupported file extension: {ext}")
        raise UnsupportedFormat(ext)
    if not os.path.isfile(path):
        logger.error(f"Input file not found: {path}")
        raise FileNotFoundError(f"Input file not found: {path}")
    if ext == ".csv":
        return read_csv_rows(path)
    return read_excel_rows(path)


# -------------------------------------------------------------------------
# Normalisation
#
def find_header_row(rows: Sequence[RawRow]) -> int:
    """Return the index of the first row that looks like the holdings header.

    A row qualifies when one of its cells contains ``"Scheme Name"`` and a
    different cell contains ``"Current Value"``.  Cells are checked
    individually, so a note such as "Scheme Name and Current Value are
    listed below" in a single metadata cell is not mistaken for the header.

    Raises:
        HeaderNotFound: If no row qualifies.
    """
    for index, row in enumerate(rows):
        cells = [_cell_text(cell) for cell in row or []]
        name_cells = [i for i, cell in enumerate(cells) if SCHEME_NAME_COLUMN in cell]
        value_cells = [i for i, cell in enumerate(cells) if CURRENT_VALUE_COLUMN in cell]
        if any(i != j for i in name_cells for j in value_cells):
            logger.debug(f"Header row found at index {index}: {cells}")
            return index
    raise HeaderNotFound()


def resolve_statement_columns(header: RawRow) -> Dict[str, Optional[int]]:
    """Map the labels the normaliser needs to their positions in ``header``.

    Labels are matched exactly after trimming; the first occurrence wins.
    ``XIRR`` is optional and maps to ``None`` when absent.

    Raises:
        MissingColumns: If ``Scheme Name`` or ``Current Value`` is absent.
    """
    labels = [_cell_text(cell) for cell in header]
    positions: Dict[str, Optional[int]] = {}
    for label in (SCHEME_NAME_COLUMN, CURRENT_VALUE_COLUMN, XIRR_COLUMN):
        positions[label] = labels.index(label) if label in labels else None
    missing = [label for label in REQUIRED_COLUMNS if positions[label] is None]
    if missing:
        logger.error(f"Header row is missing required column(s): {missing}")
        raise MissingColumns(missing)
    return positions


@dataclass
class _FundAccumulator:
    total_value: float = 0.0
    weighted_return_score: float = 0.0


def normalise_statement_rows(rows: Sequence[RawRow]) -> List[FundRecord]:
    """Convert raw statement rows into one ``FundRecord`` per scheme.

    Rows after the header are cleaned and filtered:

    * rows too short to hold the scheme name, and rows with a blank name,
      are skipped;
    * value and XIRR cells go through ``clean_number`` (a missing XIRR
      column means a 0 return);
    * rows whose cleaned value is 0, and rows whose name contains
      ``"Total"``, are skipped.  A genuine holding worth 0 is therefore
      dropped along with summary lines.

    Surviving rows are grouped by exact scheme name.  Each group becomes one
    record with ``current_value`` equal to the summed value and
    ``expected_return`` equal to the value-weighted average XIRR, both
    rounded to two decimals.  ``target_percent`` is 0; assigning targets is
    up to the caller.

    Args:
        rows: Raw rows as produced by ``read_statement_rows``.

    Returns:
        Fund records in order of first appearance.

    Raises:
        HeaderNotFound: If no header row is present.
        MissingColumns: If the header lacks a required label.

    Example:
        >>> normalise_statement_rows([
        ...     ["Scheme Name", "Current Value", "XIRR"],
        ...     ["Nippon Small Cap", "₹ 12,000", "10%"],
        ...     ["Nippon Small Cap", "₹ 8,000", "20%"],
        ... ])
        [FundRecord(name='Nippon Small Cap', current_value=20000.0, expected_return=14.0, target_percent=0.0)]
    """
    materialised = [list(row) if row is not None else [] for row in rows]
    header_index = find_header_row(materialised)
    columns = resolve_statement_columns(materialised[header_index])
    name_idx = columns[SCHEME_NAME_COLUMN]
    value_idx = columns[CURRENT_VALUE_COLUMN]
    xirr_idx = columns[XIRR_COLUMN]

    accumulators: Dict[str, _FundAccumulator] = {}
    skipped = 0
    for offset, row in enumerate(materialised[header_index + 1:], start=header_index + 1):
        if len(row) <= name_idx:
            skipped += 1
            logger.debug(f"Row {offset}: skipped, too short ({len(row)} cell(s))")
            continue
        name = _cell_text(row[name_idx])
        value = clean_number(_cell_at(row, value_idx))
        xirr = clean_number(_cell_at(row, xirr_idx))
        if not name or value == 0 or SUMMARY_ROW_MARKER in name:
            skipped += 1
            logger.debug(f"Row {offset}: skipped (name={name!r}, value={value})")
            continue
        acc = accumulators.setdefault(name, _FundAccumulator())
        acc.total_value += value
        acc.weighted_return_score += value * xirr

    records: List[FundRecord] = []
    for name, acc in accumulators.items():
        expected_return = (
            round_half_up(acc.weighted_return_score / acc.total_value, 2) if acc.total_value > 0 else 0.0
        )
        records.append(
            FundRecord(
                name=name,
                current_value=round_half_up(acc.total_value, 2),
                expected_return=expected_return,
                target_percent=0.0,
            )
        )

    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(f"Normalised records: {records}")
    audit(
        f"Normalised statement: header at row {header_index}, {len(records)} fund(s), {skipped} row(s) skipped"
    )
    return records


# -------------------------------------------------------------------------
# Broker dispatch
#
BROKER_PARSERS: Dict[str, Callable[[Sequence[RawRow]], List[FundRecord]]] = {
    "groww": normalise_statement_rows,
}


def detect_broker(path: str, default: Optional[str] = None) -> Optional[str]:
    """Guess the broker from a statement filename.

    The broker identifier is assumed to be the portion of the file name
    before the first underscore, e.g. ``groww_holdings.xlsx`` -> ``groww``.
    The guess is only used when it names a registered parser; otherwise
    ``default`` is returned.
    """
    name, _ = os.path.splitext(os.path.basename(path))
    candidate = name.split("_")[0].strip().lower() if name else ""
    if candidate in BROKER_PARSERS:
        return candidate
    return default


def parse_broker_statement(path: str, broker: str = "groww") -> List[FundRecord]:
    """Read and normalise a statement exported by ``broker``.

    Args:
        path: Path to a ``.csv``, ``.xlsx`` or ``.xls`` statement.
        broker: Key into ``BROKER_PARSERS`` (case-insensitive).

    Returns:
        The normalised fund records.

    Raises:
        UnsupportedBroker: If no parser is registered for ``broker``.
        UnsupportedFormat: If the file extension is not supported.
        FileNotFoundError: If the file does not exist.
        HeaderNotFound, MissingColumns: If the statement layout is invalid.
    """
    key = (broker or "").strip().lower()
    parser = BROKER_PARSERS.get(key)
    if parser is None:
        logger.error(f"Unsupported broker: {broker}")
        raise UnsupportedBroker(broker)
    rows = read_statement_rows(path)
    logger.debug(f"Parsing {len(rows)} row(s) from {path} as a {key} statement")
    return parser(rows)

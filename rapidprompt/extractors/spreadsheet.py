# rapidprompt/extractors/spreadsheet.py
"""
Spreadsheet inspection and row extraction.

.xlsx/.xlsm workbooks are read with openpyxl (read-only, cached values);
.csv/.tsv files are treated as a single sheet named after the file stem.
The first row with any non-empty cell is the header row.
"""
import csv
from datetime import date, datetime, time
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from loguru import logger
from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from ..core.errors import SourceUnavailable, ValidationFailed
from ..core.models import PromptUnit, SheetInfo, TabularInspection
from ..core.unit_config import SpreadsheetConfig

WORKBOOK_SUFFIXES = {".xlsx", ".xlsm", ".xltx", ".xltm"}
DELIMITED_SUFFIXES = {".csv": ",", ".tsv": "\t"}


def cell_to_string(value: Any) -> Optional[str]:
    """Stringifies a cell; empty cells give None and integral floats drop the '.0'."""
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else str(value)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    return str(value)


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _iter_sheets(path: Path) -> Iterator[Tuple[str, List[Sequence[Any]]]]:
    suffix = path.suffix.lower()
    if suffix in DELIMITED_SUFFIXES:
        try:
            with open(path, newline="", encoding="utf-8-sig", errors="replace") as f:
                rows = [list(r) for r in csv.reader(f, delimiter=DELIMITED_SUFFIXES[suffix])]
        except OSError as e:
            raise SourceUnavailable(f"Could not read {path}: {e}") from e
        yield path.stem, rows
        return
    if suffix not in WORKBOOK_SUFFIXES:
        raise ValidationFailed(f"Unsupported spreadsheet type: {path.suffix or path.name}")
    try:
        wb = load_workbook(filename=str(path), read_only=True, data_only=True)
    except (OSError, InvalidFileException) as e:
        raise SourceUnavailable(f"Could not open workbook {path}: {e}") from e
    except Exception as e:
        # openpyxl surfaces corrupt archives as zipfile/KeyError/etc.
        raise ValidationFailed(f"Could not parse workbook {path}: {e}") from e
    try:
        for ws in wb.worksheets:
            yield ws.title, [list(r) for r in ws.iter_rows(values_only=True)]
    finally:
        wb.close()


def _find_header(rows: List[Sequence[Any]]) -> Tuple[Optional[int], List[str]]:
    for i, row in enumerate(rows):
        if any(not _is_empty(c) for c in row):
            header = []
            for j, c in enumerate(row):
                s = cell_to_string(c)
                header.append(s.strip() if s and s.strip() else f"col{j + 1}")
            return i, header
    return None, []


def inspect_tabular_source(path: str) -> TabularInspection:
    """Lists every sheet with its header columns."""
    source = Path(path)
    if not source.exists():
        raise SourceUnavailable("File not found")
    sheets: List[SheetInfo] = []
    for name, rows in _iter_sheets(source):
        _, header = _find_header(rows)
        if not header and rows:
            header = [f"col{i + 1}" for i in range(len(rows[0]))]
        sheets.append(SheetInfo(name=name, columns=header))
    logger.info(f"Inspected {path}: {len(sheets)} sheet(s).")
    return TabularInspection(path=path, sheets=sheets)


def _column_index(header: List[str], name: str) -> int:
    wanted = name.lower()
    for i, h in enumerate(header):
        if h.lower() == wanted:
            return i
    raise ValidationFailed(f"Column not found: {name}")


def extract_spreadsheet_units(path: str, config: SpreadsheetConfig) -> List[PromptUnit]:
    """
    One unit per data row: id from the id column (rows with a blank id are skipped),
    body from the non-blank description values joined by newlines (blank bodies skipped).
    """
    source = Path(path)
    if not source.exists():
        raise SourceUnavailable("File not found")
    rows: Optional[List[Sequence[Any]]] = None
    for name, sheet_rows in _iter_sheets(source):
        if name == config.sheet:
            rows = sheet_rows
            break
    if rows is None:
        raise ValidationFailed(f"Sheet not found: {config.sheet}")

    header_idx, header = _find_header(rows)
    if header_idx is None:
        raise ValidationFailed("Could not detect header row")
    id_idx = _column_index(header, config.id_column)
    desc_indices = [_column_index(header, c) for c in config.description_columns]

    units: List[PromptUnit] = []
    for i, row in enumerate(rows):
        if i <= header_idx:
            continue
        raw_id = cell_to_string(row[id_idx]) if id_idx < len(row) else None
        unit_id = (raw_id or "").strip()
        if not unit_id:
            continue
        parts: List[str] = []
        for di in desc_indices:
            value = cell_to_string(row[di]) if di < len(row) else None
            if value and value.strip():
                parts.append(value.strip())
        body = "\n".join(parts)
        if not body:
            continue
        meta: Dict[str, Any] = {"sheet": config.sheet, "rowIndex": i}
        units.append(PromptUnit(id=unit_id, body=body, meta=meta))
    logger.info(f"Extracted {len(units)} units from sheet '{config.sheet}' of {path}.")
    return units

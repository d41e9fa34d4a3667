from __future__ import annotations

import csv
import zipfile
from pathlib import Path
from typing import Any, Dict, List, Optional

import openpyxl
from openpyxl.utils import get_column_letter
from openpyxl.utils.exceptions import InvalidFileException

from delivery_tracker.common.json_logger import JsonLogger, log_event
from delivery_tracker.ingest.models import DeliveryRecord, IngestionError
from delivery_tracker.ingest.parser import DEFAULT_COLUMN, parse_rows

WORKBOOK_SUFFIXES = {".xlsx", ".xlsm"}
CSV_SUFFIXES = {".csv"}


def _row_mapping(values: tuple[Any, ...] | list[Any]) -> Dict[str, Any]:
    return {
        get_column_letter(idx): value
        for idx, value in enumerate(values, start=1)
        if value not in (None, "")
    }


def read_workbook_rows(workbook_path: Path) -> List[Dict[str, Any]]:
    """Read the first worksheet as lettered-column rows, skipping blank rows."""

    try:
        wb = openpyxl.load_workbook(workbook_path, read_only=True, data_only=True)
    except (OSError, InvalidFileException, zipfile.BadZipFile, KeyError) as exc:
        raise IngestionError(f"Could not open workbook {workbook_path}: {exc}") from exc

    try:
        sheet = wb.worksheets[0] if wb.worksheets else None
        if sheet is None:
            raise IngestionError(f"Workbook {workbook_path} has no worksheets")
        rows: List[Dict[str, Any]] = []
        for values in sheet.iter_rows(values_only=True):
            mapped = _row_mapping(values)
            if mapped:
                rows.append(mapped)
        return rows
    finally:
        wb.close()


def read_csv_rows(csv_path: Path, *, encoding: str = "utf-8-sig") -> List[Dict[str, Any]]:
    try:
        with open(csv_path, newline="", encoding=encoding) as handle:
            reader = csv.reader(handle)
            rows = [_row_mapping(values) for values in reader]
    except (OSError, UnicodeDecodeError, csv.Error) as exc:
        raise IngestionError(f"Could not read CSV {csv_path}: {exc}") from exc
    return [row for row in rows if row]


def read_rows(path: Path) -> List[Dict[str, Any]]:
    suffix = path.suffix.lower()
    if suffix in WORKBOOK_SUFFIXES:
        return read_workbook_rows(path)
    if suffix in CSV_SUFFIXES:
        return read_csv_rows(path)
    raise IngestionError(f"Unsupported report format {suffix or '(none)'} for {path}")


def ingest_file(
    path: Path,
    *,
    column: str = DEFAULT_COLUMN,
    report_date: Optional[str] = None,
    logger: Optional[JsonLogger] = None,
) -> List[DeliveryRecord]:
    """Decode a routing export and parse it into driver records.

    Either the full record list is returned or :class:`IngestionError` is
    raised; nothing partial escapes.
    """

    path = Path(path)
    rows = read_rows(path)
    if logger is not None:
        log_event(logger=logger, phase="read", message="decoded report rows", file=str(path), rows=len(rows))
    return parse_rows(rows, column=column, report_date=report_date, logger=logger)


__all__ = ["ingest_file", "read_csv_rows", "read_rows", "read_workbook_rows"]

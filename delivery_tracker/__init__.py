"""Driver delivery ingestion and evolution tracking."""

from typing import Any

__all__ = ["parse_rows", "ingest_file"]


def __getattr__(name: str) -> Any:
    if name == "parse_rows":
        from delivery_tracker.ingest.parser import parse_rows as _parse_rows

        return _parse_rows
    if name == "ingest_file":
        from delivery_tracker.ingest.workbook import ingest_file as _ingest_file

        return _ingest_file
    raise AttributeError(name)

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional

from delivery_tracker.common.date_utils import today_label
from delivery_tracker.common.json_logger import JsonLogger, log_event
from delivery_tracker.ingest.models import (
    PRIMARY_REGION,
    SECONDARY_REGION,
    DeliveryRecord,
    IngestionError,
    Region,
)
from delivery_tracker.metrics.calculator import initial_metrics

AGENT_MARKER = "Agente:"
VEHICLE_MARKER = "Veículo:"
SERVICES_MARKER = "Serviços:"
SERVICES_RE = re.compile(r"Serviços:\s*(\d+)")

DEFAULT_COLUMN = "A"


@dataclass
class _DriverAccumulator:
    driver_name: str = ""
    total_orders: str = "0"
    region: Optional[Region] = None

    def to_record(self, report_date: str) -> DeliveryRecord:
        record = DeliveryRecord(
            date=report_date,
            driver_name=self.driver_name,
            route="",
            total_orders=self.total_orders,
            delivered="",
            failed="",
            region=self.region,
        )
        return initial_metrics(record)


def extract_services_count(text: str) -> str:
    match = SERVICES_RE.search(text)
    return match.group(1) if match else "0"


def classify_vehicle(label: str) -> Region:
    return SECONDARY_REGION if SECONDARY_REGION.value in label else PRIMARY_REGION


def _cell_text(row: Any, column: str, index: int) -> str:
    if not isinstance(row, Mapping):
        raise IngestionError(f"Row {index} is not a column mapping: {type(row).__name__}")
    value = row.get(column)
    if value is None:
        return ""
    return str(value)


def parse_rows(
    rows: Iterable[Mapping[str, Any]],
    *,
    column: str = DEFAULT_COLUMN,
    report_date: Optional[str] = None,
    logger: Optional[JsonLogger] = None,
) -> List[DeliveryRecord]:
    """Rebuild one record per driver from a report-style row sequence.

    A driver block starts at an ``Agente:`` line and is only emitted when the
    next ``Agente:`` line or the end of input is reached. ``Veículo:`` and
    ``Serviços:`` lines update the block opened by the latest agent line; any
    seen before the first agent line are dropped when that line resets it.
    """

    stamp = report_date or today_label()
    records: List[DeliveryRecord] = []
    current = _DriverAccumulator()
    row_count = 0

    try:
        iterator = iter(rows)
    except TypeError as exc:
        raise IngestionError(f"Input is not a row sequence: {type(rows).__name__}") from exc

    for index, row in enumerate(iterator):
        row_count += 1
        text = _cell_text(row, column, index)
        stripped = text.strip()

        if stripped.startswith(AGENT_MARKER):
            if current.driver_name:
                records.append(current.to_record(stamp))
            current = _DriverAccumulator(driver_name=stripped[len(AGENT_MARKER):].strip())
        elif VEHICLE_MARKER in text:
            vehicle = text.split(VEHICLE_MARKER, 1)[1].strip()
            current.region = classify_vehicle(vehicle)
        elif SERVICES_MARKER in text:
            current.total_orders = extract_services_count(text)

    if current.driver_name:
        records.append(current.to_record(stamp))

    if logger is not None:
        log_event(
            logger=logger,
            phase="parse",
            message="parsed driver records",
            rows=row_count,
            records=len(records),
            report_date=stamp,
        )
    return records


__all__ = [
    "AGENT_MARKER",
    "SERVICES_MARKER",
    "VEHICLE_MARKER",
    "classify_vehicle",
    "extract_services_count",
    "parse_rows",
]

from __future__ import annotations

from enum import Enum
from typing import List, Optional, Sequence

from delivery_tracker.common.date_utils import today_label
from delivery_tracker.ingest.models import PRIMARY_REGION, DeliveryRecord, Region, parse_region
from delivery_tracker.metrics.calculator import derive_metrics, recompute_metrics


class RecordValidationError(ValueError):
    """Raised when a manual edit or a new driver entry is not acceptable."""


class ReadOnlyFieldError(RecordValidationError):
    """Raised on writes to derived or immutable fields."""


class RecordField(str, Enum):
    """Closed set of record columns; values are the persisted keys."""

    DATE = "data"
    DRIVER_NAME = "motorista"
    ROUTE = "rota"
    TOTAL_ORDERS = "totalPedido"
    DELIVERED = "entregues"
    PENDING = "pendentes"
    FAILED = "insucessos"
    DELIVERY_PERCENT = "percentualEntregas"
    ROUTE_PERCENT = "percentualRotas"
    REGION = "regiao"

    @property
    def attribute(self) -> str:
        return _ATTRIBUTES[self]

    @property
    def is_derived(self) -> bool:
        return self in DERIVED_FIELDS

    @property
    def is_editable(self) -> bool:
        return self not in DERIVED_FIELDS and self is not RecordField.DATE

    @classmethod
    def parse(cls, value: str) -> RecordField:
        """Accept either the persisted key or the Python attribute name."""

        for member in cls:
            if value in (member.value, member.attribute, member.name.lower()):
                return member
        raise RecordValidationError(f"Unknown record field: {value!r}")


_ATTRIBUTES = {
    RecordField.DATE: "date",
    RecordField.DRIVER_NAME: "driver_name",
    RecordField.ROUTE: "route",
    RecordField.TOTAL_ORDERS: "total_orders",
    RecordField.DELIVERED: "delivered",
    RecordField.PENDING: "pending",
    RecordField.FAILED: "failed",
    RecordField.DELIVERY_PERCENT: "delivery_percent",
    RecordField.ROUTE_PERCENT: "route_percent",
    RecordField.REGION: "region",
}

DERIVED_FIELDS = frozenset(
    {RecordField.PENDING, RecordField.DELIVERY_PERCENT, RecordField.ROUTE_PERCENT}
)
RECOMPUTE_TRIGGERS = frozenset({RecordField.DELIVERED, RecordField.FAILED})
COUNT_FIELDS = frozenset({RecordField.TOTAL_ORDERS, RecordField.DELIVERED, RecordField.FAILED})


def _check_count(field: RecordField, value: str) -> str:
    if value.strip().startswith("-"):
        raise RecordValidationError(f"Field {field.value} cannot be negative: {value!r}")
    return value


def get_field(record: DeliveryRecord, field: RecordField) -> str:
    value = getattr(record, field.attribute)
    if field is RecordField.REGION:
        return value.value if value is not None else ""
    return value


def edit_record(record: DeliveryRecord, field: RecordField, value: str) -> DeliveryRecord:
    """Return a copy of ``record`` with one field changed.

    Setting ``delivered`` or ``failed`` recomputes the derived metrics from the
    updated values; no other edit touches them.
    """

    if not field.is_editable:
        raise ReadOnlyFieldError(f"Field {field.value} cannot be edited directly")

    if field is RecordField.REGION:
        try:
            new_value = parse_region(value)
        except ValueError as exc:
            raise RecordValidationError(str(exc)) from exc
    else:
        new_value = "" if value is None else str(value)
        if field in COUNT_FIELDS:
            _check_count(field, new_value)

    updated = record.model_copy(update={field.attribute: new_value})
    if field in RECOMPUTE_TRIGGERS:
        updated = recompute_metrics(updated)
    return updated


def new_driver_record(
    driver_name: str,
    *,
    region: Optional[Region | str] = PRIMARY_REGION,
    total_orders: str = "0",
    route: str = "",
    delivered: str = "",
    failed: str = "",
    record_date: Optional[str] = None,
) -> DeliveryRecord:
    try:
        resolved_region = parse_region(region)
    except ValueError as exc:
        raise RecordValidationError(str(exc)) from exc

    return derive_metrics(
        DeliveryRecord(
            date=record_date or today_label(),
            driver_name=driver_name.strip(),
            route=route,
            total_orders=_check_count(RecordField.TOTAL_ORDERS, total_orders),
            delivered=_check_count(RecordField.DELIVERED, delivered),
            failed=_check_count(RecordField.FAILED, failed),
            region=resolved_region,
        )
    )


def add_record(records: Sequence[DeliveryRecord], record: DeliveryRecord) -> List[DeliveryRecord]:
    if not record.driver_name.strip():
        raise RecordValidationError("Driver name is required")
    if record.region is None:
        raise RecordValidationError("Region is required")
    return [*records, record]


def remove_record(records: Sequence[DeliveryRecord], index: int) -> List[DeliveryRecord]:
    if not 0 <= index < len(records):
        return list(records)
    return [record for position, record in enumerate(records) if position != index]


__all__ = [
    "DERIVED_FIELDS",
    "ReadOnlyFieldError",
    "RecordField",
    "RecordValidationError",
    "add_record",
    "edit_record",
    "get_field",
    "new_driver_record",
    "remove_record",
]

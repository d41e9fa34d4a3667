"""Derived delivery metrics.

``pending``, ``delivery_percent`` and ``route_percent`` of a record are always a
pure function of ``total_orders``, ``delivered`` and ``failed``; this module is
the only place that computes them.
"""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Any, Union

from delivery_tracker.ingest.coercion import is_blank, to_non_negative_int
from delivery_tracker.ingest.models import DeliveryRecord

ZERO_PERCENT = "0%"
_ONE_DECIMAL = Decimal("0.1")


def format_percent(value: Union[float, Decimal]) -> str:
    """Render a percentage with one decimal place (``98.0%``), rounding half up."""

    amount = value if isinstance(value, Decimal) else Decimal(value)
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, amount.adjusted() + 3)
        rounded = amount.quantize(_ONE_DECIMAL, rounding=ROUND_HALF_UP)
    return f"{rounded}%"


def ratio_percent(part: int, whole: int) -> str:
    """Format ``part / whole`` as a percentage; ``whole`` must be positive."""

    with localcontext() as ctx:
        ctx.prec = part.bit_length() // 3 + 32
        amount = Decimal(part) * 100 / Decimal(whole)
    return format_percent(amount)


def compute_delivery_percent(delivered: Any, total: Any) -> str:
    if is_blank(delivered) or is_blank(total):
        return ZERO_PERCENT
    delivered_count = to_non_negative_int(delivered)
    total_count = to_non_negative_int(total)
    if total_count == 0:
        return ZERO_PERCENT
    return ratio_percent(delivered_count, total_count)


def compute_route_percent(delivered: Any, failed: Any, total: Any) -> str:
    if is_blank(total):
        return ZERO_PERCENT
    delivered_count = to_non_negative_int(delivered)
    failed_count = to_non_negative_int(failed)
    total_count = to_non_negative_int(total)
    if total_count == 0:
        return ZERO_PERCENT
    return ratio_percent(delivered_count + failed_count, total_count)


def compute_pending(total: Any, delivered: Any, failed: Any) -> str:
    remaining = (
        to_non_negative_int(total) - to_non_negative_int(delivered) - to_non_negative_int(failed)
    )
    return str(max(0, remaining))


def initial_metrics(record: DeliveryRecord) -> DeliveryRecord:
    """Return ``record`` with the metrics of a driver that has not reported yet.

    Nothing is delivered or failed, so everything is still pending and both
    percentages read ``0%``.
    """

    return record.model_copy(
        update={
            "delivery_percent": ZERO_PERCENT,
            "route_percent": ZERO_PERCENT,
            "pending": compute_pending(record.total_orders, "", ""),
        }
    )


def recompute_metrics(record: DeliveryRecord) -> DeliveryRecord:
    """Return ``record`` with its three derived fields recomputed."""

    delivery_percent = compute_delivery_percent(record.delivered, record.total_orders)
    route_percent = compute_route_percent(record.delivered, record.failed, record.total_orders)
    pending = compute_pending(record.total_orders, record.delivered, record.failed)
    return record.model_copy(
        update={
            "delivery_percent": delivery_percent,
            "route_percent": route_percent,
            "pending": pending,
        }
    )


def derive_metrics(record: DeliveryRecord) -> DeliveryRecord:
    """Rebuild the derived fields from the counts alone.

    Records with a delivered or failed count get a full recompute; the rest
    carry the metrics of a driver that has not reported yet.
    """

    if is_blank(record.delivered) and is_blank(record.failed):
        return initial_metrics(record)
    return recompute_metrics(record)

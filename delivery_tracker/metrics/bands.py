from __future__ import annotations

import re
from enum import Enum

_LEADING_FLOAT_RE = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")

ROUTE_TARGET = 100.0
ROUTE_WARNING = 96.0
DELIVERY_TARGET = 98.0
DELIVERY_WARNING = 91.0


class Band(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


def _leading_float(text: str) -> float | None:
    match = _LEADING_FLOAT_RE.match(text or "")
    if not match:
        return None
    return float(match.group(1))


def classify_percent(percent: str, *, route: bool = False) -> Band:
    """Classify a rendered percentage into a performance band.

    Route completion only reaches the top band at exactly 100; delivery
    percentages use inclusive thresholds.
    """

    value = _leading_float(percent)
    if value is None:
        return Band.LOW

    if route:
        if value == ROUTE_TARGET:
            return Band.HIGH
        if value >= ROUTE_WARNING:
            return Band.MEDIUM
        return Band.LOW

    if value >= DELIVERY_TARGET:
        return Band.HIGH
    if value >= DELIVERY_WARNING:
        return Band.MEDIUM
    return Band.LOW

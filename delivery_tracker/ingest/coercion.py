from __future__ import annotations

import re
from decimal import Decimal
from typing import Any

_LEADING_INT_RE = re.compile(r"^\s*([+-]?)(\d+)")
# matches the interpreter's default limit for int() on text
MAX_COUNT_DIGITS = 4300


def to_non_negative_int(value: Any) -> int:
    """Coerce a cell value into a non-negative integer.

    Text is read up to the end of its leading integer literal (``" 42 pedidos"``
    gives 42, ``"3.7"`` gives 3). Blank, non-numeric and negative values give 0.
    Never raises: a malformed count must not block the metrics of its record or
    of the rest of the batch.
    """

    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return max(0, value)
    if isinstance(value, (float, Decimal)):
        if value != value or value in (float("inf"), float("-inf")):
            return 0
        return max(0, int(value))

    match = _LEADING_INT_RE.match(str(value))
    if not match:
        return 0
    sign, digits = match.groups()
    if sign == "-":
        return 0
    if len(digits) > MAX_COUNT_DIGITS:
        return 0
    return int(digits)


def is_blank(value: Any) -> bool:
    return value is None or str(value).strip() == ""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass
from enum import Enum
from functools import cmp_to_key
from typing import Iterable, List, Optional

from delivery_tracker.ingest.models import DeliveryRecord
from delivery_tracker.records.editing import RecordField, get_field

_NUMBER_RE = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$")


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class SortState:
    field: Optional[RecordField] = None
    direction: SortDirection = SortDirection.ASC

    def toggle(self, field: RecordField) -> SortState:
        """Selecting the current column flips direction; any other column starts ascending."""

        if field is self.field and self.direction is SortDirection.ASC:
            return SortState(field=field, direction=SortDirection.DESC)
        return SortState(field=field, direction=SortDirection.ASC)


def _as_number(text: str) -> Optional[float]:
    stripped = text.strip()
    if not stripped:
        return 0.0
    if not _NUMBER_RE.match(stripped):
        return None
    return float(stripped)


def _text_key(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(char for char in decomposed if not unicodedata.combining(char)).casefold()


def _cmp(left, right) -> int:
    return (left > right) - (left < right)


def compare_records(
    a: DeliveryRecord,
    b: DeliveryRecord,
    field: Optional[RecordField],
    direction: SortDirection = SortDirection.ASC,
) -> int:
    """Order two records by one column.

    Percentages compare by magnitude, fully numeric values numerically, and
    anything else as accent- and case-insensitive text.
    """

    if field is None:
        return 0

    left = get_field(a, field)
    right = get_field(b, field)
    if left.endswith("%") or right.endswith("%"):
        left = left.removesuffix("%")
        right = right.removesuffix("%")

    left_number = _as_number(left)
    right_number = _as_number(right)
    if left_number is not None and right_number is not None:
        result = _cmp(left_number, right_number)
    else:
        result = _cmp(_text_key(left), _text_key(right)) or _cmp(left, right)

    return -result if direction is SortDirection.DESC else result


def sort_records(records: Iterable[DeliveryRecord], state: SortState) -> List[DeliveryRecord]:
    items = list(records)
    if state.field is None:
        return items
    key = cmp_to_key(lambda a, b: compare_records(a, b, state.field, state.direction))
    return sorted(items, key=key)

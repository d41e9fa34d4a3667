from __future__ import annotations

from typing import Iterable, List, Sequence

from delivery_tracker.ingest.models import DeliveryRecord


def apply_route(
    records: Sequence[DeliveryRecord],
    selected_indices: Iterable[int],
    route_value: str,
) -> Sequence[DeliveryRecord]:
    """Assign ``route_value`` to every selected row.

    Returns ``records`` itself when there is nothing to apply. Indices outside
    the collection (negative ones included) are ignored.
    """

    selected = {index for index in selected_indices if 0 <= index < len(records)}
    if not route_value or not selected:
        return records

    updated: List[DeliveryRecord] = []
    for index, record in enumerate(records):
        if index in selected:
            updated.append(record.model_copy(update={"route": route_value}))
        else:
            updated.append(record)
    return updated

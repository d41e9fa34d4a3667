from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Union

from delivery_tracker.ingest.coercion import to_non_negative_int
from delivery_tracker.ingest.models import DeliveryRecord, Region, RegionFilter
from delivery_tracker.metrics.calculator import ZERO_PERCENT, ratio_percent

RegionSelector = Union[Region, RegionFilter, None]


@dataclass
class RegionStats:
    total_orders: int
    delivered: int
    failed: int
    delivery_percent: str


def _matches(record: DeliveryRecord, region_filter: RegionSelector) -> bool:
    if region_filter is RegionFilter.ALL:
        return True
    return record.region == region_filter


def aggregate(records: Iterable[DeliveryRecord], region_filter: RegionSelector) -> RegionStats:
    """Sum the counts of the records in one region (or all of them).

    ``None`` selects records whose region was never assigned, so aggregating
    ``RegionFilter.ALL`` equals the sum over every distinct region value.
    """

    total_orders = 0
    delivered = 0
    failed = 0
    for record in records:
        if not _matches(record, region_filter):
            continue
        total_orders += to_non_negative_int(record.total_orders)
        delivered += to_non_negative_int(record.delivered)
        failed += to_non_negative_int(record.failed)

    delivery_percent = (
        ratio_percent(delivered, total_orders) if total_orders > 0 else ZERO_PERCENT
    )
    return RegionStats(
        total_orders=total_orders,
        delivered=delivered,
        failed=failed,
        delivery_percent=delivery_percent,
    )


def aggregate_by_region(records: Iterable[DeliveryRecord]) -> Dict[str, RegionStats]:
    materialized = list(records)
    stats: Dict[str, RegionStats] = {
        region.value: aggregate(materialized, region) for region in Region
    }
    stats[RegionFilter.ALL.value] = aggregate(materialized, RegionFilter.ALL)
    return stats


def parse_region_filter(value: Optional[str]) -> Optional[Union[Region, RegionFilter]]:
    """Resolve a filter code; blank means no filter (every record)."""

    if value is None or not str(value).strip():
        return None
    text = str(value).strip().upper()
    if text == RegionFilter.ALL.value:
        return RegionFilter.ALL
    return Region(text)


def filter_by_region(
    records: Iterable[DeliveryRecord],
    region_filter: Optional[Union[Region, RegionFilter]],
) -> List[DeliveryRecord]:
    if region_filter is None or region_filter is RegionFilter.ALL:
        return list(records)
    return [record for record in records if record.region == region_filter]

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, Union

from jinja2 import Environment, FileSystemLoader, select_autoescape

from delivery_tracker.common.date_utils import aware_now, format_report_date
from delivery_tracker.ingest.models import DeliveryRecord, Region, RegionFilter
from delivery_tracker.metrics.bands import classify_percent
from delivery_tracker.reports.aggregator import aggregate, filter_by_region
from delivery_tracker.reports.sorting import SortState, sort_records

TEMPLATE_NAME = "evolution.html"
TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"
ALL_REGIONS_TITLE = "Todas as Regiões"


def report_title(region_filter: Optional[Union[Region, RegionFilter]]) -> str:
    if isinstance(region_filter, Region):
        return region_filter.label
    return ALL_REGIONS_TITLE


def default_report_name(generated_at: datetime) -> str:
    return f"evolucao-{generated_at.date().isoformat()}.html"


def _row_context(record: DeliveryRecord) -> Dict[str, Any]:
    row = record.to_mapping()
    row["delivery_band"] = classify_percent(record.delivery_percent).value
    row["route_band"] = classify_percent(record.route_percent, route=True).value
    return row


def build_report_context(
    records: Sequence[DeliveryRecord],
    region_filter: Optional[Union[Region, RegionFilter]],
    *,
    sort_state: Optional[SortState] = None,
    generated_at: Optional[datetime] = None,
) -> Dict[str, Any]:
    generated_at = generated_at or aware_now()
    visible = sort_records(filter_by_region(records, region_filter), sort_state or SortState())
    stats = aggregate(records, region_filter or RegionFilter.ALL)
    return {
        "title": report_title(region_filter),
        "generated_on": format_report_date(generated_at),
        "generated_at": generated_at,
        "stats": stats,
        "stats_band": classify_percent(stats.delivery_percent).value,
        "rows": [_row_context(record) for record in visible],
    }


def render_html(context: Mapping[str, object]) -> str:
    env = Environment(
        loader=FileSystemLoader(str(TEMPLATE_DIR)),
        autoescape=select_autoescape(["html", "xml"]),
    )
    template = env.get_template(TEMPLATE_NAME)
    return template.render(**context)


def write_report(context: Mapping[str, Any], output_path: Path) -> Path:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(render_html(context), encoding="utf-8")
    return output_path

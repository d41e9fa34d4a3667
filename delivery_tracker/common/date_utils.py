"""Shared helpers for timezone-aware report dates."""
from __future__ import annotations

from datetime import date, datetime
from zoneinfo import ZoneInfo

REPORT_DATE_FORMAT = "%d/%m/%Y"


def get_timezone() -> ZoneInfo:
    """Return the configured pipeline timezone.

    The timezone comes from ``PIPELINE_TIMEZONE`` so that the date stamped on
    ingested records matches the operation's local day regardless of the
    machine locale.
    """

    from delivery_tracker.config import config

    return ZoneInfo(config.pipeline_timezone)


def aware_now(tz: ZoneInfo | None = None) -> datetime:
    """Return ``datetime.now`` in the configured timezone."""

    timezone = tz or get_timezone()
    return datetime.now(timezone)


def format_report_date(value: date | datetime) -> str:
    """Format a date the way the routing dashboard shows it (dd/mm/yyyy)."""

    if isinstance(value, datetime):
        value = value.date()
    return value.strftime(REPORT_DATE_FORMAT)


def today_label(tz: ZoneInfo | None = None) -> str:
    return format_report_date(aware_now(tz))

"""
CONFIG.PY: SINGLE SOURCE OF TRUTH

This module is the ONLY place allowed to read environment variables.

Every key has a default so a bare checkout can ingest and report without a .env
file. Values that are present but invalid fail early with ConfigError.

To use a config value, import:

    from delivery_tracker.config import config

Do not access os.getenv directly from any other module.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from dotenv import load_dotenv


PROJECT_ROOT = Path(__file__).resolve().parents[1]

# OS env overrides values from .env
load_dotenv(PROJECT_ROOT / ".env")


logger = logging.getLogger(__name__)

DEFAULTS: dict[str, str] = {
    "DATABASE_URL": "sqlite:///delivery_tracker.db",
    "PIPELINE_TIMEZONE": "America/Sao_Paulo",
    "JSON_LOG_FILE": "",
    "SNAPSHOT_MAX_AGE_HOURS": "24",
    "SOURCE_COLUMN": "A",
    "REPORTS_ROOT": "reports",
}


class ConfigError(RuntimeError):
    """Raised when configuration cannot be loaded."""


def _read_env(environ: Mapping[str, str]) -> dict[str, str]:
    values: dict[str, str] = {}
    for key, default in DEFAULTS.items():
        raw = environ.get(key)
        values[key] = default if raw is None else raw.strip()
    return values


def _parse_positive_int(value: str, *, key: str) -> int:
    try:
        parsed = int(value.strip())
    except (TypeError, ValueError):
        message = f"Config key {key} must be an integer; got {value!r}"
        logger.error(message)
        raise ConfigError(message)
    if parsed <= 0:
        message = f"Config key {key} must be positive; got {parsed}"
        logger.error(message)
        raise ConfigError(message)
    return parsed


def _clean_text(value: str, *, key: str) -> str:
    stripped = value.strip()
    if not stripped:
        message = f"Config key {key} cannot be blank"
        logger.error(message)
        raise ConfigError(message)
    return stripped


def _clean_column(value: str, *, key: str) -> str:
    column = _clean_text(value, key=key).upper()
    if not column.isalpha():
        message = f"Config key {key} must be a spreadsheet column letter; got {value!r}"
        logger.error(message)
        raise ConfigError(message)
    return column


@dataclass(slots=True, frozen=True)
class Config:
    database_url: str
    pipeline_timezone: str
    json_log_file: str
    snapshot_max_age_hours: int
    source_column: str
    reports_root: str

    @classmethod
    def load_from_env(cls, environ: Mapping[str, str] | None = None) -> Config:
        values = _read_env(os.environ if environ is None else environ)
        return cls(
            database_url=_clean_text(values["DATABASE_URL"], key="DATABASE_URL"),
            pipeline_timezone=_clean_text(values["PIPELINE_TIMEZONE"], key="PIPELINE_TIMEZONE"),
            json_log_file=values["JSON_LOG_FILE"],
            snapshot_max_age_hours=_parse_positive_int(
                values["SNAPSHOT_MAX_AGE_HOURS"], key="SNAPSHOT_MAX_AGE_HOURS"
            ),
            source_column=_clean_column(values["SOURCE_COLUMN"], key="SOURCE_COLUMN"),
            reports_root=_clean_text(values["REPORTS_ROOT"], key="REPORTS_ROOT"),
        )


config = Config.load_from_env()

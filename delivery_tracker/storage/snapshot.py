"""Persistence of the working record set between sessions."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence

import sqlalchemy as sa

from delivery_tracker.common.db import _ensure_engine, session_scope
from delivery_tracker.common.json_logger import JsonLogger, log_event
from delivery_tracker.ingest.models import DeliveryRecord, IngestionError
from delivery_tracker.metrics.calculator import derive_metrics

DEFAULT_MAX_AGE = timedelta(hours=24)
SNAPSHOT_ID = 1

_metadata = sa.MetaData()

delivery_snapshots = sa.Table(
    "delivery_snapshots",
    _metadata,
    sa.Column("id", sa.Integer(), primary_key=True),
    sa.Column("saved_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("records", sa.JSON(), nullable=False),
)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SnapshotStore:
    """Keeps the latest record set together with the time it was produced.

    A snapshot older than ``max_age`` is discarded on the next load instead of
    being handed back.
    """

    def __init__(
        self,
        database_url: str,
        *,
        max_age: timedelta = DEFAULT_MAX_AGE,
        logger: Optional[JsonLogger] = None,
    ):
        self.database_url = database_url
        self.max_age = max_age
        self.logger = logger
        self._ready = False

    def _ensure_schema(self) -> None:
        if self._ready:
            return
        _metadata.create_all(_ensure_engine(self.database_url))
        self._ready = True

    def _log(self, message: str, **fields) -> None:
        if self.logger is not None:
            log_event(logger=self.logger, phase="snapshot", message=message, **fields)

    def save(self, records: Sequence[DeliveryRecord], *, now: Optional[datetime] = None) -> None:
        if not records:
            self.clear()
            return
        self._ensure_schema()
        saved_at = _as_utc(now or _utcnow())
        payload = [record.to_mapping() for record in records]
        with session_scope(self.database_url) as session:
            session.execute(sa.delete(delivery_snapshots))
            session.execute(
                sa.insert(delivery_snapshots).values(id=SNAPSHOT_ID, saved_at=saved_at, records=payload)
            )
            session.commit()
        self._log("snapshot saved", records=len(payload), saved_at=saved_at.isoformat())

    def saved_at(self) -> Optional[datetime]:
        self._ensure_schema()
        with session_scope(self.database_url) as session:
            value = session.execute(sa.select(delivery_snapshots.c.saved_at)).scalar_one_or_none()
        return _as_utc(value) if value is not None else None

    def load(self, *, now: Optional[datetime] = None) -> Optional[List[DeliveryRecord]]:
        """Return the stored records, or ``None`` when absent or stale.

        Derived fields are rebuilt from the stored counts rather than trusted.
        """

        self._ensure_schema()
        with session_scope(self.database_url) as session:
            row = session.execute(
                sa.select(delivery_snapshots.c.saved_at, delivery_snapshots.c.records)
            ).one_or_none()
        if row is None:
            return None

        saved_at = _as_utc(row.saved_at)
        age = _as_utc(now or _utcnow()) - saved_at
        if age >= self.max_age:
            self.clear()
            self._log("stale snapshot discarded", saved_at=saved_at.isoformat(), age_seconds=int(age.total_seconds()))
            return None

        if not isinstance(row.records, list):
            raise IngestionError("Stored snapshot is not a record list")
        return [derive_metrics(DeliveryRecord.from_mapping(item)) for item in row.records]

    def clear(self) -> None:
        self._ensure_schema()
        with session_scope(self.database_url) as session:
            session.execute(sa.delete(delivery_snapshots))
            session.commit()
        self._log("snapshot cleared")

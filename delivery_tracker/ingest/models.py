from __future__ import annotations

from enum import Enum
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_serializer, field_validator


class IngestionError(ValueError):
    """Raised when input cannot be decoded into a row sequence or record set.

    Ingestion is all-or-nothing: when this is raised no records were produced
    and the caller's collection must be left as it was.
    """


class Region(str, Enum):
    SP = "SP"
    RJ = "RJ"

    @property
    def label(self) -> str:
        return REGION_LABELS[self]


REGION_LABELS = {
    Region.SP: "São Paulo",
    Region.RJ: "Rio de Janeiro",
}

PRIMARY_REGION = Region.SP
SECONDARY_REGION = Region.RJ


class RegionFilter(str, Enum):
    """Query-only pseudo-region selecting every record."""

    ALL = "TODOS"


def parse_region(value: Any) -> Optional[Region]:
    """Return the region for a stored code; blank means unassigned."""

    if value is None or isinstance(value, Region):
        return value
    text = str(value).strip().upper()
    if not text:
        return None
    try:
        return Region(text)
    except ValueError as exc:
        raise ValueError(f"Unknown region code: {value!r}") from exc


class DeliveryRecord(BaseModel):
    """One driver's deliveries for one ingestion batch.

    Attributes use Python names; the aliases are the keys of the persisted flat
    mapping. ``pending``, ``delivery_percent`` and ``route_percent`` must only be
    produced by :mod:`delivery_tracker.metrics.calculator`.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    date: str = Field(alias="data")
    driver_name: str = Field(alias="motorista")
    route: str = Field(default="", alias="rota")
    total_orders: str = Field(default="0", alias="totalPedido")
    delivered: str = Field(default="", alias="entregues")
    pending: str = Field(default="0", alias="pendentes")
    failed: str = Field(default="", alias="insucessos")
    delivery_percent: str = Field(default="0%", alias="percentualEntregas")
    route_percent: str = Field(default="0%", alias="percentualRotas")
    region: Optional[Region] = Field(default=None, alias="regiao")

    @field_validator(
        "route", "total_orders", "delivered", "pending", "failed", mode="before"
    )
    @classmethod
    def _stringify(cls, value: Any) -> str:
        if value is None:
            return ""
        return str(value)

    @field_validator("region", mode="before")
    @classmethod
    def _coerce_region(cls, value: Any) -> Optional[Region]:
        return parse_region(value)

    @field_serializer("region")
    def _serialize_region(self, region: Optional[Region]) -> str:
        return region.value if region is not None else ""

    def to_mapping(self) -> dict[str, str]:
        return self.model_dump(by_alias=True)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> DeliveryRecord:
        try:
            return cls.model_validate(dict(data))
        except (ValidationError, TypeError, ValueError) as exc:
            raise IngestionError(f"Invalid delivery record: {exc}") from exc


__all__ = [
    "DeliveryRecord",
    "IngestionError",
    "PRIMARY_REGION",
    "REGION_LABELS",
    "Region",
    "RegionFilter",
    "SECONDARY_REGION",
    "parse_region",
]

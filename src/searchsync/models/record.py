"""Record model — The authoritative catalog entity observed by the synchronizer.

Records are owned by an external store. This package only sees them
through lifecycle notifications and never persists them.
"""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field, field_validator

RecordId = int | str


def _as_utc(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class Record(BaseModel):
    """A catalog record (e.g. a product) as committed by the record store."""

    id: RecordId = Field(description="Unique, opaque record identifier")
    name: str = Field(default="", description="Display name, indexed for text search")
    available_from: datetime | None = Field(
        default=None,
        description="Time from which the record is available (None = never available)",
    )
    properties: dict[str, str] = Field(default_factory=dict, description="Property name to value")
    taxon_ids: set[str] = Field(default_factory=set, description="Taxonomy memberships")
    price: Decimal | None = Field(default=None, description="Price used for statistical faceting")
    deleted: bool = Field(default=False, description="Logically deleted in the record store")
    updated_at: datetime | None = Field(default=None, description="Commit timestamp of this snapshot")

    @field_validator("available_from", "updated_at")
    @classmethod
    def _ensure_timezone(cls, v: datetime | None) -> datetime | None:
        """Treat naive timestamps as UTC."""
        return _as_utc(v)

    @field_validator("properties", mode="before")
    @classmethod
    def _check_property_names(cls, v: Any) -> Any:
        if isinstance(v, dict):
            for key in v:
                if not key or "." in str(key):
                    raise ValueError(f"Invalid property name: {key!r}")
            return {str(k): str(val) for k, val in v.items()}
        return v

    @field_validator("taxon_ids", mode="before")
    @classmethod
    def _coerce_taxon_ids(cls, v: Any) -> Any:
        if isinstance(v, (list, tuple, set, frozenset)):
            return {str(t) for t in v}
        return v

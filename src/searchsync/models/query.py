"""Search request models."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator


class SearchRequest(BaseModel):
    """A structured search over the index.

    Every field is optional; an absent field means "no constraint".
    """

    name_query: str | None = Field(default=None, description="Relevance text query over the name")
    property_filters: list[dict[str, str]] = Field(
        default_factory=list,
        description="Exact key=value constraints, all of which must match",
    )
    taxon_filter: set[str] | None = Field(default=None, description="Match documents in any of these taxons")
    price_min: float | None = Field(default=None, ge=0, description="Inclusive lower price bound")
    price_max: float | None = Field(default=None, ge=0, description="Inclusive upper price bound")
    page: int = Field(default=1, ge=1, description="1-based page number")
    page_size: int | None = Field(default=None, ge=1, description="Hits per page (None = configured default)")

    @field_validator("name_query")
    @classmethod
    def _blank_is_absent(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            return None
        return v

    @field_validator("taxon_filter", mode="before")
    @classmethod
    def _coerce_taxons(cls, v: Any) -> Any:
        if isinstance(v, (list, tuple, set, frozenset)):
            return {str(t) for t in v} or None
        return v

    @model_validator(mode="after")
    def _check_price_range(self) -> SearchRequest:
        if self.price_min is not None and self.price_max is not None and self.price_min > self.price_max:
            raise ValueError("price_min must not exceed price_max")
        return self


class EngineQuery(BaseModel):
    """An engine-native query body plus its pagination window."""

    body: dict[str, Any] = Field(description="Query DSL body")
    offset: int = Field(default=0, ge=0, description="Index of the first hit of the page")
    limit: int = Field(default=25, ge=1, description="Maximum hits in the page")

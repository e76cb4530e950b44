"""Facet models — Aggregates computed over the full matching set."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class FacetType(str, Enum):
    """Kind of aggregate a facet carries."""

    STATISTICAL = "statistical"
    TERMS = "terms"


class FacetStats(BaseModel):
    """Summary statistics of a numeric field."""

    count: int = Field(default=0, description="Number of values aggregated")
    min: float | None = Field(default=None, description="Smallest value")
    max: float | None = Field(default=None, description="Largest value")
    avg: float | None = Field(default=None, description="Mean value")
    sum: float = Field(default=0.0, description="Sum of values")


class Facet(BaseModel):
    """A named aggregate over the search result."""

    name: str = Field(description="Facet name, e.g. 'price' or 'taxons'")
    type: FacetType = Field(description="statistical or terms")
    buckets: dict[str, int] = Field(default_factory=dict, description="terms: value to document count, engine order")
    stats: FacetStats | None = Field(default=None, description="statistical: summary over the matched set")

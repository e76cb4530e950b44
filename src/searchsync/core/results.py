"""Result wrapper — Lazy, page-bounded view over an engine response."""

from __future__ import annotations

import math
from collections.abc import Iterator
from typing import Any

from searchsync.adapters.base.adapter import RawResults
from searchsync.core.mapper import DocumentMapper
from searchsync.core.query_builder import FACETS
from searchsync.models.document import IndexDocument
from searchsync.models.facet import Facet, FacetStats, FacetType


class SearchResult:
    """Search hits of one page plus totals and facets of the whole match set.

    Iterating yields ``IndexDocument`` objects built on demand from the
    raw hits, in engine order. Every ``iter()`` starts again at the first
    hit of the page, so the result can be consumed more than once.

    Attributes:
        total: Number of matching documents, independent of pagination.
        facets: Facets in fixed order (``price``, then ``taxons``).
        page: 1-based page number.
        page_size: Requested hits per page.
        took_ms: Engine round-trip time.
    """

    def __init__(self, raw: RawResults, mapper: DocumentMapper, page: int = 1, page_size: int = 25) -> None:
        self._raw = raw
        self._mapper = mapper
        self.total = raw.total_hits
        self.facets = parse_facets(raw.aggregations)
        self.page = page
        self.page_size = page_size
        self.took_ms = raw.took_ms

    def __iter__(self) -> Iterator[IndexDocument]:
        return (self._mapper.from_hit(hit) for hit in self._raw.documents)

    def __len__(self) -> int:
        return len(self._raw.documents)

    def __bool__(self) -> bool:
        return self.total > 0

    def __repr__(self) -> str:
        return f"<SearchResult total={self.total} page={self.page} hits={len(self)}>"

    @property
    def hits(self) -> Iterator[IndexDocument]:
        """Lazy iterator over the documents of this page."""
        return iter(self)

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.page_size) if self.page_size else 0

    def facet(self, name: str) -> Facet | None:
        """Look a facet up by name."""
        return next((f for f in self.facets if f.name == name), None)

    def to_list(self) -> list[IndexDocument]:
        """Materialize the page."""
        return list(self)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "page": self.page,
            "page_size": self.page_size,
            "total_pages": self.total_pages,
            "hits": [doc.model_dump(mode="json") for doc in self],
            "facets": [facet.model_dump(mode="json") for facet in self.facets],
        }


def parse_facets(aggregations: dict[str, Any]) -> list[Facet]:
    """Turn raw aggregation results into facets, in ``FACETS`` order."""
    facets: list[Facet] = []
    for name, (facet_type, _field) in FACETS.items():
        raw = aggregations.get(name, {})
        if facet_type is FacetType.STATISTICAL:
            facets.append(
                Facet(
                    name=name,
                    type=facet_type,
                    stats=FacetStats(
                        count=raw.get("count", 0),
                        min=raw.get("min"),
                        max=raw.get("max"),
                        avg=raw.get("avg"),
                        sum=raw.get("sum") or 0.0,
                    ),
                )
            )
        else:
            buckets = {str(b["key"]): int(b["doc_count"]) for b in raw.get("buckets", [])}
            facets.append(Facet(name=name, type=facet_type, buckets=buckets))
    return facets

"""Query builder — Translates ``SearchRequest`` into the engine query DSL.

Output shape::

    {
      "query": {"bool": {"must": [...text...], "filter": [...exact...]}},
      "sort": [...],
      "from": offset, "size": limit,
      "track_total_hits": true,
      "aggs": {"price": {"stats": ...}, "taxons": {"terms": ...}}
    }

Aggregations are evaluated by the engine over the whole match set, so
facets never depend on the requested page.
"""

from __future__ import annotations

from typing import Any

from searchsync.models.facet import FacetType
from searchsync.models.query import EngineQuery, SearchRequest

NAME_FIELD = "name"
NAME_SORT_FIELD = "name.raw"
PROPERTIES_FIELD = "properties"
TAXONS_FIELD = "taxon_ids"
PRICE_FIELD = "price"

# Facet name → (facet type, indexed field). Order is the facet order of every result.
FACETS: dict[str, tuple[FacetType, str]] = {
    "price": (FacetType.STATISTICAL, PRICE_FIELD),
    "taxons": (FacetType.TERMS, TAXONS_FIELD),
}


class QueryBuilder:
    """Builds engine queries with deterministic ordering and facets.

    Args:
        default_page_size: Page size used when the request sets none.
        max_page_size: Upper bound applied to requested page sizes.
        taxon_facet_size: Maximum number of buckets in the taxons facet.
    """

    def __init__(self, default_page_size: int = 25, max_page_size: int = 100, taxon_facet_size: int = 50) -> None:
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size
        self.taxon_facet_size = taxon_facet_size

    def page_size(self, request: SearchRequest) -> int:
        """Effective page size of a request."""
        return min(request.page_size or self.default_page_size, self.max_page_size)

    def build(self, request: SearchRequest) -> EngineQuery:
        """Translate a request into an ``EngineQuery``."""
        limit = self.page_size(request)
        offset = (request.page - 1) * limit

        body: dict[str, Any] = {
            "query": self._query(request),
            "sort": self._sort(request),
            "from": offset,
            "size": limit,
            "track_total_hits": True,
            "aggs": self._aggregations(),
        }
        return EngineQuery(body=body, offset=offset, limit=limit)

    def _query(self, request: SearchRequest) -> dict[str, Any]:
        must: list[dict[str, Any]] = []
        if request.name_query:
            must.append(self._text_query(request.name_query))
        filters = self._filters(request)

        if not must and not filters:
            return {"match_all": {}}
        clause: dict[str, Any] = {}
        if must:
            clause["must"] = must
        if filters:
            clause["filter"] = filters
        return {"bool": clause}

    @staticmethod
    def _text_query(text: str) -> dict[str, Any]:
        """Relevance match on the name that also accepts a partial last token."""
        return {
            "bool": {
                "should": [
                    {"match": {NAME_FIELD: {"query": text, "operator": "and"}}},
                    {"match_phrase_prefix": {NAME_FIELD: {"query": text}}},
                ],
                "minimum_should_match": 1,
            }
        }

    @staticmethod
    def _filters(request: SearchRequest) -> list[dict[str, Any]]:
        filters: list[dict[str, Any]] = []
        for constraint in request.property_filters:
            for key, value in constraint.items():
                filters.append({"term": {f"{PROPERTIES_FIELD}.{key}": value}})

        if request.taxon_filter:
            filters.append({"terms": {TAXONS_FIELD: sorted(request.taxon_filter)}})

        bounds: dict[str, float] = {}
        if request.price_min is not None:
            bounds["gte"] = request.price_min
        if request.price_max is not None:
            bounds["lte"] = request.price_max
        if bounds:
            filters.append({"range": {PRICE_FIELD: bounds}})
        return filters

    @staticmethod
    def _sort(request: SearchRequest) -> list[Any]:
        by_name = {NAME_SORT_FIELD: {"order": "asc"}}
        if request.name_query:
            return ["_score", by_name]
        return [by_name]

    def _aggregations(self) -> dict[str, Any]:
        aggs: dict[str, Any] = {}
        for name, (facet_type, field) in FACETS.items():
            if facet_type is FacetType.STATISTICAL:
                aggs[name] = {"stats": {"field": field}}
            else:
                aggs[name] = {"terms": {"field": field, "size": self.taxon_facet_size}}
        return aggs

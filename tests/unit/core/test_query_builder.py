"""Tests for the query builder."""

from __future__ import annotations

import pytest

from searchsync.core.query_builder import QueryBuilder
from searchsync.models.query import SearchRequest


@pytest.fixture
def builder() -> QueryBuilder:
    return QueryBuilder(default_page_size=10, max_page_size=50, taxon_facet_size=20)


class TestEmptySearch:
    def test_match_all_sorted_by_name(self, builder: QueryBuilder) -> None:
        body = builder.build(SearchRequest()).body
        assert body["query"] == {"match_all": {}}
        assert body["sort"] == [{"name.raw": {"order": "asc"}}]
        assert body["track_total_hits"] is True


class TestTextQuery:
    def test_partial_match_clauses(self, builder: QueryBuilder) -> None:
        body = builder.build(SearchRequest(name_query="Product")).body
        text = body["query"]["bool"]["must"][0]["bool"]
        assert {"match": {"name": {"query": "Product", "operator": "and"}}} in text["should"]
        assert {"match_phrase_prefix": {"name": {"query": "Product"}}} in text["should"]
        assert text["minimum_should_match"] == 1

    def test_relevance_overrides_default_sort(self, builder: QueryBuilder) -> None:
        body = builder.build(SearchRequest(name_query="mug")).body
        assert body["sort"][0] == "_score"

    def test_blank_text_means_no_constraint(self, builder: QueryBuilder) -> None:
        body = builder.build(SearchRequest(name_query="   ")).body
        assert body["query"] == {"match_all": {}}


class TestFilters:
    def test_property_filters_are_anded(self, builder: QueryBuilder) -> None:
        request = SearchRequest(property_filters=[{"the_prop": "a_value"}, {"colour": "red", "size": "L"}])
        query = builder.build(request).body["query"]
        assert "must" not in query["bool"]
        assert query["bool"]["filter"] == [
            {"term": {"properties.the_prop": "a_value"}},
            {"term": {"properties.colour": "red"}},
            {"term": {"properties.size": "L"}},
        ]

    def test_taxon_filter(self, builder: QueryBuilder) -> None:
        query = builder.build(SearchRequest(taxon_filter=[3, 1])).body["query"]
        assert {"terms": {"taxon_ids": ["1", "3"]}} in query["bool"]["filter"]

    def test_price_range(self, builder: QueryBuilder) -> None:
        query = builder.build(SearchRequest(price_min=5, price_max=10)).body["query"]
        assert {"range": {"price": {"gte": 5, "lte": 10}}} in query["bool"]["filter"]

    def test_text_and_filters_combined(self, builder: QueryBuilder) -> None:
        query = builder.build(SearchRequest(name_query="mug", property_filters=[{"a": "b"}])).body["query"]
        assert len(query["bool"]["must"]) == 1
        assert len(query["bool"]["filter"]) == 1

    def test_inverted_price_range_rejected(self) -> None:
        with pytest.raises(ValueError):
            SearchRequest(price_min=10, price_max=5)


class TestPagination:
    def test_default_page(self, builder: QueryBuilder) -> None:
        query = builder.build(SearchRequest())
        assert (query.offset, query.limit) == (0, 10)
        assert (query.body["from"], query.body["size"]) == (0, 10)

    def test_offset_from_page(self, builder: QueryBuilder) -> None:
        query = builder.build(SearchRequest(page=3, page_size=20))
        assert query.offset == 40
        assert query.limit == 20

    def test_page_size_capped(self, builder: QueryBuilder) -> None:
        assert builder.build(SearchRequest(page_size=500)).limit == 50

    def test_page_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            SearchRequest(page=0)


class TestFacets:
    def test_always_attached(self, builder: QueryBuilder) -> None:
        for request in (SearchRequest(), SearchRequest(name_query="x", property_filters=[{"a": "b"}])):
            aggs = builder.build(request).body["aggs"]
            assert aggs["price"] == {"stats": {"field": "price"}}
            assert aggs["taxons"] == {"terms": {"field": "taxon_ids", "size": 20}}

"""In-memory backend — A dict-backed engine for tests and local development.

Mirrors the OpenSearch semantics the synchronizer depends on:

  - every write bumps a per-document ``_version`` and a per-index ``_seq_no``
  - ``expected``/``create_only`` writes fail with ``VersionConflictError``
  - deletes of absent documents are reported, not raised
  - writes are visible to searches immediately

Queries are evaluated against the subset of the query DSL that
``QueryBuilder`` emits (``match_all``, ``bool``, ``match``,
``match_phrase_prefix``, ``term``, ``terms``, ``range``) together with
``sort``, ``from``/``size`` and ``stats``/``terms`` aggregations.
"""

from __future__ import annotations

import copy
import logging
import re
import time
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from searchsync.adapters.base.adapter import BackendHealth, IndexBackend, RawResults
from searchsync.adapters.base.exceptions import (
    ConnectionError,
    DocumentNotFoundError,
    QueryError,
    SchemaError,
    VersionConflictError,
)
from searchsync.models.document import DocumentVersion
from searchsync.models.query import EngineQuery

logger = logging.getLogger(__name__)

_PRIMARY_TERM = 1
_FIELD_TYPES = frozenset(
    {"text", "keyword", "float", "scaled_float", "double", "integer", "long", "date", "boolean", "object"}
)
_TOKEN_RE = re.compile(r"\w+")


def _tokenize(value: Any) -> list[str]:
    return _TOKEN_RE.findall(str(value).lower())


@dataclass(slots=True)
class _StoredDocument:
    source: dict[str, Any]
    version: int
    seq_no: int


class MemoryBackend(IndexBackend):
    """Index backend that keeps documents in process memory.

    Args:
        **kwargs: Accepted for configuration compatibility and ignored.
    """

    def __init__(self, **kwargs: Any) -> None:
        self._indices: dict[str, dict[str, _StoredDocument]] = {}
        self._mappings: dict[str, dict[str, Any]] = {}
        self._seq_no = 0
        self._ready = False

    @property
    def name(self) -> str:
        return "memory"

    async def initialize(self) -> None:
        self._ready = True
        logger.info("Using in-memory index backend")

    async def shutdown(self) -> None:
        self._ready = False

    # ── Schema ───────────────────────────────────────────────────────────

    async def create_schema(self, document_type: str, mapping: dict[str, Any]) -> None:
        self._require_ready()
        self._validate_mapping(mapping.get("properties"), path="")
        self._mappings[document_type] = copy.deepcopy(mapping)
        self._indices.setdefault(document_type, {})

    @classmethod
    def _validate_mapping(cls, properties: Any, path: str) -> None:
        if not isinstance(properties, dict):
            raise SchemaError(f"Mapping at '{path or '<root>'}' must declare a 'properties' object.")
        for field, definition in properties.items():
            location = f"{path}{field}"
            if not isinstance(definition, dict):
                raise SchemaError(f"Field '{location}' must be defined by an object.")
            if "properties" in definition:
                cls._validate_mapping(definition["properties"], path=f"{location}.")
                continue
            field_type = definition.get("type")
            if field_type not in _FIELD_TYPES:
                raise SchemaError(f"Field '{location}' has unsupported type {field_type!r}.")

    def mapping(self, document_type: str) -> dict[str, Any] | None:
        """Return the registered mapping of ``document_type``, if any."""
        return self._mappings.get(document_type)

    # ── Writes ───────────────────────────────────────────────────────────

    async def upsert(
        self,
        document_type: str,
        doc_id: str,
        body: dict[str, Any],
        expected: DocumentVersion | None = None,
        create_only: bool = False,
    ) -> DocumentVersion:
        self._require_ready()
        docs = self._indices.setdefault(document_type, {})
        current = docs.get(doc_id)

        if create_only and current is not None:
            raise VersionConflictError(f"Document '{doc_id}' already exists.")
        if expected is not None and expected.seq_no is not None:
            if current is None or current.seq_no != expected.seq_no:
                raise VersionConflictError(f"Stale write rejected for document '{doc_id}'.")

        self._seq_no += 1
        version = current.version + 1 if current else 1
        docs[doc_id] = _StoredDocument(source=copy.deepcopy(body), version=version, seq_no=self._seq_no)
        return DocumentVersion(version=version, seq_no=self._seq_no, primary_term=_PRIMARY_TERM)

    async def remove(self, document_type: str, doc_id: str) -> bool:
        self._require_ready()
        return self._indices.get(document_type, {}).pop(doc_id, None) is not None

    # ── Reads ────────────────────────────────────────────────────────────

    async def get_by_id(self, document_type: str, doc_id: str) -> dict[str, Any]:
        self._require_ready()
        stored = self._indices.get(document_type, {}).get(doc_id)
        if stored is None:
            raise DocumentNotFoundError(f"Document '{doc_id}' not found.")
        return {
            "_index": document_type,
            "_id": doc_id,
            "_version": stored.version,
            "_seq_no": stored.seq_no,
            "_primary_term": _PRIMARY_TERM,
            "found": True,
            "_source": copy.deepcopy(stored.source),
        }

    async def query(self, document_type: str, query: EngineQuery) -> RawResults:
        self._require_ready()
        start = time.monotonic()
        body = query.body
        clause = body.get("query", {"match_all": {}})

        matches: list[dict[str, Any]] = []
        for doc_id, stored in self._indices.get(document_type, {}).items():
            matched, score = self._evaluate(clause, stored.source)
            if matched:
                matches.append(
                    {
                        "_index": document_type,
                        "_id": doc_id,
                        "_score": score,
                        "_version": stored.version,
                        "_source": copy.deepcopy(stored.source),
                    }
                )

        aggregations = self._aggregate(body.get("aggs", {}), [m["_source"] for m in matches])
        ordered = self._sort(matches, body.get("sort", ["_score"]))
        offset = body.get("from", query.offset)
        size = body.get("size", query.limit)

        return RawResults(
            total_hits=len(matches),
            documents=ordered[offset : offset + size],
            aggregations=aggregations,
            took_ms=int((time.monotonic() - start) * 1000),
        )

    # ── Health ───────────────────────────────────────────────────────────

    async def health_check(self) -> BackendHealth:
        if not self._ready:
            return BackendHealth(status="unhealthy", message="Backend not initialized")
        documents = sum(len(docs) for docs in self._indices.values())
        return BackendHealth(
            status="healthy",
            last_check=datetime.now(UTC).isoformat(),
            message=f"Indices: {len(self._indices)}, Documents: {documents}",
        )

    # ── Query evaluation ─────────────────────────────────────────────────

    def _evaluate(self, clause: dict[str, Any], source: dict[str, Any]) -> tuple[bool, float]:
        if len(clause) != 1:
            raise QueryError(f"Expected exactly one query clause, got {list(clause)}")
        kind, spec = next(iter(clause.items()))

        if kind == "match_all":
            return True, 1.0
        if kind == "bool":
            return self._evaluate_bool(spec, source)

        field, params = next(iter(spec.items()))
        values = _field_values(source, field)

        if kind == "match":
            text = params["query"] if isinstance(params, dict) else params
            operator = params.get("operator", "or") if isinstance(params, dict) else "or"
            wanted = _tokenize(text)
            present = {token for value in values for token in _tokenize(value)}
            hits = [token for token in wanted if token in present]
            matched = bool(wanted) and (len(hits) == len(wanted) if operator == "and" else bool(hits))
            return matched, float(len(hits))
        if kind == "match_phrase_prefix":
            text = params["query"] if isinstance(params, dict) else params
            wanted = _tokenize(text)
            matched = bool(wanted) and any(_phrase_prefix(wanted, _tokenize(value)) for value in values)
            return matched, float(len(wanted)) if matched else 0.0
        if kind == "term":
            expected = params.get("value") if isinstance(params, dict) else params
            return any(str(value) == str(expected) for value in values), 0.0
        if kind == "terms":
            accepted = {str(v) for v in params}
            return any(str(value) in accepted for value in values), 0.0
        if kind == "range":
            return any(_in_range(value, params) for value in values), 0.0

        raise QueryError(f"Unsupported query clause: {kind}")

    def _evaluate_bool(self, spec: dict[str, Any], source: dict[str, Any]) -> tuple[bool, float]:
        score = 0.0
        for sub in spec.get("must", []):
            matched, sub_score = self._evaluate(sub, source)
            if not matched:
                return False, 0.0
            score += sub_score
        for sub in spec.get("filter", []):
            if not self._evaluate(sub, source)[0]:
                return False, 0.0
        for sub in spec.get("must_not", []):
            if self._evaluate(sub, source)[0]:
                return False, 0.0

        should = spec.get("should", [])
        default_minimum = 0 if spec.get("must") or spec.get("filter") else 1
        minimum = int(spec.get("minimum_should_match", default_minimum if should else 0))
        satisfied = 0
        for sub in should:
            matched, sub_score = self._evaluate(sub, source)
            if matched:
                satisfied += 1
                score += sub_score
        return satisfied >= minimum, score

    @staticmethod
    def _sort(hits: list[dict[str, Any]], sort: list[Any]) -> list[dict[str, Any]]:
        ordered = list(hits)
        # Stable sorts applied from the least significant key.
        for key in reversed(sort):
            if isinstance(key, str):
                field, order = key, ("desc" if key == "_score" else "asc")
            else:
                field, options = next(iter(key.items()))
                order = options.get("order", "asc") if isinstance(options, dict) else options
            reverse = order == "desc"
            if field == "_score":
                ordered.sort(key=lambda hit: hit["_score"], reverse=reverse)
                continue
            present = [hit for hit in ordered if _field_values(hit["_source"], field)]
            missing = [hit for hit in ordered if not _field_values(hit["_source"], field)]
            present.sort(key=lambda hit: min(_field_values(hit["_source"], field)), reverse=reverse)
            ordered = present + missing
        return ordered

    @staticmethod
    def _aggregate(aggs: dict[str, Any], sources: list[dict[str, Any]]) -> dict[str, Any]:
        results: dict[str, Any] = {}
        for agg_name, spec in aggs.items():
            if "stats" in spec:
                field = spec["stats"]["field"]
                numbers = [float(v) for source in sources for v in _field_values(source, field)]
                count = len(numbers)
                results[agg_name] = {
                    "count": count,
                    "min": min(numbers) if numbers else None,
                    "max": max(numbers) if numbers else None,
                    "avg": sum(numbers) / count if numbers else None,
                    "sum": float(sum(numbers)),
                }
            elif "terms" in spec:
                field = spec["terms"]["field"]
                size = spec["terms"].get("size", 10)
                counts: dict[str, int] = {}
                for source in sources:
                    for value in set(map(str, _field_values(source, field))):
                        counts[value] = counts.get(value, 0) + 1
                buckets = sorted(counts.items(), key=lambda item: (-item[1], item[0]))[:size]
                results[agg_name] = {"buckets": [{"key": key, "doc_count": count} for key, count in buckets]}
            else:
                raise QueryError(f"Unsupported aggregation for '{agg_name}': {list(spec)}")
        return results

    def _require_ready(self) -> None:
        if not self._ready:
            raise ConnectionError("Memory backend not initialized.")


def _field_values(source: dict[str, Any], field: str) -> list[Any]:
    """Resolve a dotted field path to its list of values.

    A trailing segment that does not exist (e.g. ``name.raw``) is treated
    as a multi-field of its parent.
    """
    node: Any = source
    for segment in field.split("."):
        if isinstance(node, dict) and segment in node:
            node = node[segment]
        elif isinstance(node, dict):
            return []
        else:
            # Multi-field sub-field of a leaf value.
            break
    if node is None or isinstance(node, dict):
        return []
    return list(node) if isinstance(node, list) else [node]


def _phrase_prefix(wanted: list[str], tokens: list[str]) -> bool:
    *head, last = wanted
    for start in range(len(tokens) - len(wanted) + 1):
        window = tokens[start : start + len(wanted)]
        if window[:-1] == head and window[-1].startswith(last):
            return True
    return False


def _in_range(value: Any, bounds: dict[str, Any]) -> bool:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return False
    checks = {
        "gte": lambda b: number >= b,
        "gt": lambda b: number > b,
        "lte": lambda b: number <= b,
        "lt": lambda b: number < b,
    }
    return all(checks[op](float(bound)) for op, bound in bounds.items() if op in checks)

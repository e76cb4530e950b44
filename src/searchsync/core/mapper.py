"""Document mapper — Projects records onto the index schema.

The mapper is pure: it defines the field mapping once and turns record
snapshots into index documents (and engine hits back into documents)
without touching the engine.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any

from searchsync.models.document import IndexDocument
from searchsync.models.record import Record

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")
_SEGMENT_SEPARATOR = re.compile(r"::|\.")

TOMBSTONE_SUFFIX = "_tombstone"


def snake_case(name: str) -> str:
    """``"ProductVariant"`` → ``"product_variant"``."""
    return _CAMEL_BOUNDARY.sub("_", name.strip()).replace("-", "_").replace(" ", "_").lower()


def document_type_name(entity: str, namespace: str | None = None) -> str:
    """Derive the document type of an entity.

    Every namespace/entity segment (separated by ``::`` or ``.``) is
    converted to lower snake case and the segments are joined by ``_``.

    Example:
        >>> document_type_name("Product", "Spree")
        'spree_product'
        >>> document_type_name("Spree::Product")
        'spree_product'
    """
    qualified = f"{namespace}::{entity}" if namespace else entity
    segments = [snake_case(s) for s in _SEGMENT_SEPARATOR.split(qualified) if s.strip()]
    if not segments:
        raise ValueError(f"Cannot derive a document type from {qualified!r}")
    return "_".join(segments)


class DocumentMapper:
    """Maps ``Record`` snapshots to ``IndexDocument`` instances.

    Attributes:
        document_type: Logical document type, fixed at construction.
    """

    def __init__(self, document_type: str) -> None:
        self.document_type = document_type

    def schema(self) -> dict[str, Any]:
        """Return the field mapping registered for the document type.

        ``name`` is analyzed for relevance search and carries a ``raw``
        keyword sub-field for sorting. Every string leaf under
        ``properties`` is mapped as an exact-match keyword.
        """
        return {
            "dynamic_templates": [
                {
                    "properties_as_keywords": {
                        "path_match": "properties.*",
                        "match_mapping_type": "string",
                        "mapping": {"type": "keyword"},
                    }
                }
            ],
            "properties": {
                "name": {
                    "type": "text",
                    "analyzer": "standard",
                    "fields": {"raw": {"type": "keyword"}},
                },
                "properties": {"type": "object", "dynamic": True, "properties": {}},
                "taxon_ids": {"type": "keyword"},
                "price": {"type": "scaled_float", "scaling_factor": 100},
                "updated_at": {"type": "date"},
            },
        }

    @property
    def tombstone_type(self) -> str:
        """Document type holding the removal time of every removed record."""
        return f"{self.document_type}{TOMBSTONE_SUFFIX}"

    def tombstone_schema(self) -> dict[str, Any]:
        return {"properties": {"removed_at": {"type": "date"}}}

    def to_tombstone(self, removed_at: datetime) -> dict[str, Any]:
        return {"removed_at": removed_at.isoformat()}

    def tombstone_time(self, hit: dict[str, Any]) -> datetime | None:
        value = hit.get("_source", {}).get("removed_at")
        return datetime.fromisoformat(value) if value else None

    def to_document(self, record: Record) -> IndexDocument:
        """Project the record's current attribute values."""
        return IndexDocument(
            id=str(record.id),
            name=record.name,
            properties=dict(record.properties),
            taxon_ids=sorted(record.taxon_ids),
            price=float(record.price) if record.price is not None else None,
            updated_at=record.updated_at,
        )

    def from_hit(self, hit: dict[str, Any]) -> IndexDocument:
        """Rebuild a document from an engine hit or get response."""
        source = hit.get("_source", {})
        return IndexDocument(
            id=str(hit.get("_id", "")),
            name=source.get("name", ""),
            properties=source.get("properties") or {},
            taxon_ids=source.get("taxon_ids") or [],
            price=source.get("price"),
            updated_at=source.get("updated_at"),
            version=hit.get("_version"),
            score=hit.get("_score"),
        )

"""Index backend layer — Pluggable connectors for search engines.

Built-in backends:
  - opensearch: OpenSearch v2+ / Elasticsearch-compatible engines
  - memory: in-process engine for tests and local development

Implement ``IndexBackend`` to connect your own search engine.
"""

"""Shared libraries for the RAG retrieval platform.

Subpackages:
- ``libs.common``: configuration, logging, metrics, errors, and database helpers.
- ``libs.embedding``: HTTP client for the external embedding provider.
- ``libs.vector_store``: vector index readers (pgvector, OpenSearch k-NN).
- ``libs.text_index``: lexical index readers (PostgreSQL full-text, OpenSearch).
- ``libs.document_store``: batched, read-only chunk and document lookups.

Notes:
- Avoid service-specific logic; keep modules cohesive and broadly useful.
"""

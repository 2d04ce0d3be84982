"""Query embedding for the semantic retrieval branch.

- ``client``: ``Embedder`` interface and the HTTP ``EmbeddingClient``.
- ``cache``: ``CachedEmbedder``, an optional Redis-backed decorator.
"""

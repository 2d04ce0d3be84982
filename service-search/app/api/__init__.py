"""API subpackage for the search service.

The router exposes the hybrid search endpoint. The transport layer stays
thin and delegates to ``HybridSearchManager``.
"""

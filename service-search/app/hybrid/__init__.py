"""Hybrid search components for semantic + lexical ranking.

Includes the ``HybridSearchManager`` which coordinates vector similarity
(semantic) and full-text search (lexical) branches and merges results.
"""

"""Lexical (full-text) index readers.

Primary components:
- ``base``: abstract ``LexicalIndexReader`` interface.
- ``postgres``: PostgreSQL full-text search (``tsvector``/``ts_rank_cd``).
- ``opensearch``: OpenSearch BM25 with highlighted snippets.
- ``factory``: helpers to construct a reader from typed config.
"""

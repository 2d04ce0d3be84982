"""Vector index readers.

Primary components:
- ``base``: abstract ``VectorIndexReader`` interface.
- ``pgvector``: PostgreSQL/pgvector implementation of the interface.
- ``opensearch``: OpenSearch k-NN implementation of the interface.
- ``factory``: helpers to construct a reader from typed config.

Guidance:
- Prefer constructing via ``factory.create_vector_reader`` so runtime
  services remain decoupled from specific backends.
"""

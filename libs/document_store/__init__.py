"""Read-only access to chunks and their owning documents.

The search service hydrates ranked chunk ids through ``DocumentStore`` in a
single batched call per request; it never writes to the store.
"""

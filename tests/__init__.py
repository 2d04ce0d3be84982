"""Tests for the hybrid retrieval service.

Adapters are exercised against in-memory fakes (``tests.fakes``); nothing
here needs a running database, OpenSearch cluster, Redis or embedding
provider.
"""

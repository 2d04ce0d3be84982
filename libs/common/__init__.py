"""Common utilities shared across services.

Includes:
- ``config``: Pydantic-based service configuration from environment variables.
- ``logging``: structured logging setup with structlog.
- ``metrics``: Prometheus metrics helpers for the search service.
- ``errors``: the retrieval error taxonomy shared by every adapter.
- ``db``: lazily created asyncpg pools for the PostgreSQL adapters.

Import pattern:
- from libs.common.config import SearchConfig
- from libs.common.logging import configure_logging
"""

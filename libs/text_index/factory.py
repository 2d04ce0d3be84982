"""Lexical index reader factory."""

from enum import Enum
from typing import Optional

from opensearchpy import OpenSearch
import structlog

from libs.common.config import BaseConfig
from libs.common.db import PostgresPool
from libs.common.errors import ConfigurationError
from libs.common.opensearch import create_opensearch_client_from_config

from .base import LexicalIndexReader
from .opensearch import OpenSearchTextReader
from .postgres import PostgresTextReader

logger = structlog.get_logger("text_index.factory")


class LexicalBackend(Enum):
    """Supported lexical index backends."""
    POSTGRES = "postgres"
    OPENSEARCH = "opensearch"


def create_lexical_reader(
    config: BaseConfig,
    pool: Optional[PostgresPool] = None,
    opensearch_client: Optional[OpenSearch] = None,
) -> LexicalIndexReader:
    """Create a lexical index reader from configuration.

    Parameters
    - config: Service configuration (``rag_lexical_backend`` selects the backend)
    - pool: Shared PostgreSQL pool; created from ``rag_db_dsn`` when omitted
    - opensearch_client: Shared OpenSearch client; created when omitted
    """
    try:
        backend = LexicalBackend(config.rag_lexical_backend)
    except ValueError:
        raise ConfigurationError(f"Unsupported lexical backend: {config.rag_lexical_backend}")

    if backend == LexicalBackend.POSTGRES:
        pool = pool or PostgresPool(
            config.rag_db_dsn,
            pool_size=config.rag_db_pool_size,
            command_timeout=config.rag_db_command_timeout,
        )
        reader: LexicalIndexReader = PostgresTextReader(pool)
    else:
        reader = OpenSearchTextReader(
            opensearch_client or create_opensearch_client_from_config(config),
            index_name=config.rag_opensearch_index,
        )

    logger.info("Created lexical index reader", backend=backend.value)
    return reader

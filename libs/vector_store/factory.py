"""Vector index reader factory.

Centralizes creation of concrete ``VectorIndexReader`` backends so callers
don't depend on implementation details. New readers can be added without
changing call sites.
"""

from enum import Enum
from typing import Optional

from opensearchpy import OpenSearch
import structlog

from libs.common.config import BaseConfig
from libs.common.db import PostgresPool
from libs.common.errors import ConfigurationError
from libs.common.opensearch import create_opensearch_client_from_config

from .base import VectorIndexReader
from .opensearch import OpenSearchVectorReader
from .pgvector import PgVectorReader

logger = structlog.get_logger("vector_store.factory")


class VectorBackend(Enum):
    """Supported vector index backends."""
    PGVECTOR = "pgvector"
    OPENSEARCH = "opensearch"


def create_vector_reader(
    config: BaseConfig,
    pool: Optional[PostgresPool] = None,
    opensearch_client: Optional[OpenSearch] = None,
) -> VectorIndexReader:
    """Create a vector index reader from configuration.

    Parameters
    - config: Service configuration (``rag_vector_backend`` selects the backend)
    - pool: Shared PostgreSQL pool; created from ``rag_db_dsn`` when omitted
    - opensearch_client: Shared OpenSearch client; created when omitted
    """
    try:
        backend = VectorBackend(config.rag_vector_backend)
    except ValueError:
        raise ConfigurationError(f"Unsupported vector backend: {config.rag_vector_backend}")

    if backend == VectorBackend.PGVECTOR:
        pool = pool or PostgresPool(
            config.rag_db_dsn,
            pool_size=config.rag_db_pool_size,
            command_timeout=config.rag_db_command_timeout,
        )
        reader: VectorIndexReader = PgVectorReader(pool, vector_dimension=config.rag_vector_dimension)
    else:
        reader = OpenSearchVectorReader(
            opensearch_client or create_opensearch_client_from_config(config),
            index_name=config.rag_opensearch_index,
            vector_dimension=config.rag_vector_dimension,
            engine=config.rag_opensearch_knn_engine,
        )

    logger.info("Created vector index reader", backend=backend.value)
    return reader

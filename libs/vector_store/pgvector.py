"""PgVector implementation of the vector index reader.

Vectors live in the ``chunks.embedding`` column. Cosine distance is computed
with the ``<=>`` operator and returned as-is; converting it to a similarity
is the ranking layer's job.

Connection management
- The asyncpg pool is shared with the other PostgreSQL adapters
- Every failure is wrapped in ``IndexUnavailable`` for uniform degradation
"""

from typing import List, Optional

import numpy as np
import structlog

from libs.common.db import PostgresPool, build_filter_conditions
from libs.common.errors import IndexUnavailable
from libs.common.models import SearchFilter, VectorHit

from .base import VectorIndexReader

logger = structlog.get_logger("vector_store.pgvector")


class PgVectorReader(VectorIndexReader):
    """PgVector implementation of vector index reader."""

    name = "pgvector"

    def __init__(self, pool: PostgresPool, vector_dimension: Optional[int] = None):
        """Configure a pgvector-backed reader.

        Parameters
        - pool: Shared ``PostgresPool``
        - vector_dimension: Expected dimensionality of query vectors
        """
        super().__init__(vector_dimension)
        self.pool = pool

    async def query_vectors(
        self,
        vector: np.ndarray,
        k: int,
        search_filter: Optional[SearchFilter] = None
    ) -> List[VectorHit]:
        """Search for the nearest chunks using cosine distance."""
        vector_array = self._ensure_vector_dimension(vector)

        params: list = [vector_array]
        conditions = ["c.embedding IS NOT NULL"]
        conditions.extend(build_filter_conditions(search_filter, params))
        params.append(k)

        query = f"""
            SELECT c.id, c.embedding <=> $1 AS distance
            FROM chunks c
            JOIN documents d ON d.id = c.document_id
            WHERE {" AND ".join(conditions)}
            ORDER BY c.embedding <=> $1, c.id
            LIMIT ${len(params)}
        """

        try:
            rows = await self.pool.fetch(query, *params)
        except Exception as e:
            logger.error("Vector similarity search failed", error=str(e))
            raise IndexUnavailable(f"Similarity search failed: {e}", backend=self.name) from e

        hits = [VectorHit(chunk_id=str(row["id"]), distance=float(row["distance"])) for row in rows]

        logger.debug(
            "Vector similarity search completed",
            query_vector_dim=len(vector_array),
            limit=k,
            results_count=len(hits)
        )
        return hits

    async def health_check(self) -> bool:
        """Check if the vector index is healthy."""
        try:
            await self.pool.fetchval("SELECT 1")
            return True
        except Exception as e:
            logger.error("Health check failed", error=str(e))
            return False

    async def close(self) -> None:
        """Close the shared pool."""
        await self.pool.close()

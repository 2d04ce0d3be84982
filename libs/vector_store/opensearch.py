"""OpenSearch k-NN implementation of the vector index reader."""

import asyncio
from typing import Any, Dict, List, Optional

import numpy as np
from opensearchpy import OpenSearch
import structlog

from libs.common.errors import ConfigurationError, IndexUnavailable
from libs.common.models import SearchFilter, VectorHit
from libs.common.opensearch import build_filter_clauses

from .base import VectorIndexReader

logger = structlog.get_logger("vector_store.opensearch")

# cosinesimil score multiplier per engine: d = 2 - scale * score
SCORE_SCALE = {
    "nmslib": 1.0,
    "faiss": 1.0,
    "lucene": 2.0,
}


class OpenSearchVectorReader(VectorIndexReader):
    """OpenSearch-based vector index reader.

    Expects a ``knn_vector`` field using the ``cosinesimil`` space. The score
    reported for that space depends on the k-NN engine backing the field:

    - ``nmslib`` / ``faiss``: ``score = 2 - d``, so ``d = 2 - score``
    - ``lucene``: ``score = (2 - d) / 2``, so ``d = 2 - 2 * score``

    where ``d`` is the cosine distance.
    """

    name = "opensearch_knn"

    def __init__(
        self,
        client: OpenSearch,
        index_name: str = "rag_chunks",
        vector_field: str = "embedding",
        vector_dimension: Optional[int] = None,
        engine: str = "nmslib",
    ):
        """Initialize the reader.

        Args:
            client: Configured OpenSearch client
            index_name: Name of the chunk index
            vector_field: Name of the ``knn_vector`` field
            vector_dimension: Expected dimensionality of query vectors
            engine: k-NN engine of the vector field (``nmslib``, ``faiss`` or ``lucene``)
        """
        if engine not in SCORE_SCALE:
            raise ConfigurationError(f"Unsupported k-NN engine: {engine}")
        super().__init__(vector_dimension)
        self.client = client
        self.index_name = index_name
        self.vector_field = vector_field
        self.engine = engine

    def _to_distance(self, score: float) -> float:
        return min(max(2.0 - SCORE_SCALE[self.engine] * score, 0.0), 2.0)

    def _build_query(
        self,
        vector: np.ndarray,
        k: int,
        search_filter: Optional[SearchFilter]
    ) -> Dict[str, Any]:
        knn: Dict[str, Any] = {"vector": vector.tolist(), "k": k}
        clauses = build_filter_clauses(search_filter)
        if clauses:
            knn["filter"] = {"bool": {"filter": clauses}}

        return {
            "size": k,
            "_source": False,
            "query": {"knn": {self.vector_field: knn}},
        }

    async def query_vectors(
        self,
        vector: np.ndarray,
        k: int,
        search_filter: Optional[SearchFilter] = None
    ) -> List[VectorHit]:
        """Search for the nearest chunks with a k-NN query."""
        vector_array = self._ensure_vector_dimension(vector)
        body = self._build_query(vector_array, k, search_filter)

        try:
            response = await asyncio.to_thread(
                self.client.search, index=self.index_name, body=body
            )
        except Exception as e:
            logger.error("k-NN search failed", index_name=self.index_name, error=str(e))
            raise IndexUnavailable(f"k-NN search failed: {e}", backend=self.name) from e

        hits = []
        for hit in response.get("hits", {}).get("hits", []):
            distance = self._to_distance(float(hit["_score"]))
            hits.append(VectorHit(chunk_id=str(hit["_id"]), distance=distance))

        hits.sort(key=lambda h: h.distance)

        logger.debug(
            "k-NN search completed",
            index_name=self.index_name,
            limit=k,
            results_count=len(hits)
        )
        return hits[:k]

    async def health_check(self) -> bool:
        """Check if the index is reachable."""
        try:
            return bool(await asyncio.to_thread(self.client.indices.exists, index=self.index_name))
        except Exception as e:
            logger.error("OpenSearch health check failed", error=str(e))
            return False

    async def close(self) -> None:
        await asyncio.to_thread(self.client.close)

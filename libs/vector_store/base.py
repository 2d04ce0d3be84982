"""Base vector index reader interface.

Defines the abstract contract the search service depends on, independent of
the backing implementation (pgvector, OpenSearch k-NN, etc.).

All methods are asynchronous to support high‑throughput services.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

import numpy as np

from libs.common.errors import VectorDimensionMismatch
from libs.common.models import SearchFilter, VectorHit


class VectorIndexReader(ABC):
    """Abstract base class for vector index readers.

    Implementations report cosine distance in ``[0, 2]`` (lower is closer),
    return hits ascending by distance, and raise ``IndexUnavailable`` when
    the store cannot be reached or the query fails.
    """

    name: str = "vector"

    def __init__(self, vector_dimension: Optional[int] = None):
        self.vector_dimension = vector_dimension

    @abstractmethod
    async def query_vectors(
        self,
        vector: np.ndarray,
        k: int,
        search_filter: Optional[SearchFilter] = None
    ) -> List[VectorHit]:
        """Return at most ``k`` nearest chunks ascending by cosine distance."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if the vector index is reachable."""
        pass

    async def close(self) -> None:
        """Release connections held by the reader."""
        return None

    def _ensure_vector_dimension(self, vector: np.ndarray) -> np.ndarray:
        """Ensure a query vector matches the configured dimensionality."""
        array = np.asarray(vector, dtype=np.float32)
        if array.ndim != 1:
            raise VectorDimensionMismatch("Query vector must be one-dimensional")

        if self.vector_dimension is not None and array.shape[0] != self.vector_dimension:
            raise VectorDimensionMismatch(
                f"Expected vector dimension {self.vector_dimension}, "
                f"got {array.shape[0]}"
            )
        return array

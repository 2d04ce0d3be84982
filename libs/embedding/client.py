"""HTTP client for the external embedding provider.

Talks to an embedding service exposing ``POST /api/v1/embed`` with the body
``{"items": [{"text": ...}], "model": ...}`` and the response
``{"vectors": [[...]], ...}``.

Failures are classified so callers can choose between backing off and
failing fast:
- ``ProviderRateLimited`` for HTTP 429 (``retry_after`` from the header)
- ``ProviderUnavailable`` for transport errors, auth failures, 5xx and
  malformed payloads

The client never retries; that is a caller policy.
"""

from abc import ABC, abstractmethod
from typing import Optional

import httpx
import numpy as np
import structlog

from libs.common.config import BaseConfig
from libs.common.errors import (
    EmbeddingDimensionMismatch,
    ProviderRateLimited,
    ProviderUnavailable,
)

logger = structlog.get_logger("embedding.client")


class Embedder(ABC):
    """Anything that turns a query string into a fixed-dimension vector."""

    dimension: int

    @abstractmethod
    async def embed(self, text: str) -> np.ndarray:
        """Embed ``text`` into a float32 vector of ``dimension`` floats."""
        pass

    async def close(self) -> None:
        return None


def _parse_retry_after(value: Optional[str]) -> Optional[float]:
    if value is None:
        return None
    try:
        return max(float(value), 0.0)
    except ValueError:
        return None


class EmbeddingClient(Embedder):
    """Embedding provider client backed by ``httpx.AsyncClient``."""

    def __init__(
        self,
        base_url: str,
        dimension: int,
        model: str = "default",
        timeout: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """Create a client.

        Parameters
        - base_url: Root URL of the embedding service
        - dimension: Vector dimensionality the indexes were built with
        - model: Model name forwarded to the provider
        - timeout: Per-request timeout in seconds
        - http_client: Optional preconfigured client (tests, shared pools)
        """
        self.base_url = base_url.rstrip("/")
        self.dimension = dimension
        self.model = model
        self._owns_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(timeout=timeout)

    async def embed(self, text: str) -> np.ndarray:
        try:
            response = await self.http_client.post(
                f"{self.base_url}/api/v1/embed",
                json={"items": [{"text": text}], "model": self.model},
            )
        except httpx.HTTPError as e:
            logger.warning("Embedding provider unreachable", error=str(e))
            raise ProviderUnavailable(f"Embedding provider unreachable: {e}") from e

        if response.status_code == 429:
            retry_after = _parse_retry_after(response.headers.get("Retry-After"))
            logger.warning("Embedding provider rate limited", retry_after=retry_after)
            raise ProviderRateLimited("Embedding provider rate limited", retry_after=retry_after)

        if response.status_code != 200:
            logger.warning("Embedding provider error", status_code=response.status_code)
            raise ProviderUnavailable(
                f"Embedding service returned status {response.status_code}"
            )

        try:
            vectors = response.json().get("vectors") or []
            vector = np.asarray(vectors[0], dtype=np.float32)
        except (ValueError, TypeError, AttributeError, IndexError) as e:
            raise ProviderUnavailable(f"Malformed embedding response: {e}") from e

        if vector.ndim != 1 or vector.shape[0] != self.dimension:
            raise EmbeddingDimensionMismatch(
                f"Expected embedding dimension {self.dimension}, got {vector.shape}"
            )
        return vector

    async def close(self) -> None:
        if self._owns_client:
            await self.http_client.aclose()


def create_embedding_client(config: BaseConfig) -> EmbeddingClient:
    """Create an embedding client from configuration."""
    return EmbeddingClient(
        base_url=config.rag_embedding_service_url,
        dimension=config.rag_vector_dimension,
        model=config.rag_embedding_model,
        timeout=config.rag_embedding_timeout,
    )

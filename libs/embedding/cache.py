"""Redis cache for query embeddings.

``CachedEmbedder`` decorates any ``Embedder``. Repeated queries skip the
provider round trip; cache outages only cost latency, never correctness, so
Redis errors are logged and the call falls through to the wrapped embedder.
"""

import hashlib
import json
import time
from typing import Optional

import numpy as np
import redis.asyncio as redis
import structlog

from libs.common.metrics import MetricsCollector

from .client import Embedder

logger = structlog.get_logger("embedding.cache")


class CachedEmbedder(Embedder):
    """Embedding cache decorator backed by Redis."""

    def __init__(
        self,
        inner: Embedder,
        redis_client: "redis.Redis",
        ttl_seconds: int = 3600,
        namespace: str = "default",
        metrics: Optional[MetricsCollector] = None,
    ):
        self.inner = inner
        self.dimension = inner.dimension
        self.redis_client = redis_client
        self.ttl_seconds = ttl_seconds
        self.namespace = namespace
        self.metrics = metrics
        self.embedding_prefix = "rag:embedding:"

    def _cache_key(self, text: str) -> str:
        digest = hashlib.md5(f"{self.namespace}:{text}".encode()).hexdigest()
        return f"{self.embedding_prefix}{digest}"

    async def _get_cached(self, key: str) -> Optional[np.ndarray]:
        try:
            cached_data = await self.redis_client.get(key)
        except Exception as e:
            logger.warning("Failed to get cached query embedding", error=str(e))
            return None

        if not cached_data:
            return None

        try:
            vector = np.asarray(json.loads(cached_data)["embedding"], dtype=np.float32)
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("Discarding unreadable cached embedding", error=str(e))
            return None

        if vector.shape != (self.dimension,):
            logger.warning("Discarding cached embedding with wrong dimension", shape=vector.shape)
            return None
        return vector

    async def _store(self, key: str, text: str, vector: np.ndarray) -> None:
        cache_data = {
            "query": text[:200],
            "embedding": vector.tolist(),
            "cached_at": time.time(),
        }
        try:
            await self.redis_client.setex(key, self.ttl_seconds, json.dumps(cache_data))
        except Exception as e:
            logger.warning("Failed to cache query embedding", error=str(e))

    async def embed(self, text: str) -> np.ndarray:
        key = self._cache_key(text)
        cached = await self._get_cached(key)
        if cached is not None:
            logger.debug("Query embedding cache hit", query=text[:50])
            if self.metrics:
                self.metrics.record_cache_hit("query_embedding")
            return cached

        if self.metrics:
            self.metrics.record_cache_miss("query_embedding")
        vector = await self.inner.embed(text)
        await self._store(key, text, vector)
        return vector

    async def close(self) -> None:
        await self.inner.close()
        await self.redis_client.aclose()

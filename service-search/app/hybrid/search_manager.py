"""Search manager for hybrid semantic and lexical search.

Combines vector similarity (semantic) with full‑text ranking (lexical) and
merges results with weighted score fusion over per-branch min-max
normalized scores.

Request flow
1. Validate the request; malformed requests never reach a reader
2. Run the semantic branch (embed, then k-NN) and the lexical branch
   concurrently, each under its own timeout, each over-fetching
   ``limit * overfetch_factor`` candidates to leave headroom for dedup
3. Absorb recoverable branch failures; fail only when every queried branch
   failed (``RetrievalUnavailable``) or timed out (``RetrievalTimeout``)
4. Normalize, fuse, hydrate through one batched document-store call,
   truncate to ``limit``
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

import redis.asyncio as redis
import structlog

from libs.common.config import SearchConfig
from libs.common.db import PostgresPool
from libs.common.errors import (
    IndexUnavailable,
    ProviderError,
    RetrievalTimeout,
    RetrievalUnavailable,
)
from libs.common.metrics import MetricsCollector
from libs.common.models import LexicalHit, VectorHit
from libs.common.opensearch import create_opensearch_client_from_config
from libs.document_store.base import DocumentStore
from libs.document_store.postgres import PostgresDocumentStore
from libs.embedding.cache import CachedEmbedder
from libs.embedding.client import Embedder, create_embedding_client
from libs.text_index.base import LexicalIndexReader
from libs.text_index.factory import create_lexical_reader
from libs.vector_store.base import VectorIndexReader
from libs.vector_store.factory import create_vector_reader

from ..ranking.fusion import FusedCandidate, WeightedHybridFusion, create_fusion_algorithm
from ..ranking.normalize import distances_to_similarities, normalize
from .models import (
    BranchReport,
    BranchStatus,
    RetrievalRequest,
    ScoredResult,
    SearchDiagnostics,
)

logger = structlog.get_logger("search_service.search_manager")

SEMANTIC_BRANCH = "semantic"
LEXICAL_BRANCH = "lexical"

# Failures that degrade a single branch instead of the whole request
RECOVERABLE_ERRORS = (ProviderError, IndexUnavailable)


class HybridSearchManager:
    """Manages hybrid search operations.

    Responsibilities
    - Fan out to the semantic and lexical branches concurrently
    - Absorb per-branch failures and timeouts
    - Merge, rank, hydrate and bound the result list

    The manager keeps no per-request state, so one instance can serve any
    number of concurrent searches.
    """

    def __init__(
        self,
        embedder: Embedder,
        vector_reader: VectorIndexReader,
        lexical_reader: LexicalIndexReader,
        document_store: DocumentStore,
        overfetch_factor: int = 3,
        branch_timeout: float = 5.0,
        fusion: Optional[WeightedHybridFusion] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        """Construct a search manager.

        Parameters
        - embedder: Query embedding provider for the semantic branch
        - vector_reader / lexical_reader: Index readers for the two branches
        - document_store: Batched chunk + document lookup used for hydration
        - overfetch_factor: Per-branch candidate multiplier (>= 1)
        - branch_timeout: Seconds each branch may take (embedding included)
        - fusion: Fusion algorithm, defaults to ``WeightedHybridFusion``
        - metrics: Optional collector for branch failure counters
        """
        if overfetch_factor < 1:
            raise ValueError("overfetch_factor must be >= 1")
        if branch_timeout <= 0:
            raise ValueError("branch_timeout must be positive")

        self.embedder = embedder
        self.vector_reader = vector_reader
        self.lexical_reader = lexical_reader
        self.document_store = document_store
        self.overfetch_factor = overfetch_factor
        self.branch_timeout = branch_timeout
        self.fusion = fusion or create_fusion_algorithm()
        self.metrics = metrics

    def candidate_count(self, limit: int) -> int:
        """Per-branch fan-out for a requested ``limit``."""
        return max(limit * self.overfetch_factor, limit)

    async def search(self, request: RetrievalRequest) -> List[ScoredResult]:
        """Perform hybrid search.

        Returns at most ``request.limit`` results ordered by combined score.
        Which branch (if any) degraded is not reported; use
        ``search_with_diagnostics`` for that.
        """
        results, _ = await self.search_with_diagnostics(request)
        return results

    async def search_with_diagnostics(
        self,
        request: RetrievalRequest
    ) -> Tuple[List[ScoredResult], SearchDiagnostics]:
        """Perform hybrid search and report per-branch outcomes."""
        request.validate()
        start_time = time.perf_counter()
        k = self.candidate_count(request.limit)

        (semantic_report, vector_hits), (lexical_report, lexical_hits) = await self._fan_out(request, k)
        reports = [semantic_report, lexical_report]
        self._raise_if_all_failed(reports, request)

        semantic_results = self._normalize_semantic(vector_hits or [])
        lexical_results = self._normalize_lexical(lexical_hits or [])

        fused = self.fusion.fuse_results(
            semantic_results=semantic_results,
            lexical_results=lexical_results,
            weights=request.weights,
            semantic_threshold=request.threshold,
        )

        results, dropped = await self._hydrate(fused, request.limit)

        diagnostics = SearchDiagnostics(
            branches=reports,
            merged_candidates=len(fused),
            dropped_missing=dropped,
            latency_ms=(time.perf_counter() - start_time) * 1000,
        )

        logger.info(
            "Search completed",
            query=request.query[:50],
            limit=request.limit,
            results_count=len(results),
            merged_candidates=len(fused),
            degraded=diagnostics.degraded,
            latency_ms=round(diagnostics.latency_ms, 2)
        )
        return results, diagnostics

    async def _fan_out(
        self,
        request: RetrievalRequest,
        k: int
    ) -> Tuple[Tuple[BranchReport, Optional[List[VectorHit]]], Tuple[BranchReport, Optional[List[LexicalHit]]]]:
        """Run both branches concurrently and wait for both to settle."""

        async def semantic() -> List[VectorHit]:
            vector = await self.embedder.embed(request.query)
            return await self.vector_reader.query_vectors(vector, k, request.filter)

        async def lexical() -> List[LexicalHit]:
            return await self.lexical_reader.query_text(request.query, k, request.filter)

        outcomes = await asyncio.gather(
            self._run_branch(SEMANTIC_BRANCH, semantic, enabled=request.weights.semantic_weight > 0),
            self._run_branch(LEXICAL_BRANCH, lexical, enabled=request.weights.text_weight > 0),
            return_exceptions=True,
        )

        # Anything that escaped _run_branch is not a branch-level failure
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome

        return outcomes[0], outcomes[1]

    async def _run_branch(
        self,
        branch: str,
        operation: Callable[[], Awaitable[Sequence[Any]]],
        enabled: bool = True
    ) -> Tuple[BranchReport, Optional[List[Any]]]:
        """Execute one branch under its timeout, absorbing recoverable errors."""
        if not enabled:
            return BranchReport(branch=branch, status=BranchStatus.SKIPPED), None

        start_time = time.perf_counter()
        try:
            hits = list(await asyncio.wait_for(operation(), timeout=self.branch_timeout))
        except asyncio.TimeoutError:
            latency_ms = (time.perf_counter() - start_time) * 1000
            logger.warning(
                "Retrieval branch timed out",
                branch=branch,
                timeout_seconds=self.branch_timeout
            )
            self._record_failure(branch, "timeout")
            return BranchReport(
                branch=branch,
                status=BranchStatus.TIMEOUT,
                latency_ms=latency_ms,
                error=f"timed out after {self.branch_timeout}s",
            ), None
        except RECOVERABLE_ERRORS as e:
            latency_ms = (time.perf_counter() - start_time) * 1000
            logger.warning(
                "Retrieval branch failed, continuing without it",
                branch=branch,
                error_type=type(e).__name__,
                error=str(e)
            )
            self._record_failure(branch, type(e).__name__)
            return BranchReport(
                branch=branch,
                status=BranchStatus.FAILED,
                latency_ms=latency_ms,
                error=str(e),
            ), None

        latency_ms = (time.perf_counter() - start_time) * 1000
        logger.debug("Retrieval branch completed", branch=branch, results_count=len(hits), latency_ms=latency_ms)
        return BranchReport(
            branch=branch,
            status=BranchStatus.OK,
            candidates=len(hits),
            latency_ms=latency_ms,
        ), hits

    def _raise_if_all_failed(self, reports: List[BranchReport], request: RetrievalRequest) -> None:
        """Surface a total failure; partial failures are absorbed."""
        active = [r for r in reports if r.status is not BranchStatus.SKIPPED]
        if any(r.status is BranchStatus.OK for r in active):
            return

        details = {r.branch: r.error for r in active}
        if all(r.status is BranchStatus.TIMEOUT for r in active):
            logger.error("All retrieval branches timed out", query=request.query[:50], branches=details)
            raise RetrievalTimeout(f"All retrieval branches timed out: {details}")

        logger.error("All retrieval branches failed", query=request.query[:50], branches=details)
        raise RetrievalUnavailable(f"All retrieval branches failed: {details}")

    def _record_failure(self, branch: str, reason: str) -> None:
        if self.metrics:
            self.metrics.record_branch_failure(branch, reason)

    @staticmethod
    def _normalize_semantic(hits: List[VectorHit]) -> List[Tuple[str, float]]:
        similarities = distances_to_similarities([hit.distance for hit in hits])
        return [(hit.chunk_id, score) for hit, score in zip(hits, normalize(similarities))]

    @staticmethod
    def _normalize_lexical(hits: List[LexicalHit]) -> List[Tuple[str, float, Optional[str]]]:
        scores = normalize([hit.score for hit in hits])
        return [(hit.chunk_id, score, hit.snippet) for hit, score in zip(hits, scores)]

    async def _hydrate(
        self,
        fused: List[FusedCandidate],
        limit: int
    ) -> Tuple[List[ScoredResult], int]:
        """Attach chunks and document refs with one batched lookup."""
        if not fused:
            return [], 0

        try:
            found = await self.document_store.fetch_chunks([c.chunk_id for c in fused])
        except IndexUnavailable as e:
            logger.error("Result hydration failed", error=str(e))
            raise RetrievalUnavailable(f"Document store unavailable: {e}") from e

        results: List[ScoredResult] = []
        dropped = 0
        for candidate in fused:
            entry = found.get(candidate.chunk_id)
            if entry is None:
                dropped += 1
                continue
            chunk, document = entry
            results.append(ScoredResult(
                chunk=chunk,
                document=document,
                combined_score=candidate.combined_score,
                matched_via=candidate.matched_via,
                semantic_score=candidate.semantic_score,
                lexical_score=candidate.lexical_score,
                snippet=candidate.snippet,
            ))
            if len(results) >= limit:
                break

        if dropped:
            logger.info("Dropped candidates missing from document store", dropped=dropped)
        return results, dropped

    async def health_check(self) -> Dict[str, bool]:
        """Check reachability of each dependency."""
        vector_ok, lexical_ok, documents_ok = await asyncio.gather(
            self.vector_reader.health_check(),
            self.lexical_reader.health_check(),
            self.document_store.health_check(),
        )
        return {
            "vector_index": vector_ok,
            "lexical_index": lexical_ok,
            "document_store": documents_ok,
        }

    async def cleanup(self) -> None:
        """Cleanup resources."""
        for resource in (self.embedder, self.vector_reader, self.lexical_reader, self.document_store):
            try:
                await resource.close()
            except Exception as e:
                logger.error("Failed to close resource", resource=type(resource).__name__, error=str(e))

        logger.info("Search manager cleanup completed")


def create_search_manager(
    config: SearchConfig,
    metrics: Optional[MetricsCollector] = None
) -> HybridSearchManager:
    """Wire a ``HybridSearchManager`` from configuration.

    PostgreSQL-backed adapters share one pool; OpenSearch-backed adapters
    share one client. The Redis embedding cache is added when
    ``rag_search_embedding_cache_ttl`` is positive.
    """
    pool = PostgresPool(
        config.rag_db_dsn,
        pool_size=config.rag_db_pool_size,
        command_timeout=config.rag_db_command_timeout,
    )

    opensearch_client = None
    if "opensearch" in (config.rag_vector_backend, config.rag_lexical_backend):
        opensearch_client = create_opensearch_client_from_config(config)

    embedder: Embedder = create_embedding_client(config)
    if config.rag_search_embedding_cache_ttl > 0:
        embedder = CachedEmbedder(
            embedder,
            redis.from_url(config.rag_redis_url),
            ttl_seconds=config.rag_search_embedding_cache_ttl,
            namespace=config.rag_embedding_model,
            metrics=metrics,
        )

    return HybridSearchManager(
        embedder=embedder,
        vector_reader=create_vector_reader(config, pool=pool, opensearch_client=opensearch_client),
        lexical_reader=create_lexical_reader(config, pool=pool, opensearch_client=opensearch_client),
        document_store=PostgresDocumentStore(pool),
        overfetch_factor=config.rag_search_overfetch_factor,
        branch_timeout=config.rag_search_branch_timeout_seconds,
        metrics=metrics,
    )

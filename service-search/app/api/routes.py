"""API routes for search service."""

import time
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field
import structlog

from libs.common.config import SearchConfig
from libs.common.errors import InvalidRequest, RetrievalTimeout, RetrievalUnavailable
from libs.common.logging import log_performance
from libs.common.metrics import MetricsCollector
from libs.common.models import DateRange, SearchFilter

from ..hybrid.models import RetrievalRequest, ScoredResult, SearchDiagnostics, SearchWeights
from ..hybrid.search_manager import HybridSearchManager
from ..intelligence.query_router import QueryMode, classify_query, weights_for_mode
from ..ranking.budget import ContextBudgeter

logger = structlog.get_logger("search_service.api")

router = APIRouter()


class SearchFilterModel(BaseModel):
    """Filter applied identically to both retrieval branches."""
    category: Optional[str] = Field(None, description="Document category")
    tags: List[str] = Field(default_factory=list, description="Match documents with any of these tags")
    uploaded_after: Optional[datetime] = Field(None, description="Inclusive lower bound on upload time")
    uploaded_before: Optional[datetime] = Field(None, description="Inclusive upper bound on upload time")

    def to_filter(self) -> SearchFilter:
        date_range = None
        if self.uploaded_after or self.uploaded_before:
            try:
                date_range = DateRange(start=self.uploaded_after, end=self.uploaded_before)
            except ValueError as e:
                raise InvalidRequest(str(e))
        return SearchFilter(category=self.category, tags=frozenset(self.tags), date_range=date_range)


class SearchRequest(BaseModel):
    """Request model for search endpoint."""
    query: str = Field(..., description="Search query, passed through to the lexical engine")
    limit: Optional[int] = Field(None, description="Maximum number of results")
    filter: Optional[SearchFilterModel] = Field(None, description="Search filters")
    mode: str = Field("hybrid", description="hybrid, auto, semantic or lexical")
    semantic_weight: Optional[float] = Field(None, description="Weight of the semantic branch")
    text_weight: Optional[float] = Field(None, description="Weight of the lexical branch")
    threshold: Optional[float] = Field(None, description="Minimum normalized semantic score")
    max_chunks: Optional[int] = Field(None, description="Context budget: maximum chunks")
    max_tokens: Optional[int] = Field(None, description="Context budget: maximum tokens")
    diagnostics: bool = Field(False, description="Include per-branch diagnostics")


class DocumentModel(BaseModel):
    """Owning document metadata."""
    document_id: str
    filename: str
    title: Optional[str] = None
    category: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    uploaded_at: Optional[datetime] = None


class SearchResult(BaseModel):
    """Search result model."""
    chunk_id: str = Field(..., description="Chunk ID")
    document_id: str = Field(..., description="Owning document ID")
    index: int = Field(..., description="Chunk position within its document")
    text: str = Field(..., description="Chunk text")
    token_count: int = Field(..., description="Approximate token count")
    combined_score: float = Field(..., description="Combined relevance in [0, 1]")
    semantic_score: Optional[float] = Field(None, description="Normalized semantic score")
    lexical_score: Optional[float] = Field(None, description="Normalized lexical score")
    matched_via: str = Field(..., description="semantic, lexical or both")
    snippet: Optional[str] = Field(None, description="Highlighted lexical snippet")
    document: Optional[DocumentModel] = Field(None, description="Document metadata")


class SearchResponse(BaseModel):
    """Response model for search endpoint."""
    results: List[SearchResult] = Field(..., description="Search results")
    total: int = Field(..., description="Total number of results")
    query: str = Field(..., description="Original query")
    mode: str = Field(..., description="Retrieval mode used")
    latency_ms: float = Field(..., description="Search latency in milliseconds")
    diagnostics: Optional[Dict[str, Any]] = Field(None, description="Per-branch diagnostics")


def get_search_manager(request: Request) -> HybridSearchManager:
    """Get search manager from application state."""
    return request.app.state.search_manager


def get_metrics(request: Request) -> MetricsCollector:
    """Get metrics collector from application state."""
    return request.app.state.metrics_collector


def get_search_config(request: Request) -> SearchConfig:
    """Get search configuration from application state."""
    return request.app.state.config


def get_budgeter(request: Request) -> ContextBudgeter:
    """Get context budgeter from application state."""
    return request.app.state.budgeter


def resolve_mode(requested: str, query: str, explicit_weights: bool = False) -> QueryMode:
    """Resolve ``auto`` through the query router; validate explicit modes.

    Caller-supplied weights take precedence over routing, so ``auto`` with
    weights resolves to ``hybrid`` and a single-source mode with weights is
    rejected as contradictory.
    """
    if requested == "auto":
        return QueryMode.HYBRID if explicit_weights else classify_query(query)
    try:
        mode = QueryMode(requested)
    except ValueError:
        raise InvalidRequest(f"Unknown search mode: {requested}")
    if explicit_weights and mode is not QueryMode.HYBRID:
        raise InvalidRequest(f"Branch weights cannot be combined with {mode.value} mode")
    return mode


def to_search_result(result: ScoredResult) -> SearchResult:
    document = None
    if result.document is not None:
        document = DocumentModel(
            document_id=result.document.document_id,
            filename=result.document.filename,
            title=result.document.title,
            category=result.document.category,
            tags=sorted(result.document.tags),
            uploaded_at=result.document.uploaded_at,
        )
    return SearchResult(
        chunk_id=result.chunk.id,
        document_id=result.chunk.document_id,
        index=result.chunk.index,
        text=result.chunk.text,
        token_count=result.chunk.token_count,
        combined_score=result.combined_score,
        semantic_score=result.semantic_score,
        lexical_score=result.lexical_score,
        matched_via=result.matched_via.value,
        snippet=result.snippet,
        document=document,
    )


def diagnostics_payload(diagnostics: SearchDiagnostics) -> Dict[str, Any]:
    return {
        "degraded": diagnostics.degraded,
        "merged_candidates": diagnostics.merged_candidates,
        "dropped_missing": diagnostics.dropped_missing,
        "branches": [
            {
                "branch": b.branch,
                "status": b.status.value,
                "candidates": b.candidates,
                "latency_ms": round(b.latency_ms, 2),
                "error": b.error,
            }
            for b in diagnostics.branches
        ],
    }


@router.post("/search", response_model=SearchResponse)
async def search(
    request: SearchRequest,
    search_manager: HybridSearchManager = Depends(get_search_manager),
    metrics_collector: MetricsCollector = Depends(get_metrics),
    config: SearchConfig = Depends(get_search_config),
    budgeter: ContextBudgeter = Depends(get_budgeter),
):
    """Perform hybrid search."""
    start_time = time.time()
    mode_label = request.mode

    try:
        explicit_weights = request.semantic_weight is not None or request.text_weight is not None
        mode = resolve_mode(request.mode, request.query, explicit_weights)
        mode_label = mode.value

        default_weights = SearchWeights(
            semantic_weight=config.rag_search_semantic_weight if request.semantic_weight is None else request.semantic_weight,
            text_weight=config.rag_search_text_weight if request.text_weight is None else request.text_weight,
        )
        retrieval_request = RetrievalRequest(
            query=request.query,
            limit=config.rag_search_default_limit if request.limit is None else request.limit,
            filter=request.filter.to_filter() if request.filter else None,
            weights=weights_for_mode(mode, default_weights),
            threshold=request.threshold,
        )

        results, diagnostics = await search_manager.search_with_diagnostics(retrieval_request)

        results = budgeter.apply(results, max_chunks=request.max_chunks, max_tokens=request.max_tokens)

    except InvalidRequest as e:
        logger.info("Rejected invalid search request", error=str(e))
        metrics_collector.record_search(mode=mode_label, status="invalid", duration=time.time() - start_time)
        raise HTTPException(status_code=400, detail=str(e))
    except RetrievalTimeout as e:
        metrics_collector.record_search(mode=mode_label, status="timeout", duration=time.time() - start_time)
        raise HTTPException(status_code=504, detail=str(e))
    except RetrievalUnavailable as e:
        metrics_collector.record_search(mode=mode_label, status="unavailable", duration=time.time() - start_time)
        raise HTTPException(status_code=503, detail=str(e))

    duration = time.time() - start_time
    metrics_collector.record_search(mode=mode_label, status="ok", duration=duration, result_count=len(results))
    log_performance("hybrid_search", duration * 1000, mode=mode_label, results_count=len(results))

    return SearchResponse(
        results=[to_search_result(r) for r in results],
        total=len(results),
        query=request.query,
        mode=mode_label,
        latency_ms=duration * 1000,
        diagnostics=diagnostics_payload(diagnostics) if request.diagnostics else None,
    )

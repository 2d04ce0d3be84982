"""Tests for the hybrid search manager."""

import pytest

from app.hybrid.models import BranchStatus, MatchedVia, RetrievalRequest, SearchWeights
from app.hybrid.search_manager import HybridSearchManager
from libs.common.errors import (
    EmbeddingDimensionMismatch,
    IndexUnavailable,
    InvalidRequest,
    ProviderRateLimited,
    ProviderUnavailable,
    RetrievalTimeout,
    RetrievalUnavailable,
)
from libs.common.models import SearchFilter

from tests.fakes import FakeDocumentStore, FakeEmbedder, FakeLexicalReader, FakeVectorReader, make_chunk


def build_manager(chunks, embedder=None, vector=None, lexical=None, store=None, **kwargs):
    return HybridSearchManager(
        embedder=embedder or FakeEmbedder(),
        vector_reader=vector or FakeVectorReader([("c1", 0.1), ("c2", 0.3), ("c3", 0.5)]),
        lexical_reader=lexical or FakeLexicalReader([("c1", 9.0), ("c4", 4.0), ("c5", 1.0)]),
        document_store=store or FakeDocumentStore(chunks),
        **kwargs
    )


@pytest.mark.asyncio
async def test_hybrid_search_merges_branches(chunks):
    """Both branches contribute and shared ids are deduplicated."""
    manager = build_manager(chunks)
    results = await manager.search(RetrievalRequest(query="quarterly revenue", limit=8))

    ids = [r.id for r in results]
    assert len(ids) == len(set(ids)) == 5
    assert ids[0] == "c1"
    assert results[0].matched_via is MatchedVia.BOTH
    assert results[0].combined_score == pytest.approx(1.0)
    assert results[0].document.filename == "doc-1.pdf"
    assert results[0].snippet == "<b>c1</b>"
    scores = [r.combined_score for r in results]
    assert scores == sorted(scores, reverse=True)


@pytest.mark.asyncio
async def test_results_bounded_by_limit(chunks):
    manager = build_manager(chunks)
    results = await manager.search(RetrievalRequest(query="revenue", limit=2))
    assert len(results) == 2


@pytest.mark.asyncio
async def test_shared_chunk_is_merged_once():
    """A chunk found by both branches appears once with both scores."""
    manager = build_manager(
        {cid: make_chunk(cid) for cid in ("A", "B", "C")},
        vector=FakeVectorReader([("A", 0.1), ("B", 0.3)]),
        lexical=FakeLexicalReader([("B", 8.0), ("C", 5.0)]),
    )
    results = await manager.search(RetrievalRequest(
        query="refund", limit=3, weights=SearchWeights(0.5, 0.5)
    ))

    assert [r.id for r in results] == ["A", "B", "C"]
    a, b, c = results
    assert a.matched_via is MatchedVia.SEMANTIC
    assert a.semantic_score == pytest.approx(1.0)
    assert a.lexical_score is None
    assert a.combined_score == pytest.approx(1.0)
    assert b.matched_via is MatchedVia.BOTH
    assert b.semantic_score == pytest.approx(0.0)
    assert b.lexical_score == pytest.approx(1.0)
    assert b.combined_score == pytest.approx(0.5)
    assert c.matched_via is MatchedVia.LEXICAL
    assert c.combined_score == pytest.approx(0.0)


@pytest.mark.asyncio
@pytest.mark.parametrize("limit, expected", [(3, 3), (10, 4)])
async def test_disjoint_branches_bounded_by_limit(chunks, limit, expected):
    """Results never exceed the limit or the number of distinct candidates."""
    manager = build_manager(
        chunks,
        vector=FakeVectorReader([("c1", 0.1), ("c2", 0.2)]),
        lexical=FakeLexicalReader([("c3", 3.0), ("c4", 1.0)]),
    )
    results = await manager.search(RetrievalRequest(query="refund", limit=limit))

    ids = [r.id for r in results]
    assert len(ids) == len(set(ids)) == expected
    assert set(ids) <= {"c1", "c2", "c3", "c4"}


@pytest.mark.asyncio
async def test_overfetch_and_filter_reach_both_readers(chunks):
    vector = FakeVectorReader([("c1", 0.1)])
    lexical = FakeLexicalReader([("c2", 1.0)])
    manager = build_manager(chunks, vector=vector, lexical=lexical, overfetch_factor=4)
    search_filter = SearchFilter(category="reports")

    await manager.search(RetrievalRequest(query="revenue", limit=5, filter=search_filter))

    assert vector.calls == [(20, search_filter)]
    assert lexical.calls == [("revenue", 20, search_filter)]


@pytest.mark.asyncio
async def test_hydration_is_one_batched_call(chunks):
    store = FakeDocumentStore(chunks)
    manager = build_manager(chunks, store=store)
    await manager.search(RetrievalRequest(query="revenue", limit=3))
    assert len(store.calls) == 1
    assert len(store.calls[0]) == 5


@pytest.mark.asyncio
async def test_semantic_failure_degrades_to_lexical(chunks, metrics):
    """Provider outage on the semantic branch still returns lexical results."""
    manager = build_manager(chunks, embedder=FakeEmbedder(error=ProviderUnavailable("down")), metrics=metrics)
    results, diagnostics = await manager.search_with_diagnostics(RetrievalRequest(query="revenue"))

    assert [r.id for r in results] == ["c1", "c4", "c5"]
    assert all(r.matched_via is MatchedVia.LEXICAL for r in results)
    assert diagnostics.degraded
    assert diagnostics.branches[0].status is BranchStatus.FAILED
    assert diagnostics.branches[1].status is BranchStatus.OK
    assert 'reason="ProviderUnavailable"' in metrics.get_metrics()


@pytest.mark.asyncio
async def test_lexical_failure_degrades_to_semantic(chunks):
    lexical = FakeLexicalReader(error=IndexUnavailable("fts down", backend="fake_lexical"))
    manager = build_manager(chunks, lexical=lexical)
    results = await manager.search(RetrievalRequest(query="revenue"))

    assert [r.id for r in results] == ["c1", "c2", "c3"]
    assert all(r.matched_via is MatchedVia.SEMANTIC for r in results)


@pytest.mark.asyncio
async def test_rate_limit_is_absorbed(chunks):
    manager = build_manager(chunks, embedder=FakeEmbedder(error=ProviderRateLimited("429", retry_after=1.0)))
    results = await manager.search(RetrievalRequest(query="revenue"))
    assert results


@pytest.mark.asyncio
async def test_all_branches_failed(chunks):
    manager = build_manager(
        chunks,
        vector=FakeVectorReader(error=IndexUnavailable("vector down")),
        lexical=FakeLexicalReader(error=IndexUnavailable("fts down")),
    )
    with pytest.raises(RetrievalUnavailable):
        await manager.search(RetrievalRequest(query="revenue"))


@pytest.mark.asyncio
async def test_all_branches_timed_out(chunks):
    manager = build_manager(
        chunks,
        vector=FakeVectorReader([("c1", 0.1)], delay=1.0),
        lexical=FakeLexicalReader([("c2", 1.0)], delay=1.0),
        branch_timeout=0.05,
    )
    with pytest.raises(RetrievalTimeout):
        await manager.search(RetrievalRequest(query="revenue"))


@pytest.mark.asyncio
async def test_mixed_timeout_and_failure_is_unavailable(chunks):
    manager = build_manager(
        chunks,
        vector=FakeVectorReader([("c1", 0.1)], delay=1.0),
        lexical=FakeLexicalReader(error=IndexUnavailable("fts down")),
        branch_timeout=0.05,
    )
    with pytest.raises(RetrievalUnavailable):
        await manager.search(RetrievalRequest(query="revenue"))


@pytest.mark.asyncio
async def test_slow_branch_times_out_alone(chunks):
    manager = build_manager(
        chunks,
        embedder=FakeEmbedder(delay=1.0),
        branch_timeout=0.05,
    )
    results, diagnostics = await manager.search_with_diagnostics(RetrievalRequest(query="revenue"))
    assert [r.id for r in results] == ["c1", "c4", "c5"]
    assert diagnostics.branches[0].status is BranchStatus.TIMEOUT


@pytest.mark.asyncio
async def test_dimension_mismatch_is_not_absorbed(chunks):
    manager = build_manager(chunks, embedder=FakeEmbedder(error=EmbeddingDimensionMismatch("768 != 4")))
    with pytest.raises(EmbeddingDimensionMismatch):
        await manager.search(RetrievalRequest(query="revenue"))


@pytest.mark.asyncio
@pytest.mark.parametrize("request_kwargs", [
    {"query": ""},
    {"query": "   "},
    {"query": "revenue", "limit": 0},
    {"query": "revenue", "weights": SearchWeights(0.0, 0.0)},
    {"query": "revenue", "weights": SearchWeights(1.5, 0.5)},
    {"query": "revenue", "threshold": 1.5},
])
async def test_invalid_request_never_reaches_readers(chunks, request_kwargs):
    embedder = FakeEmbedder()
    vector = FakeVectorReader([("c1", 0.1)])
    lexical = FakeLexicalReader([("c1", 1.0)])
    manager = build_manager(chunks, embedder=embedder, vector=vector, lexical=lexical)

    with pytest.raises(InvalidRequest):
        await manager.search(RetrievalRequest(**request_kwargs))

    assert embedder.calls == []
    assert vector.calls == []
    assert lexical.calls == []


@pytest.mark.asyncio
async def test_zero_weight_skips_branch(chunks):
    embedder = FakeEmbedder()
    manager = build_manager(chunks, embedder=embedder)
    results, diagnostics = await manager.search_with_diagnostics(
        RetrievalRequest(query="INV-2024-001", weights=SearchWeights(0.0, 1.0))
    )

    assert embedder.calls == []
    assert diagnostics.branches[0].status is BranchStatus.SKIPPED
    assert not diagnostics.degraded
    assert [r.id for r in results] == ["c1", "c4", "c5"]


@pytest.mark.asyncio
async def test_only_enabled_branch_failing_is_total_failure(chunks):
    lexical = FakeLexicalReader(error=IndexUnavailable("fts down"))
    manager = build_manager(chunks, lexical=lexical)
    with pytest.raises(RetrievalUnavailable):
        await manager.search(RetrievalRequest(query="revenue", weights=SearchWeights(0.0, 1.0)))


@pytest.mark.asyncio
async def test_semantic_threshold(chunks):
    manager = build_manager(chunks, lexical=FakeLexicalReader())
    results = await manager.search(RetrievalRequest(query="revenue", threshold=0.6))
    # normalized similarities are 1.0, 0.5, 0.0
    assert [r.id for r in results] == ["c1"]


@pytest.mark.asyncio
async def test_missing_chunks_are_dropped_before_truncation(chunks):
    del chunks["c1"]
    manager = build_manager(chunks)
    results, diagnostics = await manager.search_with_diagnostics(RetrievalRequest(query="revenue", limit=3))

    assert "c1" not in [r.id for r in results]
    assert len(results) == 3
    assert diagnostics.dropped_missing == 1


@pytest.mark.asyncio
async def test_document_store_failure_is_unavailable(chunks):
    store = FakeDocumentStore(chunks, error=IndexUnavailable("db down"))
    manager = build_manager(chunks, store=store)
    with pytest.raises(RetrievalUnavailable):
        await manager.search(RetrievalRequest(query="revenue"))


@pytest.mark.asyncio
async def test_no_hits_returns_empty(chunks):
    manager = build_manager(chunks, vector=FakeVectorReader(), lexical=FakeLexicalReader())
    assert await manager.search(RetrievalRequest(query="nothing matches")) == []


@pytest.mark.asyncio
async def test_repeated_searches_are_identical(chunks):
    manager = build_manager(chunks)
    request = RetrievalRequest(query="revenue", limit=5)
    first = [(r.id, r.combined_score) for r in await manager.search(request)]
    second = [(r.id, r.combined_score) for r in await manager.search(request)]
    assert first == second


@pytest.mark.asyncio
async def test_health_check_and_cleanup(chunks):
    vector = FakeVectorReader(healthy=False)
    lexical = FakeLexicalReader()
    store = FakeDocumentStore(chunks)
    embedder = FakeEmbedder()
    manager = build_manager(chunks, embedder=embedder, vector=vector, lexical=lexical, store=store)

    assert await manager.health_check() == {
        "vector_index": False,
        "lexical_index": True,
        "document_store": True,
    }

    await manager.cleanup()
    assert embedder.closed and vector.closed and lexical.closed and store.closed


def test_manager_rejects_bad_settings(chunks):
    with pytest.raises(ValueError):
        build_manager(chunks, overfetch_factor=0)
    with pytest.raises(ValueError):
        build_manager(chunks, branch_timeout=0)


def test_candidate_count(chunks):
    manager = build_manager(chunks, overfetch_factor=3)
    assert manager.candidate_count(8) == 24
    assert manager.candidate_count(1) == 3

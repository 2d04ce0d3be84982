"""Tests for normalization, fusion and context budgeting."""

import pytest

from app.hybrid.models import MatchedVia, ScoredResult, SearchWeights
from app.ranking.budget import ContextBudgeter, budget
from app.ranking.fusion import WeightedHybridFusion
from app.ranking.normalize import distances_to_similarities, normalize

from tests.fakes import make_chunk


def test_normalize_min_max():
    assert normalize([2.0, 4.0, 3.0]) == [0.0, 1.0, 0.5]


def test_normalize_degenerate_batches():
    assert normalize([]) == []
    assert normalize([0.3]) == [1.0]
    assert normalize([0.7, 0.7, 0.7]) == [1.0, 1.0, 1.0]


def test_distances_to_similarities():
    similarities = distances_to_similarities([0.0, 0.5, 2.0])
    assert similarities == [1.0, 0.5, -1.0]
    # closest distance ends up with the top normalized score
    assert normalize(similarities) == [1.0, 0.75, 0.0]


def test_fusion_merges_duplicate_ids():
    """A chunk found by both branches appears once, tagged ``both``."""
    fusion = WeightedHybridFusion()
    fused = fusion.fuse_results(
        semantic_results=[("c1", 1.0), ("c2", 0.0)],
        lexical_results=[("c1", 1.0, "<b>c1</b>"), ("c3", 0.0, None)],
        weights=SearchWeights(0.5, 0.5),
    )

    assert [c.chunk_id for c in fused] == ["c1", "c2", "c3"]
    top = fused[0]
    assert top.matched_via is MatchedVia.BOTH
    assert top.combined_score == pytest.approx(1.0)
    assert top.semantic_score == 1.0
    assert top.lexical_score == 1.0
    assert top.snippet == "<b>c1</b>"
    assert fused[1].matched_via is MatchedVia.SEMANTIC
    assert fused[2].matched_via is MatchedVia.LEXICAL


def test_fusion_weighted_combination():
    fusion = WeightedHybridFusion()
    fused = fusion.fuse_results(
        semantic_results=[("c1", 0.8)],
        lexical_results=[("c1", 0.2, None)],
        weights=SearchWeights(0.75, 0.25),
    )
    assert fused[0].combined_score == pytest.approx(0.8 * 0.75 + 0.2 * 0.25)


def test_fusion_single_source_scores_its_own_branch():
    fusion = WeightedHybridFusion()
    fused = fusion.fuse_results(
        semantic_results=[],
        lexical_results=[("c7", 0.6, None)],
        weights=SearchWeights(0.5, 0.5),
    )
    assert fused[0].combined_score == pytest.approx(0.6)


def test_fusion_tie_break_prefers_both_then_first_seen():
    fusion = WeightedHybridFusion()
    fused = fusion.fuse_results(
        semantic_results=[("a", 1.0), ("b", 1.0)],
        lexical_results=[("c", 1.0, None), ("b", 1.0, None)],
        weights=SearchWeights(0.5, 0.5),
    )
    assert [c.chunk_id for c in fused] == ["b", "a", "c"]


def test_fusion_is_deterministic():
    fusion = WeightedHybridFusion()
    args = dict(
        semantic_results=[("a", 0.5), ("b", 0.5), ("c", 1.0)],
        lexical_results=[("d", 0.5, None), ("a", 0.5, None)],
        weights=SearchWeights(0.3, 0.7),
    )
    first = [c.chunk_id for c in fusion.fuse_results(**args)]
    for _ in range(5):
        assert [c.chunk_id for c in fusion.fuse_results(**args)] == first


def test_fusion_semantic_threshold():
    """Semantic candidates below the floor are dropped; lexical hits stay."""
    fusion = WeightedHybridFusion()
    fused = fusion.fuse_results(
        semantic_results=[("c1", 0.9), ("c2", 0.1)],
        lexical_results=[("c2", 1.0, None)],
        weights=SearchWeights(0.5, 0.5),
        semantic_threshold=0.5,
    )
    by_id = {c.chunk_id: c for c in fused}
    assert by_id["c1"].matched_via is MatchedVia.SEMANTIC
    assert by_id["c2"].matched_via is MatchedVia.LEXICAL
    assert by_id["c2"].semantic_score is None


def test_fusion_scores_stay_in_unit_interval():
    fusion = WeightedHybridFusion()
    fused = fusion.fuse_results(
        semantic_results=[("a", 1.0), ("b", 0.0)],
        lexical_results=[("a", 1.0, None), ("c", 0.3, None)],
        weights=SearchWeights(1.0, 1.0),
    )
    assert all(0.0 <= c.combined_score <= 1.0 for c in fused)


def _results(*token_counts):
    return [
        ScoredResult(chunk=make_chunk(f"c{i}", token_count=t), combined_score=1.0,
                     matched_via=MatchedVia.SEMANTIC)
        for i, t in enumerate(token_counts)
    ]


def test_budget_stops_at_first_overflow():
    """Later, smaller chunks are not pulled forward past an overflow."""
    results = _results(1000, 1200, 900)
    selected = budget(results, max_chunks=10, max_tokens=2000)
    assert [r.id for r in selected] == ["c0"]


def test_budget_chunk_limit():
    results = _results(10, 10, 10, 10)
    assert [r.id for r in budget(results, max_chunks=2, max_tokens=1000)] == ["c0", "c1"]


def test_budget_exact_fit_and_empty_inputs():
    results = _results(500, 500)
    assert len(budget(results, max_chunks=2, max_tokens=1000)) == 2
    assert budget([], max_chunks=5, max_tokens=100) == []
    assert budget(results, max_chunks=0, max_tokens=100) == []
    assert budget(results, max_chunks=5, max_tokens=0) == []


def test_context_budgeter_defaults_and_overrides():
    budgeter = ContextBudgeter(max_chunks=1, max_tokens=4000)
    results = _results(100, 100)
    assert len(budgeter.apply(results)) == 1
    assert len(budgeter.apply(results, max_chunks=2)) == 2

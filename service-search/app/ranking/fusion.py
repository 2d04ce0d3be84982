"""Result fusion for hybrid search.

Merges the normalized semantic and lexical candidate lists into one
deduplicated ranking.

Combined score
- Weighted sum of the component scores a candidate actually has, divided by
  the sum of the weights that were used. A lexical-only hit therefore scores
  its own lexical score instead of being dragged towards zero by the
  semantic weight it never had a chance to earn; with weights summing to 1
  a ``both`` hit scores ``s * ws + l * wt``.

Ordering
- Descending combined score, then ``both`` before single-source hits, then
  first-seen order (the semantic list first, then the lexical list). The key
  is total, so equal inputs always produce identical rankings.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import structlog

from ..hybrid.models import MatchedVia, SearchWeights

logger = structlog.get_logger("search_fusion")


@dataclass
class FusedCandidate:
    """Merged candidate before hydration."""
    chunk_id: str
    combined_score: float
    matched_via: MatchedVia
    semantic_score: Optional[float]
    lexical_score: Optional[float]
    snippet: Optional[str]
    first_seen: int


class WeightedHybridFusion:
    """Weighted score fusion with absent-score renormalization."""

    def fuse_results(
        self,
        semantic_results: Sequence[Tuple[str, float]],
        lexical_results: Sequence[Tuple[str, float, Optional[str]]],
        weights: SearchWeights,
        semantic_threshold: Optional[float] = None,
    ) -> List[FusedCandidate]:
        """Fuse normalized branch results.

        Parameters
        - semantic_results: ``(chunk_id, normalized_similarity)`` in branch order
        - lexical_results: ``(chunk_id, normalized_relevance, snippet)`` in branch order
        - weights: Branch weights
        - semantic_threshold: Optional floor on the normalized semantic score
        """
        merged: Dict[str, Dict] = {}
        order = 0
        below_threshold = 0

        for chunk_id, score in semantic_results:
            if chunk_id in merged:
                continue
            if semantic_threshold is not None and score < semantic_threshold:
                below_threshold += 1
                continue
            merged[chunk_id] = {"semantic": score, "lexical": None, "snippet": None, "first_seen": order}
            order += 1

        for chunk_id, score, snippet in lexical_results:
            entry = merged.get(chunk_id)
            if entry is None:
                merged[chunk_id] = {"semantic": None, "lexical": score, "snippet": snippet, "first_seen": order}
                order += 1
            elif entry["lexical"] is None:
                entry["lexical"] = score
                entry["snippet"] = snippet

        fused: List[FusedCandidate] = []
        for chunk_id, entry in merged.items():
            semantic_score = entry["semantic"]
            lexical_score = entry["lexical"]

            weighted_sum = 0.0
            weight_used = 0.0
            if semantic_score is not None:
                weighted_sum += semantic_score * weights.semantic_weight
                weight_used += weights.semantic_weight
            if lexical_score is not None:
                weighted_sum += lexical_score * weights.text_weight
                weight_used += weights.text_weight

            if semantic_score is not None and lexical_score is not None:
                matched_via = MatchedVia.BOTH
            elif semantic_score is not None:
                matched_via = MatchedVia.SEMANTIC
            else:
                matched_via = MatchedVia.LEXICAL

            if weight_used > 0:
                combined = weighted_sum / weight_used
            else:
                # only reachable when a zero-weight branch still returned hits
                combined = max(s for s in (semantic_score, lexical_score) if s is not None)

            fused.append(FusedCandidate(
                chunk_id=chunk_id,
                combined_score=min(max(combined, 0.0), 1.0),
                matched_via=matched_via,
                semantic_score=semantic_score,
                lexical_score=lexical_score,
                snippet=entry["snippet"],
                first_seen=entry["first_seen"],
            ))

        fused.sort(key=lambda c: (
            -c.combined_score,
            0 if c.matched_via is MatchedVia.BOTH else 1,
            c.first_seen,
        ))

        logger.debug(
            "Weighted hybrid fusion completed",
            semantic_count=len(semantic_results),
            lexical_count=len(lexical_results),
            fused_count=len(fused),
            below_threshold=below_threshold,
            semantic_weight=weights.semantic_weight,
            text_weight=weights.text_weight
        )

        return fused


def create_fusion_algorithm() -> WeightedHybridFusion:
    """Create the fusion algorithm instance."""
    return WeightedHybridFusion()

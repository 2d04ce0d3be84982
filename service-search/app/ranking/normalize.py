"""Score normalization for heterogeneous retrieval signals.

Raw scores are not comparable across engines (cosine distances vs. BM25-like
relevance) nor across queries, so each branch is rescaled independently with
min-max over the current batch.
"""

from typing import List, Sequence


def normalize(raw_scores: Sequence[float]) -> List[float]:
    """Min-max rescale a batch of scores onto [0, 1], preserving order.

    A batch of one, or a batch of equal scores, maps every element to 1.0.
    """
    if not raw_scores:
        return []

    low = min(raw_scores)
    high = max(raw_scores)
    if high <= low:
        return [1.0] * len(raw_scores)

    span = high - low
    return [min(max((score - low) / span, 0.0), 1.0) for score in raw_scores]


def distances_to_similarities(distances: Sequence[float]) -> List[float]:
    """Map cosine distances in [0, 2] to similarities (``1 - d``)."""
    return [1.0 - distance for distance in distances]

"""Context budgeting for ranked results."""

from typing import List, Optional, Sequence

import structlog

from ..hybrid.models import ScoredResult

logger = structlog.get_logger("search_budget")


def budget(
    results: Sequence[ScoredResult],
    max_chunks: int,
    max_tokens: int
) -> List[ScoredResult]:
    """Select the rank-ordered prefix that fits both limits.

    Greedy over the input order: stops at the first result that would push
    the count past ``max_chunks`` or the cumulative ``token_count`` past
    ``max_tokens``. Later, smaller results are never pulled forward, so the
    output is always a prefix of the input. Never raises.
    """
    if max_chunks <= 0 or max_tokens <= 0:
        return []

    selected: List[ScoredResult] = []
    used_tokens = 0
    for result in results:
        if len(selected) >= max_chunks:
            break
        if used_tokens + result.token_count > max_tokens:
            break
        selected.append(result)
        used_tokens += result.token_count

    if len(selected) < len(results):
        logger.debug(
            "Context budget truncated results",
            kept=len(selected),
            offered=len(results),
            used_tokens=used_tokens,
            max_tokens=max_tokens,
            max_chunks=max_chunks
        )
    return selected


class ContextBudgeter:
    """Holds default limits for ``budget``."""

    def __init__(self, max_chunks: int = 10, max_tokens: int = 4000):
        self.max_chunks = max_chunks
        self.max_tokens = max_tokens

    def apply(
        self,
        results: Sequence[ScoredResult],
        max_chunks: Optional[int] = None,
        max_tokens: Optional[int] = None
    ) -> List[ScoredResult]:
        return budget(
            results,
            self.max_chunks if max_chunks is None else max_chunks,
            self.max_tokens if max_tokens is None else max_tokens,
        )

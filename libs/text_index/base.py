"""Base lexical index reader interface."""

from abc import ABC, abstractmethod
from typing import List, Optional

from libs.common.models import LexicalHit, SearchFilter


class LexicalIndexReader(ABC):
    """Abstract base class for lexical index readers.

    Scores are engine-defined and unbounded; callers must only rely on their
    order. The query string is handed to the engine's own query syntax
    without reinterpretation. Failures raise ``IndexUnavailable``.
    """

    name: str = "lexical"

    @abstractmethod
    async def query_text(
        self,
        query: str,
        limit: int,
        search_filter: Optional[SearchFilter] = None
    ) -> List[LexicalHit]:
        """Return at most ``limit`` hits descending by relevance."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if the text index is reachable."""
        pass

    async def close(self) -> None:
        """Release connections held by the reader."""
        return None

"""Request, result and diagnostics types for hybrid search."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from libs.common.errors import InvalidRequest
from libs.common.models import Chunk, DocumentRef, SearchFilter


class MatchedVia(Enum):
    """Which retrieval branch(es) produced a result."""
    SEMANTIC = "semantic"
    LEXICAL = "lexical"
    BOTH = "both"


@dataclass(frozen=True)
class SearchWeights:
    """Branch weights; each in [0, 1], not both zero.

    A zero weight disables the corresponding branch entirely.
    """
    semantic_weight: float = 0.5
    text_weight: float = 0.5

    def validate(self) -> None:
        for name, value in (("semantic_weight", self.semantic_weight), ("text_weight", self.text_weight)):
            if not 0.0 <= value <= 1.0:
                raise InvalidRequest(f"{name} must be within [0, 1], got {value}")
        if self.semantic_weight == 0.0 and self.text_weight == 0.0:
            raise InvalidRequest("At least one of semantic_weight and text_weight must be positive")


@dataclass(frozen=True)
class RetrievalRequest:
    """A single hybrid search request."""
    query: str
    limit: int = 8
    filter: Optional[SearchFilter] = None
    weights: SearchWeights = field(default_factory=SearchWeights)
    # floor on the normalized semantic score
    threshold: Optional[float] = None

    def validate(self) -> None:
        """Fail fast on malformed requests."""
        if not isinstance(self.query, str) or not self.query.strip():
            raise InvalidRequest("query must be a non-empty string")
        if isinstance(self.limit, bool) or not isinstance(self.limit, int) or self.limit <= 0:
            raise InvalidRequest(f"limit must be a positive integer, got {self.limit!r}")
        self.weights.validate()
        if self.threshold is not None and not 0.0 <= self.threshold <= 1.0:
            raise InvalidRequest(f"threshold must be within [0, 1], got {self.threshold}")


@dataclass(frozen=True)
class ScoredResult:
    """A ranked chunk with its component and combined scores."""
    chunk: Chunk
    combined_score: float
    matched_via: MatchedVia
    semantic_score: Optional[float] = None
    lexical_score: Optional[float] = None
    document: Optional[DocumentRef] = None
    snippet: Optional[str] = None

    @property
    def id(self) -> str:
        return self.chunk.id

    @property
    def token_count(self) -> int:
        return self.chunk.token_count


class BranchStatus(Enum):
    OK = "ok"
    FAILED = "failed"
    TIMEOUT = "timeout"
    SKIPPED = "skipped"


@dataclass
class BranchReport:
    """Outcome of one retrieval branch."""
    branch: str
    status: BranchStatus
    candidates: int = 0
    latency_ms: float = 0.0
    error: Optional[str] = None


@dataclass
class SearchDiagnostics:
    """Per-request diagnostics, only returned when explicitly asked for."""
    branches: List[BranchReport]
    merged_candidates: int = 0
    dropped_missing: int = 0
    latency_ms: float = 0.0

    @property
    def degraded(self) -> bool:
        return any(b.status in (BranchStatus.FAILED, BranchStatus.TIMEOUT) for b in self.branches)

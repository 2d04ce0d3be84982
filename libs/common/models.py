"""Domain types shared by the index readers and the search service.

Chunks and document references are produced by the ingestion pipeline and
only ever read here, so they are frozen dataclasses. Reader hits carry just
enough to rank (an id and a raw score); text and metadata are attached later
in one batched document-store lookup.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import FrozenSet, Optional


@dataclass(frozen=True)
class Chunk:
    """Minimal retrievable unit of document text."""
    id: str
    document_id: str
    index: int
    text: str
    token_count: int

    def __post_init__(self):
        if self.index < 0:
            raise ValueError("Chunk index must be non-negative")
        if not self.text:
            raise ValueError("Chunk text must be non-empty")
        if self.token_count <= 0:
            raise ValueError("Chunk token_count must be positive")


@dataclass(frozen=True)
class DocumentRef:
    """Presentation metadata of the document owning a chunk."""
    document_id: str
    filename: str
    title: Optional[str] = None
    category: Optional[str] = None
    tags: FrozenSet[str] = field(default_factory=frozenset)
    uploaded_at: Optional[datetime] = None


@dataclass(frozen=True)
class DateRange:
    """Inclusive ``uploaded_at`` bounds; either side may be open."""
    start: Optional[datetime] = None
    end: Optional[datetime] = None

    def __post_init__(self):
        if self.start and self.end and self.start > self.end:
            raise ValueError("DateRange start must not be after end")


@dataclass(frozen=True)
class SearchFilter:
    """Predicate applied identically by every reader.

    ``tags`` matches documents carrying at least one of the given tags.
    """
    category: Optional[str] = None
    tags: FrozenSet[str] = field(default_factory=frozenset)
    date_range: Optional[DateRange] = None

    def is_empty(self) -> bool:
        return self.category is None and not self.tags and self.date_range is None


@dataclass(frozen=True)
class VectorHit:
    """Nearest-neighbour candidate; lower distance is more similar."""
    chunk_id: str
    distance: float


@dataclass(frozen=True)
class LexicalHit:
    """Full-text candidate; ``score`` is engine-defined and only ordinal."""
    chunk_id: str
    score: float
    snippet: Optional[str] = None

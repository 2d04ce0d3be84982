"""Query routing: pick semantic, lexical or hybrid retrieval for a query.

Pure, model-free heuristics so the decision is cheap and testable on its
own. Exact-match signals (quoted phrases, file names, identifiers, explicit
boolean operators) route to lexical search; question-like natural language
routes to semantic search; everything else stays hybrid.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import List

import structlog

from ..hybrid.models import SearchWeights

logger = structlog.get_logger("query_router")


class QueryMode(Enum):
    """Retrieval strategy for a query."""
    SEMANTIC = "semantic"
    LEXICAL = "lexical"
    HYBRID = "hybrid"


@dataclass
class QueryClassification:
    """Result of query routing."""
    query: str
    mode: QueryMode
    signals: List[str] = field(default_factory=list)


class QueryRouter:
    """Classifies queries by the retrieval strategy most likely to answer them."""

    def __init__(self, semantic_min_words: int = 5):
        self.semantic_min_words = semantic_min_words

        self.lexical_patterns = {
            "quoted_phrase": re.compile(r'"[^"]+"|“[^”]+”'),
            "filename": re.compile(
                r'\b[\w\-]+\.(pdf|docx?|xlsx?|pptx?|txt|md|csv|json|html?|rtf|odt|xml)\b',
                re.IGNORECASE
            ),
            "boolean_operator": re.compile(r'\b(AND|OR|NOT)\b'),
        }

        # codes such as INV-2024-001, SKU123, 4711
        self.identifier_pattern = re.compile(r'^(?=[\w\-./#]*\d)[\w\-./#]{2,}$|^[A-Z][A-Z0-9_\-]{2,}$')

        self.question_pattern = re.compile(
            r'^(who|what|when|where|why|how|which|can|could|should|does|do|is|are|explain|describe|summari[sz]e)\b',
            re.IGNORECASE
        )

    def classify(self, query: str) -> QueryClassification:
        """Classify a query into a ``QueryMode``."""
        stripped = query.strip()
        signals = [name for name, pattern in self.lexical_patterns.items() if pattern.search(stripped)]

        words = stripped.split()
        if len(words) == 1 and self.identifier_pattern.match(words[0]):
            signals.append("identifier")

        if signals:
            mode = QueryMode.LEXICAL
        elif len(words) >= self.semantic_min_words and (
            self.question_pattern.match(stripped) or stripped.endswith("?")
        ):
            mode = QueryMode.SEMANTIC
            signals.append("natural_language_question")
        else:
            mode = QueryMode.HYBRID

        logger.debug("Query routed", query=stripped[:50], mode=mode.value, signals=signals)
        return QueryClassification(query=query, mode=mode, signals=signals)


_default_router = QueryRouter()


def classify_query(query: str) -> QueryMode:
    """Classify a query with the default router."""
    return _default_router.classify(query).mode


# weight kept on the non-preferred branch so it still serves as a fallback
FALLBACK_WEIGHT = 0.1


def weights_for_mode(mode: QueryMode, default: SearchWeights) -> SearchWeights:
    """Branch weights implementing a routing decision.

    Single-source modes favor one branch but keep the other at
    ``FALLBACK_WEIGHT``, so a failure of the preferred branch degrades the
    search instead of failing it.
    """
    if mode is QueryMode.SEMANTIC:
        return SearchWeights(semantic_weight=1.0 - FALLBACK_WEIGHT, text_weight=FALLBACK_WEIGHT)
    if mode is QueryMode.LEXICAL:
        return SearchWeights(semantic_weight=FALLBACK_WEIGHT, text_weight=1.0 - FALLBACK_WEIGHT)
    return default

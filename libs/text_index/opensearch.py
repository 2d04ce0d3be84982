"""OpenSearch BM25 implementation of the lexical index reader."""

import asyncio
from typing import Any, Dict, List, Optional

from opensearchpy import OpenSearch
import structlog

from libs.common.errors import IndexUnavailable
from libs.common.models import LexicalHit, SearchFilter
from libs.common.opensearch import build_filter_clauses

from .base import LexicalIndexReader

logger = structlog.get_logger("text_index.opensearch")


class OpenSearchTextReader(LexicalIndexReader):
    """OpenSearch full-text reader.

    Uses a ``query_string`` query so the engine's own syntax (phrases,
    boolean operators, field prefixes) passes through untouched.
    """

    name = "opensearch_bm25"

    def __init__(
        self,
        client: OpenSearch,
        index_name: str = "rag_chunks",
        text_field: str = "text",
    ):
        self.client = client
        self.index_name = index_name
        self.text_field = text_field

    def _build_query(
        self,
        query: str,
        limit: int,
        search_filter: Optional[SearchFilter]
    ) -> Dict[str, Any]:
        bool_query: Dict[str, Any] = {
            "must": [{
                "query_string": {
                    "query": query,
                    "default_field": self.text_field,
                    "default_operator": "or",
                }
            }]
        }
        clauses = build_filter_clauses(search_filter)
        if clauses:
            bool_query["filter"] = clauses

        return {
            "size": limit,
            "_source": False,
            "query": {"bool": bool_query},
            "highlight": {
                "fields": {self.text_field: {"fragment_size": 160, "number_of_fragments": 2}}
            },
        }

    async def query_text(
        self,
        query: str,
        limit: int,
        search_filter: Optional[SearchFilter] = None
    ) -> List[LexicalHit]:
        """Perform a BM25 search with highlighting."""
        body = self._build_query(query, limit, search_filter)

        try:
            response = await asyncio.to_thread(
                self.client.search, index=self.index_name, body=body
            )
        except Exception as e:
            logger.error("Full-text search failed", index_name=self.index_name, error=str(e))
            raise IndexUnavailable(f"Full-text search failed: {e}", backend=self.name) from e

        hits = []
        for hit in response.get("hits", {}).get("hits", []):
            fragments = hit.get("highlight", {}).get(self.text_field, [])
            hits.append(LexicalHit(
                chunk_id=str(hit["_id"]),
                score=float(hit["_score"]),
                snippet=" … ".join(fragments) if fragments else None,
            ))

        logger.debug(
            "Full-text search completed",
            index_name=self.index_name,
            limit=limit,
            results_count=len(hits)
        )
        return hits[:limit]

    async def health_check(self) -> bool:
        """Check if the index is reachable."""
        try:
            return bool(await asyncio.to_thread(self.client.indices.exists, index=self.index_name))
        except Exception as e:
            logger.error("OpenSearch health check failed", error=str(e))
            return False

    async def close(self) -> None:
        await asyncio.to_thread(self.client.close)

"""PostgreSQL full-text implementation of the lexical index reader.

Queries the ``chunks.search_vector`` tsvector column with
``websearch_to_tsquery`` so callers can use quoted phrases, ``OR`` and
``-term`` exclusions, ranks with ``ts_rank_cd`` and builds snippets with
``ts_headline``.
"""

from typing import List, Optional

import structlog

from libs.common.db import PostgresPool, build_filter_conditions
from libs.common.errors import IndexUnavailable
from libs.common.models import LexicalHit, SearchFilter

from .base import LexicalIndexReader

logger = structlog.get_logger("text_index.postgres")


class PostgresTextReader(LexicalIndexReader):
    """PostgreSQL full-text search reader."""

    name = "postgres_fts"

    def __init__(self, pool: PostgresPool, text_search_config: str = "english"):
        self.pool = pool
        self.text_search_config = text_search_config

    async def query_text(
        self,
        query: str,
        limit: int,
        search_filter: Optional[SearchFilter] = None
    ) -> List[LexicalHit]:
        """Perform lexical search using PostgreSQL full-text search."""
        params: list = [self.text_search_config, query]
        conditions = ["c.search_vector @@ websearch_to_tsquery($1::regconfig, $2)"]
        conditions.extend(build_filter_conditions(search_filter, params))
        params.append(limit)

        sql = f"""
            SELECT c.id,
                   ts_rank_cd(c.search_vector, websearch_to_tsquery($1::regconfig, $2)) AS rank,
                   ts_headline($1::regconfig, c.text, websearch_to_tsquery($1::regconfig, $2),
                               'MaxFragments=2, MaxWords=30, MinWords=10') AS snippet
            FROM chunks c
            JOIN documents d ON d.id = c.document_id
            WHERE {" AND ".join(conditions)}
            ORDER BY rank DESC, c.id
            LIMIT ${len(params)}
        """

        try:
            rows = await self.pool.fetch(sql, *params)
        except Exception as e:
            logger.error("Lexical search failed", error=str(e))
            raise IndexUnavailable(f"Full-text search failed: {e}", backend=self.name) from e

        hits = [
            LexicalHit(chunk_id=str(row["id"]), score=float(row["rank"]), snippet=row["snippet"])
            for row in rows
        ]

        logger.debug("Lexical search completed", limit=limit, results_count=len(hits))
        return hits

    async def health_check(self) -> bool:
        """Check if the database is reachable."""
        try:
            await self.pool.fetchval("SELECT 1")
            return True
        except Exception as e:
            logger.error("Health check failed", error=str(e))
            return False

    async def close(self) -> None:
        """Close the shared pool."""
        await self.pool.close()

"""PostgreSQL implementation of the document store."""

from typing import Dict, Optional, Sequence, Tuple

import structlog

from libs.common.db import PostgresPool
from libs.common.errors import IndexUnavailable
from libs.common.models import Chunk, DocumentRef

from .base import DocumentStore

logger = structlog.get_logger("document_store.postgres")


class PostgresDocumentStore(DocumentStore):
    """Reads ``chunks`` joined to ``documents`` with a single ``ANY($1)`` query."""

    name = "postgres_documents"

    def __init__(self, pool: PostgresPool):
        self.pool = pool

    async def fetch_chunks(
        self,
        chunk_ids: Sequence[str]
    ) -> Dict[str, Tuple[Chunk, Optional[DocumentRef]]]:
        if not chunk_ids:
            return {}

        sql = """
            SELECT c.id, c.document_id, c.chunk_index, c.text, c.token_count,
                   d.filename, d.title, d.category, d.tags, d.uploaded_at
            FROM chunks c
            LEFT JOIN documents d ON d.id = c.document_id
            WHERE c.id = ANY($1::text[])
        """

        try:
            rows = await self.pool.fetch(sql, list(dict.fromkeys(chunk_ids)))
        except Exception as e:
            logger.error("Chunk lookup failed", count=len(chunk_ids), error=str(e))
            raise IndexUnavailable(f"Chunk lookup failed: {e}", backend=self.name) from e

        found: Dict[str, Tuple[Chunk, Optional[DocumentRef]]] = {}
        for row in rows:
            try:
                chunk = Chunk(
                    id=str(row["id"]),
                    document_id=str(row["document_id"]),
                    index=row["chunk_index"],
                    text=row["text"],
                    token_count=row["token_count"],
                )
            except (TypeError, ValueError) as e:
                # treated like a missing chunk by the caller
                logger.warning("Skipping invalid chunk row", chunk_id=str(row["id"]), error=str(e))
                continue
            document = None
            if row["filename"] is not None:
                document = DocumentRef(
                    document_id=chunk.document_id,
                    filename=row["filename"],
                    title=row["title"],
                    category=row["category"],
                    tags=frozenset(row["tags"] or ()),
                    uploaded_at=row["uploaded_at"],
                )
            found[chunk.id] = (chunk, document)

        if len(found) < len(set(chunk_ids)):
            logger.info(
                "Some chunks no longer exist",
                requested=len(set(chunk_ids)),
                found=len(found)
            )
        return found

    async def health_check(self) -> bool:
        try:
            await self.pool.fetchval("SELECT 1")
            return True
        except Exception as e:
            logger.error("Health check failed", error=str(e))
            return False

    async def close(self) -> None:
        await self.pool.close()

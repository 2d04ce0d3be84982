"""Shared asyncpg pool for the PostgreSQL-backed adapters.

The pgvector reader, the full-text reader and the document store all talk to
the same database. They share one ``PostgresPool`` so a search request holds
at most a handful of connections regardless of how many adapters run it.

Connection management
- The pool is created on demand and reused across calls
- Every connection gets the pgvector codec so ``vector`` columns and
  parameters round-trip as numpy arrays
"""

import asyncio
from typing import Any, List, Optional

import asyncpg
from asyncpg import Connection, Pool
from pgvector.asyncpg import register_vector
import structlog

from .models import SearchFilter

logger = structlog.get_logger("common.db")


class PostgresPool:
    """Lazily created, shareable asyncpg pool."""

    def __init__(
        self,
        dsn: str,
        pool_size: int = 10,
        command_timeout: float = 30.0,
    ):
        """Configure the pool.

        Parameters
        - dsn: PostgreSQL DSN including database and credentials
        - pool_size: Max size of the asyncpg connection pool
        - command_timeout: Seconds to allow per DB command
        """
        self.dsn = dsn
        self.pool_size = pool_size
        self.command_timeout = command_timeout
        self._pool: Optional[Pool] = None
        self._lock = asyncio.Lock()

    async def _init_connection(self, conn: Connection) -> None:
        """Register pgvector codec for asyncpg connections."""
        await register_vector(conn)

    async def get_pool(self) -> Pool:
        """Get or create the connection pool."""
        if self._pool is None:
            async with self._lock:
                if self._pool is None:
                    self._pool = await asyncpg.create_pool(
                        self.dsn,
                        min_size=1,
                        max_size=self.pool_size,
                        command_timeout=self.command_timeout,
                        init=self._init_connection,
                    )
                    logger.info("Created PostgreSQL connection pool", pool_size=self.pool_size)
        return self._pool

    async def fetch(self, query: str, *args: Any) -> List[asyncpg.Record]:
        """Run a query and return all rows."""
        pool = await self.get_pool()
        async with pool.acquire() as conn:
            return await conn.fetch(query, *args)

    async def fetchval(self, query: str, *args: Any) -> Any:
        """Run a query and return the first column of the first row."""
        pool = await self.get_pool()
        async with pool.acquire() as conn:
            return await conn.fetchval(query, *args)

    async def close(self) -> None:
        """Close the connection pool."""
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            logger.info("Closed PostgreSQL connection pool")


def build_filter_conditions(
    search_filter: Optional[SearchFilter],
    params: List[Any],
    document_alias: str = "d",
) -> List[str]:
    """Translate a ``SearchFilter`` into SQL conditions on the documents table.

    Values are appended to ``params`` and referenced positionally, so callers
    pass the list they are building for the rest of the query.
    """
    conditions: List[str] = []
    if search_filter is None:
        return conditions

    if search_filter.category is not None:
        params.append(search_filter.category)
        conditions.append(f"{document_alias}.category = ${len(params)}")

    if search_filter.tags:
        params.append(sorted(search_filter.tags))
        conditions.append(f"{document_alias}.tags && ${len(params)}::text[]")

    date_range = search_filter.date_range
    if date_range is not None:
        if date_range.start is not None:
            params.append(date_range.start)
            conditions.append(f"{document_alias}.uploaded_at >= ${len(params)}")
        if date_range.end is not None:
            params.append(date_range.end)
            conditions.append(f"{document_alias}.uploaded_at <= ${len(params)}")

    return conditions

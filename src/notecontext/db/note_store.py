"""PostgreSQL + pgvector note store for notecontext.

Implements the NoteStore contract against the application's `notes` table:
- Vector similarity search (cosine distance, `<=>`)
- Lexical search (ILIKE phrase match on title/body, exact tag match)
  ranked with full-text `ts_rank_cd`

Both queries carry the ownership filter (user_id + deleted_at IS NULL).
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from typing import TYPE_CHECKING

import asyncpg
from pgvector.asyncpg import register_vector

from notecontext.db.constants import NOTE_COLUMNS, NOTE_TSVECTOR, NOTES_TABLE
from notecontext.db.filter_builder import FilterBuilder
from notecontext.db.row_mapper import row_to_hit
from notecontext.lib.text import escape_like, normalize_lexical_score, tokenize_query
from notecontext.models import EMBEDDING_DIM, NoteHit

if TYPE_CHECKING:
    from notecontext.config import NoteContextConfig

logger = logging.getLogger(__name__)


def lexical_score_from_rank(rank: float | None) -> float:
    """Map a ts_rank_cd value onto [0.5, 1.0).

    Every row returned by the lexical query matched the phrase or a tag, so
    it keeps half the scale; full-text relevance fills the other half.
    """
    return 0.5 + 0.5 * normalize_lexical_score(rank or 0.0)


class PgNoteStore:
    """PostgreSQL + pgvector based note store.

    Expected schema:

    ```sql
    create extension if not exists vector;

    create table notes (
      id uuid primary key default gen_random_uuid(),
      user_id text not null,
      title text not null,
      raw_transcript text,
      processed_content text not null,
      summary text,
      tags text[] default '{}',
      embedding vector(1536),
      created_at timestamptz default now(),
      updated_at timestamptz default now(),
      deleted_at timestamptz
    );

    create index on notes using hnsw (embedding vector_cosine_ops);
    create index on notes using gin (
      to_tsvector('english', coalesce(title, '') || ' ' || coalesce(processed_content, ''))
    );
    create index on notes (user_id, updated_at desc);
    ```
    """

    # lexical_search scores come from ts_rank_cd, see lexical_score_from_rank
    ranked_lexical = True

    def __init__(
        self,
        database_url: str | None = None,
        pool_size: int = 10,
    ):
        """Initialize the note store.

        Args:
            database_url: PostgreSQL connection URL
            pool_size: Connection pool size
        """
        self.database_url = database_url or os.getenv("NOTECONTEXT_DATABASE_URL")
        if not self.database_url:
            raise ValueError(
                "Database URL required. Set NOTECONTEXT_DATABASE_URL environment variable "
                "or pass database_url parameter."
            )

        self.pool_size = pool_size
        self._pool: asyncpg.Pool | None = None
        self._connect_lock = asyncio.Lock()

    @classmethod
    def from_config(cls, config: "NoteContextConfig") -> "PgNoteStore":
        """Create a store from a NoteContextConfig."""
        return cls(database_url=config.database_url, pool_size=config.pool_size)

    async def connect(self) -> None:
        """Initialize the connection pool.

        Concurrent callers on a cold store share one pool.
        """
        if self._pool is not None:
            return

        async with self._connect_lock:
            if self._pool is not None:
                return
            self._pool = await asyncpg.create_pool(
                self.database_url,
                min_size=1,
                max_size=self.pool_size,
                setup=self._setup_connection,
            )
        logger.info("PgNoteStore connected to database")

    async def _setup_connection(self, conn: asyncpg.Connection) -> None:
        """Setup each connection with pgvector extension."""
        await register_vector(conn)

    async def close(self) -> None:
        """Close the connection pool."""
        if self._pool:
            await self._pool.close()
            self._pool = None
            logger.info("PgNoteStore disconnected")

    async def _get_pool(self) -> asyncpg.Pool:
        """Get the connection pool, connecting if needed."""
        if self._pool is None:
            await self.connect()
        return self._pool  # type: ignore

    async def __aenter__(self) -> "PgNoteStore":
        await self.connect()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    # =========================================================================
    # Search Operations
    # =========================================================================

    async def vector_search(
        self,
        user_id: str,
        vector: list[float],
        threshold: float,
        limit: int,
    ) -> list[NoteHit]:
        """Search one user's notes by cosine similarity.

        Returns notes whose similarity (1 - cosine distance) is strictly
        greater than threshold, most similar first.
        """
        if len(vector) != EMBEDDING_DIM:
            raise ValueError(
                f"Query vector must have {EMBEDDING_DIM} dimensions, got {len(vector)}"
            )

        pool = await self._get_pool()

        fb = FilterBuilder(start_idx=4)
        fb.add_owner_filter(user_id)
        fb.add("embedding IS NOT NULL")

        query = f"""
            SELECT {NOTE_COLUMNS},
                   1 - (embedding <=> $1) AS similarity
            FROM {NOTES_TABLE}
            WHERE {fb.build()}
              AND 1 - (embedding <=> $1) > $2
            ORDER BY embedding <=> $1, id
            LIMIT $3
        """

        start = time.perf_counter()
        async with pool.acquire() as conn:
            rows = await conn.fetch(query, vector, threshold, limit, *fb.values)
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.debug(f"[TIMING] vector_search: {len(rows)} rows in {elapsed_ms:.0f}ms")

        return [row_to_hit(row, row["similarity"]) for row in rows]

    async def lexical_search(
        self,
        user_id: str,
        text: str,
        limit: int,
    ) -> list[NoteHit]:
        """Search one user's notes by phrase and tag match.

        A note matches when its title or body contains the query text
        (case-insensitive) or one of its tags equals a query token.
        Matches are ranked by full-text relevance, then recency.
        """
        phrase = text.strip()
        if not phrase:
            return []

        pool = await self._get_pool()

        fb = FilterBuilder(start_idx=5)
        fb.add_owner_filter(user_id)

        query = f"""
            WITH q AS (
                SELECT plainto_tsquery('english', $1) AS tsq
            )
            SELECT {NOTE_COLUMNS},
                   ts_rank_cd({NOTE_TSVECTOR}, q.tsq) AS rank
            FROM {NOTES_TABLE}
            CROSS JOIN q
            WHERE {fb.build()}
              AND (
                title ILIKE $2
                OR processed_content ILIKE $2
                OR EXISTS (
                    SELECT 1 FROM unnest(tags) AS tag
                    WHERE lower(tag) = ANY($3::text[])
                )
              )
            ORDER BY rank DESC, updated_at DESC, id
            LIMIT $4
        """

        pattern = f"%{escape_like(phrase)}%"
        tokens = tokenize_query(phrase)

        start = time.perf_counter()
        async with pool.acquire() as conn:
            rows = await conn.fetch(query, phrase, pattern, tokens, limit, *fb.values)
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.debug(f"[TIMING] lexical_search: {len(rows)} rows in {elapsed_ms:.0f}ms")

        return [row_to_hit(row, lexical_score_from_rank(row["rank"])) for row in rows]

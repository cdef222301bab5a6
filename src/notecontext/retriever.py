"""Candidate retrieval over the two search paths.

The vector and lexical lookups run concurrently against one NoteStore. A
vector-path failure degrades the result to lexical-only; a lexical-path
failure fails the whole call.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field

from notecontext.db.base import NoteStore
from notecontext.errors import InvalidInputError, RetrievalError
from notecontext.models import EMBEDDING_DIM, Candidate, NoteHit
from notecontext.ranking import merge_candidates

logger = logging.getLogger(__name__)


@dataclass
class RetrievalResult:
    """Merged candidates plus whether the vector path was skipped."""

    candidates: list[Candidate] = field(default_factory=list)
    degraded: bool = False


class CandidateRetriever:
    """Runs the scoped vector and lexical lookups and merges their hits."""

    def __init__(self, store: NoteStore):
        self.store = store

    async def retrieve(
        self,
        user_id: str,
        query_text: str,
        query_vector: list[float] | None,
        limit: int = 20,
        similarity_threshold: float = 0.3,
    ) -> RetrievalResult:
        """Retrieve candidates for one user's query.

        Args:
            user_id: Owner whose notes are searched
            query_text: Trimmed query text for the lexical path
            query_vector: Query embedding, or None to skip the vector path
            limit: Max notes per path
            similarity_threshold: Vector hits must score strictly above this

        Returns:
            RetrievalResult with merged candidates

        Raises:
            InvalidInputError: If user_id is empty or the vector has the wrong length
            RetrievalError: If the lexical lookup fails
        """
        if not user_id:
            raise InvalidInputError("user_id is required")
        if limit < 1:
            raise InvalidInputError("limit must be at least 1")
        if query_vector is not None and len(query_vector) != EMBEDDING_DIM:
            raise InvalidInputError(
                f"Query vector must have {EMBEDDING_DIM} dimensions, got {len(query_vector)}"
            )

        start = time.perf_counter()
        vector_task: asyncio.Future[list[NoteHit]] | None = None
        if query_vector is not None:
            vector_task = asyncio.ensure_future(
                self.store.vector_search(user_id, query_vector, similarity_threshold, limit)
            )

        degraded = False
        try:
            try:
                lexical_hits = await self.store.lexical_search(user_id, query_text, limit)
            except Exception as e:
                logger.error(f"[RETRIEVAL] Lexical search failed for user {user_id}: {e}")
                raise RetrievalError(f"Lexical search failed: {e}") from e

            vector_hits: list[NoteHit] = []
            if vector_task is not None:
                try:
                    vector_hits = await vector_task
                except Exception as e:
                    logger.warning(
                        f"[RETRIEVAL] Vector search failed, continuing lexical-only: {e}"
                    )
                    degraded = True
        finally:
            if vector_task is not None:
                if not vector_task.done():
                    vector_task.cancel()
                elif not vector_task.cancelled():
                    # Mark a failed vector lookup as retrieved
                    vector_task.exception()

        vector_hits = self._owned_hits(user_id, vector_hits, "vector")
        lexical_hits = self._owned_hits(user_id, lexical_hits, "lexical")
        candidates = merge_candidates(vector_hits, lexical_hits)

        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.debug(
            f"[RETRIEVAL] {len(vector_hits)} vector + {len(lexical_hits)} lexical hits -> "
            f"{len(candidates)} candidates in {elapsed_ms:.0f}ms"
        )
        return RetrievalResult(candidates=candidates, degraded=degraded)

    @staticmethod
    def _owned_hits(user_id: str, hits: list[NoteHit], path: str) -> list[NoteHit]:
        """Drop rows that belong to another user or are soft-deleted."""
        kept = []
        for hit in hits:
            if hit.note.user_id != user_id or hit.note.deleted_at is not None:
                logger.error(
                    f"[RETRIEVAL] {path} search returned note {hit.note.id} outside "
                    f"user {user_id}'s live notes; dropping it"
                )
                continue
            kept.append(hit)
        return kept

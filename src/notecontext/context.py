"""Composed entry point: query -> embed -> retrieve -> rank -> pack.

Example:
    store = PgNoteStore()
    async with AsyncEmbeddingClient() as client:
        builder = ContextBuilder(store, embedder=client)
        bundle = await builder.build_context("user-123", "project roadmap")
        prompt_context = bundle.render()
"""

import logging
import time

from notecontext.config import NoteContextConfig
from notecontext.db.base import NoteStore
from notecontext.embedding import Embedder, QueryEmbedder, validate_query
from notecontext.errors import EmbeddingUnavailableError, InvalidInputError
from notecontext.lib.async_utils import run_async
from notecontext.models import ContextBundle, ContextOptions
from notecontext.packing import ContextPacker
from notecontext.ranking import HybridRanker
from notecontext.retriever import CandidateRetriever

logger = logging.getLogger(__name__)


class ContextBuilder:
    """Chains the query embedder, retriever, ranker and packer.

    Without an embedder the builder runs lexical-only retrieval; that is a
    configuration choice, so the bundle is not flagged as degraded.
    """

    def __init__(
        self,
        store: NoteStore,
        embedder: Embedder | QueryEmbedder | None = None,
        config: NoteContextConfig | None = None,
    ):
        self.config = config or NoteContextConfig()
        self.store = store
        if embedder is not None and not isinstance(embedder, QueryEmbedder):
            embedder = QueryEmbedder(
                embedder,
                dimension=self.config.embedding_dimension,
                max_query_chars=self.config.max_query_chars,
            )
        self.embedder: QueryEmbedder | None = embedder
        self.retriever = CandidateRetriever(store)
        self.packer = ContextPacker(min_excerpt_chars=self.config.min_excerpt_chars)

    async def build_context(
        self,
        user_id: str,
        query_text: str,
        options: ContextOptions | None = None,
    ) -> ContextBundle:
        """Build a prompt-ready context bundle for one user's query.

        Args:
            user_id: Owner whose notes are searched
            query_text: Natural-language query
            options: Per-request limits and weights (defaults from config)

        Returns:
            ContextBundle; `matched` is False when no note qualified

        Raises:
            InvalidInputError: Empty user_id, or empty/too-long query
            RetrievalError: The lexical lookup failed
        """
        if not user_id or not user_id.strip():
            raise InvalidInputError("user_id is required")
        options = options or self.config.to_options()
        if self.embedder is not None:
            query = self.embedder.validate(query_text)
        else:
            query = validate_query(query_text, self.config.max_query_chars)

        start = time.perf_counter()
        degraded = False
        query_vector = None
        if self.embedder is not None:
            try:
                query_vector = await self.embedder.embed(query)
            except EmbeddingUnavailableError as e:
                logger.warning(f"[EMBEDDING] Unavailable, falling back to lexical-only: {e}")
                degraded = True

        result = await self.retriever.retrieve(
            user_id,
            query,
            query_vector,
            limit=options.candidate_limit,
            similarity_threshold=options.similarity_threshold,
        )

        ranker = HybridRanker(
            weights=options.weights,
            half_life_days=self.config.recency_half_life_days,
            min_score=self.config.min_score,
        )
        ranked = ranker.rank(result.candidates)

        notes = {c.note_id: c.note for c in ranked}
        bundle = self.packer.pack(
            ranked,
            notes,
            max_total_chars=options.max_total_chars,
            max_notes=options.max_notes,
        )
        bundle.query = query
        bundle.degraded = degraded or result.degraded

        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(
            f"[CONTEXT] user={user_id} candidates={len(result.candidates)} "
            f"excerpts={len(bundle.excerpts)} chars={bundle.total_chars} "
            f"degraded={bundle.degraded} in {elapsed_ms:.0f}ms"
        )
        return bundle

    def build_context_sync(
        self,
        user_id: str,
        query_text: str,
        options: ContextOptions | None = None,
        timeout: float | None = None,
    ) -> ContextBundle:
        """Synchronous build_context for CLI and scripts.

        Raises TimeoutError (after cancelling in-flight calls) when `timeout`
        seconds pass without a result.
        """
        return run_async(self.build_context(user_id, query_text, options), timeout=timeout)


async def build_context(
    store: NoteStore,
    user_id: str,
    query_text: str,
    options: ContextOptions | None = None,
    embedder: Embedder | QueryEmbedder | None = None,
    config: NoteContextConfig | None = None,
) -> ContextBundle:
    """One-shot convenience around ContextBuilder.build_context."""
    builder = ContextBuilder(store, embedder=embedder, config=config)
    return await builder.build_context(user_id, query_text, options)

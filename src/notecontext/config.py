"""Configuration for notecontext.

Environment Variables:
    - NOTECONTEXT_DATABASE_URL: PostgreSQL connection URL (notes table with pgvector)
    - NOTECONTEXT_EMBEDDING_API_KEY: API key for the embeddings endpoint.
      Falls back to OPENROUTER_API_KEY, then OPENAI_API_KEY.

    Optional embedding configuration:
    - NOTECONTEXT_EMBEDDING_API_URL: OpenAI-compatible embeddings endpoint
      (default: https://openrouter.ai/api/v1/embeddings)
    - NOTECONTEXT_EMBEDDING_MODEL: Embedding model (default: openai/text-embedding-3-small)

    Retrieval and packing defaults can be overridden the same way, e.g.
    NOTECONTEXT_SIMILARITY_THRESHOLD=0.4 or NOTECONTEXT_MAX_NOTES=8.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from notecontext.models import ContextOptions


class NoteContextConfig(BaseSettings):
    """notecontext configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="NOTECONTEXT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # =========================================================================
    # Storage Settings (PostgreSQL + pgvector)
    # =========================================================================
    database_url: str | None = Field(
        default=None,
        description="PostgreSQL connection URL for the notes table",
    )
    pool_size: int = Field(default=10, description="Connection pool size")

    # =========================================================================
    # Embedding Settings
    # =========================================================================
    embedding_api_key: str | None = Field(
        default=None,
        description="API key for the embeddings endpoint",
    )
    embedding_api_url: str = Field(
        default="https://openrouter.ai/api/v1/embeddings",
        description="OpenAI-compatible embeddings endpoint",
    )
    embedding_model: str = Field(
        default="openai/text-embedding-3-small",
        description="Embedding model (OpenRouter format: provider/model)",
    )
    embedding_dimension: int = Field(
        default=1536,
        description="Embedding dimension (1536 for text-embedding-3-small / ada-002)",
    )
    embedding_timeout: float = Field(default=30.0, description="Embedding request timeout (s)")

    # =========================================================================
    # Query Validation
    # =========================================================================
    max_query_chars: int = Field(
        default=2000,
        description="Maximum query length, matches the chat message cap",
    )

    # =========================================================================
    # Retrieval Settings
    # =========================================================================
    similarity_threshold: float = Field(
        default=0.3,
        description="Minimum cosine similarity for the vector path (recall-favoring)",
    )
    candidate_limit: int = Field(
        default=20,
        description="Max notes returned by each retrieval path",
    )

    # =========================================================================
    # Ranking Settings
    # =========================================================================
    weight_vector: float = Field(default=0.6, ge=0.0, description="Weight of vector similarity")
    weight_lexical: float = Field(default=0.3, ge=0.0, description="Weight of lexical rank")
    weight_recency: float = Field(default=0.1, ge=0.0, description="Weight of recency boost")
    recency_half_life_days: float = Field(
        default=30.0,
        gt=0.0,
        description="Age (days) at which the recency boost drops to 0.5",
    )
    min_score: float = Field(
        default=0.0,
        description="Post-ranking cut; candidates scoring below are dropped",
    )

    # =========================================================================
    # Packing Settings
    # =========================================================================
    max_notes: int = Field(default=5, description="Max notes in a context bundle")
    max_total_chars: int = Field(default=4000, description="Character budget for a bundle")
    min_excerpt_chars: int = Field(
        default=80,
        description="Smallest partial excerpt worth appending once the budget runs short",
    )

    def resolve_embedding_api_key(self) -> str | None:
        """Get the embedding API key, falling back to provider env vars."""
        return (
            self.embedding_api_key
            or os.getenv("OPENROUTER_API_KEY")
            or os.getenv("OPENAI_API_KEY")
        )

    def to_options(self) -> "ContextOptions":
        """Build per-request ContextOptions from these defaults."""
        from notecontext.models import ContextOptions, RankingWeights

        return ContextOptions(
            max_notes=self.max_notes,
            max_total_chars=self.max_total_chars,
            similarity_threshold=self.similarity_threshold,
            candidate_limit=self.candidate_limit,
            weights=RankingWeights(
                w_vec=self.weight_vector,
                w_lex=self.weight_lexical,
                w_recency=self.weight_recency,
            ),
        )

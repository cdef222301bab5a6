"""Data models for notecontext."""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

# Fixed dimensionality of note and query embeddings (text-embedding-3-small / ada-002)
EMBEDDING_DIM = 1536

NO_MATCHES_MESSAGE = "No relevant notes found in the knowledge base."


def _utcnow() -> datetime:
    """Return current UTC time."""
    return datetime.now(UTC)


def _as_utc(value: datetime) -> datetime:
    """Treat naive timestamps as UTC so ages can always be compared."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class Provenance(str, Enum):
    """Which retrieval path(s) produced a candidate."""

    VECTOR_ONLY = "vector_only"
    LEXICAL_ONLY = "lexical_only"
    BOTH = "both"


class Note(BaseModel):
    """A user-owned note. Read-only to the retrieval core."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Opaque unique note identifier")
    user_id: str = Field(description="User who owns this note")
    title: str = Field(default="")
    body: str = Field(default="", description="Primary searchable content")
    summary: str | None = Field(default=None)
    tags: tuple[str, ...] = Field(default=(), description="Unordered tag set, stored sorted")
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    embedding: list[float] | None = Field(default=None, description="Absent until computed")
    deleted_at: datetime | None = Field(default=None, description="Soft-delete marker")

    @field_validator("tags", mode="before")
    @classmethod
    def _normalize_tags(cls, value: Any) -> tuple[str, ...]:
        if value is None:
            return ()
        return tuple(sorted({str(tag) for tag in value if tag}))

    @field_validator("embedding")
    @classmethod
    def _check_dimension(cls, value: list[float] | None) -> list[float] | None:
        if value is not None and len(value) != EMBEDDING_DIM:
            raise ValueError(
                f"Embedding must have {EMBEDDING_DIM} dimensions, got {len(value)}"
            )
        return value

    @field_validator("created_at", "updated_at", "deleted_at")
    @classmethod
    def _check_timezone(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value) if value is not None else None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


class NoteHit(BaseModel):
    """A note returned by one retrieval path, with that path's score."""

    note: Note
    score: float


class Candidate(BaseModel):
    """One note's relevance to one query. Ephemeral, never persisted."""

    model_config = ConfigDict(frozen=True)

    note: Note
    similarity: float | None = Field(default=None, ge=-1.0, le=1.0)
    lexical_rank: float | None = Field(default=None, ge=0.0)
    provenance: Provenance
    score: float | None = Field(default=None, description="Set by the ranker")

    @property
    def note_id(self) -> str:
        return self.note.id


class RankingWeights(BaseModel):
    """Weights of the hybrid scoring function. All non-negative."""

    w_vec: float = Field(default=0.6, ge=0.0)
    w_lex: float = Field(default=0.3, ge=0.0)
    w_recency: float = Field(default=0.1, ge=0.0)


class ContextOptions(BaseModel):
    """Per-request options for build_context."""

    max_notes: int = Field(default=5, ge=1)
    max_total_chars: int = Field(default=4000, ge=1)
    similarity_threshold: float = Field(default=0.3, ge=-1.0, le=1.0)
    candidate_limit: int = Field(default=20, ge=1, description="Per-path retrieval limit")
    weights: RankingWeights = Field(default_factory=RankingWeights)


class Excerpt(BaseModel):
    """A rendered note excerpt plus its provenance."""

    note_id: str
    title: str
    text: str
    truncated: bool = False
    similarity: float | None = None
    provenance: Provenance
    score: float = 0.0


class ContextBundle(BaseModel):
    """Packed, prompt-ready context for one query."""

    query: str = ""
    excerpts: list[Excerpt] = Field(default_factory=list)
    total_chars: int = 0
    degraded: bool = Field(
        default=False,
        description="Vector path skipped because embedding or vector retrieval failed",
    )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def matched(self) -> bool:
        return bool(self.excerpts)

    def sources(self) -> list[dict[str, Any]]:
        """Provenance metadata for citing sources apart from the prompt text."""
        return [
            {
                "note_id": e.note_id,
                "title": e.title,
                "similarity": e.similarity,
                "provenance": e.provenance.value,
                "score": e.score,
                "truncated": e.truncated,
            }
            for e in self.excerpts
        ]

    def render(self) -> str:
        """Format the bundle as a context block for prompt injection."""
        if not self.excerpts:
            return NO_MATCHES_MESSAGE

        parts = []
        for i, excerpt in enumerate(self.excerpts, 1):
            header = f"Note {i}"
            if excerpt.similarity is not None:
                header += f" (Relevance: {excerpt.similarity * 100:.1f}%)"
            parts.append(f"{header}\n{excerpt.text}\n---")

        body = "\n".join(parts)
        return f"Here are the most relevant notes from your knowledge base:\n\n{body}"

"""Pytest configuration for notecontext tests."""

import math
import os
from datetime import UTC, datetime, timedelta

import pytest

from notecontext.db.memory_store import InMemoryNoteStore
from notecontext.models import EMBEDDING_DIM, Note

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=UTC)


@pytest.fixture(autouse=True)
def clean_notecontext_env(monkeypatch, tmp_path):
    """Clear notecontext environment variables and prevent .env loading for test isolation."""
    for var in [k for k in os.environ if k.startswith("NOTECONTEXT_")]:
        monkeypatch.delenv(var, raising=False)

    # Also clear API keys that might interfere
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)

    # Change to temp directory to avoid loading local .env file
    monkeypatch.chdir(tmp_path)

    yield


def vector_with_similarity(similarity: float) -> list[float]:
    """Unit vector whose cosine similarity to QUERY_VECTOR is `similarity`."""
    vec = [0.0] * EMBEDDING_DIM
    vec[0] = similarity
    vec[1] = math.sqrt(max(0.0, 1.0 - similarity * similarity))
    return vec


QUERY_VECTOR = vector_with_similarity(1.0)


class FakeEmbedder:
    """Embedder returning a fixed vector, or raising a given error."""

    def __init__(self, vector=None, error: Exception | None = None):
        self.vector = QUERY_VECTOR if vector is None else vector
        self.error = error
        self.calls: list[str] = []

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        return self.vector

    async def close(self) -> None:
        pass


def make_note(
    note_id: str,
    user_id: str = "alice",
    title: str = "",
    body: str = "",
    similarity: float | None = None,
    age_days: float = 0.0,
    **kwargs,
) -> Note:
    """Build a Note updated `age_days` before NOW, embedded at `similarity` to the query."""
    updated = NOW - timedelta(days=age_days)
    return Note(
        id=note_id,
        user_id=user_id,
        title=title,
        body=body,
        created_at=kwargs.pop("created_at", updated),
        updated_at=updated,
        embedding=None if similarity is None else vector_with_similarity(similarity),
        **kwargs,
    )


@pytest.fixture
def note_factory():
    return make_note


@pytest.fixture
def query_vector():
    return list(QUERY_VECTOR)


@pytest.fixture
def similar_vector():
    return vector_with_similarity


@pytest.fixture
def fake_embedder():
    return FakeEmbedder


@pytest.fixture
def seeded_notes() -> list[Note]:
    """Multi-tenant fixture: two users, overlapping topics, soft-deleted rows."""
    return [
        # alice
        make_note(
            "a-roadmap",
            title="Q3 Project Roadmap",
            body="Milestones for the project roadmap: beta in July, launch in September.",
            tags=["planning", "work"],
            similarity=0.82,
            age_days=1,
        ),
        make_note(
            "a-standup",
            title="Standup notes",
            body="Discussed the roadmap slip and hiring.",
            tags=["work"],
            similarity=0.55,
            age_days=3,
        ),
        make_note(
            "a-grocery",
            title="Grocery list",
            body="Eggs, milk, coffee beans, spinach.",
            tags=["personal"],
            similarity=0.1,
            age_days=0,
        ),
        make_note(
            "a-ideas",
            title="Side project ideas",
            body="A voice-first journaling app. Needs a roadmap before anything else.",
            similarity=0.45,
            age_days=40,
        ),
        make_note(
            "a-deleted",
            title="Old project roadmap draft",
            body="Superseded project roadmap draft.",
            tags=["planning"],
            similarity=0.95,
            age_days=2,
            deleted_at=NOW - timedelta(days=1),
        ),
        # bob
        make_note(
            "b-roadmap",
            user_id="bob",
            title="Project roadmap (Bob)",
            body="Bob's private project roadmap with salary planning.",
            tags=["planning"],
            similarity=0.99,
            age_days=0,
        ),
        make_note(
            "b-journal",
            user_id="bob",
            title="Journal",
            body="Feeling good about the roadmap.",
            similarity=0.7,
            age_days=5,
        ),
    ]


@pytest.fixture
def seeded_store(seeded_notes) -> InMemoryNoteStore:
    return InMemoryNoteStore(seeded_notes)

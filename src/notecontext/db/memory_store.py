"""In-process note store.

Backs the test suite and callers that keep notes in memory. Applies the
same ownership and soft-delete rules as PgNoteStore, with plain-Python
cosine similarity and unranked lexical matching.
"""

import logging
import math
from collections.abc import Iterable

from notecontext.lib.text import tokenize_query
from notecontext.models import EMBEDDING_DIM, Note, NoteHit

logger = logging.getLogger(__name__)


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Cosine similarity of two equal-length vectors. Zero vectors score 0.0."""
    dot = sum(x * y for x, y in zip(a, b, strict=True))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


class InMemoryNoteStore:
    """NoteStore over a dict of notes keyed by id."""

    # Lexical hits all score 1.0
    ranked_lexical = False

    def __init__(self, notes: Iterable[Note] | None = None):
        self._notes: dict[str, Note] = {}
        for note in notes or []:
            self.add(note)

    def add(self, note: Note) -> None:
        """Insert or replace a note."""
        self._notes[note.id] = note

    def get(self, note_id: str) -> Note | None:
        return self._notes.get(note_id)

    def __len__(self) -> int:
        return len(self._notes)

    async def close(self) -> None:
        """Nothing to release; mirrors PgNoteStore.close()."""

    def _owned(self, user_id: str) -> list[Note]:
        if not user_id:
            raise ValueError("user_id is required for note queries")
        return [
            note
            for note in self._notes.values()
            if note.user_id == user_id and note.deleted_at is None
        ]

    async def vector_search(
        self,
        user_id: str,
        vector: list[float],
        threshold: float,
        limit: int,
    ) -> list[NoteHit]:
        if len(vector) != EMBEDDING_DIM:
            raise ValueError(
                f"Query vector must have {EMBEDDING_DIM} dimensions, got {len(vector)}"
            )

        hits = []
        for note in self._owned(user_id):
            if note.embedding is None:
                continue
            similarity = cosine_similarity(vector, note.embedding)
            if similarity > threshold:
                hits.append(NoteHit(note=note, score=similarity))

        hits.sort(key=lambda h: (-h.score, h.note.id))
        logger.debug(f"[VECTOR] {len(hits)} notes above {threshold} for user {user_id}")
        return hits[:limit]

    async def lexical_search(
        self,
        user_id: str,
        text: str,
        limit: int,
    ) -> list[NoteHit]:
        phrase = text.strip().lower()
        if not phrase:
            return []
        tokens = set(tokenize_query(phrase))

        hits = []
        for note in self._owned(user_id):
            in_text = phrase in note.title.lower() or phrase in note.body.lower()
            in_tags = any(tag.lower() in tokens for tag in note.tags)
            if in_text or in_tags:
                hits.append(NoteHit(note=note, score=1.0))

        hits.sort(key=lambda h: (-h.note.updated_at.timestamp(), h.note.id))
        logger.debug(f"[LEXICAL] {len(hits)} notes matched for user {user_id}")
        return hits[:limit]

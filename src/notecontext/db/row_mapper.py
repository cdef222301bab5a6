"""Row mapping utilities for notecontext database operations."""

from typing import Any

import asyncpg

from notecontext.models import Note, NoteHit


def _to_list(embedding: Any) -> list[float] | None:
    """pgvector returns numpy arrays; the models want plain lists."""
    if embedding is None:
        return None
    if hasattr(embedding, "tolist"):
        return embedding.tolist()
    return list(embedding)


def row_to_note(row: asyncpg.Record) -> Note:
    """Convert a notes row to a Note."""
    return Note(
        id=str(row["id"]),
        user_id=str(row["user_id"]),
        title=row["title"] or "",
        body=row["processed_content"] or "",
        summary=row["summary"],
        tags=row["tags"] or [],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        embedding=_to_list(row.get("embedding")),
        deleted_at=row["deleted_at"],
    )


def row_to_hit(row: asyncpg.Record, score: float) -> NoteHit:
    """Convert a scored notes row to a NoteHit."""
    return NoteHit(note=row_to_note(row), score=float(score))

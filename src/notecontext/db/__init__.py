"""Note storage for notecontext.

Provides:
- NoteStore: the search contract the retriever depends on
- PgNoteStore: PostgreSQL + pgvector implementation
- InMemoryNoteStore: dict-backed implementation for tests and in-process callers
- FilterBuilder: WHERE clause construction with the ownership rule
"""

from notecontext.db.base import NoteStore
from notecontext.db.filter_builder import FilterBuilder
from notecontext.db.memory_store import InMemoryNoteStore, cosine_similarity
from notecontext.db.note_store import PgNoteStore, lexical_score_from_rank
from notecontext.db.row_mapper import row_to_hit, row_to_note

__all__ = [
    "FilterBuilder",
    "InMemoryNoteStore",
    "NoteStore",
    "PgNoteStore",
    "cosine_similarity",
    "lexical_score_from_rank",
    "row_to_hit",
    "row_to_note",
]

"""Database constants for notecontext.

Centralizes commonly used SQL fragments to avoid duplication.
"""

# Table holding user notes (schema in PgNoteStore docstring)
NOTES_TABLE = "notes"

# Standard columns for note SELECT queries. The body lives in processed_content.
# The embedding is left out: ranking and packing never read it.
NOTE_COLUMNS = """
    id, user_id, title, processed_content, summary, tags,
    created_at, updated_at, deleted_at
""".strip()

# Full-text document for lexical ranking (matches the GIN index expression)
NOTE_TSVECTOR = (
    "to_tsvector('english', coalesce(title, '') || ' ' || coalesce(processed_content, ''))"
)

"""Error taxonomy for notecontext.

Callers get a tri-state outcome from build_context: a bundle with matches,
a bundle without matches, or one of these exceptions.
"""


class NoteContextError(Exception):
    """Base exception for notecontext errors."""


class InvalidInputError(NoteContextError):
    """Query text or options are invalid (user-correctable, 4xx)."""


class EmbeddingUnavailableError(NoteContextError):
    """The embedding service failed.

    Recoverable: retrieval degrades to lexical-only search.
    """


class RetrievalError(NoteContextError):
    """The lexical retrieval path failed; no trustworthy results exist."""


class PackingOverflowError(NoteContextError):
    """A packed bundle broke its budget. Indicates a programming error."""

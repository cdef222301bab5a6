"""notecontext - retrieval-augmented context assembly for personal notes.

Embeds a query, retrieves one user's notes by vector similarity and lexical
match, ranks them with a hybrid score, and packs the best into a
character-budgeted context bundle for prompt injection.
"""

from importlib.metadata import version

from notecontext.config import NoteContextConfig
from notecontext.context import ContextBuilder, build_context
from notecontext.errors import (
    EmbeddingUnavailableError,
    InvalidInputError,
    NoteContextError,
    PackingOverflowError,
    RetrievalError,
)
from notecontext.models import (
    Candidate,
    ContextBundle,
    ContextOptions,
    Excerpt,
    Note,
    Provenance,
    RankingWeights,
)

__version__ = version("notecontext")
__all__ = [
    "Candidate",
    "ContextBuilder",
    "ContextBundle",
    "ContextOptions",
    "EmbeddingUnavailableError",
    "Excerpt",
    "InvalidInputError",
    "Note",
    "NoteContextConfig",
    "NoteContextError",
    "PackingOverflowError",
    "Provenance",
    "RankingWeights",
    "RetrievalError",
    "__version__",
    "build_context",
]

"""notecontext shared utilities library.

This module contains cross-cutting helpers used across the package:
- async_utils: running coroutines from sync callers
- text: tokenizing, LIKE escaping, word-boundary truncation
"""

from notecontext.lib.async_utils import run_async
from notecontext.lib.text import (
    escape_like,
    normalize_lexical_score,
    tokenize_query,
    truncate_at_word_boundary,
)

__all__ = [
    "run_async",
    "escape_like",
    "normalize_lexical_score",
    "tokenize_query",
    "truncate_at_word_boundary",
]

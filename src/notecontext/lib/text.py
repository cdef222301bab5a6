"""Text helpers shared by the retrieval stages."""

import re

_TOKEN_RE = re.compile(r"[\w'-]+", re.UNICODE)


def tokenize_query(text: str) -> list[str]:
    """Split a query into lower-cased, de-duplicated word tokens.

    Order of first occurrence is preserved. Used for exact tag matching.
    """
    seen: set[str] = set()
    tokens: list[str] = []
    for match in _TOKEN_RE.finditer(text.lower()):
        token = match.group(0).strip("'-")
        if token and token not in seen:
            seen.add(token)
            tokens.append(token)
    return tokens


def escape_like(text: str) -> str:
    """Escape LIKE/ILIKE wildcards so the text matches literally."""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def normalize_lexical_score(score: float) -> float:
    """Normalize lexical scores to a 0-1 range.

    Uses a saturating transform so higher scores approach 1.0 without
    dominating other signals.
    """
    if score <= 0:
        return 0.0
    return score / (1.0 + score)


def truncate_at_word_boundary(text: str, limit: int) -> tuple[str, bool]:
    """Cut text to at most `limit` characters without splitting a word.

    Returns (text, was_truncated). The character right after a truncated
    result is always whitespace. An empty string means not even the first
    word fits.
    """
    if len(text) <= limit:
        return text, False
    if limit <= 0:
        return "", True

    if text[limit].isspace():
        return text[:limit].rstrip(), True

    cut = text[:limit]
    boundary = max(cut.rfind(" "), cut.rfind("\n"), cut.rfind("\t"))
    if boundary <= 0:
        return "", True
    return cut[:boundary].rstrip(), True

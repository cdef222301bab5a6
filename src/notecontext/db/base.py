"""Storage contract consumed by the candidate retriever."""

from typing import Protocol, runtime_checkable

from notecontext.models import NoteHit


@runtime_checkable
class NoteStore(Protocol):
    """Scoped note search capabilities.

    Implementations must only return notes owned by `user_id` and must
    exclude soft-deleted notes on both paths.
    """

    async def vector_search(
        self,
        user_id: str,
        vector: list[float],
        threshold: float,
        limit: int,
    ) -> list[NoteHit]:
        """Notes with cosine similarity above threshold, most similar first."""
        ...

    async def lexical_search(
        self,
        user_id: str,
        text: str,
        limit: int,
    ) -> list[NoteHit]:
        """Notes whose title/body contain the text or whose tags match a query token."""
        ...

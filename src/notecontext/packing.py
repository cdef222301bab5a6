"""Context packing: ranked candidates -> character-budgeted ContextBundle."""

import logging
from collections.abc import Callable, Iterable, Mapping

from notecontext.errors import PackingOverflowError
from notecontext.lib.text import truncate_at_word_boundary
from notecontext.models import Candidate, ContextBundle, Excerpt, Note

logger = logging.getLogger(__name__)

NoteLookup = Mapping[str, Note] | Callable[[str], Note | None]

DEFAULT_MIN_EXCERPT_CHARS = 80


def render_note(note: Note) -> str:
    """Render a note as a plain-text excerpt block.

    Layout: title, "Summary: ..." and "Tags: ..." lines when present, then
    the body. Empty parts are left out.
    """
    parts = []
    if note.title.strip():
        parts.append(note.title.strip())
    if note.summary and note.summary.strip():
        parts.append(f"Summary: {note.summary.strip()}")
    if note.tags:
        parts.append(f"Tags: {', '.join(note.tags)}")
    if note.body.strip():
        parts.append(note.body.strip())
    return "\n".join(parts)


def _resolve(note_lookup: NoteLookup, note_id: str) -> Note | None:
    if isinstance(note_lookup, Mapping):
        return note_lookup.get(note_id)
    return note_lookup(note_id)


class ContextPacker:
    """Greedy packer over a ranked candidate list.

    Full excerpts are appended in rank order. The first excerpt that does not
    fit is cut at a word boundary to fill what is left of the budget, as long
    as at least `min_excerpt_chars` remain (or nothing has been packed yet),
    and packing stops there.
    """

    def __init__(self, min_excerpt_chars: int = DEFAULT_MIN_EXCERPT_CHARS):
        self.min_excerpt_chars = min_excerpt_chars

    def pack(
        self,
        ranked: Iterable[Candidate],
        note_lookup: NoteLookup,
        max_total_chars: int,
        max_notes: int,
    ) -> ContextBundle:
        """Build a ContextBundle from ranked candidates.

        Args:
            ranked: Candidates in rank order
            note_lookup: Note id -> Note mapping, or a callable doing the same
            max_total_chars: Character budget for all excerpt texts together
            max_notes: Max number of excerpts

        Returns:
            ContextBundle; matched is False when nothing was packed

        Raises:
            ValueError: If a limit is below 1
            PackingOverflowError: If the packed bundle breaks the budget
        """
        if max_total_chars < 1 or max_notes < 1:
            raise ValueError("max_total_chars and max_notes must be at least 1")

        excerpts: list[Excerpt] = []
        total = 0

        for candidate in ranked:
            if len(excerpts) >= max_notes:
                break

            note = _resolve(note_lookup, candidate.note_id)
            if note is None:
                logger.info(f"[PACKING] Note {candidate.note_id} not found, skipping")
                continue

            text = render_note(note)
            if not text:
                continue

            remaining = max_total_chars - total
            truncated = False
            if len(text) > remaining:
                if excerpts and remaining < self.min_excerpt_chars:
                    break
                text, truncated = truncate_at_word_boundary(text, remaining)
                if not text:
                    logger.info(
                        f"[PACKING] Note {note.id} has no word boundary within "
                        f"{remaining} chars, skipping"
                    )
                    continue

            excerpts.append(
                Excerpt(
                    note_id=note.id,
                    title=note.title,
                    text=text,
                    truncated=truncated,
                    similarity=candidate.similarity,
                    provenance=candidate.provenance,
                    score=candidate.score if candidate.score is not None else 0.0,
                )
            )
            total += len(text)
            if truncated:
                break

        if total > max_total_chars or len(excerpts) > max_notes:
            raise PackingOverflowError(
                f"Packed {len(excerpts)} excerpts / {total} chars exceeds "
                f"{max_notes} notes / {max_total_chars} chars"
            )

        logger.debug(f"[PACKING] Packed {len(excerpts)} excerpts, {total}/{max_total_chars} chars")
        return ContextBundle(excerpts=excerpts, total_chars=total)

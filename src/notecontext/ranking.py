"""Candidate merging and hybrid ranking.

Scoring per candidate:

    score = w_vec * norm(similarity)
          + w_lex * norm(lexical_rank)
          + w_recency * recency_boost(note.updated_at)

norm() maps an absent score to 0. Similarities below zero are clamped to 0 so
that every weighted term is non-negative and a note found by both paths never
scores below either single-path rendition.
"""

import logging
from collections.abc import Iterable
from datetime import UTC, datetime

from notecontext.models import Candidate, NoteHit, Provenance, RankingWeights, _as_utc

logger = logging.getLogger(__name__)

DEFAULT_RECENCY_HALF_LIFE_DAYS = 30.0

_SECONDS_PER_DAY = 86400.0


def recency_boost(
    updated_at: datetime,
    now: datetime,
    half_life_days: float = DEFAULT_RECENCY_HALF_LIFE_DAYS,
) -> float:
    """Return 1 / (1 + age_days / half_life), clipped to [0, 1].

    Timestamps in the future count as age 0.
    """
    age_days = (_as_utc(now) - _as_utc(updated_at)).total_seconds() / _SECONDS_PER_DAY
    if age_days <= 0:
        return 1.0
    boost = 1.0 / (1.0 + age_days / half_life_days)
    return max(0.0, min(1.0, boost))


def merge_candidates(
    vector_hits: Iterable[NoteHit],
    lexical_hits: Iterable[NoteHit],
) -> list[Candidate]:
    """Merge per-path hits into one candidate per note id.

    A note seen by both paths carries both scores and is tagged BOTH.
    Duplicate hits within one path keep the highest score. Output order is
    first appearance (vector hits first), which the ranker then replaces.
    """
    similarity: dict[str, float] = {}
    lexical: dict[str, float] = {}
    notes = {}
    order: list[str] = []

    for scores, hits in ((similarity, vector_hits), (lexical, lexical_hits)):
        for hit in hits:
            note_id = hit.note.id
            if note_id not in notes:
                notes[note_id] = hit.note
                order.append(note_id)
            if note_id not in scores or hit.score > scores[note_id]:
                scores[note_id] = hit.score

    candidates = []
    for note_id in order:
        sim = similarity.get(note_id)
        lex = lexical.get(note_id)
        if sim is not None and lex is not None:
            provenance = Provenance.BOTH
        elif sim is not None:
            provenance = Provenance.VECTOR_ONLY
        else:
            provenance = Provenance.LEXICAL_ONLY

        candidates.append(
            Candidate(
                note=notes[note_id],
                similarity=None if sim is None else max(-1.0, min(1.0, sim)),
                lexical_rank=None if lex is None else max(0.0, lex),
                provenance=provenance,
            )
        )
    return candidates


class HybridRanker:
    """Deterministic hybrid ranker.

    `now` is fixed at construction so repeated rank() calls on the same
    input return the same order.
    """

    def __init__(
        self,
        weights: RankingWeights | None = None,
        now: datetime | None = None,
        half_life_days: float = DEFAULT_RECENCY_HALF_LIFE_DAYS,
        min_score: float = 0.0,
    ):
        if half_life_days <= 0:
            raise ValueError("half_life_days must be positive")
        self.weights = weights or RankingWeights()
        self.now = _as_utc(now) if now is not None else datetime.now(UTC)
        self.half_life_days = half_life_days
        self.min_score = min_score

    @staticmethod
    def _norm(value: float | None) -> float:
        if value is None:
            return 0.0
        return max(0.0, value)

    def score_candidate(self, candidate: Candidate) -> float:
        """Combined score of one candidate under this ranker's weights."""
        w = self.weights
        return (
            w.w_vec * self._norm(candidate.similarity)
            + w.w_lex * self._norm(candidate.lexical_rank)
            + w.w_recency
            * recency_boost(candidate.note.updated_at, self.now, self.half_life_days)
        )

    def rank(self, candidates: Iterable[Candidate]) -> list[Candidate]:
        """Score and order candidates, best first.

        Ties: BOTH before single-path, then newer updated_at, then smaller
        note id. Candidates scoring below min_score are dropped. Input
        candidates are not modified.
        """
        scored = [
            c.model_copy(update={"score": self.score_candidate(c)}) for c in candidates
        ]
        scored.sort(key=self._sort_key)

        ranked = [c for c in scored if c.score >= self.min_score]
        if len(ranked) < len(scored):
            logger.debug(
                f"[RANKING] Dropped {len(scored) - len(ranked)} candidates below {self.min_score}"
            )
        logger.debug(f"[RANKING] Ranked {len(ranked)} candidates")
        return ranked

    @staticmethod
    def _sort_key(candidate: Candidate) -> tuple[float, int, float, str]:
        return (
            -candidate.score,
            0 if candidate.provenance is Provenance.BOTH else 1,
            -candidate.note.updated_at.timestamp(),
            candidate.note_id,
        )

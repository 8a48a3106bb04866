from typing import List, Optional, Sequence, Tuple

import numpy as np
import structlog

from recall_agent.domain.models.errors import DimensionMismatch
from recall_agent.domain.models.memory import Note, ScoredNote

logger = structlog.get_logger(__name__)

DEFAULT_TOP_K = 3
DEFAULT_THRESHOLD = 0.5

Candidate = Tuple[Note, Optional[Sequence[float]]]


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine of the angle between two equal-length vectors.

    Raises DimensionMismatch for vectors of different length. A zero-norm
    vector has no direction, so its similarity to anything is 0.0.
    """

    if len(a) != len(b):
        raise DimensionMismatch(len(a), len(b))

    a_arr = np.asarray(a, dtype=float)
    b_arr = np.asarray(b, dtype=float)
    norm_a = np.linalg.norm(a_arr)
    norm_b = np.linalg.norm(b_arr)
    if norm_a == 0 or norm_b == 0:
        return 0.0

    score = float(np.dot(a_arr, b_arr) / (norm_a * norm_b))
    if not np.isfinite(score):
        return 0.0
    return score


class SimilarityRanker:
    """Ranks notes by cosine similarity to a query vector"""

    def __init__(self, k: int = DEFAULT_TOP_K, threshold: float = DEFAULT_THRESHOLD):
        self.k = k
        self.threshold = threshold

    def score_candidates(self, query_vector: Sequence[float], candidates: List[Candidate]) -> List[ScoredNote]:
        """Score every candidate in input order; never raises on bad vectors"""

        scored = []
        for note, vector in candidates:
            if vector is None:
                score = 0.0
            else:
                try:
                    score = cosine_similarity(query_vector, vector)
                except DimensionMismatch as e:
                    logger.warning("Skipping note with mismatched embedding", note_id=note.id, error=e.message)
                    score = 0.0
            scored.append(ScoredNote(note=note, score=score))
        return scored

    def rank_scored(
        self,
        query_vector: Sequence[float],
        candidates: List[Candidate],
        k: Optional[int] = None,
        threshold: Optional[float] = None
    ) -> List[ScoredNote]:
        """Top-k candidates scoring strictly above the threshold, best first.

        Equal scores keep the order the candidates were given in, since
        ``sorted`` is stable and there is no secondary key.
        """

        k = self.k if k is None else k
        threshold = self.threshold if threshold is None else threshold

        kept = [s for s in self.score_candidates(query_vector, candidates) if s.score > threshold]
        kept = sorted(kept, key=lambda s: s.score, reverse=True)
        return kept[:max(k, 0)]

    def rank(
        self,
        query_vector: Sequence[float],
        candidates: List[Candidate],
        k: Optional[int] = None,
        threshold: Optional[float] = None
    ) -> List[Note]:
        """Top-k notes most similar to the query"""

        return [s.note for s in self.rank_scored(query_vector, candidates, k, threshold)]

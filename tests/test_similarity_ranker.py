"""Tests for cosine scoring and top-k note selection."""

from datetime import datetime, timezone

import pytest

from recall_agent.domain.context.context_ranker import SimilarityRanker, cosine_similarity
from recall_agent.domain.models.errors import DimensionMismatch
from recall_agent.domain.models.memory import Note


def make_note(note_id, embedding=None, content=None):
    return Note(
        id=note_id,
        user_id=1,
        content=content or f"note {note_id}",
        embedding=embedding,
        created_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
    )


def candidates_of(*notes):
    return [(note, note.embedding) for note in notes]


# ============================================================================
# cosine_similarity
# ============================================================================


def test_identical_vectors_score_one():
    assert cosine_similarity([0.3, 0.4, 0.5], [0.3, 0.4, 0.5]) == pytest.approx(1.0)


def test_cosine_is_symmetric():
    q, v = [1.0, 2.0, 3.0], [-2.0, 0.5, 4.0]
    assert cosine_similarity(q, v) == pytest.approx(cosine_similarity(v, q))


def test_orthogonal_and_opposite_vectors():
    assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)
    assert cosine_similarity([1.0, 0.0], [-1.0, 0.0]) == pytest.approx(-1.0)


def test_zero_norm_scores_zero_not_nan():
    assert cosine_similarity([0.0, 0.0], [1.0, 1.0]) == 0.0
    assert cosine_similarity([1.0, 1.0], [0.0, 0.0]) == 0.0
    assert cosine_similarity([0.0, 0.0], [0.0, 0.0]) == 0.0


def test_length_mismatch_raises():
    with pytest.raises(DimensionMismatch) as exc_info:
        cosine_similarity([1.0, 0.0], [1.0, 0.0, 0.0])
    assert exc_info.value.left == 2
    assert exc_info.value.right == 3


# ============================================================================
# SimilarityRanker
# ============================================================================


def test_note_without_embedding_scores_zero():
    ranker = SimilarityRanker()
    scored = ranker.score_candidates([1.0, 0.0], candidates_of(make_note(1)))
    assert scored[0].score == 0.0


def test_note_without_embedding_is_never_ranked_at_default_threshold():
    ranker = SimilarityRanker()
    assert ranker.rank([1.0, 0.0], candidates_of(make_note(1))) == []


def test_dimension_mismatch_is_downgraded_to_zero():
    """A bad vector only loses; the rest of the batch is still ranked."""
    ranker = SimilarityRanker(threshold=0.5)
    bad = make_note(1, [1.0, 0.0, 0.0])
    good = make_note(2, [1.0, 0.0])

    scored = ranker.score_candidates([1.0, 0.0], candidates_of(bad, good))
    assert [s.score for s in scored] == [0.0, pytest.approx(1.0)]
    assert [n.id for n in ranker.rank([1.0, 0.0], candidates_of(bad, good))] == [2]


def test_rank_orders_by_descending_score():
    ranker = SimilarityRanker(k=3, threshold=0.0)
    low = make_note(1, [1.0, 1.0])
    high = make_note(2, [1.0, 0.05])
    mid = make_note(3, [1.0, 0.5])

    ranked = ranker.rank([1.0, 0.0], candidates_of(low, high, mid))
    assert [n.id for n in ranked] == [2, 3, 1]


def test_rank_never_returns_more_than_k():
    ranker = SimilarityRanker(k=3, threshold=0.0)
    notes = [make_note(i, [1.0, 0.01 * i]) for i in range(1, 8)]
    assert len(ranker.rank([1.0, 0.0], candidates_of(*notes))) == 3
    assert len(ranker.rank([1.0, 0.0], candidates_of(*notes), k=5)) == 5


def test_threshold_is_exclusive():
    at_threshold = make_note(1, [1.0, 1.0])
    above = make_note(2, [1.0, 0.1])
    threshold = cosine_similarity([1.0, 0.0], [1.0, 1.0])

    ranker = SimilarityRanker(k=3, threshold=threshold)
    ranked = ranker.rank_scored([1.0, 0.0], candidates_of(at_threshold, above))

    assert [s.note.id for s in ranked] == [2]
    assert all(s.score > threshold for s in ranked)


def test_ties_keep_input_order():
    """Equal scores fall back to the order candidates were supplied in."""
    ranker = SimilarityRanker(k=3, threshold=0.5)
    first = make_note(10, [2.0, 0.0])
    second = make_note(5, [1.0, 0.0])
    third = make_note(7, [3.0, 0.0])

    ranked = ranker.rank([1.0, 0.0], candidates_of(first, second, third))
    assert [n.id for n in ranked] == [10, 5, 7]

    ranked = ranker.rank([1.0, 0.0], candidates_of(third, first, second))
    assert [n.id for n in ranked] == [7, 10, 5]


def test_rank_is_idempotent():
    ranker = SimilarityRanker(k=3, threshold=0.1)
    notes = [make_note(i, [1.0, (i % 3) * 0.2, 0.1]) for i in range(1, 7)]
    candidates = candidates_of(*notes)

    assert ranker.rank([1.0, 0.1, 0.1], candidates) == ranker.rank([1.0, 0.1, 0.1], candidates)


def test_identical_vector_note_is_selected():
    ranker = SimilarityRanker(k=3, threshold=0.99)
    match = make_note(1, [0.2, 0.9, 0.4], content="likes green tea")
    other = make_note(2, [0.9, -0.2, 0.0])

    ranked = ranker.rank_scored([0.2, 0.9, 0.4], candidates_of(other, match))
    assert [s.note.id for s in ranked] == [1]
    assert ranked[0].score == pytest.approx(1.0)


def test_rank_with_no_candidates():
    assert SimilarityRanker().rank([1.0], []) == []

"""Tests for cosine similarity and vector averaging."""

import math

import pytest

from app.core.vector_math import cosine_similarity, mean_vector


def test_identical_vectors_score_one():
    v = [0.3, -1.2, 4.0, 0.05]
    assert cosine_similarity(v, v) == pytest.approx(1.0)


def test_similarity_is_symmetric():
    a = [1.0, 2.0, 3.0]
    b = [-2.0, 0.5, 1.0]
    assert cosine_similarity(a, b) == pytest.approx(cosine_similarity(b, a))


def test_similarity_is_bounded():
    pairs = [
        ([1.0, 0.0], [0.0, 1.0]),
        ([1.0, 2.0, 3.0], [3.0, 2.0, 1.0]),
        ([1e-9, 5.0], [1e9, -5.0]),
    ]
    for a, b in pairs:
        assert -1.0 <= cosine_similarity(a, b) <= 1.0


def test_orthogonal_and_opposite_vectors():
    assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)
    assert cosine_similarity([1.0, 1.0], [-1.0, -1.0]) == pytest.approx(-1.0)


def test_known_angle():
    # 45 degrees
    assert cosine_similarity([1.0, 0.0], [1.0, 1.0]) == pytest.approx(1 / math.sqrt(2))


@pytest.mark.parametrize(
    "a,b",
    [
        ([], []),
        ([], [1.0]),
        ([1.0, 2.0], [1.0, 2.0, 3.0]),
        ([0.0, 0.0], [1.0, 1.0]),
        ([0.0, 0.0], [0.0, 0.0]),
        ([math.nan, 1.0], [1.0, 0.0]),
        ([math.inf, 1.0], [1.0, 0.0]),
        ([1.0, 0.0], [-math.inf, 0.0]),
    ],
)
def test_degenerate_input_scores_zero(a, b):
    assert cosine_similarity(a, b) == 0.0


def test_mean_vector():
    assert mean_vector([[1.0, 2.0], [3.0, 4.0]]) == [2.0, 3.0]


def test_mean_vector_requires_input():
    with pytest.raises(ValueError):
        mean_vector([])

"""Tests for k-means clustering of document embeddings."""

import pytest

from app.core.clustering import (
    ClusterPoint,
    choose_cluster_count,
    cluster_membership,
    kmeans_clusters,
)


def _points(*pairs):
    return [ClusterPoint(id=doc_id, vector=vector) for doc_id, vector in pairs]


@pytest.mark.parametrize(
    "n,expected",
    [(0, 2), (1, 2), (5, 2), (6, 2), (9, 3), (12, 4), (15, 5), (100, 5)],
)
def test_choose_cluster_count(n, expected):
    assert choose_cluster_count(n) == expected


def test_two_topics_split_cleanly():
    """Six documents in two topics, interleaved, form two clusters of three."""
    points = _points(
        ("onboarding-1", [1.0, 0.0]),
        ("expense-1", [0.0, 1.0]),
        ("onboarding-2", [0.95, 0.05]),
        ("onboarding-3", [0.9, 0.1]),
        ("expense-2", [0.05, 0.95]),
        ("expense-3", [0.1, 0.9]),
    )
    k = choose_cluster_count(len(points))
    assert k == 2

    result = kmeans_clusters(points, k)

    assert result.k == 2
    assert sorted(result.clusters[0]) == ["onboarding-1", "onboarding-2", "onboarding-3"]
    assert sorted(result.clusters[1]) == ["expense-1", "expense-2", "expense-3"]


def test_exactly_k_buckets_when_k_exceeds_points():
    points = _points(("a", [1.0, 0.0]), ("b", [0.0, 1.0]))

    result = kmeans_clusters(points, 5)

    assert len(result.clusters) == 5
    assert result.clusters[0] == ["a"]
    assert result.clusters[1] == ["b"]
    assert all(bucket == [] for bucket in result.clusters[2:])


def test_every_id_appears_exactly_once():
    points = _points(*[(f"doc-{i}", [float(i % 3), float(i % 5), 1.0]) for i in range(14)])

    result = kmeans_clusters(points, choose_cluster_count(len(points)))

    ids = [doc_id for bucket in result.clusters for doc_id in bucket]
    assert sorted(ids) == sorted(p.id for p in points)
    assert len(result.clusters) == 4


def test_empty_input_gives_empty_buckets():
    result = kmeans_clusters([], 3)
    assert result.clusters == [[], [], []]


def test_same_input_same_partition():
    points = _points(*[(f"doc-{i}", [float(i), float(10 - i)]) for i in range(10)])
    assert kmeans_clusters(points, 3).clusters == kmeans_clusters(points, 3).clusters


def test_iterations_capped():
    points = _points(*[(f"doc-{i}", [float(i), float(i * i % 7), 1.0]) for i in range(20)])
    result = kmeans_clusters(points, 4, max_iterations=2)
    assert 1 <= result.iterations <= 2


def test_invalid_k_raises():
    with pytest.raises(ValueError, match="k must be >= 1"):
        kmeans_clusters(_points(("a", [1.0])), 0)


def test_inconsistent_dimensions_raise():
    with pytest.raises(ValueError, match="inconsistent dimensions"):
        kmeans_clusters(_points(("a", [1.0, 0.0]), ("b", [1.0])), 2)


def test_cluster_membership():
    points = _points(("a", [1.0, 0.0]), ("b", [0.0, 1.0]), ("c", [0.9, 0.1]))
    membership = cluster_membership(kmeans_clusters(points, 2))
    assert membership == {"a": 0, "c": 0, "b": 1}

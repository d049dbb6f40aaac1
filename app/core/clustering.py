"""k-means clustering of document embeddings into topic groups.

Centroids are seeded with the first k points in input order, so a given input
always produces the same partition. Points are assigned by highest cosine
similarity; empty clusters keep their previous centroid. Iteration stops when
assignments stop changing or after max_iterations.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

import numpy as np

from app.core.vector_math import mean_vector

MIN_CLUSTERS = 2
MAX_CLUSTERS = 5


@dataclass
class ClusterPoint:
    """A document id with its embedding."""

    id: str
    vector: Sequence[float]


@dataclass
class ClusterResult:
    """Bucketed document ids, indexed by cluster number."""

    clusters: list[list[str]] = field(default_factory=list)
    centroids: list[list[float]] = field(default_factory=list)
    iterations: int = 0

    @property
    def k(self) -> int:
        return len(self.clusters)


def choose_cluster_count(n: int) -> int:
    """k = clamp(floor(n / 3), 2, 5), independent of how separable the data is."""
    return min(MAX_CLUSTERS, max(MIN_CLUSTERS, n // 3))


def _normalize_rows(matrix: np.ndarray) -> np.ndarray:
    norms = np.linalg.norm(matrix, axis=1, keepdims=True)
    # Zero rows stay zero and score 0 against everything
    norms[norms == 0] = 1.0
    return matrix / norms


def _assign(unit_points: np.ndarray, centroids: np.ndarray) -> np.ndarray:
    """Index of the most similar centroid per point (ties go to the lowest index)."""
    similarities = unit_points @ _normalize_rows(centroids).T
    return np.argmax(similarities, axis=1)


def kmeans_clusters(
    points: Sequence[ClusterPoint],
    k: int,
    max_iterations: int = 10,
) -> ClusterResult:
    """
    Partition points into exactly k buckets.

    Args:
        points: Document ids with embeddings (all vectors the same length)
        k: Number of clusters (>= 1)
        max_iterations: Upper bound on refinement rounds

    Returns:
        ClusterResult with len(clusters) == k; every id appears in exactly one bucket

    Raises:
        ValueError: If k < 1 or vectors have inconsistent dimensions
    """
    if k < 1:
        raise ValueError(f"k must be >= 1, got {k}")

    if not points:
        return ClusterResult(clusters=[[] for _ in range(k)])

    dims = {len(p.vector) for p in points}
    if len(dims) != 1:
        raise ValueError(f"Embeddings have inconsistent dimensions: {sorted(dims)}")

    matrix = np.asarray([p.vector for p in points], dtype=float)
    unit_points = _normalize_rows(matrix)

    # Seed with the first k points; pad with the first point when k > N so the
    # bucket count stays k
    seeds = [matrix[i] if i < len(points) else matrix[0] for i in range(k)]
    centroids = np.asarray(seeds, dtype=float)

    assignments: np.ndarray | None = None
    iterations = 0

    for _ in range(max(1, max_iterations)):
        iterations += 1
        new_assignments = _assign(unit_points, centroids)

        if assignments is not None and np.array_equal(new_assignments, assignments):
            break
        assignments = new_assignments

        for cluster_idx in range(k):
            members = matrix[assignments == cluster_idx]
            if len(members) > 0:
                centroids[cluster_idx] = mean_vector(members)

    clusters: list[list[str]] = [[] for _ in range(k)]
    for point, cluster_idx in zip(points, assignments, strict=True):
        clusters[int(cluster_idx)].append(point.id)

    return ClusterResult(
        clusters=clusters,
        centroids=centroids.tolist(),
        iterations=iterations,
    )


def cluster_membership(result: ClusterResult) -> dict[str, int]:
    """Map each document id to its cluster index."""
    return {
        doc_id: cluster_idx
        for cluster_idx, doc_ids in enumerate(result.clusters)
        for doc_id in doc_ids
    }

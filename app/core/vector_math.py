"""Vector helpers shared by retrieval and clustering."""

from typing import Sequence

import numpy as np


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity between two vectors.

    Degenerate input (empty, mismatched length, zero magnitude, NaN or
    infinite components) scores 0.0 so ranking treats it as unrelated
    instead of failing.

    Args:
        a: First vector
        b: Second vector

    Returns:
        Similarity in [-1, 1]
    """
    if a is None or b is None or len(a) == 0 or len(b) == 0 or len(a) != len(b):
        return 0.0

    va = np.asarray(a, dtype=float)
    vb = np.asarray(b, dtype=float)

    if not (np.isfinite(va).all() and np.isfinite(vb).all()):
        return 0.0

    magnitude = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if magnitude == 0.0 or not np.isfinite(magnitude):
        return 0.0

    score = float(np.dot(va, vb)) / magnitude
    if not np.isfinite(score):
        return 0.0
    return max(-1.0, min(1.0, score))


def mean_vector(vectors: Sequence[Sequence[float]]) -> list[float]:
    """Element-wise mean of equal-length vectors."""
    if len(vectors) == 0:
        raise ValueError("mean_vector requires at least one vector")
    return np.asarray(vectors, dtype=float).mean(axis=0).tolist()

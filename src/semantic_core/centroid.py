"""Vector math: weighted video centroids, collection means, cosine similarity."""

from collections.abc import Sequence

import numpy as np

from .schemas import AISegment, WeightedVector

DEFAULT_MIN_WEIGHT = 10.0


def segment_weight(start_time: float, end_time: float, minimum_weight: float = DEFAULT_MIN_WEIGHT) -> float:
    """Weight of a segment: its duration in seconds, floored at ``minimum_weight``."""
    return max(minimum_weight, end_time - start_time)


def weighted_vectors(
    segments: Sequence[AISegment],
    vectors: Sequence[list[float] | None],
    minimum_weight: float = DEFAULT_MIN_WEIGHT,
) -> list[WeightedVector]:
    """Pair segments with their vectors, skipping segments without one."""
    return [
        WeightedVector(
            vector=vector,
            weight=segment_weight(segment.start_time, segment.end_time, minimum_weight),
        )
        for segment, vector in zip(segments, vectors, strict=True)
        if vector is not None
    ]


def _as_matrix(vectors: Sequence[Sequence[float]]) -> np.ndarray:
    dims = {len(v) for v in vectors}
    if len(dims) != 1:
        raise ValueError(f"Vectors have mismatched dimensions: {sorted(dims)}")
    return np.asarray(vectors, dtype=np.float64)


def aggregate(weighted: Sequence[WeightedVector]) -> list[float] | None:
    """Duration-weighted mean of segment vectors.

    output[i] = sum(vector[i] * weight) / sum(weight)

    Returns:
        The video-level vector, or None for empty input.

    Raises:
        ValueError: If the vectors differ in dimension.
    """
    if not weighted:
        return None

    matrix = _as_matrix([w.vector for w in weighted])
    weights = np.asarray([w.weight for w in weighted], dtype=np.float64)
    centroid = weights @ matrix / weights.sum()
    return [float(x) for x in centroid]


def mean_vector(vectors: Sequence[Sequence[float]]) -> list[float] | None:
    """Unweighted arithmetic mean, or None for empty input."""
    if not vectors:
        return None
    return [float(x) for x in _as_matrix(vectors).mean(axis=0)]


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity in [-1, 1]; 0.0 when either vector has zero norm."""
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape:
        raise ValueError(f"Vectors have mismatched dimensions: {va.shape} vs {vb.shape}")

    norm = np.linalg.norm(va) * np.linalg.norm(vb)
    if norm == 0:
        return 0.0
    return float(np.clip(va @ vb / norm, -1.0, 1.0))


def cosine_distance(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine distance as used by pgvector's ``<=>`` operator."""
    return 1.0 - cosine_similarity(a, b)

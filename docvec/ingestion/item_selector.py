# -*- coding: utf-8 -*-
"""
ItemSelector
============
Similarity and metadata-filter helpers used by the vector store.

Cosine similarity is dot(v1, v2) / (|v1| * |v2|). A zero vector on either
side scores 0.0 instead of dividing by zero.

Metadata values are scalars (str, int, float, bool). Filter equality is
type-strict so that, e.g., True never matches 1 and "1" never matches 1.
"""

from __future__ import annotations

from typing import Dict, Mapping, Sequence, Union

import numpy as np

MetadataValue = Union[str, int, float, bool]
Metadata = Dict[str, MetadataValue]


def norm(vector: Sequence[float]) -> float:
    """Euclidean norm of a single vector."""
    return float(np.linalg.norm(np.asarray(vector, dtype=np.float32)))


def cosine_similarity(vector1: Sequence[float], vector2: Sequence[float]) -> float:
    return normalized_cosine_similarity(vector1, norm(vector1), vector2, norm(vector2))


def normalized_cosine_similarity(
    vector1: Sequence[float], norm1: float, vector2: Sequence[float], norm2: float
) -> float:
    """Cosine similarity with precomputed norms."""
    if norm1 == 0.0 or norm2 == 0.0:
        return 0.0
    dot = float(np.dot(np.asarray(vector1, dtype=np.float32), np.asarray(vector2, dtype=np.float32)))
    return dot / (norm1 * norm2)


def cosine_scores(matrix: np.ndarray, query: np.ndarray) -> np.ndarray:
    """
    Vectorised cosine similarity of every row of `matrix` (N, D) against
    `query` (D,). Rows with zero norm (or a zero query) score 0.0.
    """
    if matrix.ndim != 2:
        raise ValueError("matrix must be 2D [N, D]")
    if query.ndim != 1 or query.shape[0] != matrix.shape[1]:
        raise ValueError(
            f"query dimension {query.shape} does not match stored vectors {matrix.shape[1:]}"
        )
    row_norms = np.linalg.norm(matrix, axis=1)
    q_norm = float(np.linalg.norm(query))
    denom = row_norms * q_norm
    dots = matrix @ query
    scores = np.zeros(matrix.shape[0], dtype=np.float64)
    nonzero = denom > 0.0
    scores[nonzero] = dots[nonzero] / denom[nonzero]
    # tiny numerical overshoots
    return np.clip(scores, -1.0, 1.0)


def values_equal(left: MetadataValue, right: MetadataValue) -> bool:
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if isinstance(left, (int, float)) and isinstance(right, (int, float)):
        return float(left) == float(right)
    if isinstance(left, str) and isinstance(right, str):
        return left == right
    return False


def select(metadata: Mapping[str, MetadataValue], filter: Mapping[str, MetadataValue]) -> bool:
    """True when every key/value pair of `filter` is present and equal in `metadata`."""
    for key, value in filter.items():
        if key not in metadata:
            return False
        if not values_equal(metadata[key], value):
            return False
    return True

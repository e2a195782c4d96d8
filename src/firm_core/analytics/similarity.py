"""
Cosine similarity between sparse vectors.

Vectors are dictionaries keyed by symbol or sector; a key absent from one
vector counts as 0 in it.
"""

import numpy as np


def cosine_similarity(
    vector_a: dict[str, float],
    vector_b: dict[str, float],
) -> float:
    """
    Calculate the cosine similarity of two sparse vectors.

    The union of keys is used, so the measure is symmetric.

    Args:
        vector_a: First vector
        vector_b: Second vector

    Returns:
        Similarity in [-1, 1]; 0.0 when either vector has zero magnitude
    """
    keys = sorted(set(vector_a) | set(vector_b))
    if not keys:
        return 0.0

    a = np.array([float(vector_a.get(k, 0.0)) for k in keys])
    b = np.array([float(vector_b.get(k, 0.0)) for k in keys])

    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a == 0 or norm_b == 0:
        return 0.0

    similarity = float(np.dot(a, b) / (norm_a * norm_b))
    return max(-1.0, min(1.0, similarity))

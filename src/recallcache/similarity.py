"""Vector similarity shared by the memory cache and the re-ranker."""

from typing import Sequence

import numpy as np


def cosine_similarity(vec1: Sequence[float], vec2: Sequence[float]) -> float:
    """
    Calculate cosine similarity between two vectors.

    Returns 0.0 when either vector is empty or all-zero, or when the lengths
    differ, so ranking code never has to special-case degenerate embeddings.
    """
    if len(vec1) != len(vec2) or len(vec1) == 0:
        return 0.0

    vec1_np = np.asarray(vec1, dtype=np.float64)
    vec2_np = np.asarray(vec2, dtype=np.float64)

    norm1 = np.linalg.norm(vec1_np)
    norm2 = np.linalg.norm(vec2_np)
    if norm1 == 0 or norm2 == 0:
        return 0.0

    similarity = float(np.dot(vec1_np, vec2_np) / (norm1 * norm2))
    return max(-1.0, min(1.0, similarity))

"""numpy helpers for embedding vectors."""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np


def l2_normalize(vectors: Sequence[Sequence[float]]) -> list[list[float]]:
    """Scale each row to unit length.  All-zero rows are returned unchanged."""
    matrix = np.asarray(vectors, dtype=np.float64)
    if matrix.size == 0:
        return [list(v) for v in vectors]
    norms = np.linalg.norm(matrix, axis=1, keepdims=True)
    norms[norms == 0.0] = 1.0
    return (matrix / norms).tolist()


def cosine_similarities(query: Sequence[float], matrix: Sequence[Sequence[float]]) -> list[float]:
    """Cosine similarity of *query* against every row of *matrix*."""
    if len(matrix) == 0:
        return []
    q = np.asarray(query, dtype=np.float64)
    m = np.asarray(matrix, dtype=np.float64)
    q_norm = np.linalg.norm(q)
    row_norms = np.linalg.norm(m, axis=1)
    denom = row_norms * q_norm
    denom[denom == 0.0] = 1.0
    return (m @ q / denom).tolist()

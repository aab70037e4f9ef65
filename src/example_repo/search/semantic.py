"""
Vector similarity for embedding-based ranking.
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine of the angle between *a* and *b*.

    Mismatched lengths, empty or zero vectors and non-finite inputs score 0.0
    rather than raising.
    """
    if len(a) != len(b) or len(a) == 0:
        return 0.0

    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    magnitude = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if magnitude == 0.0 or not np.isfinite(magnitude):
        return 0.0

    similarity = float(np.dot(va, vb) / magnitude)
    if not np.isfinite(similarity):
        return 0.0
    return similarity

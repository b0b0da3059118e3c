"""Pure similarity functions.

Why: Scoring is a pure function of two vectors, so it lives in the Domain
and is shared by every store implementation.
"""

from collections.abc import Sequence
from math import sqrt

from .types import Score


def cosine(u: Sequence[float], v: Sequence[float]) -> Score:
    """Compute cosine similarity between two vectors.

    Args:
        u: First vector
        v: Second vector

    Returns:
        Cosine similarity score between -1 and 1, or exactly 0.0 when either
        vector has zero magnitude
    """
    nu = sqrt(sum(a * a for a in u))
    nv = sqrt(sum(b * b for b in v))
    if nu == 0.0 or nv == 0.0:
        return 0.0
    dot = sum(a * b for a, b in zip(u, v, strict=True))
    # clamp float drift so self-similarity never exceeds 1.0
    return max(-1.0, min(1.0, dot / (nu * nv)))

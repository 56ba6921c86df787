import math
from typing import Sequence

from errors import DimensionMismatch


def cosine_similarity(v1: Sequence[float], v2: Sequence[float]) -> float:
    """Cosine of the angle between two equal-length vectors.

    Returns 0.0 when either vector has zero magnitude or holds a NaN or
    infinite component.
    """
    if len(v1) != len(v2):
        raise DimensionMismatch(
            f"Vectors must have the same length (got {len(v1)} and {len(v2)})"
        )

    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for a, b in zip(v1, v2):
        dot += a * b
        norm_a += a * a
        norm_b += b * b

    if not (math.isfinite(dot) and math.isfinite(norm_a) and math.isfinite(norm_b)):
        return 0.0
    if norm_a == 0 or norm_b == 0:
        return 0.0
    similarity = dot / (math.sqrt(norm_a) * math.sqrt(norm_b))
    if math.isnan(similarity):
        return 0.0
    return max(-1.0, min(1.0, similarity))

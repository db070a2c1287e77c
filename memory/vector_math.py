"""Vector math helpers for embedding comparison."""

from __future__ import annotations

import math
from collections.abc import Sequence

from memory.errors import InputError


def _check_dimensions(a: Sequence[float], b: Sequence[float]) -> None:
    if len(a) != len(b):
        raise InputError(f"Vectors must have the same dimensions ({len(a)} != {len(b)})")


def cosine_similarity(a: Sequence[float] | None, b: Sequence[float] | None) -> float:
    """Cosine similarity in [-1, 1]; 0.0 when either vector is missing or zero."""
    if not a or not b:
        return 0.0
    _check_dimensions(a, b)
    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for x, y in zip(a, b):
        dot += x * y
        norm_a += x * x
        norm_b += y * y
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (math.sqrt(norm_a) * math.sqrt(norm_b))


def euclidean_distance(a: Sequence[float] | None, b: Sequence[float] | None) -> float:
    """Euclidean distance; +inf when either vector is missing."""
    if a is None or b is None:
        return math.inf
    if not a and not b:
        return 0.0
    if not a or not b:
        return math.inf
    _check_dimensions(a, b)
    return math.sqrt(sum((x - y) * (x - y) for x, y in zip(a, b)))

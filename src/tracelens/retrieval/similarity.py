"""Vector math and serialization for stored embeddings."""

from __future__ import annotations

import math
import struct
from typing import TYPE_CHECKING

from tracelens.core.exceptions import DimensionMismatchError, StorageError

if TYPE_CHECKING:
    from collections.abc import Sequence

FLOAT32_SIZE = 4


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity of two vectors.

    Args:
        a: First vector.
        b: Second vector.

    Returns:
        Score in [-1, 1]; 0.0 when either vector is all zeros.

    Raises:
        DimensionMismatchError: If the vectors differ in length.
    """
    if len(a) != len(b):
        raise DimensionMismatchError(len(a), len(b))

    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for x, y in zip(a, b, strict=True):
        dot += x * y
        norm_a += x * x
        norm_b += y * y

    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0

    score = dot / (math.sqrt(norm_a) * math.sqrt(norm_b))
    # Rounding can push identical/opposite vectors just past the bounds
    return max(-1.0, min(1.0, score))


def serialize_embedding(vector: Sequence[float]) -> bytes:
    """Pack a vector as big-endian float32."""
    return struct.pack(f">{len(vector)}f", *vector)


def deserialize_embedding(data: bytes, dimension: int | None = None) -> list[float]:
    """Unpack a big-endian float32 blob written by :func:`serialize_embedding`."""
    if len(data) % FLOAT32_SIZE:
        raise StorageError(f"Corrupt embedding blob of {len(data)} bytes")
    count = len(data) // FLOAT32_SIZE
    if dimension is not None and dimension != count:
        raise StorageError(f"Embedding blob holds {count} values, expected {dimension}")
    return list(struct.unpack(f">{count}f", data))

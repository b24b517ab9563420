"""Tests for cosine similarity and embedding serialization."""

from __future__ import annotations

import struct

import pytest
from hypothesis import given
from hypothesis import strategies as st

from tracelens.core.exceptions import DimensionMismatchError, StorageError
from tracelens.retrieval.similarity import (
    cosine_similarity,
    deserialize_embedding,
    serialize_embedding,
)


def vectors(min_size: int = 1, max_size: int = 16) -> st.SearchStrategy[list[float]]:
    """Strategy for non-zero float vectors of moderate magnitude."""
    return st.lists(
        st.floats(min_value=-100.0, max_value=100.0, allow_nan=False, allow_infinity=False),
        min_size=min_size,
        max_size=max_size,
    ).filter(lambda values: any(abs(v) > 1e-3 for v in values))


class TestCosineSimilarity:
    """Tests for cosine_similarity."""

    def test_identical_vectors_score_one(self):
        assert cosine_similarity([1.0, 2.0, 3.0], [1.0, 2.0, 3.0]) == pytest.approx(1.0)

    def test_orthogonal_vectors_score_zero(self):
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)

    def test_opposite_vectors_score_minus_one(self):
        assert cosine_similarity([1.0, 2.0], [-1.0, -2.0]) == pytest.approx(-1.0)

    def test_scaled_vectors_score_one(self):
        assert cosine_similarity([1.0, 2.0], [10.0, 20.0]) == pytest.approx(1.0)

    def test_zero_vector_scores_zero(self):
        """A zero vector has no direction, so it matches nothing."""
        assert cosine_similarity([0.0, 0.0, 0.0], [1.0, 2.0, 3.0]) == 0.0
        assert cosine_similarity([1.0, 2.0, 3.0], [0.0, 0.0, 0.0]) == 0.0

    def test_length_mismatch_raises(self):
        with pytest.raises(DimensionMismatchError) as exc_info:
            cosine_similarity([1.0, 0.0, 0.0], [1.0, 0.0])

        assert exc_info.value.expected == 3
        assert exc_info.value.actual == 2

    @given(vectors())
    def test_vector_with_itself_is_one(self, vector):
        assert cosine_similarity(vector, vector) == pytest.approx(1.0, abs=1e-9)

    @given(vectors())
    def test_vector_with_negation_is_minus_one(self, vector):
        negated = [-v for v in vector]
        assert cosine_similarity(vector, negated) == pytest.approx(-1.0, abs=1e-9)

    @given(
        st.integers(min_value=1, max_value=8).flatmap(
            lambda n: st.tuples(vectors(n, n), vectors(n, n))
        )
    )
    def test_score_is_symmetric_and_bounded(self, pair):
        a, b = pair
        score = cosine_similarity(a, b)
        assert -1.0 <= score <= 1.0
        assert score == pytest.approx(cosine_similarity(b, a))

    @given(vectors(1, 8), vectors(9, 16))
    def test_different_lengths_always_raise(self, a, b):
        with pytest.raises(DimensionMismatchError):
            cosine_similarity(a, b)


class TestEmbeddingSerialization:
    """Tests for float32 blob encoding."""

    def test_blob_is_big_endian_float32(self):
        assert serialize_embedding([1.0, -2.5]) == struct.pack(">2f", 1.0, -2.5)

    def test_deserialize_restores_values(self):
        blob = serialize_embedding([0.5, 0.25, -1.0])
        assert deserialize_embedding(blob) == [0.5, 0.25, -1.0]

    def test_deserialize_checks_expected_dimension(self):
        blob = serialize_embedding([0.5, 0.25])
        with pytest.raises(StorageError, match="expected 3"):
            deserialize_embedding(blob, dimension=3)

    def test_truncated_blob_raises_storage_error(self):
        blob = serialize_embedding([0.5, 0.25])[:-1]
        with pytest.raises(StorageError, match="Corrupt"):
            deserialize_embedding(blob)

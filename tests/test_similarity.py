"""
Tests for cosine similarity and account vector builders.
"""

from decimal import Decimal

import pytest

from firm_core.analytics.similarity import cosine_similarity
from firm_core.analytics.vectors import (
    holdings_frame,
    sector_value_vectors,
    stock_vectors,
    zero_stock_vector,
)


class TestCosineSimilarity:
    """Tests for the cosine_similarity function."""

    def test_symmetric(self):
        """Test similarity(A, B) == similarity(B, A) with differing key sets."""
        a = {"AAA": 3.0, "BBB": 1.0}
        b = {"BBB": 2.0, "XOM": 5.0}

        assert cosine_similarity(a, b) == cosine_similarity(b, a)

    def test_self_similarity_is_one(self):
        """Test a non-zero vector is fully similar to itself."""
        a = {"AAA": 0.1, "BBB": 7.0, "XOM": 3.3}
        assert cosine_similarity(a, a) == pytest.approx(1.0)
        assert cosine_similarity(a, a) <= 1.0

    def test_zero_vector(self):
        """Test a zero vector has similarity 0 with anything."""
        assert cosine_similarity({"AAA": 0.0}, {"AAA": 4.0}) == 0.0
        assert cosine_similarity({}, {"AAA": 4.0}) == 0.0
        assert cosine_similarity({}, {}) == 0.0

    def test_orthogonal(self):
        """Test vectors with no shared non-zero keys are orthogonal."""
        assert cosine_similarity({"AAA": 1.0}, {"BBB": 1.0}) == 0.0

    def test_missing_key_counts_as_zero(self):
        """Test an absent key behaves exactly like an explicit zero."""
        a = {"AAA": 1.0, "BBB": 2.0}
        assert cosine_similarity(a, {"AAA": 1.0}) == cosine_similarity(a, {"AAA": 1.0, "BBB": 0.0})

    def test_opposite_vectors(self):
        """Test opposite vectors score -1."""
        assert cosine_similarity({"AAA": 1.0, "BBB": 2.0}, {"AAA": -1.0, "BBB": -2.0}) == pytest.approx(-1.0)

    def test_known_value(self):
        """Test a hand-computed similarity."""
        # (1*2 + 2*1) / (sqrt(5) * sqrt(5)) = 0.8
        assert cosine_similarity({"x": 1, "y": 2}, {"x": 2, "y": 1}) == pytest.approx(0.8)


class TestVectors:
    """Tests for the holdings vector builders."""

    def test_holdings_frame(self, store):
        """Test holdings are flattened with sector and value."""
        store.set_holding(1, "AAA", Decimal("10"), Decimal("4"))

        df = holdings_frame(store)

        assert len(df) == 1
        row = df.iloc[0]
        assert row["sector"] == "Tech"
        assert row["value"] == pytest.approx(50.0)

    def test_stock_vectors_zero_filled(self, any_store):
        """Test every holder gets a vector over every known instrument."""
        any_store.set_holding(1, "AAA", Decimal("10"), Decimal("4"))
        any_store.set_holding(2, "XOM", Decimal("2"), Decimal("20"))

        vectors = stock_vectors(any_store)

        assert set(vectors) == {1, 2}
        assert vectors[1] == {"AAA": 10.0, "BBB": 0.0, "XOM": 0.0}
        assert vectors[2] == {"AAA": 0.0, "BBB": 0.0, "XOM": 2.0}

    def test_stock_vectors_empty(self, store):
        """Test a firm without holdings has no vectors."""
        assert stock_vectors(store) == {}

    def test_zero_stock_vector(self, store):
        """Test the zero vector covers every instrument."""
        assert zero_stock_vector(store) == {"AAA": 0.0, "BBB": 0.0, "XOM": 0.0}

    def test_sector_value_vectors(self, any_store):
        """Test market value is summed per sector, excluding cash."""
        any_store.set_holding(1, "AAA", Decimal("10"), Decimal("4"))
        any_store.set_holding(1, "BBB", Decimal("1"), Decimal("4"))
        any_store.set_holding(2, "XOM", Decimal("2"), Decimal("20"))

        vectors = sector_value_vectors(any_store)

        assert vectors[1]["Tech"] == pytest.approx(60.0)
        assert vectors[1]["Energy"] == pytest.approx(0.0)
        assert vectors[2]["Energy"] == pytest.approx(40.0)
        assert "Cash" not in vectors[1]
        assert 3 not in vectors

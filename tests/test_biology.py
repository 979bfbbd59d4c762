"""Tests for at-age biological schedules and unfished equilibrium."""

import numpy as np
import pytest

from fishpop.biology import (
    expand_by_year,
    length_to_weight,
    logistic_ogive,
    ssb_per_recruit,
    unfished_numbers_at_age,
    unfished_survivorship,
    von_bertalanffy_length,
)
from fishpop.validation import InvalidInputError


class TestGrowth:
    def test_von_bertalanffy(self):
        L = von_bertalanffy_length(np.array([0.0, 1.0, 50.0]), 100.0, 0.3, t0=0.0)
        assert L[0] == pytest.approx(0.0)
        assert L[1] == pytest.approx(100.0 * (1 - np.exp(-0.3)))
        assert L[2] == pytest.approx(100.0, rel=1e-6)

    def test_length_weight(self):
        W = length_to_weight(np.array([10.0, 20.0]), 0.01, 3.0)
        np.testing.assert_allclose(W, [10.0, 80.0])

    def test_negative_length_zero_weight(self):
        assert length_to_weight(np.array([-2.0]), 0.01, 3.0)[0] == 0.0


class TestOgive:
    def test_anchor_points(self):
        og = logistic_ogive(np.array([4.0, 6.0]), 4.0, 6.0)
        np.testing.assert_allclose(og, [0.5, 0.95])

    def test_monotone(self):
        og = logistic_ogive(np.arange(20), 3.0, 5.0)
        assert np.all(np.diff(og) > 0)

    def test_a95_must_exceed_a50(self):
        with pytest.raises(InvalidInputError, match="a95"):
            logistic_ogive(np.arange(5), 4.0, 4.0)


class TestExpandByYear:
    def test_scalar(self):
        out = expand_by_year(0.2, 3, 4)
        assert out.shape == (3, 4)
        assert np.all(out == 0.2)

    def test_vector(self):
        out = expand_by_year([1.0, 2.0], 2, 3)
        np.testing.assert_array_equal(out, [[1.0] * 3, [2.0] * 3])

    def test_full_table_copied(self):
        table = np.ones((2, 3))
        out = expand_by_year(table, 2, 3)
        out[0, 0] = 5.0
        assert table[0, 0] == 1.0

    def test_bad_shape(self):
        with pytest.raises(InvalidInputError, match="shape"):
            expand_by_year(np.ones(4), 3, 2)


class TestUnfishedEquilibrium:
    def test_survivorship(self):
        surv = unfished_survivorship(np.full(4, 0.2))
        np.testing.assert_allclose(surv, np.exp(-0.2 * np.arange(4)))

    def test_plus_group_survivorship(self):
        surv = unfished_survivorship(np.full(3, 0.5), plusgroup=True)
        assert surv[-1] == pytest.approx(np.exp(-1.0) / (1 - np.exp(-0.5)))

    def test_plus_group_needs_positive_m(self):
        with pytest.raises(InvalidInputError, match="plus-group"):
            unfished_survivorship(np.array([0.2, 0.0]), plusgroup=True)

    def test_ssb_per_recruit(self):
        M = np.full(3, 0.1)
        W = np.array([1.0, 2.0, 3.0])
        mat = np.array([0.0, 0.5, 1.0])
        expected = np.exp(-0.1) * 1.0 + np.exp(-0.2) * 3.0
        assert ssb_per_recruit(M, W, mat) == pytest.approx(expected)

    def test_unfished_numbers(self):
        N = unfished_numbers_at_age([100.0, 10.0], np.full(3, 0.3))
        assert N.shape == (3, 2)
        np.testing.assert_allclose(N[:, 0], 100.0 * np.exp(-0.3 * np.arange(3)))
        np.testing.assert_allclose(N[:, 1], N[:, 0] / 10.0)

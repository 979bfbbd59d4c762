"""Tests for effort allocation, area closures and fishing mortality."""

import numpy as np
import pytest

from fishpop.fishing import (
    apply_area_closures,
    cap_fishing_mortality,
    fishing_distribution,
    fishing_mortality,
)
from fishpop.types import ApicalFControl, EffortControl, UnfishedControl
from fishpop.validation import InvalidInputError


class TestFishingDistribution:
    def test_proportional_to_vulnerable_biomass(self):
        np.testing.assert_allclose(
            fishing_distribution(np.array([30.0, 10.0]), 1.0), [0.75, 0.25],
        )

    def test_zero_exponent_is_uniform(self):
        np.testing.assert_allclose(
            fishing_distribution(np.array([30.0, 10.0, 1.0]), 0.0), [1 / 3] * 3,
        )

    def test_exponent_sharpens(self):
        d = fishing_distribution(np.array([30.0, 10.0]), 2.0)
        np.testing.assert_allclose(d, [0.9, 0.1])

    def test_zero_biomass_rejected(self):
        with pytest.raises(InvalidInputError, match="fishing distribution"):
            fishing_distribution(np.zeros(3), 1.0)


class TestAreaClosures:
    def test_all_open_unchanged(self):
        d = np.array([0.2, 0.5, 0.3])
        np.testing.assert_allclose(apply_area_closures(d, np.ones(3)), d)

    def test_closed_area_masked(self):
        d = np.array([0.2, 0.5, 0.3])
        out = apply_area_closures(d, np.array([1.0, 0.0, 1.0]))
        assert out[1] == 0.0
        # d1 × (fracE + (1 − fracE)) / fracE = d1 / fracE
        np.testing.assert_allclose(out, [0.4, 0.0, 0.6])

    def test_partial_openness(self):
        d = np.array([0.5, 0.5])
        out = apply_area_closures(d, np.array([1.0, 0.5]))
        np.testing.assert_allclose(out, [0.5 / 0.75, 0.25 / 0.75])

    def test_all_closed_rejected(self):
        with pytest.raises(InvalidInputError, match="all areas closed"):
            apply_area_closures(np.array([0.5, 0.5]), np.zeros(2))


class TestFishingMortality:
    def test_apical(self):
        ctl = ApicalFControl(apical_F=0.4)
        F, Fret = fishing_mortality(
            ctl, 0, np.array([0.25, 0.75]), np.array([0.5, 1.0]),
            np.array([0.0, 1.0]), np.array([0.5, 1.5]),
        )
        # per-area scale: 0.4 × [0.25/0.5, 0.75/1.5] = [0.2, 0.2]
        np.testing.assert_allclose(F, [[0.1, 0.1], [0.2, 0.2]])
        np.testing.assert_allclose(Fret, [[0.0, 0.0], [0.2, 0.2]])

    def test_effort_uses_year(self):
        ctl = EffortControl(effort=np.array([1.0, 3.0]), catchability=0.1)
        F, _ = fishing_mortality(ctl, 1, np.array([1.0]), np.ones(2), np.ones(2),
                                 np.ones(1))
        np.testing.assert_allclose(F, [[0.3], [0.3]])

    def test_unfished_control_rejected(self):
        with pytest.raises(InvalidInputError, match="effort or apical-F"):
            fishing_mortality(UnfishedControl(100.0), 0, np.ones(1), np.ones(1),
                              np.ones(1), np.ones(1))


class TestCap:
    def test_clamps_not_rescales(self):
        F = np.array([[0.5, 2.0], [3.5, 1.0]])
        out = cap_fishing_mortality(F, 1.5)
        np.testing.assert_array_equal(out, [[0.5, 1.5], [1.5, 1.0]])

    def test_in_place(self):
        F = np.array([5.0])
        cap_fishing_mortality(F, 1.0)
        assert F[0] == 1.0

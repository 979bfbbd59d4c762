"""Tests for spatial movement between areas.

Tests:
  1. apply_movement: identity, swaps, conservation, per-age matrices
  2. check_movement: rejects negative / non-finite, tolerates open rows
  3. expand_movement: 2-D, 3-D and 4-D inputs
  4. stationary_distribution and fit_movement_matrix
"""

import logging

import numpy as np
import pytest

from fishpop.movement import (
    apply_movement,
    check_movement,
    expand_movement,
    fit_movement_matrix,
    stationary_distribution,
)
from fishpop.validation import InvalidInputError


# ═══════════════════════════════════════════════════════════════════════
# MOVEMENT STEP
# ═══════════════════════════════════════════════════════════════════════

class TestApplyMovement:
    def test_identity_is_no_op(self):
        N = np.array([[10.0, 20.0, 5.0], [3.0, 0.0, 8.0]])
        mov = np.broadcast_to(np.eye(3), (2, 3, 3))
        np.testing.assert_allclose(apply_movement(N, mov), N)

    def test_hand_computed(self):
        N = np.array([[100.0, 50.0]])
        mov = np.array([[[0.9, 0.1], [0.4, 0.6]]])
        # to 0: 100·0.9 + 50·0.4 = 110; to 1: 100·0.1 + 50·0.6 = 40
        np.testing.assert_allclose(apply_movement(N, mov), [[110.0, 40.0]])

    def test_row_stochastic_conserves_totals(self):
        rng = np.random.default_rng(0)
        raw = rng.random((4, 5, 5))
        mov = raw / raw.sum(axis=2, keepdims=True)
        N = rng.random((4, 5)) * 100
        np.testing.assert_allclose(apply_movement(N, mov).sum(axis=1), N.sum(axis=1))

    def test_leaky_rows_lose_fish(self):
        N = np.array([[100.0, 100.0]])
        mov = np.array([[[0.5, 0.0], [0.0, 1.0]]])
        assert apply_movement(N, mov).sum() == pytest.approx(150.0)


class TestCheckMovement:
    def test_negative_rejected(self):
        mov = np.ones((1, 2, 2)) * 0.5
        mov[0, 0, 1] = -0.1
        with pytest.raises(InvalidInputError, match="non-negative"):
            check_movement(mov)

    def test_nan_rejected(self):
        mov = np.ones((1, 2, 2)) * 0.5
        mov[0, 1, 1] = np.nan
        with pytest.raises(InvalidInputError, match="finite"):
            check_movement(mov)

    def test_open_rows_logged_not_raised(self, caplog):
        mov = np.array([[[0.5, 0.2], [0.0, 1.0]]])
        with caplog.at_level(logging.DEBUG, logger='fishpop.movement'):
            check_movement(mov)
        assert "do not sum to 1" in caplog.text


# ═══════════════════════════════════════════════════════════════════════
# SHAPING
# ═══════════════════════════════════════════════════════════════════════

class TestExpandMovement:
    def test_from_matrix(self):
        m = np.array([[0.8, 0.2], [0.3, 0.7]])
        out = expand_movement(m, pyears=4, maxage=3)
        assert out.shape == (4, 3, 2, 2)
        np.testing.assert_array_equal(out[2, 1], m)

    def test_from_age_tensor(self):
        m = np.stack([np.eye(2), np.full((2, 2), 0.5), np.eye(2)[::-1]])
        out = expand_movement(m, pyears=5, maxage=3)
        np.testing.assert_array_equal(out[4], m)

    def test_full_array_copied(self):
        m = np.ones((2, 3, 2, 2)) * 0.5
        out = expand_movement(m, pyears=2, maxage=3)
        out[0, 0, 0, 0] = 9.0
        assert m[0, 0, 0, 0] == 0.5

    def test_output_writable(self):
        out = expand_movement(np.eye(2), pyears=2, maxage=2)
        out[0, 0] = 0.0
        assert out[1, 0, 0, 0] == 1.0

    def test_non_square_rejected(self):
        with pytest.raises(InvalidInputError, match="square"):
            expand_movement(np.ones((2, 3)), pyears=2, maxage=2)

    def test_wrong_age_count_rejected(self):
        with pytest.raises(InvalidInputError, match="cannot expand"):
            expand_movement(np.ones((4, 2, 2)), pyears=2, maxage=3)


# ═══════════════════════════════════════════════════════════════════════
# EQUILIBRIUM & FITTING
# ═══════════════════════════════════════════════════════════════════════

class TestStationaryDistribution:
    def test_two_area_closed_form(self):
        mov = np.array([[0.8, 0.2], [0.1, 0.9]])
        np.testing.assert_allclose(stationary_distribution(mov), [1 / 3, 2 / 3])

    def test_invariant_under_movement(self):
        mov = np.array([[0.7, 0.2, 0.1], [0.1, 0.8, 0.1], [0.2, 0.2, 0.6]])
        p = stationary_distribution(mov)
        np.testing.assert_allclose(p @ mov, p)
        assert p.sum() == pytest.approx(1.0)


class TestFitMovementMatrix:
    def test_rows_sum_to_one(self):
        mov = fit_movement_matrix([0.2, 0.5, 0.3])
        np.testing.assert_allclose(mov.sum(axis=1), 1.0)
        assert np.all(mov > 0)

    def test_matches_fraction_targets(self):
        frac = np.array([0.2, 0.5, 0.3])
        mov = fit_movement_matrix(frac)
        np.testing.assert_allclose(stationary_distribution(mov), frac, atol=1e-3)

    def test_recovers_known_matrix(self):
        mov = fit_movement_matrix([1 / 3, 2 / 3], prob_staying=[0.8, 0.9])
        np.testing.assert_allclose(mov, [[0.8, 0.2], [0.1, 0.9]], atol=1e-2)

    def test_single_area(self):
        np.testing.assert_array_equal(fit_movement_matrix([1.0]), [[1.0]])

    def test_fraction_must_sum_to_one(self):
        with pytest.raises(InvalidInputError, match="sum to 1"):
            fit_movement_matrix([0.3, 0.3])

    def test_fraction_range(self):
        with pytest.raises(InvalidInputError, match="frac_area"):
            fit_movement_matrix([0.0, 1.0])

    def test_prob_staying_range(self):
        with pytest.raises(InvalidInputError, match="prob_staying"):
            fit_movement_matrix([0.5, 0.5], prob_staying=[1.0, 0.5])

    def test_prob_staying_shape(self):
        with pytest.raises(InvalidInputError, match="prob_staying"):
            fit_movement_matrix([0.5, 0.5], prob_staying=[0.5])

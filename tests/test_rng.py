"""Tests for seeded RNG streams and recruitment deviations."""

import numpy as np
import pytest

from fishpop.rng import create_rng_hierarchy, get_sim_rng, recruitment_deviations
from fishpop.validation import InvalidInputError


class TestRNGHierarchy:
    def test_stream_names(self):
        rngs = create_rng_hierarchy(42, n_sims=3)
        assert set(rngs) == {'sim_0', 'sim_1', 'sim_2'}

    def test_reproducible(self):
        a = create_rng_hierarchy(7)['sim_0'].random(10)
        b = create_rng_hierarchy(7)['sim_0'].random(10)
        np.testing.assert_array_equal(a, b)

    def test_streams_independent(self):
        rngs = create_rng_hierarchy(7, n_sims=2)
        assert not np.allclose(rngs['sim_0'].random(10), rngs['sim_1'].random(10))

    def test_adding_replicates_keeps_earlier_streams(self):
        a = create_rng_hierarchy(11, n_sims=1)['sim_0'].random(5)
        b = create_rng_hierarchy(11, n_sims=4)['sim_0'].random(5)
        np.testing.assert_array_equal(a, b)

    def test_negative_seed(self):
        with pytest.raises(InvalidInputError, match="master_seed"):
            create_rng_hierarchy(-1)

    def test_get_sim_rng(self):
        rngs = create_rng_hierarchy(1, n_sims=2)
        assert get_sim_rng(rngs, 1) is rngs['sim_1']
        with pytest.raises(KeyError):
            get_sim_rng(rngs, 2)


class TestRecruitmentDeviations:
    def test_zero_sigma_is_ones(self):
        devs = recruitment_deviations(12, 0.0, 0.5, np.random.default_rng(0))
        np.testing.assert_array_equal(devs, np.ones(12))

    def test_positive(self):
        devs = recruitment_deviations(100, 0.8, 0.3, np.random.default_rng(0))
        assert devs.shape == (100,)
        assert np.all(devs > 0)

    def test_mean_near_one(self):
        devs = recruitment_deviations(200_000, 0.6, 0.0, np.random.default_rng(5))
        assert devs.mean() == pytest.approx(1.0, abs=0.01)

    def test_autocorrelated_log_deviations(self):
        devs = recruitment_deviations(50_000, 0.5, 0.7, np.random.default_rng(2))
        eps = np.log(devs)
        lag1 = np.corrcoef(eps[:-1], eps[1:])[0, 1]
        assert lag1 == pytest.approx(0.7, abs=0.03)

    def test_negative_sigma(self):
        with pytest.raises(InvalidInputError, match="sigma_R"):
            recruitment_deviations(5, -0.1, 0.0, np.random.default_rng(0))

    def test_autocorrelation_range(self):
        with pytest.raises(InvalidInputError, match="autocorrelation"):
            recruitment_deviations(5, 0.5, 1.0, np.random.default_rng(0))

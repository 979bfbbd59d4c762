"""Seeded RNG streams and recruitment deviations.

Uses NumPy's SeedSequence → PCG64 hierarchy so that:
  - each simulation replicate has a statistically independent stream
  - the same master seed replays bit-exactly
  - adding replicates doesn't change earlier replicates' streams

Recruitment deviations are log-normal with AR(1) autocorrelation in log
space, bias-corrected so their expected value is one.
"""

from __future__ import annotations

from typing import Dict

import numpy as np

from fishpop.validation import InvalidInputError


def create_rng_hierarchy(
    master_seed: int,
    n_sims: int = 1,
) -> Dict[str, np.random.Generator]:
    """Create an independent RNG stream for each replicate.

    Streams are named 'sim_0' .. 'sim_{n-1}' (recruitment noise).

    Args:
        master_seed: Master RNG seed (non-negative integer).
        n_sims: Number of simulation replicates.

    Returns:
        Dictionary mapping stream names to numpy Generator instances.
    """
    if master_seed < 0:
        raise InvalidInputError(f"master_seed must be non-negative, got {master_seed}")
    ss = np.random.SeedSequence(master_seed)
    return {
        f'sim_{i}': np.random.Generator(np.random.PCG64(child))
        for i, child in enumerate(ss.spawn(n_sims))
    }


def get_sim_rng(
    rngs: Dict[str, np.random.Generator],
    sim: int,
) -> np.random.Generator:
    """Get the RNG stream for one replicate.

    Raises:
        KeyError: If the replicate doesn't have a stream.
    """
    key = f'sim_{sim}'
    if key not in rngs:
        n = sum(1 for k in rngs if k.startswith('sim_'))
        raise KeyError(f"No RNG stream for replicate {sim}. Available: 0–{n - 1}")
    return rngs[key]


def recruitment_deviations(
    n: int,
    sigma_R: float,
    autocorrelation: float,
    rng: np.random.Generator,
) -> np.ndarray:
    """Multiplicative log-normal recruitment deviations.

        eps_0 ~ N(mu, sigma_R)
        eps_y = AC × eps_{y-1} + sqrt(1 − AC²) × N(mu, sigma_R)
        dev_y = exp(eps_y)

    with mu = −0.5 σ² (1 − AC) / sqrt(1 − AC²) so the deviations have
    mean one.

    Args:
        n: Number of deviations (a projection needs pyears + maxage).
        sigma_R: Standard deviation of log recruitment deviations.
        autocorrelation: Lag-1 autocorrelation AC, |AC| < 1.
        rng: NumPy random generator.

    Returns:
        (n,) array of positive deviations; all ones when sigma_R == 0.
    """
    if sigma_R < 0:
        raise InvalidInputError(f"sigma_R must be non-negative, got {sigma_R}")
    if not -1.0 < autocorrelation < 1.0:
        raise InvalidInputError(
            f"autocorrelation must lie in (-1, 1), got {autocorrelation}"
        )
    if sigma_R == 0:
        return np.ones(n)

    scale = np.sqrt(1.0 - autocorrelation ** 2)
    mu = -0.5 * sigma_R ** 2 * (1.0 - autocorrelation) / scale
    eps = rng.normal(mu, sigma_R, size=n)
    for y in range(1, n):
        eps[y] = autocorrelation * eps[y - 1] + eps[y] * scale
    return np.exp(eps)

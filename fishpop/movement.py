"""Spatial redistribution of numbers-at-age between areas.

Movement is a per-age fractional transition table:

    mov[a, from, to] = fraction of age-a fish in `from` that end the
                       timestep in `to`

applied independently per age by summing contributions into each
destination area:

    N'[a, to] = Σ_from N[a, from] × mov[a, from, to]

This is the only cross-area coupling in the population model. Rows need
not sum to one (emigration/immigration asymmetries are allowed); when
they do, total numbers-at-age are conserved by the step.

Helpers:
  - expand_movement: broadcast a 2-D or 3-D matrix to (pyears, maxage, n, n)
  - stationary_distribution: long-run spatial distribution of a matrix
  - fit_movement_matrix: build a matrix from a target fraction in each
    area and a probability of staying, via scipy.optimize
"""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np
from scipy.optimize import minimize

from fishpop.validation import InvalidInputError

logger = logging.getLogger(__name__)

# Log-space bounds on unnormalised transition weights during fitting
_FIT_BOUND = 6.0
_ROW_SUM_TOL = 1e-6


# ═══════════════════════════════════════════════════════════════════════
# MOVEMENT STEP
# ═══════════════════════════════════════════════════════════════════════

def apply_movement(numbers: np.ndarray, mov: np.ndarray) -> np.ndarray:
    """Redistribute numbers-at-age across areas.

    Args:
        numbers: (maxage, nareas) numbers-at-age by area.
        mov: (maxage, nareas, nareas) movement tensor, mov[a, from, to].

    Returns:
        (maxage, nareas) numbers-at-age after movement.
    """
    return np.einsum('af,aft->at', numbers, mov)


def check_movement(mov: np.ndarray) -> None:
    """Movement fractions must be finite and non-negative.

    Rows that do not sum to one are allowed but logged.
    """
    if not np.all(np.isfinite(mov)):
        raise InvalidInputError("movement must be finite")
    if np.any(mov < 0):
        raise InvalidInputError("movement fractions must be non-negative")
    row_sums = mov.sum(axis=-1)
    off = np.abs(row_sums - 1.0) > _ROW_SUM_TOL
    if np.any(off):
        logger.debug(
            "movement: %d of %d source rows do not sum to 1 (range %.4g–%.4g)",
            int(off.sum()), off.size, float(row_sums.min()), float(row_sums.max()),
        )


def expand_movement(mov, pyears: int, maxage: int) -> np.ndarray:
    """Broadcast a movement matrix to (pyears, maxage, nareas, nareas).

    Accepts a single (nareas, nareas) matrix used for every age and year,
    a (maxage, nareas, nareas) tensor used for every year, or an already
    complete (pyears, maxage, nareas, nareas) array. Always returns a copy.
    """
    mov = np.asarray(mov, dtype=np.float64)
    if mov.ndim < 2 or mov.shape[-1] != mov.shape[-2]:
        raise InvalidInputError(
            f"movement must end in a square (nareas, nareas) matrix, got {mov.shape}"
        )
    nareas = mov.shape[-1]
    target = (pyears, maxage, nareas, nareas)
    if mov.ndim == 2:
        return np.broadcast_to(mov, target).copy()
    if mov.ndim == 3 and mov.shape[0] == maxage:
        return np.broadcast_to(mov[np.newaxis], target).copy()
    if mov.ndim == 4 and mov.shape == target:
        return mov.copy()
    raise InvalidInputError(
        f"cannot expand movement of shape {mov.shape} to {target}"
    )


# ═══════════════════════════════════════════════════════════════════════
# EQUILIBRIUM DISTRIBUTION
# ═══════════════════════════════════════════════════════════════════════

def stationary_distribution(mov: np.ndarray) -> np.ndarray:
    """Long-run fraction in each area under repeated movement.

    Left eigenvector of the (nareas, nareas) matrix for the eigenvalue
    closest to 1, normalised to sum to 1.
    """
    mov = np.asarray(mov, dtype=np.float64)
    eigvals, eigvecs = np.linalg.eig(mov.T)
    idx = int(np.argmin(np.abs(eigvals - 1.0)))
    vec = np.abs(np.real(eigvecs[:, idx]))
    return vec / vec.sum()


def _params_to_matrix(x: np.ndarray, nareas: int) -> np.ndarray:
    w = np.exp(x.reshape(nareas, nareas))
    return w / w.sum(axis=1, keepdims=True)


def _movement_objective(x: np.ndarray, nareas: int,
                        log_frac: np.ndarray,
                        log_stay: Optional[np.ndarray]) -> float:
    mov = _params_to_matrix(x, nareas)
    dist = stationary_distribution(mov)
    obj = float(np.sum((np.log(dist) - log_frac) ** 2))
    if log_stay is not None:
        obj += float(np.sum((np.log(np.diag(mov)) - log_stay) ** 2))
    return obj


def fit_movement_matrix(
    frac_area,
    prob_staying=None,
    tol: float = 1e-10,
) -> np.ndarray:
    """Fit a row-stochastic movement matrix to spatial targets.

    The fitted matrix has a stationary distribution matching frac_area
    and (if given) a diagonal matching prob_staying. Transition weights
    are estimated in log space with L-BFGS-B and row-normalised.

    Args:
        frac_area: (nareas,) target long-run fraction in each area;
            entries in (0, 1), summing to 1.
        prob_staying: Optional (nareas,) probability of remaining in
            each area over one timestep; entries in (0, 1).
        tol: Optimiser tolerance.

    Returns:
        (nareas, nareas) movement matrix with rows summing to 1.
    """
    frac = np.asarray(frac_area, dtype=np.float64)
    nareas = len(frac)
    if np.any(frac <= 0) or (nareas > 1 and np.any(frac >= 1)):
        raise InvalidInputError("frac_area entries must lie in (0, 1)")
    if abs(frac.sum() - 1.0) > 1e-8:
        raise InvalidInputError(f"frac_area must sum to 1, got {frac.sum():.6g}")
    if nareas == 1:
        return np.ones((1, 1))

    log_stay = None
    if prob_staying is not None:
        stay = np.asarray(prob_staying, dtype=np.float64)
        if stay.shape != frac.shape:
            raise InvalidInputError(
                f"prob_staying must have shape {frac.shape}, got {stay.shape}"
            )
        if np.any(stay <= 0) or np.any(stay >= 1):
            raise InvalidInputError("prob_staying entries must lie in (0, 1)")
        log_stay = np.log(stay)

    x0 = np.zeros(nareas * nareas)
    fit = minimize(
        _movement_objective, x0,
        args=(nareas, np.log(frac), log_stay),
        method='L-BFGS-B',
        bounds=[(-_FIT_BOUND, _FIT_BOUND)] * x0.size,
        options={'ftol': tol, 'gtol': tol, 'maxiter': 2000},
    )
    mov = _params_to_matrix(fit.x, nareas)
    logger.debug(
        "fit_movement_matrix: nareas=%d objective=%.3g success=%s",
        nareas, fit.fun, fit.success,
    )
    return mov

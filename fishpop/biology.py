"""At-age biological schedules and unfished equilibrium.

Builds the (maxage, pyears) rate tables and the unfished reference
quantities that the projection takes as inputs:
  - von Bertalanffy length and power-law weight-at-age
  - logistic ogives (maturity, vulnerability, retention)
  - unfished survivorship, spawners-per-recruit and equilibrium numbers

Unfished survivorship uses the same plus-group convention as the
projector, so a population started at unfished_numbers_at_age() with
zero fishing and unit recruitment deviations stays at equilibrium.
"""

from __future__ import annotations

import numpy as np

from fishpop.validation import InvalidInputError

# ln(19): logistic slope so that the ogive passes 0.5 at a50 and 0.95 at a95
_LN19 = np.log(19.0)


# ═══════════════════════════════════════════════════════════════════════
# GROWTH
# ═══════════════════════════════════════════════════════════════════════

def von_bertalanffy_length(ages, L_inf: float, K: float, t0: float = 0.0) -> np.ndarray:
    """Expected length at age: L_inf × (1 − exp(−K (age − t0)))."""
    ages = np.asarray(ages, dtype=np.float64)
    return L_inf * (1.0 - np.exp(-K * (ages - t0)))


def length_to_weight(length, a: float, b: float) -> np.ndarray:
    """Weight from length: a × L^b. Negative lengths map to zero weight."""
    length = np.clip(np.asarray(length, dtype=np.float64), 0.0, None)
    return a * length ** b


def logistic_ogive(ages, a50: float, a95: float) -> np.ndarray:
    """Logistic at-age curve, 0.5 at a50 and 0.95 at a95."""
    if a95 <= a50:
        raise InvalidInputError(f"a95 ({a95}) must be greater than a50 ({a50})")
    ages = np.asarray(ages, dtype=np.float64)
    return 1.0 / (1.0 + np.exp(-_LN19 * (ages - a50) / (a95 - a50)))


def expand_by_year(values, maxage: int, pyears: int) -> np.ndarray:
    """Repeat an at-age vector (or a scalar) across years → (maxage, pyears)."""
    values = np.asarray(values, dtype=np.float64)
    if values.ndim == 0:
        values = np.full(maxage, float(values))
    if values.shape == (maxage, pyears):
        return values.copy()
    if values.shape != (maxage,):
        raise InvalidInputError(
            f"expected a scalar, ({maxage},) or ({maxage}, {pyears}) array, "
            f"got shape {values.shape}"
        )
    return np.repeat(values[:, np.newaxis], pyears, axis=1)


# ═══════════════════════════════════════════════════════════════════════
# UNFISHED EQUILIBRIUM
# ═══════════════════════════════════════════════════════════════════════

def unfished_survivorship(M, plusgroup: bool = False) -> np.ndarray:
    """Proportion of a recruit surviving to each age with no fishing.

    Args:
        M: (maxage,) natural mortality at age.
        plusgroup: Last age accumulates survivors (divides by 1 − e^−M).

    Returns:
        (maxage,) survivorship, 1 at age 0.
    """
    M = np.asarray(M, dtype=np.float64)
    surv = np.ones_like(M)
    surv[1:] = np.exp(-np.cumsum(M[:-1]))
    if plusgroup:
        if M[-1] <= 0:
            raise InvalidInputError("plus-group requires positive M at the last age")
        surv[-1] /= 1.0 - np.exp(-M[-1])
    return surv


def ssb_per_recruit(M, weight, maturity, plusgroup: bool = False) -> float:
    """Unfished spawning biomass per recruit: Σ surv × weight × maturity."""
    surv = unfished_survivorship(M, plusgroup)
    return float(np.sum(surv * np.asarray(weight) * np.asarray(maturity)))


def unfished_numbers_at_age(R0, M, plusgroup: bool = False) -> np.ndarray:
    """Equilibrium unfished numbers-at-age by area → (maxage, nareas)."""
    R0 = np.atleast_1d(np.asarray(R0, dtype=np.float64))
    surv = unfished_survivorship(M, plusgroup)
    return surv[:, np.newaxis] * R0[np.newaxis, :]

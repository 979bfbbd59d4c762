"""Stock-recruitment relationships.

Beverton-Holt (steepness parameterisation, per-area R0 and SSBpR):

    R = dev × 4·R0·h·S / (SSBpR·R0·(1 − h) + (5h − 1)·S)

Ricker (a, b parameterisation):

    R = dev × a·S·exp(−b·S)

Both give zero recruits at S = 0 and are increasing for small S with
positive parameters. ricker_parameters() converts steepness and an
unfished SSB into (a, b) so that the Ricker curve passes through the
unfished equilibrium (S0, S0 / SSBpR).
"""

from __future__ import annotations

import numpy as np

from fishpop.types import StockRecruit
from fishpop.validation import InvalidInputError, check_stock_recruit


def beverton_holt_recruitment(
    ssb: np.ndarray,
    steepness: float,
    R0: np.ndarray,
    ssb_per_recruit: np.ndarray,
    deviation: float = 1.0,
) -> np.ndarray:
    """Beverton-Holt recruits by area.

    Args:
        ssb: (nareas,) spawning biomass.
        steepness: Stock-wide steepness h.
        R0: (nareas,) unfished recruitment.
        ssb_per_recruit: (nareas,) unfished spawners per recruit.
        deviation: Multiplicative recruitment deviation for the year.

    Returns:
        (nareas,) recruits.

    Raises:
        InvalidInputError: If any area's denominator is not positive.
    """
    ssb = np.asarray(ssb, dtype=np.float64)
    R0 = np.asarray(R0, dtype=np.float64)
    ssb_per_recruit = np.asarray(ssb_per_recruit, dtype=np.float64)
    denom = ssb_per_recruit * R0 * (1.0 - steepness) + (5.0 * steepness - 1.0) * ssb
    if np.any(denom <= 0):
        bad = np.flatnonzero(denom <= 0).tolist()
        raise InvalidInputError(
            f"Beverton-Holt denominator must be positive; not satisfied in areas {bad}"
        )
    return deviation * (4.0 * R0 * steepness * ssb) / denom


def ricker_recruitment(
    ssb: np.ndarray,
    ricker_a: np.ndarray,
    ricker_b: np.ndarray,
    deviation: float = 1.0,
) -> np.ndarray:
    """Ricker recruits by area: dev × a·S·exp(−b·S)."""
    ssb = np.asarray(ssb, dtype=np.float64)
    return deviation * np.asarray(ricker_a) * ssb * np.exp(-np.asarray(ricker_b) * ssb)


def recruitment(
    stock_recruit,
    ssb: np.ndarray,
    deviation: float,
    steepness: float,
    R0: np.ndarray,
    ssb_per_recruit: np.ndarray,
    ricker_a: np.ndarray,
    ricker_b: np.ndarray,
) -> np.ndarray:
    """Dispatch to the selected stock-recruitment relationship."""
    sr = check_stock_recruit(stock_recruit)
    if sr == StockRecruit.BEVERTON_HOLT:
        return beverton_holt_recruitment(ssb, steepness, R0, ssb_per_recruit, deviation)
    return ricker_recruitment(ssb, ricker_a, ricker_b, deviation)


def ricker_parameters(
    steepness: float,
    ssb0: np.ndarray,
    ssb_per_recruit: np.ndarray,
):
    """Ricker (a, b) by area consistent with steepness and unfished SSB.

        b = ln(5h) / (0.8 · SSB0)
        a = exp(b · SSB0) / SSBpR

    Args:
        steepness: Steepness h (> 0.2).
        ssb0: (nareas,) unfished spawning biomass by area (> 0).
        ssb_per_recruit: (nareas,) unfished spawners per recruit (> 0).

    Returns:
        Tuple (a, b) of (nareas,) arrays.
    """
    ssb0 = np.asarray(ssb0, dtype=np.float64)
    if np.any(ssb0 <= 0):
        raise InvalidInputError("unfished spawning biomass must be positive in every area")
    b = np.log(5.0 * steepness) / (0.8 * ssb0)
    a = np.exp(b * ssb0) / np.asarray(ssb_per_recruit, dtype=np.float64)
    return a, b

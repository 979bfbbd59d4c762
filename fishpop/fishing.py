"""Fishing effort allocation and fishing mortality.

Per year:
  1. fishdist[A] = VB[A]^e / Σ VB^e        (spatial targeting, exponent e)
  2. closures mask fishdist by the openness of each area and rescale so
     that effort displaced from closed areas goes to open ones
  3. F[a, A] = scale × fishdist[A] × vulnerability[a] / area_size[A]
     Fret identically with retention in place of vulnerability, where
     scale = effort[y] × q (EffortControl) or apical F (ApicalFControl)
  4. F and Fret are clamped at max_F
"""

from __future__ import annotations

from typing import Tuple

import numpy as np

from fishpop.types import ApicalFControl, EffortControl, FishingControl
from fishpop.validation import InvalidInputError


def fishing_distribution(vulnerable_biomass: np.ndarray,
                         spatial_targeting: float) -> np.ndarray:
    """Power-weighted share of effort in each area.

    Args:
        vulnerable_biomass: (nareas,) total vulnerable biomass by area.
        spatial_targeting: Targeting exponent (0 = uniform effort).

    Returns:
        (nareas,) fractions summing to 1.
    """
    weights = np.power(vulnerable_biomass, spatial_targeting)
    total = weights.sum()
    if not np.isfinite(total) or total <= 0:
        raise InvalidInputError(
            "fishing distribution undefined: vulnerable biomass raised to the "
            "targeting exponent sums to zero or is not finite"
        )
    return weights / total


def apply_area_closures(fishdist: np.ndarray, open_areas: np.ndarray) -> np.ndarray:
    """Mask effort by area openness and rescale among open areas.

    d[A] = open[A] × fishdist[A]
    fracE = Σ d
    fishdist'[A] = d[A] × (fracE + (1 − fracE)) / fracE

    Raises:
        InvalidInputError: If every area is closed (fracE == 0).
    """
    d1 = open_areas * fishdist
    frac_open = d1.sum()
    if frac_open <= 0:
        raise InvalidInputError(
            "area_closure leaves no fishing effort in open areas (all areas closed)"
        )
    return d1 * (frac_open + (1.0 - frac_open)) / frac_open


def fishing_mortality(
    control: FishingControl,
    year: int,
    fishdist: np.ndarray,
    vulnerability: np.ndarray,
    retention: np.ndarray,
    area_size: np.ndarray,
) -> Tuple[np.ndarray, np.ndarray]:
    """Fishing and retained fishing mortality-at-age by area for one year.

    Args:
        control: EffortControl or ApicalFControl.
        year: Year index (selects effort under EffortControl).
        fishdist: (nareas,) effort distribution.
        vulnerability: (maxage,) vulnerability-at-age for the year.
        retention: (maxage,) retention-at-age for the year.
        area_size: (nareas,) relative size of each area.

    Returns:
        Tuple (F, Fret), each (maxage, nareas).
    """
    if not isinstance(control, (EffortControl, ApicalFControl)):
        raise InvalidInputError(
            f"fishing mortality requires an effort or apical-F control, got {control!r}"
        )
    per_area = control.scale(year) * fishdist / area_size   # (nareas,)
    F = vulnerability[:, np.newaxis] * per_area[np.newaxis, :]
    Fret = retention[:, np.newaxis] * per_area[np.newaxis, :]
    if not (np.all(np.isfinite(F)) and np.all(np.isfinite(Fret))):
        raise InvalidInputError(f"fishing mortality is not finite in year {year}")
    return F, Fret


def cap_fishing_mortality(F: np.ndarray, max_F: float) -> np.ndarray:
    """Clamp (not rescale) fishing mortality at max_F, in place."""
    F[F > max_F] = max_F
    return F

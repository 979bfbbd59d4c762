"""Core data types for fishpop.

This module holds:
  - StockRecruit, ControlMode enumerations
  - The fishing-control tagged variant (EffortControl, ApicalFControl,
    UnfishedControl) selected once per projection run
  - StockRecruitParams: per-run recruitment parameter state
  - ProjectionResult: the (age × year × area) output arrays

Array layout convention used throughout the package:
  - (maxage, pyears, nareas) for every age/year/area quantity
  - (maxage, pyears) for biological rate tables
  - (maxage, nareas) for a single year's numbers or mortality
  - (pyears, maxage, nareas, nareas) for movement, mov[y, a, from, to]
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, Optional, Union

import numpy as np


# ═══════════════════════════════════════════════════════════════════════
# ENUMERATIONS
# ═══════════════════════════════════════════════════════════════════════

class StockRecruit(IntEnum):
    """Stock-recruitment relationship selector."""
    BEVERTON_HOLT = 1
    RICKER = 2


class ControlMode(IntEnum):
    """How fishing mortality is set for a projection run.

    EFFORT    → F = effort × q × fishdist × vulnerability / area size
    APICAL_F  → F = apical F × fishdist × vulnerability / area size
    UNFISHED  → no fishing; regional recruitment re-equilibrated each year
    """
    EFFORT = 1
    APICAL_F = 2
    UNFISHED = 3


ARRAY_DTYPE = np.float64

# Names of the arrays returned by a projection, in reference order
RESULT_FIELDS = ('N', 'B', 'SSN', 'SB', 'VB', 'F', 'Fret', 'Z')


# ═══════════════════════════════════════════════════════════════════════
# FISHING CONTROL (tagged variant)
# ═══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class EffortControl:
    """Effort-based fishing: F scales with effort[year] × catchability."""
    effort: np.ndarray       # (pyears,)
    catchability: float

    mode = ControlMode.EFFORT

    def scale(self, year: int) -> float:
        return float(self.effort[year] * self.catchability)


@dataclass(frozen=True)
class ApicalFControl:
    """Apical-F fishing: F scales with a constant apical F."""
    apical_F: float

    mode = ControlMode.APICAL_F

    def scale(self, year: int) -> float:
        return float(self.apical_F)


@dataclass(frozen=True)
class UnfishedControl:
    """Unfished reference dynamics with per-year recruitment feedback."""
    unfished_ssb_total: float

    mode = ControlMode.UNFISHED


FishingControl = Union[EffortControl, ApicalFControl, UnfishedControl]


# ═══════════════════════════════════════════════════════════════════════
# STOCK-RECRUIT PARAMETER STATE
# ═══════════════════════════════════════════════════════════════════════

@dataclass
class StockRecruitParams:
    """Recruitment parameters by area.

    Under the unfished control the driver updates R0, ricker_a and
    ricker_b every year; it always does so on a copy() so that the
    caller's arrays are left untouched.
    """
    steepness: float
    R0: np.ndarray               # (nareas,) unfished recruitment
    ssb_per_recruit: np.ndarray  # (nareas,) unfished spawners per recruit
    ricker_a: np.ndarray         # (nareas,)
    ricker_b: np.ndarray         # (nareas,)

    @property
    def nareas(self) -> int:
        return len(self.R0)

    def copy(self) -> 'StockRecruitParams':
        return StockRecruitParams(
            steepness=float(self.steepness),
            R0=np.array(self.R0, dtype=ARRAY_DTYPE),
            ssb_per_recruit=np.array(self.ssb_per_recruit, dtype=ARRAY_DTYPE),
            ricker_a=np.array(self.ricker_a, dtype=ARRAY_DTYPE),
            ricker_b=np.array(self.ricker_b, dtype=ARRAY_DTYPE),
        )


# ═══════════════════════════════════════════════════════════════════════
# PROJECTION RESULT
# ═══════════════════════════════════════════════════════════════════════

def allocate_cube(maxage: int, pyears: int, nareas: int) -> np.ndarray:
    """Allocate a zeroed (maxage, pyears, nareas) array."""
    return np.zeros((maxage, pyears, nareas), dtype=ARRAY_DTYPE)


@dataclass
class ProjectionResult:
    """Full time series from a multi-year projection.

    Every array has shape (maxage, pyears, nareas).
    """
    N: np.ndarray       # numbers-at-age
    B: np.ndarray       # biomass-at-age
    SSN: np.ndarray     # spawning numbers
    SB: np.ndarray      # spawning biomass
    VB: np.ndarray      # vulnerable biomass
    F: np.ndarray       # fishing mortality
    Fret: np.ndarray    # retained fishing mortality
    Z: np.ndarray       # total mortality
    control: ControlMode = ControlMode.EFFORT
    final_params: Optional[StockRecruitParams] = field(default=None, repr=False)

    @classmethod
    def allocate(cls, maxage: int, pyears: int, nareas: int,
                 control: ControlMode) -> 'ProjectionResult':
        return cls(**{name: allocate_cube(maxage, pyears, nareas)
                      for name in RESULT_FIELDS}, control=control)

    @property
    def shape(self):
        return self.N.shape

    def as_dict(self) -> Dict[str, np.ndarray]:
        """The eight result arrays keyed by name."""
        return {name: getattr(self, name) for name in RESULT_FIELDS}

    def total_by_area(self, name: str) -> np.ndarray:
        """Sum a result array over ages. Returns (pyears, nareas)."""
        return getattr(self, name).sum(axis=0)

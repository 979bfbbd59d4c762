"""Age- and area-structured population projection.

Single-step projector (project_one_step), per area:
  1. Recruitment to age 0 from spawning biomass (Beverton-Holt or Ricker)
  2. Survival: N[a] = N_prev[a-1] × exp(−Z_prev[a-1]) for a ≥ 1
  3. Plus-group (optional): N[last] /= (1 − exp(−Z_prev[last]))
  4. Movement: N'[a, to] = Σ_from N[a, from] × mov[a, from, to]

Multi-year driver (project_years):
  - Year 0 from the supplied numbers-at-age; derived B/SSN/SB/VB
  - Fishing mortality each year from effort × q or apical F, distributed
    across areas by vulnerable biomass and area closures, capped at max_F
  - One projector call per year transition, strictly in year order
  - Under the unfished control (mode 3) no fishing is applied; instead
    regional R0 and Ricker (a, b) are recomputed every year so that the
    spatial distribution of spawning biomass tracks the unfished total
    (update_unfished_recruitment)

All inputs are validated on entry. Any violated precondition raises
InvalidInputError and no result is returned.
"""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np

from fishpop.config import ProjectionConfig, build_projection_inputs, default_config
from fishpop.fishing import (
    apply_area_closures,
    cap_fishing_mortality,
    fishing_distribution,
    fishing_mortality,
)
from fishpop.movement import apply_movement, check_movement
from fishpop.recruitment import recruitment, ricker_parameters
from fishpop.types import (
    ApicalFControl,
    ControlMode,
    EffortControl,
    FishingControl,
    ProjectionResult,
    StockRecruit,
    StockRecruitParams,
    UnfishedControl,
)
from fishpop.validation import (
    InvalidInputError,
    as_array,
    as_vector,
    check_all_non_negative,
    check_control_mode,
    check_dimension,
    check_finite,
    check_non_negative,
    check_positive,
    check_steepness,
    check_stock_recruit,
)

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════
# SINGLE-STEP PROJECTOR
# ═══════════════════════════════════════════════════════════════════════

def _step(
    ssb: np.ndarray,
    numbers: np.ndarray,
    mortality: np.ndarray,
    deviation: float,
    params: StockRecruitParams,
    movement: np.ndarray,
    stock_recruit: StockRecruit,
    plusgroup: bool,
) -> np.ndarray:
    """Advance (maxage, nareas) numbers one year. Inputs already validated."""
    nxt = np.empty_like(numbers)
    nxt[0] = recruitment(
        stock_recruit, ssb, deviation, params.steepness, params.R0,
        params.ssb_per_recruit, params.ricker_a, params.ricker_b,
    )
    nxt[1:] = numbers[:-1] * np.exp(-mortality[:-1])
    if plusgroup:
        denom = 1.0 - np.exp(-mortality[-1])
        if np.any(denom <= 0):
            raise InvalidInputError(
                "plus-group requires positive total mortality at the last age "
                f"in every area, got Z={mortality[-1].tolist()}"
            )
        nxt[-1] = nxt[-1] / denom
    return apply_movement(nxt, movement)


def project_one_step(
    nareas: int,
    maxage: int,
    ssb,
    numbers,
    mortality,
    recruitment_deviation: float,
    steepness: float,
    R0,
    ssb_per_recruit,
    ricker_a,
    ricker_b,
    movement,
    stock_recruit,
    plusgroup: bool = False,
) -> np.ndarray:
    """Project numbers-at-age by area forward one year.

    Args:
        nareas: Number of spatial areas.
        maxage: Number of age classes.
        ssb: (nareas,) current spawning biomass.
        numbers: (maxage, nareas) current numbers-at-age.
        mortality: (maxage, nareas) current total mortality-at-age.
        recruitment_deviation: Multiplicative recruitment deviation.
        steepness: Beverton-Holt steepness.
        R0: (nareas,) unfished recruitment.
        ssb_per_recruit: (nareas,) unfished spawners per recruit.
        ricker_a: (nareas,) Ricker a.
        ricker_b: (nareas,) Ricker b.
        movement: (maxage, nareas, nareas) movement tensor.
        stock_recruit: 1 = Beverton-Holt, 2 = Ricker.
        plusgroup: Treat the last age as a plus-group.

    Returns:
        (maxage, nareas) numbers-at-age for the next year.

    Raises:
        InvalidInputError: On any shape or domain violation.
    """
    nareas = check_dimension('nareas', nareas)
    maxage = check_dimension('maxage', maxage)
    sr = check_stock_recruit(stock_recruit)

    ssb = as_array('ssb', ssb, (nareas,))
    numbers = as_array('numbers', numbers, (maxage, nareas))
    mortality = as_array('mortality', mortality, (maxage, nareas))
    movement = as_array('movement', movement, (maxage, nareas, nareas))
    params = StockRecruitParams(
        steepness=float(steepness),
        R0=as_array('R0', R0, (nareas,)),
        ssb_per_recruit=as_array('ssb_per_recruit', ssb_per_recruit, (nareas,)),
        ricker_a=as_array('ricker_a', ricker_a, (nareas,)),
        ricker_b=as_array('ricker_b', ricker_b, (nareas,)),
    )

    check_all_non_negative([
        ('ssb', ssb),
        ('numbers', numbers),
        ('mortality', mortality),
        ('recruitment_deviation', recruitment_deviation),
    ])
    check_movement(movement)
    _check_recruitment_params(params, sr)

    return _step(ssb, numbers, mortality, float(recruitment_deviation),
                 params, movement, sr, bool(plusgroup))


def _check_recruitment_params(params: StockRecruitParams, sr: StockRecruit,
                              unfished: bool = False) -> None:
    if sr == StockRecruit.BEVERTON_HOLT or unfished:
        check_steepness(params.steepness, unfished)
        check_positive('R0', params.R0)
        check_positive('ssb_per_recruit', params.ssb_per_recruit)
    else:
        check_finite('steepness', params.steepness)
    if sr == StockRecruit.RICKER:
        check_non_negative('ricker_a', params.ricker_a)
        check_non_negative('ricker_b', params.ricker_b)
    else:
        check_finite('ricker_a', params.ricker_a)
        check_finite('ricker_b', params.ricker_b)


# ═══════════════════════════════════════════════════════════════════════
# FISHING CONTROL SELECTION
# ═══════════════════════════════════════════════════════════════════════

def make_fishing_control(
    control_mode,
    effort=None,
    catchability: float = 0.0,
    apical_F: float = 0.0,
    unfished_ssb_total: Optional[float] = None,
) -> FishingControl:
    """Build the fishing-control variant for a run from a mode selector."""
    mode = check_control_mode(control_mode)
    if mode == ControlMode.EFFORT:
        if effort is None:
            raise InvalidInputError("effort is required under the effort control")
        check_non_negative('effort', effort)
        check_non_negative('catchability', catchability)
        return EffortControl(effort=np.asarray(effort, dtype=np.float64),
                             catchability=float(catchability))
    if mode == ControlMode.APICAL_F:
        check_non_negative('apical_F', apical_F)
        return ApicalFControl(apical_F=float(apical_F))
    if unfished_ssb_total is None:
        raise InvalidInputError("unfished_ssb_total is required under the unfished control")
    check_positive('unfished_ssb_total', unfished_ssb_total)
    return UnfishedControl(unfished_ssb_total=float(unfished_ssb_total))


# ═══════════════════════════════════════════════════════════════════════
# UNFISHED-REFERENCE FEEDBACK
# ═══════════════════════════════════════════════════════════════════════

def update_unfished_recruitment(
    params: StockRecruitParams,
    ssb_next: np.ndarray,
    ssb_prev: np.ndarray,
    unfished_ssb_total: float,
    R0_total: float,
) -> np.ndarray:
    """Re-equilibrate regional recruitment to the unfished spatial target.

    Updates params in place:
      SSB0[A] = ssb_next[A] rescaled so Σ SSB0 = unfished_ssb_total
      R0[A]   = ssb_prev[A] rescaled so Σ R0 = R0_total
      b[A]    = ln(5h) / (0.8 · SSB0[A])
      a[A]    = exp(b[A] · SSB0[A]) / SSBpR[A]

    Args:
        params: The run's stock-recruit state (mutated).
        ssb_next: (nareas,) spawning biomass in the year just projected.
        ssb_prev: (nareas,) spawning biomass in the year before it.
        unfished_ssb_total: Target total unfished spawning biomass.
        R0_total: Total unfished recruitment across areas.

    Returns:
        (nareas,) SSB0 target by area, used as the spawning biomass for
        the next year's recruitment.
    """
    total_next = ssb_next.sum()
    total_prev = ssb_prev.sum()
    if total_next <= 0 or total_prev <= 0:
        raise InvalidInputError(
            "spawning biomass summed over areas is zero under the unfished control"
        )
    ssb0 = ssb_next / (total_next / unfished_ssb_total)
    params.R0 = ssb_prev / (total_prev / R0_total)
    params.ricker_a, params.ricker_b = ricker_parameters(
        params.steepness, ssb0, params.ssb_per_recruit,
    )
    logger.debug("unfished feedback: SSB0=%s a=%s b=%s",
                 np.round(ssb0, 4), params.ricker_a, params.ricker_b)
    return ssb0


# ═══════════════════════════════════════════════════════════════════════
# MULTI-YEAR DRIVER
# ═══════════════════════════════════════════════════════════════════════

def _record_year(result: ProjectionResult, year: int, numbers: np.ndarray,
                 weight: np.ndarray, maturity: np.ndarray,
                 vulnerability: np.ndarray) -> None:
    """Store numbers for a year and derive B, SSN, SB and VB from them."""
    wt = weight[:, year, np.newaxis]
    mat = maturity[:, year, np.newaxis]
    result.N[:, year, :] = numbers
    result.B[:, year, :] = numbers * wt
    result.SSN[:, year, :] = numbers * mat
    result.SB[:, year, :] = numbers * wt * mat
    result.VB[:, year, :] = numbers * wt * vulnerability[:, year, np.newaxis]


def _apply_fishing(result: ProjectionResult, control: FishingControl, year: int,
                   open_areas: Optional[np.ndarray], spatial_targeting: float,
                   natural_mortality: np.ndarray, vulnerability: np.ndarray,
                   retention: np.ndarray, area_size: np.ndarray,
                   max_F: float) -> None:
    """Fill F, Fret and Z for a year under a fishing control."""
    fishdist = fishing_distribution(result.VB[:, year, :].sum(axis=0), spatial_targeting)
    if open_areas is not None:
        fishdist = apply_area_closures(fishdist, open_areas)
    F, Fret = fishing_mortality(control, year, fishdist, vulnerability[:, year],
                                retention[:, year], area_size)
    result.F[:, year, :] = cap_fishing_mortality(F, max_F)
    result.Fret[:, year, :] = cap_fishing_mortality(Fret, max_F)
    result.Z[:, year, :] = natural_mortality[:, year, np.newaxis] + result.F[:, year, :]


def project_years(
    nareas: int,
    maxage: int,
    initial_numbers,
    pyears: int,
    natural_mortality,
    area_size,
    maturity,
    weight,
    vulnerability,
    retention,
    recruitment_deviations,
    movement_by_year,
    stock_recruit,
    effort,
    spatial_targeting: float,
    steepness: float,
    R0,
    ssb_per_recruit,
    ricker_a,
    ricker_b,
    catchability: float,
    apical_F: float,
    max_F: float,
    area_closure,
    control_mode,
    unfished_ssb_total: Optional[float] = None,
    plusgroup: bool = False,
) -> ProjectionResult:
    """Project numbers-at-age by area over pyears years.

    Args:
        nareas: Number of spatial areas.
        maxage: Number of age classes.
        initial_numbers: (maxage, nareas) numbers-at-age in year 0.
        pyears: Number of years (including year 0).
        natural_mortality: (maxage, pyears) M by age and year.
        area_size: (nareas,) relative size of each area.
        maturity: (maxage, pyears) proportion mature.
        weight: (maxage, pyears) weight-at-age.
        vulnerability: (maxage, pyears) vulnerability-at-age.
        retention: (maxage, pyears) retention-at-age.
        recruitment_deviations: Length >= pyears + maxage; the deviation
            for recruits entering year y+1 is element y + maxage.
        movement_by_year: (pyears, maxage, nareas, nareas) movement.
        stock_recruit: 1 = Beverton-Holt, 2 = Ricker.
        effort: (pyears,) fishing effort (used by control 1).
        spatial_targeting: Exponent on vulnerable biomass for effort
            allocation.
        steepness: Steepness h.
        R0: (nareas,) unfished recruitment.
        ssb_per_recruit: (nareas,) unfished spawners per recruit.
        ricker_a: (nareas,) Ricker a.
        ricker_b: (nareas,) Ricker b.
        catchability: Catchability q (control 1).
        apical_F: Apical fishing mortality (control 2).
        max_F: Ceiling on F and Fret for any age, area and year.
        area_closure: (pyears, nareas) openness, 1 = open, 0 = closed.
            Row y applies to fishing in year y+1.
        control_mode: 1 effort, 2 apical F, 3 unfished reference.
        unfished_ssb_total: Target total unfished SSB (control 3).
        plusgroup: Treat the last age as a plus-group.

    Returns:
        ProjectionResult with N, B, SSN, SB, VB, F, Fret, Z.

    Raises:
        InvalidInputError: On any shape or domain violation, or if the
            run reaches a state where the update is undefined.
    """
    # ── Boundary validation ───────────────────────────────────────────
    nareas = check_dimension('nareas', nareas)
    maxage = check_dimension('maxage', maxage)
    pyears = check_dimension('pyears', pyears)
    sr = check_stock_recruit(stock_recruit)
    control = make_fishing_control(
        control_mode,
        effort=None if effort is None else as_array('effort', effort, (pyears,)),
        catchability=catchability,
        apical_F=apical_F,
        unfished_ssb_total=unfished_ssb_total,
    )

    N0 = as_array('initial_numbers', initial_numbers, (maxage, nareas))
    M = as_array('natural_mortality', natural_mortality, (maxage, pyears))
    area_size = as_array('area_size', area_size, (nareas,))
    maturity = as_array('maturity', maturity, (maxage, pyears))
    weight = as_array('weight', weight, (maxage, pyears))
    vulnerability = as_array('vulnerability', vulnerability, (maxage, pyears))
    retention = as_array('retention', retention, (maxage, pyears))
    devs = as_vector('recruitment_deviations', recruitment_deviations, pyears + maxage)
    mov = as_array('movement_by_year', movement_by_year,
                   (pyears, maxage, nareas, nareas))
    closures = as_array('area_closure', area_closure, (pyears, nareas))

    check_all_non_negative([
        ('initial_numbers', N0),
        ('natural_mortality', M),
        ('maturity', maturity),
        ('weight', weight),
        ('vulnerability', vulnerability),
        ('retention', retention),
        ('recruitment_deviations', devs),
        ('area_closure', closures),
    ])
    check_positive('area_size', area_size)
    check_finite('spatial_targeting', spatial_targeting)
    check_positive('max_F', max_F)
    if np.any(closures > 1):
        raise InvalidInputError("area_closure entries must lie in [0, 1]")
    check_movement(mov)

    params = StockRecruitParams(
        steepness=float(steepness),
        R0=as_array('R0', R0, (nareas,)),
        ssb_per_recruit=as_array('ssb_per_recruit', ssb_per_recruit, (nareas,)),
        ricker_a=as_array('ricker_a', ricker_a, (nareas,)),
        ricker_b=as_array('ricker_b', ricker_b, (nareas,)),
    )
    _check_recruitment_params(params, sr,
                              unfished=control.mode == ControlMode.UNFISHED)
    params = params.copy()
    R0_total = float(params.R0.sum())
    plusgroup = bool(plusgroup)

    logger.info(
        "project_years: %d ages × %d years × %d areas, control=%s, SRR=%s, plusgroup=%s",
        maxage, pyears, nareas, control.mode.name, sr.name, plusgroup,
    )

    # ── Year 0 ────────────────────────────────────────────────────────
    result = ProjectionResult.allocate(maxage, pyears, nareas, control.mode)
    _record_year(result, 0, N0, weight, maturity, vulnerability)
    fishing = not isinstance(control, UnfishedControl)
    if fishing:
        _apply_fishing(result, control, 0, None, spatial_targeting, M,
                       vulnerability, retention, area_size, max_F)
    else:
        result.Z[:, 0, :] = M[:, 0, np.newaxis]

    # ── Year transitions ──────────────────────────────────────────────
    ssb0_target = None
    for yr in range(pyears - 1):
        if ssb0_target is not None:
            ssb = ssb0_target
        else:
            ssb = result.SB[:, yr, :].sum(axis=0)

        next_numbers = _step(
            ssb, result.N[:, yr, :], result.Z[:, yr, :],
            float(devs[yr + maxage]), params, mov[yr], sr, plusgroup,
        )
        _record_year(result, yr + 1, next_numbers, weight, maturity, vulnerability)

        if fishing:
            _apply_fishing(result, control, yr + 1, closures[yr], spatial_targeting,
                           M, vulnerability, retention, area_size, max_F)
        else:
            result.Z[:, yr + 1, :] = M[:, yr + 1, np.newaxis]
            ssb0_target = update_unfished_recruitment(
                params,
                ssb_next=result.SB[:, yr + 1, :].sum(axis=0),
                ssb_prev=result.SB[:, yr, :].sum(axis=0),
                unfished_ssb_total=control.unfished_ssb_total,
                R0_total=R0_total,
            )

        logger.debug("year %d: recruits=%s SSB=%s", yr + 1,
                     np.round(next_numbers[0], 4),
                     np.round(result.SB[:, yr + 1, :].sum(axis=0), 4))

    result.final_params = params
    logger.info("project_years: done, final total SSB=%.6g",
                float(result.SB[:, -1, :].sum()))
    return result


def run_from_config(config: Optional[ProjectionConfig] = None) -> ProjectionResult:
    """Build inputs from a ProjectionConfig and run project_years()."""
    if config is None:
        config = default_config()
    return project_years(**build_projection_inputs(config))

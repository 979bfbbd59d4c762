"""Configuration system for fishpop.

Hierarchical YAML configuration with deep-merge support:
  base.yaml → scenario override → programmatic overrides

A configuration describes one projection run in biological terms
(growth, maturity, selectivity, stock-recruit parameters, movement
targets, fleet settings). build_projection_inputs() turns it into the
fully-formed arrays that project_years() takes.
"""

from __future__ import annotations

import dataclasses
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import numpy as np
import yaml

from fishpop.biology import (
    expand_by_year,
    length_to_weight,
    logistic_ogive,
    ssb_per_recruit,
    unfished_numbers_at_age,
    von_bertalanffy_length,
)
from fishpop.movement import expand_movement, fit_movement_matrix
from fishpop.recruitment import ricker_parameters
from fishpop.rng import create_rng_hierarchy, get_sim_rng, recruitment_deviations
from fishpop.types import ControlMode, StockRecruit


CONTROL_NAMES = {
    'effort': ControlMode.EFFORT,
    'apical_f': ControlMode.APICAL_F,
    'unfished': ControlMode.UNFISHED,
}

STOCK_RECRUIT_NAMES = {
    'bevertonholt': StockRecruit.BEVERTON_HOLT,
    'ricker': StockRecruit.RICKER,
}


# ═══════════════════════════════════════════════════════════════════════
# CONFIGURATION DATACLASSES
# ═══════════════════════════════════════════════════════════════════════

@dataclass
class ProjectionSection:
    """Run length, control mode and seeding."""
    pyears: int = 50
    control: str = 'apical_f'      # 'effort', 'apical_f' or 'unfished'
    plusgroup: bool = True
    seed: int = 42
    replicate: int = 0             # which per-replicate RNG stream to use
    unfished_ssb_total: Optional[float] = None  # None → Σ R0 × SSBpR


@dataclass
class StockSection:
    """Life history and stock-recruitment."""
    maxage: int = 20
    M: Union[float, List[float]] = 0.2   # scalar or one value per age
    L_inf: float = 100.0         # von Bertalanffy asymptotic length (cm)
    K: float = 0.2               # von Bertalanffy growth rate (yr⁻¹)
    t0: float = -0.5             # von Bertalanffy age offset (yr)
    wt_a: float = 1.0e-5         # length-weight coefficient
    wt_b: float = 3.0            # length-weight exponent
    mat_a50: float = 4.0         # age at 50% maturity
    mat_a95: float = 6.0         # age at 95% maturity
    steepness: float = 0.7
    stock_recruit: str = 'bevertonholt'   # 'bevertonholt' or 'ricker'
    R0: List[float] = field(default_factory=lambda: [1000.0, 1000.0])
    sigma_R: float = 0.0         # log-scale recruitment deviation SD
    autocorrelation: float = 0.0


@dataclass
class SpatialSection:
    """Areas and movement.

    Movement is taken from `movement` if given, otherwise fitted to
    `frac_area` (and `prob_staying`), otherwise the identity (no mixing).
    """
    nareas: int = 2
    area_size: List[float] = field(default_factory=lambda: [0.5, 0.5])
    frac_area: Optional[List[float]] = None
    prob_staying: Optional[List[float]] = None
    movement: Optional[List[List[float]]] = None


@dataclass
class FleetSection:
    """Fishing effort, selectivity and spatial management."""
    effort: Union[float, List[float]] = 1.0   # scalar or one value per year
    catchability: float = 0.2
    apical_F: float = 0.2
    max_F: float = 3.0
    spatial_targeting: float = 1.0
    vuln_a50: float = 3.0
    vuln_a95: float = 5.0
    retention_a50: Optional[float] = None     # None → retention = vulnerability
    retention_a95: Optional[float] = None
    closed_areas: List[int] = field(default_factory=list)
    closure_start_year: int = 0


@dataclass
class ProjectionConfig:
    """Complete run configuration.

    Load from YAML via `load_config()`. Sections map 1:1 to YAML top-level keys.
    """
    projection: ProjectionSection = field(default_factory=ProjectionSection)
    stock: StockSection = field(default_factory=StockSection)
    spatial: SpatialSection = field(default_factory=SpatialSection)
    fleet: FleetSection = field(default_factory=FleetSection)


# ═══════════════════════════════════════════════════════════════════════
# YAML LOADING & MERGING
# ═══════════════════════════════════════════════════════════════════════

def deep_merge(base: Dict, override: Dict) -> Dict:
    """Recursively merge override into base. Modifies base in place.

    - Dict values are merged recursively
    - Non-dict values are replaced
    - Keys in override but not base are added

    Returns:
        The merged base dictionary.
    """
    for key, value in override.items():
        if (
            key in base
            and isinstance(base[key], dict)
            and isinstance(value, dict)
        ):
            deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def _dict_to_section(section_cls, data: Dict) -> Any:
    """Convert a dict to a dataclass, ignoring unknown keys."""
    valid_fields = {f.name for f in dataclasses.fields(section_cls)}
    filtered = {k: v for k, v in data.items() if k in valid_fields}
    return section_cls(**filtered)


def _yaml_to_config(data: Dict) -> ProjectionConfig:
    """Convert a merged YAML dict to a ProjectionConfig."""
    section_map = {
        'projection': ProjectionSection,
        'stock': StockSection,
        'spatial': SpatialSection,
        'fleet': FleetSection,
    }
    sections = {}
    for key, cls in section_map.items():
        if key in data and isinstance(data[key], dict):
            sections[key] = _dict_to_section(cls, data[key])
        else:
            sections[key] = cls()
    return ProjectionConfig(**sections)


def _check_length(name: str, values, expected: int) -> None:
    if len(values) != expected:
        raise ValueError(f"{name} must have {expected} elements, got {len(values)}")


def validate_config(config: ProjectionConfig) -> None:
    """Validate configuration constraints. Raises ValueError on failure."""
    pr, st, sp, fl = config.projection, config.stock, config.spatial, config.fleet

    if pr.control not in CONTROL_NAMES:
        raise ValueError(
            f"projection.control must be one of {sorted(CONTROL_NAMES)}, "
            f"got '{pr.control}'"
        )
    if st.stock_recruit not in STOCK_RECRUIT_NAMES:
        raise ValueError(
            f"stock.stock_recruit must be one of {sorted(STOCK_RECRUIT_NAMES)}, "
            f"got '{st.stock_recruit}'"
        )

    # Dimensions
    if pr.pyears < 1:
        raise ValueError(f"projection.pyears must be >= 1, got {pr.pyears}")
    if st.maxage < 1:
        raise ValueError(f"stock.maxage must be >= 1, got {st.maxage}")
    if sp.nareas < 1:
        raise ValueError(f"spatial.nareas must be >= 1, got {sp.nareas}")
    if pr.seed < 0:
        raise ValueError("projection.seed must be non-negative")
    if pr.replicate < 0:
        raise ValueError("projection.replicate must be non-negative")

    # Stock
    _check_length('stock.R0', st.R0, sp.nareas)
    if any(r <= 0 for r in st.R0):
        raise ValueError("stock.R0 must be positive in every area")
    M = np.atleast_1d(np.asarray(st.M, dtype=float))
    if M.size not in (1, st.maxage):
        raise ValueError(
            f"stock.M must be a scalar or have {st.maxage} elements, got {M.size}"
        )
    if np.any(M < 0):
        raise ValueError("stock.M must be non-negative")
    if pr.plusgroup and M[-1] <= 0:
        raise ValueError("stock.M at the last age must be positive with a plus-group")
    if not 0.2 <= st.steepness <= 1.0:
        raise ValueError(f"stock.steepness must be in [0.2, 1], got {st.steepness}")
    if pr.control == 'unfished' and st.steepness <= 0.2:
        raise ValueError("stock.steepness must be > 0.2 for the unfished control")
    if st.mat_a95 <= st.mat_a50:
        raise ValueError("stock.mat_a95 must be greater than stock.mat_a50")
    if st.L_inf <= 0 or st.K <= 0:
        raise ValueError("stock.L_inf and stock.K must be positive")
    if st.sigma_R < 0:
        raise ValueError("stock.sigma_R must be non-negative")
    if not -1.0 < st.autocorrelation < 1.0:
        raise ValueError("stock.autocorrelation must lie in (-1, 1)")
    if st.sigma_R == 0 and st.autocorrelation != 0:
        warnings.warn(
            "stock.autocorrelation has no effect when stock.sigma_R is 0",
            UserWarning,
            stacklevel=2,
        )

    # Spatial
    _check_length('spatial.area_size', sp.area_size, sp.nareas)
    if any(a <= 0 for a in sp.area_size):
        raise ValueError("spatial.area_size must be positive in every area")
    if sp.movement is not None:
        mov = np.asarray(sp.movement, dtype=float)
        if mov.shape != (sp.nareas, sp.nareas):
            raise ValueError(
                f"spatial.movement must be {sp.nareas}x{sp.nareas}, got {mov.shape}"
            )
        if np.any(mov < 0):
            raise ValueError("spatial.movement must be non-negative")
    if sp.frac_area is not None:
        _check_length('spatial.frac_area', sp.frac_area, sp.nareas)
        if abs(sum(sp.frac_area) - 1.0) > 1e-8:
            raise ValueError("spatial.frac_area must sum to 1")
    if sp.prob_staying is not None:
        if sp.frac_area is None:
            raise ValueError("spatial.prob_staying requires spatial.frac_area")
        _check_length('spatial.prob_staying', sp.prob_staying, sp.nareas)

    # Fleet
    effort = np.atleast_1d(np.asarray(fl.effort, dtype=float))
    if effort.size not in (1, pr.pyears):
        raise ValueError(
            f"fleet.effort must be a scalar or have {pr.pyears} elements, "
            f"got {effort.size}"
        )
    if np.any(effort < 0):
        raise ValueError("fleet.effort must be non-negative")
    if fl.catchability < 0 or fl.apical_F < 0:
        raise ValueError("fleet.catchability and fleet.apical_F must be non-negative")
    if fl.max_F <= 0:
        raise ValueError("fleet.max_F must be positive")
    if fl.vuln_a95 <= fl.vuln_a50:
        raise ValueError("fleet.vuln_a95 must be greater than fleet.vuln_a50")
    if (fl.retention_a50 is None) != (fl.retention_a95 is None):
        raise ValueError("fleet.retention_a50 and fleet.retention_a95 go together")
    for area in fl.closed_areas:
        if not 0 <= area < sp.nareas:
            raise ValueError(f"fleet.closed_areas contains unknown area {area}")
    if len(set(fl.closed_areas)) >= sp.nareas and pr.control != 'unfished':
        raise ValueError("fleet.closed_areas cannot close every area")
    if pr.unfished_ssb_total is not None and pr.unfished_ssb_total <= 0:
        raise ValueError("projection.unfished_ssb_total must be positive")


def load_config(
    base_path: Union[str, Path],
    scenario_path: Optional[Union[str, Path]] = None,
    overrides: Optional[Dict] = None,
) -> ProjectionConfig:
    """Load and merge hierarchical YAML configuration.

    Merge order: base → scenario → overrides.
    Each layer overrides only the fields it specifies.

    Raises:
        FileNotFoundError: If base_path doesn't exist.
        ValueError: If validation fails.
    """
    base_path = Path(base_path)
    if not base_path.exists():
        raise FileNotFoundError(f"Config file not found: {base_path}")

    with open(base_path) as f:
        config_dict = yaml.safe_load(f) or {}

    if scenario_path is not None:
        scenario_path = Path(scenario_path)
        if scenario_path.exists():
            with open(scenario_path) as f:
                scenario = yaml.safe_load(f) or {}
            deep_merge(config_dict, scenario)

    if overrides is not None:
        deep_merge(config_dict, overrides)

    config = _yaml_to_config(config_dict)
    validate_config(config)
    return config


def default_config() -> ProjectionConfig:
    """Return a ProjectionConfig with all default values."""
    config = ProjectionConfig()
    validate_config(config)
    return config


# ═══════════════════════════════════════════════════════════════════════
# PROJECTION INPUTS
# ═══════════════════════════════════════════════════════════════════════

def _movement_matrix(sp: SpatialSection) -> np.ndarray:
    if sp.movement is not None:
        return np.asarray(sp.movement, dtype=np.float64)
    if sp.frac_area is not None:
        return fit_movement_matrix(sp.frac_area, sp.prob_staying)
    return np.eye(sp.nareas)


def build_projection_inputs(config: ProjectionConfig) -> Dict[str, Any]:
    """Assemble every project_years() argument from a configuration.

    The population starts at unfished equilibrium in each area; Ricker
    parameters are derived from steepness and the unfished SSB by area.

    Returns:
        Dict of keyword arguments for project_years().
    """
    pr, st, sp, fl = config.projection, config.stock, config.spatial, config.fleet
    maxage, pyears, nareas = st.maxage, pr.pyears, sp.nareas
    ages = np.arange(maxage, dtype=np.float64)

    M = expand_by_year(st.M, maxage, pyears)
    weight = expand_by_year(
        length_to_weight(von_bertalanffy_length(ages, st.L_inf, st.K, st.t0),
                         st.wt_a, st.wt_b),
        maxage, pyears,
    )
    maturity = expand_by_year(logistic_ogive(ages, st.mat_a50, st.mat_a95), maxage, pyears)
    vulnerability = expand_by_year(logistic_ogive(ages, fl.vuln_a50, fl.vuln_a95),
                                   maxage, pyears)
    if fl.retention_a50 is None:
        retention = vulnerability.copy()
    else:
        retention = expand_by_year(
            logistic_ogive(ages, fl.retention_a50, fl.retention_a95), maxage, pyears,
        )

    R0 = np.asarray(st.R0, dtype=np.float64)
    sbpr = np.full(nareas, ssb_per_recruit(M[:, 0], weight[:, 0], maturity[:, 0],
                                           pr.plusgroup))
    ssb0 = R0 * sbpr
    ricker_a, ricker_b = ricker_parameters(st.steepness, ssb0, sbpr)

    rngs = create_rng_hierarchy(pr.seed, n_sims=pr.replicate + 1)
    devs = recruitment_deviations(pyears + maxage, st.sigma_R, st.autocorrelation,
                                  get_sim_rng(rngs, pr.replicate))

    effort = np.atleast_1d(np.asarray(fl.effort, dtype=np.float64))
    if effort.size == 1:
        effort = np.full(pyears, effort[0])

    closures = np.ones((pyears, nareas))
    if fl.closed_areas:
        closures[fl.closure_start_year:, fl.closed_areas] = 0.0

    unfished_total = (pr.unfished_ssb_total if pr.unfished_ssb_total is not None
                      else float(ssb0.sum()))

    return dict(
        nareas=nareas,
        maxage=maxage,
        initial_numbers=unfished_numbers_at_age(R0, M[:, 0], pr.plusgroup),
        pyears=pyears,
        natural_mortality=M,
        area_size=np.asarray(sp.area_size, dtype=np.float64),
        maturity=maturity,
        weight=weight,
        vulnerability=vulnerability,
        retention=retention,
        recruitment_deviations=devs,
        movement_by_year=expand_movement(_movement_matrix(sp), pyears, maxage),
        stock_recruit=STOCK_RECRUIT_NAMES[st.stock_recruit],
        effort=effort,
        spatial_targeting=fl.spatial_targeting,
        steepness=st.steepness,
        R0=R0,
        ssb_per_recruit=sbpr,
        ricker_a=ricker_a,
        ricker_b=ricker_b,
        catchability=fl.catchability,
        apical_F=fl.apical_F,
        max_F=fl.max_F,
        area_closure=closures,
        control_mode=CONTROL_NAMES[pr.control],
        unfished_ssb_total=unfished_total,
        plusgroup=pr.plusgroup,
    )

"""Input validation for the projection core.

Every check raises InvalidInputError (a ValueError) naming the argument
and the precondition it violates. Checks run on entry to
project_one_step / project_years, before any output is allocated.
"""

from __future__ import annotations

from typing import Iterable, Tuple

import numpy as np

from fishpop.types import ARRAY_DTYPE, ControlMode, StockRecruit


class InvalidInputError(ValueError):
    """Raised when projection inputs violate a precondition."""


# ═══════════════════════════════════════════════════════════════════════
# ARRAY COERCION & SHAPE
# ═══════════════════════════════════════════════════════════════════════

def as_array(name: str, value, shape: Tuple[int, ...]) -> np.ndarray:
    """Convert value to a float64 array of exactly the given shape."""
    try:
        arr = np.asarray(value, dtype=ARRAY_DTYPE)
    except (TypeError, ValueError) as exc:
        raise InvalidInputError(f"{name} is not numeric: {exc}") from exc
    if arr.shape != tuple(shape):
        raise InvalidInputError(
            f"{name} must have shape {tuple(shape)}, got {arr.shape}"
        )
    return arr


def as_vector(name: str, value, min_length: int) -> np.ndarray:
    """Convert value to a 1-D float64 array of at least min_length."""
    try:
        arr = np.asarray(value, dtype=ARRAY_DTYPE)
    except (TypeError, ValueError) as exc:
        raise InvalidInputError(f"{name} is not numeric: {exc}") from exc
    if arr.ndim != 1:
        raise InvalidInputError(f"{name} must be one-dimensional, got ndim={arr.ndim}")
    if len(arr) < min_length:
        raise InvalidInputError(
            f"{name} must have length >= {min_length}, got {len(arr)}"
        )
    return arr


def check_dimension(name: str, value, minimum: int = 1) -> int:
    """Dimensions (nareas, maxage, pyears) must be integers >= minimum."""
    if isinstance(value, (bool, np.bool_)):
        raise InvalidInputError(f"{name} must be an integer, got {value!r}")
    if isinstance(value, (float, np.floating)):
        if not float(value).is_integer():
            raise InvalidInputError(f"{name} must be an integer, got {value!r}")
        value = int(value)
    if not isinstance(value, (int, np.integer)):
        raise InvalidInputError(f"{name} must be an integer, got {value!r}")
    if value < minimum:
        raise InvalidInputError(f"{name} must be >= {minimum}, got {value}")
    return int(value)


# ═══════════════════════════════════════════════════════════════════════
# NUMERIC DOMAIN
# ═══════════════════════════════════════════════════════════════════════

def check_finite(name: str, arr) -> None:
    if not np.all(np.isfinite(arr)):
        raise InvalidInputError(f"{name} must be finite")


def check_non_negative(name: str, arr) -> None:
    check_finite(name, arr)
    if np.any(np.asarray(arr) < 0):
        raise InvalidInputError(f"{name} must be non-negative")


def check_positive(name: str, arr) -> None:
    check_finite(name, arr)
    if np.any(np.asarray(arr) <= 0):
        raise InvalidInputError(f"{name} must be positive")


def check_all_non_negative(pairs: Iterable[Tuple[str, np.ndarray]]) -> None:
    for name, arr in pairs:
        check_non_negative(name, arr)


# ═══════════════════════════════════════════════════════════════════════
# SELECTORS
# ═══════════════════════════════════════════════════════════════════════

def _selector_member(name: str, value, choices):
    """Enum member for a selector value; bools and non-integral numbers are rejected."""
    message = f"{name} must be one of {[int(c) for c in choices]}, got {value!r}"
    if isinstance(value, (bool, np.bool_)):
        raise InvalidInputError(message)
    if isinstance(value, (float, np.floating)):
        if not float(value).is_integer():
            raise InvalidInputError(message)
        value = int(value)
    if not isinstance(value, (int, np.integer)):
        raise InvalidInputError(message)
    try:
        return choices(int(value))
    except ValueError as exc:
        raise InvalidInputError(message) from exc


def check_stock_recruit(value) -> StockRecruit:
    """Return the StockRecruit member for value or raise."""
    return _selector_member('stock_recruit', value, StockRecruit)


def check_control_mode(value) -> ControlMode:
    """Return the ControlMode member for value or raise."""
    return _selector_member('control_mode', value, ControlMode)


def check_steepness(steepness: float, unfished: bool = False) -> float:
    """Steepness must lie in [0.2, 1].

    The unfished control derives Ricker b from ln(5h), which needs h > 0.2.
    """
    h = float(steepness)
    if not np.isfinite(h) or h < 0.2 or h > 1.0:
        raise InvalidInputError(f"steepness must be in [0.2, 1], got {steepness!r}")
    if unfished and h <= 0.2:
        raise InvalidInputError(
            "steepness must be > 0.2 under the unfished control "
            f"(ln(5h) must be positive), got {steepness!r}"
        )
    return h

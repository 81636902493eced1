"""
Numeric helpers shared by the analytics components.

Every function here tolerates empty input and non-finite values so callers
never have to special-case NaN or Infinity before clamping for display.
"""

import math
from typing import Optional, Sequence, Tuple

import numpy as np


def is_finite_number(value: Optional[float]) -> bool:
    """True for real, finite numbers (bools and None excluded)."""
    if value is None or isinstance(value, bool):
        return False
    try:
        return math.isfinite(value)
    except TypeError:
        return False


def clamp(value: Optional[float], lower: float, upper: float) -> float:
    """
    Clamp a value into [lower, upper].

    NaN and None collapse to the lower bound; +/-Infinity saturate.
    """
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return lower
    return max(lower, min(upper, float(value)))


def weighted_mean_variance(
    values: Sequence[float], weights: Sequence[float]
) -> Optional[Tuple[float, float]]:
    """
    Weighted mean and (population) weighted variance.

    Returns:
        (mean, variance), or None when there is nothing to weigh
    """
    if len(values) == 0:
        return None
    x = np.asarray(values, dtype=float)
    w = np.asarray(weights, dtype=float)
    if w.sum() <= 0:
        return None
    mean = float(np.average(x, weights=w))
    variance = float(np.average((x - mean) ** 2, weights=w))
    return mean, variance


def slope_through_origin(
    xs: Sequence[float], ys: Sequence[float]
) -> Optional[Tuple[float, float]]:
    """
    Least-squares slope of y = b*x with its sampling variance.

    Var(b) = s^2 / sum(x^2) with s^2 the residual variance on n-1 degrees of
    freedom. With a single point the variance is reported as 0.

    Returns:
        (slope, variance), or None when sum(x^2) is zero
    """
    x = np.asarray(xs, dtype=float)
    y = np.asarray(ys, dtype=float)
    sxx = float(np.sum(x * x))
    if len(x) == 0 or sxx <= 0:
        return None
    slope = float(np.sum(x * y) / sxx)
    if len(x) < 2:
        return slope, 0.0
    residuals = y - slope * x
    s2 = float(np.sum(residuals ** 2) / (len(x) - 1))
    return slope, s2 / sxx


def foster_monotony(daily_loads: Sequence[float]) -> float:
    """Mean / standard deviation of daily load; 0 when there is no variation."""
    if len(daily_loads) == 0:
        return 0.0
    loads = np.asarray(daily_loads, dtype=float)
    std = float(np.std(loads))
    if std <= 0 or not math.isfinite(std):
        return 0.0
    return float(np.mean(loads)) / std

"""
Robust statistics helpers.

This module provides the order-statistic summaries used for baselining
wearable metrics. Median/quartile/IQR summaries are used instead of
mean/standard deviation so that a few odd days do not dominate.

Functions:
    finite_values: Keep only finite numbers from a sequence
    percentile: Linear-interpolated percentile of a sorted array
    robust_stats: Median, quartiles and IQR (or None if too few values)
    safe_mean: Mean of finite values, or None

Example:
    >>> from heartwaves.utils.stats import robust_stats
    >>> stats = robust_stats([60, 62, 61, 65, 64])
    >>> print(stats.median)  # 62.0
"""

from __future__ import annotations

import math
from dataclasses import dataclass, asdict
from typing import Iterable, List, Optional

import numpy as np

from heartwaves.config import SCREENING


@dataclass(frozen=True)
class RobustStats:
    """
    Order-statistic summary of a numeric series.

    Attributes:
        n: Number of finite values summarized.
        median: 50th percentile.
        q1: 25th percentile.
        q3: 75th percentile.
        iqr: Absolute interquartile range |q3 - q1|.
    """

    n: int
    median: float
    q1: float
    q3: float
    iqr: float

    def to_dict(self) -> dict:
        return asdict(self)


def finite_values(values: Iterable[Optional[float]]) -> List[float]:
    """
    Extract finite float values, dropping None, NaN and infinities.

    Example:
        >>> finite_values([60, None, float('nan'), 62])
        [60.0, 62.0]
    """
    result = []
    for value in values:
        if value is None:
            continue
        try:
            number = float(value)
        except (TypeError, ValueError):
            continue
        if math.isfinite(number):
            result.append(number)
    return result


def percentile(sorted_values: np.ndarray, p: float) -> Optional[float]:
    """
    Percentile with linear interpolation between order statistics.

    rank = p / 100 * (n - 1); a fractional rank interpolates between the
    two neighbouring values.

    Args:
        sorted_values: Values in ascending order.
        p: Percentile in [0, 100].

    Returns:
        Interpolated percentile, or None for an empty array.

    Example:
        >>> percentile(np.array([10, 20, 30, 40]), 50)
        25.0
    """
    if len(sorted_values) == 0:
        return None
    return float(np.percentile(sorted_values, p, method="linear"))


def robust_stats(values: Iterable[Optional[float]]) -> Optional[RobustStats]:
    """
    Compute median, quartiles and IQR over the finite values of a series.

    Returns None when fewer than 5 finite values are supplied; the summary
    is never zero-filled.
    """
    vals = np.sort(np.asarray(finite_values(values), dtype=float))
    if len(vals) < SCREENING.MIN_STATS_SAMPLES:
        return None

    med = percentile(vals, 50)
    q1 = percentile(vals, 25)
    q3 = percentile(vals, 75)
    return RobustStats(n=len(vals), median=med, q1=q1, q3=q3, iqr=abs(q3 - q1))


def safe_mean(values: Iterable[Optional[float]]) -> Optional[float]:
    """
    Mean of the finite values, or None if there are none.

    Example:
        >>> safe_mean([100, None, 120])
        110.0
    """
    vals = finite_values(values)
    if not vals:
        return None
    return float(np.mean(vals))


def parse_optional_float(value) -> Optional[float]:
    """
    Parse a number from user or CSV input; blank or invalid input is None.

    Example:
        >>> parse_optional_float(" 72.5 ")
        72.5
        >>> parse_optional_float("n/a") is None
        True
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    return number if math.isfinite(number) else None


__all__ = [
    'RobustStats',
    'finite_values',
    'percentile',
    'robust_stats',
    'safe_mean',
    'parse_optional_float',
]

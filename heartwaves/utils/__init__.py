"""
Utility functions for HeartWaves.

This package contains reusable helpers:
- stats: Robust statistics (median, quartiles, IQR) and numeric parsing

Usage:
    from heartwaves.utils import robust_stats, safe_mean
"""

from heartwaves.utils.stats import (
    RobustStats,
    finite_values,
    percentile,
    robust_stats,
    safe_mean,
    parse_optional_float,
)

__all__ = [
    'RobustStats',
    'finite_values',
    'percentile',
    'robust_stats',
    'safe_mean',
    'parse_optional_float',
]

"""
Feature Vector Construction.

Builds the clustering input vector from an imported window, in the exact
feature order recorded by the model artifact.

Vector Structure:
    [continuous features..., indicator features...]

    continuous:  observed value, or the training median when missing
    indicators:  '<feature>_missing' = 1.0 if the raw value was missing

Every dimension is then standardized: (value - mean[i]) / (std[i] or 1.0).

Raw feature sources:
    resting_hr_mean, hrv_sdnn_mean: mean over the whole daily window
    age:                            profile age
    sit/stand HR and SBP, deltas:   orthostatic override, else the
                                    window's quick-check input
"""

from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Optional

import numpy as np

from heartwaves.data.records import ImportedWindow, OrthostaticInput
from heartwaves.utils.stats import safe_mean

# Configure module logger
logger = logging.getLogger(__name__)

MISSING_SUFFIX = "_missing"

ORTHOSTATIC_FEATURES = (
    "sit_hr_mean",
    "stand_hr_mean",
    "sit_sbp_mean",
    "stand_sbp_mean",
)


def build_feature_values(
    window: ImportedWindow,
    continuous_features: List[str],
    orthostatic_override: Optional[OrthostaticInput] = None,
) -> Dict[str, Optional[float]]:
    """
    Extract raw (pre-imputation) feature values.

    Args:
        window: Imported daily window with optional age/orthostatic input.
        continuous_features: Continuous feature names from the artifact.
        orthostatic_override: Quick-check vitals taking precedence over the
            window's own orthostatic input; an empty record is ignored.

    Returns:
        Dict keyed by every continuous feature; unknown or unavailable
        features map to None.
    """
    values: Dict[str, Optional[float]] = {name: None for name in continuous_features}
    if orthostatic_override is not None and not orthostatic_override.is_empty:
        ortho = orthostatic_override
    else:
        ortho = window.orthostatic_input or OrthostaticInput()

    if "resting_hr_mean" in values:
        values["resting_hr_mean"] = safe_mean(d.resting_hr_mean for d in window.daily)
    if "hrv_sdnn_mean" in values:
        values["hrv_sdnn_mean"] = safe_mean(d.hrv_sdnn_mean for d in window.daily)
    if "age" in values:
        values["age"] = window.age

    for name in ORTHOSTATIC_FEATURES:
        if name in values:
            values[name] = getattr(ortho, name)

    if "delta_hr_stand_minus_sit" in values:
        values["delta_hr_stand_minus_sit"] = ortho.delta_hr
    if "delta_sbp_stand_minus_sit" in values:
        values["delta_sbp_stand_minus_sit"] = ortho.delta_sbp

    return values


def feature_coverage(values: Mapping[str, Optional[float]]) -> float:
    """
    Fraction of continuous features with an observed (non-imputed) value.

    Example:
        >>> feature_coverage({"age": 30.0, "resting_hr_mean": None})
        0.5
    """
    if not values:
        return 0.0
    present = sum(1 for value in values.values() if value is not None)
    return present / len(values)


def build_vector(
    raw_values: Mapping[str, Optional[float]],
    continuous: List[str],
    indicators: List[str],
    all_features: List[str],
    medians: Mapping[str, float],
    means: List[float],
    stds: List[float],
) -> np.ndarray:
    """
    Impute, add missingness indicators and standardize.

    Args:
        raw_values: Raw feature values (None = missing).
        continuous: Continuous feature names.
        indicators: Indicator feature names ('<feature>_missing').
        all_features: Output order.
        medians: Imputation medians per continuous feature.
        means: Standardization means in output order.
        stds: Standardization stds in output order (0 treated as 1).

    Returns:
        Standardized vector of shape (len(all_features),).
    """
    unscaled: Dict[str, float] = {}

    for name in continuous:
        value = raw_values.get(name)
        unscaled[name] = float(medians.get(name, 0.0)) if value is None else float(value)

    for name in indicators:
        base = name[: -len(MISSING_SUFFIX)] if name.endswith(MISSING_SUFFIX) else name
        unscaled[name] = 1.0 if raw_values.get(base) is None else 0.0

    raw = np.array([unscaled.get(name, 0.0) for name in all_features], dtype=float)
    mean_arr = np.asarray(means, dtype=float)
    std_arr = np.asarray(stds, dtype=float)
    std_arr = np.where(std_arr == 0.0, 1.0, std_arr)

    vector = (raw - mean_arr) / std_arr

    logger.debug(f"Built feature vector: dims={len(vector)}, raw={dict(unscaled)}")
    return vector

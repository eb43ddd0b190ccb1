"""
Orthostatic Quick-Check Calibration for HeartWaves.

Seated vs. standing quick-check vitals are a shorter but more specific
signal than the 30-day aggregate window. When the clustering result was
scored with enough observed features, these rules can force the model
result to a specific follow-up pattern regardless of the cluster it fell in.

OVERRIDE RULES (evaluated in order, first match wins):
1. HR rise >= 30 bpm without SBP drop <= -20 mmHg  -> POTS-like
2. SBP drop <= -20 mmHg                            -> OH-like
3. Resting HR >= 90 bpm with HR rise missing/< 30  -> IST-like

A match sets status needs_followup with medium confidence. The override
applies even when it disagrees with the cluster assignment.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional, Union

from heartwaves.config import CLUSTERING
from heartwaves.models.clustering import ClusteringError, ClusteringResult
from heartwaves.rules.phenotype import Confidence, PhenotypeHint, Status
from heartwaves.utils.stats import parse_optional_float


logger = logging.getLogger(__name__)


class OverrideReason(Enum):
    """Reasons for a quick-check override."""

    NONE = auto()
    ORTHOSTATIC_HR_RISE = auto()
    ORTHOSTATIC_SBP_DROP = auto()
    RESTING_TACHYCARDIA = auto()


_REASON_HINTS = {
    OverrideReason.ORTHOSTATIC_HR_RISE: PhenotypeHint.POTS_LIKE,
    OverrideReason.ORTHOSTATIC_SBP_DROP: PhenotypeHint.OH_LIKE,
    OverrideReason.RESTING_TACHYCARDIA: PhenotypeHint.IST_LIKE,
}


@dataclass
class QuickCheckOverride:
    """
    Result of quick-check evaluation.

    Attributes:
        should_override: Whether the model result should be replaced.
        reason: Which rule fired.
        hint: Hint forced by the rule (None when no rule fired).
        explanation: Human-readable explanation.
    """

    should_override: bool
    reason: OverrideReason
    hint: Optional[PhenotypeHint]
    explanation: str


def orthostatic_pattern(
    delta_hr: Optional[float],
    delta_sbp: Optional[float],
    resting_hr: Optional[float],
) -> OverrideReason:
    """
    Apply the orthostatic threshold cascade.

    Args:
        delta_hr: Standing minus seated heart rate (bpm).
        delta_sbp: Standing minus seated systolic BP (mmHg).
        resting_hr: Resting heart rate (bpm).

    Returns:
        The first matching OverrideReason, or OverrideReason.NONE.
    """
    hr_rise = CLUSTERING.ORTHO_HR_RISE_BPM
    sbp_drop = CLUSTERING.ORTHO_SBP_DROP_MMHG

    if delta_hr is not None and delta_hr >= hr_rise and (delta_sbp is None or delta_sbp > sbp_drop):
        return OverrideReason.ORTHOSTATIC_HR_RISE

    if delta_sbp is not None and delta_sbp <= sbp_drop:
        return OverrideReason.ORTHOSTATIC_SBP_DROP

    if (
        resting_hr is not None
        and resting_hr >= CLUSTERING.ORTHO_RESTING_HR_BPM
        and (delta_hr is None or delta_hr < hr_rise)
    ):
        return OverrideReason.RESTING_TACHYCARDIA

    return OverrideReason.NONE


def evaluate_quick_check(result: ClusteringResult) -> QuickCheckOverride:
    """
    Decide whether quick-check vitals override a clustering result.

    Only results with feature coverage >= 0.8 are eligible.
    """
    if result.feature_coverage < CLUSTERING.CALIBRATION_MIN_COVERAGE:
        return QuickCheckOverride(
            should_override=False,
            reason=OverrideReason.NONE,
            hint=None,
            explanation="Feature coverage too low for quick-check calibration.",
        )

    features = result.features_used or {}
    delta_hr = parse_optional_float(features.get("delta_hr_stand_minus_sit"))
    delta_sbp = parse_optional_float(features.get("delta_sbp_stand_minus_sit"))
    resting_hr = parse_optional_float(features.get("resting_hr_mean"))

    reason = orthostatic_pattern(delta_hr, delta_sbp, resting_hr)

    if reason is OverrideReason.ORTHOSTATIC_HR_RISE:
        explanation = (
            f"Orthostatic quick-check shows HR rise {delta_hr:.1f} bpm without major SBP drop; "
            "POTS-like follow-up pattern."
        )
    elif reason is OverrideReason.ORTHOSTATIC_SBP_DROP:
        explanation = (
            f"Orthostatic quick-check shows SBP drop {delta_sbp:.1f} mmHg; "
            "OH-like follow-up pattern."
        )
    elif reason is OverrideReason.RESTING_TACHYCARDIA:
        explanation = (
            "Orthostatic quick-check shows high resting HR with limited stand-related rise; "
            "IST-like follow-up pattern."
        )
    else:
        return QuickCheckOverride(
            should_override=False,
            reason=reason,
            hint=None,
            explanation="No quick-check override triggered.",
        )

    return QuickCheckOverride(
        should_override=True,
        reason=reason,
        hint=_REASON_HINTS[reason],
        explanation=explanation,
    )


def calibrate_model_result(
    model_result: Optional[Union[ClusteringResult, ClusteringError]],
) -> Optional[Union[ClusteringResult, ClusteringError]]:
    """
    Apply the quick-check override to a clustering result.

    Errors and unavailable results pass through unchanged. A triggered
    override returns a new result; the input is never modified.

    Example:
        >>> calibrated = calibrate_model_result(result)
        >>> print(calibrated.calibration)  # e.g. 'ORTHOSTATIC_HR_RISE'
    """
    if not isinstance(model_result, ClusteringResult):
        return model_result

    override = evaluate_quick_check(model_result)
    if not override.should_override:
        return model_result

    logger.warning(
        f"QUICK-CHECK OVERRIDE: {override.reason.name} -> {override.hint.value} "
        f"(cluster said {model_result.phenotype_hint.value}/{model_result.confidence.value})"
    )
    return dataclasses.replace(
        model_result,
        status=Status.NEEDS_FOLLOWUP,
        phenotype_hint=override.hint,
        confidence=Confidence(CLUSTERING.CALIBRATION_CONFIDENCE),
        reason=override.explanation,
        calibration=override.reason.name,
    )

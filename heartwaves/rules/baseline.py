"""
Baseline Screener.

Compares the recent 7 days of a daily wearable series against the robust
baseline of the whole window and emits anomaly signals.

Signals (strict inequalities):
    elevated_resting_hr: recent mean > median + max(5.0, 1.5 * IQR)
    suppressed_hrv:      recent mean < median - max(10.0, 1.5 * IQR)

A metric is only evaluated when the window has a RobustStats baseline
(>= 5 values) and the recent window holds >= 3 non-null values; otherwise
a data-insufficiency note is emitted instead.

Any fired signal sets the status to needs_followup; the phenotype hint,
confidence and questionnaire are then derived from the signals.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence, Union

from heartwaves.config import SCREENING, TEXT
from heartwaves.data.records import DailyMetric
from heartwaves.utils.stats import RobustStats, finite_values, robust_stats, safe_mean

from .phenotype import Confidence, PhenotypeHint, Status, classify_phenotype
from .questionnaire import Question, questionnaire_for

if TYPE_CHECKING:
    from heartwaves.analysis.survey import SurveyAssessment, SymptomsRecord
    from heartwaves.models.clustering import ClusteringError, ClusteringResult

# Configure module logger
logger = logging.getLogger(__name__)


class ScreeningInputError(Exception):
    """Raised when the screener is called without a daily series."""
    pass


class Severity(str, Enum):
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"


@dataclass
class Signal:
    """
    An anomaly signal produced by rule evaluation.

    Attributes:
        key: Stable signal identifier (e.g. 'elevated_resting_hr').
        severity: low, moderate or high.
        detail: Human-readable description with the numbers involved.
    """

    key: str
    severity: Severity
    detail: str

    def to_dict(self) -> dict:
        return {"key": self.key, "severity": self.severity.value, "detail": self.detail}


@dataclass
class ScreeningResult:
    """
    The current assessment of a screening session.

    Created by the baseline screener, then updated in sequence by the
    clustering merge and by survey reconciliation.

    Attributes:
        status: normal or needs_followup.
        phenotype_hint: Current phenotype hint.
        phenotype_confidence: Confidence in the hint.
        phenotype_reason: Explanation of the current hint.
        bp_data_present: Whether the window contains BP fields.
        signals: Fired signals (append-only).
        questionnaire: Follow-up questions for the current hint.
        safety_notes: Fixed disclaimers.
        data_notes: Deduplicated notes in insertion order.
        stats: RobustStats per metric (None when insufficient).
        clustering_model: Clustering result merged into this assessment.
        survey_assessment: Latest survey assessment.
        symptoms: Latest validated survey answers.
    """

    status: Status
    phenotype_hint: Optional[PhenotypeHint]
    phenotype_confidence: Optional[Confidence]
    phenotype_reason: str
    bp_data_present: bool
    signals: List[Signal] = field(default_factory=list)
    questionnaire: List[Question] = field(default_factory=list)
    safety_notes: List[str] = field(default_factory=lambda: list(TEXT.SAFETY_NOTES))
    data_notes: List[str] = field(default_factory=list)
    stats: Dict[str, Optional[RobustStats]] = field(default_factory=dict)
    clustering_model: Optional[Union[ClusteringResult, ClusteringError]] = None
    survey_assessment: Optional[SurveyAssessment] = None
    symptoms: Optional[SymptomsRecord] = None

    def add_note(self, message: str) -> None:
        """Append a data note unless blank or already present."""
        if message and message.strip() and message not in self.data_notes:
            self.data_notes.append(message)

    def has_signal(self, key: str) -> bool:
        return any(signal.key == key for signal in self.signals)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready representation for the serving layer."""
        out: Dict[str, Any] = {
            "status": self.status.value,
            "phenotype_hint": self.phenotype_hint.value if self.phenotype_hint else None,
            "phenotype_confidence": (
                self.phenotype_confidence.value if self.phenotype_confidence else None
            ),
            "phenotype_reason": self.phenotype_reason,
            "bp_data_present": self.bp_data_present,
            "signals": [signal.to_dict() for signal in self.signals],
            "questionnaire": [question.to_dict() for question in self.questionnaire],
            "safety_notes": list(self.safety_notes),
            "data_notes": list(self.data_notes),
            "stats": {
                name: (value.to_dict() if value is not None else None)
                for name, value in self.stats.items()
            },
        }
        if self.clustering_model is not None:
            out["clustering_model"] = self.clustering_model.to_dict()
        if self.survey_assessment is not None:
            out["survey_assessment"] = self.survey_assessment.to_dict()
        if self.symptoms is not None:
            out["symptoms"] = self.symptoms.to_dict()
        return out


def series_for(rows: Sequence[DailyMetric], attr: str) -> List[float]:
    """Finite values of one metric; days without a value contribute nothing."""
    return finite_values(getattr(row, attr) for row in rows)


def bp_data_present(daily: Sequence[DailyMetric]) -> bool:
    """True if any row carries a systolic or diastolic BP mean."""
    return any(row.has_bp for row in daily)


def _evaluate_elevated_hr(stats: RobustStats, recent: List[float]) -> Optional[Signal]:
    recent_mean = safe_mean(recent)
    margin = max(SCREENING.RHR_MIN_MARGIN_BPM, SCREENING.IQR_MULTIPLIER * stats.iqr)
    threshold = stats.median + margin

    logger.debug(f"Resting HR: recent={recent_mean}, threshold={threshold:.2f}")

    if recent_mean is not None and recent_mean > threshold:
        return Signal(
            key="elevated_resting_hr",
            severity=Severity.MODERATE,
            detail=(
                f"Recent 7-day mean resting HR ({recent_mean:.1f} bpm) is above baseline "
                f"median ({stats.median:.1f} bpm)."
            ),
        )
    return None


def _evaluate_suppressed_hrv(stats: RobustStats, recent: List[float]) -> Optional[Signal]:
    recent_mean = safe_mean(recent)
    margin = max(SCREENING.HRV_MIN_MARGIN_MS, SCREENING.IQR_MULTIPLIER * stats.iqr)
    threshold = stats.median - margin

    logger.debug(f"HRV SDNN: recent={recent_mean}, threshold={threshold:.2f}")

    if recent_mean is not None and recent_mean < threshold:
        return Signal(
            key="suppressed_hrv",
            severity=Severity.MODERATE,
            detail=(
                f"Recent 7-day mean HRV SDNN ({recent_mean:.1f} ms) is below baseline "
                f"median ({stats.median:.1f} ms)."
            ),
        )
    return None


def screen_daily_series(daily: Sequence[DailyMetric]) -> ScreeningResult:
    """
    Run rule-based baseline screening over a daily series.

    Algorithm:
        1. Compute RobustStats for resting HR, HRV, stand and active minutes
        2. Take the last 7 rows as the recent window
        3. Evaluate the elevated-HR and suppressed-HRV signals
        4. Derive status, phenotype hint and questionnaire

    Args:
        daily: Daily metrics ordered by date.

    Returns:
        ScreeningResult with signals, stats, notes and questionnaire.

    Raises:
        ScreeningInputError: If the series is empty.

    Example:
        >>> result = screen_daily_series(window.daily)
        >>> print(result.status, result.phenotype_hint)
    """
    if not daily:
        raise ScreeningInputError("No daily series computed")

    rhr_stats = robust_stats(series_for(daily, "resting_hr_mean"))
    hrv_stats = robust_stats(series_for(daily, "hrv_sdnn_mean"))
    stand_stats = robust_stats(series_for(daily, "stand_minutes"))
    active_stats = robust_stats(series_for(daily, "active_minutes"))

    recent = list(daily)[-SCREENING.RECENT_DAYS:]
    recent_rhr = series_for(recent, "resting_hr_mean")
    recent_hrv = series_for(recent, "hrv_sdnn_mean")
    recent_stand = series_for(recent, "stand_minutes")
    recent_active = series_for(recent, "active_minutes")

    signals: List[Signal] = []
    notes: List[str] = []

    if rhr_stats is not None and len(recent_rhr) >= SCREENING.MIN_RECENT_SAMPLES:
        signal = _evaluate_elevated_hr(rhr_stats, recent_rhr)
        if signal is not None:
            signals.append(signal)
    else:
        notes.append("Not enough resting HR data to assess trend.")

    if hrv_stats is not None and len(recent_hrv) >= SCREENING.MIN_RECENT_SAMPLES:
        signal = _evaluate_suppressed_hrv(hrv_stats, recent_hrv)
        if signal is not None:
            signals.append(signal)
    else:
        notes.append("Not enough HRV data to assess trend.")

    status = Status.NEEDS_FOLLOWUP if signals else Status.NORMAL
    has_bp = bp_data_present(daily)

    phenotype = classify_phenotype(
        status=status,
        signal_keys=[signal.key for signal in signals],
        stand_stats=stand_stats,
        recent_stand=recent_stand,
        recent_active=recent_active,
        bp_data_present=has_bp,
    )
    notes.extend(phenotype.notes)

    result = ScreeningResult(
        status=status,
        phenotype_hint=phenotype.hint,
        phenotype_confidence=phenotype.confidence,
        phenotype_reason=phenotype.reason,
        bp_data_present=has_bp,
        signals=signals,
        questionnaire=questionnaire_for(status, phenotype.hint, has_bp),
        stats={
            "resting_hr": rhr_stats,
            "hrv_sdnn": hrv_stats,
            "stand_minutes": stand_stats,
            "active_minutes": active_stats,
        },
    )
    for note in notes:
        result.add_note(note)

    logger.info(
        f"Baseline screening: status={status.value}, hint={phenotype.hint.value}, "
        f"confidence={phenotype.confidence.value}, signals={[s.key for s in signals]}"
    )
    return result

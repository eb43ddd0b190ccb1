"""
Phenotype Classification.

Maps the anomaly signals of a screening window onto a coarse,
non-diagnostic phenotype hint that decides which follow-up questions
are asked.

Priority cascade (evaluated only when status is needs_followup):
    1. Elevated resting HR:
         stand shift <= -5 min -> IST-like (high confidence)
         otherwise              -> POTS-like (high confidence)
    2. Suppressed HRV:
         stand shift >= +5 min -> VVS-like (low confidence)
         otherwise              -> OH-like (low confidence)
    3. Anything else            -> unspecified autonomic (low confidence)

Stand shift is the recent 7-day mean of standing minutes minus the
baseline median.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence

from heartwaves.config import SCREENING, TEXT
from heartwaves.utils.stats import RobustStats, safe_mean

# Configure module logger
logger = logging.getLogger(__name__)


class Status(str, Enum):
    """Screening status."""
    NORMAL = "normal"
    NEEDS_FOLLOWUP = "needs_followup"


class PhenotypeHint(str, Enum):
    """
    Coarse autonomic pattern labels.

    These are follow-up routing hints, not diagnoses.
    """
    NORMAL = "normal"
    POTS_LIKE = "pots_like"
    IST_LIKE = "ist_like"
    OH_LIKE = "oh_like"
    VVS_LIKE = "vvs_like"
    UNSPECIFIED_AUTONOMIC = "unspecified_autonomic"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional[PhenotypeHint]:
        """Return the hint for a string, or None for empty/unknown values."""
        if isinstance(value, cls):
            return value
        text = str(value or "").strip()
        try:
            return cls(text)
        except ValueError:
            return None

    @property
    def label(self) -> str:
        """Display form, e.g. 'pots-like'."""
        return self.value.replace("_", "-")


class Confidence(str, Enum):
    """Confidence levels, ordered low < medium < high."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _CONFIDENCE_RANKS[self]

    def promote(self) -> Confidence:
        """One step up, capped at high."""
        if self is Confidence.LOW:
            return Confidence.MEDIUM
        return Confidence.HIGH

    def demote(self) -> Confidence:
        """One step down, floored at low."""
        if self is Confidence.HIGH:
            return Confidence.MEDIUM
        return Confidence.LOW

    @classmethod
    def from_purity(cls, purity: float, high: float, medium: float) -> Confidence:
        if purity >= high:
            return cls.HIGH
        elif purity >= medium:
            return cls.MEDIUM
        return cls.LOW


_CONFIDENCE_RANKS = {Confidence.LOW: 1, Confidence.MEDIUM: 2, Confidence.HIGH: 3}


def confidence_rank(confidence: Optional[Confidence]) -> int:
    """Rank 1-3 for a confidence, 0 when absent."""
    return confidence.rank if confidence is not None else 0


@dataclass
class PhenotypeAssessment:
    """
    Rule-based phenotype assessment.

    Attributes:
        status: normal or needs_followup.
        hint: Phenotype hint.
        confidence: Confidence in the hint.
        reason: Human-readable explanation.
        notes: Data notes raised while classifying (e.g. missing BP).
    """

    status: Status
    hint: PhenotypeHint
    confidence: Confidence
    reason: str
    notes: List[str] = field(default_factory=list)


def stand_shift(stand_stats: Optional[RobustStats], recent_stand: Sequence[float]) -> Optional[float]:
    """
    Recent standing-minutes mean minus the baseline median.

    Returns None when either side is unavailable.
    """
    recent_mean = safe_mean(recent_stand)
    if recent_mean is None or stand_stats is None:
        return None
    return recent_mean - stand_stats.median


def classify_phenotype(
    status: Status,
    signal_keys: Sequence[str],
    stand_stats: Optional[RobustStats],
    recent_stand: Sequence[float],
    recent_active: Sequence[float],
    bp_data_present: bool,
) -> PhenotypeAssessment:
    """
    Derive the rule-based phenotype hint from fired signals.

    Args:
        status: Screening status from the signal evaluation.
        signal_keys: Keys of the signals that fired.
        stand_stats: Baseline RobustStats of standing minutes.
        recent_stand: Recent standing-minute values.
        recent_active: Recent active-minute values.
        bp_data_present: Whether any BP field exists in the window.

    Returns:
        PhenotypeAssessment with hint, confidence, reason and notes.
    """
    if status is Status.NORMAL:
        return PhenotypeAssessment(
            status=status,
            hint=PhenotypeHint.NORMAL,
            confidence=Confidence.HIGH,
            reason=TEXT.REASON_NORMAL,
        )

    shift = stand_shift(stand_stats, recent_stand)
    threshold = SCREENING.STAND_SHIFT_MINUTES

    if "elevated_resting_hr" in signal_keys:
        if shift is not None and shift <= -threshold:
            logger.debug(f"Elevated HR with stand shift {shift:.1f} min -> IST-like")
            return PhenotypeAssessment(
                status=status,
                hint=PhenotypeHint.IST_LIKE,
                confidence=Confidence.HIGH,
                reason=(
                    "Elevated resting heart-rate pattern appears less tied to standing load, "
                    "which is more IST-like than orthostatic."
                ),
            )
        return PhenotypeAssessment(
            status=status,
            hint=PhenotypeHint.POTS_LIKE,
            confidence=Confidence.HIGH,
            reason=(
                "Elevated resting heart-rate trend with orthostatic-focused signals suggests "
                "a POTS-like follow-up pattern."
            ),
        )

    if "suppressed_hrv" in signal_keys:
        if shift is not None and shift >= threshold:
            hint = PhenotypeHint.VVS_LIKE
            reason = (
                "Autonomic suppression pattern overlaps with vasovagal-like states, "
                "but confirmation requires blood-pressure context."
            )
        else:
            hint = PhenotypeHint.OH_LIKE
            reason = (
                "Autonomic suppression pattern could overlap orthostatic hypotension-like "
                "states, but blood-pressure confirmation is needed."
            )
        notes = []
        if not bp_data_present:
            notes.append(
                "Blood pressure data not present; OH/VVS hints are low-confidence "
                "until BP trends are available."
            )
        return PhenotypeAssessment(
            status=status, hint=hint, confidence=Confidence.LOW, reason=reason, notes=notes
        )

    notes = []
    if not bp_data_present:
        notes.append("Blood pressure data not present; subtype confidence is limited.")
    active_mean = safe_mean(recent_active)
    if active_mean is not None and active_mean >= SCREENING.ACTIVE_CONFOUNDER_MINUTES:
        notes.append("Higher recent activity may contribute to non-specific autonomic signals.")

    return PhenotypeAssessment(
        status=status,
        hint=PhenotypeHint.UNSPECIFIED_AUTONOMIC,
        confidence=Confidence.LOW,
        reason=(
            "Follow-up pattern detected, but no specific dysautonomia-like subtype "
            "was high-confidence."
        ),
        notes=notes,
    )

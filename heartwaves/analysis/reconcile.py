"""
Assessment Reconciliation.

Combines the rule-based screening with the clustering model result into the
single current assessment of a session.

Merge Policy:
    ┌─────────────────────────────┬──────────────────────────────────────────┐
    │ Model result                │ Effect on the screening                  │
    ├─────────────────────────────┼──────────────────────────────────────────┤
    │ None (no artifact)          │ nothing                                  │
    │ ClusteringError             │ stored + "unavailable" note              │
    │ needs_followup, >= medium   │ upgrade normal, or refine follow-up      │
    │ needs_followup, low         │ explanatory note only                    │
    │ normal                      │ alignment note only                      │
    └─────────────────────────────┴──────────────────────────────────────────┘

The model never downgrades a rule-based needs_followup.
"""

from __future__ import annotations

import logging
from typing import Optional, Union

from heartwaves.config import CLUSTERING, TEXT
from heartwaves.models.clustering import ClusteringError, ClusteringResult
from heartwaves.rules.baseline import ScreeningResult, Severity, Signal
from heartwaves.rules.phenotype import Confidence, PhenotypeHint, Status, confidence_rank
from heartwaves.rules.questionnaire import questionnaire_for

from .override import calibrate_model_result

logger = logging.getLogger(__name__)

CLUSTER_SIGNAL_KEY = "cluster_model_followup"

# Hints the model is allowed to replace on an existing follow-up
_REPLACEABLE_HINTS = (None, PhenotypeHint.NORMAL, PhenotypeHint.UNSPECIFIED_AUTONOMIC)


def merge_clustering_result(
    screening: ScreeningResult,
    model_result: Optional[Union[ClusteringResult, ClusteringError]],
) -> ScreeningResult:
    """
    Merge a clustering result into the screening in place.

    The quick-check calibration is applied to the model result first.

    Args:
        screening: Current assessment (mutated).
        model_result: Output of score_clustering.

    Returns:
        The same screening object, for chaining.
    """
    if model_result is None:
        return screening

    model_result = calibrate_model_result(model_result)
    screening.clustering_model = model_result

    if isinstance(model_result, ClusteringError):
        logger.warning(f"Clustering model unavailable: {model_result.error}")
        screening.add_note(f"Clustering model unavailable: {model_result.error}")
        return screening

    screening.add_note(f"Clustering model: {model_result.reason}")

    model_rank = confidence_rank(model_result.confidence)
    model_flags_followup = model_result.status is Status.NEEDS_FOLLOWUP

    if model_flags_followup and model_rank >= CLUSTERING.MIN_OVERRIDE_RANK:
        if screening.status is Status.NORMAL:
            _upgrade_to_followup(screening, model_result)
        else:
            _refine_followup(screening, model_result)
    elif model_flags_followup:
        screening.add_note(
            f"Model suggested possible follow-up, but confidence is {model_result.confidence.value} "
            f"(coverage {model_result.feature_coverage * 100:.1f}%)."
        )
    else:
        screening.add_note("Model aligned with normal screening pattern.")

    return screening


def _upgrade_to_followup(screening: ScreeningResult, model_result: ClusteringResult) -> None:
    hint = model_result.phenotype_hint or PhenotypeHint.UNSPECIFIED_AUTONOMIC

    screening.status = Status.NEEDS_FOLLOWUP
    screening.phenotype_hint = hint
    screening.phenotype_confidence = model_result.confidence
    screening.phenotype_reason = model_result.reason
    screening.questionnaire = questionnaire_for(
        Status.NEEDS_FOLLOWUP, hint, screening.bp_data_present
    )

    if not screening.has_signal(CLUSTER_SIGNAL_KEY):
        severity = Severity.MODERATE if model_result.confidence is Confidence.HIGH else Severity.LOW
        screening.signals.append(Signal(
            key=CLUSTER_SIGNAL_KEY,
            severity=severity,
            detail=(
                f"Clustering model flagged a {hint.value} pattern "
                f"({model_result.confidence.value} confidence)."
            ),
        ))

    screening.add_note("Model upgraded status from normal to needs_followup.")
    logger.info(f"Model upgraded status to needs_followup ({hint.value})")


def _refine_followup(screening: ScreeningResult, model_result: ClusteringResult) -> None:
    if confidence_rank(model_result.confidence) > confidence_rank(screening.phenotype_confidence):
        screening.phenotype_confidence = model_result.confidence

    if screening.phenotype_hint in _REPLACEABLE_HINTS and model_result.phenotype_hint is not None:
        screening.phenotype_hint = model_result.phenotype_hint
        screening.questionnaire = questionnaire_for(
            Status.NEEDS_FOLLOWUP, model_result.phenotype_hint, screening.bp_data_present
        )
        logger.debug(f"Model refined hint to {model_result.phenotype_hint.value}")


def normalize_assessment(screening: ScreeningResult) -> ScreeningResult:
    """
    Make status, hint and confidence mutually consistent.

    - normal: hint normal, confidence high, reason kept (or a fixed default);
      once a survey has been applied the confidence it left is kept
    - needs_followup with no/normal hint: unspecified_autonomic, confidence
      low when missing, fixed reason when empty
    """
    if screening.status is Status.NORMAL:
        screening.phenotype_hint = PhenotypeHint.NORMAL
        if screening.survey_assessment is None or screening.phenotype_confidence is None:
            screening.phenotype_confidence = Confidence.HIGH
        if not screening.phenotype_reason:
            screening.phenotype_reason = TEXT.REASON_NORMAL_FALLBACK
        return screening

    if screening.phenotype_hint in (None, PhenotypeHint.NORMAL):
        screening.phenotype_hint = PhenotypeHint.UNSPECIFIED_AUTONOMIC
        if screening.phenotype_confidence is None:
            screening.phenotype_confidence = Confidence.LOW
        if not screening.phenotype_reason:
            screening.phenotype_reason = TEXT.REASON_UNSPECIFIED_FALLBACK

    return screening

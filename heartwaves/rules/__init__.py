"""
Rule Engine Module for HeartWaves.

This package implements the deterministic, explainable part of the
screening core.

Modules:
    - phenotype: Status / hint / confidence types and the phenotype cascade
    - questionnaire: Fixed follow-up question sets
    - baseline: Robust baselining and anomaly signals over a daily series

Example:
    >>> from heartwaves.rules import screen_daily_series
    >>> result = screen_daily_series(window.daily)
    >>> print(result.status, result.phenotype_hint)
"""

from .phenotype import (
    Status,
    PhenotypeHint,
    Confidence,
    PhenotypeAssessment,
    classify_phenotype,
    confidence_rank,
)
from .questionnaire import Question, questionnaire_for, normal_questionnaire
from .baseline import (
    screen_daily_series,
    ScreeningResult,
    ScreeningInputError,
    Signal,
    Severity,
)

__all__ = [
    # Phenotype
    "Status",
    "PhenotypeHint",
    "Confidence",
    "PhenotypeAssessment",
    "classify_phenotype",
    "confidence_rank",
    # Questionnaire
    "Question",
    "questionnaire_for",
    "normal_questionnaire",
    # Baseline
    "screen_daily_series",
    "ScreeningResult",
    "ScreeningInputError",
    "Signal",
    "Severity",
]

"""
Analysis module for HeartWaves.

This module provides:
    - Orthostatic quick-check calibration of clustering results
    - Reconciliation of rule-based and model assessments
    - Survey answer validation, scoring and state transitions

Usage:
    >>> from heartwaves.analysis import merge_clustering_result, normalize_assessment
    >>> merge_clustering_result(screening, model_result)
    >>> normalize_assessment(screening)
"""

from .override import (
    calibrate_model_result,
    evaluate_quick_check,
    orthostatic_pattern,
    OverrideReason,
    QuickCheckOverride,
)
from .reconcile import merge_clustering_result, normalize_assessment
from .survey import (
    apply_survey,
    assess_answers,
    sanitize_answers,
    Alignment,
    SurveyAnswer,
    SurveyAssessment,
    SymptomsRecord,
)

__all__ = [
    # Quick-check calibration
    'calibrate_model_result',
    'evaluate_quick_check',
    'orthostatic_pattern',
    'OverrideReason',
    'QuickCheckOverride',
    # Reconciliation
    'merge_clustering_result',
    'normalize_assessment',
    # Survey
    'apply_survey',
    'assess_answers',
    'sanitize_answers',
    'Alignment',
    'SurveyAnswer',
    'SurveyAssessment',
    'SymptomsRecord',
]

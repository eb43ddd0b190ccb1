"""
Centralized configuration for HeartWaves.

This module contains all hardcoded constants used by the screening core.
Centralizing configuration keeps the rule thresholds, the clustering
confidence cascade and the training defaults in one place.

Usage:
    from heartwaves.config import SCREENING, CLUSTERING, TRAINING

    recent_days = SCREENING.RECENT_DAYS
    purity_high = CLUSTERING.PURITY_HIGH
"""

from dataclasses import dataclass, field
from typing import Final, Tuple


# =============================================================================
# Baseline Screening Configuration
# =============================================================================

@dataclass(frozen=True)
class ScreeningConfig:
    """Rule-based baseline screening constants."""

    # Robust statistics
    MIN_STATS_SAMPLES: int = 5       # Fewer finite values -> no RobustStats

    # Recent window
    RECENT_DAYS: int = 7             # Last N rows form the "recent" window
    MIN_RECENT_SAMPLES: int = 3      # Non-null recent values needed per metric

    # Elevated resting HR: recent mean > median + max(5.0, 1.5 * IQR)
    RHR_MIN_MARGIN_BPM: float = 5.0
    # Suppressed HRV: recent mean < median - max(10.0, 1.5 * IQR)
    HRV_MIN_MARGIN_MS: float = 10.0
    IQR_MULTIPLIER: float = 1.5

    # Phenotype cascade
    STAND_SHIFT_MINUTES: float = 5.0       # |recent stand mean - baseline median|
    ACTIVE_CONFOUNDER_MINUTES: float = 45.0

    # Blood-pressure aliases accepted on daily rows
    SYSTOLIC_BP_KEYS: Tuple[str, ...] = ("systolic_bp_mean", "bp_systolic_mean")
    DIASTOLIC_BP_KEYS: Tuple[str, ...] = ("diastolic_bp_mean", "bp_diastolic_mean")


SCREENING: Final[ScreeningConfig] = ScreeningConfig()


# =============================================================================
# Clustering Scorer Configuration
# =============================================================================

@dataclass(frozen=True)
class ClusteringConfig:
    """Online k-means scoring and calibration constants."""

    SOURCE: str = "kmeans_baseline"

    # Purity -> confidence
    PURITY_HIGH: float = 0.75
    PURITY_MEDIUM: float = 0.55

    # Below this coverage the model's confidence is capped
    MIN_FEATURE_COVERAGE: float = 0.35

    # Orthostatic quick-check calibration
    CALIBRATION_MIN_COVERAGE: float = 0.8
    ORTHO_HR_RISE_BPM: float = 30.0        # delta HR >= 30 -> POTS-like
    ORTHO_SBP_DROP_MMHG: float = -20.0     # delta SBP <= -20 -> OH-like
    ORTHO_RESTING_HR_BPM: float = 90.0     # resting HR >= 90 -> IST-like
    CALIBRATION_CONFIDENCE: str = "medium"

    # Model confidence rank needed to override the rule-based status
    MIN_OVERRIDE_RANK: int = 2


CLUSTERING: Final[ClusteringConfig] = ClusteringConfig()


# =============================================================================
# Survey Reconciliation Configuration
# =============================================================================

@dataclass(frozen=True)
class SurveyConfig:
    """Survey alignment thresholds."""

    MIN_INFORMATIVE_ANSWERS: int = 2
    SUPPORT_THRESHOLD: float = 0.35
    AGAINST_THRESHOLD: float = -0.25

    # Highest confidence rank that may still be reverted to normal
    MAX_REVERT_RANK: int = 2


SURVEY: Final[SurveyConfig] = SurveyConfig()


# =============================================================================
# Offline Training Configuration
# =============================================================================

@dataclass(frozen=True)
class TrainingConfig:
    """k-means training defaults."""

    K: int = 5
    N_INIT: int = 30
    MAX_ITERS: int = 120
    SEED: int = 42
    FOLLOWUP_THRESHOLD: float = 0.55
    EPS: float = 1e-9

    # Stratified split
    TRAIN_RATIO: float = 0.70
    VAL_RATIO: float = 0.15
    LABEL_COLUMN: str = "phenotype_hint_target"
    STATUS_COLUMN: str = "status_target"

    CONTINUOUS_FEATURES: Tuple[str, ...] = (
        "age",
        "resting_hr_mean",
        "hrv_sdnn_mean",
        "sit_hr_mean",
        "stand_hr_mean",
        "delta_hr_stand_minus_sit",
        "sit_sbp_mean",
        "stand_sbp_mean",
        "delta_sbp_stand_minus_sit",
    )
    # Features without a missingness indicator
    NO_INDICATOR_FEATURES: Tuple[str, ...] = ("age",)


TRAINING: Final[TrainingConfig] = TrainingConfig()


# =============================================================================
# Data Paths
# =============================================================================

@dataclass(frozen=True)
class DataPaths:
    """Default data paths."""

    RAW_SUBJECTS_CSV: str = "data/raw/physionet/cves/subjects.csv"
    TRAINING_TABLE_CSV: str = "data/processed/training_table.csv"
    SPLITS_DIR: str = "data/processed/splits"
    MODEL_DIR: str = "data/models/clustering_baseline"
    DEFAULT_MODEL_PATH: str = "data/models/clustering_baseline/model.json"


PATHS: Final[DataPaths] = DataPaths()


# =============================================================================
# Fixed user-facing texts
# =============================================================================

@dataclass(frozen=True)
class ScreeningTexts:
    """Disclaimers and fixed reasons shown with every screening result."""

    SAFETY_NOTES: Tuple[str, ...] = field(default=(
        "This tool is not a diagnosis.",
        "If you have chest pain, severe shortness of breath, fainting, or severe "
        "symptoms, seek urgent medical care.",
    ))

    REASON_NORMAL: str = "No strong autonomic risk pattern was detected in this 30-day window."
    REASON_NORMAL_FALLBACK: str = "No strong follow-up pattern after current screening."
    REASON_UNSPECIFIED_FALLBACK: str = (
        "Follow-up pattern detected, but no specific subtype was high-confidence."
    )


TEXT: Final[ScreeningTexts] = ScreeningTexts()


# =============================================================================
# Convenience Exports
# =============================================================================

__all__ = [
    'SCREENING',
    'CLUSTERING',
    'SURVEY',
    'TRAINING',
    'PATHS',
    'TEXT',
    'ScreeningConfig',
    'ClusteringConfig',
    'SurveyConfig',
    'TrainingConfig',
    'DataPaths',
    'ScreeningTexts',
]

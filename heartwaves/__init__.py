"""
HeartWaves - Autonomic Screening Core.

A hybrid screening system for aggregated wearable metrics combining:
- Robust-baseline rules over resting HR and HRV trends
- A pretrained k-means phenotype model
- Orthostatic quick-check calibration
- Survey-driven reconciliation of the follow-up pattern

Results are non-diagnostic follow-up hints, never diagnoses.

Modules:
    config: Centralized configuration constants
    data: Imported window records
    rules: Baseline screener, phenotype cascade, questionnaires
    models: Clustering artifact, feature vectors, scorer
    analysis: Quick-check calibration, reconciliation, survey
    training: Reference table preparation and k-means training
    utils: Robust statistics helpers

Quick Start:
    >>> from heartwaves.data import load_imported_window
    >>> from heartwaves.pipeline import run_screening, submit_answers

    >>> window = load_imported_window("tmp/session.json")
    >>> screening = run_screening(window)
    >>> submission = submit_answers(screening, {"orthostatic": "yes"})
"""

__version__ = "1.0.0"

# Expose main configuration
from heartwaves.config import SCREENING, CLUSTERING, SURVEY, TRAINING, PATHS, TEXT

# Version info
VERSION_INFO = {
    'version': __version__,
    'status': 'Beta',
    'model': 'k-means baseline + rules',
}

__all__ = [
    '__version__',
    'VERSION_INFO',
    'SCREENING',
    'CLUSTERING',
    'SURVEY',
    'TRAINING',
    'PATHS',
    'TEXT',
]

"""
Shared fixtures for HeartWaves tests.

Synthetic windows are built day by day so every test states exactly which
metrics are present; model artifacts are written to tmp_path.
"""

import json
import sys
from datetime import date, timedelta
from pathlib import Path
from typing import Optional, Sequence

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from heartwaves.data.records import DailyMetric, ImportedWindow, OrthostaticInput


def _pick(values: Optional[Sequence], idx: int):
    if values is None:
        return None
    return values[idx]


def build_daily(
    rhr: Optional[Sequence] = None,
    hrv: Optional[Sequence] = None,
    stand: Optional[Sequence] = None,
    active: Optional[Sequence] = None,
    systolic: Optional[Sequence] = None,
    days: Optional[int] = None,
):
    """Build a consecutive daily series; each metric list is per day (None = missing)."""
    lengths = [len(v) for v in (rhr, hrv, stand, active, systolic) if v is not None]
    n_days = days if days is not None else max(lengths)
    start = date(2024, 1, 1)
    return [
        DailyMetric(
            date=(start + timedelta(days=i)).isoformat(),
            resting_hr_mean=_pick(rhr, i),
            hrv_sdnn_mean=_pick(hrv, i),
            stand_minutes=_pick(stand, i),
            active_minutes=_pick(active, i),
            systolic_bp_mean=_pick(systolic, i),
        )
        for i in range(n_days)
    ]


@pytest.fixture
def daily_builder():
    """Factory fixture for daily series."""
    return build_daily


@pytest.fixture
def steady_window() -> ImportedWindow:
    """30 days of stable resting HR and HRV with a normal quick-check."""
    daily = build_daily(rhr=[60.0] * 30, hrv=[50.0] * 30, stand=[120.0] * 30)
    return ImportedWindow(
        daily=daily,
        age=35.0,
        orthostatic_input=OrthostaticInput(sit_hr_mean=62.0, stand_hr_mean=72.0),
    )


@pytest.fixture
def elevated_hr_daily():
    """
    23 baseline days at 60 bpm, then 3 of the last 7 days at 80 bpm.

    No HRV data at all.
    """
    rhr = [60.0] * 23 + [None, 80.0, None, 80.0, None, 80.0, None]
    return build_daily(rhr=rhr, stand=[100.0] * 30)


def artifact_payload(**overrides) -> dict:
    """
    A small two-cluster artifact in raw (unstandardized) feature space.

    Cluster 0: resting HR 60, HRV 50, HR rise 10  -> normal
    Cluster 1: resting HR 95, HRV 50, HR rise 40  -> pots_like
    """
    continuous = ["resting_hr_mean", "hrv_sdnn_mean", "delta_hr_stand_minus_sit"]
    indicators = [f"{name}_missing" for name in continuous]
    payload = {
        "created_at": "2024-01-01T00:00:00+00:00",
        "algorithm": "kmeans",
        "config": {"k": 2, "n_init": 1, "max_iters": 10, "seed": 42, "followup_threshold": 0.55},
        "feature_space": {
            "continuous_features": continuous,
            "indicator_features": indicators,
            "all_features": continuous + indicators,
        },
        "preprocess": {
            "medians": {"resting_hr_mean": 60.0, "hrv_sdnn_mean": 50.0, "delta_hr_stand_minus_sit": 10.0},
            "means": [0.0] * 6,
            "stds": [1.0] * 6,
        },
        "centroids": [
            [60.0, 50.0, 10.0, 0.0, 0.0, 0.0],
            [95.0, 50.0, 40.0, 0.0, 0.0, 0.0],
        ],
        "cluster_hint_map": {"0": "normal", "1": "pots_like"},
        "cluster_status_map": {"0": "normal", "1": "needs_followup"},
        "cluster_purity": {"0": 0.9, "1": 0.8},
        "cluster_followup_rates": {"0": 0.1, "1": 0.85},
        "cluster_label_counts": [{"normal": 9, "pots_like": 1}, {"normal": 1, "pots_like": 8}],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def artifact_writer(tmp_path: Path):
    """Factory fixture writing an artifact JSON and returning its path."""
    def write(name: str = "model.json", **overrides) -> Path:
        path = tmp_path / name
        with open(path, 'w') as f:
            json.dump(artifact_payload(**overrides), f)
        return path
    return write


@pytest.fixture
def model_path(artifact_writer) -> Path:
    """Path to the default two-cluster artifact."""
    return artifact_writer()

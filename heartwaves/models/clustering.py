"""
K-Means Clustering Scorer for HeartWaves.

Scores an imported window against the pretrained k-means artifact and
produces an independent phenotype assessment.

Outcomes:
    None             - no artifact at the model path (clustering unavailable)
    ClusteringResult - nearest cluster with hint, status and confidence
    ClusteringError  - malformed artifact or scoring failure

Confidence:
    purity >= 0.75 -> high, >= 0.55 -> medium, else low.
    When feature coverage < 0.35, a needs_followup result is capped at low
    and a normal 'high' is demoted to medium.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

import numpy as np
from scipy.spatial.distance import cdist

from heartwaves.config import CLUSTERING, PATHS
from heartwaves.data.records import ImportedWindow, OrthostaticInput
from heartwaves.rules.phenotype import Confidence, PhenotypeHint, Status

from .artifact import load_artifact
from .features import build_feature_values, build_vector, feature_coverage

logger = logging.getLogger(__name__)


@dataclass
class ClusteringResult:
    """
    Result of scoring a window against the k-means model.

    Attributes:
        status: Cluster status.
        phenotype_hint: Cluster hint.
        confidence: Purity/coverage-derived confidence.
        reason: Human-readable explanation.
        cluster_id: Index of the nearest centroid.
        distance_to_centroid: Squared Euclidean distance to it.
        cluster_purity: Training purity of the cluster.
        cluster_followup_rate: Training follow-up rate of the cluster.
        feature_coverage: Fraction of observed continuous features.
        features_used: Raw (pre-imputation) feature values.
        model_path: Artifact the result came from.
        source: Model family identifier.
        calibration: Quick-check calibration applied to this result, if any.
    """

    status: Status
    phenotype_hint: PhenotypeHint
    confidence: Confidence
    reason: str
    cluster_id: int
    distance_to_centroid: float
    cluster_purity: float
    cluster_followup_rate: float
    feature_coverage: float
    features_used: Dict[str, Optional[float]] = field(default_factory=dict)
    model_path: str = ""
    source: str = CLUSTERING.SOURCE
    calibration: Optional[str] = None

    def to_dict(self) -> dict:
        out = asdict(self)
        out["status"] = self.status.value
        out["phenotype_hint"] = self.phenotype_hint.value
        out["confidence"] = self.confidence.value
        if self.calibration is None:
            out.pop("calibration")
        return out


@dataclass
class ClusteringError:
    """Scoring failure surfaced as data instead of an exception."""

    error: str
    source: str = CLUSTERING.SOURCE

    def to_dict(self) -> dict:
        return {"source": self.source, "error": self.error}


def nearest_centroid(vector: np.ndarray, centroids: np.ndarray) -> Tuple[int, float]:
    """
    Find the closest centroid by squared Euclidean distance.

    Ties go to the lowest index.
    """
    distances = cdist(vector.reshape(1, -1), centroids, metric="sqeuclidean")[0]
    idx = int(np.argmin(distances))
    return idx, float(distances[idx])


def confidence_for(status: Status, purity: float, coverage: float) -> Confidence:
    """Purity-based confidence, capped when too few features were observed."""
    base = Confidence.from_purity(purity, CLUSTERING.PURITY_HIGH, CLUSTERING.PURITY_MEDIUM)

    if coverage < CLUSTERING.MIN_FEATURE_COVERAGE:
        if status is Status.NEEDS_FOLLOWUP:
            return Confidence.LOW
        return Confidence.MEDIUM if base is Confidence.HIGH else base

    return base


def reason_for(
    status: Status,
    hint: PhenotypeHint,
    confidence: Confidence,
    purity: float,
    followup_rate: float,
    coverage: float,
) -> str:
    if status is Status.NEEDS_FOLLOWUP:
        return (
            f"Cluster pattern suggests {hint.label} (confidence {confidence.value}; "
            f"cluster purity {purity * 100:.1f}%; follow-up rate {followup_rate * 100:.1f}%; "
            f"feature coverage {coverage * 100:.1f}%)."
        )
    return (
        f"Cluster pattern aligns with {hint.label} range (confidence {confidence.value}; "
        f"cluster purity {purity * 100:.1f}%; feature coverage {coverage * 100:.1f}%)."
    )


def score_clustering(
    window: ImportedWindow,
    orthostatic_override: Optional[OrthostaticInput] = None,
    model_path: Union[str, Path] = PATHS.DEFAULT_MODEL_PATH,
) -> Optional[Union[ClusteringResult, ClusteringError]]:
    """
    Score a window against the k-means artifact.

    Args:
        window: Imported daily window.
        orthostatic_override: Quick-check vitals overriding the window's own.
        model_path: Path to the model JSON.

    Returns:
        None if no artifact exists, a ClusteringError if loading or scoring
        fails, otherwise a ClusteringResult.

    Example:
        >>> result = score_clustering(window, model_path="data/models/clustering_baseline/model.json")
        >>> if isinstance(result, ClusteringResult):
        ...     print(result.phenotype_hint, result.confidence)
    """
    model_path = Path(model_path)
    if not model_path.is_file():
        logger.info(f"Clustering model not found at {model_path}; skipping")
        return None

    try:
        artifact = load_artifact(model_path)

        raw_values = build_feature_values(
            window, artifact.continuous_features, orthostatic_override=orthostatic_override
        )
        vector = build_vector(
            raw_values=raw_values,
            continuous=artifact.continuous_features,
            indicators=artifact.indicator_features,
            all_features=artifact.all_features,
            medians=artifact.medians,
            means=artifact.means,
            stds=artifact.stds,
        )

        cluster_idx, distance = nearest_centroid(vector, artifact.centroids)
        hint_value, status_value = artifact.cluster_labels(cluster_idx)
        hint = PhenotypeHint(hint_value)
        status = Status(status_value)

        cluster_id = str(cluster_idx)
        purity = float(artifact.cluster_purity.get(cluster_id, 0.0))
        followup_rate = float(artifact.cluster_followup_rates.get(cluster_id, 0.0))
        coverage = feature_coverage(raw_values)
        confidence = confidence_for(status, purity, coverage)

        result = ClusteringResult(
            status=status,
            phenotype_hint=hint,
            confidence=confidence,
            reason=reason_for(status, hint, confidence, purity, followup_rate, coverage),
            cluster_id=cluster_idx,
            distance_to_centroid=round(distance, 6),
            cluster_purity=round(purity, 4),
            cluster_followup_rate=round(followup_rate, 4),
            feature_coverage=round(coverage, 4),
            features_used=raw_values,
            model_path=str(model_path),
        )
    except Exception as e:
        logger.warning(f"Clustering model scoring failed: {e}")
        return ClusteringError(error=str(e))

    logger.info(
        f"Clustering: cluster={cluster_idx}, status={status.value}, hint={hint.value}, "
        f"confidence={confidence.value}, coverage={coverage:.2f}"
    )
    return result

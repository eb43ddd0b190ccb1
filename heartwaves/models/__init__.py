"""
HeartWaves Models Module.

Contains:
    - ClusterModelArtifact: The trained k-means artifact (load/validate/save)
    - Feature construction: raw values, imputation, standardization
    - score_clustering: Nearest-centroid scoring of an imported window

Usage:
    >>> from heartwaves.models import score_clustering, ClusteringResult
    >>> result = score_clustering(window, model_path="data/models/clustering_baseline/model.json")
"""

from .artifact import (
    ClusterModelArtifact,
    ModelArtifactError,
    load_artifact,
)
from .features import (
    build_feature_values,
    build_vector,
    feature_coverage,
)
from .clustering import (
    ClusteringResult,
    ClusteringError,
    score_clustering,
    nearest_centroid,
    confidence_for,
)

__all__ = [
    # Artifact
    "ClusterModelArtifact",
    "ModelArtifactError",
    "load_artifact",
    # Features
    "build_feature_values",
    "build_vector",
    "feature_coverage",
    # Scorer
    "ClusteringResult",
    "ClusteringError",
    "score_clustering",
    "nearest_centroid",
    "confidence_for",
]

"""
Cluster Model Artifact.

The JSON artifact is the only contract between the offline trainer and
the online clustering scorer.

Artifact Structure:
    feature_space:
        continuous_features: Raw feature names (imputed by median)
        indicator_features:  '<feature>_missing' flags
        all_features:        continuous + indicator, the vector order
    preprocess:
        medians: Training median per continuous feature
        means:   Per-dimension mean, ordered like all_features
        stds:    Per-dimension std, ordered like all_features
    centroids:               k x len(all_features) standardized centroids
    cluster_hint_map:        cluster id (str) -> phenotype hint
    cluster_status_map:      cluster id (str) -> status
    cluster_purity:          cluster id (str) -> dominant label share
    cluster_followup_rates:  cluster id (str) -> non-normal label share

Extra keys (created_at, algorithm, config, train_inertia,
cluster_label_counts) are carried through untouched.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Tuple, Union

import numpy as np

from heartwaves.rules.phenotype import PhenotypeHint, Status

logger = logging.getLogger(__name__)

CORE_KEYS = (
    "feature_space",
    "preprocess",
    "centroids",
    "cluster_hint_map",
    "cluster_status_map",
    "cluster_purity",
    "cluster_followup_rates",
)


class ModelArtifactError(Exception):
    """Raised when a model artifact is malformed or inconsistent."""
    pass


def default_status_for(hint: str) -> str:
    return Status.NORMAL.value if hint == PhenotypeHint.NORMAL.value else Status.NEEDS_FOLLOWUP.value


@dataclass
class ClusterModelArtifact:
    """
    A trained k-means screening model.

    Attributes:
        continuous_features: Continuous feature names.
        indicator_features: Missingness indicator names.
        all_features: Vector order (continuous then indicators).
        medians: Imputation medians by continuous feature.
        means: Standardization means in vector order.
        stds: Standardization stds in vector order.
        centroids: Array of shape (k, len(all_features)).
        cluster_hint_map: Cluster id -> hint.
        cluster_status_map: Cluster id -> status.
        cluster_purity: Cluster id -> purity.
        cluster_followup_rates: Cluster id -> follow-up rate.
        metadata: Pass-through keys outside the scoring contract.
    """

    continuous_features: List[str]
    indicator_features: List[str]
    all_features: List[str]
    medians: Dict[str, float]
    means: List[float]
    stds: List[float]
    centroids: np.ndarray
    cluster_hint_map: Dict[str, str] = field(default_factory=dict)
    cluster_status_map: Dict[str, str] = field(default_factory=dict)
    cluster_purity: Dict[str, float] = field(default_factory=dict)
    cluster_followup_rates: Dict[str, float] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def k(self) -> int:
        return int(self.centroids.shape[0])

    def cluster_labels(self, cluster_idx: int) -> Tuple[str, str]:
        """
        Resolve (hint, status) for a cluster.

        A missing hint defaults to 'normal'; a missing status defaults to
        needs_followup unless the hint is normal.
        """
        cluster_id = str(cluster_idx)
        hint = str(self.cluster_hint_map.get(cluster_id) or "") or PhenotypeHint.NORMAL.value
        status = str(self.cluster_status_map.get(cluster_id) or "") or default_status_for(hint)
        return hint, status

    def validate(self) -> None:
        """
        Check dimensions and per-cluster label consistency.

        Raises:
            ModelArtifactError: On shape mismatches, unknown labels, or a
                cluster whose resolved status and hint disagree.
        """
        if self.centroids.ndim != 2 or self.centroids.shape[0] == 0:
            raise ModelArtifactError("Artifact has no centroids")

        n_dims = len(self.all_features)
        if self.centroids.shape[1] != n_dims:
            raise ModelArtifactError(
                f"Centroid dimension {self.centroids.shape[1]} does not match "
                f"{n_dims} features"
            )
        if len(self.means) != n_dims or len(self.stds) != n_dims:
            raise ModelArtifactError(
                f"Preprocess means/stds ({len(self.means)}/{len(self.stds)}) do not match "
                f"{n_dims} features"
            )

        for idx in range(self.k):
            hint, status = self.cluster_labels(idx)
            if PhenotypeHint.parse(hint) is None:
                raise ModelArtifactError(f"Cluster {idx} has unknown hint '{hint}'")
            if status not in (Status.NORMAL.value, Status.NEEDS_FOLLOWUP.value):
                raise ModelArtifactError(f"Cluster {idx} has unknown status '{status}'")

            is_normal_hint = hint == PhenotypeHint.NORMAL.value
            if (status == Status.NORMAL.value) != is_normal_hint:
                raise ModelArtifactError(
                    f"Cluster {idx} has inconsistent labels: status={status}, hint={hint}"
                )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ClusterModelArtifact:
        """
        Build an artifact from its JSON form and validate it.

        Means/stds may be lists in all_features order or maps keyed by feature.
        """
        try:
            feature_space = data["feature_space"]
            preprocess = data["preprocess"]
            continuous = [str(f) for f in feature_space.get("continuous_features") or []]
            indicators = [str(f) for f in feature_space.get("indicator_features") or []]
            all_features = [str(f) for f in feature_space.get("all_features") or []]

            means = _ordered(preprocess["means"], all_features)
            stds = _ordered(preprocess["stds"], all_features)
            medians = {str(k): float(v) for k, v in (preprocess.get("medians") or {}).items()}
            centroids = np.asarray(data.get("centroids") or [], dtype=float)
        except (KeyError, TypeError, ValueError) as e:
            raise ModelArtifactError(f"Malformed model artifact: {e!r}") from e

        artifact = cls(
            continuous_features=continuous,
            indicator_features=indicators,
            all_features=all_features,
            medians=medians,
            means=means,
            stds=stds,
            centroids=centroids,
            cluster_hint_map=dict(data.get("cluster_hint_map") or {}),
            cluster_status_map=dict(data.get("cluster_status_map") or {}),
            cluster_purity={k: float(v) for k, v in (data.get("cluster_purity") or {}).items()},
            cluster_followup_rates={
                k: float(v) for k, v in (data.get("cluster_followup_rates") or {}).items()
            },
            metadata={k: v for k, v in data.items() if k not in CORE_KEYS},
        )
        artifact.validate()
        return artifact

    def to_dict(self) -> Dict[str, Any]:
        """JSON form; the inverse of from_dict."""
        out: Dict[str, Any] = dict(self.metadata)
        out.update({
            "feature_space": {
                "continuous_features": list(self.continuous_features),
                "indicator_features": list(self.indicator_features),
                "all_features": list(self.all_features),
            },
            "preprocess": {
                "medians": dict(self.medians),
                "means": list(self.means),
                "stds": list(self.stds),
            },
            "centroids": self.centroids.tolist(),
            "cluster_hint_map": dict(self.cluster_hint_map),
            "cluster_status_map": dict(self.cluster_status_map),
            "cluster_purity": dict(self.cluster_purity),
            "cluster_followup_rates": dict(self.cluster_followup_rates),
        })
        return out

    def save(self, path: Union[str, Path]) -> Path:
        """Write the artifact as pretty-printed JSON."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)
        logger.info(f"Model artifact saved to {path}")
        return path


def _ordered(values: Any, all_features: List[str]) -> List[float]:
    if isinstance(values, Mapping):
        return [float(values[name]) for name in all_features]
    return [float(v) for v in values]


def load_artifact(path: Union[str, Path]) -> ClusterModelArtifact:
    """
    Load and validate a model artifact.

    Raises:
        FileNotFoundError: If the file does not exist.
        ModelArtifactError: If the JSON is malformed or inconsistent.
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Model file not found: {path}")

    try:
        with open(path, 'r') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ModelArtifactError(f"Model artifact is not valid JSON: {e}") from e

    if not isinstance(data, Mapping):
        raise ModelArtifactError("Model artifact must be a JSON object")

    artifact = ClusterModelArtifact.from_dict(data)
    logger.debug(f"Loaded model artifact from {path} (k={artifact.k})")
    return artifact

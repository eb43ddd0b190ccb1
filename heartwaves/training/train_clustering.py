"""
Clustering Baseline Trainer for HeartWaves.

Trains the k-means screening model on the labelled train/val/test splits
and writes the artifact consumed by the online clustering scorer.

Steps:
1. Load splits (fatal if a split is missing or train has fewer than k rows)
2. Preprocess on train only: medians, missingness indicators, mean/std
3. Standardize every split with the train parameters
4. k-means++ / Lloyd with n_init restarts from one seeded PRNG
5. Map clusters to status/hint by their training label mix
6. Evaluate every split (binary follow-up metrics + phenotype metrics)
7. Save model.json, evaluation.json and per-split prediction CSVs

Usage:
    python -m heartwaves.training.train_clustering
    python -m heartwaves.training.train_clustering --k 4 --n-init 10 --seed 7
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from scipy.spatial.distance import cdist
from sklearn.metrics import accuracy_score, confusion_matrix, recall_score

from heartwaves.config import PATHS, TRAINING
from heartwaves.models.artifact import ClusterModelArtifact, default_status_for
from heartwaves.utils.stats import parse_optional_float

from .kmeans import run_kmeans
from .prepare_data import TrainingDataError

logger = logging.getLogger(__name__)

NORMAL = "normal"
FOLLOWUP = "needs_followup"
UNSPECIFIED = "unspecified_autonomic"

PREDICTION_COLUMNS = [
    "source_subject_id",
    "source_group",
    "status_target",
    "phenotype_hint_target",
    "status_pred",
    "phenotype_pred",
    "cluster_id",
    "distance_to_centroid",
]


@dataclass
class ClusterTrainingConfig:
    """Configuration for clustering training."""
    k: int = TRAINING.K
    n_init: int = TRAINING.N_INIT
    max_iters: int = TRAINING.MAX_ITERS
    seed: int = TRAINING.SEED
    followup_threshold: float = TRAINING.FOLLOWUP_THRESHOLD
    continuous_features: List[str] = field(
        default_factory=lambda: list(TRAINING.CONTINUOUS_FEATURES)
    )
    no_indicator_features: List[str] = field(
        default_factory=lambda: list(TRAINING.NO_INDICATOR_FEATURES)
    )

    @property
    def indicator_features(self) -> List[str]:
        return [
            f"{name}_missing"
            for name in self.continuous_features
            if name not in self.no_indicator_features
        ]

    def to_dict(self) -> dict:
        return {
            "k": self.k,
            "n_init": self.n_init,
            "max_iters": self.max_iters,
            "seed": self.seed,
            "followup_threshold": self.followup_threshold,
        }


@dataclass
class Preprocess:
    """Train-only imputation and standardization parameters."""
    medians: Dict[str, float]
    means: np.ndarray
    stds: np.ndarray


@dataclass
class ClusterMapping:
    """Per-cluster labels derived from the training label mix."""
    hint_map: Dict[str, str]
    status_map: Dict[str, str]
    counts: List[Dict[str, int]]
    purity: Dict[str, float]
    followup_rates: Dict[str, float]


@dataclass
class Predictions:
    """Nearest-centroid predictions for one split."""
    status: List[str]
    phenotype: List[str]
    clusters: List[int]
    distances: List[float]


@dataclass
class TrainingResult:
    """Outputs of a training run."""
    artifact: ClusterModelArtifact
    evaluation: Dict[str, Any]
    model_path: Path
    evaluation_path: Path


# =============================================================================
# Loading and preprocessing
# =============================================================================

def read_split(path: Union[str, Path]) -> pd.DataFrame:
    """Read a split CSV with every cell as a string (blanks stay blank)."""
    path = Path(path)
    if not path.is_file():
        raise TrainingDataError(f"Missing file: {path}")
    return pd.read_csv(path, dtype=str, keep_default_na=False)


def raw_feature_matrix(rows: pd.DataFrame, features: Sequence[str]) -> np.ndarray:
    """Parse feature columns into floats; missing or invalid cells are NaN."""
    matrix = np.full((len(rows), len(features)), np.nan)
    for j, name in enumerate(features):
        if name not in rows.columns:
            continue
        for i, value in enumerate(rows[name].tolist()):
            parsed = parse_optional_float(value)
            if parsed is not None:
                matrix[i, j] = parsed
    return matrix


def unscaled_vectors(
    raw: np.ndarray,
    continuous: Sequence[str],
    no_indicator: Sequence[str],
    medians: Dict[str, float],
) -> np.ndarray:
    """Median-impute continuous columns and append missingness indicators."""
    missing = np.isnan(raw)
    fill = np.array([medians[name] for name in continuous], dtype=float)
    imputed = np.where(missing, fill, raw)

    indicator_cols = [j for j, name in enumerate(continuous) if name not in no_indicator]
    indicators = missing[:, indicator_cols].astype(float)
    return np.hstack([imputed, indicators])


def compute_preprocess(
    raw: np.ndarray,
    config: ClusterTrainingConfig,
) -> Tuple[np.ndarray, Preprocess]:
    """
    Fit preprocessing on the training matrix.

    Medians ignore missing values (0.0 when a column is entirely missing).
    Stds are population stds; a (near) zero std is replaced by 1.0.

    Returns:
        Tuple of (unscaled train vectors, Preprocess).
    """
    medians: Dict[str, float] = {}
    for j, name in enumerate(config.continuous_features):
        column = raw[:, j]
        observed = column[~np.isnan(column)]
        medians[name] = float(np.median(observed)) if len(observed) else 0.0

    vectors = unscaled_vectors(raw, config.continuous_features, config.no_indicator_features, medians)
    means = vectors.mean(axis=0)
    stds = vectors.std(axis=0)
    stds = np.where(stds > TRAINING.EPS, stds, 1.0)

    return vectors, Preprocess(medians=medians, means=means, stds=stds)


def transform_rows(rows: pd.DataFrame, preprocess: Preprocess, config: ClusterTrainingConfig) -> np.ndarray:
    """Standardize a split with the train preprocessing parameters."""
    if len(rows) == 0:
        return np.zeros((0, len(preprocess.means)))
    raw = raw_feature_matrix(rows, config.continuous_features)
    vectors = unscaled_vectors(
        raw, config.continuous_features, config.no_indicator_features, preprocess.medians
    )
    return (vectors - preprocess.means) / preprocess.stds


# =============================================================================
# Cluster labelling and prediction
# =============================================================================

def map_clusters_to_labels(
    labels: Sequence[str],
    assignments: Sequence[int],
    k: int,
    followup_threshold: float = TRAINING.FOLLOWUP_THRESHOLD,
) -> ClusterMapping:
    """
    Derive status, hint, purity and follow-up rate per cluster.

    - followup_rate = share of non-normal labels in the cluster
    - status = needs_followup when followup_rate >= threshold
    - hint = most frequent non-normal label (ties alphabetical), or
      unspecified_autonomic when none exists; normal for normal clusters
    - purity = share of the chosen hint
    Empty clusters are normal with 0.0 purity and follow-up rate.
    """
    counts = [Counter() for _ in range(k)]
    for label, cluster in zip(labels, assignments):
        counts[int(cluster)][str(label)] += 1

    mapping = ClusterMapping(hint_map={}, status_map={}, counts=[], purity={}, followup_rates={})

    for cluster, label_counts in enumerate(counts):
        cid = str(cluster)
        mapping.counts.append(dict(sorted(label_counts.items())))

        total = sum(label_counts.values())
        if total == 0:
            mapping.hint_map[cid] = NORMAL
            mapping.status_map[cid] = NORMAL
            mapping.purity[cid] = 0.0
            mapping.followup_rates[cid] = 0.0
            continue

        followup_rate = (total - label_counts.get(NORMAL, 0)) / total
        status = FOLLOWUP if followup_rate >= followup_threshold else NORMAL

        if status == NORMAL:
            hint = NORMAL
        else:
            non_normal = [(label, n) for label, n in label_counts.items() if label != NORMAL]
            hint = min(non_normal, key=lambda item: (-item[1], item[0]))[0] if non_normal else UNSPECIFIED

        mapping.hint_map[cid] = hint
        mapping.status_map[cid] = status
        mapping.purity[cid] = label_counts.get(hint, 0) / total
        mapping.followup_rates[cid] = followup_rate

    return mapping


def predict_rows(
    vectors: np.ndarray,
    centroids: np.ndarray,
    hint_map: Dict[str, str],
    status_map: Dict[str, str],
) -> Predictions:
    """Assign each vector to its nearest centroid and read off the cluster labels."""
    predictions = Predictions(status=[], phenotype=[], clusters=[], distances=[])
    if len(vectors) == 0:
        return predictions

    distances = cdist(vectors, centroids, metric="sqeuclidean")
    for row in distances:
        cluster = int(np.argmin(row))
        hint = hint_map.get(str(cluster)) or NORMAL
        status = status_map.get(str(cluster)) or default_status_for(hint)
        predictions.phenotype.append(hint)
        predictions.status.append(status)
        predictions.clusters.append(cluster)
        predictions.distances.append(float(row[cluster]))
    return predictions


# =============================================================================
# Evaluation
# =============================================================================

def _safe_div(num: float, den: float) -> Optional[float]:
    return None if den == 0 else num / den


def binary_metrics(actual: Sequence[str], predicted: Sequence[str]) -> Dict[str, Any]:
    """
    Follow-up detection metrics with needs_followup as the positive class.

    Undefined ratios (zero denominators) are None.
    """
    if len(actual) == 0:
        tn = fp = fn = tp = 0
    else:
        cm = confusion_matrix(actual, predicted, labels=[NORMAL, FOLLOWUP])
        tn, fp, fn, tp = (int(v) for v in cm.ravel())

    precision = _safe_div(tp, tp + fp)
    recall = _safe_div(tp, tp + fn)
    if precision is None or recall is None or precision + recall == 0:
        f1 = None
    else:
        f1 = 2.0 * precision * recall / (precision + recall)

    return {
        "confusion": {"tp": tp, "fp": fp, "tn": tn, "fn": fn},
        "precision_needs_followup": precision,
        "recall_needs_followup": recall,
        "f1_needs_followup": f1,
        "accuracy": float(accuracy_score(actual, predicted)) if len(actual) else None,
    }


def phenotype_metrics(actual: Sequence[str], predicted: Sequence[str]) -> Dict[str, Any]:
    """Exact hint accuracy, class supports and per-class recall."""
    if len(actual) == 0:
        return {
            "exact_accuracy": None,
            "support_by_class": {},
            "predicted_by_class": {},
            "recall_by_class": {},
        }

    classes = sorted(set(actual))
    recalls = recall_score(actual, predicted, labels=classes, average=None, zero_division=0)

    return {
        "exact_accuracy": float(accuracy_score(actual, predicted)),
        "support_by_class": dict(sorted(Counter(actual).items())),
        "predicted_by_class": dict(sorted(Counter(predicted).items())),
        "recall_by_class": {label: float(r) for label, r in zip(classes, recalls)},
    }


def evaluate_split(rows: pd.DataFrame, predictions: Predictions) -> Dict[str, Any]:
    return {
        "binary": binary_metrics(rows[TRAINING.STATUS_COLUMN].astype(str).tolist(), predictions.status),
        "phenotype": phenotype_metrics(
            rows[TRAINING.LABEL_COLUMN].astype(str).tolist(), predictions.phenotype
        ),
    }


def write_predictions(path: Path, rows: pd.DataFrame, predictions: Predictions) -> None:
    def column(name: str) -> List[str]:
        return rows[name].tolist() if name in rows.columns else [""] * len(rows)

    frame = pd.DataFrame({
        "source_subject_id": column("source_subject_id"),
        "source_group": column("source_group"),
        "status_target": column(TRAINING.STATUS_COLUMN),
        "phenotype_hint_target": column(TRAINING.LABEL_COLUMN),
        "status_pred": predictions.status,
        "phenotype_pred": predictions.phenotype,
        "cluster_id": predictions.clusters,
        "distance_to_centroid": [round(d, 6) for d in predictions.distances],
    }, columns=PREDICTION_COLUMNS)
    frame.to_csv(path, index=False)


# =============================================================================
# Training entry point
# =============================================================================

def train_clustering(
    train_csv: Union[str, Path] = f"{PATHS.SPLITS_DIR}/train.csv",
    val_csv: Union[str, Path] = f"{PATHS.SPLITS_DIR}/val.csv",
    test_csv: Union[str, Path] = f"{PATHS.SPLITS_DIR}/test.csv",
    output_dir: Union[str, Path] = PATHS.MODEL_DIR,
    config: Optional[ClusterTrainingConfig] = None,
) -> TrainingResult:
    """
    Train, evaluate and persist the clustering baseline.

    Args:
        train_csv: Training split.
        val_csv: Validation split.
        test_csv: Test split.
        output_dir: Directory for model.json, evaluation.json and predictions.
        config: Training parameters (defaults from TRAINING).

    Returns:
        TrainingResult with the saved artifact and evaluation.

    Raises:
        TrainingDataError: On missing splits, missing label columns, or fewer
            training rows than clusters.

    Example:
        >>> result = train_clustering(output_dir="data/models/clustering_baseline")
        >>> print(result.evaluation["val"]["binary"]["precision_needs_followup"])
    """
    config = config or ClusterTrainingConfig()
    splits = {
        "train": read_split(train_csv),
        "val": read_split(val_csv),
        "test": read_split(test_csv),
    }

    for name, rows in splits.items():
        for column in (TRAINING.LABEL_COLUMN, TRAINING.STATUS_COLUMN):
            if column not in rows.columns:
                raise TrainingDataError(f"Split '{name}' is missing label column: {column}")

    train_rows = splits["train"]
    if len(train_rows) < config.k:
        raise TrainingDataError(f"Train rows ({len(train_rows)}) are fewer than K={config.k}")

    logger.info("=" * 60)
    logger.info("HeartWaves Clustering Training")
    logger.info("=" * 60)
    logger.info("Rows: " + ", ".join(f"{name}={len(rows)}" for name, rows in splits.items()))
    logger.info(f"Config: {config.to_dict()}")

    # Preprocess (train only)
    raw_train = raw_feature_matrix(train_rows, config.continuous_features)
    train_unscaled, preprocess = compute_preprocess(raw_train, config)
    vectors = {"train": (train_unscaled - preprocess.means) / preprocess.stds}
    vectors["val"] = transform_rows(splits["val"], preprocess, config)
    vectors["test"] = transform_rows(splits["test"], preprocess, config)

    # Cluster
    kmeans = run_kmeans(
        vectors["train"],
        k=config.k,
        n_init=config.n_init,
        max_iters=config.max_iters,
        seed=config.seed,
    )
    mapping = map_clusters_to_labels(
        train_rows[TRAINING.LABEL_COLUMN].astype(str).tolist(),
        kmeans.assignments,
        config.k,
        followup_threshold=config.followup_threshold,
    )
    logger.info(f"Cluster hints: {mapping.hint_map}")

    # Evaluate and persist
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    evaluation: Dict[str, Any] = {"created_at": datetime.now(timezone.utc).isoformat(timespec="seconds")}
    for name, rows in splits.items():
        predictions = predict_rows(vectors[name], kmeans.centroids, mapping.hint_map, mapping.status_map)
        write_predictions(output_dir / f"{name}_predictions.csv", rows, predictions)
        evaluation[name] = evaluate_split(rows, predictions)
    evaluation["row_counts"] = {name: len(rows) for name, rows in splits.items()}

    indicators = config.indicator_features
    artifact = ClusterModelArtifact(
        continuous_features=list(config.continuous_features),
        indicator_features=indicators,
        all_features=list(config.continuous_features) + indicators,
        medians=preprocess.medians,
        means=preprocess.means.tolist(),
        stds=preprocess.stds.tolist(),
        centroids=kmeans.centroids,
        cluster_hint_map=mapping.hint_map,
        cluster_status_map=mapping.status_map,
        cluster_purity=mapping.purity,
        cluster_followup_rates=mapping.followup_rates,
        metadata={
            "created_at": evaluation["created_at"],
            "algorithm": "kmeans",
            "config": config.to_dict(),
            "train_inertia": kmeans.inertia,
            "cluster_label_counts": mapping.counts,
        },
    )
    artifact.validate()

    model_path = artifact.save(output_dir / "model.json")
    evaluation_path = output_dir / "evaluation.json"
    with open(evaluation_path, 'w') as f:
        json.dump(evaluation, f, indent=2)

    logger.info(f"Saved evaluation: {evaluation_path}")
    logger.info(
        f"Val precision (needs_followup): "
        f"{evaluation['val']['binary']['precision_needs_followup']}"
    )
    logger.info(
        f"Test precision (needs_followup): "
        f"{evaluation['test']['binary']['precision_needs_followup']}"
    )

    return TrainingResult(
        artifact=artifact,
        evaluation=evaluation,
        model_path=model_path,
        evaluation_path=evaluation_path,
    )


def main():
    parser = argparse.ArgumentParser(
        description="Train the HeartWaves k-means clustering baseline"
    )
    parser.add_argument("--splits-dir", type=str, default=PATHS.SPLITS_DIR,
                        help="Directory containing train.csv, val.csv and test.csv")
    parser.add_argument("--output-dir", type=str, default=PATHS.MODEL_DIR,
                        help="Output directory for the model and evaluation")
    parser.add_argument("--k", type=int, default=TRAINING.K, help="Number of clusters")
    parser.add_argument("--n-init", type=int, default=TRAINING.N_INIT, help="k-means restarts")
    parser.add_argument("--max-iters", type=int, default=TRAINING.MAX_ITERS,
                        help="Lloyd iteration cap per restart")
    parser.add_argument("--seed", type=int, default=TRAINING.SEED, help="PRNG seed")
    parser.add_argument("--followup-threshold", type=float, default=TRAINING.FOLLOWUP_THRESHOLD,
                        help="Cluster follow-up rate needed for needs_followup")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    config = ClusterTrainingConfig(
        k=args.k,
        n_init=args.n_init,
        max_iters=args.max_iters,
        seed=args.seed,
        followup_threshold=args.followup_threshold,
    )
    splits_dir = Path(args.splits_dir)

    try:
        result = train_clustering(
            train_csv=splits_dir / "train.csv",
            val_csv=splits_dir / "val.csv",
            test_csv=splits_dir / "test.csv",
            output_dir=args.output_dir,
            config=config,
        )
    except TrainingDataError as e:
        logger.error(f"Training failed: {e}")
        return 1

    logger.info(f"Training completed successfully! Model: {result.model_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())

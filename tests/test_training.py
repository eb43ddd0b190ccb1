"""
Unit Tests for the Offline Training Pipeline.

Tests k-means seeding and reproducibility, cluster labelling, evaluation
metrics, reference-table preparation and an end-to-end training run on a
synthetic two-population table.
"""

import json

import numpy as np
import pandas as pd
import pytest

from heartwaves.models import load_artifact
from heartwaves.training import (
    ClusterTrainingConfig,
    TrainingDataError,
    build_training_table,
    run_kmeans,
    split_training_table,
    train_clustering,
)
from heartwaves.training.kmeans import choose_weighted_index
from heartwaves.training.prepare_data import find_header, proxy_label
from heartwaves.training.train_clustering import (
    binary_metrics,
    compute_preprocess,
    map_clusters_to_labels,
    phenotype_metrics,
)


# =============================================================================
# Test Fixtures
# =============================================================================

@pytest.fixture
def two_blobs() -> np.ndarray:
    """Two well-separated 2-D blobs of 20 points each."""
    rng = np.random.default_rng(0)
    a = rng.normal(loc=[0.0, 0.0], scale=0.3, size=(20, 2))
    b = rng.normal(loc=[10.0, 10.0], scale=0.3, size=(20, 2))
    return np.vstack([a, b])


def _table(n_per_label: int = 30, seed: int = 1) -> pd.DataFrame:
    """Synthetic training table: calm normals vs. large stand-related HR rise."""
    rng = np.random.default_rng(seed)
    rows = []
    for i in range(n_per_label):
        rows.append({
            "source_subject_id": f"n{i}",
            "source_group": "CONTROL",
            "age": round(rng.normal(40, 5), 1),
            "resting_hr_mean": round(rng.normal(62, 2), 1),
            "delta_hr_stand_minus_sit": round(rng.normal(10, 2), 1),
            "status_target": "normal",
            "phenotype_hint_target": "normal",
        })
        rows.append({
            "source_subject_id": f"p{i}",
            "source_group": "POTS",
            "age": round(rng.normal(30, 5), 1),
            "resting_hr_mean": round(rng.normal(85, 2), 1),
            "delta_hr_stand_minus_sit": round(rng.normal(40, 2), 1),
            "status_target": "needs_followup",
            "phenotype_hint_target": "pots_like",
        })
    return pd.DataFrame(rows)


@pytest.fixture
def splits_dir(tmp_path):
    """train/val/test CSVs of the synthetic table."""
    return _write_splits(tmp_path / "splits")


def _write_splits(path):
    split_training_table(_table(), output_dir=path, seed=42)
    return path


def _train(splits_dir, output_dir, **config):
    return train_clustering(
        train_csv=splits_dir / "train.csv",
        val_csv=splits_dir / "val.csv",
        test_csv=splits_dir / "test.csv",
        output_dir=output_dir,
        config=ClusterTrainingConfig(**{"k": 2, "n_init": 5, "max_iters": 50, **config}),
    )


# =============================================================================
# K-Means
# =============================================================================

class TestKMeans:
    """Tests for k-means++ / Lloyd clustering."""

    def test_separates_two_blobs(self, two_blobs):
        result = run_kmeans(two_blobs, k=2, n_init=3, max_iters=50, seed=42)

        first, second = result.assignments[:20], result.assignments[20:]
        assert len(set(first)) == 1
        assert len(set(second)) == 1
        assert first[0] != second[0]
        assert result.inertia < 20.0

    def test_same_seed_is_bit_identical(self, two_blobs):
        a = run_kmeans(two_blobs, k=3, n_init=4, max_iters=30, seed=7)
        b = run_kmeans(two_blobs, k=3, n_init=4, max_iters=30, seed=7)

        assert np.array_equal(a.centroids, b.centroids)
        assert np.array_equal(a.assignments, b.assignments)
        assert a.inertia == b.inertia

    def test_too_few_rows_raises(self):
        with pytest.raises(ValueError):
            run_kmeans(np.zeros((2, 3)), k=3)

    def test_duplicate_points_do_not_break_seeding(self):
        X = np.ones((6, 2))
        result = run_kmeans(X, k=2, n_init=2, max_iters=5, seed=1)

        assert result.centroids.shape == (2, 2)
        assert result.inertia == 0.0

    def test_weighted_index_zero_weights_is_uniform_draw(self):
        rng = np.random.default_rng(3)
        idx = choose_weighted_index(np.zeros(4), rng)
        assert 0 <= idx < 4

    def test_weighted_index_single_positive_weight(self):
        rng = np.random.default_rng(3)
        picks = {choose_weighted_index(np.array([0.0, 0.0, 5.0, 0.0]), rng) for _ in range(20)}
        assert picks == {2}


# =============================================================================
# Preprocessing, Labelling, Metrics
# =============================================================================

class TestClusterLabelling:
    """Tests for mapping clusters onto status/hint labels."""

    def test_preprocess_medians_and_unit_std_for_constant_columns(self):
        config = ClusterTrainingConfig(
            continuous_features=["age", "resting_hr_mean"], no_indicator_features=["age"]
        )
        raw = np.array([[30.0, 60.0], [40.0, np.nan], [50.0, 70.0]])

        vectors, preprocess = compute_preprocess(raw, config)

        assert preprocess.medians == {"age": 40.0, "resting_hr_mean": 65.0}
        np.testing.assert_allclose(vectors[:, 1], [60.0, 65.0, 70.0])
        np.testing.assert_allclose(vectors[:, 2], [0.0, 1.0, 0.0])
        assert preprocess.stds[0] == pytest.approx(np.std([30.0, 40.0, 50.0]))

        constant = np.array([[1.0, 5.0], [1.0, 5.0], [1.0, 5.0]])
        _, flat = compute_preprocess(constant, config)
        np.testing.assert_array_equal(flat.stds, [1.0, 1.0, 1.0])

    def test_majority_followup_cluster_takes_most_frequent_label(self):
        labels = ["pots_like", "pots_like", "oh_like", "normal", "normal", "normal"]
        assignments = [0, 0, 0, 0, 1, 1]

        mapping = map_clusters_to_labels(labels, assignments, k=3, followup_threshold=0.55)

        assert mapping.status_map == {"0": "needs_followup", "1": "normal", "2": "normal"}
        assert mapping.hint_map == {"0": "pots_like", "1": "normal", "2": "normal"}
        assert mapping.followup_rates["0"] == 0.75
        assert mapping.purity["0"] == 0.5
        assert mapping.purity["1"] == 1.0
        # Empty cluster
        assert mapping.purity["2"] == 0.0
        assert mapping.counts[2] == {}

    def test_hint_ties_break_alphabetically(self):
        labels = ["vvs_like", "oh_like", "vvs_like", "oh_like"]
        mapping = map_clusters_to_labels(labels, [0, 0, 0, 0], k=1)

        assert mapping.hint_map["0"] == "oh_like"

    def test_binary_metrics_with_no_positive_predictions(self):
        metrics = binary_metrics(["normal", "needs_followup"], ["normal", "normal"])

        assert metrics["confusion"] == {"tp": 0, "fp": 0, "tn": 1, "fn": 1}
        assert metrics["precision_needs_followup"] is None
        assert metrics["recall_needs_followup"] == 0.0
        assert metrics["f1_needs_followup"] is None
        assert metrics["accuracy"] == 0.5

    def test_binary_metrics_empty_split(self):
        metrics = binary_metrics([], [])

        assert metrics["accuracy"] is None
        assert metrics["confusion"]["tp"] == 0

    def test_phenotype_metrics(self):
        metrics = phenotype_metrics(
            ["normal", "pots_like", "pots_like", "oh_like"],
            ["normal", "pots_like", "normal", "pots_like"],
        )

        assert metrics["exact_accuracy"] == 0.5
        assert metrics["support_by_class"] == {"normal": 1, "oh_like": 1, "pots_like": 2}
        assert metrics["predicted_by_class"] == {"normal": 2, "pots_like": 2}
        assert metrics["recall_by_class"] == {"normal": 1.0, "oh_like": 0.0, "pots_like": 0.5}


# =============================================================================
# Reference Table Preparation
# =============================================================================

class TestPrepareData:
    """Tests for the proxy-labelled table builder and the stratified split."""

    def test_find_header_prefers_exact_then_partial(self):
        headers = ["Subject_Number", "Group", "AGE (years)", "HRV_ SDNN"]

        assert find_header(headers, ["subject_number"]) == "Subject_Number"
        assert find_header(headers, ["age"]) == "AGE (years)"
        assert find_header(headers, ["HRV_ SDNN", "hrv sdnn"]) == "HRV_ SDNN"
        assert find_header(headers, ["sys bp siteo"]) is None

    @pytest.mark.parametrize("kwargs,hint,confidence", [
        (dict(symptom_oh="YES", delta_sbp=-25.0), "oh_like", "medium"),
        (dict(symptom_oh="YES"), "oh_like", "low"),
        (dict(delta_sbp=-20.0), "oh_like", "low"),
        (dict(symptom_syncope="yes"), "vvs_like", "low"),
        (dict(delta_hr=32.0, delta_sbp=-5.0), "pots_like", "medium"),
        (dict(resting_hr=95.0, delta_hr=10.0), "ist_like", "medium"),
        (dict(group="CONTROL"), "normal", "high"),
        (dict(group="DIABETES"), "normal", "low"),
    ])
    def test_proxy_labels(self, kwargs, hint, confidence):
        args = dict(
            symptom_oh="", symptom_syncope="", symptom_dizziness="",
            delta_hr=None, delta_sbp=None, resting_hr=None, group="",
        )
        args.update(kwargs)

        label = proxy_label(**args)

        assert label.hint == hint
        assert label.confidence == confidence
        assert label.status == ("normal" if hint == "normal" else "needs_followup")

    def test_build_training_table(self, tmp_path):
        source = tmp_path / "subjects.csv"
        pd.DataFrame({
            "subject_number": ["S1", "S2", "", "S4"],
            "group": ["CONTROL", "DM", "CONTROL", "CONTROL"],
            "age": ["50", "61", "40", "n/a"],
            "(SitEO mn) SitEO HR mean": ["70", "72", "70", "80"],
            "(StandEO mn) Mean HR StandEO": ["78", "108", "75", ""],
            "Systolic BP SitEO": ["120", "130", "120", "110"],
            "Sys BP StandEO": ["118", "128", "121", "100"],
            "OH AUTONOMIC SYMPTOMS": ["NO", "NO", "NO", "NO"],
        }).to_csv(source, index=False)
        output = tmp_path / "processed" / "training_table.csv"

        table = build_training_table(source, output)

        assert list(table["source_subject_id"]) == ["S1", "S2", "S4"]
        assert list(table["phenotype_hint_target"]) == ["normal", "pots_like", "normal"]
        assert table.loc[1, "delta_hr_stand_minus_sit"] == 36.0
        assert pd.isna(table.loc[2, "delta_hr_stand_minus_sit"])
        assert pd.isna(table.loc[2, "age"])
        assert set(table["label_quality"]) == {"proxy"}
        assert output.is_file()

        with open(tmp_path / "processed" / "training_table_summary.json") as f:
            summary = json.load(f)
        assert summary["row_count"] == 3
        assert summary["counts"]["phenotype_hint_target"] == {"normal": 2, "pots_like": 1}

    def test_build_requires_subject_and_group(self, tmp_path):
        source = tmp_path / "subjects.csv"
        pd.DataFrame({"age": ["50"]}).to_csv(source, index=False)

        with pytest.raises(TrainingDataError, match="subject"):
            build_training_table(source, tmp_path / "out.csv")

    def test_split_is_stratified_and_reproducible(self, tmp_path):
        table = _table(n_per_label=20)

        first = split_training_table(table, output_dir=tmp_path / "a", seed=42)
        second = split_training_table(table, output_dir=tmp_path / "b", seed=42)

        for name, expected in (("train", 14), ("val", 3), ("test", 3)):
            counts = first[name]["phenotype_hint_target"].value_counts().to_dict()
            assert counts == {"normal": expected, "pots_like": expected}
            assert list(first[name]["source_subject_id"]) == list(second[name]["source_subject_id"])

        assert (tmp_path / "a" / "split_summary.json").is_file()

    def test_split_requires_label_column(self, tmp_path):
        with pytest.raises(TrainingDataError):
            split_training_table(pd.DataFrame({"x": [1]}), output_dir=tmp_path)


# =============================================================================
# End-to-End Training
# =============================================================================

class TestTrainClustering:
    """Tests for the full training run."""

    def test_training_writes_loadable_artifact(self, splits_dir, tmp_path):
        result = _train(splits_dir, tmp_path / "model")

        artifact = load_artifact(result.model_path)
        assert artifact.k == 2
        assert sorted(artifact.cluster_hint_map.values()) == ["normal", "pots_like"]
        assert artifact.all_features[:9] == list(ClusterTrainingConfig().continuous_features)
        assert "age_missing" not in artifact.all_features
        assert artifact.metadata["algorithm"] == "kmeans"
        assert artifact.metadata["config"]["k"] == 2

        evaluation = result.evaluation
        assert evaluation["row_counts"] == {"train": 42, "val": 10, "test": 8}
        assert evaluation["test"]["binary"]["accuracy"] == 1.0
        assert evaluation["val"]["phenotype"]["exact_accuracy"] == 1.0

        for name in ("train", "val", "test"):
            predictions = pd.read_csv(tmp_path / "model" / f"{name}_predictions.csv")
            assert list(predictions.columns)[-2:] == ["cluster_id", "distance_to_centroid"]

    def test_training_is_reproducible(self, splits_dir, tmp_path):
        first = _train(splits_dir, tmp_path / "run1")
        second = _train(splits_dir, tmp_path / "run2")

        assert np.array_equal(first.artifact.centroids, second.artifact.centroids)
        assert first.artifact.cluster_hint_map == second.artifact.cluster_hint_map
        assert first.artifact.cluster_status_map == second.artifact.cluster_status_map

    def test_fewer_rows_than_k_is_fatal(self, splits_dir, tmp_path):
        with pytest.raises(TrainingDataError, match="fewer than K"):
            _train(splits_dir, tmp_path / "model", k=100)

    def test_missing_split_is_fatal(self, tmp_path):
        with pytest.raises(TrainingDataError, match="Missing file"):
            _train(tmp_path / "nowhere", tmp_path / "model")

"""
K-Means Clustering with k-means++ Seeding.

A small, fully deterministic k-means used by the offline trainer. All
randomness (seeding, restarts, empty-cluster re-seeding) flows through one
numpy Generator created from the seed, so the same seed and data always
produce bit-identical centroids.

Algorithm:
    for each of n_init restarts:
        1. k-means++: first centroid uniform, then sample proportional to the
           squared distance to the nearest chosen centroid
        2. Lloyd iterations until no assignment changes or max_iters:
             assign -> (stop if unchanged) -> recompute means
           an empty cluster is re-seeded from a random training point
        3. inertia = sum of squared distances to assigned centroids
    keep the restart with the lowest inertia (first one on ties)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np
from scipy.spatial.distance import cdist

from heartwaves.config import TRAINING

logger = logging.getLogger(__name__)


@dataclass
class KMeansResult:
    """
    Best k-means solution over all restarts.

    Attributes:
        centroids: Array of shape (k, n_features).
        assignments: Cluster index per training row.
        inertia: Sum of squared distances to the assigned centroids.
        n_iter: Lloyd iterations of the winning restart.
    """

    centroids: np.ndarray
    assignments: np.ndarray
    inertia: float
    n_iter: int


def squared_distances(X: np.ndarray, centroids: np.ndarray) -> np.ndarray:
    """Squared Euclidean distances, shape (n_rows, n_centroids)."""
    return cdist(X, centroids, metric="sqeuclidean")


def choose_weighted_index(weights: np.ndarray, rng: np.random.Generator) -> int:
    """
    Sample an index with probability proportional to its weight.

    Falls back to a uniform draw when all weights are (near) zero.
    """
    total = float(np.sum(weights))
    if total <= TRAINING.EPS:
        return int(rng.integers(len(weights)))

    threshold = rng.random() * total
    running = np.cumsum(weights)
    idx = int(np.searchsorted(running, threshold, side="left"))
    return min(idx, len(weights) - 1)


def init_kmeans_pp(X: np.ndarray, k: int, rng: np.random.Generator) -> np.ndarray:
    """k-means++ initial centroids (copies of training rows)."""
    centroids = [X[int(rng.integers(len(X)))].copy()]

    while len(centroids) < k:
        nearest = squared_distances(X, np.asarray(centroids)).min(axis=1)
        centroids.append(X[choose_weighted_index(nearest, rng)].copy())

    return np.asarray(centroids, dtype=float)


def _lloyd(
    X: np.ndarray,
    centroids: np.ndarray,
    max_iters: int,
    rng: np.random.Generator,
):
    k = centroids.shape[0]
    assignments = np.full(len(X), -1, dtype=int)
    n_iter = 0

    for n_iter in range(1, max(1, max_iters) + 1):
        new_assignments = np.argmin(squared_distances(X, centroids), axis=1)
        if np.array_equal(new_assignments, assignments):
            break
        assignments = new_assignments

        for cluster in range(k):
            members = X[assignments == cluster]
            if len(members) == 0:
                centroids[cluster] = X[int(rng.integers(len(X)))].copy()
            else:
                centroids[cluster] = members.mean(axis=0)

    inertia = float(np.sum((X - centroids[assignments]) ** 2))
    return centroids, assignments, inertia, n_iter


def run_kmeans(
    X: np.ndarray,
    k: int = TRAINING.K,
    n_init: int = TRAINING.N_INIT,
    max_iters: int = TRAINING.MAX_ITERS,
    seed: int = TRAINING.SEED,
) -> KMeansResult:
    """
    Fit k-means with k-means++ seeding and multiple restarts.

    Args:
        X: Standardized training matrix, shape (n_rows, n_features).
        k: Number of clusters.
        n_init: Number of restarts.
        max_iters: Lloyd iteration cap per restart.
        seed: Seed of the single PRNG shared by all restarts.

    Returns:
        KMeansResult of the lowest-inertia restart.

    Raises:
        ValueError: If there are fewer rows than clusters.

    Example:
        >>> result = run_kmeans(X, k=5, n_init=30, seed=42)
        >>> result.centroids.shape
        (5, 17)
    """
    X = np.asarray(X, dtype=float)
    if k < 1 or len(X) < k:
        raise ValueError(f"Need at least k={k} rows for k-means, got {len(X)}")

    rng = np.random.default_rng(seed)
    best: Optional[KMeansResult] = None

    for restart in range(max(1, n_init)):
        centroids = init_kmeans_pp(X, k, rng)
        centroids, assignments, inertia, n_iter = _lloyd(X, centroids, max_iters, rng)

        logger.debug(f"Restart {restart}: inertia={inertia:.4f}, iterations={n_iter}")

        if best is None or inertia < best.inertia:
            best = KMeansResult(
                centroids=centroids,
                assignments=assignments,
                inertia=inertia,
                n_iter=n_iter,
            )

    logger.info(f"K-means (k={k}, n_init={n_init}): best inertia={best.inertia:.4f}")
    return best

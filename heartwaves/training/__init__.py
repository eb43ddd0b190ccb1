"""
Training module for HeartWaves.

This module provides tools for building the proxy-labelled reference
table, splitting it, and training the k-means clustering baseline.
"""

from .prepare_data import build_training_table, split_training_table, TrainingDataError
from .kmeans import run_kmeans, KMeansResult
from .train_clustering import train_clustering, ClusterTrainingConfig, TrainingResult

__all__ = [
    'build_training_table',
    'split_training_table',
    'TrainingDataError',
    'run_kmeans',
    'KMeansResult',
    'train_clustering',
    'ClusterTrainingConfig',
    'TrainingResult',
]

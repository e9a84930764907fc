"""
Per-cluster descriptive statistics.

Raw means are reported in the original measurement units; means and
variances on the standardized scale make features comparable with each other.
"""

from dataclasses import dataclass
from typing import Dict, Sequence

import numpy as np
import pandas as pd

from factorymath.exceptions import InvalidInputError


@dataclass(frozen=True)
class ScaledStat:
    """Mean and sample variance of one feature within one cluster."""
    mean: float
    variance: float


@dataclass(frozen=True)
class ClusterStats:
    """
    Statistics for every cluster id in [0, k).

    Attributes:
        raw_means: cluster id -> feature -> mean in original units
        scaled: cluster id -> feature -> standardized mean and variance
    """
    raw_means: Dict[int, Dict[str, float]]
    scaled: Dict[int, Dict[str, ScaledStat]]


def _grouped(values: np.ndarray, labels: np.ndarray, k: int, columns: Sequence[str]):
    frame = pd.DataFrame(values, columns=list(columns))
    groups = frame.groupby(labels)
    all_ids = pd.RangeIndex(k)

    means = groups.mean().reindex(all_ids).fillna(0.0)
    # var() is NaN for single-member clusters
    variances = groups.var(ddof=1).reindex(all_ids).fillna(0.0)
    return means, variances


def cluster_statistics(raw_values: np.ndarray,
                       scaled_values: np.ndarray,
                       labels: np.ndarray,
                       k: int,
                       columns: Sequence[str]) -> ClusterStats:
    """
    Compute per-cluster means and variances.

    All three arrays must be index aligned with the points that were
    clustered. Clusters without members report 0 for every statistic.

    Args:
        raw_values: Feature values in original units
        scaled_values: Standardized feature values
        labels: Cluster label per point, in [0, k)
        k: Number of clusters
        columns: Feature names, in column order

    Returns:
        ClusterStats
    """
    raw_values = np.asarray(raw_values, dtype=float)
    scaled_values = np.asarray(scaled_values, dtype=float)
    labels = np.asarray(labels)

    if not (raw_values.shape == scaled_values.shape and raw_values.shape[0] == labels.shape[0]):
        raise InvalidInputError(
            f"Misaligned inputs: raw {raw_values.shape}, scaled {scaled_values.shape}, "
            f"labels {labels.shape}"
        )

    raw_means, _ = _grouped(raw_values, labels, k, columns)
    scaled_means, scaled_vars = _grouped(scaled_values, labels, k, columns)

    raw = {
        int(cluster_id): {col: float(raw_means.at[cluster_id, col]) for col in columns}
        for cluster_id in range(k)
    }
    scaled = {
        int(cluster_id): {
            col: ScaledStat(
                mean=float(scaled_means.at[cluster_id, col]),
                variance=float(scaled_vars.at[cluster_id, col])
            )
            for col in columns
        }
        for cluster_id in range(k)
    }

    return ClusterStats(raw_means=raw, scaled=scaled)

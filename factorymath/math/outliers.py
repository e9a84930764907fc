"""
Density-based outlier detection.

Each point is scored by its local sparsity: the mean distance to its nearest
neighbors. Points whose score lies more than a few standard deviations above
the population mean are flagged. The neighbor search is a full pairwise
distance matrix, so memory and time grow with the square of the row count.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
from scipy.spatial.distance import pdist, squareform

logger = logging.getLogger(__name__)

DEFAULT_NEIGHBORS = 5
DEFAULT_STD_FACTOR = 2.0
DEFAULT_MIN_ROWS = 5


@dataclass(frozen=True)
class OutlierReport:
    """
    Result of an outlier scan.

    Attributes:
        scores: Local sparsity score per point (empty if the scan was skipped)
        threshold: Score above which a point is an outlier (None if skipped)
        indices: Sorted positions of the flagged points
    """
    scores: np.ndarray
    threshold: Optional[float]
    indices: Tuple[int, ...]

    @property
    def skipped(self) -> bool:
        return self.threshold is None


def local_sparsity_scores(points: np.ndarray, n_neighbors: int = DEFAULT_NEIGHBORS) -> np.ndarray:
    """
    Score each point by the mean distance to its nearest neighbors.

    Args:
        points: Point coordinates (rows x dimensions)
        n_neighbors: Number of neighbors to average (fewer if the
            population is smaller)

    Returns:
        Score per point
    """
    points = np.asarray(points, dtype=float)
    n_points = points.shape[0]
    if n_points < 2:
        return np.zeros(n_points)

    dists = squareform(pdist(points))
    np.fill_diagonal(dists, np.inf)

    k = min(n_neighbors, n_points - 1)
    nearest = np.partition(dists, k - 1, axis=1)[:, :k]
    return nearest.mean(axis=1)


def detect_outliers(points: np.ndarray,
                    n_neighbors: int = DEFAULT_NEIGHBORS,
                    std_factor: float = DEFAULT_STD_FACTOR,
                    min_rows: int = DEFAULT_MIN_ROWS) -> OutlierReport:
    """
    Flag points whose local sparsity is unusually high.

    The threshold is mean(score) + std_factor * std(score), using the
    population standard deviation. Populations smaller than min_rows are
    not scanned.

    Args:
        points: Point coordinates, normally a 2D PCA projection
        n_neighbors: Neighbors used for the sparsity score
        std_factor: Number of standard deviations above the mean
        min_rows: Smallest population that is scanned

    Returns:
        OutlierReport
    """
    points = np.asarray(points, dtype=float)
    n_points = points.shape[0]

    if n_points < min_rows:
        logger.info(f"Skipping outlier detection for {n_points} rows (minimum {min_rows})")
        return OutlierReport(scores=np.zeros(0), threshold=None, indices=())

    scores = local_sparsity_scores(points, n_neighbors)
    threshold = float(scores.mean() + std_factor * scores.std())
    if np.ptp(scores) == 0:
        # Uniform density; rounding in the mean must not flag anything
        indices = ()
    else:
        indices = tuple(int(i) for i in np.flatnonzero(scores > threshold))

    logger.info(f"Outlier threshold {threshold:.4f}, flagged {len(indices)} of {n_points} rows")
    scores.flags.writeable = False
    return OutlierReport(scores=scores, threshold=threshold, indices=indices)

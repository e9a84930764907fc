"""
Result values returned by the analysis pipeline.

Results are frozen dataclasses whose arrays are read-only, so a result can be
handed to any number of consumers without defensive copies.
"""

from dataclasses import dataclass
from typing import Dict, Tuple

import numpy as np
import pandas as pd

from factorymath.math.corr import correlation_to_dict
from factorymath.math.selection import KMetric
from factorymath.math.stats import ScaledStat

EXCLUDED_LABEL = -1


@dataclass(frozen=True)
class CorrelationResult:
    """
    Pairwise Pearson correlations for a set of columns.

    Attributes:
        matrix: Square DataFrame indexed and columned by column name
        columns: Columns in selection order
        dataset_label: Label of the dataset the rows came from
    """
    matrix: pd.DataFrame
    columns: Tuple[str, ...]
    dataset_label: str

    def to_dict(self) -> Dict[str, Dict[str, float]]:
        """Nested mapping column A -> column B -> coefficient."""
        return correlation_to_dict(self.matrix)


@dataclass(frozen=True)
class ProjectedPoint:
    """
    One input row in the two-dimensional PCA view.

    `cluster` is EXCLUDED_LABEL for rows left out of clustering.
    """
    x: float
    y: float
    cluster: int
    is_outlier: bool
    index: int


@dataclass(frozen=True)
class SilhouetteSample:
    """Silhouette value of one clustered point."""
    cluster: int
    value: float


@dataclass(frozen=True)
class ClusteringResult:
    """
    Everything a clustering run produced.

    Arrays indexed by clustered position (labels, silhouette_samples,
    clustered_data) map back to input rows through index_mapping; `points`
    covers every input row in input order.
    """
    k: int
    labels: np.ndarray
    centroids: np.ndarray
    points: Tuple[ProjectedPoint, ...]
    outlier_indices: Tuple[int, ...]
    stats: Dict[int, Dict[str, float]]
    scaled_stats: Dict[int, Dict[str, ScaledStat]]
    metrics: Tuple[KMetric, ...]
    silhouette_samples: Tuple[SilhouetteSample, ...]
    mean_silhouette: float
    log: str
    selected_columns: Tuple[str, ...]
    exclude_outliers: bool
    index_mapping: Tuple[int, ...]
    clustered_data: np.ndarray
    converged: bool

    @property
    def full_labels(self) -> np.ndarray:
        """Label for every input row, EXCLUDED_LABEL for excluded rows."""
        return np.array([point.cluster for point in self.points], dtype=int)

    def cluster_sizes(self) -> Dict[int, int]:
        """Number of clustered rows per cluster id."""
        counts = np.bincount(self.labels, minlength=self.k)
        return {cluster_id: int(count) for cluster_id, count in enumerate(counts)}

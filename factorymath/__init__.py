"""
Factorymath package for industrial measurement analysis.

This package turns tabular measurement rows into a Pearson correlation
report and a clustering report with outlier detection, automatic choice
of the number of clusters, a PCA view and per-cluster statistics.
"""

__version__ = '0.1.0'

from factorymath.analysis.pipeline import (
    compute_correlation, compute_clustering, compute_clustering_at_k
)
from factorymath.components.config import AnalysisSettings, Config
from factorymath.exceptions import FactoryMathError, InvalidInputError

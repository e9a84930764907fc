"""
Core mathematical algorithms for factorymath.

This package contains implementations of:
- Feature matrix extraction and z-score scaling
- Principal Component Analysis (PCA)
- Density-based outlier detection
- K-means clustering, silhouette scoring and cluster-count selection
- Per-cluster statistics
- Correlation analysis
"""

from factorymath.math.feature_matrix import FeatureMatrix, build_feature_matrix
from factorymath.math.scaling import ScalingParameters, fit_scaling, apply_scaling, standardize
from factorymath.math.pca import PCAModel, fit_pca, project, pca_project
from factorymath.math.outliers import OutlierReport, detect_outliers, local_sparsity_scores
from factorymath.math.clusters import KMeansResult, kmeans, silhouette, silhouette_samples
from factorymath.math.selection import KMetric, KSelection, select_k
from factorymath.math.stats import ClusterStats, ScaledStat, cluster_statistics
from factorymath.math.corr import correlation_matrix, pearson_matrix

__all__ = [
    'FeatureMatrix',
    'build_feature_matrix',
    'ScalingParameters',
    'fit_scaling',
    'apply_scaling',
    'standardize',
    'PCAModel',
    'fit_pca',
    'project',
    'pca_project',
    'OutlierReport',
    'detect_outliers',
    'local_sparsity_scores',
    'KMeansResult',
    'kmeans',
    'silhouette',
    'silhouette_samples',
    'KMetric',
    'KSelection',
    'select_k',
    'ClusterStats',
    'ScaledStat',
    'cluster_statistics',
    'correlation_matrix',
    'pearson_matrix',
]

"""
Analysis pipeline for factorymath.

This module composes the math building blocks into the two operations
offered to callers: a correlation report and a clustering report. Each call
is a pure batch computation over the rows it is given; nothing is cached or
shared between calls.
"""

import logging
from typing import Optional, Sequence, Tuple

import numpy as np

from factorymath.analysis.results import (
    EXCLUDED_LABEL, ClusteringResult, CorrelationResult, ProjectedPoint, SilhouetteSample
)
from factorymath.analysis.runlog import RunLog
from factorymath.components.config import AnalysisSettings
from factorymath.exceptions import InvalidInputError
from factorymath.math.clusters import kmeans, silhouette_samples
from factorymath.math.corr import correlation_matrix
from factorymath.math.feature_matrix import build_feature_matrix
from factorymath.math.outliers import detect_outliers
from factorymath.math.pca import pca_project
from factorymath.math.scaling import standardize
from factorymath.math.selection import KMetric, select_k
from factorymath.math.stats import cluster_statistics
from factorymath.utils.general import Row

logger = logging.getLogger(__name__)

MIN_CORRELATION_COLUMNS = 2
MIN_CLUSTERING_COLUMNS = 2


def compute_correlation(rows: Sequence[Row],
                        selected_columns: Sequence[str],
                        dataset_label: str) -> CorrelationResult:
    """
    Compute pairwise Pearson correlations between the selected columns.

    Args:
        rows: Measurement rows
        selected_columns: Columns to correlate
        dataset_label: Label identifying the dataset in reports

    Returns:
        CorrelationResult
    """
    columns = tuple(selected_columns)
    if len(columns) < MIN_CORRELATION_COLUMNS:
        raise InvalidInputError(
            f"Correlation needs at least {MIN_CORRELATION_COLUMNS} columns, got {len(columns)}"
        )
    if len(rows) == 0:
        raise InvalidInputError("Correlation needs at least one row")

    fmat = build_feature_matrix(rows, columns)
    matrix = correlation_matrix(fmat)

    logger.info(f"Computed {len(columns)}x{len(columns)} correlation matrix "
                f"over {len(rows)} rows for '{dataset_label}'")

    return CorrelationResult(matrix=matrix, columns=columns, dataset_label=dataset_label)


def compute_clustering(rows: Sequence[Row],
                       selected_columns: Sequence[str],
                       exclude_outliers: bool = False,
                       *,
                       settings: Optional[AnalysisSettings] = None,
                       rng: Optional[np.random.Generator] = None) -> ClusteringResult:
    """
    Cluster the rows, choosing the number of clusters by silhouette.

    Args:
        rows: Measurement rows
        selected_columns: Feature columns to cluster on
        exclude_outliers: Leave detected outliers out of clustering
        settings: Tuning parameters (defaults if omitted)
        rng: Random source; seeded from settings.random_seed if omitted

    Returns:
        ClusteringResult
    """
    return _run_clustering(rows, selected_columns, None, exclude_outliers, settings, rng)


def compute_clustering_at_k(rows: Sequence[Row],
                            selected_columns: Sequence[str],
                            k: int,
                            exclude_outliers: bool = False,
                            *,
                            settings: Optional[AnalysisSettings] = None,
                            rng: Optional[np.random.Generator] = None) -> ClusteringResult:
    """
    Cluster the rows into a caller-chosen number of clusters.

    This is the path used to re-run an analysis in the other outlier mode
    while keeping the previously selected k.

    Args:
        rows: Measurement rows
        selected_columns: Feature columns to cluster on
        k: Number of clusters
        exclude_outliers: Leave detected outliers out of clustering
        settings: Tuning parameters (defaults if omitted)
        rng: Random source; seeded from settings.random_seed if omitted

    Returns:
        ClusteringResult
    """
    if k < 2:
        raise InvalidInputError(f"Number of clusters must be at least 2, got {k}")
    return _run_clustering(rows, selected_columns, k, exclude_outliers, settings, rng)


def _split_rows(n_rows: int,
                outlier_indices: Tuple[int, ...],
                exclude_outliers: bool) -> Tuple[int, ...]:
    """Index mapping from clustered position to original row index."""
    if not exclude_outliers:
        return tuple(range(n_rows))
    excluded = set(outlier_indices)
    return tuple(i for i in range(n_rows) if i not in excluded)


def _run_clustering(rows: Sequence[Row],
                    selected_columns: Sequence[str],
                    k: Optional[int],
                    exclude_outliers: bool,
                    settings: Optional[AnalysisSettings],
                    rng: Optional[np.random.Generator]) -> ClusteringResult:
    settings = settings or AnalysisSettings()
    if rng is None:
        rng = np.random.default_rng(settings.random_seed)

    columns = tuple(selected_columns)
    n_rows = len(rows)

    if n_rows == 0:
        raise InvalidInputError("Clustering needs at least one row")
    if len(columns) < MIN_CLUSTERING_COLUMNS:
        raise InvalidInputError(
            f"Clustering needs at least {MIN_CLUSTERING_COLUMNS} columns, got {len(columns)}"
        )
    if k is None and n_rows < 3:
        raise InvalidInputError(
            f"Choosing the number of clusters needs at least 3 rows, got {n_rows}"
        )

    run_log = RunLog(logger)
    run_log.separator()
    run_log.stage("Starting K-Means cluster analysis")
    run_log.stage(f"Mode: {'outliers excluded' if exclude_outliers else 'outliers kept'}")
    run_log.stage(f"Feature columns: {', '.join(columns)}")

    if n_rows > settings.max_rows:
        run_log.warning(f"{n_rows} rows exceeds the recommended maximum of {settings.max_rows}; "
                        f"pairwise distance stages will be slow")

    # 1. Feature matrix and scaling on the full population
    fmat = build_feature_matrix(rows, columns)
    raw_values = fmat.values
    scaled, _ = standardize(raw_values)

    # 2. PCA on the full population, used for the view and outlier scoring
    pca_model, projection = pca_project(scaled, settings.pca_iters, rng)
    run_log.stage(
        "PCA explained variance: "
        + ', '.join(f"{v:.4f}" for v in pca_model.explained_variance)
    )

    # 3. Outliers
    outlier_points = projection if settings.outlier_space == 'projection' else scaled
    report = detect_outliers(
        outlier_points,
        n_neighbors=settings.outlier_neighbors,
        std_factor=settings.outlier_std_factor,
        min_rows=settings.outlier_min_rows
    )
    outlier_indices = report.indices
    if report.skipped:
        run_log.stage(f"Outlier detection skipped: fewer than {settings.outlier_min_rows} rows")
    else:
        run_log.stage(f"Outlier detection complete. Found {len(outlier_indices)} outliers")

    # 4. Rows that take part in clustering
    # Row names of the subset are the original row indices
    clustered_fmat = fmat.row_subset(_split_rows(n_rows, outlier_indices, exclude_outliers))
    index_mapping = tuple(int(name) for name in clustered_fmat.rownames())
    clustered = scaled[np.array(index_mapping, dtype=int)]
    clustered_raw = clustered_fmat.values
    n_clustered = len(clustered_fmat)

    if exclude_outliers:
        run_log.stage(f"Outliers removed, clustering {n_clustered} rows")
    else:
        run_log.stage(f"Clustering all {n_clustered} rows")

    # 5. Number of clusters
    if k is None:
        if n_clustered < 3:
            raise InvalidInputError(
                f"Only {n_clustered} rows remain after removing outliers; "
                f"choosing the number of clusters needs at least 3"
            )
        selection = select_k(
            clustered,
            rng,
            k_max=settings.k_max,
            max_iters=settings.kmeans_max_iters,
            tol=settings.kmeans_tol,
            n_jobs=settings.n_jobs
        )
        k = selection.best_k
        metrics = selection.metrics
        for metric in metrics:
            if not metric.converged:
                run_log.warning(f"k-means trial for k={metric.k} did not converge within "
                                f"{settings.kmeans_max_iters} iterations")
        run_log.stage(f"Silhouette evaluation complete. Suggested k: {k}")
    else:
        if n_clustered < k:
            raise InvalidInputError(f"Cannot form {k} clusters from {n_clustered} rows")
        metrics = None
        run_log.stage(f"Using requested k: {k}")

    # 6. Final fit
    fit = kmeans(clustered, k, rng, settings.kmeans_max_iters, settings.kmeans_tol)
    if not fit.converged:
        run_log.warning(f"k-means did not converge within {settings.kmeans_max_iters} iterations; "
                        f"using the last iteration")

    sil_values = silhouette_samples(clustered, fit.labels)
    mean_silhouette = float(sil_values.mean()) if sil_values.size else 0.0
    run_log.stage(f"Clustering complete. Mean silhouette: {mean_silhouette:.4f}")

    if metrics is None:
        metrics = (KMetric(k=k, inertia=fit.inertia, silhouette=mean_silhouette,
                           converged=fit.converged),)

    # 7. Full-population view
    labels_by_row = dict(zip(index_mapping, (int(label) for label in fit.labels)))
    outlier_set = set(outlier_indices)
    points = tuple(
        ProjectedPoint(
            x=float(projection[i, 0]),
            y=float(projection[i, 1]),
            cluster=labels_by_row.get(i, EXCLUDED_LABEL),
            is_outlier=i in outlier_set,
            index=i
        )
        for i in range(n_rows)
    )

    # 8. Per-cluster statistics
    stats = cluster_statistics(clustered_raw, clustered, fit.labels, k, columns)
    sizes = np.bincount(fit.labels, minlength=k)
    run_log.stage("Cluster sizes: " + ', '.join(f"{i}={int(size)}" for i, size in enumerate(sizes)))

    run_log.separator()
    run_log.stage("Analysis finished successfully.")

    clustered.flags.writeable = False

    return ClusteringResult(
        k=k,
        labels=fit.labels,
        centroids=fit.centroids,
        points=points,
        outlier_indices=outlier_indices,
        stats=stats.raw_means,
        scaled_stats=stats.scaled,
        metrics=tuple(metrics),
        silhouette_samples=tuple(
            SilhouetteSample(cluster=int(label), value=float(value))
            for label, value in zip(fit.labels, sil_values)
        ),
        mean_silhouette=mean_silhouette,
        log=run_log.text(),
        selected_columns=columns,
        exclude_outliers=exclude_outliers,
        index_mapping=index_mapping,
        clustered_data=clustered,
        converged=fit.converged
    )

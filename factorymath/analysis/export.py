"""
Tabular and JSON views of analysis results.

The tables mirror the sheets users download from the analysis front end; the
dictionaries are plain JSON-serializable structures.
"""

import json
from typing import Any, Dict, Sequence

import pandas as pd

from factorymath.analysis.results import EXCLUDED_LABEL, ClusteringResult, CorrelationResult
from factorymath.utils.general import Row

EXCLUDED_TEXT = 'Excluded (Outlier)'


def correlation_table(result: CorrelationResult) -> pd.DataFrame:
    """
    Correlation matrix as a table with one row per metric.

    Args:
        result: Correlation result

    Returns:
        DataFrame with a leading 'Metric' column
    """
    table = result.matrix.copy()
    table.index.name = 'Metric'
    return table.reset_index()


def cluster_stats_table(result: ClusteringResult) -> pd.DataFrame:
    """
    Raw-scale cluster centers, one row per cluster.

    Args:
        result: Clustering result

    Returns:
        DataFrame with a 'Cluster' column followed by one column per feature
    """
    records = [
        {'Cluster': cluster_id, **result.stats[cluster_id]}
        for cluster_id in sorted(result.stats)
    ]
    return pd.DataFrame(records, columns=['Cluster', *result.selected_columns])


def scaled_stats_table(result: ClusteringResult) -> pd.DataFrame:
    """
    Standardized means and variances, one row per feature.

    Args:
        result: Clustering result

    Returns:
        DataFrame with 'Feature' and cluster{i}_mean / cluster{i}_var columns
    """
    records = []
    for col in result.selected_columns:
        record = {'Feature': col}
        for cluster_id in sorted(result.scaled_stats):
            stat = result.scaled_stats[cluster_id][col]
            record[f'cluster{cluster_id}_mean'] = stat.mean
            record[f'cluster{cluster_id}_var'] = stat.variance
        records.append(record)
    return pd.DataFrame(records)


def tagged_rows_table(rows: Sequence[Row], result: ClusteringResult) -> pd.DataFrame:
    """
    Input rows annotated with their cluster, outlier flag and PCA position.

    Args:
        rows: The rows the result was computed from
        result: Clustering result

    Returns:
        DataFrame with the original columns plus Cluster_Label, Is_Outlier,
        PCA_X and PCA_Y
    """
    if len(rows) != len(result.points):
        raise ValueError(f"Result covers {len(result.points)} rows, got {len(rows)}")

    records = []
    for row, point in zip(rows, result.points):
        records.append({
            **row,
            'Cluster_Label': EXCLUDED_TEXT if point.cluster == EXCLUDED_LABEL else point.cluster,
            'Is_Outlier': 'Yes' if point.is_outlier else 'No',
            'PCA_X': point.x,
            'PCA_Y': point.y,
        })
    return pd.DataFrame(records)


def correlation_to_export(result: CorrelationResult) -> Dict[str, Any]:
    """
    Prepare a correlation result for export to JSON.

    Args:
        result: Correlation result

    Returns:
        Export-ready dictionary
    """
    return {
        'dataset_label': result.dataset_label,
        'columns': list(result.columns),
        'matrix': result.to_dict(),
    }


def clustering_to_export(result: ClusteringResult) -> Dict[str, Any]:
    """
    Prepare a clustering result for export to JSON.

    Args:
        result: Clustering result

    Returns:
        Export-ready dictionary
    """
    return {
        'k': result.k,
        'selected_columns': list(result.selected_columns),
        'exclude_outliers': result.exclude_outliers,
        'labels': result.labels.tolist(),
        'full_labels': result.full_labels.tolist(),
        'cluster_sizes': {str(cid): size for cid, size in result.cluster_sizes().items()},
        'centroids': result.centroids.tolist(),
        'index_mapping': list(result.index_mapping),
        'outlier_indices': list(result.outlier_indices),
        'points': [
            {'x': p.x, 'y': p.y, 'cluster': p.cluster, 'is_outlier': p.is_outlier, 'index': p.index}
            for p in result.points
        ],
        'stats': {str(cid): means for cid, means in result.stats.items()},
        'scaled_stats': {
            str(cid): {col: {'mean': s.mean, 'variance': s.variance} for col, s in per_col.items()}
            for cid, per_col in result.scaled_stats.items()
        },
        'metrics': [
            {'k': m.k, 'inertia': m.inertia, 'silhouette': m.silhouette, 'converged': m.converged}
            for m in result.metrics
        ],
        'silhouette_samples': [
            {'cluster': s.cluster, 'value': s.value} for s in result.silhouette_samples
        ],
        'mean_silhouette': result.mean_silhouette,
        'converged': result.converged,
        'log': result.log,
    }


def save_json(data: Dict[str, Any], filepath: str) -> None:
    """
    Save an export dictionary to a JSON file.

    Args:
        data: Result of correlation_to_export or clustering_to_export
        filepath: Path to save the JSON file
    """
    with open(filepath, 'w', encoding='utf-8') as f:
        json.dump(data, f, ensure_ascii=False, indent=2)

"""
Tests for the correlation and clustering operations.
"""

import pytest
import numpy as np
import sys
import os

# Add the parent directory to the path to import the module
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from factorymath.analysis.pipeline import (
    compute_correlation, compute_clustering, compute_clustering_at_k
)
from factorymath.analysis.results import EXCLUDED_LABEL
from factorymath.analysis.runlog import SEPARATOR
from factorymath.components.config import AnalysisSettings
from factorymath.exceptions import InvalidInputError
from factorymath.math.clusters import silhouette


def seeded(seed=42):
    return np.random.default_rng(seed)


class TestComputeCorrelation:
    """Tests for compute_correlation."""

    def test_basic(self):
        """The matrix covers the selected columns in selection order."""
        rows = [{'a': 1, 'b': 2, 'c': 9}, {'a': 2, 'b': 4, 'c': 7}, {'a': 3, 'b': 7, 'c': 1}]

        result = compute_correlation(rows, ['b', 'a'], 'plant_data')

        assert result.columns == ('b', 'a')
        assert list(result.matrix.index) == ['b', 'a']
        assert result.dataset_label == 'plant_data'
        assert result.matrix.at['a', 'b'] > 0.9

    def test_symmetric_unit_diagonal(self):
        """The matrix is symmetric with 1.0 on the diagonal."""
        rng = seeded()
        rows = [{'x': rng.normal(), 'y': rng.normal(), 'z': 'bad'} for _ in range(15)]

        matrix = compute_correlation(rows, ['x', 'y', 'z'], 'd').matrix.to_numpy()

        assert np.array_equal(matrix, matrix.T)
        assert np.array_equal(np.diag(matrix), np.ones(3))

    def test_constant_column(self):
        """A constant column correlates 0 with every other column."""
        rows = [{'const': 0.7, 'v': float(i), 'w': float(i % 3)} for i in range(10)]

        result = compute_correlation(rows, ['const', 'v', 'w'], 'd')

        assert result.matrix.at['const', 'v'] == 0.0
        assert result.matrix.at['w', 'const'] == 0.0
        assert result.matrix.at['const', 'const'] == 1.0

    def test_two_identical_rows(self):
        """Two identical rows still produce a matrix."""
        rows = [{'a': 1.0, 'b': 2.0, 'c': 3.0}] * 2

        result = compute_correlation(rows, ['a', 'b', 'c'], 'd')

        assert np.array_equal(result.matrix.to_numpy(), np.eye(3))

    def test_to_dict(self):
        """The result converts to a nested mapping."""
        rows = [{'a': 1, 'b': 3}, {'a': 2, 'b': 1}]

        data = compute_correlation(rows, ['a', 'b'], 'd').to_dict()

        assert data['a']['b'] == data['b']['a']
        assert np.isclose(data['a']['b'], -1.0)

    def test_invalid_input(self):
        """Too few columns or no rows are rejected."""
        with pytest.raises(InvalidInputError):
            compute_correlation([{'a': 1}], ['a'], 'd')

        with pytest.raises(InvalidInputError):
            compute_correlation([], ['a', 'b'], 'd')

        # InvalidInputError is also a ValueError
        with pytest.raises(ValueError):
            compute_correlation([], ['a', 'b'], 'd')


class TestComputeClustering:
    """Tests for compute_clustering."""

    def test_two_blobs_outlier_excluded(self, two_blob_rows_with_outlier):
        """The injected point is flagged and excluded, and k = 2 is chosen."""
        result = compute_clustering(two_blob_rows_with_outlier, ['a', 'b'],
                                    exclude_outliers=True, rng=seeded())

        assert result.outlier_indices == (20,)
        assert result.k == 2
        assert result.mean_silhouette > 0.5
        assert result.exclude_outliers

        assert result.index_mapping == tuple(range(20))
        assert result.labels.shape == (20,)
        assert result.clustered_data.shape == (20, 2)

        # The two blobs end up in different clusters
        assert len(set(result.labels[:10])) == 1
        assert len(set(result.labels[10:])) == 1
        assert result.labels[0] != result.labels[10]

    def test_excluded_rows_view(self, two_blob_rows_with_outlier):
        """Outliers are labelled -1 and flagged; every other row has a real label."""
        result = compute_clustering(two_blob_rows_with_outlier, ['a', 'b'],
                                    exclude_outliers=True, rng=seeded())

        assert len(result.points) == 21
        for point in result.points:
            if point.index in result.outlier_indices:
                assert point.cluster == EXCLUDED_LABEL
                assert point.is_outlier
            else:
                assert 0 <= point.cluster < result.k
                assert not point.is_outlier

        assert list(result.full_labels) == [p.cluster for p in result.points]

    def test_outliers_kept(self, two_blob_rows_with_outlier):
        """Without exclusion every row is labelled and still flagged."""
        result = compute_clustering(two_blob_rows_with_outlier, ['a', 'b'],
                                    exclude_outliers=False, rng=seeded())

        assert result.outlier_indices == (20,)
        assert result.index_mapping == tuple(range(21))
        assert all(point.cluster >= 0 for point in result.points)
        assert result.points[20].is_outlier
        assert sum(result.cluster_sizes().values()) == 21

    def test_mean_silhouette_recomputed(self, two_blob_rows_with_outlier):
        """The reported mean silhouette matches a fresh computation."""
        for exclude in (False, True):
            result = compute_clustering(two_blob_rows_with_outlier, ['a', 'b'],
                                        exclude_outliers=exclude, rng=seeded())

            assert np.isclose(result.mean_silhouette,
                              silhouette(result.clustered_data, result.labels))
            assert np.isclose(result.mean_silhouette,
                              np.mean([s.value for s in result.silhouette_samples]))

    def test_k_in_range(self):
        """The chosen k lies in [2, min(10, n - 1)]."""
        for n_rows in (3, 4, 7, 30):
            rng = seeded(n_rows)
            rows = [{'a': rng.normal(), 'b': rng.normal(), 'c': rng.normal()} for _ in range(n_rows)]

            result = compute_clustering(rows, ['a', 'b', 'c'], rng=seeded())

            assert 2 <= result.k <= min(10, n_rows - 1)
            assert [m.k for m in result.metrics] == list(range(2, min(10, n_rows - 1) + 1))

    def test_stats_cover_every_cluster(self, two_blob_rows_with_outlier):
        """Statistics exist for every cluster id and selected column."""
        result = compute_clustering(two_blob_rows_with_outlier, ['a', 'b'],
                                    exclude_outliers=True, rng=seeded())

        assert sorted(result.stats) == list(range(result.k))
        assert sorted(result.scaled_stats) == list(range(result.k))
        for cluster_id in range(result.k):
            assert set(result.stats[cluster_id]) == {'a', 'b'}

        # Raw means are the blob centers
        centers = sorted((round(s['a']), round(s['b'])) for s in result.stats.values())
        assert centers == [(0, 0), (10, 10)]

    def test_constant_column(self, two_blob_rows):
        """A constant feature does not disturb the clustering."""
        rows = [dict(row, c=5.0) for row in two_blob_rows]

        result = compute_clustering(rows, ['a', 'b', 'c'], rng=seeded())

        assert result.k == 2
        assert np.all(result.clustered_data[:, 2] == 0.0)
        for cluster_id in range(result.k):
            assert result.scaled_stats[cluster_id]['c'].mean == 0.0
            assert result.scaled_stats[cluster_id]['c'].variance == 0.0
            assert result.stats[cluster_id]['c'] == 5.0

    def test_scaled_outlier_space(self, two_blob_rows_with_outlier):
        """Scoring outliers in the scaled space flags the same point here."""
        settings = AnalysisSettings(outlier_space='scaled')

        result = compute_clustering(two_blob_rows_with_outlier, ['a', 'b'],
                                    settings=settings, rng=seeded())

        assert result.outlier_indices == (20,)

    def test_reproducible(self, two_blob_rows_with_outlier):
        """The same seed gives the same result."""
        a = compute_clustering(two_blob_rows_with_outlier, ['a', 'b'], rng=seeded(3))
        b = compute_clustering(two_blob_rows_with_outlier, ['a', 'b'], rng=seeded(3))

        assert np.array_equal(a.labels, b.labels)
        assert a.points == b.points
        assert a.log == b.log

    def test_seed_from_settings(self, two_blob_rows):
        """Without an rng the seed comes from the settings."""
        settings = AnalysisSettings(random_seed=7)

        a = compute_clustering(two_blob_rows, ['a', 'b'], settings=settings)
        b = compute_clustering(two_blob_rows, ['a', 'b'], settings=settings)

        assert a.points == b.points

    def test_small_population_skips_outliers(self):
        """Below five rows outlier detection is skipped."""
        rows = [{'a': 0, 'b': 0}, {'a': 1, 'b': 0}, {'a': 50, 'b': 50}, {'a': 51, 'b': 50}]

        result = compute_clustering(rows, ['a', 'b'], exclude_outliers=True, rng=seeded())

        assert result.outlier_indices == ()
        assert result.index_mapping == (0, 1, 2, 3)
        assert 'Outlier detection skipped' in result.log

    def test_run_log(self, two_blob_rows_with_outlier):
        """The run log records the stages of the analysis."""
        result = compute_clustering(two_blob_rows_with_outlier, ['a', 'b'],
                                    exclude_outliers=True, rng=seeded())

        lines = result.log.splitlines()
        assert lines[0] == SEPARATOR
        assert 'Found 1 outliers' in result.log
        assert 'Suggested k: 2' in result.log
        assert lines[-1] == 'Analysis finished successfully.'

    def test_large_input_warning(self, two_blob_rows):
        """Exceeding the recommended row count is noted in the log."""
        settings = AnalysisSettings(max_rows=10)

        result = compute_clustering(two_blob_rows, ['a', 'b'], settings=settings, rng=seeded())

        assert 'WARNING:' in result.log

    def test_non_convergence_logged(self):
        """Every k-means trial stopped by the iteration cap gets a warning line."""
        data = np.random.default_rng(19).standard_normal((30, 2))
        rows = [{'a': float(x), 'b': float(y)} for x, y in data]
        settings = AnalysisSettings(kmeans_max_iters=1, kmeans_tol=0.0)

        result = compute_clustering(rows, ['a', 'b'], settings=settings, rng=seeded())

        stalled = [m.k for m in result.metrics if not m.converged]
        assert stalled
        for k in stalled:
            assert f"WARNING: k-means trial for k={k} did not converge within 1 iterations" in result.log
        assert not result.converged
        assert 'WARNING: k-means did not converge' in result.log

    def test_converged_run_has_no_warning(self, two_blob_rows):
        """A clean run records every trial as converged."""
        result = compute_clustering(two_blob_rows, ['a', 'b'], rng=seeded())

        assert all(m.converged for m in result.metrics)
        assert 'WARNING:' not in result.log

    def test_result_immutable(self, two_blob_rows):
        """Result fields and arrays cannot be changed."""
        result = compute_clustering(two_blob_rows, ['a', 'b'], rng=seeded())

        with pytest.raises(AttributeError):
            result.k = 5
        with pytest.raises(ValueError):
            result.labels[0] = 1
        with pytest.raises(ValueError):
            result.clustered_data[0, 0] = 1.0

    def test_rows_not_modified(self, two_blob_rows):
        """The input rows are left untouched."""
        rows = [dict(row, note='x') for row in two_blob_rows]
        snapshot = [dict(row) for row in rows]

        compute_clustering(rows, ['a', 'b', 'note'], rng=seeded())

        assert rows == snapshot

    def test_two_identical_rows(self):
        """Two rows are too few to choose a number of clusters."""
        rows = [{'a': 1.0, 'b': 2.0, 'c': 3.0}] * 2

        with pytest.raises(InvalidInputError):
            compute_clustering(rows, ['a', 'b', 'c'], rng=seeded())

    def test_identical_rows(self):
        """Many identical rows still produce a result."""
        rows = [{'a': 1.0, 'b': 2.0}] * 6

        result = compute_clustering(rows, ['a', 'b'], rng=seeded())

        assert result.k == 2
        assert result.mean_silhouette == 0.0
        assert result.outlier_indices == ()

    def test_invalid_input(self, two_blob_rows):
        """Empty rows and too few columns are rejected."""
        with pytest.raises(InvalidInputError):
            compute_clustering([], ['a', 'b'])

        with pytest.raises(InvalidInputError):
            compute_clustering(two_blob_rows, ['a'])

    def test_everything_excluded(self, two_blob_rows):
        """Excluding too many rows to cluster is rejected."""
        settings = AnalysisSettings(outlier_std_factor=-100.0)

        with pytest.raises(InvalidInputError):
            compute_clustering(two_blob_rows, ['a', 'b'], exclude_outliers=True,
                               settings=settings, rng=seeded())


class TestComputeClusteringAtK:
    """Tests for compute_clustering_at_k."""

    def test_fixed_k(self, two_blob_rows_with_outlier):
        """The requested k is used and reported as the only metric."""
        result = compute_clustering_at_k(two_blob_rows_with_outlier, ['a', 'b'], 3,
                                         exclude_outliers=True, rng=seeded())

        assert result.k == 3
        assert set(result.labels) <= {0, 1, 2}
        assert len(result.metrics) == 1
        assert result.metrics[0].k == 3
        assert result.metrics[0].silhouette == result.mean_silhouette
        assert 'Using requested k: 3' in result.log

    def test_mode_switch_keeps_k(self, two_blob_rows_with_outlier):
        """Re-running in the other mode with the chosen k keeps it."""
        first = compute_clustering(two_blob_rows_with_outlier, ['a', 'b'],
                                   exclude_outliers=True, rng=seeded())
        second = compute_clustering_at_k(two_blob_rows_with_outlier, ['a', 'b'], first.k,
                                         exclude_outliers=False, rng=seeded())

        assert second.k == first.k
        assert second.outlier_indices == first.outlier_indices
        assert second.points[20].cluster != EXCLUDED_LABEL

    def test_two_rows(self):
        """A fixed k of 2 works on two distinct rows."""
        rows = [{'a': 0.0, 'b': 1.0}, {'a': 3.0, 'b': -1.0}]

        result = compute_clustering_at_k(rows, ['a', 'b'], 2, rng=seeded())

        assert sorted(result.labels) == [0, 1]

    def test_invalid_k(self, two_blob_rows):
        """k below 2 or above the row count is rejected."""
        with pytest.raises(InvalidInputError):
            compute_clustering_at_k(two_blob_rows, ['a', 'b'], 1)

        with pytest.raises(InvalidInputError):
            compute_clustering_at_k(two_blob_rows, ['a', 'b'], 21)

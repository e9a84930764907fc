"""
K-means clustering implementation for factorymath.

This module provides Lloyd's algorithm with k-means++ seeding and the
silhouette coefficient used to judge a clustering. All randomness comes from
an explicitly passed numpy Generator.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np
from scipy.spatial.distance import cdist, pdist, squareform

from factorymath.exceptions import InvalidInputError

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITERS = 100
DEFAULT_TOL = 1e-6


@dataclass(frozen=True)
class KMeansResult:
    """
    Outcome of one k-means fit.

    Attributes:
        labels: Cluster label in [0, k) for each point
        centroids: Cluster centers (k x dimensions)
        inertia: Sum of squared distances of points to their centroid
        n_iter: Number of Lloyd iterations run
        converged: False if the iteration cap was reached first
    """
    labels: np.ndarray
    centroids: np.ndarray
    inertia: float
    n_iter: int
    converged: bool

    @property
    def k(self) -> int:
        return self.centroids.shape[0]


def distance_matrix(data: np.ndarray) -> np.ndarray:
    """
    Calculate the distance matrix for a set of points.

    Args:
        data: Data matrix

    Returns:
        Symmetric matrix of pairwise Euclidean distances
    """
    data = np.asarray(data, dtype=float)
    if data.shape[0] < 2:
        return np.zeros((data.shape[0], data.shape[0]))
    return squareform(pdist(data))


def init_centroids(data: np.ndarray, k: int, rng: np.random.Generator) -> np.ndarray:
    """
    Choose k initial centers with k-means++ seeding.

    The first center is drawn uniformly; each following center is drawn with
    probability proportional to its squared distance from the nearest center
    chosen so far. If every point coincides with a chosen center, the draw
    falls back to uniform.

    Args:
        data: Data matrix
        k: Number of clusters
        rng: Random source

    Returns:
        Array of k centers, each a copy of a data point
    """
    n_points = data.shape[0]

    centers = [data[rng.integers(n_points)]]
    closest_sq = np.sum((data - centers[0]) ** 2, axis=1)

    for _ in range(1, k):
        total = closest_sq.sum()
        if total > 0:
            probs = closest_sq / total
        else:
            probs = np.full(n_points, 1.0 / n_points)

        next_idx = rng.choice(n_points, p=probs)
        centers.append(data[next_idx])
        closest_sq = np.minimum(closest_sq, np.sum((data - data[next_idx]) ** 2, axis=1))

    return np.array(centers, dtype=float)


def assign_points(data: np.ndarray, centroids: np.ndarray) -> np.ndarray:
    """
    Assign each point to its nearest centroid.

    Ties go to the centroid with the lowest index.

    Args:
        data: Data matrix
        centroids: Current centers

    Returns:
        Label per point
    """
    return np.argmin(cdist(data, centroids, 'sqeuclidean'), axis=1)


def update_centroids(data: np.ndarray, labels: np.ndarray, centroids: np.ndarray) -> np.ndarray:
    """
    Move each centroid to the mean of its members.

    A centroid without members keeps its current position.

    Args:
        data: Data matrix
        labels: Label per point
        centroids: Current centers

    Returns:
        New centers
    """
    new_centroids = centroids.copy()
    for cluster_id in range(centroids.shape[0]):
        members = labels == cluster_id
        if members.any():
            new_centroids[cluster_id] = data[members].mean(axis=0)
    return new_centroids


def inertia(data: np.ndarray, labels: np.ndarray, centroids: np.ndarray) -> float:
    """Sum of squared distances from each point to its assigned centroid."""
    return float(np.sum((data - centroids[labels]) ** 2))


def kmeans(data: np.ndarray,
           k: int,
           rng: Optional[np.random.Generator] = None,
           max_iters: int = DEFAULT_MAX_ITERS,
           tol: float = DEFAULT_TOL) -> KMeansResult:
    """
    Perform K-means clustering on the data.

    Args:
        data: Data matrix
        k: Number of clusters
        rng: Random source for k-means++ seeding; a fresh unseeded one is
            used if omitted, so such runs are not reproducible
        max_iters: Maximum number of Lloyd iterations
        tol: Convergence threshold on the total centroid movement

    Returns:
        KMeansResult
    """
    data = np.asarray(data, dtype=float)
    n_points = data.shape[0]

    if k < 1:
        raise InvalidInputError(f"Number of clusters must be positive, got {k}")
    if n_points < k:
        raise InvalidInputError(f"Cannot form {k} clusters from {n_points} points")

    if rng is None:
        rng = np.random.default_rng()

    centroids = init_centroids(data, k, rng)
    converged = False
    n_iter = 0

    for n_iter in range(1, max_iters + 1):
        labels = assign_points(data, centroids)
        new_centroids = update_centroids(data, labels, centroids)
        shift = float(np.linalg.norm(new_centroids - centroids))
        centroids = new_centroids

        if shift <= tol:
            converged = True
            break

    if not converged:
        logger.warning(f"k-means with k={k} did not converge in {max_iters} iterations")

    labels = assign_points(data, centroids)
    labels.flags.writeable = False
    centroids.flags.writeable = False

    return KMeansResult(
        labels=labels,
        centroids=centroids,
        inertia=inertia(data, labels, centroids),
        n_iter=n_iter,
        converged=converged
    )


def silhouette_samples(data: np.ndarray, labels: np.ndarray) -> np.ndarray:
    """
    Calculate the silhouette coefficient of every point.

    For a point i, a(i) is its mean distance to the other members of its
    cluster (0 for a singleton) and b(i) the smallest mean distance to the
    members of any other cluster. s(i) = (b - a) / max(a, b), taken as 0
    when that is undefined, which includes the case of a single cluster.

    Args:
        data: Data matrix
        labels: Cluster label per point

    Returns:
        Silhouette value per point
    """
    data = np.asarray(data, dtype=float)
    labels = np.asarray(labels)
    n_points = data.shape[0]

    if labels.shape != (n_points,):
        raise InvalidInputError(
            f"Got {labels.shape[0] if labels.ndim else 0} labels for {n_points} points"
        )
    if n_points == 0:
        return np.zeros(0)

    dists = distance_matrix(data)
    cluster_ids, positions = np.unique(labels, return_inverse=True)
    if len(cluster_ids) < 2:
        return np.zeros(n_points)

    membership = np.zeros((n_points, len(cluster_ids)))
    membership[np.arange(n_points), positions] = 1.0
    counts = membership.sum(axis=0)
    dist_sums = dists @ membership

    own_counts = counts[positions] - 1
    own_sums = dist_sums[np.arange(n_points), positions]
    a = np.divide(own_sums, own_counts, out=np.zeros(n_points), where=own_counts > 0)

    mean_dists = dist_sums / counts
    mean_dists[np.arange(n_points), positions] = np.inf
    b = mean_dists.min(axis=1)

    denom = np.maximum(a, b)
    with np.errstate(divide='ignore', invalid='ignore'):
        values = (b - a) / denom
    values[~np.isfinite(values) | (denom == 0)] = 0.0

    return values


def silhouette(data: np.ndarray, labels: np.ndarray) -> float:
    """
    Calculate the mean silhouette coefficient for a clustering.

    Args:
        data: Data matrix
        labels: Cluster label per point

    Returns:
        Mean silhouette coefficient (between -1 and 1)
    """
    values = silhouette_samples(data, labels)
    if values.size == 0:
        return 0.0
    return float(values.mean())

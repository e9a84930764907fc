"""
Selection of the number of clusters.

Candidate cluster counts are compared by mean silhouette; the smallest count
with the highest silhouette wins.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

from factorymath.exceptions import InvalidInputError
from factorymath.math.clusters import DEFAULT_MAX_ITERS, DEFAULT_TOL, kmeans, silhouette

logger = logging.getLogger(__name__)

MIN_K = 2
DEFAULT_K_MAX = 10


@dataclass(frozen=True)
class KMetric:
    """Quality of the clustering found for one candidate k."""
    k: int
    inertia: float
    silhouette: float
    converged: bool = True


@dataclass(frozen=True)
class KSelection:
    """Chosen k together with the metrics of every candidate."""
    best_k: int
    metrics: Tuple[KMetric, ...]


def candidate_ks(n_points: int, k_max: int = DEFAULT_K_MAX) -> List[int]:
    """
    List the cluster counts to try for a population.

    Args:
        n_points: Number of points to be clustered
        k_max: Largest count to try

    Returns:
        Counts from 2 to min(k_max, n_points - 1)
    """
    return list(range(MIN_K, min(k_max, n_points - 1) + 1))


def evaluate_k(data: np.ndarray,
               k: int,
               rng: np.random.Generator,
               max_iters: int = DEFAULT_MAX_ITERS,
               tol: float = DEFAULT_TOL) -> KMetric:
    """
    Fit k-means for one k and score it.

    Args:
        data: Data matrix
        k: Number of clusters
        rng: Random source for seeding
        max_iters: Maximum number of Lloyd iterations
        tol: Convergence threshold

    Returns:
        KMetric for k
    """
    result = kmeans(data, k, rng, max_iters, tol)
    return KMetric(k=k, inertia=result.inertia, silhouette=silhouette(data, result.labels),
                   converged=result.converged)


def select_k(data: np.ndarray,
             rng: Optional[np.random.Generator] = None,
             k_max: int = DEFAULT_K_MAX,
             max_iters: int = DEFAULT_MAX_ITERS,
             tol: float = DEFAULT_TOL,
             n_jobs: int = 1) -> KSelection:
    """
    Sweep candidate cluster counts and pick the one with best silhouette.

    Every candidate gets its own generator spawned from rng, so the outcome
    does not depend on n_jobs.

    Args:
        data: Data matrix to be clustered
        rng: Random source
        k_max: Largest count to try
        max_iters: Maximum number of Lloyd iterations per fit
        tol: Convergence threshold
        n_jobs: Number of worker threads for the sweep

    Returns:
        KSelection
    """
    data = np.asarray(data, dtype=float)
    n_points = data.shape[0]
    if n_points < MIN_K + 1:
        raise InvalidInputError(
            f"Choosing the number of clusters needs at least {MIN_K + 1} rows, got {n_points}"
        )
    if k_max < MIN_K:
        raise InvalidInputError(f"k_max must be at least {MIN_K}, got {k_max}")

    if rng is None:
        rng = np.random.default_rng()

    ks = candidate_ks(n_points, k_max)
    child_rngs = [np.random.default_rng(seed) for seed in rng.integers(0, 2 ** 63 - 1, size=len(ks))]

    if n_jobs > 1:
        with ThreadPoolExecutor(max_workers=n_jobs) as pool:
            futures = [
                pool.submit(evaluate_k, data, k, child_rng, max_iters, tol)
                for k, child_rng in zip(ks, child_rngs)
            ]
            metrics = [future.result() for future in futures]
    else:
        metrics = [
            evaluate_k(data, k, child_rng, max_iters, tol)
            for k, child_rng in zip(ks, child_rngs)
        ]

    best_k = ks[0]
    best_silhouette = -np.inf
    for metric in metrics:
        logger.debug(f"k={metric.k}: inertia={metric.inertia:.4f}, silhouette={metric.silhouette:.4f}")
        if metric.silhouette > best_silhouette:
            best_silhouette = metric.silhouette
            best_k = metric.k

    logger.info(f"Selected k={best_k} (silhouette {best_silhouette:.4f}) from {ks[0]}..{ks[-1]}")
    return KSelection(best_k=best_k, metrics=tuple(metrics))

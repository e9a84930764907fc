"""
PCA (Principal Component Analysis) implementation for factorymath.

This module provides a custom implementation of PCA using power iteration
with Gram-Schmidt deflation. It is used to project standardized feature
matrices onto two components for visualization and outlier scoring.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

import numpy as np

from factorymath.exceptions import InvalidInputError

logger = logging.getLogger(__name__)

N_COMPONENTS = 2


@dataclass(frozen=True)
class PCAModel:
    """
    A fitted linear projection.

    Attributes:
        center: Column means of the data the model was fitted on
        comps: Orthonormal components, one per row
        explained_variance: Sample variance captured by each component
    """
    center: np.ndarray
    comps: np.ndarray
    explained_variance: np.ndarray


def normalize_vector(v: np.ndarray) -> np.ndarray:
    """
    Normalize a vector to unit length.

    Args:
        v: Vector to normalize

    Returns:
        Normalized vector (the zero vector is returned unchanged)
    """
    norm = np.linalg.norm(v)
    if norm == 0:
        return v
    return v / norm


def proj_vec(u: np.ndarray, v: np.ndarray) -> np.ndarray:
    """
    Project vector v onto vector u.

    Args:
        u: Vector to project onto
        v: Vector to project

    Returns:
        Projection of v onto u
    """
    if np.dot(u, u) == 0:
        return np.zeros_like(v)
    return np.dot(u, v) / np.dot(u, u) * u


def factor_matrix(data: np.ndarray, xs: np.ndarray) -> np.ndarray:
    """
    Factor out the vector xs from all rows of data.

    This removes the variance in the xs direction, so the next power
    iteration finds the following component.

    Args:
        data: Matrix of data
        xs: Vector to factor out

    Returns:
        Matrix with xs factored out
    """
    if np.dot(xs, xs) == 0:
        return data
    return data - np.outer(data @ xs, xs) / np.dot(xs, xs)


def orthogonalize(v: np.ndarray, basis: List[np.ndarray]) -> np.ndarray:
    """Remove the components of v along each (unit) vector in basis."""
    for b in basis:
        v = v - proj_vec(b, v)
    return v


def xtxr(data: np.ndarray, vec: np.ndarray) -> np.ndarray:
    """
    Calculate X^T * X * r where X is data and r is vec.

    Args:
        data: Data matrix X
        vec: Vector r

    Returns:
        Result of X^T * X * r
    """
    # Avoids forming X^T X explicitly
    return data.T @ (data @ vec)


def power_iteration(data: np.ndarray,
                    start_vector: np.ndarray,
                    iters: int = 100,
                    tol: float = 1e-10) -> np.ndarray:
    """
    Find the dominant eigenvector of X^T X using power iteration.

    Args:
        data: Data matrix X
        start_vector: Initial vector
        iters: Maximum number of iterations
        tol: Stop once the vector moves less than this between iterations

    Returns:
        Unit-length dominant eigenvector (the normalized start vector if the
        data has no variance left)
    """
    vec = normalize_vector(np.asarray(start_vector, dtype=float))

    for _ in range(iters):
        product = xtxr(data, vec)
        if np.linalg.norm(product) == 0:
            break

        normed = normalize_vector(product)
        if np.linalg.norm(normed - vec) < tol:
            vec = normed
            break

        vec = normed

    return vec


def sign_normalize(v: np.ndarray) -> np.ndarray:
    """Flip v so that its largest-magnitude entry is positive."""
    if v[np.argmax(np.abs(v))] < 0:
        return -v
    return v


def fit_pca(data: np.ndarray,
            n_comps: int = N_COMPONENTS,
            iters: int = 100,
            rng: Optional[np.random.Generator] = None) -> PCAModel:
    """
    Find the first n_comps principal components of the data matrix.

    Args:
        data: Data matrix (rows x columns)
        n_comps: Number of components to find
        iters: Maximum number of power iterations per component
        rng: Random source for the start vectors

    Returns:
        Fitted PCAModel
    """
    data = np.asarray(data, dtype=float)
    if data.ndim != 2 or data.shape[0] < 2 or data.shape[1] < 2:
        raise InvalidInputError(
            f"PCA needs at least 2 rows and 2 columns, got shape {data.shape}"
        )
    if n_comps > data.shape[1]:
        raise InvalidInputError(
            f"Cannot extract {n_comps} components from {data.shape[1]} columns"
        )

    if rng is None:
        rng = np.random.default_rng()

    center = data.mean(axis=0)
    cntrd_data = data - center

    pcs = []
    variances = []
    data_factored = cntrd_data

    for i in range(n_comps):
        start_vector = orthogonalize(rng.standard_normal(data.shape[1]), pcs)
        pc = power_iteration(data_factored, start_vector, iters)

        # Deflation drifts slightly; keep the basis orthonormal
        pc = sign_normalize(normalize_vector(orthogonalize(pc, pcs)))
        pcs.append(pc)

        scores = cntrd_data @ pc
        variances.append(float(scores @ scores) / (data.shape[0] - 1))

        if i < n_comps - 1:
            data_factored = factor_matrix(data_factored, pc)

    logger.debug(f"PCA explained variance: {variances}")

    comps = np.array(pcs)
    explained = np.array(variances)
    for arr in (center, comps, explained):
        arr.flags.writeable = False

    return PCAModel(center=center, comps=comps, explained_variance=explained)


def project(data: np.ndarray, model: PCAModel) -> np.ndarray:
    """
    Project rows of data onto the model's components.

    Args:
        data: Matrix with the same columns the model was fitted on
        model: Fitted PCAModel

    Returns:
        Array of shape (rows, n_comps)
    """
    data = np.asarray(data, dtype=float)
    if data.ndim != 2 or data.shape[1] != len(model.center):
        raise InvalidInputError(
            f"Matrix has shape {data.shape}, expected {len(model.center)} columns"
        )
    return (data - model.center) @ model.comps.T


def pca_project(data: np.ndarray,
                iters: int = 100,
                rng: Optional[np.random.Generator] = None):
    """
    Fit a two-component PCA on data and project data with it.

    Args:
        data: Data matrix
        iters: Maximum number of power iterations per component
        rng: Random source for the start vectors

    Returns:
        Tuple of (model, projection)
    """
    model = fit_pca(data, N_COMPONENTS, iters, rng)
    return model, project(data, model)

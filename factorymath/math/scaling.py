"""
Z-score standardization.

Scaling parameters are fitted once on a reference matrix (the full
population) and can then be applied to any matrix with the same columns.
"""

from dataclasses import dataclass
from typing import Tuple

import numpy as np

from factorymath.exceptions import InvalidInputError


@dataclass(frozen=True)
class ScalingParameters:
    """Per-column mean and sample standard deviation."""
    means: np.ndarray
    stds: np.ndarray


def fit_scaling(data: np.ndarray) -> ScalingParameters:
    """
    Compute per-column scaling parameters.

    The standard deviation uses the n-1 divisor. Constant columns, and the
    undefined deviation of a single row, get a deviation of 1; constant
    columns also take their exact value as mean so they scale to exactly 0.

    Args:
        data: Reference matrix (rows x columns)

    Returns:
        ScalingParameters for the columns of data
    """
    data = np.asarray(data, dtype=float)
    if data.ndim != 2 or data.shape[0] == 0:
        raise InvalidInputError("Cannot fit scaling parameters on an empty matrix")

    means = data.mean(axis=0)
    if data.shape[0] > 1:
        stds = data.std(axis=0, ddof=1)
    else:
        stds = np.zeros(data.shape[1])

    constant = np.ptp(data, axis=0) == 0
    means = np.where(constant, data[0], means)
    stds = np.where(constant | ~np.isfinite(stds) | (stds == 0), 1.0, stds)

    means.flags.writeable = False
    stds.flags.writeable = False
    return ScalingParameters(means=means, stds=stds)


def apply_scaling(data: np.ndarray, params: ScalingParameters) -> np.ndarray:
    """
    Scale a matrix elementwise as (x - mean) / std.

    Args:
        data: Matrix to scale
        params: Parameters from fit_scaling

    Returns:
        Scaled copy of data
    """
    data = np.asarray(data, dtype=float)
    if data.ndim != 2 or data.shape[1] != len(params.means):
        raise InvalidInputError(
            f"Matrix has shape {data.shape}, expected {len(params.means)} columns"
        )
    return (data - params.means) / params.stds


def standardize(data: np.ndarray) -> Tuple[np.ndarray, ScalingParameters]:
    """Fit scaling parameters on data and apply them to it."""
    params = fit_scaling(data)
    return apply_scaling(data, params), params

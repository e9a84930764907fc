"""
Correlation implementation for factorymath.

This module computes pairwise Pearson correlations between feature columns.
"""

import warnings
from typing import Dict

import numpy as np
import pandas as pd

from factorymath.exceptions import InvalidInputError
from factorymath.math.feature_matrix import FeatureMatrix


def pearson_matrix(values: np.ndarray) -> np.ndarray:
    """
    Compute the Pearson correlation matrix of the columns of a matrix.

    Entries that are undefined, e.g. for a zero-variance column, become 0;
    the diagonal is exactly 1. The result is symmetric and clipped to
    [-1, 1].

    Args:
        values: Data matrix (rows x columns)

    Returns:
        Square correlation matrix
    """
    values = np.asarray(values, dtype=float)
    n_cols = values.shape[1]
    if values.shape[0] == 0:
        return np.eye(n_cols)

    with warnings.catch_warnings():
        # corrcoef warns on zero variance and on fewer than two rows
        warnings.simplefilter('ignore', RuntimeWarning)
        with np.errstate(divide='ignore', invalid='ignore'):
            corr = np.atleast_2d(np.corrcoef(values, rowvar=False))

    if corr.shape != (n_cols, n_cols):
        corr = np.full((n_cols, n_cols), np.nan)

    corr = np.nan_to_num(corr, nan=0.0, posinf=0.0, neginf=0.0)

    # Rounding can leave a constant column with a tiny nonzero variance
    constant = np.ptp(values, axis=0) == 0
    corr[constant, :] = 0.0
    corr[:, constant] = 0.0

    corr = np.clip((corr + corr.T) / 2, -1.0, 1.0)
    np.fill_diagonal(corr, 1.0)

    return corr


def correlation_matrix(fmat: FeatureMatrix) -> pd.DataFrame:
    """
    Compute the correlation matrix for the columns of a FeatureMatrix.

    Args:
        fmat: FeatureMatrix to compute correlations for

    Returns:
        DataFrame indexed and columned by the feature names
    """
    if fmat.shape[0] == 0:
        raise InvalidInputError("Cannot correlate columns of an empty matrix")

    columns = fmat.colnames()
    return pd.DataFrame(pearson_matrix(fmat.values), index=columns, columns=columns)


def correlation_to_dict(corr: pd.DataFrame) -> Dict[str, Dict[str, float]]:
    """
    Convert a correlation DataFrame to a nested mapping.

    Args:
        corr: Correlation matrix

    Returns:
        Mapping column A -> column B -> coefficient
    """
    return {
        row: {col: float(corr.at[row, col]) for col in corr.columns}
        for row in corr.index
    }

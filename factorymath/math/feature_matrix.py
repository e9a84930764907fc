"""
Feature matrix for factorymath.

This module turns heterogeneous measurement rows into a numeric matrix with
named rows and columns, using a pandas DataFrame as the underlying storage.
"""

from typing import Any, List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from factorymath.exceptions import InvalidInputError
from factorymath.utils.general import Row, to_number


class FeatureMatrix:
    """
    A numeric matrix with named rows and columns.

    Rows are labelled with the position of the source row in the caller's
    row list, columns with the selected feature names in selection order.
    Instances are treated as immutable: every operation returns a new matrix.
    """

    def __init__(self,
                 matrix: Union[np.ndarray, pd.DataFrame],
                 rownames: Optional[List[Any]] = None,
                 colnames: Optional[List[Any]] = None):
        """
        Initialize a FeatureMatrix.

        Args:
            matrix: Matrix data (numpy array or pandas DataFrame)
            rownames: List of row names
            colnames: List of column names
        """
        if isinstance(matrix, pd.DataFrame):
            frame = matrix.astype(float)
            if rownames is not None:
                frame.index = rownames
            if colnames is not None:
                frame.columns = colnames
        else:
            values = np.asarray(matrix, dtype=float)
            rows = rownames if rownames is not None else range(values.shape[0])
            cols = colnames if colnames is not None else range(values.shape[1])
            frame = pd.DataFrame(values, index=list(rows), columns=list(cols))

        self._matrix = frame

    @property
    def values(self) -> np.ndarray:
        """Get the matrix as a float numpy array."""
        return self._matrix.to_numpy(dtype=float, copy=True)

    @property
    def shape(self):
        return self._matrix.shape

    def rownames(self) -> List[Any]:
        """Get the list of row names."""
        return list(self._matrix.index)

    def colnames(self) -> List[Any]:
        """Get the list of column names."""
        return list(self._matrix.columns)

    def row_subset(self, positions: Sequence[int]) -> 'FeatureMatrix':
        """
        Create a matrix holding only the rows at the given positions.

        Row names are carried over, so the result still reports the original
        row identity of every remaining row.

        Args:
            positions: Row positions to keep, in the desired order

        Returns:
            A new FeatureMatrix
        """
        return FeatureMatrix(self._matrix.iloc[list(positions)])

    def __len__(self) -> int:
        return self._matrix.shape[0]

    def __repr__(self) -> str:
        return f"FeatureMatrix(rows={self.shape[0]}, cols={self.shape[1]})"

    def __str__(self) -> str:
        return (f"FeatureMatrix with {self.shape[0]} rows and "
                f"{self.shape[1]} columns\n{self._matrix}")


def build_feature_matrix(rows: Sequence[Row], columns: Sequence[str]) -> FeatureMatrix:
    """
    Extract a numeric feature matrix from measurement rows.

    Missing and non-numeric cells become 0.0; the source rows are left
    untouched so callers can still display the original values.

    Args:
        rows: Measurement rows keyed by column name
        columns: Selected columns, in the order they should appear

    Returns:
        FeatureMatrix with one row per input row
    """
    columns = list(columns)
    if not columns:
        raise InvalidInputError("At least one column must be selected")
    if len(set(columns)) != len(columns):
        raise InvalidInputError(f"Selected columns contain duplicates: {columns}")

    values = np.array(
        [[to_number(row.get(col)) for col in columns] for row in rows],
        dtype=float
    ).reshape(len(rows), len(columns))

    return FeatureMatrix(values, list(range(len(rows))), columns)

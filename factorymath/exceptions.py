"""
Exceptions raised by factorymath.

Only structural problems with the caller's input are raised. Numeric
degeneracies (constant columns, singleton clusters, undefined silhouettes)
are resolved where they occur and never surface as exceptions.
"""


class FactoryMathError(Exception):
    """Base class for all factorymath errors."""


class InvalidInputError(FactoryMathError, ValueError):
    """
    The input does not meet the preconditions of the requested operation.

    Examples are an empty row set, fewer than two selected columns, or too
    few rows for PCA or for the cluster-count search.
    """

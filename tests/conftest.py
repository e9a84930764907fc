"""
Shared fixtures for the factorymath tests.
"""

import os
import sys

import numpy as np
import pytest

# Add the parent directory to the path to import the module
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

# Fixed offsets so the blob geometry does not depend on a random draw
BLOB_OFFSETS = [
    (0.0, 0.0), (0.5, 0.0), (0.0, 0.5), (-0.5, 0.0), (0.0, -0.5),
    (0.4, 0.4), (-0.4, 0.4), (0.4, -0.4), (-0.4, -0.4), (0.2, -0.1),
]

BLOB_CENTERS = [(0.0, 0.0), (10.0, 10.0)]

OUTLIER_POINT = (100.0, -100.0)


def make_rows(points, columns=('a', 'b')):
    """Turn a list of coordinate tuples into row dictionaries."""
    return [dict(zip(columns, point)) for point in points]


def blob_points():
    """Two tight blobs of ten points each, in blob order."""
    return [
        (cx + dx, cy + dy)
        for cx, cy in BLOB_CENTERS
        for dx, dy in BLOB_OFFSETS
    ]


@pytest.fixture
def two_blob_rows():
    """Rows forming two well separated blobs."""
    return make_rows(blob_points())


@pytest.fixture
def two_blob_rows_with_outlier():
    """Two blobs plus one far away point as the last row (index 20)."""
    return make_rows(blob_points() + [OUTLIER_POINT])


@pytest.fixture
def two_blob_data():
    """Two blobs as a plain numpy matrix."""
    return np.array(blob_points(), dtype=float)


@pytest.fixture
def rng():
    """Seeded random generator."""
    return np.random.default_rng(42)

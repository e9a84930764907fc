"""
Analysis pipeline for factorymath.

This package composes the math building blocks into the correlation and
clustering reports, and provides views for exporting their results.
"""

from factorymath.analysis.pipeline import (
    compute_correlation, compute_clustering, compute_clustering_at_k
)
from factorymath.analysis.results import (
    EXCLUDED_LABEL, ClusteringResult, CorrelationResult, ProjectedPoint, SilhouetteSample
)

"""
Supporting components for factorymath.
"""

from factorymath.components.config import AnalysisSettings, Config

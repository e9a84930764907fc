"""
Configuration management for factorymath.

This module provides functionality for managing configuration,
including loading from environment variables, files and default values.
"""

import os
import json
import logging
import threading
from copy import deepcopy
from dataclasses import dataclass
from typing import Any, Dict, Optional

import yaml

# Set up logging
logger = logging.getLogger(__name__)

OUTLIER_SPACES = ('projection', 'scaled')


def to_int(value: Any) -> Optional[int]:
    """
    Convert a value to an integer.

    Args:
        value: Value to convert

    Returns:
        Integer value, or None if conversion failed
    """
    if value is None:
        return None

    try:
        return int(value)
    except (ValueError, TypeError):
        return None


def to_float(value: Any) -> Optional[float]:
    """
    Convert a value to a float.

    Args:
        value: Value to convert

    Returns:
        Float value, or None if conversion failed
    """
    if value is None:
        return None

    try:
        return float(value)
    except (ValueError, TypeError):
        return None


class Config:
    """
    Configuration manager for factorymath.
    """

    def __init__(self, overrides: Optional[Dict[str, Any]] = None):
        """
        Initialize configuration.

        Args:
            overrides: Optional configuration overrides
        """
        self._lock = threading.RLock()
        self._config = {}
        self._initialized = False

        # Load configuration
        self.load_config(overrides)

    def load_config(self, overrides: Optional[Dict[str, Any]] = None) -> None:
        """
        Load configuration from all sources.

        Args:
            overrides: Optional configuration overrides
        """
        with self._lock:
            # Start with default configuration
            config = self._get_defaults()

            # Apply environment variables
            config = self._apply_env_vars(config)

            # Apply overrides
            if overrides:
                config = self._apply_overrides(config, overrides)

            self._validate(config)

            # Store configuration
            self._config = config
            self._initialized = True

            logger.info("Configuration loaded")

    def _get_defaults(self) -> Dict[str, Any]:
        """
        Get default configuration values.

        Returns:
            Default configuration
        """
        return {
            # Cluster-count search and run limits
            'analysis': {
                'k-max': 10,
                'max-rows': 20000,      # above this the O(n^2) stages dominate
                'random-seed': None,
                'n-jobs': 1
            },

            # Outlier detection
            'outliers': {
                'neighbors': 5,
                'std-factor': 2.0,
                'min-rows': 5,
                'space': 'projection'   # 'projection' or 'scaled'
            },

            # K-means
            'kmeans': {
                'max-iters': 100,
                'tol': 1e-6
            },

            # PCA
            'pca': {
                'iters': 100
            },

            # Row preparation
            'rows': {
                'factory-column-marker': '厂名'
            },

            # Logging
            'logging': {
                'level': 'warn'
            }
        }

    def _apply_env_vars(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """
        Apply environment variables to configuration.

        Args:
            config: Current configuration

        Returns:
            Updated configuration
        """
        # Make a copy
        config = deepcopy(config)

        # Analysis
        config['analysis']['k-max'] = to_int(os.environ.get('ANALYSIS_K_MAX', config['analysis']['k-max']))
        config['analysis']['max-rows'] = to_int(os.environ.get('ANALYSIS_MAX_ROWS', config['analysis']['max-rows']))
        config['analysis']['random-seed'] = to_int(os.environ.get('ANALYSIS_RANDOM_SEED', config['analysis']['random-seed']))
        config['analysis']['n-jobs'] = to_int(os.environ.get('ANALYSIS_N_JOBS', config['analysis']['n-jobs']))

        # Outliers
        config['outliers']['neighbors'] = to_int(os.environ.get('OUTLIER_NEIGHBORS', config['outliers']['neighbors']))
        config['outliers']['std-factor'] = to_float(os.environ.get('OUTLIER_STD_FACTOR', config['outliers']['std-factor']))
        config['outliers']['min-rows'] = to_int(os.environ.get('OUTLIER_MIN_ROWS', config['outliers']['min-rows']))
        config['outliers']['space'] = os.environ.get('OUTLIER_SPACE', config['outliers']['space']).lower()

        # K-means
        config['kmeans']['max-iters'] = to_int(os.environ.get('KMEANS_MAX_ITERS', config['kmeans']['max-iters']))
        config['kmeans']['tol'] = to_float(os.environ.get('KMEANS_TOL', config['kmeans']['tol']))

        # PCA
        config['pca']['iters'] = to_int(os.environ.get('PCA_ITERS', config['pca']['iters']))

        # Rows
        config['rows']['factory-column-marker'] = os.environ.get(
            'FACTORY_COLUMN_MARKER', config['rows']['factory-column-marker'])

        # Logging
        config['logging']['level'] = os.environ.get('LOG_LEVEL', config['logging']['level']).lower()

        return config

    def _apply_overrides(self, config: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
        """
        Apply configuration overrides.

        Args:
            config: Current configuration
            overrides: Configuration overrides

        Returns:
            Updated configuration
        """
        # Make a copy
        config = deepcopy(config)

        # Helper function for deep update
        def deep_update(d, u):
            for k, v in u.items():
                if isinstance(v, dict) and k in d and isinstance(d[k], dict):
                    d[k] = deep_update(d[k], v)
                else:
                    d[k] = v
            return d

        # Apply overrides
        return deep_update(config, overrides)

    def _validate(self, config: Dict[str, Any]) -> None:
        """
        Reject values the analysis cannot run with.

        Args:
            config: Configuration to check
        """
        space = config['outliers']['space']
        if space not in OUTLIER_SPACES:
            raise ValueError(f"Unknown outlier space: {space} (expected one of {OUTLIER_SPACES})")

        if config['analysis']['k-max'] is None or config['analysis']['k-max'] < 2:
            raise ValueError(f"analysis.k-max must be an integer >= 2, got {config['analysis']['k-max']}")

    def get(self, path: str, default: Any = None) -> Any:
        """
        Get a configuration value.

        Args:
            path: Configuration path (dot-separated)
            default: Default value if not found

        Returns:
            Configuration value, or default if not found
        """
        if not self._initialized:
            self.load_config()

        # Traverse path
        value = self._config
        for component in path.split('.'):
            if isinstance(value, dict) and component in value:
                value = value[component]
            else:
                return default

        return value

    def set(self, path: str, value: Any) -> None:
        """
        Set a configuration value.

        Args:
            path: Configuration path (dot-separated)
            value: Configuration value
        """
        with self._lock:
            if not self._initialized:
                self.load_config()

            components = path.split('.')
            config = self._config

            for component in components[:-1]:
                if component not in config:
                    config[component] = {}

                config = config[component]

            config[components[-1]] = value

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert configuration to a dictionary.

        Returns:
            Configuration dictionary
        """
        if not self._initialized:
            self.load_config()

        return deepcopy(self._config)

    def save_to_file(self, filepath: str) -> None:
        """
        Save configuration to a file.

        Args:
            filepath: Path to save configuration
        """
        if not self._initialized:
            self.load_config()

        # Determine file format from extension
        if filepath.endswith('.json'):
            with open(filepath, 'w', encoding='utf-8') as f:
                json.dump(self._config, f, indent=2, ensure_ascii=False)
        elif filepath.endswith('.yaml') or filepath.endswith('.yml'):
            with open(filepath, 'w', encoding='utf-8') as f:
                yaml.dump(self._config, f, default_flow_style=False, allow_unicode=True)
        else:
            raise ValueError(f"Unsupported file format: {filepath}")

    def load_from_file(self, filepath: str) -> None:
        """
        Load configuration from a file.

        Args:
            filepath: Path to load configuration from
        """
        self.load_config(load_config_file(filepath))


def load_config_file(filepath: str) -> Dict[str, Any]:
    """
    Read configuration overrides from a JSON or YAML file.

    Args:
        filepath: Path to configuration file

    Returns:
        Configuration dictionary
    """
    if filepath.endswith('.json'):
        with open(filepath, 'r', encoding='utf-8') as f:
            return json.load(f)
    elif filepath.endswith('.yaml') or filepath.endswith('.yml'):
        with open(filepath, 'r', encoding='utf-8') as f:
            return yaml.safe_load(f) or {}
    else:
        raise ValueError(f"Unsupported configuration file format: {filepath}")


@dataclass(frozen=True)
class AnalysisSettings:
    """
    Immutable tuning parameters for one analysis run.
    """
    k_max: int = 10
    max_rows: int = 20000
    random_seed: Optional[int] = None
    n_jobs: int = 1
    outlier_neighbors: int = 5
    outlier_std_factor: float = 2.0
    outlier_min_rows: int = 5
    outlier_space: str = 'projection'
    kmeans_max_iters: int = 100
    kmeans_tol: float = 1e-6
    pca_iters: int = 100

    @classmethod
    def from_config(cls, config: Config) -> 'AnalysisSettings':
        """
        Build settings from a Config.

        Args:
            config: Loaded configuration

        Returns:
            AnalysisSettings
        """
        return cls(
            k_max=config.get('analysis.k-max'),
            max_rows=config.get('analysis.max-rows'),
            random_seed=config.get('analysis.random-seed'),
            n_jobs=config.get('analysis.n-jobs'),
            outlier_neighbors=config.get('outliers.neighbors'),
            outlier_std_factor=config.get('outliers.std-factor'),
            outlier_min_rows=config.get('outliers.min-rows'),
            outlier_space=config.get('outliers.space'),
            kmeans_max_iters=config.get('kmeans.max-iters'),
            kmeans_tol=config.get('kmeans.tol'),
            pca_iters=config.get('pca.iters'),
        )

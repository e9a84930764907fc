"""
Main entry point for factorymath.

This module runs the correlation or clustering analysis over a CSV or JSON
file of measurement rows and writes the result as JSON.
"""

import argparse
import json
import logging
import sys
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from factorymath.analysis.export import clustering_to_export, correlation_to_export, save_json
from factorymath.analysis.pipeline import (
    compute_clustering, compute_clustering_at_k, compute_correlation
)
from factorymath.components.config import AnalysisSettings, Config, load_config_file
from factorymath.exceptions import FactoryMathError
from factorymath.utils.general import (
    dataset_label_from_filename, fill_factory_names, find_factory_column, needs_factory_fill
)

logger = logging.getLogger(__name__)


def setup_logging(level: str = 'INFO') -> None:
    """
    Set up logging.

    Args:
        level: Logging level
    """
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stderr)
        ]
    )


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """
    Parse command line arguments.

    Args:
        argv: Arguments (defaults to sys.argv)

    Returns:
        Parsed arguments
    """
    parser = argparse.ArgumentParser(description='Correlation and cluster analysis of measurement data')

    parser.add_argument(
        '--config',
        help='Path to configuration file (JSON or YAML)'
    )

    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
        help='Logging level (defaults to logging.level from the configuration)'
    )

    subparsers = parser.add_subparsers(dest='command', required=True)

    for name, help_text in (('correlate', 'Pearson correlation matrix'),
                            ('cluster', 'K-means cluster analysis')):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument('input', help='CSV or JSON file of rows')
        sub.add_argument('--columns', nargs='+', required=True, help='Columns to analyse')
        sub.add_argument('--output', help='Write JSON here instead of stdout')
        sub.add_argument('--fill-factory-names', action='store_true',
                         help='Complete abbreviated factory names before analysis')

    cluster = subparsers.choices['cluster']
    cluster.add_argument('--exclude-outliers', action='store_true',
                         help='Leave detected outliers out of clustering')
    cluster.add_argument('--k', type=int, help='Use this number of clusters instead of searching')
    cluster.add_argument('--seed', type=int, help='Random seed for reproducible runs')

    return parser.parse_args(argv)


def load_rows(filepath: str) -> List[Dict[str, Any]]:
    """
    Load measurement rows from a file.

    Args:
        filepath: Path to a CSV or JSON (records) file

    Returns:
        List of row dictionaries, with missing cells as None
    """
    if filepath.endswith('.csv'):
        frame = pd.read_csv(filepath)
    elif filepath.endswith('.json'):
        frame = pd.read_json(filepath, orient='records')
    else:
        raise ValueError(f"Unsupported input file format: {filepath}")

    frame = frame.astype(object).where(pd.notna(frame), None)
    return frame.to_dict(orient='records')


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Main entry point.

    Returns:
        Process exit code
    """
    args = parse_args(argv)

    overrides = load_config_file(args.config) if args.config else None
    config = Config(overrides)
    setup_logging(args.log_level or config.get('logging.level'))

    rows = load_rows(args.input)

    if args.fill_factory_names:
        factory_col = find_factory_column(rows[0].keys() if rows else [],
                                          config.get('rows.factory-column-marker'))
        if factory_col is not None and needs_factory_fill(rows, factory_col):
            logger.info(f"Filling factory names in column '{factory_col}'")
            rows = fill_factory_names(rows, factory_col)

    try:
        if args.command == 'correlate':
            result = compute_correlation(rows, args.columns, dataset_label_from_filename(args.input))
            output = correlation_to_export(result)
        else:
            settings = AnalysisSettings.from_config(config)
            seed = args.seed if args.seed is not None else settings.random_seed
            rng = np.random.default_rng(seed)
            if args.k is not None:
                result = compute_clustering_at_k(rows, args.columns, args.k, args.exclude_outliers,
                                                 settings=settings, rng=rng)
            else:
                result = compute_clustering(rows, args.columns, args.exclude_outliers,
                                            settings=settings, rng=rng)
            output = clustering_to_export(result)
    except FactoryMathError as e:
        logger.error(f"Analysis failed: {e}")
        return 2

    if args.output:
        save_json(output, args.output)
    else:
        print(json.dumps(output, ensure_ascii=False, indent=2))

    return 0


if __name__ == '__main__':
    sys.exit(main())

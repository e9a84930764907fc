"""
General utility functions for the factorymath package.

This module holds the value coercion rule shared by the feature matrix
builder and the correlation engine, plus small helpers for preparing
measurement rows before analysis.
"""

import math
import numbers
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

Row = Mapping[str, Any]

DEFAULT_FACTORY_MARKER = '厂名'


def to_number(value: Any) -> float:
    """
    Coerce a cell value to a float.

    Numbers (including booleans and Decimal values from database drivers)
    are used as-is, numeric strings are parsed after stripping surrounding
    whitespace, and everything else, including missing values, NaN and
    infinities, becomes 0.0.

    Args:
        value: Cell value from a row

    Returns:
        Finite float value
    """
    if value is None:
        return 0.0

    if isinstance(value, numbers.Real):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return 0.0
    else:
        # Decimal from database drivers, numpy scalars and the like
        try:
            number = float(value)
        except (TypeError, ValueError):
            return 0.0

    if not math.isfinite(number):
        return 0.0

    return number


def blank(value: Any) -> bool:
    """True if a cell is missing or holds only whitespace."""
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return str(value).strip() == ''


def find_factory_column(columns: Iterable[str],
                        marker: str = DEFAULT_FACTORY_MARKER) -> Optional[str]:
    """
    Find the column holding factory names.

    Args:
        columns: Column names in sheet order
        marker: Substring identifying the factory-name column

    Returns:
        The first column whose name contains the marker, or None
    """
    for column in columns:
        if marker in str(column):
            return column
    return None


def needs_factory_fill(rows: Sequence[Row], column: str) -> bool:
    """
    Check whether any row is missing its factory name.

    Args:
        rows: Measurement rows
        column: Factory-name column

    Returns:
        True if at least one row has a blank factory name
    """
    return any(blank(row.get(column)) for row in rows)


def fill_factory_names(rows: Sequence[Row], column: str) -> List[Dict[str, Any]]:
    """
    Complete abbreviated factory names.

    Spreadsheets often list the units of one plant as a full name followed
    by short entries such as "(2#)". Such an entry (starting with "(" and at
    most five characters long) is prefixed with the name stem of the row
    above it, i.e. the text before its first "(". Rows are processed in
    order, so a run of short entries all inherit the same stem.

    Args:
        rows: Measurement rows
        column: Factory-name column

    Returns:
        New list of row dictionaries; the input rows are not modified
    """
    filled = [dict(row) for row in rows]

    for i in range(1, len(filled)):
        current = '' if blank(filled[i].get(column)) else str(filled[i][column]).strip()
        previous = '' if blank(filled[i - 1].get(column)) else str(filled[i - 1][column]).strip()

        if current.startswith('(') and len(current) <= 5:
            prefix = previous.split('(')[0].strip()
            filled[i][column] = f"{prefix} {current}"

    return filled


def dataset_label_from_filename(filename: str) -> str:
    """
    Derive a dataset label from a file name.

    Args:
        filename: File name, optionally with directories

    Returns:
        The base name up to its first dot
    """
    base = filename.replace('\\', '/').rsplit('/', 1)[-1]
    return base.split('.')[0]

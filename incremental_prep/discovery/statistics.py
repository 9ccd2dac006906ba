"""
Statistical primitives shared by the outlier detector, the confidence
calculator and the rule applier.

All functions take a pandas Series and ignore null/NaN cells. Row indices
returned by the outlier functions are positional (0-based), not index labels.
"""

from typing import List, Set, Tuple

import numpy as np
import pandas as pd

from incremental_prep.core.constants import OUTLIER_Z_SCORE_THRESHOLD, OUTLIER_IQR_MULTIPLIER


def numeric_values(column: pd.Series) -> np.ndarray:
    """Non-null values of a numeric column as float64."""
    values = pd.to_numeric(column, errors='coerce').to_numpy(dtype=float)
    return values[~np.isnan(values)]


def mean(column: pd.Series) -> float:
    values = numeric_values(column)
    return float(values.mean()) if values.size else 0.0


def standard_deviation(column: pd.Series) -> float:
    """Unbiased (n-1) standard deviation; 0.0 for fewer than two values."""
    values = numeric_values(column)
    if values.size <= 1:
        return 0.0
    return float(values.std(ddof=1))


def quartiles(column: pd.Series) -> Tuple[float, float, float]:
    """
    Q1, median and Q3 taken at sorted positions int(n*p), no interpolation.

    Returns (0, 0, 0) for an empty column.
    """
    values = np.sort(numeric_values(column))
    n = values.size
    if n == 0:
        return 0.0, 0.0, 0.0
    return (
        float(values[int(n * 0.25)]),
        float(values[int(n * 0.50)]),
        float(values[int(n * 0.75)]),
    )


def iqr_bounds(column: pd.Series, multiplier: float = OUTLIER_IQR_MULTIPLIER) -> Tuple[float, float]:
    """Tukey fences [Q1 - k*IQR, Q3 + k*IQR]."""
    q1, _, q3 = quartiles(column)
    iqr = q3 - q1
    return q1 - multiplier * iqr, q3 + multiplier * iqr


def _positions_and_values(column: pd.Series) -> Tuple[np.ndarray, np.ndarray]:
    values = pd.to_numeric(column, errors='coerce').to_numpy(dtype=float)
    positions = np.flatnonzero(~np.isnan(values))
    return positions, values[positions]


def zscore_outliers(column: pd.Series, threshold: float = OUTLIER_Z_SCORE_THRESHOLD) -> List[int]:
    """Positions where |z| > threshold. Empty when the std is zero."""
    positions, values = _positions_and_values(column)
    if values.size <= 1:
        return []

    std = standard_deviation(column)
    if std == 0:
        return []

    z = np.abs((values - mean(column)) / std)
    return positions[z > threshold].tolist()


def iqr_outliers(column: pd.Series, multiplier: float = OUTLIER_IQR_MULTIPLIER) -> List[int]:
    """Positions outside the Tukey fences. Empty when the IQR is zero."""
    positions, values = _positions_and_values(column)
    if values.size == 0:
        return []

    q1, _, q3 = quartiles(column)
    iqr = q3 - q1
    if iqr == 0:
        return []

    lower = q1 - multiplier * iqr
    upper = q3 + multiplier * iqr
    mask = (values < lower) | (values > upper)
    return positions[mask].tolist()


def outlier_positions(column: pd.Series) -> Set[int]:
    """Union of Z-score and IQR outlier positions."""
    return set(zscore_outliers(column)) | set(iqr_outliers(column))

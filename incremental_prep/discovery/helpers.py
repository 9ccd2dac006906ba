"""Helpers shared by the pattern detectors and type inference."""

from typing import Any, Optional

import pandas as pd

from incremental_prep.core.constants import (
    MISSING_VALUE_TOKENS,
    SEVERITY_CRITICAL_THRESHOLD,
    SEVERITY_HIGH_THRESHOLD,
    SEVERITY_MEDIUM_THRESHOLD,
)
from incremental_prep.discovery.models import Severity


def is_missing_value(value: Any) -> bool:
    """
    True for null/NaN, whitespace-only strings and the missing tokens.

    Example:
        >>> [is_missing_value(v) for v in [None, "  ", "n/a", "0"]]
        [True, True, True, False]
    """
    if value is None:
        return True
    if not isinstance(value, str) and pd.api.types.is_scalar(value) and pd.isna(value):
        return True

    text = str(value).strip()
    return not text or text.upper() in MISSING_VALUE_TOKENS


def calculate_percentage(count: int, total: int) -> float:
    """Fraction count/total, 0.0 when total is zero."""
    return count / total if total > 0 else 0.0


def determine_severity(fraction: float) -> Severity:
    if fraction >= SEVERITY_CRITICAL_THRESHOLD:
        return Severity.CRITICAL
    if fraction >= SEVERITY_HIGH_THRESHOLD:
        return Severity.HIGH
    if fraction >= SEVERITY_MEDIUM_THRESHOLD:
        return Severity.MEDIUM
    return Severity.LOW


def text_values(column: pd.Series):
    """Yield (position, value) for every non-null string cell."""
    for position, value in enumerate(column):
        if isinstance(value, str):
            yield position, value


def find_column(data: pd.DataFrame, name: str) -> Optional[str]:
    """Resolve ``name`` to a column of ``data``, exact match first, then case-insensitive."""
    if name in data.columns:
        return name
    lowered = name.lower()
    for column in data.columns:
        if str(column).lower() == lowered:
            return column
    return None

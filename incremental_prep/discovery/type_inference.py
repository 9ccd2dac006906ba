"""
Column Type Inference - majority-rule semantic typing of string columns.

Architecture:
    Values are parsed with three independent parsers, tried in order:
    1. Numeric (thousands separators stripped, then float)
    2. Datetime (pandas.to_datetime)
    3. Boolean (TRUE/YES/Y/1/ON, FALSE/NO/N/0/OFF)

    The first parser that succeeds wins for that value. A column is assigned the
    type whose hit ratio over the sampled non-missing values exceeds 70%;
    otherwise it is Mixed when numeric or datetime exceeds 30%, else Text.

Usage:
    column_type = ColumnTypeInference.infer(df['price'])
"""

import logging
from enum import Enum
from typing import Any, Optional

import pandas as pd

from incremental_prep.core.constants import (
    TYPE_INFERENCE_SAMPLE_SIZE,
    TYPE_MAJORITY_THRESHOLD,
    TYPE_MIXED_THRESHOLD,
    BOOLEAN_TRUE_TOKENS,
    BOOLEAN_FALSE_TOKENS,
)
from incremental_prep.discovery.helpers import is_missing_value

logger = logging.getLogger(__name__)


class ColumnType(Enum):
    UNKNOWN = "Unknown"
    TYPED_COLUMN = "TypedColumn"
    NUMERIC = "Numeric"
    DATETIME = "DateTime"
    BOOLEAN = "Boolean"
    TEXT = "Text"
    MIXED = "Mixed"


def is_string_column(column: pd.Series) -> bool:
    """Object or pandas string dtype (the only columns that need inference)."""
    return pd.api.types.is_object_dtype(column) or pd.api.types.is_string_dtype(column)


def try_parse_numeric(value: str) -> Optional[float]:
    cleaned = value.replace(",", "").replace(" ", "")
    if not cleaned:
        return None
    try:
        return float(cleaned)
    except ValueError:
        return None


def try_parse_datetime(value: str) -> Optional[Any]:
    text = value.strip()
    if not text:
        return None
    try:
        parsed = pd.to_datetime(text, errors='coerce')
    except (ValueError, OverflowError, TypeError):
        return None
    return None if pd.isna(parsed) else parsed


def try_parse_boolean(value: str) -> Optional[bool]:
    token = value.strip().upper()
    if token in BOOLEAN_TRUE_TOKENS:
        return True
    if token in BOOLEAN_FALSE_TOKENS:
        return False
    return None


class ColumnTypeInference:
    """
    Classifies a column's semantic type from an evenly strided sample.

    Example:
        >>> ColumnTypeInference.infer(pd.Series(["1", "2", "3.5"]))
        <ColumnType.NUMERIC: 'Numeric'>
        >>> ColumnTypeInference.infer(pd.Series([1, 2, 3]))
        <ColumnType.TYPED_COLUMN: 'TypedColumn'>
    """

    @staticmethod
    def infer(column: pd.Series, sample_size: int = TYPE_INFERENCE_SAMPLE_SIZE) -> ColumnType:
        if not is_string_column(column):
            return ColumnType.TYPED_COLUMN

        length = len(column)
        if length == 0:
            return ColumnType.UNKNOWN

        step = max(1, length // min(sample_size, length))
        values = column.iloc[::step].iloc[:sample_size]

        numeric = datetime_hits = boolean = 0
        counted = 0

        for value in values:
            if is_missing_value(value):
                continue

            text = str(value)
            counted += 1
            if try_parse_numeric(text) is not None:
                numeric += 1
            elif try_parse_datetime(text) is not None:
                datetime_hits += 1
            elif try_parse_boolean(text) is not None:
                boolean += 1

        if counted == 0:
            return ColumnType.UNKNOWN

        numeric_ratio = numeric / counted
        datetime_ratio = datetime_hits / counted
        boolean_ratio = boolean / counted

        if numeric_ratio > TYPE_MAJORITY_THRESHOLD:
            return ColumnType.NUMERIC
        if datetime_ratio > TYPE_MAJORITY_THRESHOLD:
            return ColumnType.DATETIME
        if boolean_ratio > TYPE_MAJORITY_THRESHOLD:
            return ColumnType.BOOLEAN
        if numeric_ratio > TYPE_MIXED_THRESHOLD or datetime_ratio > TYPE_MIXED_THRESHOLD:
            return ColumnType.MIXED

        return ColumnType.TEXT

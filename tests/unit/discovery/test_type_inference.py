"""
Unit tests for ColumnTypeInference.

Covers the majority and mixed thresholds, typed and empty columns and the
evenly strided sample taken from long columns.
"""

import numpy as np
import pandas as pd
import pytest

from incremental_prep.discovery.type_inference import (
    ColumnType,
    ColumnTypeInference,
    try_parse_boolean,
    try_parse_datetime,
    try_parse_numeric,
)


def _column(values, times=1):
    return pd.Series(list(values) * times, dtype=object)


# ============================================================================
# MAJORITY RULE
# ============================================================================


@pytest.mark.unit
class TestMajorityRule:
    """Test single-type majorities above 70%."""

    def test_numeric(self):
        column = _column(["1", "2.5", "1,234", "-7", "3", "4", "5", "6", "n/a", "abc"])

        # 8 of 9 non-missing values parse as numbers
        assert ColumnTypeInference.infer(column) == ColumnType.NUMERIC

    def test_datetime(self):
        column = _column(["2024-01-15", "2024-02-01", "2023-12-31", "2024-03-09"], times=5)

        assert ColumnTypeInference.infer(column) == ColumnType.DATETIME

    def test_boolean(self):
        column = _column(["yes", "no", "true", "false"], times=5)

        assert ColumnTypeInference.infer(column) == ColumnType.BOOLEAN

    def test_exactly_seventy_percent_is_not_a_majority(self):
        column = _column(["1"] * 7 + ["apple"] * 3)

        assert ColumnTypeInference.infer(column) == ColumnType.MIXED


@pytest.mark.unit
class TestMixedAndText:
    """Test the fallbacks when no type has a majority."""

    def test_numeric_and_text_is_mixed(self):
        column = _column(["12", "apple", "40", "banana"], times=5)

        assert ColumnTypeInference.infer(column) == ColumnType.MIXED

    def test_datetime_and_text_is_mixed(self):
        column = _column(["2024-01-15", "2024-02-01", "apple", "banana", "cherry"], times=4)

        assert ColumnTypeInference.infer(column) == ColumnType.MIXED

    def test_text(self):
        column = _column(["apple", "banana", "cherry"], times=5)

        assert ColumnTypeInference.infer(column) == ColumnType.TEXT

    def test_few_numbers_stay_text(self):
        column = _column(["12", "apple", "banana", "cherry"], times=5)

        assert ColumnTypeInference.infer(column) == ColumnType.TEXT


# ============================================================================
# SPECIAL COLUMNS
# ============================================================================


@pytest.mark.unit
class TestSpecialColumns:
    """Test typed, empty and all-missing columns."""

    @pytest.mark.parametrize("column", [
        pd.Series([1, 2, 3]),
        pd.Series([1.5, np.nan]),
        pd.Series([True, False]),
        pd.Series(pd.to_datetime(["2024-01-01", "2024-01-02"])),
    ])
    def test_non_object_dtype_is_typed(self, column):
        assert ColumnTypeInference.infer(column) == ColumnType.TYPED_COLUMN

    def test_empty_column(self):
        assert ColumnTypeInference.infer(pd.Series([], dtype=object)) == ColumnType.UNKNOWN

    def test_all_missing(self):
        column = _column([None, np.nan, "", "  ", "NULL", "n/a"])

        assert ColumnTypeInference.infer(column) == ColumnType.UNKNOWN


# ============================================================================
# SAMPLING
# ============================================================================


@pytest.mark.unit
class TestStridedSample:
    """Test that long columns are judged on every (length/100)th value."""

    def test_only_strided_positions_are_read(self):
        # 1000 rows: step 10, so positions 0, 10, ..., 990 are sampled
        values = ["12" if i % 10 == 0 else "apple" for i in range(1000)]

        assert ColumnTypeInference.infer(_column(values)) == ColumnType.NUMERIC

    def test_unsampled_positions_are_ignored(self):
        values = ["apple" if i % 10 == 0 else "12" for i in range(1000)]

        assert ColumnTypeInference.infer(_column(values)) == ColumnType.TEXT

    def test_short_column_read_in_full(self):
        values = ["12"] * 60 + ["apple"] * 30

        assert ColumnTypeInference.infer(_column(values)) == ColumnType.MIXED


@pytest.mark.unit
class TestValueParsers:
    """Test the per-value parsers."""

    def test_numeric(self):
        assert try_parse_numeric("1,234.5") == 1234.5
        assert try_parse_numeric("1 000") == 1000.0
        assert try_parse_numeric("abc") is None
        assert try_parse_numeric(" ") is None

    def test_datetime(self):
        assert try_parse_datetime("2024-01-15") == pd.Timestamp("2024-01-15")
        assert try_parse_datetime("apple") is None

    @pytest.mark.parametrize("token,expected", [
        ("yes", True), ("ON", True), ("y", True),
        ("No", False), ("off", False), ("0", False),
        ("maybe", None),
    ])
    def test_boolean(self, token, expected):
        assert try_parse_boolean(token) is expected

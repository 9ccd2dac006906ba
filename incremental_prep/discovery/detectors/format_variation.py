"""
Format variation detection for date, number and boolean columns.

Only string columns whose inferred type is DateTime, Numeric or Boolean are
scanned; the inferred type selects which check runs.
"""

import re
from collections import Counter
from typing import List, Optional

import pandas as pd

from incremental_prep.core.cancellation import CancellationToken, check_periodically
from incremental_prep.core.constants import MAX_PATTERN_EXAMPLES
from incremental_prep.discovery.detectors.base import PatternDetector
from incremental_prep.discovery.helpers import is_missing_value
from incremental_prep.discovery.models import DetectedPattern, PatternType, Severity
from incremental_prep.discovery.type_inference import (
    ColumnType,
    ColumnTypeInference,
    is_string_column,
    try_parse_datetime,
    try_parse_boolean,
)

DATE_FORMATS = (
    ("ISO-8601", re.compile(r"^\d{4}-\d{2}-\d{2}$")),
    ("US", re.compile(r"^\d{1,2}/\d{1,2}/\d{2,4}$")),
    ("EU", re.compile(r"^\d{1,2}\.\d{1,2}\.\d{2,4}$")),
)

NUMBER_STYLES = ("comma-thousands", "comma-decimal", "space-separator", "dot-decimal")

_APPLICABLE_TYPES = (ColumnType.DATETIME, ColumnType.NUMERIC, ColumnType.BOOLEAN)


def classify_date_format(value: str) -> Optional[str]:
    """ISO-8601 / US / EU by regex, "Other" for any other parseable date."""
    text = value.strip()
    for name, pattern in DATE_FORMATS:
        if pattern.match(text):
            return name
    if try_parse_datetime(text) is not None:
        return "Other"
    return None


def classify_number_style(value: str) -> Optional[str]:
    """
    Separator style of a numeric string.

    Example:
        >>> classify_number_style("1,234.50"), classify_number_style("1.234,50")
        ('comma-thousands', 'comma-decimal')
    """
    text = value.strip()
    has_comma = "," in text
    has_dot = "." in text

    if has_comma and has_dot:
        return "comma-decimal" if text.rfind(",") > text.rfind(".") else "comma-thousands"
    if has_comma:
        if text.count(",") == 1 and text.index(",") > len(text) - 4:
            return "comma-decimal"
        return "comma-thousands"
    if " " in text:
        return "space-separator"
    if has_dot:
        return "dot-decimal"
    return None


class FormatVariationDetector(PatternDetector):
    """Reports inconsistent representations within a typed string column."""

    pattern_type = PatternType.FORMAT_VARIATION

    def is_applicable(self, column: pd.Series) -> bool:
        return is_string_column(column) and ColumnTypeInference.infer(column) in _APPLICABLE_TYPES

    def _detect(
        self,
        column: pd.Series,
        column_name: str,
        cancellation: Optional[CancellationToken]
    ) -> List[DetectedPattern]:
        column_type = ColumnTypeInference.infer(column)
        values = []
        for i, value in enumerate(column):
            check_periodically(cancellation, i)
            if not is_missing_value(value):
                values.append(str(value))

        if column_type == ColumnType.DATETIME:
            pattern = self._date_variation(values, column_name, len(column))
        elif column_type == ColumnType.NUMERIC:
            pattern = self._number_variation(values, column_name, len(column))
        else:
            pattern = self._boolean_variation(values, column_name, len(column))

        return [pattern] if pattern else []

    def _date_variation(self, values: List[str], column_name: str, total_rows: int) -> Optional[DetectedPattern]:
        formats: Counter = Counter()
        examples = {}
        for value in values:
            name = classify_date_format(value)
            if name is None:
                continue
            formats[name] += 1
            examples.setdefault(name, value)

        if len(formats) <= 1:
            return None

        total = sum(formats.values())
        ordered = [name for name, _ in DATE_FORMATS if name in formats]
        if "Other" in formats:
            ordered.append("Other")

        return DetectedPattern(
            type=self.pattern_type,
            column_name=column_name,
            description="Date format variations: " + ", ".join(
                f"{name} ({formats[name]})" for name in ordered
            ),
            severity=Severity.MEDIUM,
            occurrences=total - max(formats.values()),
            total_rows=total_rows,
            confidence=0.90,
            examples=tuple(f"{name}: {examples[name]}" for name in ordered[:MAX_PATTERN_EXAMPLES]),
            suggested_fix="Convert all dates to ISO-8601 (YYYY-MM-DD) format",
            variant="date",
        )

    def _number_variation(self, values: List[str], column_name: str, total_rows: int) -> Optional[DetectedPattern]:
        styles: Counter = Counter()
        examples = {}
        for value in values:
            style = classify_number_style(value)
            if style is None:
                continue
            styles[style] += 1
            examples.setdefault(style, value)

        separators = styles["comma-thousands"] + styles["space-separator"]
        signals = [styles["comma-thousands"], styles["space-separator"], styles["comma-decimal"]]
        if sum(1 for count in signals if count > 0) <= 1:
            return None

        ordered = [style for style in NUMBER_STYLES if styles[style] > 0]

        return DetectedPattern(
            type=self.pattern_type,
            column_name=column_name,
            description="Number format variations: " + ", ".join(
                f"{style} ({styles[style]})" for style in ordered
            ),
            severity=Severity.LOW,
            occurrences=min(separators, styles["comma-decimal"]) or min(
                count for count in signals if count > 0
            ),
            total_rows=total_rows,
            confidence=0.85,
            examples=tuple(f"{style}: {examples[style]}" for style in ordered[:MAX_PATTERN_EXAMPLES]),
            suggested_fix="Remove thousand separators, standardize decimal point to dot (.)",
            variant="number",
        )

    def _boolean_variation(self, values: List[str], column_name: str, total_rows: int) -> Optional[DetectedPattern]:
        representations: Counter = Counter()
        for value in values:
            if try_parse_boolean(value) is not None:
                representations[value.strip().upper()] += 1

        if len(representations) <= 2:
            return None

        total = sum(representations.values())
        most_common = representations.most_common()

        return DetectedPattern(
            type=self.pattern_type,
            column_name=column_name,
            description=f"Boolean format variations: {len(representations)} representations",
            severity=Severity.LOW,
            occurrences=total - most_common[0][1],
            total_rows=total_rows,
            confidence=0.90,
            examples=tuple(value for value, _ in most_common[:MAX_PATTERN_EXAMPLES]),
            suggested_fix="Convert all booleans to true/false or 1/0",
            variant="boolean",
        )

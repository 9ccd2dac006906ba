"""Outlier detection combining Z-score and IQR fences."""

from typing import List, Optional

import pandas as pd

from incremental_prep.core.cancellation import CancellationToken, check_cancelled
from incremental_prep.core.constants import (
    MAX_PATTERN_EXAMPLES,
    OUTLIER_MIN_FRACTION,
    OUTLIER_MAX_FRACTION,
    OUTLIER_HIGH_FRACTION,
    OUTLIER_MEDIUM_FRACTION,
)
from incremental_prep.discovery import statistics
from incremental_prep.discovery.detectors.base import PatternDetector
from incremental_prep.discovery.helpers import calculate_percentage
from incremental_prep.discovery.models import DetectedPattern, PatternType, Severity

_SUGGESTED_FIXES = {
    Severity.HIGH: "Review data collection process, consider capping or removing extreme values",
    Severity.MEDIUM: "Investigate outliers, consider using robust statistical methods",
    Severity.LOW: "Document outliers, consider keeping if legitimate data points",
}


class OutlierDetector(PatternDetector):
    """
    Flags numeric values beyond |z| > 3 or outside the 1.5*IQR fences.

    Only reports when the union of both methods covers between 1% and 30% of
    the column: fewer is noise, more is a distribution problem rather than
    outliers.
    """

    pattern_type = PatternType.OUTLIER_ANOMALY

    def is_applicable(self, column: pd.Series) -> bool:
        return (
            pd.api.types.is_numeric_dtype(column)
            and not pd.api.types.is_bool_dtype(column)
        )

    def _detect(
        self,
        column: pd.Series,
        column_name: str,
        cancellation: Optional[CancellationToken]
    ) -> List[DetectedPattern]:
        z_positions = statistics.zscore_outliers(column)
        check_cancelled(cancellation)
        iqr_positions = statistics.iqr_outliers(column)
        check_cancelled(cancellation)

        positions = sorted(set(z_positions) | set(iqr_positions))
        if not positions:
            return []

        fraction = calculate_percentage(len(positions), len(column))
        if fraction < OUTLIER_MIN_FRACTION or fraction > OUTLIER_MAX_FRACTION:
            return []

        if fraction >= OUTLIER_HIGH_FRACTION:
            severity = Severity.HIGH
        elif fraction >= OUTLIER_MEDIUM_FRACTION:
            severity = Severity.MEDIUM
        else:
            severity = Severity.LOW

        methods = []
        if z_positions:
            methods.append(f"{len(z_positions)} by Z-score")
        if iqr_positions:
            methods.append(f"{len(iqr_positions)} by IQR")

        examples = tuple(
            f"Row {i}: {column.iloc[i]}" for i in positions[:MAX_PATTERN_EXAMPLES]
        )

        return [DetectedPattern(
            type=self.pattern_type,
            column_name=column_name,
            description=f"{fraction:.1%} outliers detected ({', '.join(methods)})",
            severity=severity,
            occurrences=len(positions),
            total_rows=len(column),
            confidence=0.85,
            examples=examples,
            suggested_fix=_SUGGESTED_FIXES[severity],
        )]

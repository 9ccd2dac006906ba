"""Missing value detection (nulls, blanks and placeholder tokens)."""

from typing import List, Optional

import pandas as pd

from incremental_prep.core.cancellation import CancellationToken, check_periodically
from incremental_prep.core.constants import MAX_PATTERN_EXAMPLES, NULL_EXAMPLE_PLACEHOLDER
from incremental_prep.discovery.detectors.base import PatternDetector
from incremental_prep.discovery.helpers import (
    is_missing_value,
    calculate_percentage,
    determine_severity,
)
from incremental_prep.discovery.models import DetectedPattern, PatternType, Severity

_SUGGESTED_FIXES = {
    Severity.CRITICAL: "Consider dropping column or collecting better data",
    Severity.HIGH: "Impute with median/mode or use predictive model",
    Severity.MEDIUM: "Impute with median/mode or forward/backward fill",
    Severity.LOW: "Impute with median/mode or drop rows",
}


class MissingValueDetector(PatternDetector):
    """Counts missing cells in any column; confidence is always 1.0."""

    pattern_type = PatternType.MISSING_VALUE

    def is_applicable(self, column: pd.Series) -> bool:
        return True

    def _detect(
        self,
        column: pd.Series,
        column_name: str,
        cancellation: Optional[CancellationToken]
    ) -> List[DetectedPattern]:
        missing = 0
        examples: List[str] = []

        for i, value in enumerate(column):
            check_periodically(cancellation, i)
            if not is_missing_value(value):
                continue

            missing += 1
            representation = (
                NULL_EXAMPLE_PLACEHOLDER
                if value is None or (not isinstance(value, str) and pd.isna(value))
                else str(value)
            )
            if len(examples) < MAX_PATTERN_EXAMPLES and representation not in examples:
                examples.append(representation)

        if missing == 0:
            return []

        fraction = calculate_percentage(missing, len(column))
        severity = determine_severity(fraction)

        return [DetectedPattern(
            type=self.pattern_type,
            column_name=column_name,
            description=f"{fraction:.1%} missing values ({', '.join(examples)})",
            severity=severity,
            occurrences=missing,
            total_rows=len(column),
            confidence=1.0,
            examples=tuple(examples),
            suggested_fix=_SUGGESTED_FIXES[severity],
        )]

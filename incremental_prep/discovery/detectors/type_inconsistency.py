"""Mixed-type column detection (numbers, dates, booleans and text together)."""

from typing import Dict, List, Optional

import pandas as pd

from incremental_prep.core.cancellation import CancellationToken, check_periodically
from incremental_prep.core.constants import (
    MAX_PATTERN_EXAMPLES,
    TYPE_BUCKET_EXAMPLES,
    TYPE_INCONSISTENCY_MIN_MINORITY,
)
from incremental_prep.discovery.detectors.base import PatternDetector
from incremental_prep.discovery.helpers import is_missing_value, determine_severity, calculate_percentage
from incremental_prep.discovery.models import DetectedPattern, PatternType
from incremental_prep.discovery.type_inference import (
    ColumnType,
    ColumnTypeInference,
    is_string_column,
    try_parse_numeric,
    try_parse_datetime,
    try_parse_boolean,
)

_BUCKETS = ("numeric", "datetime", "boolean", "text")

_SUGGESTED_FIXES = {
    "numeric": "Convert to numeric, handle non-numeric as NULL or default",
    "datetime": "Convert to datetime, standardize format",
    "boolean": "Convert to boolean, map text values",
    "text": "Keep as text, validate and normalize values",
}


def classify_value(text: str) -> str:
    """Bucket a value with the same parser order as type inference."""
    if try_parse_numeric(text) is not None:
        return "numeric"
    if try_parse_datetime(text) is not None:
        return "datetime"
    if try_parse_boolean(text) is not None:
        return "boolean"
    return "text"


class TypeInconsistencyDetector(PatternDetector):
    """
    Runs only on columns inferred as Mixed; reports the minority bucket when it
    exceeds 5% of the non-missing values.
    """

    pattern_type = PatternType.TYPE_INCONSISTENCY

    def is_applicable(self, column: pd.Series) -> bool:
        return is_string_column(column) and ColumnTypeInference.infer(column) == ColumnType.MIXED

    def _detect(
        self,
        column: pd.Series,
        column_name: str,
        cancellation: Optional[CancellationToken]
    ) -> List[DetectedPattern]:
        counts: Dict[str, int] = {bucket: 0 for bucket in _BUCKETS}
        examples: Dict[str, List[str]] = {bucket: [] for bucket in _BUCKETS}

        for i, value in enumerate(column):
            check_periodically(cancellation, i)
            if is_missing_value(value):
                continue

            text = str(value)
            bucket = classify_value(text)
            counts[bucket] += 1
            if len(examples[bucket]) < TYPE_BUCKET_EXAMPLES:
                examples[bucket].append(text)

        total = sum(counts.values())
        populated = [bucket for bucket in _BUCKETS if counts[bucket] > 0]
        if total == 0 or len(populated) < 2:
            return []

        minority = min(counts[bucket] for bucket in populated)
        if minority / total <= TYPE_INCONSISTENCY_MIN_MINORITY:
            return []

        majority = max(populated, key=lambda bucket: counts[bucket])
        description = "Mixed types: " + ", ".join(
            f"{counts[bucket]} {bucket}" for bucket in populated
        )
        all_examples = [e for bucket in populated for e in examples[bucket]]

        return [DetectedPattern(
            type=self.pattern_type,
            column_name=column_name,
            description=description,
            severity=determine_severity(calculate_percentage(minority, len(column))),
            occurrences=minority,
            total_rows=len(column),
            confidence=0.95,
            examples=tuple(all_examples[:MAX_PATTERN_EXAMPLES]),
            suggested_fix=_SUGGESTED_FIXES[majority],
            variant=majority,
        )]

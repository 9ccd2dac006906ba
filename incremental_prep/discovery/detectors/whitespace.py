"""Leading/trailing/repeated whitespace and control character detection."""

from typing import List, Optional

import pandas as pd

from incremental_prep.core.cancellation import CancellationToken, check_periodically
from incremental_prep.core.constants import MAX_PATTERN_EXAMPLES, WHITESPACE_MEDIUM_FRACTION
from incremental_prep.discovery.detectors.base import PatternDetector
from incremental_prep.discovery.helpers import calculate_percentage, text_values
from incremental_prep.discovery.models import DetectedPattern, PatternType, Severity
from incremental_prep.discovery.type_inference import is_string_column


def has_whitespace_issue(value: str) -> bool:
    if not value.strip():
        return False
    return (
        value != value.lstrip()
        or value != value.rstrip()
        or "  " in value
        or any(c in value for c in "\t\n\r")
    )


class WhitespaceDetector(PatternDetector):
    """
    Counts whitespace problems per kind; one value can contribute to several
    counts. Severity never exceeds Medium.
    """

    pattern_type = PatternType.WHITESPACE_ISSUE

    def is_applicable(self, column: pd.Series) -> bool:
        return is_string_column(column)

    def _detect(
        self,
        column: pd.Series,
        column_name: str,
        cancellation: Optional[CancellationToken]
    ) -> List[DetectedPattern]:
        leading = trailing = multiple = control = 0
        examples: List[str] = []

        for position, value in text_values(column):
            check_periodically(cancellation, position)
            if not value.strip():
                continue

            flagged = False
            if value[0].isspace():
                leading += 1
                flagged = True
            if value[-1].isspace():
                trailing += 1
                flagged = True
            if "  " in value:
                multiple += 1
                flagged = True
            if any(c in value for c in "\t\n\r"):
                control += 1
                flagged = True

            if flagged and len(examples) < MAX_PATTERN_EXAMPLES:
                examples.append(f"'{value}'")

        occurrences = leading + trailing + multiple + control
        if occurrences == 0:
            return []

        fraction = calculate_percentage(occurrences, len(column))
        severity = Severity.MEDIUM if fraction >= WHITESPACE_MEDIUM_FRACTION else Severity.LOW

        parts = []
        if leading:
            parts.append(f"{leading} leading spaces")
        if trailing:
            parts.append(f"{trailing} trailing spaces")
        if multiple:
            parts.append(f"{multiple} multiple spaces")
        if control:
            parts.append(f"{control} tabs/newlines")

        return [DetectedPattern(
            type=self.pattern_type,
            column_name=column_name,
            description=f"Whitespace issues: {', '.join(parts)}",
            severity=severity,
            occurrences=occurrences,
            total_rows=len(column),
            confidence=1.0,
            examples=tuple(examples),
            suggested_fix="Trim leading/trailing spaces, collapse multiple spaces to single space",
        )]

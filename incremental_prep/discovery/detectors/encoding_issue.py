"""
Character encoding corruption detection.

Three independent signals per value:
    1. Mojibake - characters typical of UTF-8 bytes misread as Latin-1/cp1252
    2. Replacement characters (U+FFFD) left behind by a lossy decode
    3. Suspicious clusters - runs of 3+ non-ASCII characters that are in fact a
       valid UTF-8 byte sequence read with a single-byte codec

The checks are heuristics; the pattern confidence is fixed at 0.85.
"""

import re
from typing import List, Optional

import pandas as pd

from incremental_prep.core.cancellation import CancellationToken, check_periodically
from incremental_prep.core.constants import (
    ENCODING_CONFIDENCE,
    ENCODING_EXAMPLE_MAX_LENGTH,
    ENCODING_LETTER_RATIO,
    MAX_PATTERN_EXAMPLES,
    REPLACEMENT_CHARACTER,
)
from incremental_prep.discovery.detectors.base import PatternDetector
from incremental_prep.discovery.helpers import calculate_percentage, determine_severity, text_values
from incremental_prep.discovery.models import DetectedPattern, PatternType, Severity
from incremental_prep.discovery.type_inference import is_string_column

MOJIBAKE_PATTERN = re.compile("[\u00c3\u00a2\u0080\u009c\u0093\u0094\u0098\u0099]")
NON_ASCII_CLUSTER = re.compile(r"[^\x00-\x7F]{3,}")

# cp1252 first: it maps the 0x80-0x9F range to the punctuation seen in mojibake
_SINGLE_BYTE_CODECS = ("cp1252", "latin-1")

_SUGGESTED_FIXES = {
    Severity.CRITICAL: "Re-import data with correct encoding (UTF-8 recommended)",
    Severity.HIGH: "Detect source encoding and convert to UTF-8",
    Severity.MEDIUM: "Try encoding detection and conversion, verify results",
    Severity.LOW: "Document encoding and consider conversion if needed",
}


def reinterpret_as_utf8(text: str) -> Optional[str]:
    """
    Undo a UTF-8 -> single-byte misread, or None if ``text`` is not one.

    Example:
        >>> reinterpret_as_utf8("CafÃ©")
        'Café'
    """
    for codec in _SINGLE_BYTE_CODECS:
        try:
            repaired = text.encode(codec).decode("utf-8")
        except (UnicodeEncodeError, UnicodeDecodeError):
            continue
        if repaired != text:
            return repaired
    return None


def is_suspicious_cluster(value: str) -> bool:
    """
    A run of 3+ non-ASCII characters that shrinks by more than 1.5x when
    re-decoded as UTF-8.
    """
    for match in NON_ASCII_CLUSTER.finditer(value):
        cluster = match.group(0)
        repaired = reinterpret_as_utf8(cluster)
        if repaired is not None and len(cluster) > len(repaired) * ENCODING_LETTER_RATIO:
            return True
    return False


def has_encoding_issue(value: str) -> bool:
    return (
        bool(MOJIBAKE_PATTERN.search(value))
        or REPLACEMENT_CHARACTER in value
        or is_suspicious_cluster(value)
    )


class EncodingIssueDetector(PatternDetector):
    """Flags mojibake, replacement characters and misdecoded clusters."""

    pattern_type = PatternType.ENCODING_ISSUE

    def is_applicable(self, column: pd.Series) -> bool:
        return is_string_column(column)

    def _detect(
        self,
        column: pd.Series,
        column_name: str,
        cancellation: Optional[CancellationToken]
    ) -> List[DetectedPattern]:
        mojibake = replacement = corrupted = 0
        examples: List[str] = []

        for position, value in text_values(column):
            check_periodically(cancellation, position)

            flagged = False
            if MOJIBAKE_PATTERN.search(value):
                mojibake += 1
                flagged = True
            if REPLACEMENT_CHARACTER in value:
                replacement += 1
                flagged = True
            if is_suspicious_cluster(value):
                corrupted += 1
                flagged = True

            if flagged and len(examples) < MAX_PATTERN_EXAMPLES:
                if len(value) > ENCODING_EXAMPLE_MAX_LENGTH:
                    examples.append(value[:ENCODING_EXAMPLE_MAX_LENGTH] + "...")
                else:
                    examples.append(value)

        occurrences = mojibake + replacement + corrupted
        if occurrences == 0:
            return []

        severity = determine_severity(calculate_percentage(occurrences, len(column)))

        parts = []
        if mojibake:
            parts.append(f"{mojibake} mojibake")
        if replacement:
            parts.append(f"{replacement} replacement chars")
        if corrupted:
            parts.append(f"{corrupted} encoding corruptions")

        return [DetectedPattern(
            type=self.pattern_type,
            column_name=column_name,
            description=f"Character encoding issues: {', '.join(parts)}",
            severity=severity,
            occurrences=occurrences,
            total_rows=len(column),
            confidence=ENCODING_CONFIDENCE,
            examples=tuple(examples),
            suggested_fix=_SUGGESTED_FIXES[severity],
        )]

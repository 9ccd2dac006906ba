"""
Category variation detection.

Two independent checks over the distinct normalized (trimmed, upper-cased)
values of a low-cardinality string column:
    1. Case variants - one normalized value written with several casings
    2. Near-duplicate spellings - normalized values whose Levenshtein
       similarity is at least CATEGORY_SIMILARITY_THRESHOLD
"""

from collections import OrderedDict
from itertools import combinations
from typing import Dict, List, Optional, Set

import pandas as pd

from incremental_prep.core.cancellation import CancellationToken, check_cancelled, check_periodically
from incremental_prep.core.constants import (
    MAX_CATEGORIES,
    CATEGORY_SIMILARITY_THRESHOLD,
    MAX_CASE_VARIATION_EXAMPLES,
    MAX_PATTERN_EXAMPLES,
)
from incremental_prep.discovery.detectors.base import PatternDetector
from incremental_prep.discovery.helpers import is_missing_value, text_values
from incremental_prep.discovery.models import DetectedPattern, PatternType, Severity
from incremental_prep.discovery.type_inference import is_string_column


def levenshtein_distance(a: str, b: str) -> int:
    """Wagner-Fischer edit distance with two rolling rows."""
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    prev_row = list(range(len(b) + 1))
    curr_row = [0] * (len(b) + 1)

    for i in range(1, len(a) + 1):
        curr_row[0] = i
        for j in range(1, len(b) + 1):
            cost = 0 if a[i - 1] == b[j - 1] else 1
            curr_row[j] = min(
                prev_row[j] + 1,
                curr_row[j - 1] + 1,
                prev_row[j - 1] + cost,
            )
        prev_row, curr_row = curr_row, prev_row

    return prev_row[len(b)]


def similarity(a: str, b: str) -> float:
    """
    1 - distance / max(len(a), len(b)); 1.0 when both strings are empty.

    Example:
        >>> round(similarity("CALIFORNIA", "CALIFRONIA"), 2)
        0.8
    """
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - levenshtein_distance(a, b) / longest


def build_category_mapping(
    column: pd.Series,
    include_similar: bool = True,
    similarity_threshold: float = CATEGORY_SIMILARITY_THRESHOLD
) -> Dict[str, str]:
    """
    Map each non-canonical category spelling to its canonical form.

    Within one normalized value the most frequent casing is canonical. With
    ``include_similar``, the less frequent of two similar normalized values is
    merged into the more frequent one.

    Example:
        >>> build_category_mapping(pd.Series(["Active", "Active", "ACTIVE", "active"]))
        {'ACTIVE': 'Active', 'active': 'Active'}
    """
    groups: Dict[str, Dict[str, int]] = OrderedDict()
    for _, value in text_values(column):
        if is_missing_value(value):
            continue
        original = value.strip()
        counts = groups.setdefault(original.upper(), {})
        counts[original] = counts.get(original, 0) + 1

    canonical = {key: max(originals, key=originals.get) for key, originals in groups.items()}

    target = dict(canonical)
    if include_similar:
        totals = {key: sum(originals.values()) for key, originals in groups.items()}
        for a, b in combinations(groups.keys(), 2):
            if similarity(a, b) >= similarity_threshold:
                keep, merge = (a, b) if totals[a] >= totals[b] else (b, a)
                target[merge] = canonical[keep]

    mapping = {}
    for key, originals in groups.items():
        for original in originals:
            if original != target[key]:
                mapping[original] = target[key]
    return mapping


class CategoryVariationDetector(PatternDetector):
    """Reports case variants and likely typos among category labels."""

    pattern_type = PatternType.CATEGORY_VARIATION

    def __init__(
        self,
        max_categories: int = MAX_CATEGORIES,
        similarity_threshold: float = CATEGORY_SIMILARITY_THRESHOLD
    ):
        self.max_categories = max_categories
        self.similarity_threshold = similarity_threshold

    def is_applicable(self, column: pd.Series) -> bool:
        return is_string_column(column)

    def _detect(
        self,
        column: pd.Series,
        column_name: str,
        cancellation: Optional[CancellationToken]
    ) -> List[DetectedPattern]:
        variants: Dict[str, Set[str]] = OrderedDict()

        for position, value in text_values(column):
            check_periodically(cancellation, position)
            if is_missing_value(value):
                continue

            original = value.strip()
            variants.setdefault(original.upper(), set()).add(original)

            if len(variants) > self.max_categories:
                return []

        patterns: List[DetectedPattern] = []

        case_pattern = self._case_variations(variants, column_name, len(column))
        if case_pattern:
            patterns.append(case_pattern)

        check_cancelled(cancellation)
        similar_pattern = self._similar_categories(variants, column_name, len(column), cancellation)
        if similar_pattern:
            patterns.append(similar_pattern)

        return patterns

    def _case_variations(
        self,
        variants: Dict[str, Set[str]],
        column_name: str,
        total_rows: int
    ) -> Optional[DetectedPattern]:
        groups = [sorted(originals) for originals in variants.values() if len(originals) > 1]
        if not groups:
            return None

        examples = tuple(
            ", ".join(group) for group in groups[:MAX_CASE_VARIATION_EXAMPLES]
        )

        return DetectedPattern(
            type=self.pattern_type,
            column_name=column_name,
            description=f"Case variations in {len(groups)} categories",
            severity=Severity.LOW,
            occurrences=sum(len(group) - 1 for group in groups),
            total_rows=total_rows,
            confidence=0.95,
            examples=examples,
            suggested_fix="Normalize to lowercase or proper case",
            variant="case",
        )

    def _similar_categories(
        self,
        variants: Dict[str, Set[str]],
        column_name: str,
        total_rows: int,
        cancellation: Optional[CancellationToken]
    ) -> Optional[DetectedPattern]:
        pairs = []
        for i, (a, b) in enumerate(combinations(variants.keys(), 2)):
            check_periodically(cancellation, i)
            if similarity(a, b) >= self.similarity_threshold:
                pairs.append((a, b))

        if not pairs:
            return None

        return DetectedPattern(
            type=self.pattern_type,
            column_name=column_name,
            description=f"{len(pairs)} similar category pairs (potential typos)",
            severity=Severity.MEDIUM,
            occurrences=len(pairs) * 2,
            total_rows=total_rows,
            confidence=0.80,
            examples=tuple(f"{a} ≈ {b}" for a, b in pairs[:MAX_PATTERN_EXAMPLES]),
            suggested_fix="Review similar categories and merge if typos, keep separate if distinct",
            variant="similar",
        )

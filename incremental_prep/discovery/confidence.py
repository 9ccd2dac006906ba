"""
Confidence Calculator - three-axis scoring of discovered rules.

Axes:
    consistency: Expected share of affected rows the rule's strategy handles
        successfully (per rule type success rate, floored to whole rows)
    coverage: Fraction of the column's rows in sample A the rule touches
    stability: 1 - |rate_A - rate_B|, agreement of the affected rate between
        two independently drawn samples

Overall = consistency*0.5 + coverage*0.3 + stability*0.2 (ConfidenceScore.overall).
"""

import logging
import math

import numpy as np
import pandas as pd

from incremental_prep.core.constants import (
    RULE_SUCCESS_RATES,
    DEFAULT_SUCCESS_RATE,
)
from incremental_prep.discovery import statistics
from incremental_prep.discovery.detectors.category_variation import build_category_mapping
from incremental_prep.discovery.detectors.encoding_issue import has_encoding_issue
from incremental_prep.discovery.detectors.format_variation import classify_date_format
from incremental_prep.discovery.detectors.type_inconsistency import classify_value
from incremental_prep.discovery.detectors.whitespace import has_whitespace_issue
from incremental_prep.discovery.helpers import find_column, is_missing_value
from incremental_prep.discovery.models import (
    ConfidenceScore,
    PreprocessingRule,
    PreprocessingRuleType,
)
from incremental_prep.discovery.type_inference import try_parse_boolean

logger = logging.getLogger(__name__)


def affected_mask(rule: PreprocessingRule, column: pd.Series) -> pd.Series:
    """
    Boolean mask of the rows ``rule`` would change in ``column``.

    Also used by the rule applier to report the rows a rule targets.
    """
    rule_type = rule.type

    if rule_type == PreprocessingRuleType.MISSING_VALUE_STRATEGY:
        return column.map(is_missing_value).astype(bool)

    if rule_type == PreprocessingRuleType.OUTLIER_HANDLING:
        mask = np.zeros(len(column), dtype=bool)
        if pd.api.types.is_numeric_dtype(column):
            positions = sorted(statistics.outlier_positions(column))
            mask[positions] = True
        return pd.Series(mask, index=column.index)

    if rule_type == PreprocessingRuleType.WHITESPACE_NORMALIZATION:
        return column.map(lambda v: isinstance(v, str) and has_whitespace_issue(v)).astype(bool)

    if rule_type == PreprocessingRuleType.ENCODING_NORMALIZATION:
        return column.map(lambda v: isinstance(v, str) and has_encoding_issue(v)).astype(bool)

    if rule_type == PreprocessingRuleType.CATEGORY_MAPPING:
        return _category_mask(rule, column)

    if rule_type == PreprocessingRuleType.TYPE_CONVERSION:
        if rule.parameters.get('variant') == "boolean":
            return column.map(_is_non_canonical_boolean).astype(bool)
        return _minority_mask(column, classify_value)

    if rule_type == PreprocessingRuleType.DATE_FORMAT_STANDARDIZATION:
        return _minority_mask(column, classify_date_format)

    if rule_type == PreprocessingRuleType.NUMERIC_FORMAT_STANDARDIZATION:
        return column.map(
            lambda v: isinstance(v, str) and ("," in v or " " in v.strip())
        ).astype(bool)

    return pd.Series(True, index=column.index)


def _category_mask(rule: PreprocessingRule, column: pd.Series) -> pd.Series:
    include_similar = rule.parameters.get('variant') != "case"
    mapping = build_category_mapping(column, include_similar=include_similar)
    return column.map(lambda v: isinstance(v, str) and v.strip() in mapping).astype(bool)


def _is_non_canonical_boolean(value) -> bool:
    return (
        isinstance(value, str)
        and try_parse_boolean(value) is not None
        and value.strip() not in ("True", "False")
    )


def _minority_mask(column: pd.Series, classify) -> pd.Series:
    labels = column.map(
        lambda v: None if is_missing_value(v) else classify(str(v))
    )
    known = labels.dropna()
    if known.empty:
        return pd.Series(False, index=column.index)
    majority = known.value_counts().idxmax()
    return (labels.notna() & (labels != majority)).astype(bool)


class ConfidenceCalculator:
    """
    Scores a rule against two samples.

    Example:
        >>> calculator = ConfidenceCalculator()
        >>> score = calculator.calculate(rule, sample_stage_1, sample_stage_2)
        >>> score.stability
        0.98
    """

    def calculate(
        self,
        rule: PreprocessingRule,
        sample_a: pd.DataFrame,
        sample_b: pd.DataFrame
    ) -> ConfidenceScore:
        column_a = find_column(sample_a, rule.primary_column) if sample_a is not None else None
        column_b = find_column(sample_b, rule.primary_column) if sample_b is not None else None

        if column_a is None:
            logger.debug(f"Column '{rule.primary_column}' not in sample A; rule {rule.id} scored 0")
            return ConfidenceScore(consistency=0.0, coverage=0.0, stability=0.0)

        mask_a = affected_mask(rule, sample_a[column_a])
        rate_a = float(mask_a.mean()) if len(mask_a) else 0.0

        consistency = self.calculate_consistency(rule, int(mask_a.sum()))
        coverage = min(1.0, rate_a)

        if column_b is None:
            stability = 0.0
        elif sample_b is sample_a:
            stability = 1.0
        else:
            mask_b = affected_mask(rule, sample_b[column_b])
            rate_b = float(mask_b.mean()) if len(mask_b) else 0.0
            stability = max(0.0, 1.0 - abs(rate_a - rate_b))

        score = ConfidenceScore(consistency=consistency, coverage=coverage, stability=stability)
        logger.debug(f"Rule {rule.id}: {score.to_dict()}")
        return score

    @staticmethod
    def calculate_consistency(rule: PreprocessingRule, applicable_rows: int) -> float:
        """Share of applicable rows the strategy is expected to handle."""
        if applicable_rows == 0:
            return 1.0
        rate = RULE_SUCCESS_RATES.get(rule.type.name, DEFAULT_SUCCESS_RATE)
        return math.floor(applicable_rows * rate + 1e-9) / applicable_rows

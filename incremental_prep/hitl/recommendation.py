"""
Recommendation Engine - picks the suggested answer for a HITL question.

Recommendations are simple, explainable heuristics on the affected fraction
of the sample and the column's dtype:

    Missing values: < 5% affected -> delete rows (A); numeric -> median (C);
        otherwise -> mode (D)
    Outliers: < 1% -> remove (B); < 5% -> keep (A); otherwise -> cap (C)
    Category variations: merge (A)
    Type inconsistency: convert to the majority type (A)
    Business logic: keep as-is (C)
"""

from typing import Tuple

import pandas as pd

from incremental_prep.discovery.helpers import find_column
from incremental_prep.discovery.models import PreprocessingRule, PreprocessingRuleType

MISSING_DELETE_FRACTION = 0.05
OUTLIER_REMOVE_FRACTION = 0.01
OUTLIER_KEEP_FRACTION = 0.05


def affected_fraction(rule: PreprocessingRule, sample: pd.DataFrame) -> float:
    rows = len(sample) if sample is not None else 0
    return rule.affected_rows / rows if rows else 0.0


def is_numeric_column(rule: PreprocessingRule, sample: pd.DataFrame) -> bool:
    if sample is None:
        return False
    column = find_column(sample, rule.primary_column)
    if column is None:
        return False
    series = sample[column]
    return pd.api.types.is_numeric_dtype(series) and not pd.api.types.is_bool_dtype(series)


class RecommendationEngine:
    """
    Example:
        >>> engine = RecommendationEngine()
        >>> engine.recommend(missing_rule, sample)
        ('C', 'Median imputation is robust to outliers and preserves central tendency.')
    """

    def recommend(self, rule: PreprocessingRule, sample: pd.DataFrame) -> Tuple[str, str]:
        """Return (option key, rationale) for ``rule``."""
        option = self.get_recommended_option(rule, sample)
        return option, self.get_recommendation_reason(rule, sample, option)

    def get_recommended_option(self, rule: PreprocessingRule, sample: pd.DataFrame) -> str:
        if rule.type == PreprocessingRuleType.MISSING_VALUE_STRATEGY:
            if affected_fraction(rule, sample) < MISSING_DELETE_FRACTION:
                return "A"
            return "C" if is_numeric_column(rule, sample) else "D"

        if rule.type == PreprocessingRuleType.OUTLIER_HANDLING:
            fraction = affected_fraction(rule, sample)
            if fraction < OUTLIER_REMOVE_FRACTION:
                return "B"
            if fraction < OUTLIER_KEEP_FRACTION:
                return "A"
            return "C"

        if rule.type == PreprocessingRuleType.BUSINESS_LOGIC_DECISION:
            return "C"

        return "A"

    def get_recommendation_reason(self, rule: PreprocessingRule, sample: pd.DataFrame, option: str) -> str:
        fraction = affected_fraction(rule, sample)

        if rule.type == PreprocessingRuleType.MISSING_VALUE_STRATEGY:
            return {
                "A": f"Only {fraction:.1%} of data is affected. Deletion minimizes impact on analysis.",
                "B": "Mean imputation preserves the average and suits numeric data with few outliers.",
                "C": "Median imputation is robust to outliers and preserves central tendency.",
                "D": "Mode imputation keeps categorical values within the observed categories.",
            }.get(option, "This approach balances data preservation with statistical validity.")

        if rule.type == PreprocessingRuleType.OUTLIER_HANDLING:
            if option == "A":
                return "Small percentage of outliers may represent legitimate edge cases (e.g., executives, special events)."
            if option == "B":
                return "Very few outliers suggest data entry errors rather than legitimate values."
            if option == "C":
                return "Capping outliers preserves all records while limiting the impact of extreme values."
            return "This approach balances outlier impact with data preservation."

        if rule.type == PreprocessingRuleType.CATEGORY_MAPPING:
            return "Merging category variations improves data consistency and reduces dimensionality"
        if rule.type == PreprocessingRuleType.TYPE_CONVERSION:
            return "Converting to the most common type preserves the majority of data"
        if rule.type == PreprocessingRuleType.BUSINESS_LOGIC_DECISION:
            return "Keeping as-is is the safest option until business logic is clarified"

        return "This is the recommended option based on statistical best practices"

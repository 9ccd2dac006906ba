"""Human-readable context shown above a HITL question."""

from typing import Optional

import pandas as pd

from incremental_prep.analysis.models import SampleAnalysis
from incremental_prep.discovery import statistics
from incremental_prep.discovery.helpers import find_column
from incremental_prep.discovery.models import PatternType, PreprocessingRule


class ContextBuilder:
    """
    Summarises what a rule affects in the sample.

    Example:
        >>> print(ContextBuilder().build_context(rule, sample))
        Found 20 affected records in 'age' column (20.0% of 100 records)
        Null indicators found: '[NULL]', 'N/A'
    """

    def build_context(
        self,
        rule: PreprocessingRule,
        sample: pd.DataFrame,
        analysis: Optional[SampleAnalysis] = None
    ) -> str:
        rows = analysis.row_count if analysis is not None else len(sample)
        fraction = rule.affected_rows / rows if rows else 0.0

        context = (
            f"Found {rule.affected_rows:,} affected records in '{rule.primary_column}' column "
            f"({fraction:.1%} of {rows:,} records)"
        )
        detail = self._pattern_context(rule, sample)
        return f"{context}\n{detail}" if detail else context

    def _pattern_context(self, rule: PreprocessingRule, sample: pd.DataFrame) -> str:
        examples = list(rule.examples or [])

        if rule.pattern_type == PatternType.MISSING_VALUE and examples:
            return "Null indicators found: " + ", ".join(f"'{e}'" for e in examples[:5])

        if rule.pattern_type == PatternType.OUTLIER_ANOMALY and examples:
            text = f"Outlier values: {', '.join(examples[:3])}"
            column = find_column(sample, rule.primary_column) if sample is not None else None
            if column is not None and pd.api.types.is_numeric_dtype(sample[column]):
                _, median, _ = statistics.quartiles(sample[column])
                text += f" (vs mean: {statistics.mean(sample[column]):.1f}, median: {median:.1f})"
            return text

        if rule.pattern_type == PatternType.CATEGORY_VARIATION and examples:
            return "Category variations found: " + ", ".join(f"'{e}'" for e in examples[:5])

        if rule.pattern_type == PatternType.TYPE_INCONSISTENCY and len(examples) >= 2:
            return f"Mixed types detected: {examples[0]} (type A) vs {examples[1]} (type B)"

        return ""

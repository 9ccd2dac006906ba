"""
Shared fixtures for the incremental_prep test suite.
"""

import numpy as np
import pandas as pd
import pytest

from incremental_prep.discovery.models import (
    PatternType,
    PreprocessingRule,
    PreprocessingRuleType,
)


def build_quality_dataset(rows: int = 1000) -> pd.DataFrame:
    """
    Deterministic dataset with known quality problems.

    - amount: every 5th row missing (20%), every 20th row (offset 3) is an
      extreme value of 500 (5%); the rest lie in [40, 59]
    - category: three case variants of "Electronics" plus two clean labels
    - customer_id: unique integers
    """
    amount = []
    for i in range(rows):
        if i % 5 == 0:
            amount.append(np.nan)
        elif i % 20 == 3:
            amount.append(500.0)
        else:
            amount.append(40.0 + (i * 7) % 20)

    labels = ["Electronics", "electronics", "ELECTRONICS", "Clothing", "Books"]
    category = [labels[i % len(labels)] for i in range(rows)]

    return pd.DataFrame({
        'customer_id': np.arange(rows),
        'amount': amount,
        'category': category,
    })


def make_rule(
    rule_type: PreprocessingRuleType = PreprocessingRuleType.MISSING_VALUE_STRATEGY,
    column: str = "amount",
    pattern_type: PatternType = PatternType.MISSING_VALUE,
    requires_hitl: bool = True,
    confidence: float = 0.9,
    affected_percentage: float = 0.2,
    description: str = None,
    **parameters
) -> PreprocessingRule:
    """PreprocessingRule with sensible defaults for unit tests."""
    params = {'affected_percentage': affected_percentage, 'severity': "High"}
    params.update(parameters)
    return PreprocessingRule(
        id=f"{rule_type.value}_{column}_{pattern_type.value}",
        type=rule_type,
        column_names=[column],
        description=description or f"{rule_type.value} in column '{column}'",
        pattern_type=pattern_type,
        confidence=confidence,
        requires_hitl=requires_hitl,
        priority=5,
        affected_rows=10,
        parameters=params,
    )


@pytest.fixture
def quality_dataset():
    return build_quality_dataset()


@pytest.fixture
def rule_factory():
    return make_rule

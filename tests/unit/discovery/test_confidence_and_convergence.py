"""
Unit tests for confidence scoring and stage-over-stage convergence.
"""

import numpy as np
import pandas as pd
import pytest

from incremental_prep.discovery.confidence import ConfidenceCalculator, affected_mask
from incremental_prep.discovery.convergence import ConvergenceDetector
from incremental_prep.discovery.engine import RuleDiscoveryEngine
from incremental_prep.discovery.models import (
    ConfidenceScore,
    PatternType,
    PreprocessingRuleType,
)


def _frame_with_missing(rows: int, missing: int) -> pd.DataFrame:
    values = [np.nan] * missing + [1.0] * (rows - missing)
    return pd.DataFrame({'amount': values})


# ============================================================================
# CONFIDENCE
# ============================================================================


@pytest.mark.unit
class TestConfidenceScore:
    """Test the weighted overall score."""

    def test_overall_weights(self):
        score = ConfidenceScore(consistency=1.0, coverage=0.5, stability=0.25)

        assert score.overall == pytest.approx(0.5 + 0.15 + 0.05)

    @pytest.mark.parametrize("consistency,level", [(1.0, "High"), (0.95, "Medium"), (0.5, "Low")])
    def test_level(self, consistency, level):
        score = ConfidenceScore(consistency=consistency, coverage=consistency, stability=consistency)

        assert score.level == level


@pytest.mark.unit
class TestConfidenceCalculator:
    """Test consistency, coverage and stability axes."""

    def test_exact_scores(self, rule_factory):
        rule = rule_factory()
        sample_a = _frame_with_missing(10, 2)
        sample_b = _frame_with_missing(10, 3)

        score = ConfidenceCalculator().calculate(rule, sample_a, sample_b)

        # floor(2 * 0.85) / 2
        assert score.consistency == pytest.approx(0.5)
        assert score.coverage == pytest.approx(0.2)
        assert score.stability == pytest.approx(0.9)
        assert score.overall == pytest.approx(0.25 + 0.06 + 0.18)

    def test_same_sample_is_fully_stable(self, rule_factory):
        sample = _frame_with_missing(10, 2)

        assert ConfidenceCalculator().calculate(rule_factory(), sample, sample).stability == 1.0

    def test_no_affected_rows_is_fully_consistent(self, rule_factory):
        sample = _frame_with_missing(10, 0)

        score = ConfidenceCalculator().calculate(rule_factory(), sample, sample)

        assert score.consistency == 1.0
        assert score.coverage == 0.0

    def test_missing_column_scores_zero(self, rule_factory):
        score = ConfidenceCalculator().calculate(
            rule_factory(column="absent"), _frame_with_missing(5, 1), _frame_with_missing(5, 1)
        )

        assert score.overall == 0.0

    def test_column_lookup_is_case_insensitive(self, rule_factory):
        score = ConfidenceCalculator().calculate(
            rule_factory(column="AMOUNT"), _frame_with_missing(10, 2), _frame_with_missing(10, 2)
        )

        assert score.coverage == pytest.approx(0.2)

    def test_disjoint_halves_are_stable(self, quality_dataset):
        """Two halves of the same distribution agree on the affected rate."""
        first_half = quality_dataset.iloc[::2]
        second_half = quality_dataset.iloc[1::2]
        rules = RuleDiscoveryEngine().discover_rules(first_half)
        missing = next(r for r in rules if r.type == PreprocessingRuleType.MISSING_VALUE_STRATEGY)

        score = ConfidenceCalculator().calculate(missing, first_half, second_half)

        assert score.stability >= 0.99


@pytest.mark.unit
class TestAffectedMask:
    """Test per-rule affected row masks."""

    def test_category_case_mask(self, rule_factory):
        rule = rule_factory(
            rule_type=PreprocessingRuleType.CATEGORY_MAPPING,
            column="animal",
            pattern_type=PatternType.CATEGORY_VARIATION,
            variant="case",
        )
        column = pd.Series(["Cat", "Cat", "cat", "Dog"], dtype=object)

        assert affected_mask(rule, column).tolist() == [False, False, True, False]

    def test_outlier_mask_for_text_column(self, rule_factory):
        rule = rule_factory(rule_type=PreprocessingRuleType.OUTLIER_HANDLING, pattern_type=PatternType.OUTLIER_ANOMALY)

        assert not affected_mask(rule, pd.Series(["a", "b"], dtype=object)).any()


# ============================================================================
# CONVERGENCE
# ============================================================================


@pytest.mark.unit
class TestConvergenceDetector:
    """Test rule set comparison across stages."""

    def _baseline(self, rule_factory):
        return [
            rule_factory(column="amount"),
            rule_factory(
                rule_type=PreprocessingRuleType.OUTLIER_HANDLING,
                column="amount",
                pattern_type=PatternType.OUTLIER_ANOMALY,
                affected_percentage=0.05,
            ),
        ]

    def test_identical_sets_converge(self, rule_factory):
        info = ConvergenceDetector().get_convergence_info(
            self._baseline(rule_factory), self._baseline(rule_factory), 0.02
        )

        assert info.has_converged
        assert info.change_rate == 0.0
        assert info.stable_rules == 2
        assert info.status.startswith("Converged")

    def test_one_new_rule_depends_on_threshold(self, rule_factory):
        previous = self._baseline(rule_factory)
        current = self._baseline(rule_factory) + [rule_factory(column="category")]
        detector = ConvergenceDetector()

        assert detector.has_converged(previous, current, threshold=0.6)
        assert not detector.has_converged(previous, current, threshold=0.02)

        info = detector.get_convergence_info(previous, current, 0.02)
        assert info.new_rules == 1
        assert info.change_rate == pytest.approx(0.5)
        assert info.summary == "3 rules total: 2 stable, 1 new, 0 modified, 0 removed"

    def test_removed_rules_count(self, rule_factory):
        previous = self._baseline(rule_factory)
        current = previous[:1]

        info = ConvergenceDetector().get_convergence_info(previous, current, 0.02)

        assert info.removed_rules == 1
        assert not info.has_converged

    def test_modified_by_affected_fraction(self, rule_factory):
        previous = [rule_factory(affected_percentage=0.20)]
        current = [rule_factory(affected_percentage=0.30)]

        info = ConvergenceDetector().get_convergence_info(previous, current, 0.02)

        assert info.modified_rules == 1
        assert info.stable_rules == 0

    def test_small_confidence_drift_is_stable(self, rule_factory):
        previous = [rule_factory(confidence=0.90)]
        current = [rule_factory(confidence=0.93)]

        assert ConvergenceDetector().has_converged(previous, current, 0.02)

    def test_empty_previous_never_converges(self, rule_factory):
        info = ConvergenceDetector().get_convergence_info([], [rule_factory()], 0.9)

        assert not info.has_converged
        assert info.status == "Not converged (no previous rules to compare)"

    def test_default_threshold(self, rule_factory):
        detector = ConvergenceDetector()

        assert detector.get_convergence_info(self._baseline(rule_factory), [], None).threshold == 0.02

    def test_none_input(self):
        with pytest.raises(ValueError):
            ConvergenceDetector().get_convergence_info(None, [], 0.02)

    def test_to_dict_has_status(self, rule_factory):
        info = ConvergenceDetector().get_convergence_info([], [], 0.02)

        assert info.to_dict()['status'] == info.status

"""
Unit tests for HITL question generation, recommendations and context text.
"""

import pandas as pd
import pytest

from incremental_prep.core.exceptions import HITLError
from incremental_prep.discovery.models import PatternType, PreprocessingRuleType
from incremental_prep.hitl.context_builder import ContextBuilder
from incremental_prep.hitl.models import ActionType, HITLQuestion, QuestionType
from incremental_prep.hitl.question_generator import HITLQuestionGenerator
from incremental_prep.hitl.recommendation import RecommendationEngine


@pytest.fixture
def generator():
    return HITLQuestionGenerator()


def _with_rows(rule, affected_rows):
    rule.affected_rows = affected_rows
    return rule


# ============================================================================
# MISSING VALUE QUESTIONS
# ============================================================================


@pytest.mark.unit
class TestMissingValueQuestions:
    """Test the option set and recommendation for missing values."""

    def test_numeric_column_recommends_median(self, generator, rule_factory, quality_dataset):
        rule = _with_rows(rule_factory(column="amount"), 200)

        question = generator.generate(rule, quality_dataset)

        assert question.type == QuestionType.MULTIPLE_CHOICE
        assert question.question == "How should I handle missing values in the 'amount' column?"
        assert [o.key for o in question.options] == ["A", "B", "C", "D", "E"]
        assert question.recommended_option == "C"
        assert question.get_option("C").action == ActionType.IMPUTE_MEDIAN
        assert question.get_option("C").parameters == {'strategy': "impute_median"}
        assert question.recommendation_reason.startswith("Median imputation")
        assert [o.key for o in question.options if o.is_recommended] == ["C"]
        assert question.related_rule is rule

    def test_categorical_column_recommends_mode(self, generator, rule_factory, quality_dataset):
        rule = _with_rows(rule_factory(column="category"), 200)

        question = generator.generate(rule, quality_dataset)

        assert [o.key for o in question.options] == ["A", "D", "E"]
        assert question.recommended_option == "D"
        assert question.get_option("D").action == ActionType.IMPUTE_MODE

    def test_few_missing_recommends_delete(self, generator, rule_factory, quality_dataset):
        rule = _with_rows(rule_factory(column="amount"), 10)

        question = generator.generate(rule, quality_dataset)

        assert question.recommended_option == "A"
        assert "1.0%" in question.recommendation_reason

    def test_question_id(self, generator, rule_factory, quality_dataset):
        rule = _with_rows(rule_factory(), 200)

        question = generator.generate(rule, quality_dataset)

        assert question.id.startswith(f"HITL_{rule.id}_")
        assert len(question.id.rsplit("_", 1)[1]) == 14


# ============================================================================
# OTHER RULE TYPES
# ============================================================================


@pytest.mark.unit
class TestOtherQuestionTypes:
    """Test option sets for outliers, categories, types and business logic."""

    @pytest.mark.parametrize("affected_rows,expected", [(5, "B"), (30, "A"), (100, "C")])
    def test_outlier_recommendation(self, generator, rule_factory, quality_dataset, affected_rows, expected):
        rule = _with_rows(
            rule_factory(rule_type=PreprocessingRuleType.OUTLIER_HANDLING, pattern_type=PatternType.OUTLIER_ANOMALY),
            affected_rows,
        )

        question = generator.generate(rule, quality_dataset)

        assert [o.key for o in question.options] == ["A", "B", "C", "D"]
        assert question.recommended_option == expected
        assert question.get_option("C").parameters == {'method': "cap"}

    def test_category_options(self, generator, rule_factory, quality_dataset):
        rule = rule_factory(
            rule_type=PreprocessingRuleType.CATEGORY_MAPPING,
            column="category",
            pattern_type=PatternType.CATEGORY_VARIATION,
        )

        question = generator.generate(rule, quality_dataset)

        assert question.recommended_option == "A"
        assert question.get_option("B").parameters == {'keep_as_is': True}
        assert question.get_option("C").parameters == {'preserve_original': True}

    def test_type_conversion_uses_target_type(self, generator, rule_factory, quality_dataset):
        rule = rule_factory(
            rule_type=PreprocessingRuleType.TYPE_CONVERSION,
            pattern_type=PatternType.TYPE_INCONSISTENCY,
            target_type="numeric",
        )

        question = generator.generate(rule, quality_dataset)

        assert question.get_option("A").label == "Convert to most common type (numeric)"
        assert question.get_option("C").parameters == {'target_type': "numeric", 'drop_incompatible': True}

    def test_business_logic_recommends_keep(self, generator, rule_factory, quality_dataset):
        rule = rule_factory(rule_type=PreprocessingRuleType.BUSINESS_LOGIC_DECISION)

        question = generator.generate(rule, quality_dataset)

        assert question.recommended_option == "C"
        assert question.get_option("C").action == ActionType.KEEP_AS_IS


# ============================================================================
# ERRORS AND BATCHES
# ============================================================================


@pytest.mark.unit
class TestGeneratorErrors:
    """Test rejection of rules that need no review."""

    def test_rule_without_hitl(self, generator, rule_factory, quality_dataset):
        with pytest.raises(HITLError) as exc_info:
            generator.generate(rule_factory(requires_hitl=False), quality_dataset)

        assert "does not require HITL" in str(exc_info.value)

    def test_unsupported_rule_type(self, generator, rule_factory, quality_dataset):
        rule = rule_factory(
            rule_type=PreprocessingRuleType.WHITESPACE_NORMALIZATION,
            pattern_type=PatternType.WHITESPACE_ISSUE,
        )

        with pytest.raises(HITLError):
            generator.generate(rule, quality_dataset)

    def test_generate_all_skips_unusable_rules(self, generator, rule_factory, quality_dataset):
        rules = [
            rule_factory(),
            rule_factory(requires_hitl=False, column="category"),
            rule_factory(rule_type=PreprocessingRuleType.WHITESPACE_NORMALIZATION, column="category"),
        ]

        questions = generator.generate_all(rules, quality_dataset)

        assert [q.related_rule.id for q in questions] == [rules[0].id]


@pytest.mark.unit
class TestQuestionSerialization:
    """Test question dict round trip."""

    def test_round_trip(self, generator, rule_factory, quality_dataset):
        question = generator.generate(_with_rows(rule_factory(), 200), quality_dataset)

        restored = HITLQuestion.from_dict(question.to_dict())

        assert restored.to_dict() == question.to_dict()


# ============================================================================
# CONTEXT AND RECOMMENDATION
# ============================================================================


@pytest.mark.unit
class TestContextBuilder:
    """Test the human-readable context block."""

    def test_missing_context(self, rule_factory, quality_dataset):
        rule = _with_rows(rule_factory(), 200)
        rule.examples = ["[NULL]", "N/A"]

        context = ContextBuilder().build_context(rule, quality_dataset)

        assert context.splitlines() == [
            "Found 200 affected records in 'amount' column (20.0% of 1,000 records)",
            "Null indicators found: '[NULL]', 'N/A'",
        ]

    def test_outlier_context_mentions_mean_and_median(self, rule_factory):
        rule = rule_factory(rule_type=PreprocessingRuleType.OUTLIER_HANDLING, pattern_type=PatternType.OUTLIER_ANOMALY)
        rule.examples = ["1000"]
        sample = pd.DataFrame({'amount': [1.0, 2.0, 3.0, 1000.0]})

        context = ContextBuilder().build_context(rule, sample)

        assert "Outlier values: 1000 (vs mean: 251.5, median: 3.0)" in context

    def test_no_examples_no_detail(self, rule_factory, quality_dataset):
        context = ContextBuilder().build_context(rule_factory(), quality_dataset)

        assert "\n" not in context


@pytest.mark.unit
class TestRecommendationEngine:
    """Test recommendations without a generator."""

    def test_missing_column_counts_as_categorical(self, rule_factory):
        rule = _with_rows(rule_factory(column="absent"), 50)

        option, _ = RecommendationEngine().recommend(rule, pd.DataFrame({'amount': [1.0] * 100}))

        assert option == "D"

    def test_empty_sample(self, rule_factory):
        option, _ = RecommendationEngine().recommend(rule_factory(), pd.DataFrame())

        assert option == "A"

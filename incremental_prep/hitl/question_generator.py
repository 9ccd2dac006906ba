"""
HITL Question Generator - builds reviewer questions for rules that need approval.

Each HITL rule type has its own option set. Option parameters are merged into
the rule's parameters when the option is chosen, which is how a human
decision reaches the rule applier.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence

import pandas as pd

from incremental_prep.analysis.models import SampleAnalysis
from incremental_prep.core.constants import HITL_TIMESTAMP_FORMAT
from incremental_prep.core.exceptions import HITLError, OperationCancelledError
from incremental_prep.discovery import statistics
from incremental_prep.discovery.helpers import find_column
from incremental_prep.discovery.models import PreprocessingRule, PreprocessingRuleType
from incremental_prep.hitl.context_builder import ContextBuilder
from incremental_prep.hitl.models import ActionType, HITLOption, HITLQuestion, QuestionType
from incremental_prep.hitl.recommendation import RecommendationEngine, is_numeric_column

logger = logging.getLogger(__name__)

KEEP_AS_IS = {'keep_as_is': True}


def question_id_for(rule: PreprocessingRule, now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"HITL_{rule.id}_{now.strftime(HITL_TIMESTAMP_FORMAT)}"


class HITLQuestionGenerator:
    """
    Turns HITL-required rules into multiple-choice questions.

    Example:
        >>> generator = HITLQuestionGenerator()
        >>> question = generator.generate(rule, sample, analysis)
        >>> question.recommended_option, [o.key for o in question.options]
        ('C', ['A', 'B', 'C', 'D', 'E'])
    """

    def __init__(
        self,
        context_builder: Optional[ContextBuilder] = None,
        recommendation_engine: Optional[RecommendationEngine] = None
    ):
        self.context_builder = context_builder or ContextBuilder()
        self.recommendation_engine = recommendation_engine or RecommendationEngine()
        self._builders: Dict[PreprocessingRuleType, Callable[[PreprocessingRule, pd.DataFrame], tuple]] = {
            PreprocessingRuleType.MISSING_VALUE_STRATEGY: self._missing_value_options,
            PreprocessingRuleType.OUTLIER_HANDLING: self._outlier_options,
            PreprocessingRuleType.CATEGORY_MAPPING: self._category_options,
            PreprocessingRuleType.TYPE_CONVERSION: self._type_conversion_options,
            PreprocessingRuleType.BUSINESS_LOGIC_DECISION: self._business_logic_options,
        }

    def generate(
        self,
        rule: PreprocessingRule,
        sample: pd.DataFrame,
        analysis: Optional[SampleAnalysis] = None
    ) -> HITLQuestion:
        """
        Build the question for one rule.

        Raises:
            HITLError: If the rule does not require HITL or its type has no question
        """
        if not rule.requires_hitl:
            raise HITLError(f"Rule {rule.id} does not require HITL. Type: {rule.type.value}", rule_id=rule.id)

        builder = self._builders.get(rule.type)
        if builder is None:
            raise HITLError(f"Rule type {rule.type.value} not supported for HITL", rule_id=rule.id)

        question_text, options = builder(rule, sample)
        recommended, reason = self.recommendation_engine.recommend(rule, sample)
        if not any(o.key == recommended for o in options):
            recommended = options[0].key
            reason = self.recommendation_engine.get_recommendation_reason(rule, sample, recommended)
        for option in options:
            option.is_recommended = option.key == recommended

        return HITLQuestion(
            id=question_id_for(rule),
            type=QuestionType.MULTIPLE_CHOICE,
            context=self.context_builder.build_context(rule, sample, analysis),
            question=question_text,
            options=options,
            related_rule=rule,
            recommended_option=recommended,
            recommendation_reason=reason,
        )

    def generate_all(
        self,
        rules: Sequence[PreprocessingRule],
        sample: pd.DataFrame,
        analysis: Optional[SampleAnalysis] = None
    ) -> List[HITLQuestion]:
        """Questions for every HITL rule; rules that fail are logged and skipped."""
        questions = []
        for rule in rules:
            if not rule.requires_hitl:
                continue
            try:
                questions.append(self.generate(rule, sample, analysis))
            except OperationCancelledError:
                raise
            except Exception as e:
                logger.warning(f"Failed to generate HITL question for rule {rule.id}. Skipping: {str(e)}")

        logger.info(f"Generated {len(questions)} HITL questions from {len(rules)} rules")
        return questions

    # ===== Option sets per rule type =====

    def _missing_value_options(self, rule: PreprocessingRule, sample: pd.DataFrame):
        options = [
            HITLOption(
                "A", "Delete records with missing values",
                f"Remove {rule.affected_rows:,} records from dataset",
                ActionType.DELETE, parameters={'strategy': "drop_rows"},
            ),
        ]

        if is_numeric_column(rule, sample):
            column = sample[find_column(sample, rule.primary_column)]
            _, median, _ = statistics.quartiles(column)
            options.extend([
                HITLOption(
                    "B", f"Impute with mean ({statistics.mean(column):.1f})",
                    "Replace missing values with column mean (best for normal distribution)",
                    ActionType.IMPUTE_MEAN, parameters={'strategy': "impute_mean"},
                ),
                HITLOption(
                    "C", f"Impute with median ({median:.1f})",
                    "Replace missing values with median (robust to outliers)",
                    ActionType.IMPUTE_MEDIAN, parameters={'strategy': "impute_median"},
                ),
            ])

        options.extend([
            HITLOption(
                "D", "Impute with mode",
                "Replace missing values with the most frequent value",
                ActionType.IMPUTE_MODE, parameters={'strategy': "impute_mode"},
            ),
            HITLOption(
                "E", "Replace with custom default value",
                "Specify a custom value to replace missing data",
                ActionType.IMPUTE_CUSTOM, parameters={'strategy': "impute_custom"},
            ),
        ])
        return f"How should I handle missing values in the '{rule.primary_column}' column?", options

    def _outlier_options(self, rule: PreprocessingRule, sample: pd.DataFrame):
        options = [
            HITLOption(
                "A", "Keep all values",
                "Outliers may represent legitimate edge cases (e.g., executives, special events)",
                ActionType.KEEP_AS_IS, parameters={'method': "keep"},
            ),
            HITLOption(
                "B", "Remove outliers completely",
                f"Delete {rule.affected_rows:,} records with outlier values",
                ActionType.REMOVE_OUTLIERS, parameters={'method': "remove"},
            ),
            HITLOption(
                "C", "Cap at IQR fences",
                "Clip outliers to Q1 - 1.5*IQR / Q3 + 1.5*IQR (preserves all records)",
                ActionType.CAP_OUTLIERS, parameters={'method': "cap"},
            ),
            HITLOption(
                "D", "Flag for manual review",
                "Mark outliers in a new flag column without modifying data",
                ActionType.FLAG_FOR_REVIEW, parameters={'method': "flag"},
            ),
        ]
        return f"How should I handle outliers in the '{rule.primary_column}' column?", options

    def _category_options(self, rule: PreprocessingRule, sample: pd.DataFrame):
        options = [
            HITLOption(
                "A", "Merge all variations",
                "Standardize to a single category value (improves consistency)",
                ActionType.MERGE_CATEGORIES,
            ),
            HITLOption(
                "B", "Keep as separate categories",
                "Preserve all variations as distinct categories",
                ActionType.KEEP_AS_IS, parameters=dict(KEEP_AS_IS),
            ),
            HITLOption(
                "C", "Merge but preserve original",
                "Merge variations but keep the original values in a separate column",
                ActionType.MERGE_CATEGORIES, parameters={'preserve_original': True},
            ),
        ]
        return f"Should I merge category variations in the '{rule.primary_column}' column?", options

    def _type_conversion_options(self, rule: PreprocessingRule, sample: pd.DataFrame):
        target = rule.parameters.get('target_type', "text")
        options = [
            HITLOption(
                "A", f"Convert to most common type ({target})",
                "Convert all values to the predominant type",
                ActionType.CONVERT_TYPE, parameters={'target_type': target},
            ),
            HITLOption(
                "B", "Convert to string (preserve all)",
                "Convert to string to preserve all value variations",
                ActionType.CONVERT_TYPE, parameters={'target_type': "text"},
            ),
            HITLOption(
                "C", "Delete incompatible records",
                f"Remove {rule.affected_rows:,} records with incompatible types",
                ActionType.DELETE, parameters={'target_type': target, 'drop_incompatible': True},
            ),
        ]
        return f"How should I handle type inconsistencies in the '{rule.primary_column}' column?", options

    def _business_logic_options(self, rule: PreprocessingRule, sample: pd.DataFrame):
        options = [
            HITLOption(
                "A", "Apply suggested transformation",
                rule.suggested_action or "Apply the suggested preprocessing action",
                ActionType.CUSTOM_LOGIC,
            ),
            HITLOption(
                "B", "Delete affected records",
                f"Remove {rule.affected_rows:,} records",
                ActionType.DELETE,
            ),
            HITLOption(
                "C", "Keep as-is (no action)",
                "Preserve current values without modification",
                ActionType.KEEP_AS_IS, parameters=dict(KEEP_AS_IS),
            ),
            HITLOption(
                "D", "Specify custom action",
                "Define a custom business logic rule",
                ActionType.CUSTOM_LOGIC,
            ),
        ]
        return f"How should I handle the business logic pattern in the '{rule.primary_column}' column?", options

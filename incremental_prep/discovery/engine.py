"""
Rule Discovery Engine - turns detected patterns into preprocessing rules.

Every registered detector is run against every column of a sample; each
DetectedPattern becomes a PreprocessingRule with a rule type, a priority, a
human-review flag and type-specific default parameters.

Design Decisions:
    - A failing detector is logged and skipped; cancellation always propagates
    - Rule descriptions are stable across stages ("Missing values in column 'x'"),
      stage-specific figures live in parameters['pattern_description']
    - Rules are ordered by priority desc, then affected rows desc

Usage:
    engine = RuleDiscoveryEngine()
    rules = engine.discover_rules(sample, analysis, stage_number=1)
    score = engine.calculate_confidence(rules[0], previous_sample, sample)
"""

import logging
from typing import Dict, List, Optional, Sequence

import pandas as pd

from incremental_prep.analysis.models import SampleAnalysis
from incremental_prep.core.cancellation import CancellationToken, check_cancelled
from incremental_prep.core.constants import (
    MAX_PRIORITY,
    MIN_PRIORITY,
    RULE_TYPE_PRIORITY_ADJUSTMENT,
    SEVERITY_BASE_PRIORITY,
)
from incremental_prep.core.exceptions import DetectionError, NullDatasetError, OperationCancelledError
from incremental_prep.discovery.confidence import ConfidenceCalculator
from incremental_prep.discovery.convergence import ConvergenceDetector
from incremental_prep.discovery.detectors import DetectorRegistry
from incremental_prep.discovery.models import (
    ConfidenceScore,
    DetectedPattern,
    PatternType,
    PreprocessingRule,
    PreprocessingRuleType,
    Severity,
)

logger = logging.getLogger(__name__)


PATTERN_RULE_TYPES: Dict[PatternType, PreprocessingRuleType] = {
    PatternType.MISSING_VALUE: PreprocessingRuleType.MISSING_VALUE_STRATEGY,
    PatternType.TYPE_INCONSISTENCY: PreprocessingRuleType.TYPE_CONVERSION,
    PatternType.FORMAT_VARIATION: PreprocessingRuleType.DATE_FORMAT_STANDARDIZATION,
    PatternType.OUTLIER_ANOMALY: PreprocessingRuleType.OUTLIER_HANDLING,
    PatternType.CATEGORY_VARIATION: PreprocessingRuleType.CATEGORY_MAPPING,
    PatternType.ENCODING_ISSUE: PreprocessingRuleType.ENCODING_NORMALIZATION,
    PatternType.WHITESPACE_ISSUE: PreprocessingRuleType.WHITESPACE_NORMALIZATION,
}

# Format-variation variants that are not about dates
FORMAT_VARIANT_RULE_TYPES: Dict[str, PreprocessingRuleType] = {
    "number": PreprocessingRuleType.NUMERIC_FORMAT_STANDARDIZATION,
    "boolean": PreprocessingRuleType.TYPE_CONVERSION,
}

HITL_RULE_TYPES = frozenset({
    PreprocessingRuleType.MISSING_VALUE_STRATEGY,
    PreprocessingRuleType.OUTLIER_HANDLING,
    PreprocessingRuleType.CATEGORY_MAPPING,
    PreprocessingRuleType.TYPE_CONVERSION,
    PreprocessingRuleType.BUSINESS_LOGIC_DECISION,
})

_STABLE_DESCRIPTIONS: Dict[tuple, str] = {
    (PatternType.MISSING_VALUE, ""): "Missing values",
    (PatternType.OUTLIER_ANOMALY, ""): "Outliers",
    (PatternType.WHITESPACE_ISSUE, ""): "Whitespace issues",
    (PatternType.ENCODING_ISSUE, ""): "Encoding issues",
    (PatternType.CATEGORY_VARIATION, "case"): "Case variations",
    (PatternType.CATEGORY_VARIATION, "similar"): "Similar category spellings",
    (PatternType.FORMAT_VARIATION, "date"): "Inconsistent date formats",
    (PatternType.FORMAT_VARIATION, "number"): "Inconsistent number formats",
    (PatternType.FORMAT_VARIATION, "boolean"): "Inconsistent boolean representations",
}


def determine_rule_type(pattern: DetectedPattern) -> PreprocessingRuleType:
    if pattern.type == PatternType.FORMAT_VARIATION and pattern.variant in FORMAT_VARIANT_RULE_TYPES:
        return FORMAT_VARIANT_RULE_TYPES[pattern.variant]
    return PATTERN_RULE_TYPES.get(pattern.type, PreprocessingRuleType.BUSINESS_LOGIC_DECISION)


def requires_human_approval(rule_type: PreprocessingRuleType) -> bool:
    return rule_type in HITL_RULE_TYPES


def determine_priority(severity: Severity, rule_type: PreprocessingRuleType) -> int:
    """Severity base plus rule-type adjustment, clamped to 1..10."""
    base = SEVERITY_BASE_PRIORITY.get(severity.name, MIN_PRIORITY)
    adjustment = RULE_TYPE_PRIORITY_ADJUSTMENT.get(rule_type.name, 0)
    return max(MIN_PRIORITY, min(MAX_PRIORITY, base + adjustment))


def stable_description(pattern: DetectedPattern) -> str:
    """Description that stays identical across stages for the same finding."""
    if pattern.type == PatternType.TYPE_INCONSISTENCY:
        label = f"Mixed value types (mostly {pattern.variant})" if pattern.variant else "Mixed value types"
    else:
        label = _STABLE_DESCRIPTIONS.get(
            (pattern.type, pattern.variant),
            _STABLE_DESCRIPTIONS.get((pattern.type, ""), pattern.type.value),
        )
    return f"{label} in column '{pattern.column_name}'"


def rule_parameters(pattern: DetectedPattern, rule_type: PreprocessingRuleType) -> Dict:
    parameters = {
        'affected_percentage': pattern.affected_percentage,
        'severity': pattern.severity.value,
        'pattern_confidence': pattern.confidence,
        'pattern_description': pattern.description,
    }
    if pattern.variant:
        parameters['variant'] = pattern.variant

    if rule_type == PreprocessingRuleType.MISSING_VALUE_STRATEGY:
        parameters['strategy'] = "impute_median"
    elif rule_type == PreprocessingRuleType.DATE_FORMAT_STANDARDIZATION:
        parameters['target_format'] = "ISO-8601"
    elif rule_type == PreprocessingRuleType.NUMERIC_FORMAT_STANDARDIZATION:
        parameters['target_format'] = "plain-decimal"
    elif rule_type == PreprocessingRuleType.ENCODING_NORMALIZATION:
        parameters['target_encoding'] = "UTF-8"
    elif rule_type == PreprocessingRuleType.WHITESPACE_NORMALIZATION:
        parameters['trim'] = True
        parameters['collapse_spaces'] = True
    elif rule_type == PreprocessingRuleType.OUTLIER_HANDLING:
        parameters['method'] = "cap"
    elif rule_type == PreprocessingRuleType.TYPE_CONVERSION:
        parameters['target_type'] = pattern.variant or "text"

    return parameters


class RuleDiscoveryEngine:
    """
    Discovers preprocessing rules in a sample.

    Attributes:
        registry: Detectors run against every column
        confidence_calculator: Scores rules across two samples
        convergence_detector: Compares consecutive stages' rule sets

    Example:
        >>> engine = RuleDiscoveryEngine()
        >>> rules = engine.discover_rules(df, stage_number=1)
        >>> [r.id for r in rules if r.requires_hitl]
        ['MissingValueStrategy_age_MissingValue', ...]
    """

    def __init__(
        self,
        registry: Optional[DetectorRegistry] = None,
        confidence_calculator: Optional[ConfidenceCalculator] = None,
        convergence_detector: Optional[ConvergenceDetector] = None
    ):
        self.registry = registry if registry is not None else DetectorRegistry.default()
        self.confidence_calculator = confidence_calculator or ConfidenceCalculator()
        self.convergence_detector = convergence_detector or ConvergenceDetector()

    def discover_rules(
        self,
        sample: pd.DataFrame,
        analysis: Optional[SampleAnalysis] = None,
        stage_number: Optional[int] = None,
        cancellation: Optional[CancellationToken] = None
    ) -> List[PreprocessingRule]:
        """
        Run every applicable detector on every column and build rules.

        Args:
            sample: Sampled rows
            analysis: Analysis of the same sample; supplies the stage number
                when ``stage_number`` is not given
            stage_number: Stage stamped on the rules (default 1)
            cancellation: Optional cancellation token

        Returns:
            Rules sorted by priority desc, affected rows desc

        Raises:
            NullDatasetError: If sample is None
            OperationCancelledError: If cancellation was requested
        """
        if sample is None:
            raise NullDatasetError(parameter="sample")

        if stage_number is None:
            stage_number = analysis.stage_number if analysis is not None else 1

        logger.info(
            f"Starting rule discovery on sample with {len(sample):,} rows, "
            f"{len(sample.columns)} columns"
        )

        patterns: List[DetectedPattern] = []
        for column_name in sample.columns:
            check_cancelled(cancellation)
            patterns.extend(self._detect_column(sample[column_name], str(column_name), cancellation))

        logger.info(f"Detected {len(patterns)} patterns across {len(sample.columns)} columns")

        rules = self._build_rules(patterns, stage_number)
        rules.sort(key=lambda r: (-r.priority, -r.affected_rows))

        hitl_count = sum(1 for r in rules if r.requires_hitl)
        logger.info(
            f"Generated {len(rules)} preprocessing rules "
            f"({len(rules) - hitl_count} auto-fixable, {hitl_count} HITL-required)"
        )
        return rules

    def _detect_column(
        self,
        column: pd.Series,
        column_name: str,
        cancellation: Optional[CancellationToken]
    ) -> List[DetectedPattern]:
        patterns = []
        for detector in self.registry:
            try:
                if not detector.is_applicable(column):
                    continue
                found = detector.detect(column, column_name, cancellation)
                logger.debug(f"{detector.name} found {len(found)} patterns in '{column_name}'")
                patterns.extend(found)
            except OperationCancelledError:
                raise
            except DetectionError as e:
                logger.warning(f"{e.message}. Skipping detector.")
            except Exception as e:
                logger.warning(f"Pattern detector {detector.name} failed on column {column_name}: {str(e)}")
        return patterns

    def _build_rules(self, patterns: Sequence[DetectedPattern], stage_number: int) -> List[PreprocessingRule]:
        rules = []
        seen_ids: Dict[str, int] = {}

        for pattern in patterns:
            rule_type = determine_rule_type(pattern)

            rule_id = f"{rule_type.value}_{pattern.column_name}_{pattern.type.value}"
            seen_ids[rule_id] = seen_ids.get(rule_id, 0) + 1
            if seen_ids[rule_id] > 1:
                rule_id = f"{rule_id}_{seen_ids[rule_id]}"

            rules.append(PreprocessingRule(
                id=rule_id,
                type=rule_type,
                column_names=[pattern.column_name],
                description=stable_description(pattern),
                pattern_type=pattern.type,
                confidence=pattern.confidence,
                requires_hitl=requires_human_approval(rule_type),
                priority=determine_priority(pattern.severity, rule_type),
                affected_rows=pattern.occurrences,
                discovered_in_stage=stage_number,
                suggested_action=pattern.suggested_fix,
                examples=list(pattern.examples),
                parameters=rule_parameters(pattern, rule_type),
            ))

        return rules

    def calculate_confidence(
        self,
        rule: PreprocessingRule,
        sample_a: pd.DataFrame,
        sample_b: pd.DataFrame
    ) -> ConfidenceScore:
        return self.confidence_calculator.calculate(rule, sample_a, sample_b)

    def has_converged(
        self,
        previous: Sequence[PreprocessingRule],
        current: Sequence[PreprocessingRule],
        threshold: Optional[float] = None
    ) -> bool:
        return self.convergence_detector.has_converged(previous, current, threshold)

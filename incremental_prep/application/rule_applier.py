"""
Rule Applier - executes approved preprocessing rules against a DataFrame.

Each rule type has one strategy that transforms the target column in place
and returns the number of values it changed. Application never raises for a
bad rule: validation failures, unapproved HITL rules, unsupported types and
strategy errors all come back as failed RuleApplicationResults. Only
cancellation propagates.

Strategies (rule type -> transform):
    MissingValueStrategy: impute median/mean/mode/custom value or drop rows
    OutlierHandling: cap at the IQR fences, remove rows or add a flag column
    WhitespaceNormalization: trim and collapse internal whitespace
    DateFormatStandardization: rewrite parseable dates as ISO-8601
    CategoryMapping: map case variants and near-duplicates to the canonical label
    TypeConversion: coerce values to the column's majority type
    EncodingNormalization: repair mojibake by re-decoding as UTF-8
    NumericFormatStandardization: strip separators and parse as float
    BusinessLogicDecision: recorded only, no transform
"""

import logging
import re
import time
from typing import Any, Callable, Dict, Optional, Sequence

import numpy as np
import pandas as pd

from incremental_prep.application.results import BulkApplicationResult, RuleApplicationResult
from incremental_prep.core.cancellation import (
    CancellationToken,
    check_cancelled,
    check_periodically,
)
from incremental_prep.core.constants import REPLACEMENT_CHARACTER
from incremental_prep.core.exceptions import (
    NullDatasetError,
    OperationCancelledError,
    RuleApplicationError,
    RuleNotApprovedError,
    RuleNotSupportedError,
)
from incremental_prep.discovery import statistics
from incremental_prep.discovery.confidence import affected_mask
from incremental_prep.discovery.detectors.category_variation import build_category_mapping
from incremental_prep.discovery.detectors.encoding_issue import has_encoding_issue, reinterpret_as_utf8
from incremental_prep.discovery.detectors.format_variation import classify_number_style
from incremental_prep.discovery.helpers import find_column, is_missing_value
from incremental_prep.discovery.models import PreprocessingRule, PreprocessingRuleType
from incremental_prep.discovery.type_inference import (
    try_parse_boolean,
    try_parse_datetime,
    try_parse_numeric,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[PreprocessingRule, int, int, str], None]

_WHITESPACE_RUN = re.compile(r"\s+")

MISSING_STRATEGIES = ("impute_median", "impute_mean", "impute_mode", "impute_custom", "drop_rows", "keep")
OUTLIER_METHODS = ("cap", "remove", "flag", "keep")


def _changed(before: Any, after: Any) -> bool:
    if is_missing_value(before) and is_missing_value(after):
        return False
    return not (type(before) is type(after) and before == after)


def _to_iso(parsed: pd.Timestamp) -> str:
    if parsed.hour == 0 and parsed.minute == 0 and parsed.second == 0 and parsed.microsecond == 0:
        return parsed.strftime("%Y-%m-%d")
    return parsed.isoformat()


def normalize_number(text: str) -> Optional[float]:
    """
    Parse a number written with any supported separator style.

    Example:
        >>> normalize_number("1.234,50"), normalize_number("1 234"), normalize_number("1,234.5")
        (1234.5, 1234.0, 1234.5)
    """
    style = classify_number_style(text)
    cleaned = text.strip()
    if style == "comma-decimal":
        cleaned = cleaned.replace(".", "").replace(" ", "").replace(",", ".")
    return try_parse_numeric(cleaned)


class RuleApplier:
    """
    Applies preprocessing rules to a DataFrame in place.

    Attributes:
        continue_on_failure: Keep applying the remaining rules after one fails

    Example:
        >>> applier = RuleApplier(continue_on_failure=True)
        >>> bulk = applier.apply_rules(df, approved_rules)
        >>> print(f"{bulk.successful_rules}/{bulk.total_rules} applied")
    """

    def __init__(self, continue_on_failure: bool = True):
        self.continue_on_failure = continue_on_failure
        self._strategies: Dict[PreprocessingRuleType, Callable[..., int]] = {
            PreprocessingRuleType.MISSING_VALUE_STRATEGY: self._apply_missing_value_strategy,
            PreprocessingRuleType.OUTLIER_HANDLING: self._apply_outlier_handling,
            PreprocessingRuleType.WHITESPACE_NORMALIZATION: self._apply_whitespace_normalization,
            PreprocessingRuleType.DATE_FORMAT_STANDARDIZATION: self._apply_date_format_standardization,
            PreprocessingRuleType.CATEGORY_MAPPING: self._apply_category_mapping,
            PreprocessingRuleType.TYPE_CONVERSION: self._apply_type_conversion,
            PreprocessingRuleType.ENCODING_NORMALIZATION: self._apply_encoding_normalization,
            PreprocessingRuleType.NUMERIC_FORMAT_STANDARDIZATION: self._apply_numeric_format_standardization,
            PreprocessingRuleType.BUSINESS_LOGIC_DECISION: self._apply_business_logic_decision,
        }

    def validate_rule(self, data: pd.DataFrame, rule: PreprocessingRule) -> bool:
        """True if every column the rule names exists (case-insensitive)."""
        for column_name in rule.column_names:
            if find_column(data, column_name) is None:
                logger.warning(f"Validation failed: column {column_name} not found in DataFrame")
                return False
        return True

    def apply_rule(
        self,
        data: pd.DataFrame,
        rule: PreprocessingRule,
        cancellation: Optional[CancellationToken] = None
    ) -> RuleApplicationResult:
        """
        Apply one rule to ``data`` in place.

        Returns:
            RuleApplicationResult; ``success`` is False for any failure

        Raises:
            NullDatasetError: If data is None
            OperationCancelledError: If cancellation was requested
        """
        if data is None:
            raise NullDatasetError(parameter="data")

        start_time = time.time()
        total_rows = len(data)
        logger.info(f"Applying rule {rule.id}: {rule.description}")

        if not self.validate_rule(data, rule):
            return RuleApplicationResult(
                rule=rule,
                success=False,
                rows_affected=0,
                rows_skipped=total_rows,
                duration=time.time() - start_time,
                error_message="Rule validation failed: columns not found or incompatible types",
            )

        try:
            check_cancelled(cancellation)
            if not rule.can_apply:
                raise RuleNotApprovedError(rule.id)

            strategy = self._strategies.get(rule.type)
            if strategy is None:
                raise RuleNotSupportedError(rule.type.value, rule.id)

            column_name = find_column(data, rule.primary_column)
            targeted = int(affected_mask(rule, data[column_name]).sum())
            if rule.parameters.get('keep_as_is'):
                logger.info(f"Rule {rule.id} approved as keep-as-is; data left unchanged")
                rows_affected = 0
            else:
                rows_affected = strategy(data, column_name, rule, cancellation)

        except OperationCancelledError:
            raise
        except Exception as e:
            logger.error(f"Failed to apply rule {rule.id}: {str(e)}")
            return RuleApplicationResult(
                rule=rule,
                success=False,
                rows_affected=0,
                rows_skipped=total_rows,
                duration=time.time() - start_time,
                error_message=str(e),
            )

        duration = time.time() - start_time
        logger.info(
            f"Rule {rule.id} applied successfully. Rows affected: {rows_affected} "
            f"({targeted} targeted), duration: {duration * 1000:.0f}ms"
        )
        return RuleApplicationResult(
            rule=rule,
            success=True,
            rows_affected=rows_affected,
            rows_skipped=max(0, total_rows - rows_affected),
            duration=duration,
            validation_message=f"{targeted} of {total_rows} rows targeted",
        )

    def apply_rules(
        self,
        data: pd.DataFrame,
        rules: Sequence[PreprocessingRule],
        progress: Optional[ProgressCallback] = None,
        cancellation: Optional[CancellationToken] = None
    ) -> BulkApplicationResult:
        """
        Apply ``rules`` in order, stopping after the first failure unless
        ``continue_on_failure`` is set.

        Args:
            data: Dataset modified in place
            rules: Rules in application order
            progress: Called as progress(rule, index, total, message) before each rule
            cancellation: Optional cancellation token

        Returns:
            BulkApplicationResult covering the attempted rules
        """
        start_time = time.time()
        total = len(rules)
        bulk = BulkApplicationResult(total_rules=total)

        logger.info(f"Starting bulk rule application for {total} rules")

        for index, rule in enumerate(rules):
            check_cancelled(cancellation)

            if progress is not None:
                progress(rule, index, total, f"Applying rule {index + 1}/{total}: {rule.description}")

            result = self.apply_rule(data, rule, cancellation)
            bulk.results.append(result)

            if not result.success and not self.continue_on_failure:
                logger.warning("Rule application failed and continue_on_failure is False. Stopping.")
                break

        bulk.total_duration = time.time() - start_time
        logger.info(
            f"Bulk application complete. Success: {bulk.successful_rules}/{bulk.total_rules}, "
            f"Failed: {bulk.failed_rules}, Duration: {bulk.total_duration:.2f}s"
        )
        return bulk

    # ===== Rule application strategies =====

    def _apply_missing_value_strategy(
        self,
        data: pd.DataFrame,
        column: str,
        rule: PreprocessingRule,
        cancellation: Optional[CancellationToken] = None
    ) -> int:
        strategy = rule.parameters.get('strategy', "impute_median")
        if strategy not in MISSING_STRATEGIES:
            raise RuleApplicationError(f"Unknown missing value strategy '{strategy}'", rule_id=rule.id)

        missing = data[column].map(is_missing_value).astype(bool)
        count = int(missing.sum())
        if count == 0 or strategy == "keep":
            return 0

        if strategy == "drop_rows":
            data.drop(index=data.index[missing.to_numpy()], inplace=True)
            return count

        numeric = pd.to_numeric(data[column].where(~missing), errors='coerce')
        is_numeric = pd.api.types.is_numeric_dtype(data[column]) or numeric.notna().sum() == (~missing).sum()

        if strategy == "impute_custom":
            if 'custom_value' not in rule.parameters:
                raise RuleApplicationError("impute_custom requires a 'custom_value' parameter", rule_id=rule.id)
            fill = rule.parameters['custom_value']
        elif strategy in ("impute_median", "impute_mean") and is_numeric and numeric.notna().any():
            fill = float(numeric.median() if strategy == "impute_median" else numeric.mean())
        else:
            # Non-numeric columns fall back to the mode
            present = numeric[~missing] if is_numeric else data[column][~missing]
            if present.empty:
                raise RuleApplicationError(f"Column '{column}' has no values to impute from", rule_id=rule.id)
            fill = present.mode().iloc[0]

        if is_numeric and not pd.api.types.is_numeric_dtype(data[column]):
            data[column] = numeric
        data.loc[missing.to_numpy(), column] = fill
        logger.debug(f"Filled {count} missing values in '{column}' with {fill!r} ({strategy})")
        return count

    def _apply_outlier_handling(
        self,
        data: pd.DataFrame,
        column: str,
        rule: PreprocessingRule,
        cancellation: Optional[CancellationToken] = None
    ) -> int:
        method = rule.parameters.get('method', "cap")
        if method not in OUTLIER_METHODS:
            raise RuleApplicationError(f"Unknown outlier method '{method}'", rule_id=rule.id)
        if not pd.api.types.is_numeric_dtype(data[column]):
            raise RuleApplicationError(f"Column '{column}' is not numeric", rule_id=rule.id)

        positions = sorted(statistics.outlier_positions(data[column]))
        if not positions or method == "keep":
            return 0

        if method == "remove":
            data.drop(index=data.index[positions], inplace=True)
            return len(positions)

        if method == "flag":
            flags = np.zeros(len(data), dtype=bool)
            flags[positions] = True
            data[f"{column}_is_outlier"] = flags
            return len(positions)

        lower, upper = statistics.iqr_bounds(data[column])
        labels = data.index[positions]
        before = data.loc[labels, column].astype(float)
        after = before.clip(lower=lower, upper=upper)
        if not pd.api.types.is_float_dtype(data[column]):
            data[column] = data[column].astype(float)
        data.loc[labels, column] = after
        return int((before != after).sum())

    def _apply_whitespace_normalization(
        self,
        data: pd.DataFrame,
        column: str,
        rule: PreprocessingRule,
        cancellation: Optional[CancellationToken] = None
    ) -> int:
        trim = rule.parameters.get('trim', True)
        collapse = rule.parameters.get('collapse_spaces', True)

        def normalize(value):
            if not isinstance(value, str):
                return value
            if collapse:
                value = _WHITESPACE_RUN.sub(" ", value)
            return value.strip() if trim else value

        return self._map_column(data, column, normalize, cancellation)

    def _apply_date_format_standardization(
        self,
        data: pd.DataFrame,
        column: str,
        rule: PreprocessingRule,
        cancellation: Optional[CancellationToken] = None
    ) -> int:
        def standardize(value):
            if not isinstance(value, str) or is_missing_value(value):
                return value
            parsed = try_parse_datetime(value)
            return _to_iso(parsed) if parsed is not None else value

        return self._map_column(data, column, standardize, cancellation)

    def _apply_category_mapping(
        self,
        data: pd.DataFrame,
        column: str,
        rule: PreprocessingRule,
        cancellation: Optional[CancellationToken] = None
    ) -> int:
        mapping = rule.parameters.get('mapping')
        if not mapping:
            include_similar = rule.parameters.get('variant') != "case"
            mapping = build_category_mapping(data[column], include_similar=include_similar)
            rule.parameters['mapping'] = mapping

        if rule.parameters.get('preserve_original'):
            data[f"{column}_original"] = data[column].copy()

        def remap(value):
            if isinstance(value, str) and value.strip() in mapping:
                return mapping[value.strip()]
            return value

        return self._map_column(data, column, remap, cancellation)

    def _apply_type_conversion(
        self,
        data: pd.DataFrame,
        column: str,
        rule: PreprocessingRule,
        cancellation: Optional[CancellationToken] = None
    ) -> int:
        target = rule.parameters.get('target_type', "text")

        if target == "numeric":
            def convert(value):
                if is_missing_value(value):
                    return np.nan
                parsed = normalize_number(str(value))
                return np.nan if parsed is None else parsed
        elif target == "datetime":
            def convert(value):
                if is_missing_value(value):
                    return value
                parsed = try_parse_datetime(str(value))
                return _to_iso(parsed) if parsed is not None else None
        elif target == "boolean":
            def convert(value):
                if is_missing_value(value) or isinstance(value, bool):
                    return value
                return try_parse_boolean(str(value))
        elif target == "text":
            def convert(value):
                return value if is_missing_value(value) else str(value).strip()
        else:
            raise RuleApplicationError(f"Unknown target type '{target}'", rule_id=rule.id)

        dropped = 0
        if rule.parameters.get('drop_incompatible') and target != "text":
            incompatible = data[column].map(
                lambda value: not is_missing_value(value) and is_missing_value(convert(value))
            ).astype(bool)
            dropped = int(incompatible.sum())
            if dropped:
                data.drop(index=data.index[incompatible.to_numpy()], inplace=True)
                logger.debug(f"Dropped {dropped} rows with values incompatible with {target} in '{column}'")

        return dropped + self._map_column(data, column, convert, cancellation)

    def _apply_encoding_normalization(
        self,
        data: pd.DataFrame,
        column: str,
        rule: PreprocessingRule,
        cancellation: Optional[CancellationToken] = None
    ) -> int:
        def repair(value):
            if not isinstance(value, str) or not has_encoding_issue(value):
                return value
            repaired = reinterpret_as_utf8(value)
            if repaired is not None:
                return repaired
            return value.replace(REPLACEMENT_CHARACTER, "")

        return self._map_column(data, column, repair, cancellation)

    def _apply_numeric_format_standardization(
        self,
        data: pd.DataFrame,
        column: str,
        rule: PreprocessingRule,
        cancellation: Optional[CancellationToken] = None
    ) -> int:
        def standardize(value):
            if not isinstance(value, str) or is_missing_value(value):
                return value
            parsed = normalize_number(value)
            return value if parsed is None else parsed

        return self._map_column(data, column, standardize, cancellation)

    def _apply_business_logic_decision(
        self,
        data: pd.DataFrame,
        column: str,
        rule: PreprocessingRule,
        cancellation: Optional[CancellationToken] = None
    ) -> int:
        logger.info(f"Business logic decision for rule {rule.id} recorded: {rule.user_feedback or 'no feedback'}")
        return 0

    @staticmethod
    def _map_column(
        data: pd.DataFrame,
        column: str,
        transform: Callable[[Any], Any],
        cancellation: Optional[CancellationToken] = None
    ) -> int:
        """Apply ``transform`` to every cell of ``column``; return the number of changed cells."""
        original = data[column].tolist()
        converted = []
        changed = 0
        for index, value in enumerate(original):
            check_periodically(cancellation, index)
            new_value = transform(value)
            if _changed(value, new_value):
                changed += 1
            converted.append(new_value)

        if changed:
            data[column] = pd.Series(converted, index=data.index, dtype=object).infer_objects()
        return changed

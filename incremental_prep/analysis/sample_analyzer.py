"""
Sample Analyzer - per-column statistics for one discovery stage.

For every column of a sample the analyzer computes either numeric statistics
(moments, quartiles, outlier counts, percentiles) or categorical statistics
(frequencies, Shannon entropy, cardinality flags), flags quality issues,
proposes preprocessing actions and rolls everything up into a 0..1 quality
score.

Design Decisions:
    - Numeric quartiles/percentiles use linear interpolation (numpy default),
      so IQR fences here can differ from the positional quartiles the
      OutlierDetector uses for rule discovery
    - Outliers are counted with one configurable method: IQR fences (default),
      |z| above a threshold, or not at all (OutlierMethod.NONE)
    - Boolean columns are summarised as categorical, not numeric
    - Skewness/kurtosis are bias-corrected (scipy) and need at least 3 values
    - Memory estimate: 8 bytes per numeric cell, 50 bytes per string cell

Usage:
    analyzer = SampleAnalyzer()
    analysis = analyzer.analyze(sample, stage_number=1, sample_ratio=0.01)
    if analyzer.has_converged(previous_analysis, analysis):
        ...
"""

import logging
from typing import List, Optional

import numpy as np
import pandas as pd
from scipy import stats as scipy_stats

from incremental_prep.analysis.models import (
    CategoricalStats,
    ColumnAnalysis,
    NumericStats,
    OutlierMethod,
    QualityIssue,
    SampleAnalysis,
)
from incremental_prep.core.cancellation import CancellationToken, check_cancelled
from incremental_prep.core.constants import (
    DEFAULT_ANALYSIS_CONVERGENCE_THRESHOLD,
    HIGH_CARDINALITY_MIN_RATIO,
    HIGH_CARDINALITY_MIN_UNIQUE,
    HIGH_MISSING_PERCENTAGE,
    HIGH_OUTLIER_PERCENTAGE,
    IDENTIFIER_UNIQUE_RATIO,
    LOW_CARDINALITY_MAX_RATIO,
    LOW_CARDINALITY_MAX_UNIQUE,
    MAX_CATEGORICAL_VALUES,
    MODERATE_MISSING_PERCENTAGE,
    NUMERIC_BYTES_PER_VALUE,
    OUTLIER_IQR_MULTIPLIER,
    OUTLIER_Z_SCORE_THRESHOLD,
    PERCENTILES,
    STRING_BYTES_PER_VALUE,
)
from incremental_prep.core.exceptions import NullDatasetError
from incremental_prep.discovery.helpers import is_missing_value
from incremental_prep.discovery.models import Severity

logger = logging.getLogger(__name__)


def detect_data_type(column: pd.Series) -> str:
    """Coarse storage type of a column."""
    if pd.api.types.is_bool_dtype(column):
        return "Boolean"
    if pd.api.types.is_integer_dtype(column):
        return "Integer"
    if pd.api.types.is_float_dtype(column):
        return "Float"
    if pd.api.types.is_datetime64_any_dtype(column):
        return "DateTime"
    if pd.api.types.is_object_dtype(column) or pd.api.types.is_string_dtype(column):
        return "String"
    return "Unknown"


def _is_numeric_type(data_type: str) -> bool:
    return data_type in ("Integer", "Float")


class SampleAnalyzer:
    """
    Statistical profile of a sample, one ColumnAnalysis per column.

    Example:
        >>> analyzer = SampleAnalyzer()
        >>> analysis = analyzer.analyze(df, stage_number=2, sample_ratio=0.005)
        >>> print(analysis.get_summary())
    """

    def __init__(
        self,
        max_categorical_values: int = MAX_CATEGORICAL_VALUES,
        outlier_method: OutlierMethod = OutlierMethod.IQR,
        iqr_multiplier: float = OUTLIER_IQR_MULTIPLIER,
        z_score_threshold: float = OUTLIER_Z_SCORE_THRESHOLD
    ):
        self.max_categorical_values = max_categorical_values
        self.outlier_method = outlier_method
        self.iqr_multiplier = iqr_multiplier
        self.z_score_threshold = z_score_threshold

    def analyze(
        self,
        sample: pd.DataFrame,
        stage_number: int,
        sample_ratio: Optional[float] = None,
        cancellation: Optional[CancellationToken] = None
    ) -> SampleAnalysis:
        """
        Analyze every column of a sample.

        Args:
            sample: Sampled rows
            stage_number: Discovery stage the sample belongs to
            sample_ratio: Ratio the sample was drawn with (1.0 when unknown)
            cancellation: Optional token checked once per column

        Returns:
            SampleAnalysis with per-column results and the quality score

        Raises:
            NullDatasetError: If sample is None
            OperationCancelledError: If cancellation was requested
        """
        if sample is None:
            raise NullDatasetError(parameter="sample")

        logger.info(
            f"Analyzing sample stage {stage_number}: "
            f"{len(sample):,} rows, {len(sample.columns)} columns"
        )

        columns: List[ColumnAnalysis] = []
        for index, name in enumerate(sample.columns):
            check_cancelled(cancellation)
            columns.append(self.analyze_column(sample[name], str(name), index))

        analysis = SampleAnalysis(
            stage_number=stage_number,
            sample_ratio=1.0 if sample_ratio is None else sample_ratio,
            row_count=len(sample),
            column_count=len(sample.columns),
            columns=columns,
            quality_score=self.calculate_quality_score(columns),
            estimated_memory_bytes=self.estimate_memory(sample),
        )

        logger.info(
            f"Analysis complete: quality {analysis.quality_score:.0%}, "
            f"{len(analysis.all_quality_issues)} issues"
        )
        return analysis

    def analyze_column(self, column: pd.Series, column_name: str, column_index: int = 0) -> ColumnAnalysis:
        if column is None:
            raise NullDatasetError(parameter="column")

        total = len(column)
        missing = column.map(is_missing_value).astype(bool) if total else pd.Series(dtype=bool)
        null_count = int(missing.sum())
        non_null_count = total - null_count
        missing_percentage = null_count / total * 100.0 if total else 0.0

        data_type = detect_data_type(column)
        numeric_stats = None
        categorical_stats = None

        if _is_numeric_type(data_type) and non_null_count > 0:
            numeric_stats = self._numeric_stats(column[~missing])
        elif data_type in ("String", "Boolean") and non_null_count > 0:
            categorical_stats = self._categorical_stats(column[~missing])

        issues = self._quality_issues(missing_percentage, numeric_stats, categorical_stats)
        actions = self._recommendations(data_type, missing_percentage, numeric_stats, categorical_stats)

        return ColumnAnalysis(
            column_name=column_name,
            column_index=column_index,
            data_type=data_type,
            total_rows=total,
            null_count=null_count,
            non_null_count=non_null_count,
            missing_percentage=missing_percentage,
            numeric_stats=numeric_stats,
            categorical_stats=categorical_stats,
            quality_issues=issues,
            recommended_actions=actions,
        )

    def _numeric_stats(self, values: pd.Series) -> NumericStats:
        data = np.sort(values.astype(float).to_numpy())
        count = len(data)

        mean = float(np.mean(data))
        variance = float(np.var(data, ddof=1)) if count > 1 else 0.0
        std_dev = float(np.sqrt(variance))
        q1, median, q3 = (float(v) for v in np.percentile(data, [25, 50, 75]))

        outlier_count = self._count_outliers(data, mean, std_dev, q1, q3)

        skewness = 0.0
        kurtosis = 0.0
        if count >= 3 and std_dev > 0:
            skewness = float(scipy_stats.skew(data, bias=False))
            kurtosis = float(scipy_stats.kurtosis(data, fisher=True, bias=False))

        # Mode only when some rounded value actually repeats
        rounded = pd.Series(np.round(data, 2)).value_counts()
        mode = float(rounded.index[0]) if not rounded.empty and rounded.iloc[0] > 1 else None

        percentiles = {
            f"p{int(round(p * 100))}": float(np.percentile(data, p * 100))
            for p in PERCENTILES
        }

        return NumericStats(
            count=count,
            mean=mean,
            median=median,
            mode=mode,
            std_dev=std_dev,
            variance=variance,
            min=float(data[0]),
            max=float(data[-1]),
            q1=q1,
            q3=q3,
            skewness=skewness,
            kurtosis=kurtosis,
            outlier_count=outlier_count,
            outlier_percentage=outlier_count / count * 100.0,
            sum=float(np.sum(data)),
            percentiles=percentiles,
        )

    def _count_outliers(self, data: np.ndarray, mean: float, std_dev: float, q1: float, q3: float) -> int:
        if self.outlier_method == OutlierMethod.IQR:
            iqr = q3 - q1
            lower = q1 - self.iqr_multiplier * iqr
            upper = q3 + self.iqr_multiplier * iqr
            return int(np.sum((data < lower) | (data > upper)))
        if self.outlier_method == OutlierMethod.ZSCORE:
            if std_dev == 0:
                return 0
            return int(np.sum(np.abs((data - mean) / std_dev) > self.z_score_threshold))
        return 0

    def _categorical_stats(self, values: pd.Series) -> CategoricalStats:
        counts = values.astype(str).value_counts()
        count = int(counts.sum())
        unique_count = len(counts)
        ratio = unique_count / count if count else 0.0

        top_values = [
            {'value': str(value), 'count': int(frequency)}
            for value, frequency in counts.head(self.max_categorical_values).items()
        ]

        return CategoricalStats(
            count=count,
            unique_count=unique_count,
            top_values=top_values,
            entropy=float(scipy_stats.entropy(counts.to_numpy(), base=2)) if count else 0.0,
            mode=str(counts.index[0]) if unique_count else None,
            cardinality_ratio=ratio,
            is_identifier=ratio > IDENTIFIER_UNIQUE_RATIO,
            is_low_cardinality=unique_count < LOW_CARDINALITY_MAX_UNIQUE and ratio < LOW_CARDINALITY_MAX_RATIO,
            is_high_cardinality=unique_count > HIGH_CARDINALITY_MIN_UNIQUE or ratio > HIGH_CARDINALITY_MIN_RATIO,
        )

    @staticmethod
    def _quality_issues(
        missing_percentage: float,
        numeric_stats: Optional[NumericStats],
        categorical_stats: Optional[CategoricalStats]
    ) -> List[QualityIssue]:
        issues = []

        if missing_percentage > HIGH_MISSING_PERCENTAGE:
            issues.append(QualityIssue(
                "HighMissingValues", Severity.HIGH, f"{missing_percentage:.1f}% missing values"
            ))
        elif missing_percentage > MODERATE_MISSING_PERCENTAGE:
            issues.append(QualityIssue(
                "ModerateMissingValues", Severity.MEDIUM, f"{missing_percentage:.1f}% missing values"
            ))

        if numeric_stats is not None and numeric_stats.outlier_percentage > HIGH_OUTLIER_PERCENTAGE:
            issues.append(QualityIssue(
                "HighOutliers", Severity.MEDIUM,
                f"{numeric_stats.outlier_percentage:.1f}% outliers detected"
            ))

        if categorical_stats is not None and categorical_stats.is_high_cardinality:
            issues.append(QualityIssue(
                "HighCardinality", Severity.LOW,
                f"High cardinality: {categorical_stats.unique_count} unique values"
            ))

        return issues

    @staticmethod
    def _recommendations(
        data_type: str,
        missing_percentage: float,
        numeric_stats: Optional[NumericStats],
        categorical_stats: Optional[CategoricalStats]
    ) -> List[str]:
        actions = []

        if missing_percentage > 0:
            if missing_percentage > HIGH_MISSING_PERCENTAGE:
                actions.append("Drop column due to excessive missing values")
            elif _is_numeric_type(data_type):
                actions.append("Fill missing numeric values with median")
            else:
                actions.append("Fill missing categorical values with mode or 'Unknown'")

        if categorical_stats is not None:
            if categorical_stats.is_low_cardinality:
                actions.append("Apply one-hot encoding")
            elif categorical_stats.is_high_cardinality:
                actions.append("Apply target encoding or embedding")
            elif categorical_stats.is_identifier:
                actions.append("Drop column - likely an identifier with no predictive value")

        if numeric_stats is not None and numeric_stats.outlier_count > 0:
            actions.append("Review outliers and consider clipping or transformation")

        return actions

    @staticmethod
    def calculate_quality_score(columns: List[ColumnAnalysis]) -> float:
        """Mean per-column score: 1 - missing/2 - 0.2 per High+ issue (max 0.4), floored at 0."""
        if not columns:
            return 0.0

        total = 0.0
        for column in columns:
            score = 1.0 - column.missing_percentage / 100.0 * 0.5
            severe = sum(1 for issue in column.quality_issues if issue.severity.rank >= Severity.HIGH.rank)
            score -= min(severe * 0.2, 0.4)
            total += max(score, 0.0)

        return total / len(columns)

    @staticmethod
    def estimate_memory(sample: pd.DataFrame) -> int:
        total = 0
        for name in sample.columns:
            per_value = STRING_BYTES_PER_VALUE if detect_data_type(sample[name]) == "String" else NUMERIC_BYTES_PER_VALUE
            total += len(sample) * per_value
        return total

    def has_converged(
        self,
        previous: SampleAnalysis,
        current: SampleAnalysis,
        threshold: float = DEFAULT_ANALYSIS_CONVERGENCE_THRESHOLD
    ) -> bool:
        """
        True when key statistics barely moved between two stages.

        Relative drift of mean and std (numeric) and entropy (categorical) is
        averaged over the columns both analyses share; converged when the
        average is below threshold. No comparable statistics means not converged.
        """
        if previous is None or current is None:
            raise ValueError("Sample analyses for convergence comparison must not be None")

        drifts = []
        for prev_col, curr_col in zip(previous.columns, current.columns):
            if prev_col.numeric_stats is not None and curr_col.numeric_stats is not None:
                prev_stats, curr_stats = prev_col.numeric_stats, curr_col.numeric_stats
                drifts.append(abs(prev_stats.mean - curr_stats.mean) / max(abs(prev_stats.mean), 1.0))
                drifts.append(abs(prev_stats.std_dev - curr_stats.std_dev) / max(prev_stats.std_dev, 1.0))

            if prev_col.categorical_stats is not None and curr_col.categorical_stats is not None:
                prev_entropy = prev_col.categorical_stats.entropy
                drifts.append(
                    abs(prev_entropy - curr_col.categorical_stats.entropy) / max(prev_entropy, 1.0)
                )

        if not drifts:
            return False

        average = sum(drifts) / len(drifts)
        converged = average < threshold
        logger.debug(
            f"Analysis convergence: avg drift {average:.4f}, threshold {threshold:.4f}, converged: {converged}"
        )
        return converged

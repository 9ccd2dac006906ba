"""
Sample Analysis Result Classes.

Dataclasses produced by the SampleAnalyzer for one discovery stage:
- NumericStats / CategoricalStats: Per-column summaries (mutually exclusive)
- QualityIssue: A flagged problem with a severity
- ColumnAnalysis: Everything known about one column in the sample
- SampleAnalysis: All columns plus the aggregate quality score
- OutlierMethod: How numeric outliers are counted
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from incremental_prep.discovery.models import Severity


class OutlierMethod(Enum):
    """Rule used to count outliers in numeric column statistics."""
    NONE = "None"
    IQR = "IQR"
    ZSCORE = "ZScore"


@dataclass
class NumericStats:
    """Descriptive statistics of a numeric column (unbiased std/variance)."""
    count: int
    mean: float
    median: float
    mode: Optional[float]
    std_dev: float
    variance: float
    min: float
    max: float
    q1: float
    q3: float
    skewness: float
    kurtosis: float
    outlier_count: int
    outlier_percentage: float
    sum: float
    percentiles: Dict[str, float] = field(default_factory=dict)

    @property
    def iqr(self) -> float:
        return self.q3 - self.q1

    @property
    def range(self) -> float:
        return self.max - self.min


@dataclass
class CategoricalStats:
    """
    Frequency summary of a string column.

    Attributes:
        top_values: Most frequent values with counts, most frequent first
        entropy: Shannon entropy (log2) of the value distribution
        cardinality_ratio: unique_count / count
    """
    count: int
    unique_count: int
    top_values: List[Dict[str, Any]]
    entropy: float
    mode: Optional[str]
    cardinality_ratio: float
    is_identifier: bool = False
    is_low_cardinality: bool = False
    is_high_cardinality: bool = False


@dataclass
class QualityIssue:
    issue_type: str
    severity: Severity
    description: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'issue_type': self.issue_type,
            'severity': self.severity.value,
            'description': self.description,
        }


@dataclass
class ColumnAnalysis:
    """Analysis of one column; exactly one of numeric_stats / categorical_stats is set."""
    column_name: str
    column_index: int
    data_type: str
    total_rows: int
    null_count: int
    non_null_count: int
    missing_percentage: float
    numeric_stats: Optional[NumericStats] = None
    categorical_stats: Optional[CategoricalStats] = None
    quality_issues: List[QualityIssue] = field(default_factory=list)
    recommended_actions: List[str] = field(default_factory=list)

    @property
    def is_numeric(self) -> bool:
        return self.numeric_stats is not None

    @property
    def is_categorical(self) -> bool:
        return self.categorical_stats is not None


@dataclass
class SampleAnalysis:
    """
    Analysis of one sample, produced once per discovery stage.

    Example:
        >>> analysis = analyzer.analyze(sample, stage_number=1)
        >>> analysis.quality_score
        0.87
        >>> analysis.columns_with_missing
        ['age', 'income']
    """
    stage_number: int
    sample_ratio: float
    row_count: int
    column_count: int
    columns: List[ColumnAnalysis]
    quality_score: float
    estimated_memory_bytes: int
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def get_column(self, name: str) -> Optional[ColumnAnalysis]:
        for column in self.columns:
            if column.column_name == name:
                return column
        return None

    @property
    def all_quality_issues(self) -> List[QualityIssue]:
        return [issue for column in self.columns for issue in column.quality_issues]

    @property
    def numeric_column_count(self) -> int:
        return sum(1 for column in self.columns if column.is_numeric)

    @property
    def categorical_column_count(self) -> int:
        return sum(1 for column in self.columns if column.is_categorical)

    @property
    def columns_with_missing(self) -> List[str]:
        return [column.column_name for column in self.columns if column.null_count > 0]

    @property
    def overall_missing_percentage(self) -> float:
        total_cells = self.row_count * self.column_count
        if total_cells == 0:
            return 0.0
        return sum(column.null_count for column in self.columns) / total_cells * 100.0

    @property
    def estimated_memory_mb(self) -> float:
        return self.estimated_memory_bytes / (1024 * 1024)

    def get_summary(self) -> str:
        return (
            f"Stage {self.stage_number}: {self.row_count:,} rows x {self.column_count} columns "
            f"({self.numeric_column_count} numeric, {self.categorical_column_count} categorical), "
            f"quality {self.quality_score:.1%}, missing {self.overall_missing_percentage:.1f}%, "
            f"{len(self.all_quality_issues)} issues, ~{self.estimated_memory_mb:.1f} MB"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'stage_number': self.stage_number,
            'sample_ratio': self.sample_ratio,
            'timestamp': self.timestamp.isoformat(),
            'row_count': self.row_count,
            'column_count': self.column_count,
            'quality_score': round(self.quality_score, 4),
            'estimated_memory_bytes': self.estimated_memory_bytes,
            'columns': [
                {
                    'column_name': c.column_name,
                    'data_type': c.data_type,
                    'missing_percentage': round(c.missing_percentage, 2),
                    'quality_issues': [issue.to_dict() for issue in c.quality_issues],
                    'recommended_actions': list(c.recommended_actions),
                }
                for c in self.columns
            ],
        }

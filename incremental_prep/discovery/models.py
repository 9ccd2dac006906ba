"""
Rule Discovery Result Classes.

This module defines the records produced while discovering preprocessing rules:
- DetectedPattern: One data-quality pattern found by a detector in one column
- PreprocessingRule: Actionable decision derived from a pattern
- ConfidenceScore: Consistency/coverage/stability scoring of a rule
- ConvergenceInfo: Stage-over-stage comparison of two rule sets
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Dict, Any, Optional, Tuple

from incremental_prep.core.constants import (
    CONSISTENCY_WEIGHT,
    COVERAGE_WEIGHT,
    STABILITY_WEIGHT,
    HIGH_CONFIDENCE_THRESHOLD,
    MEDIUM_CONFIDENCE_THRESHOLD,
)
from incremental_prep.core.exceptions import RuleStateError


class PatternType(Enum):
    """Kind of data-quality pattern a detector can report."""
    MISSING_VALUE = "MissingValue"
    OUTLIER_ANOMALY = "OutlierAnomaly"
    WHITESPACE_ISSUE = "WhitespaceIssue"
    CATEGORY_VARIATION = "CategoryVariation"
    TYPE_INCONSISTENCY = "TypeInconsistency"
    ENCODING_ISSUE = "EncodingIssue"
    FORMAT_VARIATION = "FormatVariation"


class Severity(Enum):
    """
    Pattern severity, ordered from least to most severe.

    Example:
        >>> Severity.HIGH.rank > Severity.MEDIUM.rank
        True
    """
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_ORDER.index(self)


_SEVERITY_ORDER = [Severity.LOW, Severity.MEDIUM, Severity.HIGH, Severity.CRITICAL]


class PreprocessingRuleType(Enum):
    """What a preprocessing rule does to the data."""
    MISSING_VALUE_STRATEGY = "MissingValueStrategy"
    OUTLIER_HANDLING = "OutlierHandling"
    WHITESPACE_NORMALIZATION = "WhitespaceNormalization"
    DATE_FORMAT_STANDARDIZATION = "DateFormatStandardization"
    CATEGORY_MAPPING = "CategoryMapping"
    TYPE_CONVERSION = "TypeConversion"
    ENCODING_NORMALIZATION = "EncodingNormalization"
    NUMERIC_FORMAT_STANDARDIZATION = "NumericFormatStandardization"
    BUSINESS_LOGIC_DECISION = "BusinessLogicDecision"


class RuleState(Enum):
    """Rule lifecycle. Rules start PROPOSED and are approved exactly once."""
    PROPOSED = "Proposed"
    APPROVED = "Approved"


@dataclass(frozen=True)
class DetectedPattern:
    """
    A data-quality pattern found in a single column.

    Produced fresh on every scan and never mutated; the discovery engine folds
    it into a PreprocessingRule.

    Attributes:
        type: Pattern kind
        column_name: Column the pattern was found in
        description: Human-readable summary
        severity: Impact band
        occurrences: Number of affected values
        total_rows: Rows scanned
        confidence: Detector confidence in [0, 1]
        examples: Up to 5 example values
        suggested_fix: Free-text remediation hint
        variant: Sub-kind for detectors that report more than one pattern per
            column (e.g. "case" / "similar", "date" / "number" / "boolean")
    """
    type: PatternType
    column_name: str
    description: str
    severity: Severity
    occurrences: int
    total_rows: int
    confidence: float
    examples: Tuple[str, ...] = ()
    suggested_fix: str = ""
    variant: str = ""

    @property
    def affected_percentage(self) -> float:
        """Fraction of scanned rows affected (0.0 - 1.0)."""
        return self.occurrences / self.total_rows if self.total_rows > 0 else 0.0


@dataclass
class PreprocessingRule:
    """
    Actionable preprocessing decision for one or more columns.

    The approval fields are only changed through ``approve()``; everything
    else is set by the discovery engine at construction.

    Example:
        >>> rule.requires_hitl, rule.is_approved
        (True, False)
        >>> rule.approve("ImputeMedian: Fill with median")
        >>> rule.is_approved
        True
    """

    id: str
    type: PreprocessingRuleType
    column_names: List[str]
    description: str
    pattern_type: PatternType
    confidence: float
    requires_hitl: bool
    priority: int
    affected_rows: int
    discovered_in_stage: int = 1
    suggested_action: str = ""
    examples: List[str] = field(default_factory=list)
    parameters: Dict[str, Any] = field(default_factory=dict)
    discovered_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    state: RuleState = RuleState.PROPOSED
    user_feedback: Optional[str] = None

    @property
    def is_approved(self) -> bool:
        return self.state == RuleState.APPROVED

    @property
    def primary_column(self) -> str:
        return self.column_names[0] if self.column_names else ""

    @property
    def signature(self) -> Tuple[str, str, str]:
        """Stage-independent identity: (type, first column, description)."""
        return (self.type.value, self.primary_column, self.description)

    @property
    def affected_fraction(self) -> float:
        return float(self.parameters.get('affected_percentage', 0.0))

    @property
    def can_apply(self) -> bool:
        return self.is_approved or not self.requires_hitl

    def approve(self, feedback: Optional[str] = None) -> None:
        """
        Move the rule from PROPOSED to APPROVED, recording the decision.

        Raises:
            RuleStateError: If the rule was already approved
        """
        if self.state != RuleState.PROPOSED:
            raise RuleStateError(f"Rule '{self.id}' is already approved", rule_id=self.id)
        self.state = RuleState.APPROVED
        self.user_feedback = feedback

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'type': self.type.value,
            'column_names': list(self.column_names),
            'description': self.description,
            'pattern_type': self.pattern_type.value,
            'confidence': self.confidence,
            'requires_hitl': self.requires_hitl,
            'priority': self.priority,
            'affected_rows': self.affected_rows,
            'discovered_in_stage': self.discovered_in_stage,
            'suggested_action': self.suggested_action,
            'examples': list(self.examples),
            'parameters': dict(self.parameters),
            'discovered_at': self.discovered_at.isoformat(),
            'state': self.state.value,
            'is_approved': self.is_approved,
            'user_feedback': self.user_feedback,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PreprocessingRule":
        return cls(
            id=data['id'],
            type=PreprocessingRuleType(data['type']),
            column_names=list(data['column_names']),
            description=data['description'],
            pattern_type=PatternType(data['pattern_type']),
            confidence=float(data['confidence']),
            requires_hitl=bool(data['requires_hitl']),
            priority=int(data['priority']),
            affected_rows=int(data['affected_rows']),
            discovered_in_stage=int(data.get('discovered_in_stage', 1)),
            suggested_action=data.get('suggested_action', ""),
            examples=list(data.get('examples', [])),
            parameters=dict(data.get('parameters', {})),
            discovered_at=datetime.fromisoformat(data['discovered_at']),
            state=RuleState(data.get('state', RuleState.PROPOSED.value)),
            user_feedback=data.get('user_feedback'),
        )


@dataclass
class ConfidenceScore:
    """
    Three-axis confidence of a rule.

    ``overall`` is exactly consistency*0.5 + coverage*0.3 + stability*0.2.
    """
    consistency: float
    coverage: float
    stability: float

    @property
    def overall(self) -> float:
        return (
            self.consistency * CONSISTENCY_WEIGHT
            + self.coverage * COVERAGE_WEIGHT
            + self.stability * STABILITY_WEIGHT
        )

    @property
    def level(self) -> str:
        if self.overall >= HIGH_CONFIDENCE_THRESHOLD:
            return "High"
        if self.overall >= MEDIUM_CONFIDENCE_THRESHOLD:
            return "Medium"
        return "Low"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'consistency': round(self.consistency, 4),
            'coverage': round(self.coverage, 4),
            'stability': round(self.stability, 4),
            'overall': round(self.overall, 4),
            'level': self.level,
        }


@dataclass
class ConvergenceInfo:
    """Breakdown of a stage-over-stage rule set comparison."""
    has_converged: bool
    change_rate: float
    threshold: float
    new_rules: int
    modified_rules: int
    removed_rules: int
    stable_rules: int
    total_rules: int
    previous_rules: int

    @property
    def status(self) -> str:
        if self.has_converged:
            return f"Converged (change rate: {self.change_rate:.1%} <= {self.threshold:.1%})"
        if self.previous_rules == 0:
            return "Not converged (no previous rules to compare)"
        return f"Not converged (change rate: {self.change_rate:.1%} > {self.threshold:.1%})"

    @property
    def summary(self) -> str:
        return (
            f"{self.total_rules} rules total: {self.stable_rules} stable, "
            f"{self.new_rules} new, {self.modified_rules} modified, "
            f"{self.removed_rules} removed"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'has_converged': self.has_converged,
            'change_rate': round(self.change_rate, 4),
            'threshold': self.threshold,
            'new_rules': self.new_rules,
            'modified_rules': self.modified_rules,
            'removed_rules': self.removed_rules,
            'stable_rules': self.stable_rules,
            'total_rules': self.total_rules,
            'previous_rules': self.previous_rules,
            'status': self.status,
        }

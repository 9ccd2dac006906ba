"""
Rule Application Result Classes.

This module defines dataclasses for the outcome of applying preprocessing rules:
- RuleApplicationResult: One rule applied to one dataset
- BulkApplicationResult: An ordered batch of rules applied to one dataset
"""

from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional

from incremental_prep.discovery.models import PreprocessingRule


@dataclass
class RuleApplicationResult:
    """
    Result of applying a single preprocessing rule.

    Attributes:
        rule: The rule that was applied
        success: True if the rule's strategy completed
        rows_affected: Rows (or cells) the strategy changed
        rows_skipped: Rows left untouched (all rows on failure)
        duration: Wall time in seconds
        error_message: Failure reason, None on success
        validation_message: Optional note from pre-application checks

    Example:
        >>> result = applier.apply_rule(df, rule)
        >>> result.success, result.rows_affected
        (True, 42)
    """

    rule: PreprocessingRule
    success: bool
    rows_affected: int = 0
    rows_skipped: int = 0
    duration: float = 0.0
    error_message: Optional[str] = None
    validation_message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rule_id": self.rule.id,
            "rule_type": self.rule.type.value,
            "success": self.success,
            "rows_affected": self.rows_affected,
            "rows_skipped": self.rows_skipped,
            "duration": round(self.duration, 3),
            "error_message": self.error_message,
            "validation_message": self.validation_message,
        }


@dataclass
class BulkApplicationResult:
    """
    Aggregate result of applying an ordered list of rules.

    ``total_rules`` counts every rule requested, including rules never
    attempted because application stopped after a failure.
    """

    total_rules: int
    results: List[RuleApplicationResult] = field(default_factory=list)
    total_duration: float = 0.0

    @property
    def successful_rules(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed_rules(self) -> int:
        return sum(1 for r in self.results if not r.success)

    @property
    def total_rows_affected(self) -> int:
        return sum(r.rows_affected for r in self.results)

    @property
    def success_rate(self) -> float:
        """Successful rules / total rules (0.0 - 1.0)."""
        return self.successful_rules / self.total_rules if self.total_rules > 0 else 0.0

    def get_failures(self) -> List[RuleApplicationResult]:
        return [r for r in self.results if not r.success]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_rules": self.total_rules,
            "successful_rules": self.successful_rules,
            "failed_rules": self.failed_rules,
            "total_rows_affected": self.total_rows_affected,
            "success_rate": round(self.success_rate, 4),
            "total_duration": round(self.total_duration, 3),
            "results": [r.to_dict() for r in self.results],
        }

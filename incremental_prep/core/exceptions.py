"""
Incremental Prep Exception Hierarchy.

This module defines the exception hierarchy for the rule discovery pipeline,
providing clear categorization of errors and standardized error handling across
sampling, detection, rule application and the human-in-the-loop workflow.

Exception Severity Levels:
    - FATAL: Stop the workflow immediately (bad input, bad configuration)
    - CRITICAL: Stop the current unit of work (audit log write failure)
    - RECOVERABLE: Log error, mark the unit as failed, continue processing
    - WARNING: Log warning, processing continues

Cancellation is deliberately NOT part of this hierarchy: OperationCancelledError
must travel through every soft-failure handler untouched.
"""

from typing import Optional, Dict, Any
from enum import Enum


class ErrorSeverity(Enum):
    """
    Classify error severity for handling decisions.

    Attributes:
        FATAL: Unrecoverable error, stop all processing
        CRITICAL: Stop processing the current unit of work
        RECOVERABLE: Detector/rule level error, continue with the others
        WARNING: Non-critical issue, log and continue
    """
    FATAL = "fatal"
    CRITICAL = "critical"
    RECOVERABLE = "recoverable"
    WARNING = "warning"


class IncrementalPrepError(Exception):
    """
    Base exception for all rule discovery errors.

    Provides:
    - Severity classification for handling decisions
    - Structured details dictionary for logging/reporting
    - Original exception preservation for debugging
    - Serialization support for JSON/dict output

    Attributes:
        message (str): Human-readable error message
        severity (ErrorSeverity): Error severity level
        details (Dict[str, Any]): Additional context (column, rule id, etc.)
        original_exception (Optional[Exception]): Original exception if wrapping

    Example:
        >>> try:
        ...     rows = apply_strategy(data)
        ... except Exception as e:
        ...     raise IncrementalPrepError(
        ...         "Strategy failed",
        ...         details={'column': 'age'},
        ...         original_exception=e
        ...     )
    """

    def __init__(
        self,
        message: str,
        severity: ErrorSeverity = ErrorSeverity.RECOVERABLE,
        details: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        super().__init__(message)
        self.message = message
        self.severity = severity
        self.details = details or {}
        self.original_exception = original_exception

    def to_dict(self) -> Dict[str, Any]:
        """
        Serialize exception to dictionary for logging/reporting.

        Example:
            >>> exc = IncrementalPrepError("Test error", details={'column': 'age'})
            >>> exc.to_dict()
            {
                'type': 'IncrementalPrepError',
                'message': 'Test error',
                'severity': 'recoverable',
                'details': {'column': 'age'},
                'original_error': None
            }
        """
        return {
            'type': self.__class__.__name__,
            'message': self.message,
            'severity': self.severity.value,
            'details': self.details,
            'original_error': str(self.original_exception) if self.original_exception else None
        }


class OperationCancelledError(Exception):
    """
    Raised when a cooperative cancellation token has been triggered.

    Not an IncrementalPrepError: handlers that recover from per-detector or
    per-rule failures catch IncrementalPrepError/Exception selectively and
    must re-raise this one.
    """

    def __init__(self, message: str = "Operation was cancelled"):
        super().__init__(message)
        self.message = message


# ============================================================================
# Configuration Errors (Fatal)
# ============================================================================

class ConfigError(IncrementalPrepError):
    """
    Configuration file errors (fatal - workflow cannot start).

    Raised when:
    - Configuration file not found
    - Invalid YAML syntax
    - File exceeds the size guard
    """

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(
            message,
            severity=ErrorSeverity.FATAL,
            details={'field': field} if field else {}
        )
        self.field = field


class ConfigValidationError(ConfigError):
    """
    Configuration values are well-formed YAML but semantically invalid.

    Example:
        >>> raise ConfigValidationError(
        ...     "stage ratio must be in (0, 1]",
        ...     field="stage_ratios[2]",
        ...     expected="0 < ratio <= 1",
        ...     actual="1.5"
        ... )
    """

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        expected: Optional[str] = None,
        actual: Optional[str] = None
    ):
        super().__init__(message, field)
        self.details.update({
            'expected': expected,
            'actual': actual
        })


# ============================================================================
# Precondition Errors (Fatal)
# ============================================================================

class PreconditionError(IncrementalPrepError, ValueError):
    """
    Input validation failure raised before any work starts.

    Also a ValueError so callers treating bad arguments generically still
    catch it.
    """

    def __init__(self, message: str, parameter: Optional[str] = None, value: Any = None):
        super().__init__(
            message,
            severity=ErrorSeverity.FATAL,
            details={'parameter': parameter, 'value': value}
        )
        self.parameter = parameter
        self.value = value


class NullDatasetError(PreconditionError):
    """Dataset argument was None."""

    def __init__(self, parameter: str = "data"):
        super().__init__(f"Dataset '{parameter}' must not be None", parameter=parameter)


class InvalidSampleRatioError(PreconditionError):
    """
    Sample ratio outside (0, 1].

    Example:
        >>> raise InvalidSampleRatioError(1.5)
    """

    def __init__(self, ratio: float):
        super().__init__(
            f"Sample ratio must be in (0, 1], got {ratio}",
            parameter="ratio",
            value=ratio
        )
        self.ratio = ratio


# ============================================================================
# Pipeline Errors (Recoverable)
# ============================================================================

class SamplingError(IncrementalPrepError):
    """Sampling strategy failed to produce a sample."""

    def __init__(self, message: str, strategy: Optional[str] = None,
                 original_exception: Optional[Exception] = None):
        super().__init__(
            message,
            severity=ErrorSeverity.CRITICAL,
            details={'strategy': strategy},
            original_exception=original_exception
        )
        self.strategy = strategy


class DetectionError(IncrementalPrepError):
    """
    A single pattern detector failed on a single column.

    The discovery engine logs and skips the detector; the remaining detectors
    and columns still run.
    """

    def __init__(
        self,
        message: str,
        detector: Optional[str] = None,
        column: Optional[str] = None,
        original_exception: Optional[Exception] = None
    ):
        super().__init__(
            message,
            severity=ErrorSeverity.RECOVERABLE,
            details={'detector': detector, 'column': column},
            original_exception=original_exception
        )


class RuleApplicationError(IncrementalPrepError):
    """
    A preprocessing rule could not be applied.

    Attributes:
        rule_id (str): Id of the rule that failed
    """

    def __init__(self, message: str, rule_id: Optional[str] = None,
                 original_exception: Optional[Exception] = None):
        super().__init__(
            message,
            severity=ErrorSeverity.RECOVERABLE,
            details={'rule_id': rule_id},
            original_exception=original_exception
        )
        self.rule_id = rule_id


class RuleNotSupportedError(RuleApplicationError):
    """No application strategy exists for the rule type."""

    def __init__(self, rule_type: str, rule_id: Optional[str] = None):
        super().__init__(f"Rule type '{rule_type}' is not supported", rule_id=rule_id)
        self.details['rule_type'] = rule_type


class RuleNotApprovedError(RuleApplicationError):
    """A rule requiring human review was applied before approval."""

    def __init__(self, rule_id: str):
        super().__init__(
            f"Rule '{rule_id}' requires human approval before it can be applied",
            rule_id=rule_id
        )


class RuleStateError(IncrementalPrepError):
    """Illegal rule lifecycle transition (e.g. approving twice)."""

    def __init__(self, message: str, rule_id: Optional[str] = None):
        super().__init__(message, severity=ErrorSeverity.FATAL, details={'rule_id': rule_id})


# ============================================================================
# HITL Errors
# ============================================================================

class HITLError(IncrementalPrepError):
    """Human-in-the-loop question/answer processing failed."""

    def __init__(self, message: str, rule_id: Optional[str] = None,
                 original_exception: Optional[Exception] = None):
        super().__init__(
            message,
            severity=ErrorSeverity.RECOVERABLE,
            details={'rule_id': rule_id},
            original_exception=original_exception
        )


class DecisionLogError(IncrementalPrepError):
    """
    Writing the HITL audit trail failed.

    Critical: the decision is not considered recorded.
    """

    def __init__(self, message: str, path: Optional[str] = None,
                 original_exception: Optional[Exception] = None):
        super().__init__(
            message,
            severity=ErrorSeverity.CRITICAL,
            details={'path': path},
            original_exception=original_exception
        )
        self.path = path


class CheckpointError(IncrementalPrepError):
    """Workflow checkpoint could not be read or written."""

    def __init__(self, message: str, path: Optional[str] = None,
                 original_exception: Optional[Exception] = None):
        super().__init__(
            message,
            severity=ErrorSeverity.CRITICAL,
            details={'path': path},
            original_exception=original_exception
        )
        self.path = path


class DeliverableError(IncrementalPrepError):
    """A run deliverable (cleaned data, report or metadata) could not be written."""

    def __init__(self, message: str, path: Optional[str] = None,
                 original_exception: Optional[Exception] = None):
        super().__init__(
            message,
            severity=ErrorSeverity.CRITICAL,
            details={'path': path},
            original_exception=original_exception
        )
        self.path = path

"""
Unit tests for the exception hierarchy.

Covers severity classification, serialization and the precondition and
cancellation errors the pipeline relies on.
"""

import pytest

from incremental_prep.core.exceptions import (
    CheckpointError,
    ConfigError,
    ConfigValidationError,
    DecisionLogError,
    ErrorSeverity,
    HITLError,
    IncrementalPrepError,
    InvalidSampleRatioError,
    NullDatasetError,
    OperationCancelledError,
    PreconditionError,
    RuleApplicationError,
    RuleNotApprovedError,
    RuleNotSupportedError,
    RuleStateError,
    SamplingError,
)


@pytest.mark.unit
class TestErrorSeverity:
    """Test error severity enum."""

    def test_severity_values(self):
        assert ErrorSeverity.FATAL.value == "fatal"
        assert ErrorSeverity.CRITICAL.value == "critical"
        assert ErrorSeverity.RECOVERABLE.value == "recoverable"
        assert ErrorSeverity.WARNING.value == "warning"


@pytest.mark.unit
class TestIncrementalPrepError:
    """Test base exception class."""

    def test_basic_exception(self):
        exc = IncrementalPrepError("Test error")

        assert str(exc) == "Test error"
        assert exc.message == "Test error"
        assert exc.severity == ErrorSeverity.RECOVERABLE  # Default
        assert exc.details == {}
        assert exc.original_exception is None

    def test_to_dict(self):
        """Test serialization including the wrapped exception."""
        original = KeyError("age")
        exc = IncrementalPrepError(
            "Strategy failed",
            severity=ErrorSeverity.CRITICAL,
            details={'column': 'age'},
            original_exception=original
        )

        result = exc.to_dict()

        assert result == {
            'type': 'IncrementalPrepError',
            'message': 'Strategy failed',
            'severity': 'critical',
            'details': {'column': 'age'},
            'original_error': str(original),
        }

    def test_to_dict_without_original(self):
        assert IncrementalPrepError("x").to_dict()['original_error'] is None


# ============================================================================
# PRECONDITION ERRORS
# ============================================================================


@pytest.mark.unit
class TestPreconditionErrors:
    """Test input validation errors."""

    def test_precondition_is_fatal_value_error(self):
        exc = PreconditionError("bad", parameter="ratio", value=2)

        assert isinstance(exc, ValueError)
        assert isinstance(exc, IncrementalPrepError)
        assert exc.severity == ErrorSeverity.FATAL
        assert exc.details == {'parameter': 'ratio', 'value': 2}

    def test_null_dataset_message(self):
        exc = NullDatasetError(parameter="sample")

        assert exc.message == "Dataset 'sample' must not be None"
        assert exc.parameter == "sample"

    def test_invalid_sample_ratio(self):
        exc = InvalidSampleRatioError(1.5)

        assert exc.ratio == 1.5
        assert "1.5" in exc.message
        assert exc.details['parameter'] == "ratio"

    def test_caught_as_value_error(self):
        with pytest.raises(ValueError):
            raise InvalidSampleRatioError(0)


# ============================================================================
# PIPELINE ERRORS
# ============================================================================


@pytest.mark.unit
class TestPipelineErrors:
    """Test severities and details of the pipeline error types."""

    def test_config_errors_are_fatal(self):
        exc = ConfigValidationError(
            "stage ratio must be in (0, 1]",
            field="stage_ratios[2]",
            expected="0 < ratio <= 1",
            actual="1.5"
        )

        assert isinstance(exc, ConfigError)
        assert exc.severity == ErrorSeverity.FATAL
        assert exc.details == {
            'field': 'stage_ratios[2]',
            'expected': '0 < ratio <= 1',
            'actual': '1.5',
        }

    def test_sampling_and_audit_errors_are_critical(self):
        assert SamplingError("x", strategy="random").severity == ErrorSeverity.CRITICAL
        assert DecisionLogError("x", path="/tmp/a.json").severity == ErrorSeverity.CRITICAL
        assert CheckpointError("x").severity == ErrorSeverity.CRITICAL

    def test_decision_log_error_keeps_path(self):
        original = OSError("disk full")
        exc = DecisionLogError("write failed", path="/tmp/a.json", original_exception=original)

        assert exc.path == "/tmp/a.json"
        assert exc.original_exception is original

    def test_rule_errors(self):
        unsupported = RuleNotSupportedError("Unknown", rule_id="r1")
        not_approved = RuleNotApprovedError("r2")

        assert isinstance(unsupported, RuleApplicationError)
        assert unsupported.details == {'rule_id': 'r1', 'rule_type': 'Unknown'}
        assert not_approved.rule_id == "r2"
        assert "approval" in not_approved.message
        assert RuleStateError("twice").severity == ErrorSeverity.FATAL

    def test_hitl_error_is_recoverable(self):
        exc = HITLError("no answer", rule_id="r1")

        assert exc.severity == ErrorSeverity.RECOVERABLE
        assert exc.details == {'rule_id': 'r1'}


@pytest.mark.unit
class TestOperationCancelledError:
    """Cancellation stays outside the recoverable hierarchy."""

    def test_not_an_incremental_prep_error(self):
        exc = OperationCancelledError()

        assert not isinstance(exc, IncrementalPrepError)
        assert str(exc) == "Operation was cancelled"

    def test_not_caught_by_recoverable_handler(self):
        with pytest.raises(OperationCancelledError):
            try:
                raise OperationCancelledError()
            except IncrementalPrepError:
                pytest.fail("cancellation must not be handled as a pipeline error")

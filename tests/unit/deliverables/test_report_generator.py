"""
Unit tests for ReportGenerator.

The workflow state is built by hand so every figure in the markdown is known.
"""

from datetime import datetime, timedelta, timezone

import pytest

from incremental_prep.core.config import WorkflowConfig
from incremental_prep.core.exceptions import DeliverableError
from incremental_prep.deliverables.report_generator import ReportGenerator, format_duration
from incremental_prep.discovery.models import ConvergenceInfo, PatternType, PreprocessingRuleType
from incremental_prep.orchestrator import StageResult, WorkflowState


def _stage(number, ratio, sample_size, converged):
    return StageResult(
        stage_number=number,
        ratio=ratio,
        sample_size=sample_size,
        rule_count=2,
        hitl_rule_count=1,
        quality_score=0.95,
        convergence=ConvergenceInfo(
            has_converged=converged,
            change_rate=0.0 if converged else 1.0,
            threshold=0.02,
            new_rules=0 if converged else 2,
            modified_rules=0,
            removed_rules=0,
            stable_rules=2 if converged else 0,
            total_rules=2,
            previous_rules=2 if converged else 0,
        ),
        duration=3.0,
    )


@pytest.fixture
def finished_state(rule_factory):
    started = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)
    whitespace = rule_factory(
        rule_type=PreprocessingRuleType.WHITESPACE_NORMALIZATION,
        column="category",
        pattern_type=PatternType.WHITESPACE_ISSUE,
        requires_hitl=False,
        confidence=0.9,
        description="Whitespace issues in column 'category'",
    )
    whitespace.approve("Auto-approved (no human review required)")
    missing = rule_factory(column="amount", confidence=0.7, description="Missing values in column 'amount'")

    return WorkflowState(
        session_id="run-42",
        total_rows=1000,
        dataset_path="/data/customers.csv",
        stages=[_stage(1, 0.1, 100, False), _stage(2, 0.3, 300, True)],
        rules=[whitespace, missing],
        converged=True,
        started_at=started,
        completed_at=started + timedelta(seconds=65),
    )


# ============================================================================
# RENDERING
# ============================================================================


@pytest.mark.unit
class TestGenerateReport:
    """Test markdown content."""

    def test_summary_section(self, finished_state):
        report = ReportGenerator().generate_report(finished_state)

        assert report.startswith("# Incremental Preprocessing Report\n")
        assert "**Session ID**: `run-42`" in report
        assert "**Dataset**: `customers.csv`" in report
        assert "- **Total Records**: 1,000" in report
        assert "- **Processing Duration**: 00:01:05" in report
        assert "- **Stages Completed**: 2" in report
        assert "- **Converged**: Yes" in report
        assert "- **Average Rule Confidence**: 80.00%" in report
        assert "- **Rules Discovered**: 2" in report
        assert "- **Rules Approved**: 1" in report
        assert "- **Rules Pending Review**: 1" in report

    def test_approved_and_pending_rules(self, finished_state):
        report = ReportGenerator().generate_report(finished_state)

        assert "## Rules Applied (1 total)" in report
        assert "1. **WhitespaceNormalization**" in report
        assert "   - **Columns**: category" in report
        assert "   - **Confidence**: 90.00%" in report
        assert "   - **User Feedback**: Auto-approved (no human review required)" in report
        assert "## Pending Review (1 rules)" in report
        assert "- **MissingValueStrategy** on amount: Missing values in column 'amount' (priority 5)" in report

    def test_stage_details(self, finished_state):
        report = ReportGenerator().generate_report(finished_state)

        assert "### Stage 1" in report
        assert "### Stage 2" in report
        assert "- **Sample Ratio**: 30.00%" in report
        assert "- **Sample Size**: 300 records" in report
        assert "- **Quality Score**: 95.00%" in report
        assert "- **Rules Discovered**: 2 (1 need review)" in report
        assert "- **Convergence**: Not converged (no previous rules to compare)" in report
        assert report.index("### Stage 1") < report.index("### Stage 2")

    def test_no_approved_rules(self, finished_state):
        finished_state.rules = [r for r in finished_state.rules if not r.is_approved]

        report = ReportGenerator().generate_report(finished_state)

        assert "## Rules Applied (0 total)" in report
        assert "*No rules were approved for application.*" in report

    def test_optional_sections(self, finished_state):
        bare = ReportGenerator().generate_report(finished_state)
        full = ReportGenerator().generate_report(
            finished_state,
            WorkflowConfig(session_id="run-42"),
            {'Cleaned Data': "out/cleaned_data.csv"},
        )

        assert "## Configuration" not in bare
        assert "## Deliverables" not in bare
        assert "## Reviewer Decisions" not in bare
        assert "## Configuration" in full
        assert '"skip_hitl": false' in full
        assert "- **Cleaned Data**: `out/cleaned_data.csv`" in full

    def test_application_summary(self, finished_state):
        finished_state.application_summary = {'total_rules': 1, 'successful_rules': 1, 'total_rows_affected': 12}

        report = ReportGenerator().generate_report(finished_state)

        assert "- **Rules Applied Successfully**: 1/1" in report
        assert "- **Rows Affected**: 12" in report


@pytest.mark.unit
class TestFormatDuration:
    """Test hh:mm:ss formatting."""

    @pytest.mark.parametrize("seconds,expected", [
        (0, "00:00:00"),
        (59.6, "00:01:00"),
        (3725, "01:02:05"),
        (-4, "00:00:00"),
    ])
    def test_format(self, seconds, expected):
        assert format_duration(seconds) == expected


# ============================================================================
# SAVING
# ============================================================================


@pytest.mark.unit
class TestSaveReport:
    """Test writing the report to disk."""

    def test_creates_parent_directories(self, tmp_path):
        path = ReportGenerator().save_report("# Report\n", str(tmp_path / "nested" / "report.md"))

        assert path.read_text(encoding="utf-8") == "# Report\n"

    def test_write_failure(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory", encoding="utf-8")

        with pytest.raises(DeliverableError) as exc_info:
            ReportGenerator().save_report("# Report\n", str(blocker / "report.md"))

        assert exc_info.value.path == str(blocker / "report.md")
        assert isinstance(exc_info.value.original_exception, OSError)

"""
Tests for HITLDecisionLogger.

Decisions are written as JSON files under a temporary directory and read
back through the query methods.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import numpy as np
import pytest

from incremental_prep.core.exceptions import DecisionLogError
from incremental_prep.hitl.decision_logger import HITLDecisionLogger
from incremental_prep.hitl.models import HITLAnswer, HITLDecisionLog
from incremental_prep.hitl.question_generator import HITLQuestionGenerator


@pytest.fixture
def decision_logger(tmp_path):
    return HITLDecisionLogger(str(tmp_path))


@pytest.fixture
def make_decision(rule_factory, quality_dataset):
    def _make(selected="C", time_to_decide=2.0, column="amount"):
        rule = rule_factory(column=column)
        rule.affected_rows = 200
        question = HITLQuestionGenerator().generate(rule, quality_dataset)
        answer = HITLAnswer(question_id=question.id, selected_option=selected, time_to_decide=time_to_decide)
        return HITLDecisionLog(
            id=f"decision-{selected}",
            session_id="session-1",
            question=question,
            answer=answer,
            approved_rule=rule,
            user_id="analyst",
        )
    return _make


# ============================================================================
# WRITING
# ============================================================================


@pytest.mark.unit
class TestLogDecision:
    """Test decision file creation."""

    def test_creates_directory(self, tmp_path):
        HITLDecisionLogger(str(tmp_path / "run"))

        assert (tmp_path / "run" / "hitl-decisions").is_dir()

    def test_writes_file_named_after_question(self, decision_logger, make_decision, tmp_path):
        decision = make_decision()

        path = decision_logger.log_decision(decision)

        assert path.parent == tmp_path / "hitl-decisions"
        assert path.name.startswith(decision.question.id + "_")
        assert path.suffix == ".json"

    def test_same_second_gets_suffix(self, decision_logger, make_decision):
        decision = make_decision()

        first = decision_logger.log_decision(decision)
        second = decision_logger.log_decision(decision)

        assert first != second
        assert len(decision_logger.load_all()) == 2

    def test_numpy_parameters_serialised(self, decision_logger, make_decision):
        decision = make_decision()
        decision.approved_rule.parameters['fill_value'] = np.float64(41.5)

        decision_logger.log_decision(decision)

        assert decision_logger.load_all()[0].approved_rule.parameters['fill_value'] == 41.5

    def test_write_failure_raises(self, decision_logger, make_decision):
        with patch("incremental_prep.hitl.decision_logger.open", side_effect=OSError("disk full"), create=True):
            with pytest.raises(DecisionLogError) as exc_info:
                decision_logger.log_decision(make_decision())

        assert isinstance(exc_info.value.original_exception, OSError)


# ============================================================================
# READING
# ============================================================================


@pytest.mark.unit
class TestQueries:
    """Test loading and filtering decisions."""

    def test_round_trip(self, decision_logger, make_decision):
        decision = make_decision()
        decision_logger.log_decision(decision)

        loaded = decision_logger.load_all()

        assert len(loaded) == 1
        assert loaded[0].to_dict() == decision.to_dict()
        assert loaded[0].followed_recommendation

    def test_corrupt_file_skipped(self, decision_logger, make_decision):
        decision_logger.log_decision(make_decision())
        (decision_logger.log_directory / "broken.json").write_text("{not json", encoding="utf-8")

        assert len(decision_logger.load_all()) == 1

    def test_by_rule(self, decision_logger, make_decision):
        decision_logger.log_decision(make_decision(column="amount"))
        decision_logger.log_decision(make_decision(column="category"))

        found = decision_logger.get_decisions_by_rule("MissingValueStrategy_category_MissingValue")

        assert [d.approved_rule.primary_column for d in found] == ["category"]

    def test_by_time_range(self, decision_logger, make_decision):
        decision_logger.log_decision(make_decision())
        now = datetime.now(timezone.utc)

        assert len(decision_logger.get_decisions_by_time_range(now - timedelta(hours=1), now + timedelta(hours=1))) == 1
        assert decision_logger.get_decisions_by_time_range(now - timedelta(days=2), now - timedelta(days=1)) == []

    def test_naive_bounds_treated_as_utc(self, decision_logger, make_decision):
        decision_logger.log_decision(make_decision())
        now = datetime.now(timezone.utc).replace(tzinfo=None)

        assert len(decision_logger.get_decisions_by_time_range(now - timedelta(hours=1), now + timedelta(hours=1))) == 1


@pytest.mark.unit
class TestSummary:
    """Test aggregate decision statistics."""

    def test_empty(self, decision_logger):
        summary = decision_logger.get_summary()

        assert summary.total_decisions == 0
        assert summary.follow_rate == 0.0
        assert summary.earliest_decision is None

    def test_followed_and_overridden(self, decision_logger, make_decision):
        decision_logger.log_decision(make_decision(selected="C", time_to_decide=2.0))
        decision_logger.log_decision(make_decision(selected="A", time_to_decide=4.0))

        summary = decision_logger.get_summary()

        assert summary.total_decisions == 2
        assert summary.recommendations_followed == 1
        assert summary.recommendations_overridden == 1
        assert summary.follow_rate == pytest.approx(0.5)
        assert summary.average_decision_time_seconds == pytest.approx(3.0)
        assert summary.decision_type_distribution == {"MultipleChoice": 2}
        assert summary.action_distribution == {"ImputeMedian": 1, "Delete": 1}
        assert summary.earliest_decision <= summary.latest_decision
        assert summary.to_dict()['follow_rate'] == 0.5

"""
Unit tests for IncrementalWorkflowOrchestrator.

Covers data loading, the stage loop, rule approval routing, observer
notification and checkpoint persistence. Collaborators are mocked where the
test is about orchestration rather than discovery.
"""

from unittest.mock import Mock

import pandas as pd
import pytest

from incremental_prep.core.cancellation import CancellationToken
from incremental_prep.core.config import WorkflowConfig
from incremental_prep.core.exceptions import (
    CheckpointError,
    ConfigValidationError,
    DecisionLogError,
    NullDatasetError,
    OperationCancelledError,
    PreconditionError,
)
from incremental_prep.core.observers import WorkflowObserver
from incremental_prep.hitl.workflow import HITLWorkflowService
from incremental_prep.orchestrator import (
    AUTO_APPROVED_FEEDBACK,
    SKIP_HITL_FEEDBACK,
    IncrementalWorkflowOrchestrator,
    WorkflowState,
)


@pytest.fixture
def orchestrator():
    return IncrementalWorkflowOrchestrator()


def two_stage_config(**overrides):
    settings = {'stage_ratios': [0.1, 0.3], 'session_id': "session-1"}
    settings.update(overrides)
    return WorkflowConfig(**settings)


# ============================================================================
# DATA LOADING AND EXPORT
# ============================================================================


@pytest.mark.unit
class TestLoadData:
    """Test dataset resolution."""

    def test_dataframe_passes_through(self, quality_dataset):
        assert IncrementalWorkflowOrchestrator.load_data(quality_dataset) is quality_dataset

    def test_csv_path(self, tmp_path, quality_dataset):
        path = tmp_path / "data.csv"
        quality_dataset.to_csv(path, index=False)

        data = IncrementalWorkflowOrchestrator.load_data(str(path))

        assert data.shape == quality_dataset.shape

    def test_none(self):
        with pytest.raises(NullDatasetError):
            IncrementalWorkflowOrchestrator.load_data(None)

    def test_missing_file(self, tmp_path):
        with pytest.raises(PreconditionError) as exc_info:
            IncrementalWorkflowOrchestrator.load_data(tmp_path / "absent.csv")

        assert "Could not read dataset" in str(exc_info.value)

    def test_export_requires_processed_data(self, tmp_path):
        with pytest.raises(PreconditionError):
            IncrementalWorkflowOrchestrator.export_data(WorkflowState(session_id="s"), tmp_path / "out.csv")

    def test_export_writes_csv(self, tmp_path):
        state = WorkflowState(session_id="s", processed_data=pd.DataFrame({'a': [1, 2]}))

        path = IncrementalWorkflowOrchestrator.export_data(state, tmp_path / "nested" / "out.csv")

        assert pd.read_csv(path)['a'].tolist() == [1, 2]


# ============================================================================
# STAGE LOOP
# ============================================================================


@pytest.mark.unit
class TestRun:
    """Test the stage loop and approval routing."""

    def test_from_config_uses_sampling_settings(self, tmp_path):
        config_file = tmp_path / "workflow.yaml"
        config_file.write_text(
            "workflow:\n"
            "  sampling:\n"
            "    strategy: random\n"
            "    random_seed: 7\n",
            encoding="utf-8",
        )

        orchestrator = IncrementalWorkflowOrchestrator.from_config(str(config_file))

        assert orchestrator.sampling_engine.default_config.random_seed == 7
        assert orchestrator.default_config.sampling.random_seed == 7

    def test_default_config_used_when_none_given(self, quality_dataset):
        orchestrator = IncrementalWorkflowOrchestrator(
            default_config=two_stage_config(max_stages=1, skip_hitl=True, apply_rules=False)
        )

        state = orchestrator.run(quality_dataset)

        assert len(state.stages) == 1
        assert state.session_id == "session-1"

    def test_invalid_config_rejected(self, orchestrator, quality_dataset):
        with pytest.raises(ConfigValidationError):
            orchestrator.run(quality_dataset, WorkflowConfig(stage_ratios=[]))

    def test_stage_results_recorded(self, orchestrator, quality_dataset):
        state = orchestrator.run(quality_dataset, two_stage_config(skip_hitl=True, enable_early_stopping=False))

        assert [s.stage_number for s in state.stages] == [1, 2]
        assert [s.sample_size for s in state.stages] == [100, 300]
        assert state.stages[0].convergence.status == "Not converged (no previous rules to compare)"
        assert state.total_rows == 1000
        assert state.session_id == "session-1"
        assert state.completed_at is not None
        assert state.current_stage == 2

    def test_max_stages_limits_loop(self, orchestrator, quality_dataset):
        state = orchestrator.run(quality_dataset, two_stage_config(max_stages=1, skip_hitl=True))

        assert len(state.stages) == 1

    def test_early_stop_on_identical_samples(self, orchestrator, quality_dataset):
        config = two_stage_config(stage_ratios=[1.0, 1.0, 1.0], skip_hitl=True, apply_rules=False)

        state = orchestrator.run(quality_dataset, config)

        assert len(state.stages) == 2
        assert state.converged
        assert state.stages[-1].convergence.change_rate == 0.0

    def test_skip_hitl_approves_everything(self, orchestrator, quality_dataset):
        state = orchestrator.run(quality_dataset, two_stage_config(skip_hitl=True))

        assert state.rules
        assert all(r.is_approved for r in state.rules)
        for rule in state.rules:
            expected = SKIP_HITL_FEEDBACK if rule.requires_hitl else AUTO_APPROVED_FEEDBACK
            assert rule.user_feedback == expected
        assert state.pending_rules == []
        assert state.application_result.total_rules == len(state.rules)

    def test_without_hitl_service_review_rules_stay_pending(self, orchestrator, quality_dataset):
        state = orchestrator.run(quality_dataset, two_stage_config())

        assert state.pending_rules
        assert all(r.requires_hitl for r in state.pending_rules)
        assert state.application_result.total_rules == len(state.rules) - len(state.pending_rules)
        assert quality_dataset['amount'].isna().any()

    def test_hitl_service_receives_review_rules(self, quality_dataset):
        hitl_service = Mock(spec=HITLWorkflowService)
        hitl_service.execute.return_value = []
        orchestrator = IncrementalWorkflowOrchestrator(hitl_service=hitl_service)

        state = orchestrator.run(quality_dataset, two_stage_config(user_id="analyst", apply_rules=False))

        rules = hitl_service.execute.call_args.args[0]
        assert rules and all(r.requires_hitl for r in rules)
        assert hitl_service.execute.call_args.kwargs['session_id'] == "session-1"
        assert hitl_service.execute.call_args.kwargs['user_id'] == "analyst"
        assert state.application_result is None
        assert state.processed_data is None

    def test_decision_log_failure_aborts_run(self, quality_dataset):
        hitl_service = Mock(spec=HITLWorkflowService)
        hitl_service.execute.side_effect = DecisionLogError("disk full")
        observer = Mock(spec=WorkflowObserver)
        orchestrator = IncrementalWorkflowOrchestrator(hitl_service=hitl_service, observers=[observer])

        with pytest.raises(DecisionLogError):
            orchestrator.run(quality_dataset, two_stage_config())

        observer.on_error.assert_called_once()
        observer.on_workflow_complete.assert_not_called()

    def test_cancelled_run(self, orchestrator, quality_dataset):
        observer = Mock(spec=WorkflowObserver)
        orchestrator.observers.append(observer)

        with pytest.raises(OperationCancelledError):
            orchestrator.run(quality_dataset, two_stage_config(), cancellation=CancellationToken.cancelled())

        observer.on_error.assert_called_once()


@pytest.mark.unit
class TestObserverNotification:
    """Test event delivery to observers."""

    def test_events_in_order(self, quality_dataset):
        observer = Mock(spec=WorkflowObserver)
        orchestrator = IncrementalWorkflowOrchestrator(observers=[observer])

        state = orchestrator.run(quality_dataset, two_stage_config(skip_hitl=True, enable_early_stopping=False))

        observer.on_workflow_start.assert_called_once_with(1000, 2)
        assert [c.args[0] for c in observer.on_stage_start.call_args_list] == [1, 2]
        assert observer.on_stage_complete.call_count == 2
        assert observer.on_rule_approved.call_count == len(state.rules)
        observer.on_workflow_complete.assert_called_once_with(state)
        observer.on_error.assert_not_called()

    def test_failing_observer_does_not_stop_run(self, quality_dataset):
        observer = Mock(spec=WorkflowObserver)
        observer.on_stage_complete.side_effect = RuntimeError("display broke")
        orchestrator = IncrementalWorkflowOrchestrator(observers=[observer])

        state = orchestrator.run(quality_dataset, two_stage_config(skip_hitl=True))

        assert state.stages


# ============================================================================
# CHECKPOINTS
# ============================================================================


@pytest.mark.unit
class TestCheckpoints:
    """Test JSON checkpoint persistence."""

    def test_written_per_stage_and_final(self, orchestrator, quality_dataset, tmp_path):
        config = two_stage_config(
            skip_hitl=True,
            enable_early_stopping=False,
            enable_checkpoints=True,
            checkpoint_directory=str(tmp_path),
        )

        orchestrator.run(quality_dataset, config)

        assert sorted(p.name for p in tmp_path.glob("*.json")) == [
            "session-1_final.json",
            "session-1_stage1.json",
            "session-1_stage2.json",
        ]

    def test_round_trip(self, orchestrator, quality_dataset, tmp_path):
        state = orchestrator.run(quality_dataset, two_stage_config(skip_hitl=True))
        path = IncrementalWorkflowOrchestrator.save_checkpoint(state, tmp_path / "state.json")

        restored = IncrementalWorkflowOrchestrator.load_checkpoint(path)

        assert restored.session_id == state.session_id
        assert [r.signature for r in restored.rules] == [r.signature for r in state.rules]
        assert all(r.is_approved for r in restored.rules)
        assert [s.to_dict() for s in restored.stages] == [s.to_dict() for s in state.stages]
        assert restored.application_summary['total_rules'] == state.application_result.total_rules
        assert restored.processed_data is None

    def test_missing_checkpoint(self, tmp_path):
        with pytest.raises(CheckpointError):
            IncrementalWorkflowOrchestrator.load_checkpoint(tmp_path / "absent.json")

    def test_corrupt_checkpoint(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{\"session_id\": ", encoding="utf-8")

        with pytest.raises(CheckpointError):
            IncrementalWorkflowOrchestrator.load_checkpoint(path)

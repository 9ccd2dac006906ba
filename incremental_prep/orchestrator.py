"""
Incremental workflow orchestrator - drives discovery end to end.

The orchestrator:
1. Loads the dataset (DataFrame or CSV path)
2. Runs the stage loop: sample, analyze, discover, score, check convergence
3. Approves auto-applicable rules and routes the rest through HITL review
4. Applies the approved rules to a copy of the full dataset
5. Optionally checkpoints state to JSON after every stage
6. Optionally writes the run deliverables (cleaned data, report, metadata)
"""

import json
import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import pandas as pd

from incremental_prep.analysis.models import SampleAnalysis
from incremental_prep.analysis.sample_analyzer import SampleAnalyzer
from incremental_prep.application.results import BulkApplicationResult
from incremental_prep.application.rule_applier import RuleApplier
from incremental_prep.core.cancellation import CancellationToken, check_cancelled
from incremental_prep.core.config import WorkflowConfig
from incremental_prep.core.exceptions import CheckpointError, NullDatasetError, PreconditionError
from incremental_prep.core.json_utils import NumpyJSONEncoder
from incremental_prep.core.observers import WorkflowObserver
from incremental_prep.deliverables.deliverable_generator import DeliverableGenerator, DeliverableManifest
from incremental_prep.discovery.engine import RuleDiscoveryEngine
from incremental_prep.discovery.models import ConvergenceInfo, PreprocessingRule
from incremental_prep.hitl.models import HITLDecisionLog
from incremental_prep.hitl.workflow import HITLWorkflowService
from incremental_prep.sampling.engine import SamplingEngine

logger = logging.getLogger(__name__)

AUTO_APPROVED_FEEDBACK = "Auto-approved (no human review required)"
SKIP_HITL_FEEDBACK = "Auto-approved (skip_hitl=True)"
CHECKPOINT_VERSION = 1


@dataclass
class StageResult:
    """Outcome of one discovery stage."""
    stage_number: int
    ratio: float
    sample_size: int
    rule_count: int
    hitl_rule_count: int
    quality_score: float
    convergence: ConvergenceInfo
    statistics_converged: bool = False
    duration: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'stage_number': self.stage_number,
            'ratio': self.ratio,
            'sample_size': self.sample_size,
            'rule_count': self.rule_count,
            'hitl_rule_count': self.hitl_rule_count,
            'quality_score': round(self.quality_score, 4),
            'convergence': self.convergence.to_dict(),
            'statistics_converged': self.statistics_converged,
            'duration': round(self.duration, 3),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StageResult":
        return cls(
            stage_number=int(data['stage_number']),
            ratio=float(data['ratio']),
            sample_size=int(data['sample_size']),
            rule_count=int(data['rule_count']),
            hitl_rule_count=int(data['hitl_rule_count']),
            quality_score=float(data['quality_score']),
            convergence=ConvergenceInfo(**{
                k: v for k, v in data['convergence'].items() if k in ConvergenceInfo.__dataclass_fields__
            }),
            statistics_converged=bool(data.get('statistics_converged', False)),
            duration=float(data.get('duration', 0.0)),
        )


@dataclass
class WorkflowState:
    """
    Everything a workflow run produced.

    ``processed_data`` and ``application_result`` are not checkpointed; a
    loaded checkpoint carries the application summary dict instead.
    """
    session_id: str
    total_rows: int = 0
    dataset_path: Optional[str] = None
    stages: List[StageResult] = field(default_factory=list)
    rules: List[PreprocessingRule] = field(default_factory=list)
    converged: bool = False
    decisions: List[HITLDecisionLog] = field(default_factory=list)
    application_result: Optional[BulkApplicationResult] = None
    application_summary: Optional[Dict[str, Any]] = None
    processed_data: Optional[pd.DataFrame] = None
    deliverables: Optional[DeliverableManifest] = None
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None

    @property
    def current_stage(self) -> int:
        return self.stages[-1].stage_number if self.stages else 0

    @property
    def pending_rules(self) -> List[PreprocessingRule]:
        """Rules still waiting for a human decision."""
        return [r for r in self.rules if not r.can_apply]

    def to_dict(self) -> Dict[str, Any]:
        summary = self.application_result.to_dict() if self.application_result else self.application_summary
        return {
            'version': CHECKPOINT_VERSION,
            'session_id': self.session_id,
            'total_rows': self.total_rows,
            'dataset_path': self.dataset_path,
            'converged': self.converged,
            'started_at': self.started_at.isoformat(),
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
            'stages': [s.to_dict() for s in self.stages],
            'rules': [r.to_dict() for r in self.rules],
            'decisions': [d.to_dict() for d in self.decisions],
            'application': summary,
            'deliverables': self.deliverables.to_dict() if self.deliverables else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WorkflowState":
        completed_at = data.get('completed_at')
        return cls(
            session_id=data['session_id'],
            total_rows=int(data.get('total_rows', 0)),
            dataset_path=data.get('dataset_path'),
            stages=[StageResult.from_dict(s) for s in data.get('stages', [])],
            rules=[PreprocessingRule.from_dict(r) for r in data.get('rules', [])],
            converged=bool(data.get('converged', False)),
            decisions=[HITLDecisionLog.from_dict(d) for d in data.get('decisions', [])],
            application_summary=data.get('application'),
            deliverables=DeliverableManifest.from_dict(data['deliverables']) if data.get('deliverables') else None,
            started_at=datetime.fromisoformat(data['started_at']),
            completed_at=datetime.fromisoformat(completed_at) if completed_at else None,
        )


class IncrementalWorkflowOrchestrator:
    """
    Runs the staged discovery workflow.

    Example usage:
        orchestrator = IncrementalWorkflowOrchestrator(
            SamplingEngine(), SampleAnalyzer(), RuleDiscoveryEngine(),
            observers=[CLIProgressObserver()],
        )
        state = orchestrator.run("customers.csv", WorkflowConfig(skip_hitl=True))
        orchestrator.export_data(state, "customers_clean.csv")
    """

    def __init__(
        self,
        sampling_engine: Optional[SamplingEngine] = None,
        analyzer: Optional[SampleAnalyzer] = None,
        discovery_engine: Optional[RuleDiscoveryEngine] = None,
        hitl_service: Optional[HITLWorkflowService] = None,
        applier: Optional[RuleApplier] = None,
        observers: Optional[List[WorkflowObserver]] = None,
        default_config: Optional[WorkflowConfig] = None,
        deliverable_generator: Optional[DeliverableGenerator] = None
    ):
        self.sampling_engine = sampling_engine or SamplingEngine()
        self.analyzer = analyzer or SampleAnalyzer()
        self.discovery_engine = discovery_engine or RuleDiscoveryEngine()
        self.hitl_service = hitl_service
        self.applier = applier
        self.observers: List[WorkflowObserver] = observers if observers is not None else []
        self.default_config = default_config
        self.deliverable_generator = deliverable_generator or DeliverableGenerator()

    @classmethod
    def from_config(cls, config_path: str, **kwargs) -> "IncrementalWorkflowOrchestrator":
        """
        Create an orchestrator whose default workflow settings, sampling
        included, come from a YAML file.

        Raises:
            ConfigError: If configuration is invalid
        """
        config = WorkflowConfig.from_yaml(config_path)
        return cls(sampling_engine=SamplingEngine(config.sampling), default_config=config, **kwargs)

    # Observer notification methods
    def _notify(self, event: str, *args) -> None:
        for observer in self.observers:
            try:
                getattr(observer, event)(*args)
            except Exception as e:
                logger.warning(f"Observer {observer.__class__.__name__} failed {event}: {e}")

    def run(
        self,
        data_or_path: Union[pd.DataFrame, str, Path],
        config: Optional[WorkflowConfig] = None,
        cancellation: Optional[CancellationToken] = None
    ) -> WorkflowState:
        """
        Execute the full workflow.

        Args:
            data_or_path: Dataset, or path to a CSV file
            config: Workflow settings (the orchestrator default, then built-in defaults, when None)
            cancellation: Optional cancellation token

        Returns:
            WorkflowState with stage results, final rules, decisions and the
            processed copy of the dataset

        Raises:
            NullDatasetError: If no dataset was given
            PreconditionError: If the CSV cannot be read
            OperationCancelledError: If cancellation was requested
            DecisionLogError: If a reviewer decision could not be recorded
            DeliverableError: If a deliverable could not be written
        """
        config = config or self.default_config or WorkflowConfig()
        config.validate()
        data = self.load_data(data_or_path)

        state = WorkflowState(
            session_id=config.session_id or str(uuid.uuid4()),
            total_rows=len(data),
            dataset_path=None if isinstance(data_or_path, pd.DataFrame) else str(data_or_path),
        )
        ratios = list(config.stage_ratios)[:config.max_stages]

        logger.info(f"Starting incremental discovery on {len(data):,} rows with {len(ratios)} stages")
        self._notify('on_workflow_start', len(data), len(ratios))

        try:
            sample, analysis = self._run_stages(data, ratios, config, state, cancellation)

            check_cancelled(cancellation)
            self._approve_rules(state, sample, analysis, config, cancellation)

            if config.apply_rules:
                self._apply_rules(data, state, config, cancellation)

            state.completed_at = datetime.now(timezone.utc)
            if config.output_directory:
                state.deliverables = self.generate_deliverables(state, config.output_directory, config)
        except Exception as e:
            self._notify('on_error', e, {'stage_number': state.current_stage, 'session_id': state.session_id})
            raise

        if config.enable_checkpoints and config.checkpoint_directory:
            self.save_checkpoint(state, Path(config.checkpoint_directory) / f"{state.session_id}_final.json")

        logger.info(
            f"Discovery finished after {len(state.stages)} stages: {len(state.rules)} rules, "
            f"converged={state.converged}"
        )
        self._notify('on_workflow_complete', state)
        return state

    def _run_stages(
        self,
        data: pd.DataFrame,
        ratios: List[float],
        config: WorkflowConfig,
        state: WorkflowState,
        cancellation: Optional[CancellationToken]
    ):
        previous_sample: Optional[pd.DataFrame] = None
        previous_analysis: Optional[SampleAnalysis] = None
        sample, analysis = data, None

        for stage_number, ratio in enumerate(ratios, 1):
            check_cancelled(cancellation)
            start_time = time.time()
            self._notify('on_stage_start', stage_number, ratio)

            sample = self.sampling_engine.sample(data, ratio, config.sampling, cancellation=cancellation)
            analysis = self.analyzer.analyze(sample, stage_number, sample_ratio=ratio, cancellation=cancellation)
            rules = self.discovery_engine.discover_rules(sample, analysis, cancellation=cancellation)

            reference = previous_sample if previous_sample is not None else sample
            for rule in rules:
                rule.confidence = self.discovery_engine.calculate_confidence(rule, sample, reference).overall

            convergence = self.discovery_engine.convergence_detector.get_convergence_info(
                state.rules, rules, config.convergence_threshold
            )
            statistics_converged = (
                previous_analysis is not None
                and self.analyzer.has_converged(previous_analysis, analysis)
            )

            state.rules = rules
            state.converged = convergence.has_converged
            state.stages.append(StageResult(
                stage_number=stage_number,
                ratio=ratio,
                sample_size=len(sample),
                rule_count=len(rules),
                hitl_rule_count=sum(1 for r in rules if r.requires_hitl),
                quality_score=analysis.quality_score,
                convergence=convergence,
                statistics_converged=statistics_converged,
                duration=time.time() - start_time,
            ))

            logger.info(f"Stage {stage_number} ({ratio:.1%}): {len(rules)} rules. {convergence.status}")
            self._notify('on_stage_complete', stage_number, len(sample), rules, convergence)

            if config.enable_checkpoints and config.checkpoint_directory:
                self.save_checkpoint(
                    state, Path(config.checkpoint_directory) / f"{state.session_id}_stage{stage_number}.json"
                )

            if convergence.has_converged and config.enable_early_stopping:
                logger.info(f"Rules converged at stage {stage_number}; stopping early")
                break

            previous_sample, previous_analysis = sample, analysis

        return sample, analysis

    def _approve_rules(
        self,
        state: WorkflowState,
        sample: pd.DataFrame,
        analysis: Optional[SampleAnalysis],
        config: WorkflowConfig,
        cancellation: Optional[CancellationToken]
    ) -> None:
        auto_rules = [r for r in state.rules if not r.requires_hitl]
        hitl_rules = [r for r in state.rules if r.requires_hitl]

        for rule in auto_rules:
            if not rule.is_approved:
                rule.approve(AUTO_APPROVED_FEEDBACK)
                self._notify('on_rule_approved', rule, True)

        if not hitl_rules:
            return

        if config.skip_hitl:
            for rule in hitl_rules:
                if not rule.is_approved:
                    rule.approve(SKIP_HITL_FEEDBACK)
                    self._notify('on_rule_approved', rule, True)
            return

        if self.hitl_service is None:
            logger.warning(f"{len(hitl_rules)} rules need human review but no HITL service is configured")
            return

        state.decisions = self.hitl_service.execute(
            hitl_rules, sample, analysis,
            session_id=state.session_id,
            user_id=config.user_id,
            cancellation=cancellation,
        )
        for decision in state.decisions:
            self._notify('on_rule_approved', decision.approved_rule, False)

        if state.pending_rules:
            logger.warning(f"{len(state.pending_rules)} HITL rules left unapproved and will not be applied")

    def _apply_rules(
        self,
        data: pd.DataFrame,
        state: WorkflowState,
        config: WorkflowConfig,
        cancellation: Optional[CancellationToken]
    ) -> None:
        applier = self.applier or RuleApplier(continue_on_failure=config.continue_on_failure)
        approved = [r for r in state.rules if r.can_apply]

        processed = data.copy()
        state.application_result = applier.apply_rules(processed, approved, cancellation=cancellation)
        state.processed_data = processed

    @staticmethod
    def load_data(data_or_path: Union[pd.DataFrame, str, Path, None]) -> pd.DataFrame:
        if data_or_path is None:
            raise NullDatasetError(parameter="data_or_path")
        if isinstance(data_or_path, pd.DataFrame):
            return data_or_path

        path = Path(data_or_path)
        try:
            data = pd.read_csv(path)
        except (OSError, pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
            raise PreconditionError(f"Could not read dataset from {path}: {str(e)}", parameter="data_or_path",
                                    value=str(path))
        logger.info(f"Loaded {len(data):,} rows x {len(data.columns)} columns from {path}")
        return data

    @staticmethod
    def export_data(state: WorkflowState, path: Union[str, Path]) -> Path:
        """Write the processed dataset to CSV."""
        if state.processed_data is None:
            raise PreconditionError("Workflow state has no processed data to export", parameter="state")
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        state.processed_data.to_csv(path, index=False)
        logger.info(f"Wrote {len(state.processed_data):,} processed rows to {path}")
        return path

    def generate_deliverables(
        self,
        state: WorkflowState,
        output_directory: Union[str, Path],
        config: Optional[WorkflowConfig] = None
    ) -> DeliverableManifest:
        """
        Write cleaned data, the markdown report and metadata for a run.

        Raises:
            DeliverableError: If a file cannot be written
        """
        return self.deliverable_generator.generate_all(state, str(output_directory), config)

    @staticmethod
    def save_checkpoint(state: WorkflowState, path: Union[str, Path]) -> Path:
        """
        Persist ``state`` as indented JSON.

        Raises:
            CheckpointError: If the file cannot be written
        """
        path = Path(path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                json.dump(state.to_dict(), f, indent=2, ensure_ascii=False, cls=NumpyJSONEncoder)
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to write checkpoint {path}: {str(e)}")
            raise CheckpointError(f"Failed to write checkpoint: {path}", path=str(path), original_exception=e)

        logger.debug(f"Checkpoint written to {path}")
        return path

    @staticmethod
    def load_checkpoint(path: Union[str, Path]) -> WorkflowState:
        """
        Restore a state written by ``save_checkpoint``.

        Raises:
            CheckpointError: If the file is missing, unreadable or malformed
        """
        path = Path(path)
        if not path.exists():
            raise CheckpointError(f"Checkpoint not found: {path}", path=str(path))

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            state = WorkflowState.from_dict(data)
        except (OSError, ValueError, KeyError, TypeError) as e:
            raise CheckpointError(f"Invalid checkpoint file: {path}", path=str(path), original_exception=e)

        logger.info(f"Loaded checkpoint {path}: {len(state.stages)} stages, {len(state.rules)} rules")
        return state

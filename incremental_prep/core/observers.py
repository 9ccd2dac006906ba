"""
Observer Pattern for Workflow Event Notifications.

The orchestrator reports stage and rule lifecycle events to observers, so the
stage loop carries no presentation or logging code of its own.

Design Pattern: Observer (Behavioral)
Purpose: Decouple the workflow from terminal output and logging
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List

from incremental_prep.application.results import BulkApplicationResult
from incremental_prep.discovery.models import ConvergenceInfo, PreprocessingRule


class WorkflowObserver(ABC):
    """
    Abstract base class for workflow observers.

    All methods are called synchronously by the orchestrator, so observers
    should avoid blocking operations.

    Example:
        >>> class StageCounter(WorkflowObserver):
        ...     ...
        >>> orchestrator = IncrementalWorkflowOrchestrator(..., observers=[StageCounter()])
    """

    @abstractmethod
    def on_workflow_start(self, total_rows: int, stage_count: int) -> None:
        """
        Called once before the first stage.

        Args:
            total_rows: Rows in the full dataset
            stage_count: Planned number of stages
        """
        pass

    @abstractmethod
    def on_stage_start(self, stage_number: int, ratio: float) -> None:
        pass

    @abstractmethod
    def on_stage_complete(
        self,
        stage_number: int,
        sample_size: int,
        rules: List[PreprocessingRule],
        convergence: ConvergenceInfo
    ) -> None:
        """
        Called after rules for a stage are discovered and scored.

        Args:
            stage_number: 1-based stage number
            sample_size: Rows in this stage's sample
            rules: Rules discovered in this stage
            convergence: Convergence against the previous stage
        """
        pass

    @abstractmethod
    def on_rule_approved(self, rule: PreprocessingRule, automatic: bool) -> None:
        pass

    @abstractmethod
    def on_workflow_complete(self, state: Any) -> None:
        """
        Called when the workflow finishes.

        Args:
            state: Final WorkflowState
        """
        pass

    @abstractmethod
    def on_error(self, error: Exception, context: Dict[str, Any]) -> None:
        pass


class CLIProgressObserver(WorkflowObserver):
    """
    Observer for terminal progress output.

    Attributes:
        verbose (bool): Whether to list every rule per stage
        po (PrettyOutput): Pretty output utility class
    """

    def __init__(self, verbose: bool = True):
        self.verbose = verbose

        # Import here to keep colorama out of headless imports
        from incremental_prep.core.pretty_output import PrettyOutput
        self.po = PrettyOutput

    def on_workflow_start(self, total_rows: int, stage_count: int) -> None:
        self.po.header("INCREMENTAL RULE DISCOVERY")
        self.po.key_value("Rows", f"{total_rows:,}", indent=2)
        self.po.key_value("Stages", stage_count, indent=2)

    def on_stage_start(self, stage_number: int, ratio: float) -> None:
        self.po.section(f"Stage {stage_number}: sampling {ratio:.1%}")

    def on_stage_complete(
        self,
        stage_number: int,
        sample_size: int,
        rules: List[PreprocessingRule],
        convergence: ConvergenceInfo
    ) -> None:
        self.po.key_value("Sample size", f"{sample_size:,}", indent=2)
        self.po.key_value("Rules", len(rules), indent=2)
        if self.verbose:
            for rule in rules:
                self.po.rule_line(rule, indent=4)
        color = self.po.SUCCESS if convergence.has_converged else self.po.WARNING
        self.po.key_value("Convergence", convergence.summary, indent=2, value_color=color)

    def on_rule_approved(self, rule: PreprocessingRule, automatic: bool) -> None:
        if self.verbose:
            how = "auto" if automatic else "reviewed"
            self.po.success(f"{rule.id} approved ({how})", indent=2)

    def on_workflow_complete(self, state: Any) -> None:
        self.po.header("DISCOVERY SUMMARY")

        items = [
            ("Stages run", len(state.stages), self.po.INFO),
            ("Rules", len(state.rules), self.po.INFO),
            ("Approved", sum(1 for r in state.rules if r.is_approved), self.po.SUCCESS),
            ("Converged", state.converged, self.po.SUCCESS if state.converged else self.po.WARNING),
        ]
        application: BulkApplicationResult = state.application_result
        if application is not None:
            items.extend([
                ("Rules applied", application.successful_rules, self.po.SUCCESS),
                ("Rules failed", application.failed_rules, self.po.ERROR if application.failed_rules else self.po.DIM),
                ("Rows affected", f"{application.total_rows_affected:,}", self.po.INFO),
            ])
        self.po.summary_box("Results", items)

    def on_error(self, error: Exception, context: Dict[str, Any]) -> None:
        stage = context.get('stage_number', 'unknown')
        self.po.error(f"Error in stage {stage}: {str(error)}")


class LoggingObserver(WorkflowObserver):
    """
    Observer for structured logging of workflow events.

    Example:
        >>> logging.basicConfig(level=logging.INFO)
        >>> orchestrator = IncrementalWorkflowOrchestrator(..., observers=[LoggingObserver()])
    """

    def __init__(self):
        self.logger = logging.getLogger('incremental_prep.workflow')

    def on_workflow_start(self, total_rows: int, stage_count: int) -> None:
        self.logger.info(
            "Discovery workflow started",
            extra={'total_rows': total_rows, 'stage_count': stage_count}
        )

    def on_stage_start(self, stage_number: int, ratio: float) -> None:
        self.logger.info(
            f"Stage {stage_number} started",
            extra={'stage_number': stage_number, 'ratio': ratio}
        )

    def on_stage_complete(
        self,
        stage_number: int,
        sample_size: int,
        rules: List[PreprocessingRule],
        convergence: ConvergenceInfo
    ) -> None:
        self.logger.info(
            f"Stage {stage_number} completed - {len(rules)} rules, {convergence.status}",
            extra={
                'stage_number': stage_number,
                'sample_size': sample_size,
                'rule_count': len(rules),
                'change_rate': convergence.change_rate,
                'converged': convergence.has_converged
            }
        )

    def on_rule_approved(self, rule: PreprocessingRule, automatic: bool) -> None:
        self.logger.debug(
            f"Rule approved: {rule.id}",
            extra={'rule_id': rule.id, 'automatic': automatic, 'feedback': rule.user_feedback}
        )

    def on_workflow_complete(self, state: Any) -> None:
        self.logger.info(
            f"Discovery workflow completed - {len(state.rules)} rules",
            extra={
                'stage_count': len(state.stages),
                'rule_count': len(state.rules),
                'converged': state.converged
            }
        )

    def on_error(self, error: Exception, context: Dict[str, Any]) -> None:
        self.logger.error(
            f"Workflow error: {str(error)}",
            extra=context,
            exc_info=True
        )

"""
HITL Workflow Service - question, answer, approve, log for every rule that
needs a human decision.
"""

import getpass
import logging
import uuid
from typing import List, Optional, Sequence

import pandas as pd

from incremental_prep.analysis.models import SampleAnalysis
from incremental_prep.core.cancellation import CancellationToken, check_cancelled
from incremental_prep.core.exceptions import DecisionLogError, HITLError, OperationCancelledError
from incremental_prep.discovery.models import PreprocessingRule, RuleState
from incremental_prep.hitl.decision_logger import HITLDecisionLogger
from incremental_prep.hitl.models import ActionType, HITLAnswer, HITLDecisionLog, HITLDecisionSummary, HITLQuestion
from incremental_prep.hitl.prompt import PromptBuilder
from incremental_prep.hitl.question_generator import HITLQuestionGenerator

logger = logging.getLogger(__name__)

FOLLOWED_NOTE = "Followed AI recommendation"
OVERRODE_NOTE = "Overrode AI recommendation"


def _current_user() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "unknown"


class HITLWorkflowService:
    """
    Drives reviewer decisions for HITL rules.

    For each rule that requires review: generate the question, prompt, collect
    the answer, confirm, merge the chosen option's parameters into the rule,
    approve it and write the audit record.

    Example:
        >>> service = HITLWorkflowService(HITLQuestionGenerator(), ConsolePromptBuilder(),
        ...                               HITLDecisionLogger("./run"))
        >>> decisions = service.execute(rules, sample, analysis)
        >>> all(d.approved_rule.is_approved for d in decisions)
        True
    """

    def __init__(
        self,
        question_generator: HITLQuestionGenerator,
        prompt_builder: PromptBuilder,
        decision_logger: HITLDecisionLogger,
        max_confirmation_rounds: int = 3
    ):
        self.question_generator = question_generator
        self.prompt_builder = prompt_builder
        self.decision_logger = decision_logger
        self.max_confirmation_rounds = max_confirmation_rounds

    def execute(
        self,
        rules: Sequence[PreprocessingRule],
        sample: pd.DataFrame,
        analysis: Optional[SampleAnalysis] = None,
        session_id: Optional[str] = None,
        user_id: Optional[str] = None,
        cancellation: Optional[CancellationToken] = None
    ) -> List[HITLDecisionLog]:
        """
        Resolve every HITL rule in ``rules``.

        Rules whose question cannot be processed are logged and left
        unapproved. Cancellation and decision-log failures propagate.

        Returns:
            Decisions that were approved and logged
        """
        pending = [r for r in rules if r.requires_hitl and not r.is_approved]
        logger.info(f"Starting HITL workflow for {len(pending)} of {len(rules)} rules")

        if not pending:
            logger.info("No HITL questions needed. All rules can be auto-applied.")
            return []

        session_id = session_id or str(uuid.uuid4())
        user_id = user_id or _current_user()
        decisions = []

        for rule in pending:
            check_cancelled(cancellation)
            try:
                decisions.append(self.execute_single(rule, sample, analysis, session_id, user_id))
            except (OperationCancelledError, DecisionLogError):
                raise
            except Exception as e:
                logger.error(f"Failed to process HITL question for rule {rule.id}. Skipping: {str(e)}")

        logger.info(f"HITL workflow completed. Collected {len(decisions)} decisions.")
        return decisions

    def execute_single(
        self,
        rule: PreprocessingRule,
        sample: pd.DataFrame,
        analysis: Optional[SampleAnalysis] = None,
        session_id: Optional[str] = None,
        user_id: Optional[str] = None
    ) -> HITLDecisionLog:
        """
        Resolve one rule.

        Raises:
            HITLError: If the rule needs no review or the reviewer never confirms
            DecisionLogError: If the decision could not be persisted; the rule
                is left unapproved with its parameters restored
        """
        question = self.question_generator.generate(rule, sample, analysis)
        answer = self._ask(question)

        option = question.get_option(answer.selected_option)
        action = option.action if option else ActionType.KEEP_AS_IS
        label = option.label if option else "Unknown"

        previous_parameters = dict(rule.parameters)
        if option is not None:
            rule.parameters.update(option.parameters)
        if answer.custom_value is not None:
            rule.parameters['custom_value'] = answer.custom_value
        rule.parameters['hitl_action'] = action.value
        rule.approve(f"{action.value}: {label}")

        decision = HITLDecisionLog(
            id=str(uuid.uuid4()),
            session_id=session_id or str(uuid.uuid4()),
            question=question,
            answer=answer,
            approved_rule=rule,
            user_id=user_id or _current_user(),
            notes=FOLLOWED_NOTE if self._followed(question, answer) else OVERRODE_NOTE,
        )

        try:
            self.decision_logger.log_decision(decision)
        except DecisionLogError:
            logger.error(f"Decision for rule {rule.id} could not be recorded. Approval withdrawn.")
            rule.state = RuleState.PROPOSED
            rule.user_feedback = None
            rule.parameters = previous_parameters
            raise

        logger.info(f"Processed HITL decision for rule {rule.id}: {action.value}")
        return decision

    def get_summary(self) -> HITLDecisionSummary:
        return self.decision_logger.get_summary()

    def _ask(self, question: HITLQuestion) -> HITLAnswer:
        self.prompt_builder.build_prompt(question)
        for _ in range(self.max_confirmation_rounds):
            answer = self.prompt_builder.collect_answer(question)
            if self.prompt_builder.confirm_decision(question, answer):
                return answer
        raise HITLError(
            f"Decision for question {question.id} was not confirmed",
            rule_id=question.related_rule.id
        )

    @staticmethod
    def _followed(question: HITLQuestion, answer: HITLAnswer) -> bool:
        recommended = question.recommended_option
        return recommended is not None and recommended.upper() == answer.selected_option.upper()

"""
HITL Decision Logger - append-only JSON audit trail of human decisions.

Layout:
    {base_directory}/hitl-decisions/{question_id}_{UTC yyyyMMddHHmmss}.json

One indented JSON document per decision, enums written as their string
values. Reads tolerate corrupt files (logged and skipped); writes do not.
"""

import json
import logging
from collections import Counter
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from incremental_prep.core.constants import HITL_DECISIONS_DIRECTORY, HITL_TIMESTAMP_FORMAT
from incremental_prep.core.exceptions import DecisionLogError
from incremental_prep.core.json_utils import NumpyJSONEncoder
from incremental_prep.hitl.models import ActionType, HITLDecisionLog, HITLDecisionSummary

logger = logging.getLogger(__name__)


def _as_utc(moment: datetime) -> datetime:
    return moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)


class HITLDecisionLogger:
    """
    Persists and queries HITL decisions.

    Example:
        >>> decision_logger = HITLDecisionLogger("./run-42")
        >>> path = decision_logger.log_decision(decision)
        >>> decision_logger.get_decisions_by_rule(decision.question.related_rule.id)
        [HITLDecisionLog(...)]
    """

    def __init__(self, base_directory: str = "."):
        self.log_directory = Path(base_directory) / HITL_DECISIONS_DIRECTORY
        if not self.log_directory.exists():
            self.log_directory.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created HITL decision log directory: {self.log_directory}")

    def log_decision(self, decision: HITLDecisionLog) -> Path:
        """
        Write one decision file.

        Returns:
            Path of the written file

        Raises:
            DecisionLogError: If the file could not be written
        """
        timestamp = datetime.now(timezone.utc).strftime(HITL_TIMESTAMP_FORMAT)
        file_path = self.log_directory / f"{decision.question.id}_{timestamp}.json"
        suffix = 1
        while file_path.exists():
            file_path = self.log_directory / f"{decision.question.id}_{timestamp}_{suffix}.json"
            suffix += 1

        try:
            self.log_directory.mkdir(parents=True, exist_ok=True)
            with open(file_path, "w", encoding="utf-8") as f:
                json.dump(decision.to_dict(), f, indent=2, ensure_ascii=False, cls=NumpyJSONEncoder)
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to log HITL decision {decision.question.id}: {str(e)}")
            raise DecisionLogError(
                f"Failed to log HITL decision {decision.question.id}",
                path=str(file_path),
                original_exception=e
            )

        logger.info(f"Logged HITL decision {decision.question.id} to {file_path}")
        return file_path

    def get_decisions_by_rule(self, rule_id: str) -> List[HITLDecisionLog]:
        decisions = [d for d in self.load_all() if d.question.related_rule.id == rule_id]
        return sorted(decisions, key=lambda d: d.logged_at)

    def get_decisions_by_time_range(self, start_time: datetime, end_time: datetime) -> List[HITLDecisionLog]:
        """Decisions logged within [start_time, end_time]; naive bounds are treated as UTC."""
        start, end = _as_utc(start_time), _as_utc(end_time)
        decisions = [d for d in self.load_all() if start <= d.logged_at <= end]
        return sorted(decisions, key=lambda d: d.logged_at)

    def get_summary(self) -> HITLDecisionSummary:
        decisions = self.load_all()
        if not decisions:
            return HITLDecisionSummary()

        followed = sum(1 for d in decisions if d.followed_recommendation)
        overridden = sum(
            1 for d in decisions
            if d.question.recommended_option and not d.followed_recommendation
        )
        actions = Counter(
            (d.selected_action or ActionType.KEEP_AS_IS).value for d in decisions
        )

        return HITLDecisionSummary(
            total_decisions=len(decisions),
            recommendations_followed=followed,
            recommendations_overridden=overridden,
            average_decision_time_seconds=sum(d.answer.time_to_decide for d in decisions) / len(decisions),
            decision_type_distribution=dict(Counter(d.question.type.value for d in decisions)),
            action_distribution=dict(actions),
            earliest_decision=min(d.logged_at for d in decisions),
            latest_decision=max(d.logged_at for d in decisions),
        )

    def load_all(self) -> List[HITLDecisionLog]:
        """Every readable decision in the directory; unreadable files are skipped."""
        if not self.log_directory.exists():
            return []

        decisions = []
        for file_path in sorted(self.log_directory.glob("*.json")):
            decision = self._load(file_path)
            if decision is not None:
                decisions.append(decision)
        return decisions

    def _load(self, file_path: Path) -> Optional[HITLDecisionLog]:
        try:
            with open(file_path, "r", encoding="utf-8") as f:
                return HITLDecisionLog.from_dict(json.load(f))
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"Failed to load decision log from {file_path}. Skipping: {str(e)}")
            return None

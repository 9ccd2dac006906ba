"""
Human-in-the-loop Result Classes.

This module defines the records exchanged with the human reviewer:
- HITLOption / HITLQuestion: A decision put to the reviewer
- HITLAnswer: The reviewer's choice
- HITLDecisionLog: One persisted, auditable decision
- HITLDecisionSummary: Aggregate view over logged decisions

All records serialise to JSON-ready dicts with enums written as their
string values.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from incremental_prep.discovery.models import PreprocessingRule


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


class QuestionType(Enum):
    MULTIPLE_CHOICE = "MultipleChoice"
    YES_NO = "YesNo"
    NUMERIC_INPUT = "NumericInput"
    TEXT_INPUT = "TextInput"
    CONFIRMATION = "Confirmation"


class ActionType(Enum):
    """Data operation a reviewer can choose."""
    DELETE = "Delete"
    KEEP_AS_IS = "KeepAsIs"
    IMPUTE_MEAN = "ImputeMean"
    IMPUTE_MEDIAN = "ImputeMedian"
    IMPUTE_MODE = "ImputeMode"
    IMPUTE_CUSTOM = "ImputeCustom"
    REMOVE_OUTLIERS = "RemoveOutliers"
    CAP_OUTLIERS = "CapOutliers"
    FLAG_FOR_REVIEW = "FlagForReview"
    MERGE_CATEGORIES = "MergeCategories"
    CONVERT_TYPE = "ConvertType"
    CUSTOM_LOGIC = "CustomLogic"


@dataclass
class HITLOption:
    key: str
    label: str
    description: str
    action: ActionType
    is_recommended: bool = False
    parameters: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'key': self.key,
            'label': self.label,
            'description': self.description,
            'action': self.action.value,
            'is_recommended': self.is_recommended,
            'parameters': dict(self.parameters),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HITLOption":
        return cls(
            key=data['key'],
            label=data['label'],
            description=data.get('description', ""),
            action=ActionType(data['action']),
            is_recommended=bool(data.get('is_recommended', False)),
            parameters=dict(data.get('parameters', {})),
        )


@dataclass
class HITLQuestion:
    """
    A decision put to the human reviewer for one rule.

    Attributes:
        id: ``HITL_{rule id}_{UTC yyyyMMddHHmmss}``
        context: Human-readable description of the affected data
        options: Choices, keyed "A", "B", ...
        recommended_option: Key of the recommended option
        recommendation_reason: Why that option is recommended
        related_rule: Rule the answer approves
    """
    id: str
    type: QuestionType
    context: str
    question: str
    options: List[HITLOption]
    related_rule: PreprocessingRule
    recommended_option: Optional[str] = None
    recommendation_reason: Optional[str] = None
    created_at: datetime = field(default_factory=_utcnow)

    def get_option(self, key: str) -> Optional[HITLOption]:
        for option in self.options:
            if option.key.upper() == str(key).strip().upper():
                return option
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'type': self.type.value,
            'context': self.context,
            'question': self.question,
            'options': [o.to_dict() for o in self.options],
            'recommended_option': self.recommended_option,
            'recommendation_reason': self.recommendation_reason,
            'related_rule': self.related_rule.to_dict(),
            'created_at': self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HITLQuestion":
        return cls(
            id=data['id'],
            type=QuestionType(data['type']),
            context=data.get('context', ""),
            question=data['question'],
            options=[HITLOption.from_dict(o) for o in data.get('options', [])],
            related_rule=PreprocessingRule.from_dict(data['related_rule']),
            recommended_option=data.get('recommended_option'),
            recommendation_reason=data.get('recommendation_reason'),
            created_at=_parse_timestamp(data['created_at']),
        )


@dataclass
class HITLAnswer:
    question_id: str
    selected_option: str
    custom_value: Optional[str] = None
    user_rationale: Optional[str] = None
    answered_at: datetime = field(default_factory=_utcnow)
    time_to_decide: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'question_id': self.question_id,
            'selected_option': self.selected_option,
            'custom_value': self.custom_value,
            'user_rationale': self.user_rationale,
            'answered_at': self.answered_at.isoformat(),
            'time_to_decide': round(self.time_to_decide, 3),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HITLAnswer":
        return cls(
            question_id=data['question_id'],
            selected_option=data['selected_option'],
            custom_value=data.get('custom_value'),
            user_rationale=data.get('user_rationale'),
            answered_at=_parse_timestamp(data['answered_at']),
            time_to_decide=float(data.get('time_to_decide', 0.0)),
        )


@dataclass
class HITLDecisionLog:
    """
    Audit record of one human decision, persisted as one JSON file.

    Example:
        >>> log = HITLDecisionLog(id="...", session_id="s1", question=q, answer=a,
        ...                       approved_rule=rule, user_id="analyst")
        >>> log.followed_recommendation
        True
    """
    id: str
    session_id: str
    question: HITLQuestion
    answer: HITLAnswer
    approved_rule: PreprocessingRule
    user_id: str
    logged_at: datetime = field(default_factory=_utcnow)
    notes: Optional[str] = None

    @property
    def followed_recommendation(self) -> bool:
        recommended = self.question.recommended_option
        return recommended is not None and recommended.upper() == self.answer.selected_option.upper()

    @property
    def selected_action(self) -> Optional[ActionType]:
        option = self.question.get_option(self.answer.selected_option)
        return option.action if option else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'session_id': self.session_id,
            'question': self.question.to_dict(),
            'answer': self.answer.to_dict(),
            'approved_rule': self.approved_rule.to_dict(),
            'user_id': self.user_id,
            'logged_at': self.logged_at.isoformat(),
            'notes': self.notes,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HITLDecisionLog":
        return cls(
            id=data['id'],
            session_id=data['session_id'],
            question=HITLQuestion.from_dict(data['question']),
            answer=HITLAnswer.from_dict(data['answer']),
            approved_rule=PreprocessingRule.from_dict(data['approved_rule']),
            user_id=data.get('user_id', "unknown"),
            logged_at=_parse_timestamp(data['logged_at']),
            notes=data.get('notes'),
        )


@dataclass
class HITLDecisionSummary:
    total_decisions: int = 0
    recommendations_followed: int = 0
    recommendations_overridden: int = 0
    average_decision_time_seconds: float = 0.0
    decision_type_distribution: Dict[str, int] = field(default_factory=dict)
    action_distribution: Dict[str, int] = field(default_factory=dict)
    earliest_decision: Optional[datetime] = None
    latest_decision: Optional[datetime] = None

    @property
    def follow_rate(self) -> float:
        return self.recommendations_followed / self.total_decisions if self.total_decisions else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total_decisions': self.total_decisions,
            'recommendations_followed': self.recommendations_followed,
            'recommendations_overridden': self.recommendations_overridden,
            'follow_rate': round(self.follow_rate, 4),
            'average_decision_time_seconds': round(self.average_decision_time_seconds, 3),
            'decision_type_distribution': dict(self.decision_type_distribution),
            'action_distribution': dict(self.action_distribution),
            'earliest_decision': self.earliest_decision.isoformat() if self.earliest_decision else None,
            'latest_decision': self.latest_decision.isoformat() if self.latest_decision else None,
        }

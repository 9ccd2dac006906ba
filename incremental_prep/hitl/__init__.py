"""
Human-in-the-loop review of preprocessing rules.

Key Components:
- HITLQuestionGenerator: Builds a multiple-choice question per rule
- RecommendationEngine: Picks the recommended option and explains it
- PromptBuilder / ConsolePromptBuilder: Ask the reviewer
- HITLDecisionLogger: JSON audit trail of decisions
- HITLWorkflowService: Ties the above together
"""

from .decision_logger import HITLDecisionLogger
from .models import ActionType, HITLAnswer, HITLDecisionLog, HITLOption, HITLQuestion, QuestionType
from .prompt import ConsolePromptBuilder, PromptBuilder
from .question_generator import HITLQuestionGenerator
from .recommendation import RecommendationEngine
from .workflow import HITLWorkflowService

__all__ = [
    'HITLDecisionLogger',
    'ActionType',
    'HITLAnswer',
    'HITLDecisionLog',
    'HITLOption',
    'HITLQuestion',
    'QuestionType',
    'ConsolePromptBuilder',
    'PromptBuilder',
    'HITLQuestionGenerator',
    'RecommendationEngine',
    'HITLWorkflowService',
]

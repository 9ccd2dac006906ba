"""
Prompt builders - how a HITL question reaches a human and how the answer
comes back.

PromptBuilder is the seam; ConsolePromptBuilder is the interactive terminal
implementation. Tests and non-interactive callers supply their own builder.
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Callable, Optional

from incremental_prep.core.pretty_output import PrettyOutput
from incremental_prep.hitl.models import ActionType, HITLAnswer, HITLQuestion

logger = logging.getLogger(__name__)

CUSTOM_VALUE_ACTIONS = (ActionType.IMPUTE_CUSTOM, ActionType.CUSTOM_LOGIC)


class PromptBuilder(ABC):
    """Presents questions to a reviewer and collects answers."""

    @abstractmethod
    def build_prompt(self, question: HITLQuestion) -> str:
        """Render the question as text."""
        pass

    @abstractmethod
    def collect_answer(self, question: HITLQuestion) -> HITLAnswer:
        """Show the question and return the reviewer's answer."""
        pass

    @abstractmethod
    def confirm_decision(self, question: HITLQuestion, answer: HITLAnswer) -> bool:
        """Ask the reviewer to confirm; False sends the question back."""
        pass


class ConsolePromptBuilder(PromptBuilder):
    """
    Interactive terminal prompt.

    Args:
        input_func: Replacement for ``input`` (tests feed scripted answers)
        require_confirmation: Ask "Apply this decision?" after each answer
        max_attempts: Invalid selections tolerated before the recommended
            option is taken

    Example:
        >>> builder = ConsolePromptBuilder()
        >>> answer = builder.collect_answer(question)
        Your choice [A-E, Enter = C]:
    """

    def __init__(
        self,
        input_func: Optional[Callable[[str], str]] = None,
        require_confirmation: bool = True,
        max_attempts: int = 3
    ):
        self.input_func = input_func or input
        self.require_confirmation = require_confirmation
        self.max_attempts = max_attempts
        self.po = PrettyOutput

    def build_prompt(self, question: HITLQuestion) -> str:
        lines = [question.context, "", question.question, ""]
        for option in question.options:
            marker = "  (recommended)" if option.is_recommended else ""
            lines.append(f"  [{option.key}] {option.label}{marker}")
            if option.description:
                lines.append(f"      {option.description}")
        if question.recommendation_reason:
            lines.extend(["", f"Recommendation: {question.recommendation_reason}"])
        return "\n".join(lines)

    def collect_answer(self, question: HITLQuestion) -> HITLAnswer:
        self._render(question)
        started = time.perf_counter()

        keys = [o.key for o in question.options]
        hint = f"[{keys[0]}-{keys[-1]}" + (f", Enter = {question.recommended_option}]" if question.recommended_option else "]")

        selected = None
        for _ in range(self.max_attempts):
            raw = self.input_func(f"Your choice {hint}: ").strip()
            if not raw and question.recommended_option:
                selected = question.recommended_option
                break
            option = question.get_option(raw)
            if option is not None:
                selected = option.key
                break
            self.po.warning(f"'{raw}' is not one of {', '.join(keys)}")

        if selected is None:
            selected = question.recommended_option or keys[0]
            logger.warning(f"No valid selection for {question.id}; using option {selected}")

        custom_value = None
        option = question.get_option(selected)
        if option is not None and option.action in CUSTOM_VALUE_ACTIONS:
            custom_value = self.input_func("Custom value: ").strip() or None

        rationale = self.input_func("Rationale (optional): ").strip() or None

        return HITLAnswer(
            question_id=question.id,
            selected_option=selected,
            custom_value=custom_value,
            user_rationale=rationale,
            time_to_decide=time.perf_counter() - started,
        )

    def confirm_decision(self, question: HITLQuestion, answer: HITLAnswer) -> bool:
        if not self.require_confirmation:
            return True
        option = question.get_option(answer.selected_option)
        label = option.label if option else answer.selected_option
        reply = self.input_func(f"Apply '{label}'? [Y/n]: ").strip().lower()
        return reply in ("", "y", "yes")

    def _render(self, question: HITLQuestion) -> None:
        self.po.section(f"Review required: {question.related_rule.id}")
        for line in question.context.splitlines():
            self.po.info(line, indent=2)
        self.po.blank_line()
        print(f"  {self.po.HEADER}{question.question}{self.po.RESET}")
        self.po.blank_line()
        for option in question.options:
            self.po.option(option.key, option.label, option.description, option.is_recommended, indent=4)
        if question.recommendation_reason:
            self.po.blank_line()
            self.po.key_value("Why", question.recommendation_reason, indent=2)
        self.po.blank_line()

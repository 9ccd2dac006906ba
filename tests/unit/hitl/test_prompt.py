"""
Tests for ConsolePromptBuilder with scripted input.
"""

from unittest.mock import Mock

import pytest

from incremental_prep.hitl.models import HITLAnswer
from incremental_prep.hitl.prompt import ConsolePromptBuilder
from incremental_prep.hitl.question_generator import HITLQuestionGenerator


@pytest.fixture
def question(rule_factory, quality_dataset):
    rule = rule_factory(column="amount")
    rule.affected_rows = 200
    return HITLQuestionGenerator().generate(rule, quality_dataset)


def scripted(*replies):
    return Mock(side_effect=list(replies))


# ============================================================================
# COLLECTING ANSWERS
# ============================================================================


@pytest.mark.unit
class TestCollectAnswer:
    """Test selection, custom values and rationale prompts."""

    def test_enter_takes_recommendation(self, question):
        input_func = scripted("", "")

        answer = ConsolePromptBuilder(input_func=input_func).collect_answer(question)

        assert answer.question_id == question.id
        assert answer.selected_option == "C"
        assert answer.custom_value is None
        assert answer.user_rationale is None
        assert answer.time_to_decide >= 0.0
        assert input_func.call_args_list[0].args[0] == "Your choice [A-E, Enter = C]: "
        assert input_func.call_args_list[1].args[0] == "Rationale (optional): "

    def test_invalid_then_valid_selection(self, question):
        input_func = scripted("Z", " b ", "mean is fine here")

        answer = ConsolePromptBuilder(input_func=input_func).collect_answer(question)

        assert answer.selected_option == "B"
        assert answer.user_rationale == "mean is fine here"

    def test_attempts_exhausted_falls_back_to_recommendation(self, question):
        input_func = scripted("Z", "Q", "")

        answer = ConsolePromptBuilder(input_func=input_func, max_attempts=2).collect_answer(question)

        assert answer.selected_option == "C"

    def test_custom_value_prompted_for_custom_option(self, question):
        input_func = scripted("e", "0", "")

        answer = ConsolePromptBuilder(input_func=input_func).collect_answer(question)

        assert answer.selected_option == "E"
        assert answer.custom_value == "0"
        assert input_func.call_args_list[1].args[0] == "Custom value: "


@pytest.mark.unit
class TestConfirmDecision:
    """Test the confirmation step."""

    @pytest.mark.parametrize("reply,expected", [("", True), ("y", True), ("YES", True), ("n", False)])
    def test_reply(self, question, reply, expected):
        builder = ConsolePromptBuilder(input_func=scripted(reply))
        answer = HITLAnswer(question_id=question.id, selected_option="C")

        assert builder.confirm_decision(question, answer) is expected

    def test_prompt_names_option(self, question):
        input_func = scripted("y")
        answer = HITLAnswer(question_id=question.id, selected_option="A")

        ConsolePromptBuilder(input_func=input_func).confirm_decision(question, answer)

        assert input_func.call_args.args[0] == "Apply 'Delete records with missing values'? [Y/n]: "

    def test_confirmation_disabled(self, question):
        input_func = scripted()
        builder = ConsolePromptBuilder(input_func=input_func, require_confirmation=False)

        assert builder.confirm_decision(question, HITLAnswer(question_id=question.id, selected_option="C"))
        input_func.assert_not_called()


@pytest.mark.unit
class TestBuildPrompt:
    """Test the plain-text rendering."""

    def test_contains_question_and_marks_recommendation(self, question):
        text = ConsolePromptBuilder(input_func=scripted()).build_prompt(question)

        assert question.question in text
        assert "  [A] Delete records with missing values" in text
        assert "(recommended)" in next(line for line in text.splitlines() if line.startswith("  [C]"))
        assert text.endswith(f"Recommendation: {question.recommendation_reason}")

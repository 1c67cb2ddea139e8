from types import SimpleNamespace

import pytest

from gradebook.core.constants import CorrectnessEnum
from gradebook.services.answer_evaluator import (
    AnswerEvaluator,
    answer_text_hash,
    correctness_for_score,
    needs_evaluation,
    normalize_text,
)


def _option(id, text, is_correct=False, order_index=0):
    return SimpleNamespace(id=id, option_text=text, is_correct=is_correct, order_index=order_index)


def _mcq(marks=2.0, options=None):
    if options is None:
        options = [
            _option(11, "Venus", order_index=0),
            _option(12, "Mars", is_correct=True, order_index=1),
            _option(13, "Jupiter", order_index=2),
        ]
    return SimpleNamespace(id=1, question_type="mcq", marks=marks, options=options)


def _fib(correct_answer=None, model_answer=None, marks=1.0, allow_partial_credit=False):
    return SimpleNamespace(
        id=2,
        question_type="fib",
        marks=marks,
        correct_answer=correct_answer,
        model_answer=model_answer,
        allow_partial_credit=allow_partial_credit,
    )


@pytest.fixture
def evaluator():
    return AnswerEvaluator()


@pytest.mark.parametrize("answer_text", ["12", "B", "b", "  mars ", "MARS"])
def test_mcq_matches_option_by_id_letter_or_text(evaluator, answer_text):
    result = evaluator.evaluate(_mcq(), answer_text)
    assert result.correctness == CorrectnessEnum.CORRECT
    assert result.score == 2.0
    assert not result.requires_grading


@pytest.mark.parametrize("answer_text", ["11", "A", "Jupiter", "Saturn", "Z"])
def test_mcq_wrong_or_unknown_choice_scores_zero(evaluator, answer_text):
    result = evaluator.evaluate(_mcq(), answer_text)
    assert result.correctness == CorrectnessEnum.INCORRECT
    assert result.score == 0.0


def test_mcq_score_is_all_or_nothing(evaluator):
    for answer_text in ["A", "B", "C", "nonsense"]:
        result = evaluator.evaluate(_mcq(marks=3.0), answer_text)
        assert result.score in {0.0, 3.0}
        assert result.correctness in {CorrectnessEnum.CORRECT, CorrectnessEnum.INCORRECT}


def test_mcq_letters_follow_display_order_not_insertion_order(evaluator):
    options = [
        _option(21, "Second", is_correct=True, order_index=1),
        _option(22, "First", order_index=0),
    ]
    assert evaluator.evaluate(_mcq(options=options), "B").correctness == CorrectnessEnum.CORRECT
    assert evaluator.evaluate(_mcq(options=options), "A").correctness == CorrectnessEnum.INCORRECT


def test_mcq_numeric_option_text_takes_precedence_over_option_id(evaluator):
    options = [
        _option(3, "4", order_index=0),
        _option(4, "5", is_correct=True, order_index=1),
        _option(5, "6", order_index=2),
    ]
    assert evaluator.evaluate(_mcq(options=options), "5").correctness == CorrectnessEnum.CORRECT
    assert evaluator.evaluate(_mcq(options=options), "4").correctness == CorrectnessEnum.INCORRECT
    assert evaluator.evaluate(_mcq(options=options), "B").correctness == CorrectnessEnum.CORRECT


def test_mcq_with_two_correct_options_is_malformed(evaluator):
    options = [_option(31, "Yes", is_correct=True), _option(32, "Also yes", is_correct=True, order_index=1)]
    result = evaluator.evaluate(_mcq(options=options), "A")
    assert result.correctness == CorrectnessEnum.INCORRECT
    assert result.score == 0.0
    assert result.diagnostics and "Question 1" in result.diagnostics[0]


def test_mcq_without_correct_option_is_malformed(evaluator):
    result = evaluator.evaluate(_mcq(options=[_option(41, "Only")]), "A")
    assert result.correctness == CorrectnessEnum.INCORRECT
    assert len(result.diagnostics) == 1


@pytest.mark.parametrize("answer_text", [None, "", "   "])
def test_blank_answer_is_incorrect_for_every_type(evaluator, answer_text):
    open_ended = SimpleNamespace(id=3, question_type="open_ended", marks=5.0, model_answer="Rubric")
    for question in (_mcq(), _fib(correct_answer="Paris"), open_ended):
        result = evaluator.evaluate(question, answer_text)
        assert result.correctness == CorrectnessEnum.INCORRECT
        assert result.score == 0.0
        assert not result.requires_grading


def test_fib_comparison_ignores_case_and_surrounding_whitespace(evaluator):
    result = evaluator.evaluate(_fib(correct_answer="New  York"), "  new york ")
    assert result.correctness == CorrectnessEnum.CORRECT
    assert result.score == 1.0


def test_fib_wrong_answer_without_partial_credit(evaluator):
    result = evaluator.evaluate(_fib(correct_answer="Paris"), "Lyon")
    assert result.correctness == CorrectnessEnum.INCORRECT
    assert result.score == 0.0


def test_fib_falls_back_to_first_word_of_model_answer(evaluator):
    result = evaluator.evaluate(_fib(model_answer="Paris. It is the capital of France."), "paris")
    assert result.correctness == CorrectnessEnum.CORRECT


def test_fib_multiple_blanks_all_correct(evaluator):
    question = _fib(correct_answer='["hydrogen", "oxygen"]', marks=2.0)
    result = evaluator.evaluate(question, '["Hydrogen", "Oxygen"]')
    assert result.correctness == CorrectnessEnum.CORRECT
    assert result.score == 2.0


def test_fib_partial_credit_is_proportional(evaluator):
    question = _fib(correct_answer='["hydrogen", "oxygen"]', marks=2.0, allow_partial_credit=True)
    result = evaluator.evaluate(question, "hydrogen, nitrogen")
    assert result.correctness == CorrectnessEnum.PARTIAL
    assert result.score == 1.0
    assert not result.requires_grading


def test_fib_partial_credit_without_local_match_needs_grading(evaluator):
    question = _fib(correct_answer="mitochondria", model_answer="mitochondria", allow_partial_credit=True)
    result = evaluator.evaluate(question, "the powerhouse of the cell")
    assert result.correctness == CorrectnessEnum.PENDING
    assert result.requires_grading


def test_fib_without_any_expected_answer_is_malformed(evaluator):
    result = evaluator.evaluate(_fib(), "anything")
    assert result.correctness == CorrectnessEnum.INCORRECT
    assert result.diagnostics


def test_open_ended_is_deferred_to_the_grader(evaluator):
    question = SimpleNamespace(id=3, question_type="open_ended", marks=5.0, model_answer="Rubric")
    result = evaluator.evaluate(question, "My essay")
    assert result.correctness == CorrectnessEnum.PENDING
    assert result.requires_grading


def test_open_ended_without_model_answer_is_malformed(evaluator):
    question = SimpleNamespace(id=3, question_type="open_ended", marks=5.0, model_answer=None)
    result = evaluator.evaluate(question, "My essay")
    assert result.correctness == CorrectnessEnum.INCORRECT
    assert not result.requires_grading
    assert result.diagnostics


@pytest.mark.parametrize("score,expected", [
    (0.0, CorrectnessEnum.INCORRECT),
    (0.5, CorrectnessEnum.PARTIAL),
    (1.0, CorrectnessEnum.CORRECT),
])
def test_correctness_for_score(score, expected):
    assert correctness_for_score(score, 1.0) == expected


def test_normalize_text_collapses_whitespace():
    assert normalize_text("  The\tQuick   Fox ") == "the quick fox"


def test_needs_evaluation_tracks_evaluated_text():
    answer = SimpleNamespace(answer_text="first", evaluated_at=None, evaluated_text_hash=None)
    assert needs_evaluation(answer)

    answer.evaluated_at = "2024-01-01"
    answer.evaluated_text_hash = answer_text_hash("first")
    assert not needs_evaluation(answer)

    answer.answer_text = "edited"
    assert needs_evaluation(answer)

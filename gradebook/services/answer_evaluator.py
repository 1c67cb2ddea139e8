import hashlib
import json
import logging
from typing import Any, List, Optional, Sequence

from gradebook.core.constants import CorrectnessEnum, QuestionTypeEnum
from gradebook.schemas.evaluation import EvaluationResult

logger = logging.getLogger(__name__)

FIB_TRAILING_PUNCTUATION = ".,;:!?"


def is_blank(answer_text: Optional[str]) -> bool:
    return answer_text is None or str(answer_text).strip() == ""


def answer_text_hash(answer_text: Optional[str]) -> str:
    return hashlib.sha256((answer_text or "").encode("utf-8")).hexdigest()


def needs_evaluation(answer: Any) -> bool:
    """An answer is (re-)evaluated only when it was never graded or its text changed since."""
    if answer.evaluated_at is None:
        return True
    return answer.evaluated_text_hash != answer_text_hash(answer.answer_text)


def correctness_for_score(score: float, marks: float) -> CorrectnessEnum:
    if score >= marks:
        return CorrectnessEnum.CORRECT
    if score <= 0:
        return CorrectnessEnum.INCORRECT
    return CorrectnessEnum.PARTIAL


def normalize_text(value: Any) -> str:
    # Case-insensitive trim-compare with internal whitespace collapsed.
    return " ".join(str(value).split()).casefold()


def _parse_json_list(raw: Optional[str]) -> Optional[List[str]]:
    if raw is None:
        return None
    try:
        parsed = json.loads(raw)
    except (ValueError, TypeError):
        return None
    if isinstance(parsed, list):
        return [str(item) for item in parsed]
    return None


class AnswerEvaluator:
    """Scores a single answer against its question definition.

    Pure: no I/O and no persistence. Open-ended answers, and fill-in-the-blank
    answers that need a partial-credit judgement, come back as ``pending`` with
    ``requires_grading`` set so the caller can hand them to the open-ended grader.
    """

    def evaluate(self, question: Any, answer_text: Optional[str], options: Optional[Sequence[Any]] = None) -> EvaluationResult:
        if is_blank(answer_text):
            return EvaluationResult(score=0.0, correctness=CorrectnessEnum.INCORRECT)

        question_type = QuestionTypeEnum(question.question_type)
        if question_type == QuestionTypeEnum.MCQ:
            if options is None:
                options = getattr(question, "options", None) or []
            return self.evaluate_mcq(question, answer_text, options)
        if question_type == QuestionTypeEnum.FIB:
            return self.evaluate_fib(question, answer_text)
        return self.evaluate_open_ended(question, answer_text)

    def evaluate_mcq(self, question: Any, answer_text: str, options: Sequence[Any]) -> EvaluationResult:
        ordered = sorted(options, key=lambda o: (o.order_index, getattr(o, "id", None) or 0))
        correct_options = [o for o in ordered if o.is_correct]

        if len(correct_options) != 1:
            return self._malformed(
                question,
                f"multiple-choice question has {len(correct_options)} options flagged correct, expected exactly 1",
            )

        selected = self._match_option(answer_text, ordered)
        is_correct = selected is not None and selected is correct_options[0]
        if selected is None:
            logger.debug(f"Question {question.id}: answer {answer_text!r} does not match any option")

        return EvaluationResult(
            score=float(question.marks) if is_correct else 0.0,
            correctness=CorrectnessEnum.CORRECT if is_correct else CorrectnessEnum.INCORRECT,
        )

    def _match_option(self, answer_text: str, ordered_options: Sequence[Any]) -> Optional[Any]:
        token = answer_text.strip()

        # Option text wins so numeric answers such as "5" are never read as an option id.
        normalized = normalize_text(token)
        for option in ordered_options:
            if normalize_text(option.option_text) == normalized:
                return option

        # Display letter: A is the first option in display order.
        if len(token) == 1 and token.isalpha():
            index = ord(token.upper()) - ord("A")
            if 0 <= index < len(ordered_options):
                return ordered_options[index]

        for option in ordered_options:
            option_id = getattr(option, "id", None)
            if option_id is not None and str(option_id) == token:
                return option
        return None

    def evaluate_fib(self, question: Any, answer_text: str) -> EvaluationResult:
        expected = self._expected_blanks(question)
        if not expected:
            return self._malformed(question, "fill-in-the-blank question has no correct answer or model answer")

        submitted = _parse_json_list(answer_text)
        if submitted is None:
            submitted = [answer_text] if len(expected) == 1 else answer_text.split(",")
        submitted = [normalize_text(s) for s in submitted]

        matched = sum(
            1 for i, blank in enumerate(expected)
            if i < len(submitted) and submitted[i] == blank
        )
        marks = float(question.marks)

        if matched == len(expected):
            return EvaluationResult(score=marks, correctness=CorrectnessEnum.CORRECT)

        if not getattr(question, "allow_partial_credit", False):
            return EvaluationResult(score=0.0, correctness=CorrectnessEnum.INCORRECT)

        if matched > 0:
            score = marks * matched / len(expected)
            return EvaluationResult(score=score, correctness=correctness_for_score(score, marks))

        if is_blank(getattr(question, "model_answer", None)):
            return self._malformed(question, "partial credit requested but the question has no model answer")
        return EvaluationResult(score=0.0, correctness=CorrectnessEnum.PENDING, requires_grading=True)

    def _expected_blanks(self, question: Any) -> List[str]:
        correct_answer = getattr(question, "correct_answer", None)
        if not is_blank(correct_answer):
            blanks = _parse_json_list(correct_answer)
            if blanks is None:
                blanks = [correct_answer]
            normalized = [normalize_text(b) for b in blanks]
            normalized = [b for b in normalized if b]
            if normalized:
                return normalized

        model_answer = getattr(question, "model_answer", None)
        if is_blank(model_answer):
            return []
        first_token = model_answer.split()[0].rstrip(FIB_TRAILING_PUNCTUATION)
        return [normalize_text(first_token)] if first_token else []

    def evaluate_open_ended(self, question: Any, answer_text: str) -> EvaluationResult:
        if is_blank(getattr(question, "model_answer", None)):
            return self._malformed(question, "open-ended question has no model answer")
        return EvaluationResult(score=0.0, correctness=CorrectnessEnum.PENDING, requires_grading=True)

    def _malformed(self, question: Any, reason: str) -> EvaluationResult:
        diagnostic = f"Question {question.id}: {reason}"
        logger.warning(f"Malformed question definition. {diagnostic}")
        return EvaluationResult(score=0.0, correctness=CorrectnessEnum.INCORRECT, diagnostics=[diagnostic])


answer_evaluator = AnswerEvaluator()

import logging
from collections import defaultdict
from typing import Any, Dict, Iterable, List, Sequence

from gradebook.core.constants import CorrectnessEnum
from gradebook.core.exceptions import StatisticsInconsistentError, StatisticsNotFinalError
from gradebook.schemas.exam_statistics import AttemptStatistics, ExamStatisticsUpsert
from gradebook.services.answer_evaluator import correctness_for_score, is_blank

logger = logging.getLogger(__name__)


class AttemptStatisticsAggregator:
    """Folds the evaluated answers of one attempt into correctness counts.

    Always a full recompute from the answers; the result does not depend on
    the order in which answers are supplied.
    """

    def aggregate(self, questions: Sequence[Any], answers: Iterable[Any]) -> AttemptStatistics:
        questions_by_id = {q.id: q for q in questions}

        answers_by_question: Dict[Any, Any] = {}
        for answer in answers:
            if answer.question_id not in questions_by_id:
                continue
            current = answers_by_question.get(answer.question_id)
            if current is None or (getattr(answer, "id", 0) or 0) > (getattr(current, "id", 0) or 0):
                answers_by_question[answer.question_id] = answer

        counts = {
            CorrectnessEnum.CORRECT: 0,
            CorrectnessEnum.INCORRECT: 0,
            CorrectnessEnum.PARTIAL: 0,
            CorrectnessEnum.PENDING: 0,
        }
        answered = 0
        for question_id, answer in answers_by_question.items():
            if is_blank(answer.answer_text):
                continue
            answered += 1
            counts[self.classify(answer, questions_by_id[question_id])] += 1

        stats = AttemptStatistics(
            correct_count=counts[CorrectnessEnum.CORRECT],
            incorrect_count=counts[CorrectnessEnum.INCORRECT],
            partially_correct_count=counts[CorrectnessEnum.PARTIAL],
            pending_count=counts[CorrectnessEnum.PENDING],
            skipped_count=len(questions_by_id) - answered,
            total_questions=len(questions_by_id),
        )
        self.check_consistency(stats)
        return stats

    def classify(self, answer: Any, question: Any) -> CorrectnessEnum:
        correctness = CorrectnessEnum(answer.correctness)
        if correctness != CorrectnessEnum.PARTIAL:
            return correctness

        score = answer.score or 0.0
        if 0 < score < question.marks:
            return CorrectnessEnum.PARTIAL
        # A "partial" flag with a boundary score is classified by the score itself.
        return correctness_for_score(score, question.marks)

    def aggregate_many(
        self,
        questions_by_exam: Dict[Any, Sequence[Any]],
        attempts: Iterable[Any],
        answers: Iterable[Any],
    ) -> Dict[Any, AttemptStatistics]:
        answers_by_attempt: Dict[Any, List[Any]] = defaultdict(list)
        for answer in answers:
            answers_by_attempt[answer.attempt_id].append(answer)

        return {
            attempt.id: self.aggregate(questions_by_exam.get(attempt.exam_id, []), answers_by_attempt.get(attempt.id, []))
            for attempt in attempts
        }

    @staticmethod
    def check_consistency(stats: AttemptStatistics) -> None:
        if stats.counted_total != stats.total_questions:
            raise StatisticsInconsistentError(
                f"Statistics do not sum to total_questions: "
                f"{stats.correct_count}+{stats.incorrect_count}+{stats.partially_correct_count}"
                f"+{stats.skipped_count}+{stats.pending_count} != {stats.total_questions}"
            )

    def to_upsert(self, attempt_id: int, stats: AttemptStatistics) -> ExamStatisticsUpsert:
        if not stats.is_final:
            raise StatisticsNotFinalError(
                f"Attempt {attempt_id} has {stats.pending_count} answers awaiting grading"
            )
        self.check_consistency(stats)
        return ExamStatisticsUpsert(
            attempt_id=attempt_id,
            correct_count=stats.correct_count,
            incorrect_count=stats.incorrect_count,
            partially_correct_count=stats.partially_correct_count,
            skipped_count=stats.skipped_count,
            total_questions=stats.total_questions,
        )


attempt_statistics_aggregator = AttemptStatisticsAggregator()

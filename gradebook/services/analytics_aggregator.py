import logging
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from gradebook.core.config import settings
from gradebook.core.constants import (
    AT_RISK_RECOMMENDATIONS,
    AtRiskReasonEnum,
    CorrectnessEnum,
    DifficultyLevelEnum,
    ExamAttemptStatusEnum,
    InterventionQuadrantEnum,
    QuestionTypeEnum,
    TrendDirectionEnum,
)
from gradebook.schemas.analytics import (
    AtRiskStudent,
    ExamPerformance,
    HeatMap,
    HeatMapCell,
    HeatMapExam,
    HeatMapStudent,
    InterventionEntry,
    QuestionDifficulty,
    QuestionTypePerformance,
    QuestionTypeStat,
    StudentAnalytics,
    TrendPoint,
)
from gradebook.services import grade_calculator
from gradebook.services.answer_evaluator import is_blank

logger = logging.getLogger(__name__)

OPEN_ENDED_CREDIT_RATIO = 0.7

# (strength above, weakness below, label, improvement hint)
QUESTION_TYPE_BANDS = {
    QuestionTypeEnum.MCQ: (80.0, 60.0, "Multiple Choice Questions",
                           "Focus on understanding key concepts for MCQ questions"),
    QuestionTypeEnum.FIB: (80.0, 60.0, "Fill in the Blank Questions",
                           "Practice vocabulary and key terms for FIB questions"),
    QuestionTypeEnum.OPEN_ENDED: (70.0, 50.0, "Open-Ended Questions",
                                  "Work on structuring comprehensive answers for open-ended questions"),
}

EASY_CORRECT_RATE = 70.0
HARD_CORRECT_RATE = 40.0


def _timestamp(value: Optional[datetime]) -> float:
    if value is None:
        return float("-inf")
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.timestamp()


def time_spent_minutes(attempt: Any) -> Optional[float]:
    if attempt.started_at is None or attempt.submitted_at is None:
        return None
    return (_timestamp(attempt.submitted_at) - _timestamp(attempt.started_at)) / 60


def _is_completed(attempt: Any) -> bool:
    return attempt.status == ExamAttemptStatusEnum.COMPLETED


class AnalyticsAggregator:
    """Cross-attempt views built from already-graded attempts.

    Nothing here re-runs evaluation: scores are read from ``total_score`` and
    percentages are taken against each exam's ``total_marks``.
    """

    def _attempt_percentage(self, attempt: Any, exams_by_id: Dict[Any, Any]) -> float:
        exam = exams_by_id[attempt.exam_id]
        return grade_calculator.percentage(attempt.total_score or 0.0, grade_calculator.exam_total_marks(exam))

    def _completed_by_student(
        self, attempts: Iterable[Any], exams_by_id: Dict[Any, Any], student_ids: Optional[Iterable[int]] = None
    ) -> Dict[Any, List[Any]]:
        allowed = set(student_ids) if student_ids is not None else None
        grouped: Dict[Any, List[Any]] = defaultdict(list)
        for attempt in attempts:
            if not _is_completed(attempt) or attempt.exam_id not in exams_by_id:
                continue
            if allowed is not None and attempt.student_id not in allowed:
                continue
            grouped[attempt.student_id].append(attempt)
        return grouped

    # Heat map

    def select_cell_attempt(self, attempts: Sequence[Any]) -> Any:
        """Most recent submission wins; equal timestamps fall back to the higher attempt id."""
        return max(attempts, key=lambda a: (a.submitted_at is not None, _timestamp(a.submitted_at), a.id))

    def build_heat_map(
        self, attempts: Iterable[Any], exams: Sequence[Any], student_ids: Optional[Sequence[int]] = None
    ) -> HeatMap:
        exams_by_id = {exam.id: exam for exam in exams}
        if not exams_by_id:
            return HeatMap()

        by_student = self._completed_by_student(attempts, exams_by_id, student_ids)

        by_pair: Dict[Tuple[Any, Any], List[Any]] = defaultdict(list)
        exam_percentages: Dict[Any, List[float]] = defaultdict(list)
        for student_id, student_attempts in by_student.items():
            for attempt in student_attempts:
                by_pair[(student_id, attempt.exam_id)].append(attempt)
                exam_percentages[attempt.exam_id].append(self._attempt_percentage(attempt, exams_by_id))

        cells = []
        for (student_id, exam_id), pair_attempts in sorted(by_pair.items()):
            chosen = self.select_cell_attempt(pair_attempts)
            cells.append(HeatMapCell(
                student_id=student_id,
                exam_id=exam_id,
                score=chosen.total_score or 0.0,
                percentage=self._attempt_percentage(chosen, exams_by_id),
                attempt_id=chosen.id,
                submitted_at=chosen.submitted_at,
                time_spent_minutes=time_spent_minutes(chosen),
            ))

        ordered_students = list(student_ids) if student_ids is not None else sorted(by_student)
        students = [
            HeatMapStudent(
                id=student_id,
                average_score=grade_calculator.average(
                    [self._attempt_percentage(a, exams_by_id) for a in by_student.get(student_id, [])]
                ),
            )
            for student_id in ordered_students
        ]
        exam_rows = [
            HeatMapExam(
                id=exam.id,
                title=exam.title,
                total_marks=grade_calculator.exam_total_marks(exam),
                average_score=grade_calculator.average(exam_percentages.get(exam.id, [])),
            )
            for exam in exams
        ]
        return HeatMap(students=students, exams=exam_rows, cells=cells)

    # Intervention quadrants

    def classify_quadrant(
        self,
        average_score: float,
        time_spent: float,
        score_threshold: Optional[float] = None,
        time_threshold: Optional[float] = None,
    ) -> InterventionQuadrantEnum:
        if score_threshold is None:
            score_threshold = settings.INTERVENTION_SCORE_THRESHOLD
        if time_threshold is None:
            time_threshold = settings.INTERVENTION_TIME_THRESHOLD

        high_score = average_score >= score_threshold
        high_time = time_spent >= time_threshold
        if high_score and high_time:
            return InterventionQuadrantEnum.EXCELLENT
        if high_time:
            return InterventionQuadrantEnum.STRUGGLING
        if high_score:
            return InterventionQuadrantEnum.GIFTED
        return InterventionQuadrantEnum.AT_RISK

    def build_intervention_entries(
        self,
        attempts: Iterable[Any],
        exams: Sequence[Any],
        student_ids: Optional[Sequence[int]] = None,
        score_threshold: Optional[float] = None,
        time_threshold: Optional[float] = None,
    ) -> List[InterventionEntry]:
        exams_by_id = {exam.id: exam for exam in exams}
        entries = []
        for student_id, completed in sorted(self._completed_by_student(attempts, exams_by_id, student_ids).items()):
            average_score = grade_calculator.average([self._attempt_percentage(a, exams_by_id) for a in completed])
            total_minutes = sum(m for m in (time_spent_minutes(a) for a in completed) if m is not None)
            entries.append(InterventionEntry(
                student_id=student_id,
                average_score=average_score,
                time_spent_minutes=total_minutes,
                total_attempts=len(completed),
                quadrant=self.classify_quadrant(average_score, total_minutes, score_threshold, time_threshold),
            ))
        return entries

    # Trends

    def build_trend_series(self, attempts: Iterable[Any], exams: Sequence[Any]) -> List[TrendPoint]:
        exams_by_id = {exam.id: exam for exam in exams}
        completed = [a for a in attempts if _is_completed(a) and a.exam_id in exams_by_id]
        completed.sort(key=lambda a: (_timestamp(a.submitted_at or a.started_at), a.id))
        return [
            TrendPoint(
                label=exams_by_id[a.exam_id].title,
                percentage=self._attempt_percentage(a, exams_by_id),
                score=a.total_score or 0.0,
                attempt_id=a.id,
                exam_id=a.exam_id,
                date=a.submitted_at or a.started_at,
            )
            for a in completed
        ]

    def trend_direction(self, points: Sequence[TrendPoint], stable_band: Optional[float] = None) -> TrendDirectionEnum:
        if stable_band is None:
            stable_band = settings.TREND_STABLE_BAND
        if len(points) < 2:
            return TrendDirectionEnum.STABLE

        half = len(points) // 2
        earlier = grade_calculator.average([p.percentage for p in points[:half]])
        later = grade_calculator.average([p.percentage for p in points[-half:]])
        change = later - earlier
        if change > stable_band:
            return TrendDirectionEnum.IMPROVING
        if change < -stable_band:
            return TrendDirectionEnum.DECLINING
        return TrendDirectionEnum.STABLE

    # At-risk students

    def identify_at_risk(
        self,
        attempts: Iterable[Any],
        exams: Sequence[Any],
        student_ids: Optional[Sequence[int]] = None,
        low_score_cutoff: Optional[float] = None,
        low_score_threshold: Optional[int] = None,
        incomplete_threshold: Optional[int] = None,
    ) -> List[AtRiskStudent]:
        if low_score_cutoff is None:
            low_score_cutoff = settings.AT_RISK_LOW_SCORE_CUTOFF
        if low_score_threshold is None:
            low_score_threshold = settings.AT_RISK_LOW_SCORE_THRESHOLD
        if incomplete_threshold is None:
            incomplete_threshold = settings.AT_RISK_INCOMPLETE_THRESHOLD

        exams_by_id = {exam.id: exam for exam in exams}
        allowed = set(student_ids) if student_ids is not None else None
        by_student: Dict[Any, List[Any]] = defaultdict(list)
        for attempt in attempts:
            if allowed is not None and attempt.student_id not in allowed:
                continue
            by_student[attempt.student_id].append(attempt)

        flagged = []
        for student_id, student_attempts in sorted(by_student.items()):
            low_scores = sum(
                1 for a in student_attempts
                if _is_completed(a) and a.exam_id in exams_by_id
                and self._attempt_percentage(a, exams_by_id) < low_score_cutoff
            )
            incomplete = sum(1 for a in student_attempts if a.status == ExamAttemptStatusEnum.IN_PROGRESS)

            low_flag = low_scores > low_score_threshold
            incomplete_flag = incomplete > incomplete_threshold
            if not (low_flag or incomplete_flag):
                continue

            if low_flag and incomplete_flag:
                reason = AtRiskReasonEnum.BOTH
            elif low_flag:
                reason = AtRiskReasonEnum.LOW_SCORES
            else:
                reason = AtRiskReasonEnum.INCOMPLETE_ATTEMPTS

            activity = [a.submitted_at or a.started_at for a in student_attempts if (a.submitted_at or a.started_at)]
            flagged.append(AtRiskStudent(
                student_id=student_id,
                low_scores=low_scores,
                incomplete_attempts=incomplete,
                reason=reason,
                recommendation=AT_RISK_RECOMMENDATIONS[reason],
                last_activity=max(activity, key=_timestamp) if activity else None,
            ))
        return flagged

    # Question-level views

    def question_type_performance(self, graded_answers: Iterable[Tuple[Any, Any]]) -> QuestionTypePerformance:
        """Correct/total per question type over (answer, question) pairs.

        Pending answers are not graded yet and are left out. An open-ended answer
        counts as correct when fully correct or scored at least 70% of its marks.
        """
        tallies = {qt: [0, 0] for qt in QuestionTypeEnum}
        for answer, question in graded_answers:
            correctness = CorrectnessEnum(answer.correctness)
            if correctness == CorrectnessEnum.PENDING:
                continue
            question_type = QuestionTypeEnum(question.question_type)
            tallies[question_type][1] += 1
            if correctness == CorrectnessEnum.CORRECT:
                tallies[question_type][0] += 1
            elif question_type == QuestionTypeEnum.OPEN_ENDED:
                score = answer.score or 0.0
                if score > 0 and score >= question.marks * OPEN_ENDED_CREDIT_RATIO:
                    tallies[question_type][0] += 1

        def stat(question_type: QuestionTypeEnum) -> QuestionTypeStat:
            correct, total = tallies[question_type]
            return QuestionTypeStat(correct=correct, total=total, percentage=grade_calculator.percentage(correct, total))

        return QuestionTypePerformance(
            mcq=stat(QuestionTypeEnum.MCQ),
            fib=stat(QuestionTypeEnum.FIB),
            open_ended=stat(QuestionTypeEnum.OPEN_ENDED),
        )

    def strengths_and_weaknesses(self, performance: QuestionTypePerformance) -> Tuple[List[str], List[str], List[str]]:
        strengths, weaknesses, improvement_areas = [], [], []
        for question_type, (strong_above, weak_below, label, hint) in QUESTION_TYPE_BANDS.items():
            stat = getattr(performance, question_type.value)
            if stat.total == 0:
                continue
            if stat.percentage > strong_above:
                strengths.append(label)
            elif stat.percentage < weak_below:
                weaknesses.append(label)
                improvement_areas.append(hint)
        return strengths, weaknesses, improvement_areas

    def question_difficulty(self, questions: Sequence[Any], answers: Iterable[Any]) -> List[QuestionDifficulty]:
        answers_by_question: Dict[Any, List[Any]] = defaultdict(list)
        for answer in answers:
            if is_blank(answer.answer_text) or CorrectnessEnum(answer.correctness) == CorrectnessEnum.PENDING:
                continue
            answers_by_question[answer.question_id].append(answer)

        rows = []
        for question in questions:
            graded = answers_by_question.get(question.id, [])
            if not graded:
                continue
            correct = sum(1 for a in graded if CorrectnessEnum(a.correctness) == CorrectnessEnum.CORRECT)
            correct_rate = grade_calculator.percentage(correct, len(graded))
            if correct_rate >= EASY_CORRECT_RATE:
                level = DifficultyLevelEnum.EASY
            elif correct_rate < HARD_CORRECT_RATE:
                level = DifficultyLevelEnum.HARD
            else:
                level = DifficultyLevelEnum.MEDIUM
            rows.append(QuestionDifficulty(
                question_id=question.id,
                question_text=question.question_text,
                correct_rate=correct_rate,
                average_score=grade_calculator.average([a.score or 0.0 for a in graded]),
                total_attempts=len(graded),
                difficulty_level=level,
            ))
        return rows

    def exam_performance(self, attempts: Iterable[Any], exams: Sequence[Any]) -> List[ExamPerformance]:
        exams_by_id = {exam.id: exam for exam in exams}
        by_exam: Dict[Any, List[Any]] = defaultdict(list)
        for attempt in attempts:
            if attempt.exam_id in exams_by_id:
                by_exam[attempt.exam_id].append(attempt)

        rows = []
        for exam in exams:
            exam_attempts = by_exam.get(exam.id, [])
            completed = [a for a in exam_attempts if _is_completed(a)]
            rows.append(ExamPerformance(
                exam_id=exam.id,
                exam_title=exam.title,
                total_attempts=len(exam_attempts),
                average_score=grade_calculator.average([self._attempt_percentage(a, exams_by_id) for a in completed]),
                completion_rate=grade_calculator.percentage(len(completed), len(exam_attempts)),
                total_students=len({a.student_id for a in exam_attempts}),
            ))
        return rows

    def student_analytics(
        self,
        student_id: int,
        attempts: Sequence[Any],
        exams: Sequence[Any],
        graded_answers: Iterable[Tuple[Any, Any]],
    ) -> StudentAnalytics:
        exams_by_id = {exam.id: exam for exam in exams}
        own = [a for a in attempts if a.student_id == student_id]
        if not own:
            return StudentAnalytics(student_id=student_id)

        completed = [a for a in own if _is_completed(a) and a.exam_id in exams_by_id]
        trend = self.build_trend_series(own, exams)
        performance = self.question_type_performance(graded_answers)
        strengths, weaknesses, improvement_areas = self.strengths_and_weaknesses(performance)

        return StudentAnalytics(
            student_id=student_id,
            total_attempts=len(own),
            average_score=grade_calculator.average([self._attempt_percentage(a, exams_by_id) for a in completed]),
            completion_rate=grade_calculator.percentage(
                sum(1 for a in own if _is_completed(a)), len(own)
            ),
            score_trend=trend,
            trend_direction=self.trend_direction(trend),
            question_type_performance=performance,
            strengths=strengths,
            weaknesses=weaknesses,
            improvement_areas=improvement_areas,
        )


analytics_aggregator = AnalyticsAggregator()

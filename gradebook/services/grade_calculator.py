"""
Grade arithmetic shared by the results, grade-book and analytics views.

Pure functions with no external state. Empty cohorts and zero totals produce
zeros, never a division error.
"""
import math
from typing import Any, Dict, Iterable, List, Optional, Sequence

from gradebook.core.constants import ExamAttemptStatusEnum, GRADE_BOUNDARIES, LetterGradeEnum
from gradebook.schemas.grades import GradeDistribution, GradeStatistics, StudentGrade


def percentage(score: float, total_marks: float) -> float:
    if not total_marks:
        return 0.0
    return score / total_marks * 100


def exam_total_marks(exam: Any, questions: Optional[Sequence[Any]] = None) -> float:
    """Stored total, or the sum of question marks when the exam row was never totalled."""
    if exam.total_marks:
        return float(exam.total_marks)
    if questions is None:
        questions = getattr(exam, "questions", None) or []
    return float(sum(q.marks or 0.0 for q in questions))


def letter_grade(pct: float) -> LetterGradeEnum:
    for lower_bound, grade in GRADE_BOUNDARIES:
        if pct >= lower_bound:
            return grade
    return LetterGradeEnum.F


def average(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return sum(values) / len(values)


def median(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    ordered = sorted(values)
    mid = len(ordered) // 2
    if len(ordered) % 2 == 0:
        return (ordered[mid - 1] + ordered[mid]) / 2
    return ordered[mid]


def distribution(percentages: Iterable[float]) -> GradeDistribution:
    counts: Dict[str, int] = {grade.value: 0 for grade in LetterGradeEnum}
    for pct in percentages:
        counts[letter_grade(pct).value] += 1
    return GradeDistribution(**counts)


def round_one_decimal(value: float) -> float:
    # Half-up, so 84.25 -> 84.3 rather than banker's rounding.
    return math.floor(value * 10 + 0.5) / 10


def calculate_statistics(scores: Sequence[float], total_marks: float) -> GradeStatistics:
    if not scores:
        return GradeStatistics()

    percentages = [percentage(score, total_marks) for score in scores]
    return GradeStatistics(
        average=round_one_decimal(average(percentages)),
        median=round_one_decimal(median(percentages)),
        highest=round_one_decimal(max(percentages)),
        lowest=round_one_decimal(min(percentages)),
        total_students=len(scores),
        grade_distribution=distribution(percentages),
    )


def build_student_grades(attempts: Iterable[Any], total_marks: float, student_ids: Optional[Iterable[int]] = None) -> List[StudentGrade]:
    allowed = set(student_ids) if student_ids is not None else None
    grades = []
    for attempt in attempts:
        if attempt.status != ExamAttemptStatusEnum.COMPLETED:
            continue
        if allowed is not None and attempt.student_id not in allowed:
            continue
        pct = percentage(attempt.total_score or 0.0, total_marks)
        grades.append(StudentGrade(
            student_id=attempt.student_id,
            attempt_id=attempt.id,
            score=attempt.total_score or 0.0,
            percentage=pct,
            grade=letter_grade(pct),
            submitted_at=attempt.submitted_at,
        ))
    grades.sort(key=lambda g: (-g.percentage, g.attempt_id))
    return grades

import logging
from datetime import datetime
from typing import List, Optional, Sequence

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from gradebook.crud.exam import exam as crud_exam
from gradebook.crud.exam_attempt import exam_attempt as crud_exam_attempt
from gradebook.crud.question import question as crud_question
from gradebook.crud.student_answer import student_answer as crud_student_answer
from gradebook.schemas.analytics import (
    AtRiskStudent,
    ExamPerformance,
    HeatMap,
    InterventionEntry,
    QuestionDifficulty,
    StudentAnalytics,
    StudentTrend,
)
from gradebook.schemas.grades import ExamGradeReport
from gradebook.services import grade_calculator
from gradebook.services.analytics_aggregator import analytics_aggregator

logger = logging.getLogger(__name__)


class AnalyticsService:
    """Loads committed attempts and hands them to the aggregators.

    Reads only; results may trail an evaluation that is still in flight.
    """

    def _get_exam_or_404(self, db: Session, exam_id: int):
        exam = crud_exam.get(db, id=exam_id)
        if not exam:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Exam not found.")
        return exam

    def _load_exams(self, db: Session, exam_ids: Optional[Sequence[int]]):
        if exam_ids:
            return crud_exam.get_by_ids(db, ids=list(exam_ids))
        return crud_exam.get_all(db)

    def _load_attempts(
        self,
        db: Session,
        student_ids: Optional[Sequence[int]] = None,
        exam_ids: Optional[Sequence[int]] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ):
        return crud_exam_attempt.get_filtered(
            db,
            student_ids=list(student_ids) if student_ids else None,
            exam_ids=list(exam_ids) if exam_ids else None,
            start_date=start_date,
            end_date=end_date,
        )

    def get_heat_map(
        self,
        db: Session,
        student_ids: Optional[List[int]] = None,
        exam_ids: Optional[List[int]] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> HeatMap:
        exams = self._load_exams(db, exam_ids)
        attempts = self._load_attempts(db, student_ids, exam_ids, start_date, end_date)
        return analytics_aggregator.build_heat_map(attempts, exams, student_ids=student_ids or None)

    def get_student_heat_map(
        self,
        db: Session,
        student_id: int,
        exam_ids: Optional[List[int]] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> HeatMap:
        return self.get_heat_map(
            db, student_ids=[student_id], exam_ids=exam_ids, start_date=start_date, end_date=end_date
        )

    def get_interventions(
        self,
        db: Session,
        student_ids: Optional[List[int]] = None,
        exam_ids: Optional[List[int]] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        score_threshold: Optional[float] = None,
        time_threshold: Optional[float] = None,
    ) -> List[InterventionEntry]:
        exams = self._load_exams(db, exam_ids)
        attempts = self._load_attempts(db, student_ids, exam_ids, start_date, end_date)
        return analytics_aggregator.build_intervention_entries(
            attempts,
            exams,
            student_ids=student_ids or None,
            score_threshold=score_threshold,
            time_threshold=time_threshold,
        )

    def get_student_trend(
        self,
        db: Session,
        student_id: int,
        exam_ids: Optional[List[int]] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> StudentTrend:
        exams = self._load_exams(db, exam_ids)
        attempts = self._load_attempts(db, [student_id], exam_ids, start_date, end_date)
        points = analytics_aggregator.build_trend_series(attempts, exams)
        return StudentTrend(student_id=student_id, points=points, direction=analytics_aggregator.trend_direction(points))

    def get_at_risk_students(
        self,
        db: Session,
        student_ids: Optional[List[int]] = None,
        exam_ids: Optional[List[int]] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> List[AtRiskStudent]:
        exams = self._load_exams(db, exam_ids)
        attempts = self._load_attempts(db, student_ids, exam_ids, start_date, end_date)
        flagged = analytics_aggregator.identify_at_risk(attempts, exams, student_ids=student_ids or None)
        if flagged:
            logger.info(f"{len(flagged)} students flagged at risk")
        return flagged

    def get_exam_grades(self, db: Session, exam_id: int, student_ids: Optional[List[int]] = None) -> ExamGradeReport:
        exam = self._get_exam_or_404(db, exam_id)
        attempts = crud_exam_attempt.get_all_by_exam(db, exam_id=exam_id)
        total_marks = grade_calculator.exam_total_marks(exam)
        grades = grade_calculator.build_student_grades(attempts, total_marks, student_ids=student_ids or None)
        statistics = grade_calculator.calculate_statistics([g.score for g in grades], total_marks)
        return ExamGradeReport(
            exam_id=exam.id,
            exam_title=exam.title,
            total_marks=total_marks,
            statistics=statistics,
            grades=grades,
        )

    def get_student_analytics(self, db: Session, student_id: int) -> StudentAnalytics:
        attempts = crud_exam_attempt.get_all_by_student(db, student_id=student_id)
        if not attempts:
            return StudentAnalytics(student_id=student_id)

        exam_ids = sorted({a.exam_id for a in attempts})
        exams = crud_exam.get_by_ids(db, ids=exam_ids)
        questions_by_exam = crud_question.get_by_exams(db, exam_ids=exam_ids)
        questions_by_id = {q.id: q for questions in questions_by_exam.values() for q in questions}

        answers = crud_student_answer.get_all_by_attempts(db, attempt_ids=[a.id for a in attempts])
        graded_answers = [(a, questions_by_id[a.question_id]) for a in answers if a.question_id in questions_by_id]
        return analytics_aggregator.student_analytics(student_id, attempts, exams, graded_answers)

    def get_exam_performance(self, db: Session, exam_ids: Optional[List[int]] = None) -> List[ExamPerformance]:
        exams = self._load_exams(db, exam_ids)
        attempts = self._load_attempts(db, exam_ids=[e.id for e in exams]) if exams else []
        return analytics_aggregator.exam_performance(attempts, exams)

    def get_question_difficulty(self, db: Session, exam_id: int) -> List[QuestionDifficulty]:
        self._get_exam_or_404(db, exam_id)
        questions = crud_question.get_by_exam(db, exam_id=exam_id)
        attempts = crud_exam_attempt.get_all_by_exam(db, exam_id=exam_id)
        answers = crud_student_answer.get_all_by_attempts(db, attempt_ids=[a.id for a in attempts])
        return analytics_aggregator.question_difficulty(questions, answers)


analytics_service = AnalyticsService()

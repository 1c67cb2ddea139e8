from datetime import datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from gradebook.schemas.response import APIResponse
from gradebook.schemas.analytics import (
    AtRiskStudent, ExamPerformance, HeatMap, InterventionEntry, QuestionDifficulty, StudentAnalytics, StudentTrend
)
from gradebook.schemas.grades import ExamGradeReport
from gradebook.services.analytics import analytics_service
from gradebook.utils import deps

router = APIRouter()

@router.get("/heat-map", response_model=APIResponse[HeatMap])
def get_heat_map(
    db: Session = Depends(deps.get_db),
    student_ids: Optional[List[int]] = Query(None),
    exam_ids: Optional[List[int]] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None)
):
    heat_map = analytics_service.get_heat_map(
        db, student_ids=student_ids, exam_ids=exam_ids, start_date=start_date, end_date=end_date
    )
    return APIResponse(message="Heat map retrieved successfully", data=heat_map)


@router.get("/interventions", response_model=APIResponse[List[InterventionEntry]])
def get_interventions(
    db: Session = Depends(deps.get_db),
    student_ids: Optional[List[int]] = Query(None),
    exam_ids: Optional[List[int]] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    score_threshold: Optional[float] = Query(None, ge=0, le=100),
    time_threshold: Optional[float] = Query(None, ge=0)
):
    entries = analytics_service.get_interventions(
        db,
        student_ids=student_ids,
        exam_ids=exam_ids,
        start_date=start_date,
        end_date=end_date,
        score_threshold=score_threshold,
        time_threshold=time_threshold,
    )
    return APIResponse(message="Intervention matrix retrieved successfully", data=entries)


@router.get("/at-risk", response_model=APIResponse[List[AtRiskStudent]])
def get_at_risk_students(
    db: Session = Depends(deps.get_db),
    student_ids: Optional[List[int]] = Query(None),
    exam_ids: Optional[List[int]] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None)
):
    students = analytics_service.get_at_risk_students(
        db, student_ids=student_ids, exam_ids=exam_ids, start_date=start_date, end_date=end_date
    )
    return APIResponse(message="At-risk students retrieved successfully", data=students)


@router.get("/students/{student_id}/heat-map", response_model=APIResponse[HeatMap])
def get_student_heat_map(
    *,
    db: Session = Depends(deps.get_db),
    student_id: int,
    exam_ids: Optional[List[int]] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None)
):
    heat_map = analytics_service.get_student_heat_map(
        db, student_id=student_id, exam_ids=exam_ids, start_date=start_date, end_date=end_date
    )
    return APIResponse(message="Student heat map retrieved successfully", data=heat_map)


@router.get("/students/{student_id}/trend", response_model=APIResponse[StudentTrend])
def get_student_trend(
    *,
    db: Session = Depends(deps.get_db),
    student_id: int,
    exam_ids: Optional[List[int]] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None)
):
    trend = analytics_service.get_student_trend(
        db, student_id=student_id, exam_ids=exam_ids, start_date=start_date, end_date=end_date
    )
    return APIResponse(message="Student trend retrieved successfully", data=trend)


@router.get("/students/{student_id}", response_model=APIResponse[StudentAnalytics])
def get_student_analytics(
    *,
    db: Session = Depends(deps.get_db),
    student_id: int
):
    analytics = analytics_service.get_student_analytics(db, student_id=student_id)
    return APIResponse(message="Student analytics retrieved successfully", data=analytics)


@router.get("/exams/performance", response_model=APIResponse[List[ExamPerformance]])
def get_exam_performance(
    db: Session = Depends(deps.get_db),
    exam_ids: Optional[List[int]] = Query(None)
):
    performance = analytics_service.get_exam_performance(db, exam_ids=exam_ids)
    return APIResponse(message="Exam performance retrieved successfully", data=performance)


@router.get("/exams/{exam_id}/grades", response_model=APIResponse[ExamGradeReport])
def get_exam_grades(
    *,
    db: Session = Depends(deps.get_db),
    exam_id: int,
    student_ids: Optional[List[int]] = Query(None)
):
    report = analytics_service.get_exam_grades(db, exam_id=exam_id, student_ids=student_ids)
    return APIResponse(message="Exam grades retrieved successfully", data=report)


@router.get("/exams/{exam_id}/question-difficulty", response_model=APIResponse[List[QuestionDifficulty]])
def get_question_difficulty(
    *,
    db: Session = Depends(deps.get_db),
    exam_id: int
):
    difficulty = analytics_service.get_question_difficulty(db, exam_id=exam_id)
    return APIResponse(message="Question difficulty retrieved successfully", data=difficulty)

from typing import List
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from gradebook.schemas.response import APIResponse
from gradebook.schemas.evaluation import AttemptEvaluation, AttemptStatisticsOut
from gradebook.schemas.exam_attempt import ExamAttempt, ExamAttemptStart, ExamAttemptSubmit
from gradebook.services.evaluation import evaluation_service
from gradebook.services.open_ended_grader import OpenEndedGrader
from gradebook.utils import deps

router = APIRouter()

@router.post("/", response_model=APIResponse[ExamAttempt], status_code=status.HTTP_201_CREATED)
def start_attempt(
    *,
    db: Session = Depends(deps.get_transactional_db),
    attempt_in: ExamAttemptStart
):
    attempt = evaluation_service.start_attempt(db, exam_id=attempt_in.exam_id, student_id=attempt_in.student_id)
    return APIResponse(message="Exam attempt started successfully", data=ExamAttempt.model_validate(attempt))


@router.post("/regrade-pending", response_model=APIResponse[List[AttemptEvaluation]])
async def regrade_pending(
    db: Session = Depends(deps.get_transactional_db),
    grader: OpenEndedGrader = Depends(deps.get_open_ended_grader)
):
    results = await evaluation_service.retry_pending_grading(db, grader=grader)
    return APIResponse(message=f"Re-evaluated {len(results)} attempts", data=results)


@router.post("/{attempt_id}/submit", response_model=APIResponse[AttemptEvaluation])
async def submit_attempt(
    *,
    db: Session = Depends(deps.get_transactional_db),
    attempt_id: int,
    submission: ExamAttemptSubmit,
    grader: OpenEndedGrader = Depends(deps.get_open_ended_grader)
):
    evaluation_service.submit_attempt(db, attempt_id=attempt_id, answers_in=submission.answers)
    evaluation = await evaluation_service.evaluate_attempt(db, attempt_id=attempt_id, grader=grader)
    return APIResponse(message="Exam attempt submitted successfully", data=evaluation)


@router.post("/{attempt_id}/evaluate", response_model=APIResponse[AttemptEvaluation])
async def evaluate_attempt(
    *,
    db: Session = Depends(deps.get_transactional_db),
    attempt_id: int,
    grader: OpenEndedGrader = Depends(deps.get_open_ended_grader)
):
    evaluation = await evaluation_service.evaluate_attempt(db, attempt_id=attempt_id, grader=grader)
    return APIResponse(message="Exam attempt evaluated successfully", data=evaluation)


@router.get("/{attempt_id}/results", response_model=APIResponse[AttemptEvaluation])
def get_attempt_results(
    *,
    db: Session = Depends(deps.get_db),
    attempt_id: int
):
    results = evaluation_service.get_attempt_results(db, attempt_id=attempt_id)
    return APIResponse(message="Exam attempt results retrieved successfully", data=results)


@router.get("/{attempt_id}/statistics", response_model=APIResponse[AttemptStatisticsOut])
def get_attempt_statistics(
    *,
    db: Session = Depends(deps.get_db),
    attempt_id: int
):
    statistics = evaluation_service.get_attempt_statistics(db, attempt_id=attempt_id)
    return APIResponse(message="Exam attempt statistics retrieved successfully", data=statistics)

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from gradebook.core.config import settings
from gradebook.core.constants import CorrectnessEnum, ExamAttemptStatusEnum, NO_ANSWER_FEEDBACK
from gradebook.core.exceptions import GradingUnavailableError
from gradebook.crud.exam import exam as crud_exam
from gradebook.crud.exam_attempt import exam_attempt as crud_exam_attempt
from gradebook.crud.exam_statistics import exam_statistics as crud_exam_statistics
from gradebook.crud.question import question as crud_question
from gradebook.crud.student_answer import student_answer as crud_student_answer
from gradebook.models.exam_attempt import ExamAttempt
from gradebook.schemas.evaluation import AttemptEvaluation, AttemptStatisticsOut, QuestionResult
from gradebook.schemas.exam_attempt import ExamAttemptCreate, ExamAttemptUpdate
from gradebook.schemas.exam_statistics import AttemptStatistics
from gradebook.schemas.student_answer import StudentAnswerCreate, StudentAnswerSubmit, StudentAnswerUpdate
from gradebook.services import grade_calculator
from gradebook.services.answer_evaluator import answer_evaluator, answer_text_hash, is_blank, needs_evaluation
from gradebook.services.attempt_statistics import attempt_statistics_aggregator
from gradebook.services.open_ended_grader import OpenEndedGrader

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EvaluationService:
    def __init__(self):
        self._answer_locks: Dict[Tuple[int, int], asyncio.Lock] = {}
        self._answer_lock_users: Dict[Tuple[int, int], int] = {}

    @asynccontextmanager
    async def _answer_lock(self, attempt_id: int, question_id: int):
        # Serializes grading of one answer across overlapping evaluations of the same attempt.
        key = (attempt_id, question_id)
        lock = self._answer_locks.setdefault(key, asyncio.Lock())
        self._answer_lock_users[key] = self._answer_lock_users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._answer_lock_users[key] -= 1
            if not self._answer_lock_users[key]:
                del self._answer_lock_users[key]
                del self._answer_locks[key]

    def _leave_pending(self, db: Session, attempt_id: int, question_id: int, grading_attempts: int):
        crud_student_answer.update_for_question(
            db,
            attempt_id=attempt_id,
            question_id=question_id,
            obj_in=StudentAnswerUpdate(
                correctness=CorrectnessEnum.PENDING,
                score=0.0,
                evaluated_at=None,
                grading_attempts=grading_attempts,
            ),
        )

    def _get_attempt_or_404(self, db: Session, attempt_id: int) -> ExamAttempt:
        attempt = crud_exam_attempt.get(db, id=attempt_id)
        if not attempt:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Exam attempt not found.")
        return attempt

    def _require_completed(self, attempt: ExamAttempt):
        if attempt.status != ExamAttemptStatusEnum.COMPLETED:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Exam attempt has not been submitted yet."
            )

    def start_attempt(self, db: Session, exam_id: int, student_id: int) -> ExamAttempt:
        exam = crud_exam.get(db, id=exam_id)
        if not exam:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Exam not found.")

        attempt_in = ExamAttemptCreate(student_id=student_id, exam_id=exam_id, started_at=_utcnow())
        new_attempt = crud_exam_attempt.create(db, obj_in=attempt_in)
        logger.info(f"Student {student_id} started attempt {new_attempt.id} on exam {exam_id}")
        return new_attempt

    def submit_attempt(self, db: Session, attempt_id: int, answers_in: List[StudentAnswerSubmit]) -> ExamAttempt:
        attempt = self._get_attempt_or_404(db, attempt_id)
        if attempt.status != ExamAttemptStatusEnum.IN_PROGRESS:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Cannot submit an exam attempt that is not in progress."
            )

        questions = crud_question.get_by_exam(db, exam_id=attempt.exam_id)
        question_ids = {q.id for q in questions}

        submitted: Dict[int, StudentAnswerSubmit] = {}
        for answer_in in answers_in:
            if answer_in.question_id not in question_ids:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=f"Question {answer_in.question_id} does not belong to this exam attempt."
                )
            if answer_in.question_id in submitted:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=f"Question {answer_in.question_id} was answered more than once."
                )
            submitted[answer_in.question_id] = answer_in

        # One answer row per question; unanswered questions get a blank row and count as skipped.
        for question in questions:
            answer_in = submitted.get(question.id)
            answer_text = answer_in.answer_text if answer_in else None
            time_spent = answer_in.time_spent_seconds if answer_in else None

            existing = crud_student_answer.get_by_attempt_and_question(db, attempt_id=attempt.id, question_id=question.id)
            if existing:
                existing.answer_text = answer_text
                existing.time_spent_seconds = time_spent
                db.add(existing)
            else:
                crud_student_answer.create(
                    db,
                    obj_in=StudentAnswerCreate(
                        attempt_id=attempt.id,
                        question_id=question.id,
                        answer_text=answer_text,
                        time_spent_seconds=time_spent,
                    ),
                    commit=False,
                )

        attempt = crud_exam_attempt.update(
            db,
            db_obj=attempt,
            obj_in=ExamAttemptUpdate(status=ExamAttemptStatusEnum.COMPLETED, submitted_at=_utcnow()),
        )
        logger.info(f"Attempt {attempt.id} submitted with {len(submitted)}/{len(questions)} answered questions")
        return attempt

    def _ensure_answer_rows(self, db: Session, attempt: ExamAttempt, questions: Sequence[Any]) -> List[Any]:
        answers = crud_student_answer.get_all_by_attempt(db, attempt_id=attempt.id)
        answered_ids = {a.question_id for a in answers}
        missing = [q for q in questions if q.id not in answered_ids]
        for question in missing:
            crud_student_answer.create(
                db, obj_in=StudentAnswerCreate(attempt_id=attempt.id, question_id=question.id), commit=False
            )
        if missing:
            db.commit()
            answers = crud_student_answer.get_all_by_attempt(db, attempt_id=attempt.id)
        return answers

    def _evaluate_locally(self, db: Session, attempt: ExamAttempt, questions: Sequence[Any], answers: Sequence[Any]):
        questions_by_id = {q.id: q for q in questions}
        to_grade = []
        diagnostics: List[str] = []

        for answer in answers:
            question = questions_by_id.get(answer.question_id)
            if question is None or not needs_evaluation(answer):
                continue

            result = answer_evaluator.evaluate(question, answer.answer_text, question.options)
            diagnostics.extend(result.diagnostics)

            if result.requires_grading:
                update = StudentAnswerUpdate(
                    correctness=CorrectnessEnum.PENDING, score=0.0, evaluated_at=None, evaluated_text_hash=None
                )
                to_grade.append(question)
            else:
                ai_evaluation = {"feedback": NO_ANSWER_FEEDBACK} if is_blank(answer.answer_text) else None
                update = StudentAnswerUpdate(
                    correctness=result.correctness,
                    score=result.score,
                    evaluated_at=_utcnow(),
                    evaluated_text_hash=answer_text_hash(answer.answer_text),
                    ai_evaluation=ai_evaluation,
                )
            crud_student_answer.update(db, db_obj=answer, obj_in=update, commit=False)

        db.commit()
        return to_grade, diagnostics

    async def _grade_one(
        self, db: Session, attempt_id: int, question: Any, grader: OpenEndedGrader, semaphore: asyncio.Semaphore
    ) -> Optional[str]:
        async with self._answer_lock(attempt_id, question.id), semaphore:
            answer = crud_student_answer.get_by_attempt_and_question(db, attempt_id=attempt_id, question_id=question.id)
            if answer is None:
                return None
            db.refresh(answer)
            # Another evaluation may have graded this text while we waited.
            if not grader.needs_grading(answer):
                return None

            graded_text = answer.answer_text
            previous_attempts = answer.grading_attempts or 0
            try:
                result = await grader.grade(
                    question.model_answer, graded_text, question.marks, question_text=question.question_text
                )
            except GradingUnavailableError as e:
                logger.error(f"Grading failed for attempt {attempt_id}, question {question.id}: {e}")
                self._leave_pending(db, attempt_id, question.id, previous_attempts + e.attempts)
                return f"Question {question.id}: grading unavailable, answer left pending"
            except Exception:
                logger.exception(f"Unexpected grader error for attempt {attempt_id}, question {question.id}")
                self._leave_pending(db, attempt_id, question.id, previous_attempts + 1)
                return f"Question {question.id}: grading failed, answer left pending"

            crud_student_answer.update_for_question(
                db,
                attempt_id=attempt_id,
                question_id=question.id,
                obj_in=StudentAnswerUpdate(
                    correctness=result.correctness,
                    score=result.score,
                    evaluated_at=_utcnow(),
                    evaluated_text_hash=answer_text_hash(graded_text),
                    ai_evaluation={"feedback": result.feedback, "how_to_improve": result.how_to_improve},
                    grading_attempts=previous_attempts + 1,
                ),
            )
            return None

    def _persist_statistics(self, db: Session, attempt_id: int, stats: AttemptStatistics):
        if stats.is_final:
            crud_exam_statistics.upsert(db, obj_in=attempt_statistics_aggregator.to_upsert(attempt_id, stats))
        else:
            # Provisional counts are never stored; drop whatever an older run left behind.
            crud_exam_statistics.delete_by_attempt(db, attempt_id=attempt_id)

    async def evaluate_attempt(self, db: Session, attempt_id: int, grader: OpenEndedGrader) -> AttemptEvaluation:
        attempt = self._get_attempt_or_404(db, attempt_id)
        self._require_completed(attempt)

        exam = crud_exam.get(db, id=attempt.exam_id)
        questions = crud_question.get_by_exam(db, exam_id=attempt.exam_id)
        answers = self._ensure_answer_rows(db, attempt, questions)

        to_grade, diagnostics = self._evaluate_locally(db, attempt, questions, answers)

        if to_grade:
            semaphore = asyncio.Semaphore(settings.GRADING_CONCURRENCY)
            outcomes = await asyncio.gather(
                *(self._grade_one(db, attempt.id, question, grader, semaphore) for question in to_grade),
                return_exceptions=True,
            )
            if any(isinstance(o, Exception) for o in outcomes):
                db.rollback()
            for question, outcome in zip(to_grade, outcomes):
                if isinstance(outcome, Exception):
                    logger.error(f"Grading task for attempt {attempt.id}, question {question.id} failed: {outcome!r}")
                    diagnostics.append(f"Question {question.id}: grading failed, answer left pending")
                elif outcome:
                    diagnostics.append(outcome)

        answers = crud_student_answer.get_all_by_attempt(db, attempt_id=attempt.id)
        stats = attempt_statistics_aggregator.aggregate(questions, answers)
        total_marks = grade_calculator.exam_total_marks(exam, questions)
        total_score = min(max(0.0, sum(a.score or 0.0 for a in answers)), total_marks)

        attempt = crud_exam_attempt.update(
            db,
            db_obj=attempt,
            obj_in=ExamAttemptUpdate(total_score=total_score, needs_regrade=not stats.is_final),
        )
        self._persist_statistics(db, attempt.id, stats)

        if stats.is_final:
            logger.info(f"Attempt {attempt.id} evaluated: {total_score}/{total_marks}")
        else:
            logger.warning(f"Attempt {attempt.id} has {stats.pending_count} answers awaiting grading")

        return self._build_evaluation(attempt, exam, questions, answers, stats, diagnostics)

    async def retry_pending_grading(self, db: Session, grader: OpenEndedGrader) -> List[AttemptEvaluation]:
        attempts = crud_exam_attempt.get_needing_regrade(db)
        results = []
        for attempt in attempts:
            results.append(await self.evaluate_attempt(db, attempt.id, grader))
        return results

    def get_attempt_statistics(self, db: Session, attempt_id: int) -> AttemptStatisticsOut:
        attempt = self._get_attempt_or_404(db, attempt_id)
        questions = crud_question.get_by_exam(db, exam_id=attempt.exam_id)
        answers = crud_student_answer.get_all_by_attempt(db, attempt_id=attempt.id)
        stats = attempt_statistics_aggregator.aggregate(questions, answers)
        return AttemptStatisticsOut(**stats.model_dump(), is_final=stats.is_final)

    def get_attempt_results(self, db: Session, attempt_id: int) -> AttemptEvaluation:
        attempt = self._get_attempt_or_404(db, attempt_id)
        self._require_completed(attempt)

        exam = crud_exam.get(db, id=attempt.exam_id)
        questions = crud_question.get_by_exam(db, exam_id=attempt.exam_id)
        answers = crud_student_answer.get_all_by_attempt(db, attempt_id=attempt.id)
        stats = attempt_statistics_aggregator.aggregate(questions, answers)
        return self._build_evaluation(attempt, exam, questions, answers, stats, [])

    def _build_evaluation(
        self,
        attempt: ExamAttempt,
        exam: Any,
        questions: Sequence[Any],
        answers: Sequence[Any],
        stats: AttemptStatistics,
        diagnostics: List[str],
    ) -> AttemptEvaluation:
        answers_by_question = {a.question_id: a for a in answers}
        total_marks = grade_calculator.exam_total_marks(exam, questions)

        question_results = []
        for question in questions:
            answer = answers_by_question.get(question.id)
            answer_text = answer.answer_text if answer else None
            feedback = (answer.ai_evaluation or {}) if answer else {}
            skipped = is_blank(answer_text)
            correctness = CorrectnessEnum(answer.correctness) if answer else CorrectnessEnum.INCORRECT
            if answer is not None and not skipped:
                correctness = attempt_statistics_aggregator.classify(answer, question)
            question_results.append(QuestionResult(
                question_id=question.id,
                question_text=question.question_text,
                question_type=question.question_type,
                marks=question.marks,
                answer_text=answer_text,
                score=(answer.score or 0.0) if answer else 0.0,
                correctness=correctness,
                is_correct=answer.is_correct if answer else False,
                skipped=skipped,
                feedback=feedback.get("feedback") or (NO_ANSWER_FEEDBACK if skipped else None),
                how_to_improve=feedback.get("how_to_improve"),
                evaluated_at=answer.evaluated_at if answer else None,
            ))

        return AttemptEvaluation(
            attempt_id=attempt.id,
            exam_id=attempt.exam_id,
            student_id=attempt.student_id,
            total_score=attempt.total_score or 0.0,
            total_marks=total_marks,
            percentage=grade_calculator.percentage(attempt.total_score or 0.0, total_marks),
            needs_regrade=bool(attempt.needs_regrade),
            statistics=AttemptStatisticsOut(**stats.model_dump(), is_final=stats.is_final),
            questions=question_results,
            diagnostics=diagnostics,
        )


evaluation_service = EvaluationService()

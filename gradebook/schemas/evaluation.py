from pydantic import BaseModel
from typing import Optional, List
from datetime import datetime

from gradebook.core.constants import CorrectnessEnum, QuestionTypeEnum
from gradebook.schemas.exam_statistics import ExamStatisticsBase

class EvaluationResult(BaseModel):
    score: float = 0.0
    correctness: CorrectnessEnum
    requires_grading: bool = False
    diagnostics: List[str] = []

class GradingResult(BaseModel):
    score: float
    correctness: CorrectnessEnum
    feedback: Optional[str] = None
    how_to_improve: Optional[str] = None

class QuestionResult(BaseModel):
    question_id: int
    question_text: str
    question_type: QuestionTypeEnum
    marks: float
    answer_text: Optional[str] = None
    score: float = 0.0
    correctness: CorrectnessEnum
    is_correct: Optional[bool] = None
    skipped: bool = False
    feedback: Optional[str] = None
    how_to_improve: Optional[str] = None
    evaluated_at: Optional[datetime] = None

class AttemptStatisticsOut(ExamStatisticsBase):
    pending_count: int = 0
    is_final: bool = True

class AttemptEvaluation(BaseModel):
    attempt_id: int
    exam_id: int
    student_id: int
    total_score: float
    total_marks: float
    percentage: float
    needs_regrade: bool = False
    statistics: AttemptStatisticsOut
    questions: List[QuestionResult] = []
    diagnostics: List[str] = []

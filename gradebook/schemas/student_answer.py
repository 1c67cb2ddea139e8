from pydantic import BaseModel, ConfigDict
from typing import Optional, Any, Dict
from datetime import datetime

from gradebook.core.constants import CorrectnessEnum

class StudentAnswerBase(BaseModel):
    attempt_id: int
    question_id: int
    answer_text: Optional[str] = None
    time_spent_seconds: Optional[int] = None

class StudentAnswerCreate(StudentAnswerBase):
    pass

class StudentAnswerSubmit(BaseModel):
    question_id: int
    answer_text: Optional[str] = None
    time_spent_seconds: Optional[int] = None

class StudentAnswerUpdate(BaseModel):
    correctness: Optional[CorrectnessEnum] = None
    score: Optional[float] = None
    evaluated_at: Optional[datetime] = None
    evaluated_text_hash: Optional[str] = None
    ai_evaluation: Optional[Dict[str, Any]] = None
    grading_attempts: Optional[int] = None

class StudentAnswer(StudentAnswerBase):
    id: int
    correctness: CorrectnessEnum
    is_correct: Optional[bool] = None
    score: float
    evaluated_at: Optional[datetime] = None
    ai_evaluation: Optional[Dict[str, Any]] = None
    grading_attempts: int = 0

    model_config = ConfigDict(from_attributes=True)

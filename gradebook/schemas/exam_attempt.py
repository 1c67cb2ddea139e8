from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List
from datetime import datetime

from gradebook.core.constants import ExamAttemptStatusEnum
from gradebook.schemas.student_answer import StudentAnswer, StudentAnswerSubmit

class ExamAttemptBase(BaseModel):
    student_id: int
    exam_id: int
    started_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None
    total_score: float = 0.0
    status: ExamAttemptStatusEnum = Field(default=ExamAttemptStatusEnum.IN_PROGRESS)

class ExamAttemptCreate(ExamAttemptBase):
    pass

class ExamAttemptUpdate(BaseModel):
    submitted_at: Optional[datetime] = None
    total_score: Optional[float] = None
    status: Optional[ExamAttemptStatusEnum] = None
    needs_regrade: Optional[bool] = None

class ExamAttemptSubmit(BaseModel):
    answers: List[StudentAnswerSubmit] = []

class ExamAttempt(ExamAttemptBase):
    id: int
    needs_regrade: bool = False
    answers: List[StudentAnswer] = []

    model_config = ConfigDict(from_attributes=True)

class ExamAttemptStart(BaseModel):
    exam_id: int
    student_id: int

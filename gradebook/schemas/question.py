from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List
from datetime import datetime

from gradebook.core.constants import QuestionTypeEnum

class QuestionOptionBase(BaseModel):
    option_text: str
    is_correct: bool = False
    order_index: int = 0

class QuestionOptionCreate(QuestionOptionBase):
    pass

class QuestionOption(QuestionOptionBase):
    id: int
    question_id: int

    model_config = ConfigDict(from_attributes=True)

class QuestionBase(BaseModel):
    exam_id: int
    question_text: str
    question_type: QuestionTypeEnum
    marks: float = Field(default=1.0, gt=0)
    model_answer: Optional[str] = None
    correct_answer: Optional[str] = None # Plain text, or a JSON array for multi-blank fib
    allow_partial_credit: bool = False
    order_index: int = 0

class QuestionCreate(QuestionBase):
    options: List[QuestionOptionCreate] = []

class QuestionUpdate(QuestionBase):
    exam_id: Optional[int] = None
    question_text: Optional[str] = None
    question_type: Optional[QuestionTypeEnum] = None
    marks: Optional[float] = None

class Question(QuestionBase):
    id: int
    created_at: Optional[datetime] = None
    options: List[QuestionOption] = []

    model_config = ConfigDict(from_attributes=True)

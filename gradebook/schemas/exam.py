from pydantic import BaseModel, ConfigDict
from typing import Optional
from datetime import datetime

class ExamBase(BaseModel):
    title: str
    description: Optional[str] = None
    time_limit_minutes: Optional[int] = None

class ExamCreate(ExamBase):
    pass

class ExamUpdate(ExamBase):
    title: Optional[str] = None
    total_marks: Optional[float] = None

class Exam(ExamBase):
    id: int
    total_marks: float
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

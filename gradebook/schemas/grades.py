from pydantic import BaseModel
from typing import Optional, List
from datetime import datetime

from gradebook.core.constants import LetterGradeEnum

class GradeDistribution(BaseModel):
    A: int = 0
    B: int = 0
    C: int = 0
    D: int = 0
    F: int = 0

    @property
    def total(self) -> int:
        return self.A + self.B + self.C + self.D + self.F

class GradeStatistics(BaseModel):
    average: float = 0.0
    median: float = 0.0
    highest: float = 0.0
    lowest: float = 0.0
    total_students: int = 0
    grade_distribution: GradeDistribution = GradeDistribution()

class StudentGrade(BaseModel):
    student_id: int
    attempt_id: int
    score: float
    percentage: float
    grade: LetterGradeEnum
    submitted_at: Optional[datetime] = None

class ExamGradeReport(BaseModel):
    exam_id: int
    exam_title: str
    total_marks: float
    statistics: GradeStatistics
    grades: List[StudentGrade] = []

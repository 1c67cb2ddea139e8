from pydantic import BaseModel
from typing import Optional, List
from datetime import datetime

from gradebook.core.constants import (
    InterventionQuadrantEnum, TrendDirectionEnum, DifficultyLevelEnum, AtRiskReasonEnum
)

class HeatMapCell(BaseModel):
    student_id: int
    exam_id: int
    score: float
    percentage: float
    attempt_id: int
    submitted_at: Optional[datetime] = None
    time_spent_minutes: Optional[float] = None

class HeatMapStudent(BaseModel):
    id: int
    average_score: float = 0.0

class HeatMapExam(BaseModel):
    id: int
    title: str
    total_marks: float
    average_score: float = 0.0

class HeatMap(BaseModel):
    students: List[HeatMapStudent] = []
    exams: List[HeatMapExam] = []
    cells: List[HeatMapCell] = []

    def cell_for(self, student_id: int, exam_id: int) -> Optional[HeatMapCell]:
        for cell in self.cells:
            if cell.student_id == student_id and cell.exam_id == exam_id:
                return cell
        return None

class InterventionEntry(BaseModel):
    student_id: int
    average_score: float
    time_spent_minutes: float
    total_attempts: int
    quadrant: InterventionQuadrantEnum

class TrendPoint(BaseModel):
    label: str
    percentage: float
    score: float
    attempt_id: int
    exam_id: int
    date: Optional[datetime] = None

class StudentTrend(BaseModel):
    student_id: int
    points: List[TrendPoint] = []
    direction: TrendDirectionEnum = TrendDirectionEnum.STABLE

class AtRiskStudent(BaseModel):
    student_id: int
    low_scores: int
    incomplete_attempts: int
    reason: AtRiskReasonEnum
    recommendation: str
    last_activity: Optional[datetime] = None

class QuestionTypeStat(BaseModel):
    correct: int = 0
    total: int = 0
    percentage: float = 0.0

class QuestionTypePerformance(BaseModel):
    mcq: QuestionTypeStat = QuestionTypeStat()
    fib: QuestionTypeStat = QuestionTypeStat()
    open_ended: QuestionTypeStat = QuestionTypeStat()

class StudentAnalytics(BaseModel):
    student_id: int
    total_attempts: int = 0
    average_score: float = 0.0
    completion_rate: float = 0.0
    score_trend: List[TrendPoint] = []
    trend_direction: TrendDirectionEnum = TrendDirectionEnum.STABLE
    question_type_performance: QuestionTypePerformance = QuestionTypePerformance()
    strengths: List[str] = []
    weaknesses: List[str] = []
    improvement_areas: List[str] = []

class QuestionDifficulty(BaseModel):
    question_id: int
    question_text: str
    correct_rate: float
    average_score: float
    total_attempts: int
    difficulty_level: DifficultyLevelEnum

class ExamPerformance(BaseModel):
    exam_id: int
    exam_title: str
    total_attempts: int
    average_score: float
    completion_rate: float
    total_students: int

from pydantic import BaseModel, ConfigDict
from typing import Optional
from datetime import datetime

class ExamStatisticsBase(BaseModel):
    correct_count: int = 0
    incorrect_count: int = 0
    partially_correct_count: int = 0
    skipped_count: int = 0
    total_questions: int = 0

class ExamStatisticsUpsert(ExamStatisticsBase):
    attempt_id: int

class ExamStatistics(ExamStatisticsBase):
    id: int
    attempt_id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

class AttemptStatistics(ExamStatisticsBase):
    """Freshly recomputed counts for one attempt.

    ``pending_count`` holds answered questions still awaiting grading; such
    statistics are provisional and must not be persisted.
    """
    pending_count: int = 0

    @property
    def is_final(self) -> bool:
        return self.pending_count == 0

    @property
    def counted_total(self) -> int:
        return (
            self.correct_count
            + self.incorrect_count
            + self.partially_correct_count
            + self.skipped_count
            + self.pending_count
        )

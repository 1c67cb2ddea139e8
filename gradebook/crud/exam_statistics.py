from sqlalchemy.orm import Session
from typing import Optional

from gradebook.crud.base import CRUDBase
from gradebook.models.exam_statistics import ExamStatistics
from gradebook.schemas.exam_statistics import ExamStatisticsUpsert

class CRUDExamStatistics(CRUDBase[ExamStatistics, ExamStatisticsUpsert, ExamStatisticsUpsert]):

    def get_by_attempt(self, db: Session, attempt_id: int) -> Optional[ExamStatistics]:
        return db.query(ExamStatistics).filter(ExamStatistics.attempt_id == attempt_id).first()

    def upsert(self, db: Session, *, obj_in: ExamStatisticsUpsert) -> ExamStatistics:
        existing = self.get_by_attempt(db, attempt_id=obj_in.attempt_id)
        if existing:
            return self.update(db, db_obj=existing, obj_in=obj_in.model_dump())
        return self.create(db, obj_in=obj_in)

    def delete_by_attempt(self, db: Session, attempt_id: int) -> None:
        db.query(ExamStatistics).filter(ExamStatistics.attempt_id == attempt_id).delete()
        db.commit()


exam_statistics = CRUDExamStatistics(ExamStatistics)

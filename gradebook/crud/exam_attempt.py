from sqlalchemy.orm import Session, selectinload
from typing import List, Optional
from datetime import datetime

from gradebook.core.constants import ExamAttemptStatusEnum
from gradebook.crud.base import CRUDBase
from gradebook.models.exam_attempt import ExamAttempt
from gradebook.schemas.exam_attempt import ExamAttemptCreate, ExamAttemptUpdate

class CRUDExamAttempt(CRUDBase[ExamAttempt, ExamAttemptCreate, ExamAttemptUpdate]):

    def _query_with_relationships(self, db: Session):
        return db.query(ExamAttempt).options(
            selectinload(ExamAttempt.exam),
            selectinload(ExamAttempt.answers)
        )

    def get(self, db: Session, id: int) -> Optional[ExamAttempt]:
        return self._query_with_relationships(db).filter(ExamAttempt.id == id).first()

    def get_all_by_student(self, db: Session, student_id: int) -> List[ExamAttempt]:
        return (
            self._query_with_relationships(db)
            .filter(ExamAttempt.student_id == student_id)
            .order_by(ExamAttempt.started_at.desc())
            .all()
        )

    def get_all_by_exam(self, db: Session, exam_id: int) -> List[ExamAttempt]:
        return (
            self._query_with_relationships(db)
            .filter(ExamAttempt.exam_id == exam_id)
            .order_by(ExamAttempt.started_at.desc())
            .all()
        )

    def get_filtered(
        self,
        db: Session,
        *,
        student_ids: Optional[List[int]] = None,
        exam_ids: Optional[List[int]] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> List[ExamAttempt]:
        query = db.query(ExamAttempt)
        if student_ids:
            query = query.filter(ExamAttempt.student_id.in_(student_ids))
        if exam_ids:
            query = query.filter(ExamAttempt.exam_id.in_(exam_ids))
        if start_date:
            query = query.filter(ExamAttempt.started_at >= start_date)
        if end_date:
            query = query.filter(ExamAttempt.started_at <= end_date)
        return query.order_by(ExamAttempt.id).all()

    def get_needing_regrade(self, db: Session) -> List[ExamAttempt]:
        return (
            db.query(ExamAttempt)
            .filter(ExamAttempt.needs_regrade.is_(True))
            .filter(ExamAttempt.status == ExamAttemptStatusEnum.COMPLETED)
            .order_by(ExamAttempt.submitted_at)
            .all()
        )


exam_attempt = CRUDExamAttempt(ExamAttempt)

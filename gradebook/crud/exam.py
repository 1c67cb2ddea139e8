from typing import List, Optional
from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from gradebook.crud.base import CRUDBase
from gradebook.models.exam import Exam
from gradebook.models.question import Question
from gradebook.schemas.exam import ExamCreate, ExamUpdate

class CRUDExam(CRUDBase[Exam, ExamCreate, ExamUpdate]):
    def get_with_questions(self, db: Session, id: int) -> Optional[Exam]:
        return (
            db.query(Exam)
            .options(selectinload(Exam.questions).selectinload(Question.options))
            .filter(Exam.id == id)
            .first()
        )

    def get_by_ids(self, db: Session, *, ids: List[int]) -> List[Exam]:
        if not ids:
            return []
        return db.query(Exam).filter(Exam.id.in_(ids)).order_by(Exam.id).all()

    def get_all(self, db: Session) -> List[Exam]:
        return db.query(Exam).order_by(Exam.id).all()

    def refresh_total_marks(self, db: Session, *, exam_id: int, commit: bool = True) -> Optional[Exam]:
        # Summed in SQL so a stale Exam.questions collection cannot leak into the total.
        exam = db.get(Exam, exam_id)
        if not exam:
            return None
        total = db.query(func.coalesce(func.sum(Question.marks), 0.0)).filter(Question.exam_id == exam_id).scalar()
        exam.total_marks = float(total)
        db.add(exam)
        if commit:
            db.commit()
            db.refresh(exam)
        else:
            db.flush()
        return exam

exam = CRUDExam(Exam)

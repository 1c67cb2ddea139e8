from typing import List, Dict
from sqlalchemy.orm import Session, selectinload

from gradebook.crud.base import CRUDBase
from gradebook.crud.exam import exam as crud_exam
from gradebook.models.question import Question, QuestionOption
from gradebook.schemas.question import QuestionCreate, QuestionUpdate

class CRUDQuestion(CRUDBase[Question, QuestionCreate, QuestionUpdate]):
    def get_by_exam(self, db: Session, *, exam_id: int) -> List[Question]:
        return (
            db.query(self.model)
            .options(selectinload(Question.options))
            .filter(self.model.exam_id == exam_id)
            .order_by(Question.order_index, Question.id)
            .all()
        )

    def get_by_exams(self, db: Session, *, exam_ids: List[int]) -> Dict[int, List[Question]]:
        grouped: Dict[int, List[Question]] = {exam_id: [] for exam_id in exam_ids}
        if not exam_ids:
            return grouped
        questions = (
            db.query(self.model)
            .filter(self.model.exam_id.in_(exam_ids))
            .order_by(Question.order_index, Question.id)
            .all()
        )
        for q in questions:
            grouped.setdefault(q.exam_id, []).append(q)
        return grouped

    def create_with_options(self, db: Session, *, obj_in: QuestionCreate) -> Question:
        db_obj = self.create(db, obj_in=obj_in.model_dump(exclude={"options"}), commit=False)
        for option_in in obj_in.options:
            db.add(QuestionOption(question_id=db_obj.id, **option_in.model_dump()))
        db.flush()
        crud_exam.refresh_total_marks(db, exam_id=db_obj.exam_id, commit=False)
        db.commit()
        db.refresh(db_obj)
        return db_obj

question = CRUDQuestion(Question)

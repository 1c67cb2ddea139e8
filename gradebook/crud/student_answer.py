from sqlalchemy.orm import Session
from typing import List, Optional

from gradebook.crud.base import CRUDBase
from gradebook.models.student_answer import StudentAnswer
from gradebook.schemas.student_answer import StudentAnswerCreate, StudentAnswerUpdate

class CRUDStudentAnswer(CRUDBase[StudentAnswer, StudentAnswerCreate, StudentAnswerUpdate]):

    def get_by_attempt_and_question(self, db: Session, attempt_id: int,
                                    question_id: int) -> Optional[StudentAnswer]:
        return (
            db.query(StudentAnswer)
            .filter(StudentAnswer.attempt_id == attempt_id)
            .filter(StudentAnswer.question_id == question_id)
            .first()
        )

    def get_all_by_attempt(self, db: Session, attempt_id: int) -> List[StudentAnswer]:
        return (
            db.query(StudentAnswer)
            .filter(StudentAnswer.attempt_id == attempt_id)
            .order_by(StudentAnswer.question_id)
            .all()
        )

    def get_all_by_attempts(self, db: Session, attempt_ids: List[int]) -> List[StudentAnswer]:
        if not attempt_ids:
            return []
        return (
            db.query(StudentAnswer)
            .filter(StudentAnswer.attempt_id.in_(attempt_ids))
            .order_by(StudentAnswer.attempt_id, StudentAnswer.question_id)
            .all()
        )

    def update_for_question(
        self, db: Session, *, attempt_id: int, question_id: int, obj_in: StudentAnswerUpdate
    ) -> Optional[StudentAnswer]:
        # Scoped to one (attempt, question) row so concurrent graders never share a write.
        db_obj = self.get_by_attempt_and_question(db, attempt_id=attempt_id, question_id=question_id)
        if not db_obj:
            return None
        return self.update(db, db_obj=db_obj, obj_in=obj_in)


student_answer = CRUDStudentAnswer(StudentAnswer)

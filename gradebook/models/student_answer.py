from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Float, Enum, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from gradebook.core.database import Base
from gradebook.core.constants import CorrectnessEnum

class StudentAnswer(Base):
    __tablename__ = "student_answers"
    __table_args__ = (
        UniqueConstraint("attempt_id", "question_id", name="uq_student_answers_attempt_question"),
    )

    id = Column(Integer, primary_key=True, index=True)
    attempt_id = Column(Integer, ForeignKey("exam_attempts.id"), nullable=False, index=True)
    question_id = Column(Integer, ForeignKey("questions.id"), nullable=False, index=True)
    answer_text = Column(String, nullable=True)
    correctness = Column(Enum(CorrectnessEnum), nullable=False, default=CorrectnessEnum.PENDING)
    score = Column(Float, nullable=False, default=0.0)
    evaluated_at = Column(DateTime(timezone=True), nullable=True) # Null until graded for the current text
    evaluated_text_hash = Column(String(64), nullable=True)
    ai_evaluation = Column(JSON, nullable=True)
    grading_attempts = Column(Integer, nullable=False, default=0)
    time_spent_seconds = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    attempt = relationship("ExamAttempt", back_populates="answers")
    question = relationship("Question", back_populates="answers")

    @property
    def is_correct(self):
        if self.correctness == CorrectnessEnum.CORRECT:
            return True
        if self.correctness == CorrectnessEnum.INCORRECT:
            return False
        return None

from gradebook.core.database import SessionLocal
from gradebook.services.open_ended_grader import OpenEndedGrader
from gradebook.services.text_evaluation import HttpTextEvaluationClient


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def get_transactional_db():
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()

def get_open_ended_grader() -> OpenEndedGrader:
    """Grader backed by the hosted text-evaluation function. Tests override this."""
    return OpenEndedGrader(client=HttpTextEvaluationClient())

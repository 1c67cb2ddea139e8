from enum import Enum


class QuestionTypeEnum(str, Enum):
    MCQ = "mcq"
    FIB = "fib"
    OPEN_ENDED = "open_ended"

class ExamAttemptStatusEnum(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"

class CorrectnessEnum(str, Enum):
    CORRECT = "correct"
    INCORRECT = "incorrect"
    PARTIAL = "partial"
    PENDING = "pending"

class LetterGradeEnum(str, Enum):
    A = "A"
    B = "B"
    C = "C"
    D = "D"
    F = "F"

class InterventionQuadrantEnum(str, Enum):
    EXCELLENT = "Excellent"
    STRUGGLING = "Struggling"
    GIFTED = "Gifted"
    AT_RISK = "At-Risk"

class TrendDirectionEnum(str, Enum):
    IMPROVING = "improving"
    DECLINING = "declining"
    STABLE = "stable"

class DifficultyLevelEnum(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"

class AtRiskReasonEnum(str, Enum):
    LOW_SCORES = "low_scores"
    INCOMPLETE_ATTEMPTS = "incomplete_attempts"
    BOTH = "both"

# Lower bound (inclusive) of each letter band, highest first.
GRADE_BOUNDARIES = (
    (90.0, LetterGradeEnum.A),
    (80.0, LetterGradeEnum.B),
    (70.0, LetterGradeEnum.C),
    (60.0, LetterGradeEnum.D),
)

AT_RISK_RECOMMENDATIONS = {
    AtRiskReasonEnum.LOW_SCORES: "Student has low scores. Consider additional support or review sessions.",
    AtRiskReasonEnum.INCOMPLETE_ATTEMPTS: "Student has incomplete attempts. Follow up on engagement.",
    AtRiskReasonEnum.BOTH: "Student has low scores and incomplete attempts. Schedule a check-in and targeted review sessions.",
}

NO_ANSWER_FEEDBACK = "No answer provided."
NO_ANSWER_IMPROVEMENT = "Please provide an answer to receive feedback."

from gradebook.models.exam import Exam
from gradebook.models.question import Question, QuestionOption
from gradebook.models.exam_attempt import ExamAttempt
from gradebook.models.student_answer import StudentAnswer
from gradebook.models.exam_statistics import ExamStatistics

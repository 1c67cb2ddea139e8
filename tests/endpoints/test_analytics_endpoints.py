from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from gradebook.core.constants import CorrectnessEnum, ExamAttemptStatusEnum
from gradebook.crud.student_answer import student_answer as crud_student_answer
from tests.helpers.factories import BASE_TIME, make_attempt, make_exam, make_simple_exam


@pytest.fixture
def cohort(db_session: Session):
    algebra = make_simple_exam(db_session, title="Algebra")
    geometry = make_simple_exam(db_session, title="Geometry")

    make_attempt(db_session, algebra, student_id=1, total_score=95, minutes=50)
    make_attempt(db_session, geometry, student_id=1, total_score=85, minutes=40, started_at=BASE_TIME + timedelta(days=7))
    make_attempt(db_session, algebra, student_id=2, total_score=40, minutes=20)
    make_attempt(db_session, geometry, student_id=3, status=ExamAttemptStatusEnum.IN_PROGRESS)
    make_attempt(db_session, geometry, student_id=3, status=ExamAttemptStatusEnum.IN_PROGRESS, started_at=BASE_TIME + timedelta(days=1))
    make_attempt(db_session, geometry, student_id=3, status=ExamAttemptStatusEnum.IN_PROGRESS, started_at=BASE_TIME + timedelta(days=2))
    return algebra, geometry


def test_heat_map_omits_missing_cells(client: TestClient, cohort):
    algebra, geometry = cohort
    response = client.get("/analytics/heat-map", params={"student_ids": [1, 2]})
    assert response.status_code == 200
    data = response.json()["data"]

    cells = {(c["student_id"], c["exam_id"]): c for c in data["cells"]}
    assert set(cells) == {(1, algebra.id), (1, geometry.id), (2, algebra.id)}
    assert cells[(2, algebra.id)]["percentage"] == 40.0
    assert [s["id"] for s in data["students"]] == [1, 2]
    assert data["students"][0]["average_score"] == 90.0


def test_student_heat_map(client: TestClient, cohort):
    data = client.get("/analytics/students/2/heat-map").json()["data"]
    assert [s["id"] for s in data["students"]] == [2]
    assert len(data["cells"]) == 1


def test_interventions(client: TestClient, cohort):
    data = client.get("/analytics/interventions").json()["data"]
    quadrants = {e["student_id"]: e["quadrant"] for e in data}
    assert quadrants == {1: "Excellent", 2: "At-Risk"}

    custom = client.get("/analytics/interventions", params={"score_threshold": 95, "time_threshold": 10}).json()["data"]
    assert {e["student_id"]: e["quadrant"] for e in custom} == {1: "Struggling", 2: "Struggling"}


def test_student_trend(client: TestClient, cohort):
    data = client.get("/analytics/students/1/trend").json()["data"]
    assert [p["label"] for p in data["points"]] == ["Algebra", "Geometry"]
    assert data["direction"] == "declining"


def test_at_risk_students(client: TestClient, cohort):
    data = client.get("/analytics/at-risk").json()["data"]
    reasons = {s["student_id"]: s["reason"] for s in data}
    assert reasons == {2: "low_scores", 3: "incomplete_attempts"}


def test_exam_grades(client: TestClient, cohort):
    algebra, _ = cohort
    data = client.get(f"/analytics/exams/{algebra.id}/grades").json()["data"]

    assert data["exam_title"] == "Algebra"
    assert [g["grade"] for g in data["grades"]] == ["A", "F"]
    assert data["statistics"]["average"] == 67.5
    assert data["statistics"]["median"] == 67.5
    assert data["statistics"]["grade_distribution"] == {"A": 1, "B": 0, "C": 0, "D": 0, "F": 1}


def test_exam_grades_for_unknown_exam(client: TestClient):
    response = client.get("/analytics/exams/999/grades")
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "NOT_FOUND"


def test_exam_grades_for_exam_without_attempts(client: TestClient, db_session: Session):
    exam = make_simple_exam(db_session, title="Empty")
    data = client.get(f"/analytics/exams/{exam.id}/grades").json()["data"]
    assert data["grades"] == []
    assert data["statistics"]["total_students"] == 0
    assert data["statistics"]["average"] == 0.0


def test_exam_performance(client: TestClient, cohort):
    algebra, geometry = cohort
    rows = {r["exam_id"]: r for r in client.get("/analytics/exams/performance").json()["data"]}
    assert rows[algebra.id]["average_score"] == 67.5
    assert rows[algebra.id]["completion_rate"] == 100.0
    assert rows[geometry.id]["total_attempts"] == 4
    assert rows[geometry.id]["completion_rate"] == 25.0


def test_question_difficulty_and_student_analytics(client: TestClient, db_session: Session):
    exam = make_exam(db_session, title="Capitals", questions=[
        {"question_text": "Capital of France?", "question_type": "fib", "marks": 1, "correct_answer": "Paris"},
        {"question_text": "Capital of Australia?", "question_type": "fib", "marks": 1, "correct_answer": "Canberra"},
    ])
    france, australia = exam.questions
    for student_id, (first, second) in {1: ("Paris", "Sydney"), 2: ("paris", "Melbourne")}.items():
        attempt = make_attempt(db_session, exam, student_id=student_id)
        for question, text in ((france, first), (australia, second)):
            correct = question is france
            crud_student_answer.create(db_session, obj_in={
                "attempt_id": attempt.id,
                "question_id": question.id,
                "answer_text": text,
                "correctness": CorrectnessEnum.CORRECT if correct else CorrectnessEnum.INCORRECT,
                "score": 1.0 if correct else 0.0,
            })

    rows = client.get(f"/analytics/exams/{exam.id}/question-difficulty").json()["data"]
    levels = {r["question_id"]: r["difficulty_level"] for r in rows}
    assert levels == {france.id: "easy", australia.id: "hard"}

    analytics = client.get("/analytics/students/1").json()["data"]
    assert analytics["total_attempts"] == 1
    assert analytics["question_type_performance"]["fib"] == {"correct": 1, "total": 2, "percentage": 50.0}
    assert analytics["weaknesses"] == ["Fill in the Blank Questions"]


def test_student_analytics_without_attempts(client: TestClient):
    data = client.get("/analytics/students/77").json()["data"]
    assert data["total_attempts"] == 0
    assert data["score_trend"] == []

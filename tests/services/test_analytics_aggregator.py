from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from gradebook.core.constants import (
    AtRiskReasonEnum,
    CorrectnessEnum,
    DifficultyLevelEnum,
    ExamAttemptStatusEnum,
    InterventionQuadrantEnum,
    TrendDirectionEnum,
)
from gradebook.services.analytics_aggregator import AnalyticsAggregator

T0 = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)
COMPLETED = ExamAttemptStatusEnum.COMPLETED
IN_PROGRESS = ExamAttemptStatusEnum.IN_PROGRESS


def _exam(id, title=None, total_marks=100.0):
    return SimpleNamespace(id=id, title=title or f"Exam {id}", total_marks=total_marks)


def _attempt(id, student_id, exam_id, total_score=0.0, status=COMPLETED, day=0, minutes=30):
    started_at = T0 + timedelta(days=day)
    return SimpleNamespace(
        id=id,
        student_id=student_id,
        exam_id=exam_id,
        total_score=total_score,
        status=status,
        started_at=started_at,
        submitted_at=started_at + timedelta(minutes=minutes) if status == COMPLETED else None,
    )


@pytest.fixture
def aggregator():
    return AnalyticsAggregator()


def test_missing_heat_map_cell_is_distinct_from_zero_score(aggregator):
    exams = [_exam(1), _exam(2)]
    attempts = [_attempt(1, 7, 1, total_score=0.0), _attempt(2, 8, 2, total_score=50.0)]
    heat_map = aggregator.build_heat_map(attempts, exams, student_ids=[7, 8])

    zero_cell = heat_map.cell_for(7, 1)
    assert zero_cell is not None
    assert zero_cell.score == 0.0
    assert heat_map.cell_for(7, 2) is None
    assert len(heat_map.cells) == 2


def test_heat_map_cell_uses_most_recent_attempt(aggregator):
    exams = [_exam(1)]
    attempts = [
        _attempt(1, 7, 1, total_score=40.0, day=0),
        _attempt(2, 7, 1, total_score=90.0, day=3),
        _attempt(3, 7, 1, total_score=60.0, day=1),
    ]
    cell = aggregator.build_heat_map(attempts, exams).cell_for(7, 1)
    assert cell.attempt_id == 2
    assert cell.percentage == 90.0


def test_heat_map_tie_on_submission_time_prefers_higher_attempt_id(aggregator):
    exams = [_exam(1)]
    attempts = [_attempt(5, 7, 1, total_score=40.0), _attempt(9, 7, 1, total_score=70.0)]
    assert aggregator.build_heat_map(attempts, exams).cell_for(7, 1).attempt_id == 9


def test_heat_map_ignores_in_progress_attempts_and_averages_percentages(aggregator):
    exams = [_exam(1, total_marks=50.0), _exam(2, total_marks=200.0)]
    attempts = [
        _attempt(1, 7, 1, total_score=40.0),
        _attempt(2, 7, 2, total_score=100.0),
        _attempt(3, 7, 2, status=IN_PROGRESS, day=5),
    ]
    heat_map = aggregator.build_heat_map(attempts, exams)

    assert heat_map.cell_for(7, 2).attempt_id == 2
    assert heat_map.students[0].average_score == pytest.approx(65.0)
    assert [e.average_score for e in heat_map.exams] == [80.0, 50.0]


def test_heat_map_with_no_exams_is_empty(aggregator):
    heat_map = aggregator.build_heat_map([_attempt(1, 7, 1)], [])
    assert heat_map.cells == []
    assert heat_map.students == []


def test_heat_map_handles_naive_and_aware_timestamps(aggregator):
    naive = _attempt(1, 7, 1, total_score=10.0, day=2)
    naive.submitted_at = naive.submitted_at.replace(tzinfo=None)
    aware = _attempt(2, 7, 1, total_score=20.0, day=0)
    assert aggregator.build_heat_map([naive, aware], [_exam(1)]).cell_for(7, 1).attempt_id == 1


@pytest.mark.parametrize("score,time,expected", [
    (75, 40, InterventionQuadrantEnum.GIFTED),
    (75, 90, InterventionQuadrantEnum.EXCELLENT),
    (50, 90, InterventionQuadrantEnum.STRUGGLING),
    (50, 30, InterventionQuadrantEnum.AT_RISK),
    (70, 60, InterventionQuadrantEnum.EXCELLENT),
])
def test_quadrant_classification_with_default_thresholds(aggregator, score, time, expected):
    assert aggregator.classify_quadrant(score, time) == expected


def test_quadrant_thresholds_are_configurable(aggregator):
    assert aggregator.classify_quadrant(75, 40, score_threshold=80, time_threshold=30) == InterventionQuadrantEnum.STRUGGLING


def test_intervention_entries_sum_time_over_completed_attempts(aggregator):
    exams = [_exam(1), _exam(2)]
    attempts = [
        _attempt(1, 7, 1, total_score=80.0, minutes=25),
        _attempt(2, 7, 2, total_score=70.0, minutes=15),
        _attempt(3, 8, 1, total_score=30.0, minutes=90),
        _attempt(4, 8, 2, status=IN_PROGRESS),
    ]
    entries = {e.student_id: e for e in aggregator.build_intervention_entries(attempts, exams)}

    assert entries[7].average_score == 75.0
    assert entries[7].time_spent_minutes == 40.0
    assert entries[7].quadrant == InterventionQuadrantEnum.GIFTED
    assert entries[8].total_attempts == 1
    assert entries[8].quadrant == InterventionQuadrantEnum.STRUGGLING


def test_trend_series_is_chronological(aggregator):
    exams = [_exam(1, "Algebra"), _exam(2, "Geometry"), _exam(3, "Calculus")]
    attempts = [
        _attempt(3, 7, 3, total_score=90.0, day=4),
        _attempt(1, 7, 1, total_score=50.0, day=0),
        _attempt(2, 7, 2, total_score=60.0, day=2),
        _attempt(4, 7, 1, status=IN_PROGRESS, day=5),
    ]
    points = aggregator.build_trend_series(attempts, exams)

    assert [p.label for p in points] == ["Algebra", "Geometry", "Calculus"]
    assert [p.percentage for p in points] == [50.0, 60.0, 90.0]
    assert aggregator.trend_direction(points) == TrendDirectionEnum.IMPROVING


def test_trend_direction_declining_and_stable(aggregator):
    exams = [_exam(1)]
    declining = aggregator.build_trend_series(
        [_attempt(1, 7, 1, 90.0, day=0), _attempt(2, 7, 1, 60.0, day=1)], exams
    )
    stable = aggregator.build_trend_series(
        [_attempt(1, 7, 1, 70.0, day=0), _attempt(2, 7, 1, 73.0, day=1)], exams
    )
    assert aggregator.trend_direction(declining) == TrendDirectionEnum.DECLINING
    assert aggregator.trend_direction(stable) == TrendDirectionEnum.STABLE
    assert aggregator.trend_direction([]) == TrendDirectionEnum.STABLE


def test_at_risk_flags_low_scores_and_incomplete_attempts(aggregator):
    exams = [_exam(1)]
    attempts = [
        _attempt(1, 7, 1, total_score=90.0),
        _attempt(2, 8, 1, total_score=45.0),
        _attempt(3, 9, 1, status=IN_PROGRESS, day=1),
        _attempt(4, 9, 1, status=IN_PROGRESS, day=2),
        _attempt(5, 9, 1, status=IN_PROGRESS, day=3),
        _attempt(6, 10, 1, total_score=10.0),
        _attempt(7, 10, 1, status=IN_PROGRESS, day=1),
        _attempt(8, 10, 1, status=IN_PROGRESS, day=2),
        _attempt(9, 10, 1, status=IN_PROGRESS, day=3),
    ]
    flagged = {s.student_id: s for s in aggregator.identify_at_risk(attempts, exams)}

    assert 7 not in flagged
    assert flagged[8].reason == AtRiskReasonEnum.LOW_SCORES
    assert flagged[8].low_scores == 1
    assert flagged[9].reason == AtRiskReasonEnum.INCOMPLETE_ATTEMPTS
    assert flagged[9].incomplete_attempts == 3
    assert flagged[9].last_activity == T0 + timedelta(days=3)
    assert flagged[10].reason == AtRiskReasonEnum.BOTH
    assert flagged[10].recommendation


def test_two_incomplete_attempts_are_not_yet_at_risk(aggregator):
    attempts = [_attempt(1, 9, 1, status=IN_PROGRESS), _attempt(2, 9, 1, status=IN_PROGRESS, day=1)]
    assert aggregator.identify_at_risk(attempts, [_exam(1)]) == []


def _graded(question_type, correctness, score=0.0, marks=1.0):
    return (
        SimpleNamespace(correctness=correctness, score=score),
        SimpleNamespace(question_type=question_type, marks=marks),
    )


def test_question_type_performance_and_strengths(aggregator):
    pairs = [
        _graded("mcq", CorrectnessEnum.CORRECT, 1.0),
        _graded("mcq", CorrectnessEnum.CORRECT, 1.0),
        _graded("mcq", CorrectnessEnum.CORRECT, 1.0),
        _graded("mcq", CorrectnessEnum.CORRECT, 1.0),
        _graded("mcq", CorrectnessEnum.CORRECT, 1.0),
        _graded("fib", CorrectnessEnum.INCORRECT),
        _graded("fib", CorrectnessEnum.CORRECT, 1.0),
        _graded("open_ended", CorrectnessEnum.PARTIAL, 8.0, marks=10.0),
        _graded("open_ended", CorrectnessEnum.PARTIAL, 3.0, marks=10.0),
        _graded("open_ended", CorrectnessEnum.PENDING),
    ]
    performance = aggregator.question_type_performance(pairs)

    assert (performance.mcq.correct, performance.mcq.total) == (5, 5)
    assert performance.fib.percentage == 50.0
    assert (performance.open_ended.correct, performance.open_ended.total) == (1, 2)

    strengths, weaknesses, improvement_areas = aggregator.strengths_and_weaknesses(performance)
    assert strengths == ["Multiple Choice Questions"]
    assert weaknesses == ["Fill in the Blank Questions"]
    assert len(improvement_areas) == 1


def test_unseen_question_types_are_neither_strength_nor_weakness(aggregator):
    performance = aggregator.question_type_performance([])
    assert aggregator.strengths_and_weaknesses(performance) == ([], [], [])


def test_question_difficulty_levels(aggregator):
    questions = [
        SimpleNamespace(id=1, question_text="Easy one"),
        SimpleNamespace(id=2, question_text="Hard one"),
        SimpleNamespace(id=3, question_text="Never answered"),
    ]
    answers = [
        SimpleNamespace(question_id=1, answer_text="a", correctness=CorrectnessEnum.CORRECT, score=1.0),
        SimpleNamespace(question_id=1, answer_text="a", correctness=CorrectnessEnum.CORRECT, score=1.0),
        SimpleNamespace(question_id=2, answer_text="b", correctness=CorrectnessEnum.INCORRECT, score=0.0),
        SimpleNamespace(question_id=2, answer_text="b", correctness=CorrectnessEnum.PARTIAL, score=0.5),
        SimpleNamespace(question_id=2, answer_text="", correctness=CorrectnessEnum.INCORRECT, score=0.0),
    ]
    rows = {r.question_id: r for r in aggregator.question_difficulty(questions, answers)}

    assert rows[1].difficulty_level == DifficultyLevelEnum.EASY
    assert rows[2].difficulty_level == DifficultyLevelEnum.HARD
    assert rows[2].total_attempts == 2
    assert rows[2].average_score == 0.25
    assert 3 not in rows


def test_exam_performance(aggregator):
    exams = [_exam(1, "Algebra"), _exam(2, "Unused")]
    attempts = [
        _attempt(1, 7, 1, total_score=80.0),
        _attempt(2, 8, 1, total_score=60.0),
        _attempt(3, 8, 1, status=IN_PROGRESS, day=1),
    ]
    rows = aggregator.exam_performance(attempts, exams)

    assert rows[0].total_attempts == 3
    assert rows[0].average_score == 70.0
    assert rows[0].completion_rate == pytest.approx(200 / 3)
    assert rows[0].total_students == 2
    assert rows[1].total_attempts == 0
    assert rows[1].average_score == 0.0

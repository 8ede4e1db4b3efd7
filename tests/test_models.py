"""Tests for data model classes."""
from exam_practice.models import (
    SKIPPED, MockResult, Question, SessionAnswer, SessionStatus, StudyRecord, TestInfo,
)


def test_question_labels():
    q = Question(id="q1", text="Pick two", choices={"A": "x", "B": "y", "C": "z"}, correct_answer="AC")
    assert q.correct_labels == frozenset({"A", "C"})
    assert q.is_multiple_answer
    assert q.has_valid_choices
    assert not q.has_image_placeholder


def test_question_image_only():
    q = Question(id="q2", text="See //IMG//", choices={"A": "", "B": " "}, correct_answer="A")
    assert not q.has_valid_choices
    assert q.has_image_placeholder
    assert q.question_images == ()


def test_session_answer_derives_correctness():
    a = SessionAnswer(question_index=0, correct_labels=frozenset("AC"))
    assert not a.is_correct
    assert a.user_answer == SKIPPED
    a.selected_labels = {"C", "A"}
    assert a.is_correct
    assert a.user_answer == "AC"
    assert a.submitted is False


def test_test_info_defaults():
    t = TestInfo(id="t1", name="Sample")
    assert t.passing_score == 0
    assert t.time_limit is None
    assert t.total_questions == 0


def test_study_record_defaults():
    r = StudyRecord(test_id="t1", question_id="q1", user_answer="A", is_correct=True)
    assert r.time_taken == 0
    assert r.created_at is None


def test_mock_result_answers_default_empty():
    assert MockResult(test_id="t1", score=0, total_questions=1, time_spent=0).answers == []


def test_session_status_values():
    assert SessionStatus.IN_PROGRESS.value == "in_progress"
    assert SessionStatus("reviewing") is SessionStatus.REVIEWING

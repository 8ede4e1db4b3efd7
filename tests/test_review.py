from exam_practice.mock import MockExamSession
from exam_practice.models import MockAnswerRecord, MockResult
from exam_practice.progress import save_mock_result
from exam_practice.review import (
    build_session_review, choice_mark, get_mock_history, get_mock_result_detail, question_status,
)
from exam_practice.session import QuizSession

TEST_ID = "cloud-practitioner-sample"


def test_choice_mark():
    correct = frozenset("AC")
    assert choice_mark("A", {"A", "B"}, correct) == "correct"
    assert choice_mark("B", {"A", "B"}, correct) == "incorrect"
    assert choice_mark("C", {"A", "B"}, correct) == "missed"
    assert choice_mark("D", {"A", "B"}, correct) is None


def test_question_status():
    assert question_status(None) == "skipped"


def test_build_session_review(questions):
    session = QuizSession(questions, "t1")
    session.start()
    session.select("A")
    session.next()
    session.select("C")
    session.complete()
    rows = build_session_review(session)
    assert [r["status"] for r in rows] == ["correct", "incorrect", "skipped", "skipped", "skipped"]
    assert rows[1]["user_answer"] == "C"
    assert rows[2]["user_answer"] == "SKIPPED"
    marks = {choice.label: mark for choice, mark in rows[1]["choices"]}
    assert marks == {"A": None, "B": "missed", "C": "incorrect", "D": None}


def test_review_marks_flags(questions):
    session = MockExamSession(questions, "t1", 5, timer_factory=None)
    session.start()
    session.toggle_flag()
    session.complete()
    rows = build_session_review(session)
    assert rows[0]["flagged"]
    assert not rows[1]["flagged"]


def _save(db, score, answers=None, test_id=TEST_ID, user_id=1):
    answers = answers or [MockAnswerRecord("cps-1", "B", True, 5), MockAnswerRecord("cps-3", "A", False, 5)]
    return save_mock_result(db, user_id, MockResult(test_id, score, len(answers), 10, answers))


def test_mock_history_pagination(seeded_db):
    for score in (0, 1, 2, 1, 2):
        _save(seeded_db, score)
    page1 = get_mock_history(seeded_db, 1, page=1, limit=2)
    assert len(page1["mock_tests"]) == 2
    assert page1["pagination"] == {
        "current_page": 1, "total_pages": 3, "total_results": 5,
        "has_next_page": True, "has_prev_page": False,
    }
    page3 = get_mock_history(seeded_db, 1, page=3, limit=2)
    assert len(page3["mock_tests"]) == 1
    assert not page3["pagination"]["has_next_page"]
    ids = [r["id"] for r in get_mock_history(seeded_db, 1, limit=50)["mock_tests"]]
    assert ids == sorted(ids, reverse=True)


def test_mock_history_passed_and_percentage(seeded_db):
    _save(seeded_db, 2)
    _save(seeded_db, 1)
    results = get_mock_history(seeded_db, 1)["mock_tests"]
    by_score = {r["score"]: r for r in results}
    assert by_score[2]["percentage"] == 100
    assert by_score[2]["passed"]
    assert by_score[1]["percentage"] == 50
    assert not by_score[1]["passed"]
    assert by_score[1]["test_name"] == "Cloud Practitioner Sample Exam"


def test_mock_history_filters(seeded_db):
    _save(seeded_db, 1)
    _save(seeded_db, 1, user_id=2)
    assert get_mock_history(seeded_db, 2)["pagination"]["total_results"] == 1
    assert get_mock_history(seeded_db, 1, test_id="other")["mock_tests"] == []
    assert get_mock_history(seeded_db, 1, limit=500)["pagination"]["total_pages"] == 1


def test_mock_result_detail(seeded_db):
    saved = _save(seeded_db, 1)
    detail = get_mock_result_detail(seeded_db, 1, saved["id"])
    assert detail["mock_test"]["score"] == 1
    answers = {a["question_id"]: a for a in detail["answers"]}
    assert answers["cps-1"]["is_correct"] is True
    assert answers["cps-3"]["marks"]["A"] == "correct"
    assert answers["cps-3"]["marks"]["C"] == "missed"
    assert answers["cps-3"]["marks"]["B"] is None
    assert "Select TWO" in answers["cps-3"]["question_text"]


def test_mock_result_detail_other_user(seeded_db):
    saved = _save(seeded_db, 1)
    assert get_mock_result_detail(seeded_db, 2, saved["id"]) is None
    assert get_mock_result_detail(seeded_db, 1, 9999) is None

"""Persistence of study progress and mock exam results."""
import re
import sqlite3
from abc import ABC, abstractmethod
from datetime import datetime

from exam_practice.db import get_connection
from exam_practice.models import MockResult, StudyRecord

ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")
MAX_ANSWER_LENGTH = 10


class StoreError(Exception):
    """Raised when a progress record cannot be stored or loaded."""


class ValidationError(StoreError):
    pass


class NotFoundError(StoreError):
    pass


def _check_id(value: str, field: str) -> str:
    if not isinstance(value, str) or not ID_PATTERN.match(value):
        raise ValidationError(f"Invalid {field} format: {value!r}")
    return value


def _check_answer(value: str) -> str:
    if not isinstance(value, str) or not 1 <= len(value) <= MAX_ANSWER_LENGTH:
        raise ValidationError(f"User answer must be between 1 and {MAX_ANSWER_LENGTH} characters")
    return value


def _check_count(value: int, field: str, minimum: int = 0) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        raise ValidationError(f"{field} must be an integer >= {minimum}")
    return value


def _test_row(conn: sqlite3.Connection, test_id: str) -> sqlite3.Row:
    row = conn.execute("SELECT id, name FROM tests WHERE id = ?", (test_id,)).fetchone()
    if row is None:
        raise NotFoundError(f"Test not found: {test_id}")
    return row


def save_study_progress(
    db_path: str,
    user_id: int,
    test_id: str,
    question_id: str,
    user_answer: str,
    is_correct: bool,
    time_taken: int,
) -> dict:
    """Insert or overwrite the study record for (user, question)."""
    _check_id(test_id, "test ID")
    _check_id(question_id, "question ID")
    _check_answer(user_answer)
    _check_count(time_taken, "Time taken")
    conn = get_connection(db_path)
    try:
        exists = conn.execute(
            "SELECT id FROM questions WHERE id = ? AND test_id = ?", (question_id, test_id)
        ).fetchone()
        if exists is None:
            raise NotFoundError(f"Question {question_id} not found in test {test_id}")
        now = datetime.now().isoformat()
        conn.execute(
            """INSERT INTO study_progress
            (user_id, test_id, question_id, user_answer, is_correct, time_taken, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(user_id, question_id) DO UPDATE SET
                test_id = excluded.test_id,
                user_answer = excluded.user_answer,
                is_correct = excluded.is_correct,
                time_taken = excluded.time_taken,
                created_at = excluded.created_at""",
            (user_id, test_id, question_id, user_answer, int(bool(is_correct)), time_taken, now),
        )
        conn.commit()
        row = conn.execute(
            "SELECT id, created_at FROM study_progress WHERE user_id = ? AND question_id = ?",
            (user_id, question_id),
        ).fetchone()
    finally:
        conn.close()
    return {"id": row["id"], "created_at": row["created_at"]}


def get_study_progress(db_path: str, user_id: int, test_id: str) -> dict:
    """Prior study answers for a test, newest first, with summary statistics."""
    _check_id(test_id, "test ID")
    conn = get_connection(db_path)
    try:
        test = _test_row(conn, test_id)
        rows = conn.execute(
            """SELECT sp.question_id, sp.user_answer, sp.is_correct, sp.time_taken, sp.created_at,
                q.question_text, q.correct_answer
            FROM study_progress sp
            JOIN questions q ON sp.question_id = q.id
            WHERE sp.user_id = ? AND sp.test_id = ?
            ORDER BY sp.created_at DESC, sp.id DESC""",
            (user_id, test_id),
        ).fetchall()
    finally:
        conn.close()

    progress = [
        {
            "question_id": r["question_id"],
            "user_answer": r["user_answer"],
            "is_correct": bool(r["is_correct"]),
            "time_taken": r["time_taken"],
            "created_at": r["created_at"],
            "question_text": r["question_text"],
            "correct_answer": r["correct_answer"],
        }
        for r in rows
    ]
    total = len(progress)
    correct = sum(1 for p in progress if p["is_correct"])
    total_time = sum(p["time_taken"] for p in progress)
    return {
        "test": {"id": test["id"], "name": test["name"]},
        "progress": progress,
        "statistics": {
            "total_studied": total,
            "correct_answers": correct,
            "accuracy": round(correct / total * 100, 2) if total else 0.0,
            "total_time": total_time,
            "average_time": round(total_time / total, 2) if total else 0.0,
        },
    }


def save_mock_result(db_path: str, user_id: int, result: MockResult) -> dict:
    """Store one completed mock exam and all of its answers as a single transaction."""
    _check_id(result.test_id, "test ID")
    _check_count(result.score, "Score")
    _check_count(result.total_questions, "Total questions", minimum=1)
    _check_count(result.time_spent, "Time spent")
    if not result.answers:
        raise ValidationError("Answers must be a non-empty list")
    for answer in result.answers:
        _check_id(answer.question_id, "question ID")
        _check_answer(answer.user_answer)
        _check_count(answer.time_taken, "Time taken")

    conn = get_connection(db_path)
    try:
        _test_row(conn, result.test_id)
        completed_at = datetime.now().isoformat()
        cursor = conn.execute(
            """INSERT INTO mock_test_results
            (user_id, test_id, score, total_questions, time_spent, completed_at)
            VALUES (?, ?, ?, ?, ?, ?)""",
            (user_id, result.test_id, result.score, result.total_questions, result.time_spent, completed_at),
        )
        result_id = cursor.lastrowid
        conn.executemany(
            """INSERT INTO mock_test_answers
            (mock_test_result_id, question_id, user_answer, is_correct, time_taken)
            VALUES (?, ?, ?, ?, ?)""",
            [
                (result_id, a.question_id, a.user_answer, int(bool(a.is_correct)), a.time_taken)
                for a in result.answers
            ],
        )
        conn.commit()
    except sqlite3.Error as e:
        conn.rollback()
        raise StoreError(f"Failed to save mock test result: {e}") from e
    finally:
        conn.close()
    return {"id": result_id, "completed_at": completed_at, "answers_count": len(result.answers)}


class ProgressStore(ABC):
    """Where the synchronizer sends study and mock results."""

    @abstractmethod
    def save_study_progress(self, user_id: int, record: StudyRecord) -> dict:
        pass

    @abstractmethod
    def get_study_progress(self, user_id: int, test_id: str) -> dict:
        pass

    @abstractmethod
    def save_mock_result(self, user_id: int, result: MockResult) -> dict:
        pass


class SqliteProgressStore(ProgressStore):
    def __init__(self, db_path: str):
        self.db_path = db_path

    def save_study_progress(self, user_id: int, record: StudyRecord) -> dict:
        return save_study_progress(
            self.db_path, user_id, record.test_id, record.question_id,
            record.user_answer, record.is_correct, record.time_taken,
        )

    def get_study_progress(self, user_id: int, test_id: str) -> dict:
        return get_study_progress(self.db_path, user_id, test_id)

    def save_mock_result(self, user_id: int, result: MockResult) -> dict:
        return save_mock_result(self.db_path, user_id, result)

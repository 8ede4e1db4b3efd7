"""Question source: tests and their validated questions."""
import json
import sqlite3

from exam_practice.db import get_connection
from exam_practice.models import Question, TestInfo


def row_to_question(row: sqlite3.Row) -> Question:
    return Question(
        id=row["id"],
        number=row["question_number"] or 0,
        text=row["question_text"],
        choices=json.loads(row["choices"] or "{}"),
        correct_answer=row["correct_answer"].strip(),
        question_images=tuple(json.loads(row["question_images"] or "[]")),
        answer_images=tuple(json.loads(row["answer_images"] or "[]")),
    )


def is_valid_question(question: Question) -> bool:
    """A question needs at least one non-empty choice or an image placeholder."""
    return bool(question.correct_answer) and (
        question.has_valid_choices or question.has_image_placeholder
    )


def filter_valid_questions(questions: list[Question]) -> list[Question]:
    return [q for q in questions if is_valid_question(q)]


def get_tests(db_path: str) -> list[TestInfo]:
    conn = get_connection(db_path)
    rows = conn.execute(
        """SELECT t.*, COUNT(q.id) as total_questions
        FROM tests t LEFT JOIN questions q ON q.test_id = t.id
        GROUP BY t.id
        ORDER BY t.name"""
    ).fetchall()
    conn.close()
    return [_row_to_test(r) for r in rows]


def get_test(db_path: str, test_id: str) -> TestInfo | None:
    conn = get_connection(db_path)
    row = conn.execute(
        """SELECT t.*, (SELECT COUNT(*) FROM questions q WHERE q.test_id = t.id) as total_questions
        FROM tests t WHERE t.id = ?""",
        (test_id,),
    ).fetchone()
    conn.close()
    return _row_to_test(row) if row else None


def get_all_questions(db_path: str, test_id: str) -> list[Question]:
    """All valid questions of a test in question-number order."""
    conn = get_connection(db_path)
    rows = conn.execute(
        "SELECT * FROM questions WHERE test_id = ? ORDER BY question_number, id",
        (test_id,),
    ).fetchall()
    conn.close()
    return filter_valid_questions([row_to_question(r) for r in rows])


def get_question(db_path: str, test_id: str, question_id: str) -> Question | None:
    conn = get_connection(db_path)
    row = conn.execute(
        "SELECT * FROM questions WHERE test_id = ? AND id = ?", (test_id, question_id)
    ).fetchone()
    conn.close()
    return row_to_question(row) if row else None


def _row_to_test(row: sqlite3.Row) -> TestInfo:
    return TestInfo(
        id=row["id"],
        name=row["name"],
        description=row["description"] or "",
        category=row["category"] or "",
        difficulty=row["difficulty"] or "",
        time_limit=row["time_limit"],
        passing_score=row["passing_score"] or 0,
        total_questions=row["total_questions"],
    )

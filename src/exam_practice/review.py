"""Review of finished sessions and stored mock exam history."""
import json
from typing import Optional

from exam_practice.db import get_connection
from exam_practice.models import SKIPPED
from exam_practice.scoring import parse_labels

MAX_HISTORY_LIMIT = 50


def choice_mark(label: str, selected, correct) -> Optional[str]:
    """How a choice is highlighted in review.

    "correct": picked and right, "incorrect": picked and wrong,
    "missed": right but not picked, None: neither.
    """
    if label in selected:
        return "correct" if label in correct else "incorrect"
    if label in correct:
        return "missed"
    return None


def question_status(answer) -> str:
    if answer is None or not answer.submitted:
        return "skipped"
    return "correct" if answer.is_correct else "incorrect"


def build_session_review(session) -> list[dict]:
    """Per-question review rows for a session, in presentation order."""
    rows = []
    for index, question in enumerate(session.questions):
        answer = session.answer_for(index)
        submitted = answer is not None and answer.submitted
        selected = answer.selected_labels if submitted else set()
        rows.append({
            "index": index,
            "question": question,
            "status": question_status(answer),
            "user_answer": answer.user_answer if submitted else SKIPPED,
            "flagged": index in session.flagged,
            "choices": [
                (choice, choice_mark(choice.label, selected, question.correct_labels))
                for choice in session.choices_for(index)
            ],
        })
    return rows


def _percentage(score: int, total: int) -> int:
    return round(score / total * 100) if total else 0


def _result_summary(row) -> dict:
    percentage = _percentage(row["score"], row["total_questions"])
    passing_score = row["passing_score"] or 0
    return {
        "id": row["id"],
        "test_id": row["test_id"],
        "test_name": row["test_name"],
        "score": row["score"],
        "total_questions": row["total_questions"],
        "time_spent": row["time_spent"],
        "completed_at": row["completed_at"],
        "passing_score": passing_score,
        "percentage": percentage,
        "passed": percentage >= passing_score,
    }


def get_mock_history(
    db_path: str, user_id: int, page: int = 1, limit: int = 10, test_id: Optional[str] = None
) -> dict:
    """Completed mock exams, newest first, one page at a time."""
    page = max(1, page)
    limit = max(1, min(limit, MAX_HISTORY_LIMIT))
    where = "WHERE mtr.user_id = ?"
    params: list = [user_id]
    if test_id:
        where += " AND mtr.test_id = ?"
        params.append(test_id)

    conn = get_connection(db_path)
    total_results = conn.execute(
        f"SELECT COUNT(*) FROM mock_test_results mtr {where}", params
    ).fetchone()[0]
    rows = conn.execute(
        f"""SELECT mtr.*, t.name as test_name, t.passing_score
        FROM mock_test_results mtr JOIN tests t ON mtr.test_id = t.id
        {where}
        ORDER BY mtr.completed_at DESC, mtr.id DESC
        LIMIT ? OFFSET ?""",
        params + [limit, (page - 1) * limit],
    ).fetchall()
    conn.close()

    total_pages = -(-total_results // limit)
    return {
        "mock_tests": [_result_summary(r) for r in rows],
        "pagination": {
            "current_page": page,
            "total_pages": total_pages,
            "total_results": total_results,
            "has_next_page": page < total_pages,
            "has_prev_page": page > 1,
        },
    }


def get_mock_result_detail(db_path: str, user_id: int, mock_test_id: int) -> Optional[dict]:
    """One stored mock exam with every answer joined to its question."""
    conn = get_connection(db_path)
    row = conn.execute(
        """SELECT mtr.*, t.name as test_name, t.passing_score
        FROM mock_test_results mtr JOIN tests t ON mtr.test_id = t.id
        WHERE mtr.id = ? AND mtr.user_id = ?""",
        (mock_test_id, user_id),
    ).fetchone()
    if row is None:
        conn.close()
        return None
    answer_rows = conn.execute(
        """SELECT mta.question_id, mta.user_answer, mta.is_correct, mta.time_taken,
            q.question_text, q.correct_answer, q.choices, q.question_images, q.answer_images
        FROM mock_test_answers mta JOIN questions q ON mta.question_id = q.id
        WHERE mta.mock_test_result_id = ?
        ORDER BY q.question_number, mta.id""",
        (mock_test_id,),
    ).fetchall()
    conn.close()

    answers = []
    for a in answer_rows:
        selected = set() if a["user_answer"] == SKIPPED else parse_labels(a["user_answer"])
        correct = parse_labels(a["correct_answer"])
        choices = json.loads(a["choices"] or "{}")
        answers.append({
            "question_id": a["question_id"],
            "question_text": a["question_text"],
            "choices": choices,
            "marks": {label: choice_mark(label, selected, correct) for label in choices},
            "user_answer": a["user_answer"],
            "correct_answer": a["correct_answer"],
            "is_correct": bool(a["is_correct"]),
            "time_taken": a["time_taken"],
            "question_images": json.loads(a["question_images"] or "[]"),
            "answer_images": json.loads(a["answer_images"] or "[]"),
        })
    return {"mock_test": _result_summary(row), "answers": answers}

"""User statistics across study and mock exam history."""
from exam_practice.db import get_connection


def get_performance_level(accuracy: float) -> str:
    if accuracy >= 90:
        return "Excellent"
    elif accuracy >= 80:
        return "Good"
    elif accuracy >= 70:
        return "Fair"
    elif accuracy >= 60:
        return "Needs Improvement"
    return "Poor"


def get_performance_color(accuracy: float) -> str:
    if accuracy >= 90:
        return "green"
    elif accuracy >= 80:
        return "bright_green"
    elif accuracy >= 70:
        return "yellow"
    elif accuracy >= 60:
        return "dark_orange"
    return "red"


def calculate_accuracy(correct: int, total: int) -> int:
    if not total:
        return 0
    return round(correct / total * 100)


def _study_summary(row) -> dict:
    total = row["total_studied"] or 0
    correct = row["correct_answers"] or 0
    return {
        "total_studied": total,
        "correct_answers": correct,
        "accuracy": calculate_accuracy(correct, total),
        "average_time": round(row["avg_time"] or 0),
    }


def _mock_summary(row) -> dict:
    avg_score = row["avg_score"] or 0
    avg_total = row["avg_total_questions"] or 0
    return {
        "total_tests": row["total_tests"] or 0,
        "average_score": round(avg_score),
        "average_percentage": round(avg_score / avg_total * 100) if avg_total else 0,
        "average_time_spent": round(row["avg_time_spent"] or 0),
    }


def get_user_statistics(db_path: str, user_id: int) -> dict:
    conn = get_connection(db_path)
    overall_study = conn.execute(
        """SELECT COUNT(*) as total_studied, SUM(is_correct) as correct_answers,
            AVG(time_taken) as avg_time
        FROM study_progress WHERE user_id = ?""",
        (user_id,),
    ).fetchone()
    overall_mock = conn.execute(
        """SELECT COUNT(*) as total_tests, AVG(score) as avg_score,
            AVG(total_questions) as avg_total_questions, AVG(time_spent) as avg_time_spent
        FROM mock_test_results WHERE user_id = ?""",
        (user_id,),
    ).fetchone()
    study_rows = conn.execute(
        """SELECT sp.test_id, t.name as test_name, COUNT(*) as total_studied,
            SUM(sp.is_correct) as correct_answers, AVG(sp.time_taken) as avg_time
        FROM study_progress sp JOIN tests t ON sp.test_id = t.id
        WHERE sp.user_id = ?
        GROUP BY sp.test_id ORDER BY t.name""",
        (user_id,),
    ).fetchall()
    mock_rows = conn.execute(
        """SELECT mtr.test_id, t.name as test_name, t.passing_score, COUNT(*) as total_tests,
            AVG(mtr.score) as avg_score, AVG(mtr.total_questions) as avg_total_questions,
            AVG(mtr.time_spent) as avg_time_spent
        FROM mock_test_results mtr JOIN tests t ON mtr.test_id = t.id
        WHERE mtr.user_id = ?
        GROUP BY mtr.test_id ORDER BY t.name""",
        (user_id,),
    ).fetchall()
    conn.close()

    return {
        "overall": {
            "study": _study_summary(overall_study),
            "mock_tests": _mock_summary(overall_mock),
        },
        "study_by_test": [
            {"test_id": r["test_id"], "test_name": r["test_name"], **_study_summary(r)}
            for r in study_rows
        ],
        "mock_tests_by_test": [
            {
                "test_id": r["test_id"],
                "test_name": r["test_name"],
                "passing_score": r["passing_score"] or 0,
                **_mock_summary(r),
            }
            for r in mock_rows
        ],
    }

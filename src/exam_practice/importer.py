"""Import question banks from JSON or YAML files."""
import json
import logging
from datetime import datetime
from pathlib import Path

from exam_practice.db import get_connection
from exam_practice.progress import ID_PATTERN
from exam_practice.questions import is_valid_question, row_to_question

logger = logging.getLogger(__name__)


class ImportFormatError(ValueError):
    """Raised when a question bank file cannot be understood."""


def read_question_bank(file_path: str) -> dict:
    path = Path(file_path)
    suffix = path.suffix.lower()
    text = path.read_text(encoding="utf-8")
    if suffix == ".json":
        try:
            data = json.loads(text)
        except ValueError as e:
            raise ImportFormatError(f"Could not parse {path.name}: {e}") from e
    elif suffix in (".yaml", ".yml"):
        import yaml
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ImportFormatError(f"Could not parse {path.name}: {e}") from e
    else:
        raise ImportFormatError(f"Unsupported question bank format: {suffix or path.name}")
    if not isinstance(data, dict) or not isinstance(data.get("test"), dict):
        raise ImportFormatError(f"{path.name} must contain a 'test' mapping and a 'questions' list")
    if not isinstance(data.get("questions"), list):
        raise ImportFormatError(f"{path.name} must contain a 'questions' list")
    return data


def _normalize_question(test_id: str, position: int, raw: dict) -> dict:
    if not isinstance(raw, dict):
        raise ImportFormatError(f"Question {position} is not a mapping")
    number = raw.get("question_number") or position
    question_id = str(raw.get("id") or raw.get("question_id") or f"{test_id}-{number}")
    if not ID_PATTERN.match(question_id):
        raise ImportFormatError(f"Invalid question id: {question_id!r}")
    choices = raw.get("choices") or {}
    if isinstance(choices, list):
        # ["text", ...] becomes {"A": "text", ...}
        choices = {chr(ord("A") + i): text for i, text in enumerate(choices)}
    if not isinstance(choices, dict):
        raise ImportFormatError(f"Question {question_id}: choices must be a mapping")
    labelled = {}
    for key, text in choices.items():
        label = str(key).strip().upper()
        if label in labelled:
            raise ImportFormatError(f"Question {question_id}: duplicate choice label {label!r}")
        labelled[label] = "" if text is None else str(text)
    return {
        "id": question_id,
        "question_number": int(number),
        "question_text": str(raw.get("question_text") or raw.get("text") or ""),
        "choices": json.dumps(labelled),
        "correct_answer": str(raw.get("correct_answer") or "").strip().upper(),
        "question_images": json.dumps(list(raw.get("question_images") or [])),
        "answer_images": json.dumps(list(raw.get("answer_images") or [])),
    }


def import_question_bank(db_path: str, file_path: str) -> dict:
    """Insert or update one test and its questions.

    Existing rows are updated in place so stored progress that refers to
    them survives a re-import.
    """
    data = read_question_bank(file_path)
    test = data["test"]
    test_id = str(test.get("id") or "")
    if not ID_PATTERN.match(test_id):
        raise ImportFormatError(f"Invalid test id: {test_id!r}")
    if not test.get("name"):
        raise ImportFormatError(f"Test {test_id} has no name")
    questions = [_normalize_question(test_id, i, raw) for i, raw in enumerate(data["questions"], start=1)]

    conn = get_connection(db_path)
    try:
        conn.execute(
            """INSERT INTO tests (id, name, description, category, difficulty, time_limit, passing_score, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                name = excluded.name, description = excluded.description,
                category = excluded.category, difficulty = excluded.difficulty,
                time_limit = excluded.time_limit, passing_score = excluded.passing_score""",
            (
                test_id, test["name"], test.get("description", ""), test.get("category", ""),
                test.get("difficulty", ""), test.get("time_limit"), test.get("passing_score", 0),
                datetime.now().isoformat(),
            ),
        )
        conn.executemany(
            """INSERT INTO questions
            (id, test_id, question_number, question_text, choices, correct_answer, question_images, answer_images)
            VALUES (:id, :test_id, :question_number, :question_text, :choices, :correct_answer, :question_images, :answer_images)
            ON CONFLICT(id) DO UPDATE SET
                test_id = excluded.test_id, question_number = excluded.question_number,
                question_text = excluded.question_text, choices = excluded.choices,
                correct_answer = excluded.correct_answer, question_images = excluded.question_images,
                answer_images = excluded.answer_images""",
            [dict(q, test_id=test_id) for q in questions],
        )
        conn.commit()
        rows = conn.execute("SELECT * FROM questions WHERE test_id = ?", (test_id,)).fetchall()
    finally:
        conn.close()

    hidden = sum(1 for r in rows if not is_valid_question(row_to_question(r)))
    if hidden:
        logger.warning("%d questions in %s have no usable choices and will be hidden", hidden, test_id)
    logger.info("Imported %d questions into %s", len(questions), test_id)
    return {"test_id": test_id, "name": test["name"], "questions": len(questions), "hidden": hidden}

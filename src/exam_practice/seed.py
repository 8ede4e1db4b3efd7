"""Seed the database with the bundled sample test."""
from pathlib import Path

from exam_practice.db import get_connection
from exam_practice.importer import import_question_bank

CONTENT_DIR = Path(__file__).parent / "content"
SAMPLE_TEST = CONTENT_DIR / "sample_test.json"


def is_seeded(db_path: str) -> bool:
    """Check whether the database already holds at least one test."""
    conn = get_connection(db_path)
    count = conn.execute("SELECT COUNT(*) FROM tests").fetchone()[0]
    conn.close()
    return count > 0


def seed_sample_test(db_path: str) -> dict:
    return import_question_bank(db_path, str(SAMPLE_TEST))


def seed_all(db_path: str) -> None:
    """Load bundled content into an empty database."""
    if is_seeded(db_path):
        return
    seed_sample_test(db_path)

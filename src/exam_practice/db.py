"""Database initialization and connection management."""
import sqlite3
from pathlib import Path

from exam_practice.config import settings

DEFAULT_DB_PATH = settings.DB_PATH

SCHEMA = """
CREATE TABLE IF NOT EXISTS tests (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    description TEXT DEFAULT '',
    category TEXT DEFAULT '',
    difficulty TEXT DEFAULT '',
    time_limit INTEGER,
    passing_score INTEGER DEFAULT 0,
    created_at TEXT
);

CREATE TABLE IF NOT EXISTS questions (
    id TEXT PRIMARY KEY,
    test_id TEXT NOT NULL REFERENCES tests(id) ON DELETE CASCADE,
    question_number INTEGER,
    question_text TEXT NOT NULL,
    choices TEXT NOT NULL,  -- JSON object label -> text
    correct_answer TEXT NOT NULL,
    question_images TEXT DEFAULT '[]',
    answer_images TEXT DEFAULT '[]'
);

CREATE TABLE IF NOT EXISTS study_progress (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL,
    test_id TEXT NOT NULL REFERENCES tests(id) ON DELETE CASCADE,
    question_id TEXT NOT NULL REFERENCES questions(id) ON DELETE CASCADE,
    user_answer TEXT NOT NULL,
    is_correct INTEGER NOT NULL,
    time_taken INTEGER NOT NULL DEFAULT 0,
    created_at TEXT,
    UNIQUE(user_id, question_id)
);

CREATE TABLE IF NOT EXISTS mock_test_results (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL,
    test_id TEXT NOT NULL REFERENCES tests(id) ON DELETE CASCADE,
    score INTEGER NOT NULL,
    total_questions INTEGER NOT NULL,
    time_spent INTEGER NOT NULL,
    completed_at TEXT
);

CREATE TABLE IF NOT EXISTS mock_test_answers (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    mock_test_result_id INTEGER NOT NULL REFERENCES mock_test_results(id) ON DELETE CASCADE,
    question_id TEXT NOT NULL REFERENCES questions(id) ON DELETE CASCADE,
    user_answer TEXT NOT NULL,
    is_correct INTEGER NOT NULL,
    time_taken INTEGER NOT NULL DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_questions_test_id ON questions(test_id);
CREATE INDEX IF NOT EXISTS idx_study_progress_user_test ON study_progress(user_id, test_id);
CREATE INDEX IF NOT EXISTS idx_mock_results_user ON mock_test_results(user_id);
CREATE INDEX IF NOT EXISTS idx_mock_answers_result ON mock_test_answers(mock_test_result_id);
"""


def get_connection(db_path: str = DEFAULT_DB_PATH) -> sqlite3.Connection:
    """Return a SQLite connection with row factory and foreign keys enabled."""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def init_db(db_path: str = DEFAULT_DB_PATH) -> None:
    """Initialize the database, creating all tables if they don't exist."""
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = get_connection(db_path)
    conn.executescript(SCHEMA)
    conn.commit()
    conn.close()

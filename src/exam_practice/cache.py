"""Local key/value cache for offline study progress and session markers."""
import json
import logging
import sqlite3
from pathlib import Path

from exam_practice.config import settings

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS cache_entries (
    key TEXT PRIMARY KEY,
    value TEXT
);
"""

STUDY_PREFIX = "study_progress_"
MOCK_ACTIVE_MARKER = "mock_test_active"


class LocalCache:
    """Durable keyed store local to this machine.

    Read and write failures are logged and treated as a miss; the cache is
    never allowed to interrupt a session.
    """

    def __init__(self, path: str | None = None):
        self.path = path or settings.CACHE_PATH
        self._ready = False

    def _connect(self) -> sqlite3.Connection:
        if not self._ready:
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.path)
        if not self._ready:
            conn.executescript(SCHEMA)
            self._ready = True
        return conn

    def get(self, key: str, default=None):
        try:
            conn = self._connect()
            try:
                row = conn.execute("SELECT value FROM cache_entries WHERE key = ?", (key,)).fetchone()
            finally:
                conn.close()
            return json.loads(row[0]) if row else default
        except (sqlite3.Error, OSError, ValueError) as e:
            logger.error("Error reading local cache key %s: %s", key, e)
            return default

    def set(self, key: str, value) -> None:
        try:
            conn = self._connect()
            try:
                conn.execute(
                    "INSERT INTO cache_entries (key, value) VALUES (?, ?) ON CONFLICT(key) DO UPDATE SET value=excluded.value",
                    (key, json.dumps(value)),
                )
                conn.commit()
            finally:
                conn.close()
        except (sqlite3.Error, OSError, TypeError) as e:
            logger.error("Error writing local cache key %s: %s", key, e)

    def delete(self, key: str) -> None:
        try:
            conn = self._connect()
            try:
                conn.execute("DELETE FROM cache_entries WHERE key = ?", (key,))
                conn.commit()
            finally:
                conn.close()
        except (sqlite3.Error, OSError) as e:
            logger.error("Error deleting local cache key %s: %s", key, e)

    # Study progress, keyed per test then per question

    def get_study_progress(self, test_id: str) -> dict:
        return self.get(STUDY_PREFIX + test_id, {}) or {}

    def save_study_progress(self, test_id: str, question_id: str, record: dict) -> None:
        existing = self.get_study_progress(test_id)
        existing[question_id] = record
        self.set(STUDY_PREFIX + test_id, existing)

    # Resumability markers

    def set_marker(self, name: str) -> None:
        self.set(name, True)

    def clear_marker(self, name: str) -> None:
        self.delete(name)

    def has_marker(self, name: str) -> bool:
        return bool(self.get(name, False))

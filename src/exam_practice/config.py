"""Application settings with environment overrides."""
import os
from pathlib import Path

ENV_PREFIX = "EXAM_PRACTICE_"
DATA_DIR = Path.home() / ".exam_practice"


def _env(name: str, default: str | None = None) -> str | None:
    return os.environ.get(ENV_PREFIX + name, default)


def _parse_int_env(name: str, default: int) -> int:
    """Parse integer from environment variable."""
    raw = _env(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


class Settings:
    def __init__(self) -> None:
        self.DB_PATH: str = _env("DB_PATH", str(DATA_DIR / "practice.db"))
        self.CACHE_PATH: str = _env("CACHE_PATH", str(DATA_DIR / "local_cache.db"))
        self.USER_ID: int = _parse_int_env("USER_ID", 1)
        self.LOG_LEVEL: str = _env("LOG_LEVEL", "WARNING").upper()
        self.LOG_FILE: str | None = _env("LOG_FILE")
        self.QUESTIONS_PER_PAGE: int = _parse_int_env("QUESTIONS_PER_PAGE", 10)
        self.MOCK_DEFAULT_QUESTIONS: int = _parse_int_env("MOCK_DEFAULT_QUESTIONS", 65)
        self.MOCK_MAX_QUESTIONS: int = _parse_int_env("MOCK_MAX_QUESTIONS", 65)
        # Baseline exam: 65 questions in 120 minutes
        self.MOCK_BASE_QUESTIONS: int = _parse_int_env("MOCK_BASE_QUESTIONS", 65)
        self.MOCK_BASE_MINUTES: int = _parse_int_env("MOCK_BASE_MINUTES", 120)
        self.SYNC_WORKERS: int = max(1, _parse_int_env("SYNC_WORKERS", 1))


settings = Settings()

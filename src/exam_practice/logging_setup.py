"""Logging configuration for the practice app."""
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.logging import RichHandler

from exam_practice.config import settings


def configure_logging(level: str | int | None = None, log_file: str | None = None) -> logging.Logger:
    """Install console (and optional file) handlers on the root logger once.

    Calling it again only adjusts the level, so handlers are never duplicated.
    """
    level = level if level is not None else settings.LOG_LEVEL
    log_file = log_file if log_file is not None else settings.LOG_FILE
    root = logging.getLogger()
    root.setLevel(level)
    if root.handlers:
        return logging.getLogger("exam_practice")

    console = RichHandler(rich_tracebacks=True, show_path=False)
    console.setFormatter(logging.Formatter("%(name)s: %(message)s", datefmt="[%X]"))
    root.addHandler(console)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(log_file, maxBytes=5_000_000, backupCount=3)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s - %(levelname)s - %(name)s - %(message)s")
        )
        root.addHandler(file_handler)
    return logging.getLogger("exam_practice")

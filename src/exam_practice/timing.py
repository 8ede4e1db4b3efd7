"""Mock exam time budget, countdown timer, and time formatting."""
import logging
import threading
from typing import Callable, Optional

from exam_practice.config import settings

logger = logging.getLogger(__name__)


def mock_time_limit(
    question_count: int,
    base_questions: Optional[int] = None,
    base_minutes: Optional[int] = None,
) -> int:
    """Seconds allowed for a mock exam of ``question_count`` questions.

    Proportional to the baseline exam (65 questions in 120 minutes), rounded
    up to the next whole second and then up to the next 15-second boundary.
    """
    base_questions = base_questions or settings.MOCK_BASE_QUESTIONS
    base_minutes = base_minutes or settings.MOCK_BASE_MINUTES
    # Integer ceil division keeps 65 -> 7200 exact
    total_seconds = -(-base_minutes * 60 * question_count // base_questions)
    return -(-total_seconds // 15) * 15


def format_clock(seconds: int) -> str:
    seconds = max(0, int(seconds))
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def format_duration(seconds: int) -> str:
    """Human readable duration: "45s", "2m 30s", "1h 5m"."""
    seconds = max(0, int(seconds))
    if seconds < 60:
        return f"{seconds}s"
    if seconds < 3600:
        minutes, secs = divmod(seconds, 60)
        return f"{minutes}m {secs}s" if secs else f"{minutes}m"
    hours, rest = divmod(seconds, 3600)
    minutes = rest // 60
    return f"{hours}h {minutes}m" if minutes else f"{hours}h"


def format_time_limit(seconds: int) -> str:
    minutes, secs = divmod(int(seconds), 60)
    if secs == 0:
        return f"{minutes} minutes"
    return f"{minutes} minutes {secs} seconds"


class CountdownTimer:
    """Calls ``on_tick`` every ``interval`` seconds on a daemon thread.

    Stops when cancelled or when ``on_tick`` returns False. ``cancel()`` never
    blocks, so it is safe to call while holding the session lock.
    """

    def __init__(self, on_tick: Callable[[], bool], interval: float = 1.0, name: str = "mock-timer"):
        self._on_tick = on_tick
        self.interval = interval
        self.name = name
        self._stopped = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()

    def _run(self) -> None:
        while not self._stopped.wait(self.interval):
            try:
                keep_running = self._on_tick()
            except Exception:
                logger.exception("Timer tick failed")
                keep_running = True
            if keep_running is False:
                self._stopped.set()

    def cancel(self) -> None:
        self._stopped.set()

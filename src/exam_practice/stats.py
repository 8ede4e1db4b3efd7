"""Running counters for an active session."""
from dataclasses import dataclass


@dataclass
class StatsSnapshot:
    answered: int
    correct: int
    skipped: int
    flagged: int
    total: int
    accuracy: float
    time_seconds: int
    time_is_remaining: bool = False

    @property
    def accuracy_percent(self) -> int:
        return round(self.accuracy * 100)

    @property
    def incorrect(self) -> int:
        return self.answered - self.correct


class SessionStats:
    """Counters kept in step with session transitions, O(1) per update."""

    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self.answered = 0
        self.correct = 0
        self.skipped = 0
        self.flagged = 0

    def record_answer(self, is_correct: bool) -> None:
        self.answered += 1
        if is_correct:
            self.correct += 1

    def adjust_skipped(self, delta: int) -> None:
        self.skipped = max(0, self.skipped + delta)

    def adjust_flagged(self, delta: int) -> None:
        self.flagged = max(0, self.flagged + delta)

    @property
    def accuracy(self) -> float:
        if self.answered == 0:
            return 0.0
        return self.correct / self.answered

    def snapshot(self, total: int, time_seconds: int, time_is_remaining: bool = False) -> StatsSnapshot:
        return StatsSnapshot(
            answered=self.answered,
            correct=self.correct,
            skipped=self.skipped,
            flagged=self.flagged,
            total=total,
            accuracy=self.accuracy,
            time_seconds=int(time_seconds),
            time_is_remaining=time_is_remaining,
        )

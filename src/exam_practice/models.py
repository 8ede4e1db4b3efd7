"""Data classes for the practice session domain model."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from exam_practice.scoring import format_answer, score

IMAGE_PLACEHOLDER = "//IMG//"
SKIPPED = "SKIPPED"


class SessionStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    REVIEWING = "reviewing"
    CLOSED = "closed"


class SyncStatus(str, Enum):
    IDLE = "idle"
    SAVING = "saving"
    SAVED = "saved"
    FAILED = "failed"


@dataclass(frozen=True)
class Question:
    id: str
    text: str
    choices: dict
    correct_answer: str
    number: int = 0
    question_images: tuple = ()
    answer_images: tuple = ()

    @property
    def correct_labels(self) -> frozenset:
        return frozenset(self.correct_answer)

    @property
    def is_multiple_answer(self) -> bool:
        return len(self.correct_labels) > 1

    @property
    def has_valid_choices(self) -> bool:
        return any(text and text.strip() for text in self.choices.values())

    @property
    def has_image_placeholder(self) -> bool:
        return IMAGE_PLACEHOLDER in self.text


@dataclass(frozen=True)
class ShuffledChoice:
    label: str
    text: str


@dataclass
class SessionAnswer:
    """Answer state for one question in one session.

    ``is_correct`` is derived from the current selection on every access.
    """
    question_index: int
    correct_labels: frozenset
    selected_labels: set = field(default_factory=set)
    time_taken_seconds: int = 0
    submitted: bool = False

    @property
    def is_correct(self) -> bool:
        return score(self.selected_labels, self.correct_labels)

    @property
    def user_answer(self) -> str:
        return format_answer(self.selected_labels) if self.selected_labels else SKIPPED


@dataclass
class TestInfo:
    id: str
    name: str
    description: str = ""
    category: str = ""
    difficulty: str = ""
    time_limit: Optional[int] = None
    passing_score: int = 0
    total_questions: int = 0


@dataclass
class StudyRecord:
    test_id: str
    question_id: str
    user_answer: str
    is_correct: bool
    time_taken: int = 0
    created_at: Optional[str] = None


@dataclass
class MockAnswerRecord:
    question_id: str
    user_answer: str
    is_correct: bool
    time_taken: int = 0


@dataclass
class MockResult:
    test_id: str
    score: int
    total_questions: int
    time_spent: int
    answers: list = field(default_factory=list)

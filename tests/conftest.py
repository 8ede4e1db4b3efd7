import random
from concurrent.futures import Executor, Future

import pytest

from exam_practice.cache import LocalCache
from exam_practice.db import init_db
from exam_practice.models import Question
from exam_practice.progress import ProgressStore, StoreError
from exam_practice.seed import seed_all
from exam_practice.sync import ProgressSynchronizer


@pytest.fixture
def tmp_db(tmp_path):
    """Provide a temporary SQLite database path for tests."""
    db_path = str(tmp_path / "test_practice.db")
    return db_path


@pytest.fixture
def seeded_db(tmp_db):
    init_db(tmp_db)
    seed_all(tmp_db)
    return tmp_db


@pytest.fixture
def cache(tmp_path):
    return LocalCache(str(tmp_path / "cache.db"))


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ImmediateExecutor(Executor):
    """Runs submitted work on the calling thread."""

    def submit(self, fn, *args, **kwargs):
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        return future


class RecordingStore(ProgressStore):
    def __init__(self):
        self.study = []
        self.mock = []
        self.progress = []
        self.fail = False

    def save_study_progress(self, user_id, record):
        if self.fail:
            raise StoreError("store offline")
        self.study.append((user_id, record))
        return {"id": len(self.study), "created_at": record.created_at}

    def get_study_progress(self, user_id, test_id):
        if self.fail:
            raise StoreError("store offline")
        return {"test": {"id": test_id, "name": test_id}, "progress": list(self.progress), "statistics": {}}

    def save_mock_result(self, user_id, result):
        if self.fail:
            raise StoreError("store offline")
        self.mock.append((user_id, result))
        return {"id": len(self.mock), "completed_at": "now", "answers_count": len(result.answers)}


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def rng():
    return random.Random(42)


@pytest.fixture
def store():
    return RecordingStore()


@pytest.fixture
def synchronizer(store, cache):
    sync = ProgressSynchronizer(store, user_id=1, cache=cache, executor=ImmediateExecutor())
    yield sync
    sync.shutdown()


def make_question(qid: str, correct: str = "A", choices: dict | None = None, text: str | None = None, number: int = 0,
                  images: tuple = ()) -> Question:
    if choices is None:
        choices = {"A": "Alpha", "B": "Bravo", "C": "Charlie", "D": "Delta"}
    return Question(
        id=qid,
        text=text or f"Question {qid}?",
        choices=choices,
        correct_answer=correct,
        number=number,
        question_images=images,
    )


@pytest.fixture
def questions():
    """Five questions; q3 needs two answers (A and C)."""
    return [
        make_question("q1", "A", number=1),
        make_question("q2", "B", number=2),
        make_question("q3", "AC", number=3),
        make_question("q4", "D", number=4),
        make_question("q5", "C", number=5),
    ]


@pytest.fixture
def many_questions():
    return [make_question(f"m{i}", "ABCD"[i % 4], number=i) for i in range(1, 26)]


@pytest.fixture
def question_factory():
    return make_question

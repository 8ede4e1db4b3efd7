"""Timed mock exam sessions."""
import logging
from typing import Callable, Optional, Sequence

from exam_practice.cache import MOCK_ACTIVE_MARKER, LocalCache
from exam_practice.config import settings
from exam_practice.models import SKIPPED, MockAnswerRecord, MockResult, Question, SessionStatus
from exam_practice.session import QuizSession
from exam_practice.shuffle import shuffle
from exam_practice.stats import StatsSnapshot
from exam_practice.timing import CountdownTimer, mock_time_limit

logger = logging.getLogger(__name__)


def clamp_question_count(requested: Optional[int], available: int) -> int:
    """Requested mock size limited to 1..MOCK_MAX_QUESTIONS and to the bank size."""
    requested = settings.MOCK_DEFAULT_QUESTIONS if requested is None else requested
    count = max(1, min(int(requested), settings.MOCK_MAX_QUESTIONS))
    return min(count, available)


class MockExamSession(QuizSession):
    """A random draw of questions answered against a countdown.

    Correctness stays hidden until completion. The exam completes when the
    user submits or the countdown reaches zero, and the result is handed to
    the synchronizer exactly once.
    """

    mode = "mock"
    instant_feedback = False
    tracks_skips = True
    allows_flags = True

    def __init__(
        self,
        questions: Sequence[Question],
        test_id: str = "",
        question_count: Optional[int] = None,
        *,
        cache: Optional[LocalCache] = None,
        timer_factory: Optional[Callable[..., CountdownTimer]] = CountdownTimer,
        tick_interval: float = 1.0,
        **kwargs,
    ):
        self.question_count = clamp_question_count(question_count, len(questions))
        self.cache = cache
        self._timer_factory = timer_factory
        self._tick_interval = tick_interval
        self._timer: Optional[CountdownTimer] = None
        self.result: Optional[MockResult] = None
        if cache is not None and cache.has_marker(MOCK_ACTIVE_MARKER):
            logger.warning("Discarding an unfinished mock exam from a previous run")
            cache.clear_marker(MOCK_ACTIVE_MARKER)
        super().__init__(questions, test_id, **kwargs)

    def _draw_questions(self) -> list[Question]:
        return shuffle(self._source, self._rng)[: self.question_count]

    def _reset(self) -> None:
        super()._reset()
        self.time_limit = mock_time_limit(len(self.questions)) if self.questions else 0
        self.time_remaining = self.time_limit
        self.result = None

    def stats(self) -> StatsSnapshot:
        with self._lock:
            return self.counters.snapshot(self.total, self.time_remaining, time_is_remaining=True)

    # -- timer --------------------------------------------------------

    def _on_start(self) -> None:
        if self.cache is not None:
            self.cache.set_marker(MOCK_ACTIVE_MARKER)
        if self._timer_factory is not None:
            generation = self.generation
            self._timer = self._timer_factory(
                lambda: self._tick_for(generation), interval=self._tick_interval
            )
            self._timer.start()
        logger.info("Mock exam started: %d questions, %ds", self.total, self.time_limit)

    def _tick_for(self, generation: int) -> bool:
        # ticks from a timer of an earlier attempt are stale
        if generation != self.generation:
            return False
        return self.tick()

    def tick(self) -> bool:
        """Advance the countdown by one second; returns whether it keeps running."""
        completed = False
        with self._lock:
            if self.status != SessionStatus.IN_PROGRESS or self.time_remaining <= 0:
                return False
            self.time_remaining -= 1
            if self.time_remaining == 0:
                logger.info("Mock exam time expired")
                completed = self._complete()
        self._notify("tick")
        if completed:
            self._notify("completed")
        return not completed

    def _stop_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    # -- lifecycle hooks ----------------------------------------------

    def _leave(self, index: int, moving_forward: bool) -> None:
        self._finalize_pending(index)
        super()._leave(index, moving_forward)

    def _finalize_pending(self, index: int) -> None:
        answer = self.answers[index]
        if answer is not None and not answer.submitted and answer.selected_labels:
            self._finalize(index)

    def _before_complete(self) -> None:
        self._stop_timer()
        self._finalize_pending(self.cursor)

    def _on_complete(self) -> None:
        if self.cache is not None:
            self.cache.clear_marker(MOCK_ACTIVE_MARKER)
        self.result = self.build_result()
        logger.info(
            "Mock exam completed: %d/%d in %ds",
            self.result.score, self.result.total_questions, self.result.time_spent,
        )
        if self.synchronizer is not None:
            self.synchronizer.save_mock_result(self.result, on_done=self._sync_started())

    def _on_abandon(self) -> None:
        self._stop_timer()
        if self.cache is not None and self.status == SessionStatus.IN_PROGRESS:
            self.cache.clear_marker(MOCK_ACTIVE_MARKER)

    def build_result(self) -> MockResult:
        """Result record for every drawn question; unanswered ones are SKIPPED."""
        total = self.total
        time_spent = self.elapsed_seconds()
        # even split across the exam, kept for compatibility with stored history
        per_question = time_spent // total if total else 0
        records = []
        score = 0
        for index, question in enumerate(self.questions):
            answer = self.answers[index]
            if answer is not None and answer.submitted:
                is_correct = answer.is_correct
                records.append(MockAnswerRecord(question.id, answer.user_answer, is_correct, per_question))
            else:
                is_correct = False
                records.append(MockAnswerRecord(question.id, SKIPPED, False, 0))
            if is_correct:
                score += 1
        return MockResult(
            test_id=self.test_id,
            score=score,
            total_questions=total,
            time_spent=time_spent,
            answers=records,
        )

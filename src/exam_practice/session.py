"""Session state machine shared by all practice modes."""
import logging
import random
import threading
import time
from typing import Callable, Optional, Sequence

from exam_practice.choices import ChoicePresentationMap
from exam_practice.models import Question, SessionAnswer, SessionStatus, SyncStatus
from exam_practice.shuffle import shuffle
from exam_practice.stats import SessionStats, StatsSnapshot

logger = logging.getLogger(__name__)

Listener = Callable[["QuizSession", str], None]


class QuizSession:
    """One attempt at a test.

    All mutations are serialized on a re-entrant lock. Calls that do not fit
    the current state (answering after completion, a cursor outside the
    question list, a late timer tick) are ignored and return None or False.
    Listeners registered with ``subscribe`` are told about every change.
    """

    mode = "base"
    instant_feedback = True
    tracks_skips = False
    allows_flags = False

    def __init__(
        self,
        questions: Sequence[Question],
        test_id: str = "",
        *,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.monotonic,
        synchronizer=None,
    ):
        self.test_id = test_id
        self._source = list(questions)
        self._rng = rng
        self._clock = clock
        self.synchronizer = synchronizer
        self._lock = threading.RLock()
        self._listeners: list[Listener] = []
        self.generation = 0
        self.counters = SessionStats()
        self.choice_map = ChoicePresentationMap(rng)
        self._sync_in_flight = 0
        self._reset()

    # -- construction -------------------------------------------------

    def _draw_questions(self) -> list[Question]:
        return list(self._source)

    def _build_choices(self) -> None:
        self.choice_map.build(self.questions)

    def _reset(self) -> None:
        self.status = SessionStatus.NOT_STARTED
        self.questions = self._draw_questions()
        self.choice_map.clear()
        self.answers: list[Optional[SessionAnswer]] = [None] * len(self.questions)
        self.cursor = 0
        self.skipped: set[int] = set()
        self.flagged: set[int] = set()
        self.counters.reset()
        self.started_at: Optional[float] = None
        self.completed_at: Optional[float] = None
        self._arrivals: dict[int, float] = {}
        self.sync_status = SyncStatus.IDLE
        self._sync_in_flight = 0
        self._build_choices()

    # -- listeners ----------------------------------------------------

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, event: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(self, event)
            except Exception:
                logger.exception("Session listener failed on %s", event)

    # -- queries ------------------------------------------------------

    @property
    def total(self) -> int:
        return len(self.questions)

    @property
    def is_in_progress(self) -> bool:
        return self.status == SessionStatus.IN_PROGRESS

    @property
    def is_finished(self) -> bool:
        return self.status in (SessionStatus.COMPLETED, SessionStatus.REVIEWING)

    @property
    def current_question(self) -> Optional[Question]:
        if 0 <= self.cursor < self.total:
            return self.questions[self.cursor]
        return None

    def choices_for(self, index: Optional[int] = None) -> tuple:
        index = self.cursor if index is None else index
        if not 0 <= index < self.total:
            return ()
        with self._lock:
            return self.choice_map.ensure(index, self.questions[index])

    def answer_for(self, index: Optional[int] = None) -> Optional[SessionAnswer]:
        index = self.cursor if index is None else index
        if 0 <= index < self.total:
            return self.answers[index]
        return None

    def is_answered(self, index: int) -> bool:
        answer = self.answer_for(index)
        return answer is not None and answer.submitted

    def selected_labels(self, index: Optional[int] = None) -> set:
        answer = self.answer_for(index)
        return set(answer.selected_labels) if answer else set()

    def reveal(self, index: Optional[int] = None) -> bool:
        """Whether correctness of the question may be shown right now."""
        if self.is_finished:
            return True
        return self.instant_feedback and self.is_answered(self.cursor if index is None else index)

    def elapsed_seconds(self) -> int:
        if self.started_at is None:
            return 0
        end = self.completed_at if self.completed_at is not None else self._clock()
        return max(0, int(end - self.started_at))

    def stats(self) -> StatsSnapshot:
        with self._lock:
            return self.counters.snapshot(self.total, self.elapsed_seconds())

    # -- lifecycle ----------------------------------------------------

    def start(self) -> bool:
        with self._lock:
            if self.status != SessionStatus.NOT_STARTED or not self.questions:
                return False
            self.status = SessionStatus.IN_PROGRESS
            self.started_at = self._clock()
            self._arrive(self.cursor)
            self._on_start()
        self._notify("started")
        return True

    def _on_start(self) -> None:
        pass

    def complete(self) -> bool:
        with self._lock:
            completed = self._complete()
        if completed:
            self._notify("completed")
        return completed

    def _complete(self) -> bool:
        if self.status != SessionStatus.IN_PROGRESS:
            return False
        self._before_complete()
        self.status = SessionStatus.COMPLETED
        self.completed_at = self._clock()
        self._on_complete()
        return True

    def _before_complete(self) -> None:
        pass

    def _on_complete(self) -> None:
        pass

    def show_details(self) -> bool:
        with self._lock:
            if self.status != SessionStatus.COMPLETED:
                return False
            self.status = SessionStatus.REVIEWING
        self._notify("reviewing")
        return True

    def back(self) -> bool:
        with self._lock:
            if self.status != SessionStatus.REVIEWING:
                return False
            self.status = SessionStatus.COMPLETED
        self._notify("completed")
        return True

    def restart(self) -> bool:
        """Draw a fresh attempt. Stored progress is left untouched."""
        with self._lock:
            if not self.is_finished:
                return False
            self.generation += 1
            self._on_abandon()
            self._reset()
        self._notify("restarted")
        return True

    def close(self) -> None:
        """Abandon the session for good; in-flight saves finish but are no longer applied."""
        with self._lock:
            if self.status == SessionStatus.CLOSED:
                return
            self.generation += 1
            self._on_abandon()
            self.status = SessionStatus.CLOSED
        self._notify("closed")

    def _on_abandon(self) -> None:
        pass

    # -- answering ----------------------------------------------------

    def _can_answer(self, index: int) -> bool:
        return index == self.cursor

    def _answer_slot(self, index: Optional[int]) -> Optional[int]:
        index = self.cursor if index is None else index
        if not self.is_in_progress or not 0 <= index < self.total:
            return None
        if not self._can_answer(index):
            return None
        if self.is_answered(index):
            return None
        return index

    def select(self, label: str, question_index: Optional[int] = None) -> Optional[SessionAnswer]:
        """Pick a choice label.

        Single-answer questions are finalized at once; multiple-answer
        questions toggle the label in a pending selection until ``submit``.
        """
        label = str(label).strip().upper()
        with self._lock:
            index = self._answer_slot(question_index)
            if index is None:
                return None
            question = self.questions[index]
            offered = {choice.label for choice in self.choice_map.ensure(index, question)}
            if label not in offered:
                return None
            answer = self.answers[index]
            if answer is None:
                answer = SessionAnswer(question_index=index, correct_labels=question.correct_labels)
                self.answers[index] = answer
            if question.is_multiple_answer:
                answer.selected_labels ^= {label}
                event = "selection"
            else:
                answer.selected_labels = {label}
                self._finalize(index)
                event = "answered"
        self._notify(event)
        return answer

    def select_position(self, position: int, index: Optional[int] = None) -> Optional[SessionAnswer]:
        """Select by 0-based display position in the shuffled choice list."""
        index = self.cursor if index is None else index
        with self._lock:
            self.choices_for(index)
            label = self.choice_map.label_at(index, position)
        if label is None:
            return None
        return self.select(label, index)

    def submit(self, question_index: Optional[int] = None) -> Optional[SessionAnswer]:
        """Finalize a pending multiple-answer selection."""
        with self._lock:
            index = self._answer_slot(question_index)
            if index is None:
                return None
            answer = self.answers[index]
            if answer is None or not answer.selected_labels:
                return None
            self._finalize(index)
        self._notify("answered")
        return answer

    def _finalize(self, index: int) -> None:
        answer = self.answers[index]
        answer.submitted = True
        answer.time_taken_seconds = self._time_on(index)
        self.counters.record_answer(answer.is_correct)
        if index in self.skipped:
            self.skipped.discard(index)
            self.counters.adjust_skipped(-1)
        self._after_finalize(index, answer)

    def _after_finalize(self, index: int, answer: SessionAnswer) -> None:
        pass

    def _arrive(self, index: int) -> None:
        if 0 <= index < self.total:
            self._arrivals.setdefault(index, self._clock())

    def _time_on(self, index: int) -> int:
        started = self._arrivals.get(index, self.started_at)
        if started is None:
            return 0
        return max(0, round(self._clock() - started))

    # -- navigation ---------------------------------------------------

    def next(self) -> Optional[int]:
        """Advance one question. On the last question the cursor stays put,
        but an unanswered question is still recorded as skipped."""
        with self._lock:
            at_end = self.is_in_progress and self.cursor == self.total - 1
            if at_end:
                before = len(self.skipped)
                self._leave(self.cursor, moving_forward=True)
                at_end = len(self.skipped) != before
        if at_end:
            self._notify("skipped")
            return None
        return self.go_to(self.cursor + 1)

    def previous(self) -> Optional[int]:
        return self.go_to(self.cursor - 1)

    def go_to(self, index: int) -> Optional[int]:
        with self._lock:
            if not self.is_in_progress or not 0 <= index < self.total or index == self.cursor:
                return None
            self._leave(self.cursor, moving_forward=index > self.cursor)
            self.cursor = index
            self._arrive(index)
        self._notify("moved")
        return index

    def _leave(self, index: int, moving_forward: bool) -> None:
        if self.tracks_skips and moving_forward and not self.is_answered(index):
            if index not in self.skipped:
                self.skipped.add(index)
                self.counters.adjust_skipped(1)

    def toggle_flag(self, index: Optional[int] = None) -> Optional[bool]:
        """Flag or unflag a question; returns the new flag state."""
        index = self.cursor if index is None else index
        with self._lock:
            if not self.allows_flags or not self.is_in_progress or not 0 <= index < self.total:
                return None
            if index in self.flagged:
                self.flagged.discard(index)
                self.counters.adjust_flagged(-1)
                flagged = False
            else:
                self.flagged.add(index)
                self.counters.adjust_flagged(1)
                flagged = True
        self._notify("flagged")
        return flagged

    # -- synchronization ----------------------------------------------

    def _sync_started(self) -> Callable[[bool], None]:
        """Mark a save as dispatched; the returned callback records its outcome."""
        generation = self.generation
        self._sync_in_flight += 1
        self.sync_status = SyncStatus.SAVING

        def done(ok: bool) -> None:
            with self._lock:
                if generation != self.generation:
                    return
                self._sync_in_flight = max(0, self._sync_in_flight - 1)
                if not ok:
                    self.sync_status = SyncStatus.FAILED
                elif self._sync_in_flight == 0:
                    self.sync_status = SyncStatus.SAVED
            self._notify("sync")

        return done


class RandomPracticeSession(QuizSession):
    """Every question of the test in random order, with instant feedback."""

    mode = "random"

    def _draw_questions(self) -> list[Question]:
        return shuffle(self._source, self._rng)

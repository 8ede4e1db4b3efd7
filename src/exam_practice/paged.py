"""Paged practice and study sessions."""
import logging
from typing import Optional, Sequence

from exam_practice.config import settings
from exam_practice.models import SKIPPED, Question, SessionAnswer, StudyRecord
from exam_practice.scoring import parse_labels
from exam_practice.session import QuizSession

logger = logging.getLogger(__name__)


def visible_pages(current: int, page_count: int, max_visible: int = 5) -> list[int]:
    """Window of page numbers centred on ``current`` for a pager."""
    if page_count <= max_visible:
        return list(range(1, page_count + 1))
    start = max(1, current - max_visible // 2)
    end = min(page_count, start + max_visible - 1)
    start = max(1, end - max_visible + 1)
    return list(range(start, end + 1))


class PracticeSession(QuizSession):
    """Questions in source order, a page at a time, with instant feedback.

    Choice orderings for a page are shuffled when the page is built and stay
    fixed after that. Any question on the current page can be answered.
    """

    mode = "practice"

    def __init__(self, questions: Sequence[Question], test_id: str = "", *, page_size: Optional[int] = None, **kwargs):
        self.page_size = max(1, page_size or settings.QUESTIONS_PER_PAGE)
        super().__init__(questions, test_id, **kwargs)

    @property
    def page(self) -> int:
        return self.cursor // self.page_size + 1

    @property
    def page_count(self) -> int:
        return -(-self.total // self.page_size)

    def page_indices(self, page: Optional[int] = None) -> range:
        page = self.page if page is None else page
        start = (page - 1) * self.page_size
        return range(start, min(start + self.page_size, self.total))

    def page_questions(self) -> list[tuple[int, Question]]:
        return [(index, self.questions[index]) for index in self.page_indices()]

    def visible_pages(self, max_visible: int = 5) -> list[int]:
        return visible_pages(self.page, self.page_count, max_visible)

    def _build_choices(self) -> None:
        self._build_page()

    def _build_page(self) -> None:
        for index in self.page_indices():
            self.choice_map.ensure(index, self.questions[index])
            if self.started_at is not None and not self.is_answered(index):
                self._arrive(index)

    def _on_start(self) -> None:
        self._build_page()

    def _can_answer(self, index: int) -> bool:
        return index in self.page_indices()

    def go_to_page(self, page: int) -> Optional[int]:
        with self._lock:
            if not self.is_in_progress or not 1 <= page <= self.page_count or page == self.page:
                return None
            self.cursor = (page - 1) * self.page_size
            self._build_page()
        self._notify("moved")
        return page

    def next_page(self) -> Optional[int]:
        return self.go_to_page(self.page + 1)

    def previous_page(self) -> Optional[int]:
        return self.go_to_page(self.page - 1)

    def go_to(self, index: int) -> Optional[int]:
        if not 0 <= index < self.total:
            return None
        return self.go_to_page(index // self.page_size + 1)

    def next(self) -> Optional[int]:
        return self.next_page()

    def previous(self) -> Optional[int]:
        return self.previous_page()


class StudySession(PracticeSession):
    """Paged practice whose answers are saved as they are finalized.

    Previously saved answers are restored on construction so a study pass can
    be resumed where it was left.
    """

    mode = "study"

    def __init__(self, questions: Sequence[Question], test_id: str = "", *, resume: bool = True, **kwargs):
        super().__init__(questions, test_id, **kwargs)
        if resume and self.synchronizer is not None:
            self.load_progress()

    def load_progress(self) -> int:
        """Apply saved answers to unanswered questions; returns how many were restored."""
        records = self.synchronizer.load_study_progress(self.test_id)
        restored = 0
        with self._lock:
            for index, question in enumerate(self.questions):
                record = records.get(question.id)
                if not record or self.is_answered(index):
                    continue
                user_answer = record.get("user_answer") or ""
                if not user_answer or user_answer == SKIPPED:
                    continue
                answer = SessionAnswer(
                    question_index=index,
                    correct_labels=question.correct_labels,
                    selected_labels=set(parse_labels(user_answer)),
                    time_taken_seconds=record.get("time_taken") or 0,
                    submitted=True,
                )
                self.answers[index] = answer
                self.counters.record_answer(answer.is_correct)
                restored += 1
        if restored:
            logger.info("Restored %d study answers for %s", restored, self.test_id)
            self._notify("restored")
        return restored

    def _after_finalize(self, index: int, answer: SessionAnswer) -> None:
        if self.synchronizer is None:
            return
        record = StudyRecord(
            test_id=self.test_id,
            question_id=self.questions[index].id,
            user_answer=answer.user_answer,
            is_correct=answer.is_correct,
            time_taken=answer.time_taken_seconds,
        )
        self.synchronizer.save_study_progress(record, on_done=self._sync_started())

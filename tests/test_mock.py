import threading

from exam_practice.cache import MOCK_ACTIVE_MARKER
from exam_practice.config import settings
from exam_practice.mock import MockExamSession, clamp_question_count
from exam_practice.models import SKIPPED, SessionStatus, SyncStatus


def _answer_current(session):
    question = session.current_question
    for label in question.correct_labels:
        session.select(label)
    if question.is_multiple_answer:
        session.submit()


def _mock(questions, count=None, **kwargs):
    kwargs.setdefault("timer_factory", None)
    return MockExamSession(questions, "t1", count, **kwargs)


def test_clamp_question_count():
    assert clamp_question_count(0, 100) == 1
    assert clamp_question_count(-4, 100) == 1
    assert clamp_question_count(500, 100) == settings.MOCK_MAX_QUESTIONS
    assert clamp_question_count(10, 3) == 3
    assert clamp_question_count(None, 100) == settings.MOCK_DEFAULT_QUESTIONS


def test_mock_draws_requested_count(many_questions, rng):
    session = _mock(many_questions, 10, rng=rng)
    assert session.total == 10
    assert len({q.id for q in session.questions}) == 10
    assert session.time_limit == 1110
    assert session.time_remaining == 1110


def test_correctness_hidden_until_completion(questions):
    session = _mock(questions, 5)
    session.start()
    session.select(session.current_question.correct_answer[0])
    assert not session.reveal()
    session.complete()
    assert session.reveal(0)


def test_stats_report_time_remaining(questions):
    session = _mock(questions, 5)
    session.start()
    session.tick()
    stats = session.stats()
    assert stats.time_is_remaining
    assert stats.time_seconds == session.time_limit - 1


def test_skip_then_answer(questions):
    session = _mock(questions, 5)
    session.start()
    session.next()
    assert session.skipped == {0}
    assert session.stats().skipped == 1
    session.previous()
    _answer_current(session)
    assert session.skipped == set()
    assert session.stats().skipped == 0


def test_moving_back_does_not_skip(questions):
    session = _mock(questions, 5)
    session.start()
    session.go_to(3)
    assert session.skipped == {0}
    session.previous()
    assert session.skipped == {0}


def test_flag_toggle(questions):
    session = _mock(questions, 5)
    session.start()
    assert session.toggle_flag() is True
    assert session.toggle_flag(3) is True
    assert session.stats().flagged == 2
    assert session.toggle_flag() is False
    assert session.flagged == {3}


def test_pending_multi_selection_finalized_when_leaving(questions):
    session = _mock(questions, 5)
    session.start()
    index = next(i for i, q in enumerate(session.questions) if q.is_multiple_answer)
    session.go_to(index)
    session.select("A")
    session.select("C")
    assert not session.is_answered(index)
    session.go_to(1 if index == 0 else 0)
    assert session.is_answered(index)
    assert session.answer_for(index).is_correct
    assert index not in session.skipped


def test_timer_forced_completion_records_skips(questions, clock, synchronizer, store):
    session = _mock(questions, 5, clock=clock, synchronizer=synchronizer)
    session.start()
    first = session.current_question
    session.select(next(iter(first.correct_labels)))
    for _ in range(session.time_limit):
        clock.advance(1)
        session.tick()
    assert session.status == SessionStatus.COMPLETED
    assert session.time_remaining == 0
    assert not session.tick()
    assert len(store.mock) == 1
    _, result = store.mock[0]
    assert result.total_questions == 5
    assert result.time_spent == session.time_limit
    assert len(result.answers) == 5
    skipped = [a for a in result.answers if a.user_answer == SKIPPED]
    assert len(skipped) == 4
    assert all(not a.is_correct and a.time_taken == 0 for a in skipped)


def test_result_uses_even_time_split(questions, clock):
    session = _mock(questions, 5, clock=clock)
    session.start()
    for _ in range(5):
        _answer_current(session)
        clock.advance(10)
        session.next()
    clock.advance(3)
    session.complete()
    result = session.result
    assert result.score == 5
    assert result.time_spent == 53
    assert all(a.time_taken == 10 for a in result.answers)


def test_complete_finalizes_pending_selection_at_cursor(questions):
    session = _mock(questions, 5)
    session.start()
    index = next(i for i, q in enumerate(session.questions) if q.is_multiple_answer)
    session.go_to(index)
    session.select("A")
    session.complete()
    record = session.result.answers[index]
    assert record.user_answer == "A"
    assert not record.is_correct


def test_result_saved_once_and_sync_status(questions, synchronizer, store):
    session = _mock(questions, 5, synchronizer=synchronizer)
    session.start()
    session.complete()
    session.complete()
    assert len(store.mock) == 1
    assert session.sync_status == SyncStatus.SAVED


def test_failed_save_sets_failed_status(questions, synchronizer, store):
    store.fail = True
    session = _mock(questions, 5, synchronizer=synchronizer)
    session.start()
    session.complete()
    assert session.sync_status == SyncStatus.FAILED
    assert session.status == SessionStatus.COMPLETED


def test_active_marker_lifecycle(questions, cache):
    session = _mock(questions, 5, cache=cache)
    assert not cache.has_marker(MOCK_ACTIVE_MARKER)
    session.start()
    assert cache.has_marker(MOCK_ACTIVE_MARKER)
    session.complete()
    assert not cache.has_marker(MOCK_ACTIVE_MARKER)


def test_stale_marker_cleared_on_new_session(questions, cache):
    cache.set_marker(MOCK_ACTIVE_MARKER)
    _mock(questions, 5, cache=cache)
    assert not cache.has_marker(MOCK_ACTIVE_MARKER)


def test_close_abandons_attempt(questions, cache, synchronizer, store):
    session = _mock(questions, 5, cache=cache, synchronizer=synchronizer)
    session.start()
    session.close()
    assert not cache.has_marker(MOCK_ACTIVE_MARKER)
    assert store.mock == []


def test_restart_resets_countdown(questions):
    session = _mock(questions, 5)
    session.start()
    session.tick()
    session.complete()
    assert session.restart()
    assert session.time_remaining == session.time_limit
    assert session.result is None
    assert session.skipped == set()


def test_stale_timer_ticks_are_ignored(questions):
    session = _mock(questions, 5)
    session.start()
    session.complete()
    session.restart()
    session.start()
    assert session._tick_for(0) is False
    assert session.time_remaining == session.time_limit


def test_background_timer_completes_exam(question_factory):
    completed = threading.Event()
    session = MockExamSession([question_factory("q1")], "t1", 1, tick_interval=0.001)
    session.time_remaining = 3
    session.subscribe(lambda s, event: event == "completed" and completed.set())
    session.start()
    assert completed.wait(5)
    assert session.status == SessionStatus.COMPLETED
    assert session.result.answers[0].user_answer == SKIPPED


def test_empty_question_bank_cannot_start():
    session = _mock([], 10)
    assert session.total == 0
    assert not session.start()


def test_close_is_final(questions, synchronizer, store):
    session = _mock(questions, 5, synchronizer=synchronizer)
    session.start()
    _answer_current(session)
    session.close()
    assert session.status == SessionStatus.CLOSED
    assert not session.complete()
    assert not session.restart()
    assert session.result is None
    assert store.mock == []


def test_next_on_last_question_records_skip(questions):
    session = _mock(questions, 5)
    session.start()
    for _ in range(4):
        _answer_current(session)
        session.next()
    assert session.next() is None
    assert session.cursor == 4
    assert session.skipped == {4}
    assert session.stats().skipped == 1
    _answer_current(session)
    assert session.skipped == set()
    assert session.next() is None
    assert session.skipped == set()


def test_image_only_question_is_unanswerable(question_factory):
    image_only = question_factory("img", "A", choices={}, text="Which service is shown? //IMG//",
                                  images=("diagram.png",))
    session = _mock([question_factory("q1", "B"), image_only], 2)
    index = next(i for i, q in enumerate(session.questions) if q.id == "img")
    session.start()
    session.go_to(index)
    assert session.choices_for(index) == ()
    assert session.select("A") is None
    assert not session.is_answered(index)
    session.complete()
    record = session.result.answers[index]
    assert record.question_id == "img"
    assert record.user_answer == SKIPPED
    assert record.is_correct is False
    assert session.result.score == 0

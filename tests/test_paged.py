from exam_practice.models import SyncStatus
from exam_practice.paged import PracticeSession, StudySession, visible_pages


def test_visible_pages_window():
    assert visible_pages(1, 3) == [1, 2, 3]
    assert visible_pages(1, 10) == [1, 2, 3, 4, 5]
    assert visible_pages(6, 10) == [4, 5, 6, 7, 8]
    assert visible_pages(10, 10) == [6, 7, 8, 9, 10]


def test_practice_keeps_source_order(many_questions):
    session = PracticeSession(many_questions, "t1")
    assert [q.id for q in session.questions] == [q.id for q in many_questions]
    assert session.page_count == 3
    assert session.page == 1


def test_choices_built_per_page(many_questions):
    session = PracticeSession(many_questions, "t1")
    assert len(session.choice_map) == 10
    session.start()
    session.next_page()
    assert session.page == 2
    assert session.cursor == 10
    assert len(session.choice_map) == 20
    first_page_order = session.choice_map.get(0)
    session.previous_page()
    assert session.choice_map.get(0) == first_page_order


def test_any_question_on_page_can_be_answered(many_questions):
    session = PracticeSession(many_questions, "t1")
    session.start()
    q = many_questions[7]
    assert session.select(q.correct_answer, question_index=7).is_correct
    assert session.select("A", question_index=12) is None
    assert session.stats().answered == 1


def test_page_navigation_bounds(many_questions):
    session = PracticeSession(many_questions, "t1")
    session.start()
    assert session.previous_page() is None
    assert session.go_to_page(3) == 3
    assert session.page_indices() == range(20, 25)
    assert session.next_page() is None
    assert session.go_to_page(0) is None
    assert session.go_to(5) == 1
    assert session.cursor == 0


def test_time_measured_from_page_arrival(many_questions, clock):
    session = PracticeSession(many_questions, "t1", clock=clock)
    session.start()
    clock.advance(20)
    session.go_to_page(2)
    clock.advance(5)
    answer = session.select(many_questions[11].correct_answer, question_index=11)
    assert answer.time_taken_seconds == 5


def test_practice_does_not_track_skips(many_questions):
    session = PracticeSession(many_questions, "t1")
    session.start()
    session.next_page()
    assert session.skipped == set()


def test_study_saves_each_finalized_answer(questions, synchronizer, store, cache):
    session = StudySession(questions, "t1", synchronizer=synchronizer)
    session.start()
    session.select("A", question_index=0)
    session.select("A", question_index=2)
    session.select("C", question_index=2)
    assert len(store.study) == 1
    session.submit(2)
    assert len(store.study) == 2
    _, record = store.study[1]
    assert record.question_id == "q3"
    assert record.user_answer == "AC"
    assert record.is_correct
    assert session.sync_status == SyncStatus.SAVED
    assert set(cache.get_study_progress("t1")) == {"q1", "q3"}


def test_study_resumes_saved_answers(questions, synchronizer, store):
    store.progress = [
        {"question_id": "q2", "user_answer": "B", "is_correct": True, "time_taken": 12},
        {"question_id": "q4", "user_answer": "A", "is_correct": False, "time_taken": 3},
        {"question_id": "q2", "user_answer": "C", "is_correct": False, "time_taken": 9},
    ]
    session = StudySession(questions, "t1", synchronizer=synchronizer)
    assert session.is_answered(1)
    assert session.selected_labels(1) == {"B"}
    assert session.answer_for(1).time_taken_seconds == 12
    assert session.is_answered(3)
    stats = session.stats()
    assert stats.answered == 2
    assert stats.correct == 1
    session.start()
    assert session.select("A", question_index=1) is None


def test_study_falls_back_to_cache_when_store_unavailable(questions, synchronizer, store, cache):
    cache.save_study_progress("t1", "q5", {"question_id": "q5", "user_answer": "C", "is_correct": True, "time_taken": 4})
    store.fail = True
    session = StudySession(questions, "t1", synchronizer=synchronizer)
    assert session.is_answered(4)
    assert session.stats().correct == 1


def test_study_failed_save_keeps_answer(questions, synchronizer, store):
    store.fail = True
    session = StudySession(questions, "t1", synchronizer=synchronizer, resume=False)
    session.start()
    answer = session.select("A", question_index=0)
    assert answer.submitted
    assert session.sync_status == SyncStatus.FAILED
    assert session.stats().answered == 1


def test_study_restart_keeps_stored_progress(questions, synchronizer, store):
    session = StudySession(questions, "t1", synchronizer=synchronizer)
    session.start()
    session.select("A", question_index=0)
    session.complete()
    session.restart()
    assert session.stats().answered == 0
    assert len(store.study) == 1


def test_late_sync_result_ignored_after_restart(questions, store, cache):
    from concurrent.futures import Future

    from exam_practice.sync import ProgressSynchronizer

    futures = []

    class HeldExecutor:
        def submit(self, fn, *args):
            future = Future()
            futures.append((future, fn, args))
            return future

        def shutdown(self, wait=True):
            pass

    sync = ProgressSynchronizer(store, user_id=1, cache=cache, executor=HeldExecutor())
    session = StudySession(questions, "t1", synchronizer=sync, resume=False)
    session.start()
    session.select("A", question_index=0)
    assert session.sync_status == SyncStatus.SAVING
    session.complete()
    session.restart()
    future, fn, args = futures[0]
    future.set_result(fn(*args))
    assert session.sync_status == SyncStatus.IDLE
    assert len(store.study) == 1

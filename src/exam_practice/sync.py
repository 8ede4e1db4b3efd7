"""Background saving of session results to the progress store."""
import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import asdict
from datetime import datetime
from functools import partial
from typing import Callable, Optional

from exam_practice.cache import LocalCache
from exam_practice.config import settings
from exam_practice.models import MockResult, StudyRecord
from exam_practice.progress import ProgressStore

logger = logging.getLogger(__name__)

DoneCallback = Callable[[bool], None]


class ProgressSynchronizer:
    """Sends study records and mock results to a ``ProgressStore`` off the caller's thread.

    Failures are logged and reported through the optional ``on_done``
    callback; they never propagate into the session that asked for the save.
    """

    def __init__(
        self,
        store: ProgressStore,
        user_id: Optional[int] = None,
        cache: Optional[LocalCache] = None,
        executor: Optional[Executor] = None,
    ):
        self.store = store
        self.user_id = settings.USER_ID if user_id is None else user_id
        self.cache = cache
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=settings.SYNC_WORKERS, thread_name_prefix="progress-sync"
        )
        self._pending: set[Future] = set()
        self._idle = threading.Condition()

    def save_study_progress(self, record: StudyRecord, on_done: Optional[DoneCallback] = None) -> Future:
        if record.created_at is None:
            record.created_at = datetime.now().isoformat()
        if self.cache is not None:
            self.cache.save_study_progress(record.test_id, record.question_id, asdict(record))
        return self._dispatch(
            self.store.save_study_progress, record, f"study progress for {record.question_id}", on_done
        )

    def save_mock_result(self, result: MockResult, on_done: Optional[DoneCallback] = None) -> Future:
        return self._dispatch(
            self.store.save_mock_result, result, f"mock result for {result.test_id}", on_done
        )

    def load_study_progress(self, test_id: str) -> dict[str, dict]:
        """Latest record per question id, from the store or else the local cache."""
        try:
            data = self.store.get_study_progress(self.user_id, test_id)
        except Exception as e:
            logger.warning("Could not load study progress for %s, using local cache: %s", test_id, e)
            return self.cache.get_study_progress(test_id) if self.cache is not None else {}
        records: dict[str, dict] = {}
        # rows arrive newest first
        for item in data.get("progress", []):
            records.setdefault(item["question_id"], item)
        return records

    def flush(self, timeout: Optional[float] = None) -> bool:
        """Wait for outstanding saves; False if some are still running after ``timeout``."""
        with self._idle:
            return self._idle.wait_for(lambda: not self._pending, timeout)

    def shutdown(self, wait: bool = True) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=wait)

    def _dispatch(self, save, payload, description: str, on_done: Optional[DoneCallback]) -> Future:
        try:
            future = self._executor.submit(save, self.user_id, payload)
        except RuntimeError as e:
            logger.error("Could not schedule save of %s: %s", description, e)
            future = Future()
            future.set_exception(e)
            self._report(on_done, False)
            return future
        with self._idle:
            self._pending.add(future)
        future.add_done_callback(partial(self._finished, description=description, on_done=on_done))
        return future

    def _finished(self, future: Future, description: str, on_done: Optional[DoneCallback]) -> None:
        error = future.exception()
        if error is not None:
            logger.error("Error saving %s: %s", description, error)
        else:
            logger.info("Saved %s", description)
        self._report(on_done, error is None)
        with self._idle:
            self._pending.discard(future)
            self._idle.notify_all()

    @staticmethod
    def _report(on_done: Optional[DoneCallback], ok: bool) -> None:
        if on_done is None:
            return
        try:
            on_done(ok)
        except Exception:
            logger.exception("Save callback failed")

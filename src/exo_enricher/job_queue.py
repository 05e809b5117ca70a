"""
job_queue.py - Single-lane, rate-limited task queue

Tasks run one at a time on a worker thread, spaced at least
``min_interval_s`` apart. A task that raises ``RateLimitedError`` is put
back at the head of the queue after its backoff, so it runs again before
anything enqueued after it.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from concurrent.futures import Future
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RateLimitedError(Exception):
    """Raised by a task when the remote side asks to retry later."""

    def __init__(self, retry_after_s: float, message: str | None = None) -> None:
        self.retry_after_s = max(0.0, float(retry_after_s))
        super().__init__(message or f"rate limited, retry after {self.retry_after_s:.3f}s")


class TaskCancelledError(Exception):
    """Outcome of a job whose cancellation token fired before it finished."""


class CancellationToken:
    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block up to ``timeout`` seconds; True if cancelled meanwhile."""
        return self._event.wait(timeout)


@dataclass
class _Job(Generic[T]):
    task: Callable[[], T]
    future: Future = field(default_factory=Future)
    token: CancellationToken | None = None
    attempts: int = 0

    def cancelled(self) -> bool:
        return (self.token is not None and self.token.cancelled) or self.future.cancelled()


class JobQueue:
    """
    Serialized scheduler with a minimum spacing between task starts.

    ``enqueue`` never blocks: it appends the job and starts a drain thread
    when the queue is idle. The drain thread exits once the queue is empty
    and a later ``enqueue`` starts a new one.
    """

    def __init__(
        self,
        min_interval_s: float,
        clock: Callable[[], float] = time.monotonic,
        name: str = "job-queue",
    ) -> None:
        self._min_interval_s = max(0.0, float(min_interval_s))
        self._clock = clock
        self._name = name
        self._pending: deque[_Job[Any]] = deque()
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._draining = False
        self._last_start: float | None = None
        # Interrupts the inter-task wait when the interval shrinks.
        self._wake = threading.Event()

    @property
    def min_interval_s(self) -> float:
        with self._lock:
            return self._min_interval_s

    def set_min_interval(self, seconds: float) -> None:
        with self._lock:
            self._min_interval_s = max(0.0, float(seconds))
            self._wake.set()

    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def is_draining(self) -> bool:
        with self._lock:
            return self._draining

    def enqueue(self, task: Callable[[], T], token: CancellationToken | None = None) -> Future:
        job: _Job[T] = _Job(task=task, token=token)
        with self._lock:
            self._pending.append(job)
            start_worker = not self._draining
            if start_worker:
                self._draining = True
        if start_worker:
            self._start_worker()
        return job.future

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until the queue is empty and no task is running."""
        with self._idle:
            return self._idle.wait_for(lambda: not self._draining, timeout=timeout)

    def _next_wait(self) -> float:
        if self._last_start is None:
            return 0.0
        return max(0.0, self._last_start + self._min_interval_s - self._clock())

    def _start_worker(self) -> None:
        worker = threading.Thread(target=self._drain, name=self._name, daemon=True)
        worker.start()

    def _drain(self) -> None:
        drained = False
        try:
            self._drain_pending()
            drained = True
        finally:
            if not drained:
                self._replace_worker()

    def _replace_worker(self) -> None:
        """Hand pending jobs to a fresh thread after the worker died, or go idle."""
        with self._lock:
            restart = bool(self._pending)
            if not restart:
                self._draining = False
                self._idle.notify_all()
        if restart:
            logger.error("Queue worker stopped unexpectedly; starting a replacement")
            self._start_worker()

    def _drain_pending(self) -> None:
        while True:
            with self._lock:
                if not self._pending:
                    self._draining = False
                    self._idle.notify_all()
                    return
                wait = self._next_wait()
                self._wake.clear()

            if wait > 0:
                self._wake.wait(wait)
                # Interval may have changed or elapsed; recompute before popping.
                continue

            with self._lock:
                job = self._pending.popleft()
                self._last_start = self._clock()

            self._run(job)

    def _settle_cancelled(self, job: _Job[Any]) -> None:
        if job.future.cancelled():
            return
        if not job.future.done():
            if job.attempts == 0 and not job.future.set_running_or_notify_cancel():
                return
            job.future.set_exception(TaskCancelledError("task was cancelled"))

    def _run(self, job: _Job[Any]) -> None:
        if job.cancelled():
            logger.debug("Skipping cancelled job")
            self._settle_cancelled(job)
            return

        if job.attempts == 0 and not job.future.set_running_or_notify_cancel():
            return
        job.attempts += 1

        try:
            result = job.task()
        except RateLimitedError as exc:
            logger.info(
                "Task rate limited on attempt %d; retrying in %.3fs",
                job.attempts,
                exc.retry_after_s,
            )
            if self._backoff(job, exc.retry_after_s):
                with self._lock:
                    self._pending.appendleft(job)
            else:
                self._settle_cancelled(job)
            return
        except Exception as exc:
            if job.token is not None and job.token.cancelled:
                self._settle_cancelled(job)
                return
            logger.warning("Task failed: %s: %s", exc.__class__.__name__, exc)
            job.future.set_exception(exc)
            return
        except BaseException as exc:
            job.future.set_exception(exc)
            raise

        if job.token is not None and job.token.cancelled:
            self._settle_cancelled(job)
            return
        job.future.set_result(result)

    def _backoff(self, job: _Job[Any], seconds: float) -> bool:
        """Sleep for a rate-limit backoff; False if the job got cancelled."""
        if job.token is None:
            if seconds > 0:
                time.sleep(seconds)
            return True
        return not job.token.wait(seconds) and not job.token.cancelled

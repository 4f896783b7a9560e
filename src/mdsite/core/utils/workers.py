"""Bounded-time worker pool for per-document parse and render tasks"""

import logging
import queue
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, wait
from dataclasses import dataclass
from typing import Any, Callable, Hashable, Iterable


logger = logging.getLogger(__name__)

_POLL_SECONDS = 0.05
WORKER_THREAD_NAME = "mdsite-worker"


@dataclass(frozen=True)
class TaskOutcome:
    """Result of one task: exactly one of value/error is meaningful."""
    value: Any = None
    error: BaseException | None = None
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None and not self.timed_out


def run_bounded(
    fn: Callable[[Any], Any],
    items: Iterable[tuple[Hashable, Any]],
    workers: int = 4,
    timeout: float | None = None,
    ) -> dict[Hashable, TaskOutcome]:
    """Run fn(item) for each (key, item) on up to `workers` daemon threads.

    Every key gets an outcome. A task running longer than timeout seconds is
    reported as timed out and abandoned; its thread is replaced so queued
    tasks keep running, and being a daemon it never holds up interpreter
    exit. Exceptions are captured, never raised. Returns when every task has
    finished, failed, or timed out.
    """
    tasks: queue.Queue = queue.Queue()
    futures: dict[Future, Hashable] = {}
    for key, item in items:
        future = Future()
        futures[future] = key
        tasks.put((future, key, item))

    started: dict[Hashable, float] = {}

    def _drain():
        while True:
            try:
                future, key, item = tasks.get_nowait()
            except queue.Empty:
                return
            if not future.set_running_or_notify_cancel():
                continue
            started[key] = time.monotonic()
            try:
                result = fn(item)
            except BaseException as e:
                future.set_exception(e)
            else:
                future.set_result(result)

    def _spawn():
        threading.Thread(target=_drain, name=WORKER_THREAD_NAME, daemon=True).start()

    for _ in range(min(max(1, workers), len(futures))):
        _spawn()

    outcomes: dict[Hashable, TaskOutcome] = {}
    pending = set(futures)
    try:
        while pending:
            done, pending = wait(pending, timeout=_POLL_SECONDS, return_when=FIRST_COMPLETED)
            for future in done:
                key = futures[future]
                error = future.exception()
                outcomes[key] = TaskOutcome(error=error) if error else TaskOutcome(value=future.result())
            if timeout is None:
                continue
            now = time.monotonic()
            for future in list(pending):
                key = futures[future]
                if key in started and now - started[key] > timeout:
                    logger.warning("task %s exceeded %.1fs time limit", key, timeout)
                    pending.discard(future)
                    outcomes[key] = TaskOutcome(timed_out=True)
                    if not tasks.empty():
                        _spawn()
    finally:
        for future in pending:
            future.cancel()
    return outcomes

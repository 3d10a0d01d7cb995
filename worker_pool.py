"""Fixed-width thread pool with per-task spacing and an explicit join."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any, TypeVar

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


class BoundedWorkerPool:
    """Runs at most ``max_workers`` tasks at once, in submission order.

    After every task, successful or not, its worker sleeps
    ``task_delay_seconds`` before taking the next one, which caps the request
    rate independently of the width.
    """

    def __init__(self, max_workers: int = 5, task_delay_seconds: float = 0.5) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        self.max_workers = max_workers
        self.task_delay_seconds = task_delay_seconds
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="detail")

    def submit(self, fn: Callable[..., T], *args: Any) -> Future[T]:
        return self._executor.submit(self._run_spaced, fn, *args)

    def join(self, futures: Sequence[Future[T]]) -> list[T | BaseException]:
        """Wait for every future; return results or exceptions in input order."""
        wait(futures)
        outcomes: list[T | BaseException] = []
        for future in futures:
            exc = future.exception()
            outcomes.append(exc if exc is not None else future.result())
        return outcomes

    def close(self) -> None:
        self._executor.shutdown(wait=True)

    def __enter__(self) -> BoundedWorkerPool:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _run_spaced(self, fn: Callable[..., T], *args: Any) -> T:
        try:
            return fn(*args)
        finally:
            if self.task_delay_seconds > 0:
                time.sleep(self.task_delay_seconds)

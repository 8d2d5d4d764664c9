"""Bounded-retry worker loop on top of :class:`RateLimitingQueue`."""

from __future__ import annotations

import logging
from threading import Thread
from typing import Callable, Hashable, List, Optional

from nad_admission.errors import DispatchError

from .workqueue import RateLimitingQueue

LOG = logging.getLogger(__name__)

MAX_RETRIES = 5


class Dispatcher:
    """Pull keys from ``queue`` and run ``process`` on each of them.

    A failing key is requeued with backoff until it has failed
    ``max_retries`` consecutive times, then it is dropped and ``on_drop`` is
    told about it.  Success resets the key's failure history.
    """

    def __init__(
        self,
        queue: RateLimitingQueue,
        process: Callable[[str], None],
        *,
        max_retries: int = MAX_RETRIES,
        on_drop: Optional[Callable[[DispatchError], None]] = None,
    ) -> None:
        self._queue = queue
        self._process = process
        self._max_retries = max_retries
        self._on_drop = on_drop
        self._workers: List[Thread] = []

    @property
    def queue(self) -> RateLimitingQueue:
        return self._queue

    def process_next_item(self, timeout: Optional[float] = None) -> bool:
        """Handle one key.  Returns ``False`` once the queue is shutting down."""

        key = self._queue.get(timeout=timeout)
        if key is None:
            return not self._queue.shutting_down

        try:
            self._process(key)
        except Exception as exc:  # any handler failure is retried
            self._handle_error(key, exc)
        else:
            self._queue.forget(key)
        finally:
            self._queue.done(key)
        return True

    def _handle_error(self, key: Hashable, exc: Exception) -> None:
        failures = self._queue.num_requeues(key) + 1
        if failures < self._max_retries:
            LOG.info("error syncing pod %s (attempt %d): %s", key, failures, exc)
            self._queue.add_rate_limited(key)
            return

        self._queue.forget(key)
        error = DispatchError(str(key), exc)
        LOG.error("dropping pod %r out of the queue after %d attempts: %s", key, failures, exc)
        if self._on_drop is not None:
            self._on_drop(error)

    def run_worker(self) -> None:
        while self.process_next_item():
            pass

    def start(self, workers: int = 1) -> None:
        for index in range(workers):
            worker = Thread(target=self.run_worker, name=f"dispatch-worker-{index}", daemon=True)
            worker.start()
            self._workers.append(worker)
        LOG.info("started %d dispatch worker(s)", workers)

    def stop(self, timeout: Optional[float] = None) -> None:
        """Stop handing out keys and wait for in-flight ones to finish."""

        self._queue.shut_down()
        for worker in self._workers:
            worker.join(timeout)
        self._workers.clear()
        LOG.info("dispatch workers stopped")

"""Glue between change notifications, the work queue and the handlers."""

from __future__ import annotations

import logging
from threading import Lock
from typing import Callable, Dict, Optional

from nad_admission.errors import DispatchError

from .dispatcher import MAX_RETRIES, Dispatcher
from .events import ChangeEvent
from .registry import HandlerRegistry
from .workqueue import RateLimitingQueue

LOG = logging.getLogger(__name__)


class PodEventController:
    """Queue pod change events by key and replay the latest one per key.

    Only the key travels through the queue.  When a worker picks it up the
    most recent event recorded for that key is handed to the registry, so a
    burst of updates for one pod collapses into a single application of
    its newest state.
    """

    def __init__(
        self,
        registry: HandlerRegistry,
        *,
        queue: Optional[RateLimitingQueue] = None,
        max_retries: int = MAX_RETRIES,
        on_drop: Optional[Callable[[DispatchError], None]] = None,
    ) -> None:
        self._registry = registry
        self._lock = Lock()
        self._latest: Dict[str, ChangeEvent] = {}
        self._queue = queue if queue is not None else RateLimitingQueue()
        self._dispatcher = Dispatcher(
            self._queue,
            self.process,
            max_retries=max_retries,
            on_drop=on_drop,
        )

    @property
    def dispatcher(self) -> Dispatcher:
        return self._dispatcher

    def enqueue(self, event: ChangeEvent) -> None:
        with self._lock:
            self._latest[event.key] = event
        self._queue.add(event.key)

    def process(self, key: str) -> None:
        with self._lock:
            event = self._latest.get(key)
        if event is None:
            LOG.debug("no pending event for %s", key)
            return

        LOG.debug("processing %s event for pod %s", event.event_type.value, key)
        self._registry.handle(event)

        if event.is_removal:
            with self._lock:
                # A newer event may have been recorded while this one ran.
                if self._latest.get(key) is event:
                    del self._latest[key]

    def start(self, workers: int = 1) -> None:
        LOG.info("starting net-attach-def usage controller")
        self._dispatcher.start(workers)

    def stop(self, timeout: Optional[float] = None) -> None:
        self._dispatcher.stop(timeout)

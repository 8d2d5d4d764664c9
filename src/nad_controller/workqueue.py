"""Keyed work queue with per-key exclusivity and rate-limited requeues.

Semantics follow the controller work queues used by Kubernetes tooling:

* a key added while already queued is coalesced into the queued entry;
* a key handed out by :meth:`RateLimitingQueue.get` is not handed out again
  until :meth:`RateLimitingQueue.done` is called for it, so at most one
  worker processes a given key at a time; re-adds that arrive meanwhile
  are parked and queued on ``done``;
* :meth:`RateLimitingQueue.add_rate_limited` delays a requeue by a
  per-key exponential backoff that :meth:`RateLimitingQueue.forget` resets.
"""

from __future__ import annotations

import heapq
import itertools
import time
from collections import deque
from threading import Condition, Lock
from typing import Callable, Deque, Dict, Hashable, List, Optional, Set, Tuple


class ExponentialBackoff:
    """Per-key delay of ``base_delay * 2**failures`` capped at ``max_delay``."""

    def __init__(self, base_delay: float = 0.005, max_delay: float = 1000.0) -> None:
        self._base_delay = base_delay
        self._max_delay = max_delay
        self._failures: Dict[Hashable, int] = {}
        self._lock = Lock()

    def when(self, key: Hashable) -> float:
        with self._lock:
            exponent = self._failures.get(key, 0)
            self._failures[key] = exponent + 1
        # Large exponents overflow float; the cap applies long before that.
        if exponent > 62:
            return self._max_delay
        return min(self._base_delay * (2 ** exponent), self._max_delay)

    def forget(self, key: Hashable) -> None:
        with self._lock:
            self._failures.pop(key, None)

    def num_requeues(self, key: Hashable) -> int:
        with self._lock:
            return self._failures.get(key, 0)


class RateLimitingQueue:
    def __init__(
        self,
        rate_limiter: Optional[ExponentialBackoff] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._rate_limiter = rate_limiter or ExponentialBackoff()
        self._clock = clock
        self._cond = Condition()
        self._queue: Deque[Hashable] = deque()
        self._dirty: Set[Hashable] = set()
        self._processing: Set[Hashable] = set()
        self._waiting: List[Tuple[float, int, Hashable]] = []
        self._sequence = itertools.count()
        self._shutting_down = False

    def add(self, key: Hashable) -> None:
        with self._cond:
            self._add_locked(key)

    def add_after(self, key: Hashable, delay: float) -> None:
        if delay <= 0:
            self.add(key)
            return
        with self._cond:
            if self._shutting_down:
                return
            heapq.heappush(self._waiting, (self._clock() + delay, next(self._sequence), key))
            self._cond.notify()

    def add_rate_limited(self, key: Hashable) -> None:
        self.add_after(key, self._rate_limiter.when(key))

    def forget(self, key: Hashable) -> None:
        self._rate_limiter.forget(key)

    def num_requeues(self, key: Hashable) -> int:
        return self._rate_limiter.num_requeues(key)

    def get(self, timeout: Optional[float] = None) -> Optional[Hashable]:
        """Block until a key is ready and hand it out.

        Returns ``None`` once the queue is shutting down, or when ``timeout``
        elapses first.
        """

        deadline = None if timeout is None else self._clock() + timeout
        with self._cond:
            while True:
                if self._shutting_down:
                    return None
                self._promote_due_locked()
                if self._queue:
                    key = self._queue.popleft()
                    self._processing.add(key)
                    self._dirty.discard(key)
                    return key

                wait_for = None
                if self._waiting:
                    wait_for = max(self._waiting[0][0] - self._clock(), 0.0)
                if deadline is not None:
                    remaining = deadline - self._clock()
                    if remaining <= 0:
                        return None
                    wait_for = remaining if wait_for is None else min(wait_for, remaining)
                self._cond.wait(wait_for)

    def done(self, key: Hashable) -> None:
        with self._cond:
            self._processing.discard(key)
            if key in self._dirty:
                self._queue.append(key)
                self._cond.notify()

    def shut_down(self) -> None:
        with self._cond:
            self._shutting_down = True
            self._waiting.clear()
            self._cond.notify_all()

    @property
    def shutting_down(self) -> bool:
        with self._cond:
            return self._shutting_down

    def __len__(self) -> int:
        with self._cond:
            return len(self._queue)

    def pending(self) -> int:
        """Number of keys parked for a delayed requeue."""

        with self._cond:
            return len(self._waiting)

    def _add_locked(self, key: Hashable) -> None:
        if self._shutting_down or key in self._dirty:
            return
        self._dirty.add(key)
        if key in self._processing:
            return
        self._queue.append(key)
        self._cond.notify()

    def _promote_due_locked(self) -> None:
        now = self._clock()
        while self._waiting and self._waiting[0][0] <= now:
            _, _, key = heapq.heappop(self._waiting)
            self._add_locked(key)

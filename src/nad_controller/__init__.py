"""Event plumbing for the net-attach-def usage controller.

Adapters publish :class:`ChangeEvent` objects; :class:`PodEventController`
queues them by pod key, and the :class:`Dispatcher` hands each key to the
:class:`HandlerRegistry` with bounded, rate-limited retries.
"""

from .controller import PodEventController  # noqa: F401
from .dispatcher import Dispatcher  # noqa: F401
from .events import ChangeEvent, EventType  # noqa: F401
from .registry import HandlerRegistry  # noqa: F401
from .workqueue import ExponentialBackoff, RateLimitingQueue  # noqa: F401

__all__ = [
    "ChangeEvent",
    "Dispatcher",
    "EventType",
    "ExponentialBackoff",
    "HandlerRegistry",
    "PodEventController",
    "RateLimitingQueue",
]

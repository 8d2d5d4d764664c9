"""Handler registry that fans pod change events out to adapters."""

from __future__ import annotations

from typing import Dict

from .events import ChangeEvent
from .handlers import PodChangeHandler


class HandlerRegistry:
    """Dispatch :class:`ChangeEvent` instances to registered handlers."""

    def __init__(self) -> None:
        self._handlers: Dict[str, PodChangeHandler] = {}

    def register(self, name: str, handler: PodChangeHandler) -> None:
        if name in self._handlers:
            raise ValueError(f"handler '{name}' already registered")
        self._handlers[name] = handler

    def unregister(self, name: str) -> None:
        self._handlers.pop(name, None)

    def handle(self, event: ChangeEvent) -> None:
        if not isinstance(event, ChangeEvent):
            raise TypeError(f"Unsupported event type: {type(event)!r}")
        if event.is_removal:
            self._on_pod_delete(event)
        else:
            self._on_pod_upsert(event)

    def _on_pod_upsert(self, event: ChangeEvent) -> None:
        for handler in self._handlers.values():
            handler.on_pod_upsert(event.key, event.annotation or "", event.namespace)

    def _on_pod_delete(self, event: ChangeEvent) -> None:
        for handler in self._handlers.values():
            handler.on_pod_delete(event.key)

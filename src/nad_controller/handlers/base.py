"""Abstract interface for pod change handlers."""

from __future__ import annotations

from abc import ABC, abstractmethod


class PodChangeHandler(ABC):
    """Base class for handlers managed by :class:`HandlerRegistry`."""

    @abstractmethod
    def on_pod_upsert(self, key: str, annotation: str, namespace: str) -> None:
        """Apply ``annotation`` as the current network selection for ``key``."""

    @abstractmethod
    def on_pod_delete(self, key: str) -> None:
        """Remove any state associated with ``key``."""

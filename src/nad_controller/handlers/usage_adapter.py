"""Adapter between the usage tracker and the registry contract."""

from __future__ import annotations

from nad_admission.tracker import UsageTracker

from .base import PodChangeHandler


class UsageTrackerAdapter(PodChangeHandler):
    """Wrap :class:`~nad_admission.tracker.UsageTracker` for registry use."""

    def __init__(self, tracker: UsageTracker) -> None:
        self._tracker = tracker

    @property
    def tracker(self) -> UsageTracker:
        return self._tracker

    def on_pod_upsert(self, key: str, annotation: str, namespace: str) -> None:
        self._tracker.on_add(key, annotation, namespace)

    def on_pod_delete(self, key: str) -> None:
        self._tracker.on_delete(key)


def build_usage_adapter(tracker: UsageTracker) -> UsageTrackerAdapter:
    return UsageTrackerAdapter(tracker)

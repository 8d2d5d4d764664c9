"""Per-plugin-type usage counting for pods with network selections.

Every tracked pod contributes to three kinds of labels:

* each distinct plugin type reachable from its selected NADs;
* the sorted, comma-joined combination of those types when there is more
  than one (``"bridge,macvlan"``);
* the universal ``"any"`` label, once per tracked pod.

The combination remembered for a pod key is the only thing needed to undo
its contribution later, so removal never has to re-resolve NADs that may
have changed or disappeared in the meantime.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from threading import Lock
from typing import Callable, Dict, Iterable, Optional, Protocol, Set

from .annotation import parse_network_annotation
from .cniconfig import classify
from .errors import AttachmentLookupError, ParseError, ValidationError
from .resources import NetworkAttachmentDefinition

LOG = logging.getLogger(__name__)

ANY_LABEL = "any"


class AttachmentLookup(Protocol):
    def get_by_name(self, name: str, namespace: str) -> Optional[NetworkAttachmentDefinition]:
        """Return the NAD or ``None`` when it does not exist."""


class UsageSink(ABC):
    """Receives counter updates computed by :class:`UsageTracker`."""

    @abstractmethod
    def add_instances(self, label: str, delta: float) -> None:
        """Adjust the instance count for ``label`` by ``delta``."""

    @abstractmethod
    def set_enabled(self, label: str, value: int) -> None:
        """Publish whether any instance for ``label`` is running (0 or 1)."""


class UsageStore:
    """Remembered combinations per pod key and running sums per label.

    Shared by all dispatch workers; every access takes the store lock.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._combinations: Dict[str, str] = {}
        self._totals: Dict[str, int] = {}

    def remembered(self, key: str) -> Optional[str]:
        """Return the remembered combination or ``None`` when untracked."""

        with self._lock:
            return self._combinations.get(key)

    def remember(self, key: str, combination: str) -> None:
        with self._lock:
            self._combinations[key] = combination

    def forget(self, key: str) -> Optional[str]:
        with self._lock:
            return self._combinations.pop(key, None)

    def adjust(
        self,
        label: str,
        delta: int,
        publish: Optional[Callable[[int], None]] = None,
    ) -> int:
        """Add ``delta`` to the running sum for ``label`` and return it.

        ``publish`` is called with the new total before the lock is released,
        so published values follow the order in which the sums changed.
        """

        with self._lock:
            total = self._totals.get(label, 0) + delta
            self._totals[label] = total
            if publish is not None:
                publish(total)
            return total

    def total(self, label: str) -> int:
        with self._lock:
            return self._totals.get(label, 0)

    def tracked_keys(self) -> Set[str]:
        with self._lock:
            return set(self._combinations)

    def totals(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._totals)


class UsageTracker:
    """Turn pod add/delete notifications into counter deltas.

    Parameters
    ----------
    lookup:
        Resolves a network reference to its NAD (see :class:`AttachmentLookup`).
    sink:
        Optional :class:`UsageSink` that receives every delta and gauge value.
    store:
        Injectable :class:`UsageStore`; a fresh one is created by default.
    gauge_labels:
        Labels whose "enabled instance up" gauge is published.  ``None``
        publishes a gauge for every label the tracker touches.
    """

    def __init__(
        self,
        lookup: AttachmentLookup,
        sink: Optional[UsageSink] = None,
        store: Optional[UsageStore] = None,
        gauge_labels: Optional[Iterable[str]] = None,
    ) -> None:
        self._lookup = lookup
        self._sink = sink
        self._store = store or UsageStore()
        self._gauge_labels = None if gauge_labels is None else frozenset(gauge_labels)

    @property
    def store(self) -> UsageStore:
        return self._store

    def prime(self) -> None:
        """Publish a zero value for every configured gauge label."""

        for label in sorted(self._gauge_labels or {ANY_LABEL}):
            self._emit(label, 0)

    def on_add(self, key: str, annotation: str, namespace: str) -> str:
        """Count the pod ``key`` and return the combination remembered for it.

        A pod that is already tracked is first removed, so repeated adds for
        the same key never count twice.
        """

        if self._store.remembered(key) is not None:
            self.on_delete(key)

        types = self.resolve_plugin_types(key, annotation, namespace)
        combination = ",".join(sorted(types))

        for plugin_type in sorted(types):
            self._emit(plugin_type, 1)
        if len(types) > 1:
            self._emit(combination, 1)
        self._emit(ANY_LABEL, 1)

        self._store.remember(key, combination)
        LOG.info("tracking pod %s with plugin types [%s]", key, combination)
        return combination

    def on_delete(self, key: str) -> None:
        """Reverse whatever was counted for ``key``; untracked keys are a no-op."""

        combination = self._store.forget(key)
        if combination is None:
            LOG.debug("pod %s is not tracked, nothing to remove", key)
            return

        types = combination.split(",") if combination else []
        if len(types) > 1:
            for plugin_type in types:
                self._emit(plugin_type, -1)
            self._emit(combination, -1)
        elif types:
            self._emit(types[0], -1)
        self._emit(ANY_LABEL, -1)
        LOG.info("stopped tracking pod %s (plugin types [%s])", key, combination)

    def resolve_plugin_types(self, key: str, annotation: str, namespace: str) -> Set[str]:
        """Union of plugin types over every resolvable NAD the pod selects.

        Unparseable annotations, missing NADs, failed lookups and NADs with
        unusable configs all contribute nothing.
        """

        try:
            references = parse_network_annotation(annotation, namespace)
        except ParseError as exc:
            LOG.warning("pod %s has an unusable network annotation: %s", key, exc.message)
            return set()

        types: Set[str] = set()
        for reference in references:
            try:
                nad = self._lookup.get_by_name(reference.name, reference.namespace)
            except AttachmentLookupError as exc:
                LOG.warning(
                    "failed to look up net-attach-def %s/%s for pod %s: %s",
                    reference.namespace,
                    reference.name,
                    key,
                    exc.message,
                )
                continue
            if nad is None:
                LOG.debug(
                    "net-attach-def %s/%s referenced by pod %s not found",
                    reference.namespace,
                    reference.name,
                    key,
                )
                continue
            try:
                types.update(t for t in classify(nad.config, nad.name) if t)
            except ValidationError as exc:
                LOG.warning(
                    "ignoring net-attach-def %s/%s with invalid config: %s",
                    reference.namespace,
                    reference.name,
                    exc.message,
                )
        return types

    def _emit(self, label: str, delta: int) -> None:
        def publish(total: int) -> None:
            if self._sink is None:
                return
            self._sink.add_instances(label, float(delta))
            if self._gauge_labels is None or label in self._gauge_labels:
                self._sink.set_enabled(label, 1 if total > 0 else 0)

        total = self._store.adjust(label, delta, publish)
        LOG.debug("updating net-attach-def metrics for %s by %d (now %d)", label, delta, total)

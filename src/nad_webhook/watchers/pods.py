"""Pod watcher that feeds network-annotated pods to the usage controller."""

from __future__ import annotations

import logging
from threading import Event, Thread
from typing import Any, Callable, Iterable, List, Optional, Set

from kubernetes import client, watch

from nad_controller.events import ChangeEvent, EventType

from .utils import is_running, is_terminating, network_annotation, pod_key

LOG = logging.getLogger(__name__)


class PodEventAdapter:
    """Reduce raw pod watch events to :class:`ChangeEvent` objects.

    Only pods that carry (or used to carry) the networks annotation produce
    events, and only running pods are counted.  The adapter remembers which
    keys were annotated so that removing the annotation from a live pod is
    reported as well.
    """

    def __init__(self) -> None:
        self._annotated: Set[str] = set()

    def convert(self, event_type: str, pod: Any) -> Optional[ChangeEvent]:
        key = pod_key(pod)
        namespace = pod.metadata.namespace or ""
        annotation = network_annotation(pod)

        if event_type == "ADDED":
            if annotation is None:
                return None
            self._annotated.add(key)
            if not is_running(pod):
                return None
            return ChangeEvent(key, EventType.CREATE, annotation, namespace)

        if event_type == "MODIFIED":
            if is_terminating(pod):
                return None
            if annotation is not None:
                self._annotated.add(key)
                if not is_running(pod):
                    return None
                return ChangeEvent(key, EventType.UPDATE, annotation, namespace)
            if key in self._annotated:
                self._annotated.discard(key)
                return ChangeEvent(key, EventType.UPDATE, None, namespace)
            return None

        if event_type == "DELETED":
            was_annotated = key in self._annotated or annotation is not None
            self._annotated.discard(key)
            if was_annotated:
                return ChangeEvent(key, EventType.DELETE, annotation, namespace)
            return None

        return None

    def resync(self, pods: Iterable[Any]) -> List[ChangeEvent]:
        """Reconcile against a fresh pod list.

        Running annotated pods are reported again (the tracker re-applies
        them without double counting).  Keys that were annotated before but
        are missing from the list, or lost the annotation, are reported as
        deletions since their watch events were never seen.
        """

        previous = set(self._annotated)
        listed: Set[str] = set()
        events: List[ChangeEvent] = []
        for pod in pods:
            if network_annotation(pod) is None:
                continue
            listed.add(pod_key(pod))
            event = self.convert("ADDED", pod)
            if event is not None:
                events.append(event)

        for key in sorted(previous - listed):
            namespace = key.partition("/")[0] if "/" in key else ""
            events.append(ChangeEvent(key, EventType.DELETE, None, namespace))
        self._annotated = listed
        return events


class PodWatcher(Thread):
    """List, then watch, pods in all namespaces and publish change events.

    The watch resumes from the last seen resource version.  When that is
    lost (expired watch or API failure) the next round lists pods again and
    reconciles, so deletions missed in between are still reported.
    """

    def __init__(
        self,
        on_event: Callable[[ChangeEvent], None],
        stop_event: Event,
        *,
        core_api: client.CoreV1Api | None = None,
        timeout_seconds: int = 300,
        retry_interval: float = 5.0,
        watch_factory: Callable[[], Any] = watch.Watch,
    ) -> None:
        super().__init__(name="pod-watcher", daemon=True)
        self._on_event = on_event
        self._stop_event = stop_event
        self._core_api = core_api or client.CoreV1Api()
        self._timeout_seconds = timeout_seconds
        self._retry_interval = retry_interval
        self._watch_factory = watch_factory
        self._adapter = PodEventAdapter()
        self._resource_version: Optional[str] = None

    @property
    def resource_version(self) -> Optional[str]:
        return self._resource_version

    def run(self) -> None:
        LOG.info("starting pod watcher for all namespaces")
        while not self._stop_event.is_set():
            try:
                self.watch_once()
            except client.ApiException as exc:
                self._resource_version = None
                if exc.status == 410:
                    LOG.info("pod watch expired, relisting")
                    continue
                LOG.warning("pod watch failed: %s", exc)
                self._stop_event.wait(self._retry_interval)
            except Exception:  # pragma: no cover - logged and retried
                self._resource_version = None
                LOG.exception("pod watcher encountered an error")
                self._stop_event.wait(self._retry_interval)
        LOG.info("pod watcher stopped")

    def relist(self) -> None:
        pods = self._core_api.list_pod_for_all_namespaces()
        self._resource_version = getattr(pods.metadata, "resource_version", None)
        events = self._adapter.resync(pods.items or [])
        LOG.info(
            "listed pods at resource version %s, %d change(s) to apply",
            self._resource_version,
            len(events),
        )
        for change in events:
            self._on_event(change)

    def watch_once(self) -> None:
        if self._resource_version is None:
            self.relist()

        w = self._watch_factory()
        for event in w.stream(
            self._core_api.list_pod_for_all_namespaces,
            resource_version=self._resource_version,
            timeout_seconds=self._timeout_seconds,
        ):
            if self._stop_event.is_set():
                w.stop()
                break
            if event["type"] == "ERROR":
                LOG.info("pod watch returned an error, relisting: %s", event.get("raw_object"))
                self._resource_version = None
                w.stop()
                break
            metadata = getattr(event["object"], "metadata", None)
            if metadata is not None and metadata.resource_version:
                self._resource_version = metadata.resource_version
            self.handle(event)

    def handle(self, event: dict) -> None:
        change = self._adapter.convert(event["type"], event["object"])
        if change is not None:
            LOG.debug("pod %s: %s", change.key, change.event_type.value)
            self._on_event(change)

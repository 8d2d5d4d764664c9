from __future__ import annotations

from typing import Any, Optional

from nad_admission.annotation import NETWORKS_ANNOTATION

POD_RUNNING = "Running"


def pod_key(pod: Any) -> str:
    metadata = pod.metadata
    if metadata.namespace:
        return f"{metadata.namespace}/{metadata.name}"
    return metadata.name


def network_annotation(pod: Any) -> Optional[str]:
    metadata = getattr(pod, "metadata", None)
    if metadata is None:
        return None
    return (metadata.annotations or {}).get(NETWORKS_ANNOTATION)


def is_running(pod: Any) -> bool:
    status = getattr(pod, "status", None)
    return status is not None and status.phase == POD_RUNNING


def is_terminating(pod: Any) -> bool:
    return getattr(pod.metadata, "deletion_timestamp", None) is not None

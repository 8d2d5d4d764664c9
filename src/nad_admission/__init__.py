"""Core of the network attachment definition admission controller.

This package holds everything that can be reasoned about without a cluster:

* parsing the ``k8s.v1.cni.cncf.io/networks`` pod annotation;
* classifying the CNI configuration embedded in a NAD;
* the admission decisions for NAD creation and pod namespace isolation; and
* the usage tracker that keeps per-plugin-type counts for running pods.

Kubernetes access, HTTP serving and TLS live in :mod:`nad_webhook`; event
queueing and retries in :mod:`nad_controller`.
"""

from .annotation import NETWORKS_ANNOTATION, NetworkReference, parse_network_annotation  # noqa: F401
from .cniconfig import classify  # noqa: F401
from .resources import NetworkAttachmentDefinition  # noqa: F401
from .tracker import ANY_LABEL, UsageStore, UsageTracker  # noqa: F401
from .validation import (  # noqa: F401
    LOCAL_NAMESPACE,
    AdmissionDecision,
    check_pod_isolation,
    validate_network_attachment_definition,
)

__all__ = [
    "ANY_LABEL",
    "AdmissionDecision",
    "LOCAL_NAMESPACE",
    "NETWORKS_ANNOTATION",
    "NetworkAttachmentDefinition",
    "NetworkReference",
    "UsageStore",
    "UsageTracker",
    "check_pod_isolation",
    "classify",
    "parse_network_annotation",
    "validate_network_attachment_definition",
]

"""Admission decisions for NAD creation and pod namespace isolation."""

from __future__ import annotations

import logging
from typing import NamedTuple, Optional

from .annotation import DNS1123_LABEL, NETWORKS_ANNOTATION, parse_network_annotation
from .cniconfig import check_config_shape, load_config, plugin_types, preprocess_config
from .errors import (
    CrossNamespaceReferenceDeniedError,
    InvalidConfigError,
    InvalidNameError,
    NadAdmissionError,
    ValidationError,
)
from .resources import NetworkAttachmentDefinition

LOG = logging.getLogger(__name__)

# Default namespace handed to the parser for isolation checks.  Any
# reference that resolves to something else named a namespace explicitly.
LOCAL_NAMESPACE = "_local"


class AdmissionDecision(NamedTuple):
    allowed: bool
    message: str = ""
    reason: str = ""

    @classmethod
    def allow(cls, message: str = "") -> "AdmissionDecision":
        return cls(True, message)

    @classmethod
    def deny(cls, error: NadAdmissionError) -> "AdmissionDecision":
        return cls(False, error.message or error.reason, error.reason)


def check_network_attachment_definition(nad: NetworkAttachmentDefinition) -> None:
    """Raise a :class:`ValidationError` if ``nad`` must not be admitted."""

    if not DNS1123_LABEL.fullmatch(nad.name):
        raise InvalidNameError(f"net-attach-def name {nad.name!r} is invalid")

    if not nad.config:
        LOG.info("allowing empty spec.config for net-attach-def %s", nad.name)
        return

    LOG.debug("validating network config spec: %s", nad.config)
    conf = load_config(nad.config)
    conf = preprocess_config(conf, nad.name)
    try:
        check_config_shape(conf)
        plugin_types(conf)
    except ValidationError as exc:
        raise InvalidConfigError(f"invalid config: {exc.message}") from exc


def validate_network_attachment_definition(
    nad: NetworkAttachmentDefinition,
) -> AdmissionDecision:
    """Decide whether ``nad`` may be created.  Never raises."""

    try:
        check_network_attachment_definition(nad)
    except NadAdmissionError as exc:
        LOG.info("denying net-attach-def %r: %s", nad.name, exc.message)
        return AdmissionDecision.deny(exc)

    LOG.info("net-attach-def %r is valid", nad.name)
    return AdmissionDecision.allow()


def check_pod_isolation(annotation: Optional[str]) -> AdmissionDecision:
    """Deny pods whose network selection names another namespace.

    A pod without the annotation has nothing to check and is allowed.
    """

    if not annotation:
        return AdmissionDecision.allow()

    LOG.info("analyzing %s annotation: %s", NETWORKS_ANNOTATION, annotation)
    try:
        references = parse_network_annotation(annotation, LOCAL_NAMESPACE)
    except NadAdmissionError as exc:
        LOG.info("denying pod: %s", exc.message)
        return AdmissionDecision.deny(exc)

    for reference in references:
        if reference.namespace != LOCAL_NAMESPACE:
            error = CrossNamespaceReferenceDeniedError(
                f"{NETWORKS_ANNOTATION} annotations must not refer to namespaced "
                f"values (must use local namespace, i.e. must not contain a /), "
                f"rejected: {annotation} (namespace: {reference.namespace})"
            )
            LOG.info("denying pod: %s", error.message)
            return AdmissionDecision.deny(error)

    LOG.info("allowed value: %s", annotation)
    return AdmissionDecision.allow()

"""NetworkAttachmentDefinition lookups against the Kubernetes API."""

from __future__ import annotations

import logging
from typing import Optional

from kubernetes import client
from urllib3.exceptions import HTTPError

from nad_admission.errors import AttachmentLookupError
from nad_admission.resources import (
    NAD_GROUP,
    NAD_PLURAL,
    NAD_VERSION,
    NetworkAttachmentDefinition,
)

LOG = logging.getLogger(__name__)


class KubernetesAttachmentLookup:
    """Fetch NADs through ``CustomObjectsApi``.

    A missing NAD yields ``None``; any other failure, including a request
    that exceeds ``request_timeout``, raises :class:`AttachmentLookupError`.
    """

    def __init__(
        self,
        custom_api: client.CustomObjectsApi | None = None,
        request_timeout: float = 10.0,
    ) -> None:
        self._api = custom_api or client.CustomObjectsApi()
        self._request_timeout = request_timeout

    def get_by_name(self, name: str, namespace: str) -> Optional[NetworkAttachmentDefinition]:
        try:
            obj = self._api.get_namespaced_custom_object(
                NAD_GROUP,
                NAD_VERSION,
                namespace,
                NAD_PLURAL,
                name,
                _request_timeout=self._request_timeout,
            )
        except client.ApiException as exc:
            if exc.status == 404:
                return None
            raise AttachmentLookupError(
                f"failed to locate network attachment definition {namespace}/{name}: {exc.reason}"
            ) from exc
        except HTTPError as exc:
            raise AttachmentLookupError(
                f"failed to locate network attachment definition {namespace}/{name}: {exc}"
            ) from exc

        try:
            return NetworkAttachmentDefinition.from_object(obj)
        except ValueError as exc:
            raise AttachmentLookupError(
                f"network attachment definition {namespace}/{name} is malformed: {exc}"
            ) from exc

"""Parser for the pod network-selection annotation.

The annotation accepts two syntaxes.  A JSON list of selection objects::

    [{"name": "net-a", "namespace": "ns1", "interface": "eth1"}]

or the comma-delimited shorthand ``[namespace/]name[@interface]``::

    ns1/net-a@eth1, net-b

Any of ``[``, ``{`` or ``"`` in the value selects the JSON form.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, List, Tuple

from .errors import (
    EmptyAnnotationError,
    InvalidNetworkObjectNameError,
    InvalidTokenFormatError,
    MalformedAnnotationJSONError,
)

NETWORKS_ANNOTATION = "k8s.v1.cni.cncf.io/networks"

DNS1123_LABEL = re.compile(r"[a-z0-9]([-a-z0-9]*[a-z0-9])?")

# Selection tokens are matched without regard to case so mixed-case
# selections such as ``ns1/netA@eth0`` parse.  A token that names a NAD
# which does not exist simply resolves to nothing; NAD object names are
# still held to the lowercase label by the validator.
_SELECTION_TOKEN = re.compile(DNS1123_LABEL.pattern, re.IGNORECASE)

_JSON_MARKERS = frozenset('[{"')


@dataclass(frozen=True)
class NetworkReference:
    """A single network selected by a pod."""

    name: str
    namespace: str = ""
    interface_name: str = ""


def is_json_annotation(raw: str) -> bool:
    return any(char in _JSON_MARKERS for char in raw)


def parse_network_annotation(raw: str, default_namespace: str) -> List[NetworkReference]:
    """Parse ``raw`` into network references in input order.

    References without an explicit namespace get ``default_namespace``.
    Raises a :class:`~nad_admission.errors.ParseError` subclass when the
    value is empty or does not follow either grammar.
    """

    if not raw:
        raise EmptyAnnotationError(
            f"pod annotation {NETWORKS_ANNOTATION!r} is empty"
        )

    if is_json_annotation(raw):
        references = _parse_json(raw)
    else:
        references = [_parse_object_name(item.strip()) for item in raw.split(",")]

    return [
        ref if ref.namespace else NetworkReference(ref.name, default_namespace, ref.interface_name)
        for ref in references
    ]


def _parse_json(raw: str) -> List[NetworkReference]:
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise MalformedAnnotationJSONError(
            f"failed to parse network selection annotation JSON: {exc}"
        ) from exc

    if not isinstance(payload, list):
        raise MalformedAnnotationJSONError(
            "network selection annotation JSON must be a list of objects"
        )

    references = []
    for element in payload:
        if not isinstance(element, dict):
            raise MalformedAnnotationJSONError(
                "network selection annotation JSON must be a list of objects"
            )
        name = _json_string(element, "name")
        namespace = _json_string(element, "namespace")
        # "interface" is what multus reads; "interfaceRequest" is accepted too.
        interface = _json_string(element, "interface") or _json_string(element, "interfaceRequest")
        if not name:
            raise InvalidNetworkObjectNameError("network selection element is missing 'name'")
        _check_tokens(namespace, name, interface)
        references.append(NetworkReference(name, namespace, interface))
    return references


def _json_string(element: dict, field: str) -> str:
    value: Any = element.get(field, "")
    if value is None:
        return ""
    if not isinstance(value, str):
        raise MalformedAnnotationJSONError(
            f"network selection field {field!r} must be a string"
        )
    return value


def _parse_object_name(item: str) -> NetworkReference:
    namespace, name, interface = split_object_name(item)
    if not name:
        raise InvalidNetworkObjectNameError(f"invalid network object {item!r} (empty name)")
    _check_tokens(namespace, name, interface)
    return NetworkReference(name, namespace, interface)


def split_object_name(item: str) -> Tuple[str, str, str]:
    """Split ``[namespace/]name[@interface]`` without validating tokens."""

    namespace = ""
    interface = ""

    slash_items = item.split("/")
    if len(slash_items) == 2:
        namespace = slash_items[0].strip()
        remainder = slash_items[1]
    elif len(slash_items) == 1:
        remainder = slash_items[0]
    else:
        raise InvalidNetworkObjectNameError(
            f"invalid network object {item!r} (failed at '/')"
        )

    at_items = remainder.split("@")
    name = at_items[0].strip()
    if len(at_items) == 2:
        interface = at_items[1].strip()
    elif len(at_items) != 1:
        raise InvalidNetworkObjectNameError(
            f"invalid network object {item!r} (failed at '@')"
        )

    return namespace, name, interface


def _check_tokens(*tokens: str) -> None:
    for token in tokens:
        if token and not _SELECTION_TOKEN.fullmatch(token):
            raise InvalidTokenFormatError(token)

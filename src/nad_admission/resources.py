"""Light-weight views of the Kubernetes objects the core reasons about.

Only the fields the validators and the usage tracker read are modelled.
Adapters at the collaborator boundary build these from raw API payloads so
the core never has to inspect full Kubernetes object shapes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

NAD_GROUP = "k8s.cni.cncf.io"
NAD_VERSION = "v1"
NAD_PLURAL = "network-attachment-definitions"
NAD_KIND = "NetworkAttachmentDefinition"


@dataclass(frozen=True)
class NetworkAttachmentDefinition:
    """Name, namespace and raw ``spec.config`` of a NAD."""

    name: str
    namespace: str = ""
    config: str = ""

    @classmethod
    def from_object(cls, obj: Any) -> "NetworkAttachmentDefinition":
        """Build from a decoded API object.

        Raises ``ValueError`` when ``obj`` does not look like a NAD.
        """

        if not isinstance(obj, Mapping):
            raise ValueError("object is not a NetworkAttachmentDefinition")
        metadata = obj.get("metadata") or {}
        spec = obj.get("spec") or {}
        if not isinstance(metadata, Mapping) or not isinstance(spec, Mapping):
            raise ValueError("object is not a NetworkAttachmentDefinition")
        config = spec.get("config", "")
        if config is None:
            config = ""
        if not isinstance(config, str):
            raise ValueError("spec.config must be a string")
        return cls(
            name=str(metadata.get("name") or ""),
            namespace=str(metadata.get("namespace") or ""),
            config=config,
        )


@dataclass(frozen=True)
class PodView:
    """The parts of a pod needed for isolation checks."""

    name: str
    namespace: str = ""
    annotations: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_object(cls, obj: Any) -> "PodView":
        if not isinstance(obj, Mapping):
            raise ValueError("object is not a Pod")
        metadata = obj.get("metadata") or {}
        if not isinstance(metadata, Mapping):
            raise ValueError("object is not a Pod")
        annotations = metadata.get("annotations") or {}
        if not isinstance(annotations, Mapping):
            raise ValueError("metadata.annotations must be a mapping")
        return cls(
            name=str(metadata.get("name") or metadata.get("generateName") or ""),
            namespace=str(metadata.get("namespace") or ""),
            annotations={str(k): str(v) for k, v in annotations.items()},
        )

    def annotation(self, key: str) -> Optional[str]:
        return self.annotations.get(key)

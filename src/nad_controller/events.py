"""Event primitives consumed by the handler registry."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class EventType(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class ChangeEvent:
    """A pod lifecycle change, already reduced to what the core needs.

    ``key`` is ``namespace/name``.  ``annotation`` is the current value of
    the network-selection annotation, or ``None`` when the pod no longer
    carries it.
    """

    key: str
    event_type: EventType
    annotation: Optional[str] = None
    namespace: str = ""

    @property
    def is_removal(self) -> bool:
        return self.event_type is EventType.DELETE or self.annotation is None

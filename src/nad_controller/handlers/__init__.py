"""Handler adapters exposed to the registry."""

from .base import PodChangeHandler  # noqa: F401
from .usage_adapter import UsageTrackerAdapter, build_usage_adapter  # noqa: F401

__all__ = [
    "PodChangeHandler",
    "UsageTrackerAdapter",
    "build_usage_adapter",
]

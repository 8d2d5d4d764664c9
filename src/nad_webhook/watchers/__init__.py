"""Watcher implementations used by the admission webhook."""

from .certificate import CertificateWatcher  # noqa: F401
from .pods import PodEventAdapter, PodWatcher  # noqa: F401

__all__ = ["CertificateWatcher", "PodEventAdapter", "PodWatcher"]

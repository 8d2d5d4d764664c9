"""Prometheus export of the usage tracker's counters."""

from __future__ import annotations

from typing import Optional

from prometheus_client import CollectorRegistry, Gauge

from .tracker import UsageSink

LABEL_NAME = "networks"


class PrometheusUsageSink(UsageSink):
    """Publish instance counts and "enabled instance up" flags as gauges.

    The instance metric is a gauge rather than a counter because pod
    removal decrements it.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None) -> None:
        self.registry = registry if registry is not None else CollectorRegistry()
        self.instances = Gauge(
            "network_attachment_definition_instances",
            "Metric to get number of instance using network attachment definition in the cluster.",
            [LABEL_NAME],
            registry=self.registry,
        )
        self.enabled_instance_up = Gauge(
            "network_attachment_definition_enabled_instance_up",
            "Metric to identify clusters with network attachment definition enabled instances.",
            [LABEL_NAME],
            registry=self.registry,
        )

    def add_instances(self, label: str, delta: float) -> None:
        self.instances.labels(**{LABEL_NAME: label}).inc(delta)

    def set_enabled(self, label: str, value: int) -> None:
        self.enabled_instance_up.labels(**{LABEL_NAME: label}).set(value)

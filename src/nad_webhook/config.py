"""YAML configuration loader for the admission webhook."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Mapping, Optional, Sequence

import yaml


@dataclass
class WebhookConfig:
    bind_address: str = "0.0.0.0"
    port: int = 443
    tls_cert_file: Path = Path("cert.pem")
    tls_private_key_file: Path = Path("key.pem")
    cert_poll_interval: float = 1.0


@dataclass
class MetricsConfig:
    listen_address: str = "0.0.0.0"
    port: int = 9091
    # None publishes the "enabled instance up" gauge for every label.
    gauge_labels: Optional[Sequence[str]] = None


@dataclass
class ControllerConfig:
    enabled: bool = True
    workers: int = 1
    max_retries: int = 5
    base_delay: float = 0.005
    max_delay: float = 1000.0
    watch_timeout: int = 300


@dataclass
class AgentConfig:
    webhook: WebhookConfig = field(default_factory=WebhookConfig)
    metrics: MetricsConfig = field(default_factory=MetricsConfig)
    controller: ControllerConfig = field(default_factory=ControllerConfig)


def _section(data: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    section = data.get(name)
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise ValueError(f"'{name}' section must be a mapping")
    return section


def _parse_webhook(section: Mapping[str, Any]) -> WebhookConfig:
    defaults = WebhookConfig()
    interval = float(section.get("cert_poll_interval", defaults.cert_poll_interval))
    if interval <= 0:
        raise ValueError("webhook 'cert_poll_interval' must be positive")
    return WebhookConfig(
        bind_address=str(section.get("bind_address", defaults.bind_address)),
        port=int(section.get("port", defaults.port)),
        tls_cert_file=Path(section.get("tls_cert_file", defaults.tls_cert_file)),
        tls_private_key_file=Path(
            section.get("tls_private_key_file", defaults.tls_private_key_file)
        ),
        cert_poll_interval=interval,
    )


def _parse_metrics(section: Mapping[str, Any]) -> MetricsConfig:
    defaults = MetricsConfig()
    labels_raw = section.get("gauge_labels")
    gauge_labels: Optional[List[str]] = None
    if labels_raw is not None:
        if not isinstance(labels_raw, list):
            raise ValueError("metrics 'gauge_labels' must be a list if provided")
        gauge_labels = [str(label) for label in labels_raw]
    return MetricsConfig(
        listen_address=str(section.get("listen_address", defaults.listen_address)),
        port=int(section.get("port", defaults.port)),
        gauge_labels=gauge_labels,
    )


def _parse_controller(section: Mapping[str, Any]) -> ControllerConfig:
    defaults = ControllerConfig()
    workers = int(section.get("workers", defaults.workers))
    max_retries = int(section.get("max_retries", defaults.max_retries))
    if workers < 1:
        raise ValueError("controller 'workers' must be at least 1")
    if max_retries < 1:
        raise ValueError("controller 'max_retries' must be at least 1")
    return ControllerConfig(
        enabled=bool(section.get("enabled", defaults.enabled)),
        workers=workers,
        max_retries=max_retries,
        base_delay=float(section.get("base_delay", defaults.base_delay)),
        max_delay=float(section.get("max_delay", defaults.max_delay)),
        watch_timeout=int(section.get("watch_timeout", defaults.watch_timeout)),
    )


def load_config(path: Path) -> AgentConfig:
    data = yaml.safe_load(path.read_text())
    if data is None:
        return AgentConfig()
    if not isinstance(data, dict):
        raise ValueError("Agent configuration must be a mapping")

    return AgentConfig(
        webhook=_parse_webhook(_section(data, "webhook")),
        metrics=_parse_metrics(_section(data, "metrics")),
        controller=_parse_controller(_section(data, "controller")),
    )

from pathlib import Path

import pytest

from nad_webhook.config import AgentConfig, load_config
from nad_webhook.main import _parse_args, build_config


def test_load_config(tmp_path: Path):
    config_path = tmp_path / "webhook.yaml"
    config_path.write_text(
        """
webhook:
  bind_address: 127.0.0.1
  port: 8443
  tls_cert_file: /etc/webhook/tls.crt
  tls_private_key_file: /etc/webhook/tls.key
  cert_poll_interval: 2
metrics:
  port: 9100
  gauge_labels:
    - any
    - sriov
    - ib-sriov
controller:
  workers: 4
  max_retries: 3
"""
    )

    cfg = load_config(config_path)

    assert cfg.webhook.bind_address == "127.0.0.1"
    assert cfg.webhook.port == 8443
    assert cfg.webhook.tls_cert_file == Path("/etc/webhook/tls.crt")
    assert cfg.webhook.tls_private_key_file == Path("/etc/webhook/tls.key")
    assert cfg.webhook.cert_poll_interval == pytest.approx(2.0)
    assert cfg.metrics.listen_address == "0.0.0.0"
    assert cfg.metrics.port == 9100
    assert cfg.metrics.gauge_labels == ["any", "sriov", "ib-sriov"]
    assert cfg.controller.enabled is True
    assert cfg.controller.workers == 4
    assert cfg.controller.max_retries == 3
    assert cfg.controller.base_delay == pytest.approx(0.005)


def test_empty_config_uses_defaults(tmp_path: Path):
    config_path = tmp_path / "webhook.yaml"
    config_path.write_text("")

    assert load_config(config_path) == AgentConfig()


@pytest.mark.parametrize(
    "content",
    [
        "- webhook",
        "webhook: 443",
        "metrics:\n  gauge_labels: sriov\n",
        "controller:\n  workers: 0\n",
        "webhook:\n  cert_poll_interval: 0\n",
    ],
)
def test_invalid_config_is_rejected(tmp_path: Path, content: str):
    config_path = tmp_path / "webhook.yaml"
    config_path.write_text(content)

    with pytest.raises(ValueError):
        load_config(config_path)


def test_command_line_overrides_config(tmp_path: Path):
    config_path = tmp_path / "webhook.yaml"
    config_path.write_text("webhook:\n  port: 8443\n")

    args = _parse_args(
        [
            "--config",
            str(config_path),
            "--port",
            "9443",
            "--tls-cert-file",
            "/tmp/cert.pem",
            "--metrics-listen-address",
            ":9092",
            "--no-controller",
        ]
    )
    cfg = build_config(args)

    assert cfg.webhook.port == 9443
    assert cfg.webhook.tls_cert_file == Path("/tmp/cert.pem")
    assert cfg.metrics.listen_address == "0.0.0.0"
    assert cfg.metrics.port == 9092
    assert cfg.controller.enabled is False


def test_bad_metrics_listen_address_is_rejected():
    args = _parse_args(["--metrics-listen-address", "localhost"])

    with pytest.raises(ValueError):
        build_config(args)

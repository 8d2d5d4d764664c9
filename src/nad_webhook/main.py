"""Entry point for the net-attach-def admission webhook."""

from __future__ import annotations

import argparse
import logging
import signal
import sys
from pathlib import Path
from threading import Event

from kubernetes import client
from kubernetes import config as kube_config

from nad_admission.errors import FatalIOError
from nad_admission.metrics import PrometheusUsageSink
from nad_admission.tracker import UsageTracker
from nad_controller import ExponentialBackoff, HandlerRegistry, PodEventController, RateLimitingQueue
from nad_controller.handlers import build_usage_adapter

from .certs import KeyPairReloader
from .config import AgentConfig, load_config
from .lookup import KubernetesAttachmentLookup
from .server import ServerThread, create_app, create_metrics_app
from .watchers import CertificateWatcher, PodWatcher

LOG = logging.getLogger(__name__)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the net-attach-def admission webhook")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to an optional YAML configuration file",
    )
    parser.add_argument("--port", type=int, help="The port on which to serve")
    parser.add_argument(
        "--bind-address",
        help="The IP address on which to listen for the --port port",
    )
    parser.add_argument(
        "--metrics-listen-address",
        help="Metrics server listen address, as host:port",
    )
    parser.add_argument(
        "--tls-cert-file",
        type=Path,
        help="File containing the default x509 certificate for HTTPS",
    )
    parser.add_argument(
        "--tls-private-key-file",
        type=Path,
        help="File containing the x509 private key matching --tls-cert-file",
    )
    parser.add_argument(
        "--no-controller",
        action="store_true",
        help="Serve admission requests only; do not track pod usage",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> AgentConfig:
    config = load_config(args.config) if args.config else AgentConfig()

    if args.port is not None:
        config.webhook.port = args.port
    if args.bind_address:
        config.webhook.bind_address = args.bind_address
    if args.tls_cert_file:
        config.webhook.tls_cert_file = args.tls_cert_file
    if args.tls_private_key_file:
        config.webhook.tls_private_key_file = args.tls_private_key_file
    if args.metrics_listen_address:
        host, _, port = args.metrics_listen_address.rpartition(":")
        if not port.isdigit():
            raise ValueError(
                f"invalid --metrics-listen-address '{args.metrics_listen_address}'"
            )
        config.metrics.listen_address = host or "0.0.0.0"
        config.metrics.port = int(port)
    if args.no_controller:
        config.controller.enabled = False
    return config


def _load_kube_config() -> None:
    try:
        kube_config.load_incluster_config()
    except kube_config.ConfigException:
        LOG.info("not running in a cluster, falling back to kubeconfig")
        kube_config.load_kube_config()


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    _setup_logging(args.verbose)
    config = build_config(args)

    LOG.info("starting net-attach-def-admission-controller webhook server")

    try:
        key_pair = KeyPairReloader(
            config.webhook.tls_cert_file, config.webhook.tls_private_key_file
        )
    except FatalIOError as exc:
        LOG.critical("%s", exc.message)
        return 1

    stop_event = Event()

    sink = PrometheusUsageSink()
    metrics_server = ServerThread(
        create_metrics_app(sink.registry),
        config.metrics.listen_address,
        config.metrics.port,
        name="metrics-server",
    )
    metrics_server.start()

    controller = None
    pod_watcher = None
    if config.controller.enabled:
        _load_kube_config()
        tracker = UsageTracker(
            KubernetesAttachmentLookup(client.CustomObjectsApi()),
            sink=sink,
            gauge_labels=config.metrics.gauge_labels,
        )
        tracker.prime()

        registry = HandlerRegistry()
        registry.register("usage", build_usage_adapter(tracker))
        controller = PodEventController(
            registry,
            queue=RateLimitingQueue(
                ExponentialBackoff(config.controller.base_delay, config.controller.max_delay)
            ),
            max_retries=config.controller.max_retries,
        )
        controller.start(config.controller.workers)

        pod_watcher = PodWatcher(
            controller.enqueue,
            stop_event,
            core_api=client.CoreV1Api(),
            timeout_seconds=config.controller.watch_timeout,
        )
        pod_watcher.start()
    else:
        LOG.warning("usage controller disabled; serving admission requests only")

    webhook_server = ServerThread(
        create_app(),
        config.webhook.bind_address,
        config.webhook.port,
        ssl_context=key_pair.context,
        name="webhook-server",
    )
    webhook_server.start()

    cert_watcher = CertificateWatcher(
        config.webhook.tls_cert_file,
        on_change=key_pair.reload,
        interval=config.webhook.cert_poll_interval,
        stop_event=stop_event,
    )
    cert_watcher.start()

    def _shutdown(signum, frame):  # pragma: no cover - signal handler
        LOG.info("received signal %s, shutting down", signum)
        stop_event.set()

    def _reload(signum, frame):  # pragma: no cover - signal handler
        LOG.info("received signal %s, reloading certificate", signum)
        key_pair.reload()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)
    if hasattr(signal, "SIGHUP"):
        signal.signal(signal.SIGHUP, _reload)

    try:
        while not stop_event.is_set():
            stop_event.wait(1.0)
    except KeyboardInterrupt:  # pragma: no cover - fallback if signal not set
        stop_event.set()

    # Stop intake first, then let in-flight keys finish before the servers go.
    if pod_watcher is not None:
        pod_watcher.join(timeout=5.0)
    if controller is not None:
        controller.stop()
    webhook_server.shutdown()
    metrics_server.shutdown()
    cert_watcher.join()

    if cert_watcher.error is not None:
        LOG.critical("exiting: %s", cert_watcher.error.message)
        return 1

    LOG.info("net-attach-def admission webhook stopped")
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())

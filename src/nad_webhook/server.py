"""HTTP applications: admission review endpoints and metrics/health.

The admission app speaks the AdmissionReview envelope expected from a
validating webhook: it reads ``request.uid`` and ``request.object`` and
answers with ``response.allowed`` plus an optional ``status.message``.
"""

from __future__ import annotations

import json
import logging
import ssl
from threading import Thread
from typing import Any, Callable, Dict, Mapping, Optional

from flask import Flask, Response, jsonify, request
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, generate_latest
from werkzeug.serving import make_server

from nad_admission.annotation import NETWORKS_ANNOTATION
from nad_admission.resources import NetworkAttachmentDefinition, PodView
from nad_admission.validation import (
    AdmissionDecision,
    check_pod_isolation,
    validate_network_attachment_definition,
)

LOG = logging.getLogger(__name__)

DEFAULT_API_VERSION = "admission.k8s.io/v1"
ADMISSION_REVIEW_KIND = "AdmissionReview"

METRICS_PATH = "/metrics"
HEALTHZ_PATH = "/healthz"

INDEX_PAGE = f"""<html>
<head><title>Net Attach Definition Admission Controller Metrics Server</title></head>
<body>
<h1>Kube Metrics</h1>
<ul>
<li><a href='{METRICS_PATH}'>metrics</a></li>
<li><a href='{HEALTHZ_PATH}'>healthz</a></li>
</ul>
</body>
</html>
"""


class AdmissionRequestError(Exception):
    """The HTTP request does not carry a usable AdmissionReview."""

    def __init__(self, message: str, status: int = 400) -> None:
        super().__init__(message)
        self.message = message
        self.status = status


def read_admission_review(body: bytes, content_type: Optional[str]) -> Dict[str, Any]:
    if not body:
        raise AdmissionRequestError("Error reading HTTP request: empty body")

    if content_type != "application/json":
        raise AdmissionRequestError(
            f"Invalid Content-Type='{content_type}', expected 'application/json'",
            status=415,
        )

    try:
        review = json.loads(body)
    except ValueError as exc:
        raise AdmissionRequestError(f"error deserializing AdmissionReview: {exc}") from exc

    if not isinstance(review, dict) or review.get("kind") != ADMISSION_REVIEW_KIND:
        raise AdmissionRequestError(
            "error deserializing AdmissionReview: received object is not an AdmissionReview"
        )
    if not isinstance(review.get("request"), dict):
        raise AdmissionRequestError("received empty AdmissionReview request")
    return review


def build_admission_response(
    review: Mapping[str, Any], decision: AdmissionDecision
) -> Dict[str, Any]:
    admission_request = review.get("request") or {}
    response: Dict[str, Any] = {
        "uid": admission_request.get("uid", ""),
        "allowed": decision.allowed,
    }
    if decision.message:
        response["status"] = {"message": decision.message}
    return {
        "apiVersion": review.get("apiVersion") or DEFAULT_API_VERSION,
        "kind": ADMISSION_REVIEW_KIND,
        "response": response,
    }


def review_network_attachment_definition(obj: Any) -> AdmissionDecision:
    try:
        nad = NetworkAttachmentDefinition.from_object(obj)
    except ValueError as exc:
        return AdmissionDecision(False, str(exc), "InvalidObject")
    return validate_network_attachment_definition(nad)


def review_pod_isolation(obj: Any) -> AdmissionDecision:
    try:
        pod = PodView.from_object(obj)
    except ValueError as exc:
        return AdmissionDecision(False, str(exc), "InvalidObject")
    return check_pod_isolation(pod.annotation(NETWORKS_ANNOTATION))


def _admit(review_object: Callable[[Any], AdmissionDecision]):
    try:
        review = read_admission_review(request.get_data(), request.mimetype or None)
    except AdmissionRequestError as exc:
        LOG.error("%s", exc.message)
        return Response(exc.message, status=exc.status, mimetype="text/plain")

    decision = review_object(review["request"].get("object"))
    if not decision.allowed:
        LOG.info(
            "AdmissionReview %s denied: %s",
            review["request"].get("uid", ""),
            decision.message,
        )
    return jsonify(build_admission_response(review, decision))


def create_app() -> Flask:
    app = Flask(__name__)

    @app.route("/validate", methods=["POST"])
    def validate():
        return _admit(review_network_attachment_definition)

    @app.route("/isolate", methods=["POST"])
    def isolate():
        return _admit(review_pod_isolation)

    return app


def create_metrics_app(registry: CollectorRegistry) -> Flask:
    app = Flask(__name__)

    @app.route(METRICS_PATH)
    def metrics():
        return Response(generate_latest(registry), mimetype=CONTENT_TYPE_LATEST)

    @app.route(HEALTHZ_PATH)
    def healthz():
        return Response("OK", mimetype="text/plain")

    @app.route("/")
    def index():
        return Response(INDEX_PAGE, mimetype="text/html")

    return app


class ServerThread(Thread):
    """Serve a WSGI app from a background thread until :meth:`shutdown`."""

    def __init__(
        self,
        app: Flask,
        host: str,
        port: int,
        *,
        ssl_context: Optional[ssl.SSLContext] = None,
        name: str = "http-server",
    ) -> None:
        super().__init__(name=name, daemon=True)
        self._server = make_server(host, port, app, threaded=True, ssl_context=ssl_context)

    @property
    def port(self) -> int:
        return self._server.server_port

    def run(self) -> None:
        LOG.info("%s listening on port %d", self.name, self.port)
        self._server.serve_forever()

    def shutdown(self) -> None:
        self._server.shutdown()
        self._server.server_close()

import datetime
import ssl
from pathlib import Path
from threading import Event

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

from nad_admission.errors import FatalIOError
from nad_webhook.certs import KeyPairReloader
from nad_webhook.watchers.certificate import CertificateWatcher, certificate_digest


class Counter:
    def __init__(self):
        self.calls = 0

    def __call__(self):
        self.calls += 1


def test_certificate_watcher_signals_rotation(tmp_path: Path):
    cert = tmp_path / "cert.pem"
    cert.write_text("first")
    on_change = Counter()
    watcher = CertificateWatcher(cert, on_change, interval=0.1, stop_event=Event())

    assert watcher.poll() is False
    assert watcher.poll() is False
    assert on_change.calls == 0

    cert.write_text("second")
    assert watcher.poll() is True
    assert on_change.calls == 1

    assert watcher.poll() is False
    assert on_change.calls == 1


def test_digest_is_sha512(tmp_path: Path):
    cert = tmp_path / "cert.pem"
    cert.write_bytes(b"")

    assert certificate_digest(cert).startswith("cf83e1357eefb8bd")
    assert len(certificate_digest(cert)) == 128


def test_missing_certificate_is_fatal(tmp_path: Path):
    with pytest.raises(FatalIOError):
        certificate_digest(tmp_path / "missing.pem")


def test_watcher_stops_process_on_read_failure(tmp_path: Path):
    stop_event = Event()
    watcher = CertificateWatcher(
        tmp_path / "missing.pem", Counter(), interval=0.1, stop_event=stop_event
    )

    watcher.run()

    assert stop_event.is_set()
    assert isinstance(watcher.error, FatalIOError)


def test_key_pair_load_failure_is_fatal(tmp_path: Path):
    with pytest.raises(FatalIOError):
        KeyPairReloader(tmp_path / "cert.pem", tmp_path / "key.pem")


def write_key_pair(cert_path: Path, key_path: Path, common_name: str) -> bytes:
    """Write a self-signed pair and return the certificate in DER form."""

    key = rsa.generate_private_key(65537, 2048)
    key_path.write_bytes(
        key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.TraditionalOpenSSL,
            encryption_algorithm=serialization.NoEncryption(),
        )
    )
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    now = datetime.datetime.now(datetime.timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(minutes=1))
        .not_valid_after(now + datetime.timedelta(days=1))
        .sign(key, hashes.SHA256())
    )
    cert_path.write_bytes(cert.public_bytes(serialization.Encoding.PEM))
    return cert.public_bytes(serialization.Encoding.DER)


def served_certificate(server_context: ssl.SSLContext) -> bytes:
    """Run an in-memory TLS handshake and return the certificate served."""

    client_context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    client_context.check_hostname = False
    client_context.verify_mode = ssl.CERT_NONE
    client_in, client_out, server_in, server_out = (ssl.MemoryBIO() for _ in range(4))
    client = client_context.wrap_bio(client_in, client_out, server_hostname="webhook.test")
    server = server_context.wrap_bio(server_in, server_out, server_side=True)

    pending = [client, server]
    for _ in range(10):
        for side in list(pending):
            try:
                side.do_handshake()
            except ssl.SSLWantReadError:
                continue
            pending.remove(side)
        server_in.write(client_out.read())
        client_in.write(server_out.read())
        if not pending:
            break
    assert not pending
    return client.getpeercert(binary_form=True)


def test_reload_serves_new_pair_on_same_context(tmp_path: Path):
    cert, key = tmp_path / "cert.pem", tmp_path / "key.pem"
    first = write_key_pair(cert, key, "first")
    reloader = KeyPairReloader(cert, key)
    listener_context = reloader.context

    assert served_certificate(listener_context) == first

    second = write_key_pair(cert, key, "second")
    assert reloader.reload() is True

    assert reloader.context is listener_context
    assert reloader.reloads == 1
    assert served_certificate(listener_context) == second


def test_failed_reload_keeps_previous_pair(tmp_path: Path):
    cert, key = tmp_path / "cert.pem", tmp_path / "key.pem"
    first = write_key_pair(cert, key, "first")
    reloader = KeyPairReloader(cert, key)
    current = reloader.current

    # New certificate written, matching key not yet in place.
    write_key_pair(cert, tmp_path / "next-key.pem", "second")

    assert reloader.reload() is False
    assert reloader.current is current
    assert reloader.reloads == 0
    assert served_certificate(reloader.context) == first


def test_watcher_retries_until_key_pair_is_complete(tmp_path: Path):
    cert, key = tmp_path / "cert.pem", tmp_path / "key.pem"
    write_key_pair(cert, key, "first")
    reloader = KeyPairReloader(cert, key)
    watcher = CertificateWatcher(cert, reloader.reload, interval=0.1, stop_event=Event())
    watcher.poll()

    next_key = tmp_path / "next-key.pem"
    second = write_key_pair(cert, next_key, "second")
    assert watcher.poll() is True
    assert reloader.reloads == 0

    key.write_bytes(next_key.read_bytes())
    assert watcher.poll() is True
    assert reloader.reloads == 1
    assert watcher.poll() is False
    assert served_certificate(reloader.context) == second


def test_watcher_survives_unexpected_reload_errors(tmp_path: Path):
    cert = tmp_path / "cert.pem"
    cert.write_text("first")
    stop_event = Event()
    calls = []

    def on_change():
        calls.append(1)
        stop_event.set()
        raise ssl.SSLError("KEY_VALUES_MISMATCH")

    watcher = CertificateWatcher(cert, on_change, interval=0.01, stop_event=stop_event)
    watcher.poll()
    cert.write_text("second")

    watcher.run()

    assert calls == [1]
    assert watcher.error is None

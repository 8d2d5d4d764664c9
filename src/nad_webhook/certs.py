"""TLS key pair that can be swapped under a running listener."""

from __future__ import annotations

import logging
import ssl
from pathlib import Path
from threading import Lock

from nad_admission.errors import FatalIOError

LOG = logging.getLogger(__name__)


def load_key_pair(cert_path: Path, key_path: Path) -> ssl.SSLContext:
    """Return a fresh server context holding the given pair.

    Raises ``OSError`` or ``ssl.SSLError`` if the files cannot be read or
    the key does not match the certificate.
    """

    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    context.load_cert_chain(str(cert_path), str(key_path))
    return context


class KeyPairReloader:
    """Own the listener's :class:`ssl.SSLContext` and rotate its key pair.

    The listener keeps :attr:`context` for its whole lifetime.  Each reload
    builds a complete new context, and the SNI callback on the listener
    context points every new handshake at the newest one.  A pair that
    fails to load never replaces the current one, and established
    connections are left alone.
    """

    def __init__(self, cert_path: Path, key_path: Path) -> None:
        self._cert_path = Path(cert_path)
        self._key_path = Path(key_path)
        self._lock = Lock()
        try:
            self._context = load_key_pair(self._cert_path, self._key_path)
        except (OSError, ssl.SSLError) as exc:
            raise FatalIOError(
                f"error loading certificate {self._cert_path}: {exc}"
            ) from exc
        self._current = self._context
        self._context.sni_callback = self._select_context
        self.reloads = 0

    @property
    def context(self) -> ssl.SSLContext:
        return self._context

    @property
    def current(self) -> ssl.SSLContext:
        """Context holding the pair that new handshakes are served with."""

        with self._lock:
            return self._current

    def reload(self) -> bool:
        """Load the current files and serve them from the next handshake on.

        Returns ``False`` and keeps the previous pair when the files do not
        load, for example when the key was rotated before the certificate.
        """

        try:
            fresh = load_key_pair(self._cert_path, self._key_path)
        except (OSError, ssl.SSLError) as exc:
            LOG.error(
                "failed to reload certificate %s, keeping the previous one: %s",
                self._cert_path,
                exc,
            )
            return False

        with self._lock:
            self._current = fresh
            self.reloads += 1
        LOG.info("reloaded TLS key pair from %s", self._cert_path)
        return True

    def _select_context(self, ssl_socket, server_name, initial_context) -> None:
        current = self.current
        if current is not initial_context:
            ssl_socket.context = current

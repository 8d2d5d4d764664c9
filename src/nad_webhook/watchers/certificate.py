"""Certificate rotation watcher."""

from __future__ import annotations

import hashlib
import logging
from pathlib import Path
from threading import Event, Thread
from typing import Callable, Optional

from nad_admission.errors import FatalIOError

LOG = logging.getLogger(__name__)


def certificate_digest(path: Path) -> str:
    try:
        content = path.read_bytes()
    except OSError as exc:
        raise FatalIOError(f"failed to read file {path}: {exc}") from exc
    return hashlib.sha512(content).hexdigest()


class CertificateWatcher(Thread):
    """Poll a certificate file and signal ``on_change`` when it rotates.

    The first poll only records a baseline.  When ``on_change`` returns
    ``False`` the change is reported again on the next poll.  A read
    failure stops the watcher, records the error in :attr:`error` and sets
    ``stop_event`` so the process shuts down instead of serving stale TLS
    material.
    """

    def __init__(
        self,
        path: Path,
        on_change: Callable[[], Optional[bool]],
        interval: float,
        stop_event: Event,
    ) -> None:
        super().__init__(name="certificate-watcher", daemon=True)
        self._path = Path(path)
        self._on_change = on_change
        self._interval = interval
        self._stop_event = stop_event
        self._digest: Optional[str] = None
        self.error: Optional[FatalIOError] = None

    def run(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.poll()
            except FatalIOError as exc:
                LOG.critical("%s", exc.message)
                self.error = exc
                self._stop_event.set()
                return
            except Exception:  # pragma: no cover - logged below
                LOG.exception("certificate watcher encountered an error")
            self._stop_event.wait(self._interval)

    def poll(self) -> bool:
        digest = certificate_digest(self._path)
        if self._digest is None:
            self._digest = digest
            return False
        if digest == self._digest:
            return False

        LOG.info("certificate %s changed, reloading", self._path)
        # A refused pair leaves the old digest so the next poll retries.
        if self._on_change() is not False:
            self._digest = digest
        return True

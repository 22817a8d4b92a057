"""Background cleanup of dead session tokens."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from sqlalchemy.engine import Engine
from sqlmodel import Session

from ..services import TokenAuthority

_LOGGER = logging.getLogger("eduflow.sweeper")


class TokenSweeper:
    """Periodically delete revoked and expired token rows.

    Resolution already treats such tokens as invalid, so sweeping only
    reclaims space. A failed sweep is logged and retried next interval.
    """

    def __init__(self, engine: Engine, interval_seconds: float, clock: Optional[Callable] = None):
        self._engine = engine
        self._interval = interval_seconds
        self._clock = clock
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def run_once(self) -> int:
        with Session(self._engine) as session:
            removed = TokenAuthority(session, clock=self._clock).purge_expired()
        _LOGGER.info("token sweep removed %d rows", removed)
        return removed

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="token-sweeper", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _loop(self) -> None:
        while not self._stop.wait(self._interval):
            try:
                self.run_once()
            except Exception:
                _LOGGER.warning("token sweep failed; retrying next interval", exc_info=True)

"""Session / run ID generator."""

from __future__ import annotations

import re
import threading
import time
from datetime import datetime, timedelta
from typing import Callable, Optional


_SESSION_RE = re.compile(r"^(?P<machine>.+)_(?P<stamp>\d{8}_\d{6}_\d{6})$")
_RUN_RE = re.compile(r"^(?P<session>.+)_run_(?P<ticks>\d+)$")


class SessionIdGenerator:
    """Session / run ID generator.

    Session IDs are ``<machine_id>_<YYYYmmdd_HHMMSS_ffffff>``; run IDs are
    ``<session_id>_run_<ns>``. The nanosecond stamp is forced to increase
    between calls so two runs started in the same clock tick still differ.
    """

    def __init__(
        self,
        *,
        now: Optional[Callable[[], datetime]] = None,
        ticks: Optional[Callable[[], int]] = None,
    ) -> None:
        self._now = now or datetime.now
        self._ticks = ticks or time.time_ns
        self._lock = threading.Lock()
        self._last_ticks = 0
        self._last_session_started: Optional[datetime] = None

    def new_session_id(self, machine_id: str) -> str:
        """Generate a session ID.

        Args:
            machine_id: host identity reported on every event

        Returns:
            a session ID unique per activation
        """
        with self._lock:
            started = self._now()
            last = self._last_session_started
            if last is not None and started <= last:
                # Same microsecond or a clock step backwards.
                started = last + timedelta(microseconds=1)
            self._last_session_started = started
        return f"{machine_id}_{started.strftime('%Y%m%d_%H%M%S_%f')}"

    def new_run_id(self, session_id: str) -> str:
        """Generate a run ID nested under ``session_id``."""
        with self._lock:
            ticks = max(int(self._ticks()), self._last_ticks + 1)
            self._last_ticks = ticks
        return f"{session_id}_run_{ticks}"

    @staticmethod
    def validate(session_id: str) -> bool:
        return bool(_SESSION_RE.match(session_id or ""))

    @staticmethod
    def get_machine_id(session_id: str) -> str:
        """Extract the machine ID from a session ID ("" if malformed)."""
        m = _SESSION_RE.match(session_id or "")
        return m.group("machine") if m else ""

    @staticmethod
    def get_session_id(run_id: str) -> str:
        """Extract the owning session ID from a run ID ("" if malformed)."""
        m = _RUN_RE.match(run_id or "")
        return m.group("session") if m else ""

from __future__ import annotations

import logging
from typing import Callable, Optional

from playtrace.config import DEFAULT_SERVER_URL
from playtrace.session.session_id_generator import SessionIdGenerator
from playtrace.telemetry.envelope import EnvelopeBuilder, EventType
from playtrace.telemetry.run_tracker import Emit, RunTracker

logger = logging.getLogger(__name__)

REASON_SESSION_END = "session_end"


class SessionTracker:
    """Owns the collector target, session identity and the nested run tracker.

    Closing a session always closes its run first, so the collector never sees
    a run outliving its session.
    """

    def __init__(
        self,
        *,
        builder: EnvelopeBuilder,
        runs: RunTracker,
        emit: Emit,
        clock: Callable[[], float],
        ids: SessionIdGenerator,
    ) -> None:
        self._builder = builder
        self._runs = runs
        self._emit = emit
        self._clock = clock
        self._ids = ids
        self._server_url = ""
        self._session_id = ""

    @property
    def server_url(self) -> str:
        return self._server_url

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def machine_id(self) -> str:
        return self._builder.machine_id

    @property
    def user_id(self) -> str:
        return self._builder.user_id

    def is_configured(self) -> bool:
        return bool(self._server_url)

    def is_active(self) -> bool:
        return bool(self._session_id)

    def configure(self, server_url: str) -> None:
        url = str(server_url or "").strip()
        self._server_url = url or DEFAULT_SERVER_URL
        logger.info("[telemetry/session] configured server: %s", self._server_url)

    def start_new_session(self) -> bool:
        if not self._server_url:
            logger.error("[telemetry/session] cannot start session - configure() not called yet")
            return False

        if self._session_id:
            logger.warning("[telemetry/session] ending previous session before starting new one")
            self.end_session()

        self._session_id = self._ids.new_session_id(self._builder.machine_id)
        self._builder.reset_frames()
        logger.info("[telemetry/session] session started: %s", self._session_id)

        self._emit(EventType.SESSION_START, 0.0)
        return True

    def end_session(self, *, run_reason: str = REASON_SESSION_END) -> bool:
        if not self._session_id:
            return False

        if not self._server_url:
            logger.warning("[telemetry/session] cannot end session - server not configured")
            self._runs.discard()
            self._session_id = ""
            return False

        try:
            if self._runs.is_active():
                self._runs.end_run(run_reason)
            logger.info("[telemetry/session] session ended: %s", self._session_id)
            self._emit(EventType.SESSION_END, float(self._clock()))
        finally:
            self._session_id = ""
        return True

    def start_run(self, *, game_time: Optional[float] = None) -> bool:
        return self._runs.start_run(self._session_id, game_time=game_time)

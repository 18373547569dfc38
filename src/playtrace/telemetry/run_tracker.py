from __future__ import annotations

import logging
from dataclasses import replace
from typing import Callable, Optional, Protocol

from playtrace.session.session_id_generator import SessionIdGenerator
from playtrace.telemetry.envelope import EventType
from playtrace.telemetry.run_data import RunData

logger = logging.getLogger(__name__)

REASON_NEW_RUN = "new_run_started"


class Emit(Protocol):
    def __call__(self, event_type: EventType, game_time: float, *, run: Optional[RunData] = None) -> None: ...


class RunTracker:
    """Tracks at most one active run inside the current session.

    Not thread-safe on its own; the owning service serializes calls.
    """

    def __init__(self, *, emit: Emit, clock: Callable[[], float], ids: SessionIdGenerator) -> None:
        self._emit = emit
        self._clock = clock
        self._ids = ids
        self._run = RunData()

    @property
    def current(self) -> RunData:
        return self._run

    def is_active(self) -> bool:
        return self._run.is_active()

    def start_run(self, session_id: str, *, game_time: Optional[float] = None) -> bool:
        if not session_id:
            logger.error("[telemetry/run] cannot start run - no active session")
            return False

        if self._run.is_active():
            logger.warning("[telemetry/run] ending previous run before starting new one: %s", self._run.run_id)
            self.end_run(REASON_NEW_RUN, game_time=game_time)

        start = float(self._clock() if game_time is None else game_time)
        self._run = RunData(run_id=self._ids.new_run_id(session_id), run_start_time=start)
        logger.info("[telemetry/run] run started: %s", self._run.run_id)
        self._emit(EventType.RUN_START, start, run=self._run)
        return True

    def end_run(self, reason: str, *, game_time: Optional[float] = None) -> bool:
        if not self._run.is_active():
            logger.warning("[telemetry/run] end_run(%s) ignored - no active run", reason)
            return False

        end = float(self._clock() if game_time is None else game_time)
        finished = self._run.finalized(end_time=end, reason=reason)
        logger.info(
            "[telemetry/run] run ended: %s reason=%s total=%.3f",
            finished.run_id,
            finished.end_reason,
            finished.run_total_time,
        )
        try:
            self._emit(EventType.RUN_END, end, run=finished)
        finally:
            self._run = RunData()
        return True

    def increment_rooms_cleared(self) -> int:
        if not self._run.is_active():
            logger.warning("[telemetry/run] rooms_cleared not counted - no active run")
            return 0
        self._run = replace(self._run, rooms_cleared=self._run.rooms_cleared + 1)
        return self._run.rooms_cleared

    def discard(self) -> None:
        """Drop run state without emitting (delivery is impossible)."""
        if self._run.run_id:
            logger.warning("[telemetry/run] discarding run without run_end: %s", self._run.run_id)
        self._run = RunData()

from __future__ import annotations

import threading
from enum import Enum
from typing import Any, Dict, Optional

from playtrace.telemetry.run_data import RunData


class EventType(str, Enum):
    SESSION_START = "session_start"
    SESSION_END = "session_end"
    RUN_START = "run_start"
    RUN_END = "run_end"
    POSITION = "position"
    DAMAGE = "damage"
    DEATH = "death"
    INPUT_RECEIVED = "input_received"
    INPUT_CONTEXT_CHANGED = "input_context_changed"


class EnvelopeBuilder:
    """Builds the common fields shared by every outgoing event.

    The frame counter is read-then-incremented once per envelope, so frame
    numbers follow build order. Callers that also enqueue the envelope should
    hold their own lock across build + enqueue to keep send order aligned.
    """

    def __init__(self, *, machine_id: str, user_id: str = "") -> None:
        self.machine_id = str(machine_id or "")
        self.user_id = str(user_id or "")
        self._frame = 0
        self._lock = threading.Lock()

    @property
    def frame_counter(self) -> int:
        """Frame number the next envelope will carry."""
        return self._frame

    def reset_frames(self) -> None:
        with self._lock:
            self._frame = 0

    def build_base(
        self,
        event_type: EventType | str,
        game_time: float,
        *,
        session_id: str,
        run: Optional[RunData] = None,
    ) -> Dict[str, Any]:
        kind = EventType(event_type)
        game_time = float(game_time)
        with self._lock:
            frame = self._frame
            self._frame += 1

        ev: Dict[str, Any] = {
            "machine_id": self.machine_id,
            "session_id": str(session_id or ""),
            "event_type": kind.value,
            "frame": frame,
            "game_time": game_time,
        }
        if self.user_id:
            ev["user_id"] = self.user_id
        if run is not None and run.run_id:
            ev.update(run.to_dict())
        return ev

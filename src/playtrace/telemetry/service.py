from __future__ import annotations

import functools
import logging
import os
import socket
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from playtrace.config import REQUEST_TIMEOUT_S, normalize_mode
from playtrace.session.session_id_generator import SessionIdGenerator
from playtrace.telemetry.context import Vector3
from playtrace.telemetry.delivery import TelemetryDispatcher
from playtrace.telemetry.envelope import EnvelopeBuilder, EventType
from playtrace.telemetry.run_data import RunData
from playtrace.telemetry.run_tracker import RunTracker
from playtrace.telemetry.session_tracker import SessionTracker

logger = logging.getLogger(__name__)

REASON_SHUTDOWN = "shutdown"


@dataclass(frozen=True, slots=True)
class TelemetryCapabilities:
    mode: str
    server_url: str
    request_timeout_s: float
    machine_id: str
    session_id: str
    run_id: str
    frame: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mode": self.mode,
            "server_url": self.server_url,
            "request_timeout_s": self.request_timeout_s,
            "machine_id": self.machine_id,
            "session_id": self.session_id,
            "run_id": self.run_id,
            "frame": self.frame,
        }


def _env_first(name: str) -> str:
    """Return unprefixed env var first, then PLAYTRACE_-prefixed."""
    v = (os.getenv(name) or "").strip()
    if v:
        return v
    return (os.getenv(f"PLAYTRACE_{name}") or "").strip()


def _handle_name(handle: Any) -> str:
    """Name of a host-owned handle (input action, mapping context...).

    Accepts a plain string or anything exposing ``get_name()`` / ``name``.
    """
    if handle is None:
        return ""
    if isinstance(handle, str):
        return handle.strip()
    get_name = getattr(handle, "get_name", None)
    if callable(get_name):
        return str(get_name() or "").strip()
    return str(getattr(handle, "name", "") or "").strip()


def _best_effort(fn: Callable[..., None]) -> Callable[..., None]:
    """Telemetry must never break gameplay: log and swallow anything unexpected."""

    @functools.wraps(fn)
    def wrapper(self: "TelemetryService", *args: Any, **kwargs: Any) -> None:
        try:
            with self._lock:
                fn(self, *args, **kwargs)
        except Exception:
            logger.error("[telemetry] %s failed", fn.__name__, exc_info=True)

    return wrapper


class TelemetryService:
    """Session/run state machine plus the gameplay event emitters.

    One instance per running game. The host calls ``start()`` once at boot and
    ``stop()`` at shutdown; everything in between is fire-and-forget.
    """

    def __init__(
        self,
        *,
        server_url: str = "",
        machine_id: str = "",
        user_id: str = "",
        mode: str = "remote",
        request_timeout_s: float = REQUEST_TIMEOUT_S,
        join_timeout_s: float = 2.0,
        clock: Optional[Callable[[], float]] = None,
        dispatcher: Optional[TelemetryDispatcher] = None,
        ids: Optional[SessionIdGenerator] = None,
    ) -> None:
        self._initial_server_url = str(server_url or "").strip()
        self._lock = threading.RLock()

        if clock is None:
            t0 = time.monotonic()

            def clock() -> float:
                return time.monotonic() - t0

        self._clock = clock

        self._dispatcher = dispatcher or TelemetryDispatcher(
            mode=mode,
            timeout_s=request_timeout_s,
            join_timeout_s=join_timeout_s,
        )
        ids = ids or SessionIdGenerator()

        self._builder = EnvelopeBuilder(machine_id=machine_id or socket.gethostname(), user_id=user_id)
        self._runs = RunTracker(emit=self._emit, clock=self._clock, ids=ids)
        self._sessions = SessionTracker(
            builder=self._builder,
            runs=self._runs,
            emit=self._emit,
            clock=self._clock,
            ids=ids,
        )

    @classmethod
    def from_settings(cls, settings: Any, **overrides: Any) -> "TelemetryService":
        # Allow unprefixed env overrides to keep launcher scripts simple.
        kwargs: Dict[str, Any] = dict(
            mode=normalize_mode(_env_first("TELEMETRY_MODE") or getattr(settings, "telemetry_mode", "remote")),
            server_url=_env_first("TELEMETRY_SERVER_URL") or getattr(settings, "telemetry_server_url", ""),
            machine_id=_env_first("TELEMETRY_MACHINE_ID") or getattr(settings, "telemetry_machine_id", ""),
            user_id=_env_first("TELEMETRY_USER_ID") or getattr(settings, "telemetry_user_id", ""),
            request_timeout_s=float(getattr(settings, "telemetry_request_timeout_s", REQUEST_TIMEOUT_S)),
            join_timeout_s=float(getattr(settings, "telemetry_join_timeout_s", 2.0)),
        )
        kwargs.update(overrides)
        return cls(**kwargs)

    # ===== STATE =====

    @property
    def server_url(self) -> str:
        return self._sessions.server_url

    @property
    def session_id(self) -> str:
        return self._sessions.session_id

    @property
    def machine_id(self) -> str:
        return self._builder.machine_id

    @property
    def run(self) -> RunData:
        return self._runs.current

    @property
    def frame_counter(self) -> int:
        return self._builder.frame_counter

    def is_ready(self) -> bool:
        return self._sessions.is_configured() and self._sessions.is_active()

    def capabilities(self) -> TelemetryCapabilities:
        return TelemetryCapabilities(
            mode=self._dispatcher.mode,
            server_url=self.server_url,
            request_timeout_s=self._dispatcher.timeout_s,
            machine_id=self.machine_id,
            session_id=self.session_id,
            run_id=self.run.run_id,
            frame=self.frame_counter,
        )

    # ===== LIFECYCLE =====

    @_best_effort
    def start(self) -> None:
        self._dispatcher.start()
        if self._initial_server_url and not self._sessions.is_configured():
            self._sessions.configure(self._initial_server_url)
        logger.info("[telemetry] initialized on: %s", self.machine_id)

    def stop(self) -> None:
        try:
            with self._lock:
                if self._sessions.is_active():
                    self._sessions.end_session(run_reason=REASON_SHUTDOWN)
        except Exception:
            logger.error("[telemetry] closing session on stop failed", exc_info=True)
        finally:
            try:
                self._dispatcher.stop()
            except Exception:
                logger.error("[telemetry] dispatcher stop failed", exc_info=True)

    @_best_effort
    def configure(self, server_url: str) -> None:
        self._sessions.configure(server_url)

    @_best_effort
    def start_new_session(self) -> None:
        self._sessions.start_new_session()

    @_best_effort
    def end_session(self) -> None:
        self._sessions.end_session()

    @_best_effort
    def start_run(self, game_time: Optional[float] = None) -> None:
        self._sessions.start_run(game_time=game_time)

    @_best_effort
    def end_run(self, reason: str, game_time: Optional[float] = None) -> None:
        self._runs.end_run(reason, game_time=game_time)

    @_best_effort
    def increment_rooms_cleared(self) -> None:
        self._runs.increment_rooms_cleared()

    # ===== GAMEPLAY EVENTS =====

    @_best_effort
    def send_position_update(self, position: Any, game_time: float) -> None:
        if not self._ready("position"):
            return
        self._emit(EventType.POSITION, game_time, fields={"player_pos": Vector3.from_any(position).to_dict()})

    @_best_effort
    def send_damage_event(
        self,
        amount: float,
        health_before: float,
        health_after: float,
        source: str,
        position: Any,
        game_time: float,
    ) -> None:
        if not self._ready("damage"):
            return
        self._emit(
            EventType.DAMAGE,
            game_time,
            fields={
                "damage": float(amount),
                "health_before": float(health_before),
                "health_after": float(health_after),
                "damage_source": str(source or ""),
                "player_pos": Vector3.from_any(position).to_dict(),
            },
        )

    @_best_effort
    def send_death_event(self, cause: Optional[str], position: Any, game_time: float) -> None:
        if not self._ready("death"):
            return
        fields: Dict[str, Any] = {"player_pos": Vector3.from_any(position).to_dict()}
        if cause:
            fields["cause"] = str(cause)
        self._emit(EventType.DEATH, game_time, fields=fields)

    @_best_effort
    def send_player_input_action(self, action: Any, game_time: float) -> None:
        name = _handle_name(action)
        if not name:
            logger.warning("[telemetry] input action ignored - missing action identifier")
            return
        if not self._ready("input_received"):
            return
        self._emit(EventType.INPUT_RECEIVED, game_time, fields={"action_name": name})

    @_best_effort
    def send_input_context_update(self, context: Any, game_time: float) -> None:
        name = _handle_name(context)
        if not name:
            logger.warning("[telemetry] input context update ignored - missing context identifier")
            return
        if not self._ready("input_context_changed"):
            return
        self._emit(EventType.INPUT_CONTEXT_CHANGED, game_time, fields={"context_name": name})

    # ===== INTERNALS =====

    def _ready(self, what: str) -> bool:
        if self.is_ready():
            return True
        logger.warning(
            "[telemetry] %s dropped - not ready (configured=%s session=%s)",
            what,
            self._sessions.is_configured(),
            self._sessions.is_active(),
        )
        return False

    def _emit(
        self,
        event_type: EventType,
        game_time: float,
        *,
        run: Optional[RunData] = None,
        fields: Optional[Dict[str, Any]] = None,
    ) -> None:
        # Callers hold self._lock, so frame order == queue order.
        if run is None and self._runs.is_active():
            run = self._runs.current
        ev = self._builder.build_base(event_type, game_time, session_id=self._sessions.session_id, run=run)
        if fields:
            ev.update(fields)
        self._dispatcher.send(ev, self._sessions.server_url)


_global_telemetry: Optional[TelemetryService] = None


def set_telemetry(service: TelemetryService | None) -> None:
    global _global_telemetry
    _global_telemetry = service


def get_telemetry() -> TelemetryService | None:
    return _global_telemetry

"""Host-facing convenience functions.

Each call resolves the process-wide service installed with ``set_telemetry``
and forwards to it; with no service installed the call logs and does nothing.
Positions are passed as plain ``x, y, z`` scalars so bindings from scripting
layers don't need to build vector objects.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from playtrace.telemetry.context import Vector3
from playtrace.telemetry.service import TelemetryService, get_telemetry

logger = logging.getLogger(__name__)


def _service() -> Optional[TelemetryService]:
    t = get_telemetry()
    if t is None:
        logger.warning("[telemetry/api] no telemetry service installed")
    return t


def configure_telemetry(server_url: str) -> None:
    t = _service()
    if t:
        t.configure(server_url)


def start_session() -> None:
    t = _service()
    if t:
        t.start_new_session()


def end_session() -> None:
    t = _service()
    if t:
        t.end_session()


def start_run() -> None:
    t = _service()
    if t:
        t.start_run()


def end_run(reason: str) -> None:
    t = _service()
    if t:
        t.end_run(reason)


def increment_rooms_cleared() -> None:
    t = _service()
    if t:
        t.increment_rooms_cleared()


def log_position(x: float, y: float, z: float, game_time: float) -> None:
    t = _service()
    if t:
        t.send_position_update(Vector3(x, y, z), game_time)


def log_input_action(action: Any, game_time: float) -> None:
    t = _service()
    if t:
        t.send_player_input_action(action, game_time)


def log_input_context(context: Any, game_time: float) -> None:
    t = _service()
    if t:
        t.send_input_context_update(context, game_time)


def log_damage(
    amount: float,
    health_before: float,
    health_after: float,
    source: str,
    x: float,
    y: float,
    z: float,
    game_time: float,
) -> None:
    t = _service()
    if t:
        t.send_damage_event(amount, health_before, health_after, source, Vector3(x, y, z), game_time)


def log_death(cause: Optional[str], x: float, y: float, z: float, game_time: float) -> None:
    t = _service()
    if t:
        t.send_death_event(cause, Vector3(x, y, z), game_time)

"""Telemetry core (playtrace.telemetry.v1).

Design constraints:
- Best-effort only: no retry, no persistence, no batching. Failures leave logs.
- Gameplay code emits through `TelemetryService` (or the `api` facade); it never
  blocks on the network and never sees an exception.
- The HTTP transport lives in `_internal/telemetry_sinks/` so it can be swapped
  without touching the session/run state machine.
"""

from .context import TelemetryContext, Vector3
from .envelope import EnvelopeBuilder, EventType
from .run_data import RunData
from .service import TelemetryCapabilities, TelemetryService, get_telemetry, set_telemetry

__all__ = [
    "EnvelopeBuilder",
    "EventType",
    "RunData",
    "TelemetryCapabilities",
    "TelemetryContext",
    "TelemetryService",
    "Vector3",
    "get_telemetry",
    "set_telemetry",
]

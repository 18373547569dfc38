from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True, slots=True)
class Vector3:
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return {"x": float(self.x), "y": float(self.y), "z": float(self.z)}

    @classmethod
    def from_any(cls, v: Any) -> "Vector3":
        """Accept a Vector3, an (x, y, z) sequence, a dict or any object with x/y/z attributes."""
        if isinstance(v, Vector3):
            return v
        if v is None:
            return cls()
        if isinstance(v, dict):
            return cls(float(v.get("x") or 0.0), float(v.get("y") or 0.0), float(v.get("z") or 0.0))
        if isinstance(v, (tuple, list)):
            if len(v) != 3:
                raise ValueError(f"position needs 3 components, got {len(v)}")
            return cls(float(v[0]), float(v[1]), float(v[2]))
        return cls(float(getattr(v, "x")), float(getattr(v, "y")), float(getattr(v, "z")))


@dataclass(frozen=True, slots=True)
class TelemetryContext:
    """Snapshot of where/when an event happened.

    Built from a host actor so callers don't repeat position and game time on
    every telemetry call. The actor reference is only read, never kept alive
    beyond the snapshot.
    """

    position: Vector3 = Vector3()
    game_time: float = 0.0
    source_actor: Any = None

    @classmethod
    def from_actor(cls, actor: Any) -> "TelemetryContext":
        """Read ``get_actor_location()`` (or ``location``/``position``) and the
        owning world's ``get_time_seconds()`` (or ``time_seconds``)."""
        if actor is None:
            return cls()

        loc = _call_or_attr(actor, "get_actor_location", "location", "position")
        game_time = 0.0
        world = _call_or_attr(actor, "get_world", "world")
        if world is not None:
            t = _call_or_attr(world, "get_time_seconds", "time_seconds")
            if t is not None:
                game_time = float(t)

        return cls(position=Vector3.from_any(loc), game_time=game_time, source_actor=actor)

    def is_valid(self) -> bool:
        return self.source_actor is not None


def _call_or_attr(obj: Any, method: str, *attrs: str) -> Optional[Any]:
    fn = getattr(obj, method, None)
    if callable(fn):
        return fn()
    for name in attrs:
        if hasattr(obj, name):
            return getattr(obj, name)
    return None

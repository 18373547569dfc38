from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Dict, Optional


@dataclass(frozen=True, slots=True)
class RunData:
    """RunData (v1).

    One gameplay attempt inside a session. ``run_end_time is None`` marks the
    run as still active; the wire format reports it as ``0.0`` until closed.
    """

    run_id: str = ""
    run_start_time: float = 0.0
    run_end_time: Optional[float] = None
    run_total_time: float = 0.0
    end_reason: str = ""

    # Host-driven progress counter, carried on every event of the run.
    rooms_cleared: int = 0

    def is_active(self) -> bool:
        return bool(self.run_id) and self.run_end_time is None

    def finalized(self, *, end_time: float, reason: str) -> "RunData":
        return replace(
            self,
            run_end_time=end_time,
            run_total_time=end_time - self.run_start_time,
            end_reason=str(reason or ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "run_start_time": self.run_start_time,
            "run_end_time": self.run_end_time if self.run_end_time is not None else 0.0,
            "run_total_time": self.run_total_time,
            "end_reason": self.end_reason,
            "rooms_cleared": self.rooms_cleared,
        }

"""
Smoke test: play one short scripted session against a telemetry collector.

Emits session_start, a run with position/damage/input/death events, run_end and
session_end, then waits briefly for the sender thread before exiting.

Usage:
  python scripts/telemetry_smoke.py
  python scripts/telemetry_smoke.py --url http://127.0.0.1:8080/telemetry
  python scripts/telemetry_smoke.py --url "" --runs 3   # empty -> built-in default endpoint
"""

from __future__ import annotations

import argparse
import json
import logging
import os

from playtrace.config import settings
from playtrace.telemetry import TelemetryService, Vector3


def _play_run(t: TelemetryService, run_no: int, clock: list[float]) -> None:
    def tick(dt: float) -> float:
        clock[0] += dt
        return clock[0]

    t.start_run(game_time=tick(0.5))
    for step in range(5):
        t.send_position_update(Vector3(step * 100.0, run_no * 10.0, 0.0), tick(0.25))
    t.send_player_input_action("IA_Jump", tick(0.1))
    t.increment_rooms_cleared()
    t.send_damage_event(25.0, 100.0, 75.0, "enemy_melee", Vector3(400.0, 0.0, 0.0), tick(0.3))
    t.send_death_event("lava", Vector3(420.0, 0.0, -50.0), tick(1.0))
    t.end_run("death", game_time=tick(0.0))


def main() -> int:
    ap = argparse.ArgumentParser()
    ap.add_argument("--url", default=os.getenv("TELEMETRY_SERVER_URL", settings.telemetry_server_url))
    ap.add_argument("--runs", type=int, default=1)
    ap.add_argument("--user", default=settings.telemetry_user_id)
    args = ap.parse_args()

    logging.basicConfig(
        level=getattr(logging, os.environ.get("LOG_LEVEL", "INFO").upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    clock = [0.0]
    t = TelemetryService.from_settings(settings, user_id=str(args.user or ""), clock=lambda: clock[0])
    t.start()
    t.configure(str(args.url or ""))
    t.start_new_session()
    for run_no in range(max(1, int(args.runs))):
        _play_run(t, run_no, clock)

    print(json.dumps(t.capabilities().to_dict(), ensure_ascii=False, indent=2))
    t.stop()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

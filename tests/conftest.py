from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest

from playtrace.telemetry.delivery import TelemetryDispatcher
from playtrace.telemetry.service import TelemetryService


class RecordingSink:
    """Keeps every delivered event; ``hook`` runs first and may block or raise."""

    name = "recording"

    def __init__(self, hook: Optional[Callable[[Dict[str, Any]], None]] = None) -> None:
        self.requests: List[Tuple[str, Dict[str, Any]]] = []
        self.closed = False
        self._hook = hook

    @property
    def frames(self) -> List[int]:
        return [ev["frame"] for _, ev in self.requests]

    def write(self, endpoint: str, body: bytes) -> None:
        ev = json.loads(body.decode("utf-8"))
        if self._hook is not None:
            self._hook(ev)
        self.requests.append((endpoint, ev))

    def close(self) -> None:
        self.closed = True


class FakeClock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, dt: float) -> float:
        self.now += dt
        return self.now


@dataclass
class Harness:
    service: TelemetryService
    dispatcher: TelemetryDispatcher
    sink: RecordingSink
    clock: FakeClock = field(default_factory=FakeClock)

    def events(self) -> List[Dict[str, Any]]:
        self.dispatcher.flush_now()
        return [ev for _, ev in self.sink.requests]

    def types(self) -> List[str]:
        return [ev["event_type"] for ev in self.events()]


@pytest.fixture
def make_sink() -> Callable[..., RecordingSink]:
    return RecordingSink


@pytest.fixture
def make_harness() -> Callable[..., Harness]:
    def _make(**kwargs: Any) -> Harness:
        sink = RecordingSink()
        clock = FakeClock()
        dispatcher = TelemetryDispatcher(sink=sink, autostart=False)
        service = TelemetryService(machine_id="TESTBOX", clock=clock, dispatcher=dispatcher, **kwargs)
        return Harness(service=service, dispatcher=dispatcher, sink=sink, clock=clock)

    return _make


@pytest.fixture
def harness(make_harness) -> Harness:
    return make_harness()


@pytest.fixture
def live(harness: Harness) -> Harness:
    """Harness with a configured endpoint and an open session."""
    harness.service.configure("http://collector.test/telemetry")
    harness.service.start_new_session()
    return harness

from __future__ import annotations

import logging

from playtrace.config import DEFAULT_SERVER_URL
from playtrace.session.session_id_generator import SessionIdGenerator
from playtrace.telemetry.envelope import EnvelopeBuilder
from playtrace.telemetry.run_tracker import RunTracker
from playtrace.telemetry.session_tracker import SessionTracker


def test_empty_url_falls_back_to_default_endpoint(harness) -> None:
    harness.service.configure("")
    assert harness.service.server_url == DEFAULT_SERVER_URL

    harness.service.configure("   ")
    assert harness.service.server_url == DEFAULT_SERVER_URL


def test_start_session_requires_configuration(harness, caplog) -> None:
    with caplog.at_level(logging.ERROR):
        harness.service.start_new_session()

    assert harness.service.session_id == ""
    assert harness.events() == []
    assert "configure() not called" in caplog.text


def test_scenario_position_between_session_boundaries(harness) -> None:
    t = harness.service
    t.configure("")
    t.start_new_session()
    t.send_position_update((1, 2, 3), 10.0)
    t.end_session()
    t.send_position_update((4, 5, 6), 11.0)

    events = harness.events()
    assert [e["event_type"] for e in events] == ["session_start", "position", "session_end"]
    assert [e["frame"] for e in events] == [0, 1, 2]
    assert events[0]["game_time"] == 0.0
    assert events[1]["player_pos"] == {"x": 1.0, "y": 2.0, "z": 3.0}
    assert events[1]["game_time"] == 10.0
    assert all(endpoint == DEFAULT_SERVER_URL for endpoint, _ in harness.sink.requests)

    # The trailing update was gated: no event and no frame consumed.
    assert t.frame_counter == 3


def test_session_id_present_exactly_while_active(harness) -> None:
    t = harness.service
    t.configure("http://collector.test/telemetry")
    assert t.session_id == ""

    t.start_new_session()
    first = t.session_id
    assert first.startswith("TESTBOX_")

    t.start_new_session()
    second = t.session_id
    assert second and second != first

    t.end_session()
    assert t.session_id == ""

    t.end_session()
    assert t.session_id == ""

    types = harness.types()
    assert types == ["session_start", "session_end", "session_start", "session_end"]


def test_restarting_session_closes_previous_one_first(live) -> None:
    t = live.service
    old = t.session_id
    t.send_position_update((0, 0, 0), 1.0)
    t.start_new_session()

    events = live.events()
    assert [e["event_type"] for e in events] == ["session_start", "position", "session_end", "session_start"]
    assert events[2]["session_id"] == old
    assert events[2]["frame"] == 2
    # Frame counter restarts with the new session.
    assert events[3]["frame"] == 0
    assert events[3]["session_id"] == t.session_id


def test_end_session_closes_active_run_first(live) -> None:
    t = live.service
    live.clock.now = 3.0
    t.start_run()
    live.clock.now = 8.5
    t.end_session()

    events = live.events()
    assert [e["event_type"] for e in events] == ["session_start", "run_start", "run_end", "session_end"]
    run_end = events[2]
    assert run_end["end_reason"] == "session_end"
    assert run_end["run_total_time"] == 5.5
    assert "run_id" not in events[3]
    assert t.run.run_id == ""


def test_stop_closes_session_with_shutdown_reason(make_harness) -> None:
    h = make_harness()
    h.dispatcher.start()
    t = h.service
    t.configure("http://collector.test/telemetry")
    t.start_new_session()
    t.start_run()
    t.stop()

    events = [ev for _, ev in h.sink.requests]
    assert [e["event_type"] for e in events] == ["session_start", "run_start", "run_end", "session_end"]
    assert events[2]["end_reason"] == "shutdown"
    assert t.session_id == ""
    assert h.sink.closed


def test_stop_without_session_emits_nothing(make_harness) -> None:
    h = make_harness()
    h.service.configure("")
    h.service.stop()
    assert h.sink.requests == []


def test_start_applies_configured_server_url(make_harness) -> None:
    h = make_harness(server_url="http://from-settings.test/t")
    assert h.service.server_url == ""
    h.service.start()
    assert h.service.server_url == "http://from-settings.test/t"

    # An explicit configure() wins over a later start().
    h.service.configure("http://explicit.test/t")
    h.service.start()
    assert h.service.server_url == "http://explicit.test/t"
    h.service.stop()


def test_end_session_without_endpoint_clears_state_silently() -> None:
    emitted = []

    def emit(event_type, game_time, *, run=None):
        emitted.append(event_type.value)

    ids = SessionIdGenerator()
    runs = RunTracker(emit=emit, clock=lambda: 0.0, ids=ids)
    sessions = SessionTracker(
        builder=EnvelopeBuilder(machine_id="box"),
        runs=runs,
        emit=emit,
        clock=lambda: 0.0,
        ids=ids,
    )
    sessions.configure("http://collector.test/telemetry")
    sessions.start_new_session()
    sessions.start_run()
    sessions._server_url = ""

    assert sessions.end_session() is False
    assert sessions.session_id == ""
    assert not runs.is_active()
    assert emitted == ["session_start", "run_start"]


def test_configure_while_active_redirects_following_events(live) -> None:
    t = live.service
    t.configure("http://other.test/telemetry")
    t.send_position_update((0, 0, 0), 1.0)

    live.dispatcher.flush_now()
    endpoints = [endpoint for endpoint, _ in live.sink.requests]
    assert endpoints == ["http://collector.test/telemetry", "http://other.test/telemetry"]
    assert t.session_id

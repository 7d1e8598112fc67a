# test_interaction_listener.py
"""
Tests for the event sources and the launcher configuration.

How to run:
    pytest -q test_interaction_listener.py
"""

import logging
import threading

from client.interaction_listener import (
    EventSource,
    KeyboardEventSource,
    MockEventSource,
    PointerEventSource,
    create_sources,
)
import main


class RecordingSource(EventSource):
    def __init__(self):
        super().__init__()
        self.starts = 0
        self.stops = 0

    def _start(self):
        self.starts += 1

    def _stop(self):
        self.stops += 1


def test_capture_runs_only_while_subscribed():
    source = RecordingSource()
    first, second = [], []

    source.subscribe(first.append)
    source.subscribe(second.append)
    assert source.starts == 1

    source.unsubscribe(first.append)
    assert source.stops == 0
    source.unsubscribe(second.append)
    assert source.stops == 1


def test_duplicate_subscribe_is_ignored():
    source = RecordingSource()
    calls = []
    source.subscribe(calls.append)
    source.subscribe(calls.append)
    source.emit("x")
    assert calls == ["x"]
    assert source.subscriber_count == 1


def test_emit_survives_failing_subscriber():
    source = EventSource()
    calls = []

    def broken(*args):
        raise RuntimeError("boom")

    source.subscribe(broken)
    source.subscribe(calls.append)
    source.emit((1, 2))
    assert calls == [(1, 2)]


def test_unsubscribe_unknown_callback_is_noop():
    source = RecordingSource()
    source.unsubscribe(print)
    assert source.stops == 0


def test_mock_source_generates_events_until_detached():
    got_event = threading.Event()
    source = MockEventSource("pointer", mean_event_interval=0.01,
                             make_args=lambda: ((1.0, 2.0),))
    positions = []

    def on_move(position):
        positions.append(position)
        got_event.set()

    source.subscribe(on_move)
    assert got_event.wait(timeout=2.0)
    source.unsubscribe(on_move)

    count = len(positions)
    assert positions[0] == (1.0, 2.0)
    assert source.subscriber_count == 0
    assert len(positions) == count


def test_quick_resubscribe_retires_previous_generator():
    source = MockEventSource("pointer", mean_event_interval=0.01)
    callback = lambda *args: None

    source.subscribe(callback)
    old_running, old_thread = source._running, source._thread
    source.unsubscribe(callback)
    source.subscribe(callback)
    try:
        assert not old_running.is_set()
        old_thread.join(timeout=2.0)
        assert not old_thread.is_alive()
        assert source._running is not old_running
        assert source._thread.is_alive()
    finally:
        source.unsubscribe(callback)


def test_factory_selects_implementation():
    key_source, pointer_source = create_sources(use_real=True)
    assert isinstance(key_source, KeyboardEventSource)
    assert isinstance(pointer_source, PointerEventSource)

    key_source, pointer_source = create_sources(use_real=False)
    assert isinstance(key_source, MockEventSource)
    assert isinstance(pointer_source, MockEventSource)


# ----------------------------------------------------------------------
# Launcher configuration
# ----------------------------------------------------------------------

def test_arguments_override_config(monkeypatch):
    for name in ["DEMO_MODE", "SERVER_HOST", "SERVER_PORT", "SESSION_TOKEN", "DURATION", "LOG_LEVEL"]:
        monkeypatch.setattr(main.Config, name, getattr(main.Config, name))

    args = main.parse_arguments(["--demo", "--port", "9001", "--token", "abc", "--duration", "30"])
    main.apply_arguments(args)

    assert main.Config.DEMO_MODE is True
    assert main.Config.SESSION_TOKEN == "abc"
    assert main.Config.DURATION == 30
    assert main.Config.ws_url() == "ws://127.0.0.1:9001/ws"
    assert main.Config.server_url() == "http://127.0.0.1:9001"


def test_server_log_level_follows_launcher_level():
    assert main.uvicorn_log_level(logging.DEBUG) == "debug"
    assert main.uvicorn_log_level(logging.INFO) == "info"
    assert main.uvicorn_log_level(logging.WARNING) == "warning"

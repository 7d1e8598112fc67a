"""
Interaction Listener Module

Event sources the behavior sampler subscribes to. Each source follows a
narrow subscribe/unsubscribe contract so the sampler never touches a UI or
OS-hook type directly:

- key sources call subscribers with no arguments on every key press
- pointer sources call subscribers with ``(x, y)`` on every pointer move

Real sources are backed by pynput system hooks. The hook is only running
while at least one subscriber is attached, so detaching the sampler stops
all event observation.

Privacy by design:
- NO key characters or key codes are forwarded
- ONLY press timing and pointer coordinates
"""

import logging
import random
import threading
import time
from typing import Callable, List, Optional, Tuple

logger = logging.getLogger(__name__)

Callback = Callable[..., None]


# ============================================================================
# Abstract Base Class
# ============================================================================

class EventSource:
    """Base class for all interaction event sources."""

    def __init__(self) -> None:
        self._subscribers: List[Callback] = []
        self._lock = threading.Lock()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self, callback: Callback) -> None:
        """Attach a callback. Starts capturing when the first one arrives."""
        with self._lock:
            if callback in self._subscribers:
                return
            self._subscribers.append(callback)
            first = len(self._subscribers) == 1
        if first:
            self._start()

    def unsubscribe(self, callback: Callback) -> None:
        """Detach a callback. Stops capturing when the last one leaves."""
        with self._lock:
            if callback not in self._subscribers:
                return
            self._subscribers.remove(callback)
            empty = not self._subscribers
        if empty:
            self._stop()

    def emit(self, *args) -> None:
        """Deliver one event to every current subscriber."""
        with self._lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(*args)
            except Exception:
                logger.exception(f"{type(self).__name__}: subscriber failed")

    def _start(self) -> None:
        """Begin capturing events (override)."""

    def _stop(self) -> None:
        """Release capture resources (override)."""


# ============================================================================
# REAL Implementation (pynput)
# ============================================================================

class KeyboardEventSource(EventSource):
    """
    Key-press source backed by a pynput keyboard listener.
    The pressed key is deliberately discarded.
    """

    def __init__(self) -> None:
        super().__init__()
        self._listener = None

    def _start(self) -> None:
        from pynput import keyboard

        try:
            self._listener = keyboard.Listener(on_press=self._on_press)
            self._listener.start()
            logger.info("KeyboardEventSource: capture started")
        except Exception as e:
            self._listener = None
            logger.error(f"KeyboardEventSource: failed to start listener: {e}")

    def _on_press(self, key) -> None:
        self.emit()

    def _stop(self) -> None:
        if self._listener is not None:
            self._listener.stop()
            self._listener = None
            logger.info("KeyboardEventSource: capture stopped")


class PointerEventSource(EventSource):
    """Pointer-move source backed by a pynput mouse listener."""

    def __init__(self) -> None:
        super().__init__()
        self._listener = None

    def _start(self) -> None:
        from pynput import mouse

        try:
            self._listener = mouse.Listener(on_move=self._on_move)
            self._listener.start()
            logger.info("PointerEventSource: capture started")
        except Exception as e:
            self._listener = None
            logger.error(f"PointerEventSource: failed to start listener: {e}")

    def _on_move(self, x, y) -> None:
        self.emit((x, y))

    def _stop(self) -> None:
        if self._listener is not None:
            self._listener.stop()
            self._listener = None
            logger.info("PointerEventSource: capture stopped")


# ============================================================================
# MOCK Implementation (Testing/Development)
# ============================================================================

class MockEventSource(EventSource):
    """
    SYNTHETIC event generator for demos without OS permissions.

    Emits events from a background thread at exponentially distributed
    intervals while it has subscribers. ``make_args`` builds the arguments
    passed to each subscriber.

    NOT for production use!
    """

    def __init__(
        self,
        name: str,
        mean_event_interval: float = 0.2,
        make_args: Optional[Callable[[], Tuple]] = None,
    ):
        super().__init__()
        self.name = name
        self.mean_event_interval = mean_event_interval
        self._make_args = make_args or (lambda: ())
        self._running = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def _start(self) -> None:
        self._running = threading.Event()
        self._running.set()
        self._thread = threading.Thread(
            target=self._generate_events, args=(self._running,), daemon=True
        )
        self._thread.start()
        logger.info(f"MockEventSource[{self.name}]: generating synthetic events")

    def _generate_events(self, running: threading.Event) -> None:
        while running.is_set():
            self.emit(*self._make_args())
            time.sleep(random.expovariate(1.0 / self.mean_event_interval))

    def _stop(self) -> None:
        self._running.clear()
        if self._thread and self._thread is not threading.current_thread():
            self._thread.join(timeout=2.0)
        self._thread = None
        logger.info(f"MockEventSource[{self.name}]: stopped")


def _random_walk(start: Tuple[float, float] = (960.0, 540.0), step: float = 25.0):
    """Return a closure producing a jittery pointer path."""
    position = list(start)

    def next_position() -> Tuple[Tuple[float, float]]:
        position[0] = min(1920.0, max(0.0, position[0] + random.uniform(-step, step)))
        position[1] = min(1080.0, max(0.0, position[1] + random.uniform(-step, step)))
        return ((position[0], position[1]),)

    return next_position


# ============================================================================
# Factory function to easily switch between implementations
# ============================================================================

def create_sources(use_real: bool = True) -> Tuple[EventSource, EventSource]:
    """
    Create the (key source, pointer source) pair.

    Args:
        use_real: If True, use pynput-backed sources (requires OS permissions
                  and a display). If False, use synthetic mock sources.
    """
    if use_real:
        logger.info("Creating REAL interaction sources (pynput)")
        return KeyboardEventSource(), PointerEventSource()

    logger.info("Creating MOCK interaction sources (synthetic data)")
    return (
        MockEventSource("keys", mean_event_interval=0.25),
        MockEventSource("pointer", mean_event_interval=0.05, make_args=_random_walk()),
    )

"""
Behavior Sampler Module

Turns raw, high-frequency input events into two low-frequency behavioral
signals over fixed-size sliding windows:

- typing_speed: mean of the most recent inter-keystroke gaps (milliseconds)
- mouse_jitter: mean absolute deviation of recent pointer step lengths

Metrics are recomputed synchronously on every event, so memory stays bounded
by the window capacities and bursts never lose information. Every
recomputation is published to the sampler's observers.

Only timing and coordinates are observed. No key content is ever accessed.
"""

import logging
import math
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Generic, Iterator, List, Optional, Tuple, TypeVar

from client.interaction_listener import EventSource

logger = logging.getLogger(__name__)

T = TypeVar("T")
Position = Tuple[float, float]


@dataclass(frozen=True)
class BehaviorSample:
    """
    Snapshot of the derived metrics at one point in time.
    Each metric reflects only the samples currently inside its own window.
    """
    typing_speed: float = 0.0   # Mean inter-key gap (ms)
    mouse_jitter: float = 0.0   # Mean abs deviation of step lengths
    timestamp: float = 0.0      # Monotonic capture time (seconds)


class SlidingWindow(Generic[T]):
    """Fixed-capacity FIFO buffer; the oldest element is evicted on overflow."""

    capacity: int = 0

    def __init__(self, capacity: Optional[int] = None):
        if capacity is not None:
            self.capacity = capacity
        if self.capacity <= 0:
            raise ValueError("window capacity must be positive")
        self._items: Deque[T] = deque(maxlen=self.capacity)

    def push(self, item: T) -> None:
        self._items.append(item)

    def clear(self) -> None:
        self._items.clear()

    def values(self) -> List[T]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(self._items)


class KeyIntervalWindow(SlidingWindow[float]):
    """The most recent inter-keystroke gaps, in milliseconds."""
    capacity = 10

    def mean(self) -> float:
        if not self._items:
            return 0.0
        return sum(self._items) / len(self._items)


class PointerWindow(SlidingWindow[Position]):
    """The most recent absolute pointer positions."""
    capacity = 20

    def step_lengths(self) -> List[float]:
        points = list(self._items)
        return [
            math.hypot(x2 - x1, y2 - y1)
            for (x1, y1), (x2, y2) in zip(points, points[1:])
        ]

    def jitter(self) -> float:
        """
        Mean absolute deviation of consecutive step lengths from their mean.
        Needs at least 3 points (2 steps); returns 0 before that.
        """
        if len(self._items) < 3:
            return 0.0
        steps = self.step_lengths()
        avg = sum(steps) / len(steps)
        return sum(abs(s - avg) for s in steps) / len(steps)


class BehaviorSampler:
    """
    Maintains the key-interval and pointer windows for one monitoring session
    and publishes a BehaviorSample after every event.

    Sampling is gated by ``set_active``. Activation starts from empty windows;
    deactivation detaches from both event sources.
    """

    def __init__(
        self,
        key_source: EventSource,
        pointer_source: EventSource,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            key_source: Calls subscribers with no arguments on each key press.
            pointer_source: Calls subscribers with ``(x, y)`` on each move.
            clock: Monotonic time source in seconds.
        """
        self._key_source = key_source
        self._pointer_source = pointer_source
        self._clock = clock

        self.key_intervals = KeyIntervalWindow()
        self.pointer_positions = PointerWindow()
        self._last_key_time: Optional[float] = None

        self._typing_speed = 0.0
        self._mouse_jitter = 0.0
        self._sample = BehaviorSample(timestamp=clock())

        self._active = False
        self._observers: List[Callable[[BehaviorSample], None]] = []
        self._lock = threading.RLock()
        self._publish_lock = threading.RLock()

    @property
    def active(self) -> bool:
        return self._active

    @property
    def sample(self) -> BehaviorSample:
        """The most recently published sample."""
        return self._sample

    # ------------------------------------------------------------------
    # Activation
    # ------------------------------------------------------------------

    def set_active(self, active: bool) -> None:
        """Start or stop observing input events."""
        with self._lock:
            if active == self._active:
                return
            self._active = active
            if active:
                self.reset()

        if active:
            self._key_source.subscribe(self.on_key_event)
            self._pointer_source.subscribe(self.on_pointer_event)
            logger.info("BehaviorSampler activated")
        else:
            self._key_source.unsubscribe(self.on_key_event)
            self._pointer_source.unsubscribe(self.on_pointer_event)
            logger.info("BehaviorSampler deactivated")

    def reset(self) -> None:
        """Drop all windowed data so the next event behaves as session start."""
        with self._lock:
            self.key_intervals.clear()
            self.pointer_positions.clear()
            self._last_key_time = None
            self._typing_speed = 0.0
            self._mouse_jitter = 0.0
            self._sample = BehaviorSample(timestamp=self._clock())

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    def on_key_event(self) -> None:
        with self._lock:
            now = self._clock()
            if self._last_key_time is not None:
                self.key_intervals.push((now - self._last_key_time) * 1000.0)
            self._last_key_time = now
            self._typing_speed = self.key_intervals.mean()
            self._snapshot(now)
        self._publish()

    def on_pointer_event(self, position: Position) -> None:
        with self._lock:
            now = self._clock()
            x, y = position
            self.pointer_positions.push((float(x), float(y)))
            self._mouse_jitter = self.pointer_positions.jitter()
            self._snapshot(now)
        self._publish()

    def _snapshot(self, now: float) -> BehaviorSample:
        self._sample = BehaviorSample(
            typing_speed=self._typing_speed,
            mouse_jitter=self._mouse_jitter,
            timestamp=now,
        )
        logger.debug(
            f"Sample: typing={self._typing_speed:.1f}ms "
            f"jitter={self._mouse_jitter:.3f} "
            f"(keys={len(self.key_intervals)}, points={len(self.pointer_positions)})"
        )
        return self._sample

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def subscribe(self, observer: Callable[[BehaviorSample], None]) -> None:
        if observer not in self._observers:
            self._observers.append(observer)

    def unsubscribe(self, observer: Callable[[BehaviorSample], None]) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    def _publish(self) -> None:
        # Observers always get the newest snapshot, never an older one after it.
        with self._publish_lock:
            sample = self._sample
            for observer in list(self._observers):
                try:
                    observer(sample)
                except Exception:
                    logger.exception("BehaviorSampler: observer failed")

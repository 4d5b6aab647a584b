"""Virtual clock for time-accelerated simulation runs.

The clock owns the simulated "now". It is never incremented tick by tick;
instead it keeps a real-time anchor and computes the virtual instant
lazily on every read:

    now = anchor_virtual + (real_now - anchor_real) * acceleration_factor

Pause, resume, acceleration changes and manual advances all re-anchor,
so virtual time never jumps backward or forward when the rate changes.
"""

import logging
import threading
import time
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

MIN_ACCELERATION = 0.1
NOTIFICATION_THROTTLE_SECONDS = 0.1


class TimeAcceleration(float, Enum):
    """Named acceleration presets (virtual seconds per real second)."""

    REAL_TIME = 1.0
    FAST = 10.0
    VERY_FAST = 60.0
    DAILY = 144.0
    WEEKLY = 1008.0
    MONTHLY = 720.0
    YEARLY = 8640.0

    def describe(self) -> str:
        """Return a short human-readable description of the preset."""
        return _PRESET_DESCRIPTIONS[self]


_PRESET_DESCRIPTIONS = {
    TimeAcceleration.REAL_TIME: "1 second = 1 second",
    TimeAcceleration.FAST: "1 second = 10 seconds",
    TimeAcceleration.VERY_FAST: "1 second = 1 minute",
    TimeAcceleration.DAILY: "1 day in 10 minutes",
    TimeAcceleration.WEEKLY: "1 week in 10 minutes",
    TimeAcceleration.MONTHLY: "30 days in 1 hour",
    TimeAcceleration.YEARLY: "1 year in 1 hour",
}


class SimulationTimeChanged(BaseModel):
    """Notification payload describing the clock after a state change.

    Args:
        simulated_time: Virtual time when the notification was built.
        real_elapsed: Wall-clock time spent running (pauses excluded).
        simulated_elapsed: Virtual time elapsed since the run start.
        progress_percent: Fraction of the configured window elapsed (0-100).
        is_running: Whether the clock is running.
        is_paused: Whether the clock is paused.
    """

    simulated_time: datetime = Field(description="Current virtual time")
    real_elapsed: timedelta = Field(description="Real time spent running")
    simulated_elapsed: timedelta = Field(description="Virtual time elapsed")
    progress_percent: float = Field(description="Window progress (0-100)")
    is_running: bool = Field(description="Whether the clock is running")
    is_paused: bool = Field(description="Whether the clock is paused")


TimeChangedListener = Callable[[SimulationTimeChanged], None]


class VirtualClock:
    """Accelerated, pausable simulation clock.

    All reads and writes go through a single lock, so the clock can be
    advanced by the simulation loop while request handlers query it.

    Args:
        time_source: Callable returning monotonic real time in seconds.
            Tests inject a fake source to drive the clock deterministically.
    """

    def __init__(self, time_source: Callable[[], float] = time.monotonic) -> None:
        self._time_source = time_source
        self._lock = threading.Lock()
        self._listeners: list[TimeChangedListener] = []
        self._last_notified: Optional[float] = None

        self._start_time: Optional[datetime] = None
        self._end_time: Optional[datetime] = None
        self._current_time: Optional[datetime] = None
        self._acceleration = 1.0
        self._is_running = False
        self._is_paused = False

        # Virtual/real pair that "now" is extrapolated from.
        self._anchor_virtual: Optional[datetime] = None
        self._anchor_real = 0.0

        # Real-elapsed bookkeeping, independent of re-anchoring.
        self._real_started_at: Optional[float] = None
        self._real_stopped_at: Optional[float] = None
        self._paused_at: Optional[float] = None
        self._total_paused = 0.0

    # ===== Listeners =====

    def add_listener(self, listener: TimeChangedListener) -> None:
        """Register a callback for throttled time-changed notifications.

        Callbacks run synchronously on the thread that changed the clock,
        after the clock's own lock has been released.
        """
        self._listeners.append(listener)

    def remove_listener(self, listener: TimeChangedListener) -> None:
        """Unregister a previously added callback (no-op if unknown)."""
        if listener in self._listeners:
            self._listeners.remove(listener)

    # ===== Queries =====

    @property
    def now(self) -> datetime:
        """Current virtual instant.

        Raises:
            RuntimeError: If the clock has never been started.
        """
        with self._lock:
            return self._now_locked()

    @property
    def start_time(self) -> Optional[datetime]:
        return self._start_time

    @property
    def end_time(self) -> Optional[datetime]:
        return self._end_time

    @property
    def is_running(self) -> bool:
        return self._is_running

    @property
    def is_paused(self) -> bool:
        return self._is_paused

    @property
    def acceleration_factor(self) -> float:
        return self._acceleration

    @property
    def real_elapsed(self) -> timedelta:
        """Wall-clock time spent running, excluding pauses.

        Zero before the first start; frozen once the clock stops.
        """
        with self._lock:
            return self._real_elapsed_locked()

    @property
    def simulated_elapsed(self) -> timedelta:
        """Virtual time elapsed since the run start."""
        with self._lock:
            if self._start_time is None:
                return timedelta(0)
            return self._now_locked() - self._start_time

    @property
    def progress_percent(self) -> float:
        """Percentage of the configured window that has elapsed.

        Returns 0 before the first start or when no end time is set, and
        100 for an empty window.
        """
        with self._lock:
            return self._progress_locked()

    # ===== Mutations =====

    def start(
        self,
        start_time: datetime,
        end_time: Optional[datetime] = None,
        acceleration_factor: float = 1.0,
    ) -> None:
        """Reset all state and begin running from start_time.

        Args:
            start_time: Virtual time at which the run begins (timezone-aware).
            end_time: Optional virtual time at which the clock clamps and stops.
            acceleration_factor: Virtual seconds per real second (floored at 0.1).

        Raises:
            ValueError: If start_time is naive or end_time is before start_time.
        """
        if start_time.tzinfo is None:
            raise ValueError("start_time must be timezone-aware")
        if end_time is not None and end_time < start_time:
            raise ValueError("end_time must not be before start_time")

        with self._lock:
            real_now = self._time_source()
            self._start_time = start_time
            self._end_time = end_time
            self._current_time = start_time
            self._acceleration = max(MIN_ACCELERATION, acceleration_factor)
            self._anchor_virtual = start_time
            self._anchor_real = real_now
            self._real_started_at = real_now
            self._real_stopped_at = None
            self._paused_at = None
            self._total_paused = 0.0
            self._is_running = True
            self._is_paused = False
            self._last_notified = None
            payload = self._notification_locked()

        logger.info(
            f"Clock started at {start_time.isoformat()} "
            f"(end={end_time.isoformat() if end_time else None}, "
            f"acceleration={self._acceleration}x)"
        )
        self._notify(payload)

    def stop(self) -> None:
        """Stop the clock, freezing virtual time at its last computed value."""
        with self._lock:
            if not self._is_running:
                return
            self._freeze_locked()
            payload = self._notification_locked()
        self._notify(payload)

    def pause(self) -> None:
        """Suspend time advancement. No-op if not running or already paused."""
        with self._lock:
            if not self._is_running or self._is_paused:
                return
            self._current_time = self._now_locked()
            self._paused_at = self._time_source()
            self._is_paused = True
            payload = self._notification_locked()
        self._notify(payload)

    def resume(self) -> None:
        """Resume time advancement. No-op unless running and paused."""
        with self._lock:
            if not self._is_running or not self._is_paused:
                return
            real_now = self._time_source()
            if self._paused_at is not None:
                self._total_paused += real_now - self._paused_at
            self._paused_at = None
            self._is_paused = False
            self._anchor_virtual = self._current_time
            self._anchor_real = real_now
            payload = self._notification_locked()
        self._notify(payload)

    def set_acceleration(self, factor: float) -> None:
        """Change the acceleration factor without a virtual-time discontinuity.

        Args:
            factor: New virtual seconds per real second (floored at 0.1).
        """
        with self._lock:
            if not self._is_running:
                return
            current = self._now_locked()
            self._current_time = current
            self._anchor_virtual = current
            self._anchor_real = (
                self._paused_at if self._is_paused else self._time_source()
            )
            self._acceleration = max(MIN_ACCELERATION, factor)
            payload = self._notification_locked()
        logger.info(f"Clock acceleration set to {self._acceleration}x")
        self._notify(payload)

    def advance_by(self, delta: timedelta) -> None:
        """Move virtual time forward by delta (caller-driven tick mode).

        If the new time reaches the end time, the clock clamps to it and
        stops. No-op if the clock is not running.

        Args:
            delta: Amount of virtual time to add.

        Raises:
            ValueError: If delta is negative.
        """
        if delta < timedelta(0):
            raise ValueError("Cannot advance time backwards")

        with self._lock:
            if not self._is_running:
                return
            target = self._now_locked() + delta
            reached_end = self._end_time is not None and target >= self._end_time
            if reached_end:
                target = self._end_time
            self._current_time = target
            self._anchor_virtual = target
            self._anchor_real = (
                self._paused_at if self._is_paused else self._time_source()
            )
            if reached_end:
                self._freeze_locked()
            payload = self._notification_locked()
        self._notify(payload)

    # ===== Internals (caller holds the lock) =====

    def _now_locked(self) -> datetime:
        if self._current_time is None:
            raise RuntimeError("Clock has not been started")
        if not self._is_running or self._is_paused:
            return self._current_time

        real_delta = self._time_source() - self._anchor_real
        computed = self._anchor_virtual + timedelta(
            seconds=real_delta * self._acceleration
        )
        if computed < self._current_time:
            computed = self._current_time
        if self._end_time is not None and computed > self._end_time:
            return self._end_time
        return computed

    def _real_elapsed_locked(self) -> timedelta:
        if self._real_started_at is None:
            return timedelta(0)
        if self._real_stopped_at is not None:
            reference = self._real_stopped_at
        elif self._paused_at is not None:
            reference = self._paused_at
        else:
            reference = self._time_source()
        return timedelta(
            seconds=max(0.0, reference - self._real_started_at - self._total_paused)
        )

    def _progress_locked(self) -> float:
        if self._start_time is None or self._end_time is None:
            return 0.0
        total = (self._end_time - self._start_time).total_seconds()
        if total <= 0:
            return 100.0
        elapsed = (self._now_locked() - self._start_time).total_seconds()
        return max(0.0, min(100.0, elapsed / total * 100.0))

    def _freeze_locked(self) -> None:
        real_now = self._time_source()
        self._current_time = self._now_locked()
        if self._paused_at is not None:
            self._total_paused += real_now - self._paused_at
            self._paused_at = None
        self._real_stopped_at = real_now
        self._is_running = False
        self._is_paused = False

    def _notification_locked(self) -> Optional[SimulationTimeChanged]:
        if not self._listeners:
            return None
        real_now = self._time_source()
        if (
            self._last_notified is not None
            and real_now - self._last_notified < NOTIFICATION_THROTTLE_SECONDS
        ):
            return None
        self._last_notified = real_now
        return SimulationTimeChanged(
            simulated_time=self._now_locked(),
            real_elapsed=self._real_elapsed_locked(),
            simulated_elapsed=self._now_locked() - self._start_time,
            progress_percent=self._progress_locked(),
            is_running=self._is_running,
            is_paused=self._is_paused,
        )

    def _notify(self, payload: Optional[SimulationTimeChanged]) -> None:
        if payload is None:
            return
        for listener in list(self._listeners):
            try:
                listener(payload)
            except Exception as e:
                logger.warning(f"Time-changed listener failed: {e}")

"""Simulation orchestration models.

This module contains the SimulationEngine and SimulationLoop classes that
run a time-accelerated restaurant simulation:

- SimulationEngine owns the in-memory world (robots, tables, guests,
  tasks), applies pre-generated ScheduledEvents as virtual time reaches
  them, runs a lightweight dispatch heuristic and reports progress.
- SimulationLoop drives SimulationEngine.tick() from a dedicated thread.

The engine supports two modes: auto-advance (the loop polls the
accelerated VirtualClock every few milliseconds) and manual (the caller
advances the clock and calls tick() itself).
"""

import dataclasses
import logging
import random
import threading
import time
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field

from models.broadcast import COMPLETED_TOPIC, PROGRESS_TOPIC, ProgressBroadcaster
from models.clock import VirtualClock
from models.config import DemandPatternConfig, SimulationConfig
from models.event import ScheduledEvent, TaskPriority, TriggerEventType
from models.generator import RestaurantEventGenerator
from models.metrics import SimulationMetricsAggregator, SimulationReport
from models.world import (
    FULL_BATTERY,
    LOW_BATTERY_THRESHOLD,
    GuestStatus,
    RobotStatus,
    SimulatedGuest,
    SimulatedRobot,
    SimulatedTable,
    SimulatedTask,
    TableStatus,
    TaskStatus,
    TaskType,
    table_capacity,
)

logger = logging.getLogger(__name__)

BATTERY_DRAIN_PER_TICK = 0.01
BATTERY_CHARGE_PER_TICK = 0.5
MIN_TASK_SECONDS = 10
MAX_TASK_SECONDS = 60
HELP_ALERT_TYPE = "guest_needs_help"


class SimulationAlreadyRunningError(RuntimeError):
    """Raised when a run is started while another one is active."""


class SimulationNotActiveError(RuntimeError):
    """Raised when a control operation targets a run that is not active."""


class SimulationState(str, Enum):
    """Lifecycle state of a simulation run."""

    NOT_STARTED = "not_started"
    INITIALIZING = "initializing"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


ACTIVE_STATES = (
    SimulationState.INITIALIZING,
    SimulationState.RUNNING,
    SimulationState.PAUSED,
)


def format_duration(duration: timedelta) -> str:
    """Format a duration compactly for progress payloads.

    Examples:
        - 2 days 3 hours 4 minutes -> "2d 3h 4m"
        - 1 hour 2 minutes 3 seconds -> "1h 2m 3s"
        - 75 seconds -> "1m 15s"
        - 9 seconds -> "9s"
    """
    total = max(0, int(duration.total_seconds()))
    days, remainder = divmod(total, 86400)
    hours, remainder = divmod(remainder, 3600)
    minutes, seconds = divmod(remainder, 60)

    if days >= 1:
        return f"{days}d {hours}h {minutes}m"
    if hours >= 1:
        return f"{hours}h {minutes}m {seconds}s"
    if minutes >= 1:
        return f"{minutes}m {seconds}s"
    return f"{seconds}s"


def estimate_time_remaining(real_elapsed: timedelta, progress_percent: float) -> timedelta:
    """Extrapolate remaining real time from elapsed time and progress.

    Returns zero unless 0 < progress_percent < 100.
    """
    if progress_percent <= 0 or progress_percent >= 100:
        return timedelta(0)
    total = real_elapsed * (100.0 / progress_percent)
    return total - real_elapsed


class SimulationProgress(BaseModel):
    """Point-in-time projection of a run, computed on demand."""

    simulation_id: str = ""
    state: SimulationState = SimulationState.NOT_STARTED
    simulated_start_time: Optional[datetime] = None
    simulated_end_time: Optional[datetime] = None
    current_simulated_time: Optional[datetime] = None
    progress_percent: float = 0.0
    real_elapsed_time: timedelta = timedelta(0)
    estimated_time_remaining: timedelta = timedelta(0)
    acceleration_factor: float = 0.0
    events_processed: int = 0
    total_events_scheduled: int = 0
    guests_processed: int = 0
    tasks_created: int = 0
    tasks_completed: int = 0
    tasks_failed: int = 0
    current_success_rate: float = 100.0


class SimulationProgressEvent(BaseModel):
    """Outbound progress payload with display-formatted durations."""

    simulation_id: str
    state: str
    current_simulated_time: Optional[datetime] = None
    progress_percent: float
    real_elapsed_time: str
    estimated_time_remaining: str
    events_processed: int
    total_events_scheduled: int
    guests_processed: int
    tasks_created: int
    tasks_completed: int
    tasks_failed: int
    current_success_rate: float
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_progress(cls, progress: SimulationProgress) -> "SimulationProgressEvent":
        return cls(
            simulation_id=progress.simulation_id,
            state=progress.state.value,
            current_simulated_time=progress.current_simulated_time,
            progress_percent=round(progress.progress_percent, 2),
            real_elapsed_time=format_duration(progress.real_elapsed_time),
            estimated_time_remaining=format_duration(progress.estimated_time_remaining),
            events_processed=progress.events_processed,
            total_events_scheduled=progress.total_events_scheduled,
            guests_processed=progress.guests_processed,
            tasks_created=progress.tasks_created,
            tasks_completed=progress.tasks_completed,
            tasks_failed=progress.tasks_failed,
            current_success_rate=round(progress.current_success_rate, 2),
        )


class RobotSnapshot(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    status: RobotStatus
    battery_level: float
    current_task_id: Optional[int] = None


class TableSnapshot(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    status: TableStatus
    capacity: int
    current_guest_id: Optional[int] = None


class WorldSnapshot(BaseModel):
    """Copy of the engine's world state for external readers."""

    simulation_id: str = ""
    state: SimulationState = SimulationState.NOT_STARTED
    robots: list[RobotSnapshot] = Field(default_factory=list)
    tables: list[TableSnapshot] = Field(default_factory=list)
    guests_total: int = 0
    guests_present: int = 0
    tasks_total: int = 0
    tasks_by_status: dict[str, int] = Field(default_factory=dict)
    pending_tasks: int = 0


class EventTimelineGenerator(Protocol):
    def generate_events_for_period(
        self,
        start: datetime,
        end: datetime,
        pattern: Optional[DemandPatternConfig] = None,
    ) -> list[ScheduledEvent]: ...


GeneratorFactory = Callable[..., EventTimelineGenerator]
ProgressListener = Callable[[SimulationProgress], None]
CompletionListener = Callable[[SimulationReport], None]


class SimulationEngine:
    """Main orchestrator for long-running restaurant fleet simulations.

    Coordinates the virtual clock, the event timeline, the in-memory world
    and the metrics aggregator. Delegates auto-advance threading to
    SimulationLoop.

    Responsibilities:
    - Lifecycle (start, pause, resume, stop, completion)
    - Applying due events to world state
    - Simplified dispatch: highest-battery idle robot takes the task
    - Robot battery and task-completion updates
    - Throttled progress publication and completion notification

    Only the loop (or a manual tick caller) mutates world state; every
    mutation and every snapshot read goes through _operation_lock.

    Args:
        clock: Virtual clock driving the run.
        metrics: Aggregator receiving recorded facts.
        generator_factory: Called as factory(seed=..., table_count=...) to
            build the event generator for each run.
        broadcaster: Optional publish sink for progress and reports.
        tick_interval: Real seconds the loop sleeps between ticks.
        time_source: Monotonic real-time source used for progress throttling.
    """

    def __init__(
        self,
        clock: VirtualClock,
        metrics: SimulationMetricsAggregator,
        generator_factory: GeneratorFactory = RestaurantEventGenerator,
        broadcaster: Optional[ProgressBroadcaster] = None,
        tick_interval: float = 0.001,
        time_source: Callable[[], float] = time.monotonic,
    ) -> None:
        self.clock = clock
        self.metrics = metrics
        self.generator_factory = generator_factory
        self.broadcaster = broadcaster
        self.tick_interval = tick_interval
        self._time_source = time_source

        # Reentrant: clock listeners run on the calling thread while it is held.
        self._operation_lock = threading.RLock()
        self._loop: Optional[SimulationLoop] = None
        self._progress_listeners: list[ProgressListener] = []
        self._completion_listeners: list[CompletionListener] = []

        self._state = SimulationState.NOT_STARTED
        self._config: Optional[SimulationConfig] = None
        self._report: Optional[SimulationReport] = None
        self._last_error: Optional[str] = None
        self._rng = random.Random()

        self._events: list[ScheduledEvent] = []
        self._event_index = 0
        self._last_progress_emit: Optional[float] = None

        self._robots: dict[int, SimulatedRobot] = {}
        self._tables: dict[int, SimulatedTable] = {}
        self._guests: dict[int, SimulatedGuest] = {}
        self._tasks: dict[int, SimulatedTask] = {}
        # Insertion-ordered, so iteration yields the oldest pending task first.
        self._pending: dict[int, SimulatedTask] = {}
        self._next_task_id = 1

    # ===== Properties =====

    @property
    def state(self) -> SimulationState:
        return self._state

    @property
    def config(self) -> Optional[SimulationConfig]:
        return self._config

    @property
    def is_active(self) -> bool:
        return self._state in ACTIVE_STATES

    @property
    def is_paused(self) -> bool:
        return self._state == SimulationState.PAUSED

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    @property
    def events_processed(self) -> int:
        return self._event_index

    @property
    def total_events_scheduled(self) -> int:
        return len(self._events)

    # ===== Listeners =====

    def add_progress_listener(self, listener: ProgressListener) -> None:
        self._progress_listeners.append(listener)

    def add_completion_listener(self, listener: CompletionListener) -> None:
        self._completion_listeners.append(listener)

    # ===== Lifecycle Methods =====

    def start_simulation(self, config: SimulationConfig, auto_advance: bool = True) -> str:
        """Start a new run.

        Resets the world, generates the complete event timeline, resets the
        aggregator and starts the clock. With auto_advance the background
        SimulationLoop is started; otherwise the caller drives tick().

        Args:
            config: Run configuration.
            auto_advance: Whether to start the background loop.

        Returns:
            The run's simulation_id.

        Raises:
            SimulationAlreadyRunningError: If a run is already active.
            ValueError: If event generation rejects the configuration.
        """
        with self._operation_lock:
            if self._state in ACTIVE_STATES:
                raise SimulationAlreadyRunningError(
                    f"A simulation is already {self._state.value}"
                )
            previous_state = self._state
            self._state = SimulationState.INITIALIZING

        logger.info(
            f"Starting simulation {config.simulation_id}: "
            f"{config.simulated_start_time.isoformat()} to "
            f"{config.simulated_end_time.isoformat()} at {config.acceleration_factor}x"
        )

        try:
            generator = self.generator_factory(
                seed=config.random_seed, table_count=config.table_count
            )
            events = generator.generate_events_for_period(
                config.simulated_start_time,
                config.simulated_end_time,
                config.patterns,
            )
        except Exception as e:
            logger.error(
                f"Event generation failed for simulation {config.simulation_id}: {e}",
                exc_info=True,
            )
            with self._operation_lock:
                self._state = previous_state
            raise

        # A previous run's loop may still be parked after completion or failure.
        self._stop_loop()

        with self._operation_lock:
            self._config = config
            self._report = None
            self._last_error = None
            self._rng = random.Random(config.random_seed)
            self._events = events
            self._event_index = 0
            self._last_progress_emit = None
            self._reset_world(config)

            self.metrics.start_simulation(config.simulation_id, config.simulated_start_time)
            self.clock.start(
                config.simulated_start_time,
                config.simulated_end_time,
                config.acceleration_factor,
            )
            self._state = SimulationState.RUNNING

        logger.info(f"Generated {len(events)} events for simulation {config.simulation_id}")

        if auto_advance:
            self._loop = SimulationLoop(engine=self, tick_interval=self.tick_interval)
            self._loop.start()

        return config.simulation_id

    def pause_simulation(self) -> bool:
        """Pause a running simulation.

        Returns:
            True if the run was paused, False if it was not running.
        """
        with self._operation_lock:
            if self._state != SimulationState.RUNNING:
                return False
            self._state = SimulationState.PAUSED
            self.clock.pause()
        logger.info(f"Simulation {self._config.simulation_id} paused at {self.clock.now}")
        return True

    def resume_simulation(self) -> bool:
        """Resume a paused simulation.

        Returns:
            True if the run was resumed, False if it was not paused.
        """
        with self._operation_lock:
            if self._state != SimulationState.PAUSED:
                return False
            self._state = SimulationState.RUNNING
            self.clock.resume()
        logger.info(f"Simulation {self._config.simulation_id} resumed at {self.clock.now}")
        return True

    def stop_simulation(self) -> bool:
        """Cancel the active run, leaving world state and metrics as they are.

        Returns:
            True if a run was cancelled, False if none was active.
        """
        with self._operation_lock:
            if self._state not in ACTIVE_STATES:
                return False
            self._state = SimulationState.CANCELLED
            self.clock.stop()

        self._stop_loop()
        logger.info(f"Simulation {self._config.simulation_id} cancelled")
        return True

    def set_acceleration(self, factor: float) -> bool:
        """Change the acceleration of the active run without a time jump.

        Returns:
            True if applied, False if no run is active.
        """
        with self._operation_lock:
            if self._state not in (SimulationState.RUNNING, SimulationState.PAUSED):
                return False
            self.clock.set_acceleration(factor)
        return True

    def shutdown(self) -> None:
        """Stop any active run and its loop (used on application shutdown)."""
        if self.is_active:
            self.stop_simulation()
        self._stop_loop()

    # ===== Queries =====

    def get_progress(self) -> SimulationProgress:
        """Return the best available progress projection for any state."""
        with self._operation_lock:
            config = self._config
            state = self._state
            events_processed = self._event_index
            total_events = len(self._events)

        if config is None:
            return SimulationProgress(state=state)

        current_time = self.clock.now
        percent = self.clock.progress_percent
        real_elapsed = self.clock.real_elapsed
        snapshot = self.metrics.get_progress_snapshot(current_time)

        return SimulationProgress(
            simulation_id=config.simulation_id,
            state=state,
            simulated_start_time=config.simulated_start_time,
            simulated_end_time=config.simulated_end_time,
            current_simulated_time=current_time,
            progress_percent=percent,
            real_elapsed_time=real_elapsed,
            estimated_time_remaining=estimate_time_remaining(real_elapsed, percent),
            acceleration_factor=self.clock.acceleration_factor,
            events_processed=events_processed,
            total_events_scheduled=total_events,
            guests_processed=snapshot.total_guests_to_date,
            tasks_created=snapshot.total_tasks_to_date,
            tasks_completed=snapshot.tasks_completed_to_date,
            tasks_failed=snapshot.tasks_failed_to_date,
            current_success_rate=snapshot.current_success_rate,
        )

    def get_report(self) -> Optional[SimulationReport]:
        """Return the final report of the last completed run, if any."""
        return self._report

    def get_world_snapshot(self) -> WorldSnapshot:
        """Return a copy of the world for external readers."""
        with self._operation_lock:
            tasks_by_status: dict[str, int] = {}
            for task in self._tasks.values():
                tasks_by_status[task.status.value] = (
                    tasks_by_status.get(task.status.value, 0) + 1
                )
            return WorldSnapshot(
                simulation_id=self._config.simulation_id if self._config else "",
                state=self._state,
                robots=[RobotSnapshot.model_validate(r) for r in self._robots.values()],
                tables=[TableSnapshot.model_validate(t) for t in self._tables.values()],
                guests_total=len(self._guests),
                guests_present=sum(
                    1 for g in self._guests.values() if g.status != GuestStatus.DEPARTED
                ),
                tasks_total=len(self._tasks),
                tasks_by_status=tasks_by_status,
                pending_tasks=len(self._pending),
            )

    def get_tasks(self, status: Optional[TaskStatus] = None) -> list[SimulatedTask]:
        """Return copies of the run's tasks in creation order."""
        with self._operation_lock:
            return [
                dataclasses.replace(task)
                for task in self._tasks.values()
                if status is None or task.status == status
            ]

    # ===== Tick =====

    def tick(self) -> bool:
        """Execute one simulation step (called by SimulationLoop or manually).

        1. Read virtual now from the clock
        2. If the end time is reached, finalize the run and stop
        3. Otherwise apply every not-yet-processed event due at or before
           now, update robots, dispatch pending tasks and, when the
           broadcast interval has elapsed, publish progress

        Returns:
            True while the run should keep ticking, False once it is over.

        Raises:
            Exception: Any fault while mutating world state. The run is
                marked Failed before the exception propagates.
        """
        report: Optional[SimulationReport] = None
        emit_progress = False

        with self._operation_lock:
            if self._state == SimulationState.PAUSED:
                return True
            if self._state != SimulationState.RUNNING:
                return False

            try:
                now = self.clock.now
                if now >= self._config.simulated_end_time:
                    report = self._finalize_locked()
                else:
                    self._drain_due_events(now)
                    self._update_robots(now)
                    self._dispatch_pending(now)
                    emit_progress = self._progress_due()
            except Exception as e:
                self._fail_locked(e)
                raise

        if report is not None:
            self._notify_completed(report)
            return False

        if emit_progress:
            self._emit_progress(self.get_progress())
        return True

    def mark_failed(self, error: Exception) -> None:
        """Transition the active run to Failed (used for loop faults)."""
        with self._operation_lock:
            self._fail_locked(error)

    # ===== World state =====

    def _reset_world(self, config: SimulationConfig) -> None:
        self._robots = {i: SimulatedRobot(id=i) for i in range(1, config.robot_count + 1)}
        self._tables = {
            i: SimulatedTable(id=i, capacity=table_capacity(i))
            for i in range(1, config.table_count + 1)
        }
        self._guests = {}
        self._tasks = {}
        self._pending = {}
        self._next_task_id = 1

    def _drain_due_events(self, now: datetime) -> None:
        while (
            self._event_index < len(self._events)
            and self._events[self._event_index].scheduled_time <= now
        ):
            self._apply_event(self._events[self._event_index], now)
            self._event_index += 1

    def _apply_event(self, event: ScheduledEvent, now: datetime) -> None:
        at = event.scheduled_time
        kind = event.event_type

        if kind == TriggerEventType.GUEST_ARRIVED:
            self._handle_guest_arrived(event, now)
        elif kind == TriggerEventType.GUEST_SEATED:
            self._handle_guest_seated(event)
        elif kind == TriggerEventType.FOOD_READY:
            self._create_task(at, now, TaskType.DELIVER, event.table_id, TaskPriority.HIGH)
        elif kind == TriggerEventType.DRINK_READY:
            self._create_task(at, now, TaskType.DELIVER, event.table_id, TaskPriority.NORMAL)
        elif kind == TriggerEventType.GUEST_NEEDS_HELP:
            self._create_task(at, now, TaskType.SERVICE, event.table_id, TaskPriority.HIGH)
            self.metrics.record_alert(at, HELP_ALERT_TYPE)
        elif kind == TriggerEventType.GUEST_REQUESTED_CHECK:
            self._create_task(at, now, TaskType.DELIVER, event.table_id, TaskPriority.NORMAL)
        elif kind == TriggerEventType.GUEST_LEFT:
            self._handle_guest_left(event)
        elif kind == TriggerEventType.TABLE_NEEDS_CLEANING:
            table = self._tables.get(event.table_id)
            if table is not None:
                table.status = TableStatus.CLEANING
            self._create_task(at, now, TaskType.CLEANING, event.table_id, TaskPriority.NORMAL)

    def _handle_guest_arrived(self, event: ScheduledEvent, now: datetime) -> None:
        guest_id = event.guest_id if event.guest_id is not None else len(self._guests) + 1
        party_size = event.party_size or _party_size_from_notes(event.notes)

        self._guests[guest_id] = SimulatedGuest(
            id=guest_id, party_size=party_size, arrival_time=event.scheduled_time
        )
        self.metrics.record_guest_arrival(event.scheduled_time, guest_id, party_size)
        self._create_task(event.scheduled_time, now, TaskType.GREETING, None, TaskPriority.NORMAL)

    def _handle_guest_seated(self, event: ScheduledEvent) -> None:
        guest = self._guests.get(event.guest_id)
        if guest is not None:
            guest.status = GuestStatus.SEATED
            guest.table_id = event.table_id

        table = self._tables.get(event.table_id)
        if table is not None:
            table.status = TableStatus.OCCUPIED
            table.current_guest_id = event.guest_id

        if event.guest_id is not None and event.table_id is not None:
            self.metrics.record_guest_seated(event.scheduled_time, event.guest_id, event.table_id)

    def _handle_guest_left(self, event: ScheduledEvent) -> None:
        guest = self._guests.get(event.guest_id)
        if guest is not None:
            guest.status = GuestStatus.DEPARTED

        table = self._tables.get(event.table_id)
        if table is not None:
            table.status = TableStatus.NEEDS_SERVICE
            if table.current_guest_id == event.guest_id:
                table.current_guest_id = None

        if event.guest_id is not None and event.table_id is not None:
            self.metrics.record_guest_departure(
                event.scheduled_time, event.guest_id, event.table_id
            )

    # ===== Tasks and dispatch =====

    def _create_task(
        self,
        created_at: datetime,
        now: datetime,
        task_type: TaskType,
        table_id: Optional[int],
        priority: TaskPriority,
    ) -> SimulatedTask:
        task = SimulatedTask(
            id=self._next_task_id,
            type=task_type,
            priority=priority,
            created_at=created_at,
            table_id=table_id,
        )
        self._next_task_id += 1
        self._tasks[task.id] = task
        self._pending[task.id] = task
        self.metrics.record_task_created(created_at, task.id, task_type)

        self._try_assign(task, now)
        return task

    def _best_available_robot(self) -> Optional[SimulatedRobot]:
        candidates = [r for r in self._robots.values() if r.is_available]
        if not candidates:
            return None
        # max() keeps the first of equal batteries, i.e. the lowest id.
        return max(candidates, key=lambda r: r.battery_level)

    def _try_assign(
        self,
        task: SimulatedTask,
        now: datetime,
        robot: Optional[SimulatedRobot] = None,
    ) -> bool:
        if robot is None:
            robot = self._best_available_robot()
        if robot is None or not robot.is_available:
            return False

        task.status = TaskStatus.ASSIGNED
        task.robot_id = robot.id
        task.started_at = now
        task.estimated_completion = now + timedelta(
            seconds=self._rng.randrange(MIN_TASK_SECONDS, MAX_TASK_SECONDS)
        )
        self._pending.pop(task.id, None)

        robot.status = RobotStatus.NAVIGATING
        robot.current_task_id = task.id
        return True

    def _dispatch_pending(self, now: datetime) -> None:
        for task in list(self._pending.values()):
            if not self._try_assign(task, now):
                break

    def _oldest_pending(self) -> Optional[SimulatedTask]:
        return next(iter(self._pending.values()), None)

    def _update_robots(self, now: datetime) -> None:
        for robot in self._robots.values():
            if robot.status != RobotStatus.IDLE:
                robot.battery_level = max(0.0, robot.battery_level - BATTERY_DRAIN_PER_TICK)

            task = self._tasks.get(robot.current_task_id) if robot.current_task_id else None
            if (
                task is not None
                and task.estimated_completion is not None
                and now >= task.estimated_completion
            ):
                self._complete_task(robot, task, now)
                oldest = self._oldest_pending()
                if oldest is not None:
                    self._try_assign(oldest, now, robot)

            if robot.status == RobotStatus.IDLE and robot.battery_level <= LOW_BATTERY_THRESHOLD:
                robot.status = RobotStatus.CHARGING
                logger.debug(f"Robot {robot.id} started charging at {robot.battery_level:.1f}%")
            elif robot.status == RobotStatus.CHARGING:
                robot.battery_level = min(
                    FULL_BATTERY, robot.battery_level + BATTERY_CHARGE_PER_TICK
                )
                if robot.battery_level >= FULL_BATTERY:
                    robot.status = RobotStatus.IDLE

            self.metrics.record_robot_update(
                now,
                robot.id,
                robot.battery_level,
                is_busy=robot.status == RobotStatus.NAVIGATING,
                is_charging=robot.status == RobotStatus.CHARGING,
            )

    def _complete_task(self, robot: SimulatedRobot, task: SimulatedTask, now: datetime) -> None:
        task.status = TaskStatus.COMPLETED
        task.completed_at = now
        duration = (now - task.started_at).total_seconds()
        self.metrics.record_task_completed(now, task.id, robot.id, duration)

        if task.type == TaskType.CLEANING and task.table_id is not None:
            table = self._tables.get(task.table_id)
            if table is not None and table.status == TableStatus.CLEANING:
                table.status = TableStatus.AVAILABLE

        robot.status = RobotStatus.IDLE
        robot.current_task_id = None

    # ===== Completion and failure =====

    def _finalize_locked(self) -> SimulationReport:
        # World state is left as it stands; open tasks are neither
        # completed nor failed.
        config = self._config
        open_tasks = sum(1 for task in self._tasks.values() if task.is_open)

        self.clock.stop()
        report = self.metrics.generate_report(
            config.simulated_end_time,
            self.clock.real_elapsed,
            self.clock.acceleration_factor,
        )
        self._report = report
        self._state = SimulationState.COMPLETED

        logger.info(
            f"Simulation {config.simulation_id} completed: {report.total_guests} guests, "
            f"{report.total_tasks} tasks, {open_tasks} still open, "
            f"{report.overall_success_rate:.1f}% success rate"
        )
        return report

    def _fail_locked(self, error: Exception) -> None:
        if self._state not in ACTIVE_STATES:
            return
        self._state = SimulationState.FAILED
        self._last_error = str(error)
        self.clock.stop()
        logger.error(f"Simulation {self._config.simulation_id} failed: {error}")

    # ===== Publishing =====

    def _progress_due(self) -> bool:
        real_now = self._time_source()
        interval = self._config.progress_broadcast_interval.total_seconds()
        if (
            self._last_progress_emit is not None
            and real_now - self._last_progress_emit < interval
        ):
            return False
        self._last_progress_emit = real_now
        return True

    def _emit_progress(self, progress: SimulationProgress) -> None:
        logger.debug(
            f"Simulation progress: {progress.progress_percent:.1f}% - "
            f"events {progress.events_processed}/{progress.total_events_scheduled}"
        )
        for listener in list(self._progress_listeners):
            try:
                listener(progress)
            except Exception as e:
                logger.warning(f"Progress listener failed: {e}")
        self._publish(PROGRESS_TOPIC, SimulationProgressEvent.from_progress(progress))

    def _notify_completed(self, report: SimulationReport) -> None:
        for listener in list(self._completion_listeners):
            try:
                listener(report)
            except Exception as e:
                logger.warning(f"Completion listener failed: {e}")
        self._publish(COMPLETED_TOPIC, report)

    def _publish(self, topic: str, payload: BaseModel) -> None:
        if self.broadcaster is None:
            return
        try:
            self.broadcaster.publish(topic, payload)
        except Exception as e:
            logger.warning(f"Failed to broadcast {topic}: {e}")

    def _stop_loop(self) -> None:
        loop = self._loop
        if loop is not None and threading.current_thread() is not loop.thread:
            loop.stop()
            self._loop = None


def _party_size_from_notes(notes: Optional[str]) -> int:
    """Parse "Party of N" notes, defaulting to 2."""
    if notes:
        last = notes.split(" ")[-1]
        if last.isdigit():
            return int(last)
    return 2


class SimulationLoop:
    """Threading component for auto-advance mode.

    Runs the simulation loop on a dedicated thread, calling back to
    SimulationEngine.tick() at regular intervals. Virtual time advances
    nonlinearly with wall time, so the loop polls at a short fixed
    interval instead of sleeping until the next event is due.

    Does NOT contain simulation logic - all work delegated to
    SimulationEngine.tick().

    Attributes:
        engine: Parent SimulationEngine to call back to.
        tick_interval: Seconds between ticks (default 1ms).
        is_running: Whether loop thread is active.
    """

    def __init__(self, engine: SimulationEngine, tick_interval: float = 0.001) -> None:
        self.engine = engine
        self.tick_interval = tick_interval

        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self.is_running = False

    @property
    def thread(self) -> Optional[threading.Thread]:
        return self._thread

    def start(self) -> None:
        """Start the simulation loop thread.

        Raises:
            RuntimeError: If loop is already running.
        """
        if self.is_running:
            raise RuntimeError("Simulation loop is already running")

        self.is_running = True
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop, name="simulation-loop", daemon=True
        )
        self._thread.start()

        logger.info("SimulationLoop started")

    def stop(self) -> None:
        """Stop the simulation loop, waiting for the current tick to finish."""
        if not self.is_running:
            return

        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=1.0)

        self.is_running = False
        self._thread = None

        logger.info("SimulationLoop stopped")

    def _run_loop(self) -> None:
        """Main loop that runs on dedicated thread.

        Continuously:
        1. Check stop event
        2. Check if paused
        3. Call engine.tick(), exiting once the run is over
        4. Sleep for tick_interval
        """
        while not self._stop_event.is_set():
            # Skip tick if paused, but keep loop running
            if self.engine.is_paused:
                time.sleep(self.tick_interval)
                continue

            try:
                if not self.engine.tick():
                    break
            except Exception as e:
                logger.error(f"Error during simulation tick: {e}", exc_info=True)
                self.engine.mark_failed(e)
                break

            time.sleep(self.tick_interval)

        logger.info("SimulationLoop exited")

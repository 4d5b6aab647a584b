"""Metrics aggregation for long-running simulations.

SimulationMetricsAggregator is the recorder the engine feeds while a run
progresses. Every record call is O(1): totals and peaks are updated
incrementally, and per-hour, per-robot and per-table facts go into lazily
created buckets and trackers. The buckets are folded into a structured
SimulationReport exactly once, when the run completes.

All state is guarded by a single lock so the simulation loop can record
while request handlers take progress snapshots.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Optional

from pydantic import BaseModel, Field

from models.world import TaskType

logger = logging.getLogger(__name__)


def success_rate(completed: int, failed: int) -> float:
    """Completed / (completed + failed) as a percentage, 100 when both are 0."""
    finished = completed + failed
    if finished == 0:
        return 100.0
    return completed / finished * 100.0


def _hour_start(moment: datetime) -> datetime:
    return moment.replace(minute=0, second=0, microsecond=0)


# ===== Report models =====


class HourlyMetrics(BaseModel):
    """Counters for one virtual hour."""

    hour_start: datetime
    guests_arrived: int = 0
    guests_seated: int = 0
    guests_departed: int = 0
    tasks_created: int = 0
    tasks_completed: int = 0
    tasks_failed: int = 0
    deliveries_completed: int = 0
    table_turnovers: int = 0
    alerts_generated: int = 0
    peak_concurrent_guests: int = 0
    average_task_duration_seconds: float = 0.0
    average_wait_time_seconds: float = 0.0
    average_robot_battery: float = 0.0
    robot_busy_samples: int = 0
    robot_idle_samples: int = 0


class DailyMetrics(BaseModel):
    """Hourly buckets folded into one calendar day."""

    calendar_date: date
    day_of_week: str
    total_guests: int
    total_tasks: int
    total_deliveries: int
    total_failures: int
    success_rate: float
    peak_hour: int
    peak_hour_guests: int
    table_turnovers: int
    average_table_turnover: float
    average_robot_utilization: float
    hourly_breakdown: list[HourlyMetrics] = Field(default_factory=list)


class RobotPerformanceMetrics(BaseModel):
    robot_id: int
    robot_name: str
    tasks_completed: int
    tasks_failed: int
    success_rate: float
    average_task_duration_seconds: float
    utilization_percent: float
    charge_cycles: int
    average_battery: float


class TableMetrics(BaseModel):
    table_id: int
    table_label: str
    guests_served: int
    turnovers: int
    total_occupancy_minutes: float
    average_occupancy_minutes: float
    utilization_percent: float


class SimulationReport(BaseModel):
    """Final summary of a completed simulation run.

    Args:
        simulation_id: Run identifier.
        simulated_start_time: Virtual start of the run.
        simulated_end_time: Virtual end of the run.
        simulated_duration: Virtual time covered.
        real_duration: Wall-clock time the run took.
        acceleration_factor: Acceleration in effect at the end of the run.
        total_guests: Parties that arrived.
        total_tasks: Tasks created.
        total_deliveries: Deliver tasks completed.
        total_failures: Tasks failed.
        overall_success_rate: completed / (completed + failed), in percent.
        robot_metrics: Per-robot performance keyed by robot id.
        table_metrics: Per-table usage keyed by table id.
        daily_breakdown: One entry per calendar day with hourly detail.
        alerts_by_type: Alert histogram.
    """

    simulation_id: str
    simulated_start_time: Optional[datetime] = None
    simulated_end_time: datetime
    simulated_duration: timedelta
    real_duration: timedelta
    acceleration_factor: float

    total_guests: int = 0
    total_tasks: int = 0
    total_deliveries: int = 0
    total_failures: int = 0
    overall_success_rate: float = 100.0
    average_task_duration_seconds: float = 0.0
    average_guest_wait_seconds: float = 0.0
    average_robot_utilization: float = 0.0

    peak_guest_time: Optional[datetime] = None
    peak_guest_count: int = 0
    peak_task_time: Optional[datetime] = None
    peak_task_count: int = 0

    robot_metrics: dict[int, RobotPerformanceMetrics] = Field(default_factory=dict)
    table_metrics: dict[int, TableMetrics] = Field(default_factory=dict)
    daily_breakdown: list[DailyMetrics] = Field(default_factory=list)

    total_alerts: int = 0
    alerts_by_type: dict[str, int] = Field(default_factory=dict)


class SimulationProgressSnapshot(BaseModel):
    """Point-in-time view of the aggregator's running totals."""

    simulation_id: str = ""
    current_simulated_time: Optional[datetime] = None
    total_guests_to_date: int = 0
    total_tasks_to_date: int = 0
    tasks_completed_to_date: int = 0
    tasks_failed_to_date: int = 0
    current_active_guests: int = 0
    current_pending_tasks: int = 0
    current_success_rate: float = 100.0


# ===== Internal accumulators =====


@dataclass
class _HourlyBucket:
    hour_start: datetime
    guests_arrived: int = 0
    guests_seated: int = 0
    guests_departed: int = 0
    tasks_created: int = 0
    tasks_completed: int = 0
    tasks_failed: int = 0
    deliveries_completed: int = 0
    table_turnovers: int = 0
    alerts_generated: int = 0
    peak_concurrent_guests: int = 0
    task_duration_total: float = 0.0
    wait_total: float = 0.0
    wait_count: int = 0
    battery_total: float = 0.0
    battery_samples: int = 0
    busy_samples: int = 0
    idle_samples: int = 0

    def to_hourly_metrics(self) -> HourlyMetrics:
        return HourlyMetrics(
            hour_start=self.hour_start,
            guests_arrived=self.guests_arrived,
            guests_seated=self.guests_seated,
            guests_departed=self.guests_departed,
            tasks_created=self.tasks_created,
            tasks_completed=self.tasks_completed,
            tasks_failed=self.tasks_failed,
            deliveries_completed=self.deliveries_completed,
            table_turnovers=self.table_turnovers,
            alerts_generated=self.alerts_generated,
            peak_concurrent_guests=self.peak_concurrent_guests,
            average_task_duration_seconds=(
                self.task_duration_total / self.tasks_completed
                if self.tasks_completed
                else 0.0
            ),
            average_wait_time_seconds=(
                self.wait_total / self.wait_count if self.wait_count else 0.0
            ),
            average_robot_battery=(
                self.battery_total / self.battery_samples
                if self.battery_samples
                else 0.0
            ),
            robot_busy_samples=self.busy_samples,
            robot_idle_samples=self.idle_samples,
        )


@dataclass
class _RobotTracker:
    robot_id: int
    tasks_completed: int = 0
    tasks_failed: int = 0
    total_task_duration: float = 0.0
    battery_total: float = 0.0
    samples: int = 0
    busy_samples: int = 0
    charge_cycles: int = 0
    is_charging: bool = False

    def record_update(self, battery: float, is_busy: bool, is_charging: bool) -> None:
        self.battery_total += battery
        self.samples += 1
        if is_busy:
            self.busy_samples += 1
        if is_charging and not self.is_charging:
            self.charge_cycles += 1
        self.is_charging = is_charging

    @property
    def utilization_percent(self) -> float:
        return self.busy_samples / self.samples * 100.0 if self.samples else 0.0

    @property
    def average_battery(self) -> float:
        return self.battery_total / self.samples if self.samples else 100.0


@dataclass
class _TableTracker:
    table_id: int
    guests_served: int = 0
    turnovers: int = 0
    total_occupied: timedelta = timedelta(0)
    occupied_since: dict[int, datetime] = field(default_factory=dict)

    def record_occupied(self, moment: datetime, guest_id: int) -> None:
        self.occupied_since[guest_id] = moment
        self.guests_served += 1

    def record_vacated(self, moment: datetime, guest_id: int) -> bool:
        """Close the guest's occupancy. Returns True if a turnover was counted."""
        since = self.occupied_since.pop(guest_id, None)
        if since is None:
            return False
        self.total_occupied += moment - since
        self.turnovers += 1
        return True

    @property
    def total_occupancy_minutes(self) -> float:
        return self.total_occupied.total_seconds() / 60.0

    @property
    def average_occupancy_minutes(self) -> float:
        return self.total_occupancy_minutes / self.turnovers if self.turnovers else 0.0


class SimulationMetricsAggregator:
    """Thread-safe recorder turning raw simulation facts into reports."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._reset_locked()

    # ===== Lifecycle =====

    def start_simulation(self, simulation_id: str, simulated_start_time: datetime) -> None:
        """Reset all counters and begin recording a new run."""
        with self._lock:
            self._reset_locked()
            self._simulation_id = simulation_id
            self._simulated_start_time = simulated_start_time

    def reset(self) -> None:
        """Discard everything recorded so far."""
        with self._lock:
            self._reset_locked()

    @property
    def simulation_id(self) -> str:
        return self._simulation_id

    # ===== Recording =====

    def record_guest_arrival(
        self, simulated_time: datetime, guest_id: int, party_size: int
    ) -> None:
        with self._lock:
            self._total_guests += 1
            self._active_guests += party_size
            self._party_sizes[guest_id] = party_size
            self._arrival_times[guest_id] = simulated_time

            if self._active_guests > self._peak_guests:
                self._peak_guests = self._active_guests
                self._peak_guest_time = simulated_time

            bucket = self._bucket_locked(simulated_time)
            bucket.guests_arrived += 1
            bucket.peak_concurrent_guests = max(
                bucket.peak_concurrent_guests, self._active_guests
            )

    def record_guest_seated(
        self, simulated_time: datetime, guest_id: int, table_id: int
    ) -> None:
        with self._lock:
            bucket = self._bucket_locked(simulated_time)
            bucket.guests_seated += 1

            arrival = self._arrival_times.pop(guest_id, None)
            if arrival is not None:
                wait = max(0.0, (simulated_time - arrival).total_seconds())
                self._wait_total += wait
                self._wait_count += 1
                bucket.wait_total += wait
                bucket.wait_count += 1

            self._table_locked(table_id).record_occupied(simulated_time, guest_id)

    def record_guest_departure(
        self, simulated_time: datetime, guest_id: int, table_id: int
    ) -> None:
        with self._lock:
            party_size = self._party_sizes.pop(guest_id, 1)
            self._active_guests = max(0, self._active_guests - party_size)

            bucket = self._bucket_locked(simulated_time)
            bucket.guests_departed += 1

            tracker = self._table_trackers.get(table_id)
            if tracker is not None and tracker.record_vacated(simulated_time, guest_id):
                bucket.table_turnovers += 1

    def record_task_created(
        self, simulated_time: datetime, task_id: int, task_type: TaskType
    ) -> None:
        with self._lock:
            self._total_tasks += 1
            self._open_tasks += 1
            self._task_types[task_id] = task_type

            if self._open_tasks > self._peak_tasks:
                self._peak_tasks = self._open_tasks
                self._peak_task_time = simulated_time

            self._bucket_locked(simulated_time).tasks_created += 1

    def record_task_completed(
        self,
        simulated_time: datetime,
        task_id: int,
        robot_id: int,
        duration_seconds: float,
    ) -> None:
        with self._lock:
            self._tasks_completed += 1
            self._open_tasks = max(0, self._open_tasks - 1)
            self._task_duration_total += duration_seconds

            bucket = self._bucket_locked(simulated_time)
            bucket.tasks_completed += 1
            bucket.task_duration_total += duration_seconds

            if self._task_types.pop(task_id, None) == TaskType.DELIVER:
                self._total_deliveries += 1
                bucket.deliveries_completed += 1

            tracker = self._robot_locked(robot_id)
            tracker.tasks_completed += 1
            tracker.total_task_duration += duration_seconds

    def record_task_failed(
        self,
        simulated_time: datetime,
        task_id: int,
        robot_id: Optional[int],
        reason: str,
    ) -> None:
        with self._lock:
            self._tasks_failed += 1
            self._open_tasks = max(0, self._open_tasks - 1)
            self._task_types.pop(task_id, None)
            self._failure_reasons[reason] = self._failure_reasons.get(reason, 0) + 1

            self._bucket_locked(simulated_time).tasks_failed += 1

            if robot_id is not None:
                self._robot_locked(robot_id).tasks_failed += 1

    def record_robot_update(
        self,
        simulated_time: datetime,
        robot_id: int,
        battery: float,
        is_busy: bool,
        is_charging: bool = False,
    ) -> None:
        """Record one battery/utilization sample for a robot.

        Args:
            simulated_time: Virtual instant of the sample.
            robot_id: Robot the sample belongs to.
            battery: Battery level in percent.
            is_busy: Whether the robot counts as utilized. The engine passes
                True only while a robot is navigating a task; charging is
                reported through is_charging and counts as idle time for
                utilization, unlike a plain "not idle" test.
            is_charging: Whether the robot is on the charger.
        """
        with self._lock:
            self._robot_locked(robot_id).record_update(battery, is_busy, is_charging)

            bucket = self._bucket_locked(simulated_time)
            bucket.battery_total += battery
            bucket.battery_samples += 1
            if is_busy:
                bucket.busy_samples += 1
            else:
                bucket.idle_samples += 1

    def record_alert(self, simulated_time: datetime, alert_type: str) -> None:
        with self._lock:
            self._total_alerts += 1
            self._alert_counts[alert_type] = self._alert_counts.get(alert_type, 0) + 1
            self._bucket_locked(simulated_time).alerts_generated += 1

    # ===== Reading =====

    def get_progress_snapshot(
        self, current_time: Optional[datetime] = None
    ) -> SimulationProgressSnapshot:
        """Return the running totals; safe to call concurrently with recording.

        Args:
            current_time: Virtual time to stamp on the snapshot.
        """
        with self._lock:
            return SimulationProgressSnapshot(
                simulation_id=self._simulation_id,
                current_simulated_time=current_time,
                total_guests_to_date=self._total_guests,
                total_tasks_to_date=self._total_tasks,
                tasks_completed_to_date=self._tasks_completed,
                tasks_failed_to_date=self._tasks_failed,
                current_active_guests=self._active_guests,
                current_pending_tasks=self._open_tasks,
                current_success_rate=success_rate(
                    self._tasks_completed, self._tasks_failed
                ),
            )

    @property
    def failure_reasons(self) -> dict[str, int]:
        with self._lock:
            return dict(self._failure_reasons)

    def generate_report(
        self,
        simulated_end_time: datetime,
        real_duration: timedelta,
        acceleration_factor: float,
    ) -> SimulationReport:
        """Fold everything recorded into the final report.

        Must be called once per run; call reset() or start_simulation()
        before generating another.

        Args:
            simulated_end_time: Virtual time the run ended.
            real_duration: Wall-clock duration of the run.
            acceleration_factor: Acceleration in effect at the end.

        Returns:
            The completed SimulationReport.

        Raises:
            RuntimeError: If a report was already generated for this run.
        """
        with self._lock:
            if self._report_generated:
                raise RuntimeError(
                    "Report already generated for this run; reset() before generating again"
                )
            self._report_generated = True

            start = self._simulated_start_time
            simulated_duration = (
                simulated_end_time - start if start is not None else timedelta(0)
            )

            robot_metrics = {
                robot_id: self._robot_metrics(tracker)
                for robot_id, tracker in sorted(self._robot_trackers.items())
            }
            table_metrics = {
                table_id: self._table_metrics(tracker, simulated_duration)
                for table_id, tracker in sorted(self._table_trackers.items())
            }
            average_utilization = (
                sum(t.utilization_percent for t in self._robot_trackers.values())
                / len(self._robot_trackers)
                if self._robot_trackers
                else 0.0
            )

            report = SimulationReport(
                simulation_id=self._simulation_id,
                simulated_start_time=start,
                simulated_end_time=simulated_end_time,
                simulated_duration=simulated_duration,
                real_duration=real_duration,
                acceleration_factor=acceleration_factor,
                total_guests=self._total_guests,
                total_tasks=self._total_tasks,
                total_deliveries=self._total_deliveries,
                total_failures=self._tasks_failed,
                overall_success_rate=success_rate(
                    self._tasks_completed, self._tasks_failed
                ),
                average_task_duration_seconds=(
                    self._task_duration_total / self._tasks_completed
                    if self._tasks_completed
                    else 0.0
                ),
                average_guest_wait_seconds=(
                    self._wait_total / self._wait_count if self._wait_count else 0.0
                ),
                average_robot_utilization=average_utilization,
                peak_guest_time=self._peak_guest_time,
                peak_guest_count=self._peak_guests,
                peak_task_time=self._peak_task_time,
                peak_task_count=self._peak_tasks,
                robot_metrics=robot_metrics,
                table_metrics=table_metrics,
                daily_breakdown=self._daily_breakdown_locked(),
                total_alerts=self._total_alerts,
                alerts_by_type=dict(self._alert_counts),
            )

        logger.info(
            f"Generated report for simulation {report.simulation_id}: "
            f"{report.total_guests} guests, {report.total_tasks} tasks, "
            f"{report.overall_success_rate:.1f}% success"
        )
        return report

    # ===== Internals (caller holds the lock) =====

    def _reset_locked(self) -> None:
        self._simulation_id = ""
        self._simulated_start_time: Optional[datetime] = None
        self._report_generated = False

        self._total_guests = 0
        self._total_tasks = 0
        self._tasks_completed = 0
        self._tasks_failed = 0
        self._total_deliveries = 0
        self._total_alerts = 0

        self._active_guests = 0
        self._open_tasks = 0

        self._peak_guests = 0
        self._peak_guest_time: Optional[datetime] = None
        self._peak_tasks = 0
        self._peak_task_time: Optional[datetime] = None

        self._task_duration_total = 0.0
        self._wait_total = 0.0
        self._wait_count = 0

        self._party_sizes: dict[int, int] = {}
        self._arrival_times: dict[int, datetime] = {}
        self._task_types: dict[int, TaskType] = {}

        self._hourly_buckets: dict[datetime, _HourlyBucket] = {}
        self._robot_trackers: dict[int, _RobotTracker] = {}
        self._table_trackers: dict[int, _TableTracker] = {}
        self._alert_counts: dict[str, int] = {}
        self._failure_reasons: dict[str, int] = {}

    def _bucket_locked(self, moment: datetime) -> _HourlyBucket:
        key = _hour_start(moment)
        bucket = self._hourly_buckets.get(key)
        if bucket is None:
            bucket = _HourlyBucket(hour_start=key)
            self._hourly_buckets[key] = bucket
        return bucket

    def _robot_locked(self, robot_id: int) -> _RobotTracker:
        tracker = self._robot_trackers.get(robot_id)
        if tracker is None:
            tracker = _RobotTracker(robot_id=robot_id)
            self._robot_trackers[robot_id] = tracker
        return tracker

    def _table_locked(self, table_id: int) -> _TableTracker:
        tracker = self._table_trackers.get(table_id)
        if tracker is None:
            tracker = _TableTracker(table_id=table_id)
            self._table_trackers[table_id] = tracker
        return tracker

    @staticmethod
    def _robot_metrics(tracker: _RobotTracker) -> RobotPerformanceMetrics:
        return RobotPerformanceMetrics(
            robot_id=tracker.robot_id,
            robot_name=f"Robot-{tracker.robot_id}",
            tasks_completed=tracker.tasks_completed,
            tasks_failed=tracker.tasks_failed,
            success_rate=success_rate(tracker.tasks_completed, tracker.tasks_failed),
            average_task_duration_seconds=(
                tracker.total_task_duration / tracker.tasks_completed
                if tracker.tasks_completed
                else 0.0
            ),
            utilization_percent=tracker.utilization_percent,
            charge_cycles=tracker.charge_cycles,
            average_battery=tracker.average_battery,
        )

    @staticmethod
    def _table_metrics(tracker: _TableTracker, window: timedelta) -> TableMetrics:
        window_minutes = window.total_seconds() / 60.0
        return TableMetrics(
            table_id=tracker.table_id,
            table_label=f"Table-{tracker.table_id}",
            guests_served=tracker.guests_served,
            turnovers=tracker.turnovers,
            total_occupancy_minutes=tracker.total_occupancy_minutes,
            average_occupancy_minutes=tracker.average_occupancy_minutes,
            utilization_percent=(
                tracker.total_occupancy_minutes / window_minutes * 100.0
                if window_minutes > 0
                else 0.0
            ),
        )

    def _daily_breakdown_locked(self) -> list[DailyMetrics]:
        by_day: dict[date, list[_HourlyBucket]] = {}
        for key in sorted(self._hourly_buckets):
            by_day.setdefault(key.date(), []).append(self._hourly_buckets[key])

        tracked_tables = len(self._table_trackers)
        daily = []
        for day, buckets in by_day.items():
            completed = sum(b.tasks_completed for b in buckets)
            failed = sum(b.tasks_failed for b in buckets)
            turnovers = sum(b.table_turnovers for b in buckets)
            busy = sum(b.busy_samples for b in buckets)
            samples = busy + sum(b.idle_samples for b in buckets)
            # First bucket wins ties, so the earliest busiest hour is reported.
            peak = max(buckets, key=lambda b: b.guests_arrived)

            daily.append(
                DailyMetrics(
                    calendar_date=day,
                    day_of_week=day.strftime("%A"),
                    total_guests=sum(b.guests_arrived for b in buckets),
                    total_tasks=sum(b.tasks_created for b in buckets),
                    total_deliveries=sum(b.deliveries_completed for b in buckets),
                    total_failures=failed,
                    success_rate=success_rate(completed, failed),
                    peak_hour=peak.hour_start.hour,
                    peak_hour_guests=peak.guests_arrived,
                    table_turnovers=turnovers,
                    average_table_turnover=(
                        turnovers / tracked_tables if tracked_tables else 0.0
                    ),
                    average_robot_utilization=(
                        busy / samples * 100.0 if samples else 0.0
                    ),
                    hourly_breakdown=[b.to_hourly_metrics() for b in buckets],
                )
            )
        return daily

"""In-memory world entities mutated by the simulation loop.

These exist only for the duration of a run and are cleared when a new
run starts. Only the simulation loop mutates them; external readers get
copies via SimulationEngine.get_world_snapshot().
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from models.event import TaskPriority

LOW_BATTERY_THRESHOLD = 20.0
FULL_BATTERY = 100.0


class RobotStatus(str, Enum):
    IDLE = "idle"
    NAVIGATING = "navigating"
    CHARGING = "charging"


class TableStatus(str, Enum):
    AVAILABLE = "available"
    OCCUPIED = "occupied"
    NEEDS_SERVICE = "needs_service"
    CLEANING = "cleaning"


class GuestStatus(str, Enum):
    WAITING = "waiting"
    SEATED = "seated"
    DEPARTED = "departed"


class TaskType(str, Enum):
    GREETING = "greeting"
    DELIVER = "deliver"
    SERVICE = "service"
    CLEANING = "cleaning"


class TaskStatus(str, Enum):
    PENDING = "pending"
    ASSIGNED = "assigned"
    COMPLETED = "completed"
    FAILED = "failed"


def table_capacity(table_id: int) -> int:
    """Seats at a table: tables 1-10 seat 4, 11-15 seat 6, the rest 8."""
    if table_id <= 10:
        return 4
    if table_id <= 15:
        return 6
    return 8


@dataclass
class SimulatedRobot:
    """Robot state tracked by the simulation engine."""
    id: int
    status: RobotStatus = RobotStatus.IDLE
    battery_level: float = FULL_BATTERY
    current_task_id: Optional[int] = None

    @property
    def is_available(self) -> bool:
        """Idle with enough battery to take a task."""
        return (
            self.status == RobotStatus.IDLE
            and self.battery_level > LOW_BATTERY_THRESHOLD
        )


@dataclass
class SimulatedTable:
    """Table state tracked by the simulation engine."""
    id: int
    capacity: int
    status: TableStatus = TableStatus.AVAILABLE
    current_guest_id: Optional[int] = None


@dataclass
class SimulatedGuest:
    """Guest party tracked from arrival to departure."""
    id: int
    party_size: int
    arrival_time: datetime
    status: GuestStatus = GuestStatus.WAITING
    table_id: Optional[int] = None


@dataclass
class SimulatedTask:
    """Robot task lifecycle record."""
    id: int
    type: TaskType
    priority: TaskPriority
    created_at: datetime
    status: TaskStatus = TaskStatus.PENDING
    table_id: Optional[int] = None
    robot_id: Optional[int] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    estimated_completion: Optional[datetime] = None
    failure_reason: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.status in (TaskStatus.PENDING, TaskStatus.ASSIGNED)

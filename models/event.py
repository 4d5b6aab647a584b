"""Scheduled restaurant event model."""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TriggerEventType(str, Enum):
    """Kinds of restaurant activity produced by the event generator."""

    GUEST_ARRIVED = "guest_arrived"
    GUEST_SEATED = "guest_seated"
    FOOD_READY = "food_ready"
    DRINK_READY = "drink_ready"
    GUEST_NEEDS_HELP = "guest_needs_help"
    GUEST_REQUESTED_CHECK = "guest_requested_check"
    GUEST_LEFT = "guest_left"
    TABLE_NEEDS_CLEANING = "table_needs_cleaning"


class TaskPriority(int, Enum):
    """Priority of a robot task (higher value = more urgent)."""

    LOW = 0
    NORMAL = 1
    HIGH = 2
    URGENT = 3


class ScheduledEvent(BaseModel):
    """An immutable, time-stamped fact in the simulation timeline.

    Events are generated once for the whole run by the
    RestaurantEventGenerator and consumed in non-decreasing
    scheduled_time order by the SimulationEngine. They are never mutated.

    Args:
        scheduled_time: Virtual time at which the event happens (timezone-aware).
        event_type: What happened.
        table_id: Table the event refers to, if any.
        guest_id: Guest the event refers to, if any.
        priority: Priority of the work this event creates.
        notes: Free-text note (e.g. "Party of 4").
        party_size: Party size, carried on GUEST_ARRIVED events.
        event_id: Unique identifier for this event.
    """

    model_config = ConfigDict(frozen=True)

    scheduled_time: datetime = Field(description="Virtual time of the event")
    event_type: TriggerEventType = Field(description="Kind of event")
    table_id: Optional[int] = Field(default=None, description="Target table")
    guest_id: Optional[int] = Field(default=None, description="Guest involved")
    priority: TaskPriority = Field(
        default=TaskPriority.NORMAL, description="Priority of resulting work"
    )
    notes: Optional[str] = Field(default=None, description="Free-text note")
    party_size: Optional[int] = Field(
        default=None, ge=1, description="Party size for arrivals"
    )
    event_id: str = Field(
        default_factory=lambda: str(uuid4()),
        description="Unique identifier for this event",
    )

    @field_validator("scheduled_time")
    @classmethod
    def validate_timezone_aware(cls, v: datetime) -> datetime:
        """Ensure datetime is timezone-aware."""
        if v.tzinfo is None:
            raise ValueError("Datetime must be timezone-aware (recommend UTC)")
        return v

    def get_summary(self) -> str:
        """Return human-readable summary of this event.

        Format: "[{scheduled_time}] {event_type} table={table_id} guest={guest_id}"

        Returns:
            Brief description for logging.
        """
        time_str = self.scheduled_time.strftime("%Y-%m-%d %H:%M:%S")
        return (
            f"[{time_str}] {self.event_type.value} "
            f"table={self.table_id} guest={self.guest_id}"
        )

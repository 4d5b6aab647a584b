"""Run configuration models for long-running simulations."""

import uuid
from datetime import datetime, time, timedelta, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Arrivals per hour for a typical restaurant day (index = hour of day).
DEFAULT_HOURLY_ARRIVAL_RATES: tuple[float, ...] = (
    0, 0, 0, 0, 0, 0, 0,  # 00:00-06:00 closed
    2, 8, 6,  # breakfast
    3,  # mid-morning
    10, 20, 18, 8,  # lunch
    3, 4,  # afternoon
    12, 25, 22, 15,  # dinner
    8, 3,  # late dining
    0,  # 23:00 closed
)

# Day-of-week multipliers, Sunday first.
DEFAULT_DAY_OF_WEEK_MULTIPLIERS: tuple[float, ...] = (1.3, 0.7, 0.8, 0.9, 1.0, 1.4, 1.5)


def _default_start_time() -> datetime:
    today = datetime.now(timezone.utc).date()
    return datetime.combine(today, time(7, 0), tzinfo=timezone.utc)


class DemandPatternConfig(BaseModel):
    """Demand pattern driving restaurant event generation.

    Args:
        hourly_arrival_rates: Expected arrivals per hour, 24 entries indexed by hour.
        day_of_week_multipliers: Scale factors, 7 entries with Sunday at index 0.
        average_meal_duration_minutes: Mean meal length.
        meal_duration_std_dev: Standard deviation of meal length in minutes.
        guest_needs_help_probability: Chance a seated party asks for help.
        average_party_size: Mean party size.
        max_party_size: Upper bound on party size.
        food_order_probability: Chance a party orders food.
        drink_order_probability: Chance a party orders drinks.
        average_food_prep_minutes: Mean kitchen time for food.
        average_drink_prep_minutes: Mean bar time for drinks.
    """

    model_config = ConfigDict(frozen=True)

    hourly_arrival_rates: tuple[float, ...] = Field(
        default=DEFAULT_HOURLY_ARRIVAL_RATES,
        description="Expected arrivals per hour of day (24 entries)",
    )
    day_of_week_multipliers: tuple[float, ...] = Field(
        default=DEFAULT_DAY_OF_WEEK_MULTIPLIERS,
        description="Demand multiplier per weekday, Sunday first (7 entries)",
    )
    average_meal_duration_minutes: int = Field(default=45, gt=0)
    meal_duration_std_dev: int = Field(default=15, ge=0)
    guest_needs_help_probability: float = Field(default=0.15, ge=0.0, le=1.0)
    average_party_size: float = Field(default=2.5, gt=0.0)
    max_party_size: int = Field(default=8, ge=1)
    food_order_probability: float = Field(default=0.9, ge=0.0, le=1.0)
    drink_order_probability: float = Field(default=0.7, ge=0.0, le=1.0)
    average_food_prep_minutes: int = Field(default=15, gt=0)
    average_drink_prep_minutes: int = Field(default=5, gt=0)

    @field_validator("hourly_arrival_rates")
    @classmethod
    def validate_hourly_rates(cls, v: tuple[float, ...]) -> tuple[float, ...]:
        if len(v) != 24:
            raise ValueError(f"hourly_arrival_rates must have 24 entries, got {len(v)}")
        if any(rate < 0 for rate in v):
            raise ValueError("hourly_arrival_rates must be non-negative")
        return v

    @field_validator("day_of_week_multipliers")
    @classmethod
    def validate_day_multipliers(cls, v: tuple[float, ...]) -> tuple[float, ...]:
        if len(v) != 7:
            raise ValueError(f"day_of_week_multipliers must have 7 entries, got {len(v)}")
        if any(multiplier < 0 for multiplier in v):
            raise ValueError("day_of_week_multipliers must be non-negative")
        return v


class SimulationConfig(BaseModel):
    """Immutable configuration for one simulation run.

    Args:
        simulation_id: Identifier of the run (short hex string by default).
        simulated_start_time: Virtual start time (default: today 07:00 UTC).
        simulated_end_time: Virtual end time (default: start + 30 days).
        acceleration_factor: Virtual seconds per real second (>= 0.1).
        robot_count: Number of simulated robots.
        table_count: Number of simulated tables.
        event_patterns: Demand pattern; defaults are used when omitted.
        random_seed: Seed for reproducible runs.
        progress_broadcast_interval: Real-time interval between progress emissions.
    """

    model_config = ConfigDict(frozen=True)

    simulation_id: str = Field(
        default_factory=lambda: uuid.uuid4().hex[:8],
        description="Unique identifier for this run",
    )
    simulated_start_time: datetime = Field(
        default_factory=_default_start_time,
        description="Virtual start time (timezone-aware)",
    )
    simulated_end_time: Optional[datetime] = Field(
        default=None,
        description="Virtual end time (timezone-aware, defaults to start + 30 days)",
    )
    acceleration_factor: float = Field(default=720.0, ge=0.1)
    robot_count: int = Field(default=5, ge=1)
    table_count: int = Field(default=20, ge=1)
    event_patterns: Optional[DemandPatternConfig] = None
    random_seed: Optional[int] = None
    progress_broadcast_interval: timedelta = Field(default=timedelta(seconds=5))

    @field_validator("simulated_start_time", "simulated_end_time")
    @classmethod
    def validate_timezone_aware(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Ensure datetime is timezone-aware."""
        if v is not None and v.tzinfo is None:
            raise ValueError("Datetime must be timezone-aware (recommend UTC)")
        return v

    @field_validator("progress_broadcast_interval")
    @classmethod
    def validate_broadcast_interval(cls, v: timedelta) -> timedelta:
        if v < timedelta(0):
            raise ValueError("progress_broadcast_interval must not be negative")
        return v

    @model_validator(mode="after")
    def fill_and_check_window(self) -> "SimulationConfig":
        if self.simulated_end_time is None:
            # Frozen model: bypass __setattr__ to fill the derived default.
            object.__setattr__(
                self, "simulated_end_time", self.simulated_start_time + timedelta(days=30)
            )
        if self.simulated_end_time <= self.simulated_start_time:
            raise ValueError("simulated_end_time must be after simulated_start_time")
        return self

    @property
    def patterns(self) -> DemandPatternConfig:
        """Demand pattern in effect for this run."""
        return self.event_patterns or DemandPatternConfig()

    @property
    def simulated_duration(self) -> timedelta:
        return self.simulated_end_time - self.simulated_start_time

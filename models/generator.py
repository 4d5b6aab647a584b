"""Stochastic restaurant event generation.

The generator produces the complete, time-ordered timeline of restaurant
activity for a simulation window up front. All randomness flows through a
single seedable ``random.Random`` so identical seeds give identical
timelines.
"""

import logging
import math
import random
import uuid
from datetime import datetime, timedelta
from typing import Optional

from models.config import DemandPatternConfig
from models.event import ScheduledEvent, TaskPriority, TriggerEventType

logger = logging.getLogger(__name__)

MIN_MEAL_MINUTES = 15.0
MAX_MEAL_MINUTES = 120.0


def poisson_count(rng: random.Random, lam: float) -> int:
    """Draw a Poisson-distributed count using Knuth's algorithm.

    Multiplies uniform draws until the product falls to e^-lam or below,
    counting the iterations.

    Args:
        rng: Random source.
        lam: Distribution mean. Non-positive means always yield 0.

    Returns:
        Number of events drawn.
    """
    if lam <= 0:
        return 0
    limit = math.exp(-lam)
    k = 0
    p = 1.0
    while True:
        k += 1
        p *= rng.random()
        if p <= limit:
            return k - 1


def standard_normal(rng: random.Random) -> float:
    """Draw from N(0, 1) with the Box-Muller transform."""
    u1 = 1.0 - rng.random()
    u2 = 1.0 - rng.random()
    return math.sqrt(-2.0 * math.log(u1)) * math.sin(2.0 * math.pi * u2)


def draw_party_size(rng: random.Random, average: float, maximum: int) -> int:
    """Draw a party size from a shifted exponential favoring small parties.

    Returns:
        Size clamped to [1, maximum].
    """
    size = math.ceil(-math.log(1.0 - rng.random()) * average / 1.5)
    return max(1, min(maximum, size))


def draw_meal_minutes(rng: random.Random, pattern: DemandPatternConfig) -> float:
    """Draw a meal duration in minutes, clamped to [15, 120]."""
    minutes = (
        pattern.average_meal_duration_minutes
        + standard_normal(rng) * pattern.meal_duration_std_dev
    )
    return max(MIN_MEAL_MINUTES, min(MAX_MEAL_MINUTES, minutes))


def day_of_week_index(moment: datetime) -> int:
    """Weekday index with Sunday as 0, matching the multiplier table."""
    return (moment.weekday() + 1) % 7


class RestaurantEventGenerator:
    """Generates the scheduled event timeline for a simulation window.

    Args:
        seed: Optional random seed for reproducible timelines.
        table_count: Number of tables guests are cycled across.
    """

    def __init__(self, seed: Optional[int] = None, table_count: int = 20) -> None:
        if table_count < 1:
            raise ValueError("table_count must be at least 1")
        self.seed = seed
        self.table_count = table_count
        self._rng = random.Random(seed)

    def expected_guests_for_hour(
        self, moment: datetime, pattern: Optional[DemandPatternConfig] = None
    ) -> float:
        """Expected arrivals for the hour containing moment.

        Args:
            moment: Any instant within the hour of interest.
            pattern: Demand pattern (defaults used when omitted).

        Returns:
            hourly_rate[hour] * day_multiplier[weekday].
        """
        pattern = pattern or DemandPatternConfig()
        hour_rate = pattern.hourly_arrival_rates[moment.hour]
        multiplier = pattern.day_of_week_multipliers[day_of_week_index(moment)]
        return hour_rate * multiplier

    def generate_meal_duration(
        self, pattern: Optional[DemandPatternConfig] = None
    ) -> timedelta:
        """Sample one meal duration from the pattern's normal distribution."""
        return timedelta(minutes=draw_meal_minutes(self._rng, pattern or DemandPatternConfig()))

    def generate_events_for_period(
        self,
        start: datetime,
        end: datetime,
        pattern: Optional[DemandPatternConfig] = None,
    ) -> list[ScheduledEvent]:
        """Generate every event for the window [start, end).

        Walks the window hour by hour, drawing a Poisson number of arrivals
        per hour and expanding each arrival into its dining sequence.
        Events falling at or after end are dropped.

        Args:
            start: Window start (timezone-aware).
            end: Window end (timezone-aware, exclusive).
            pattern: Demand pattern (defaults used when omitted).

        Returns:
            Events sorted by scheduled_time (stable for equal times).

        Raises:
            ValueError: If end is before start.
        """
        if end < start:
            raise ValueError("end must not be before start")
        pattern = pattern or DemandPatternConfig()

        events: list[ScheduledEvent] = []
        guest_counter = 0
        current_hour = start.replace(minute=0, second=0, microsecond=0)

        while current_hour < end:
            expected = self.expected_guests_for_hour(current_hour, pattern)
            arrivals = poisson_count(self._rng, expected)

            for _ in range(arrivals):
                arrival_time = current_hour + timedelta(minutes=self._rng.randrange(0, 60))
                if arrival_time < start or arrival_time >= end:
                    continue

                guest_counter += 1
                table_id = ((guest_counter - 1) % self.table_count) + 1
                events.extend(
                    self._dining_sequence(
                        guest_counter, table_id, arrival_time, end, pattern
                    )
                )

            current_hour += timedelta(hours=1)

        events.sort(key=lambda e: e.scheduled_time)

        logger.info(
            f"Generated {len(events)} events for {guest_counter} guests "
            f"between {start.isoformat()} and {end.isoformat()}"
        )
        return events

    def _dining_sequence(
        self,
        guest_id: int,
        table_id: int,
        arrival_time: datetime,
        end: datetime,
        pattern: DemandPatternConfig,
    ) -> list[ScheduledEvent]:
        """Expand one arrival into arrival, seating, orders, check and departure."""
        rng = self._rng
        party_size = draw_party_size(
            rng, pattern.average_party_size, pattern.max_party_size
        )
        sequence = [
            self._event(
                arrival_time,
                TriggerEventType.GUEST_ARRIVED,
                guest_id=guest_id,
                notes=f"Party of {party_size}",
                party_size=party_size,
            )
        ]

        seated_time = arrival_time + timedelta(minutes=rng.randrange(1, 6))
        sequence.append(
            self._event(
                seated_time,
                TriggerEventType.GUEST_SEATED,
                guest_id=guest_id,
                table_id=table_id,
            )
        )

        meal_minutes = draw_meal_minutes(rng, pattern)
        departure_time = seated_time + timedelta(minutes=meal_minutes)

        ordered_food = rng.random() < pattern.food_order_probability
        ordered_drinks = rng.random() < pattern.drink_order_probability

        if ordered_drinks:
            offset = rng.randrange(3, pattern.average_drink_prep_minutes + 5)
            sequence.append(
                self._event(
                    seated_time + timedelta(minutes=offset),
                    TriggerEventType.DRINK_READY,
                    table_id=table_id,
                    notes=f"Drinks for table {table_id}",
                )
            )

        if ordered_food:
            offset = rng.randrange(10, pattern.average_food_prep_minutes + 10)
            sequence.append(
                self._event(
                    seated_time + timedelta(minutes=offset),
                    TriggerEventType.FOOD_READY,
                    table_id=table_id,
                    priority=TaskPriority.HIGH,
                    notes=f"Food for table {table_id}",
                )
            )

        if rng.random() < pattern.guest_needs_help_probability:
            help_time = seated_time + timedelta(
                minutes=rng.randrange(5, int(meal_minutes) - 5)
            )
            if help_time < departure_time:
                sequence.append(
                    self._event(
                        help_time,
                        TriggerEventType.GUEST_NEEDS_HELP,
                        guest_id=guest_id,
                        table_id=table_id,
                        priority=TaskPriority.HIGH,
                    )
                )

        check_time = departure_time - timedelta(minutes=rng.randrange(5, 11))
        sequence.append(
            self._event(
                check_time,
                TriggerEventType.GUEST_REQUESTED_CHECK,
                guest_id=guest_id,
                table_id=table_id,
            )
        )

        sequence.append(
            self._event(
                departure_time,
                TriggerEventType.GUEST_LEFT,
                guest_id=guest_id,
                table_id=table_id,
            )
        )
        sequence.append(
            self._event(
                departure_time + timedelta(minutes=1),
                TriggerEventType.TABLE_NEEDS_CLEANING,
                table_id=table_id,
            )
        )

        return [event for event in sequence if event.scheduled_time < end]

    def _event(
        self,
        scheduled_time: datetime,
        event_type: TriggerEventType,
        priority: TaskPriority = TaskPriority.NORMAL,
        **fields,
    ) -> ScheduledEvent:
        # Ids come from self._rng: seeded runs repeat them, unseeded runs draw
        # from an entropy-seeded source.
        event_id = uuid.UUID(int=self._rng.getrandbits(128), version=4)
        return ScheduledEvent(
            scheduled_time=scheduled_time,
            event_type=event_type,
            priority=priority,
            event_id=str(event_id),
            **fields,
        )

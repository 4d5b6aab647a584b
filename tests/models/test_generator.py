"""Unit tests for RestaurantEventGenerator and its random helpers.

GENERAL PATTERN TESTS:
    - Instantiation and argument validation
    - Reproducibility for a fixed seed

GENERATOR-SPECIFIC TESTS:
    - Poisson, Box-Muller, party size and meal duration draws
    - Expected arrivals per hour from the demand pattern
    - Timeline shape: ordering, window bounds, per-guest dining sequence
"""

import random
from collections import defaultdict
from datetime import timedelta
from statistics import mean, pstdev

import pytest

from models.config import DemandPatternConfig
from models.event import TaskPriority, TriggerEventType
from models.generator import (
    MAX_MEAL_MINUTES,
    MIN_MEAL_MINUTES,
    RestaurantEventGenerator,
    day_of_week_index,
    draw_meal_minutes,
    draw_party_size,
    poisson_count,
    standard_normal,
)
from tests.fixtures.core.clocks import T0
from tests.fixtures.core.configs import QUIET_PATTERN, create_demand_pattern

SUNDAY = T0 - timedelta(days=1)


@pytest.fixture(scope="module")
def two_day_timeline():
    generator = RestaurantEventGenerator(seed=1234, table_count=5)
    start = T0.replace(hour=0)
    end = start + timedelta(days=2)
    return start, end, generator.generate_events_for_period(start, end)


class TestRandomHelpers:
    """GENERATOR-SPECIFIC: Test the pure random draws."""

    def test_poisson_non_positive_mean_is_zero(self):
        rng = random.Random(1)
        assert poisson_count(rng, 0) == 0
        assert poisson_count(rng, -3.0) == 0

    def test_poisson_mean_matches_lambda(self):
        rng = random.Random(42)
        draws = [poisson_count(rng, 5.0) for _ in range(20000)]
        assert mean(draws) == pytest.approx(5.0, abs=0.1)
        assert min(draws) >= 0

    def test_standard_normal_moments(self):
        rng = random.Random(42)
        draws = [standard_normal(rng) for _ in range(20000)]
        assert mean(draws) == pytest.approx(0.0, abs=0.05)
        assert pstdev(draws) == pytest.approx(1.0, abs=0.05)

    def test_party_size_is_clamped(self):
        rng = random.Random(7)
        sizes = [draw_party_size(rng, 2.5, 4) for _ in range(5000)]
        assert min(sizes) >= 1
        assert max(sizes) <= 4
        # Skewed toward small parties
        assert sizes.count(1) + sizes.count(2) > sizes.count(3) + sizes.count(4)

    def test_meal_minutes_without_spread_is_mean(self):
        rng = random.Random(7)
        pattern = create_demand_pattern(meal_duration_std_dev=0)
        assert draw_meal_minutes(rng, pattern) == pytest.approx(45.0)

    def test_meal_minutes_are_clamped(self):
        rng = random.Random(7)
        long_meals = create_demand_pattern(
            average_meal_duration_minutes=500, meal_duration_std_dev=0
        )
        short_meals = create_demand_pattern(
            average_meal_duration_minutes=1, meal_duration_std_dev=0
        )
        assert draw_meal_minutes(rng, long_meals) == MAX_MEAL_MINUTES
        assert draw_meal_minutes(rng, short_meals) == MIN_MEAL_MINUTES

    def test_day_of_week_index_starts_sunday(self):
        assert day_of_week_index(SUNDAY) == 0
        assert day_of_week_index(T0) == 1
        assert day_of_week_index(T0 + timedelta(days=5)) == 6


class TestRestaurantEventGeneratorInstantiation:
    """GENERAL PATTERN: Test construction."""

    def test_defaults(self):
        generator = RestaurantEventGenerator()
        assert generator.seed is None
        assert generator.table_count == 20

    def test_rejects_zero_tables(self):
        with pytest.raises(ValueError):
            RestaurantEventGenerator(table_count=0)

    def test_rejects_inverted_window(self):
        generator = RestaurantEventGenerator(seed=1)
        with pytest.raises(ValueError):
            generator.generate_events_for_period(T0, T0 - timedelta(hours=1))


class TestExpectedGuests:
    """GENERATOR-SPECIFIC: Test expected arrivals per hour."""

    def test_monday_lunch(self):
        generator = RestaurantEventGenerator(seed=1)
        # rate[12] = 20, Monday multiplier = 0.7
        assert generator.expected_guests_for_hour(T0) == pytest.approx(14.0)

    def test_sunday_dinner(self):
        generator = RestaurantEventGenerator(seed=1)
        # rate[18] = 25, Sunday multiplier = 1.3
        assert generator.expected_guests_for_hour(SUNDAY.replace(hour=18)) == pytest.approx(32.5)

    def test_closed_hours(self):
        generator = RestaurantEventGenerator(seed=1)
        assert generator.expected_guests_for_hour(T0.replace(hour=3)) == 0.0

    def test_generate_meal_duration_is_timedelta(self):
        generator = RestaurantEventGenerator(seed=1)
        duration = generator.generate_meal_duration()
        assert timedelta(minutes=15) <= duration <= timedelta(minutes=120)


class TestGenerateEventsForPeriod:
    """GENERATOR-SPECIFIC: Test the generated timeline."""

    def test_zero_rates_yield_no_events(self):
        generator = RestaurantEventGenerator(seed=1)
        events = generator.generate_events_for_period(T0, T0 + timedelta(days=7), QUIET_PATTERN)
        assert events == []

    def test_empty_window_yields_no_events(self):
        generator = RestaurantEventGenerator(seed=1)
        assert generator.generate_events_for_period(T0, T0) == []

    def test_events_are_sorted(self, two_day_timeline):
        _, _, events = two_day_timeline
        assert events
        times = [e.scheduled_time for e in events]
        assert times == sorted(times)

    def test_events_lie_within_window(self, two_day_timeline):
        start, end, events = two_day_timeline
        assert all(start <= e.scheduled_time < end for e in events)

    def test_mid_hour_start_drops_earlier_arrivals(self):
        generator = RestaurantEventGenerator(seed=3)
        start = T0.replace(minute=30)
        events = generator.generate_events_for_period(start, start + timedelta(hours=3))
        assert events
        assert all(e.scheduled_time >= start for e in events)

    def test_same_seed_is_reproducible(self):
        end = T0 + timedelta(days=1)
        first = RestaurantEventGenerator(seed=99).generate_events_for_period(T0, end)
        second = RestaurantEventGenerator(seed=99).generate_events_for_period(T0, end)
        assert first == second

    def test_different_seeds_differ(self):
        end = T0 + timedelta(days=1)
        first = RestaurantEventGenerator(seed=1).generate_events_for_period(T0, end)
        second = RestaurantEventGenerator(seed=2).generate_events_for_period(T0, end)
        assert first != second

    def test_guest_ids_are_sequential_and_tables_cycle(self, two_day_timeline):
        _, _, events = two_day_timeline
        arrivals = [e for e in events if e.event_type == TriggerEventType.GUEST_ARRIVED]
        assert sorted(e.guest_id for e in arrivals) == list(range(1, len(arrivals) + 1))

        for seated in (e for e in events if e.event_type == TriggerEventType.GUEST_SEATED):
            assert seated.table_id == ((seated.guest_id - 1) % 5) + 1

    def test_arrivals_carry_party_size(self, two_day_timeline):
        _, _, events = two_day_timeline
        for arrival in (e for e in events if e.event_type == TriggerEventType.GUEST_ARRIVED):
            assert 1 <= arrival.party_size <= 8
            assert arrival.notes == f"Party of {arrival.party_size}"

    def test_ready_event_priorities(self, two_day_timeline):
        _, _, events = two_day_timeline
        food = [e for e in events if e.event_type == TriggerEventType.FOOD_READY]
        drinks = [e for e in events if e.event_type == TriggerEventType.DRINK_READY]
        assert food and drinks
        assert all(e.priority == TaskPriority.HIGH for e in food)
        assert all(e.priority == TaskPriority.NORMAL for e in drinks)

    def test_dining_sequence_spacing(self, two_day_timeline):
        _, end, events = two_day_timeline
        by_guest = defaultdict(dict)
        for e in events:
            if e.guest_id is not None:
                by_guest[e.guest_id][e.event_type] = e.scheduled_time

        checked = 0
        for timeline in by_guest.values():
            arrived = timeline[TriggerEventType.GUEST_ARRIVED]
            seated = timeline.get(TriggerEventType.GUEST_SEATED)
            if seated is not None:
                assert timedelta(minutes=1) <= seated - arrived <= timedelta(minutes=5)

            left = timeline.get(TriggerEventType.GUEST_LEFT)
            if left is None:
                continue
            checked += 1
            check = timeline[TriggerEventType.GUEST_REQUESTED_CHECK]
            assert timedelta(minutes=5) <= left - check <= timedelta(minutes=10)

            help_time = timeline.get(TriggerEventType.GUEST_NEEDS_HELP)
            if help_time is not None:
                assert seated < help_time < left

        assert checked > 0

    def test_cleaning_follows_departure(self, two_day_timeline):
        _, _, events = two_day_timeline
        departures = [e for e in events if e.event_type == TriggerEventType.GUEST_LEFT]
        cleanings = {
            (e.table_id, e.scheduled_time)
            for e in events
            if e.event_type == TriggerEventType.TABLE_NEEDS_CLEANING
        }
        for left in departures:
            expected = (left.table_id, left.scheduled_time + timedelta(minutes=1))
            if expected[1] < T0.replace(hour=0) + timedelta(days=2):
                assert expected in cleanings

    def test_event_ids_are_unique(self, two_day_timeline):
        _, _, events = two_day_timeline
        assert len({e.event_id for e in events}) == len(events)

    def test_unseeded_runs_draw_distinct_ids(self):
        end = T0 + timedelta(hours=4)
        first = RestaurantEventGenerator().generate_events_for_period(T0, end)
        second = RestaurantEventGenerator().generate_events_for_period(T0, end)
        assert first and second
        assert not {e.event_id for e in first} & {e.event_id for e in second}

    def test_weekend_is_busier_than_monday(self):
        generator = RestaurantEventGenerator(seed=5)
        monday_start = T0.replace(hour=0)
        monday = generator.generate_events_for_period(monday_start, monday_start + timedelta(days=1))
        saturday_start = monday_start + timedelta(days=5)
        saturday = generator.generate_events_for_period(saturday_start, saturday_start + timedelta(days=1))

        def arrivals(events):
            return sum(1 for e in events if e.event_type == TriggerEventType.GUEST_ARRIVED)

        # Expected arrivals: ~117 on Monday vs ~250 on Saturday
        assert arrivals(saturday) > arrivals(monday)


def test_default_pattern_is_used_when_omitted():
    pattern = DemandPatternConfig()
    end = T0 + timedelta(hours=6)
    events_default = RestaurantEventGenerator(seed=11).generate_events_for_period(T0, end)
    events_explicit = RestaurantEventGenerator(seed=11).generate_events_for_period(
        T0, end, pattern
    )
    assert events_default == events_explicit

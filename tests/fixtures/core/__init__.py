"""Core simulation fixtures."""

from tests.fixtures.core.clocks import T0, FakeTimeSource, create_virtual_clock
from tests.fixtures.core.configs import (
    QUIET_PATTERN,
    create_demand_pattern,
    create_simulation_config,
)
from tests.fixtures.core.engines import create_simulation_engine, run_manually
from tests.fixtures.core.events import (
    StubGenerator,
    create_dining_timeline,
    create_scheduled_event,
    stub_generator_factory,
)

__all__ = [
    "T0",
    "FakeTimeSource",
    "create_virtual_clock",
    "QUIET_PATTERN",
    "create_demand_pattern",
    "create_simulation_config",
    "create_simulation_engine",
    "run_manually",
    "StubGenerator",
    "create_dining_timeline",
    "create_scheduled_event",
    "stub_generator_factory",
]

"""Fleet simulation data models package.

This package contains the core of the restaurant fleet simulator: the
virtual clock, run configuration, event generation, in-memory world
entities, metrics aggregation and the simulation engine.
"""

from models.broadcast import InMemoryBroadcaster, ProgressBroadcaster
from models.clock import TimeAcceleration, VirtualClock
from models.config import DemandPatternConfig, SimulationConfig
from models.event import ScheduledEvent, TaskPriority, TriggerEventType
from models.generator import RestaurantEventGenerator
from models.metrics import SimulationMetricsAggregator, SimulationReport
from models.simulation import (
    SimulationEngine,
    SimulationLoop,
    SimulationProgress,
    SimulationState,
)

__all__ = [
    "InMemoryBroadcaster",
    "ProgressBroadcaster",
    "TimeAcceleration",
    "VirtualClock",
    "DemandPatternConfig",
    "SimulationConfig",
    "ScheduledEvent",
    "TaskPriority",
    "TriggerEventType",
    "RestaurantEventGenerator",
    "SimulationMetricsAggregator",
    "SimulationReport",
    "SimulationEngine",
    "SimulationLoop",
    "SimulationProgress",
    "SimulationState",
]

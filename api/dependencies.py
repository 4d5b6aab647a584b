"""Dependency injection providers for the FastAPI application.

This module is the composition root: it builds the VirtualClock, the
metrics aggregator, the broadcaster and the SimulationEngine once at
startup and hands them to route handlers through FastAPI dependencies.
"""

import logging
from typing import Annotated, Optional

from fastapi import Depends

from api.settings import Settings
from models.broadcast import InMemoryBroadcaster
from models.clock import VirtualClock
from models.metrics import SimulationMetricsAggregator
from models.simulation import SimulationEngine

logger = logging.getLogger(__name__)

# Single shared instance, created when the app starts
_simulation_engine: Optional[SimulationEngine] = None


def get_simulation_engine() -> SimulationEngine:
    """Get the shared SimulationEngine instance.

    This function is a FastAPI dependency. Tests replace it through
    ``app.dependency_overrides`` to inject a fresh engine.

    Returns:
        The shared SimulationEngine instance.

    Raises:
        RuntimeError: If the engine hasn't been initialized yet.
    """
    if _simulation_engine is None:
        raise RuntimeError(
            "SimulationEngine not initialized. Call initialize_simulation_engine() first."
        )
    return _simulation_engine


def build_simulation_engine(settings: Settings) -> SimulationEngine:
    """Wire a SimulationEngine with its collaborators.

    Args:
        settings: Service settings.

    Returns:
        A new, idle SimulationEngine.
    """
    return SimulationEngine(
        clock=VirtualClock(),
        metrics=SimulationMetricsAggregator(),
        broadcaster=InMemoryBroadcaster(history_size=settings.broadcast_history),
        tick_interval=settings.loop_interval_s,
    )


def initialize_simulation_engine(settings: Settings) -> SimulationEngine:
    """Initialize the shared SimulationEngine instance.

    This should be called once when the FastAPI app starts up.

    Returns:
        The newly created SimulationEngine instance.
    """
    global _simulation_engine

    _simulation_engine = build_simulation_engine(settings)
    logger.info(
        f"SimulationEngine initialized (loop interval {settings.loop_interval_s}s)"
    )
    return _simulation_engine


def shutdown_simulation_engine() -> None:
    """Stop any active run and drop the shared engine."""
    global _simulation_engine

    if _simulation_engine is not None:
        _simulation_engine.shutdown()

    _simulation_engine = None


# Type alias for dependency injection
SimulationEngineDep = Annotated[SimulationEngine, Depends(get_simulation_engine)]

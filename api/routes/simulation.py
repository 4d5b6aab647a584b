"""Long-run simulation control endpoints.

These endpoints expose the SimulationEngine lifecycle: starting a run,
polling progress, pausing, resuming, stopping, changing acceleration and
fetching the final report.
"""

from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter
from pydantic import BaseModel, Field

from api.dependencies import SimulationEngineDep
from api.exceptions import ResourceNotFoundError
from models.clock import TimeAcceleration
from models.config import DemandPatternConfig, SimulationConfig
from models.metrics import SimulationReport
from models.simulation import (
    SimulationEngine,
    SimulationNotActiveError,
    SimulationProgress,
    SimulationState,
    WorldSnapshot,
    format_duration,
)

# Create router for long-run simulation endpoints
router = APIRouter(
    prefix="/simulation/long-run",
    tags=["simulation"],
)


# Request/Response Models


class StartLongRunRequest(BaseModel):
    """Request model for starting a long-running simulation.

    Omitted fields fall back to the SimulationConfig defaults.

    Attributes:
        simulated_start_time: Virtual start time (timezone-aware).
        simulated_end_time: Virtual end time (timezone-aware).
        acceleration_factor: Virtual seconds per real second.
        robot_count: Number of simulated robots.
        table_count: Number of simulated tables.
        event_patterns: Demand pattern overrides.
        random_seed: Seed for a reproducible run.
        progress_broadcast_interval_seconds: Real seconds between progress emissions.
        auto_advance: Run the background loop (False leaves ticking to the caller).
    """

    simulated_start_time: Optional[datetime] = None
    simulated_end_time: Optional[datetime] = None
    acceleration_factor: Optional[float] = Field(default=None, ge=0.1)
    robot_count: Optional[int] = Field(default=None, ge=1)
    table_count: Optional[int] = Field(default=None, ge=1)
    event_patterns: Optional[DemandPatternConfig] = None
    random_seed: Optional[int] = None
    progress_broadcast_interval_seconds: Optional[float] = Field(default=None, ge=0)
    auto_advance: bool = True

    def to_config(self) -> SimulationConfig:
        """Build the run configuration, keeping defaults for omitted fields."""
        fields = self.model_dump(
            exclude_none=True,
            exclude={"auto_advance", "progress_broadcast_interval_seconds", "event_patterns"},
        )
        if self.event_patterns is not None:
            fields["event_patterns"] = self.event_patterns
        if self.progress_broadcast_interval_seconds is not None:
            fields["progress_broadcast_interval"] = timedelta(
                seconds=self.progress_broadcast_interval_seconds
            )
        return SimulationConfig(**fields)


class StartLongRunResponse(BaseModel):
    """Response model for a started run.

    Attributes:
        simulation_id: Identifier of the new run.
        state: Run state after starting.
        simulated_start_time: Virtual start time.
        simulated_end_time: Virtual end time.
        acceleration_factor: Acceleration in effect.
        total_events_scheduled: Number of generated events.
        estimated_real_duration: Expected wall-clock duration, formatted.
    """

    simulation_id: str
    state: SimulationState
    simulated_start_time: datetime
    simulated_end_time: datetime
    acceleration_factor: float
    total_events_scheduled: int
    estimated_real_duration: str


class ControlResponse(BaseModel):
    """Response model for pause/resume/stop."""

    simulation_id: str
    state: SimulationState
    current_simulated_time: Optional[datetime] = None


class SetAccelerationRequest(BaseModel):
    acceleration_factor: float = Field(ge=0.1)


class AccelerationResponse(BaseModel):
    simulation_id: str
    acceleration_factor: float
    current_simulated_time: Optional[datetime] = None


class AccelerationPreset(BaseModel):
    name: str
    factor: float
    description: str


# Route Handlers


@router.post("", response_model=StartLongRunResponse)
async def start_long_run(request: StartLongRunRequest, engine: SimulationEngineDep):
    """Start a long-running simulation.

    Args:
        request: Run configuration.
        engine: The SimulationEngine instance (injected by FastAPI).

    Returns:
        Details of the started run.

    Raises:
        SimulationAlreadyRunningError: If a run is already active (409).
        ValidationError: If the configuration is invalid (422).
    """
    config = request.to_config()
    simulation_id = engine.start_simulation(config, auto_advance=request.auto_advance)

    estimated = config.simulated_duration / config.acceleration_factor
    return StartLongRunResponse(
        simulation_id=simulation_id,
        state=engine.state,
        simulated_start_time=config.simulated_start_time,
        simulated_end_time=config.simulated_end_time,
        acceleration_factor=config.acceleration_factor,
        total_events_scheduled=engine.total_events_scheduled,
        estimated_real_duration=format_duration(estimated),
    )


@router.get("/progress", response_model=SimulationProgress)
async def get_progress(engine: SimulationEngineDep):
    """Get progress of the current or most recent run.

    Raises:
        ResourceNotFoundError: If no run has been started (404).
    """
    if engine.state == SimulationState.NOT_STARTED:
        raise ResourceNotFoundError("progress", "No simulation has been started")
    return engine.get_progress()


def _control_response(engine: SimulationEngine) -> ControlResponse:
    progress = engine.get_progress()
    return ControlResponse(
        simulation_id=progress.simulation_id,
        state=progress.state,
        current_simulated_time=progress.current_simulated_time,
    )


@router.post("/pause", response_model=ControlResponse)
async def pause_long_run(engine: SimulationEngineDep):
    """Pause the running simulation.

    Raises:
        SimulationNotActiveError: If no run is currently running (409).
    """
    if not engine.pause_simulation():
        raise SimulationNotActiveError(
            f"Cannot pause: simulation is {engine.state.value}"
        )
    return _control_response(engine)


@router.post("/resume", response_model=ControlResponse)
async def resume_long_run(engine: SimulationEngineDep):
    """Resume the paused simulation.

    Raises:
        SimulationNotActiveError: If no run is currently paused (409).
    """
    if not engine.resume_simulation():
        raise SimulationNotActiveError(
            f"Cannot resume: simulation is {engine.state.value}"
        )
    return _control_response(engine)


@router.post("/stop", response_model=ControlResponse)
async def stop_long_run(engine: SimulationEngineDep):
    """Cancel the active simulation.

    Raises:
        SimulationNotActiveError: If no run is active (409).
    """
    if not engine.stop_simulation():
        raise SimulationNotActiveError(
            f"Cannot stop: simulation is {engine.state.value}"
        )
    return _control_response(engine)


@router.post("/acceleration", response_model=AccelerationResponse)
async def set_acceleration(request: SetAccelerationRequest, engine: SimulationEngineDep):
    """Change the acceleration factor of the active run.

    Raises:
        SimulationNotActiveError: If no run is running or paused (409).
    """
    if not engine.set_acceleration(request.acceleration_factor):
        raise SimulationNotActiveError(
            f"Cannot change acceleration: simulation is {engine.state.value}"
        )
    progress = engine.get_progress()
    return AccelerationResponse(
        simulation_id=progress.simulation_id,
        acceleration_factor=progress.acceleration_factor,
        current_simulated_time=progress.current_simulated_time,
    )


@router.get("/report", response_model=SimulationReport)
async def get_report(engine: SimulationEngineDep):
    """Get the final report of the last completed run.

    Raises:
        ValueError: If a run is still active (400).
        ResourceNotFoundError: If no report exists (404).
    """
    if engine.is_active:
        raise ValueError(
            f"Simulation is still {engine.state.value}; the report is available once it completes"
        )
    report = engine.get_report()
    if report is None:
        raise ResourceNotFoundError("report", "No completed simulation report is available")
    return report


@router.get("/world", response_model=WorldSnapshot)
async def get_world(engine: SimulationEngineDep):
    """Get a snapshot of robots, tables, guests and tasks."""
    return engine.get_world_snapshot()


@router.get("/acceleration-presets", response_model=list[AccelerationPreset])
async def list_acceleration_presets():
    """List the named acceleration presets."""
    return [
        AccelerationPreset(name=preset.name, factor=preset.value, description=preset.describe())
        for preset in TimeAcceleration
    ]

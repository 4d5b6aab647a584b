"""Long-run simulation sub-client for the fleet simulator API.

This module provides SimulationClient and AsyncSimulationClient for the
long-run lifecycle endpoints (/simulation/long-run/*).

This is an internal module. Import from `client` instead.
"""

from datetime import datetime
from typing import Any

from api.routes.simulation import (
    AccelerationPreset,
    AccelerationResponse,
    ControlResponse,
    StartLongRunResponse,
)
from client._base import AsyncBaseClient, BaseClient
from models.config import DemandPatternConfig
from models.metrics import SimulationReport
from models.simulation import SimulationProgress, WorldSnapshot


def _start_body(
    simulated_start_time: datetime | None,
    simulated_end_time: datetime | None,
    acceleration_factor: float | None,
    robot_count: int | None,
    table_count: int | None,
    event_patterns: DemandPatternConfig | None,
    random_seed: int | None,
    progress_broadcast_interval_seconds: float | None,
    auto_advance: bool,
) -> dict[str, Any]:
    body: dict[str, Any] = {"auto_advance": auto_advance}
    if simulated_start_time is not None:
        body["simulated_start_time"] = simulated_start_time.isoformat()
    if simulated_end_time is not None:
        body["simulated_end_time"] = simulated_end_time.isoformat()
    if acceleration_factor is not None:
        body["acceleration_factor"] = acceleration_factor
    if robot_count is not None:
        body["robot_count"] = robot_count
    if table_count is not None:
        body["table_count"] = table_count
    if event_patterns is not None:
        body["event_patterns"] = event_patterns.model_dump(mode="json")
    if random_seed is not None:
        body["random_seed"] = random_seed
    if progress_broadcast_interval_seconds is not None:
        body["progress_broadcast_interval_seconds"] = progress_broadcast_interval_seconds
    return body


class SimulationClient(BaseClient):
    """Synchronous client for long-run simulation control.

    Example:
        with FleetSimClient() as client:
            started = client.simulation.start(acceleration_factor=720, random_seed=7)
            progress = client.simulation.get_progress()
            print(f"{progress.progress_percent:.1f}% of {started.simulation_id}")
    """

    _BASE_PATH = "/simulation/long-run"

    def start(
        self,
        simulated_start_time: datetime | None = None,
        simulated_end_time: datetime | None = None,
        acceleration_factor: float | None = None,
        robot_count: int | None = None,
        table_count: int | None = None,
        event_patterns: DemandPatternConfig | None = None,
        random_seed: int | None = None,
        progress_broadcast_interval_seconds: float | None = None,
        auto_advance: bool = True,
    ) -> StartLongRunResponse:
        """Start a long-running simulation.

        Omitted arguments use the server's defaults (30 simulated days at
        720x, 5 robots, 20 tables).

        Args:
            simulated_start_time: Virtual start time (timezone-aware).
            simulated_end_time: Virtual end time (timezone-aware).
            acceleration_factor: Virtual seconds per real second.
            robot_count: Number of robots.
            table_count: Number of tables.
            event_patterns: Demand pattern overrides.
            random_seed: Seed for a reproducible run.
            progress_broadcast_interval_seconds: Real seconds between progress events.
            auto_advance: Whether the server drives the run in a background loop.

        Returns:
            Details of the started run.

        Raises:
            ConflictError: If a run is already active.
            ValidationError: If the configuration is invalid.
        """
        data = self._post(
            self._BASE_PATH,
            json=_start_body(
                simulated_start_time,
                simulated_end_time,
                acceleration_factor,
                robot_count,
                table_count,
                event_patterns,
                random_seed,
                progress_broadcast_interval_seconds,
                auto_advance,
            ),
        )
        return StartLongRunResponse(**data)

    def get_progress(self) -> SimulationProgress:
        """Get progress of the current or most recent run.

        Raises:
            NotFoundError: If no run has been started.
        """
        data = self._get(f"{self._BASE_PATH}/progress")
        return SimulationProgress(**data)

    def pause(self) -> ControlResponse:
        """Pause the running simulation.

        Raises:
            ConflictError: If no run is currently running.
        """
        data = self._post(f"{self._BASE_PATH}/pause")
        return ControlResponse(**data)

    def resume(self) -> ControlResponse:
        """Resume the paused simulation.

        Raises:
            ConflictError: If no run is currently paused.
        """
        data = self._post(f"{self._BASE_PATH}/resume")
        return ControlResponse(**data)

    def stop(self) -> ControlResponse:
        """Cancel the active simulation.

        Raises:
            ConflictError: If no run is active.
        """
        data = self._post(f"{self._BASE_PATH}/stop")
        return ControlResponse(**data)

    def set_acceleration(self, acceleration_factor: float) -> AccelerationResponse:
        """Change the acceleration of the active run without losing virtual time."""
        data = self._post(
            f"{self._BASE_PATH}/acceleration",
            json={"acceleration_factor": acceleration_factor},
        )
        return AccelerationResponse(**data)

    def get_report(self) -> SimulationReport:
        """Get the final report of the last completed run.

        Raises:
            BadRequestError: If a run is still active.
            NotFoundError: If no report is available.
        """
        data = self._get(f"{self._BASE_PATH}/report")
        return SimulationReport(**data)

    def get_world(self) -> WorldSnapshot:
        data = self._get(f"{self._BASE_PATH}/world")
        return WorldSnapshot(**data)

    def list_acceleration_presets(self) -> list[AccelerationPreset]:
        data = self._get(f"{self._BASE_PATH}/acceleration-presets")
        return [AccelerationPreset(**item) for item in data]


class AsyncSimulationClient(AsyncBaseClient):
    """Asynchronous client for long-run simulation control.

    Example:
        async with AsyncFleetSimClient() as client:
            await client.simulation.start(random_seed=7)
            progress = await client.simulation.get_progress()
    """

    _BASE_PATH = "/simulation/long-run"

    async def start(
        self,
        simulated_start_time: datetime | None = None,
        simulated_end_time: datetime | None = None,
        acceleration_factor: float | None = None,
        robot_count: int | None = None,
        table_count: int | None = None,
        event_patterns: DemandPatternConfig | None = None,
        random_seed: int | None = None,
        progress_broadcast_interval_seconds: float | None = None,
        auto_advance: bool = True,
    ) -> StartLongRunResponse:
        """Start a long-running simulation.

        See SimulationClient.start for argument details.

        Raises:
            ConflictError: If a run is already active.
            ValidationError: If the configuration is invalid.
        """
        data = await self._post(
            self._BASE_PATH,
            json=_start_body(
                simulated_start_time,
                simulated_end_time,
                acceleration_factor,
                robot_count,
                table_count,
                event_patterns,
                random_seed,
                progress_broadcast_interval_seconds,
                auto_advance,
            ),
        )
        return StartLongRunResponse(**data)

    async def get_progress(self) -> SimulationProgress:
        data = await self._get(f"{self._BASE_PATH}/progress")
        return SimulationProgress(**data)

    async def pause(self) -> ControlResponse:
        data = await self._post(f"{self._BASE_PATH}/pause")
        return ControlResponse(**data)

    async def resume(self) -> ControlResponse:
        data = await self._post(f"{self._BASE_PATH}/resume")
        return ControlResponse(**data)

    async def stop(self) -> ControlResponse:
        data = await self._post(f"{self._BASE_PATH}/stop")
        return ControlResponse(**data)

    async def set_acceleration(self, acceleration_factor: float) -> AccelerationResponse:
        data = await self._post(
            f"{self._BASE_PATH}/acceleration",
            json={"acceleration_factor": acceleration_factor},
        )
        return AccelerationResponse(**data)

    async def get_report(self) -> SimulationReport:
        data = await self._get(f"{self._BASE_PATH}/report")
        return SimulationReport(**data)

    async def get_world(self) -> WorldSnapshot:
        data = await self._get(f"{self._BASE_PATH}/world")
        return WorldSnapshot(**data)

    async def list_acceleration_presets(self) -> list[AccelerationPreset]:
        data = await self._get(f"{self._BASE_PATH}/acceleration-presets")
        return [AccelerationPreset(**item) for item in data]

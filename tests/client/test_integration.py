"""Integration tests for the fleet simulator client library.

These tests run the client against the real FastAPI app, using a
TestClient-backed transport for the synchronous client and httpx's
ASGITransport for the asynchronous one. Each test gets a fresh engine
through a dependency override.
"""

import asyncio
from datetime import timedelta

import httpx
import pytest
from fastapi.testclient import TestClient
from httpx import ASGITransport

from api.dependencies import get_simulation_engine
from client import (
    AsyncFleetSimClient,
    BadRequestError,
    ConflictError,
    FleetSimClient,
    NotFoundError,
    ValidationError,
)
from main import app
from models.config import DemandPatternConfig
from models.simulation import SimulationState
from tests.fixtures.core.clocks import T0

# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def engine(fresh_engine):
    """Route all requests to a fresh SimulationEngine."""
    app.dependency_overrides[get_simulation_engine] = lambda: fresh_engine
    yield fresh_engine
    app.dependency_overrides.clear()


@pytest.fixture
def sync_client(engine):
    """Create a synchronous client connected to the app through TestClient."""
    test_client = TestClient(app, raise_server_exceptions=False)

    class SyncTestTransport(httpx.BaseTransport):
        def handle_request(self, request: httpx.Request) -> httpx.Response:
            response = test_client.request(
                method=request.method,
                url=str(request.url.path),
                params=dict(request.url.params) if request.url.params else None,
                content=request.content,
                headers=dict(request.headers),
            )
            return httpx.Response(
                status_code=response.status_code,
                headers=response.headers,
                content=response.content,
            )

    with FleetSimClient(base_url="http://test", transport=SyncTestTransport()) as client:
        yield client


@pytest.fixture
async def async_client(engine):
    """Create an asynchronous client connected to the app via ASGITransport."""
    transport = ASGITransport(app=app)
    async with AsyncFleetSimClient(base_url="http://test", transport=transport) as client:
        yield client


def manual_run_kwargs(**overrides) -> dict:
    kwargs = {
        "simulated_start_time": T0,
        "simulated_end_time": T0 + timedelta(days=1),
        "acceleration_factor": 1.0,
        "robot_count": 3,
        "table_count": 8,
        "random_seed": 21,
        "auto_advance": False,
    }
    kwargs.update(overrides)
    return kwargs


def finish(engine) -> None:
    engine.clock.advance_by(timedelta(hours=2))
    engine.tick()
    engine.clock.advance_by(timedelta(days=1))
    engine.tick()


# =============================================================================
# Synchronous Client Tests
# =============================================================================


class TestSimulationIntegration:
    """End-to-end lifecycle through FleetSimClient."""

    def test_health(self, sync_client):
        assert sync_client.health() == {"status": "healthy"}

    def test_full_lifecycle(self, sync_client, engine):
        started = sync_client.simulation.start(**manual_run_kwargs())
        assert started.state == SimulationState.RUNNING
        assert started.simulated_start_time == T0

        assert sync_client.simulation.pause().state == SimulationState.PAUSED
        assert sync_client.simulation.resume().state == SimulationState.RUNNING
        accel = sync_client.simulation.set_acceleration(60.0)
        assert accel.acceleration_factor == 60.0

        with pytest.raises(BadRequestError, match="still running"):
            sync_client.simulation.get_report()

        finish(engine)

        progress = sync_client.simulation.get_progress()
        assert progress.state == SimulationState.COMPLETED
        assert progress.progress_percent == 100.0

        report = sync_client.simulation.get_report()
        assert report.simulation_id == started.simulation_id
        assert report.total_tasks == progress.tasks_created
        assert report.robot_metrics[1].robot_name == "Robot-1"

    def test_world_snapshot(self, sync_client):
        sync_client.simulation.start(**manual_run_kwargs())

        world = sync_client.simulation.get_world()

        assert len(world.robots) == 3
        assert len(world.tables) == 8

    def test_presets(self, sync_client):
        presets = sync_client.simulation.list_acceleration_presets()

        assert {p.name for p in presets} >= {"REAL_TIME", "MONTHLY", "YEARLY"}

    def test_event_patterns_round_trip(self, sync_client, engine):
        quiet = DemandPatternConfig(hourly_arrival_rates=(0.0,) * 24)

        started = sync_client.simulation.start(**manual_run_kwargs(event_patterns=quiet))

        assert started.total_events_scheduled == 0
        assert engine.config.event_patterns == quiet


class TestErrorHandling:
    """Server errors surface as typed client exceptions."""

    def test_progress_before_start_is_not_found(self, sync_client):
        with pytest.raises(NotFoundError) as exc_info:
            sync_client.simulation.get_progress()

        assert exc_info.value.error_type == "Not Found"
        assert exc_info.value.details == {"resource": "progress"}

    def test_double_start_is_conflict(self, sync_client):
        sync_client.simulation.start(**manual_run_kwargs())

        with pytest.raises(ConflictError) as exc_info:
            sync_client.simulation.start(**manual_run_kwargs())

        assert exc_info.value.error_type == "Simulation Already Running"
        assert "suggestion" in exc_info.value.details

    def test_pause_without_run_is_conflict(self, sync_client):
        with pytest.raises(ConflictError):
            sync_client.simulation.pause()

    def test_invalid_window_is_validation_error(self, sync_client):
        with pytest.raises(ValidationError):
            sync_client.simulation.start(
                **manual_run_kwargs(simulated_end_time=T0 - timedelta(days=1))
            )

    def test_invalid_acceleration_is_validation_error(self, sync_client):
        sync_client.simulation.start(**manual_run_kwargs())

        with pytest.raises(ValidationError) as exc_info:
            sync_client.simulation.set_acceleration(0.01)

        assert "acceleration_factor" in exc_info.value.message


# =============================================================================
# Asynchronous Client Tests
# =============================================================================


class TestAsyncSimulationIntegration:
    """End-to-end lifecycle through AsyncFleetSimClient."""

    async def test_auto_advance_run_completes(self, async_client):
        await async_client.simulation.start(
            simulated_start_time=T0,
            simulated_end_time=T0 + timedelta(hours=4),
            acceleration_factor=86400.0,
            robot_count=2,
            table_count=4,
            random_seed=5,
        )

        for _ in range(500):
            progress = await async_client.simulation.get_progress()
            if progress.state == SimulationState.COMPLETED:
                break
            await asyncio.sleep(0.01)

        assert progress.state == SimulationState.COMPLETED
        report = await async_client.simulation.get_report()
        assert report.simulated_duration == timedelta(hours=4)

    async def test_stop_and_restart(self, async_client):
        first = await async_client.simulation.start(**manual_run_kwargs())
        stopped = await async_client.simulation.stop()
        assert stopped.state == SimulationState.CANCELLED

        with pytest.raises(NotFoundError):
            await async_client.simulation.get_report()

        second = await async_client.simulation.start(**manual_run_kwargs())
        assert second.simulation_id != first.simulation_id

    async def test_health(self, async_client):
        assert await async_client.health() == {"status": "healthy"}

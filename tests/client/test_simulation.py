"""Unit tests for the SimulationClient and AsyncSimulationClient.

This module tests the long-run simulation sub-client: request paths and
bodies sent to the HTTP layer, and parsing of the response models.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from client._simulation import AsyncSimulationClient, SimulationClient
from models.config import DemandPatternConfig
from models.simulation import SimulationState

BASE = "/simulation/long-run"
START = datetime(2025, 1, 6, 12, 0, tzinfo=timezone.utc)


def start_response(**overrides) -> dict:
    data = {
        "simulation_id": "abc12345",
        "state": "running",
        "simulated_start_time": START.isoformat(),
        "simulated_end_time": (START + timedelta(days=30)).isoformat(),
        "acceleration_factor": 720.0,
        "total_events_scheduled": 4321,
        "estimated_real_duration": "1h 0m 0s",
    }
    data.update(overrides)
    return data


def control_response(state: str = "paused") -> dict:
    return {
        "simulation_id": "abc12345",
        "state": state,
        "current_simulated_time": START.isoformat(),
    }


def progress_response() -> dict:
    return {
        "simulation_id": "abc12345",
        "state": "running",
        "simulated_start_time": START.isoformat(),
        "simulated_end_time": (START + timedelta(days=30)).isoformat(),
        "current_simulated_time": (START + timedelta(days=3)).isoformat(),
        "progress_percent": 10.0,
        "real_elapsed_time": "PT6M",
        "estimated_time_remaining": "PT54M",
        "acceleration_factor": 720.0,
        "events_processed": 400,
        "total_events_scheduled": 4000,
        "guests_processed": 120,
        "tasks_created": 300,
        "tasks_completed": 280,
        "tasks_failed": 4,
        "current_success_rate": 98.59,
    }


def report_response() -> dict:
    return {
        "simulation_id": "abc12345",
        "simulated_start_time": START.isoformat(),
        "simulated_end_time": (START + timedelta(days=1)).isoformat(),
        "simulated_duration": "P1D",
        "real_duration": "PT2M",
        "acceleration_factor": 720.0,
        "total_guests": 100,
        "total_tasks": 250,
        "total_deliveries": 120,
        "total_failures": 5,
        "overall_success_rate": 98.0,
    }


@pytest.fixture
def mock_http():
    return MagicMock()


@pytest.fixture
def sim_client(mock_http):
    return SimulationClient(mock_http)


@pytest.fixture
def mock_async_http():
    return AsyncMock()


@pytest.fixture
def async_sim_client(mock_async_http):
    return AsyncSimulationClient(mock_async_http)


# =============================================================================
# SimulationClient Tests
# =============================================================================


class TestSimulationClientStart:
    """Tests for SimulationClient.start."""

    def test_start_with_defaults_sends_only_auto_advance(self, sim_client, mock_http):
        mock_http.post.return_value = start_response()

        result = sim_client.start()

        mock_http.post.assert_called_once_with(BASE, json={"auto_advance": True}, params=None)
        assert result.simulation_id == "abc12345"
        assert result.state == SimulationState.RUNNING
        assert result.total_events_scheduled == 4321

    def test_start_with_all_arguments(self, sim_client, mock_http):
        mock_http.post.return_value = start_response()
        patterns = DemandPatternConfig(max_party_size=4)

        sim_client.start(
            simulated_start_time=START,
            simulated_end_time=START + timedelta(days=7),
            acceleration_factor=60.0,
            robot_count=3,
            table_count=10,
            event_patterns=patterns,
            random_seed=9,
            progress_broadcast_interval_seconds=1.5,
            auto_advance=False,
        )

        body = mock_http.post.call_args.kwargs["json"]
        assert body["simulated_start_time"] == START.isoformat()
        assert body["simulated_end_time"] == (START + timedelta(days=7)).isoformat()
        assert body["acceleration_factor"] == 60.0
        assert body["robot_count"] == 3
        assert body["table_count"] == 10
        assert body["event_patterns"]["max_party_size"] == 4
        assert len(body["event_patterns"]["hourly_arrival_rates"]) == 24
        assert body["random_seed"] == 9
        assert body["progress_broadcast_interval_seconds"] == 1.5
        assert body["auto_advance"] is False


class TestSimulationClientControl:
    """Tests for pause/resume/stop/acceleration."""

    @pytest.mark.parametrize(
        "method, path, state",
        [
            ("pause", "/pause", "paused"),
            ("resume", "/resume", "running"),
            ("stop", "/stop", "cancelled"),
        ],
    )
    def test_control_operations(self, sim_client, mock_http, method, path, state):
        mock_http.post.return_value = control_response(state)

        result = getattr(sim_client, method)()

        mock_http.post.assert_called_once_with(f"{BASE}{path}", json=None, params=None)
        assert result.state == SimulationState(state)
        assert result.current_simulated_time == START

    def test_set_acceleration(self, sim_client, mock_http):
        mock_http.post.return_value = {
            "simulation_id": "abc12345",
            "acceleration_factor": 8640.0,
            "current_simulated_time": START.isoformat(),
        }

        result = sim_client.set_acceleration(8640.0)

        mock_http.post.assert_called_once_with(
            f"{BASE}/acceleration", json={"acceleration_factor": 8640.0}, params=None
        )
        assert result.acceleration_factor == 8640.0


class TestSimulationClientQueries:
    """Tests for progress, report, world and presets."""

    def test_get_progress(self, sim_client, mock_http):
        mock_http.get.return_value = progress_response()

        progress = sim_client.get_progress()

        mock_http.get.assert_called_once_with(f"{BASE}/progress", params=None)
        assert progress.progress_percent == 10.0
        assert progress.real_elapsed_time == timedelta(minutes=6)
        assert progress.tasks_failed == 4

    def test_get_report(self, sim_client, mock_http):
        mock_http.get.return_value = report_response()

        report = sim_client.get_report()

        mock_http.get.assert_called_once_with(f"{BASE}/report", params=None)
        assert report.total_guests == 100
        assert report.simulated_duration == timedelta(days=1)
        assert report.overall_success_rate == 98.0

    def test_get_world(self, sim_client, mock_http):
        mock_http.get.return_value = {
            "simulation_id": "abc12345",
            "state": "running",
            "robots": [{"id": 1, "status": "charging", "battery_level": 19.5}],
            "tables": [{"id": 1, "status": "occupied", "capacity": 4, "current_guest_id": 7}],
        }

        world = sim_client.get_world()

        mock_http.get.assert_called_once_with(f"{BASE}/world", params=None)
        assert world.robots[0].battery_level == 19.5
        assert world.tables[0].current_guest_id == 7

    def test_list_acceleration_presets(self, sim_client, mock_http):
        mock_http.get.return_value = [
            {"name": "DAILY", "factor": 144.0, "description": "1 day in 10 minutes"},
            {"name": "MONTHLY", "factor": 720.0, "description": "1 month in 1 hour"},
        ]

        presets = sim_client.list_acceleration_presets()

        mock_http.get.assert_called_once_with(f"{BASE}/acceleration-presets", params=None)
        assert [p.name for p in presets] == ["DAILY", "MONTHLY"]
        assert presets[1].factor == 720.0


# =============================================================================
# AsyncSimulationClient Tests
# =============================================================================


class TestAsyncSimulationClient:
    """Tests for the async sub-client."""

    async def test_start(self, async_sim_client, mock_async_http):
        mock_async_http.post.return_value = start_response()

        result = await async_sim_client.start(random_seed=1, auto_advance=False)

        mock_async_http.post.assert_called_once_with(
            BASE, json={"auto_advance": False, "random_seed": 1}, params=None
        )
        assert result.simulation_id == "abc12345"

    async def test_get_progress(self, async_sim_client, mock_async_http):
        mock_async_http.get.return_value = progress_response()

        progress = await async_sim_client.get_progress()

        assert progress.events_processed == 400

    async def test_pause_resume_stop(self, async_sim_client, mock_async_http):
        mock_async_http.post.return_value = control_response("paused")
        assert (await async_sim_client.pause()).state == SimulationState.PAUSED

        mock_async_http.post.return_value = control_response("running")
        assert (await async_sim_client.resume()).state == SimulationState.RUNNING

        mock_async_http.post.return_value = control_response("cancelled")
        assert (await async_sim_client.stop()).state == SimulationState.CANCELLED

        assert mock_async_http.post.await_count == 3

    async def test_set_acceleration(self, async_sim_client, mock_async_http):
        mock_async_http.post.return_value = {
            "simulation_id": "abc12345",
            "acceleration_factor": 60.0,
        }

        result = await async_sim_client.set_acceleration(60.0)

        mock_async_http.post.assert_called_once_with(
            f"{BASE}/acceleration", json={"acceleration_factor": 60.0}, params=None
        )
        assert result.current_simulated_time is None

    async def test_get_report_world_and_presets(self, async_sim_client, mock_async_http):
        mock_async_http.get.return_value = report_response()
        assert (await async_sim_client.get_report()).total_tasks == 250

        mock_async_http.get.return_value = {"simulation_id": "abc12345"}
        assert (await async_sim_client.get_world()).robots == []

        mock_async_http.get.return_value = [
            {"name": "REAL_TIME", "factor": 1.0, "description": "Real time"}
        ]
        presets = await async_sim_client.list_acceleration_presets()
        assert presets[0].factor == 1.0

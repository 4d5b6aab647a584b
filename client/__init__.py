"""Fleet simulator API client library.

Type-safe Python client for the Restaurant Fleet Simulator REST API,
usable synchronously or asynchronously.

Example:
    Synchronous usage::

        from client import FleetSimClient

        with FleetSimClient(base_url="http://localhost:8000") as client:
            client.simulation.start(random_seed=42)
            progress = client.simulation.get_progress()

    Asynchronous usage::

        from client import AsyncFleetSimClient

        async with AsyncFleetSimClient() as client:
            await client.simulation.start()

Exports:
    FleetSimClient: Synchronous client.
    AsyncFleetSimClient: Asynchronous client.

    Exceptions:
        FleetSimClientError: Base exception for all client errors.
        ConnectionError: Failed to connect to the server.
        TimeoutError: Request timed out.
        APIError: Server returned an error response.
        BadRequestError: Request not acceptable in the current state (HTTP 400).
        NotFoundError: Resource not found (HTTP 404).
        ConflictError: Run state conflict (HTTP 409).
        ValidationError: Request validation failed (HTTP 422).
        ServerError: Server-side error (HTTP 5xx).
"""

from client._simulation import AsyncSimulationClient, SimulationClient
from client.client import AsyncFleetSimClient, FleetSimClient
from client.exceptions import (
    APIError,
    BadRequestError,
    ConflictError,
    ConnectionError,
    FleetSimClientError,
    NotFoundError,
    ServerError,
    TimeoutError,
    ValidationError,
)

__all__ = [
    # Main clients
    "FleetSimClient",
    "AsyncFleetSimClient",
    # Sub-clients
    "SimulationClient",
    "AsyncSimulationClient",
    # Exceptions
    "FleetSimClientError",
    "ConnectionError",
    "TimeoutError",
    "APIError",
    "BadRequestError",
    "NotFoundError",
    "ConflictError",
    "ValidationError",
    "ServerError",
]

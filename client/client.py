"""Main fleet simulator client classes.

This module provides the entry points for talking to the simulator API:
- FleetSimClient: Synchronous client
- AsyncFleetSimClient: Asynchronous client

Both expose long-run control through the ``simulation`` sub-client.

Example:
    Synchronous usage::

        from client import FleetSimClient

        with FleetSimClient(base_url="http://localhost:8000") as client:
            client.simulation.start(acceleration_factor=8640, random_seed=42)
            print(client.simulation.get_progress().progress_percent)

    Asynchronous usage::

        from client import AsyncFleetSimClient

        async with AsyncFleetSimClient() as client:
            await client.simulation.start()
"""

from typing import Any

from client._http import AsyncHTTPClient, HTTPClient
from client._simulation import AsyncSimulationClient, SimulationClient


class FleetSimClient:
    """Synchronous client for the fleet simulator REST API.

    Attributes:
        base_url: The base URL of the simulator server.
        timeout: Request timeout in seconds.
        retry_enabled: Whether automatic retry is enabled.
        max_retries: Maximum number of retry attempts.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        timeout: float = 30.0,
        retry_enabled: bool = False,
        max_retries: int = 3,
        transport: Any = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: The base URL of the simulator server.
            timeout: Request timeout in seconds.
            retry_enabled: Retry on connection errors, timeouts and HTTP
                502/503/504 with exponential backoff.
            max_retries: Maximum number of retry attempts when retry is enabled.
            transport: Custom HTTP transport (e.g. httpx.MockTransport for testing).
        """
        self._http = HTTPClient(
            base_url=base_url,
            timeout=timeout,
            retry_enabled=retry_enabled,
            max_retries=max_retries,
            transport=transport,
        )
        self._simulation: SimulationClient | None = None

    def __enter__(self) -> "FleetSimClient":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def close(self) -> None:
        """Close the client and release its connection pool."""
        self._http.close()

    @property
    def base_url(self) -> str:
        return self._http.base_url

    @property
    def timeout(self) -> float:
        return self._http.timeout

    @property
    def retry_enabled(self) -> bool:
        return self._http.retry_enabled

    @property
    def max_retries(self) -> int:
        return self._http.max_retries

    @property
    def simulation(self) -> SimulationClient:
        """Access long-run simulation endpoints (/simulation/long-run/*)."""
        if self._simulation is None:
            self._simulation = SimulationClient(self._http)
        return self._simulation

    def health(self) -> dict[str, Any]:
        """Check server health.

        Returns:
            The health payload, e.g. {"status": "healthy"}.
        """
        return self._http.get("/health")


class AsyncFleetSimClient:
    """Asynchronous client for the fleet simulator REST API.

    Same surface as FleetSimClient with awaitable methods.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        timeout: float = 30.0,
        retry_enabled: bool = False,
        max_retries: int = 3,
        transport: Any = None,
    ) -> None:
        self._http = AsyncHTTPClient(
            base_url=base_url,
            timeout=timeout,
            retry_enabled=retry_enabled,
            max_retries=max_retries,
            transport=transport,
        )
        self._simulation: AsyncSimulationClient | None = None

    async def __aenter__(self) -> "AsyncFleetSimClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def close(self) -> None:
        await self._http.close()

    @property
    def base_url(self) -> str:
        return self._http.base_url

    @property
    def timeout(self) -> float:
        return self._http.timeout

    @property
    def simulation(self) -> AsyncSimulationClient:
        """Access long-run simulation endpoints (/simulation/long-run/*)."""
        if self._simulation is None:
            self._simulation = AsyncSimulationClient(self._http)
        return self._simulation

    async def health(self) -> dict[str, Any]:
        return await self._http.get("/health")

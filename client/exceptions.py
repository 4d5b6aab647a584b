"""Exception hierarchy for the fleet simulator API client.

Exception Hierarchy:
    FleetSimClientError (base)
    ├── ConnectionError - Network/connection failures
    ├── TimeoutError - Request timeout
    └── APIError - Server returned an error response
        ├── BadRequestError (HTTP 400)
        ├── NotFoundError (HTTP 404)
        ├── ConflictError (HTTP 409)
        ├── ValidationError (HTTP 422)
        └── ServerError (HTTP 5xx)

Example:
    Catching specific errors::

        try:
            client.simulation.start(acceleration_factor=720)
        except ConflictError:
            # A run is already active
            pass

    Catching all client errors::

        try:
            client.simulation.get_report()
        except FleetSimClientError as e:
            print(f"Client error: {e}")
"""

from typing import Any


class FleetSimClientError(Exception):
    """Base exception for all fleet simulator client errors.

    Attributes:
        message: Human-readable error description.
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def __str__(self) -> str:
        return self.message


class ConnectionError(FleetSimClientError):
    """Failed to connect to the simulator server.

    Attributes:
        url: The URL that failed to connect.
        cause: The underlying transport exception.
    """

    def __init__(
        self,
        message: str,
        url: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.url = url
        self.cause = cause
        super().__init__(message)

    def __str__(self) -> str:
        if self.url:
            return f"{self.message} (url: {self.url})"
        return self.message


class TimeoutError(FleetSimClientError):
    """Request took longer than the configured timeout.

    Attributes:
        timeout: The timeout value in seconds.
        url: The URL that timed out.
    """

    def __init__(
        self,
        message: str,
        timeout: float | None = None,
        url: str | None = None,
    ) -> None:
        self.timeout = timeout
        self.url = url
        super().__init__(message)


class APIError(FleetSimClientError):
    """The server returned an error response.

    Attributes:
        status_code: HTTP status code.
        error_type: Error title reported by the server, if any.
        details: Structured error details, if any.
        response_body: Raw decoded response body for debugging.
    """

    def __init__(
        self,
        message: str,
        status_code: int,
        error_type: str | None = None,
        details: dict[str, Any] | None = None,
        response_body: Any = None,
    ) -> None:
        self.status_code = status_code
        self.error_type = error_type
        self.details = details
        self.response_body = response_body
        super().__init__(message)

    def __str__(self) -> str:
        return f"[{self.status_code}] {self.message}"


class BadRequestError(APIError):
    """HTTP 400: the request was well formed but not acceptable now
    (e.g. asking for a report while a run is still active)."""

    def __init__(self, message: str, **kwargs: Any) -> None:
        super().__init__(message, status_code=400, **kwargs)


class NotFoundError(APIError):
    """HTTP 404: the requested resource (progress, report) does not exist."""

    def __init__(self, message: str, **kwargs: Any) -> None:
        super().__init__(message, status_code=404, **kwargs)


class ConflictError(APIError):
    """HTTP 409: the run is in the wrong state for the operation."""

    def __init__(self, message: str, **kwargs: Any) -> None:
        super().__init__(message, status_code=409, **kwargs)


class ValidationError(APIError):
    """HTTP 422: the request body failed validation."""

    def __init__(self, message: str, **kwargs: Any) -> None:
        super().__init__(message, status_code=422, **kwargs)


class ServerError(APIError):
    """HTTP 5xx: the server failed to handle the request."""

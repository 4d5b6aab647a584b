"""Exception handlers for the fleet simulation FastAPI application.

This module converts Python exceptions raised by the engine and route
handlers into consistent JSON responses.
"""

import logging

from fastapi import Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from models.simulation import SimulationAlreadyRunningError, SimulationNotActiveError

logger = logging.getLogger(__name__)


class ResourceNotFoundError(Exception):
    """Raised when a requested resource (progress, report) does not exist yet.

    Args:
        resource: Name of the missing resource.
        message: Description of why it is missing.
    """

    def __init__(self, resource: str, message: str):
        self.resource = resource
        self.message = message
        super().__init__(message)


async def already_running_handler(request: Request, exc: SimulationAlreadyRunningError):
    """Return 409 when a run is started while another is active."""
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={
            "error": "Simulation Already Running",
            "detail": str(exc),
            "suggestion": "Stop the active run with POST /simulation/long-run/stop",
        },
    )


async def not_active_handler(request: Request, exc: SimulationNotActiveError):
    """Return 409 when a control operation targets an inactive run."""
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={
            "error": "Simulation Not Active",
            "detail": str(exc),
            "suggestion": "Start a run with POST /simulation/long-run",
        },
    )


async def resource_not_found_handler(request: Request, exc: ResourceNotFoundError):
    """Return 404 naming the missing resource."""
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={
            "error": "Not Found",
            "detail": exc.message,
            "resource": exc.resource,
        },
    )


async def validation_exception_handler(request: Request, exc: ValidationError):
    """Handle pydantic validation errors raised inside handlers.

    Args:
        request: The incoming request that triggered the error.
        exc: The ValidationError exception.

    Returns:
        JSONResponse with 422 status and the validation errors.
    """
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "Validation Error",
            "detail": "The request data failed validation",
            "validation_errors": exc.errors(
                include_url=False, include_context=False, include_input=False
            ),
        },
    )


async def value_error_handler(request: Request, exc: ValueError):
    """Handle ValueError exceptions as 400 Bad Request."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": "Invalid Value",
            "detail": str(exc),
            "type": "ValueError",
        },
    )


async def runtime_error_handler(request: Request, exc: RuntimeError):
    """Handle RuntimeError exceptions as 500."""
    logger.error(f"Runtime error handling {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Runtime Error",
            "detail": str(exc),
            "type": "RuntimeError",
        },
    )


async def generic_exception_handler(request: Request, exc: Exception):
    """Catch-all handler that hides stack traces from clients."""
    logger.error(f"Unhandled exception handling {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal Server Error",
            "detail": "An unexpected error occurred",
            "type": type(exc).__name__,
        },
    )

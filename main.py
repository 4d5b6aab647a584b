"""Main entry point for the Restaurant Fleet Simulator FastAPI application.

This module creates and configures the FastAPI app instance that serves the
REST API for running time-accelerated restaurant robot-fleet simulations.

To run the development server:
    uvicorn main:app --reload

To run in production:
    uvicorn main:app --host 0.0.0.0 --port 8000
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from pydantic import ValidationError

from api.dependencies import initialize_simulation_engine, shutdown_simulation_engine
from api.exceptions import (
    ResourceNotFoundError,
    already_running_handler,
    generic_exception_handler,
    not_active_handler,
    resource_not_found_handler,
    runtime_error_handler,
    validation_exception_handler,
    value_error_handler,
)
from api.routes import simulation as simulation_routes
from api.settings import load_settings
from models.simulation import SimulationAlreadyRunningError, SimulationNotActiveError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan events.

    Loads settings, configures logging and builds the SimulationEngine at
    startup; stops any active run at shutdown.

    Args:
        app: The FastAPI application instance.

    Yields:
        Control back to FastAPI to handle requests.
    """
    settings = load_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    logger.info("Starting fleet simulator - initializing SimulationEngine")
    initialize_simulation_engine(settings)

    yield  # App runs and handles requests here

    logger.info("Shutting down fleet simulator")
    shutdown_simulation_engine()


# Create the FastAPI application instance
app = FastAPI(
    title="Restaurant Fleet Simulator",
    description="Time-accelerated discrete-event simulation of a restaurant robot fleet",
    version="0.1.0",
    lifespan=lifespan,
)

# Register exception handlers
# Order matters: specific exceptions before general ones
app.add_exception_handler(SimulationAlreadyRunningError, already_running_handler)
app.add_exception_handler(SimulationNotActiveError, not_active_handler)
app.add_exception_handler(ResourceNotFoundError, resource_not_found_handler)
app.add_exception_handler(ValidationError, validation_exception_handler)
app.add_exception_handler(ValueError, value_error_handler)
app.add_exception_handler(RuntimeError, runtime_error_handler)
app.add_exception_handler(Exception, generic_exception_handler)

# Register route modules
app.include_router(simulation_routes.router)


@app.get("/")
async def root():
    """Root endpoint - returns a welcome message."""
    return {
        "message": "Welcome to the Restaurant Fleet Simulator API",
        "version": "0.1.0",
        "docs_url": "/docs",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring."""
    return {"status": "healthy"}

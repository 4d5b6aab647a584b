"""API tests for the fleet simulator FastAPI application."""

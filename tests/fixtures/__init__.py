"""Test fixtures for the fleet simulator.

This package provides reusable test fixtures:
- core: Clock, config, event timeline and engine factories
- api: TestClient and engine injection for route tests
"""

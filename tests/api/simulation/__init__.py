"""Integration tests for long-run simulation routes.

This package contains tests for:
- POST /simulation/long-run - Start a run
- POST /simulation/long-run/{pause,resume,stop,acceleration} - Control a run
- GET /simulation/long-run/{progress,report,world,acceleration-presets} - Queries
"""

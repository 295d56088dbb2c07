"""REST API for Timeboard.

FastAPI application exposing the timer lifecycle, entry editing, day and
team views and project settings under ``/api/v1``.

Usage:
    # Generate token
    timeboard api token

    # Start server
    timeboard api serve

    # Access API docs
    http://localhost:8000/docs
"""

__all__ = ["create_app", "run_server"]

from timeboard.api.server import create_app, run_server  # noqa: F401

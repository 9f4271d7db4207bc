"""HTTP service mode for frontend-ir."""

from .app import create_app, run_service

__all__ = ["create_app", "run_service"]

"""
API module.
Contains the FastAPI application, routes, and API key authentication.
"""

from printbroker.api.main import create_app, run

__all__ = ["create_app", "run"]

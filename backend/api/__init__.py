"""
Photoforge API package.

Provides the FastAPI application for paid training and generation jobs.
"""

from .app import app, create_app

__all__ = ["app", "create_app"]

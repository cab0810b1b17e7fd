"""Web interface for the CourseDesk records service."""

from .server import create_app

__all__ = ["create_app"]

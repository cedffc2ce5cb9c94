"""HTTP service for the autonomous trader."""

from .app import create_app

__all__ = ["create_app"]

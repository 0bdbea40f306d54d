"""FastAPI app exposing ``/health`` and ``/ready``."""

from .server import create_app

__all__ = ["create_app"]

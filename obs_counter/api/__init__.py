"""api — FastAPI status endpoints."""
from .server import create_app

__all__ = ["create_app"]

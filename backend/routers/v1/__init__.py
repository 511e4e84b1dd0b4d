"""API v1 Route modules."""

from backend.routers.v1 import brink

__all__ = ["brink"]

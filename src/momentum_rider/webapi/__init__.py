"""HTTP API for momentum scores and cache administration."""

from .app import create_app

__all__ = ["create_app"]

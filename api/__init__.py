"""HTTP API for route analysis and trade records."""

from .app import create_app

__all__ = ["create_app"]

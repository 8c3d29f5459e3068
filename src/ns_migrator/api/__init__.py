"""HTTP API for migrations, clones and job history."""

from .app import create_app

__all__ = ["create_app"]

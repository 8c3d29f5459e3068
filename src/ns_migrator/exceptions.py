"""
Error taxonomy shared by the orchestrators, the store and the HTTP API.

Every error carries the HTTP status it maps to, so the API layer can turn
any ``MoverError`` into an ``{"error": ...}`` response without a lookup
table.
"""

from __future__ import annotations

__all__ = [
    "MoverError",
    "ValidationError",
    "UnconfiguredError",
    "NotFoundError",
    "ConflictError",
    "SameNamespaceError",
    "UpstreamError",
    "PersistenceError",
]


class MoverError(Exception):
    """Base class for all orchestration failures."""

    status_code = 500

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(MoverError):
    """Malformed or missing request fields."""

    status_code = 400


class UnconfiguredError(MoverError):
    """A namespace has no admin endpoint (or its admin hook is disabled)."""

    status_code = 400


class NotFoundError(MoverError):
    """Source or target namespace/instance does not exist."""

    status_code = 404


class ConflictError(MoverError):
    """Target name already taken."""

    status_code = 409


class SameNamespaceError(ValidationError, ConflictError):
    """Migration whose source and target namespace are the same.

    Reported as a 400 (the request itself is invalid) but still catchable
    as a ``ConflictError``.
    """

    status_code = 400


class UpstreamError(MoverError):
    """The remote admin endpoint answered with a non-success status.

    ``status_code`` mirrors the remote status; 502 is used when no response
    was received at all.
    """

    status_code = 502


class PersistenceError(MoverError):
    """The metadata store rejected a read or write."""

    status_code = 500
